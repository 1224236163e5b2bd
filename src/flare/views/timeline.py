from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import pyray as rl

from ember.color import ACTION_BACKGROUND, STATE_BACKGROUND, RGBA
from ember.config import SPEED_OPTIONS, FlareConfig

from ..aggregator import DisplayEntry
from ..controller import AnimationController, VisualizerFrame
from ..events import Event
from ..store import VisualizerStore

UI_TEXT_SIZE = 14
UI_LINE_HEIGHT = 18
PANEL_WIDTH_FRACTION = 0.42

TEXT_COLOR = RGBA(0.16, 0.16, 0.18, 1.0)
HINT_COLOR = RGBA(0.45, 0.45, 0.48, 1.0)
CURSOR_COLOR = RGBA(0.98, 0.86, 0.55, 1.0)
SKETCH_BORDER = RGBA(0.82, 0.80, 0.76, 1.0)

_KEY_COMMANDS: tuple[tuple[int, str], ...] = (
    (rl.KeyboardKey.KEY_SPACE, "toggle_play"),
    (rl.KeyboardKey.KEY_RIGHT, "next_row"),
    (rl.KeyboardKey.KEY_LEFT, "prev_row"),
    (rl.KeyboardKey.KEY_PERIOD, "next_event"),
    (rl.KeyboardKey.KEY_COMMA, "prev_event"),
    (rl.KeyboardKey.KEY_UP, "faster"),
    (rl.KeyboardKey.KEY_DOWN, "slower"),
    (rl.KeyboardKey.KEY_HOME, "restart"),
    (rl.KeyboardKey.KEY_R, "toggle_replay"),
)


@dataclass(frozen=True, slots=True)
class SketchRect:
    x: float
    y: float
    width: float
    height: float

    def to_screen(self, nx: float, ny: float) -> tuple[float, float]:
        return self.x + nx * self.width, self.y + ny * self.height

    def radius_px(self, radius: float) -> float:
        return radius * min(self.width, self.height)


def row_window(total: int, cursor: int, rows: int) -> tuple[int, int]:
    """Return `[start, stop)` of the rows to show, keeping `cursor` in view (tail when -1)."""
    rows = max(1, int(rows))
    if total <= rows:
        return 0, total
    if cursor < 0:
        return total - rows, total
    start = min(max(0, cursor - rows // 2), total - rows)
    return start, start + rows


def next_speed(speed: float, direction: int) -> float:
    options = SPEED_OPTIONS
    if direction > 0:
        for option in options:
            if option > speed + 1e-9:
                return option
        return options[-1]
    for option in reversed(options):
        if option < speed - 1e-9:
            return option
    return options[0]


def row_label(entry: DisplayEntry) -> str:
    label = str(entry.event.action_type)
    if entry.subtype:
        label = f"{label}/{entry.subtype}"
    if entry.text is not None:
        text = entry.text.replace("\n", " ")
        label = f"{label}: {text[:48]}"
    return label


class TimelineView:
    """Replay/live viewer: token sketch on the left, timeline rows on the right."""

    def __init__(self, *, config: FlareConfig, events: Sequence[Event] = ()) -> None:
        self._time = 0.0
        self._config = config
        self.store = VisualizerStore.from_config(config, clock=self._now)
        if events:
            self.store.replace_events(events)
            self.store.enter_replay()
        self.controller = AnimationController(self.store)
        self.frame: VisualizerFrame | None = None

    def _now(self) -> float:
        return self._time

    def title(self) -> str:
        store = self.store
        if store.mode == "replay":
            return f"replay ({store.status})"
        return f"live ({store.connection_status})"

    def apply_command(self, command: str) -> None:
        store = self.store
        if command == "toggle_replay":
            if store.mode == "replay":
                store.exit_replay()
            else:
                store.enter_replay()
            return
        if store.mode != "replay":
            return
        if command == "toggle_play":
            store.toggle_play()
        elif command == "next_row":
            store.step_by_display(1)
        elif command == "prev_row":
            store.step_by_display(-1)
        elif command == "next_event":
            store.step(1)
        elif command == "prev_event":
            store.step(-1)
        elif command == "faster" and store.replay is not None:
            store.set_speed(next_speed(store.replay.speed, 1))
        elif command == "slower" and store.replay is not None:
            store.set_speed(next_speed(store.replay.speed, -1))
        elif command == "restart":
            store.restart()
        else:
            raise ValueError(f"unknown command: {command!r}")

    def update(self, dt: float) -> None:
        self._time += max(0.0, float(dt))
        for key, command in _KEY_COMMANDS:
            if rl.is_key_pressed(key):
                self.apply_command(command)
        self.frame = self.controller.tick(self._time)

    def _sketch_rect(self) -> SketchRect:
        width = float(rl.get_screen_width())
        height = float(rl.get_screen_height())
        panel = width * PANEL_WIDTH_FRACTION
        pad = 16.0
        return SketchRect(pad, pad + UI_LINE_HEIGHT * 2, width - panel - pad * 2, height - pad * 2 - UI_LINE_HEIGHT * 2)

    def _draw_status(self) -> None:
        store = self.store
        if store.mode == "replay" and store.replay is not None:
            current, total = store.progress()
            text = (
                f"REPLAY {store.status}  {current:6.2f}/{total:6.2f}s  x{store.replay.speed:g}  "
                f"live+{store.pending_live}"
            )
        else:
            text = f"LIVE  events={len(store.events)}  rows={len(store.display_entries)}"
        rl.draw_text(text, 16, 12, UI_TEXT_SIZE, TEXT_COLOR.to_rl())

    def _draw_tokens(self, rect: SketchRect) -> None:
        rl.draw_rectangle_lines(int(rect.x), int(rect.y), int(rect.width), int(rect.height), SKETCH_BORDER.to_rl())
        if self.frame is None:
            return
        for snap in self.frame.snapshots:
            cx, cy = rect.to_screen(snap.x, snap.y)
            radius = rect.radius_px(snap.radius)
            rl.draw_circle_v(rl.Vector2(cx, cy), radius, snap.fill.to_rl())
            rl.draw_circle_lines(int(cx), int(cy), radius, snap.stroke.to_rl())

    def _draw_rows(self) -> None:
        store = self.store
        width = rl.get_screen_width()
        height = rl.get_screen_height()
        panel_x = int(width * (1.0 - PANEL_WIDTH_FRACTION))
        rl.draw_rectangle(panel_x, 0, width - panel_x, height, ACTION_BACKGROUND.to_rl())

        if store.replay is not None:
            entries = store.replay.display_entries
            cursor = store.replay.display_cursor
        else:
            entries = store.display_entries
            cursor = -1
        rows = min(int(self._config.timeline_rows), max(1, (height - 24) // UI_LINE_HEIGHT))
        start, stop = row_window(len(entries), cursor, rows)
        y = 12
        for idx in range(start, stop):
            entry = entries[idx]
            if idx == cursor:
                rl.draw_rectangle(panel_x, y - 2, width - panel_x, UI_LINE_HEIGHT, CURSOR_COLOR.to_rl())
            color = TEXT_COLOR if store.replay is None or idx <= cursor else HINT_COLOR
            rl.draw_text(f"{idx:4d} {row_label(entry)}", panel_x + 8, y, UI_TEXT_SIZE, color.to_rl())
            y += UI_LINE_HEIGHT

    def draw(self) -> None:
        rl.clear_background(STATE_BACKGROUND.to_rl())
        self._draw_status()
        self._draw_tokens(self._sketch_rect())
        self._draw_rows()


__all__ = ["SketchRect", "TimelineView", "next_speed", "row_label", "row_window"]
