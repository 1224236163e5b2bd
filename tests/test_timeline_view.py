from __future__ import annotations

import pytest

from ember.config import FlareConfig
from flare.aggregator import aggregate_display_entries
from flare.events import Event
from flare.views.timeline import SketchRect, TimelineView, next_speed, row_label, row_window


def _events() -> list[Event]:
    return [
        Event(
            sequence=1,
            timestamp_ms=0,
            action_type="protocol_event",
            action={"event": {"id": "m1", "msg": {"type": "agent_message_delta", "delta": "line one\nline two"}}},
        ),
        Event(sequence=2, timestamp_ms=1_000, action_type="tool_call"),
        Event(sequence=3, timestamp_ms=2_000, action_type="tool_call"),
    ]


def test_row_window_follows_cursor() -> None:
    assert row_window(5, 2, 10) == (0, 5)
    assert row_window(100, -1, 10) == (90, 100)
    assert row_window(100, 50, 10) == (45, 55)
    assert row_window(100, 2, 10) == (0, 10)
    assert row_window(100, 99, 10) == (90, 100)


def test_next_speed_steps_through_options() -> None:
    assert next_speed(1.0, 1) == 2.0
    assert next_speed(4.0, 1) == 4.0
    assert next_speed(1.0, -1) == 0.5
    assert next_speed(0.5, -1) == 0.5
    assert next_speed(3.0, -1) == 2.0


def test_row_label_flattens_text() -> None:
    entries = aggregate_display_entries(_events())
    assert row_label(entries[0]) == "protocol_event/agent_message_delta: line one line two"
    assert row_label(entries[1]) == "tool_call"


def test_sketch_rect_maps_normalized_space() -> None:
    rect = SketchRect(10.0, 20.0, 200.0, 100.0)
    assert rect.to_screen(0.5, 1.0) == (110.0, 120.0)
    assert rect.radius_px(0.1) == pytest.approx(10.0)


def test_view_commands_drive_replay() -> None:
    view = TimelineView(config=FlareConfig(), events=_events())
    store = view.store
    assert store.mode == "replay"

    view.apply_command("next_row")
    assert store.replay is not None
    assert store.replay.display_cursor == 0
    view.apply_command("next_event")
    assert store.replay.cursor == 1

    view.apply_command("faster")
    assert store.replay.speed == 2.0
    view.apply_command("slower")
    view.apply_command("slower")
    assert store.replay.speed == 0.5

    view.apply_command("toggle_play")
    assert store.status == "playing"
    view.apply_command("restart")
    assert store.replay.cursor == -1

    view.apply_command("toggle_replay")
    assert store.mode == "live"
    view.apply_command("next_row")
    assert store.mode == "live"


def test_view_rejects_unknown_command() -> None:
    view = TimelineView(config=FlareConfig(), events=_events())
    with pytest.raises(ValueError, match="unknown command"):
        view.apply_command("warp")


def test_empty_view_starts_live() -> None:
    view = TimelineView(config=FlareConfig())
    assert view.store.mode == "live"
    view.apply_command("toggle_replay")
    assert view.store.mode == "live"


def test_view_title_tracks_mode() -> None:
    view = TimelineView(config=FlareConfig(), events=_events())
    assert view.title() == "replay (paused)"
    view.apply_command("toggle_replay")
    assert view.title() == "live (idle)"
