from __future__ import annotations

from typing import Protocol

import pyray as rl

# Longest step fed to `update`; window drags and breakpoints stall the frame clock.
MAX_FRAME_DT = 0.25


class View(Protocol):
    def update(self, dt: float) -> None: ...

    def draw(self) -> None: ...


def _window_title(view: View, base: str) -> str:
    title_fn = getattr(view, "title", None)
    if callable(title_fn):
        suffix = str(title_fn()).strip()
        if suffix:
            return f"{base} - {suffix}"
    return base


def run_view(
    view: View,
    *,
    width: int = 1280,
    height: int = 720,
    title: str = "flare",
    fps: int = 60,
) -> None:
    """Drive `view` in a resizable Raylib window until it is closed."""
    rl.set_config_flags(rl.ConfigFlags.FLAG_WINDOW_RESIZABLE | rl.ConfigFlags.FLAG_MSAA_4X_HINT)
    rl.init_window(width, height, title)
    rl.set_target_fps(fps)
    shown_title = title
    try:
        while not rl.window_should_close():
            view.update(min(rl.get_frame_time(), MAX_FRAME_DT))
            wanted = _window_title(view, title)
            if wanted != shown_title:
                rl.set_window_title(wanted)
                shown_title = wanted
            rl.begin_drawing()
            view.draw()
            rl.end_drawing()
    finally:
        rl.close_window()
