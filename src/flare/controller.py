from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .debug_log import debug_log
from .replay.types import ReplayMode
from .store import VisualizerStore
from .visual.launcher import Launcher, TokenSnapshot, evaluate_at_time


@dataclass(frozen=True, slots=True)
class VisualizerFrame:
    mode: ReplayMode
    timestamp: float
    snapshots: tuple[TokenSnapshot, ...]


FrameListener = Callable[[VisualizerFrame], None]


class AnimationController:
    """Per-frame driver choosing the live or the replay token evaluator.

    Live frames feed the `Launcher` with events newer than the last one seen.
    Replay frames advance playback and evaluate the precomputed tokens as a pure
    function of the replay clock. Leaving replay resets the launcher and resumes
    from the current log tail, so events seen before are not launched twice.
    A live event that arrives below `live_sequence_seen` lands in the timeline
    rows only; the launcher never sees it.
    """

    def __init__(
        self,
        store: VisualizerStore,
        *,
        launcher: Launcher | None = None,
        notify: FrameListener | None = None,
    ) -> None:
        self.store = store
        self.launcher = launcher if launcher is not None else Launcher()
        self.notify = notify
        self.live_sequence_seen = -1
        self._last_mode: ReplayMode = "live"

    def sync_to_tail(self) -> None:
        self.live_sequence_seen = self.store.log.tail_sequence

    def tick(self, now: float) -> VisualizerFrame:
        mode = self.store.mode
        if mode == "live" and self._last_mode == "replay":
            self.launcher.reset()
            self.sync_to_tail()
            debug_log("live_resume", tail=self.live_sequence_seen)
        self._last_mode = mode

        if mode == "live":
            fresh = self.store.log.since(self.live_sequence_seen)
            if fresh:
                self.live_sequence_seen = int(fresh[-1].sequence)
            snapshots = self.launcher.tick(now, fresh)
            frame = VisualizerFrame(mode="live", timestamp=float(now), snapshots=tuple(snapshots))
        else:
            if self.store.status == "playing":
                self.store.advance(now)
            replay = self.store.replay
            timestamp = replay.current_time if replay is not None else 0.0
            snapshots = evaluate_at_time(self.store.tokens, timestamp)
            frame = VisualizerFrame(mode="replay", timestamp=timestamp, snapshots=tuple(snapshots))

        if self.notify is not None:
            self.notify(frame)
        return frame


__all__ = ["AnimationController", "FrameListener", "VisualizerFrame"]
