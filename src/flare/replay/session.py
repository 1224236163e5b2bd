from __future__ import annotations

import time
from bisect import bisect_left, bisect_right
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from ember.config import MAX_SPEED, MIN_SPEED
from ember.math import clamp

from ..aggregator import DisplayEntry, sequence_index
from ..visual.growth import TRAVEL_DURATION
from .buffer import ReplayBuffer
from .tokens import Token
from .types import ReplayEvent, ReplayFrame, ReplayStatus

EPSILON = 1e-3
EPSILON_MS = 1.0


@dataclass(slots=True)
class ReplaySession:
    """Cursor and playback state over one immutable replay buffer.

    Invariant: `buffer.events[cursor]` is the last event with
    `relative_time <= current_time + EPSILON` (`cursor == -1` before the first).
    """

    buffer: ReplayBuffer
    display_entries: list[DisplayEntry]
    clock: Callable[[], float] = time.monotonic
    min_speed: float = MIN_SPEED
    max_speed: float = MAX_SPEED
    status: ReplayStatus = "paused"
    speed: float = 1.0
    cursor: int = -1
    current_time: float = 0.0
    display_cursor: int = -1
    last_tick: float | None = None
    pending_frame: ReplayFrame | None = None
    sequence_index: dict[int, int] = field(init=False)
    buffer_index: dict[int, int] = field(init=False)
    _times: list[float] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.sequence_index = sequence_index(self.display_entries)
        self.buffer_index = self.buffer.index_by_sequence()
        self._times = [item.relative_time for item in self.buffer.events]
        self.pending_frame = ReplayFrame(timestamp=0.0, events=(), reset=True)

    @property
    def events(self) -> Sequence[ReplayEvent]:
        return self.buffer.events

    @property
    def tokens(self) -> Sequence[Token]:
        return self.buffer.tokens

    @property
    def duration(self) -> float:
        return float(self.buffer.duration)

    @property
    def total_duration(self) -> float:
        """Buffer duration plus one travel so the final launch can finish on screen."""
        return self.duration + TRAVEL_DURATION

    @property
    def base_timestamp_ms(self) -> int:
        return int(self.buffer.base_timestamp_ms)

    # Playback controls.

    def play(self) -> None:
        if not self.buffer.events:
            return
        self.status = "playing"
        self.last_tick = self.clock()

    def pause(self) -> None:
        self.status = "paused"
        self.last_tick = None

    def set_speed(self, speed: float) -> float:
        self.speed = clamp(float(speed), float(self.min_speed), float(self.max_speed))
        return self.speed

    def restart(self) -> ReplayFrame:
        self.cursor = -1
        self.current_time = 0.0
        self.display_cursor = -1
        self.last_tick = self.clock()
        frame = ReplayFrame(timestamp=0.0, events=(), reset=True)
        self.pending_frame = frame
        return frame

    def progress(self) -> tuple[float, float]:
        return self.current_time, self.total_duration

    def consume_pending_frame(self) -> ReplayFrame | None:
        frame = self.pending_frame
        self.pending_frame = None
        return frame

    # Seeking.

    def target_index(self, time_s: float) -> int:
        """Greatest buffer index with `relative_time <= time_s + EPSILON`, or -1."""
        return bisect_right(self._times, float(time_s) + EPSILON) - 1

    def seek_to_time(self, time_s: float) -> ReplayFrame:
        previous_cursor = self.cursor
        previous_time = self.current_time
        clamped = clamp(float(time_s), 0.0, self.total_duration)
        target = self.target_index(clamped)
        rewinding = target < previous_cursor or clamped + EPSILON < previous_time

        start = 0 if rewinding else previous_cursor + 1
        crossed = tuple(self.buffer.events[start : target + 1])

        self.cursor = target
        self.current_time = clamped
        self.last_tick = self.clock()
        self._sync_display_cursor()

        frame = ReplayFrame(timestamp=clamped, events=crossed, reset=rewinding)
        self.pending_frame = frame
        return frame

    def seek_to_index(self, index: int) -> ReplayFrame:
        if not self.buffer.events:
            self.cursor = -1
            self.current_time = 0.0
            self.display_cursor = -1
            frame = ReplayFrame(timestamp=0.0, events=(), reset=True)
            self.pending_frame = frame
            return frame
        clamped = max(-1, min(int(index), len(self.buffer.events) - 1))
        if clamped == -1:
            frame = self.seek_to_time(0.0)
            self.display_cursor = -1
            return frame
        return self.seek_to_time(self.buffer.events[clamped].relative_time)

    def step(self, offset: int) -> ReplayFrame:
        """Move by buffer events; a backward step leaves a same-time group entirely."""
        offset = int(offset)
        index = self.cursor + offset
        if offset < 0 and 0 <= index < len(self._times):
            landing = self.target_index(self._times[index])
            if landing >= self.cursor:
                # Seeking by time lands on the last event sharing this instant.
                index = bisect_left(self._times, self._times[index] - EPSILON) - 1
        return self.seek_to_index(index)

    def step_by_display(self, offset: int) -> ReplayFrame:
        """Move by timeline rows rather than raw buffer events."""
        if not self.display_entries:
            return ReplayFrame(timestamp=self.current_time, events=(), reset=False)

        current = self.display_cursor
        if current == -1 and offset <= 0:
            return self._seek_before_first()

        target_row = 0 if current == -1 else current + int(offset)
        if target_row < 0:
            return self._seek_before_first()
        target_row = min(target_row, len(self.display_entries) - 1)

        buffer_idx = self.buffer_index_for_display(target_row)
        if buffer_idx is not None:
            frame = self.seek_to_index(buffer_idx)
        else:
            entry = self.display_entries[target_row]
            frame = self.seek_to_time((entry.timestamp_ms - self.base_timestamp_ms) / 1000.0)
        self.display_cursor = target_row
        return frame

    def _seek_before_first(self) -> ReplayFrame:
        frame = self.seek_to_index(-1)
        self.display_cursor = -1
        return frame

    def advance(self, now: float | None = None) -> ReplayFrame:
        """Move the playback clock forward; called once per frame while playing."""
        if self.status != "playing":
            self.last_tick = None
            return ReplayFrame(timestamp=self.current_time, events=(), reset=False)
        now = self.clock() if now is None else float(now)
        if self.last_tick is None:
            self.last_tick = now
            return ReplayFrame(timestamp=self.current_time, events=(), reset=False)
        delta = (now - self.last_tick) * self.speed
        self.last_tick = now
        if delta <= 0.0:
            return ReplayFrame(timestamp=self.current_time, events=(), reset=False)

        frame = self.seek_to_time(self.current_time + delta)
        # seek_to_time stamps last_tick from the clock; keep the caller's reading.
        self.last_tick = now
        if frame.timestamp >= self.total_duration - EPSILON:
            self.status = "paused"
            self.last_tick = None
        return frame

    # Buffer <-> display row mapping.

    def buffer_index_for_display(self, row: int) -> int | None:
        if row < 0 or row >= len(self.display_entries):
            return None
        entry = self.display_entries[row]
        sequences = entry.sequences or (int(entry.event.sequence),)
        candidates = [self.buffer_index[seq] for seq in sequences if seq in self.buffer_index]
        if candidates:
            return min(candidates)
        return None

    def display_index_for_time(self, time_s: float) -> int:
        if not self.display_entries:
            return -1
        target_ms = self.base_timestamp_ms + float(time_s) * 1000.0
        index = -1
        for idx, entry in enumerate(self.display_entries):
            if entry.timestamp_ms <= target_ms + EPSILON_MS:
                index = idx
            else:
                break
        return index

    def _sync_display_cursor(self) -> None:
        if self.cursor < 0:
            self.display_cursor = -1
            return
        sequence = self.buffer.events[self.cursor].sequence
        row = self.sequence_index.get(sequence)
        if row is not None:
            self.display_cursor = row
            return
        self.display_cursor = self.display_index_for_time(self.current_time)


__all__ = ["EPSILON", "ReplaySession"]
