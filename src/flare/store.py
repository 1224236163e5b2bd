from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from typing import Literal, TypeAlias

from ember.config import DEFAULT_MAX_EVENTS, MAX_SPEED, MIN_SPEED, FlareConfig

from .aggregator import DisplayAggregator, DisplayEntry, snapshot_entries
from .debug_log import debug_log
from .event_log import EventLog
from .events import BacklogMessage, Event, EventMessage, SocketMessage, decode_message
from .replay.buffer import build_replay_buffer
from .replay.session import ReplaySession
from .replay.tokens import Token
from .replay.types import EMPTY_FRAME, ReplayFrame, ReplayMode, ReplayStatus

ConnectionStatus: TypeAlias = Literal["connecting", "connected", "reconnecting", "error", "idle"]

StoreListener: TypeAlias = Callable[["VisualizerStore"], None]
EntryListener: TypeAlias = Callable[[DisplayEntry], None]


class VisualizerStore:
    """Single owner of the event log, the display rows and the replay session.

    All mutation goes through these methods; listeners are called synchronously
    after each change.
    """

    def __init__(
        self,
        *,
        max_events: int = DEFAULT_MAX_EVENTS,
        clock: Callable[[], float] = time.monotonic,
        min_speed: float = MIN_SPEED,
        max_speed: float = MAX_SPEED,
        default_speed: float = 1.0,
    ) -> None:
        self.log = EventLog(max_events)
        self.aggregator = DisplayAggregator()
        self.clock = clock
        self.min_speed = float(min_speed)
        self.max_speed = float(max_speed)
        self.default_speed = float(default_speed)
        self.connection_status: ConnectionStatus = "idle"
        self.replay: ReplaySession | None = None
        self.pending_live = 0
        self._listeners: list[StoreListener] = []
        self._entry_listeners: list[EntryListener] = []

    @classmethod
    def from_config(cls, config: FlareConfig, *, clock: Callable[[], float] = time.monotonic) -> VisualizerStore:
        return cls(
            max_events=int(config.max_events),
            clock=clock,
            min_speed=float(config.min_speed),
            max_speed=float(config.max_speed),
            default_speed=float(config.default_speed),
        )

    @property
    def events(self) -> list[Event]:
        return self.log.events

    @property
    def display_entries(self) -> list[DisplayEntry]:
        return self.aggregator.entries

    @property
    def mode(self) -> ReplayMode:
        return "live" if self.replay is None else "replay"

    @property
    def status(self) -> ReplayStatus:
        return "idle" if self.replay is None else self.replay.status

    @property
    def tokens(self) -> Sequence[Token]:
        return () if self.replay is None else self.replay.tokens

    # Subscriptions.

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def on_display_entry(self, listener: EntryListener) -> Callable[[], None]:
        self._entry_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._entry_listeners:
                self._entry_listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _notify_entry(self, entry: DisplayEntry) -> None:
        for listener in list(self._entry_listeners):
            listener(entry)

    # Ingestion.

    def set_connection_status(self, status: ConnectionStatus) -> None:
        self.connection_status = status
        self._notify()

    def replace_events(self, events: Iterable[Event]) -> None:
        self.log.replace(events)
        self.aggregator.rebuild(self.log.events)
        if self.replay is not None:
            self.pending_live = 0
        debug_log("replace_events", count=len(self.log), rows=len(self.aggregator.entries))
        self._notify()

    def push_event(self, event: Event) -> DisplayEntry | None:
        sequence = int(event.sequence)
        if sequence <= self.log.tail_sequence:
            # Out of order (or duplicate) delivery: fold it in through a full rebuild.
            # The live launcher has already drained past it, so it never launches.
            duplicate = self.log.contains(sequence)
            debug_log(
                "out_of_order",
                sequence=sequence,
                tail=self.log.tail_sequence,
                duplicate=duplicate,
                live_launch="skipped",
            )
            if duplicate:
                return None
            self.replace_events([*self.log.events, event])
            if self.replay is not None:
                self.pending_live += 1
            return None

        truncated = self.log.push(event)
        if truncated:
            self.aggregator.rebuild(self.log.events)
            debug_log("truncate_rebuild", count=len(self.log), head=int(self.log[0].sequence))
            entry = self.aggregator.entries[-1] if self.aggregator.entries else None
        else:
            entry = self.aggregator.append(event)

        if self.replay is not None:
            self.pending_live += 1
        if entry is not None:
            self._notify_entry(entry)
        self._notify()
        return entry

    def apply_message(self, message: SocketMessage | None) -> None:
        if isinstance(message, BacklogMessage):
            self.replace_events(message.events)
        elif isinstance(message, EventMessage):
            self.push_event(message.event)

    def ingest(self, blob: bytes | str) -> bool:
        """Decode and apply one relay message; False when it was dropped."""
        message = decode_message(blob)
        if message is None:
            debug_log("drop_message", size=len(blob))
            return False
        self.apply_message(message)
        return True

    # Replay session.

    def enter_replay(self) -> bool:
        if self.replay is not None:
            return len(self.replay.events) > 0
        buffer = build_replay_buffer(self.log.events)
        if buffer is None:
            return False
        self.replay = ReplaySession(
            buffer=buffer,
            display_entries=snapshot_entries(self.aggregator.entries),
            clock=self.clock,
            min_speed=self.min_speed,
            max_speed=self.max_speed,
        )
        self.replay.set_speed(self.default_speed)
        self.pending_live = 0
        debug_log(
            "replay_enter",
            events=len(buffer),
            tokens=len(buffer.tokens),
            duration=float(buffer.duration),
            sequences=[item.sequence for item in buffer.events],
            pending=sum(1 for token in buffer.tokens if token.pending),
        )
        self._notify()
        return True

    def exit_replay(self) -> None:
        if self.replay is None:
            return
        debug_log("replay_exit", pending_live=self.pending_live)
        self.replay = None
        self.pending_live = 0
        self._notify()

    def play(self) -> None:
        if self.replay is None:
            return
        self.replay.play()
        self._notify()

    def pause(self) -> None:
        if self.replay is None:
            return
        self.replay.pause()
        self._notify()

    def toggle_play(self) -> None:
        if self.replay is None:
            return
        if self.replay.status == "playing":
            self.pause()
        else:
            self.play()

    def set_speed(self, speed: float) -> None:
        if self.replay is None:
            return
        self.replay.set_speed(speed)
        self._notify()

    def _frame(self, run: Callable[[ReplaySession], ReplayFrame]) -> ReplayFrame:
        if self.replay is None:
            return EMPTY_FRAME
        frame = run(self.replay)
        if frame.reset:
            debug_log("replay_reset", timestamp=float(frame.timestamp), sequences=list(frame.sequences))
        self._notify()
        return frame

    def restart(self) -> ReplayFrame:
        return self._frame(lambda session: session.restart())

    def seek_to_time(self, time_s: float) -> ReplayFrame:
        return self._frame(lambda session: session.seek_to_time(time_s))

    def seek_to_index(self, index: int) -> ReplayFrame:
        return self._frame(lambda session: session.seek_to_index(index))

    def step(self, offset: int) -> ReplayFrame:
        return self._frame(lambda session: session.step(offset))

    def step_by_display(self, offset: int) -> ReplayFrame:
        return self._frame(lambda session: session.step_by_display(offset))

    def advance(self, now: float | None = None) -> ReplayFrame:
        if self.replay is None:
            return EMPTY_FRAME
        frame = self.replay.advance(now)
        if frame.events or frame.reset:
            self._notify()
        return frame

    def progress(self) -> tuple[float, float]:
        if self.replay is None:
            return 0.0, 0.0
        return self.replay.progress()

    def consume_pending_frame(self) -> ReplayFrame | None:
        if self.replay is None:
            return None
        return self.replay.consume_pending_frame()


__all__ = ["ConnectionStatus", "VisualizerStore"]
