from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, TypeAlias

from ..events import Event

ReplayMode: TypeAlias = Literal["live", "replay"]
ReplayStatus: TypeAlias = Literal["idle", "playing", "paused"]


@dataclass(frozen=True, slots=True)
class ReplayEvent:
    """A buffered event stamped with seconds since the first buffered event."""

    event: Event
    relative_time: float

    @property
    def sequence(self) -> int:
        return int(self.event.sequence)

    @property
    def timestamp_ms(self) -> int:
        return int(self.event.timestamp_ms)

    @property
    def action_type(self) -> str:
        return str(self.event.action_type)


@dataclass(frozen=True, slots=True)
class ReplayFrame:
    """Result of a seek.

    `reset=False`: apply `events` on top of the current visual state.
    `reset=True`: discard visual state; `events` is the whole replayed prefix.
    """

    timestamp: float
    events: tuple[ReplayEvent, ...] = field(default_factory=tuple)
    reset: bool = False

    @property
    def sequences(self) -> tuple[int, ...]:
        return tuple(item.sequence for item in self.events)


EMPTY_FRAME = ReplayFrame(timestamp=0.0, events=(), reset=False)
