from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ..events import Event, sort_events
from .tokens import Token, build_tokens
from .types import ReplayEvent


@dataclass(frozen=True, slots=True)
class ReplayBuffer:
    events: tuple[ReplayEvent, ...]
    tokens: tuple[Token, ...]
    base_timestamp_ms: int
    duration: float

    def __len__(self) -> int:
        return len(self.events)

    def index_by_sequence(self) -> dict[int, int]:
        return {item.sequence: idx for idx, item in enumerate(self.events)}


def stamp_relative(events: Iterable[Event]) -> list[ReplayEvent]:
    ordered = sort_events(list(events))
    if not ordered:
        return []
    base = int(ordered[0].timestamp_ms)
    return [ReplayEvent(event=event, relative_time=(int(event.timestamp_ms) - base) / 1000.0) for event in ordered]


def build_replay_buffer(events: Iterable[Event]) -> ReplayBuffer | None:
    """Snapshot the log for a replay session; None when there is nothing to replay."""
    stamped = stamp_relative(events)
    if not stamped:
        return None
    return ReplayBuffer(
        events=tuple(stamped),
        tokens=tuple(build_tokens(stamped)),
        base_timestamp_ms=stamped[0].timestamp_ms,
        duration=float(stamped[-1].relative_time),
    )


__all__ = ["ReplayBuffer", "build_replay_buffer", "stamp_relative"]
