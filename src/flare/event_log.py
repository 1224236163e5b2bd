from __future__ import annotations

from collections.abc import Iterable, Iterator

from ember.config import DEFAULT_MAX_EVENTS

from .events import Event, sort_events


class EventLog:
    """Bounded in-memory event log, oldest events dropped first."""

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        if int(max_events) < 1:
            raise ValueError(f"max_events must be positive, got {max_events}")
        self._max_events = int(max_events)
        self._events: list[Event] = []

    @property
    def max_events(self) -> int:
        return self._max_events

    @property
    def events(self) -> list[Event]:
        return self._events

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __getitem__(self, index: int) -> Event:
        return self._events[index]

    @property
    def tail_sequence(self) -> int:
        if not self._events:
            return -1
        return int(self._events[-1].sequence)

    def push(self, event: Event) -> bool:
        """Append `event`; return True when the head was truncated."""
        self._events.append(event)
        overflow = len(self._events) - self._max_events
        if overflow > 0:
            del self._events[:overflow]
            return True
        return False

    def replace(self, events: Iterable[Event]) -> None:
        """Replace the whole log (backlog on reconnect), re-sorted by sequence.

        A sequence delivered twice keeps its last copy.
        """
        by_sequence: dict[int, Event] = {}
        for event in events:
            by_sequence[int(event.sequence)] = event
        ordered = sort_events(list(by_sequence.values()))
        self._events[:] = ordered[-self._max_events :]

    def contains(self, sequence: int) -> bool:
        for event in reversed(self._events):
            seq = int(event.sequence)
            if seq == int(sequence):
                return True
            if seq < int(sequence):
                return False
        return False

    def snapshot(self) -> list[Event]:
        return list(self._events)

    def since(self, sequence: int) -> list[Event]:
        """Events with a sequence strictly greater than `sequence`, in log order."""
        fresh: list[Event] = []
        for event in reversed(self._events):
            if int(event.sequence) <= int(sequence):
                break
            fresh.append(event)
        fresh.reverse()
        return fresh


__all__ = ["EventLog"]
