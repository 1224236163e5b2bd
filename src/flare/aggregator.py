from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import msgspec

from .events import Event, sort_events
from .payload import DeltaFragment, delta_fragment, event_subtype


@dataclass(slots=True)
class AggregatedDelta:
    subtype: str
    combined_text: str
    events: list[Event] = field(default_factory=list)


@dataclass(slots=True)
class DisplayEntry:
    """One timeline row: a single event or a run of merged delta fragments."""

    event: Event
    subtype: str | None
    aggregated: AggregatedDelta | None = None
    sequences: tuple[int, ...] = ()

    @property
    def timestamp_ms(self) -> int:
        if self.aggregated is not None and self.aggregated.events:
            return int(self.aggregated.events[-1].timestamp_ms)
        return int(self.event.timestamp_ms)

    @property
    def text(self) -> str | None:
        if self.aggregated is None:
            return None
        return self.aggregated.combined_text


@dataclass(slots=True)
class _PendingAggregate:
    key: str
    subtype: str
    first_event: Event
    combined_text: str
    events: list[Event]
    display_index: int


class DisplayAggregator:
    """Fold events (in sequence order) into display entries.

    At most one aggregate is pending; it keeps growing while fragments with the
    same correlation key arrive and is closed by anything else.
    """

    def __init__(self) -> None:
        self.entries: list[DisplayEntry] = []
        self._pending: _PendingAggregate | None = None

    @property
    def pending_key(self) -> str | None:
        return self._pending.key if self._pending is not None else None

    def reset(self) -> None:
        self.entries.clear()
        self._pending = None

    def rebuild(self, events: Iterable[Event]) -> list[DisplayEntry]:
        self.reset()
        for event in sort_events(list(events)):
            self.process(event)
        return self.entries

    def append(self, event: Event) -> DisplayEntry:
        return self.process(event)

    def process(self, event: Event) -> DisplayEntry:
        fragment = delta_fragment(event)
        if fragment is not None:
            return self._process_delta(event, fragment)
        self._pending = None
        entry = DisplayEntry(
            event=event,
            subtype=event_subtype(event),
            sequences=(int(event.sequence),),
        )
        self.entries.append(entry)
        return entry

    def _process_delta(self, event: Event, fragment: DeltaFragment) -> DisplayEntry:
        pending = self._pending
        if pending is not None and pending.key == fragment.key:
            pending.events.append(event)
            pending.combined_text += fragment.text
            return self._write_pending(pending)

        pending = _PendingAggregate(
            key=fragment.key,
            subtype=fragment.subtype,
            first_event=event,
            combined_text=fragment.text,
            events=[event],
            display_index=len(self.entries),
        )
        self._pending = pending
        self.entries.append(DisplayEntry(event=event, subtype=None, sequences=(int(event.sequence),)))
        return self._write_pending(pending)

    def _write_pending(self, pending: _PendingAggregate) -> DisplayEntry:
        last = pending.events[-1]
        entry = self.entries[pending.display_index]
        entry.event = msgspec.structs.replace(pending.first_event, state=last.state)
        entry.subtype = pending.subtype
        entry.aggregated = AggregatedDelta(
            subtype=pending.subtype,
            combined_text=pending.combined_text,
            events=list(pending.events),
        )
        entry.sequences = tuple(int(e.sequence) for e in pending.events)
        return entry


def aggregate_display_entries(events: Iterable[Event]) -> list[DisplayEntry]:
    return list(DisplayAggregator().rebuild(events))


def sequence_index(entries: Sequence[DisplayEntry]) -> dict[int, int]:
    """Map every represented sequence number to its display row."""
    out: dict[int, int] = {}
    for idx, entry in enumerate(entries):
        for sequence in entry.sequences:
            out[int(sequence)] = idx
    return out


def snapshot_entries(entries: Sequence[DisplayEntry]) -> list[DisplayEntry]:
    """Copy entries so later in-place growth of a pending aggregate does not leak in."""
    out: list[DisplayEntry] = []
    for entry in entries:
        aggregated = None
        if entry.aggregated is not None:
            aggregated = AggregatedDelta(
                subtype=entry.aggregated.subtype,
                combined_text=entry.aggregated.combined_text,
                events=list(entry.aggregated.events),
            )
        out.append(
            DisplayEntry(
                event=entry.event,
                subtype=entry.subtype,
                aggregated=aggregated,
                sequences=tuple(entry.sequences),
            )
        )
    return out


__all__ = [
    "AggregatedDelta",
    "DisplayAggregator",
    "DisplayEntry",
    "aggregate_display_entries",
    "sequence_index",
    "snapshot_entries",
]
