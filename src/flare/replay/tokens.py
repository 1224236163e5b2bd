from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from ember.color import RGBA, color_for_action
from ember.math import ms_bucket

from ..payload import event_subtype, is_delta_event, match_key
from .types import ReplayEvent


@dataclass(frozen=True, slots=True)
class Token:
    """One charge/launch burst, precomputed for replay.

    `launch_time` is None while the burst never closed inside the buffer.
    `delta_times` holds every fragment folded into the charge, opening fragment included.
    """

    id: str
    match_key: str
    action_type: str
    subtype: str | None
    fill: RGBA
    stroke: RGBA
    charging_start: float
    launch_time: float | None
    stack_index: int
    primary_sequence: int
    latest_sequence: int
    delta_times: tuple[float, ...] = ()

    @property
    def pending(self) -> bool:
        return self.launch_time is None


@dataclass(slots=True)
class _OpenCharge:
    match_key: str
    charging_start: float
    fill: RGBA
    stroke: RGBA
    subtype: str | None
    action_type: str
    start_sequence: int
    latest_sequence: int
    delta_times: list[float] = field(default_factory=list)

    def refresh(self, *, fill: RGBA, stroke: RGBA, subtype: str | None, action_type: str, sequence: int) -> None:
        self.fill = fill
        self.stroke = stroke
        self.subtype = subtype
        self.action_type = action_type
        self.latest_sequence = max(self.latest_sequence, int(sequence))


def token_colors(action_type: str, subtype: str | None) -> tuple[RGBA, RGBA]:
    """Return `(fill, stroke)`: fill keyed by subtype when present, stroke by action type."""
    return color_for_action(subtype or action_type), color_for_action(action_type)


class LaunchStacks:
    """Per-millisecond launch counter; simultaneous launches take distinct lanes."""

    def __init__(self) -> None:
        self._counts: dict[int, int] = {}

    def next_index(self, time: float) -> int:
        key = ms_bucket(time)
        index = self._counts.get(key, 0)
        self._counts[key] = index + 1
        return index

    def __len__(self) -> int:
        return len(self._counts)

    def prune(self, before: float) -> None:
        """Forget buckets older than `before`; launches never land in the past."""
        cutoff = ms_bucket(before)
        stale = [key for key in self._counts if key < cutoff]
        for key in stale:
            del self._counts[key]


def build_tokens(events: Sequence[ReplayEvent]) -> list[Token]:
    """Pair charges with launches in one forward pass over a time-ordered buffer."""
    tokens: list[Token] = []
    active: dict[str, _OpenCharge] = {}
    stacks = LaunchStacks()

    for item in events:
        event = item.event
        subtype = event_subtype(event)
        key = match_key(event)
        fill, stroke = token_colors(event.action_type, subtype)
        time = float(item.relative_time)

        if is_delta_event(event):
            charge = active.get(key)
            if charge is None:
                charge = _OpenCharge(
                    match_key=key,
                    charging_start=time,
                    fill=fill,
                    stroke=stroke,
                    subtype=subtype,
                    action_type=str(event.action_type),
                    start_sequence=int(event.sequence),
                    latest_sequence=int(event.sequence),
                )
                active[key] = charge
            else:
                charge.refresh(
                    fill=fill,
                    stroke=stroke,
                    subtype=subtype,
                    action_type=str(event.action_type),
                    sequence=int(event.sequence),
                )
            charge.delta_times.append(time)
            continue

        stack_index = stacks.next_index(time)
        charge = active.pop(key, None)
        if charge is not None:
            charge.refresh(
                fill=fill,
                stroke=stroke,
                subtype=subtype,
                action_type=str(event.action_type),
                sequence=int(event.sequence),
            )
            tokens.append(
                Token(
                    id=f"replay-token-{int(event.sequence)}",
                    match_key=charge.match_key,
                    action_type=str(event.action_type),
                    subtype=subtype,
                    fill=fill,
                    stroke=stroke,
                    charging_start=charge.charging_start,
                    launch_time=time,
                    stack_index=stack_index,
                    primary_sequence=charge.start_sequence,
                    latest_sequence=charge.latest_sequence,
                    delta_times=tuple(charge.delta_times),
                )
            )
        else:
            tokens.append(
                Token(
                    id=f"replay-token-{int(event.sequence)}",
                    match_key=key,
                    action_type=str(event.action_type),
                    subtype=subtype,
                    fill=fill,
                    stroke=stroke,
                    charging_start=time,
                    launch_time=time,
                    stack_index=stack_index,
                    primary_sequence=int(event.sequence),
                    latest_sequence=int(event.sequence),
                )
            )

    orphaned = sorted(active.values(), key=lambda c: (c.charging_start, c.start_sequence))
    for index, charge in enumerate(orphaned):
        tokens.append(
            Token(
                id=f"replay-token-{charge.start_sequence}-pending",
                match_key=charge.match_key,
                action_type=charge.action_type,
                subtype=charge.subtype,
                fill=charge.fill,
                stroke=charge.stroke,
                charging_start=charge.charging_start,
                launch_time=None,
                stack_index=index,
                primary_sequence=charge.start_sequence,
                latest_sequence=charge.latest_sequence,
                delta_times=tuple(charge.delta_times),
            )
        )
    return tokens


__all__ = ["LaunchStacks", "Token", "build_tokens", "token_colors"]
