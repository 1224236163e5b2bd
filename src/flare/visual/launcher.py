from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal, TypeAlias

from ember.color import RGBA

from ..events import Event
from ..payload import event_subtype, is_delta_event, match_key
from ..replay.tokens import LaunchStacks, Token, token_colors
from .growth import (
    EPSILON,
    RETIRE_PROGRESS,
    TRAVEL_DURATION,
    charge_after,
    is_retired,
    lane_y,
    radius_for_charge,
    travel_x,
)

TokenState: TypeAlias = Literal["charging", "flying"]


@dataclass(frozen=True, slots=True)
class TokenSnapshot:
    id: str
    x: float
    y: float
    radius: float
    fill: RGBA
    stroke: RGBA
    state: TokenState
    match_key: str
    primary_sequence: int
    latest_sequence: int


@dataclass(slots=True)
class _LiveToken:
    id: str
    match_key: str
    action_type: str
    subtype: str | None
    fill: RGBA
    stroke: RGBA
    state: TokenState
    charging_start: float
    primary_sequence: int
    latest_sequence: int
    delta_count: int = 0
    launched_at: float | None = None
    launch_charge: float = 0.0
    lane: int = 0

    def charge_at(self, now: float) -> float:
        if self.state == "flying":
            return self.launch_charge
        return charge_after(now - self.charging_start, self.delta_count)


def _charging_ranks(items: Iterable[tuple[str, float, int]]) -> dict[str, int]:
    ordered = sorted(items, key=lambda item: (item[1], item[2]))
    return {ident: rank for rank, (ident, _start, _seq) in enumerate(ordered)}


class Launcher:
    """Incremental token evaluator for the live stream.

    Each `tick` first folds the events received since the last tick, stamped at
    `now`, then reports every visible token. Growth and travel come from
    `flare.visual.growth`, the same law `evaluate_at_time` uses.
    """

    def __init__(self) -> None:
        self._tokens: list[_LiveToken] = []
        self._charging: dict[str, _LiveToken] = {}
        self._stacks = LaunchStacks()

    def reset(self) -> None:
        self._tokens.clear()
        self._charging.clear()
        self._stacks = LaunchStacks()

    def __len__(self) -> int:
        return len(self._tokens)

    @property
    def launch_buckets(self) -> int:
        return len(self._stacks)

    def process_events(self, events: Sequence[Event], now: float) -> None:
        now = float(now)
        for event in events:
            subtype = event_subtype(event)
            key = match_key(event)
            fill, stroke = token_colors(event.action_type, subtype)
            sequence = int(event.sequence)

            if is_delta_event(event):
                token = self._charging.get(key)
                if token is None:
                    token = _LiveToken(
                        id=f"live-token-{sequence}",
                        match_key=key,
                        action_type=str(event.action_type),
                        subtype=subtype,
                        fill=fill,
                        stroke=stroke,
                        state="charging",
                        charging_start=now,
                        primary_sequence=sequence,
                        latest_sequence=sequence,
                    )
                    self._charging[key] = token
                    self._tokens.append(token)
                token.delta_count += 1
                token.subtype = subtype
                token.action_type = str(event.action_type)
                token.fill = fill
                token.stroke = stroke
                token.latest_sequence = max(token.latest_sequence, sequence)
                continue

            lane = self._stacks.next_index(now)
            pending = self._charging.pop(key, None)
            if pending is not None:
                pending.launch_charge = pending.charge_at(now)
                pending.state = "flying"
                pending.launched_at = now
                pending.lane = lane
                pending.subtype = subtype
                pending.action_type = str(event.action_type)
                pending.fill = fill
                pending.stroke = stroke
                pending.latest_sequence = max(pending.latest_sequence, sequence)
                continue

            self._tokens.append(
                _LiveToken(
                    id=f"live-token-{sequence}",
                    match_key=key,
                    action_type=str(event.action_type),
                    subtype=subtype,
                    fill=fill,
                    stroke=stroke,
                    state="flying",
                    charging_start=now,
                    primary_sequence=sequence,
                    latest_sequence=sequence,
                    launched_at=now,
                    lane=lane,
                )
            )

    def update(self, now: float) -> list[TokenSnapshot]:
        now = float(now)
        ranks = _charging_ranks(
            (token.id, token.charging_start, token.primary_sequence)
            for token in self._tokens
            if token.state == "charging"
        )
        snapshots: list[TokenSnapshot] = []
        kept: list[_LiveToken] = []
        for token in self._tokens:
            if token.state == "flying":
                launched_at = token.launched_at if token.launched_at is not None else now
                elapsed = now - launched_at
                if is_retired(elapsed):
                    continue
                x = travel_x(elapsed)
                y = lane_y(token.lane)
            else:
                x = 1.0
                y = lane_y(ranks.get(token.id, 0))
            kept.append(token)
            snapshots.append(
                TokenSnapshot(
                    id=token.id,
                    x=x,
                    y=y,
                    radius=radius_for_charge(token.charge_at(now)),
                    fill=token.fill,
                    stroke=token.stroke,
                    state=token.state,
                    match_key=token.match_key,
                    primary_sequence=token.primary_sequence,
                    latest_sequence=token.latest_sequence,
                )
            )
        self._tokens[:] = kept
        self._stacks.prune(now - TRAVEL_DURATION * RETIRE_PROGRESS)
        snapshots.sort(key=lambda snap: snap.primary_sequence)
        return snapshots

    def tick(self, now: float, events: Sequence[Event] = ()) -> list[TokenSnapshot]:
        if events:
            self.process_events(events, now)
        return self.update(now)


def evaluate_at_time(tokens: Sequence[Token], timestamp: float) -> list[TokenSnapshot]:
    """Closed-form token state at `timestamp` (seconds since the buffer start)."""
    t = float(timestamp)

    def _charging(token: Token) -> bool:
        return token.launch_time is None or t + EPSILON < token.launch_time

    ranks = _charging_ranks(
        (token.id, token.charging_start, token.primary_sequence)
        for token in tokens
        if t + EPSILON >= token.charging_start and _charging(token)
    )

    snapshots: list[TokenSnapshot] = []
    for token in tokens:
        if t + EPSILON < token.charging_start:
            continue

        launch_time = token.launch_time
        active_end = t if launch_time is None else min(t, launch_time)
        deltas = sum(1 for when in token.delta_times if when <= active_end + EPSILON)
        radius = radius_for_charge(charge_after(active_end - token.charging_start, deltas))

        if launch_time is not None and not _charging(token):
            elapsed = t - launch_time
            if is_retired(elapsed):
                continue
            snapshots.append(
                TokenSnapshot(
                    id=token.id,
                    x=travel_x(elapsed),
                    y=lane_y(token.stack_index),
                    radius=radius,
                    fill=token.fill,
                    stroke=token.stroke,
                    state="flying",
                    match_key=token.match_key,
                    primary_sequence=token.primary_sequence,
                    latest_sequence=token.latest_sequence,
                )
            )
            continue

        snapshots.append(
            TokenSnapshot(
                id=token.id,
                x=1.0,
                y=lane_y(ranks.get(token.id, 0)),
                radius=radius,
                fill=token.fill,
                stroke=token.stroke,
                state="charging",
                match_key=token.match_key,
                primary_sequence=token.primary_sequence,
                latest_sequence=token.latest_sequence,
            )
        )

    snapshots.sort(key=lambda snap: snap.primary_sequence)
    return snapshots


__all__ = ["Launcher", "TokenSnapshot", "TokenState", "evaluate_at_time"]
