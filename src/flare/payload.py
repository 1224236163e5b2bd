from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

from .events import Event

PROTOCOL_EVENT = "protocol_event"
NO_ID = "__no_id__"

# Streamed model output; consecutive fragments with the same id merge into one row.
DELTA_SUBTYPES = frozenset({"agent_message_delta", "agent_reasoning_delta"})


@dataclass(frozen=True, slots=True)
class ProtocolEvent:
    """Wrapped protocol event: `{"event": {"id": ..., "msg": {"type": ..., "delta": ...}}}`."""

    subtype: str | None
    event_id: str | None
    delta: str | None


@dataclass(frozen=True, slots=True)
class PlainAction:
    """Any other action shape; only a top-level string `delta` is recognized."""

    event_id: str | None
    delta: str | None


EventPayload: TypeAlias = ProtocolEvent | PlainAction


def _str_or_none(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _dict_or_none(value: object) -> dict | None:
    return value if isinstance(value, dict) else None


def _wrapped_event(action: object) -> dict | None:
    action_obj = _dict_or_none(action)
    if action_obj is None:
        return None
    return _dict_or_none(action_obj.get("event"))


def decode_payload(event: Event) -> EventPayload:
    """Decode the opaque `action` into a tagged variant.

    Unrecognized shapes decode to fields of None rather than failing.
    """

    wrapped = _wrapped_event(event.action)
    event_id = _str_or_none(wrapped.get("id")) if wrapped is not None else None
    if str(event.action_type) == PROTOCOL_EVENT:
        msg = _dict_or_none(wrapped.get("msg")) if wrapped is not None else None
        if msg is None:
            return ProtocolEvent(subtype=None, event_id=event_id, delta=None)
        return ProtocolEvent(
            subtype=_str_or_none(msg.get("type")),
            event_id=event_id,
            delta=_str_or_none(msg.get("delta")),
        )
    action_obj = _dict_or_none(event.action)
    delta = _str_or_none(action_obj.get("delta")) if action_obj is not None else None
    return PlainAction(event_id=event_id, delta=delta)


def event_subtype(event: Event) -> str | None:
    payload = decode_payload(event)
    if isinstance(payload, ProtocolEvent):
        return payload.subtype
    return None


def event_id(event: Event) -> str | None:
    return decode_payload(event).event_id


def is_delta_event(event: Event) -> bool:
    """Loose delta test used for visual tokens: any `_delta` in subtype or action type."""
    subtype = event_subtype(event)
    if subtype and "_delta" in subtype:
        return True
    return "_delta" in str(event.action_type)


@dataclass(frozen=True, slots=True)
class DeltaFragment:
    subtype: str
    key: str
    text: str


def delta_fragment(event: Event) -> DeltaFragment | None:
    """Return the mergeable text fragment carried by `event`, if any.

    Protocol deltas must use a subtype from `DELTA_SUBTYPES`; other actions count
    when their action type ends in `_delta`.
    """

    payload = decode_payload(event)
    if isinstance(payload, ProtocolEvent):
        if payload.subtype is None or payload.subtype not in DELTA_SUBTYPES:
            return None
        subtype = payload.subtype
    else:
        if not str(event.action_type).endswith("_delta"):
            return None
        subtype = str(event.action_type)
    if payload.delta is None:
        return None
    key = f"{payload.event_id or NO_ID}::{subtype}"
    return DeltaFragment(subtype=subtype, key=key, text=payload.delta)


def match_key(event: Event) -> str:
    """Correlation key for visual tokens.

    Without an explicit id this falls back to `action_type::subtype`, so unrelated
    concurrent streams of the same type share one token.
    """

    ident = event_id(event)
    if ident:
        return ident
    subtype = event_subtype(event)
    return f"{event.action_type}::{subtype or ''}"


__all__ = [
    "DELTA_SUBTYPES",
    "DeltaFragment",
    "EventPayload",
    "NO_ID",
    "PROTOCOL_EVENT",
    "PlainAction",
    "ProtocolEvent",
    "decode_payload",
    "delta_fragment",
    "event_id",
    "event_subtype",
    "is_delta_event",
    "match_key",
]
