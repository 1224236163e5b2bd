from __future__ import annotations

import warnings
from typing import Any, TypeAlias

import msgspec


class MalformedEventWarning(UserWarning):
    """An inbound message could not be decoded and was dropped."""


class Event(msgspec.Struct, frozen=True, rename="camel"):
    """One agent-execution event as delivered by the relay.

    `sequence` is the only trusted order; arrival order is not.
    """

    sequence: int
    timestamp_ms: int
    action_type: str
    action: Any = None
    state: Any = None
    conversation_id: str | None = None


class EventMessage(msgspec.Struct, tag_field="type", tag="event"):
    event: Event


class BacklogMessage(msgspec.Struct, tag_field="type", tag="backlog"):
    events: list[Event] = msgspec.field(default_factory=list)


SocketMessage: TypeAlias = EventMessage | BacklogMessage

_MESSAGE_DECODER = msgspec.json.Decoder(SocketMessage)
_EVENT_DECODER = msgspec.json.Decoder(Event)
_ENCODER = msgspec.json.Encoder()


def encode_message(message: SocketMessage) -> bytes:
    return _ENCODER.encode(message)


def encode_event(event: Event) -> bytes:
    return _ENCODER.encode(event)


def _warn_dropped(kind: str, exc: Exception) -> None:
    warnings.warn(
        f"dropping malformed {kind}: {exc}",
        category=MalformedEventWarning,
        stacklevel=3,
    )


def decode_message(blob: bytes | str) -> SocketMessage | None:
    """Decode one relay message, or warn and return None when it is malformed."""
    try:
        return _MESSAGE_DECODER.decode(blob)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        _warn_dropped("message", exc)
        return None


def decode_event(blob: bytes | str) -> Event | None:
    try:
        return _EVENT_DECODER.decode(blob)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        _warn_dropped("event", exc)
        return None


def sort_events(events: list[Event] | tuple[Event, ...]) -> list[Event]:
    return sorted(events, key=lambda event: int(event.sequence))


__all__ = [
    "BacklogMessage",
    "Event",
    "EventMessage",
    "MalformedEventWarning",
    "SocketMessage",
    "decode_event",
    "decode_message",
    "encode_event",
    "encode_message",
    "sort_events",
]
