from __future__ import annotations

import gzip
import warnings
import zlib
from collections.abc import Iterable
from pathlib import Path

import msgspec

from .events import BacklogMessage, Event, EventMessage, MalformedEventWarning, sort_events

_GZIP_MAGIC = b"\x1f\x8b"
_ENCODER = msgspec.json.Encoder()


class CaptureFormatError(ValueError):
    pass


def _is_gzip(data: bytes) -> bool:
    return data.startswith(_GZIP_MAGIC)


def _line_events(obj: object) -> list[Event]:
    if isinstance(obj, dict) and "type" in obj:
        message = msgspec.convert(obj, type=EventMessage | BacklogMessage)
        if isinstance(message, BacklogMessage):
            return list(message.events)
        return [message.event]
    return [msgspec.convert(obj, type=Event)]


def load_events(data: bytes) -> list[Event]:
    """Parse a capture: one JSON object per line, either a bare event or a relay message.

    Malformed lines are dropped with a `MalformedEventWarning`. The result is
    sorted by sequence.
    """

    if _is_gzip(data):
        try:
            data = gzip.decompress(data)
        except (OSError, EOFError, zlib.error) as exc:
            raise CaptureFormatError(f"corrupt gzip capture: {exc}") from exc
    events: list[Event] = []
    for line_no, raw in enumerate(data.splitlines(), start=1):
        raw = raw.strip()
        if not raw:
            continue
        try:
            events.extend(_line_events(msgspec.json.decode(raw)))
        except (msgspec.DecodeError, msgspec.ValidationError) as exc:
            warnings.warn(
                f"capture line {line_no} dropped: {exc}",
                category=MalformedEventWarning,
                stacklevel=2,
            )
    return sort_events(events)


def dump_events(events: Iterable[Event], *, compress: bool = False) -> bytes:
    """Serialize events as JSON lines; gzip is written with mtime=0 for stable hashing."""
    lines = [_ENCODER.encode(event) for event in sort_events(list(events))]
    raw = b"\n".join(lines) + (b"\n" if lines else b"")
    if compress:
        return gzip.compress(raw, compresslevel=9, mtime=0)
    return raw


def load_events_file(path: Path) -> list[Event]:
    path = Path(path)
    return load_events(path.read_bytes())


def dump_events_file(path: Path, events: Iterable[Event]) -> None:
    path = Path(path)
    path.write_bytes(dump_events(events, compress=path.suffix == ".gz"))


__all__ = [
    "CaptureFormatError",
    "dump_events",
    "dump_events_file",
    "load_events",
    "load_events_file",
]
