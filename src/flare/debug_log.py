from __future__ import annotations

import datetime as dt
import os
from collections.abc import Sequence
from pathlib import Path
from threading import Lock

_TRACE_LOCK = Lock()
_TRACE_PATH: Path | None = None


def _format_sequences(values: Sequence[object]) -> str:
    if not values:
        return "[]"
    if len(values) == 1:
        return str(values[0])
    return f"{values[0]}..{values[-1]}({len(values)})"


def _format_value(value: object) -> str:
    """Render one field: replay times in seconds, sequence runs as `first..last(n)`."""
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return f"{value:.3f}"
    if isinstance(value, (tuple, list)):
        return _format_sequences(value)
    text = str(value).replace("\n", "\\n")
    if " " in text or '"' in text:
        return '"' + text.replace('"', '\\"') + '"'
    return text


def _format_fields(fields: dict[str, object]) -> str:
    return " ".join(f"{key}={_format_value(fields[key])}" for key in sorted(fields))


def debug_log_path() -> Path | None:
    with _TRACE_LOCK:
        return _TRACE_PATH


def init_debug_log(*, base_dir: Path, capture: Path | None, max_events: int, event_count: int = 0) -> Path:
    """Start a trace file under `base_dir/logs`; `debug_log` is a no-op until then.

    The file name says whether the session replays a capture or follows the live
    relay, so traces of both kinds can sit in one directory.
    """

    kind = "live" if capture is None else "capture"
    timestamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S.%fZ")
    path = Path(base_dir) / "logs" / f"flare-{kind}-pid{os.getpid()}-{timestamp}.log"
    path.parent.mkdir(parents=True, exist_ok=True)

    with _TRACE_LOCK:
        global _TRACE_PATH
        _TRACE_PATH = path

    debug_log(
        "init",
        kind=kind,
        source=Path(capture).name if capture is not None else "relay",
        events=int(event_count),
        max_events=int(max_events),
        pid=int(os.getpid()),
    )
    return path


def debug_log(event: str, **fields: object) -> None:
    timestamp = dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds")
    payload = _format_fields(fields)
    line = f"{timestamp} event={str(event).strip()}"
    if payload:
        line += f" {payload}"
    line += "\n"

    with _TRACE_LOCK:
        path = _TRACE_PATH
        if path is None:
            return
        with path.open("a", encoding="utf-8") as handle:
            handle.write(line)


def close_debug_log() -> None:
    with _TRACE_LOCK:
        global _TRACE_PATH
        _TRACE_PATH = None


__all__ = [
    "close_debug_log",
    "debug_log",
    "debug_log_path",
    "init_debug_log",
]
