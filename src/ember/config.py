from __future__ import annotations

import os
from pathlib import Path

import msgspec

FLARE_CFG_NAME = "flare.json"
RUNTIME_DIR_ENV = "FLARE_RUNTIME_DIR"

DEFAULT_MAX_EVENTS = 50_000
MIN_SPEED = 0.25
MAX_SPEED = 16.0
SPEED_OPTIONS: tuple[float, ...] = (0.5, 1.0, 2.0, 4.0)


class ConfigError(ValueError):
    pass


class FlareConfig(msgspec.Struct):
    max_events: int = DEFAULT_MAX_EVENTS
    default_speed: float = 1.0
    min_speed: float = MIN_SPEED
    max_speed: float = MAX_SPEED
    window_width: int = 1280
    window_height: int = 720
    fps: int = 60
    timeline_rows: int = 24

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(msgspec.json.format(msgspec.json.encode(self), indent=2) + b"\n")


def default_runtime_dir() -> Path:
    override = os.environ.get(RUNTIME_DIR_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return Path.home() / ".flare"


def load_flare_cfg(path: Path) -> FlareConfig:
    path = Path(path)
    try:
        return msgspec.json.decode(path.read_bytes(), type=FlareConfig)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        raise ConfigError(f"{path}: {exc}") from exc


def _patched(config: FlareConfig) -> FlareConfig | None:
    """Return a corrected copy when stored values are out of range, else None."""
    changes: dict[str, object] = {}
    if int(config.max_events) < 1:
        changes["max_events"] = DEFAULT_MAX_EVENTS
    min_speed = float(config.min_speed)
    max_speed = float(config.max_speed)
    if min_speed <= 0.0 or max_speed < min_speed:
        min_speed, max_speed = MIN_SPEED, MAX_SPEED
        changes["min_speed"] = min_speed
        changes["max_speed"] = max_speed
    if not (min_speed <= float(config.default_speed) <= max_speed):
        changes["default_speed"] = 1.0
    if int(config.fps) < 1:
        changes["fps"] = 60
    if int(config.timeline_rows) < 1:
        changes["timeline_rows"] = 24
    if not changes:
        return None
    return msgspec.structs.replace(config, **changes)


def ensure_flare_cfg(base_dir: Path) -> FlareConfig:
    """Load `flare.json` under `base_dir`, writing defaults when missing.

    Out-of-range values left by older revisions are patched and saved back.
    """

    path = Path(base_dir) / FLARE_CFG_NAME
    if not path.exists():
        config = FlareConfig()
        config.save(path)
        return config
    config = load_flare_cfg(path)
    patched = _patched(config)
    if patched is not None:
        patched.save(path)
        return patched
    return config
