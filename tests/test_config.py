from __future__ import annotations

import json
from pathlib import Path

import pytest

from ember.config import (
    DEFAULT_MAX_EVENTS,
    FLARE_CFG_NAME,
    ConfigError,
    FlareConfig,
    default_runtime_dir,
    ensure_flare_cfg,
    load_flare_cfg,
)


def test_ensure_flare_cfg_writes_defaults(tmp_path: Path) -> None:
    config = ensure_flare_cfg(tmp_path)
    assert config == FlareConfig()
    stored = json.loads((tmp_path / FLARE_CFG_NAME).read_text(encoding="utf-8"))
    assert stored["max_events"] == DEFAULT_MAX_EVENTS
    assert stored["timeline_rows"] == 24


def test_ensure_flare_cfg_keeps_valid_values(tmp_path: Path) -> None:
    FlareConfig(max_events=500, default_speed=2.0, fps=30).save(tmp_path / FLARE_CFG_NAME)
    config = ensure_flare_cfg(tmp_path)
    assert config.max_events == 500
    assert config.default_speed == 2.0
    assert config.fps == 30


def test_ensure_flare_cfg_patches_out_of_range_values(tmp_path: Path) -> None:
    path = tmp_path / FLARE_CFG_NAME
    path.write_text(
        json.dumps({"max_events": 0, "min_speed": 4.0, "max_speed": 1.0, "default_speed": 99.0, "fps": 0}),
        encoding="utf-8",
    )
    config = ensure_flare_cfg(tmp_path)
    assert config.max_events == DEFAULT_MAX_EVENTS
    assert (config.min_speed, config.max_speed) == (0.25, 16.0)
    assert config.default_speed == 1.0
    assert config.fps == 60
    assert load_flare_cfg(path) == config


def test_partial_config_fills_defaults(tmp_path: Path) -> None:
    path = tmp_path / FLARE_CFG_NAME
    path.write_text('{"window_width": 800}', encoding="utf-8")
    config = load_flare_cfg(path)
    assert config.window_width == 800
    assert config.window_height == 720


@pytest.mark.parametrize("payload", ["{broken", '{"fps": "fast"}'])
def test_load_flare_cfg_rejects_bad_files(tmp_path: Path, payload: str) -> None:
    path = tmp_path / FLARE_CFG_NAME
    path.write_text(payload, encoding="utf-8")
    with pytest.raises(ConfigError, match=FLARE_CFG_NAME):
        load_flare_cfg(path)


def test_default_runtime_dir_honors_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FLARE_RUNTIME_DIR", str(tmp_path / "rt"))
    assert default_runtime_dir() == tmp_path / "rt"
    monkeypatch.setenv("FLARE_RUNTIME_DIR", "  ")
    assert default_runtime_dir() == Path.home() / ".flare"
