from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from typer.testing import CliRunner

from ember.config import FLARE_CFG_NAME
from flare.capture import dump_events_file
from flare.cli import app
from flare.events import Event


def _write_capture(path: Path) -> Path:
    events = [
        Event(
            sequence=1,
            timestamp_ms=1_000,
            action_type="protocol_event",
            action={"event": {"id": "m1", "msg": {"type": "agent_message_delta", "delta": "Hel"}}},
        ),
        Event(
            sequence=2,
            timestamp_ms=1_500,
            action_type="protocol_event",
            action={"event": {"id": "m1", "msg": {"type": "agent_message_delta", "delta": "lo"}}},
        ),
        Event(
            sequence=3,
            timestamp_ms=2_000,
            action_type="protocol_event",
            action={"event": {"id": "m1", "msg": {"type": "agent_message"}}},
        ),
        Event(sequence=4, timestamp_ms=3_000, action_type="tool_call"),
    ]
    dump_events_file(path, events)
    return path


def test_timeline_command_prints_aggregated_rows(tmp_path: Path) -> None:
    capture = _write_capture(tmp_path / "run.jsonl.gz")
    result = CliRunner().invoke(app, ["timeline", str(capture)])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "4 events -> 3 rows"
    assert "agent_message_delta" in lines[1]
    assert "'Hello'" in lines[1]
    assert "seq=1..2 (2)" in lines[1]
    assert lines[3].endswith("tool_call")


def test_timeline_command_honors_limit(tmp_path: Path) -> None:
    capture = _write_capture(tmp_path / "run.jsonl")
    result = CliRunner().invoke(app, ["timeline", str(capture), "--limit", "1"])
    assert result.exit_code == 0, result.output
    assert len(result.output.splitlines()) == 2


def test_tokens_command_json(tmp_path: Path) -> None:
    capture = _write_capture(tmp_path / "run.jsonl")
    result = CliRunner().invoke(app, ["tokens", str(capture), "--at", "1.2", "--json"])
    assert result.exit_code == 0, result.output
    rows = json.loads(result.output)
    assert [(row["state"], row["primary_sequence"]) for row in rows] == [("flying", 1)]
    assert abs(rows[0]["x"] - 0.8) < 1e-9
    assert rows[0]["fill"].startswith("#")


def test_seek_command_reports_reset(tmp_path: Path) -> None:
    capture = _write_capture(tmp_path / "run.jsonl")
    result = CliRunner().invoke(app, ["seek", str(capture), "--from", "2.0", "--to", "0.5"])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "t=2.000 reset=false events=[1, 2, 3, 4]"
    assert lines[1] == "t=0.500 reset=true events=[1, 2]"
    assert lines[2] == "cursor=1 row=0"


def test_missing_capture_exits_with_error(tmp_path: Path) -> None:
    result = CliRunner().invoke(app, ["timeline", str(tmp_path / "nope.jsonl")])
    assert result.exit_code == 1
    assert "capture not found" in result.output


def test_empty_capture_cannot_replay(tmp_path: Path) -> None:
    capture = tmp_path / "empty.jsonl"
    capture.write_bytes(b"")
    result = CliRunner().invoke(app, ["seek", str(capture), "--to", "1"])
    assert result.exit_code == 1
    assert "no events" in result.output


def test_config_command_creates_file(tmp_path: Path) -> None:
    result = CliRunner().invoke(app, ["config", "--base-dir", str(tmp_path)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / FLARE_CFG_NAME).is_file()
    assert json.loads(result.output)["max_events"] == 50_000


def test_config_command_reports_bad_file(tmp_path: Path) -> None:
    (tmp_path / FLARE_CFG_NAME).write_text("{broken", encoding="utf-8")
    result = CliRunner().invoke(app, ["config", "--base-dir", str(tmp_path)])
    assert result.exit_code == 1


def test_view_command_builds_replay_view(monkeypatch, tmp_path: Path) -> None:
    captured: dict[str, Any] = {}

    def _fake_run_view(view, **kwargs):  # noqa: ANN001, ANN003
        captured["view"] = view
        captured.update(kwargs)

    monkeypatch.setattr("flare.raylib_app.run_view", _fake_run_view)
    capture = _write_capture(tmp_path / "run.jsonl")
    result = CliRunner().invoke(
        app,
        ["view", str(capture), "--base-dir", str(tmp_path), "--width", "640", "--trace"],
    )

    assert result.exit_code == 0, result.output
    view = captured["view"]
    assert view.store.mode == "replay"
    assert len(view.store.events) == 4
    assert captured["width"] == 640
    assert captured["height"] == 720
    assert captured["fps"] == 60
    logs = list((tmp_path / "logs").glob("flare-capture-pid*.log"))
    assert len(logs) == 1
    assert "event=replay_enter" in logs[0].read_text(encoding="utf-8")
