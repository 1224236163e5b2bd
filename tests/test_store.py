from __future__ import annotations

from pathlib import Path

import pytest

from ember.config import FlareConfig
from flare.aggregator import DisplayEntry, aggregate_display_entries
from flare.debug_log import close_debug_log, init_debug_log
from flare.events import BacklogMessage, Event, EventMessage, MalformedEventWarning, encode_message
from flare.replay import EMPTY_FRAME
from flare.store import VisualizerStore


def _delta(seq: int, *, ident: str = "m1", text: str = "x") -> Event:
    return Event(
        sequence=seq,
        timestamp_ms=1_000 * seq,
        action_type="protocol_event",
        action={"event": {"id": ident, "msg": {"type": "agent_message_delta", "delta": text}}},
    )


def _plain(seq: int) -> Event:
    return Event(sequence=seq, timestamp_ms=1_000 * seq, action_type="tool_call")


def _store(max_events: int = 100) -> VisualizerStore:
    return VisualizerStore(max_events=max_events, clock=lambda: 0.0)


def test_push_aggregates_incrementally() -> None:
    store = _store()
    store.push_event(_delta(1, text="Hel"))
    entry = store.push_event(_delta(2, text="lo"))
    assert entry is not None
    assert entry.text == "Hello"
    assert len(store.display_entries) == 1


def test_truncation_rebuilds_rows_from_the_kept_window() -> None:
    store = _store(max_events=2)
    for seq in range(1, 6):
        store.push_event(_delta(seq))
        assert store.display_entries == aggregate_display_entries(store.events)
    assert [int(e.sequence) for e in store.events] == [4, 5]
    assert store.display_entries[0].sequences == (4, 5)


def test_truncation_does_not_merge_into_dropped_rows() -> None:
    store = _store(max_events=4)
    store.push_event(_delta(1))
    store.push_event(_delta(2))
    store.push_event(_plain(3))
    store.push_event(_plain(4))
    entry = store.push_event(_delta(5))
    assert entry is not None
    assert entry.sequences == (5,)
    assert [entry.sequences for entry in store.display_entries] == [(2,), (3,), (4,), (5,)]


def test_out_of_order_push_rebuilds_in_sequence_order() -> None:
    store = _store()
    store.push_event(_delta(1, text="a"))
    store.push_event(_delta(3, text="c"))
    assert store.push_event(_delta(2, text="b")) is None
    assert [int(e.sequence) for e in store.events] == [1, 2, 3]
    assert [entry.text for entry in store.display_entries] == ["abc"]


def test_duplicate_push_is_dropped() -> None:
    store = _store()
    store.push_event(_plain(1))
    store.push_event(_plain(2))
    calls: list[int] = []
    store.subscribe(lambda _store: calls.append(1))
    assert store.push_event(_plain(1)) is None
    assert len(store.events) == 2
    assert calls == []


def test_replace_events_resets_rows() -> None:
    store = _store()
    store.push_event(_plain(1))
    store.replace_events([_delta(5, text="b"), _delta(4, text="a")])
    assert [int(e.sequence) for e in store.events] == [4, 5]
    assert [entry.text for entry in store.display_entries] == ["ab"]


def test_enter_replay_on_empty_log_stays_live() -> None:
    store = _store()
    assert store.enter_replay() is False
    assert store.mode == "live"
    assert store.status == "idle"
    assert store.seek_to_time(1.0) is EMPTY_FRAME
    assert store.progress() == (0.0, 0.0)
    assert store.consume_pending_frame() is None


def test_replay_snapshot_ignores_live_pushes() -> None:
    store = _store()
    store.push_event(_delta(1, text="a"))
    store.push_event(_delta(2, text="b"))
    assert store.enter_replay() is True
    assert store.mode == "replay"
    assert store.status == "paused"
    replay = store.replay
    assert replay is not None

    store.push_event(_delta(3, text="c"))
    store.push_event(_plain(4))
    assert store.pending_live == 2
    assert len(replay.events) == 2
    assert replay.display_entries[0].text == "ab"
    assert store.display_entries[0].text == "abc"

    store.exit_replay()
    assert store.mode == "live"
    assert store.replay is None
    assert store.pending_live == 0


def test_playback_controls_route_to_session() -> None:
    store = _store()
    store.replace_events([_plain(seq) for seq in range(1, 6)])
    store.enter_replay()
    store.toggle_play()
    assert store.status == "playing"
    store.toggle_play()
    assert store.status == "paused"

    store.set_speed(99.0)
    assert store.replay is not None
    assert store.replay.speed == 16.0

    frame = store.seek_to_time(2.0)
    assert frame.sequences == (1, 2, 3)
    back = store.step(-1)
    assert back.reset is True
    assert store.replay.cursor == 1
    assert store.restart().reset is True


def test_default_speed_comes_from_config() -> None:
    config = FlareConfig(max_events=10, default_speed=2.0)
    store = VisualizerStore.from_config(config, clock=lambda: 0.0)
    store.push_event(_plain(1))
    store.enter_replay()
    assert store.replay is not None
    assert store.replay.speed == 2.0
    assert store.log.max_events == 10


def test_listeners_and_unsubscribe() -> None:
    store = _store()
    changes: list[int] = []
    rows: list[DisplayEntry] = []
    unsubscribe = store.subscribe(lambda s: changes.append(len(s.events)))
    stop_rows = store.on_display_entry(rows.append)

    store.push_event(_plain(1))
    store.set_connection_status("connected")
    assert changes == [1, 1]
    assert len(rows) == 1
    assert store.connection_status == "connected"

    unsubscribe()
    stop_rows()
    unsubscribe()
    store.push_event(_plain(2))
    assert changes == [1, 1]
    assert len(rows) == 1


def test_ingest_applies_messages_and_drops_malformed() -> None:
    store = _store()
    backlog = BacklogMessage(events=[_plain(2), _plain(1)])
    assert store.ingest(encode_message(backlog)) is True
    assert [int(e.sequence) for e in store.events] == [1, 2]

    assert store.ingest(encode_message(EventMessage(event=_plain(3)))) is True
    assert store.log.tail_sequence == 3

    with pytest.warns(MalformedEventWarning):
        assert store.ingest(b'{"type":"event"}') is False
    assert len(store.events) == 3


def test_store_writes_debug_trace(tmp_path: Path) -> None:
    path = init_debug_log(base_dir=tmp_path, capture=Path("capture.jsonl"), max_events=10)
    try:
        store = _store()
        store.replace_events([_plain(1), _plain(2)])
        store.enter_replay()
        store.seek_to_time(1.0)
        store.seek_to_time(0.0)
        store.exit_replay()
    finally:
        close_debug_log()

    text = path.read_text(encoding="utf-8")
    for name in ("event=init", "event=replace_events", "event=replay_enter", "event=replay_reset", "event=replay_exit"):
        assert name in text


def test_out_of_order_push_is_traced_as_not_launched(tmp_path: Path) -> None:
    path = init_debug_log(base_dir=tmp_path, capture=None, max_events=10)
    try:
        store = _store()
        store.push_event(_plain(1))
        store.push_event(_plain(3))
        assert store.push_event(_plain(2)) is None
        assert store.push_event(_plain(2)) is None
        store.enter_replay()
    finally:
        close_debug_log()

    assert [int(e.sequence) for e in store.events] == [1, 2, 3]
    lines = path.read_text(encoding="utf-8").splitlines()
    late = [line for line in lines if "event=out_of_order" in line]
    assert len(late) == 2
    assert late[0].endswith("duplicate=false live_launch=skipped sequence=2 tail=3")
    assert late[1].endswith("duplicate=true live_launch=skipped sequence=2 tail=3")
    enter = next(line for line in lines if "event=replay_enter" in line)
    assert "pending=0 sequences=1..3(3)" in enter
