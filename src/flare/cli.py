from __future__ import annotations

from pathlib import Path

import msgspec
import typer

from ember.config import ConfigError, default_runtime_dir, ensure_flare_cfg
from .aggregator import DisplayEntry, aggregate_display_entries
from .capture import CaptureFormatError, load_events_file
from .events import Event
from .replay.types import ReplayFrame
from .store import VisualizerStore
from .visual.launcher import TokenSnapshot, evaluate_at_time

app = typer.Typer(add_completion=False)

_TEXT_PREVIEW = 60


def _load_capture(path: Path) -> list[Event]:
    if not path.is_file():
        typer.echo(f"capture not found: {path}", err=True)
        raise typer.Exit(code=1)
    try:
        return load_events_file(path)
    except CaptureFormatError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc


def _replay_store(path: Path) -> VisualizerStore:
    store = VisualizerStore(clock=lambda: 0.0)
    store.replace_events(_load_capture(path))
    if not store.enter_replay():
        typer.echo(f"no events in {path}", err=True)
        raise typer.Exit(code=1)
    return store


def _preview(text: str) -> str:
    flat = text.replace("\n", "\\n")
    if len(flat) > _TEXT_PREVIEW:
        return flat[: _TEXT_PREVIEW - 3] + "..."
    return flat


def _format_entry(idx: int, entry: DisplayEntry, *, base_ms: int) -> str:
    seqs = entry.sequences
    seq_text = f"{seqs[0]}" if len(seqs) == 1 else f"{seqs[0]}..{seqs[-1]} ({len(seqs)})"
    rel = (entry.timestamp_ms - base_ms) / 1000.0
    line = f"{idx:04d}  t={rel:8.3f}  seq={seq_text:16s}  {entry.event.action_type}"
    if entry.subtype:
        line += f"/{entry.subtype}"
    if entry.text is not None:
        line += f"  {_preview(entry.text)!r}"
    return line


def _format_snapshot(snap: TokenSnapshot) -> str:
    return (
        f"{snap.id:28s}  {snap.state:8s}  x={snap.x:6.3f}  y={snap.y:6.3f}  r={snap.radius:6.4f}  "
        f"fill={snap.fill.to_hex()}  key={snap.match_key}  seq={snap.primary_sequence}..{snap.latest_sequence}"
    )


def _format_frame(frame: ReplayFrame) -> str:
    seqs = ", ".join(str(seq) for seq in frame.sequences)
    return f"t={frame.timestamp:.3f} reset={str(frame.reset).lower()} events=[{seqs}]"


@app.command("timeline")
def cmd_timeline(
    capture: Path = typer.Argument(..., help="event capture (.jsonl or .jsonl.gz)"),
    limit: int | None = typer.Option(None, min=1, help="print at most this many rows"),
) -> None:
    """Print the aggregated timeline rows of a capture."""
    events = _load_capture(capture)
    entries = aggregate_display_entries(events)
    base_ms = int(events[0].timestamp_ms) if events else 0
    typer.echo(f"{len(events)} events -> {len(entries)} rows")
    shown = entries if limit is None else entries[:limit]
    for idx, entry in enumerate(shown):
        typer.echo(_format_entry(idx, entry, base_ms=base_ms))


@app.command("tokens")
def cmd_tokens(
    capture: Path = typer.Argument(..., help="event capture (.jsonl or .jsonl.gz)"),
    at: float = typer.Option(..., "--at", help="replay time in seconds"),
    as_json: bool = typer.Option(False, "--json", help="emit snapshots as JSON"),
) -> None:
    """Print visual token snapshots at a replay time."""
    store = _replay_store(capture)
    frame = store.seek_to_time(at)
    snapshots = evaluate_at_time(store.tokens, frame.timestamp)
    if as_json:
        rows = [
            {
                "id": snap.id,
                "state": snap.state,
                "x": snap.x,
                "y": snap.y,
                "radius": snap.radius,
                "fill": snap.fill.to_hex(),
                "stroke": snap.stroke.to_hex(),
                "match_key": snap.match_key,
                "primary_sequence": snap.primary_sequence,
                "latest_sequence": snap.latest_sequence,
            }
            for snap in snapshots
        ]
        typer.echo(msgspec.json.encode(rows).decode("utf-8"))
        return
    _current, total = store.progress()
    typer.echo(f"t={frame.timestamp:.3f}/{total:.3f}  tokens={len(store.tokens)}  visible={len(snapshots)}")
    for snap in snapshots:
        typer.echo(_format_snapshot(snap))


@app.command("seek")
def cmd_seek(
    capture: Path = typer.Argument(..., help="event capture (.jsonl or .jsonl.gz)"),
    to: float = typer.Option(..., "--to", help="target replay time in seconds"),
    start: float | None = typer.Option(None, "--from", help="seek here first"),
) -> None:
    """Show which buffered events a seek crosses and whether it resets."""
    store = _replay_store(capture)
    if start is not None:
        typer.echo(_format_frame(store.seek_to_time(start)))
    typer.echo(_format_frame(store.seek_to_time(to)))
    replay = store.replay
    if replay is not None:
        typer.echo(f"cursor={replay.cursor} row={replay.display_cursor}")


@app.command("view")
def cmd_view(
    capture: Path | None = typer.Argument(None, help="event capture to replay (omit for an empty live view)"),
    width: int | None = typer.Option(None, help="window width (default: use flare.json)"),
    height: int | None = typer.Option(None, help="window height (default: use flare.json)"),
    fps: int | None = typer.Option(None, help="target fps (default: use flare.json)"),
    base_dir: Path = typer.Option(
        default_runtime_dir(),
        "--base-dir",
        "--runtime-dir",
        help="base path for runtime files (default: ~/.flare; override with FLARE_RUNTIME_DIR)",
    ),
    trace: bool = typer.Option(False, "--trace", help="write a debug trace log under base-dir/logs"),
) -> None:
    """Open the timeline viewer window."""
    from .debug_log import close_debug_log, init_debug_log
    from .raylib_app import run_view
    from .views.timeline import TimelineView

    try:
        config = ensure_flare_cfg(base_dir)
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    events = _load_capture(capture) if capture is not None else []
    if trace:
        init_debug_log(
            base_dir=base_dir,
            capture=capture,
            max_events=int(config.max_events),
            event_count=len(events),
        )
    try:
        view = TimelineView(config=config, events=events)
        run_view(
            view,
            width=int(width or config.window_width),
            height=int(height or config.window_height),
            title="flare",
            fps=int(fps or config.fps),
        )
    finally:
        if trace:
            close_debug_log()


@app.command("config")
def cmd_config(
    base_dir: Path = typer.Option(
        default_runtime_dir(),
        "--base-dir",
        "--runtime-dir",
        help="base path for runtime files (default: ~/.flare; override with FLARE_RUNTIME_DIR)",
    ),
) -> None:
    """Create or load flare.json and print it."""
    try:
        config = ensure_flare_cfg(base_dir)
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(msgspec.json.format(msgspec.json.encode(config), indent=2).decode("utf-8"))


def main(argv: list[str] | None = None) -> None:
    app(prog_name="flare", args=argv)


if __name__ == "__main__":
    main()
