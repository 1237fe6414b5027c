from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import msgspec
import typer

from touhou.th07 import score as th07_score
from touhou.th07.errors import ScoreFormatError
from touhou.types import InvalidDiscriminantError, ShortDate, SlotTable

from .config import ConfigError, TrackerConfig, default_log_dir, load_config
from .debug_log import close_debug_log, init_debug_log
from .monitor import install_stop_signals, run_monitor
from .report import snapshot_lines
from .snapshot import ScoreData, Snapshot
from .source import ScoreFileSource
from .store import MEMORY_DATABASE, SnapshotStore


app = typer.Typer(add_completion=False)


def _load_score(path: Path) -> th07_score.ScoreFile:
    if not path.is_file():
        typer.echo(f"score file not found: {path}", err=True)
        raise typer.Exit(code=1)
    try:
        return th07_score.load(path)
    except (ScoreFormatError, InvalidDiscriminantError) as exc:
        typer.echo(f"failed to decode {path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _enc_hook(obj: object) -> Any:
    if isinstance(obj, SlotTable):
        row: dict[str, Any] = {key.name.lower(): value for key, value in obj.items()}
        if obj.has_total:
            row["total"] = obj.total
        return row
    if isinstance(obj, ShortDate):
        return str(obj)
    raise NotImplementedError(f"unsupported type: {type(obj).__name__}")


def _segment_row(segment: th07_score.Segment) -> dict[str, Any]:
    signature = th07_score.segment_signature(segment).decode("ascii", errors="replace")
    return {
        "signature": signature,
        "kind": type(segment).__name__,
        "data": msgspec.to_builtins(segment, enc_hook=_enc_hook),
    }


def _segment_line(segment: th07_score.Segment) -> str:
    signature = th07_score.segment_signature(segment).decode("ascii", errors="replace")
    if isinstance(segment, th07_score.SpellCardData):
        return (
            f"{signature}  #{segment.card_id:03d} {segment.card_name()}  "
            f"captures={segment.total_captures} attempts={segment.total_attempts}"
        )
    if isinstance(segment, th07_score.HighScore):
        return (
            f"{signature}  {segment.name or '?'} {segment.score} {segment.shot_type} "
            f"{segment.difficulty} {segment.progress} {segment.date}"
        )
    if isinstance(segment, th07_score.PracticeData):
        return (
            f"{signature}  {segment.shot_type} {segment.difficulty} {segment.stage} "
            f"attempts={segment.attempts} high_score={segment.high_score}"
        )
    if isinstance(segment, th07_score.LastName):
        return f"{signature}  {segment.name}"
    if isinstance(segment, th07_score.Version):
        return f"{signature}  {segment.version}"
    if isinstance(segment, th07_score.PlayData):
        return f"{signature}  play_time={segment.play_time} running_time={segment.running_time}"
    if isinstance(segment, th07_score.ClearData):
        return f"{signature}  {segment.shot_type}"
    if isinstance(segment, th07_score.UnknownSegment):
        return f"{signature}  size1={segment.size1} size2={segment.size2} payload={len(segment.payload)} bytes"
    return signature


@app.command("decode")
def cmd_decode(
    score_path: Path = typer.Argument(..., help="path to score.dat"),
    as_json: bool = typer.Option(False, "--json", help="emit JSON instead of text"),
) -> None:
    """Decode a score file and print every segment."""
    score = _load_score(score_path)
    if as_json:
        payload = {
            "header": msgspec.to_builtins(score.header),
            "checksum": score.checksum,
            "expected_checksum": score.expected_checksum,
            "valid": score.is_valid,
            "segments": [_segment_row(segment) for segment in score.segments],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return
    header = score.header
    typer.echo(
        f"version=0x{header.version:04x} header_size={header.header_size} "
        f"body={header.decompressed_body_size} encoded={header.encoded_body_size}"
    )
    for segment in score.segments:
        typer.echo(_segment_line(segment))
    status = "ok" if score.is_valid else "MISMATCH"
    typer.echo(f"checksum 0x{score.checksum:04x} / 0x{score.expected_checksum:04x} ({status})")


@app.command("cards")
def cmd_cards(
    score_path: Path = typer.Argument(..., help="path to score.dat"),
    db: Path | None = typer.Option(None, "--db", help="snapshot database for recent stats"),
    show_all: bool = typer.Option(False, "--all", help="include cards that were never attempted"),
) -> None:
    """Print per-card capture stats from a score file."""
    score = _load_score(score_path)
    snapshot = Snapshot.from_score_data(ScoreData.from_score_file(score))
    if not show_all:
        snapshot = Snapshot(
            timestamp=snapshot.timestamp,
            cards=tuple(card for card in snapshot.iter_cards() if card.attempts > 0),
            practices=snapshot.practices,
        )
    with SnapshotStore(MEMORY_DATABASE if db is None else db) as store:
        for line in snapshot_lines(snapshot, store):
            typer.echo(line)


async def _watch(config: TrackerConfig, score_path: Path) -> None:
    stop = asyncio.Event()
    install_stop_signals(stop)
    source = ScoreFileSource(score_path)
    with SnapshotStore(config.database) as store:
        await run_monitor(
            source,
            store,
            stop=stop,
            interval_s=config.poll_interval_s,
            window=config.recent_window,
            echo=typer.echo,
        )


@app.command("watch")
def cmd_watch(
    score_path: Path | None = typer.Argument(None, help="path to score.dat (default: config / CARDTRACK_SCORE_PATH)"),
    db: Path | None = typer.Option(None, "--db", help="snapshot database (default: config / DATABASE_URL)"),
    interval: float | None = typer.Option(None, "--interval", help="poll interval in seconds"),
    config_file: Path | None = typer.Option(None, "--config", help="config TOML (default: per-user config dir)"),
    debug: bool = typer.Option(False, "--debug", help="write a structured trace under the log dir"),
    log_dir: Path | None = typer.Option(None, "--log-dir", help="base dir for debug traces"),
) -> None:
    """Poll a score file and report every attempted card."""
    try:
        config = load_config(
            path=config_file,
            score_path=score_path,
            database_path=db,
            poll_interval_s=interval,
            log_dir=log_dir,
        )
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    resolved = config.score_file
    if resolved is None:
        typer.echo("no score file given (pass PATH or set CARDTRACK_SCORE_PATH)", err=True)
        raise typer.Exit(code=1)
    if not resolved.is_file():
        typer.echo(f"score file not found: {resolved}", err=True)
        raise typer.Exit(code=1)

    if debug or config.log_base_dir is not None:
        trace = init_debug_log(
            base_dir=config.log_base_dir or default_log_dir(),
            score_path=resolved,
            database_path=Path(str(config.database)),
            poll_interval_s=config.poll_interval_s,
            recent_window=config.recent_window,
        )
        typer.echo(f"debug trace: {trace}", err=True)
    try:
        asyncio.run(_watch(config, resolved))
    except (ScoreFormatError, InvalidDiscriminantError) as exc:
        typer.echo(f"failed to decode {resolved}: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        close_debug_log()


def main(argv: list[str] | None = None) -> None:
    app(prog_name="cardtrack", args=argv)


if __name__ == "__main__":
    main()
