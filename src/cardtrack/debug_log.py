from __future__ import annotations

import datetime as dt
import os
from pathlib import Path
from threading import Lock

from . import __version__


_TRACE_LOCK = Lock()
_TRACE_PATH: Path | None = None

TRACE_FORMAT = "th07"


def _format_value(value: object) -> str:
    if value is None:
        text = "-"
    elif isinstance(value, float):
        text = f"{value:.6g}"
    elif isinstance(value, dt.timedelta):
        text = f"{value.total_seconds():g}s"
    elif isinstance(value, dt.datetime):
        text = value.astimezone(dt.timezone.utc).isoformat(timespec="seconds")
    elif isinstance(value, Path):
        text = value.as_posix()
    else:
        text = str(value)
    return text.replace("\r", "\\r").replace("\n", "\\n").replace(" ", "_")


def _format_fields(fields: dict[str, object]) -> str:
    return " ".join(f"{key}={_format_value(fields[key])}" for key in sorted(fields))


def _score_file_fields(score_path: Path | None) -> dict[str, object]:
    """Size and mtime of the score file as the session starts; `missing` when absent."""
    if score_path is None:
        return {"score_path": None}
    try:
        stat = Path(score_path).stat()
    except OSError:
        return {"score_path": Path(score_path), "score_state": "missing"}
    return {
        "score_path": Path(score_path),
        "score_state": "present",
        "score_size": int(stat.st_size),
        "score_mtime": dt.datetime.fromtimestamp(stat.st_mtime, tz=dt.timezone.utc),
    }


def debug_log_path() -> Path | None:
    with _TRACE_LOCK:
        return _TRACE_PATH


def init_debug_log(
    *,
    base_dir: Path,
    score_path: Path | None,
    database_path: Path,
    poll_interval_s: float,
    recent_window: dt.timedelta | None = None,
) -> Path:
    """Start a fresh trace file under `base_dir/logs/`.

    The first line is an `init` event describing the watch session: tracker version,
    score file state, database, polling cadence and the stats window.
    """
    timestamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%S.%fZ")
    path = Path(base_dir) / "logs" / f"cardtrack-pid{os.getpid()}-{timestamp}.log"
    path.parent.mkdir(parents=True, exist_ok=True)

    with _TRACE_LOCK:
        global _TRACE_PATH
        _TRACE_PATH = path

    debug_log(
        "init",
        version=__version__,
        format=TRACE_FORMAT,
        database=Path(database_path),
        poll_interval_s=float(poll_interval_s),
        recent_window=recent_window,
        pid=int(os.getpid()),
        **_score_file_fields(score_path),
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
    "TRACE_FORMAT",
    "close_debug_log",
    "debug_log",
    "debug_log_path",
    "init_debug_log",
]
