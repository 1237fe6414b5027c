from __future__ import annotations

import datetime as dt
from pathlib import Path

from cardtrack import __version__
from cardtrack.debug_log import close_debug_log, debug_log, debug_log_path, init_debug_log


def test_debug_log_writes_events_to_file(tmp_path: Path) -> None:
    log_path = init_debug_log(
        base_dir=tmp_path,
        score_path=tmp_path / "score.dat",
        database_path=tmp_path / "touhou.db",
        poll_interval_s=1.0,
    )
    debug_log("snapshot_read", cards=141, checksum_valid=True, note="line\nbreak")

    assert debug_log_path() == log_path
    assert log_path.parent == tmp_path / "logs"
    assert log_path.name.startswith("cardtrack-pid")
    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert "event=init" in lines[0]
    assert "poll_interval_s=1" in lines[0]
    assert lines[1].endswith("event=snapshot_read cards=141 checksum_valid=True note=line\\nbreak")

    close_debug_log()
    assert debug_log_path() is None


def test_init_event_describes_the_watch_session(tmp_path: Path) -> None:
    score_path = tmp_path / "score.dat"
    score_path.write_bytes(b"\x00" * 32)

    log_path = init_debug_log(
        base_dir=tmp_path,
        score_path=score_path,
        database_path=tmp_path / "touhou.db",
        poll_interval_s=0.5,
        recent_window=dt.timedelta(hours=3),
    )

    (init,) = log_path.read_text(encoding="utf-8").splitlines()
    assert f"version={__version__}" in init
    assert "format=th07" in init
    assert "score_state=present" in init
    assert "score_size=32" in init
    assert "score_mtime=" in init
    assert "recent_window=10800s" in init
    assert f"database={(tmp_path / 'touhou.db').as_posix()}" in init


def test_init_event_notes_missing_score_file(tmp_path: Path) -> None:
    log_path = init_debug_log(
        base_dir=tmp_path,
        score_path=tmp_path / "absent.dat",
        database_path=tmp_path / "touhou.db",
        poll_interval_s=1.0,
    )

    init = log_path.read_text(encoding="utf-8")
    assert "score_state=missing" in init
    assert "score_size" not in init
    assert "recent_window=-" in init


def test_debug_log_is_noop_when_closed(tmp_path: Path) -> None:
    close_debug_log()
    debug_log("update", events=1)

    assert debug_log_path() is None
    assert not (tmp_path / "logs").exists()
