from __future__ import annotations

import asyncio
import dataclasses
import datetime as dt
from pathlib import Path
from typing import Callable, Protocol

from touhou.th07 import score as th07_score

from .debug_log import debug_log
from .snapshot import ScoreData, Snapshot, practice_context, utc_now


class SnapshotSource(Protocol):
    async def read_snapshot(self) -> Snapshot:
        """Return a full reading, whether or not anything changed."""
        ...

    async def refresh(self) -> Snapshot | None:
        """Return a new reading, or `None` when the underlying data is unchanged."""
        ...


def read_score_data(path: Path) -> ScoreData:
    score = th07_score.load(path)
    if not score.is_valid:
        debug_log(
            "checksum_mismatch",
            path=str(path),
            checksum=f"0x{score.checksum:04x}",
            expected=f"0x{score.expected_checksum:04x}",
        )
    return ScoreData.from_score_file(score)


class ScoreFileSource:
    """Snapshots decoded from a `score.dat` on disk.

    `refresh` stats the file first and only decodes when its size or mtime moved.
    A reading whose practice counter rose carries that run as its `context`.
    """

    def __init__(self, path: Path, *, clock: Callable[[], dt.datetime] = utc_now) -> None:
        self.path = Path(path)
        self._clock = clock
        self._stamp: tuple[int, int] | None = None
        self._last: Snapshot | None = None

    def _file_stamp(self) -> tuple[int, int]:
        stat = self.path.stat()
        return (int(stat.st_size), int(stat.st_mtime_ns))

    def _read(self) -> Snapshot:
        stamp = self._file_stamp()
        data = read_score_data(self.path)
        self._stamp = stamp
        snapshot = Snapshot.from_score_data(data, timestamp=self._clock())
        if self._last is not None:
            context = practice_context(self._last, snapshot)
            if context is not None:
                snapshot = dataclasses.replace(snapshot, context=context)
        self._last = snapshot
        debug_log(
            "snapshot_read",
            path=str(self.path),
            cards=len(data.spell_cards),
            checksum_valid=data.checksum_valid,
            context=snapshot.context,
        )
        return snapshot

    def _refresh(self) -> Snapshot | None:
        if self._stamp is not None and self._file_stamp() == self._stamp:
            return None
        return self._read()

    async def read_snapshot(self) -> Snapshot:
        return await asyncio.to_thread(self._read)

    async def refresh(self) -> Snapshot | None:
        return await asyncio.to_thread(self._refresh)


__all__ = [
    "ScoreFileSource",
    "SnapshotSource",
    "read_score_data",
]
