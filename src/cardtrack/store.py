from __future__ import annotations

import datetime as dt
from pathlib import Path
import sqlite3
from typing import Iterable

from touhou.th07.types import ShotType

from .debug_log import debug_log
from .snapshot import CardSnapshot, Snapshot

MEMORY_DATABASE = ":memory:"

_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.timezone.utc)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS card_snapshots (
    card_id INTEGER NOT NULL,
    shot_type INTEGER NOT NULL,
    timestamp_us INTEGER NOT NULL,
    attempts INTEGER NOT NULL,
    captures INTEGER NOT NULL,
    PRIMARY KEY (card_id, shot_type, timestamp_us)
)
"""

_UPSERT = """
INSERT INTO card_snapshots (card_id, shot_type, timestamp_us, attempts, captures)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT (card_id, shot_type, timestamp_us)
DO UPDATE SET attempts = excluded.attempts, captures = excluded.captures
"""

_FIRST_AFTER = """
SELECT card_id, shot_type, timestamp_us, attempts, captures
FROM card_snapshots
WHERE card_id = ? AND shot_type = ? AND timestamp_us >= ?
ORDER BY timestamp_us ASC
LIMIT 1
"""


def to_micros(timestamp: dt.datetime) -> int:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=dt.timezone.utc)
    delta = timestamp - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


def from_micros(value: int) -> dt.datetime:
    return _EPOCH + dt.timedelta(microseconds=int(value))


def parse_database_url(url: str) -> Path | str:
    """Accept `sqlite:<path>`, `sqlite://<path>` or a bare path."""
    text = str(url).strip()
    for prefix in ("sqlite://", "sqlite:"):
        if text.startswith(prefix):
            text = text[len(prefix) :]
            break
    if not text:
        raise ValueError(f"database url has no path: {url!r}")
    if text == MEMORY_DATABASE:
        return MEMORY_DATABASE
    return Path(text)


class SnapshotStore:
    """Per-card snapshot history keyed by `(card_id, shot_type, timestamp)`."""

    def __init__(self, path: Path | str = MEMORY_DATABASE) -> None:
        self.path = path
        if path != MEMORY_DATABASE:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        with self.conn:
            self.conn.execute(_SCHEMA)

    def __enter__(self) -> SnapshotStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.conn.close()

    def insert_cards(self, cards: Iterable[CardSnapshot]) -> int:
        rows = [
            (int(card.card_id), int(card.shot_type), to_micros(card.timestamp), int(card.attempts), int(card.captures))
            for card in cards
        ]
        with self.conn:
            self.conn.executemany(_UPSERT, rows)
        return len(rows)

    def insert(self, snapshot: Snapshot) -> int:
        count = self.insert_cards(snapshot.iter_cards())
        debug_log("snapshot_insert", timestamp=snapshot.timestamp.isoformat(), cards=count)
        return count

    def first_snapshot_after(
        self,
        card_id: int,
        shot_type: ShotType,
        cutoff: dt.datetime,
    ) -> CardSnapshot | None:
        """Earliest stored reading of the card at or after `cutoff`."""
        row = self.conn.execute(_FIRST_AFTER, (int(card_id), int(shot_type), to_micros(cutoff))).fetchone()
        if row is None:
            return None
        return _card_from_row(row)

    def history(self, card_id: int, shot_type: ShotType) -> list[CardSnapshot]:
        rows = self.conn.execute(
            "SELECT card_id, shot_type, timestamp_us, attempts, captures FROM card_snapshots "
            "WHERE card_id = ? AND shot_type = ? ORDER BY timestamp_us ASC",
            (int(card_id), int(shot_type)),
        ).fetchall()
        return [_card_from_row(row) for row in rows]

    def count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM card_snapshots").fetchone()
        return int(row[0])


def _card_from_row(row: sqlite3.Row) -> CardSnapshot:
    return CardSnapshot(
        card_id=int(row["card_id"]),
        shot_type=ShotType(int(row["shot_type"])),
        timestamp=from_micros(row["timestamp_us"]),
        attempts=int(row["attempts"]),
        captures=int(row["captures"]),
    )


__all__ = [
    "MEMORY_DATABASE",
    "SnapshotStore",
    "from_micros",
    "parse_database_url",
    "to_micros",
]
