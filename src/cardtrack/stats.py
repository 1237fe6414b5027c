from __future__ import annotations

from dataclasses import dataclass
import datetime as dt
from typing import Protocol

from touhou.th07.types import ShotType

from .snapshot import CardSnapshot
from .updates import card_delta

RECENT_WINDOW = dt.timedelta(hours=12)


class SnapshotHistory(Protocol):
    def first_snapshot_after(
        self,
        card_id: int,
        shot_type: ShotType,
        cutoff: dt.datetime,
    ) -> CardSnapshot | None: ...


@dataclass(frozen=True, slots=True)
class RecentPerformance:
    attempts: int
    captures: int

    @property
    def rate(self) -> float:
        return self.captures / self.attempts


def recent_performance(
    history: SnapshotHistory,
    card: CardSnapshot,
    *,
    window: dt.timedelta = RECENT_WINDOW,
) -> RecentPerformance | None:
    """Progress on `card` since its earliest stored reading inside `window`, if any attempts were made."""
    baseline = history.first_snapshot_after(card.card_id, card.shot_type, card.timestamp - window)
    if baseline is None:
        return None
    delta = card_delta(baseline, card)
    if delta.delta_attempts <= 0:
        return None
    return RecentPerformance(attempts=delta.delta_attempts, captures=delta.delta_captures)


__all__ = [
    "RECENT_WINDOW",
    "RecentPerformance",
    "SnapshotHistory",
    "recent_performance",
]
