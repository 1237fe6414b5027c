from __future__ import annotations

from dataclasses import dataclass
import datetime as dt
from typing import Iterator, Mapping

from touhou.th07.types import ShotType, Stage
from touhou.types import Difficulty

from .debug_log import debug_log
from .snapshot import CardSnapshot, Snapshot


@dataclass(frozen=True, slots=True)
class CardAttemptInfo:
    delta_attempts: int
    delta_captures: int

    @property
    def is_capture(self) -> bool:
        return self.delta_captures > 0


def card_delta(old: CardSnapshot | None, new: CardSnapshot) -> CardAttemptInfo:
    """Counter deltas between two readings of one card.

    Both deltas saturate at zero and captures never exceed attempts, since a
    live reading can catch one counter updated before the other.
    """
    old_attempts = 0 if old is None else old.attempts
    old_captures = 0 if old is None else old.captures
    delta_attempts = max(new.attempts - old_attempts, 0)
    raw_captures = max(new.captures - old_captures, 0)
    delta_captures = min(raw_captures, delta_attempts)
    if raw_captures > delta_attempts:
        debug_log(
            "capture_clamp",
            card_id=new.card_id,
            shot_type=new.shot_type,
            delta_attempts=delta_attempts,
            delta_captures=raw_captures,
        )
    return CardAttemptInfo(delta_attempts=delta_attempts, delta_captures=delta_captures)


@dataclass(frozen=True, slots=True)
class AttemptEvent:
    timestamp: dt.datetime
    shot_type: ShotType
    stage: Stage
    difficulty: Difficulty
    practice_number: int | None
    attempted_cards: Mapping[int, CardAttemptInfo]

    def iter_attempts(self) -> Iterator[tuple[int, CardAttemptInfo]]:
        return iter(self.attempted_cards.items())

    @property
    def is_capture(self) -> bool:
        return any(info.is_capture for info in self.attempted_cards.values())


@dataclass(frozen=True, slots=True)
class Update:
    snapshot: Snapshot
    events: tuple[AttemptEvent, ...]

    @property
    def timestamp(self) -> dt.datetime:
        return self.snapshot.timestamp

    def attempted_count(self) -> int:
        return sum(len(event.attempted_cards) for event in self.events)


_EventKey = tuple[ShotType, Stage, Difficulty]


def diff_snapshots(previous: Snapshot, current: Snapshot) -> tuple[AttemptEvent, ...]:
    """Group every card whose attempt counter rose into per-run events, in snapshot order."""
    grouped: dict[_EventKey, dict[int, CardAttemptInfo]] = {}
    for card in current.iter_cards():
        old = previous.get_card(card.shot_type, card.card_id)
        old_attempts = 0 if old is None else old.attempts
        if card.attempts <= old_attempts:
            continue
        key = (card.shot_type, card.stage, card.difficulty)
        grouped.setdefault(key, {})[card.card_id] = card_delta(old, card)

    events: list[AttemptEvent] = []
    for (shot_type, stage, difficulty), cards in grouped.items():
        events.append(
            AttemptEvent(
                timestamp=current.timestamp,
                shot_type=shot_type,
                stage=stage,
                difficulty=difficulty,
                practice_number=_practice_number(previous, current, shot_type, difficulty, stage),
                attempted_cards=cards,
            )
        )
    return tuple(events)


def _practice_number(
    previous: Snapshot,
    current: Snapshot,
    shot_type: ShotType,
    difficulty: Difficulty,
    stage: Stage,
) -> int | None:
    new_attempts = current.practice_attempts(shot_type, difficulty, stage)
    if new_attempts > previous.practice_attempts(shot_type, difficulty, stage):
        return new_attempts
    return None


class UpdateTracker:
    """Holds the last reported snapshot and turns each new reading into an `Update`.

    The baseline only moves when an update is returned; idle polls leave it
    alone so that small changes keep accumulating against it.
    """

    def __init__(self, previous: Snapshot) -> None:
        self._previous = previous

    @property
    def current(self) -> Snapshot:
        return self._previous

    def update(self, snapshot: Snapshot) -> Update | None:
        events = diff_snapshots(self._previous, snapshot)
        if not events:
            return None
        self._previous = snapshot
        update = Update(snapshot=snapshot, events=events)
        debug_log(
            "update",
            timestamp=snapshot.timestamp.isoformat(),
            events=len(events),
            cards=update.attempted_count(),
            context=snapshot.context,
        )
        return update


__all__ = [
    "AttemptEvent",
    "CardAttemptInfo",
    "Update",
    "UpdateTracker",
    "card_delta",
    "diff_snapshots",
]
