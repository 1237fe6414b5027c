from __future__ import annotations

from dataclasses import dataclass, field
import datetime as dt
from typing import Iterable, Iterator, Mapping

from touhou.th07.score import (
    ClearData,
    FileHeader,
    HighScore,
    LastName,
    PlayData,
    PracticeData,
    ScoreFile,
    Segment,
    SpellCardData,
    UnknownSegment,
    Version,
)
from touhou.th07.spellcards import SpellCardInfo, card_info
from touhou.th07.types import ShotType, Stage
from touhou.types import Difficulty


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


@dataclass(frozen=True, slots=True)
class ScoreData:
    """Every record of one decode pass, grouped by kind in file order."""

    header: FileHeader | None = None
    high_scores: tuple[HighScore, ...] = ()
    clears: tuple[ClearData, ...] = ()
    spell_cards: tuple[SpellCardData, ...] = ()
    practices: tuple[PracticeData, ...] = ()
    play_data: PlayData | None = None
    last_name: LastName | None = None
    version: Version | None = None
    unknown: tuple[UnknownSegment, ...] = ()
    checksum_valid: bool = True

    @classmethod
    def from_segments(
        cls,
        segments: Iterable[Segment],
        *,
        header: FileHeader | None = None,
        checksum_valid: bool = True,
    ) -> ScoreData:
        high_scores: list[HighScore] = []
        clears: list[ClearData] = []
        spell_cards: list[SpellCardData] = []
        practices: list[PracticeData] = []
        unknown: list[UnknownSegment] = []
        play_data: PlayData | None = None
        last_name: LastName | None = None
        version: Version | None = None

        for segment in segments:
            if isinstance(segment, HighScore):
                high_scores.append(segment)
            elif isinstance(segment, ClearData):
                clears.append(segment)
            elif isinstance(segment, SpellCardData):
                spell_cards.append(segment)
            elif isinstance(segment, PracticeData):
                practices.append(segment)
            elif isinstance(segment, PlayData):
                play_data = segment
            elif isinstance(segment, LastName):
                last_name = segment
            elif isinstance(segment, Version):
                version = segment
            elif isinstance(segment, UnknownSegment):
                unknown.append(segment)

        return cls(
            header=header,
            high_scores=tuple(high_scores),
            clears=tuple(clears),
            spell_cards=tuple(spell_cards),
            practices=tuple(practices),
            play_data=play_data,
            last_name=last_name,
            version=version,
            unknown=tuple(unknown),
            checksum_valid=bool(checksum_valid),
        )

    @classmethod
    def from_score_file(cls, score: ScoreFile) -> ScoreData:
        return cls.from_segments(score.segments, header=score.header, checksum_valid=score.is_valid)


@dataclass(frozen=True, slots=True)
class CardSnapshot:
    card_id: int
    shot_type: ShotType
    timestamp: dt.datetime
    attempts: int
    captures: int

    @property
    def card_info(self) -> SpellCardInfo:
        return card_info(self.card_id)

    @property
    def card_name(self) -> str:
        return self.card_info.name

    @property
    def difficulty(self) -> Difficulty:
        return self.card_info.difficulty

    @property
    def stage(self) -> Stage:
        return self.card_info.stage

    @property
    def capture_rate(self) -> float:
        if self.attempts <= 0:
            return 0.0
        return self.captures / self.attempts


@dataclass(frozen=True, slots=True)
class PracticeSnapshot:
    shot_type: ShotType
    difficulty: Difficulty
    stage: Stage
    attempts: int
    high_score: int

    @property
    def key(self) -> tuple[ShotType, Difficulty, Stage]:
        return (self.shot_type, self.difficulty, self.stage)


@dataclass(frozen=True, slots=True)
class RunContext:
    """What the player is currently running, when the snapshot source knows it."""

    shot_type: ShotType
    difficulty: Difficulty
    stage: Stage | None = None

    def __str__(self) -> str:
        if self.stage is None:
            return f"{self.shot_type} {self.difficulty}"
        return f"{self.shot_type} {self.stage} {self.difficulty}"


CardKey = tuple[ShotType, int]


@dataclass(frozen=True, slots=True)
class Snapshot:
    timestamp: dt.datetime
    cards: tuple[CardSnapshot, ...]
    practices: tuple[PracticeSnapshot, ...] = ()
    context: RunContext | None = None
    _cards_by_key: Mapping[CardKey, CardSnapshot] = field(init=False, repr=False, compare=False)
    _practice_by_key: Mapping[tuple[ShotType, Difficulty, Stage], PracticeSnapshot] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "cards", tuple(self.cards))
        object.__setattr__(self, "practices", tuple(self.practices))
        object.__setattr__(self, "_cards_by_key", {(card.shot_type, card.card_id): card for card in self.cards})
        object.__setattr__(self, "_practice_by_key", {practice.key: practice for practice in self.practices})

    @classmethod
    def from_score_data(
        cls,
        data: ScoreData,
        *,
        timestamp: dt.datetime | None = None,
        context: RunContext | None = None,
    ) -> Snapshot:
        """Flatten spell-card records into per-shot cards (file order, then shot slot order)."""
        when = utc_now() if timestamp is None else timestamp
        cards = [
            CardSnapshot(
                card_id=record.card_id,
                shot_type=shot_type,
                timestamp=when,
                attempts=int(record.attempts[shot_type]),
                captures=int(record.captures[shot_type]),
            )
            for record in data.spell_cards
            for shot_type in ShotType
        ]
        practices = [
            PracticeSnapshot(
                shot_type=record.shot_type,
                difficulty=record.difficulty,
                stage=record.stage,
                attempts=int(record.attempts),
                high_score=int(record.high_score),
            )
            for record in data.practices
        ]
        return cls(timestamp=when, cards=tuple(cards), practices=tuple(practices), context=context)

    def iter_cards(self) -> Iterator[CardSnapshot]:
        return iter(self.cards)

    def get_card(self, shot_type: ShotType, card_id: int) -> CardSnapshot | None:
        return self._cards_by_key.get((shot_type, int(card_id)))

    def practice(self, shot_type: ShotType, difficulty: Difficulty, stage: Stage) -> PracticeSnapshot | None:
        return self._practice_by_key.get((shot_type, difficulty, stage))

    def practice_attempts(self, shot_type: ShotType, difficulty: Difficulty, stage: Stage) -> int:
        practice = self.practice(shot_type, difficulty, stage)
        return 0 if practice is None else practice.attempts


def practice_context(previous: Snapshot, current: Snapshot) -> RunContext | None:
    """The practice run whose attempt counter rose between two readings, if any."""
    for practice in current.practices:
        if practice.attempts > previous.practice_attempts(*practice.key):
            return RunContext(shot_type=practice.shot_type, difficulty=practice.difficulty, stage=practice.stage)
    return None


__all__ = [
    "CardKey",
    "CardSnapshot",
    "PracticeSnapshot",
    "RunContext",
    "ScoreData",
    "Snapshot",
    "practice_context",
    "utc_now",
]
