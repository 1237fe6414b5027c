from __future__ import annotations

from collections import Counter

import pytest

from touhou.th07.spellcards import CARD_COUNT, SPELL_CARDS, card_info, card_name, cards_for
from touhou.th07.types import ShotSlots, ShotType, Stage, StageProgress
from touhou.types import Difficulty, DifficultySlots, GameId, ShortDate


def test_table_covers_every_card() -> None:
    assert CARD_COUNT == 141
    assert card_name(1) == 'Frost Sign "Frost Columns"'
    assert card_name(141) == 'Yukari\'s Arcanum "Danmaku Bounded Field"'


def test_stage_and_difficulty_classification() -> None:
    by_stage = Counter(info.stage for info in SPELL_CARDS)

    assert by_stage[Stage.ONE] == 12
    assert by_stage[Stage.EXTRA] == 16
    assert by_stage[Stage.PHANTASM] == 13
    assert all(info.difficulty == Difficulty.EXTRA for info in SPELL_CARDS if info.stage == Stage.EXTRA)
    assert all(info.difficulty == Difficulty.PHANTASM for info in SPELL_CARDS if info.stage == Stage.PHANTASM)
    assert card_info(1).is_midboss
    assert not card_info(5).is_midboss


def test_cards_for_lists_one_based_ids() -> None:
    easy_stage_one = cards_for(Stage.ONE, Difficulty.EASY)

    assert easy_stage_one == (1, 5, 9)
    assert all(card_info(card_id).stage == Stage.ONE for card_id in easy_stage_one)


@pytest.mark.parametrize("card_id", [0, 142, -1])
def test_card_info_rejects_unknown_ids(card_id: int) -> None:
    with pytest.raises(KeyError, match="valid values are 1..=141"):
        card_info(card_id)


def test_enum_labels() -> None:
    assert str(ShotType.REIMU_A) == "ReimuA"
    assert str(ShotType.SAKUYA_B) == "SakuyaB"
    assert str(Stage.THREE) == "Stage 3"
    assert str(Stage.PHANTASM) == "Phantasm"
    assert str(Difficulty.LUNATIC) == "Lunatic"
    assert str(StageProgress.ALL_CLEAR) == "All Clear"
    assert str(StageProgress.STAGE_4) == "Stage 4"
    assert GameId.PCB.abbreviation == "PCB"
    assert GameId.PCB.full_name == "Perfect Cherry Blossom"
    assert GameId.PCB.numbered_name == "Touhou 7"


def test_slot_tables_are_keyed_by_enum() -> None:
    slots = ShotSlots([10, 11, 12, 13, 14, 15, 75])

    assert slots[ShotType.MARISA_B] == 13
    assert slots.total == 75
    assert list(slots) == list(ShotType)
    assert len(slots) == 6
    with pytest.raises(KeyError):
        slots[Difficulty.EASY]


def test_slot_table_without_total() -> None:
    flags = DifficultySlots(b"\x01\x00\x00\x01\x00\x00")

    assert flags[Difficulty.LUNATIC] == 1
    assert not flags.has_total
    with pytest.raises(ValueError, match="no aggregate slot"):
        flags.total


def test_slot_table_rejects_wrong_length() -> None:
    with pytest.raises(ValueError, match="expects 6 or 7 values"):
        ShotSlots([1, 2, 3])


def test_short_date_parts() -> None:
    assert (ShortDate(b"12/31\x00").month, ShortDate(b"12/31\x00").day) == (12, 31)
    assert ShortDate(b"\x00" * 6).month is None
    assert str(ShortDate(b"01/02\x00")) == "01/02"
