from __future__ import annotations

from enum import IntEnum
from typing import TypeVar

from ..types import SlotTable

_T = TypeVar("_T")


class ShotType(IntEnum):
    REIMU_A = 0
    REIMU_B = 1
    MARISA_A = 2
    MARISA_B = 3
    SAKUYA_A = 4
    SAKUYA_B = 5

    def __str__(self) -> str:
        character, variant = self.name.split("_")
        return f"{character.capitalize()}{variant}"


class Stage(IntEnum):
    ONE = 0
    TWO = 1
    THREE = 2
    FOUR = 3
    FIVE = 4
    SIX = 5
    EXTRA = 6
    PHANTASM = 7

    def __str__(self) -> str:
        if self >= Stage.EXTRA:
            return self.name.capitalize()
        return f"Stage {int(self) + 1}"


class StageProgress(IntEnum):
    NOT_STARTED = 0
    STAGE_1 = 1
    STAGE_2 = 2
    STAGE_3 = 3
    STAGE_4 = 4
    STAGE_5 = 5
    STAGE_6 = 6
    EXTRA = 7
    PHANTASM = 8
    ALL_CLEAR = 99

    def __str__(self) -> str:
        if self == StageProgress.ALL_CLEAR:
            return "All Clear"
        if self == StageProgress.NOT_STARTED:
            return "Not Started"
        if self >= StageProgress.EXTRA:
            return self.name.capitalize()
        return f"Stage {int(self)}"


class ShotSlots(SlotTable[_T]):
    __slots__ = ()

    ORDER = (
        ShotType.REIMU_A,
        ShotType.REIMU_B,
        ShotType.MARISA_A,
        ShotType.MARISA_B,
        ShotType.SAKUYA_A,
        ShotType.SAKUYA_B,
    )


__all__ = [
    "ShotSlots",
    "ShotType",
    "Stage",
    "StageProgress",
]
