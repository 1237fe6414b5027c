from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Generic, Iterable, Iterator, TypeVar

_EnumT = TypeVar("_EnumT", bound=IntEnum)
_T = TypeVar("_T")


class GameId(IntEnum):
    PCB = 7

    @property
    def numbered_name(self) -> str:
        return f"Touhou {int(self)}"

    @property
    def abbreviation(self) -> str:
        return self.name

    @property
    def full_name(self) -> str:
        return _GAME_FULL_NAMES[self]


_GAME_FULL_NAMES: dict[GameId, str] = {
    GameId.PCB: "Perfect Cherry Blossom",
}


class Difficulty(IntEnum):
    EASY = 0
    NORMAL = 1
    HARD = 2
    LUNATIC = 3
    EXTRA = 4
    PHANTASM = 5

    def __str__(self) -> str:
        return self.name.capitalize()


class InvalidDiscriminantError(ValueError):
    """An enumerated byte field holds a value outside its closed range."""

    def __init__(self, field: str, value: int, valid: tuple[int, ...]) -> None:
        self.field = str(field)
        self.value = int(value)
        self.valid = tuple(int(v) for v in valid)
        super().__init__(f"invalid {self.field} {self.value} (valid values are {_format_valid(self.valid)})")


def _format_valid(valid: tuple[int, ...]) -> str:
    if not valid:
        return "none"
    lo, hi = min(valid), max(valid)
    if len(valid) == hi - lo + 1:
        return f"{lo}..={hi}"
    return ", ".join(str(v) for v in sorted(valid))


def parse_discriminant(enum_type: type[_EnumT], field: str, value: int) -> _EnumT:
    try:
        return enum_type(int(value))
    except ValueError:
        raise InvalidDiscriminantError(field, int(value), tuple(int(v) for v in enum_type)) from None


@dataclass(frozen=True, slots=True)
class ShortDate:
    """Six-byte `MM/DD` date as stored next to high scores."""

    raw: bytes

    def _text(self) -> str:
        return self.raw.split(b"\x00", 1)[0].decode("ascii", errors="replace")

    def _part(self, index: int) -> int | None:
        parts = self._text().split("/")
        if len(parts) != 2:
            return None
        try:
            return int(parts[index])
        except ValueError:
            return None

    @property
    def month(self) -> int | None:
        return self._part(0)

    @property
    def day(self) -> int | None:
        return self._part(1)

    def __str__(self) -> str:
        return self._text()


class SlotTable(Generic[_T]):
    """Fixed per-enum slots, optionally followed by one aggregate slot.

    Subclasses pin `ORDER`, the single place where a stored array position is
    tied to an enum member. Every accessor goes through it.
    """

    __slots__ = ("_values",)

    ORDER: ClassVar[tuple[IntEnum, ...]] = ()

    def __init__(self, values: Iterable[_T]) -> None:
        values = tuple(values)
        if len(values) not in (len(self.ORDER), len(self.ORDER) + 1):
            raise ValueError(
                f"{type(self).__name__} expects {len(self.ORDER)} or {len(self.ORDER) + 1} values, got {len(values)}"
            )
        self._values: tuple[_T, ...] = values

    def __getitem__(self, key: IntEnum) -> _T:
        # Members of different IntEnums compare equal by value, so match by identity.
        for idx, member in enumerate(self.ORDER):
            if member is key:
                return self._values[idx]
        raise KeyError(key)

    def __iter__(self) -> Iterator[IntEnum]:
        return iter(self.ORDER)

    def __len__(self) -> int:
        return len(self.ORDER)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._values == other._values  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._values))

    def __repr__(self) -> str:
        body = ", ".join(f"{key.name}={value!r}" for key, value in self.items())
        if self.has_total:
            body += f", total={self.total!r}"
        return f"{type(self).__name__}({body})"

    @property
    def has_total(self) -> bool:
        return len(self._values) == len(self.ORDER) + 1

    @property
    def total(self) -> _T:
        if not self.has_total:
            raise ValueError(f"{type(self).__name__} has no aggregate slot")
        return self._values[-1]

    def items(self) -> Iterator[tuple[IntEnum, _T]]:
        return zip(self.ORDER, self._values)

    def values(self) -> tuple[_T, ...]:
        """All stored values in file order, aggregate last when present."""
        return self._values


class DifficultySlots(SlotTable[_T]):
    __slots__ = ()

    ORDER = (
        Difficulty.EASY,
        Difficulty.NORMAL,
        Difficulty.HARD,
        Difficulty.LUNATIC,
        Difficulty.EXTRA,
        Difficulty.PHANTASM,
    )


__all__ = [
    "Difficulty",
    "DifficultySlots",
    "GameId",
    "InvalidDiscriminantError",
    "ShortDate",
    "SlotTable",
    "parse_discriminant",
]
