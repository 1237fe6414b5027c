from __future__ import annotations

from dataclasses import dataclass

from ..types import Difficulty
from .types import Stage

E = Difficulty.EASY
N = Difficulty.NORMAL
H = Difficulty.HARD
L = Difficulty.LUNATIC
X = Difficulty.EXTRA
P = Difficulty.PHANTASM


@dataclass(frozen=True, slots=True)
class SpellCardInfo:
    name: str
    difficulty: Difficulty
    stage: Stage
    is_midboss: bool = False


def _mid(name: str, difficulty: Difficulty, stage: Stage) -> SpellCardInfo:
    return SpellCardInfo(name=name, difficulty=difficulty, stage=stage, is_midboss=True)


def _boss(name: str, difficulty: Difficulty, stage: Stage) -> SpellCardInfo:
    return SpellCardInfo(name=name, difficulty=difficulty, stage=stage, is_midboss=False)


S1, S2, S3, S4, S5, S6, EX, PH = (
    Stage.ONE,
    Stage.TWO,
    Stage.THREE,
    Stage.FOUR,
    Stage.FIVE,
    Stage.SIX,
    Stage.EXTRA,
    Stage.PHANTASM,
)

# Indexed by card id - 1.
SPELL_CARDS: tuple[SpellCardInfo, ...] = (
    # Stage 1: Cirno, Letty Whiterock
    _mid('Frost Sign "Frost Columns"', E, S1),
    _mid('Frost Sign "Frost Columns"', N, S1),
    _mid('Frost Sign "Frost Columns -Lunatic-"', H, S1),
    _mid('Frost Sign "Frost Columns -Lunatic-"', L, S1),
    _boss('Cold Sign "Lingering Cold -Easy-"', E, S1),
    _boss('Cold Sign "Lingering Cold"', N, S1),
    _boss('Cold Sign "Lingering Cold"', H, S1),
    _boss('Cold Sign "Lingering Cold -Lunatic-"', L, S1),
    _boss('Winter Sign "Flower Wither Away -Easy-"', E, S1),
    _boss('Winter Sign "Flower Wither Away"', N, S1),
    _boss('White Sign "Undulation Ray"', H, S1),
    _boss('Mystic Sign "Table-Turning"', L, S1),
    # Stage 2: Chen
    _boss('Hermit Sign "Taoist of the Land of the Devil -Easy-"', E, S2),
    _boss('Hermit Sign "Taoist of the Land of the Devil"', N, S2),
    _boss('Shikigami Sign "Immortal Sennin"', H, S2),
    _boss('Shikigami Sign "Immortal Sennin -Lunatic-"', L, S2),
    _boss('Oni Sign "Blue Oni Red Oni -Easy-"', E, S2),
    _boss('Oni Sign "Blue Oni Red Oni"', N, S2),
    _boss('Oni God "Soaring Bishamonten"', H, S2),
    _boss('Oni God "Soaring Bishamonten -Lunatic-"', L, S2),
    _boss('Flight Sign "Flying Mt. Zhang -Easy-"', E, S2),
    _boss('Flight Sign "Flying Mt. Zhang"', N, S2),
    _boss('Heaven Sign "Tenma\'s Pentagram"', H, S2),
    _boss('Heaven Sign "Tenma\'s Pentagram -Lunatic-"', L, S2),
    # Stage 3: Chen, Alice Margatroid
    _mid('Hermit Sign "Immortal Sennin\'s Shikigami -Easy-"', E, S3),
    _mid('Hermit Sign "Immortal Sennin\'s Shikigami"', N, S3),
    _mid('Hermit Sign "Immortal Sennin\'s Shikigami -Hard-"', H, S3),
    _mid('Hermit Sign "Immortal Sennin\'s Shikigami -Lunatic-"', L, S3),
    _boss('Blue Sign "Fraternal French Dolls"', E, S3),
    _boss('Blue Sign "Fraternal French Dolls"', N, S3),
    _boss('Blue Sign "Benevolent French Dolls"', H, S3),
    _boss('Blue Sign "Benevolent French Dolls"', L, S3),
    _boss('Scarlet Sign "Red-Haired Dutch Dolls"', E, S3),
    _boss('Scarlet Sign "Red-Haired Dutch Dolls"', N, S3),
    _boss('White Sign "Chalk-White Russian Dolls"', H, S3),
    _boss('White Sign "Chalk-White Russian Dolls"', L, S3),
    _boss('Darkness Sign "Foggy London Dolls"', E, S3),
    _boss('Darkness Sign "Foggy London Dolls"', N, S3),
    _boss('Cycle Sign "Samsara Tibetan Dolls"', H, S3),
    _boss('Cycle Sign "Samsara Tibetan Dolls"', L, S3),
    _boss('Elegant Sign "Spring Kyoto Dolls"', E, S3),
    _boss('Elegant Sign "Spring Kyoto Dolls"', N, S3),
    _boss('Curse Sign "Hanged Hourai Dolls"', H, S3),
    _boss('Curse Sign "Hanged Hourai Dolls"', L, S3),
    # Stage 4: Prismriver Sisters
    _boss('Noise Sign "Phantom Dinning"', E, S4),
    _boss('Noise Sign "Phantom Dinning"', N, S4),
    _boss('Violin Sign "Pseudo Stradivarius"', H, S4),
    _boss('Violin Sign "Pseudo Stradivarius"', L, S4),
    _boss('Trumpet Spirit "Hino Phantasm"', E, S4),
    _boss('Trumpet Spirit "Hino Phantasm"', N, S4),
    _boss('Nether Trumpet "Ghost Clifford"', H, S4),
    _boss('Nether Trumpet "Ghost Clifford"', L, S4),
    _boss('Key Spirit "Bösendorfer Divine Performance"', E, S4),
    _boss('Key Spirit "Bösendorfer Divine Performance"', N, S4),
    _boss('Keyboard "Manic Fantasia"', H, S4),
    _boss('Keyboard "Manic Fantasia"', L, S4),
    _boss('Noise Sign "Soul Noise Flow"', E, S4),
    _boss('Noise Sign "Soul Noise Flow"', N, S4),
    _boss('String Performance "Guarneri del Gesù"', H, S4),
    _boss('String Performance "Guarneri del Gesù"', L, S4),
    _boss('Funeral Concert "Prismriver Concerto"', E, S4),
    _boss('Funeral Concert "Prismriver Concerto"', N, S4),
    _boss('Noisy Funeral "Stygian Riverside"', H, S4),
    _boss('Noisy Funeral "Stygian Riverside"', L, S4),
    _boss('Great Fantasia "Phantom Ensemble -Happy-"', E, S4),
    _boss('Great Fantasia "Phantom Ensemble"', N, S4),
    _boss('Funeral Concert "Prismriver Quartet"', H, S4),
    _boss('Noisy Funeral "Prismriver Quartet"', L, S4),
    # Stage 5: Youmu Konpaku
    _mid('Ghost Sword "Fasting of the Young Preta"', E, S5),
    _mid('Ghost Sword "Fasting of the Young Preta"', N, S5),
    _mid('Hell Realm Sword "Two Hundred Yojana in One Slash"', H, S5),
    _mid('Hell Realm Sword "Two Hundred Yojana in One Slash"', L, S5),
    _boss('Animal Realm Sword "Karmic Punishment of the Idle and Unfocused"', E, S5),
    _boss('Animal Realm Sword "Karmic Punishment of the Idle and Unfocused"', N, S5),
    _boss('Asura Sword "Obsession with the Present World"', H, S5),
    _boss('Asura Sword "Obsession with the Present World"', L, S5),
    _boss('Human Realm Sword "Enlightenment Achieved"', E, S5),
    _boss('Human Realm Sword "Enlightenment Achieved"', N, S5),
    _boss('Heaven Sword "Five Signs of the Dying Heavenly"', H, S5),
    _boss('Heaven Sword "Five Signs of the Dying Heavenly"', L, S5),
    _boss('Heaven Realm Sword "Seven Hakus of Ghastly Scripture"', E, S5),
    _boss('Heaven Realm Sword "Seven Hakus of Ghastly Scripture"', N, S5),
    _boss('Six Realms Sword "A Single Thought and Infinite Kalpas"', H, S5),
    _boss('Six Realms Sword "A Single Thought and Infinite Kalpas"', L, S5),
    _boss('Hell God Sword "Flash of the Spring Breeze"', E, S5),
    _boss('Hell God Sword "Flash of the Spring Breeze"', N, S5),
    _boss('Human Sign "Present Life Slash"', H, S5),
    _boss('Human Sign "Present Life Slash"', L, S5),
    # Stage 6: Youmu Konpaku, Yuyuko Saigyouji
    _mid('Human Realm Sword "Fantasy Shutter"', E, S6),
    _mid('Human Realm Sword "Fantasy Shutter"', N, S6),
    _mid('Human Realm Sword "Fantasy Shutter -Hard-"', H, S6),
    _mid('Human Realm Sword "Fantasy Shutter -Lunatic-"', L, S6),
    _mid('Soul Sword "Phantasmal Flight of the Lost"', E, S6),
    _mid('Soul Sword "Phantasmal Flight of the Lost"', N, S6),
    _mid('Soul Sword "Phantasmal Flight of the Lost -Hard-"', H, S6),
    _mid('Soul Sword "Phantasmal Flight of the Lost -Lunatic-"', L, S6),
    _boss('Deadly Dance "Law of Mortality -Bewitching Bait-"', E, S6),
    _boss('Deadly Dance "Law of Mortality -Bewitching Bait-"', N, S6),
    _boss('Deadly Dance "Law of Mortality -Dead Land-"', H, S6),
    _boss('Deadly Dance "Law of Mortality -Dead Land-"', L, S6),
    _boss('Flowery Soul "Ghost Butterfly"', E, S6),
    _boss('Flowery Soul "Butterfly Delusion"', N, S6),
    _boss('Flowery Soul "Swallowtail Butterfly"', H, S6),
    _boss('Flowery Soul "Deep-Rooted Butterfly"', L, S6),
    _boss('Ghostly Land "Ghost Spot -Cherry Blossom-"', E, S6),
    _boss('Ghostly Land "Ghost Spot -Dead Land-"', N, S6),
    _boss('Cherry Blossom Sign "Perfect Ink-Black Cherry Blossom -Seal-"', H, S6),
    _boss('Cherry Blossom Sign "Perfect Ink-Black Cherry Blossom -Spring Sleep-"', L, S6),
    _boss('"Resurrection Butterfly -10% Reflowering-"', E, S6),
    _boss('"Resurrection Butterfly -30% Reflowering-"', N, S6),
    _boss('"Resurrection Butterfly -50% Reflowering-"', H, S6),
    _boss('"Resurrection Butterfly -80% Reflowering-"', L, S6),
    # Extra: Chen, Ran Yakumo
    _mid('Shikigami Sign "Protection of Zenki and Goki"', X, EX),
    _mid('Shikigami Sign "Soaring Bishamonten"', X, EX),
    _boss('Shikigami "Senko Thoughtful Meditation"', X, EX),
    _boss('Shikigami "Banquet of the Twelve General Gods"', X, EX),
    _boss('Shikigami "Charming Quadruple"', X, EX),
    _boss('Shikigami "Protection of Zenki and Goki"', X, EX),
    _boss('Super Shikigami "Soaring Bishamonten"', X, EX),
    _boss('Shikigami "Unilateral Contact"', X, EX),
    _boss('Shikigami "Ultimate Buddhist"', X, EX),
    _boss('Shikigami "Kitsune-Tanuki Youkai Laser"', X, EX),
    _boss('Shikigami "Charming Siege from All Sides"', X, EX),
    _boss('Illusion God "Descent of Izuna Gongen"', X, EX),
    _boss('Shikigami "Shikigami of the Immortal Sennin"', X, EX),
    _boss('Shikigami "Dakini\'s Heavenly Possession"', X, EX),
    _boss('Super Shikigami "Ran Yakumo"', X, EX),
    _boss('Shikigami "Princess Tenko -Illusion-"', X, EX),
    # Phantasm: Ran Yakumo, Yukari Yakumo
    _mid('Shikigami "Ran Yakumo+"', P, PH),
    _mid('Shikigami "Ran -Phantasmagoria-"', P, PH),
    _boss('Evil Spirit "Yukari Yakumo\'s Spiriting Away"', P, PH),
    _boss('Evil Spirit "Double Black Death Butterfly"', P, PH),
    _boss('Evil Spirit "Shikigami Ran"', P, PH),
    _boss('Evil Spirit "Straight and Curve Dream"', P, PH),
    _boss('Barrier "Curse of Dreams and Reality"', P, PH),
    _boss('Barrier "Balance of Motion and Stillness"', P, PH),
    _boss('Barrier "Mesh of Light and Darkness"', P, PH),
    _boss('Barrier "Boundary of Life and Death"', P, PH),
    _boss('Barrier "Quadruple Barrier"', P, PH),
    _boss('Evil Spirit "Bewitching Butterfly Living in the Zen Temple"', P, PH),
    _boss('Yukari\'s Arcanum "Danmaku Bounded Field"', P, PH),
)

CARD_COUNT = len(SPELL_CARDS)


def card_info(card_id: int) -> SpellCardInfo:
    """Metadata for a 1-based card id; unknown ids raise `KeyError`."""
    idx = int(card_id) - 1
    if idx < 0 or idx >= CARD_COUNT:
        raise KeyError(f"invalid card id {int(card_id)} for PCB (valid values are 1..={CARD_COUNT})")
    return SPELL_CARDS[idx]


def card_name(card_id: int) -> str:
    return card_info(card_id).name


def cards_for(stage: Stage, difficulty: Difficulty) -> tuple[int, ...]:
    return tuple(
        idx + 1
        for idx, info in enumerate(SPELL_CARDS)
        if info.stage == stage and info.difficulty == difficulty
    )


__all__ = [
    "CARD_COUNT",
    "SPELL_CARDS",
    "SpellCardInfo",
    "card_info",
    "card_name",
    "cards_for",
]
