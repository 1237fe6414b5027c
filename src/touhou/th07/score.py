from __future__ import annotations

from dataclasses import dataclass
import io
from pathlib import Path
from typing import Any, BinaryIO, Callable, ClassVar, Final, Iterable, Iterator, TypeAlias

from construct import Array, Byte, Bytes, Float32l, Int16ul, Int32ul, Padding, Struct
from construct import ConstructError, StreamError

from ..types import Difficulty, DifficultySlots, InvalidDiscriminantError, ShortDate, parse_discriminant
from .crypt import ENVELOPE_SIZE, Decryptor, encrypt
from .errors import ByteSource, ScoreFormatError, TruncatedError, read_exact, read_up_to
from .lzss import StreamDecompressor, compress
from .spellcards import CARD_COUNT, SpellCardInfo, card_info
from .types import ShotSlots, ShotType, Stage, StageProgress

SEGMENT_HEADER_SIZE: Final[int] = 8
SIGNATURE_SIZE: Final[int] = 4
CARD_NAME_SIZE: Final[int] = 0x30
LAST_NAME_SIZE: Final[int] = 12
VERSION_SIZE: Final[int] = 6

FILE_HEADER = Struct(
    "version" / Int16ul,
    Padding(2),
    "header_size" / Int32ul,
    Padding(4),
    "decompressed_total_size" / Int32ul,
    "decompressed_body_size" / Int32ul,
    "encoded_body_size" / Int32ul,
)
FILE_HEADER_SIZE: Final[int] = FILE_HEADER.sizeof()

_SIZES = Struct(
    "size1" / Int16ul,
    "size2" / Int16ul,
)

_STORED_TIME = Struct(
    "hours" / Int32ul,
    "minutes" / Int32ul,
    "seconds" / Int32ul,
    "milliseconds" / Int32ul,
)

_PLAY_COUNT = Struct(
    "total_attempts" / Int32ul,
    "attempts" / Array(6, Int32ul),
    "retries" / Int32ul,
    "clears" / Int32ul,
    "continues" / Int32ul,
    "practices" / Int32ul,
)

_HEADER_MARKER = Struct(
    Padding(4),
)

_HIGH_SCORE = Struct(
    Padding(4),
    "score" / Int32ul,
    "slow" / Float32l,
    "shot_type" / Byte,
    "difficulty" / Byte,
    "progress" / Byte,
    "name" / Bytes(9),
    "date" / Bytes(6),
    "continues" / Int16ul,
)

_CLEAR_DATA = Struct(
    Padding(4),
    "story_flags" / Bytes(6),
    "practice_flags" / Bytes(6),
    "shot_type" / Int32ul,
)

_SPELL_CARD = Struct(
    Padding(4),
    "max_bonuses" / Array(7, Int32ul),
    "card_index" / Int16ul,
    Padding(1),
    "card_name" / Bytes(CARD_NAME_SIZE),
    Padding(1),
    "attempts" / Array(7, Int16ul),
    "captures" / Array(7, Int16ul),
)

_PRACTICE = Struct(
    Padding(4),
    "attempts" / Int32ul,
    "high_score" / Int32ul,
    "shot_type" / Byte,
    "difficulty" / Byte,
    "stage" / Byte,
    Padding(1),
)

_PLAY_DATA = Struct(
    Padding(4),
    "running_time" / _STORED_TIME,
    "play_time" / _STORED_TIME,
    "play_counts" / Array(7, _PLAY_COUNT),
)

_LAST_NAME = Struct(
    Padding(4),
    "name" / Bytes(LAST_NAME_SIZE),
)

_VERSION = Struct(
    Padding(2),
    Padding(2),
    "version" / Bytes(VERSION_SIZE),
    Padding(4),
    Padding(4),
    Padding(2),
)


def _parse(struct: Struct, payload: bytes, *, what: str) -> Any:
    try:
        return struct.parse(payload)
    except StreamError as exc:
        raise TruncatedError(f"{what}: payload of {len(payload)} bytes is too short") from exc
    except ConstructError as exc:
        raise ScoreFormatError(f"{what}: {exc}") from exc


def _build(struct: Struct, value: dict[str, object], *, what: str) -> bytes:
    try:
        return struct.build(value)
    except ConstructError as exc:
        raise ScoreFormatError(f"failed to build {what}: {exc}") from exc


def _text(raw: bytes) -> str:
    return raw.split(b"\x00", 1)[0].decode("shift_jis", errors="replace")


@dataclass(frozen=True, slots=True)
class FileHeader:
    version: int
    header_size: int
    decompressed_total_size: int
    decompressed_body_size: int
    encoded_body_size: int

    @classmethod
    def read_from(cls, source: ByteSource) -> FileHeader:
        raw = read_exact(source, FILE_HEADER_SIZE, what="file header")
        parsed = _parse(FILE_HEADER, raw, what="file header")
        return cls(
            version=int(parsed.version),
            header_size=int(parsed.header_size),
            decompressed_total_size=int(parsed.decompressed_total_size),
            decompressed_body_size=int(parsed.decompressed_body_size),
            encoded_body_size=int(parsed.encoded_body_size),
        )

    def to_bytes(self) -> bytes:
        return _build(
            FILE_HEADER,
            {
                "version": int(self.version) & 0xFFFF,
                "header_size": int(self.header_size),
                "decompressed_total_size": int(self.decompressed_total_size),
                "decompressed_body_size": int(self.decompressed_body_size),
                "encoded_body_size": int(self.encoded_body_size),
            },
            what="file header",
        )


@dataclass(frozen=True, slots=True)
class StoredTime:
    hours: int
    minutes: int
    seconds: int
    milliseconds: int

    def __str__(self) -> str:
        return f"{self.hours}:{self.minutes:02d}:{self.seconds:02d}.{self.milliseconds:03d}"


@dataclass(frozen=True, slots=True)
class PlayCount:
    total_attempts: int
    attempts: ShotSlots[int]
    retries: int
    clears: int
    continues: int
    practices: int


@dataclass(frozen=True, slots=True)
class HeaderSegment:
    SIGNATURE: ClassVar[bytes] = b"TH7K"


@dataclass(frozen=True, slots=True)
class HighScore:
    SIGNATURE: ClassVar[bytes] = b"HSCR"

    score: int
    slow: float
    shot_type: ShotType
    difficulty: Difficulty
    progress: StageProgress
    raw_name: bytes
    date: ShortDate
    continues: int

    @property
    def name(self) -> str | None:
        try:
            return self.raw_name[:8].decode("ascii").rstrip("\x00")
        except UnicodeDecodeError:
            return None


@dataclass(frozen=True, slots=True)
class ClearData:
    SIGNATURE: ClassVar[bytes] = b"CLRD"

    story_flags: DifficultySlots[int]
    practice_flags: DifficultySlots[int]
    shot_type: ShotType

    def story_flag(self, difficulty: Difficulty) -> int:
        return self.story_flags[difficulty]

    def practice_flag(self, difficulty: Difficulty) -> int:
        return self.practice_flags[difficulty]


@dataclass(frozen=True, slots=True)
class SpellCardData:
    SIGNATURE: ClassVar[bytes] = b"CATK"

    card_id: int
    raw_card_name: bytes
    max_bonuses: ShotSlots[int]
    attempts: ShotSlots[int]
    captures: ShotSlots[int]

    @property
    def info(self) -> SpellCardInfo:
        return card_info(self.card_id)

    def card_name(self) -> str:
        return self.info.name

    @property
    def stored_name(self) -> str:
        return _text(self.raw_card_name)

    @property
    def total_max_bonus(self) -> int:
        return self.max_bonuses.total

    @property
    def total_attempts(self) -> int:
        return self.attempts.total

    @property
    def total_captures(self) -> int:
        return self.captures.total

    def total_capture_rate(self) -> float:
        if self.total_attempts <= 0:
            return 0.0
        return self.total_captures / self.total_attempts

    def capture_rate(self, shot_type: ShotType) -> float:
        attempts = self.attempts[shot_type]
        if attempts <= 0:
            return 0.0
        return self.captures[shot_type] / attempts


@dataclass(frozen=True, slots=True)
class PracticeData:
    SIGNATURE: ClassVar[bytes] = b"PSCR"

    attempts: int
    high_score: int
    shot_type: ShotType
    difficulty: Difficulty
    stage: Stage


@dataclass(frozen=True, slots=True)
class PlayData:
    SIGNATURE: ClassVar[bytes] = b"PLST"

    running_time: StoredTime
    play_time: StoredTime
    play_counts: DifficultySlots[PlayCount]

    def play_counts_for(self, difficulty: Difficulty) -> PlayCount:
        return self.play_counts[difficulty]

    @property
    def total_play_counts(self) -> PlayCount:
        return self.play_counts.total


@dataclass(frozen=True, slots=True)
class LastName:
    SIGNATURE: ClassVar[bytes] = b"LSNM"

    raw: bytes

    @property
    def name(self) -> str:
        return _text(self.raw)


@dataclass(frozen=True, slots=True)
class Version:
    SIGNATURE: ClassVar[bytes] = b"VRSM"

    raw: bytes

    @property
    def version(self) -> str:
        return _text(self.raw)


@dataclass(frozen=True, slots=True)
class UnknownSegment:
    signature: bytes
    size1: int
    size2: int
    payload: bytes


Segment: TypeAlias = (
    HeaderSegment
    | HighScore
    | ClearData
    | SpellCardData
    | PracticeData
    | PlayData
    | LastName
    | Version
    | UnknownSegment
)


def segment_signature(segment: Segment) -> bytes:
    if isinstance(segment, UnknownSegment):
        return segment.signature
    return type(segment).SIGNATURE


def _stored_time(raw: Any) -> StoredTime:
    return StoredTime(
        hours=int(raw.hours),
        minutes=int(raw.minutes),
        seconds=int(raw.seconds),
        milliseconds=int(raw.milliseconds),
    )


def _decode_header(payload: bytes) -> HeaderSegment:
    _parse(_HEADER_MARKER, payload, what="TH7K")
    return HeaderSegment()


def _decode_high_score(payload: bytes) -> HighScore:
    raw = _parse(_HIGH_SCORE, payload, what="HSCR")
    return HighScore(
        score=int(raw.score),
        slow=float(raw.slow),
        shot_type=parse_discriminant(ShotType, "shot_type", raw.shot_type),
        difficulty=parse_discriminant(Difficulty, "difficulty", raw.difficulty),
        progress=parse_discriminant(StageProgress, "progress", raw.progress),
        raw_name=bytes(raw.name),
        date=ShortDate(bytes(raw.date)),
        continues=int(raw.continues),
    )


def _decode_clear_data(payload: bytes) -> ClearData:
    raw = _parse(_CLEAR_DATA, payload, what="CLRD")
    return ClearData(
        story_flags=DifficultySlots(bytes(raw.story_flags)),
        practice_flags=DifficultySlots(bytes(raw.practice_flags)),
        shot_type=parse_discriminant(ShotType, "shot_type", int(raw.shot_type) & 0xFF),
    )


def _decode_spell_card(payload: bytes) -> SpellCardData:
    raw = _parse(_SPELL_CARD, payload, what="CATK")
    card_id = int(raw.card_index) + 1
    if not 1 <= card_id <= CARD_COUNT:
        raise InvalidDiscriminantError("card_id", card_id, tuple(range(1, CARD_COUNT + 1)))
    return SpellCardData(
        card_id=card_id,
        raw_card_name=bytes(raw.card_name),
        max_bonuses=ShotSlots(int(v) for v in raw.max_bonuses),
        attempts=ShotSlots(int(v) for v in raw.attempts),
        captures=ShotSlots(int(v) for v in raw.captures),
    )


def _decode_practice(payload: bytes) -> PracticeData:
    raw = _parse(_PRACTICE, payload, what="PSCR")
    return PracticeData(
        attempts=int(raw.attempts),
        high_score=int(raw.high_score),
        shot_type=parse_discriminant(ShotType, "shot_type", raw.shot_type),
        difficulty=parse_discriminant(Difficulty, "difficulty", raw.difficulty),
        stage=parse_discriminant(Stage, "stage", raw.stage),
    )


def _decode_play_data(payload: bytes) -> PlayData:
    raw = _parse(_PLAY_DATA, payload, what="PLST")
    counts = [
        PlayCount(
            total_attempts=int(entry.total_attempts),
            attempts=ShotSlots(int(v) for v in entry.attempts),
            retries=int(entry.retries),
            clears=int(entry.clears),
            continues=int(entry.continues),
            practices=int(entry.practices),
        )
        for entry in raw.play_counts
    ]
    return PlayData(
        running_time=_stored_time(raw.running_time),
        play_time=_stored_time(raw.play_time),
        play_counts=DifficultySlots(counts),
    )


def _decode_last_name(payload: bytes) -> LastName:
    raw = _parse(_LAST_NAME, payload, what="LSNM")
    return LastName(raw=bytes(raw.name))


def _decode_version(payload: bytes) -> Version:
    raw = _parse(_VERSION, payload, what="VRSM")
    return Version(raw=bytes(raw.version))


_DECODERS: dict[bytes, Callable[[bytes], Segment]] = {
    HeaderSegment.SIGNATURE: _decode_header,
    HighScore.SIGNATURE: _decode_high_score,
    ClearData.SIGNATURE: _decode_clear_data,
    SpellCardData.SIGNATURE: _decode_spell_card,
    PracticeData.SIGNATURE: _decode_practice,
    PlayData.SIGNATURE: _decode_play_data,
    LastName.SIGNATURE: _decode_last_name,
    Version.SIGNATURE: _decode_version,
}


def decode_segment(signature: bytes, size1: int, size2: int, payload: bytes) -> Segment:
    decoder = _DECODERS.get(bytes(signature))
    if decoder is None:
        return UnknownSegment(signature=bytes(signature), size1=int(size1), size2=int(size2), payload=bytes(payload))
    return decoder(payload)


def read_segment(source: ByteSource) -> Segment | None:
    """Read the next real segment, skipping filler frames (`size1 <= 8`).

    Returns `None` when the stream ends before or inside a segment signature.
    """
    while True:
        signature = read_up_to(source, SIGNATURE_SIZE)
        if len(signature) < SIGNATURE_SIZE:
            return None
        sizes = _parse(_SIZES, read_exact(source, 4, what="segment sizes"), what="segment sizes")
        size1 = int(sizes.size1)
        size2 = int(sizes.size2)
        if size1 > SEGMENT_HEADER_SIZE:
            break

    label = signature.decode("ascii", errors="replace")
    payload = read_exact(source, size1 - SEGMENT_HEADER_SIZE, what=f"{label} payload")
    return decode_segment(signature, size1, size2, payload)


def iter_segments(source: ByteSource) -> Iterator[Segment]:
    while True:
        segment = read_segment(source)
        if segment is None:
            return
        yield segment


class ScoreReader:
    """Decrypts, decompresses and iterates the segments of a `score.dat` stream.

    The header is read eagerly. Iterating yields every segment; when the
    segment stream ends the remaining ciphertext is drained so that
    `is_valid()` reflects the checksum over the whole file.
    """

    def __init__(self, source: ByteSource) -> None:
        self._decryptor = Decryptor(source)
        self.header = FileHeader.read_from(self._decryptor)
        self._body = StreamDecompressor(
            self._decryptor,
            encoded_size=self.header.encoded_body_size,
            decompressed_size=self.header.decompressed_body_size,
        )
        self._exhausted = False

    def __iter__(self) -> Iterator[Segment]:
        yield from iter_segments(self._body)
        self._decryptor.drain()
        self._exhausted = True

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def is_valid(self) -> bool:
        return self._decryptor.is_valid()

    @property
    def checksum(self) -> int:
        return self._decryptor.checksum

    @property
    def expected_checksum(self) -> int:
        return self._decryptor.expected_checksum


@dataclass(frozen=True, slots=True)
class ScoreFile:
    header: FileHeader
    segments: tuple[Segment, ...]
    checksum: int
    expected_checksum: int

    @property
    def is_valid(self) -> bool:
        return self.checksum == self.expected_checksum


def read_score(source: ByteSource) -> ScoreFile:
    reader = ScoreReader(source)
    segments = tuple(reader)
    return ScoreFile(
        header=reader.header,
        segments=segments,
        checksum=reader.checksum,
        expected_checksum=reader.expected_checksum,
    )


def loads(data: bytes) -> ScoreFile:
    return read_score(io.BytesIO(data))


def load(path: str | Path | BinaryIO) -> ScoreFile:
    if hasattr(path, "read"):
        return read_score(path)  # type: ignore[arg-type]
    with open(Path(path), "rb") as f:
        return read_score(f)


def build_segment(signature: bytes, payload: bytes, *, size2: int | None = None) -> bytes:
    if len(signature) != SIGNATURE_SIZE:
        raise ValueError(f"segment signature must be {SIGNATURE_SIZE} bytes: {signature!r}")
    size1 = len(payload) + SEGMENT_HEADER_SIZE
    return bytes(signature) + _build(
        _SIZES,
        {"size1": size1, "size2": size1 if size2 is None else int(size2)},
        what="segment sizes",
    ) + bytes(payload)


def build_filler(signature: bytes = b"\x00" * SIGNATURE_SIZE, *, size1: int = SEGMENT_HEADER_SIZE, size2: int = 0) -> bytes:
    if size1 > SEGMENT_HEADER_SIZE:
        raise ValueError(f"filler frames must have size1 <= {SEGMENT_HEADER_SIZE}, got {size1}")
    return bytes(signature) + _build(_SIZES, {"size1": int(size1), "size2": int(size2)}, what="filler")


def _play_count_dict(count: PlayCount) -> dict[str, object]:
    return {
        "total_attempts": int(count.total_attempts),
        "attempts": list(count.attempts.values()),
        "retries": int(count.retries),
        "clears": int(count.clears),
        "continues": int(count.continues),
        "practices": int(count.practices),
    }


def _time_dict(value: StoredTime) -> dict[str, int]:
    return {
        "hours": int(value.hours),
        "minutes": int(value.minutes),
        "seconds": int(value.seconds),
        "milliseconds": int(value.milliseconds),
    }


def encode_payload(segment: Segment) -> bytes:
    if isinstance(segment, UnknownSegment):
        return bytes(segment.payload)
    if isinstance(segment, HeaderSegment):
        return _build(_HEADER_MARKER, {}, what="TH7K")
    if isinstance(segment, HighScore):
        return _build(
            _HIGH_SCORE,
            {
                "score": int(segment.score),
                "slow": float(segment.slow),
                "shot_type": int(segment.shot_type),
                "difficulty": int(segment.difficulty),
                "progress": int(segment.progress),
                "name": bytes(segment.raw_name).ljust(9, b"\x00")[:9],
                "date": bytes(segment.date.raw).ljust(6, b"\x00")[:6],
                "continues": int(segment.continues),
            },
            what="HSCR",
        )
    if isinstance(segment, ClearData):
        return _build(
            _CLEAR_DATA,
            {
                "story_flags": bytes(segment.story_flags.values()),
                "practice_flags": bytes(segment.practice_flags.values()),
                "shot_type": int(segment.shot_type),
            },
            what="CLRD",
        )
    if isinstance(segment, SpellCardData):
        return _build(
            _SPELL_CARD,
            {
                "max_bonuses": list(segment.max_bonuses.values()),
                "card_index": int(segment.card_id) - 1,
                "card_name": bytes(segment.raw_card_name).ljust(CARD_NAME_SIZE, b"\x00")[:CARD_NAME_SIZE],
                "attempts": list(segment.attempts.values()),
                "captures": list(segment.captures.values()),
            },
            what="CATK",
        )
    if isinstance(segment, PracticeData):
        return _build(
            _PRACTICE,
            {
                "attempts": int(segment.attempts),
                "high_score": int(segment.high_score),
                "shot_type": int(segment.shot_type),
                "difficulty": int(segment.difficulty),
                "stage": int(segment.stage),
            },
            what="PSCR",
        )
    if isinstance(segment, PlayData):
        return _build(
            _PLAY_DATA,
            {
                "running_time": _time_dict(segment.running_time),
                "play_time": _time_dict(segment.play_time),
                "play_counts": [_play_count_dict(count) for count in segment.play_counts.values()],
            },
            what="PLST",
        )
    if isinstance(segment, LastName):
        return _build(
            _LAST_NAME,
            {"name": bytes(segment.raw).ljust(LAST_NAME_SIZE, b"\x00")[:LAST_NAME_SIZE]},
            what="LSNM",
        )
    if isinstance(segment, Version):
        return _build(
            _VERSION,
            {"version": bytes(segment.raw).ljust(VERSION_SIZE, b"\x00")[:VERSION_SIZE]},
            what="VRSM",
        )
    raise TypeError(f"unsupported segment type: {type(segment).__name__}")  # pragma: no cover


def dumps_segment(segment: Segment) -> bytes:
    payload = encode_payload(segment)
    if isinstance(segment, UnknownSegment):
        return build_segment(segment.signature, payload, size2=segment.size2)
    return build_segment(segment_signature(segment), payload)


def build_body(segments: Iterable[Segment | bytes]) -> bytes:
    return b"".join(seg if isinstance(seg, (bytes, bytearray)) else dumps_segment(seg) for seg in segments)


def build_score_file(
    segments: Iterable[Segment | bytes],
    *,
    version: int = 0x0B,
    key_seed: int = 0,
    checksum: int | None = None,
) -> bytes:
    """Produce an encrypted, compressed `score.dat` image holding `segments`.

    Raw `bytes` items are copied into the body verbatim (filler frames, hand-made records).
    """
    body = build_body(segments)
    encoded = compress(body)
    header_size = ENVELOPE_SIZE + FILE_HEADER_SIZE
    header = FileHeader(
        version=int(version),
        header_size=header_size,
        decompressed_total_size=header_size + len(body),
        decompressed_body_size=len(body),
        encoded_body_size=len(encoded),
    )
    return encrypt(header.to_bytes() + encoded, key_seed=key_seed, checksum=checksum)


__all__ = [
    "ClearData",
    "FILE_HEADER_SIZE",
    "FileHeader",
    "HeaderSegment",
    "HighScore",
    "LastName",
    "PlayCount",
    "PlayData",
    "PracticeData",
    "ScoreFile",
    "ScoreFormatError",
    "ScoreReader",
    "Segment",
    "SpellCardData",
    "StoredTime",
    "TruncatedError",
    "UnknownSegment",
    "Version",
    "build_body",
    "build_filler",
    "build_score_file",
    "build_segment",
    "decode_segment",
    "dumps_segment",
    "encode_payload",
    "iter_segments",
    "load",
    "loads",
    "read_score",
    "read_segment",
    "segment_signature",
]
