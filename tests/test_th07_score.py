from __future__ import annotations

import io
import struct

import pytest

from touhou.th07 import score
from touhou.th07.crypt import encrypt
from touhou.th07.errors import ScoreFormatError, TruncatedError
from touhou.th07.lzss import compress
from touhou.th07.types import ShotSlots, ShotType, Stage, StageProgress
from touhou.types import Difficulty, DifficultySlots, InvalidDiscriminantError, ShortDate


def _spell_card(card_id: int, *, attempts: list[int] | None = None, captures: list[int] | None = None) -> score.SpellCardData:
    return score.SpellCardData(
        card_id=card_id,
        raw_card_name=b"\x00" * 0x30,
        max_bonuses=ShotSlots([1000, 2000, 3000, 4000, 5000, 6000, 21000]),
        attempts=ShotSlots(attempts or [0] * 7),
        captures=ShotSlots(captures or [0] * 7),
    )


def _last_name_payload(name: bytes) -> bytes:
    return b"\x00" * 4 + name.ljust(12, b"\x00")


def test_filler_frame_is_skipped_before_real_record() -> None:
    body = score.build_filler() + score.build_segment(b"LSNM", _last_name_payload(b"MARISA"))

    segments = list(score.iter_segments(io.BytesIO(body)))

    assert len(segments) == 1
    assert isinstance(segments[0], score.LastName)
    assert segments[0].name == "MARISA"


def test_small_size1_frames_are_all_filler() -> None:
    body = (
        score.build_filler(b"HSCR", size1=0)
        + score.build_filler(b"\xff\xff\xff\xff", size1=8, size2=99)
        + score.build_segment(b"VRSM", b"\x00" * 4 + b"1.00b\x00" + b"\x00" * 10)
    )

    (segment,) = score.iter_segments(io.BytesIO(body))

    assert isinstance(segment, score.Version)
    assert segment.version == "1.00b"


def test_spell_card_id_is_stored_zero_based() -> None:
    raw = score.dumps_segment(_spell_card(41))

    assert len(raw) == 0x78
    assert raw[:4] == b"CATK"
    assert struct.unpack_from("<H", raw, 8 + 32)[0] == 40

    (decoded,) = score.iter_segments(io.BytesIO(raw))
    assert isinstance(decoded, score.SpellCardData)
    assert decoded.card_id == 41
    assert decoded.card_name() == 'Elegant Sign "Spring Kyoto Dolls"'
    assert decoded.info.difficulty == Difficulty.EASY
    assert decoded.info.stage == Stage.THREE


def test_spell_card_index_outside_table_is_rejected() -> None:
    raw = bytearray(score.dumps_segment(_spell_card(1)))
    struct.pack_into("<H", raw, 8 + 32, 200)

    with pytest.raises(InvalidDiscriminantError, match=r"invalid card_id 201 \(valid values are 1..=141\)") as info:
        list(score.iter_segments(io.BytesIO(bytes(raw))))

    assert info.value.field == "card_id"


def test_spell_card_slots_and_rates() -> None:
    card = _spell_card(5, attempts=[4, 0, 2, 0, 0, 0, 6], captures=[1, 0, 2, 0, 0, 0, 3])
    (decoded,) = score.iter_segments(io.BytesIO(score.dumps_segment(card)))

    assert decoded == card
    assert decoded.attempts[ShotType.REIMU_A] == 4
    assert decoded.captures[ShotType.MARISA_A] == 2
    assert decoded.total_attempts == 6
    assert decoded.total_captures == 3
    assert decoded.total_max_bonus == 21000
    assert decoded.capture_rate(ShotType.REIMU_A) == pytest.approx(0.25)
    assert decoded.capture_rate(ShotType.SAKUYA_B) == 0.0
    assert decoded.total_capture_rate() == pytest.approx(0.5)


def test_high_score_fields_decode() -> None:
    payload = (
        b"\x00" * 4
        + struct.pack("<If", 123456780, 0.5)
        + bytes([int(ShotType.SAKUYA_B), int(Difficulty.LUNATIC), int(StageProgress.ALL_CLEAR)])
        + b"YOUMU   \x00"
        + b"05/17\x00"
        + struct.pack("<H", 2)
    )

    (segment,) = score.iter_segments(io.BytesIO(score.build_segment(b"HSCR", payload)))

    assert isinstance(segment, score.HighScore)
    assert segment.score == 123456780
    assert segment.slow == pytest.approx(0.5)
    assert segment.shot_type == ShotType.SAKUYA_B
    assert segment.difficulty == Difficulty.LUNATIC
    assert segment.progress == StageProgress.ALL_CLEAR
    assert segment.name == "YOUMU   "
    assert segment.date == ShortDate(b"05/17\x00")
    assert (segment.date.month, segment.date.day) == (5, 17)
    assert segment.continues == 2


def test_clear_data_uses_low_byte_of_shot_word() -> None:
    payload = b"\x00" * 4 + bytes([1, 2, 3, 4, 5, 6]) + bytes([0, 0, 1, 0, 0, 0]) + struct.pack("<I", 0x1203)

    (segment,) = score.iter_segments(io.BytesIO(score.build_segment(b"CLRD", payload)))

    assert isinstance(segment, score.ClearData)
    assert segment.shot_type == ShotType.MARISA_B
    assert segment.story_flag(Difficulty.LUNATIC) == 4
    assert segment.practice_flag(Difficulty.HARD) == 1
    assert segment.story_flags == DifficultySlots([1, 2, 3, 4, 5, 6])


def test_practice_and_play_data_decode() -> None:
    practice = score.build_segment(
        b"PSCR",
        b"\x00" * 4 + struct.pack("<II", 17, 9_000_000) + bytes([2, 1, 4, 0]),
    )
    counts = b"".join(
        struct.pack("<I6IIIII", 10 + idx, *range(6), 1, 2, 3, 4) for idx in range(7)
    )
    play = score.build_segment(
        b"PLST",
        b"\x00" * 4 + struct.pack("<4I", 12, 34, 56, 789) + struct.pack("<4I", 1, 2, 3, 4) + counts,
    )

    practice_seg, play_seg = score.iter_segments(io.BytesIO(practice + play))

    assert isinstance(practice_seg, score.PracticeData)
    assert practice_seg.attempts == 17
    assert (practice_seg.shot_type, practice_seg.difficulty, practice_seg.stage) == (
        ShotType.MARISA_A,
        Difficulty.NORMAL,
        Stage.FIVE,
    )
    assert isinstance(play_seg, score.PlayData)
    assert str(play_seg.running_time) == "12:34:56.789"
    assert play_seg.play_counts_for(Difficulty.EASY).total_attempts == 10
    assert play_seg.play_counts_for(Difficulty.PHANTASM).total_attempts == 15
    assert play_seg.total_play_counts.total_attempts == 16
    assert play_seg.total_play_counts.attempts[ShotType.SAKUYA_B] == 5


def test_invalid_discriminant_names_the_field() -> None:
    payload = b"\x00" * 4 + struct.pack("<II", 1, 2) + bytes([6, 0, 0, 0])

    with pytest.raises(InvalidDiscriminantError, match=r"invalid shot_type 6 \(valid values are 0..=5\)") as info:
        list(score.iter_segments(io.BytesIO(score.build_segment(b"PSCR", payload))))

    assert info.value.field == "shot_type"
    assert info.value.value == 6


def test_progress_discriminant_lists_sparse_values() -> None:
    payload = b"\x00" * 4 + struct.pack("<If", 0, 0.0) + bytes([0, 0, 50]) + b"\x00" * 9 + b"\x00" * 6 + b"\x00\x00"

    with pytest.raises(InvalidDiscriminantError, match="invalid progress 50"):
        list(score.iter_segments(io.BytesIO(score.build_segment(b"HSCR", payload))))


def test_unknown_segment_is_preserved() -> None:
    raw = score.build_segment(b"ZZZZ", b"\x01\x02\x03", size2=0x1234)

    (segment,) = score.iter_segments(io.BytesIO(raw))

    assert segment == score.UnknownSegment(signature=b"ZZZZ", size1=11, size2=0x1234, payload=b"\x01\x02\x03")
    assert score.segment_signature(segment) == b"ZZZZ"
    assert score.dumps_segment(segment) == raw


def test_end_of_stream_inside_tag_is_clean() -> None:
    raw = score.build_segment(b"LSNM", _last_name_payload(b"REIMU")) + b"CA"

    segments = list(score.iter_segments(io.BytesIO(raw)))

    assert [type(seg) for seg in segments] == [score.LastName]


def test_end_of_stream_inside_sizes_raises() -> None:
    with pytest.raises(TruncatedError, match="segment sizes"):
        list(score.iter_segments(io.BytesIO(b"CATK\x78")))


def test_truncated_payload_raises() -> None:
    raw = score.dumps_segment(_spell_card(1))[:-10]

    with pytest.raises(TruncatedError, match="CATK payload"):
        list(score.iter_segments(io.BytesIO(raw)))


def test_short_declared_payload_raises_truncated() -> None:
    with pytest.raises(TruncatedError, match="LSNM"):
        list(score.iter_segments(io.BytesIO(score.build_segment(b"LSNM", b"\x00" * 6))))


def test_longer_payload_keeps_trailing_bytes_unread() -> None:
    raw = score.build_segment(b"LSNM", _last_name_payload(b"SAKUYA") + b"extra") + score.build_segment(
        b"LSNM", _last_name_payload(b"REIMU")
    )

    first, second = score.iter_segments(io.BytesIO(raw))

    assert isinstance(first, score.LastName) and first.name == "SAKUYA"
    assert isinstance(second, score.LastName) and second.name == "REIMU"


def test_score_file_roundtrip_is_valid() -> None:
    segments = [
        score.HeaderSegment(),
        score.LastName(raw=b"PLAYER"),
        _spell_card(41, attempts=[3, 0, 0, 0, 0, 0, 3], captures=[1, 0, 0, 0, 0, 0, 1]),
        score.Version(raw=b"1.00b"),
    ]
    raw = score.build_score_file(segments, key_seed=0x42)

    parsed = score.loads(raw)

    assert parsed.is_valid
    assert parsed.header.header_size == 28
    assert parsed.header.decompressed_body_size == parsed.header.decompressed_total_size - 28
    assert [type(seg) for seg in parsed.segments] == [
        score.HeaderSegment,
        score.LastName,
        score.SpellCardData,
        score.Version,
    ]
    assert parsed.segments[2].card_id == 41
    assert parsed.segments[1].name == "PLAYER"


def test_checksum_mismatch_still_decodes() -> None:
    raw = score.build_score_file([score.LastName(raw=b"X")], checksum=0xBEEF)

    parsed = score.loads(raw)

    assert not parsed.is_valid
    assert parsed.expected_checksum == 0xBEEF
    assert isinstance(parsed.segments[0], score.LastName)


def test_reader_drains_trailing_ciphertext_into_checksum() -> None:
    body = score.dumps_segment(score.LastName(raw=b"A"))
    encoded = compress(body)
    header = score.FileHeader(
        version=0x0B,
        header_size=28,
        decompressed_total_size=28 + len(body),
        decompressed_body_size=len(body),
        encoded_body_size=len(encoded),
    )
    plaintext = header.to_bytes() + encoded + b"trailer"
    reader = score.ScoreReader(io.BytesIO(encrypt(plaintext, key_seed=9)))

    segments = list(reader)

    assert len(segments) == 1
    assert reader.exhausted
    assert reader.is_valid()


def test_truncated_header_returns_no_header() -> None:
    plaintext = score.FileHeader(
        version=0x0B,
        header_size=28,
        decompressed_total_size=28,
        decompressed_body_size=0,
        encoded_body_size=0,
    ).to_bytes()
    raw = encrypt(plaintext[:10])

    with pytest.raises(TruncatedError, match="file header"):
        score.loads(raw)


def test_score_format_error_is_a_value_error() -> None:
    assert issubclass(TruncatedError, ScoreFormatError)
    assert issubclass(ScoreFormatError, ValueError)
