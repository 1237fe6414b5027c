"""Touhou 7 (Perfect Cherry Blossom) `score.dat` format."""

from __future__ import annotations

from .crypt import Decryptor, encrypt
from .errors import ScoreFormatError, TruncatedError
from .lzss import StreamDecompressor
from .score import (
    ClearData,
    FileHeader,
    HeaderSegment,
    HighScore,
    LastName,
    PlayData,
    PracticeData,
    ScoreFile,
    ScoreReader,
    Segment,
    SpellCardData,
    UnknownSegment,
    Version,
    build_score_file,
    build_segment,
    iter_segments,
    load,
    loads,
)
from .spellcards import SpellCardInfo, card_info, card_name
from .types import ShotSlots, ShotType, Stage, StageProgress

__all__ = [
    "ClearData",
    "Decryptor",
    "FileHeader",
    "HeaderSegment",
    "HighScore",
    "LastName",
    "PlayData",
    "PracticeData",
    "ScoreFile",
    "ScoreFormatError",
    "ScoreReader",
    "Segment",
    "ShotSlots",
    "ShotType",
    "SpellCardData",
    "SpellCardInfo",
    "Stage",
    "StageProgress",
    "StreamDecompressor",
    "TruncatedError",
    "UnknownSegment",
    "Version",
    "build_score_file",
    "build_segment",
    "card_info",
    "card_name",
    "encrypt",
    "iter_segments",
    "load",
    "loads",
]
