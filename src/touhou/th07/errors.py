from __future__ import annotations

from typing import Protocol


class ScoreFormatError(ValueError):
    pass


class TruncatedError(ScoreFormatError):
    """End of stream inside a fixed-size field or a declared payload."""


class ByteSource(Protocol):
    def read(self, size: int = -1, /) -> bytes: ...


def read_up_to(source: ByteSource, size: int) -> bytes:
    """Read `size` bytes, stopping early only at end of stream."""
    chunks: list[bytes] = []
    remaining = int(size)
    while remaining > 0:
        chunk = source.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_exact(source: ByteSource, size: int, *, what: str) -> bytes:
    data = read_up_to(source, size)
    if len(data) != int(size):
        raise TruncatedError(f"unexpected EOF reading {what}: wanted {int(size)} bytes, got {len(data)}")
    return data


__all__ = [
    "ByteSource",
    "ScoreFormatError",
    "TruncatedError",
    "read_exact",
    "read_up_to",
]
