from __future__ import annotations

import io
from typing import Final

from .errors import ByteSource

DICT_SIZE: Final[int] = 0x2000
DICT_MASK: Final[int] = DICT_SIZE - 1
OFFSET_BITS: Final[int] = 13
LENGTH_BITS: Final[int] = 4
MIN_MATCH: Final[int] = 3
DICT_START: Final[int] = 1

_READ_CHUNK = 0x400


class _BitReader:
    __slots__ = ("_source", "_remaining", "_buf", "_pos", "_bit")

    def __init__(self, source: ByteSource, limit: int | None) -> None:
        self._source = source
        self._remaining = limit
        self._buf = b""
        self._pos = 0
        self._bit = 0x80

    def _fill(self) -> bool:
        want = _READ_CHUNK if self._remaining is None else min(_READ_CHUNK, self._remaining)
        if want <= 0:
            return False
        chunk = self._source.read(want)
        if not chunk:
            return False
        if self._remaining is not None:
            self._remaining -= len(chunk)
        self._buf = chunk
        self._pos = 0
        return True

    def read_bits(self, count: int) -> int | None:
        value = 0
        for _ in range(count):
            if self._pos >= len(self._buf) and not self._fill():
                return None
            value <<= 1
            if self._buf[self._pos] & self._bit:
                value |= 1
            self._bit >>= 1
            if self._bit == 0:
                self._bit = 0x80
                self._pos += 1
        return value


class StreamDecompressor:
    """LZSS body decoder exposing decompressed bytes through `read`.

    Decoding stops at the end-of-stream token, when the encoded input runs out,
    or once `decompressed_size` bytes have been produced.
    """

    def __init__(
        self,
        source: ByteSource,
        *,
        encoded_size: int | None = None,
        decompressed_size: int | None = None,
    ) -> None:
        self._bits = _BitReader(source, encoded_size)
        self._limit = decompressed_size
        self._dict = bytearray(DICT_SIZE)
        self._dict_pos = DICT_START
        self._pending = bytearray()
        self._produced = 0
        self._done = False

    @property
    def produced(self) -> int:
        return self._produced

    @property
    def finished(self) -> bool:
        return self._done and not self._pending

    def _emit(self, value: int) -> None:
        self._pending.append(value)
        self._dict[self._dict_pos] = value
        self._dict_pos = (self._dict_pos + 1) & DICT_MASK
        self._produced += 1
        if self._limit is not None and self._produced >= self._limit:
            self._done = True

    def _step(self) -> None:
        flag = self._bits.read_bits(1)
        if flag is None:
            self._done = True
            return
        if flag:
            literal = self._bits.read_bits(8)
            if literal is None:
                self._done = True
                return
            self._emit(literal)
            return
        offset = self._bits.read_bits(OFFSET_BITS)
        if not offset:
            self._done = True
            return
        length = self._bits.read_bits(LENGTH_BITS)
        if length is None:
            self._done = True
            return
        for idx in range(length + MIN_MATCH):
            self._emit(self._dict[(offset + idx) & DICT_MASK])
            if self._done:
                return

    def read(self, size: int = -1, /) -> bytes:
        if self._limit is not None and self._limit <= 0:
            self._done = True
        while not self._done and (size < 0 or len(self._pending) < size):
            self._step()
        if size < 0 or size >= len(self._pending):
            out = bytes(self._pending)
            self._pending.clear()
            return out
        out = bytes(self._pending[:size])
        del self._pending[:size]
        return out


class BitWriter:
    __slots__ = ("_out", "_acc", "_count")

    def __init__(self) -> None:
        self._out = bytearray()
        self._acc = 0
        self._count = 0

    def write(self, value: int, count: int) -> None:
        for shift in range(count - 1, -1, -1):
            self._acc = (self._acc << 1) | ((int(value) >> shift) & 1)
            self._count += 1
            if self._count == 8:
                self._out.append(self._acc)
                self._acc = 0
                self._count = 0

    def getvalue(self) -> bytes:
        out = bytearray(self._out)
        if self._count:
            out.append((self._acc << (8 - self._count)) & 0xFF)
        return bytes(out)


def write_literal(writer: BitWriter, value: int) -> None:
    writer.write(1, 1)
    writer.write(value & 0xFF, 8)


def write_match(writer: BitWriter, offset: int, length: int) -> None:
    if not (MIN_MATCH <= length < MIN_MATCH + (1 << LENGTH_BITS)):
        raise ValueError(f"match length out of range: {length}")
    if not (0 < offset <= DICT_MASK):
        raise ValueError(f"match offset out of range: {offset}")
    writer.write(0, 1)
    writer.write(offset, OFFSET_BITS)
    writer.write(length - MIN_MATCH, LENGTH_BITS)


def write_end(writer: BitWriter) -> None:
    writer.write(0, 1)
    writer.write(0, OFFSET_BITS)


def compress(data: bytes) -> bytes:
    """Encode `data` as literals only, followed by the end token."""
    writer = BitWriter()
    for value in data:
        write_literal(writer, value)
    write_end(writer)
    return writer.getvalue()


def decompress(data: bytes, *, decompressed_size: int | None = None) -> bytes:
    return StreamDecompressor(io.BytesIO(data), decompressed_size=decompressed_size).read()


__all__ = [
    "BitWriter",
    "DICT_SIZE",
    "StreamDecompressor",
    "compress",
    "decompress",
    "write_end",
    "write_literal",
    "write_match",
]
