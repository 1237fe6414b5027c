from __future__ import annotations

from typing import Final

from .errors import ByteSource, read_exact

ENVELOPE_SIZE: Final[int] = 4


def rotl3(value: int) -> int:
    value &= 0xFF
    return ((value << 3) | (value >> 5)) & 0xFF


class Decryptor:
    """Rotating-XOR stream over a raw score file.

    The 4-byte envelope (reserved byte, key seed, encrypted checksum) is consumed
    on construction. Every later `read` decrypts in place and folds the plain
    bytes into a wrapping 16-bit checksum; compare it against the stored one with
    `is_valid()` once the whole stream has been read.
    """

    __slots__ = ("_source", "_key", "_checksum", "_expected_checksum", "_bytes_read")

    def __init__(self, source: ByteSource) -> None:
        envelope = read_exact(source, ENVELOPE_SIZE, what="cipher envelope")
        key = rotl3(envelope[1])
        lo = envelope[2] ^ key
        key = rotl3(key + lo)
        hi = envelope[3] ^ key
        key = rotl3(key + hi)

        self._source = source
        self._key = key
        self._checksum = 0
        self._expected_checksum = lo | (hi << 8)
        self._bytes_read = 0

    def read(self, size: int = -1, /) -> bytes:
        data = self._source.read(size) if size >= 0 else self._source.read()
        if not data:
            return b""
        out = bytearray(data)
        key = self._key
        checksum = self._checksum
        for idx, value in enumerate(out):
            plain = value ^ key
            out[idx] = plain
            key = rotl3(key + plain)
            checksum = (checksum + plain) & 0xFFFF
        self._key = key
        self._checksum = checksum
        self._bytes_read += len(out)
        return bytes(out)

    def drain(self, chunk_size: int = 0x1000) -> int:
        """Decrypt and discard everything left in the source; returns the byte count."""
        total = 0
        while True:
            chunk = self.read(chunk_size)
            if not chunk:
                return total
            total += len(chunk)

    def is_valid(self) -> bool:
        return self._checksum == self._expected_checksum

    @property
    def key(self) -> int:
        return self._key

    @property
    def checksum(self) -> int:
        return self._checksum

    @property
    def expected_checksum(self) -> int:
        return self._expected_checksum

    @property
    def bytes_read(self) -> int:
        return self._bytes_read


def plain_checksum(data: bytes) -> int:
    return sum(data) & 0xFFFF


def encrypt(plaintext: bytes, *, key_seed: int = 0, reserved: int = 0, checksum: int | None = None) -> bytes:
    """Build a complete envelope + ciphertext that `Decryptor` turns back into `plaintext`.

    `checksum` overrides the stored value (defaults to the sum of `plaintext`).
    """
    stored = plain_checksum(plaintext) if checksum is None else int(checksum) & 0xFFFF
    key = rotl3(int(key_seed))
    out = bytearray((int(reserved) & 0xFF, int(key_seed) & 0xFF))
    for plain in (stored & 0xFF, stored >> 8):
        out.append(plain ^ key)
        key = rotl3(key + plain)
    for plain in plaintext:
        out.append(plain ^ key)
        key = rotl3(key + plain)
    return bytes(out)


__all__ = [
    "ENVELOPE_SIZE",
    "Decryptor",
    "encrypt",
    "plain_checksum",
    "rotl3",
]
