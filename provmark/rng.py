"""
Xoshiro256** — the deterministic stream behind a chain's keys.

The whole generator state is four uint64 words, serialized as 32
little-endian bytes. State has value semantics: ``copy()`` gives an
independent stream, which is how the generator peeks at the next key
without advancing its own stream.

Each output byte is the low byte of one 64-bit output.
"""

from __future__ import annotations

import struct

from provmark import RNG_STATE_LENGTH

_MASK64 = 0xFFFFFFFFFFFFFFFF
_STATE_STRUCT = struct.Struct("<4Q")


def _rotl(x: int, k: int) -> int:
    return ((x << k) | (x >> (64 - k))) & _MASK64


class Xoshiro256StarStar:
    """Copyable Xoshiro256** stream.

    Usage:
        rng = Xoshiro256StarStar(seed32)
        key = rng.next_bytes(16)
        peek = rng.copy().next_bytes(16)   # rng itself is unchanged
        saved = rng.state                  # 32 bytes, restorable bit-for-bit
    """

    __slots__ = ("_s",)

    def __init__(self, state: bytes) -> None:
        self._s = self.words_from_bytes(state)

    @staticmethod
    def words_from_bytes(data: bytes) -> tuple[int, int, int, int]:
        """Decode 32 bytes into four little-endian uint64 words."""
        if not isinstance(data, (bytes, bytearray)):
            raise ValueError("RNG state must be bytes")
        if len(data) != RNG_STATE_LENGTH:
            raise ValueError(
                f"RNG state must be {RNG_STATE_LENGTH} bytes, got {len(data)}"
            )
        return _STATE_STRUCT.unpack(bytes(data))

    @staticmethod
    def words_to_bytes(words: tuple[int, int, int, int]) -> bytes:
        """Encode four uint64 words as 32 little-endian bytes."""
        return _STATE_STRUCT.pack(*words)

    @property
    def state(self) -> bytes:
        return self.words_to_bytes(self._s)

    def copy(self) -> Xoshiro256StarStar:
        return Xoshiro256StarStar(self.state)

    def next_u64(self) -> int:
        s0, s1, s2, s3 = self._s
        result = (_rotl((s1 * 5) & _MASK64, 7) * 9) & _MASK64
        t = (s1 << 17) & _MASK64

        s2 ^= s0
        s3 ^= s1
        s1 ^= s2
        s0 ^= s3
        s2 ^= t
        s3 = _rotl(s3, 45)

        self._s = (s0, s1, s2, s3)
        return result

    def next_byte(self) -> int:
        return self.next_u64() & 0xFF

    def next_bytes(self, n: int) -> bytes:
        if n < 0:
            raise ValueError(f"Byte count must be non-negative, got {n}")
        return bytes(self.next_byte() for _ in range(n))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Xoshiro256StarStar):
            return NotImplemented
        return self._s == other._s

    def __repr__(self) -> str:
        return f"Xoshiro256StarStar(state={self.state.hex()})"
