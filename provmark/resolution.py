"""
Resolution — the closed set of mark layouts.

Byte layout of the plaintext message (key first, then the payload that
gets obfuscated):

    LOW (16 bytes)
    0000  0000  0000  00  00
    0123  4567  89ab  cd  ef
    key   id    hash  seq date

    MEDIUM (32 bytes)
    00000000  00000000  11111111  1111  1111
    01234567  89abcdef  01234567  89ab  cdef
    key       id        hash      seq   date

    QUARTILE (58 bytes)     16-byte links, 4-byte seq, 6-byte date
    HIGH (106 bytes)        32-byte links, 4-byte seq, 6-byte date

Payload ranges (chain_id_range .. info_range) are offsets into the
payload, i.e. the message with the leading key removed.
"""

from __future__ import annotations

from enum import IntEnum

from provmark.dates import MILLIS, PACKED_DAY, SECONDS, DateCodec
from provmark.errors import RangeError, ResolutionError, ShapeError


class Resolution(IntEnum):
    """Mark resolution. The integer value is the wire tag."""

    LOW = 0
    MEDIUM = 1
    QUARTILE = 2
    HIGH = 3

    @classmethod
    def from_tag(cls, tag: int) -> Resolution:
        try:
            return cls(tag)
        except ValueError:
            raise ResolutionError(f"Unknown resolution tag: {tag!r}") from None

    @classmethod
    def from_name(cls, name: str) -> Resolution:
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ResolutionError(f"Unknown resolution name: {name!r}") from None

    # --- widths ---

    @property
    def link_length(self) -> int:
        return _LINK_LENGTHS[self]

    @property
    def seq_bytes_length(self) -> int:
        return 2 if self is Resolution.LOW else 4

    @property
    def date_codec(self) -> DateCodec:
        return _DATE_CODECS[self]

    @property
    def date_bytes_length(self) -> int:
        return self.date_codec.length

    @property
    def fixed_length(self) -> int:
        return 3 * self.link_length + self.seq_bytes_length + self.date_bytes_length

    @property
    def max_seq(self) -> int:
        return (1 << (8 * self.seq_bytes_length)) - 1

    # --- ranges ---

    @property
    def key_range(self) -> slice:
        """Key position within the message."""
        return slice(0, self.link_length)

    @property
    def chain_id_range(self) -> slice:
        return slice(0, self.link_length)

    @property
    def hash_range(self) -> slice:
        start = self.chain_id_range.stop
        return slice(start, start + self.link_length)

    @property
    def seq_range(self) -> slice:
        start = self.hash_range.stop
        return slice(start, start + self.seq_bytes_length)

    @property
    def date_range(self) -> slice:
        start = self.seq_range.stop
        return slice(start, start + self.date_bytes_length)

    @property
    def info_range(self) -> slice:
        return slice(self.date_range.stop, None)

    # --- codecs ---

    def encode_seq(self, seq: int) -> bytes:
        if not isinstance(seq, int) or isinstance(seq, bool):
            raise TypeError(f"Sequence number must be int, got {type(seq).__name__}")
        if not 0 <= seq <= self.max_seq:
            raise RangeError(
                f"Sequence number {seq} out of range [0, {self.max_seq}] "
                f"for {self.name} resolution"
            )
        return seq.to_bytes(self.seq_bytes_length, "big")

    def decode_seq(self, data: bytes) -> int:
        if len(data) != self.seq_bytes_length:
            raise ShapeError(
                f"Sequence bytes must be {self.seq_bytes_length} bytes, got {len(data)}"
            )
        return int.from_bytes(data, "big")

    def encode_date(self, date):
        return self.date_codec.encode(date)

    def decode_date(self, data: bytes):
        return self.date_codec.decode(data)


_LINK_LENGTHS = {
    Resolution.LOW: 4,
    Resolution.MEDIUM: 8,
    Resolution.QUARTILE: 16,
    Resolution.HIGH: 32,
}

_DATE_CODECS: dict[Resolution, DateCodec] = {
    Resolution.LOW: PACKED_DAY,
    Resolution.MEDIUM: SECONDS,
    Resolution.QUARTILE: MILLIS,
    Resolution.HIGH: MILLIS,
}
