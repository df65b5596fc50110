"""
Provenance mark — one immutable record in a hash chain.

Message layout:
    key || obfuscate(key, chain_id || hash || seq_bytes || date_bytes || info_bytes)

Commitment:
    hash = SHA-256(key || next_key || chain_id || seq_bytes || date_bytes || info_bytes)
           truncated to the resolution's link length

Mark N's hash commits to mark N+1's key before N+1 exists. When N+1 is
published it reveals that key, so anyone holding both can check that
nothing in N was altered and that N+1 really follows it.

Decoding only checks syntax. Chain validity is a separate question,
answered by ``precedes`` and ``is_sequence_valid`` with a boolean.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from provmark import IDENTIFIER_LENGTH
from provmark.crypto import obfuscate, sha256_prefix
from provmark.errors import InfoError, MarkError, RangeError, ShapeError
from provmark.info import decode_info, encode_info
from provmark.resolution import Resolution

log = logging.getLogger(__name__)

__all__ = [
    "ProvenanceMark",
    "MarkError",
    "ShapeError",
    "RangeError",
    "InfoError",
    "is_sequence_valid",
]


def _commitment(
    resolution: Resolution,
    key: bytes,
    next_key: bytes,
    chain_id: bytes,
    seq_bytes: bytes,
    date_bytes: bytes,
    info_bytes: bytes,
) -> bytes:
    return sha256_prefix(
        resolution.link_length,
        key, next_key, chain_id, seq_bytes, date_bytes, info_bytes,
    )


def _check_link(resolution: Resolution, name: str, value: bytes) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise ShapeError(f"{name} must be bytes, got {type(value).__name__}")
    if len(value) != resolution.link_length:
        raise ShapeError(
            f"{name} must be {resolution.link_length} bytes for "
            f"{resolution.name} resolution, got {len(value)}"
        )
    return bytes(value)


@dataclass(frozen=True, repr=False)
class ProvenanceMark:
    """A decoded or freshly built mark.

    Build with ``ProvenanceMark.create(...)`` (generator path) or
    ``ProvenanceMark.from_message(resolution, message)`` (receive path).
    Two marks are equal when their resolution and all byte fields match.

    Attributes:
        resolution: Layout of this mark.
        key: Secret revealed by this mark (the previous mark committed to it).
        hash: Commitment to the next mark's key and to this mark's fields.
        chain_id: Chain identity, equal to the genesis mark's key.
        seq_bytes / date_bytes / info_bytes: Encoded field bytes.
        seq: Sequence number, 0 at genesis.
        date: UTC timestamp at the resolution's granularity.
        message: The full wire message.
    """

    resolution: Resolution
    key: bytes
    hash: bytes
    chain_id: bytes
    seq_bytes: bytes
    date_bytes: bytes
    info_bytes: bytes
    seq: int = field(compare=False)
    date: datetime = field(compare=False)
    message: bytes = field(compare=False)

    # --- construction ---

    @classmethod
    def create(
        cls,
        resolution: Resolution,
        key: bytes,
        next_key: bytes,
        chain_id: bytes,
        seq: int,
        date: datetime,
        info: Any = None,
    ) -> ProvenanceMark:
        """Build a mark whose hash commits to ``next_key``.

        Raises:
            ShapeError: key, next_key or chain_id is not link_length bytes.
            RangeError: seq or date does not fit the resolution.
            TypeError: info is not CBOR-encodable.
        """
        resolution = Resolution(resolution)
        key = _check_link(resolution, "key", key)
        next_key = _check_link(resolution, "next_key", next_key)
        chain_id = _check_link(resolution, "chain_id", chain_id)

        seq_bytes = resolution.encode_seq(seq)
        date_bytes = resolution.encode_date(date)
        info_bytes = encode_info(info)

        hash_ = _commitment(
            resolution, key, next_key, chain_id, seq_bytes, date_bytes, info_bytes
        )
        payload = chain_id + hash_ + seq_bytes + date_bytes + info_bytes
        message = key + obfuscate(key, payload)

        return cls(
            resolution=resolution,
            key=key,
            hash=hash_,
            chain_id=chain_id,
            seq_bytes=seq_bytes,
            date_bytes=date_bytes,
            info_bytes=info_bytes,
            seq=seq,
            date=resolution.decode_date(date_bytes),
            message=message,
        )

    @classmethod
    def from_message(cls, resolution: Resolution, message: bytes) -> ProvenanceMark:
        """Decode a wire message. Checks syntax only, not chain validity.

        Raises:
            ShapeError: message shorter than the resolution's fixed length.
            RangeError: seq or date bytes do not decode (e.g. February 30).
            InfoError: trailing info bytes are not a single CBOR item.
        """
        resolution = Resolution(resolution)
        message = bytes(message)
        if len(message) < resolution.fixed_length:
            raise ShapeError(
                f"Message is {len(message)} bytes, {resolution.name} resolution "
                f"needs at least {resolution.fixed_length}"
            )

        key = message[resolution.key_range]
        payload = obfuscate(key, message[resolution.link_length:])

        chain_id = payload[resolution.chain_id_range]
        hash_ = payload[resolution.hash_range]
        seq_bytes = payload[resolution.seq_range]
        date_bytes = payload[resolution.date_range]
        info_bytes = payload[resolution.info_range]

        seq = resolution.decode_seq(seq_bytes)
        date = resolution.decode_date(date_bytes)
        if info_bytes:
            try:
                decode_info(info_bytes)
            except ValueError as e:
                raise InfoError(f"Invalid info payload: {e}") from e

        return cls(
            resolution=resolution,
            key=key,
            hash=hash_,
            chain_id=chain_id,
            seq_bytes=seq_bytes,
            date_bytes=date_bytes,
            info_bytes=info_bytes,
            seq=seq,
            date=date,
            message=message,
        )

    @classmethod
    def from_message_or_none(
        cls, resolution: Resolution, message: bytes
    ) -> ProvenanceMark | None:
        """Like ``from_message`` but returns None for undecodable input."""
        try:
            return cls.from_message(resolution, message)
        except MarkError as e:
            log.warning("Rejected %s mark message: %s", Resolution(resolution).name, e)
            return None

    # --- fields ---

    @property
    def info(self) -> Any:
        """Decoded info payload, or None if the mark carries none."""
        return decode_info(self.info_bytes)

    @property
    def has_info(self) -> bool:
        return bool(self.info_bytes)

    @property
    def identifier(self) -> str:
        """Short hex identifier: the leading bytes of the hash."""
        return self.hash[:IDENTIFIER_LENGTH].hex()

    @property
    def is_genesis(self) -> bool:
        return self.seq == 0 and hmac.compare_digest(self.key, self.chain_id)

    # --- validation ---

    def commits_to(self, next_key: bytes) -> bool:
        """True if this mark's hash was computed over ``next_key``."""
        expected = _commitment(
            self.resolution,
            self.key,
            next_key,
            self.chain_id,
            self.seq_bytes,
            self.date_bytes,
            self.info_bytes,
        )
        return hmac.compare_digest(self.hash, expected)

    def precedes(self, next_mark: ProvenanceMark) -> bool:
        """True if ``next_mark`` is the immediate successor of this mark.

        ``next_mark.chain_id`` is not compared directly: this mark's hash was
        computed over its own chain_id, so a different chain cannot reveal a
        key that matches it.
        """
        if next_mark.resolution != self.resolution:
            return False
        # next_mark can't be a genesis
        if next_mark.seq == 0 or hmac.compare_digest(next_mark.key, next_mark.chain_id):
            return False
        if next_mark.seq != self.seq + 1:
            return False
        if self.date > next_mark.date:
            return False
        return self.commits_to(next_mark.key)

    # --- serialization ---

    def to_dict(self) -> dict:
        return {"resolution": int(self.resolution), "message": self.message.hex()}

    @classmethod
    def from_dict(cls, d: dict) -> ProvenanceMark:
        try:
            resolution = Resolution.from_tag(d["resolution"])
            message = bytes.fromhex(d["message"])
        except (KeyError, TypeError, ValueError) as e:
            raise MarkError(f"Invalid mark dict: {e}") from e
        return cls.from_message(resolution, message)

    # --- display ---

    def _date_text(self) -> str:
        d = self.date
        if (d.hour, d.minute, d.second, d.microsecond) == (0, 0, 0, 0):
            return d.date().isoformat()
        if d.microsecond:
            return d.isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return d.isoformat(timespec="seconds").replace("+00:00", "Z")

    def __str__(self) -> str:
        return f"ProvenanceMark({self.identifier})"

    def __repr__(self) -> str:
        parts = [
            f"key: {self.key.hex()}",
            f"hash: {self.hash.hex()}",
            f"chainID: {self.chain_id.hex()}",
            f"seq: {self.seq}",
            f"date: {self._date_text()}",
        ]
        if self.info_bytes:
            parts.append(f"info: {self.info!r}")
        return "ProvenanceMark(" + ", ".join(parts) + ")"


def is_sequence_valid(marks: Iterable[ProvenanceMark]) -> bool:
    """True if ``marks`` form an unbroken, ordered run of one chain.

    Needs at least two marks. A run starting at seq 0 must start with a
    genesis mark.
    """
    marks = list(marks)
    if len(marks) < 2:
        return False
    first = marks[0]
    if first.seq == 0 and not first.is_genesis:
        log.debug("Sequence starts at seq 0 with a non-genesis mark %s", first)
        return False
    for prev, nxt in zip(marks, marks[1:]):
        if not prev.precedes(nxt):
            log.debug("Chain broken between %s (seq %d) and %s (seq %d)",
                        prev, prev.seq, nxt, nxt.seq)
            return False
    return True
