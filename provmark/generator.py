"""
Generator — the single writer that advances a chain.

State:
    seed       32 bytes, the chain's root secret (fixed)
    chain_id   link_length bytes, the genesis key (fixed)
    next_seq   sequence number of the next mark
    rng_state  32-byte Xoshiro256** state after every revealed key was
               drawn, before the next one is

Each ``next()`` advances the stream by exactly one key width. The next
key (committed to, not revealed) is drawn from a throwaway copy of the
stream, so a generator restored from ``rng_state`` reproduces the chain.

Exactly one live generator may advance a chain. Resuming from stale
state forks the chain, and nothing here can detect it. Persist the new
state before publishing the mark it produced (see provmark.state).
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Callable

from provmark import RNG_STATE_LENGTH, SEED_LENGTH
from provmark.crypto import extend_key
from provmark.errors import ShapeError
from provmark.mark import ProvenanceMark
from provmark.resolution import Resolution
from provmark.rng import Xoshiro256StarStar

log = logging.getLogger(__name__)


class ProvenanceMarkGenerator:
    """Deterministic mark emitter for one chain.

    Usage:
        gen = ProvenanceMarkGenerator.from_passphrase(Resolution.MEDIUM, "secret")
        genesis = gen.next(date)
        state = gen.to_dict()        # persist this before publishing genesis
        ...
        gen = ProvenanceMarkGenerator.from_dict(state)
        mark = gen.next(later_date)
    """

    def __init__(
        self,
        resolution: Resolution,
        seed: bytes,
        chain_id: bytes,
        next_seq: int = 0,
        rng_state: bytes | None = None,
    ) -> None:
        resolution = Resolution(resolution)
        if len(seed) != SEED_LENGTH:
            raise ShapeError(f"Seed must be {SEED_LENGTH} bytes, got {len(seed)}")
        if len(chain_id) != resolution.link_length:
            raise ShapeError(
                f"chain_id must be {resolution.link_length} bytes for "
                f"{resolution.name} resolution, got {len(chain_id)}"
            )
        if rng_state is None:
            rng_state = seed
        if len(rng_state) != RNG_STATE_LENGTH:
            raise ShapeError(
                f"rng_state must be {RNG_STATE_LENGTH} bytes, got {len(rng_state)}"
            )
        if next_seq < 0:
            raise ValueError(f"next_seq must be non-negative, got {next_seq}")

        self._resolution = resolution
        self._seed = bytes(seed)
        self._chain_id = bytes(chain_id)
        self._next_seq = next_seq
        self._rng = Xoshiro256StarStar(bytes(rng_state))

    @classmethod
    def from_seed(cls, resolution: Resolution, seed: bytes) -> ProvenanceMarkGenerator:
        """New chain whose chain_id is the first draw from the seeded stream."""
        resolution = Resolution(resolution)
        if len(seed) != SEED_LENGTH:
            raise ShapeError(f"Seed must be {SEED_LENGTH} bytes, got {len(seed)}")
        rng = Xoshiro256StarStar(bytes(seed))
        chain_id = rng.next_bytes(resolution.link_length)
        gen = cls(resolution, seed, chain_id, 0, rng.state)
        log.debug("New %s chain from seed, chain_id=%s", resolution.name, chain_id.hex())
        return gen

    @classmethod
    def from_passphrase(
        cls,
        resolution: Resolution,
        passphrase: str,
        randbytes: Callable[[int], bytes] = secrets.token_bytes,
    ) -> ProvenanceMarkGenerator:
        """New chain seeded from a passphrase, chain_id drawn from ``randbytes``."""
        resolution = Resolution(resolution)
        seed = extend_key(passphrase.encode("utf-8"))
        chain_id = randbytes(resolution.link_length)
        gen = cls(resolution, seed, chain_id)
        log.debug("New %s chain from passphrase, chain_id=%s",
                  resolution.name, gen.chain_id.hex())
        return gen

    # --- state ---

    @property
    def resolution(self) -> Resolution:
        return self._resolution

    @property
    def seed(self) -> bytes:
        return self._seed

    @property
    def chain_id(self) -> bytes:
        return self._chain_id

    @property
    def next_seq(self) -> int:
        return self._next_seq

    @property
    def rng_state(self) -> bytes:
        return self._rng.state

    # --- transition ---

    def next(self, date: datetime | None = None, info: Any = None) -> ProvenanceMark:
        """Emit the next mark and advance the state.

        The stream and counter only move once the mark has been built, so a
        seq overflow or an out-of-range date leaves the generator untouched.
        """
        if date is None:
            date = datetime.now(timezone.utc)

        link_length = self._resolution.link_length
        rng = self._rng.copy()
        if self._next_seq == 0:
            key = self._chain_id
        else:
            key = rng.next_bytes(link_length)

        # Peek at the next key without advancing the stream
        next_key = rng.copy().next_bytes(link_length)

        mark = ProvenanceMark.create(
            self._resolution,
            key=key,
            next_key=next_key,
            chain_id=self._chain_id,
            seq=self._next_seq,
            date=date,
            info=info,
        )

        self._rng = rng
        self._next_seq += 1
        log.debug("Emitted %s seq=%d", mark, mark.seq)
        return mark

    # --- serialization ---

    def to_dict(self) -> dict:
        return {
            "resolution": int(self._resolution),
            "seed": self._seed.hex(),
            "chain_id": self._chain_id.hex(),
            "next_seq": self._next_seq,
            "rng_state": self.rng_state.hex(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> ProvenanceMarkGenerator:
        return cls(
            resolution=Resolution.from_tag(d["resolution"]),
            seed=bytes.fromhex(d["seed"]),
            chain_id=bytes.fromhex(d["chain_id"]),
            next_seq=int(d["next_seq"]),
            rng_state=bytes.fromhex(d["rng_state"]),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProvenanceMarkGenerator):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (
            f"ProvenanceMarkGenerator(resolution={self._resolution.name}, "
            f"chain_id={self._chain_id.hex()}, next_seq={self._next_seq})"
        )
