"""
Tests for provmark.generator — the single-writer chain state machine.

TestGeneratorConstruction — shapes, constructors, chain_id sources
TestGeneratorTransition   — one-step lookahead, determinism, resume
TestGeneratorFailure      — range errors leave state untouched
TestLowScenario           — 10 daily marks at LOW resolution
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from unittest import TestCase

import pytest

from provmark.crypto import extend_key
from provmark.errors import RangeError, ShapeError
from provmark.generator import ProvenanceMarkGenerator
from provmark.mark import ProvenanceMark, is_sequence_valid
from provmark.resolution import Resolution
from provmark.rng import Xoshiro256StarStar

from conftest import BASE_DATE, SEED


def _dates(n):
    return [BASE_DATE + timedelta(days=i) for i in range(n)]


# ══════════════════════════════════════════════════════════════════════════
# Construction
# ══════════════════════════════════════════════════════════════════════════


class TestGeneratorConstruction(TestCase):

    def test_explicit_seed_and_chain_id(self):
        gen = ProvenanceMarkGenerator(Resolution.MEDIUM, SEED, b"\x07" * 8)
        assert gen.next_seq == 0
        assert gen.rng_state == SEED
        assert gen.chain_id == b"\x07" * 8

    def test_bad_seed(self):
        with pytest.raises(ShapeError, match="Seed"):
            ProvenanceMarkGenerator(Resolution.LOW, b"\x00" * 16, b"\x01" * 4)

    def test_bad_chain_id(self):
        with pytest.raises(ShapeError, match="chain_id"):
            ProvenanceMarkGenerator(Resolution.HIGH, SEED, b"\x01" * 16)

    def test_bad_rng_state(self):
        with pytest.raises(ShapeError, match="rng_state"):
            ProvenanceMarkGenerator(Resolution.LOW, SEED, b"\x01" * 4, 3, b"\x00" * 8)

    def test_negative_next_seq(self):
        with pytest.raises(ValueError):
            ProvenanceMarkGenerator(Resolution.LOW, SEED, b"\x01" * 4, -1)

    def test_from_seed_draws_chain_id(self):
        gen = ProvenanceMarkGenerator.from_seed(Resolution.QUARTILE, SEED)
        rng = Xoshiro256StarStar(SEED)
        assert gen.chain_id == rng.next_bytes(16)
        assert gen.rng_state == rng.state
        assert gen.seed == SEED

    def test_from_passphrase(self):
        calls = []

        def randbytes(n):
            calls.append(n)
            return b"\xab" * n

        gen = ProvenanceMarkGenerator.from_passphrase(Resolution.MEDIUM, "Wolf", randbytes)
        assert calls == [8]
        assert gen.seed == extend_key(b"Wolf")
        assert gen.chain_id == b"\xab" * 8
        assert gen.rng_state == gen.seed

    def test_from_passphrase_default_randomness(self):
        a = ProvenanceMarkGenerator.from_passphrase(Resolution.HIGH, "Wolf")
        b = ProvenanceMarkGenerator.from_passphrase(Resolution.HIGH, "Wolf")
        assert a.seed == b.seed
        assert a.chain_id != b.chain_id


# ══════════════════════════════════════════════════════════════════════════
# Transition
# ══════════════════════════════════════════════════════════════════════════


def test_stream_advances_one_key_per_mark(resolution):
    gen = ProvenanceMarkGenerator.from_seed(resolution, SEED)
    shadow = Xoshiro256StarStar(gen.rng_state)
    n = resolution.link_length

    genesis = gen.next(BASE_DATE)
    assert genesis.key == gen.chain_id
    assert gen.rng_state == shadow.state  # genesis reveals chain_id, no draw

    for i in range(1, 5):
        mark = gen.next(BASE_DATE + timedelta(days=i))
        assert mark.key == shadow.next_bytes(n)
        assert gen.rng_state == shadow.state


def test_mark_commits_to_next_key(resolution):
    gen = ProvenanceMarkGenerator.from_seed(resolution, SEED)
    marks = [gen.next(d) for d in _dates(4)]
    for a, b in zip(marks, marks[1:]):
        assert a.commits_to(b.key)


def test_determinism(resolution):
    a = ProvenanceMarkGenerator.from_seed(resolution, SEED)
    b = ProvenanceMarkGenerator.from_dict(a.to_dict())
    infos = [None, "one", {"n": 2}, None, [3]]
    for date, info in zip(_dates(5), infos):
        assert a.next(date, info).message == b.next(date, info).message
    assert a == b


def test_resume_through_json_each_step(resolution):
    straight = ProvenanceMarkGenerator.from_seed(resolution, SEED)
    expected = [straight.next(d) for d in _dates(10)]

    encoded = json.dumps(ProvenanceMarkGenerator.from_seed(resolution, SEED).to_dict())
    resumed = []
    for d in _dates(10):
        gen = ProvenanceMarkGenerator.from_dict(json.loads(encoded))
        resumed.append(gen.next(d))
        encoded = json.dumps(gen.to_dict(), sort_keys=True)

    assert resumed == expected
    assert is_sequence_valid(resumed)
    assert json.loads(encoded)["next_seq"] == 10


class TestGeneratorTransition(TestCase):

    def test_seq_increments(self):
        gen = ProvenanceMarkGenerator.from_seed(Resolution.MEDIUM, SEED)
        seqs = [gen.next(d).seq for d in _dates(5)]
        assert seqs == [0, 1, 2, 3, 4]
        assert gen.next_seq == 5

    def test_default_date_is_now(self):
        gen = ProvenanceMarkGenerator.from_seed(Resolution.MEDIUM, SEED)
        before = datetime.now(timezone.utc).replace(microsecond=0)
        mark = gen.next()
        assert before <= mark.date <= datetime.now(timezone.utc)

    def test_info_is_carried(self):
        gen = ProvenanceMarkGenerator.from_seed(Resolution.HIGH, SEED)
        mark = gen.next(BASE_DATE, info={"artifact": "firmware-1.2.bin"})
        decoded = ProvenanceMark.from_message(Resolution.HIGH, mark.message)
        assert decoded.info == {"artifact": "firmware-1.2.bin"}

    def test_resume_mid_chain(self):
        gen = ProvenanceMarkGenerator.from_seed(Resolution.QUARTILE, SEED)
        first = [gen.next(d) for d in _dates(3)]
        resumed = ProvenanceMarkGenerator(
            Resolution.QUARTILE, gen.seed, gen.chain_id, gen.next_seq, gen.rng_state
        )
        rest = [resumed.next(d) for d in _dates(6)[3:]]
        assert is_sequence_valid(first + rest)

    def test_stale_state_forks(self):
        gen = ProvenanceMarkGenerator.from_seed(Resolution.MEDIUM, SEED)
        gen.next(BASE_DATE)
        stale = gen.to_dict()
        published = gen.next(BASE_DATE + timedelta(days=1))

        fork = ProvenanceMarkGenerator.from_dict(stale).next(BASE_DATE + timedelta(days=2))
        # same seq and key, different content: two marks both claiming seq 1
        assert fork.seq == published.seq
        assert fork.key == published.key
        assert fork != published

    def test_repr_hides_secrets(self):
        gen = ProvenanceMarkGenerator.from_seed(Resolution.LOW, SEED)
        text = repr(gen)
        assert SEED.hex() not in text
        assert gen.chain_id.hex() in text


# ══════════════════════════════════════════════════════════════════════════
# Failure
# ══════════════════════════════════════════════════════════════════════════


class TestGeneratorFailure(TestCase):

    def test_seq_overflow_leaves_state(self):
        gen = ProvenanceMarkGenerator(Resolution.LOW, SEED, b"\x01\x02\x03\x04", 65535)
        mark = gen.next(BASE_DATE)
        assert mark.seq == 65535
        state = gen.to_dict()
        with pytest.raises(RangeError):
            gen.next(BASE_DATE)
        assert gen.to_dict() == state

    def test_date_out_of_range_leaves_state(self):
        gen = ProvenanceMarkGenerator.from_seed(Resolution.LOW, SEED)
        gen.next(BASE_DATE)
        state = gen.to_dict()
        with pytest.raises(RangeError):
            gen.next(datetime(2151, 1, 1, tzinfo=timezone.utc))
        assert gen.to_dict() == state
        # the chain continues as if the failed call never happened
        straight = ProvenanceMarkGenerator.from_seed(Resolution.LOW, SEED)
        straight.next(BASE_DATE)
        assert gen.next(BASE_DATE).message == straight.next(BASE_DATE).message

    def test_bad_info_leaves_state(self):
        gen = ProvenanceMarkGenerator.from_seed(Resolution.MEDIUM, SEED)
        state = gen.to_dict()
        with pytest.raises(TypeError):
            gen.next(BASE_DATE, info=object())
        assert gen.to_dict() == state


# ══════════════════════════════════════════════════════════════════════════
# LOW scenario
# ══════════════════════════════════════════════════════════════════════════


class TestLowScenario:

    def test_ten_daily_marks(self, low_chain):
        assert is_sequence_valid(low_chain)
        assert [m.resolution for m in low_chain] == [Resolution.LOW] * 10
        assert all(len(m.message) == 16 for m in low_chain)

    def test_decoded_seqs(self, low_chain):
        decoded = [ProvenanceMark.from_message(Resolution.LOW, m.message) for m in low_chain]
        assert [m.seq for m in decoded] == list(range(10))
        assert is_sequence_valid(decoded)

    def test_genesis_only_first(self, low_chain):
        assert [m.is_genesis for m in low_chain] == [True] + [False] * 9
        assert low_chain[0].key.hex() == "090bf2f8"
        assert all(m.chain_id.hex() == "090bf2f8" for m in low_chain)

    def test_dates_are_days(self, low_chain):
        assert low_chain[0].date == datetime(2023, 6, 20, tzinfo=timezone.utc)
        assert low_chain[9].date == datetime(2023, 6, 29, tzinfo=timezone.utc)

    def test_not_reflexive(self, low_chain):
        assert not low_chain[1].precedes(low_chain[0])
