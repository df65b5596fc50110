"""Shared fixtures: deterministic chains for each resolution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from provmark.generator import ProvenanceMarkGenerator
from provmark.resolution import Resolution

SEED = bytes(range(32))
BASE_DATE = datetime(2023, 6, 20, 12, 0, 0, tzinfo=timezone.utc)


def make_chain(resolution, count=10, info=None, seed=SEED):
    """Run a seeded generator for ``count`` consecutive days."""
    gen = ProvenanceMarkGenerator.from_seed(resolution, seed)
    return [gen.next(BASE_DATE + timedelta(days=i), info) for i in range(count)]


@pytest.fixture(params=list(Resolution), ids=lambda r: r.name.lower())
def resolution(request):
    return request.param


@pytest.fixture
def chain(resolution):
    return make_chain(resolution)


@pytest.fixture
def low_chain():
    gen = ProvenanceMarkGenerator(Resolution.LOW, SEED, bytes.fromhex("090bf2f8"))
    return [gen.next(BASE_DATE + timedelta(days=i)) for i in range(10)]
