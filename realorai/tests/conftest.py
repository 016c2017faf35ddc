"""
Pytest fixtures for Real or AI tests.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from ..engine import PairCatalog, PairSelector, SessionEngine, StatsAggregator
from ..store import InMemoryStore


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def store() -> InMemoryStore:
    """Fresh store per test."""
    return InMemoryStore()


@pytest.fixture
def catalog(store, clock) -> PairCatalog:
    return PairCatalog(store, clock=clock)


@pytest.fixture
def make_pair(catalog):
    """Factory: create a pair of the given difficulty (the AI image sets it)."""
    counter = iter(range(10_000))

    def _make(difficulty=1, category="portrait", active=True):
        n = next(counter)
        ai = catalog.register_image(f"ai-{n}.webp", category, difficulty, True, 7)
        real = catalog.register_image(f"real-{n}.webp", category, 1, False, 8)
        pair = catalog.create_pair(ai.id, real.id)
        if not active:
            pair = catalog.toggle_active(pair.pair_id)
        return pair

    return _make


@pytest.fixture
def seeded_pairs(make_pair):
    """Six active pairs covering difficulties 1-5, two of them at difficulty 1."""
    return [
        make_pair(1, "portrait"),
        make_pair(1, "landscape"),
        make_pair(2, "object"),
        make_pair(3, "abstract"),
        make_pair(4, "portrait"),
        make_pair(5, "landscape"),
    ]


@pytest.fixture
def engine(store, catalog, clock, rng) -> SessionEngine:
    return SessionEngine(
        store,
        selector=PairSelector(store, rng=rng),
        catalog=catalog,
        clock=clock,
    )


@pytest.fixture
def stats(store) -> StatsAggregator:
    return StatsAggregator(store)


@pytest.fixture
def play_round(engine):
    """Fetch the next pair for a session and answer it."""

    def _play(session_id, choice="ai", response_time=1000):
        shown = engine.next_pair(session_id)
        return engine.submit_round(
            session_id, shown.pair.pair.pair_id, choice, response_time
        )

    return _play
