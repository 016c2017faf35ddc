"""
Tests for the pair selector.

Tests:
- Candidate filtering
- Weighting and shortlist
- Random pick within the shortlist
- Exclusion set
"""

import random

import pytest

from ..engine.errors import PairNotFound
from ..engine.selector import PairSelector, SelectionCriteria
from ..store import ImageCategory


class TestCandidates:
    """Tests for candidate filtering."""

    def test_inactive_pairs_skipped(self, store, make_pair):
        """Active-only criteria never return an inactive pair."""
        active = make_pair(2)
        make_pair(2, active=False)

        selector = PairSelector(store)
        candidates = selector.candidates(SelectionCriteria())
        assert [p.pair_id for p in candidates] == [active.pair_id]

    def test_inactive_included_on_request(self, store, make_pair):
        make_pair(2)
        make_pair(2, active=False)

        selector = PairSelector(store)
        assert len(selector.candidates(SelectionCriteria(active_only=False))) == 2

    def test_difficulty_and_category_filters(self, store, make_pair):
        make_pair(1, "portrait")
        wanted = make_pair(3, "landscape")
        make_pair(3, "portrait")

        selector = PairSelector(store)
        criteria = SelectionCriteria(category=ImageCategory.LANDSCAPE, difficulty=3)
        assert [p.pair_id for p in selector.candidates(criteria)] == [wanted.pair_id]

    def test_exclusion(self, store, make_pair):
        first = make_pair(1)
        second = make_pair(1)

        selector = PairSelector(store)
        criteria = SelectionCriteria(exclude_pair_ids=frozenset({first.pair_id}))
        assert [p.pair_id for p in selector.candidates(criteria)] == [second.pair_id]


class TestWeighting:
    """Tests for candidate weighting."""

    def test_balanced_and_underused_pairs_rank_first(self, store, make_pair):
        """Near-50% and under-used pairs outrank easy ones; ties keep input order."""
        balanced = make_pair(1)
        easy = make_pair(1)
        fresh = make_pair(1)
        store.update_pair(balanced.pair_id, total_attempts=10, correct_guesses=5, success_rate=50.0)
        store.update_pair(easy.pair_id, total_attempts=10, correct_guesses=9, success_rate=90.0)

        selector = PairSelector(store)
        weighted = selector.weigh(selector.candidates(SelectionCriteria()))

        assert [wp.pair.pair_id for wp in weighted] == [
            balanced.pair_id, fresh.pair_id, easy.pair_id,
        ]
        assert [wp.weight for wp in weighted] == pytest.approx([1.5, 1.5, 1.1])

    def test_empty_candidates(self, store):
        assert PairSelector(store).weigh([]) == []

    def test_shortlist_is_top_five(self, store, make_pair):
        pairs = [make_pair(2) for _ in range(8)]
        # The three most played pairs drop to the bottom
        for pair in pairs[:3]:
            store.update_pair(pair.pair_id, total_attempts=20, correct_guesses=20, success_rate=100.0)

        selector = PairSelector(store)
        shortlist = selector.shortlist(SelectionCriteria())

        assert len(shortlist) == 5
        assert {p.pair_id for p in shortlist} == {p.pair_id for p in pairs[3:]}

    def test_invalid_shortlist_size(self, store):
        with pytest.raises(ValueError):
            PairSelector(store, shortlist_size=0)


class TestSelect:
    """Tests for select."""

    def test_no_match_raises(self, store, make_pair):
        """The selector does not relax criteria itself."""
        make_pair(1)
        selector = PairSelector(store)

        with pytest.raises(PairNotFound):
            selector.select(SelectionCriteria(difficulty=4))

    def test_empty_store_raises(self, store):
        with pytest.raises(PairNotFound):
            PairSelector(store).select()

    def test_pick_comes_from_shortlist(self, store, make_pair):
        for _ in range(8):
            make_pair(3)

        selector = PairSelector(store, rng=random.Random(7))
        allowed = {p.pair_id for p in selector.shortlist(SelectionCriteria())}
        picks = {selector.select().pair_id for _ in range(50)}

        assert picks <= allowed

    def test_pick_is_not_fixed(self, store, make_pair):
        """Repeated selection spreads over more than one pair."""
        for _ in range(5):
            make_pair(3)

        selector = PairSelector(store, rng=random.Random(3))
        picks = {selector.select().pair_id for _ in range(100)}

        assert len(picks) > 1

    def test_shortlist_of_one_is_deterministic(self, store, make_pair):
        easy = make_pair(2)
        best = make_pair(2)
        store.update_pair(easy.pair_id, total_attempts=4, correct_guesses=4, success_rate=100.0)
        store.update_pair(best.pair_id, total_attempts=4, correct_guesses=2, success_rate=50.0)

        selector = PairSelector(store, shortlist_size=1)
        assert selector.select().pair_id == best.pair_id

    def test_excluded_pairs_never_returned(self, store, make_pair):
        """Excluded ids never come back while another candidate exists."""
        pairs = [make_pair(2) for _ in range(6)]
        excluded = frozenset(p.pair_id for p in pairs[:5])

        selector = PairSelector(store, rng=random.Random(11))
        criteria = SelectionCriteria(exclude_pair_ids=excluded)
        for _ in range(30):
            assert selector.select(criteria).pair_id == pairs[5].pair_id

    def test_seeded_rng_is_reproducible(self, store, make_pair):
        for _ in range(6):
            make_pair(2)

        first = PairSelector(store, rng=random.Random(99))
        second = PairSelector(store, rng=random.Random(99))

        assert [first.select().pair_id for _ in range(10)] == [
            second.select().pair_id for _ in range(10)
        ]
