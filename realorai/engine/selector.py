"""
Pair Selector - Picks the next pair to show.

Two stages:
1. Deterministic shortlist: weigh every candidate, keep the top K
2. Random pick: choose uniformly among the shortlist

Weighting favors pairs that are under-used and pairs whose success rate
is close to 50% (those discriminate best between players). Pairs that are
too easy or too hard drift down the list.

The selector never relaxes criteria by itself. When nothing matches it
raises PairNotFound and the caller decides how to fall back.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import random

from ..store.base import EntityStore
from ..store.records import ImageCategory, ImagePair
from .errors import PairNotFound

logger = logging.getLogger(__name__)


SHORTLIST_SIZE = 5


@dataclass(frozen=True)
class SelectionCriteria:
    """What the caller wants. Empty criteria match any active pair."""
    category: ImageCategory | None = None
    difficulty: int | None = None
    exclude_pair_ids: frozenset[str] = field(default_factory=frozenset)
    active_only: bool = True

    def describe(self) -> str:
        parts = []
        if self.category:
            parts.append(f"category={self.category.value}")
        if self.difficulty is not None:
            parts.append(f"difficulty={self.difficulty}")
        if self.exclude_pair_ids:
            parts.append(f"excluding {len(self.exclude_pair_ids)}")
        if not self.active_only:
            parts.append("including inactive")
        return ", ".join(parts) or "any"


@dataclass
class SelectionWeights:
    """
    Weights used to rank candidates.

    base + underused_bonus (attempts below the candidate mean)
         + (balance_center - |success_rate - balance_center|) / balance_scale
    """
    base: float = 1.0
    underused_bonus: float = 0.5
    balance_center: float = 50.0
    balance_scale: float = 100.0


@dataclass(frozen=True)
class WeightedPair:
    pair: ImagePair
    weight: float


class PairSelector:
    """
    Weighted-random pair selection over an entity store.

    Usage:
        selector = PairSelector(store, rng=random.Random(42))
        pair = selector.select(SelectionCriteria(difficulty=2))
    """

    def __init__(
        self,
        store: EntityStore,
        rng: random.Random | None = None,
        weights: SelectionWeights | None = None,
        shortlist_size: int = SHORTLIST_SIZE,
    ):
        if shortlist_size < 1:
            raise ValueError("shortlist_size must be >= 1")
        self.store = store
        self.rng = rng or random.Random()
        self.weights = weights or SelectionWeights()
        self.shortlist_size = shortlist_size

    def candidates(self, criteria: SelectionCriteria) -> list[ImagePair]:
        """Pairs matching the criteria, in store order."""
        pairs = self.store.list_pairs(
            category=criteria.category,
            difficulty=criteria.difficulty,
            is_active=True if criteria.active_only else None,
        )
        return [p for p in pairs if p.pair_id not in criteria.exclude_pair_ids]

    def weigh(self, candidates: list[ImagePair]) -> list[WeightedPair]:
        """
        Weigh candidates, highest weight first.

        Ties keep their input order.
        """
        if not candidates:
            return []

        w = self.weights
        mean_attempts = sum(p.total_attempts for p in candidates) / len(candidates)

        weighted = []
        for pair in candidates:
            weight = w.base
            if pair.total_attempts < mean_attempts:
                weight += w.underused_bonus
            distance = abs(pair.success_rate - w.balance_center)
            weight += (w.balance_center - distance) / w.balance_scale
            weighted.append(WeightedPair(pair=pair, weight=weight))

        weighted.sort(key=lambda wp: wp.weight, reverse=True)
        return weighted

    def shortlist(self, criteria: SelectionCriteria) -> list[ImagePair]:
        """The top candidates select() chooses among."""
        weighted = self.weigh(self.candidates(criteria))
        return [wp.pair for wp in weighted[:self.shortlist_size]]

    def select(self, criteria: SelectionCriteria | None = None) -> ImagePair:
        """
        Select one pair.

        Raises:
            PairNotFound: no pair matches the criteria
        """
        criteria = criteria or SelectionCriteria()
        top = self.shortlist(criteria)
        if not top:
            logger.debug("No pairs match criteria: %s", criteria.describe())
            raise PairNotFound(criteria.describe())
        return self.rng.choice(top)
