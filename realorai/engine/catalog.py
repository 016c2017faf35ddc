"""
Pair Catalog - Images, pairs and pair statistics.

Responsibilities:
- Register image metadata (bytes and transcoding live elsewhere)
- Build pairs, enforcing one AI + one real image at creation
- Record the outcome of a played round against a pair, atomically
- Admin helpers: automatic pairing, recommendations, deletion, integrity
  checks and dashboard summaries

record_outcome() is the only code path that touches pair statistics.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable
import logging
import math
import uuid

from ..store.base import EntityStore
from ..store.records import (
    Image,
    ImageCategory,
    ImageDimensions,
    ImagePair,
    PairWithImages,
    utcnow,
)
from .errors import (
    DuplicatePair,
    ImageNotFound,
    IntegrityViolation,
    InvalidPairComposition,
    PairInUse,
    PairNotFound,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PairPage:
    pairs: list[ImagePair]
    total: int
    page: int
    total_pages: int


@dataclass
class AutoPairResult:
    """Outcome of one auto_pair() run."""
    pairs: list[ImagePair] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def created(self) -> int:
        return len(self.pairs)


@dataclass(frozen=True)
class PairStats:
    total_pairs: int
    active_pairs: int
    category_distribution: dict[str, int] = field(default_factory=dict)
    difficulty_distribution: dict[int, int] = field(default_factory=dict)
    average_success_rate: float = 0.0
    average_response_time: float = 0.0


def success_rate(correct_guesses: int, total_attempts: int) -> float:
    """Percentage of correct guesses, 2 decimals; 0 when never played."""
    if total_attempts == 0:
        return 0.0
    return round(100 * correct_guesses / total_attempts, 2)


class PairCatalog:
    """
    Catalog of images and pairs over an entity store.

    Usage:
        catalog = PairCatalog(store)
        ai = catalog.register_image("fake.png", ImageCategory.PORTRAIT, 2, True, 7)
        real = catalog.register_image("real.png", ImageCategory.PORTRAIT, 3, False, 8)
        pair = catalog.create_pair(ai.id, real.id)
    """

    def __init__(self, store: EntityStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    # =========================================================================
    # Images
    # =========================================================================

    def register_image(
        self,
        filename: str,
        category: ImageCategory | str,
        difficulty: int,
        is_ai_generated: bool,
        quality_score: float,
        source_info: str = "",
        dimensions: ImageDimensions | None = None,
        tags: Iterable[str] | None = None,
    ) -> Image:
        if not filename:
            raise ValueError("filename is required")
        if not 1 <= difficulty <= 5:
            raise ValueError(f"difficulty must be 1-5, got {difficulty}")
        if not 1 <= quality_score <= 10:
            raise ValueError(f"quality_score must be 1-10, got {quality_score}")
        dimensions = dimensions or ImageDimensions(width=1, height=1)
        if dimensions.width < 1 or dimensions.height < 1:
            raise ValueError("image dimensions must be positive")

        image = Image(
            id=str(uuid.uuid4()),
            filename=filename,
            category=ImageCategory(category),
            difficulty=difficulty,
            is_ai_generated=is_ai_generated,
            quality_score=quality_score,
            dimensions=dimensions,
            tags=list(tags or []),
            source_info=source_info,
        )
        self.store.create_image(image)
        logger.debug("Image registered: %s (%s)", image.id, image.filename)
        return image

    def get_image(self, image_id: str) -> Image:
        image = self.store.get_image(image_id)
        if image is None:
            raise ImageNotFound(image_id)
        return image

    def increment_usage(self, image_id: str) -> Image:
        with self.store.image_lock(image_id):
            image = self.get_image(image_id)
            return self.store.update_image(image_id, usage_count=image.usage_count + 1)

    # =========================================================================
    # Pairs
    # =========================================================================

    def create_pair(self, ai_image_id: str, real_image_id: str) -> ImagePair:
        """
        Pair an AI image with a real one.

        Raises:
            ImageNotFound: either image is missing
            InvalidPairComposition: two AI / two real images, or roles swapped
            DuplicatePair: the same two images are already paired
        """
        ai_image = self.get_image(ai_image_id)
        real_image = self.get_image(real_image_id)

        if ai_image.is_ai_generated == real_image.is_ai_generated:
            raise InvalidPairComposition(
                "One image must be AI-generated and one must be real"
            )
        if not ai_image.is_ai_generated:
            raise InvalidPairComposition("AI image must be marked as AI-generated")

        # Both image locks, in id order, so the duplicate check and the insert
        # are one step for any two requests naming the same images.
        first, second = sorted((ai_image_id, real_image_id))
        with self.store.image_lock(first), self.store.image_lock(second):
            existing = self._find_pair(ai_image_id, real_image_id)
            if existing is not None:
                raise DuplicatePair(
                    f"This image pair already exists: {existing.pair_id}"
                )

            pair = ImagePair(
                pair_id=str(uuid.uuid4()),
                ai_image_id=ai_image_id,
                real_image_id=real_image_id,
                category=ai_image.category,
                difficulty=max(ai_image.difficulty, real_image.difficulty),
                created_at=self.clock(),
            )
            self.store.create_pair(pair)

        logger.info(
            "Image pair created: %s (difficulty %d, %s)",
            pair.pair_id, pair.difficulty, pair.category.value,
        )
        return pair

    def get_pair(self, pair_id: str) -> ImagePair:
        pair = self.store.get_pair(pair_id)
        if pair is None:
            raise PairNotFound(pair_id)
        return pair

    def get_pair_with_images(self, pair_id: str) -> PairWithImages:
        pair = self.get_pair(pair_id)
        ai_image = self.store.get_image(pair.ai_image_id)
        real_image = self.store.get_image(pair.real_image_id)
        if ai_image is None or real_image is None:
            logger.error("Missing images for pair %s", pair_id)
            raise IntegrityViolation(f"Pair {pair_id} references a missing image")
        return PairWithImages(pair=pair, ai_image=ai_image, real_image=real_image)

    def toggle_active(self, pair_id: str) -> ImagePair:
        with self.store.pair_lock(pair_id):
            pair = self.get_pair(pair_id)
            return self.store.update_pair(pair_id, is_active=not pair.is_active)

    def delete_pair(self, pair_id: str) -> ImagePair:
        """
        Remove a pair that was never played.

        Raises:
            PairNotFound
            PairInUse: rounds reference the pair (deactivate it instead)
        """
        with self.store.pair_lock(pair_id):
            pair = self.get_pair(pair_id)
            if any(r.pair_id == pair_id for r in self.store.list_rounds()):
                raise PairInUse(pair_id)
            self.store.delete_pair(pair_id)
        logger.info("Image pair deleted: %s", pair_id)
        return pair

    def auto_pair(self, category: ImageCategory | str | None = None) -> AutoPairResult:
        """
        Pair every AI image with the closest unpaired real image.

        A real image matches when it shares the AI image's category and its
        difficulty is within one level. Among matches the lowest
        `|difficulty gap| * 10 + usage_count` wins, earliest registered first
        on ties. Each real image is used at most once per run. AI images
        with no match are reported in `errors`; pairs that already exist are
        skipped silently.
        """
        images = self.store.list_images(
            category=ImageCategory(category) if category else None
        )
        ai_images = [i for i in images if i.is_ai_generated]
        real_images = [i for i in images if not i.is_ai_generated]

        result = AutoPairResult()
        for ai_image in ai_images:
            matches = [
                r for r in real_images
                if r.category == ai_image.category
                and abs(r.difficulty - ai_image.difficulty) <= 1
            ]
            if not matches:
                result.errors.append(
                    f"No matching real image found for AI image: {ai_image.filename}"
                )
                continue

            best = min(
                matches,
                key=lambda r: abs(r.difficulty - ai_image.difficulty) * 10 + r.usage_count,
            )
            try:
                pair = self.create_pair(ai_image.id, best.id)
            except DuplicatePair:
                continue
            result.pairs.append(pair)
            real_images.remove(best)

        logger.info("Auto-pairing created %d pairs", result.created)
        return result

    def recommended_pairs(
        self,
        category: ImageCategory | str | None = None,
        limit: int = 5,
    ) -> list[ImagePair]:
        """
        Active pairs most worth serving or reviewing, best first.

        Score (higher is better):
            max(0, 100 - total_attempts)               rarely played
          + max(0, 100 - 2 * |success_rate - 50|)      hard to call
          + max(0, 30 - days since creation)           recently added
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        now = self.clock()
        pairs = self.store.list_pairs(
            category=ImageCategory(category) if category else None,
            is_active=True,
        )

        def score(pair: ImagePair) -> float:
            age_days = (now - pair.created_at).total_seconds() / 86400
            return (
                max(0, 100 - pair.total_attempts)
                + max(0.0, 100 - abs(pair.success_rate - 50) * 2)
                + max(0.0, 30 - age_days)
            )

        pairs.sort(key=score, reverse=True)
        return pairs[:limit]

    def list_pairs(
        self,
        category: ImageCategory | str | None = None,
        difficulty: int | None = None,
        is_active: bool | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> PairPage:
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be >= 1")
        pairs = self.store.list_pairs(
            category=ImageCategory(category) if category else None,
            difficulty=difficulty,
            is_active=is_active,
        )
        pairs.sort(key=lambda p: p.created_at)
        start = (page - 1) * limit
        return PairPage(
            pairs=pairs[start:start + limit],
            total=len(pairs),
            page=page,
            total_pages=math.ceil(len(pairs) / limit),
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    def record_outcome(
        self,
        pair_id: str,
        is_correct: bool,
        response_time: float,
    ) -> ImagePair:
        """
        Apply one played round to the pair's statistics.

        attempts, correct guesses, success rate and average response time are
        read and written under the pair lock, so they always agree with each
        other. The average is rolled forward without re-reading history.
        """
        if response_time < 0:
            raise ValueError(f"response_time must be >= 0, got {response_time}")

        with self.store.pair_lock(pair_id):
            pair = self.get_pair(pair_id)
            attempts = pair.total_attempts + 1
            correct = pair.correct_guesses + (1 if is_correct else 0)
            average = (
                pair.average_response_time * pair.total_attempts + response_time
            ) / attempts

            updated = self.store.update_pair(
                pair_id,
                total_attempts=attempts,
                correct_guesses=correct,
                success_rate=success_rate(correct, attempts),
                average_response_time=average,
            )

        logger.debug(
            "Updated stats for pair %s: %.1f%% success over %d attempts",
            pair_id, updated.success_rate, attempts,
        )
        return updated

    def pair_stats(self) -> PairStats:
        pairs = self.store.list_pairs()

        categories: dict[str, int] = {}
        difficulties: dict[int, int] = {}
        for pair in pairs:
            categories[pair.category.value] = categories.get(pair.category.value, 0) + 1
            difficulties[pair.difficulty] = difficulties.get(pair.difficulty, 0) + 1

        played = [p for p in pairs if p.total_attempts > 0]
        avg_success = avg_time = 0.0
        if played:
            avg_success = sum(p.success_rate for p in played) / len(played)
            avg_time = sum(p.average_response_time for p in played) / len(played)

        return PairStats(
            total_pairs=len(pairs),
            active_pairs=sum(1 for p in pairs if p.is_active),
            category_distribution=categories,
            difficulty_distribution=difficulties,
            average_success_rate=round(avg_success, 2),
            average_response_time=round(avg_time, 2),
        )

    def integrity_issues(self) -> list[str]:
        """
        Describe every stored reference that points at nothing.

        Checks pairs against images and rounds against pairs and sessions.
        An empty list means the catalog is consistent.
        """
        issues = []
        image_ids = {i.id for i in self.store.list_images()}
        pairs = self.store.list_pairs()
        for pair in pairs:
            if pair.ai_image_id not in image_ids:
                issues.append(
                    f"Pair {pair.pair_id} references non-existent AI image {pair.ai_image_id}"
                )
            if pair.real_image_id not in image_ids:
                issues.append(
                    f"Pair {pair.pair_id} references non-existent real image {pair.real_image_id}"
                )

        pair_ids = {p.pair_id for p in pairs}
        for round_ in self.store.list_rounds():
            if round_.pair_id not in pair_ids:
                issues.append(
                    f"Round {round_.round_id} references non-existent pair {round_.pair_id}"
                )
            if self.store.get_session(round_.session_id) is None:
                issues.append(
                    f"Round {round_.round_id} references non-existent session {round_.session_id}"
                )

        if issues:
            logger.warning("Integrity check found %d issues", len(issues))
        return issues

    # =========================================================================
    # Helpers
    # =========================================================================

    def _find_pair(self, image_a: str, image_b: str) -> ImagePair | None:
        """The pair joining these two images, in either role."""
        wanted = {image_a, image_b}
        for existing in self.store.list_pairs():
            if {existing.ai_image_id, existing.real_image_id} == wanted:
                return existing
        return None
