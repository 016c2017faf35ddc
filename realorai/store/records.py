"""
Records - Entities persisted by the entity store.

Four stored entities:
- Image: one uploaded picture, AI-generated or real
- ImagePair: one AI image + one real image shown together
- GameSession: one play-through in daily or streak mode
- GameRound: one player decision on one pair

Records are plain dataclasses handed out by value. Stores replace a record
on update instead of mutating it in place, so callers never observe a
half-applied change.

Result records (GameResult, NextPair, SubmitResult, ...) are derived, never
stored.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class ImageCategory(Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"
    OBJECT = "object"
    ABSTRACT = "abstract"


class GameMode(Enum):
    DAILY = "daily"
    STREAK = "streak"


class PlayerChoice(Enum):
    AI = "ai"
    REAL = "real"


class SessionState(Enum):
    """Lifecycle of a game session."""
    CREATED = "created"  # Never stored
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"  # Terminal


@dataclass(frozen=True)
class ImageDimensions:
    width: int
    height: int


@dataclass
class Image:
    """An uploaded image. usage_count only ever grows."""
    id: str
    filename: str
    category: ImageCategory
    difficulty: int  # 1-5
    is_ai_generated: bool
    quality_score: float  # 1-10
    usage_count: int = 0
    dimensions: ImageDimensions = field(
        default_factory=lambda: ImageDimensions(width=1, height=1)
    )
    tags: list[str] = field(default_factory=list)
    source_info: str = ""
    upload_date: datetime = field(default_factory=utcnow)


@dataclass
class ImagePair:
    """
    One AI image and one real image served together.

    difficulty and category are fixed at creation. The four statistic
    fields move together through PairCatalog.record_outcome().
    """
    pair_id: str
    ai_image_id: str
    real_image_id: str
    category: ImageCategory
    difficulty: int
    created_at: datetime = field(default_factory=utcnow)
    success_rate: float = 0.0
    total_attempts: int = 0
    correct_guesses: int = 0
    average_response_time: float = 0.0  # ms
    is_active: bool = True


@dataclass
class GameSession:
    """A single play-through."""
    session_id: str
    mode: GameMode
    start_time: datetime
    player_id: str | None = None
    end_time: datetime | None = None
    total_score: int = 0
    rounds_completed: int = 0
    current_streak: int = 0
    is_completed: bool = False
    daily_challenge_date: str | None = None  # YYYY-MM-DD, daily mode only

    @property
    def state(self) -> SessionState:
        if self.is_completed:
            return SessionState.COMPLETED
        return SessionState.IN_PROGRESS


@dataclass(frozen=True)
class GameRound:
    """One answered pair. Immutable once created."""
    round_id: str
    session_id: str
    pair_id: str
    player_choice: PlayerChoice
    correct_answer: PlayerChoice
    is_correct: bool
    response_time: int  # ms
    points_earned: int
    round_number: int  # 1-based
    timestamp: datetime


# =============================================================================
# Derived results
# =============================================================================

@dataclass(frozen=True)
class FinalStats:
    correct_answers: int
    total_rounds: int
    accuracy_percentage: float  # 2 decimals
    average_response_time: int  # ms, nearest integer


@dataclass(frozen=True)
class GameResult:
    """End-of-game summary."""
    session_id: str
    total_score: int
    rounds_completed: int
    current_streak: int
    is_completed: bool
    final_stats: FinalStats


@dataclass(frozen=True)
class PairWithImages:
    pair: ImagePair
    ai_image: Image
    real_image: Image


@dataclass(frozen=True)
class NextPair:
    """What the player should be shown next."""
    session_id: str
    pair: PairWithImages
    round_number: int
    current_streak: int
    total_score: int
    target_difficulty: int | None = None


@dataclass(frozen=True)
class SubmitResult:
    round: GameRound
    is_correct: bool
    points_earned: int
    session: GameSession
    game_result: GameResult | None = None

    @property
    def session_completed(self) -> bool:
        return self.game_result is not None
