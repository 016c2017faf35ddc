"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between the web client and the engine.

Error Codes:
- SESSION_NOT_FOUND / PAIR_NOT_FOUND / IMAGE_NOT_FOUND: lookup missed
- SESSION_ALREADY_COMPLETED: session is finished, no more rounds
- DUPLICATE_DAILY_ATTEMPT: today's daily challenge already played
- NO_PAIRS_AVAILABLE: the catalog has no active pair at all
- NO_MATCHING_PAIRS: pairs exist but none could be served
- INVALID_PAIR_COMPOSITION: a pair needs one AI and one real image
- DUPLICATE_PAIR: these two images are already paired
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class GameModeName(str, Enum):
    DAILY = "daily"
    STREAK = "streak"


class ChoiceName(str, Enum):
    AI = "ai"
    REAL = "real"


class CategoryName(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"
    OBJECT = "object"
    ABSTRACT = "abstract"


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    PAIR_NOT_FOUND = "PAIR_NOT_FOUND"
    IMAGE_NOT_FOUND = "IMAGE_NOT_FOUND"
    SESSION_ALREADY_COMPLETED = "SESSION_ALREADY_COMPLETED"
    DUPLICATE_DAILY_ATTEMPT = "DUPLICATE_DAILY_ATTEMPT"
    NO_PAIRS_AVAILABLE = "NO_PAIRS_AVAILABLE"
    NO_MATCHING_PAIRS = "NO_MATCHING_PAIRS"
    INVALID_PAIR_COMPOSITION = "INVALID_PAIR_COMPOSITION"
    DUPLICATE_PAIR = "DUPLICATE_PAIR"
    PAIR_IN_USE = "PAIR_IN_USE"
    INTEGRITY_VIOLATION = "INTEGRITY_VIOLATION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class ImageInfo(BaseModel):
    """Image metadata for display and admin screens."""
    id: str
    filename: str
    category: CategoryName
    difficulty: int = Field(ge=1, le=5)
    is_ai_generated: bool
    quality_score: float
    usage_count: int = 0
    width: int = 1
    height: int = 1
    tags: list[str] = Field(default_factory=list)


class PairInfo(BaseModel):
    """Pair with its play statistics."""
    pair_id: str
    ai_image_id: str
    real_image_id: str
    category: CategoryName
    difficulty: int
    success_rate: float = 0.0
    total_attempts: int = 0
    correct_guesses: int = 0
    average_response_time: int = Field(0, description="Milliseconds, rounded")
    is_active: bool = True


class RoundInfo(BaseModel):
    """One answered round."""
    round_id: str
    pair_id: str
    round_number: int
    player_choice: ChoiceName
    correct_answer: ChoiceName
    is_correct: bool
    response_time: int
    points_earned: int
    timestamp: datetime


class FinalStatsInfo(BaseModel):
    correct_answers: int
    total_rounds: int
    accuracy_percentage: float
    average_response_time: int


# =============================================================================
# Request Models
# =============================================================================

class StartGameRequest(BaseModel):
    """Request to start a game session."""
    mode: GameModeName = Field(..., description="daily or streak")
    player_id: Optional[str] = Field(
        None, min_length=1, description="Omit to play anonymously"
    )


class SubmitRoundRequest(BaseModel):
    """The player's answer for the pair they were shown."""
    pair_id: str = Field(..., description="Pair returned by next-pair")
    player_choice: ChoiceName = Field(..., description="Which image the player thinks is AI")
    response_time: int = Field(..., ge=0, description="Milliseconds taken to answer")


class RegisterImageRequest(BaseModel):
    """Metadata for an image whose file is already stored."""
    filename: str = Field(..., min_length=1)
    category: CategoryName
    difficulty: int = Field(..., ge=1, le=5)
    is_ai_generated: bool
    quality_score: float = Field(..., ge=1, le=10)
    source_info: str = ""
    width: int = Field(1, ge=1)
    height: int = Field(1, ge=1)
    tags: list[str] = Field(default_factory=list)


class CreatePairRequest(BaseModel):
    ai_image_id: str
    real_image_id: str


class AutoPairRequest(BaseModel):
    """Pair unpaired AI images with the closest real images."""
    category: Optional[CategoryName] = Field(None, description="Limit to one category")


# =============================================================================
# Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")
    api_version: str = Field("v1", description="API version")


class SessionResponse(BaseModel):
    """Session state."""
    session_id: str
    player_id: Optional[str] = None
    mode: GameModeName
    status: SessionStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    total_score: int = 0
    rounds_completed: int = 0
    current_streak: int = 0
    is_completed: bool = False
    daily_challenge_date: Optional[str] = None
    api_version: str = "v1"


class NextPairResponse(BaseModel):
    """The pair to show for the next round."""
    session_id: str
    pair_id: str
    round_number: int
    ai_image: ImageInfo
    real_image: ImageInfo
    difficulty: int
    current_streak: int = 0
    total_score: int = 0
    api_version: str = "v1"


class GameResultResponse(BaseModel):
    """End-of-game summary."""
    session_id: str
    total_score: int
    rounds_completed: int
    current_streak: int
    is_completed: bool
    final_stats: FinalStatsInfo
    api_version: str = "v1"


class SubmitRoundResponse(BaseModel):
    """Outcome of one answer."""
    round: RoundInfo
    is_correct: bool
    points_earned: int
    session: SessionResponse
    session_completed: bool = False
    game_result: Optional[GameResultResponse] = Field(
        None, description="Present when this answer ended the session"
    )
    api_version: str = "v1"


class LeaderboardEntryInfo(BaseModel):
    rank: int
    player_id: str
    best_score: int
    best_streak: int
    total_games: int
    last_played: datetime


class LeaderboardResponse(BaseModel):
    mode: Optional[GameModeName] = None
    entries: list[LeaderboardEntryInfo] = Field(default_factory=list)
    count: int = 0
    api_version: str = "v1"


class PlayerStatsResponse(BaseModel):
    player_id: str
    total_games: int = 0
    daily_games: int = 0
    streak_games: int = 0
    total_score: int = 0
    best_streak: int = 0
    average_accuracy: float = 0.0
    average_response_time: int = 0
    last_played: Optional[datetime] = None
    rank: Optional[int] = None
    percentile: Optional[float] = None
    api_version: str = "v1"


class DailyStatusResponse(BaseModel):
    player_id: str
    date: str = Field(..., description="YYYY-MM-DD")
    available: bool
    session_id: Optional[str] = None
    api_version: str = "v1"


class PairStatsResponse(BaseModel):
    total_pairs: int
    active_pairs: int
    category_distribution: dict[str, int] = Field(default_factory=dict)
    difficulty_distribution: dict[int, int] = Field(default_factory=dict)
    average_success_rate: float = 0.0
    average_response_time: float = 0.0
    api_version: str = "v1"


class AutoPairResponse(BaseModel):
    created: int
    pairs: list[PairInfo] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    api_version: str = "v1"


class IntegrityReportResponse(BaseModel):
    healthy: bool
    issues: list[str] = Field(default_factory=list)
    api_version: str = "v1"


class GameStatsResponse(BaseModel):
    total_games: int
    daily_games: int
    streak_games: int
    completed_games: int
    average_score: float
    top_streak: int
    api_version: str = "v1"


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    counts: dict[str, int] = Field(default_factory=dict)
