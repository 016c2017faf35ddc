"""
Engine - Game session rules.

The engine is the runtime that:
1. Selects the next image pair for a session
2. Scores each answer
3. Advances and completes sessions
4. Keeps pair statistics up to date
5. Derives leaderboards and player summaries
"""

from .catalog import AutoPairResult, PairCatalog, PairPage, PairStats
from .errors import (
    GameError,
    NotFound,
    SessionNotFound,
    PairNotFound,
    ImageNotFound,
    InvalidPairComposition,
    DuplicatePair,
    PairInUse,
    DuplicateDailyAttempt,
    SessionAlreadyCompleted,
    NoPairsAvailable,
    IntegrityViolation,
)
from .scoring import calculate_score, score_breakdown, rank_for_score
from .selector import PairSelector, SelectionCriteria, SelectionWeights
from .session_engine import SessionEngine, DailyStatus
from .stats import StatsAggregator, LeaderboardEntry, PlayerStats, GameStats

__all__ = [
    "AutoPairResult",
    "PairCatalog",
    "PairPage",
    "PairStats",
    "GameError",
    "NotFound",
    "SessionNotFound",
    "PairNotFound",
    "ImageNotFound",
    "InvalidPairComposition",
    "DuplicatePair",
    "PairInUse",
    "DuplicateDailyAttempt",
    "SessionAlreadyCompleted",
    "NoPairsAvailable",
    "IntegrityViolation",
    "calculate_score",
    "score_breakdown",
    "rank_for_score",
    "PairSelector",
    "SelectionCriteria",
    "SelectionWeights",
    "SessionEngine",
    "DailyStatus",
    "StatsAggregator",
    "LeaderboardEntry",
    "PlayerStats",
    "GameStats",
]
