"""
Score Calculator - Points for a single answer.

Pure functions only: no clock, no randomness, no store access.

Rule:
    incorrect -> 0
    correct   -> floor((BASE + difficulty * 20 + time_bonus) * (1 + streak * 0.1))

    time_bonus = max(0, 50 - 2 * min(response_seconds, 30))

The streak multiplier has no ceiling. A 40-streak earns 5x points.

Arithmetic is done with Fraction so the floor never lands one point low
because of binary float error (e.g. 170 * 1.1).
"""

from __future__ import annotations
from dataclasses import dataclass
from fractions import Fraction
import math


BASE_SCORE = 100
DIFFICULTY_MULTIPLIER = 20
MAX_TIME_BONUS = 50
TIME_BONUS_PER_SECOND = 2
MAX_RESPONSE_SECONDS = 30
STREAK_BONUS_TENTHS = 1  # +0.1 per streak step


@dataclass(frozen=True)
class ScoreBreakdown:
    """Components of a score, for result screens and debugging."""
    base_score: int
    difficulty_bonus: int
    time_bonus: float
    streak_multiplier: float
    final_score: int


@dataclass(frozen=True)
class RankInfo:
    rank: int
    percentile: float
    total_players: int


def _validate(response_time_ms: float, difficulty: int, current_streak: int):
    if response_time_ms < 0:
        raise ValueError(f"response_time must be >= 0, got {response_time_ms}")
    if not 1 <= difficulty <= 5:
        raise ValueError(f"difficulty must be 1-5, got {difficulty}")
    if current_streak < 0:
        raise ValueError(f"current_streak must be >= 0, got {current_streak}")


def _time_bonus(response_time_ms: float) -> Fraction:
    seconds = min(Fraction(response_time_ms) / 1000, MAX_RESPONSE_SECONDS)
    return max(Fraction(0), MAX_TIME_BONUS - TIME_BONUS_PER_SECOND * seconds)


def _streak_multiplier(current_streak: int) -> Fraction:
    return Fraction(10 + current_streak * STREAK_BONUS_TENTHS, 10)


def calculate_score(
    is_correct: bool,
    response_time_ms: float,
    difficulty: int,
    current_streak: int = 0,
) -> int:
    """
    Points earned for one answer.

    Args:
        is_correct: Whether the player picked the AI image
        response_time_ms: Time to answer in milliseconds
        difficulty: Pair difficulty, 1-5
        current_streak: Streak before this answer is counted

    Returns:
        Non-negative integer score
    """
    _validate(response_time_ms, difficulty, current_streak)
    if not is_correct:
        return 0

    raw = BASE_SCORE + difficulty * DIFFICULTY_MULTIPLIER + _time_bonus(response_time_ms)
    return math.floor(raw * _streak_multiplier(current_streak))


def score_breakdown(
    is_correct: bool,
    response_time_ms: float,
    difficulty: int,
    current_streak: int = 0,
) -> ScoreBreakdown:
    """Same rule as calculate_score(), with every component exposed."""
    _validate(response_time_ms, difficulty, current_streak)
    return ScoreBreakdown(
        base_score=BASE_SCORE,
        difficulty_bonus=difficulty * DIFFICULTY_MULTIPLIER,
        time_bonus=float(_time_bonus(response_time_ms)),
        streak_multiplier=float(_streak_multiplier(current_streak)),
        final_score=calculate_score(
            is_correct, response_time_ms, difficulty, current_streak
        ),
    )


def rank_for_score(score: int, all_scores: list[int]) -> RankInfo:
    """
    Position of a score among all scores (1 = best).

    Ties share the better rank. Percentile is the share of players ranked
    at or below this one, rounded to 2 decimals.
    """
    if not all_scores:
        return RankInfo(rank=1, percentile=100.0, total_players=0)

    ordered = sorted(all_scores, reverse=True)
    rank = next(
        (i + 1 for i, s in enumerate(ordered) if s <= score),
        len(ordered) + 1,
    )
    total = len(ordered)
    percentile = max(0.0, (total - rank + 1) / total * 100)
    return RankInfo(rank=rank, percentile=round(percentile, 2), total_players=total)
