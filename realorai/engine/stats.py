"""
Stats Aggregator - Leaderboards and player summaries.

Read-only views derived from stored sessions and rounds. Nothing here
writes to the store.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
import math

from ..store.base import EntityStore
from ..store.records import GameMode, GameSession
from .scoring import RankInfo, rank_for_score


ANONYMOUS_PLAYER = "anonymous"
DEFAULT_LEADERBOARD_LIMIT = 10


@dataclass
class LeaderboardEntry:
    rank: int
    player_id: str
    best_score: int
    best_streak: int
    total_games: int
    last_played: datetime


@dataclass(frozen=True)
class PlayerStats:
    player_id: str
    total_games: int = 0
    daily_games: int = 0
    streak_games: int = 0
    total_score: int = 0
    best_streak: int = 0
    average_accuracy: float = 0.0  # percent, 2 decimals
    average_response_time: int = 0  # ms
    last_played: datetime | None = None


@dataclass(frozen=True)
class GameStats:
    total_games: int
    daily_games: int
    streak_games: int
    completed_games: int
    average_score: float
    top_streak: int


class StatsAggregator:
    """
    Usage:
        stats = StatsAggregator(store)
        for entry in stats.leaderboard(GameMode.STREAK, limit=10):
            print(entry.rank, entry.player_id, entry.best_score)
    """

    def __init__(self, store: EntityStore):
        self.store = store

    def leaderboard(
        self,
        mode: GameMode | str | None = None,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
    ) -> list[LeaderboardEntry]:
        """
        Best completed session per player, highest score first.

        Sessions without a player id share one "anonymous" row. Ties keep
        the order in which the players first reached their best score.
        """
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        sessions = self.store.list_sessions(
            mode=GameMode(mode) if mode else None,
            is_completed=True,
        )
        sessions.sort(key=lambda s: s.end_time or s.start_time)

        by_player: dict[str, LeaderboardEntry] = {}
        best_at: dict[str, datetime] = {}
        for session in sessions:
            player_id = session.player_id or ANONYMOUS_PLAYER
            played_at = session.end_time or session.start_time
            entry = by_player.get(player_id)
            if entry is None:
                by_player[player_id] = LeaderboardEntry(
                    rank=0,
                    player_id=player_id,
                    best_score=session.total_score,
                    best_streak=session.current_streak,
                    total_games=1,
                    last_played=played_at,
                )
                best_at[player_id] = played_at
                continue

            entry.total_games += 1
            entry.best_streak = max(entry.best_streak, session.current_streak)
            entry.last_played = max(entry.last_played, played_at)
            if session.total_score > entry.best_score:
                entry.best_score = session.total_score
                best_at[player_id] = played_at

        ranked = sorted(
            by_player.values(),
            key=lambda e: (-e.best_score, best_at[e.player_id]),
        )[:limit]
        for position, entry in enumerate(ranked, start=1):
            entry.rank = position
        return ranked

    def player_stats(self, player_id: str) -> PlayerStats:
        sessions = self.store.list_sessions(player_id=player_id)
        if not sessions:
            return PlayerStats(player_id=player_id)

        session_ids = {s.session_id for s in sessions}
        rounds = [r for r in self.store.list_rounds() if r.session_id in session_ids]
        correct = sum(1 for r in rounds if r.is_correct)
        accuracy = correct / len(rounds) * 100 if rounds else 0.0
        mean_time = sum(r.response_time for r in rounds) / len(rounds) if rounds else 0.0

        return PlayerStats(
            player_id=player_id,
            total_games=len(sessions),
            daily_games=sum(1 for s in sessions if s.mode is GameMode.DAILY),
            streak_games=sum(1 for s in sessions if s.mode is GameMode.STREAK),
            total_score=sum(s.total_score for s in sessions),
            best_streak=max(s.current_streak for s in sessions),
            average_accuracy=round(accuracy, 2),
            average_response_time=math.floor(mean_time + 0.5),
            last_played=max(s.start_time for s in sessions),
        )

    def player_rank(
        self,
        player_id: str,
        mode: GameMode | str | None = None,
    ) -> RankInfo | None:
        """Where a player's best score sits among every player's best. None if unranked."""
        board = self.leaderboard(mode, limit=_UNLIMITED)
        scores = [e.best_score for e in board]
        for entry in board:
            if entry.player_id == player_id:
                return rank_for_score(entry.best_score, scores)
        return None

    def game_stats(self) -> GameStats:
        sessions = self.store.list_sessions()
        completed = [s for s in sessions if s.is_completed]
        average = (
            sum(s.total_score for s in completed) / len(completed) if completed else 0.0
        )
        return GameStats(
            total_games=len(sessions),
            daily_games=_count_mode(sessions, GameMode.DAILY),
            streak_games=_count_mode(sessions, GameMode.STREAK),
            completed_games=len(completed),
            average_score=round(average, 2),
            top_streak=max((s.current_streak for s in sessions), default=0),
        )


_UNLIMITED = 2**31


def _count_mode(sessions: list[GameSession], mode: GameMode) -> int:
    return sum(1 for s in sessions if s.mode is mode)
