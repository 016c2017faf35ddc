"""
Session Engine - Lifecycle of a game session.

STATE MACHINE:
    created -> in_progress -> completed (terminal)

A session is created directly in progress by start(). It completes when:
- streak mode: the player answers one round incorrectly
- daily mode: the third round is submitted, whatever the answers
- anyone calls end()

Once completed, a session accepts no further rounds and end() refuses to
re-stamp it.

CONCURRENCY:
- next_pair / submit_round / end run under the session's lock, so round
  numbers and streaks never interleave for one session.
- Pair statistics are updated under the pair's lock (PairCatalog).
- Daily start and daily completion share one guard. start() resumes an
  open daily session instead of opening a second one, so a player holds at
  most one daily session per date, and never two completed ones.

Everything a call needs is validated before its first write. A call that
raises leaves the store as it found it.
"""

from __future__ import annotations
from contextlib import nullcontext
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable
import logging
import math
import random
import threading
import uuid

from ..store.base import EntityStore
from ..store.records import (
    FinalStats,
    GameMode,
    GameResult,
    GameRound,
    GameSession,
    NextPair,
    PlayerChoice,
    SubmitResult,
    utcnow,
)
from .catalog import PairCatalog
from .errors import (
    DuplicateDailyAttempt,
    IntegrityViolation,
    NoPairsAvailable,
    PairNotFound,
    SessionAlreadyCompleted,
    SessionNotFound,
)
from .scoring import calculate_score
from .selector import PairSelector, SelectionCriteria

logger = logging.getLogger(__name__)


DAILY_ROUNDS = 3
CORRECT_ANSWER = PlayerChoice.AI  # The player must always find the AI image

# (streak below, difficulty); anything at or above the last bound is 5
STREAK_DIFFICULTY_STEPS = ((3, 1), (7, 2), (12, 3), (20, 4))
MAX_DIFFICULTY = 5

END_OVERRIDES = frozenset({"total_score", "current_streak"})


def difficulty_for_streak(streak: int) -> int:
    """Streak mode gets harder as the streak grows."""
    for bound, difficulty in STREAK_DIFFICULTY_STEPS:
        if streak < bound:
            return difficulty
    return MAX_DIFFICULTY


def daily_difficulty(levels: list[int], round_number: int) -> int | None:
    """
    Spread the available difficulty levels over the three daily rounds.

    Args:
        levels: Distinct difficulties present among active pairs
        round_number: 1-based round about to be played

    Returns:
        Target difficulty, or None when there are no levels at all
    """
    levels = sorted(set(levels))
    if not levels:
        return None
    if len(levels) == 1:
        return levels[0]
    if len(levels) == 2:
        return levels[0] if round_number <= 2 else levels[1]
    if round_number == 1:
        return levels[0]
    if round_number == 2:
        return levels[len(levels) // 2]
    return levels[-1]


def build_result(session: GameSession, rounds: list[GameRound]) -> GameResult:
    """Summarize a session from its round history."""
    total = len(rounds)
    correct = sum(1 for r in rounds if r.is_correct)
    accuracy = round(correct / total * 100, 2) if total else 0.0
    mean_time = sum(r.response_time for r in rounds) / total if total else 0.0

    return GameResult(
        session_id=session.session_id,
        total_score=session.total_score,
        rounds_completed=session.rounds_completed,
        current_streak=session.current_streak,
        is_completed=session.is_completed,
        final_stats=FinalStats(
            correct_answers=correct,
            total_rounds=total,
            accuracy_percentage=accuracy,
            average_response_time=math.floor(mean_time + 0.5),
        ),
    )


@dataclass(frozen=True)
class DailyStatus:
    """Whether a player may still play today's daily challenge."""
    player_id: str
    date: str
    available: bool
    session_id: str | None = None  # The completed session, if any


class SessionEngine:
    """
    Orchestrates sessions over an entity store.

    Usage:
        engine = SessionEngine(store)
        session = engine.start(GameMode.STREAK, player_id="alice")
        shown = engine.next_pair(session.session_id)
        result = engine.submit_round(
            session.session_id, shown.pair.pair.pair_id, "ai", response_time=2400
        )
        if result.game_result:
            print(result.game_result.total_score)
    """

    def __init__(
        self,
        store: EntityStore,
        selector: PairSelector | None = None,
        catalog: PairCatalog | None = None,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.selector = selector or PairSelector(store, rng=rng)
        self.catalog = catalog or PairCatalog(store, clock=clock)
        self.clock = clock
        self._daily_guard = threading.RLock()

    def today(self) -> str:
        """Engine-side calendar date (UTC), YYYY-MM-DD."""
        return self.clock().astimezone(timezone.utc).date().isoformat()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self, mode: GameMode | str, player_id: str | None = None) -> GameSession:
        """
        Start a session.

        A player has at most one daily session per date: starting the daily
        challenge again while today's is still open returns that session.

        Raises:
            DuplicateDailyAttempt: daily mode, and the player already
                completed today's daily challenge
        """
        mode = GameMode(mode)
        today = self.today()

        session = GameSession(
            session_id=str(uuid.uuid4()),
            mode=mode,
            start_time=self.clock(),
            player_id=player_id,
            daily_challenge_date=today if mode is GameMode.DAILY else None,
        )

        with self._daily_scope(session):
            if mode is GameMode.DAILY and player_id:
                if self._completed_daily(player_id, today):
                    raise DuplicateDailyAttempt(player_id, today)
                open_daily = self._open_daily(player_id, today)
                if open_daily is not None:
                    logger.info(
                        "Resuming daily session %s for %s",
                        open_daily.session_id, player_id,
                    )
                    return open_daily
            self.store.create_session(session)

        logger.info(
            "Game session started: %s (%s, player=%s)",
            session.session_id, mode.value, player_id or "anonymous",
        )
        return session

    def get_session(self, session_id: str) -> GameSession:
        session = self.store.get_session(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def get_rounds(self, session_id: str) -> list[GameRound]:
        self.get_session(session_id)
        return self.store.list_rounds_by_session(session_id)

    def result_for(self, session_id: str) -> GameResult:
        """Summary of a session as it stands now, completed or not."""
        session = self.get_session(session_id)
        return build_result(session, self.store.list_rounds_by_session(session_id))

    def next_pair(self, session_id: str) -> NextPair:
        """
        Choose the pair for the next round.

        Raises:
            SessionNotFound, SessionAlreadyCompleted
            NoPairsAvailable: every fallback came up empty
        """
        with self.store.session_lock(session_id):
            session = self._open_session(session_id)
            rounds = self.store.list_rounds_by_session(session_id)
            round_number = len(rounds) + 1
            played = frozenset(r.pair_id for r in rounds)

            difficulty = self._target_difficulty(session, round_number)
            pair = self._select_with_fallback(difficulty, played)
            shown = self.catalog.get_pair_with_images(pair.pair_id)

        return NextPair(
            session_id=session_id,
            pair=shown,
            round_number=round_number,
            current_streak=session.current_streak,
            total_score=session.total_score,
            target_difficulty=difficulty,
        )

    def submit_round(
        self,
        session_id: str,
        pair_id: str,
        choice: PlayerChoice | str,
        response_time: int,
    ) -> SubmitResult:
        """
        Score one answer and advance the session.

        Args:
            session_id: Session being played
            pair_id: Pair that was shown
            choice: "ai" or "real" - which image the player called AI
            response_time: Milliseconds taken to answer

        Raises:
            ValueError: unknown choice or negative response time
            SessionNotFound, PairNotFound, SessionAlreadyCompleted
            DuplicateDailyAttempt: completing this daily session would give
                the player a second completed daily for its date
        """
        choice = PlayerChoice(choice)
        if response_time < 0:
            raise ValueError(f"response_time must be >= 0, got {response_time}")

        with self.store.session_lock(session_id):
            session = self._open_session(session_id)
            shown = self.catalog.get_pair_with_images(pair_id)
            pair = shown.pair

            rounds = self.store.list_rounds_by_session(session_id)
            if len(rounds) != session.rounds_completed:
                logger.error(
                    "Session %s has %d rounds but rounds_completed=%d",
                    session_id, len(rounds), session.rounds_completed,
                )
                raise IntegrityViolation(
                    f"Round history of session {session_id} is inconsistent"
                )

            is_correct = choice is CORRECT_ANSWER
            points = calculate_score(
                is_correct, response_time, pair.difficulty, session.current_streak
            )

            total_score = session.total_score + points
            rounds_completed = session.rounds_completed + 1
            streak = session.current_streak

            if session.mode is GameMode.STREAK:
                completes = not is_correct
                if is_correct:
                    streak += 1
            else:
                completes = rounds_completed >= DAILY_ROUNDS

            round_ = GameRound(
                round_id=str(uuid.uuid4()),
                session_id=session_id,
                pair_id=pair_id,
                player_choice=choice,
                correct_answer=CORRECT_ANSWER,
                is_correct=is_correct,
                response_time=response_time,
                points_earned=points,
                round_number=rounds_completed,
                timestamp=self.clock(),
            )

            game_result = None
            with self._daily_scope(session if completes else None), \
                    self.store.pair_lock(pair_id):
                if completes:
                    self._check_daily_slot(session)
                # The pair may have been deleted since it was validated
                self.catalog.get_pair(pair_id)

                self.store.create_round(round_)
                if completes:
                    game_result = self._complete(
                        session,
                        total_score=total_score,
                        rounds_completed=rounds_completed,
                        current_streak=streak,
                    )
                    session = self.store.get_session(session_id)
                else:
                    session = self.store.update_session(
                        session_id,
                        total_score=total_score,
                        rounds_completed=rounds_completed,
                        current_streak=streak,
                    )
                self.catalog.record_outcome(pair_id, is_correct, response_time)

            self.catalog.increment_usage(pair.ai_image_id)
            self.catalog.increment_usage(pair.real_image_id)

        return SubmitResult(
            round=round_,
            is_correct=is_correct,
            points_earned=points,
            session=session,
            game_result=game_result,
        )

    def end(self, session_id: str, **overrides) -> GameResult:
        """
        Force-complete a session.

        Accepted overrides: total_score, current_streak.

        Raises:
            SessionNotFound
            SessionAlreadyCompleted: carries the existing result; the
                session is left untouched
        """
        unknown = set(overrides) - END_OVERRIDES
        if unknown:
            raise ValueError(f"Cannot override on end: {', '.join(sorted(unknown))}")

        with self.store.session_lock(session_id):
            session = self.get_session(session_id)
            if session.is_completed:
                rounds = self.store.list_rounds_by_session(session_id)
                raise SessionAlreadyCompleted(
                    session_id, result=build_result(session, rounds)
                )
            with self._daily_scope(session):
                self._check_daily_slot(session)
                return self._complete(session, **overrides)

    def daily_status(self, player_id: str) -> DailyStatus:
        today = self.today()
        existing = self._completed_daily(player_id, today)
        return DailyStatus(
            player_id=player_id,
            date=today,
            available=existing is None,
            session_id=existing.session_id if existing else None,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _open_session(self, session_id: str) -> GameSession:
        session = self.get_session(session_id)
        if session.is_completed:
            raise SessionAlreadyCompleted(session_id)
        # A daily session whose slot is already taken may never complete,
        # so it must not take rounds either.
        self._check_daily_slot(session)
        return session

    def _complete(self, session: GameSession, **updates) -> GameResult:
        updated = self.store.update_session(
            session.session_id,
            is_completed=True,
            end_time=self.clock(),
            **updates,
        )
        rounds = self.store.list_rounds_by_session(session.session_id)
        result = build_result(updated, rounds)
        logger.info(
            "Game session completed: %s - score %d over %d rounds",
            session.session_id, result.total_score, result.rounds_completed,
        )
        return result

    def _target_difficulty(self, session: GameSession, round_number: int) -> int | None:
        if session.mode is GameMode.STREAK:
            return difficulty_for_streak(session.current_streak)
        levels = [p.difficulty for p in self.store.list_pairs(is_active=True)]
        return daily_difficulty(levels, round_number)

    def _select_with_fallback(self, difficulty: int | None, played: frozenset[str]):
        """
        Try progressively looser criteria:
        exact -> any difficulty -> allow repeats -> any active pair.
        """
        attempts = [SelectionCriteria(difficulty=difficulty, exclude_pair_ids=played)]
        if difficulty is not None:
            attempts.append(SelectionCriteria(exclude_pair_ids=played))
        attempts.append(SelectionCriteria(difficulty=difficulty))
        attempts.append(SelectionCriteria())

        tried = set()
        for criteria in attempts:
            if criteria in tried:
                continue
            tried.add(criteria)
            try:
                pair = self.selector.select(criteria)
            except PairNotFound:
                continue
            if len(tried) > 1:
                logger.warning("Pair selection fell back to: %s", criteria.describe())
            return pair

        catalog_empty = not self.store.list_pairs(is_active=True)
        logger.warning(
            "No pairs available (catalog_empty=%s, difficulty=%s, played=%d)",
            catalog_empty, difficulty, len(played),
        )
        raise NoPairsAvailable(catalog_empty=catalog_empty)

    def _daily_scope(self, session: GameSession | None):
        if session and session.mode is GameMode.DAILY and session.player_id:
            return self._daily_guard
        return nullcontext()

    def _completed_daily(self, player_id: str, date: str) -> GameSession | None:
        for existing in self.store.list_sessions(
            player_id=player_id, mode=GameMode.DAILY, is_completed=True
        ):
            if existing.daily_challenge_date == date:
                return existing
        return None

    def _open_daily(self, player_id: str, date: str) -> GameSession | None:
        for existing in self.store.list_sessions(
            player_id=player_id, mode=GameMode.DAILY, is_completed=False
        ):
            if existing.daily_challenge_date == date:
                return existing
        return None

    def _check_daily_slot(self, session: GameSession):
        """Refuse to complete a second daily session for the same player and date."""
        if session.mode is not GameMode.DAILY or not session.player_id:
            return
        existing = self._completed_daily(session.player_id, session.daily_challenge_date)
        if existing and existing.session_id != session.session_id:
            raise DuplicateDailyAttempt(session.player_id, session.daily_challenge_date)
