"""
API Service - Business logic layer between the HTTP app and the engine.

The service:
1. Translates API requests to engine calls
2. Converts engine records to response schemas
3. Converts engine errors to ErrorResponse

This layer is framework-agnostic: every method returns either a response
model or an ErrorResponse, never raises for an expected outcome.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import math

from .schemas import (
    # Requests
    StartGameRequest,
    SubmitRoundRequest,
    RegisterImageRequest,
    CreatePairRequest,
    AutoPairRequest,
    # Responses
    SessionResponse,
    NextPairResponse,
    SubmitRoundResponse,
    GameResultResponse,
    LeaderboardResponse,
    PlayerStatsResponse,
    DailyStatusResponse,
    PairStatsResponse,
    GameStatsResponse,
    AutoPairResponse,
    IntegrityReportResponse,
    ErrorResponse,
    # Shared
    ImageInfo,
    PairInfo,
    RoundInfo,
    FinalStatsInfo,
    LeaderboardEntryInfo,
    # Enums
    ErrorCode,
    SessionStatus,
)
from ..engine import (
    GameError,
    PairCatalog,
    SessionAlreadyCompleted,
    SessionEngine,
    StatsAggregator,
)
from ..store import (
    EntityStore,
    GameResult,
    GameRound,
    GameSession,
    Image,
    ImageDimensions,
    ImagePair,
    InMemoryStore,
    SessionState,
)

logger = logging.getLogger(__name__)


MAX_LEADERBOARD_LIMIT = 100


@dataclass
class GameAPIService:
    """
    Main API service for the web client.

    Usage:
        service = GameAPIService()

        session = service.start_game(StartGameRequest(mode="streak"))
        shown = service.next_pair(session.session_id)
        outcome = service.submit_round(
            session.session_id,
            SubmitRoundRequest(pair_id=shown.pair_id, player_choice="ai", response_time=1800),
        )
    """
    store: EntityStore = field(default_factory=InMemoryStore)
    engine: SessionEngine | None = None
    stats: StatsAggregator | None = None

    def __post_init__(self):
        if self.engine is None:
            self.engine = SessionEngine(self.store)
        if self.stats is None:
            self.stats = StatsAggregator(self.store)

    @property
    def catalog(self) -> PairCatalog:
        return self.engine.catalog

    # =========================================================================
    # Game sessions
    # =========================================================================

    def start_game(self, request: StartGameRequest) -> SessionResponse | ErrorResponse:
        try:
            session = self.engine.start(request.mode.value, request.player_id)
        except (GameError, ValueError) as e:
            return self._error(e)
        return self._session_to_response(session)

    def get_session(self, session_id: str) -> SessionResponse | ErrorResponse:
        try:
            session = self.engine.get_session(session_id)
        except GameError as e:
            return self._error(e)
        return self._session_to_response(session)

    def next_pair(self, session_id: str) -> NextPairResponse | ErrorResponse:
        try:
            shown = self.engine.next_pair(session_id)
        except GameError as e:
            return self._error(e)

        return NextPairResponse(
            session_id=shown.session_id,
            pair_id=shown.pair.pair.pair_id,
            round_number=shown.round_number,
            ai_image=self._image_to_info(shown.pair.ai_image),
            real_image=self._image_to_info(shown.pair.real_image),
            difficulty=shown.pair.pair.difficulty,
            current_streak=shown.current_streak,
            total_score=shown.total_score,
        )

    def submit_round(
        self,
        session_id: str,
        request: SubmitRoundRequest,
    ) -> SubmitRoundResponse | ErrorResponse:
        try:
            outcome = self.engine.submit_round(
                session_id,
                request.pair_id,
                request.player_choice.value,
                request.response_time,
            )
        except (GameError, ValueError) as e:
            return self._error(e)

        return SubmitRoundResponse(
            round=self._round_to_info(outcome.round),
            is_correct=outcome.is_correct,
            points_earned=outcome.points_earned,
            session=self._session_to_response(outcome.session),
            session_completed=outcome.session_completed,
            game_result=(
                self._result_to_response(outcome.game_result)
                if outcome.game_result else None
            ),
        )

    def end_game(self, session_id: str) -> GameResultResponse | ErrorResponse:
        try:
            result = self.engine.end(session_id)
        except GameError as e:
            return self._error(e)
        return self._result_to_response(result)

    def get_result(self, session_id: str) -> GameResultResponse | ErrorResponse:
        try:
            result = self.engine.result_for(session_id)
        except GameError as e:
            return self._error(e)
        return self._result_to_response(result)

    def get_rounds(self, session_id: str) -> list[RoundInfo] | ErrorResponse:
        try:
            rounds = self.engine.get_rounds(session_id)
        except GameError as e:
            return self._error(e)
        return [self._round_to_info(r) for r in rounds]

    # =========================================================================
    # Players and leaderboard
    # =========================================================================

    def leaderboard(
        self,
        mode: str | None = None,
        limit: int = 10,
    ) -> LeaderboardResponse | ErrorResponse:
        if not 1 <= limit <= MAX_LEADERBOARD_LIMIT:
            return ErrorResponse(
                error=f"Limit must be between 1 and {MAX_LEADERBOARD_LIMIT}",
                error_code=ErrorCode.VALIDATION_ERROR,
            )
        try:
            entries = self.stats.leaderboard(mode, limit)
        except ValueError as e:
            return self._error(e)

        return LeaderboardResponse(
            mode=mode,
            entries=[
                LeaderboardEntryInfo(
                    rank=e.rank,
                    player_id=e.player_id,
                    best_score=e.best_score,
                    best_streak=e.best_streak,
                    total_games=e.total_games,
                    last_played=e.last_played,
                )
                for e in entries
            ],
            count=len(entries),
        )

    def player_stats(self, player_id: str) -> PlayerStatsResponse:
        summary = self.stats.player_stats(player_id)
        rank = self.stats.player_rank(player_id)
        return PlayerStatsResponse(
            player_id=summary.player_id,
            total_games=summary.total_games,
            daily_games=summary.daily_games,
            streak_games=summary.streak_games,
            total_score=summary.total_score,
            best_streak=summary.best_streak,
            average_accuracy=summary.average_accuracy,
            average_response_time=summary.average_response_time,
            last_played=summary.last_played,
            rank=rank.rank if rank else None,
            percentile=rank.percentile if rank else None,
        )

    def daily_status(self, player_id: str) -> DailyStatusResponse:
        status = self.engine.daily_status(player_id)
        return DailyStatusResponse(
            player_id=status.player_id,
            date=status.date,
            available=status.available,
            session_id=status.session_id,
        )

    def game_stats(self) -> GameStatsResponse:
        s = self.stats.game_stats()
        return GameStatsResponse(
            total_games=s.total_games,
            daily_games=s.daily_games,
            streak_games=s.streak_games,
            completed_games=s.completed_games,
            average_score=s.average_score,
            top_streak=s.top_streak,
        )

    # =========================================================================
    # Catalog
    # =========================================================================

    def register_image(self, request: RegisterImageRequest) -> ImageInfo | ErrorResponse:
        try:
            image = self.catalog.register_image(
                filename=request.filename,
                category=request.category.value,
                difficulty=request.difficulty,
                is_ai_generated=request.is_ai_generated,
                quality_score=request.quality_score,
                source_info=request.source_info,
                dimensions=ImageDimensions(width=request.width, height=request.height),
                tags=request.tags,
            )
        except ValueError as e:
            return self._error(e)
        return self._image_to_info(image)

    def create_pair(self, request: CreatePairRequest) -> PairInfo | ErrorResponse:
        try:
            pair = self.catalog.create_pair(request.ai_image_id, request.real_image_id)
        except GameError as e:
            return self._error(e)
        return self._pair_to_info(pair)

    def toggle_pair(self, pair_id: str) -> PairInfo | ErrorResponse:
        try:
            pair = self.catalog.toggle_active(pair_id)
        except GameError as e:
            return self._error(e)
        return self._pair_to_info(pair)

    def delete_pair(self, pair_id: str) -> PairInfo | ErrorResponse:
        try:
            pair = self.catalog.delete_pair(pair_id)
        except GameError as e:
            return self._error(e)
        return self._pair_to_info(pair)

    def auto_pair(self, request: AutoPairRequest) -> AutoPairResponse:
        result = self.catalog.auto_pair(
            request.category.value if request.category else None
        )
        return AutoPairResponse(
            created=result.created,
            pairs=[self._pair_to_info(p) for p in result.pairs],
            errors=result.errors,
        )

    def recommended_pairs(
        self,
        category: str | None = None,
        limit: int = 5,
    ) -> list[PairInfo] | ErrorResponse:
        try:
            pairs = self.catalog.recommended_pairs(category, limit)
        except ValueError as e:
            return self._error(e)
        return [self._pair_to_info(p) for p in pairs]

    def integrity_report(self) -> IntegrityReportResponse:
        issues = self.catalog.integrity_issues()
        return IntegrityReportResponse(healthy=not issues, issues=issues)

    def pair_stats(self) -> PairStatsResponse:
        s = self.catalog.pair_stats()
        return PairStatsResponse(
            total_pairs=s.total_pairs,
            active_pairs=s.active_pairs,
            category_distribution=s.category_distribution,
            difficulty_distribution=s.difficulty_distribution,
            average_success_rate=s.average_success_rate,
            average_response_time=s.average_response_time,
        )

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _error(self, error: Exception) -> ErrorResponse:
        """Convert an engine error to ErrorResponse."""
        if isinstance(error, GameError):
            details = None
            if isinstance(error, SessionAlreadyCompleted) and error.result:
                details = {
                    "result": self._result_to_response(error.result).model_dump(mode="json")
                }
            return ErrorResponse(
                error=error.message,
                error_code=ErrorCode(error.code),
                details=details,
            )

        logger.debug("Rejected request: %s", error)
        return ErrorResponse(error=str(error), error_code=ErrorCode.VALIDATION_ERROR)

    def _session_to_response(self, session: GameSession) -> SessionResponse:
        return SessionResponse(
            session_id=session.session_id,
            player_id=session.player_id,
            mode=session.mode.value,
            status=(
                SessionStatus.COMPLETED
                if session.state is SessionState.COMPLETED
                else SessionStatus.IN_PROGRESS
            ),
            start_time=session.start_time,
            end_time=session.end_time,
            total_score=session.total_score,
            rounds_completed=session.rounds_completed,
            current_streak=session.current_streak,
            is_completed=session.is_completed,
            daily_challenge_date=session.daily_challenge_date,
        )

    def _result_to_response(self, result: GameResult) -> GameResultResponse:
        stats = result.final_stats
        return GameResultResponse(
            session_id=result.session_id,
            total_score=result.total_score,
            rounds_completed=result.rounds_completed,
            current_streak=result.current_streak,
            is_completed=result.is_completed,
            final_stats=FinalStatsInfo(
                correct_answers=stats.correct_answers,
                total_rounds=stats.total_rounds,
                accuracy_percentage=stats.accuracy_percentage,
                average_response_time=stats.average_response_time,
            ),
        )

    def _round_to_info(self, round_: GameRound) -> RoundInfo:
        return RoundInfo(
            round_id=round_.round_id,
            pair_id=round_.pair_id,
            round_number=round_.round_number,
            player_choice=round_.player_choice.value,
            correct_answer=round_.correct_answer.value,
            is_correct=round_.is_correct,
            response_time=round_.response_time,
            points_earned=round_.points_earned,
            timestamp=round_.timestamp,
        )

    def _image_to_info(self, image: Image) -> ImageInfo:
        return ImageInfo(
            id=image.id,
            filename=image.filename,
            category=image.category.value,
            difficulty=image.difficulty,
            is_ai_generated=image.is_ai_generated,
            quality_score=image.quality_score,
            usage_count=image.usage_count,
            width=image.dimensions.width,
            height=image.dimensions.height,
            tags=list(image.tags),
        )

    def _pair_to_info(self, pair: ImagePair) -> PairInfo:
        return PairInfo(
            pair_id=pair.pair_id,
            ai_image_id=pair.ai_image_id,
            real_image_id=pair.real_image_id,
            category=pair.category.value,
            difficulty=pair.difficulty,
            success_rate=pair.success_rate,
            total_attempts=pair.total_attempts,
            correct_guesses=pair.correct_guesses,
            average_response_time=math.floor(pair.average_response_time + 0.5),
            is_active=pair.is_active,
        )
