"""
FastAPI Application - REST API for the web client.

Endpoints:
    POST   /api/v1/games                        Start a game session
    GET    /api/v1/games/{id}                   Get session state
    GET    /api/v1/games/{id}/next-pair         Pair for the next round
    POST   /api/v1/games/{id}/rounds            Submit an answer
    GET    /api/v1/games/{id}/rounds            Round history
    GET    /api/v1/games/{id}/result            Current summary
    POST   /api/v1/games/{id}/end               Force-complete a session
    GET    /api/v1/leaderboard                  Best score per player
    GET    /api/v1/players/{player_id}/stats    Player summary
    GET    /api/v1/players/{player_id}/daily    Daily challenge availability
    POST   /api/v1/images                       Register image metadata
    POST   /api/v1/pairs                        Create a pair
    POST   /api/v1/pairs/auto                   Pair images automatically
    GET    /api/v1/pairs/recommended            Pairs worth serving next
    POST   /api/v1/pairs/{id}/toggle            Activate / deactivate a pair
    DELETE /api/v1/pairs/{id}                   Delete a never-played pair
    GET    /api/v1/pairs/stats                  Catalog statistics
    GET    /api/v1/stats/games                  Game statistics
    GET    /api/v1/stats/integrity              Dangling references

Game Flow:
    1. POST /games to start (daily or streak)
    2. GET /next-pair, show both images
    3. POST /rounds with the pair_id and which image the player called AI
    4. Repeat until the response has session_completed=true

All request and response bodies are JSON with explicit Pydantic schemas.
When REALORAI_DATA_DIR is set, the store is restored from its snapshot at
startup and saved periodically and at shutdown.
"""

from contextlib import asynccontextmanager
from typing import Annotated, Optional, Union
import logging

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings, configure_logging
from ..store import AutoSaver, SnapshotStore
from .service import GameAPIService, MAX_LEADERBOARD_LIMIT
from .schemas import (
    # Request models
    StartGameRequest,
    SubmitRoundRequest,
    RegisterImageRequest,
    CreatePairRequest,
    AutoPairRequest,
    # Response models
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
    HealthResponse,
    ImageInfo,
    PairInfo,
    RoundInfo,
    # Enums
    CategoryName,
    ErrorCode,
    GameModeName,
)

logger = logging.getLogger(__name__)


ERROR_STATUS = {
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.PAIR_NOT_FOUND: 404,
    ErrorCode.IMAGE_NOT_FOUND: 404,
    ErrorCode.SESSION_ALREADY_COMPLETED: 409,
    ErrorCode.DUPLICATE_DAILY_ATTEMPT: 409,
    ErrorCode.DUPLICATE_PAIR: 409,
    ErrorCode.PAIR_IN_USE: 409,
    ErrorCode.NO_PAIRS_AVAILABLE: 503,
    ErrorCode.NO_MATCHING_PAIRS: 503,
    ErrorCode.INVALID_PAIR_COMPOSITION: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INTEGRITY_VIOLATION: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def create_app(service=None, settings=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional GameAPIService instance (creates new if not provided)
        settings: Optional Settings (read from the environment if not provided)

    Returns:
        FastAPI application instance
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    api_service = service or GameAPIService()
    snapshots = SnapshotStore(settings.data_dir) if settings.data_dir else None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        autosaver = None
        if snapshots is not None:
            snapshots.load(api_service.store)
            autosaver = AutoSaver(
                api_service.store, snapshots, interval=settings.autosave_seconds
            )
            autosaver.start()
        yield
        if autosaver is not None:
            autosaver.stop()

    app = FastAPI(
        title="Real or AI API",
        description="""
Two-image guessing game: one photo is real, one is AI-generated. Find the AI.

## Modes

- **daily**: three rounds of rising difficulty, once per player per day
- **streak**: play until the first wrong answer; pairs get harder as the streak grows

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist |
| `SESSION_ALREADY_COMPLETED` | Session is finished |
| `DUPLICATE_DAILY_ATTEMPT` | Today's daily challenge was already played |
| `NO_PAIRS_AVAILABLE` | No active pair in the catalog |
| `NO_MATCHING_PAIRS` | No pair could be served for this session |
| `INVALID_PAIR_COMPOSITION` | A pair needs one AI and one real image |
| `DUPLICATE_PAIR` | The two images are already paired |
| `PAIR_IN_USE` | The pair has been played; deactivate it instead |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code or ERROR_STATUS.get(error_code, 400),
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def respond(result):
        """Pass a response model through, or turn an ErrorResponse into JSON."""
        if isinstance(result, ErrorResponse):
            return make_error_response(result.error_code, result.error, details=result.details)
        return result

    # =========================================================================
    # Game Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/games",
        response_model=SessionResponse,
        status_code=201,
        responses={
            400: {"model": ErrorResponse},
            409: {"model": ErrorResponse, "description": "Daily challenge already played"},
        },
        tags=["Games"],
        summary="Start a game session",
    )
    async def start_game(request: StartGameRequest) -> Union[SessionResponse, JSONResponse]:
        """Start a daily or streak session. Omit `player_id` to play anonymously."""
        return respond(api_service.start_game(request))

    @app.get(
        "/api/v1/games/{session_id}",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Get session state",
    )
    async def get_game(session_id: str) -> Union[SessionResponse, JSONResponse]:
        return respond(api_service.get_session(session_id))

    @app.get(
        "/api/v1/games/{session_id}/next-pair",
        response_model=NextPairResponse,
        responses={
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse, "description": "Session already completed"},
            503: {"model": ErrorResponse, "description": "No pair could be served"},
        },
        tags=["Games"],
        summary="Get the pair for the next round",
    )
    async def next_pair(session_id: str) -> Union[NextPairResponse, JSONResponse]:
        """
        Choose the next pair for this session.

        Pairs already played in the session are avoided while others remain.
        """
        return respond(api_service.next_pair(session_id))

    @app.post(
        "/api/v1/games/{session_id}/rounds",
        response_model=SubmitRoundResponse,
        responses={
            400: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse, "description": "Session already completed"},
        },
        tags=["Games"],
        summary="Submit an answer",
    )
    async def submit_round(
        session_id: str,
        request: SubmitRoundRequest,
    ) -> Union[SubmitRoundResponse, JSONResponse]:
        """
        Score the player's answer for the pair they were shown.

        When the answer ends the session, `game_result` holds the summary.
        """
        return respond(api_service.submit_round(session_id, request))

    @app.get(
        "/api/v1/games/{session_id}/rounds",
        response_model=list[RoundInfo],
        responses={404: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Round history",
    )
    async def list_rounds(session_id: str) -> Union[list[RoundInfo], JSONResponse]:
        return respond(api_service.get_rounds(session_id))

    @app.get(
        "/api/v1/games/{session_id}/result",
        response_model=GameResultResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Games"],
        summary="Current session summary",
    )
    async def get_result(session_id: str) -> Union[GameResultResponse, JSONResponse]:
        return respond(api_service.get_result(session_id))

    @app.post(
        "/api/v1/games/{session_id}/end",
        response_model=GameResultResponse,
        responses={
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse, "description": "Already completed; details.result holds the summary"},
        },
        tags=["Games"],
        summary="End a game session",
    )
    async def end_game(session_id: str) -> Union[GameResultResponse, JSONResponse]:
        return respond(api_service.end_game(session_id))

    # =========================================================================
    # Player Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/leaderboard",
        response_model=LeaderboardResponse,
        responses={400: {"model": ErrorResponse}},
        tags=["Players"],
        summary="Leaderboard",
    )
    async def leaderboard(
        mode: Annotated[Optional[GameModeName], Query(description="daily or streak; omit for all")] = None,
        limit: Annotated[int, Query(ge=1, le=MAX_LEADERBOARD_LIMIT)] = 10,
    ) -> Union[LeaderboardResponse, JSONResponse]:
        return respond(api_service.leaderboard(mode.value if mode else None, limit))

    @app.get(
        "/api/v1/players/{player_id}/stats",
        response_model=PlayerStatsResponse,
        tags=["Players"],
        summary="Player statistics",
    )
    async def player_stats(player_id: str) -> PlayerStatsResponse:
        return api_service.player_stats(player_id)

    @app.get(
        "/api/v1/players/{player_id}/daily",
        response_model=DailyStatusResponse,
        tags=["Players"],
        summary="Daily challenge availability",
    )
    async def daily_status(player_id: str) -> DailyStatusResponse:
        return api_service.daily_status(player_id)

    # =========================================================================
    # Catalog Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/images",
        response_model=ImageInfo,
        status_code=201,
        responses={400: {"model": ErrorResponse}},
        tags=["Catalog"],
        summary="Register image metadata",
    )
    async def register_image(request: RegisterImageRequest) -> Union[ImageInfo, JSONResponse]:
        return respond(api_service.register_image(request))

    @app.post(
        "/api/v1/pairs",
        response_model=PairInfo,
        status_code=201,
        responses={
            400: {"model": ErrorResponse, "description": "Invalid composition"},
            404: {"model": ErrorResponse, "description": "Image not found"},
            409: {"model": ErrorResponse, "description": "Pair already exists"},
        },
        tags=["Catalog"],
        summary="Create an image pair",
    )
    async def create_pair(request: CreatePairRequest) -> Union[PairInfo, JSONResponse]:
        return respond(api_service.create_pair(request))

    @app.get(
        "/api/v1/pairs/stats",
        response_model=PairStatsResponse,
        tags=["Catalog"],
        summary="Catalog statistics",
    )
    async def pair_stats() -> PairStatsResponse:
        return api_service.pair_stats()

    @app.post(
        "/api/v1/pairs/{pair_id}/toggle",
        response_model=PairInfo,
        responses={404: {"model": ErrorResponse}},
        tags=["Catalog"],
        summary="Activate or deactivate a pair",
    )
    async def toggle_pair(pair_id: str) -> Union[PairInfo, JSONResponse]:
        return respond(api_service.toggle_pair(pair_id))

    @app.delete(
        "/api/v1/pairs/{pair_id}",
        response_model=PairInfo,
        responses={
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse, "description": "Pair has been played"},
        },
        tags=["Catalog"],
        summary="Delete a pair",
    )
    async def delete_pair(pair_id: str) -> Union[PairInfo, JSONResponse]:
        """Delete a pair that no round references. Played pairs can only be deactivated."""
        return respond(api_service.delete_pair(pair_id))

    @app.post(
        "/api/v1/pairs/auto",
        response_model=AutoPairResponse,
        tags=["Catalog"],
        summary="Pair images automatically",
    )
    async def auto_pair(request: AutoPairRequest) -> AutoPairResponse:
        """
        Match each AI image with the closest real image of the same category.

        Difficulties may differ by at most one level. AI images left without
        a match are listed in `errors`.
        """
        return api_service.auto_pair(request)

    @app.get(
        "/api/v1/pairs/recommended",
        response_model=list[PairInfo],
        tags=["Catalog"],
        summary="Recommended pairs",
    )
    async def recommended_pairs(
        category: Annotated[Optional[CategoryName], Query()] = None,
        limit: Annotated[int, Query(ge=1, le=MAX_LEADERBOARD_LIMIT)] = 5,
    ) -> Union[list[PairInfo], JSONResponse]:
        return respond(api_service.recommended_pairs(
            category.value if category else None, limit
        ))

    @app.get(
        "/api/v1/stats/games",
        response_model=GameStatsResponse,
        tags=["Catalog"],
        summary="Game statistics",
    )
    async def game_stats() -> GameStatsResponse:
        return api_service.game_stats()

    @app.get(
        "/api/v1/stats/integrity",
        response_model=IntegrityReportResponse,
        tags=["Catalog"],
        summary="Data integrity check",
    )
    async def integrity_report() -> IntegrityReportResponse:
        return api_service.integrity_report()

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        return HealthResponse(
            status="healthy",
            service="realorai",
            version=__version__,
            counts=api_service.store.counts(),
        )

    @app.get("/", tags=["System"])
    async def root():
        """API information."""
        return {
            "name": "Real or AI API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# Default app instance
app = create_app()
