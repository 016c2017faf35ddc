"""
API Module - Web client interface.

Exposes the engine via REST API. The web client:
1. Starts a game session (daily or streak)
2. Fetches the next image pair
3. Submits which image the player thinks is AI-generated
4. Reads results, leaderboards and player statistics

Admin tooling registers images and builds pairs through the same API.
"""

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
    AutoPairResponse,
    IntegrityReportResponse,
    ErrorResponse,
    ErrorCode,
)
from .service import GameAPIService
from .app import create_app

__all__ = [
    # Requests
    "StartGameRequest",
    "SubmitRoundRequest",
    "RegisterImageRequest",
    "CreatePairRequest",
    "AutoPairRequest",
    # Responses
    "SessionResponse",
    "NextPairResponse",
    "SubmitRoundResponse",
    "GameResultResponse",
    "LeaderboardResponse",
    "PlayerStatsResponse",
    "DailyStatusResponse",
    "AutoPairResponse",
    "IntegrityReportResponse",
    "ErrorResponse",
    "ErrorCode",
    # Service
    "GameAPIService",
    "create_app",
]
