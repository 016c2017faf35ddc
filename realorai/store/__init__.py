"""
Store Module - Entity persistence behind a narrow interface.

The engine only sees EntityStore. InMemoryStore is the implementation used
in production (single process) and in tests (one instance per test).

The only persistence to disk is the JSON snapshot, written periodically
outside the request path.
"""

from .base import EntityStore
from .memory import InMemoryStore
from .records import (
    Image,
    ImageCategory,
    ImageDimensions,
    ImagePair,
    GameMode,
    GameSession,
    GameRound,
    GameResult,
    FinalStats,
    NextPair,
    PairWithImages,
    PlayerChoice,
    SessionState,
    SubmitResult,
)
from .snapshot import SnapshotStore, AutoSaver

__all__ = [
    "EntityStore",
    "InMemoryStore",
    "Image",
    "ImageCategory",
    "ImageDimensions",
    "ImagePair",
    "GameMode",
    "GameSession",
    "GameRound",
    "GameResult",
    "FinalStats",
    "NextPair",
    "PairWithImages",
    "PlayerChoice",
    "SessionState",
    "SubmitResult",
    "SnapshotStore",
    "AutoSaver",
]
