"""
Entity Store - Interface the engine requires of its environment.

The engine never talks to a database directly. Everything it needs goes
through this narrow interface:
- get by id (None on miss)
- list with simple equality filters
- create / update-by-id (and delete, for pairs)
- per-entity critical sections

Implementations must hand out records by value: updating a record
produces a new instance, the previous one is left untouched.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any

from .records import (
    GameMode,
    GameRound,
    GameSession,
    Image,
    ImageCategory,
    ImagePair,
)


class EntityStore(ABC):
    """
    Abstract key-value store for Image, ImagePair, GameSession and GameRound.
    """

    # ---------------------------------------------------------------------
    # Images
    # ---------------------------------------------------------------------

    @abstractmethod
    def get_image(self, image_id: str) -> Image | None: ...

    @abstractmethod
    def list_images(
        self,
        category: ImageCategory | None = None,
        difficulty: int | None = None,
        is_ai_generated: bool | None = None,
    ) -> list[Image]: ...

    @abstractmethod
    def create_image(self, image: Image) -> Image: ...

    @abstractmethod
    def update_image(self, image_id: str, **changes: Any) -> Image | None: ...

    # ---------------------------------------------------------------------
    # Pairs
    # ---------------------------------------------------------------------

    @abstractmethod
    def get_pair(self, pair_id: str) -> ImagePair | None: ...

    @abstractmethod
    def list_pairs(
        self,
        category: ImageCategory | None = None,
        difficulty: int | None = None,
        is_active: bool | None = None,
    ) -> list[ImagePair]: ...

    @abstractmethod
    def create_pair(self, pair: ImagePair) -> ImagePair: ...

    @abstractmethod
    def update_pair(self, pair_id: str, **changes: Any) -> ImagePair | None: ...

    @abstractmethod
    def delete_pair(self, pair_id: str) -> bool:
        """Remove a pair. Returns False when it did not exist."""

    # ---------------------------------------------------------------------
    # Sessions and rounds
    # ---------------------------------------------------------------------

    @abstractmethod
    def get_session(self, session_id: str) -> GameSession | None: ...

    @abstractmethod
    def list_sessions(
        self,
        player_id: str | None = None,
        mode: GameMode | None = None,
        is_completed: bool | None = None,
    ) -> list[GameSession]: ...

    @abstractmethod
    def create_session(self, session: GameSession) -> GameSession: ...

    @abstractmethod
    def update_session(
        self, session_id: str, **changes: Any
    ) -> GameSession | None: ...

    @abstractmethod
    def create_round(self, round_: GameRound) -> GameRound: ...

    @abstractmethod
    def list_rounds_by_session(self, session_id: str) -> list[GameRound]:
        """Rounds of one session, sorted by round_number."""

    @abstractmethod
    def list_rounds(self) -> list[GameRound]: ...

    # ---------------------------------------------------------------------
    # Critical sections
    # ---------------------------------------------------------------------

    @abstractmethod
    def image_lock(self, image_id: str) -> AbstractContextManager: ...

    @abstractmethod
    def pair_lock(self, pair_id: str) -> AbstractContextManager: ...

    @abstractmethod
    def session_lock(self, session_id: str) -> AbstractContextManager: ...

    # ---------------------------------------------------------------------
    # Whole-store access (snapshots, dashboards)
    # ---------------------------------------------------------------------

    @abstractmethod
    def counts(self) -> dict[str, int]: ...

    @abstractmethod
    def dump(self) -> dict[str, list[Any]]:
        """Consistent copy of every record, keyed by entity kind."""

    @abstractmethod
    def load(self, data: dict[str, list[Any]]) -> None:
        """Replace the store contents with previously dumped records."""
