"""
Engine errors.

Every error here is an expected, user-facing outcome (not found, already
completed, nothing to serve). None of them is fatal to the process and an
operation that raises one has written nothing.

Each error carries a machine-readable code that the API layer passes
through unchanged.
"""

from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..store.records import GameResult


class GameError(Exception):
    """Base class for engine errors."""
    code = "GAME_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(GameError):
    code = "NOT_FOUND"
    entity = "record"

    def __init__(self, entity_id: str):
        super().__init__(f"{self.entity.capitalize()} not found: {entity_id}")
        self.entity_id = entity_id


class SessionNotFound(NotFound):
    code = "SESSION_NOT_FOUND"
    entity = "session"


class PairNotFound(NotFound):
    code = "PAIR_NOT_FOUND"
    entity = "pair"


class ImageNotFound(NotFound):
    code = "IMAGE_NOT_FOUND"
    entity = "image"


class InvalidPairComposition(GameError):
    """A pair must hold exactly one AI image and one real image."""
    code = "INVALID_PAIR_COMPOSITION"


class DuplicatePair(GameError):
    code = "DUPLICATE_PAIR"


class PairInUse(GameError):
    """A pair that has been played cannot be deleted; deactivate it instead."""
    code = "PAIR_IN_USE"

    def __init__(self, pair_id: str):
        super().__init__(
            f"Image pair {pair_id} has recorded rounds and cannot be deleted"
        )
        self.pair_id = pair_id


class DuplicateDailyAttempt(GameError):
    """The player already finished today's daily challenge."""
    code = "DUPLICATE_DAILY_ATTEMPT"

    def __init__(self, player_id: str, date: str):
        super().__init__(
            f"Daily challenge already completed today ({date}) by {player_id}"
        )
        self.player_id = player_id
        self.date = date


class SessionAlreadyCompleted(GameError):
    """
    Mutation attempted on a completed session.

    When raised from end(), `result` holds the summary of the session as it
    was completed.
    """
    code = "SESSION_ALREADY_COMPLETED"

    def __init__(self, session_id: str, result: GameResult | None = None):
        super().__init__(f"Game session is already completed: {session_id}")
        self.session_id = session_id
        self.result = result


class NoPairsAvailable(GameError):
    """
    Selection exhausted every fallback.

    catalog_empty distinguishes "no active pair exists" from "pairs exist
    but none matched".
    """

    def __init__(self, catalog_empty: bool):
        if catalog_empty:
            message = (
                "No image pairs available. Upload images and create pairs first."
            )
        else:
            message = (
                "No suitable image pairs available for this game mode. "
                "Try again or add more image pairs."
            )
        super().__init__(message)
        self.catalog_empty = catalog_empty

    @property
    def code(self) -> str:
        return "NO_PAIRS_AVAILABLE" if self.catalog_empty else "NO_MATCHING_PAIRS"


class IntegrityViolation(GameError):
    """Stored records reference each other inconsistently."""
    code = "INTEGRITY_VIOLATION"
