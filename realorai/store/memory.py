"""
In-memory Entity Store.

One instance per process in production, one per test in the test suite.
The store is constructed explicitly and injected into the engine; there is
no module-level singleton.

Thread safety:
- A store-wide lock guards the dictionaries themselves.
- Per-entity re-entrant locks give callers a critical section for
  read-modify-write sequences (pair statistics, session progression).
  A lock lives only while someone holds or waits for it, so ids that are
  looked up once (or never existed) leave nothing behind.
"""

from __future__ import annotations
from contextlib import contextmanager
from copy import deepcopy
from dataclasses import replace
from typing import Any, Iterator
import threading

from .base import EntityStore
from .records import (
    GameMode,
    GameRound,
    GameSession,
    Image,
    ImageCategory,
    ImagePair,
)


class InMemoryStore(EntityStore):
    """
    Dictionary-backed store.

    Usage:
        store = InMemoryStore()
        store.create_image(image)
        with store.pair_lock(pair_id):
            pair = store.get_pair(pair_id)
            store.update_pair(pair_id, total_attempts=pair.total_attempts + 1)
    """

    def __init__(self):
        self._images: dict[str, Image] = {}
        self._pairs: dict[str, ImagePair] = {}
        self._sessions: dict[str, GameSession] = {}
        self._rounds: dict[str, GameRound] = {}

        self._data_lock = threading.RLock()
        self._locks_guard = threading.Lock()
        # (kind, id) -> [lock, number of holders and waiters]
        self._entity_locks: dict[tuple[str, str], list[Any]] = {}

    # =========================================================================
    # Images
    # =========================================================================

    def get_image(self, image_id: str) -> Image | None:
        with self._data_lock:
            return deepcopy(self._images.get(image_id))

    def list_images(
        self,
        category: ImageCategory | None = None,
        difficulty: int | None = None,
        is_ai_generated: bool | None = None,
    ) -> list[Image]:
        with self._data_lock:
            images = list(self._images.values())
            if category is not None:
                images = [i for i in images if i.category == category]
            if difficulty is not None:
                images = [i for i in images if i.difficulty == difficulty]
            if is_ai_generated is not None:
                images = [i for i in images if i.is_ai_generated == is_ai_generated]
            return deepcopy(images)

    def create_image(self, image: Image) -> Image:
        return self._insert(self._images, image.id, image, "image")

    def update_image(self, image_id: str, **changes: Any) -> Image | None:
        return self._update(self._images, image_id, changes)

    # =========================================================================
    # Pairs
    # =========================================================================

    def get_pair(self, pair_id: str) -> ImagePair | None:
        with self._data_lock:
            return deepcopy(self._pairs.get(pair_id))

    def list_pairs(
        self,
        category: ImageCategory | None = None,
        difficulty: int | None = None,
        is_active: bool | None = None,
    ) -> list[ImagePair]:
        with self._data_lock:
            pairs = list(self._pairs.values())
            if category is not None:
                pairs = [p for p in pairs if p.category == category]
            if difficulty is not None:
                pairs = [p for p in pairs if p.difficulty == difficulty]
            if is_active is not None:
                pairs = [p for p in pairs if p.is_active == is_active]
            return deepcopy(pairs)

    def create_pair(self, pair: ImagePair) -> ImagePair:
        return self._insert(self._pairs, pair.pair_id, pair, "pair")

    def update_pair(self, pair_id: str, **changes: Any) -> ImagePair | None:
        return self._update(self._pairs, pair_id, changes)

    def delete_pair(self, pair_id: str) -> bool:
        with self._data_lock:
            return self._pairs.pop(pair_id, None) is not None

    # =========================================================================
    # Sessions and rounds
    # =========================================================================

    def get_session(self, session_id: str) -> GameSession | None:
        with self._data_lock:
            return deepcopy(self._sessions.get(session_id))

    def list_sessions(
        self,
        player_id: str | None = None,
        mode: GameMode | None = None,
        is_completed: bool | None = None,
    ) -> list[GameSession]:
        with self._data_lock:
            sessions = list(self._sessions.values())
            if player_id is not None:
                sessions = [s for s in sessions if s.player_id == player_id]
            if mode is not None:
                sessions = [s for s in sessions if s.mode == mode]
            if is_completed is not None:
                sessions = [s for s in sessions if s.is_completed == is_completed]
            return deepcopy(sessions)

    def create_session(self, session: GameSession) -> GameSession:
        return self._insert(self._sessions, session.session_id, session, "session")

    def update_session(self, session_id: str, **changes: Any) -> GameSession | None:
        return self._update(self._sessions, session_id, changes)

    def create_round(self, round_: GameRound) -> GameRound:
        return self._insert(self._rounds, round_.round_id, round_, "round")

    def list_rounds_by_session(self, session_id: str) -> list[GameRound]:
        with self._data_lock:
            rounds = [r for r in self._rounds.values() if r.session_id == session_id]
        return sorted(rounds, key=lambda r: r.round_number)

    def list_rounds(self) -> list[GameRound]:
        with self._data_lock:
            return list(self._rounds.values())

    # =========================================================================
    # Critical sections
    # =========================================================================

    def image_lock(self, image_id: str):
        return self._entity_lock("image", image_id)

    def pair_lock(self, pair_id: str):
        return self._entity_lock("pair", pair_id)

    def session_lock(self, session_id: str):
        return self._entity_lock("session", session_id)

    @contextmanager
    def _entity_lock(self, kind: str, entity_id: str) -> Iterator[None]:
        key = (kind, entity_id)
        with self._locks_guard:
            entry = self._entity_locks.get(key)
            if entry is None:
                entry = self._entity_locks[key] = [threading.RLock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entity_locks[key]

    # =========================================================================
    # Whole-store access
    # =========================================================================

    def counts(self) -> dict[str, int]:
        with self._data_lock:
            return {
                "images": len(self._images),
                "pairs": len(self._pairs),
                "active_pairs": sum(1 for p in self._pairs.values() if p.is_active),
                "sessions": len(self._sessions),
                "rounds": len(self._rounds),
            }

    def dump(self) -> dict[str, list[Any]]:
        # Stored records are replaced, never mutated, so a shallow copy taken
        # under the lock is already consistent.
        with self._data_lock:
            tables = {
                "images": list(self._images.values()),
                "pairs": list(self._pairs.values()),
                "sessions": list(self._sessions.values()),
                "rounds": list(self._rounds.values()),
            }
        return deepcopy(tables)

    def load(self, data: dict[str, list[Any]]) -> None:
        with self._data_lock:
            self._images = {i.id: i for i in data.get("images", [])}
            self._pairs = {p.pair_id: p for p in data.get("pairs", [])}
            self._sessions = {s.session_id: s for s in data.get("sessions", [])}
            self._rounds = {r.round_id: r for r in data.get("rounds", [])}

    # =========================================================================
    # Helpers
    # =========================================================================

    def _insert(self, table: dict[str, Any], key: str, record: Any, kind: str) -> Any:
        with self._data_lock:
            if key in table:
                raise ValueError(f"Duplicate {kind} id: {key}")
            table[key] = deepcopy(record)
        return record

    def _update(self, table: dict[str, Any], key: str, changes: dict[str, Any]) -> Any:
        with self._data_lock:
            current = table.get(key)
            if current is None:
                return None
            updated = replace(current, **changes)
            table[key] = updated
            return deepcopy(updated)
