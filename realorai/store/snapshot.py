"""
Snapshot Store - Periodic JSON snapshots of an entity store.

Layout of the data directory:
    images.json, pairs.json, sessions.json, rounds.json
    backups/backup-<timestamp>.json   (all four kinds in one file)

Design decisions:
- Simple file-based storage, one JSON object per kind keyed by id
- Snapshots are taken from a consistent in-memory copy (store.dump()),
  so saving never holds engine locks while writing files
- Each file is written to a temp file and renamed into place
- Not transactional: a crash between two files can leave kinds from
  different moments. Acceptable for a single-process game server.
"""

from __future__ import annotations
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable
import json
import logging
import os

from apscheduler.schedulers.background import BackgroundScheduler

from .base import EntityStore
from .records import (
    GameMode,
    GameRound,
    GameSession,
    Image,
    ImageCategory,
    ImageDimensions,
    ImagePair,
    PlayerChoice,
    utcnow,
)

logger = logging.getLogger(__name__)


SNAPSHOT_FILES = {
    "images": "images.json",
    "pairs": "pairs.json",
    "sessions": "sessions.json",
    "rounds": "rounds.json",
}

_ID_FIELDS = {
    "images": "id",
    "pairs": "pair_id",
    "sessions": "session_id",
    "rounds": "round_id",
}


# =============================================================================
# Encoding
# =============================================================================

def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    return value


def encode_record(record: Any) -> dict[str, Any]:
    if not is_dataclass(record):
        raise TypeError(f"Not a record: {record!r}")
    return _encode(asdict(record))


def _parse_time(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def decode_image(data: dict[str, Any]) -> Image:
    data = dict(data)
    data["category"] = ImageCategory(data["category"])
    data["dimensions"] = ImageDimensions(**data["dimensions"])
    data["upload_date"] = _parse_time(data["upload_date"])
    return Image(**data)


def decode_pair(data: dict[str, Any]) -> ImagePair:
    data = dict(data)
    data["category"] = ImageCategory(data["category"])
    data["created_at"] = _parse_time(data["created_at"])
    return ImagePair(**data)


def decode_session(data: dict[str, Any]) -> GameSession:
    data = dict(data)
    data["mode"] = GameMode(data["mode"])
    data["start_time"] = _parse_time(data["start_time"])
    data["end_time"] = _parse_time(data.get("end_time"))
    return GameSession(**data)


def decode_round(data: dict[str, Any]) -> GameRound:
    data = dict(data)
    data["player_choice"] = PlayerChoice(data["player_choice"])
    data["correct_answer"] = PlayerChoice(data["correct_answer"])
    data["timestamp"] = _parse_time(data["timestamp"])
    return GameRound(**data)


_DECODERS: dict[str, Callable[[dict[str, Any]], Any]] = {
    "images": decode_image,
    "pairs": decode_pair,
    "sessions": decode_session,
    "rounds": decode_round,
}


# =============================================================================
# Snapshot store
# =============================================================================

class SnapshotStore:
    """
    Saves and restores an EntityStore as JSON files.

    Usage:
        snapshots = SnapshotStore("./data")
        snapshots.load(store)      # at startup, if files exist
        snapshots.save(store)      # periodically / at shutdown
    """

    def __init__(self, data_dir: str | Path):
        self.data_dir = Path(data_dir)
        self.backup_dir = self.data_dir / "backups"

    def exists(self) -> bool:
        return any((self.data_dir / name).exists() for name in SNAPSHOT_FILES.values())

    def save(self, store: EntityStore):
        self.data_dir.mkdir(parents=True, exist_ok=True)
        for kind, records in self._encoded(store).items():
            self._write_json(self.data_dir / SNAPSHOT_FILES[kind], records)
        logger.info("Snapshot saved to %s (%s)", self.data_dir, store.counts())

    def load(self, store: EntityStore) -> bool:
        """
        Restore the store from the data directory.

        Returns False (and leaves the store untouched) when no snapshot
        exists. Raises ValueError on a corrupt snapshot.
        """
        if not self.exists():
            return False

        data: dict[str, list[Any]] = {}
        for kind, name in SNAPSHOT_FILES.items():
            path = self.data_dir / name
            if not path.exists():
                data[kind] = []
                continue
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            try:
                data[kind] = [_DECODERS[kind](entry) for entry in raw.values()]
            except (KeyError, TypeError, ValueError) as e:
                raise ValueError(f"Corrupt snapshot file {path}: {e}") from e

        store.load(data)
        logger.info("Snapshot loaded from %s (%s)", self.data_dir, store.counts())
        return True

    def backup(self, store: EntityStore) -> Path:
        """Write every kind into one timestamped file under backups/."""
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        stamp = utcnow().strftime("%Y-%m-%dT%H-%M-%S-%f")
        path = self.backup_dir / f"backup-{stamp}.json"
        self._write_json(path, self._encoded(store))
        logger.info("Backup created: %s", path.name)
        return path

    def list_backups(self) -> list[str]:
        if not self.backup_dir.exists():
            return []
        return sorted(f.name for f in self.backup_dir.glob("backup-*.json"))

    def _encoded(self, store: EntityStore) -> dict[str, dict[str, Any]]:
        dumped = store.dump()
        return {
            kind: {
                getattr(record, _ID_FIELDS[kind]): encode_record(record)
                for record in dumped.get(kind, [])
            }
            for kind in SNAPSHOT_FILES
        }

    def _write_json(self, path: Path, payload: Any):
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_path, path)


class AutoSaver:
    """
    Snapshots the store every `interval` seconds on an APScheduler
    background scheduler.

    stop() shuts the scheduler down, waiting for a save in flight, and
    saves one last time. A failed periodic save is logged and retried on
    the next tick.
    """

    JOB_ID = "snapshot_autosave"

    def __init__(self, store: EntityStore, snapshots: SnapshotStore, interval: float = 300):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.store = store
        self.snapshots = snapshots
        self.interval = interval
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self):
        if self.running:
            return
        self._scheduler = BackgroundScheduler(timezone="UTC")
        self._scheduler.add_job(
            id=self.JOB_ID,
            func=self._save,
            trigger="interval",
            seconds=self.interval,
            coalesce=True,
            max_instances=1,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Auto-save job registered (every %ss)", self.interval)

    def stop(self):
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=True)
            self._scheduler = None
        self.snapshots.save(self.store)

    def _save(self):
        try:
            self.snapshots.save(self.store)
        except OSError:
            logger.exception("Auto-save failed")
