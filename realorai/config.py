"""
Configuration - Environment-driven settings.

    REALORAI_ENV               development | production (default development)
    REALORAI_DATA_DIR          Snapshot directory; unset means memory only
    REALORAI_AUTOSAVE_SECONDS  Snapshot interval (default 300)
    REALORAI_LOG_LEVEL         Logging level name (default INFO)
    ALLOWED_ORIGINS            Comma-separated CORS origins (default *)
"""

from __future__ import annotations
from dataclasses import dataclass, field
import logging
import os


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    env: str = "development"
    data_dir: str | None = None
    autosave_seconds: float = 300.0
    log_level: str = "INFO"
    allowed_origins: list[str] = field(default_factory=lambda: ["*"])

    @classmethod
    def from_env(cls) -> Settings:
        return cls(
            env=os.getenv("REALORAI_ENV", "development"),
            data_dir=os.getenv("REALORAI_DATA_DIR") or None,
            autosave_seconds=float(os.getenv("REALORAI_AUTOSAVE_SECONDS", "300")),
            log_level=os.getenv("REALORAI_LOG_LEVEL", "INFO").upper(),
            allowed_origins=[
                origin.strip()
                for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
                if origin.strip()
            ],
        )

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def configure_logging(level: str = "INFO"):
    """Root logging setup for the CLI and the HTTP app."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
