"""Configuration for the tracker.

Values come from environment variables with sensible defaults so the app
runs against an in-memory store with no setup at all.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

BACKEND = os.getenv("SPENDWISE_BACKEND", "memory")
DB_PATH = Path(os.getenv("SPENDWISE_DB_PATH", _PROJECT_ROOT / "data" / "spendwise.db"))
LOG_LEVEL = os.getenv("SPENDWISE_LOG_LEVEL", "INFO")
CURRENCY_SYMBOL = os.getenv("SPENDWISE_CURRENCY", "₱")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Seeded by SavingsGoalManager.get_or_create_default_goal
DEFAULT_GOAL_NAME = "New Phone"
DEFAULT_GOAL_TARGET = 15000
DEFAULT_GOAL_CURRENT = 9000


@dataclass(frozen=True)
class Settings:
    backend: str = BACKEND
    db_path: Path = DB_PATH
    log_level: str = LOG_LEVEL


def load_settings() -> Settings:
    """Read settings from the environment at call time."""
    return Settings(
        backend=os.getenv("SPENDWISE_BACKEND", BACKEND),
        db_path=Path(os.getenv("SPENDWISE_DB_PATH", DB_PATH)),
        log_level=os.getenv("SPENDWISE_LOG_LEVEL", LOG_LEVEL),
    )


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)


def create_backend(settings: Optional[Settings] = None):
    """Build the persistence backend named by ``settings.backend``."""
    settings = settings or load_settings()
    if settings.backend == "sqlite":
        from spendwise.sqlite_backend import SQLiteBackend

        return SQLiteBackend(settings.db_path)
    if settings.backend == "memory":
        from spendwise.backend import MemoryBackend

        return MemoryBackend()
    raise ValueError(f"Unknown backend: {settings.backend}")
