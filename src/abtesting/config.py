"""Application settings, read from the environment."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigurationError
from .event_store import (
    DEFAULT_DB_PATH,
    DEFAULT_STORE_DIR,
    CsvEventStore,
    EventStore,
    InMemoryEventStore,
    SqliteEventStore,
)

logger = logging.getLogger(__name__)

ROOT = Path(__file__).parent.parent.parent
DEFAULT_EXPERIMENTS_PATH = str(ROOT / "config" / "experiments.json")
DEFAULT_ARTIFACTS_DIR = "artifacts/experiments"
STORE_BACKENDS = ("memory", "csv", "sqlite")


@dataclass(frozen=True)
class AppConfig:
    experiments_path: str = DEFAULT_EXPERIMENTS_PATH
    # memory | csv | sqlite
    store_backend: str = "sqlite"
    # Directory for csv, database file for sqlite; ignored for memory
    store_path: str = ""
    artifacts_dir: str = DEFAULT_ARTIFACTS_DIR

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            experiments_path=os.environ.get("AB_EXPERIMENTS_PATH", DEFAULT_EXPERIMENTS_PATH),
            store_backend=os.environ.get("AB_STORE_BACKEND", "sqlite").lower(),
            store_path=os.environ.get("AB_STORE_PATH", ""),
            artifacts_dir=os.environ.get("AB_ARTIFACTS_DIR", DEFAULT_ARTIFACTS_DIR),
        )


def build_event_store(config: AppConfig) -> EventStore:
    """Event store backend selected by config."""
    if config.store_backend == "memory":
        store: EventStore = InMemoryEventStore()
    elif config.store_backend == "csv":
        store = CsvEventStore(config.store_path or DEFAULT_STORE_DIR)
    elif config.store_backend == "sqlite":
        store = SqliteEventStore(config.store_path or DEFAULT_DB_PATH)
    else:
        raise ConfigurationError(
            f"Unknown store backend {config.store_backend!r}, expected one of {STORE_BACKENDS}"
        )
    logger.info(f"Using {config.store_backend} event store")
    return store
