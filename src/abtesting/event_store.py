"""
Append-only event store for experiment impressions, conversions and custom events.

Three backends share one contract:
  InMemoryEventStore  process-local list, for tests and demos
  CsvEventStore       one CSV per experiment under data/experiments/, written with pandas
  SqliteEventStore    ab_events table, safe for writers in several processes

Appends are validated before anything is written, so a rejected event never
leaves a partial record. Duplicate deliveries are stored as-is.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import closing
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import quote, unquote

import pandas as pd

from .schema import Event

logger = logging.getLogger(__name__)

DEFAULT_STORE_DIR = "data/experiments"
DEFAULT_DB_PATH = "data/ab_events.db"
EVENTS_FILENAME = "events.csv"
EVENT_COLUMNS = ["experiment_id", "variant", "kind", "name", "target", "identity", "timestamp"]


class EventStore(ABC):
    """Append/query contract. No update or delete."""

    def append(self, event: Event) -> None:
        """Validate and store one event. Raises ValidationError if malformed."""
        event.validate()
        self._write([event])

    def append_many(self, events: Iterable[Event]) -> int:
        """
        Validate and store a batch.

        Every event is validated before any is written.

        Returns:
            Number of events appended
        """
        batch = [e.validate() for e in events]
        if batch:
            self._write(batch)
        return len(batch)

    @abstractmethod
    def _write(self, events: List[Event]) -> None:
        ...

    @abstractmethod
    def query(self, experiment_id: Optional[str] = None) -> List[Event]:
        """All events, or those of one experiment. Order is not guaranteed."""

    @abstractmethod
    def experiment_ids(self) -> List[str]:
        """Experiment ids that have at least one stored event."""

    def count(self, experiment_id: Optional[str] = None) -> int:
        return len(self.query(experiment_id))

    def query_frame(self, experiment_id: Optional[str] = None) -> pd.DataFrame:
        """Events as a DataFrame with EVENT_COLUMNS."""
        rows = [e.to_row() for e in self.query(experiment_id)]
        return pd.DataFrame(rows, columns=EVENT_COLUMNS)


class InMemoryEventStore(EventStore):
    """List-backed store guarded by a lock."""

    def __init__(self):
        self._events: List[Event] = []
        self._lock = threading.Lock()

    def _write(self, events: List[Event]) -> None:
        with self._lock:
            self._events.extend(events)

    def query(self, experiment_id: Optional[str] = None) -> List[Event]:
        with self._lock:
            snapshot = list(self._events)
        if experiment_id is None:
            return snapshot
        return [e for e in snapshot if e.experiment_id == experiment_id]

    def experiment_ids(self) -> List[str]:
        with self._lock:
            return sorted({e.experiment_id for e in self._events})

    def count(self, experiment_id: Optional[str] = None) -> int:
        if experiment_id is None:
            with self._lock:
                return len(self._events)
        return super().count(experiment_id)


def experiment_dir_name(experiment_id: str) -> str:
    # ids come from tracking payloads; keep them inside base_dir
    return quote(experiment_id, safe="").replace(".", "%2E")


class CsvEventStore(EventStore):
    """
    CSV files at <base_dir>/<experiment_id>/events.csv.

    Appends are serialized by a lock, so one store instance is safe for many
    threads. Use SqliteEventStore when several processes write.
    """

    def __init__(self, base_dir: str = DEFAULT_STORE_DIR):
        self.base_dir = Path(base_dir)
        self._lock = threading.Lock()

    def _path(self, experiment_id: str) -> Path:
        return self.base_dir / experiment_dir_name(experiment_id) / EVENTS_FILENAME

    def _write(self, events: List[Event]) -> None:
        df = pd.DataFrame([e.to_row() for e in events], columns=EVENT_COLUMNS)
        with self._lock:
            for experiment_id, group in df.groupby("experiment_id", sort=False):
                path = self._path(experiment_id)
                path.parent.mkdir(parents=True, exist_ok=True)
                group.to_csv(path, mode="a", header=not path.exists(), index=False)
        logger.debug(f"Appended {len(events)} events under {self.base_dir}")

    def _read(self, path: Path) -> pd.DataFrame:
        if not path.exists():
            return pd.DataFrame(columns=EVENT_COLUMNS)
        return pd.read_csv(path, dtype=str, keep_default_na=False)

    def query_frame(self, experiment_id: Optional[str] = None) -> pd.DataFrame:
        ids = [experiment_id] if experiment_id is not None else self.experiment_ids()
        with self._lock:
            frames = [self._read(self._path(eid)) for eid in ids]
        frames = [f for f in frames if not f.empty]
        if not frames:
            return pd.DataFrame(columns=EVENT_COLUMNS)
        return pd.concat(frames, ignore_index=True)

    def query(self, experiment_id: Optional[str] = None) -> List[Event]:
        df = self.query_frame(experiment_id)
        return [Event.from_row(row) for row in df.to_dict("records")]

    def experiment_ids(self) -> List[str]:
        if not self.base_dir.exists():
            return []
        return sorted(
            unquote(d.name) for d in self.base_dir.iterdir()
            if d.is_dir() and (d / EVENTS_FILENAME).exists()
        )


class SqliteEventStore(EventStore):
    """Events in an ab_events table. Each append is its own transaction."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with closing(self._get_conn()) as conn, conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS ab_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    experiment_id TEXT NOT NULL,
                    variant TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    name TEXT,
                    target TEXT,
                    identity TEXT,
                    timestamp TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_ab_test ON ab_events(experiment_id, variant, kind);
            """)
        logger.debug(f"Event DB initialized at {self.db_path}")

    def _write(self, events: List[Event]) -> None:
        rows = [e.to_row() for e in events]
        with closing(self._get_conn()) as conn, conn:
            conn.executemany(
                "INSERT INTO ab_events (experiment_id, variant, kind, name, target, identity, timestamp) "
                "VALUES (:experiment_id, :variant, :kind, :name, :target, :identity, :timestamp)",
                rows,
            )

    def query(self, experiment_id: Optional[str] = None) -> List[Event]:
        sql = f"SELECT {', '.join(EVENT_COLUMNS)} FROM ab_events"
        params: tuple = ()
        if experiment_id is not None:
            sql += " WHERE experiment_id = ?"
            params = (experiment_id,)
        with closing(self._get_conn()) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [Event.from_row(dict(r)) for r in rows]

    def experiment_ids(self) -> List[str]:
        with closing(self._get_conn()) as conn:
            rows = conn.execute("SELECT DISTINCT experiment_id FROM ab_events ORDER BY experiment_id").fetchall()
        return [r["experiment_id"] for r in rows]

    def count(self, experiment_id: Optional[str] = None) -> int:
        sql = "SELECT COUNT(*) FROM ab_events"
        params: tuple = ()
        if experiment_id is not None:
            sql += " WHERE experiment_id = ?"
            params = (experiment_id,)
        with closing(self._get_conn()) as conn:
            return conn.execute(sql, params).fetchone()[0]
