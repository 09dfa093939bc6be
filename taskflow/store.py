"""
Key-value storage backend (SQLite).

Holds one opaque blob per key: a board snapshot per user
("boardState_<username>"), the task id cursor ("taskCounter") and account
records ("user_<username>"). Any database failure surfaces as
StorageUnavailableError; callers keep working with their in-memory state.
"""
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .errors import StorageUnavailableError

logger = logging.getLogger(__name__)

BOARD_KEY_PREFIX = "boardState_"
USER_KEY_PREFIX = "user_"
COUNTER_KEY = "taskCounter"


def board_key(username: str) -> str:
    return f"{BOARD_KEY_PREFIX}{username}"


def user_key(username: str) -> str:
    return f"{USER_KEY_PREFIX}{username}"


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class SnapshotStore:
    """SQLite-backed key-value store for board snapshots."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize store and create the table if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "taskflow" / "taskflow.db")
        self.db_path = db_path
        try:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._init_schema()
        except (sqlite3.Error, OSError) as e:
            logger.error("Cannot open store at %s: %s", db_path, e)
            raise StorageUnavailableError(f"Cannot open store at {db_path}: {e}") from e

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def get(self, key: str) -> Optional[str]:
        """Return the blob stored under ``key``, or None."""
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
            return row["value"] if row else None
        except sqlite3.Error as e:
            logger.error("Error reading %s: %s", key, e)
            raise StorageUnavailableError(f"Cannot read {key}: {e}") from e

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            with _connect(self.db_path) as conn:
                conn.execute("""
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
                """, (key, value, now))
                conn.commit()
        except sqlite3.Error as e:
            logger.error("Error writing %s: %s", key, e)
            raise StorageUnavailableError(f"Cannot write {key}: {e}") from e

    def remove(self, key: str) -> None:
        try:
            with _connect(self.db_path) as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()
        except sqlite3.Error as e:
            logger.error("Error removing %s: %s", key, e)
            raise StorageUnavailableError(f"Cannot remove {key}: {e}") from e

