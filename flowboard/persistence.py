"""
Board persistence: a keyed blob in a small key/value store.

Backends implement get(key) -> str | None and set(key, blob) -> bool.
The board is stored as one JSON document; there is no schema version.
Unreadable or invalid data is replaced by a fresh seed board.
"""
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from .schema import Board, BoardIntegrityError
from .seed import build_seed_board

logger = logging.getLogger(__name__)


DEFAULT_KEY = "flowboard-data"
DEFAULT_DB_PATH = str(Path.home() / ".local" / "share" / "flowboard" / "board.db")


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class MemoryStorage:
    """Dict-backed storage for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})
        self.writes = 0

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, blob: str) -> bool:
        self.data[key] = blob
        self.writes += 1
        return True


class SqliteStorage:
    """SQLite-backed key/value storage (single kv_store table)."""

    def __init__(self, db_path: str = None):
        """Initialize storage and create the table if needed."""
        if db_path is None:
            db_path = DEFAULT_DB_PATH
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

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
        try:
            with _connect(self.db_path) as conn:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
                return row["value"] if row else None
        except sqlite3.Error as e:
            logger.warning(f"Error reading {key} from {self.db_path}: {e}")
            return None

    def set(self, key: str, blob: str) -> bool:
        try:
            with _connect(self.db_path) as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                    (key, blob, datetime.now(timezone.utc).isoformat()),
                )
                conn.commit()
                return True
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Error writing {key} to {self.db_path}: {e}")
            return False


def load_board(storage, key: str = DEFAULT_KEY) -> Board:
    """Load the board under `key`, falling back to a seed board if absent or unusable."""
    blob = storage.get(key)
    if blob is None:
        logger.info(f"No saved board under {key!r}, starting from the sample board")
        return build_seed_board()
    try:
        return Board.from_dict(json.loads(blob))
    except (json.JSONDecodeError, BoardIntegrityError) as e:
        logger.warning(f"Saved board under {key!r} is unusable ({e}), starting from the sample board")
        return build_seed_board()


def save_board(storage, board: Board, key: str = DEFAULT_KEY) -> bool:
    """Serialize and write the board. Returns False if the backend refused the write."""
    return storage.set(key, json.dumps(board.to_dict()))
