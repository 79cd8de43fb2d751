"""
Session persistence.

One record per owner address, keyed `trading_session_<lowercased owner>`.
A record whose schema version or owner does not match is dropped on load,
which is how a schema bump resets every session.
"""

import asyncio
import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from typing import Callable, Optional

import orjson

from ..types.session import Session
from ..utils import wall_ms

logger = logging.getLogger(__name__)

KEY_PREFIX = "trading_session_"


def session_key(owner_address: str) -> str:
    return f"{KEY_PREFIX}{owner_address.lower()}"


class SessionStore(ABC):
    """
    Keyed session store with read-modify-write updates.

    Subclasses provide raw get/put/delete; validation and per-owner locking
    live here.
    """

    def __init__(self, schema_version: int = 1):
        self.schema_version = schema_version
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, owner_address: str) -> asyncio.Lock:
        key = session_key(owner_address)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @abstractmethod
    def _get(self, key: str) -> Optional[bytes]:
        ...

    @abstractmethod
    def _put(self, key: str, value: bytes) -> None:
        ...

    @abstractmethod
    def _delete(self, key: str) -> None:
        ...

    @abstractmethod
    def _delete_all(self) -> int:
        ...

    def _load_unlocked(self, owner_address: str) -> Optional[Session]:
        key = session_key(owner_address)
        raw = self._get(key)
        if raw is None:
            return None

        try:
            session = Session.from_dict(orjson.loads(raw))
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable session {key}: {e}")
            self._delete(key)
            return None

        if session.schema_version != self.schema_version:
            logger.info(
                f"Discarding session {key}: schema v{session.schema_version} "
                f"!= v{self.schema_version}"
            )
            self._delete(key)
            return None

        if session.owner_address.lower() != owner_address.lower():
            logger.warning(f"Discarding session {key}: owner mismatch")
            self._delete(key)
            return None

        return session

    def _save_unlocked(self, session: Session) -> None:
        if session.schema_version != self.schema_version:
            raise ValueError(
                f"Session schema v{session.schema_version} does not match store v{self.schema_version}"
            )
        session.last_checked_at = wall_ms()
        self._put(session_key(session.owner_address), orjson.dumps(session.to_dict()))

    async def load(self, owner_address: str) -> Optional[Session]:
        """Load the owner's session, or None if absent or invalidated."""
        async with self._lock(owner_address):
            return self._load_unlocked(owner_address)

    async def save(self, session: Session) -> None:
        """Overwrite the owner's session. Prefer update() for mutations."""
        async with self._lock(session.owner_address):
            self._save_unlocked(session)

    async def update(
        self,
        owner_address: str,
        mutate: Callable[[Optional[Session]], Session],
    ) -> Session:
        """
        Read-modify-write against the latest persisted value.

        Args:
            owner_address: Owner whose record to update
            mutate: Receives the current session (or None) and returns the new one

        Returns:
            The saved session
        """
        async with self._lock(owner_address):
            current = self._load_unlocked(owner_address)
            updated = mutate(current)
            if updated.owner_address.lower() != owner_address.lower():
                raise ValueError("update() must not change the session owner")
            self._save_unlocked(updated)
            return updated

    async def clear(self, owner_address: str) -> None:
        async with self._lock(owner_address):
            self._delete(session_key(owner_address))

    async def clear_all(self) -> int:
        """Drop every stored session. Returns the number removed."""
        count = self._delete_all()
        logger.info(f"Cleared {count} stored sessions")
        return count


class MemorySessionStore(SessionStore):
    """Process-local store (tests, single-process tools)."""

    def __init__(self, schema_version: int = 1):
        super().__init__(schema_version)
        self._data: dict[str, bytes] = {}

    def _get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def _put(self, key: str, value: bytes) -> None:
        self._data[key] = value

    def _delete(self, key: str) -> None:
        self._data.pop(key, None)

    def _delete_all(self) -> int:
        count = len(self._data)
        self._data.clear()
        return count


class SqliteSessionStore(SessionStore):
    """
    Durable store backed by SQLite.

    Stores one row per owner key in a `sessions` table.
    """

    def __init__(self, db_path: str = "./data/sessions.db", schema_version: int = 1):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database (":memory:" for an in-process db)
            schema_version: Current session schema version
        """
        super().__init__(schema_version)
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def init_schema(self) -> None:
        """Open the database and create the table."""
        if self._conn is not None:
            return

        directory = os.path.dirname(self.db_path)
        if directory and self.db_path != ":memory:":
            os.makedirs(directory, exist_ok=True)

        self._conn = sqlite3.connect(self.db_path)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                session_key TEXT PRIMARY KEY,
                session_data BLOB NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        self._conn.commit()
        logger.info(f"Session store initialized at {self.db_path}")

    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            self.init_schema()
        return self._conn

    def _get(self, key: str) -> Optional[bytes]:
        row = self._db().execute(
            "SELECT session_data FROM sessions WHERE session_key = ?", (key,)
        ).fetchone()
        return bytes(row[0]) if row else None

    def _put(self, key: str, value: bytes) -> None:
        conn = self._db()
        conn.execute(
            "INSERT INTO sessions (session_key, session_data) VALUES (?, ?) "
            "ON CONFLICT(session_key) DO UPDATE SET "
            "session_data = excluded.session_data, updated_at = CURRENT_TIMESTAMP",
            (key, value),
        )
        conn.commit()

    def _delete(self, key: str) -> None:
        conn = self._db()
        conn.execute("DELETE FROM sessions WHERE session_key = ?", (key,))
        conn.commit()

    def _delete_all(self) -> int:
        conn = self._db()
        cursor = conn.execute("DELETE FROM sessions")
        conn.commit()
        return cursor.rowcount

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
