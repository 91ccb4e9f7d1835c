"""
SQLite storage for the conversation log.
Append-only: turns are only ever inserted, and the whole log can be cleared.
Single portable file per memory location.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path

from mindlink.errors import StorageError
from mindlink.storage.models import ROLES, Turn, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS turns (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    timestamp TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_turns_recent
    ON turns(id DESC);
CREATE INDEX IF NOT EXISTS idx_turns_timestamp
    ON turns(timestamp);
"""


def _row_to_turn(row: sqlite3.Row) -> Turn:
    return Turn(
        id=row["id"],
        role=row["role"],
        content=row["content"],
        timestamp=parse_timestamp(row["timestamp"]),
    )


class ConversationStore:
    """Append-only SQLite conversation log. Writes are serialized."""

    def __init__(self, db_path: str):
        self.db_path = Path(db_path)
        self._write_lock = threading.Lock()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create memory directory {self.db_path.parent}: {e}") from e
        self._init_db()

    @classmethod
    def open(cls, location: str) -> "ConversationStore":
        """Open or initialize the log at location."""
        return cls(location)

    def _init_db(self):
        with self._connect() as conn:
            status = conn.execute("PRAGMA quick_check").fetchone()[0]
            if status != "ok":
                raise StorageError(f"Memory database {self.db_path} is corrupt: {status}")
            conn.executescript(CREATE_TABLES)
            # Fails with SQLITE_READONLY when the file cannot be written
            conn.execute("BEGIN IMMEDIATE")
        logger.info("Conversation store initialized at %s", self.db_path)

    @contextmanager
    def _connect(self):
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open memory database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA synchronous = FULL")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"Memory database error ({self.db_path}): {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def _insert(conn: sqlite3.Connection, role: str, content: str) -> Turn:
        if role not in ROLES:
            raise ValueError(f"Unknown role {role!r}; expected one of {', '.join(ROLES)}")
        ts = utc_now()
        cur = conn.execute(
            "INSERT INTO turns (role, content, timestamp) VALUES (?, ?, ?)",
            (role, content, ts.isoformat()),
        )
        return Turn(id=cur.lastrowid, role=role, content=content, timestamp=ts)

    def append(self, role: str, content: str) -> Turn:
        """Insert one turn. Committed to disk before returning."""
        with self._write_lock:
            with self._connect() as conn:
                turn = self._insert(conn, role, content)
        logger.debug("Stored turn %d (role=%s, %d chars)", turn.id, role, len(content))
        return turn

    def append_exchange(self, prompt: str, reply: str) -> tuple[Turn, Turn]:
        """Insert a user turn followed by its assistant turn in one transaction."""
        with self._write_lock:
            with self._connect() as conn:
                user = self._insert(conn, "user", prompt)
                assistant = self._insert(conn, "assistant", reply)
        logger.debug("Stored exchange turns %d-%d", user.id, assistant.id)
        return user, assistant

    def last_turns(self, limit: int) -> list[Turn]:
        """Return up to limit most recent turns, oldest first."""
        if limit <= 0:
            return []
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, role, content, timestamp FROM turns ORDER BY id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [_row_to_turn(r) for r in reversed(rows)]

    def clear(self) -> None:
        """Delete every turn. Irreversible."""
        with self._write_lock:
            with self._connect() as conn:
                deleted = conn.execute("DELETE FROM turns").rowcount
        logger.info("Cleared %d turns from %s", deleted, self.db_path)

    def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM turns").fetchone()[0]

    def get_stats(self) -> dict:
        """Return counts per role and the time span covered by the log."""
        with self._connect() as conn:
            total = conn.execute("SELECT COUNT(*) FROM turns").fetchone()[0]
            role_rows = conn.execute(
                "SELECT role, COUNT(*) AS n FROM turns GROUP BY role"
            ).fetchall()
            span = conn.execute(
                "SELECT MIN(timestamp) AS first, MAX(timestamp) AS last FROM turns"
            ).fetchone()
            chars = conn.execute(
                "SELECT COALESCE(SUM(LENGTH(content)), 0) FROM turns"
            ).fetchone()[0]

        by_role = {row["role"]: row["n"] for row in role_rows}
        return {
            "turns": total,
            "user_turns": by_role.get("user", 0),
            "assistant_turns": by_role.get("assistant", 0),
            "system_turns": by_role.get("system", 0),
            "characters": chars,
            "first": span["first"],
            "last": span["last"],
        }

    def export_all_json(self) -> list[dict]:
        """Export the whole log, oldest first, in OpenAI-compatible form."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, role, content, timestamp FROM turns ORDER BY id"
            ).fetchall()
        return [_row_to_turn(r).to_dict() for r in rows]
