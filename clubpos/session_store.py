"""SQLite persistence for session-scoped UI state."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from clubpos.config import DB_PATH


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _connect(db_path: str) -> sqlite3.Connection:
    db_file = Path(db_path)
    db_file.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(db_file)


def bootstrap_schema(db_path: str = DB_PATH) -> None:
    """Create persistence schema if it does not already exist."""
    with _connect(db_path) as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS session_state (
                session_id TEXT NOT NULL,
                key TEXT NOT NULL,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (session_id, key)
            );
            """
        )


class SessionStore:
    """Key/value pairs visible only to one browsing session."""

    def __init__(self, session_id: str, db_path: str = DB_PATH) -> None:
        if not session_id:
            raise ValueError("session_id must not be empty")
        self.session_id = session_id
        self.db_path = db_path
        bootstrap_schema(db_path)

    def get(self, key: str) -> str | None:
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM session_state WHERE session_id = ? AND key = ?",
                (self.session_id, key),
            ).fetchone()
        return row[0] if row is not None else None

    def set(self, key: str, value: str) -> None:
        """Write a value, superseding any previous one in a single statement."""
        with _connect(self.db_path) as conn:
            with conn:
                conn.execute(
                    """
                    INSERT INTO session_state (session_id, key, value, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(session_id, key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (self.session_id, key, value, _utc_now_iso()),
                )

    def remove(self, key: str) -> None:
        with _connect(self.db_path) as conn:
            with conn:
                conn.execute(
                    "DELETE FROM session_state WHERE session_id = ? AND key = ?",
                    (self.session_id, key),
                )
