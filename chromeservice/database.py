"""SQLite storage shared by the services."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS user_identities (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT,
        updated_at TEXT,
        deleted_at TEXT,
        account_id TEXT,
        first_login INTEGER NOT NULL DEFAULT 0,
        day_one INTEGER NOT NULL DEFAULT 0,
        last_login TEXT,
        last_visited_pages TEXT NOT NULL DEFAULT '[]',
        visited_bundles TEXT,
        ui_preview INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS favorite_pages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT,
        updated_at TEXT,
        deleted_at TEXT,
        pathname TEXT NOT NULL DEFAULT '',
        favorite INTEGER NOT NULL DEFAULT 0,
        user_identity_id INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS self_reports (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT,
        updated_at TEXT,
        deleted_at TEXT,
        products_of_interest TEXT NOT NULL DEFAULT '[]',
        job_role TEXT NOT NULL DEFAULT '',
        user_identity_id INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS product_of_interests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT,
        updated_at TEXT,
        deleted_at TEXT,
        name TEXT NOT NULL DEFAULT '',
        user_identity_id INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS dashboard_templates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        created_at TEXT,
        updated_at TEXT,
        deleted_at TEXT,
        user_identity_id INTEGER,
        "default" INTEGER NOT NULL DEFAULT 0,
        name TEXT NOT NULL DEFAULT '',
        display_name TEXT NOT NULL DEFAULT '',
        sm TEXT NOT NULL DEFAULT '[]',
        md TEXT NOT NULL DEFAULT '[]',
        lg TEXT NOT NULL DEFAULT '[]',
        xl TEXT NOT NULL DEFAULT '[]'
    )
    """,
)


class Database:
    """A thread-safe SQLite connection that creates its tables on open."""

    def __init__(self, path: str = ":memory:") -> None:
        self.path = path
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        with self.transaction():
            for statement in _SCHEMA:
                self._conn.execute(statement)

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        """Run one statement and return its cursor."""
        with self._lock:
            return self._conn.execute(sql, tuple(params or ()))

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        """Run a query and return every row."""
        with self._lock:
            return self._conn.execute(sql, tuple(params or ())).fetchall()

    @contextmanager
    def transaction(self) -> Iterator[Database]:
        """Commit the enclosed statements together, or roll them all back."""
        with self._lock:
            if self._conn.in_transaction:
                yield self
                return
            self._conn.execute("BEGIN")
            try:
                yield self
            except BaseException:
                self._conn.rollback()
                raise
            else:
                self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()