"""SQLite schema and connection manager for Hivemind snapshots.

Provides the SQLiteDB class, the single entry point for relational
persistence. Enables WAL mode and foreign keys on connect and creates the
schema on initialization. Each row keeps the full pydantic JSON of its
record in ``data``; the other columns exist for ordering and inspection.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator, Sequence


_SCHEMA_SQL = """
-- Hivemind entities
CREATE TABLE IF NOT EXISTS entities (
    hash TEXT PRIMARY KEY,
    entity_type TEXT NOT NULL,
    last_seen TEXT NOT NULL,
    data TEXT NOT NULL
);

-- Investigations, with timeline and graph embedded in data
CREATE TABLE IF NOT EXISTS investigations (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'active',
    updated_at TEXT NOT NULL,
    data TEXT NOT NULL
);
"""


class SQLiteDB:
    """SQLite connection manager with schema auto-creation.

    Usage:
        db = SQLiteDB("/path/to/hivemind.db")
        db.execute("INSERT INTO ...", params)
        rows = db.fetchall("SELECT * FROM ...")

    Or as a context manager:
        with SQLiteDB("/path/to/hivemind.db") as db:
            db.execute(...)
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._in_transaction = False
        self._configure()
        self._create_schema()

    def _configure(self) -> None:
        """Enable WAL mode and foreign keys."""
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

    def _create_schema(self) -> None:
        self._conn.executescript(_SCHEMA_SQL)
        self._conn.commit()

    def _commit(self) -> None:
        if not self._in_transaction:
            self._conn.commit()

    @contextmanager
    def transaction(self) -> Iterator[SQLiteDB]:
        """Group several statements into one commit; roll back on error."""
        self._in_transaction = True
        try:
            yield self
        except Exception:
            self._conn.rollback()
            raise
        else:
            self._conn.commit()
        finally:
            self._in_transaction = False

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Execute a single SQL statement and commit (unless in a transaction)."""
        cursor = self._conn.execute(sql, params)
        self._commit()
        return cursor

    def executemany(self, sql: str, params_seq: Sequence[Sequence[Any]]) -> sqlite3.Cursor:
        cursor = self._conn.executemany(sql, params_seq)
        self._commit()
        return cursor

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> dict[str, Any] | None:
        """Execute a query and return the first row as a dict, or None."""
        row = self._conn.execute(sql, params).fetchone()
        if row is None:
            return None
        return dict(row)

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute a query and return all rows as a list of dicts."""
        cursor = self._conn.execute(sql, params)
        return [dict(row) for row in cursor.fetchall()]

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SQLiteDB:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
