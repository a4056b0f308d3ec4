"""Tests for hivemind.db.sqlite — SQLite schema and connection manager."""

import sqlite3
from pathlib import Path

import pytest

from hivemind.db.sqlite import SQLiteDB


@pytest.fixture
def tmp_db(tmp_path: Path) -> SQLiteDB:
    """Create a fresh SQLiteDB instance on a temp path."""
    db = SQLiteDB(str(tmp_path / "test.db"))
    yield db
    db.close()


class TestSchemaCreation:
    """Schema creates all tables on fresh database."""

    def test_tables_exist(self, tmp_db: SQLiteDB):
        """entities and investigations tables are created on fresh database."""
        rows = tmp_db.fetchall(
            "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
        )
        assert [row["name"] for row in rows] == ["entities", "investigations"]

    def test_schema_creation_is_idempotent(self, tmp_path: Path):
        """Opening the same file twice does not fail."""
        path = str(tmp_path / "twice.db")
        SQLiteDB(path).close()
        with SQLiteDB(path) as db:
            assert db.fetchone("SELECT COUNT(*) AS n FROM entities")["n"] == 0


class TestPragmas:
    """Connection pragmas."""

    def test_wal_mode_enabled(self, tmp_db: SQLiteDB):
        """journal_mode should be 'wal' after connection."""
        assert tmp_db.fetchone("PRAGMA journal_mode")["journal_mode"] == "wal"

    def test_foreign_keys_enabled(self, tmp_db: SQLiteDB):
        """Foreign keys are enforced."""
        assert tmp_db.fetchone("PRAGMA foreign_keys")["foreign_keys"] == 1


class TestQueries:
    """execute, fetchall and fetchone."""

    def test_execute_and_fetch(self, tmp_db: SQLiteDB):
        """Inserted rows come back as dicts."""
        tmp_db.execute(
            "INSERT INTO entities (hash, entity_type, last_seen, data) VALUES (?, ?, ?, ?)",
            ("h1", "email", "2024-01-01T00:00:00+00:00", "{}"),
        )
        row = tmp_db.fetchone("SELECT * FROM entities WHERE hash = ?", ("h1",))
        assert row == {
            "hash": "h1",
            "entity_type": "email",
            "last_seen": "2024-01-01T00:00:00+00:00",
            "data": "{}",
        }

    def test_fetchone_missing_returns_none(self, tmp_db: SQLiteDB):
        """fetchone with no row returns None."""
        assert tmp_db.fetchone("SELECT * FROM entities WHERE hash = ?", ("nope",)) is None

    def test_duplicate_primary_key_raises(self, tmp_db: SQLiteDB):
        """A duplicate primary key raises IntegrityError."""
        sql = "INSERT INTO entities (hash, entity_type, last_seen, data) VALUES (?, ?, ?, ?)"
        tmp_db.execute(sql, ("h1", "email", "t", "{}"))
        with pytest.raises(sqlite3.IntegrityError):
            tmp_db.execute(sql, ("h1", "email", "t", "{}"))


class TestTransaction:
    """transaction() commits as a unit or not at all."""

    def test_commit(self, tmp_db: SQLiteDB):
        """Statements in a transaction are committed together."""
        sql = "INSERT INTO entities (hash, entity_type, last_seen, data) VALUES (?, ?, ?, ?)"
        with tmp_db.transaction() as db:
            db.execute(sql, ("h1", "email", "t", "{}"))
            db.execute(sql, ("h2", "email", "t", "{}"))
        assert tmp_db.fetchone("SELECT COUNT(*) AS n FROM entities")["n"] == 2

    def test_rollback_on_error(self, tmp_db: SQLiteDB):
        """An error inside the transaction rolls everything back."""
        sql = "INSERT INTO entities (hash, entity_type, last_seen, data) VALUES (?, ?, ?, ?)"
        tmp_db.execute(sql, ("h1", "email", "t", "{}"))
        with pytest.raises(sqlite3.IntegrityError):
            with tmp_db.transaction() as db:
                db.execute("DELETE FROM entities")
                db.execute(sql, ("h2", "email", "t", "{}"))
                db.execute(sql, ("h2", "email", "t", "{}"))
        rows = tmp_db.fetchall("SELECT hash FROM entities")
        assert [r["hash"] for r in rows] == ["h1"]
