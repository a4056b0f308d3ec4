"""Snapshot repositories for the in-memory core.

The entity store and investigation registry run in memory; these repos
load their contents from SQLite at startup and write them back at
shutdown. Each repo takes an SQLiteDB via dependency injection. A save
replaces the whole table in one transaction, so a failed save leaves the
previous snapshot intact.
"""

from __future__ import annotations

import logging
from typing import Iterable

from pydantic import ValidationError

from hivemind.db.models import Entity, Investigation
from hivemind.db.sqlite import SQLiteDB

logger = logging.getLogger(__name__)


class EntityRepo:
    """Repository for Hivemind entities."""

    def __init__(self, db: SQLiteDB) -> None:
        self._db = db

    def save_all(self, entities: Iterable[Entity]) -> int:
        """Replace the stored entities with ``entities``. Returns the row count."""
        rows = [
            (e.hash, e.entity_type.value, e.last_seen.isoformat(), e.model_dump_json())
            for e in entities
        ]
        with self._db.transaction() as db:
            db.execute("DELETE FROM entities")
            db.executemany(
                "INSERT INTO entities (hash, entity_type, last_seen, data) VALUES (?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    def load_all(self) -> list[Entity]:
        """Load entities, least recently seen first. Unreadable rows are skipped."""
        entities: list[Entity] = []
        for row in self._db.fetchall("SELECT hash, data FROM entities ORDER BY last_seen"):
            try:
                entities.append(Entity.model_validate_json(row["data"]))
            except ValidationError:
                logger.warning("Skipping unreadable entity row %s", row["hash"])
        return entities


class InvestigationRepo:
    """Repository for investigations (timeline and graph included)."""

    def __init__(self, db: SQLiteDB) -> None:
        self._db = db

    def save_all(self, investigations: Iterable[Investigation]) -> int:
        rows = [
            (
                inv.id,
                inv.name,
                inv.status.value,
                inv.updated_at.isoformat(),
                inv.model_dump_json(),
            )
            for inv in investigations
        ]
        with self._db.transaction() as db:
            db.execute("DELETE FROM investigations")
            db.executemany(
                "INSERT INTO investigations (id, name, status, updated_at, data) "
                "VALUES (?, ?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    def load_all(self) -> list[Investigation]:
        """Load investigations sorted by updated_at descending."""
        investigations: list[Investigation] = []
        for row in self._db.fetchall(
            "SELECT id, data FROM investigations ORDER BY updated_at DESC"
        ):
            try:
                investigations.append(Investigation.model_validate_json(row["data"]))
            except ValidationError:
                logger.warning("Skipping unreadable investigation row %s", row["id"])
        return investigations
