"""Tests for hivemind.db.repositories — snapshot persistence.

Each repo takes an SQLiteDB via dependency injection.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from hivemind.db.models import EntitySource, EntityType
from hivemind.db.repositories import EntityRepo, InvestigationRepo
from hivemind.db.sqlite import SQLiteDB
from hivemind.entity.store import EntityStore
from hivemind.investigation.registry import InvestigationRegistry

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class StepClock:
    """Clock advancing one second per call."""

    def __init__(self) -> None:
        self.now = T0

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


@pytest.fixture
def sqlite_db(tmp_path: Path) -> SQLiteDB:
    """Create a fresh SQLiteDB instance."""
    db = SQLiteDB(str(tmp_path / "test.db"))
    yield db
    db.close()


@pytest.fixture
def entity_repo(sqlite_db: SQLiteDB) -> EntityRepo:
    """EntityRepo with injected dependencies."""
    return EntityRepo(sqlite_db)


@pytest.fixture
def inv_repo(sqlite_db: SQLiteDB) -> InvestigationRepo:
    """InvestigationRepo with injected dependencies."""
    return InvestigationRepo(sqlite_db)


@pytest.fixture
def store() -> EntityStore:
    """Store holding one cross-referenced email and one phone."""
    store = EntityStore(clock=StepClock())
    source = EntitySource(identity_id="prime", url="https://a.example", timestamp=T0)
    store.upsert(EntityType.EMAIL, "alice@example.com", source)
    store.upsert(EntityType.PHONE, "12025551234", source)
    store.upsert(
        EntityType.EMAIL, "alice@example.com",
        EntitySource(identity_id="ghost", url=None, timestamp=T0),
    )
    return store


class TestEntityRepo:
    """Entity snapshots survive a save/load cycle."""

    def test_save_and_load(self, entity_repo: EntityRepo, store: EntityStore):
        """Every saved entity loads back unchanged."""
        assert entity_repo.save_all(store.all()) == 2
        loaded = {e.hash: e for e in entity_repo.load_all()}
        for entity in store.all():
            assert loaded[entity.hash] == entity

    def test_load_orders_by_last_seen(self, entity_repo: EntityRepo, store: EntityStore):
        """Load returns the least recently seen entity first."""
        entity_repo.save_all(store.all())
        values = [e.value for e in entity_repo.load_all()]
        assert values == ["12025551234", "alice@example.com"]

    def test_save_replaces_previous_snapshot(self, entity_repo: EntityRepo, store: EntityStore):
        """Saving an empty snapshot leaves nothing to load."""
        entity_repo.save_all(store.all())
        entity_repo.save_all([])
        assert entity_repo.load_all() == []

    def test_unreadable_row_skipped(self, entity_repo: EntityRepo, sqlite_db: SQLiteDB, store: EntityStore):
        """A row that fails validation is skipped."""
        entity_repo.save_all(store.all())
        sqlite_db.execute(
            "INSERT INTO entities (hash, entity_type, last_seen, data) VALUES (?, ?, ?, ?)",
            ("broken", "email", "2024-01-02", '{"hash": "broken"}'),
        )
        assert len(entity_repo.load_all()) == 2

    def test_reload_into_store(self, entity_repo: EntityRepo, store: EntityStore):
        """Loaded entities restore cross-references in a new store."""
        entity_repo.save_all(store.all())
        restored = EntityStore()
        assert restored.load(entity_repo.load_all()) == 2
        (xref,) = [e for e in restored.all() if e.is_cross_reference()]
        assert xref.value == "alice@example.com"


class TestInvestigationRepo:
    """Investigations round-trip with timeline and graph embedded."""

    @pytest.fixture
    def registry(self) -> InvestigationRegistry:
        """Two investigations, the first with a graph and a note."""
        registry = InvestigationRegistry(clock=StepClock())
        inv = registry.create("Case 1", "desc")
        registry.add_node(inv.id, "n1", "email", "a", "a@example.com")
        registry.add_node(inv.id, "n2", "phone", "b", "12025551234")
        registry.add_edge(inv.id, "n1", "n2", "same_owner", "prime")
        registry.add_timeline_event(inv.id, "note", title="first note", identity_id="prime")
        registry.create("Case 2")
        return registry

    def test_round_trip(self, inv_repo: InvestigationRepo, registry: InvestigationRegistry):
        """Every saved investigation loads back unchanged."""
        assert inv_repo.save_all(registry.all()) == 2
        loaded = {inv.id: inv for inv in inv_repo.load_all()}
        for inv in registry.all():
            assert loaded[inv.id] == inv

    def test_load_newest_first(self, inv_repo: InvestigationRepo, registry: InvestigationRegistry):
        """Load returns the most recently updated investigation first."""
        inv_repo.save_all(registry.all())
        assert [inv.name for inv in inv_repo.load_all()] == ["Case 2", "Case 1"]

    def test_graph_and_timeline_embedded(self, inv_repo: InvestigationRepo, registry: InvestigationRegistry):
        """The graph and timeline travel inside the investigation row."""
        inv_repo.save_all(registry.all())
        (case,) = [inv for inv in inv_repo.load_all() if inv.name == "Case 1"]
        assert len(case.graph.edges) == 1
        assert case.timeline[0].title == "first note"
