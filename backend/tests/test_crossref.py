"""Tests for hivemind.entity.crossref — cross-reference derivation and cache."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from hivemind.db.models import EntitySource, EntityType
from hivemind.entity.crossref import CrossReferenceIndex, cross_references
from hivemind.entity.store import EntityStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _source(identity: str, url: str = "https://a.example") -> EntitySource:
    """Helper: a context-free source for an identity."""
    return EntitySource(identity_id=identity, url=url, context=None, timestamp=T0)


@pytest.fixture
def store() -> EntityStore:
    """Empty entity store."""
    return EntityStore()


@pytest.fixture
def index(store: EntityStore) -> CrossReferenceIndex:
    """Cached cross-reference index over the store fixture."""
    return CrossReferenceIndex(store)


class TestCrossReferenceCorrectness:
    """Which entities count as cross-references."""

    def test_two_identities_appear(self, store: EntityStore):
        """An entity seen by two identities is listed with both."""
        store.upsert(EntityType.EMAIL, "alice@example.com", _source("prime"))
        store.upsert(EntityType.EMAIL, "alice@example.com", _source("ghost"))
        (xref,) = cross_references(store.all())
        assert xref.value == "alice@example.com"
        assert xref.identity_ids == ["prime", "ghost"]
        assert xref.total_occurrences == 2

    def test_one_identity_twice_does_not_appear(self, store: EntityStore):
        """One identity on two pages is not a cross-reference."""
        store.upsert(EntityType.EMAIL, "alice@example.com", _source("prime", "https://a.example"))
        store.upsert(EntityType.EMAIL, "alice@example.com", _source("prime", "https://b.example"))
        assert cross_references(store.all()) == []


class TestCrossReferenceIndex:
    """Cache behaviour of the index."""

    def test_result_cached_until_write(self, store: EntityStore, index: CrossReferenceIndex):
        """The cached list is reused until the store changes."""
        store.upsert(EntityType.EMAIL, "alice@example.com", _source("prime"))
        assert index.get() == []
        assert index.is_cached

        store.upsert(EntityType.EMAIL, "alice@example.com", _source("ghost"))
        assert not index.is_cached
        assert [x.value for x in index.get()] == ["alice@example.com"]

    def test_cached_matches_uncached(self, store: EntityStore, index: CrossReferenceIndex):
        """The index agrees with the pure projection."""
        store.upsert(EntityType.PHONE, "12025551234", _source("prime"))
        store.upsert(EntityType.PHONE, "12025551234", _source("ghost"))
        store.upsert(EntityType.EMAIL, "bob@example.com", _source("prime"))
        first = index.get()
        assert index.get() == first == cross_references(store.all())

    def test_delete_and_clear_invalidate(self, store: EntityStore, index: CrossReferenceIndex):
        """A delete drops the stale result."""
        store.upsert(EntityType.EMAIL, "alice@example.com", _source("prime"))
        entity = store.upsert(EntityType.EMAIL, "alice@example.com", _source("ghost"))
        assert len(index.get()) == 1
        store.delete(entity.hash)
        assert index.get() == []

    def test_returned_list_is_a_copy(self, store: EntityStore, index: CrossReferenceIndex):
        """Mutating the returned list leaves the cache alone."""
        store.upsert(EntityType.EMAIL, "alice@example.com", _source("prime"))
        store.upsert(EntityType.EMAIL, "alice@example.com", _source("ghost"))
        index.get()[0].identity_ids.clear()
        assert index.get()[0].identity_ids == ["prime", "ghost"]

    def test_close_unsubscribes(self, store: EntityStore):
        """close detaches the index from the store bus."""
        index = CrossReferenceIndex(store)
        listeners = len(store.bus)
        index.close()
        assert len(store.bus) == listeners - 1
