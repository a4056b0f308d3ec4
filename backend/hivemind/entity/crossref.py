"""Cross-reference index: entities observed by more than one identity.

``cross_references`` is the pure derivation. ``CrossReferenceIndex`` wraps
it with a memoised result that is dropped synchronously whenever the store
publishes a write that could change qualification, so cached and uncached
reads are indistinguishable.
"""

from __future__ import annotations

import threading
from typing import Iterable

from hivemind.db.models import CrossReference, Entity
from hivemind.entity.store import EntityStore
from hivemind.events import HivemindEvent


def to_cross_reference(entity: Entity) -> CrossReference:
    return CrossReference(
        entity_hash=entity.hash,
        entity_type=entity.entity_type,
        value=entity.value,
        identity_ids=entity.identity_ids(),
        total_occurrences=entity.occurrence_count,
        first_seen=entity.first_seen,
        last_seen=entity.last_seen,
    )


def cross_references(entities: Iterable[Entity]) -> list[CrossReference]:
    """Project every entity whose sources span two or more identities."""
    return [to_cross_reference(e) for e in entities if e.is_cross_reference()]


class CrossReferenceIndex:
    """Memoised cross-reference view over an ``EntityStore``.

    The store snapshot is taken outside this index's lock (store writes
    call back into ``invalidate`` while holding the store lock). A
    generation counter stops a result computed before an invalidation from
    being cached after it.
    """

    def __init__(self, store: EntityStore) -> None:
        self._store = store
        self._cache: list[CrossReference] | None = None
        self._generation = 0
        self._lock = threading.Lock()
        self._listener_id = store.bus.subscribe(self._on_event)

    def _on_event(self, event: HivemindEvent) -> None:
        # Every store event can change membership or a reported count.
        self.invalidate()

    def invalidate(self) -> None:
        with self._lock:
            self._cache = None
            self._generation += 1

    @property
    def is_cached(self) -> bool:
        return self._cache is not None

    def get(self) -> list[CrossReference]:
        """Return the current cross-references, recomputing if invalidated."""
        with self._lock:
            cached = self._cache
            generation = self._generation
        if cached is None:
            cached = cross_references(self._store.all())
            with self._lock:
                if self._generation == generation:
                    self._cache = cached
        return [xref.model_copy(deep=True) for xref in cached]

    def close(self) -> None:
        """Stop listening to the store."""
        self._store.bus.unsubscribe(self._listener_id)
