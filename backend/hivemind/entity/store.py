"""Content-addressed entity store (the Hivemind).

Entities are keyed by ``compute_hash(type, value)``, so two observations
of the same canonical value always collapse into one record. Each write
either creates the record or folds a new observation into it:

- a source entry is appended unless an identical (identity, url, context)
  entry already exists;
- ``occurrence_count`` is bumped for every observation;
- ``last_seen`` only moves forward.

The store is bounded. When it is full, the ``reject`` policy raises
``CapacityExceededError`` for a new entity, while ``evict_lru`` drops the
least-recently-seen entity to make room. Updates to existing entities are
never refused.

All writes are serialised by a re-entrant lock and publish a
``HivemindEvent`` before returning.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import threading
from collections import Counter, OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

from hivemind.db.models import Entity, EntitySource, EntityType
from hivemind.errors import CapacityExceededError, InvalidInputError, NotFoundError
from hivemind.events import EventBus, HivemindEvent, HivemindEventKind
from hivemind.security import redact_value

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTITIES = 5000
CAPACITY_POLICIES = ("reject", "evict_lru")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_hash(entity_type: EntityType, value: str) -> str:
    """Stable identifier for a (type, canonical value) pair.

    First 16 bytes of SHA-256 over ``"{type}:{value.lower()}"``, encoded as
    unpadded URL-safe base64. Collision avoidance only, not a security
    property.
    """
    digest = hashlib.sha256(f"{entity_type.value}:{value.lower()}".encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest[:16]).rstrip(b"=").decode("ascii")


@dataclass
class UpsertOutcome:
    """What a single upsert did to the store."""

    entity: Entity
    created: bool
    source_added: bool
    became_cross_reference: bool
    evicted_hash: str | None = None


class EntityStore:
    """In-memory, bounded, deduplicating entity table."""

    def __init__(
        self,
        max_entities: int = DEFAULT_MAX_ENTITIES,
        policy: str = "reject",
        clock: Callable[[], datetime] | None = None,
        bus: EventBus | None = None,
    ) -> None:
        if max_entities < 1:
            raise ValueError("max_entities must be at least 1")
        if policy not in CAPACITY_POLICIES:
            raise ValueError(f"Unknown capacity policy: {policy}")
        self.max_entities = max_entities
        self.policy = policy
        self.bus = bus if bus is not None else EventBus()
        self._clock = clock or _utcnow
        # Insertion order doubles as recency order: least recently seen first.
        self._entities: OrderedDict[str, Entity] = OrderedDict()
        self._lock = threading.RLock()

    # -- Writes ----------------------------------------------------------------

    def upsert(self, entity_type: EntityType, value: str, source: EntitySource) -> Entity:
        """Create or update the entity for (type, value) and return a copy of it."""
        return self.upsert_with_outcome(entity_type, value, source).entity

    def upsert_with_outcome(
        self, entity_type: EntityType, value: str, source: EntitySource,
    ) -> UpsertOutcome:
        """Like ``upsert`` but also reports what changed."""
        if not value:
            raise InvalidInputError("Entity value cannot be empty")
        if not source.identity_id:
            raise InvalidInputError("Entity source must name an identity")

        entity_hash = compute_hash(entity_type, value)
        now = self._clock()

        with self._lock:
            existing = self._entities.get(entity_hash)
            if existing is not None:
                return self._observe(existing, source, now)
            evicted = self._make_room()
            entity = Entity(
                hash=entity_hash,
                entity_type=entity_type,
                value=value,
                sources=[source],
                first_seen=now,
                last_seen=now,
                occurrence_count=1,
            )
            self._entities[entity_hash] = entity
            logger.debug(
                "New %s entity %s (%s)",
                entity_type.value, entity_hash, redact_value(value),
            )
            self.bus.publish(HivemindEvent(HivemindEventKind.NEW_ENTITY, entity_hash, 1))
            return UpsertOutcome(
                entity=entity.model_copy(deep=True),
                created=True,
                source_added=True,
                became_cross_reference=False,
                evicted_hash=evicted,
            )

    def _observe(self, entity: Entity, source: EntitySource, now: datetime) -> UpsertOutcome:
        identities_before = len(entity.identity_ids())
        source_added = not any(s.same_observation(source) for s in entity.sources)
        if source_added:
            entity.sources.append(source)
        entity.occurrence_count += 1
        if now > entity.last_seen:
            entity.last_seen = now
        self._entities.move_to_end(entity.hash)

        identities_after = len(entity.identity_ids())
        became_xref = identities_before < 2 <= identities_after
        kind = HivemindEventKind.SOURCE_ADDED if source_added else HivemindEventKind.ENTITY_UPDATED
        self.bus.publish(HivemindEvent(kind, entity.hash, identities_after))
        if identities_after > max(identities_before, 1):
            logger.info(
                "Cross-reference: entity %s seen by %d identities",
                entity.hash, identities_after,
            )
            self.bus.publish(
                HivemindEvent(HivemindEventKind.CROSS_REFERENCE, entity.hash, identities_after)
            )
        return UpsertOutcome(
            entity=entity.model_copy(deep=True),
            created=False,
            source_added=source_added,
            became_cross_reference=became_xref,
        )

    def _make_room(self) -> str | None:
        """Apply the capacity policy before inserting a new entity."""
        if len(self._entities) < self.max_entities:
            return None
        if self.policy == "reject":
            logger.warning("Entity store full (%d); rejecting new entity", self.max_entities)
            raise CapacityExceededError(self.max_entities)
        evicted_hash, _ = self._entities.popitem(last=False)
        logger.info("Entity store full; evicted least-recently-seen entity %s", evicted_hash)
        self.bus.publish(HivemindEvent(HivemindEventKind.ENTITY_REMOVED, evicted_hash))
        return evicted_hash

    def annotate(
        self,
        entity_hash: str,
        tags: list[str] | None = None,
        notes: str | None = None,
        risk_score: int | None = None,
    ) -> Entity:
        """Apply user annotations. Fields left as None are unchanged."""
        with self._lock:
            entity = self._require(entity_hash)
            update: dict[str, object] = {}
            if tags is not None:
                update["tags"] = list(dict.fromkeys(tags))
            if notes is not None:
                update["notes"] = notes
            if risk_score is not None:
                update["risk_score"] = risk_score
            # Round-trip through validation so an out-of-range score is refused intact.
            try:
                annotated = Entity.model_validate({**entity.model_dump(), **update})
            except ValueError as exc:
                raise InvalidInputError(f"Invalid annotation: {exc}") from exc
            self._entities[entity_hash] = annotated
            self.bus.publish(HivemindEvent(HivemindEventKind.ENTITY_UPDATED, entity_hash))
            return annotated.model_copy(deep=True)

    def delete(self, entity_hash: str) -> None:
        """Remove a single entity."""
        with self._lock:
            self._require(entity_hash)
            del self._entities[entity_hash]
            self.bus.publish(HivemindEvent(HivemindEventKind.ENTITY_REMOVED, entity_hash))

    def clear(self) -> int:
        """Remove every entity. Returns how many were removed.

        Confirmation is the caller's job; the store clears unconditionally.
        """
        with self._lock:
            removed = len(self._entities)
            self._entities.clear()
            self.bus.publish(HivemindEvent(HivemindEventKind.ENTITIES_CLEARED))
        logger.info("Cleared %d entities", removed)
        return removed

    def load(self, entities: Iterable[Entity]) -> int:
        """Replace the contents with previously persisted entities.

        Records are ordered by ``last_seen`` so recency-based eviction keeps
        working; if there are more than ``max_entities``, the most recent win.
        """
        ordered = sorted(entities, key=lambda e: e.last_seen)[-self.max_entities:]
        with self._lock:
            self._entities = OrderedDict((e.hash, e.model_copy(deep=True)) for e in ordered)
            self.bus.publish(HivemindEvent(HivemindEventKind.ENTITIES_CLEARED))
        return len(ordered)

    # -- Reads -----------------------------------------------------------------

    def _require(self, entity_hash: str) -> Entity:
        entity = self._entities.get(entity_hash)
        if entity is None:
            raise NotFoundError(f"Entity '{entity_hash}' not found")
        return entity

    def get(self, entity_hash: str) -> Entity | None:
        """Get an entity by hash, or None if absent."""
        with self._lock:
            entity = self._entities.get(entity_hash)
            return entity.model_copy(deep=True) if entity is not None else None

    def require(self, entity_hash: str) -> Entity:
        """Get an entity by hash or raise ``NotFoundError``."""
        with self._lock:
            return self._require(entity_hash).model_copy(deep=True)

    def all(self) -> list[Entity]:
        """Snapshot of every entity, least recently seen first."""
        with self._lock:
            return [e.model_copy(deep=True) for e in self._entities.values()]

    def stats(self) -> dict[str, int]:
        """Entity count per type value."""
        with self._lock:
            counts = Counter(e.entity_type.value for e in self._entities.values())
        return dict(counts)

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_hash: object) -> bool:
        return entity_hash in self._entities
