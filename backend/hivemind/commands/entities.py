"""Entity commands: extraction, manual entry, annotation and cross-references.

Plain async functions taking the ``Hivemind`` core via dependency
injection. They return pydantic models and raise ``HivemindError``
subclasses; callers translate those for their transport.
"""

from __future__ import annotations

import logging

from hivemind.commands.timing import command
from hivemind.core import Hivemind
from hivemind.db.models import (
    CrossReference,
    Entity,
    EntitySource,
    EntityType,
    ExtractionResult,
    HivemindStatus,
    TimelineEventType,
)
from hivemind.entity.normalize import normalize, validate
from hivemind.entity.patterns import PATTERN_TABLE_VERSION
from hivemind.errors import ConfirmationRequiredError, InvalidInputError

logger = logging.getLogger(__name__)

CONNECTION_IMPORTANCE = 4


def _parse_entity_type(entity_type: str | EntityType) -> EntityType:
    try:
        return EntityType(entity_type)
    except ValueError as exc:
        raise InvalidInputError(f"Unknown entity type: {entity_type}") from exc


@command
async def extract_entities_from_text(
    core: Hivemind,
    text: str,
    identity_id: str,
    url: str | None = None,
    investigation_id: str | None = None,
) -> ExtractionResult:
    """Run classify -> normalize -> validate -> store over a text blob.

    Parameters
    ----------
    core : Hivemind
        Injected core.
    text : str
        Page text or any other blob to mine.
    identity_id : str
        Identity the text was observed under.
    url : str | None
        Page the text came from.
    investigation_id : str | None
        When given, each new entity is recorded on that investigation's
        timeline and linked into its graph, and each entity that just became
        a cross-reference is recorded as a connection.

    Returns
    -------
    ExtractionResult
        The new or updated entities plus counters.
    """
    if not identity_id:
        raise InvalidInputError("identity_id is required")
    if investigation_id is not None:
        # Fail before touching the store if the investigation is unknown.
        core.registry.summary(investigation_id)

    result = core.extractor.extract(text, identity_id, url)

    if investigation_id is not None:
        by_hash = {e.hash: e for e in result.entities}
        for entity_hash in result.new_entities:
            entity = by_hash[entity_hash]
            core.registry.add_timeline_event(
                investigation_id,
                TimelineEventType.ENTITY_DISCOVERED,
                title=f"Discovered {entity.entity_type.value}",
                identity_id=identity_id,
                url=url,
                entity_hash=entity_hash,
                description=entity.value,
            )
        for entity in result.entities:
            core.registry.link_entity(investigation_id, entity)
        for entity_hash in result.new_cross_references:
            entity = by_hash[entity_hash]
            core.registry.add_timeline_event(
                investigation_id,
                TimelineEventType.CONNECTION_FOUND,
                title=f"Cross-reference: {entity.entity_type.value} seen by "
                      f"{len(entity.identity_ids())} identities",
                identity_id=identity_id,
                url=url,
                entity_hash=entity_hash,
                importance=CONNECTION_IMPORTANCE,
                metadata={"identity_ids": entity.identity_ids()},
            )
    return result


@command
async def add_entity(
    core: Hivemind,
    entity_type: str | EntityType,
    value: str,
    identity_id: str,
    url: str | None = None,
    context: str | None = None,
) -> Entity:
    """Record a single entity by hand.

    The value is normalized like an extracted one, but validation failures
    are reported instead of dropped, since a person typed it.
    """
    parsed = _parse_entity_type(entity_type)
    canonical = normalize(value, parsed)
    if not validate(canonical, parsed):
        raise InvalidInputError(f"Value is not a valid {parsed.value}")
    source = EntitySource(
        identity_id=identity_id,
        url=url,
        context=context,
        timestamp=core.extractor.now(),
    )
    return core.store.upsert(parsed, canonical, source)


@command
async def get_all_entities(core: Hivemind, entity_type: str | None = None) -> list[Entity]:
    entities = core.store.all()
    if entity_type:
        parsed = _parse_entity_type(entity_type)
        entities = [e for e in entities if e.entity_type == parsed]
    return entities


@command
async def get_entity(core: Hivemind, entity_hash: str) -> Entity:
    return core.store.require(entity_hash)


@command
async def get_entity_sources(core: Hivemind, entity_hash: str) -> list[EntitySource]:
    return core.store.require(entity_hash).sources


@command
async def annotate_entity(
    core: Hivemind,
    entity_hash: str,
    tags: list[str] | None = None,
    notes: str | None = None,
    risk_score: int | None = None,
) -> Entity:
    return core.store.annotate(entity_hash, tags=tags, notes=notes, risk_score=risk_score)


@command
async def delete_entity(core: Hivemind, entity_hash: str) -> None:
    core.store.delete(entity_hash)


@command
async def get_cross_references(core: Hivemind) -> list[CrossReference]:
    return core.xrefs.get()


@command
async def clear_entities(core: Hivemind, confirm: bool = False) -> int:
    """Delete every entity. Refused unless ``confirm`` is True."""
    if not confirm:
        raise ConfirmationRequiredError("Clearing the Hivemind requires confirm=true")
    return core.store.clear()


@command
async def get_hivemind_status(core: Hivemind) -> HivemindStatus:
    entities = core.store.all()
    identities = {source.identity_id for e in entities for source in e.sources}
    return HivemindStatus(
        total_entities=len(entities),
        cross_references=len(core.xrefs.get()),
        identities=len(identities),
        entities_by_type=core.store.stats(),
        capacity=core.store.max_entities,
        capacity_policy=core.store.policy,
        pattern_table_version=PATTERN_TABLE_VERSION,
    )
