"""Extraction pipeline: classify -> normalize -> validate -> store.

``extract_candidates`` is the pure half and can run on independent text
blobs in parallel. ``EntityExtractor`` adds the store write, attributing
every accepted candidate to one identity (and optional page URL).

Within one call each canonical entity is observed at most once, with the
context of its first occurrence. Running the same text again is one more
observation of each entity, never a new record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from hivemind.db.models import Entity, EntitySource, EntityType, ExtractionResult
from hivemind.entity.normalize import DEFAULT_CONTEXT_RADIUS, extract_context, normalize, validate
from hivemind.entity.patterns import DEFAULT_MAX_INPUT_CHARS, classify
from hivemind.entity.store import EntityStore, compute_hash
from hivemind.errors import CapacityExceededError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """A normalized, validated match ready for the store."""

    entity_type: EntityType
    value: str
    context: str
    start: int

    @property
    def hash(self) -> str:
        return compute_hash(self.entity_type, self.value)


def extract_candidates(
    text: str,
    context_radius: int = DEFAULT_CONTEXT_RADIUS,
    max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
) -> list[Candidate]:
    """Turn a text blob into deduplicated, validated candidates in text order."""
    if len(text) > max_input_chars:
        logger.info(
            "Extraction input truncated from %d to %d chars", len(text), max_input_chars,
        )
    candidates: list[Candidate] = []
    seen: set[str] = set()
    for match in classify(text, max_input_chars=max_input_chars):
        value = normalize(match.raw, match.entity_type)
        if not validate(value, match.entity_type):
            continue
        candidate = Candidate(
            entity_type=match.entity_type,
            value=value,
            context=extract_context(text, match.start, match.end, context_radius),
            start=match.start,
        )
        if candidate.hash in seen:
            continue
        seen.add(candidate.hash)
        candidates.append(candidate)
    return candidates


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntityExtractor:
    """Runs the extraction pipeline into an ``EntityStore``."""

    def __init__(
        self,
        store: EntityStore,
        context_radius: int = DEFAULT_CONTEXT_RADIUS,
        max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._context_radius = context_radius
        self._max_input_chars = max_input_chars
        self._clock = clock or _utcnow

    def now(self) -> datetime:
        return self._clock()

    def extract(
        self, text: str, identity_id: str, url: str | None = None,
    ) -> ExtractionResult:
        """Extract entities from ``text`` and record them as seen by ``identity_id``.

        A new entity refused because the store is full is counted in
        ``rejected_for_capacity``; extraction carries on with the rest, and
        entities already in the store are still updated.
        """
        candidates = extract_candidates(text, self._context_radius, self._max_input_chars)
        result = ExtractionResult(candidates_found=len(candidates))
        touched: list[Entity] = []

        for candidate in candidates:
            source = EntitySource(
                identity_id=identity_id,
                url=url,
                context=candidate.context,
                timestamp=self._clock(),
            )
            try:
                outcome = self._store.upsert_with_outcome(
                    candidate.entity_type, candidate.value, source,
                )
            except CapacityExceededError:
                result.rejected_for_capacity += 1
                continue
            touched.append(outcome.entity)
            if outcome.created:
                result.new_entities.append(outcome.entity.hash)
            if outcome.became_cross_reference:
                result.new_cross_references.append(outcome.entity.hash)

        result.entities = touched
        logger.info(
            "Extracted %d entities from %d chars (%d candidates, %d rejected for capacity)",
            len(touched), len(text), len(candidates), result.rejected_for_capacity,
        )
        return result
