"""Investigation registry: lifecycle, timeline and relationship graph.

Each investigation owns an append-only timeline and an
``InvestigationGraph``. Event, node and edge counts are read from those
live structures, so a refused write can never skew them.

Status machine::

    active <-> paused
    active | paused -> closed
    active | paused | closed -> archived

``archived`` is terminal and ``closed`` can only be archived. Requesting
the current status is accepted and changes nothing.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from hivemind.db.graph import InvestigationGraph
from hivemind.db.models import (
    Entity,
    GraphEdge,
    GraphNode,
    Investigation,
    InvestigationExport,
    InvestigationGraphData,
    InvestigationStatus,
    InvestigationSummary,
    TimelineEvent,
    TimelineEventType,
)
from hivemind.errors import (
    HivemindError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[InvestigationStatus, frozenset[InvestigationStatus]] = {
    InvestigationStatus.ACTIVE: frozenset({
        InvestigationStatus.PAUSED, InvestigationStatus.CLOSED, InvestigationStatus.ARCHIVED,
    }),
    InvestigationStatus.PAUSED: frozenset({
        InvestigationStatus.ACTIVE, InvestigationStatus.CLOSED, InvestigationStatus.ARCHIVED,
    }),
    InvestigationStatus.CLOSED: frozenset({InvestigationStatus.ARCHIVED}),
    InvestigationStatus.ARCHIVED: frozenset(),
}

MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_event_type(value: str | TimelineEventType) -> TimelineEventType:
    """Map a type name to ``TimelineEventType``; unknown names become ``custom``."""
    if isinstance(value, TimelineEventType):
        return value
    try:
        return TimelineEventType(value.strip().lower())
    except ValueError:
        return TimelineEventType.CUSTOM


def parse_event_type_filter(value: str | TimelineEventType) -> TimelineEventType:
    """Map a type name to ``TimelineEventType`` for filtering; unknown names are an input error."""
    if isinstance(value, TimelineEventType):
        return value
    try:
        return TimelineEventType(value.strip().lower())
    except ValueError as exc:
        raise InvalidInputError(f"Unknown timeline event type: {value}") from exc


def clamp_importance(importance: int | None) -> int:
    if importance is None:
        return MIN_IMPORTANCE
    return max(MIN_IMPORTANCE, min(MAX_IMPORTANCE, importance))


def can_transition(current: InvestigationStatus, requested: InvestigationStatus) -> bool:
    return current == requested or requested in ALLOWED_TRANSITIONS[current]


@dataclass
class _Record:
    investigation_id: str
    name: str
    description: str
    status: InvestigationStatus
    created_at: datetime
    updated_at: datetime
    graph: InvestigationGraph
    timeline: list[TimelineEvent] = field(default_factory=list)

    def to_model(self) -> Investigation:
        return Investigation(
            id=self.investigation_id,
            name=self.name,
            description=self.description,
            status=self.status,
            timeline=list(self.timeline),
            graph=self.graph.to_data().model_copy(deep=True),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def to_summary(self) -> InvestigationSummary:
        return InvestigationSummary(
            id=self.investigation_id,
            name=self.name,
            description=self.description,
            status=self.status,
            event_count=len(self.timeline),
            node_count=self.graph.node_count,
            edge_count=self.graph.edge_count,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class InvestigationRegistry:
    """In-memory collection of investigations, serialised by one lock."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utcnow
        self._records: dict[str, _Record] = {}
        self._lock = threading.RLock()

    def _require(self, investigation_id: str) -> _Record:
        record = self._records.get(investigation_id)
        if record is None:
            raise NotFoundError(f"Investigation '{investigation_id}' not found")
        return record

    # -- Lifecycle ---------------------------------------------------------------

    def create(self, name: str, description: str = "") -> Investigation:
        if not name or not name.strip():
            raise InvalidInputError("Investigation name is required")
        investigation_id = f"inv-{uuid.uuid4()}"
        now = self._clock()
        record = _Record(
            investigation_id=investigation_id,
            name=name.strip(),
            description=description,
            status=InvestigationStatus.ACTIVE,
            created_at=now,
            updated_at=now,
            graph=InvestigationGraph(investigation_id),
        )
        with self._lock:
            self._records[investigation_id] = record
        logger.info("Created investigation %s", investigation_id)
        return record.to_model()

    def summaries(self) -> list[InvestigationSummary]:
        """Summaries, most recently updated first."""
        with self._lock:
            summaries = [r.to_summary() for r in self._records.values()]
        return sorted(summaries, key=lambda s: s.updated_at, reverse=True)

    def get(self, investigation_id: str) -> Investigation:
        with self._lock:
            return self._require(investigation_id).to_model()

    def summary(self, investigation_id: str) -> InvestigationSummary:
        with self._lock:
            return self._require(investigation_id).to_summary()

    def delete(self, investigation_id: str) -> None:
        with self._lock:
            self._require(investigation_id)
            del self._records[investigation_id]
        logger.info("Deleted investigation %s", investigation_id)

    def update_status(
        self, investigation_id: str, status: InvestigationStatus | str,
    ) -> Investigation:
        """Move an investigation to ``status`` if the status machine allows it."""
        try:
            requested = InvestigationStatus(status)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown investigation status: {status}") from exc
        with self._lock:
            record = self._require(investigation_id)
            if not can_transition(record.status, requested):
                raise InvalidTransitionError(record.status.value, requested.value)
            if record.status != requested:
                logger.info(
                    "Investigation %s: %s -> %s",
                    investigation_id, record.status.value, requested.value,
                )
                record.status = requested
                record.updated_at = self._clock()
            return record.to_model()

    # -- Timeline ----------------------------------------------------------------

    def add_timeline_event(
        self,
        investigation_id: str,
        event_type: str | TimelineEventType,
        title: str,
        identity_id: str,
        description: str = "",
        url: str | None = None,
        entity_hash: str | None = None,
        importance: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> TimelineEvent:
        """Append an event. Title, type and identity are required."""
        if not title or not title.strip():
            raise InvalidInputError("Timeline event title is required")
        if not identity_id:
            raise InvalidInputError("Timeline event identity_id is required")
        if not event_type:
            raise InvalidInputError("Timeline event type is required")
        with self._lock:
            record = self._require(investigation_id)
            now = self._clock()
            event = TimelineEvent(
                id=f"evt-{uuid.uuid4()}",
                investigation_id=investigation_id,
                event_type=parse_event_type(event_type),
                title=title,
                description=description,
                identity_id=identity_id,
                url=url,
                entity_hash=entity_hash,
                importance=clamp_importance(importance),
                metadata=metadata,
                created_at=now,
            )
            record.timeline.append(event)
            record.updated_at = now
        return event

    def get_timeline(
        self,
        investigation_id: str,
        event_type: str | TimelineEventType | None = None,
        newest_first: bool = True,
    ) -> list[TimelineEvent]:
        """Events ordered by ``created_at`` (newest first by default).

        Events with equal timestamps keep their append order relative to
        each other in the chosen direction. The stored timeline is untouched.
        An unknown ``event_type`` raises ``InvalidInputError``.
        """
        with self._lock:
            events = list(self._require(investigation_id).timeline)
        if event_type is not None:
            wanted = parse_event_type_filter(event_type)
            events = [e for e in events if e.event_type == wanted]
        if newest_first:
            events.reverse()
        return sorted(events, key=lambda e: e.created_at, reverse=newest_first)

    # -- Graph -------------------------------------------------------------------

    def add_node(
        self,
        investigation_id: str,
        node_id: str,
        node_type: str,
        label: str,
        value: str,
        entity_type: str | None = None,
        color: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> GraphNode:
        if not node_id:
            raise InvalidInputError("Graph node id is required")
        node = GraphNode(
            id=node_id,
            node_type=node_type,
            label=label,
            value=value,
            entity_type=entity_type,
            color=color,
            metadata=metadata,
        )
        with self._lock:
            record = self._require(investigation_id)
            added = record.graph.add_node(node)
            record.updated_at = self._clock()
        return added.model_copy(deep=True)

    def add_edge(
        self,
        investigation_id: str,
        source: str,
        target: str,
        relationship: str,
        discovered_by: str,
        label: str = "",
        weight: float | None = None,
        context: str | None = None,
    ) -> GraphEdge:
        if not relationship:
            raise InvalidInputError("Graph edge relationship is required")
        if weight is not None and weight <= 0:
            raise InvalidInputError("Graph edge weight must be positive")
        edge = GraphEdge(
            id=f"edge-{uuid.uuid4()}",
            source=source,
            target=target,
            relationship=relationship,
            label=label,
            weight=1.0 if weight is None else weight,
            discovered_by=discovered_by,
            context=context,
        )
        with self._lock:
            record = self._require(investigation_id)
            added = record.graph.add_edge(edge)
            record.updated_at = self._clock()
        return added.model_copy(deep=True)

    def get_graph(self, investigation_id: str) -> InvestigationGraphData:
        with self._lock:
            return self._require(investigation_id).graph.to_data().model_copy(deep=True)

    def link_entity(self, investigation_id: str, entity: Entity) -> InvestigationGraphData:
        """Link a store entity into the investigation graph; returns what was added."""
        with self._lock:
            record = self._require(investigation_id)
            added = record.graph.link_entity(entity)
            if added["nodes"] or added["edges"]:
                record.updated_at = self._clock()
        return InvestigationGraphData(
            nodes=[n.model_copy(deep=True) for n in added["nodes"]],
            edges=[e.model_copy(deep=True) for e in added["edges"]],
        )

    def find_path(self, investigation_id: str, source_id: str, target_id: str) -> list[GraphNode]:
        with self._lock:
            path = self._require(investigation_id).graph.find_path(source_id, target_id)
        return [n.model_copy(deep=True) for n in path]

    def neighbors(self, investigation_id: str, node_id: str) -> set[str]:
        with self._lock:
            return self._require(investigation_id).graph.neighbors(node_id)

    # -- Export / persistence ----------------------------------------------------

    def export(self, investigation_id: str) -> InvestigationExport:
        """Full-fidelity snapshot with a pretty-printed JSON rendering."""
        investigation = self.get(investigation_id)
        return InvestigationExport(
            investigation=investigation,
            format="json",
            exported_at=self._clock(),
            data=investigation.model_dump_json(indent=2),
        )

    def all(self) -> list[Investigation]:
        with self._lock:
            return [r.to_model() for r in self._records.values()]

    def load(self, investigations: Iterable[Investigation]) -> int:
        """Replace the contents with previously persisted investigations.

        An investigation whose graph cannot be rebuilt is logged and skipped;
        the rest still load.
        """
        records: dict[str, _Record] = {}
        for inv in investigations:
            try:
                graph = InvestigationGraph.from_data(inv.graph, inv.id)
            except HivemindError as exc:
                logger.warning("Skipping investigation %s: %s", inv.id, exc.message)
                continue
            records[inv.id] = _Record(
                investigation_id=inv.id,
                name=inv.name,
                description=inv.description,
                status=inv.status,
                created_at=inv.created_at,
                updated_at=inv.updated_at,
                graph=graph,
                timeline=list(inv.timeline),
            )
        with self._lock:
            self._records = records
        return len(records)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, investigation_id: object) -> bool:
        return investigation_id in self._records
