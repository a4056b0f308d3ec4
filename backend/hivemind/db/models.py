"""Pydantic models for the correlation engine.

These are shared between the core, the persistence layer and API responses.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# -- Entities -----------------------------------------------------------------

class EntityType(str, Enum):
    """Kinds of fact the extractor can recognise."""

    EMAIL = "email"
    PHONE = "phone"
    IP_V4 = "ip_v4"
    IP_V6 = "ip_v6"
    DOMAIN = "domain"
    URL = "url"
    USERNAME = "username"
    HASHTAG = "hashtag"
    BITCOIN_ADDRESS = "bitcoin_address"
    ETHEREUM_ADDRESS = "ethereum_address"
    CREDIT_CARD = "credit_card"
    SSN = "ssn"
    DATE = "date"
    COORDINATE = "coordinate"
    MAC_ADDRESS = "mac_address"
    UUID = "uuid"
    HASH = "hash"
    NAME = "name"
    SOCIAL_URL = "social_url"


class EntitySource(BaseModel):
    """One observation of an entity by an identity."""

    identity_id: str
    url: str | None = None
    context: str | None = None
    timestamp: datetime

    def same_observation(self, other: EntitySource) -> bool:
        """True when both entries record the same (identity, url, context)."""
        return (
            self.identity_id == other.identity_id
            and self.url == other.url
            and self.context == other.context
        )


class Entity(BaseModel):
    """A deduplicated fact in the Hivemind."""

    hash: str
    entity_type: EntityType
    value: str
    sources: list[EntitySource] = Field(default_factory=list)
    first_seen: datetime
    last_seen: datetime
    occurrence_count: int = 1
    risk_score: int | None = Field(default=None, ge=0, le=100)
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None

    def identity_ids(self) -> list[str]:
        """Distinct identity ids that observed this entity, in first-seen order."""
        seen: list[str] = []
        for source in self.sources:
            if source.identity_id not in seen:
                seen.append(source.identity_id)
        return seen

    def is_cross_reference(self) -> bool:
        """Check if this entity was found by more than one identity."""
        return len(self.identity_ids()) > 1


class CrossReference(BaseModel):
    """An entity independently observed under two or more identities."""

    entity_hash: str
    entity_type: EntityType
    value: str
    identity_ids: list[str]
    total_occurrences: int
    first_seen: datetime
    last_seen: datetime


class ExtractionResult(BaseModel):
    """Outcome of running the extraction pipeline over one text blob."""

    entities: list[Entity] = Field(default_factory=list)
    candidates_found: int = 0
    rejected_for_capacity: int = 0
    new_entities: list[str] = Field(default_factory=list)
    new_cross_references: list[str] = Field(default_factory=list)


class HivemindStatus(BaseModel):
    """Summary counters for the shared entity store."""

    total_entities: int
    cross_references: int
    identities: int
    entities_by_type: dict[str, int]
    capacity: int
    capacity_policy: str
    pattern_table_version: str


# -- Timeline -----------------------------------------------------------------

class TimelineEventType(str, Enum):
    """Closed set of investigation timeline event kinds."""

    PAGE_VISIT = "page_visit"
    ENTITY_DISCOVERED = "entity_discovered"
    IDENTITY_SWITCH = "identity_switch"
    SEARCH_QUERY = "search_query"
    SCREENSHOT = "screenshot"
    NOTE = "note"
    BOOKMARK = "bookmark"
    EXPORT = "export"
    ALERT = "alert"
    CONNECTION_FOUND = "connection_found"
    EVIDENCE_COLLECTED = "evidence_collected"
    HYPOTHESIS = "hypothesis"
    CUSTOM = "custom"


class TimelineEvent(BaseModel):
    """An immutable entry in an investigation timeline."""

    model_config = {"frozen": True}

    id: str
    investigation_id: str
    event_type: TimelineEventType
    title: str
    description: str = ""
    identity_id: str
    url: str | None = None
    entity_hash: str | None = None
    importance: int = Field(default=1, ge=1, le=5)
    metadata: dict[str, Any] | None = None
    created_at: datetime


# -- Graph --------------------------------------------------------------------

class GraphNode(BaseModel):
    """A vertex in an investigation graph."""

    id: str
    node_type: str  # entity | page | person | identity | email | ... (open set)
    label: str
    value: str
    entity_type: str | None = None
    color: str | None = None
    metadata: dict[str, Any] | None = None


class GraphEdge(BaseModel):
    """A labelled relationship between two node ids."""

    id: str
    source: str
    target: str
    relationship: str
    label: str = ""
    weight: float = Field(default=1.0, gt=0)
    discovered_by: str
    context: str | None = None


class InvestigationGraphData(BaseModel):
    """Serialisable node/edge lists of an investigation graph."""

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)


# -- Investigations -----------------------------------------------------------

class InvestigationStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"
    ARCHIVED = "archived"


class Investigation(BaseModel):
    """Full investigation record, as exported and persisted."""

    id: str
    name: str
    description: str = ""
    status: InvestigationStatus = InvestigationStatus.ACTIVE
    timeline: list[TimelineEvent] = Field(default_factory=list)
    graph: InvestigationGraphData = Field(default_factory=InvestigationGraphData)
    created_at: datetime
    updated_at: datetime


class InvestigationSummary(BaseModel):
    """Investigation summary for list views."""

    id: str
    name: str
    description: str
    status: InvestigationStatus
    event_count: int
    node_count: int
    edge_count: int
    created_at: datetime
    updated_at: datetime


class InvestigationExport(BaseModel):
    """Export container: the full record plus its pretty-printed JSON."""

    investigation: Investigation
    format: str = "json"
    exported_at: datetime
    data: str
