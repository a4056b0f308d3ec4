"""Hivemind models and persistence layer: SQLite snapshots + networkx graphs."""

from hivemind.db.graph import InvestigationGraph
from hivemind.db.models import (
    CrossReference,
    Entity,
    EntitySource,
    EntityType,
    GraphEdge,
    GraphNode,
    Investigation,
    InvestigationStatus,
    TimelineEvent,
    TimelineEventType,
)
from hivemind.db.repositories import EntityRepo, InvestigationRepo
from hivemind.db.sqlite import SQLiteDB

__all__ = [
    "SQLiteDB",
    "InvestigationGraph",
    "Entity",
    "EntitySource",
    "EntityType",
    "CrossReference",
    "GraphNode",
    "GraphEdge",
    "Investigation",
    "InvestigationStatus",
    "TimelineEvent",
    "TimelineEventType",
    "EntityRepo",
    "InvestigationRepo",
]
