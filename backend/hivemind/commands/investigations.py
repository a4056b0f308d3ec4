"""Investigation commands: lifecycle, timeline, graph and export."""

from __future__ import annotations

from typing import Any

from hivemind.commands.timing import command
from hivemind.core import Hivemind
from hivemind.db.models import (
    GraphEdge,
    GraphNode,
    Investigation,
    InvestigationExport,
    InvestigationGraphData,
    InvestigationStatus,
    InvestigationSummary,
    TimelineEvent,
)


@command
async def create_investigation(core: Hivemind, name: str, description: str = "") -> Investigation:
    return core.registry.create(name, description)


@command
async def get_all_investigations(core: Hivemind) -> list[InvestigationSummary]:
    return core.registry.summaries()


@command
async def get_investigation(core: Hivemind, investigation_id: str) -> Investigation:
    return core.registry.get(investigation_id)


@command
async def delete_investigation(core: Hivemind, investigation_id: str) -> None:
    core.registry.delete(investigation_id)
    core.layouts.discard(investigation_id)


@command
async def update_investigation_status(
    core: Hivemind, investigation_id: str, status: InvestigationStatus | str,
) -> Investigation:
    return core.registry.update_status(investigation_id, status)


@command
async def add_timeline_event(
    core: Hivemind,
    investigation_id: str,
    event_type: str,
    title: str,
    identity_id: str,
    description: str = "",
    url: str | None = None,
    entity_hash: str | None = None,
    importance: int | None = None,
    metadata: dict[str, Any] | None = None,
) -> TimelineEvent:
    """Append a timeline event.

    Unknown ``event_type`` names are stored as ``custom``; ``importance``
    defaults to 1 and is clamped to 1..5.
    """
    return core.registry.add_timeline_event(
        investigation_id,
        event_type,
        title=title,
        identity_id=identity_id,
        description=description,
        url=url,
        entity_hash=entity_hash,
        importance=importance,
        metadata=metadata,
    )


@command
async def get_investigation_timeline(
    core: Hivemind,
    investigation_id: str,
    event_type_filter: str | None = None,
    newest_first: bool = True,
) -> list[TimelineEvent]:
    return core.registry.get_timeline(investigation_id, event_type_filter, newest_first)


@command
async def add_graph_node(
    core: Hivemind,
    investigation_id: str,
    node_id: str,
    node_type: str,
    label: str,
    value: str,
    entity_type: str | None = None,
    color: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> GraphNode:
    return core.registry.add_node(
        investigation_id, node_id, node_type, label, value,
        entity_type=entity_type, color=color, metadata=metadata,
    )


@command
async def add_graph_edge(
    core: Hivemind,
    investigation_id: str,
    source: str,
    target: str,
    relationship: str,
    discovered_by: str,
    label: str = "",
    weight: float | None = None,
    context: str | None = None,
) -> GraphEdge:
    return core.registry.add_edge(
        investigation_id, source, target, relationship, discovered_by,
        label=label, weight=weight, context=context,
    )


@command
async def get_investigation_graph(core: Hivemind, investigation_id: str) -> InvestigationGraphData:
    return core.registry.get_graph(investigation_id)


@command
async def link_entity_to_graph(
    core: Hivemind, investigation_id: str, entity_hash: str,
) -> InvestigationGraphData:
    """Link a Hivemind entity into an investigation graph; returns what was added."""
    entity = core.store.require(entity_hash)
    return core.registry.link_entity(investigation_id, entity)


@command
async def find_graph_path(
    core: Hivemind, investigation_id: str, source_id: str, target_id: str,
) -> list[GraphNode]:
    return core.registry.find_path(investigation_id, source_id, target_id)


@command
async def export_investigation(core: Hivemind, investigation_id: str) -> InvestigationExport:
    return core.registry.export(investigation_id)
