"""REST API routes for the Hivemind backend.

All endpoints are under /api/v1. Each route calls the matching command
with the core from app.state and turns ``HivemindError`` into an
``HTTPException`` carrying the error's status code.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from hivemind import commands
from hivemind.core import Hivemind
from hivemind.db.models import (
    CrossReference,
    Entity,
    EntitySource,
    ExtractionResult,
    GraphEdge,
    GraphNode,
    HivemindStatus,
    Investigation,
    InvestigationExport,
    InvestigationGraphData,
    InvestigationSummary,
    TimelineEvent,
)
from hivemind.errors import HivemindError

router = APIRouter(prefix="/api/v1")


# -- Request models -----------------------------------------------------------

class ExtractRequest(BaseModel):
    text: str
    identity_id: str
    url: str | None = None
    investigation_id: str | None = None


class AddEntityRequest(BaseModel):
    entity_type: str
    value: str
    identity_id: str
    url: str | None = None
    context: str | None = None


class AnnotateEntityRequest(BaseModel):
    tags: list[str] | None = None
    notes: str | None = None
    risk_score: int | None = None


class CreateInvestigationRequest(BaseModel):
    name: str
    description: str = ""


class UpdateStatusRequest(BaseModel):
    status: str


class TimelineEventRequest(BaseModel):
    event_type: str
    title: str
    identity_id: str
    description: str = ""
    url: str | None = None
    entity_hash: str | None = None
    importance: int | None = None
    metadata: dict[str, Any] | None = None


class GraphNodeRequest(BaseModel):
    id: str
    node_type: str
    label: str
    value: str
    entity_type: str | None = None
    color: str | None = None
    metadata: dict[str, Any] | None = None


class GraphEdgeRequest(BaseModel):
    source: str
    target: str
    relationship: str
    discovered_by: str
    label: str = ""
    weight: float | None = None
    context: str | None = None


class LinkEntityRequest(BaseModel):
    entity_hash: str


class LayoutRequest(BaseModel):
    max_iterations: int | None = Field(default=None, gt=0)


# -- Helpers ------------------------------------------------------------------

def _core(request: Request) -> Hivemind:
    return request.app.state.hivemind


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except HivemindError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


# -- Entity endpoints ---------------------------------------------------------

@router.post("/entities/extract")
async def extract_entities(body: ExtractRequest, request: Request) -> ExtractionResult:
    """Extract entities from text observed under an identity."""
    with _translate_errors():
        return await commands.extract_entities_from_text(
            _core(request), body.text, body.identity_id, body.url, body.investigation_id,
        )


@router.post("/entities")
async def add_entity(body: AddEntityRequest, request: Request) -> Entity:
    with _translate_errors():
        return await commands.add_entity(
            _core(request), body.entity_type, body.value, body.identity_id,
            body.url, body.context,
        )


@router.get("/entities")
async def list_entities(request: Request, entity_type: str | None = None) -> list[Entity]:
    with _translate_errors():
        return await commands.get_all_entities(_core(request), entity_type)


@router.get("/entities/cross-references")
async def cross_references(request: Request) -> list[CrossReference]:
    return await commands.get_cross_references(_core(request))


@router.delete("/entities")
async def clear_entities(request: Request, confirm: bool = False) -> dict[str, Any]:
    """Delete every entity. Requires ``?confirm=true``."""
    with _translate_errors():
        removed = await commands.clear_entities(_core(request), confirm)
    return {"status": "cleared", "removed": removed}


@router.get("/entities/{entity_hash}")
async def get_entity(entity_hash: str, request: Request) -> Entity:
    with _translate_errors():
        return await commands.get_entity(_core(request), entity_hash)


@router.get("/entities/{entity_hash}/sources")
async def get_entity_sources(entity_hash: str, request: Request) -> list[EntitySource]:
    with _translate_errors():
        return await commands.get_entity_sources(_core(request), entity_hash)


@router.patch("/entities/{entity_hash}")
async def annotate_entity(
    entity_hash: str, body: AnnotateEntityRequest, request: Request,
) -> Entity:
    with _translate_errors():
        return await commands.annotate_entity(
            _core(request), entity_hash, body.tags, body.notes, body.risk_score,
        )


@router.delete("/entities/{entity_hash}")
async def delete_entity(entity_hash: str, request: Request) -> dict[str, str]:
    with _translate_errors():
        await commands.delete_entity(_core(request), entity_hash)
    return {"status": "deleted", "hash": entity_hash}


@router.get("/hivemind/status")
async def hivemind_status(request: Request) -> HivemindStatus:
    return await commands.get_hivemind_status(_core(request))


# -- Investigation endpoints --------------------------------------------------

@router.post("/investigations")
async def create_investigation(
    body: CreateInvestigationRequest, request: Request,
) -> Investigation:
    with _translate_errors():
        return await commands.create_investigation(_core(request), body.name, body.description)


@router.get("/investigations")
async def list_investigations(request: Request) -> list[InvestigationSummary]:
    return await commands.get_all_investigations(_core(request))


@router.get("/investigations/{investigation_id}")
async def get_investigation(investigation_id: str, request: Request) -> Investigation:
    with _translate_errors():
        return await commands.get_investigation(_core(request), investigation_id)


@router.delete("/investigations/{investigation_id}")
async def delete_investigation(investigation_id: str, request: Request) -> dict[str, str]:
    with _translate_errors():
        await commands.delete_investigation(_core(request), investigation_id)
    return {"status": "deleted", "id": investigation_id}


@router.patch("/investigations/{investigation_id}/status")
async def update_status(
    investigation_id: str, body: UpdateStatusRequest, request: Request,
) -> Investigation:
    with _translate_errors():
        return await commands.update_investigation_status(
            _core(request), investigation_id, body.status,
        )


# -- Timeline endpoints -------------------------------------------------------

@router.post("/investigations/{investigation_id}/timeline")
async def add_timeline_event(
    investigation_id: str, body: TimelineEventRequest, request: Request,
) -> TimelineEvent:
    with _translate_errors():
        return await commands.add_timeline_event(
            _core(request),
            investigation_id,
            body.event_type,
            body.title,
            body.identity_id,
            description=body.description,
            url=body.url,
            entity_hash=body.entity_hash,
            importance=body.importance,
            metadata=body.metadata,
        )


@router.get("/investigations/{investigation_id}/timeline")
async def get_timeline(
    investigation_id: str,
    request: Request,
    event_type: str | None = None,
    order: str = "desc",
) -> list[TimelineEvent]:
    """Timeline events, newest first unless ``order=asc``."""
    with _translate_errors():
        return await commands.get_investigation_timeline(
            _core(request), investigation_id, event_type, newest_first=order != "asc",
        )


# -- Graph endpoints ----------------------------------------------------------

@router.get("/investigations/{investigation_id}/graph")
async def get_graph(investigation_id: str, request: Request) -> InvestigationGraphData:
    with _translate_errors():
        return await commands.get_investigation_graph(_core(request), investigation_id)


@router.post("/investigations/{investigation_id}/graph/nodes")
async def add_graph_node(
    investigation_id: str, body: GraphNodeRequest, request: Request,
) -> GraphNode:
    with _translate_errors():
        return await commands.add_graph_node(
            _core(request), investigation_id, body.id, body.node_type, body.label,
            body.value, body.entity_type, body.color, body.metadata,
        )


@router.post("/investigations/{investigation_id}/graph/edges")
async def add_graph_edge(
    investigation_id: str, body: GraphEdgeRequest, request: Request,
) -> GraphEdge:
    with _translate_errors():
        return await commands.add_graph_edge(
            _core(request), investigation_id, body.source, body.target,
            body.relationship, body.discovered_by,
            label=body.label, weight=body.weight, context=body.context,
        )


@router.post("/investigations/{investigation_id}/graph/entities")
async def link_entity(
    investigation_id: str, body: LinkEntityRequest, request: Request,
) -> InvestigationGraphData:
    with _translate_errors():
        return await commands.link_entity_to_graph(
            _core(request), investigation_id, body.entity_hash,
        )


@router.get("/investigations/{investigation_id}/graph/path")
async def graph_path(
    investigation_id: str, source: str, target: str, request: Request,
) -> list[GraphNode]:
    with _translate_errors():
        return await commands.find_graph_path(_core(request), investigation_id, source, target)


# -- Export / layout ----------------------------------------------------------

@router.get("/investigations/{investigation_id}/export")
async def export_investigation(investigation_id: str, request: Request) -> InvestigationExport:
    with _translate_errors():
        return await commands.export_investigation(_core(request), investigation_id)


@router.post("/investigations/{investigation_id}/layout")
async def compute_layout(
    investigation_id: str, request: Request, body: LayoutRequest | None = None,
) -> dict[str, Any]:
    with _translate_errors():
        return await commands.compute_layout(
            _core(request), investigation_id, body.max_iterations if body else None,
        )
