"""Tests for hivemind.db.graph — the per-investigation networkx graph."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from hivemind.db.graph import InvestigationGraph, identity_node_id, page_node_id
from hivemind.db.models import Entity, EntitySource, EntityType, GraphEdge, GraphNode
from hivemind.entity.store import compute_hash
from hivemind.errors import DanglingEdgeError, DuplicateError, NotFoundError

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _node(node_id: str, node_type: str = "entity") -> GraphNode:
    """Helper: a node whose label and value are its id."""
    return GraphNode(id=node_id, node_type=node_type, label=node_id, value=node_id)


def _edge(source: str, target: str, relationship: str = "related", edge_id: str | None = None) -> GraphEdge:
    """Helper: an edge discovered by 'prime'."""
    return GraphEdge(
        id=edge_id or f"edge-{source}-{target}-{relationship}",
        source=source,
        target=target,
        relationship=relationship,
        discovered_by="prime",
    )


@pytest.fixture
def graph() -> InvestigationGraph:
    """Empty graph for investigation inv-1."""
    return InvestigationGraph("inv-1")


@pytest.fixture
def populated(graph: InvestigationGraph) -> InvestigationGraph:
    """Graph with a-b-c chained and d isolated."""
    for node_id in ("a", "b", "c", "d"):
        graph.add_node(_node(node_id))
    graph.add_edge(_edge("a", "b"))
    graph.add_edge(_edge("c", "b"))
    return graph


class TestNodes:
    """Node add and lookup."""

    def test_add_and_get(self, graph: InvestigationGraph):
        """An added node is returned with its type colour."""
        graph.add_node(_node("a", "email"))
        node = graph.get_node("a")
        assert node is not None
        assert node.node_type == "email"
        assert node.color is not None
        assert graph.node_count == 1

    def test_duplicate_id_rejected(self, graph: InvestigationGraph):
        """A second node with the same id is refused."""
        graph.add_node(_node("a"))
        with pytest.raises(DuplicateError):
            graph.add_node(_node("a", "person"))
        assert graph.node_count == 1
        assert graph.get_node("a").node_type == "entity"

    def test_missing_node_is_none(self, graph: InvestigationGraph):
        """Looking up an unknown node returns None."""
        assert graph.get_node("missing") is None


class TestEdges:
    """Edge validation."""

    def test_dangling_edge_rejected(self, graph: InvestigationGraph):
        """An edge to a missing node names what is missing."""
        graph.add_node(_node("a"))
        with pytest.raises(DanglingEdgeError) as exc_info:
            graph.add_edge(_edge("a", "ghost"))
        assert exc_info.value.missing == ["ghost"]
        assert graph.edge_count == 0

    def test_dangling_edge_is_not_found(self, graph: InvestigationGraph):
        """DanglingEdgeError is a NotFoundError."""
        with pytest.raises(NotFoundError):
            graph.add_edge(_edge("x", "y"))

    def test_duplicate_relationship_rejected(self, populated: InvestigationGraph):
        """The same (source, target, relationship) twice is refused."""
        with pytest.raises(DuplicateError):
            populated.add_edge(_edge("a", "b", edge_id="edge-other"))
        assert populated.edge_count == 2

    def test_different_relationship_allowed(self, populated: InvestigationGraph):
        """A second relationship on the same pair is allowed."""
        populated.add_edge(_edge("a", "b", relationship="same_owner"))
        assert populated.edge_count == 3

    def test_edge_count_increments_once(self, graph: InvestigationGraph):
        """A refused edge leaves the count alone."""
        graph.add_node(_node("a"))
        graph.add_node(_node("b"))
        graph.add_edge(_edge("a", "b"))
        assert graph.edge_count == 1


class TestTraversal:
    """Neighbours and paths ignore edge direction."""

    def test_neighbors_ignore_direction(self, populated: InvestigationGraph):
        """Neighbours include both in and out edges."""
        assert populated.neighbors("b") == {"a", "c"}
        assert populated.neighbors("d") == set()

    def test_neighbors_of_missing_node(self, populated: InvestigationGraph):
        """Neighbours of an unknown node raise NotFoundError."""
        with pytest.raises(NotFoundError):
            populated.neighbors("zzz")

    def test_find_path_undirected(self, populated: InvestigationGraph):
        """A path can follow edges backwards."""
        path = populated.find_path("a", "c")
        assert [n.id for n in path] == ["a", "b", "c"]

    def test_find_path_none(self, populated: InvestigationGraph):
        """Disconnected nodes have no path."""
        assert populated.find_path("a", "d") == []


class TestSerialisation:
    """to_data and from_data."""

    def test_round_trip(self, populated: InvestigationGraph):
        """A rebuilt graph has the same nodes and edges."""
        rebuilt = InvestigationGraph.from_data(populated.to_data(), "inv-1")
        assert rebuilt.node_count == 4
        assert rebuilt.edge_count == 2
        assert rebuilt.neighbors("b") == {"a", "c"}


class TestLinkEntity:
    """Linking a stored entity into the graph."""

    @pytest.fixture
    def entity(self) -> Entity:
        """Email seen by two identities, one of them on a page."""
        return Entity(
            hash=compute_hash(EntityType.EMAIL, "john@acme.com"),
            entity_type=EntityType.EMAIL,
            value="john@acme.com",
            sources=[
                EntitySource(identity_id="prime", url="https://acme.example", timestamp=T0),
                EntitySource(identity_id="ghost", url=None, timestamp=T0),
            ],
            first_seen=T0,
            last_seen=T0,
            occurrence_count=2,
        )

    def test_builds_entity_identity_and_page_nodes(self, graph: InvestigationGraph, entity: Entity):
        """Linking adds the entity, its identities and its pages."""
        added = graph.link_entity(entity)
        ids = {n.id for n in added["nodes"]}
        assert ids == {
            entity.hash,
            identity_node_id("prime"),
            identity_node_id("ghost"),
            page_node_id("https://acme.example"),
        }
        assert graph.get_node(entity.hash).node_type == "email"
        relationships = sorted(e.relationship for e in added["edges"])
        assert relationships == ["discovered_by", "discovered_by", "found_on"]

    def test_relinking_adds_nothing(self, graph: InvestigationGraph, entity: Entity):
        """Linking twice adds nothing the second time."""
        graph.link_entity(entity)
        again = graph.link_entity(entity)
        assert again == {"nodes": [], "edges": []}
        assert graph.node_count == 4
        assert graph.edge_count == 3

    def test_connects_identities_through_entity(self, graph: InvestigationGraph, entity: Entity):
        """The two identities are joined through the entity."""
        graph.link_entity(entity)
        path = graph.find_path(identity_node_id("prime"), identity_node_id("ghost"))
        assert [n.id for n in path] == [identity_node_id("prime"), entity.hash, identity_node_id("ghost")]
