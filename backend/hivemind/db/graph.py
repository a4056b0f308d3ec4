"""Per-investigation relationship graph backed by networkx.

Nodes are keyed by their id and carry the ``GraphNode`` model; edges are
keyed by edge id on a ``networkx.MultiDiGraph`` and carry the ``GraphEdge``
model. Edges hold only endpoint ids; node objects are resolved through the
graph at read time.

Integrity rules:
- a node id is added at most once (``DuplicateError`` otherwise);
- an edge is refused unless both endpoints are present
  (``DanglingEdgeError``), or if the same (source, target, relationship)
  already exists (``DuplicateError``).

A refused write leaves the graph unchanged.
"""

from __future__ import annotations

import uuid
from typing import Any

import networkx as nx

from hivemind.db.models import Entity, EntityType, GraphEdge, GraphNode, InvestigationGraphData
from hivemind.errors import DanglingEdgeError, DuplicateError, NotFoundError

# Node type used when an entity is linked into an investigation graph.
ENTITY_NODE_TYPES: dict[EntityType, str] = {
    EntityType.EMAIL: "email",
    EntityType.PHONE: "phone",
    EntityType.DOMAIN: "domain",
    EntityType.IP_V4: "ip_address",
    EntityType.IP_V6: "ip_address",
    EntityType.USERNAME: "username",
    EntityType.BITCOIN_ADDRESS: "crypto_wallet",
    EntityType.ETHEREUM_ADDRESS: "crypto_wallet",
    EntityType.URL: "url",
    EntityType.SOCIAL_URL: "url",
    EntityType.NAME: "person",
}

NODE_COLORS: dict[str, str] = {
    "entity": "#6b7280",
    "page": "#3b82f6",
    "person": "#f59e0b",
    "identity": "#8b5cf6",
    "email": "#10b981",
    "phone": "#14b8a6",
    "domain": "#0ea5e9",
    "ip_address": "#ef4444",
    "username": "#ec4899",
    "crypto_wallet": "#eab308",
    "url": "#6366f1",
}


def new_edge_id() -> str:
    return f"edge-{uuid.uuid4()}"


def identity_node_id(identity_id: str) -> str:
    return f"identity:{identity_id}"


def page_node_id(url: str) -> str:
    return f"page:{url}"


class InvestigationGraph:
    """Node/edge set of one investigation."""

    def __init__(self, investigation_id: str = "") -> None:
        self.investigation_id = investigation_id
        self._graph: nx.MultiDiGraph = nx.MultiDiGraph()

    @classmethod
    def from_data(cls, data: InvestigationGraphData, investigation_id: str = "") -> InvestigationGraph:
        """Rebuild a graph from its serialised node/edge lists."""
        graph = cls(investigation_id)
        for node in data.nodes:
            graph.add_node(node)
        for edge in data.edges:
            graph.add_edge(edge)
        return graph

    def to_data(self) -> InvestigationGraphData:
        return InvestigationGraphData(nodes=self.nodes(), edges=self.edges())

    # -- Mutation --------------------------------------------------------------

    def add_node(self, node: GraphNode) -> GraphNode:
        """Add a node. Raises ``DuplicateError`` if the id is taken."""
        if node.id in self._graph:
            raise DuplicateError(f"Graph node '{node.id}' already exists")
        update = {"color": NODE_COLORS.get(node.node_type)} if node.color is None else {}
        node = node.model_copy(update=update, deep=True)
        self._graph.add_node(node.id, node=node)
        return node

    def add_edge(self, edge: GraphEdge) -> GraphEdge:
        """Add a directed edge between two existing nodes."""
        missing = [n for n in (edge.source, edge.target) if n not in self._graph]
        if missing:
            raise DanglingEdgeError(self.investigation_id, missing)
        if self.has_edge(edge.source, edge.target, edge.relationship):
            raise DuplicateError(
                f"Edge {edge.source} -[{edge.relationship}]-> {edge.target} already exists"
            )
        if any(e.id == edge.id for e in self.edges()):
            raise DuplicateError(f"Graph edge '{edge.id}' already exists")
        edge = edge.model_copy(deep=True)
        self._graph.add_edge(edge.source, edge.target, key=edge.id, edge=edge)
        return edge

    def has_edge(self, source: str, target: str, relationship: str) -> bool:
        if not self._graph.has_edge(source, target):
            return False
        return any(
            attrs["edge"].relationship == relationship
            for attrs in self._graph.get_edge_data(source, target).values()
        )

    # -- Reads -----------------------------------------------------------------

    def get_node(self, node_id: str) -> GraphNode | None:
        if node_id not in self._graph:
            return None
        return self._graph.nodes[node_id]["node"]

    def nodes(self) -> list[GraphNode]:
        return [attrs["node"] for _, attrs in self._graph.nodes(data=True)]

    def edges(self) -> list[GraphEdge]:
        return [attrs["edge"] for _, _, attrs in self._graph.edges(data=True)]

    def neighbors(self, node_id: str) -> set[str]:
        """Ids adjacent to ``node_id`` through any incident edge, either direction."""
        if node_id not in self._graph:
            raise NotFoundError(f"Graph node '{node_id}' not found")
        return set(self._graph.successors(node_id)) | set(self._graph.predecessors(node_id))

    def degree(self, node_id: str) -> int:
        return self._graph.degree(node_id)

    def find_path(self, source_id: str, target_id: str) -> list[GraphNode]:
        """Shortest path between two nodes, ignoring edge direction.

        Returns an empty list when no path exists.
        """
        for node_id in (source_id, target_id):
            if node_id not in self._graph:
                raise NotFoundError(f"Graph node '{node_id}' not found")
        # Relationships are read both ways in an investigation.
        undirected = self._graph.to_undirected()
        try:
            path = nx.shortest_path(undirected, source_id, target_id)
        except nx.NetworkXNoPath:
            return []
        return [self._graph.nodes[n]["node"] for n in path]

    @property
    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    # -- Entity linking --------------------------------------------------------

    def link_entity(self, entity: Entity) -> dict[str, list[Any]]:
        """Link a store entity into the graph with its discovering identities and pages.

        Creates the entity node (id = entity hash), one ``identity:<id>`` node
        per observing identity and one ``page:<url>`` node per source URL,
        joined by ``discovered_by`` and ``found_on`` edges. Parts that already
        exist are left alone, so relinking an entity only adds what is new.
        Returns the nodes and edges that were added.
        """
        added_nodes: list[GraphNode] = []
        added_edges: list[GraphEdge] = []

        def ensure_node(node: GraphNode) -> None:
            if node.id not in self._graph:
                added_nodes.append(self.add_node(node))

        def ensure_edge(source: str, target: str, relationship: str, by: str, context: str | None) -> None:
            if self.has_edge(source, target, relationship):
                return
            added_edges.append(self.add_edge(GraphEdge(
                id=new_edge_id(),
                source=source,
                target=target,
                relationship=relationship,
                label=relationship.replace("_", " "),
                discovered_by=by,
                context=context,
            )))

        ensure_node(GraphNode(
            id=entity.hash,
            node_type=ENTITY_NODE_TYPES.get(entity.entity_type, "entity"),
            label=entity.value,
            value=entity.value,
            entity_type=entity.entity_type.value,
            metadata={"occurrence_count": entity.occurrence_count},
        ))
        for source in entity.sources:
            identity_id = identity_node_id(source.identity_id)
            ensure_node(GraphNode(
                id=identity_id,
                node_type="identity",
                label=source.identity_id,
                value=source.identity_id,
            ))
            ensure_edge(entity.hash, identity_id, "discovered_by", source.identity_id, source.context)
            if source.url:
                page_id = page_node_id(source.url)
                ensure_node(GraphNode(id=page_id, node_type="page", label=source.url, value=source.url))
                ensure_edge(entity.hash, page_id, "found_on", source.identity_id, source.context)

        return {"nodes": added_nodes, "edges": added_edges}
