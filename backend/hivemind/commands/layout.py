"""Headless layout command."""

from __future__ import annotations

from typing import Any

from hivemind.commands.timing import command
from hivemind.core import Hivemind
from hivemind.layout.view import graph_stats


@command
async def compute_layout(
    core: Hivemind, investigation_id: str, max_iterations: int | None = None,
) -> dict[str, Any]:
    """Run the investigation's layout to convergence (or the cap) and return positions.

    The engine is cached per investigation, so a later call after the graph
    grew continues from the previous positions.
    """
    graph = core.registry.get_graph(investigation_id)
    engine = core.layouts.engine_for(investigation_id, graph)
    await engine.run_async(max_iterations)
    edges = [(e.source, e.target) for e in graph.edges]
    stats = graph_stats([n.id for n in graph.nodes], edges)
    return {
        **engine.snapshot(),
        "stats": {
            "node_count": stats.node_count,
            "edge_count": stats.edge_count,
            "most_connected": stats.most_connected,
            "max_degree": stats.max_degree,
        },
    }
