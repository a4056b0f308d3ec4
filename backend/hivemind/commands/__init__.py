"""Hivemind commands: the request/response boundary over the core.

Each command is a plain async function taking the ``Hivemind`` core first.
``COMMANDS`` maps command names to the functions.
"""

from hivemind.commands.entities import (
    add_entity,
    annotate_entity,
    clear_entities,
    delete_entity,
    extract_entities_from_text,
    get_all_entities,
    get_cross_references,
    get_entity,
    get_entity_sources,
    get_hivemind_status,
)
from hivemind.commands.investigations import (
    add_graph_edge,
    add_graph_node,
    add_timeline_event,
    create_investigation,
    delete_investigation,
    export_investigation,
    find_graph_path,
    get_all_investigations,
    get_investigation,
    get_investigation_graph,
    get_investigation_timeline,
    link_entity_to_graph,
    update_investigation_status,
)
from hivemind.commands.layout import compute_layout
from hivemind.commands.timing import COMMANDS

__all__ = [
    "COMMANDS",
    "extract_entities_from_text",
    "add_entity",
    "get_all_entities",
    "get_entity",
    "get_entity_sources",
    "annotate_entity",
    "delete_entity",
    "get_cross_references",
    "clear_entities",
    "get_hivemind_status",
    "create_investigation",
    "get_all_investigations",
    "get_investigation",
    "delete_investigation",
    "update_investigation_status",
    "add_timeline_event",
    "get_investigation_timeline",
    "add_graph_node",
    "add_graph_edge",
    "get_investigation_graph",
    "link_entity_to_graph",
    "find_graph_path",
    "export_investigation",
    "compute_layout",
]
