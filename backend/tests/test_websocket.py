"""Tests for the layout WebSocket endpoint."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from hivemind.api.websocket import router as ws_router
from hivemind.config import Settings
from hivemind.core import Hivemind


@pytest.fixture
def app_with_state():
    """Create a FastAPI app with WebSocket routes and a fresh core."""
    app = FastAPI()
    app.include_router(ws_router)
    settings = Settings(LAYOUT_TICK_SECONDS=0, LAYOUT_MAX_ITERATIONS=2000)
    app.state.settings = settings
    app.state.hivemind = Hivemind.from_settings(settings, layout_seed=1)
    yield app
    app.state.hivemind.close()


@pytest.fixture
def client(app_with_state):
    """TestClient over the app fixture."""
    return TestClient(app_with_state)


@pytest.fixture
def investigation_id(app_with_state):
    """Create a test investigation with a three-node chain."""
    registry = app_with_state.state.hivemind.registry
    inv_id = registry.create("Layout test").id
    for node_id in ("a", "b", "c"):
        registry.add_node(inv_id, node_id, "email", node_id, node_id)
    registry.add_edge(inv_id, "a", "b", "related", "prime")
    registry.add_edge(inv_id, "b", "c", "related", "prime")
    return inv_id


def _receive_until(ws, frame_type: str, limit: int = 5000) -> dict:
    """Helper: read frames until one of ``frame_type`` arrives."""
    for _ in range(limit):
        frame = ws.receive_json()
        if frame["type"] == frame_type:
            return frame
    raise AssertionError(f"no {frame_type} frame received")


def test_websocket_rejects_nonexistent_investigation(client):
    """Connection is closed for an unknown investigation."""
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/layout/inv-missing") as ws:
            ws.receive_json()


def test_streams_until_converged(client, investigation_id):
    """Position frames stream until a converged frame."""
    with client.websocket_connect(f"/ws/layout/{investigation_id}") as ws:
        first = ws.receive_json()
        assert first["type"] in ("positions", "converged")
        converged = _receive_until(ws, "converged")
        assert {n["id"] for n in converged["nodes"]} == {"a", "b", "c"}
        assert converged["state"] == "converged"


def test_highlight_on_select(client, investigation_id):
    """Selecting a node returns its highlight set."""
    with client.websocket_connect(f"/ws/layout/{investigation_id}") as ws:
        _receive_until(ws, "converged")
        ws.send_json({"type": "select", "node_id": "b"})
        frame = _receive_until(ws, "highlight")
        assert frame["node_id"] == "b"
        assert frame["nodes"] == ["a", "b", "c"]

        ws.send_json({"type": "hover", "node_id": None})
        assert _receive_until(ws, "highlight")["nodes"] == []


def test_drag_restarts_and_pins(client, investigation_id):
    """Dragging pins the node and restarts the layout."""
    with client.websocket_connect(f"/ws/layout/{investigation_id}") as ws:
        _receive_until(ws, "converged")
        ws.send_json({"type": "drag", "node_id": "a", "x": 10, "y": 20})
        frame = _receive_until(ws, "converged")
        pinned = next(n for n in frame["nodes"] if n["id"] == "a")
        assert pinned["pinned"]
        assert (pinned["x"], pinned["y"]) == (10, 20)

        ws.send_json({"type": "release", "node_id": "a"})
        frame = _receive_until(ws, "converged")
        assert not next(n for n in frame["nodes"] if n["id"] == "a")["pinned"]


def test_sync_picks_up_new_nodes(client, app_with_state, investigation_id):
    """A sync frame brings in nodes added since connecting."""
    with client.websocket_connect(f"/ws/layout/{investigation_id}") as ws:
        _receive_until(ws, "converged")
        registry = app_with_state.state.hivemind.registry
        registry.add_node(investigation_id, "d", "email", "d", "d")
        registry.add_edge(investigation_id, "c", "d", "related", "prime")
        ws.send_json({"type": "sync"})
        frame = _receive_until(ws, "converged")
        assert {n["id"] for n in frame["nodes"]} == {"a", "b", "c", "d"}


def test_error_frames(client, investigation_id):
    """Bad frames get an error frame, not a disconnect."""
    with client.websocket_connect(f"/ws/layout/{investigation_id}") as ws:
        _receive_until(ws, "converged")

        ws.send_text("not json")
        assert _receive_until(ws, "error")["message"] == "Invalid JSON frame"

        ws.send_json({"type": "teleport"})
        assert "Unknown frame type" in _receive_until(ws, "error")["message"]

        ws.send_json({"type": "drag", "node_id": "a"})
        assert _receive_until(ws, "error")["message"] == "Malformed drag frame"

        ws.send_json({"type": "drag", "node_id": "ghost", "x": 0, "y": 0})
        assert "not found" in _receive_until(ws, "error")["message"]
