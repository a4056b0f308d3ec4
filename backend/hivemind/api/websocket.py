"""WebSocket endpoint for live graph layout.

Streams layout positions for one investigation while the simulation runs,
and accepts pointer interaction from the graph view.

Protocol (JSON frames):
    Client -> Server: {"type": "drag", "node_id": "...", "x": 1.0, "y": 2.0}
    Client -> Server: {"type": "release", "node_id": "..."}
    Client -> Server: {"type": "select", "node_id": "..."}
    Client -> Server: {"type": "hover", "node_id": "..." | null}
    Client -> Server: {"type": "sync"}

    Server -> Client: {"type": "positions", "state": ..., "iterations": ..., "nodes": [...]}
    Server -> Client: {"type": "converged", "iterations": ..., "stopped_by_cap": ..., "nodes": [...]}
    Server -> Client: {"type": "highlight", "node_id": "...", "nodes": [...]}
    Server -> Client: {"type": "error", "message": "..."}

Drag, release and sync restart the simulation. Select and hover only
compute the highlight set; nothing is removed from the simulation.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from hivemind.errors import HivemindError
from hivemind.layout.engine import LayoutEngine, LayoutRunner, LayoutState
from hivemind.layout.view import highlight_set

logger = logging.getLogger(__name__)

router = APIRouter()


async def _send_json(ws: WebSocket, data: dict[str, Any]) -> None:
    """Send a JSON frame; a broken connection is logged and otherwise ignored."""
    try:
        await ws.send_json(data)
    except (RuntimeError, WebSocketDisconnect) as exc:
        logger.debug("Dropped layout frame %s: %s", data.get("type"), exc)


@router.websocket("/ws/layout/{investigation_id}")
async def layout_websocket(websocket: WebSocket, investigation_id: str) -> None:
    """Run and stream the layout of an investigation graph."""
    core = websocket.app.state.hivemind

    if investigation_id not in core.registry:
        await websocket.close(code=4004, reason="Investigation not found")
        return

    await websocket.accept()

    engine = core.layouts.engine_for(investigation_id, core.registry.get_graph(investigation_id))

    async def on_tick(engine: LayoutEngine) -> None:
        frame_type = "converged" if engine.state == LayoutState.CONVERGED else "positions"
        await _send_json(websocket, {"type": frame_type, **engine.snapshot()})

    runner = LayoutRunner(engine, core.layout_tick_seconds, on_tick)
    if engine.state == LayoutState.CONVERGED:
        await on_tick(engine)
    else:
        runner.start()

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await _send_json(websocket, {"type": "error", "message": "Invalid JSON frame"})
                continue

            frame_type = frame.get("type")
            node_id = frame.get("node_id")
            try:
                if frame_type == "drag":
                    engine.drag(node_id, float(frame["x"]), float(frame["y"]))
                    runner.start()
                elif frame_type == "release":
                    engine.unpin(node_id)
                    runner.start()
                elif frame_type == "sync":
                    graph = core.registry.get_graph(investigation_id)
                    if engine.sync_graph(graph):
                        runner.start()
                    else:
                        await on_tick(engine)
                elif frame_type in ("select", "hover"):
                    nodes = sorted(highlight_set(node_id, engine.edges)) if node_id else []
                    await _send_json(websocket, {
                        "type": "highlight",
                        "node_id": node_id,
                        "nodes": nodes,
                    })
                else:
                    await _send_json(websocket, {
                        "type": "error",
                        "message": f"Unknown frame type: {frame_type}",
                    })
            except (KeyError, TypeError, ValueError):
                await _send_json(websocket, {
                    "type": "error",
                    "message": f"Malformed {frame_type} frame",
                })
            except HivemindError as exc:
                await _send_json(websocket, {"type": "error", "message": exc.message})

    except WebSocketDisconnect:
        logger.info("Layout WebSocket disconnected for investigation %s", investigation_id)
    finally:
        await runner.stop()
