"""Layout engine state machine and its asyncio driver.

``LayoutEngine`` owns node positions for one investigation graph and moves
through ``uninitialized -> running -> converged``. A change to the node or
edge set, or a drag, puts it back into ``running``; existing nodes keep
their positions, so re-running converges again from where it stopped.

``LayoutRunner`` drives an engine one ``step`` per tick on the event loop.
Each tick replaces the position table in a single assignment, so
cancelling the runner between ticks never leaves half-updated positions.
"""

from __future__ import annotations

import asyncio
import logging
import random
from enum import Enum
from typing import Awaitable, Callable, Iterable, Sequence

from hivemind.db.models import InvestigationGraphData
from hivemind.errors import NotFoundError
from hivemind.layout.force import LayoutParams, NodeState, initial_positions, step

logger = logging.getLogger(__name__)

# Consecutive below-threshold ticks required before declaring convergence.
SETTLE_TICKS = 3


class LayoutState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"
    CONVERGED = "converged"


class LayoutEngine:
    """Positions and physics state of one graph."""

    def __init__(self, params: LayoutParams | None = None, seed: int | None = None) -> None:
        self.params = params or LayoutParams()
        self._rng = random.Random(seed)
        self._states: dict[str, NodeState] = {}
        self._edges: list[tuple[str, str]] = []
        self.state = LayoutState.UNINITIALIZED
        self.iterations = 0
        self.stopped_by_cap = False
        self.last_velocity = 0.0
        self._settled = 0

    # -- Graph sync ------------------------------------------------------------

    def sync(self, node_ids: Sequence[str], edges: Iterable[tuple[str, str]]) -> bool:
        """Match the simulated node/edge set to the graph.

        New nodes are placed around the canvas centre, removed nodes are
        dropped, and surviving nodes keep their positions and velocities.
        Returns True (and restarts the simulation) if anything changed.
        """
        edge_list = list(edges)
        current = set(self._states)
        wanted = set(node_ids)
        if current == wanted and edge_list == self._edges and self.state != LayoutState.UNINITIALIZED:
            return False

        added = [n for n in node_ids if n not in current]
        states = {n: s for n, s in self._states.items() if n in wanted}
        if added:
            placed = initial_positions(added, self.params, self._rng)
            states.update(placed)
        self._states = states
        self._edges = edge_list
        self._restart()
        logger.debug(
            "Layout synced: %d nodes, %d edges (%d new)", len(states), len(edge_list), len(added),
        )
        return True

    def sync_graph(self, graph: InvestigationGraphData) -> bool:
        return self.sync(
            [n.id for n in graph.nodes], [(e.source, e.target) for e in graph.edges],
        )

    def _restart(self) -> None:
        self.state = LayoutState.RUNNING
        self.iterations = 0
        self.stopped_by_cap = False
        self._settled = 0

    # -- Simulation ------------------------------------------------------------

    def tick(self) -> LayoutState:
        """Advance one step if running and update the state."""
        if self.state != LayoutState.RUNNING:
            return self.state
        if not self._states:
            self.state = LayoutState.CONVERGED
            return self.state

        self._states, self.last_velocity = step(self._states, self._edges, self.params, self._rng)
        self.iterations += 1

        if self.last_velocity < self.params.convergence_threshold:
            self._settled += 1
        else:
            self._settled = 0
        if self._settled >= SETTLE_TICKS:
            self.state = LayoutState.CONVERGED
            logger.debug("Layout converged after %d iterations", self.iterations)
        elif self.iterations >= self.params.max_iterations:
            self.state = LayoutState.CONVERGED
            self.stopped_by_cap = True
            logger.debug("Layout stopped at iteration cap (%d)", self.iterations)
        return self.state

    def run(self, max_iterations: int | None = None) -> LayoutState:
        """Tick synchronously until converged or ``max_iterations`` more ticks ran."""
        budget = max_iterations if max_iterations is not None else self.params.max_iterations
        for _ in range(budget):
            if self.tick() != LayoutState.RUNNING:
                break
        return self.state

    async def run_async(self, max_iterations: int | None = None) -> LayoutState:
        """Like ``run``, but yields to the event loop after every tick."""
        budget = max_iterations if max_iterations is not None else self.params.max_iterations
        for _ in range(budget):
            if self.tick() != LayoutState.RUNNING:
                break
            await asyncio.sleep(0)
        return self.state

    # -- Interaction -----------------------------------------------------------

    def _require(self, node_id: str) -> NodeState:
        state = self._states.get(node_id)
        if state is None:
            raise NotFoundError(f"Layout node '{node_id}' not found")
        return state

    def pin(self, node_id: str, x: float, y: float) -> None:
        """Hold a node at a pointer position and restart the physics."""
        self._require(node_id)
        self._states = {**self._states, node_id: NodeState(x=x, y=y, pinned=True)}
        self._restart()

    drag = pin

    def unpin(self, node_id: str) -> None:
        """Release a node; physics resumes from where it was held."""
        held = self._require(node_id)
        self._states = {**self._states, node_id: NodeState(x=held.x, y=held.y)}
        self._restart()

    # -- Reads -----------------------------------------------------------------

    def positions(self) -> dict[str, tuple[float, float]]:
        return {n: (s.x, s.y) for n, s in self._states.items()}

    def node_state(self, node_id: str) -> NodeState:
        return self._require(node_id)

    def snapshot(self) -> dict:
        """JSON-ready frame of the current layout."""
        return {
            "state": self.state.value,
            "iterations": self.iterations,
            "stopped_by_cap": self.stopped_by_cap,
            "nodes": [
                {"id": n, "x": s.x, "y": s.y, "pinned": s.pinned}
                for n, s in self._states.items()
            ],
        }

    @property
    def edges(self) -> list[tuple[str, str]]:
        return list(self._edges)


TickCallback = Callable[[LayoutEngine], Awaitable[None]]


class LayoutRunner:
    """Drives a ``LayoutEngine`` on the event loop, one step per tick."""

    def __init__(
        self,
        engine: LayoutEngine,
        tick_seconds: float = 1 / 60,
        on_tick: TickCallback | None = None,
    ) -> None:
        self.engine = engine
        self.tick_seconds = tick_seconds
        self._on_tick = on_tick
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start ticking (or return the task already doing so)."""
        if not self.running:
            self._task = asyncio.create_task(self._loop())
        return self._task

    async def _loop(self) -> None:
        while self.engine.state == LayoutState.RUNNING:
            self.engine.tick()
            if self._on_tick is not None:
                await self._on_tick(self.engine)
            await asyncio.sleep(self.tick_seconds)

    async def stop(self) -> None:
        """Cancel the loop between ticks and wait for it to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Layout runner cancelled at iteration %d", self.engine.iterations)


class LayoutManager:
    """One engine per investigation, kept in sync with its graph."""

    def __init__(self, params: LayoutParams | None = None, seed: int | None = None) -> None:
        self._params = params or LayoutParams()
        self._seed = seed
        self._engines: dict[str, LayoutEngine] = {}

    def engine_for(self, investigation_id: str, graph: InvestigationGraphData) -> LayoutEngine:
        engine = self._engines.get(investigation_id)
        if engine is None:
            engine = LayoutEngine(self._params, self._seed)
            self._engines[investigation_id] = engine
        engine.sync_graph(graph)
        return engine

    def get(self, investigation_id: str) -> LayoutEngine | None:
        return self._engines.get(investigation_id)

    def discard(self, investigation_id: str) -> None:
        self._engines.pop(investigation_id, None)

    def __len__(self) -> int:
        return len(self._engines)
