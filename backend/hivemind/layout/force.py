"""Pure force-directed simulation step.

``step`` takes node states and edges and returns the next states together
with the mean velocity used for the convergence test. It holds no state
and does no scheduling, so a timer, a test or a batch loop can drive it.

Per tick:

1. repulsion ``repulsion / d**2`` between every unordered pair, with a small
   random nudge when the pair nearly coincides;
2. spring ``(d - rest_length) * spring_constant`` along every edge;
3. pull toward the canvas centre;
4. ``v = (v + F) * damping``, clamped to ``max_speed``, then ``x += v``.

Pinned nodes still push and pull on their neighbours but are not moved.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, replace
from typing import Iterable, Mapping, Sequence

REPULSION = 800.0
SPRING_CONSTANT = 0.05
REST_LENGTH = 120.0
CENTER_GRAVITY = 0.001
DAMPING = 0.92
MAX_SPEED = 10.0
MIN_VELOCITY = 0.01
MAX_ITERATIONS = 500

INITIAL_SPREAD = 0.3
INITIAL_JITTER = 20.0
COINCIDENT_DIST_SQ = 1.0


@dataclass(frozen=True)
class LayoutParams:
    """Simulation constants. ``width``/``height`` define the canvas centre."""

    repulsion: float = REPULSION
    spring_constant: float = SPRING_CONSTANT
    rest_length: float = REST_LENGTH
    center_gravity: float = CENTER_GRAVITY
    damping: float = DAMPING
    max_speed: float = MAX_SPEED
    convergence_threshold: float = MIN_VELOCITY
    max_iterations: int = MAX_ITERATIONS
    width: float = 800.0
    height: float = 600.0

    def __post_init__(self) -> None:
        if not 0.0 < self.damping < 1.0:
            raise ValueError("damping must be in (0, 1)")
        if self.rest_length <= 0 or self.max_speed <= 0:
            raise ValueError("rest_length and max_speed must be positive")

    @property
    def center(self) -> tuple[float, float]:
        return self.width / 2, self.height / 2


@dataclass(frozen=True)
class NodeState:
    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    pinned: bool = False


def initial_positions(
    node_ids: Sequence[str],
    params: LayoutParams,
    rng: random.Random | None = None,
) -> dict[str, NodeState]:
    """Spread nodes evenly on a circle around the centre, with some jitter."""
    rng = rng or random.Random()
    cx, cy = params.center
    radius = INITIAL_SPREAD * min(params.width, params.height)
    count = max(len(node_ids), 1)
    placed: dict[str, NodeState] = {}
    for i, node_id in enumerate(node_ids):
        angle = 2 * math.pi * i / count
        placed[node_id] = NodeState(
            x=cx + radius * math.cos(angle) + rng.uniform(-INITIAL_JITTER, INITIAL_JITTER),
            y=cy + radius * math.sin(angle) + rng.uniform(-INITIAL_JITTER, INITIAL_JITTER),
        )
    return placed


def mean_velocity(states: Iterable[NodeState]) -> float:
    """Mean of ``|vx| + |vy|`` over unpinned nodes (0.0 if there are none)."""
    speeds = [abs(s.vx) + abs(s.vy) for s in states if not s.pinned]
    return sum(speeds) / len(speeds) if speeds else 0.0


def step(
    states: Mapping[str, NodeState],
    edges: Sequence[tuple[str, str]],
    params: LayoutParams,
    rng: random.Random | None = None,
) -> tuple[dict[str, NodeState], float]:
    """Advance the simulation one tick. Returns (new states, mean velocity).

    Edges naming an unknown node, and self-loops, exert no force.
    """
    rng = rng or random.Random()
    ids = list(states)
    fx = dict.fromkeys(ids, 0.0)
    fy = dict.fromkeys(ids, 0.0)

    # Repulsion
    for i, a in enumerate(ids):
        sa = states[a]
        for b in ids[i + 1:]:
            sb = states[b]
            dx = sa.x - sb.x
            dy = sa.y - sb.y
            dist_sq = dx * dx + dy * dy
            if dist_sq < COINCIDENT_DIST_SQ:
                dx = rng.uniform(-1.0, 1.0)
                dy = rng.uniform(-1.0, 1.0)
                dist_sq = max(dx * dx + dy * dy, COINCIDENT_DIST_SQ)
            dist = math.sqrt(dist_sq)
            force = params.repulsion / dist_sq
            ux, uy = dx / dist, dy / dist
            fx[a] += ux * force
            fy[a] += uy * force
            fx[b] -= ux * force
            fy[b] -= uy * force

    # Springs
    for source, target in edges:
        if source == target or source not in states or target not in states:
            continue
        s, t = states[source], states[target]
        dx = t.x - s.x
        dy = t.y - s.y
        dist = math.hypot(dx, dy)
        if dist == 0:
            continue
        force = (dist - params.rest_length) * params.spring_constant
        ux, uy = dx / dist, dy / dist
        fx[source] += ux * force
        fy[source] += uy * force
        fx[target] -= ux * force
        fy[target] -= uy * force

    # Centre gravity and integration
    cx, cy = params.center
    updated: dict[str, NodeState] = {}
    for node_id in ids:
        state = states[node_id]
        if state.pinned:
            updated[node_id] = replace(state, vx=0.0, vy=0.0)
            continue
        ax = fx[node_id] + (cx - state.x) * params.center_gravity
        ay = fy[node_id] + (cy - state.y) * params.center_gravity
        vx = (state.vx + ax) * params.damping
        vy = (state.vy + ay) * params.damping
        speed = math.hypot(vx, vy)
        if speed > params.max_speed:
            vx *= params.max_speed / speed
            vy *= params.max_speed / speed
        updated[node_id] = NodeState(
            x=state.x + vx, y=state.y + vy, vx=vx, vy=vy, pinned=False,
        )

    return updated, mean_velocity(updated.values())
