"""Render-time helpers: view transform, highlighting, hit-testing, stats.

Everything here reads simulation coordinates and never writes them. Pan
and zoom live only in ``ViewTransform``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Mapping

MIN_SCALE = 0.25
MAX_SCALE = 4.0
ZOOM_STEP = 1.25
WHEEL_ZOOM_IN = 1.1
WHEEL_ZOOM_OUT = 0.9

MIN_NODE_RADIUS = 8.0
MAX_NODE_RADIUS = 24.0


@dataclass
class ViewTransform:
    """Affine screen transform: ``screen = sim * scale + offset``."""

    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = 1.0

    def to_screen(self, x: float, y: float) -> tuple[float, float]:
        return x * self.scale + self.offset_x, y * self.scale + self.offset_y

    def to_simulation(self, sx: float, sy: float) -> tuple[float, float]:
        return (sx - self.offset_x) / self.scale, (sy - self.offset_y) / self.scale

    def pan(self, dx: float, dy: float) -> None:
        self.offset_x += dx
        self.offset_y += dy

    def zoom(self, factor: float, anchor: tuple[float, float] | None = None) -> None:
        """Multiply the scale by ``factor`` (clamped), keeping ``anchor`` fixed on screen."""
        new_scale = min(MAX_SCALE, max(MIN_SCALE, self.scale * factor))
        if anchor is not None:
            ax, ay = anchor
            sim_x, sim_y = self.to_simulation(ax, ay)
            self.offset_x = ax - sim_x * new_scale
            self.offset_y = ay - sim_y * new_scale
        self.scale = new_scale

    def zoom_in(self) -> None:
        self.zoom(ZOOM_STEP)

    def zoom_out(self) -> None:
        self.zoom(1 / ZOOM_STEP)

    def wheel(self, delta_y: float, anchor: tuple[float, float]) -> None:
        """Mouse-wheel zoom: scrolling down zooms out."""
        self.zoom(WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN, anchor)

    def reset(self) -> None:
        self.offset_x = self.offset_y = 0.0
        self.scale = 1.0


def highlight_set(node_id: str, edges: Iterable[tuple[str, str]]) -> set[str]:
    """``{node_id}`` plus every node joined to it by an incident edge."""
    highlighted = {node_id}
    for source, target in edges:
        if source == node_id:
            highlighted.add(target)
        elif target == node_id:
            highlighted.add(source)
    return highlighted


def degrees(node_ids: Iterable[str], edges: Iterable[tuple[str, str]]) -> dict[str, int]:
    counts = dict.fromkeys(node_ids, 0)
    for source, target in edges:
        if source in counts:
            counts[source] += 1
        if target in counts:
            counts[target] += 1
    return counts


def node_radius(degree: int) -> float:
    return max(MIN_NODE_RADIUS, min(MAX_NODE_RADIUS, 6.0 + 2.0 * degree))


def hit_test(
    positions: Mapping[str, tuple[float, float]],
    node_degrees: Mapping[str, int],
    x: float,
    y: float,
) -> str | None:
    """Node under the simulation point (x, y); the closest wins on overlap."""
    best: str | None = None
    best_dist = math.inf
    for node_id, (nx_, ny_) in positions.items():
        dist = math.hypot(x - nx_, y - ny_)
        if dist <= node_radius(node_degrees.get(node_id, 0)) and dist < best_dist:
            best, best_dist = node_id, dist
    return best


@dataclass(frozen=True)
class GraphStats:
    node_count: int
    edge_count: int
    most_connected: str | None
    max_degree: int


def graph_stats(node_ids: Iterable[str], edges: Iterable[tuple[str, str]]) -> GraphStats:
    edge_list = list(edges)
    counts = degrees(node_ids, edge_list)
    if not counts:
        return GraphStats(0, len(edge_list), None, 0)
    # First node wins ties.
    most_connected = max(counts, key=lambda n: counts[n])
    return GraphStats(len(counts), len(edge_list), most_connected, counts[most_connected])
