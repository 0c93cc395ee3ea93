# roadbuilder/osnap.py
"""
Snap resolution for pointer placement.

A raw world-space point is resolved against the road network in a fixed
priority: an existing node, then the projection onto a straight road, then
the grid (when enabled), and finally the raw point itself. Exactly one rule
fires per call. The result carries a preview token so the canvas can show
what the cursor is attached to.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, NamedTuple, Optional

from .intersect2d import Point
from .topology import TopologyStore


class SnapKind(str, Enum):
    NODE = "node"
    ROAD = "road"
    GRID = "grid"
    FREE = "free"


class SnapResult(NamedTuple):
    point: Point
    kind: SnapKind
    node_id: Optional[str] = None
    road_id: Optional[str] = None

    @property
    def preview(self) -> Optional[str]:
        """Feedback token: ``"node"``, ``"road"`` or ``None``."""
        if self.kind in (SnapKind.NODE, SnapKind.ROAD):
            return self.kind.value
        return None


def grid_snap(p: Point, spacing: float) -> Point:
    if spacing <= 0.0:
        return (float(p[0]), float(p[1]))
    g = float(spacing)
    return (round(p[0] / g) * g, round(p[1] / g) * g)


def resolve_snap(
    p: Point,
    topology: TopologyStore,
    snap_distance: float,
    *,
    snap_enabled: bool = True,
    grid_enabled: bool = False,
    exclude_node_ids: Iterable[str] = (),
) -> SnapResult:
    """
    Resolve ``p`` into a placement.

    ``exclude_node_ids`` hides nodes from the node rule, e.g. the point the
    active build session just placed, so a chain never snaps back onto its
    own tail.
    """
    px, py = float(p[0]), float(p[1])
    if snap_enabled:
        node = topology.nearest_node((px, py), snap_distance, exclude_ids=exclude_node_ids)
        if node is not None:
            return SnapResult((node.x, node.y), SnapKind.NODE, node_id=node.id)
        hit = topology.nearest_straight_road((px, py), snap_distance)
        if hit is not None:
            road, proj = hit
            return SnapResult((float(proj[0]), float(proj[1])), SnapKind.ROAD, road_id=road.id)
    if grid_enabled:
        return SnapResult(grid_snap((px, py), snap_distance), SnapKind.GRID)
    return SnapResult((px, py), SnapKind.FREE)
