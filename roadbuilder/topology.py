"""Node/road store.

All structural edits go through :class:`TopologyStore`, which keeps the
``Node.connected_road_ids`` back-references in step with the roads' endpoint
ids. Operations that reference an unknown id change nothing and return
``None``/``False``.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .geometry import (
    default_cubic_handles,
    edge_for_road,
    edge_point,
    nearest_parameter,
    road_length,
    split_cubic,
)
from .intersect2d import Point, dist, project_point_to_segment
from .model import IdAllocator, Node, Road, RoadType

logger = logging.getLogger(__name__)

DEFAULT_LOOP_RADIUS = 50.0
SPLIT_EPS = 1e-6


class TopologyStore:
    """Id-indexed nodes and roads; insertion order is creation order."""

    def __init__(self, ids: Optional[IdAllocator] = None) -> None:
        self.ids = ids or IdAllocator()
        self.nodes: Dict[str, Node] = {}
        self.roads: Dict[str, Road] = {}

    # ------------------------------------------------------------------
    # Queries
    def node(self, node_id: Optional[str]) -> Optional[Node]:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def road(self, road_id: Optional[str]) -> Optional[Road]:
        if road_id is None:
            return None
        return self.roads.get(road_id)

    def last_node(self) -> Optional[Node]:
        return next(reversed(self.nodes.values()), None)

    def last_road(self) -> Optional[Road]:
        return next(reversed(self.roads.values()), None)

    def roads_of(self, node_id: str) -> List[Road]:
        node = self.nodes.get(node_id)
        if node is None:
            return []
        return [self.roads[rid] for rid in node.connected_road_ids if rid in self.roads]

    def nearest_node(
        self, point: Point, max_distance: float, exclude_ids: Iterable[str] = ()
    ) -> Optional[Node]:
        excluded = set(exclude_ids)
        best: Optional[Node] = None
        best_d = float(max_distance)
        for node in self.nodes.values():
            if node.id in excluded:
                continue
            d = dist(point, node.pos)
            if d <= best_d:
                best = node
                best_d = d
        return best

    def nearest_straight_road(
        self, point: Point, max_distance: float, exclude_ids: Iterable[str] = ()
    ) -> Optional[Tuple[Road, Point]]:
        """Closest straight road within ``max_distance`` and the projected point on it."""
        excluded = set(exclude_ids)
        best: Optional[Tuple[Road, Point]] = None
        best_d = float(max_distance)
        for road in self.roads.values():
            if road.id in excluded or RoadType(road.type) != RoadType.STRAIGHT:
                continue
            proj, _ = project_point_to_segment(point, road.start, road.end)
            d = dist(point, proj)
            if d <= best_d:
                best = (road, proj)
                best_d = d
        return best

    def total_length(self, meters_per_pixel: float = 1.0) -> float:
        return sum(road_length(road, meters_per_pixel) for road in self.roads.values())

    # ------------------------------------------------------------------
    # Nodes
    def add_node(self, pos: Point, node_id: Optional[str] = None) -> Node:
        node = Node(id=node_id or self.ids.next("node"), x=float(pos[0]), y=float(pos[1]))
        self.nodes[node.id] = node
        logger.debug(f"Added node {node.id} at ({node.x:.2f}, {node.y:.2f})")
        return node

    def move_node(self, node_id: str, pos: Point) -> Optional[Node]:
        node = self.nodes.get(node_id)
        if node is None:
            logger.debug(f"move_node: unknown node {node_id}")
            return None
        dx = float(pos[0]) - node.x
        dy = float(pos[1]) - node.y
        node.x = float(pos[0])
        node.y = float(pos[1])
        for road in self.roads_of(node_id):
            if road.start_node_id == node_id:
                road.start = node.pos
                if RoadType(road.type) == RoadType.CIRCLE and road.end_node_id is None:
                    road.end = (road.end[0] + dx, road.end[1] + dy)
            if road.end_node_id == node_id:
                road.end = node.pos
        return node

    def delete_node(self, node_id: str) -> bool:
        node = self.nodes.get(node_id)
        if node is None:
            logger.debug(f"delete_node: unknown node {node_id}")
            return False
        doomed = [
            road.id
            for road in self.roads.values()
            if road.start_node_id == node_id or road.end_node_id == node_id
        ]
        for road_id in doomed:
            self.delete_road(road_id)
        del self.nodes[node_id]
        for other in self.nodes.values():
            other.connected_road_ids = [rid for rid in other.connected_road_ids if rid in self.roads]
        logger.debug(f"Deleted node {node_id} and {len(doomed)} connected roads")
        return True

    # ------------------------------------------------------------------
    # Roads
    def _attach(self, road: Road) -> None:
        self.roads[road.id] = road
        for node_id in road.node_ids():
            node = self.nodes[node_id]
            if road.id not in node.connected_road_ids:
                node.connected_road_ids.append(road.id)

    def connect(
        self,
        node_a: str,
        node_b: str,
        road_type: RoadType = RoadType.STRAIGHT,
        width: float = 15.0,
        control_points: Optional[Sequence[Point]] = None,
        name: Optional[str] = None,
    ) -> Optional[Road]:
        a = self.nodes.get(node_a)
        b = self.nodes.get(node_b)
        if a is None or b is None:
            logger.debug(f"connect: unknown endpoint {node_a} / {node_b}")
            return None
        road_id = self.ids.next("road")
        if a.id == b.id:
            road = Road(
                id=road_id,
                start=a.pos,
                end=(a.x + DEFAULT_LOOP_RADIUS, a.y),
                type=RoadType.CIRCLE,
                width=float(width),
                start_node_id=a.id,
                name=name,
            )
        else:
            road_type = RoadType(road_type)
            road = Road(
                id=road_id,
                start=a.pos,
                end=b.pos,
                type=road_type,
                width=float(width),
                start_node_id=a.id,
                end_node_id=b.id,
                name=name,
            )
            if road_type == RoadType.CUBIC:
                if control_points is not None and len(control_points) == 2:
                    road.control_points = [tuple(control_points[0]), tuple(control_points[1])]
                else:
                    road.control_points = default_cubic_handles(a.pos, b.pos)
        self._attach(road)
        logger.debug(f"Connected {a.id} -> {b.id} with {road.type.value} road {road.id}")
        return road

    def delete_road(self, road_id: str) -> bool:
        road = self.roads.pop(road_id, None)
        if road is None:
            logger.debug(f"delete_road: unknown road {road_id}")
            return False
        for node_id in road.node_ids():
            node = self.nodes.get(node_id)
            if node is not None:
                node.connected_road_ids = [rid for rid in node.connected_road_ids if rid != road_id]
        return True

    def update_road(
        self,
        road_id: str,
        *,
        width: Optional[float] = None,
        name: Optional[str] = None,
        road_type: Optional[RoadType] = None,
    ) -> Optional[Road]:
        road = self.roads.get(road_id)
        if road is None:
            return None
        # Validate everything before touching the road.
        if width is not None and width <= 0:
            raise ValueError(f"Road width must be positive, got {width}")
        if road_type is not None:
            road_type = RoadType(road_type)
        if width is not None:
            road.width = float(width)
        if name is not None:
            road.name = name
        if road_type is not None:
            if road_type == RoadType.CIRCLE and road.end_node_id is None and road.start == road.end:
                road.end = (road.start[0] + DEFAULT_LOOP_RADIUS, road.start[1])
            road.type = road_type
            if road_type == RoadType.CUBIC and not road.control_points:
                road.control_points = default_cubic_handles(road.start, road.end)
            elif road_type != RoadType.CUBIC:
                road.control_points = None
        return road

    def set_control_point(self, road_id: str, index: int, pos: Point) -> Optional[Road]:
        road = self.roads.get(road_id)
        if road is None or RoadType(road.type) != RoadType.CUBIC or not road.control_points:
            return None
        if index not in (0, 1) or index >= len(road.control_points):
            return None
        cps = list(road.control_points)
        cps[index] = (float(pos[0]), float(pos[1]))
        road.control_points = cps
        return road

    def split_road(self, road_id: str, point: Point, new_node_id: Optional[str] = None) -> Optional[Node]:
        """Split ``road_id`` near ``point`` and return the junction node."""
        road = self.roads.get(road_id)
        if road is None:
            logger.debug(f"split_road: unknown road {road_id}")
            return None
        kind = RoadType(road.type)
        if kind == RoadType.CIRCLE:
            logger.debug(f"split_road: circle road {road_id} cannot be split")
            return None
        edge = edge_for_road(road)
        t = nearest_parameter(point, edge)
        if t <= SPLIT_EPS and road.start_node_id in self.nodes:
            return self.nodes[road.start_node_id]
        if t >= 1.0 - SPLIT_EPS and road.end_node_id in self.nodes:
            return self.nodes[road.end_node_id]
        at = edge_point(edge, t)

        if new_node_id is not None and new_node_id in self.nodes:
            logger.debug(f"split_road: node id {new_node_id} is taken, allocating a new one")
            new_node_id = None
        junction = self.add_node(at, node_id=new_node_id)
        first = road.copy()
        second = road.copy()
        first.id = self.ids.next("road")
        second.id = self.ids.next("road")
        first.end = junction.pos
        first.end_node_id = junction.id
        second.start = junction.pos
        second.start_node_id = junction.id
        if kind == RoadType.CUBIC:
            left, right = split_cubic(edge.start, edge.controls[0], edge.controls[1], edge.end, t)
            first.control_points = [left[1], left[2]]
            second.control_points = [right[1], right[2]]

        # Swap the old id for the matching half while keeping list position.
        for node_id, half in ((road.start_node_id, first), (road.end_node_id, second)):
            node = self.nodes.get(node_id) if node_id else None
            if node is None:
                continue
            node.connected_road_ids = [half.id if rid == road.id else rid for rid in node.connected_road_ids]

        replaced: Dict[str, Road] = {}
        for rid, existing in self.roads.items():
            if rid == road.id:
                replaced[first.id] = first
            else:
                replaced[rid] = existing
        replaced[second.id] = second
        self.roads = replaced
        junction.connected_road_ids = [first.id, second.id]
        logger.debug(f"Split road {road.id} into {first.id} + {second.id} at node {junction.id}")
        return junction

    # ------------------------------------------------------------------
    # Maintenance
    def clear(self) -> None:
        self.nodes.clear()
        self.roads.clear()

    def check_integrity(self) -> List[str]:
        """Describe every broken back-reference or endpoint mismatch."""
        problems: List[str] = []
        expected: Dict[str, set] = {node_id: set() for node_id in self.nodes}
        for road in self.roads.values():
            for label, node_id, coord in (
                ("start", road.start_node_id, road.start),
                ("end", road.end_node_id, road.end),
            ):
                if node_id is None:
                    continue
                node = self.nodes.get(node_id)
                if node is None:
                    problems.append(f"road {road.id} {label} references missing node {node_id}")
                    continue
                expected[node_id].add(road.id)
                if dist(node.pos, coord) > 1e-6:
                    problems.append(f"road {road.id} {label} is detached from node {node_id}")
            if RoadType(road.type) == RoadType.CUBIC and len(road.control_points or []) != 2:
                problems.append(f"cubic road {road.id} needs exactly two control points")
        for node in self.nodes.values():
            listed = node.connected_road_ids
            if len(listed) != len(set(listed)):
                problems.append(f"node {node.id} lists a road twice")
            if set(listed) != expected[node.id]:
                problems.append(
                    f"node {node.id} lists {sorted(listed)} but roads {sorted(expected[node.id])} reference it"
                )
        return problems
