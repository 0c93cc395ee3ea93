"""Pointer hit resolution and drag manipulation for the select tool."""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

from .geometry import point_in_polygon, road_hit
from .intersect2d import Point, dist, sub
from .model import RoadType
from .polygons import HANDLE_NAMES, PolygonStore
from .topology import TopologyStore

logger = logging.getLogger(__name__)

HANDLE_PICK_PX = 10.0
VERTEX_PICK_PX = 10.0
NODE_PICK_PX = 15.0


@dataclass(frozen=True)
class Selection:
    node_id: Optional[str] = None
    road_id: Optional[str] = None
    polygon_id: Optional[str] = None
    vertex_index: Optional[int] = None
    background_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not any(
            value is not None
            for value in (self.node_id, self.road_id, self.polygon_id, self.vertex_index, self.background_id)
        )

    def without_missing(self, topology: TopologyStore, polygons: PolygonStore) -> "Selection":
        """Drop references to entities that no longer exist."""
        node_id = self.node_id if self.node_id in topology.nodes else None
        road_id = self.road_id if self.road_id in topology.roads else None
        polygon = polygons.get(self.polygon_id)
        vertex_index = self.vertex_index
        if polygon is None or vertex_index is None or not 0 <= vertex_index < len(polygon.points):
            vertex_index = None
        return replace(
            self,
            node_id=node_id,
            road_id=road_id,
            polygon_id=polygon.id if polygon else None,
            vertex_index=vertex_index,
        )


class HitKind(str, Enum):
    HANDLE = "handle"
    VERTEX = "vertex"
    POLYGON_BODY = "polygon_body"
    NODE = "node"
    POLYGON = "polygon"
    ROAD = "road"
    NONE = "none"


@dataclass(frozen=True)
class Hit:
    kind: HitKind
    node_id: Optional[str] = None
    road_id: Optional[str] = None
    polygon_id: Optional[str] = None
    vertex_index: Optional[int] = None
    # Road handles use the control point index, polygon handles "cp1"/"cp2".
    handle: Optional[Union[int, str]] = None


NO_HIT = Hit(HitKind.NONE)


def _pick(zoom: float, radius_px: float) -> float:
    return radius_px / max(float(zoom), 1e-9)


def _hit_node_handle(point: Point, zoom: float, selection: Selection, topology: TopologyStore) -> Optional[Hit]:
    node = topology.node(selection.node_id)
    if node is None:
        return None
    radius = _pick(zoom, HANDLE_PICK_PX)
    for road in topology.roads_of(node.id):
        if RoadType(road.type) != RoadType.CUBIC or not road.control_points:
            continue
        if road.start_node_id == node.id:
            index = 0
        elif road.end_node_id == node.id:
            index = 1
        else:
            continue
        if index >= len(road.control_points):
            continue
        if dist(point, road.control_points[index]) <= radius:
            return Hit(HitKind.HANDLE, node_id=node.id, road_id=road.id, handle=index)
    return None


def _hit_vertex_handle(point: Point, zoom: float, selection: Selection, polygons: PolygonStore) -> Optional[Hit]:
    polygon = polygons.get(selection.polygon_id)
    index = selection.vertex_index
    if polygon is None or index is None or not 0 <= index < len(polygon.points):
        return None
    vertex = polygon.points[index]
    radius = _pick(zoom, HANDLE_PICK_PX)
    for name in HANDLE_NAMES:
        handle = getattr(vertex, name)
        # Handles resting on the vertex belong to the vertex pick.
        if handle == vertex.pos:
            continue
        if dist(point, handle) <= radius:
            return Hit(HitKind.HANDLE, polygon_id=polygon.id, vertex_index=index, handle=name)
    return None


def hit_test(
    point: Point,
    zoom: float,
    selection: Selection,
    topology: TopologyStore,
    polygons: PolygonStore,
) -> Hit:
    """Resolve what a press at ``point`` grabs; the first matching rule wins."""
    hit = _hit_node_handle(point, zoom, selection, topology) or _hit_vertex_handle(point, zoom, selection, polygons)
    if hit is not None:
        return hit

    selected = polygons.get(selection.polygon_id)
    if selected is not None:
        radius = _pick(zoom, VERTEX_PICK_PX)
        for index, vertex in enumerate(selected.points):
            if dist(point, vertex.pos) <= radius:
                return Hit(HitKind.VERTEX, polygon_id=selected.id, vertex_index=index)
        if point_in_polygon(point, selected):
            return Hit(HitKind.POLYGON_BODY, polygon_id=selected.id)

    node = topology.nearest_node(point, _pick(zoom, NODE_PICK_PX))
    if node is not None:
        return Hit(HitKind.NODE, node_id=node.id)

    polygon = polygons.polygon_at(point)
    if polygon is not None:
        return Hit(HitKind.POLYGON, polygon_id=polygon.id)

    for road in reversed(list(topology.roads.values())):
        if road_hit(point, road, zoom):
            return Hit(HitKind.ROAD, road_id=road.id)
    return NO_HIT


def selection_for_hit(hit: Hit, previous: Selection) -> Selection:
    kind = hit.kind
    if kind == HitKind.HANDLE:
        return previous
    if kind == HitKind.VERTEX:
        return Selection(polygon_id=hit.polygon_id, vertex_index=hit.vertex_index)
    if kind in (HitKind.POLYGON_BODY, HitKind.POLYGON):
        return Selection(polygon_id=hit.polygon_id)
    if kind == HitKind.NODE:
        return Selection(node_id=hit.node_id)
    if kind == HitKind.ROAD:
        return Selection(road_id=hit.road_id)
    return Selection()


# ---------------------------------------------------------------------------
# Dragging


@dataclass(frozen=True)
class Drag:
    hit: Hit
    origin: Point
    last: Point

    @property
    def total_delta(self) -> Point:
        return sub(self.last, self.origin)


DRAGGABLE = (HitKind.HANDLE, HitKind.VERTEX, HitKind.POLYGON_BODY, HitKind.NODE, HitKind.POLYGON)


def begin_drag(hit: Hit, world: Point) -> Optional[Drag]:
    if hit.kind not in DRAGGABLE:
        return None
    start = (float(world[0]), float(world[1]))
    return Drag(hit=hit, origin=start, last=start)


def drag_to(
    drag: Drag,
    world: Point,
    topology: TopologyStore,
    polygons: PolygonStore,
    meters_per_pixel: float,
) -> Drag:
    """Apply one pointer move to the grabbed entity and return the advanced drag."""
    hit = drag.hit
    target = (float(world[0]), float(world[1]))
    if hit.kind == HitKind.NODE and hit.node_id is not None:
        topology.move_node(hit.node_id, target)
    elif hit.kind == HitKind.VERTEX and hit.polygon_id is not None and hit.vertex_index is not None:
        polygons.move_vertex(hit.polygon_id, hit.vertex_index, target, meters_per_pixel)
    elif hit.kind in (HitKind.POLYGON_BODY, HitKind.POLYGON) and hit.polygon_id is not None:
        dx, dy = sub(target, drag.last)
        polygons.translate(hit.polygon_id, dx, dy, meters_per_pixel)
    elif hit.kind == HitKind.HANDLE:
        if hit.road_id is not None and isinstance(hit.handle, int):
            topology.set_control_point(hit.road_id, hit.handle, target)
        elif hit.polygon_id is not None and hit.vertex_index is not None and isinstance(hit.handle, str):
            polygons.set_handle(hit.polygon_id, hit.vertex_index, hit.handle, target)
    else:
        logger.debug(f"drag_to: nothing to drag for {hit.kind.value}")
    return replace(drag, last=target)
