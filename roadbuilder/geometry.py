"""Curve kernel for roads and polygon edges.

Every segment family is evaluated through an :class:`Edge` descriptor so road
and polygon code share one set of routines. Curved lengths and hit distances
use a fixed 20-segment polyline; the sample count is constant so repeated
measurements of the same edge always agree.
"""
from __future__ import annotations

import math
from typing import List, NamedTuple, Sequence, Tuple

import numpy as np

from .intersect2d import Point, dist, point_in_ring, point_segment_distance, project_point_to_segment
from .model import Polygon, Road, RoadType

SAMPLE_COUNT = 20
ROAD_HIT_TOLERANCE_PX = 4.0
QUADRATIC_BULGE = 0.5
CUBIC_HANDLE_OFFSET = 50.0


class Edge(NamedTuple):
    kind: RoadType
    start: Point
    end: Point
    controls: Tuple[Point, ...] = ()


# ---------------------------------------------------------------------------
# Descriptors


def quadratic_control(start: Point, end: Point) -> Point:
    """Implicit control point: chord midpoint pushed sideways by half the chord."""
    mx = (start[0] + end[0]) / 2.0
    my = (start[1] + end[1]) / 2.0
    dx = end[0] - start[0]
    dy = end[1] - start[1]
    return (mx + dy * QUADRATIC_BULGE, my - dx * QUADRATIC_BULGE)


def default_cubic_handles(start: Point, end: Point) -> List[Point]:
    mx = (start[0] + end[0]) / 2.0
    my = (start[1] + end[1]) / 2.0
    return [
        (mx - CUBIC_HANDLE_OFFSET, my - CUBIC_HANDLE_OFFSET),
        (mx + CUBIC_HANDLE_OFFSET, my + CUBIC_HANDLE_OFFSET),
    ]


def edge_for_road(road: Road) -> Edge:
    kind = RoadType(road.type)
    start = (float(road.start[0]), float(road.start[1]))
    end = (float(road.end[0]), float(road.end[1]))
    if kind == RoadType.QUADRATIC:
        return Edge(kind, start, end, (quadratic_control(start, end),))
    if kind == RoadType.CUBIC:
        cps = road.control_points or []
        c1 = tuple(cps[0]) if len(cps) > 0 else start
        c2 = tuple(cps[1]) if len(cps) > 1 else end
        return Edge(kind, start, end, (c1, c2))
    return Edge(kind, start, end)


def polygon_edges(polygon: Polygon) -> List[Edge]:
    """Closed ring of cubic edges; edge ``i`` runs from vertex ``i`` to ``i + 1``."""
    verts = polygon.points
    edges: List[Edge] = []
    n = len(verts)
    for i in range(n):
        a = verts[i]
        b = verts[(i + 1) % n]
        edges.append(Edge(RoadType.CUBIC, a.pos, b.pos, (tuple(a.cp2), tuple(b.cp1))))
    return edges


def _control_array(edge: Edge) -> np.ndarray:
    return np.asarray([edge.start, *edge.controls, edge.end], dtype=float)


def _bezier_sample(control_points: np.ndarray, t: np.ndarray) -> np.ndarray:
    """Evaluate a Bezier curve of arbitrary degree at parameter values ``t``."""
    if control_points.shape[0] == 1:
        return np.repeat(control_points, len(t), axis=0)
    pts = np.broadcast_to(control_points, (len(t),) + control_points.shape).copy()
    for _ in range(1, control_points.shape[0]):
        pts = (1.0 - t)[:, None, None] * pts[:, :-1, :] + t[:, None, None] * pts[:, 1:, :]
    return pts[:, 0, :]


def _circle_sample(edge: Edge, t: np.ndarray) -> np.ndarray:
    cx, cy = edge.start
    radius = dist(edge.start, edge.end)
    theta0 = math.atan2(edge.end[1] - cy, edge.end[0] - cx) if radius > 0.0 else 0.0
    angle = theta0 + 2.0 * math.pi * t
    return np.column_stack((cx + radius * np.cos(angle), cy + radius * np.sin(angle)))


def _sample(edge: Edge, t: np.ndarray) -> np.ndarray:
    if edge.kind == RoadType.CIRCLE:
        return _circle_sample(edge, t)
    if edge.kind == RoadType.STRAIGHT:
        a = np.asarray(edge.start, dtype=float)
        b = np.asarray(edge.end, dtype=float)
        return a[None, :] + (b - a)[None, :] * t[:, None]
    return _bezier_sample(_control_array(edge), t)


# ---------------------------------------------------------------------------
# Evaluation


def edge_point(edge: Edge, t: float) -> Point:
    t = max(0.0, min(1.0, float(t)))
    pt = _sample(edge, np.array([t]))[0]
    return (float(pt[0]), float(pt[1]))


def edge_tangent(edge: Edge, t: float) -> Point:
    """Derivative of the edge position with respect to ``t``."""
    t = max(0.0, min(1.0, float(t)))
    if edge.kind == RoadType.STRAIGHT:
        return (edge.end[0] - edge.start[0], edge.end[1] - edge.start[1])
    if edge.kind == RoadType.CIRCLE:
        radius = dist(edge.start, edge.end)
        theta0 = math.atan2(edge.end[1] - edge.start[1], edge.end[0] - edge.start[0]) if radius > 0.0 else 0.0
        angle = theta0 + 2.0 * math.pi * t
        scale = 2.0 * math.pi * radius
        return (-scale * math.sin(angle), scale * math.cos(angle))
    cps = _control_array(edge)
    degree = cps.shape[0] - 1
    hodograph = degree * (cps[1:] - cps[:-1])
    d = _bezier_sample(hodograph, np.array([t]))[0]
    return (float(d[0]), float(d[1]))


def edge_polyline(edge: Edge, samples: int = SAMPLE_COUNT) -> np.ndarray:
    """Sample the edge at ``samples + 1`` equally spaced parameters."""
    if edge.kind == RoadType.STRAIGHT:
        return np.asarray([edge.start, edge.end], dtype=float)
    t = np.linspace(0.0, 1.0, samples + 1)
    return _sample(edge, t)


def polyline_length(points: np.ndarray) -> float:
    """Return the cumulative length of a polyline."""
    if points.shape[0] < 2:
        return 0.0
    delta = np.diff(points, axis=0)
    seg = np.hypot(delta[:, 0], delta[:, 1])
    return float(np.sum(seg))


def edge_length(edge: Edge) -> float:
    if edge.kind == RoadType.STRAIGHT:
        return dist(edge.start, edge.end)
    return polyline_length(edge_polyline(edge))


def point_to_polyline_distance(point: Sequence[float], polyline: np.ndarray) -> float:
    """Compute the minimum distance from ``point`` to the given ``polyline``."""
    if polyline.shape[0] == 0:
        return float("inf")
    if polyline.shape[0] == 1:
        return float(np.hypot(point[0] - polyline[0, 0], point[1] - polyline[0, 1]))
    seg_vec = polyline[1:] - polyline[:-1]
    seg_len_sq = np.sum(seg_vec ** 2, axis=1)
    to_point = np.asarray(point, dtype=float) - polyline[:-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        t = np.sum(to_point * seg_vec, axis=1) / seg_len_sq
    t = np.nan_to_num(np.clip(t, 0.0, 1.0))
    projection = polyline[:-1] + seg_vec * t[:, None]
    d = np.hypot(point[0] - projection[:, 0], point[1] - projection[:, 1])
    return float(np.min(d))


def distance_to_edge(point: Point, edge: Edge) -> float:
    if edge.kind == RoadType.STRAIGHT:
        return point_segment_distance(point, edge.start, edge.end)
    return point_to_polyline_distance(point, edge_polyline(edge))


def nearest_parameter(point: Point, edge: Edge, samples: int = SAMPLE_COUNT) -> float:
    """Parameter of the edge position closest to ``point``.

    Straight edges use the exact clamped projection; curves project onto the
    sampled polyline and map the hit back to its sub-segment parameter range.
    """
    if edge.kind == RoadType.STRAIGHT:
        _, t = project_point_to_segment(point, edge.start, edge.end)
        return t
    poly = edge_polyline(edge, samples)
    best_t = 0.0
    best_d = float("inf")
    for i in range(poly.shape[0] - 1):
        a = (float(poly[i, 0]), float(poly[i, 1]))
        b = (float(poly[i + 1, 0]), float(poly[i + 1, 1]))
        proj, local_t = project_point_to_segment(point, a, b)
        d = dist(point, proj)
        if d < best_d:
            best_d = d
            best_t = (i + local_t) / samples
    return best_t


def split_cubic(p0: Point, c1: Point, c2: Point, p3: Point, t: float):
    """De Casteljau split; returns the control quadruples of both halves."""
    def lp(a: Point, b: Point) -> Point:
        return (a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)

    q0 = lp(p0, c1)
    q1 = lp(c1, c2)
    q2 = lp(c2, p3)
    r0 = lp(q0, q1)
    r1 = lp(q1, q2)
    m = lp(r0, r1)
    return (p0, q0, r0, m), (m, r1, q2, p3)


# ---------------------------------------------------------------------------
# Roads


def road_length(road: Road, meters_per_pixel: float = 1.0) -> float:
    return edge_length(edge_for_road(road)) * meters_per_pixel


def road_distance(point: Point, road: Road) -> float:
    return distance_to_edge(point, edge_for_road(road))


def road_hit(point: Point, road: Road, zoom: float = 1.0, tolerance_px: float = ROAD_HIT_TOLERANCE_PX) -> bool:
    """True when ``point`` lies on the drawn road band plus a zoom-stable margin."""
    margin = tolerance_px / max(float(zoom), 1e-9)
    return road_distance(point, road) <= road.width / 2.0 + margin


# ---------------------------------------------------------------------------
# Polygons


def polygon_area(points: Sequence[Point]) -> float:
    """Absolute shoelace area of the vertex ring."""
    if len(points) < 3:
        return 0.0
    arr = np.asarray(points, dtype=float)
    x = arr[:, 0]
    y = arr[:, 1]
    return float(0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))


def polygon_area_m2(polygon: Polygon, meters_per_pixel: float) -> float:
    return polygon_area(polygon.positions()) * meters_per_pixel * meters_per_pixel


def _has_curved_edges(polygon: Polygon) -> bool:
    return any(v.cp1 != v.pos or v.cp2 != v.pos for v in polygon.points)


def polygon_outline(polygon: Polygon, samples: int = SAMPLE_COUNT) -> List[Point]:
    """Flattened boundary ring; straight polygons return their vertices."""
    if not _has_curved_edges(polygon):
        return polygon.positions()
    ring: List[Point] = []
    for edge in polygon_edges(polygon):
        poly = edge_polyline(edge, samples)
        ring.extend((float(x), float(y)) for x, y in poly[:-1])
    return ring


def point_in_polygon(point: Point, polygon: Polygon) -> bool:
    if len(polygon.points) < 3:
        return False
    return point_in_ring(point, polygon_outline(polygon))


def polygon_centroid(polygon: Polygon) -> Point:
    """Average of the vertex positions (label anchor)."""
    if not polygon.points:
        return (0.0, 0.0)
    n = float(len(polygon.points))
    return (sum(v.x for v in polygon.points) / n, sum(v.y for v in polygon.points) / n)
