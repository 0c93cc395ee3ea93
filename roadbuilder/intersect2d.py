"""2D vector primitives shared by the road and polygon editing code."""
from __future__ import annotations

from typing import Sequence, Tuple
import math

Point = Tuple[float, float]
EPS = 1e-9


def dot(a: Point, b: Point) -> float:
    return a[0] * b[0] + a[1] * b[1]


def sub(a: Point, b: Point) -> Point:
    return (a[0] - b[0], a[1] - b[1])


def add(a: Point, b: Point) -> Point:
    return (a[0] + b[0], a[1] + b[1])


def mul(a: Point, s: float) -> Point:
    return (a[0] * s, a[1] * s)


def norm(a: Point) -> float:
    return math.hypot(a[0], a[1])


def dist(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def lerp(a: Point, b: Point, t: float) -> Point:
    return (a[0] + (b[0] - a[0]) * t, a[1] + (b[1] - a[1]) * t)


def mirror(center: Point, p: Point) -> Point:
    """Reflect ``p`` through ``center``."""
    return (2.0 * center[0] - p[0], 2.0 * center[1] - p[1])


def project_point_to_segment(p: Point, a: Point, b: Point) -> Tuple[Point, float]:
    """Return the closest point on segment ``ab`` and its clamped parameter."""
    ab = sub(b, a)
    ab2 = dot(ab, ab)
    if ab2 < EPS:
        return a, 0.0
    t = dot(sub(p, a), ab) / ab2
    t = max(0.0, min(1.0, t))
    return add(a, mul(ab, t)), t


def point_segment_distance(p: Point, a: Point, b: Point) -> float:
    proj, _ = project_point_to_segment(p, a, b)
    return dist(p, proj)


def point_in_ring(p: Point, ring: Sequence[Point]) -> bool:
    """Even-odd ray casting test against a closed ring of vertices."""
    n = len(ring)
    if n < 3:
        return False
    px, py = float(p[0]), float(p[1])
    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > py) != (yj > py):
            x_cross = (xj - xi) * (py - yi) / (yj - yi) + xi
            if px < x_cross:
                inside = not inside
        j = i
    return inside
