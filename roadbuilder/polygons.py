"""Closed curve-edged regions."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from .geometry import point_in_polygon, polygon_area_m2
from .intersect2d import Point
from .model import IdAllocator, Polygon, PolygonVertex, normalize_color

logger = logging.getLogger(__name__)

HANDLE_NAMES = ("cp1", "cp2")


class PolygonStore:
    """Id-indexed polygons; later entries sit on top of earlier ones."""

    def __init__(self, ids: Optional[IdAllocator] = None) -> None:
        self.ids = ids or IdAllocator()
        self.polygons: Dict[str, Polygon] = {}

    def get(self, polygon_id: Optional[str]) -> Optional[Polygon]:
        if polygon_id is None:
            return None
        return self.polygons.get(polygon_id)

    def last(self) -> Optional[Polygon]:
        return next(reversed(self.polygons.values()), None)

    def topmost_first(self) -> List[Polygon]:
        return list(reversed(list(self.polygons.values())))

    def polygon_at(self, point: Point, exclude_ids: Iterable[str] = ()) -> Optional[Polygon]:
        excluded = set(exclude_ids)
        for polygon in self.topmost_first():
            if polygon.id in excluded:
                continue
            if point_in_polygon(point, polygon):
                return polygon
        return None

    def total_area(self) -> float:
        return sum(p.area or 0.0 for p in self.polygons.values())

    # ------------------------------------------------------------------
    # Mutation
    def add(
        self,
        vertices: Sequence[PolygonVertex],
        *,
        fill_color: str,
        stroke_color: str,
        opacity: float,
        meters_per_pixel: float,
        name: Optional[str] = None,
    ) -> Polygon:
        if len(vertices) < 3:
            raise ValueError(f"A polygon needs at least 3 vertices, got {len(vertices)}")
        polygon = Polygon(
            id=self.ids.next("poly"),
            points=list(vertices),
            fill_color=fill_color,
            stroke_color=stroke_color,
            opacity=max(0.0, min(1.0, float(opacity))),
            name=name,
        )
        polygon.area = polygon_area_m2(polygon, meters_per_pixel)
        self.polygons[polygon.id] = polygon
        logger.info(f"Committed polygon {polygon.id} with {len(vertices)} vertices, area {polygon.area:.2f}")
        return polygon

    def delete(self, polygon_id: str) -> bool:
        if self.polygons.pop(polygon_id, None) is None:
            logger.debug(f"delete: unknown polygon {polygon_id}")
            return False
        return True

    def update(
        self,
        polygon_id: str,
        *,
        name: Optional[str] = None,
        fill_color: Optional[str] = None,
        stroke_color: Optional[str] = None,
        opacity: Optional[float] = None,
    ) -> Optional[Polygon]:
        polygon = self.polygons.get(polygon_id)
        if polygon is None:
            return None
        # Validate everything before touching the polygon.
        fill = normalize_color(fill_color) if fill_color is not None else None
        stroke = normalize_color(stroke_color) if stroke_color is not None else None
        if opacity is not None and not 0.0 <= float(opacity) <= 1.0:
            raise ValueError(f"opacity must be in [0.0, 1.0], got {opacity}")
        if name is not None:
            polygon.name = name
        if fill is not None:
            polygon.fill_color = fill
        if stroke is not None:
            polygon.stroke_color = stroke
        if opacity is not None:
            polygon.opacity = float(opacity)
        return polygon

    def move_vertex(self, polygon_id: str, index: int, pos: Point, meters_per_pixel: float) -> Optional[Polygon]:
        """Move one vertex; its own handles travel with it."""
        polygon = self.polygons.get(polygon_id)
        if polygon is None or not 0 <= index < len(polygon.points):
            return None
        vertex = polygon.points[index]
        vertex.translate(float(pos[0]) - vertex.x, float(pos[1]) - vertex.y)
        polygon.area = polygon_area_m2(polygon, meters_per_pixel)
        return polygon

    def translate(self, polygon_id: str, dx: float, dy: float, meters_per_pixel: float) -> Optional[Polygon]:
        polygon = self.polygons.get(polygon_id)
        if polygon is None:
            return None
        for vertex in polygon.points:
            vertex.translate(dx, dy)
        polygon.area = polygon_area_m2(polygon, meters_per_pixel)
        return polygon

    def set_handle(self, polygon_id: str, index: int, handle: str, pos: Point) -> Optional[Polygon]:
        polygon = self.polygons.get(polygon_id)
        if polygon is None or not 0 <= index < len(polygon.points) or handle not in HANDLE_NAMES:
            return None
        setattr(polygon.points[index], handle, (float(pos[0]), float(pos[1])))
        return polygon

    def recompute_areas(self, meters_per_pixel: float) -> None:
        for polygon in self.polygons.values():
            polygon.area = polygon_area_m2(polygon, meters_per_pixel)

    def clear(self) -> None:
        self.polygons.clear()
