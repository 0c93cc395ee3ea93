"""Pan and zoom mapping between screen pixels and world units."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .intersect2d import Point

MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
ZOOM_STEP = 1.2


@dataclass
class ViewTransform:
    """Pan/zoom state. ``screen = world * zoom + pan_offset``."""

    pan_offset: Point = (0.0, 0.0)
    zoom: float = 1.0

    def screen_to_world(self, point: Point) -> Point:
        ox, oy = self.pan_offset
        return ((point[0] - ox) / self.zoom, (point[1] - oy) / self.zoom)

    def world_to_screen(self, point: Point) -> Point:
        ox, oy = self.pan_offset
        return (point[0] * self.zoom + ox, point[1] * self.zoom + oy)

    def to_world_distance(self, pixels: float) -> float:
        return float(pixels) / self.zoom

    def _apply_zoom(self, target: float, pivot_screen: Optional[Point]) -> None:
        target = max(MIN_ZOOM, min(MAX_ZOOM, target))
        if abs(target - self.zoom) <= 1e-12:
            return
        if pivot_screen is not None:
            pivot_world = self.screen_to_world(pivot_screen)
            self.pan_offset = (
                pivot_screen[0] - pivot_world[0] * target,
                pivot_screen[1] - pivot_world[1] * target,
            )
        self.zoom = target

    def zoom_by(self, factor: float, pivot_screen: Optional[Point] = None) -> None:
        """Scale the zoom; with ``pivot_screen`` the world point under it stays put."""
        self._apply_zoom(self.zoom * factor, pivot_screen)

    def zoom_in(self, pivot_screen: Optional[Point] = None) -> None:
        self.zoom_by(ZOOM_STEP, pivot_screen)

    def zoom_out(self, pivot_screen: Optional[Point] = None) -> None:
        self.zoom_by(1.0 / ZOOM_STEP, pivot_screen)

    def pan_by(self, dx: float, dy: float) -> None:
        self.pan_offset = (self.pan_offset[0] + dx, self.pan_offset[1] + dy)

    def reset(self) -> None:
        self.zoom = 1.0
        self.pan_offset = (0.0, 0.0)

    def set_state(self, pan_offset: Point, zoom: float) -> None:
        """Restore a persisted view; the zoom is clamped into range."""
        self.pan_offset = (float(pan_offset[0]), float(pan_offset[1]))
        self.zoom = max(MIN_ZOOM, min(MAX_ZOOM, float(zoom)))

    def copy(self) -> "ViewTransform":
        return ViewTransform(pan_offset=self.pan_offset, zoom=self.zoom)
