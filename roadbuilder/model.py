"""Entity dataclasses for the road network, polygons and background layers.

Stores own these objects; sessions never hold them (see ``sessions.py`` for
the staged value types). Points are plain ``(x, y)`` tuples in world units.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

Point = Tuple[float, float]


class RoadType(str, Enum):
    STRAIGHT = "straight"
    QUADRATIC = "quadratic"
    CIRCLE = "circle"
    CUBIC = "cubic"


@dataclass
class Node:
    id: str
    x: float
    y: float
    connected_road_ids: List[str] = field(default_factory=list)

    @property
    def pos(self) -> Point:
        return (self.x, self.y)

    def copy(self) -> "Node":
        return Node(id=self.id, x=self.x, y=self.y, connected_road_ids=list(self.connected_road_ids))


@dataclass
class Road:
    id: str
    start: Point
    end: Point
    type: RoadType = RoadType.STRAIGHT
    width: float = 15.0
    start_node_id: Optional[str] = None
    end_node_id: Optional[str] = None
    name: Optional[str] = None
    control_points: Optional[List[Point]] = None

    def node_ids(self) -> List[str]:
        ids = []
        for node_id in (self.start_node_id, self.end_node_id):
            if node_id is not None and node_id not in ids:
                ids.append(node_id)
        return ids

    def copy(self) -> "Road":
        return Road(
            id=self.id,
            start=(self.start[0], self.start[1]),
            end=(self.end[0], self.end[1]),
            type=self.type,
            width=self.width,
            start_node_id=self.start_node_id,
            end_node_id=self.end_node_id,
            name=self.name,
            control_points=None if self.control_points is None else list(self.control_points),
        )


@dataclass
class PolygonVertex:
    id: str
    x: float
    y: float
    cp1: Point = (0.0, 0.0)
    cp2: Point = (0.0, 0.0)

    @property
    def pos(self) -> Point:
        return (self.x, self.y)

    @classmethod
    def straight(cls, vertex_id: str, x: float, y: float) -> "PolygonVertex":
        """Vertex whose handles sit on the vertex itself (straight edges)."""
        return cls(id=vertex_id, x=x, y=y, cp1=(x, y), cp2=(x, y))

    def translate(self, dx: float, dy: float) -> None:
        self.x += dx
        self.y += dy
        self.cp1 = (self.cp1[0] + dx, self.cp1[1] + dy)
        self.cp2 = (self.cp2[0] + dx, self.cp2[1] + dy)

    def copy(self) -> "PolygonVertex":
        return PolygonVertex(id=self.id, x=self.x, y=self.y, cp1=self.cp1, cp2=self.cp2)


@dataclass
class Polygon:
    id: str
    points: List[PolygonVertex]
    fill_color: str = "#3b82f6"
    stroke_color: str = "#1e40af"
    opacity: float = 0.3
    name: Optional[str] = None
    area: Optional[float] = None

    def positions(self) -> List[Point]:
        return [v.pos for v in self.points]

    def copy(self) -> "Polygon":
        return Polygon(
            id=self.id,
            points=[v.copy() for v in self.points],
            fill_color=self.fill_color,
            stroke_color=self.stroke_color,
            opacity=self.opacity,
            name=self.name,
            area=self.area,
        )


@dataclass
class BackgroundImage:
    id: str
    src: str
    width: float
    height: float
    name: str = ""
    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0
    opacity: float = 0.7
    visible: bool = True
    locked: bool = False
    rotation: float = 0.0

    def copy(self) -> "BackgroundImage":
        return BackgroundImage(**self.__dict__)


# ---- Identifiers ------------------------------------------------------------

_ID_SUFFIX = re.compile(r"-(\d+)$")


class IdAllocator:
    """Hand out ``<prefix>-NNNN`` identifiers, one counter per prefix."""

    def __init__(self) -> None:
        self._counters: Dict[str, int] = {}

    def next(self, prefix: str) -> str:
        value = self._counters.get(prefix, 0) + 1
        self._counters[prefix] = value
        return f"{prefix}-{value:04d}"

    def reseed(self, prefix: str, existing_ids) -> None:
        """Move the ``prefix`` counter past every numeric suffix in ``existing_ids``."""
        highest = 0
        for identifier in existing_ids:
            if not isinstance(identifier, str) or not identifier.startswith(prefix + "-"):
                continue
            match = _ID_SUFFIX.search(identifier)
            if match:
                highest = max(highest, int(match.group(1)))
        self._counters[prefix] = max(self._counters.get(prefix, 0), highest)


# ---- Colors -----------------------------------------------------------------

_HEX_COLOR = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def normalize_color(value: str) -> str:
    """Return ``value`` as lowercase ``#rrggbb`` or raise ``ValueError``."""
    if not isinstance(value, str):
        raise ValueError(f"Color must be a string, got {type(value).__name__}")
    text = value.strip()
    match = _HEX_COLOR.match(text)
    if not match:
        raise ValueError(f"Invalid hex color '{value}'")
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return "#" + digits.lower()


__all__ = [
    "Point",
    "RoadType",
    "Node",
    "Road",
    "PolygonVertex",
    "Polygon",
    "BackgroundImage",
    "IdAllocator",
    "normalize_color",
]
