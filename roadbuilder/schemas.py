"""Pydantic schemas for the saved canvas document."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .model import RoadType

# Road type names written by older documents.
LEGACY_ROAD_TYPES = {"curved": RoadType.QUADRATIC.value, "bezier": RoadType.CUBIC.value}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PointModel(_CamelModel):
    x: float = Field(..., description="World x coordinate.")
    y: float = Field(..., description="World y coordinate.")

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


class NodeModel(_CamelModel):
    id: str
    x: float
    y: float
    connected_road_ids: list[str] = Field(
        default_factory=list, description="Roads whose start or end node is this node."
    )


class RoadModel(_CamelModel):
    id: str
    start: PointModel
    end: PointModel
    start_node_id: str | None = None
    end_node_id: str | None = None
    type: RoadType = Field(RoadType.STRAIGHT, description="Segment family; circle roads store the centre in start.")
    width: float = Field(15.0, description="Drawn road width in world units.")
    name: str | None = None
    control_points: list[PointModel] | None = Field(
        default=None, description="Exactly two handles for cubic roads."
    )

    @field_validator("type", mode="before")
    @classmethod
    def _legacy_type(cls, value):
        if isinstance(value, str):
            return LEGACY_ROAD_TYPES.get(value.lower(), value.lower())
        return value


class PolygonVertexModel(_CamelModel):
    id: str
    x: float
    y: float
    cp1: PointModel | None = Field(default=None, description="Incoming handle; defaults to the vertex.")
    cp2: PointModel | None = Field(default=None, description="Outgoing handle; defaults to the vertex.")


class PolygonModel(_CamelModel):
    id: str
    name: str | None = None
    points: list[PolygonVertexModel] = Field(..., min_length=3)
    fill_color: str = "#3b82f6"
    stroke_color: str = "#1e40af"
    opacity: float = Field(0.3, ge=0.0, le=1.0)
    area: float | None = Field(default=None, description="Derived area in square metres.")


class BackgroundImageModel(_CamelModel):
    id: str
    src: str = ""
    name: str = ""
    x: float = 0.0
    y: float = 0.0
    scale: float = Field(1.0, gt=0.0)
    width: float = Field(0.0, ge=0.0)
    height: float = Field(0.0, ge=0.0)
    opacity: float = Field(0.7, ge=0.0, le=1.0)
    visible: bool = True
    locked: bool = False
    rotation: float = 0.0


class CanvasState(_CamelModel):
    nodes: list[NodeModel] = Field(default_factory=list)
    roads: list[RoadModel] = Field(default_factory=list)
    polygons: list[PolygonModel] = Field(default_factory=list)
    background_images: list[BackgroundImageModel] = Field(default_factory=list)
    pan_offset: PointModel = Field(default_factory=lambda: PointModel(x=0.0, y=0.0))
    zoom: float = Field(1.0, gt=0.0, description="View zoom; clamped to [0.1, 5] when applied.")
