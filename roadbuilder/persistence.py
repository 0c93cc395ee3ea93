# roadbuilder/persistence.py
"""
Snapshot save/load.

The document is a single JSON object ``{nodes, roads, polygons,
backgroundImages, panOffset, zoom}``. Loading is verbatim: no migration and
no repair beyond accepting a couple of legacy road type names. Background
sources that are not embedded ``data:`` URIs are blanked on save so a saved
map never points at local files.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Tuple, Union

from pydantic import ValidationError

from .backgrounds import BackgroundLayerManager
from .model import BackgroundImage, IdAllocator, Node, Polygon, PolygonVertex, Road, RoadType
from .polygons import PolygonStore
from .schemas import (
    BackgroundImageModel,
    CanvasState,
    NodeModel,
    PointModel,
    PolygonModel,
    PolygonVertexModel,
    RoadModel,
)
from .topology import TopologyStore
from .view import ViewTransform

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "canvas-state.json"
ID_PREFIXES = ("node", "road", "poly", "vtx", "bg")


class ParseError(ValueError):
    """The text is not a valid canvas document."""


# ---- Text ------------------------------------------------------------------


def _strip_sources(state: CanvasState) -> CanvasState:
    images = [
        image if image.src.startswith("data:") else image.model_copy(update={"src": ""})
        for image in state.background_images
    ]
    return state.model_copy(update={"background_images": images})


def save_canvas_state(state: CanvasState) -> str:
    return _strip_sources(state).model_dump_json(by_alias=True, exclude_none=True)


def load_canvas_state(text: Union[str, bytes]) -> CanvasState:
    try:
        return CanvasState.model_validate_json(text)
    except ValidationError as exc:
        raise ParseError(f"Invalid canvas state file: {exc.error_count()} problem(s)\n{exc}") from exc


def write_canvas_file(path: Union[str, Path], state: CanvasState) -> Path:
    target = Path(path)
    target.write_text(save_canvas_state(state), encoding="utf-8")
    logger.info(f"Saved canvas state to {target}")
    return target


def read_canvas_file(path: Union[str, Path]) -> CanvasState:
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"{source} is not UTF-8 text: {exc}") from exc
    state = load_canvas_state(text)
    logger.info(f"Loaded canvas state from {source}")
    return state


def default_filename(map_name: Optional[str] = None) -> str:
    """``"Main Street v2"`` becomes ``"main-street-v2.json"``."""
    if not map_name:
        return DEFAULT_FILENAME
    slug = re.sub(r"[^a-z0-9]+", "-", map_name.strip().lower()).strip("-")
    return f"{slug}.json" if slug else DEFAULT_FILENAME


# ---- Store conversion -------------------------------------------------------


def _pt(point) -> PointModel:
    return PointModel(x=float(point[0]), y=float(point[1]))


def state_from_stores(
    topology: TopologyStore,
    polygons: PolygonStore,
    backgrounds: BackgroundLayerManager,
    view: ViewTransform,
) -> CanvasState:
    return CanvasState(
        nodes=[
            NodeModel(id=n.id, x=n.x, y=n.y, connected_road_ids=list(n.connected_road_ids))
            for n in topology.nodes.values()
        ],
        roads=[
            RoadModel(
                id=r.id,
                start=_pt(r.start),
                end=_pt(r.end),
                start_node_id=r.start_node_id,
                end_node_id=r.end_node_id,
                type=r.type,
                width=r.width,
                name=r.name,
                control_points=[_pt(c) for c in r.control_points] if r.control_points else None,
            )
            for r in topology.roads.values()
        ],
        polygons=[
            PolygonModel(
                id=p.id,
                name=p.name,
                points=[
                    PolygonVertexModel(id=v.id, x=v.x, y=v.y, cp1=_pt(v.cp1), cp2=_pt(v.cp2))
                    for v in p.points
                ],
                fill_color=p.fill_color,
                stroke_color=p.stroke_color,
                opacity=p.opacity,
                area=p.area,
            )
            for p in polygons.polygons.values()
        ],
        background_images=[BackgroundImageModel(**vars(image)) for image in backgrounds.images.values()],
        pan_offset=_pt(view.pan_offset),
        zoom=view.zoom,
    )


def _vertex(model: PolygonVertexModel) -> PolygonVertex:
    pos = (model.x, model.y)
    return PolygonVertex(
        id=model.id,
        x=model.x,
        y=model.y,
        cp1=model.cp1.as_tuple() if model.cp1 else pos,
        cp2=model.cp2.as_tuple() if model.cp2 else pos,
    )


def _road_controls(model: RoadModel):
    """Control points for a loaded road; a cubic road always gets two.

    Missing cubic handles fall back to the road's endpoints, which is how
    the curve is drawn without them.
    """
    controls = [c.as_tuple() for c in model.control_points] if model.control_points else None
    if RoadType(model.type) != RoadType.CUBIC:
        return controls
    controls = list(controls or [])[:2]
    if len(controls) < 1:
        controls.append(model.start.as_tuple())
    if len(controls) < 2:
        controls.append(model.end.as_tuple())
    return controls


def stores_from_state(
    state: CanvasState,
) -> Tuple[TopologyStore, PolygonStore, BackgroundLayerManager, ViewTransform]:
    """Build fresh stores sharing one reseeded id allocator."""
    ids = IdAllocator()
    topology = TopologyStore(ids)
    for n in state.nodes:
        topology.nodes[n.id] = Node(id=n.id, x=n.x, y=n.y, connected_road_ids=list(n.connected_road_ids))
    for r in state.roads:
        topology.roads[r.id] = Road(
            id=r.id,
            start=r.start.as_tuple(),
            end=r.end.as_tuple(),
            type=RoadType(r.type),
            width=r.width,
            start_node_id=r.start_node_id,
            end_node_id=r.end_node_id,
            name=r.name,
            control_points=_road_controls(r),
        )

    polygons = PolygonStore(ids)
    for p in state.polygons:
        polygons.polygons[p.id] = Polygon(
            id=p.id,
            points=[_vertex(v) for v in p.points],
            fill_color=p.fill_color,
            stroke_color=p.stroke_color,
            opacity=p.opacity,
            name=p.name,
            area=p.area,
        )

    backgrounds = BackgroundLayerManager(ids)
    backgrounds.replace_all(BackgroundImage(**image.model_dump()) for image in state.background_images)

    view = ViewTransform()
    view.set_state(state.pan_offset.as_tuple(), state.zoom)

    every_id = (
        list(topology.nodes)
        + list(topology.roads)
        + list(polygons.polygons)
        + [v.id for p in polygons.polygons.values() for v in p.points]
        + list(backgrounds.images)
    )
    for prefix in ID_PREFIXES:
        ids.reseed(prefix, every_id)
    return topology, polygons, backgrounds, view
