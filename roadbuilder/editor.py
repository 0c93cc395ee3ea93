"""Editor aggregate: stores, sessions, view, selection and history in one place.

Tools and panels talk to an :class:`Editor` instead of module-level state.
Renderers read :meth:`Editor.snapshot`, which hands out copies.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Tuple, Union

from .backgrounds import BackgroundLayerManager
from .config import EditorSettings
from .geometry import road_hit
from .intersect2d import Point, dist
from .model import BackgroundImage, IdAllocator, Node, Polygon, Road, RoadType
from .osnap import SnapKind, SnapResult, resolve_snap
from .persistence import (
    load_canvas_state,
    read_canvas_file,
    save_canvas_state,
    state_from_stores,
    stores_from_state,
    write_canvas_file,
)
from .polygons import PolygonStore
from .schemas import CanvasState
from .selection import (
    NODE_PICK_PX,
    Drag,
    Hit,
    HitKind,
    Selection,
    begin_drag,
    drag_to,
    hit_test,
    selection_for_hit,
)
from .sessions import (
    BuildSession,
    PolygonSession,
    PolygonStyle,
    SessionPhase,
    cancel_build,
    cancel_polygon,
    click_polygon_point,
    complete_build,
    complete_polygon,
    preview_polygon_phase,
    pull_build_handle,
    pull_polygon_handle,
    remove_last_build_point,
    nearest_staged_point,
    remove_last_polygon_point,
    restyle_polygon_session,
    reuse_build_point,
    stage_build_point,
)
from .tools import (
    AddNodeTool,
    ConnectTool,
    DisconnectTool,
    KeyEvent,
    MOD_CTRL,
    PanTool,
    PointerEvent,
    PolygonTool,
    RoadTool,
    SelectTool,
    ToolBase,
)
from .topology import TopologyStore
from .view import ViewTransform

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100

TOOL_CLASSES = {
    "select": SelectTool,
    "nodes": RoadTool,
    "polygon": PolygonTool,
    "connect": ConnectTool,
    "disconnect": DisconnectTool,
    "add-node": AddNodeTool,
    "pan": PanTool,
}


class Totals(NamedTuple):
    road_count: int
    node_count: int
    polygon_count: int
    total_length_m: float
    total_area_m2: float


@dataclass(frozen=True)
class EditorSnapshot:
    """Read-only view of the editor handed to renderers."""

    nodes: Tuple[Node, ...]
    roads: Tuple[Road, ...]
    polygons: Tuple[Polygon, ...]
    background_images: Tuple[BackgroundImage, ...]
    build_session: BuildSession
    polygon_session: PolygonSession
    pan_offset: Point
    zoom: float
    selection: Selection
    snap_preview: Optional[str]
    cursor: Optional[Point]
    polygon_preview_phase: SessionPhase
    connecting_from_node_id: Optional[str]
    disconnect_road_id: Optional[str]
    settings: EditorSettings
    tool_name: Optional[str]


@dataclass(frozen=True)
class _HistoryEntry:
    state: CanvasState
    decoded_ids: frozenset


class Editor:
    def __init__(self, settings: Optional[EditorSettings] = None) -> None:
        self.settings = settings or EditorSettings()
        self.ids = IdAllocator()
        self.topology = TopologyStore(self.ids)
        self.polygons = PolygonStore(self.ids)
        self.backgrounds = BackgroundLayerManager(self.ids)
        self.view = ViewTransform()
        self.build_session = BuildSession(road_type=self.road_type, road_width=self.settings.default_road_width)
        self.polygon_session = PolygonSession(**self._polygon_style_kwargs())
        self.selection = Selection()
        self.snap_preview: Optional[str] = None
        self.cursor: Optional[Point] = None
        self.connecting_from_node_id: Optional[str] = None
        self.disconnect_road_id: Optional[str] = None
        self._drag: Optional[Drag] = None
        self._drag_before: Optional[_HistoryEntry] = None
        self._undo_stack: List[_HistoryEntry] = []
        self._redo_stack: List[_HistoryEntry] = []
        self._tool: Optional[ToolBase] = None
        self._tool_name: Optional[str] = None
        self._tool_cache: Dict[str, ToolBase] = {}

    # ------------------------------------------------------------------
    # Settings
    @property
    def road_type(self) -> RoadType:
        return RoadType.CUBIC if self.settings.curved_roads else RoadType.STRAIGHT

    @property
    def polygon_style(self) -> PolygonStyle:
        s = self.settings
        return PolygonStyle(s.polygon_fill_color, s.polygon_stroke_color, s.polygon_opacity)

    def _polygon_style_kwargs(self) -> dict:
        style = self.polygon_style
        return {"fill_color": style.fill_color, "stroke_color": style.stroke_color, "opacity": style.opacity}

    def update_settings(self, **changes) -> EditorSettings:
        """Apply validated setting changes; an invalid value leaves settings untouched."""
        previous = self.settings
        self.settings = previous.with_changes(**changes)
        if self.settings.meters_per_pixel != previous.meters_per_pixel:
            self.polygons.recompute_areas(self.settings.meters_per_pixel)
        if self.polygon_style != PolygonStyle(
            previous.polygon_fill_color, previous.polygon_stroke_color, previous.polygon_opacity
        ):
            self.polygon_session = restyle_polygon_session(self.polygon_session, self.polygon_style)
        return self.settings

    def set_snap_distance(self, value: float) -> None:
        self.update_settings(snap_distance=float(value))

    def set_default_road_width(self, value: float) -> None:
        self.update_settings(default_road_width=float(value))

    def set_meters_per_pixel(self, value: float) -> None:
        self.update_settings(meters_per_pixel=float(value))

    def set_curved_roads(self, enabled: bool) -> None:
        self.update_settings(curved_roads=bool(enabled))

    def set_snap_enabled(self, enabled: bool) -> None:
        self.update_settings(snap_enabled=bool(enabled))

    def set_grid_snap(self, enabled: bool) -> None:
        self.update_settings(grid_snap=bool(enabled))

    def set_polygon_style(
        self,
        fill_color: Optional[str] = None,
        stroke_color: Optional[str] = None,
        opacity: Optional[float] = None,
    ) -> None:
        changes = {}
        if fill_color is not None:
            changes["polygon_fill_color"] = fill_color
        if stroke_color is not None:
            changes["polygon_stroke_color"] = stroke_color
        if opacity is not None:
            changes["polygon_opacity"] = float(opacity)
        self.update_settings(**changes)

    def set_display(
        self,
        show_lengths: Optional[bool] = None,
        show_road_names: Optional[bool] = None,
        show_polygons: Optional[bool] = None,
    ) -> None:
        changes = {
            key: bool(value)
            for key, value in (
                ("show_lengths", show_lengths),
                ("show_road_names", show_road_names),
                ("show_polygons", show_polygons),
            )
            if value is not None
        }
        self.update_settings(**changes)

    # ------------------------------------------------------------------
    # Read side
    def snapshot(self) -> EditorSnapshot:
        cursor_phase = self.polygon_session.phase
        if self.cursor is not None:
            cursor_phase = preview_polygon_phase(self.polygon_session, self.cursor, self.view.zoom)
        return EditorSnapshot(
            nodes=tuple(n.copy() for n in self.topology.nodes.values()),
            roads=tuple(r.copy() for r in self.topology.roads.values()),
            polygons=tuple(p.copy() for p in self.polygons.polygons.values()),
            background_images=tuple(image.copy() for image in self.backgrounds.render_order()),
            build_session=self.build_session,
            polygon_session=self.polygon_session,
            pan_offset=self.view.pan_offset,
            zoom=self.view.zoom,
            selection=self.selection,
            snap_preview=self.snap_preview,
            cursor=self.cursor,
            polygon_preview_phase=cursor_phase,
            connecting_from_node_id=self.connecting_from_node_id,
            disconnect_road_id=self.disconnect_road_id,
            settings=self.settings,
            tool_name=self._tool_name,
        )

    def totals(self) -> Totals:
        return Totals(
            road_count=len(self.topology.roads),
            node_count=len(self.topology.nodes),
            polygon_count=len(self.polygons.polygons),
            total_length_m=self.topology.total_length(self.settings.meters_per_pixel),
            total_area_m2=self.polygons.total_area(),
        )

    def world_from_event(self, event: PointerEvent) -> Point:
        return self.view.screen_to_world((event.x, event.y))

    def snap(self, world: Point, exclude_node_ids=()) -> SnapResult:
        """Resolve a placement and publish the preview token."""
        result = resolve_snap(
            world,
            self.topology,
            self.settings.snap_distance,
            snap_enabled=self.settings.snap_enabled,
            grid_enabled=self.settings.grid_snap,
            exclude_node_ids=exclude_node_ids,
        )
        self.snap_preview = result.preview
        return result

    def node_at(self, world: Point) -> Optional[Node]:
        return self.topology.nearest_node(world, self.view.to_world_distance(NODE_PICK_PX))

    def road_at(self, world: Point) -> Optional[Road]:
        for road in reversed(list(self.topology.roads.values())):
            if road_hit(world, road, self.view.zoom):
                return road
        return None

    # ------------------------------------------------------------------
    # History
    def _history_entry(self) -> _HistoryEntry:
        state = state_from_stores(self.topology, self.polygons, self.backgrounds, self.view)
        return _HistoryEntry(state=state, decoded_ids=frozenset(self.backgrounds.decoded_ids()))

    def _record(self, before: _HistoryEntry) -> None:
        self._undo_stack.append(before)
        if len(self._undo_stack) > HISTORY_LIMIT:
            self._undo_stack.pop(0)
        self._redo_stack.clear()

    def _push_history(self) -> None:
        self._record(self._history_entry())

    def _restore(self, entry: _HistoryEntry) -> None:
        topology, polygons, backgrounds, _ = stores_from_state(entry.state)
        backgrounds.replace_all(backgrounds.images.values(), entry.decoded_ids)
        backgrounds.show_layer(self.backgrounds.layer_visible)
        self._install(topology, polygons, backgrounds)
        self.selection = self.selection.without_missing(self.topology, self.polygons)

    def _install(self, topology: TopologyStore, polygons: PolygonStore, backgrounds: BackgroundLayerManager) -> None:
        self.ids = topology.ids
        self.topology = topology
        self.polygons = polygons
        self.backgrounds = backgrounds
        self._drag = None
        self.connecting_from_node_id = None
        self.disconnect_road_id = None

    def undo(self) -> bool:
        if not self._undo_stack:
            return False
        self.cancel_sessions()
        current = self._history_entry()
        entry = self._undo_stack.pop()
        self._redo_stack.append(current)
        self._restore(entry)
        return True

    def redo(self) -> bool:
        if not self._redo_stack:
            return False
        self.cancel_sessions()
        current = self._history_entry()
        entry = self._redo_stack.pop()
        self._undo_stack.append(current)
        self._restore(entry)
        return True

    def can_undo(self) -> bool:
        return bool(self._undo_stack)

    def can_redo(self) -> bool:
        return bool(self._redo_stack)

    # ------------------------------------------------------------------
    # Road building
    def build_snap(self, world: Point) -> Tuple[SnapResult, Optional[int]]:
        """Snap for the road builder; earlier staged points count as nodes.

        Returns the store snap and, when a staged point is closer than any
        store node, that point's index.
        """
        result = self.snap(world, exclude_node_ids=self.build_session.snap_exclusions())
        if not self.settings.snap_enabled:
            return result, None
        index = nearest_staged_point(self.build_session, world, self.settings.snap_distance)
        if index is None:
            return result, None
        staged = self.build_session.nodes[index]
        if result.kind == SnapKind.NODE and dist(world, result.point) <= dist(world, staged.pos):
            return result, None
        self.snap_preview = SnapKind.NODE.value
        return result, index

    def stage_road_point(self, world: Point) -> BuildSession:
        result, index = self.build_snap(world)
        if index is not None:
            self.build_session = reuse_build_point(self.build_session, index)
        else:
            self.build_session = stage_build_point(
                self.build_session, result, self.road_type, self.settings.default_road_width
            )
        return self.build_session

    def pull_build_handle(self, world: Point) -> None:
        self.build_session = pull_build_handle(self.build_session, world)

    def complete_build(self) -> List[Road]:
        if not self.build_session.is_active or len(self.build_session.nodes) < 2:
            return []
        before = self._history_entry()
        self.build_session, roads = complete_build(self.build_session, self.topology)
        if roads:
            self._record(before)
        self.snap_preview = None
        return roads

    def cancel_build(self) -> None:
        self.build_session = cancel_build(self.build_session)
        self.snap_preview = None

    def remove_last_build_point(self) -> None:
        self.build_session = remove_last_build_point(self.build_session)

    # ------------------------------------------------------------------
    # Polygon building
    def click_polygon(self, world: Point) -> Optional[Polygon]:
        before = self._history_entry() if self.polygon_session.is_active else None
        self.polygon_session, polygon = click_polygon_point(
            self.polygon_session,
            world,
            self.view.zoom,
            self.polygons,
            self.settings.meters_per_pixel,
            self.polygon_style,
        )
        if polygon is not None and before is not None:
            self._record(before)
        return polygon

    def complete_polygon(self) -> Optional[Polygon]:
        if not self.polygon_session.is_active or len(self.polygon_session.points) < 3:
            return None
        before = self._history_entry()
        self.polygon_session, polygon = complete_polygon(
            self.polygon_session, self.polygons, self.settings.meters_per_pixel
        )
        if polygon is not None:
            self._record(before)
        return polygon

    def cancel_polygon(self) -> None:
        self.polygon_session = cancel_polygon(self.polygon_session)

    def remove_last_polygon_point(self) -> None:
        self.polygon_session = remove_last_polygon_point(self.polygon_session)

    def pull_polygon_handle(self, world: Point) -> None:
        self.polygon_session = pull_polygon_handle(self.polygon_session, world)

    def cancel_sessions(self) -> None:
        self.cancel_build()
        self.cancel_polygon()

    # ------------------------------------------------------------------
    # Structural edits
    def add_node(self, world: Point) -> Optional[Node]:
        """Place a node; an existing node absorbs the click and a straight road is split."""
        result = self.snap(world)
        if result.kind == SnapKind.NODE:
            return None
        self._push_history()
        if result.kind == SnapKind.ROAD and result.road_id is not None:
            return self.topology.split_road(result.road_id, result.point)
        return self.topology.add_node(result.point)

    def connect_nodes(self, node_a: str, node_b: str) -> Optional[Road]:
        if node_a not in self.topology.nodes or node_b not in self.topology.nodes:
            return None
        self._push_history()
        return self.topology.connect(node_a, node_b, self.road_type, self.settings.default_road_width)

    def move_node(self, node_id: str, world: Point) -> Optional[Node]:
        if node_id not in self.topology.nodes:
            return None
        self._push_history()
        return self.topology.move_node(node_id, world)

    def split_road(self, road_id: str, world: Point) -> Optional[Node]:
        if road_id not in self.topology.roads:
            return None
        self._push_history()
        return self.topology.split_road(road_id, world)

    def delete_node(self, node_id: str) -> bool:
        if node_id not in self.topology.nodes:
            return False
        self._push_history()
        self.topology.delete_node(node_id)
        self.selection = self.selection.without_missing(self.topology, self.polygons)
        return True

    def delete_road(self, road_id: str) -> bool:
        if road_id not in self.topology.roads:
            return False
        self._push_history()
        self.topology.delete_road(road_id)
        self.selection = self.selection.without_missing(self.topology, self.polygons)
        return True

    def delete_polygon(self, polygon_id: str) -> bool:
        if polygon_id not in self.polygons.polygons:
            return False
        self._push_history()
        self.polygons.delete(polygon_id)
        self.selection = self.selection.without_missing(self.topology, self.polygons)
        return True

    def update_road(self, road_id: str, **changes) -> Optional[Road]:
        if road_id not in self.topology.roads:
            return None
        before = self._history_entry()
        road = self.topology.update_road(road_id, **changes)
        self._record(before)
        return road

    def update_polygon(self, polygon_id: str, **changes) -> Optional[Polygon]:
        if polygon_id not in self.polygons.polygons:
            return None
        before = self._history_entry()
        polygon = self.polygons.update(polygon_id, **changes)
        self._record(before)
        return polygon

    def delete_selection(self) -> bool:
        sel = self.selection
        if sel.node_id is not None:
            removed = self.delete_node(sel.node_id)
        elif sel.road_id is not None:
            removed = self.delete_road(sel.road_id)
        elif sel.polygon_id is not None:
            removed = self.delete_polygon(sel.polygon_id)
        elif sel.background_id is not None:
            removed = self.remove_background(sel.background_id)
        else:
            return False
        self.selection = Selection()
        return removed

    def remove_last_element(self) -> None:
        """Pop a staged point, else delete the newest road, else the newest node."""
        if self.build_session.is_active:
            self.remove_last_build_point()
        elif self.polygon_session.is_active:
            self.remove_last_polygon_point()
        elif self.topology.roads:
            self.delete_road(self.topology.last_road().id)
        elif self.topology.nodes:
            self.delete_node(self.topology.last_node().id)

    def clear(self) -> None:
        """Reset every store and session; view and settings survive."""
        self._push_history()
        self.topology.clear()
        self.polygons.clear()
        self.backgrounds.clear()
        self.build_session = BuildSession(road_type=self.road_type, road_width=self.settings.default_road_width)
        self.polygon_session = PolygonSession(**self._polygon_style_kwargs())
        self.selection = Selection()
        self.snap_preview = None
        self.connecting_from_node_id = None
        self.disconnect_road_id = None
        self._drag = None
        logger.info("Cleared canvas")

    # ------------------------------------------------------------------
    # Selection and dragging
    def select(self, selection: Selection) -> None:
        self.selection = selection.without_missing(self.topology, self.polygons)

    def clear_selection(self) -> None:
        self.selection = Selection()

    def press_select(self, world: Point) -> Hit:
        hit = hit_test(world, self.view.zoom, self.selection, self.topology, self.polygons)
        self.selection = selection_for_hit(hit, self.selection)
        self._drag = begin_drag(hit, world)
        self._drag_before = self._history_entry() if self._drag is not None else None
        return hit

    def drag_selection(self, world: Point) -> None:
        if self._drag is None:
            return
        target = world
        if self._drag.hit.kind == HitKind.NODE:
            target = self.snap(world, exclude_node_ids=(self._drag.hit.node_id,)).point
        self._drag = drag_to(self._drag, target, self.topology, self.polygons, self.settings.meters_per_pixel)

    def end_drag(self) -> None:
        drag, before = self._drag, self._drag_before
        self._drag = None
        self._drag_before = None
        self.snap_preview = None
        # A press that never moved changed nothing.
        if drag is not None and before is not None and drag.last != drag.origin:
            self._record(before)

    # ------------------------------------------------------------------
    # Backgrounds
    def add_background(self, src: str, width: float, height: float, **fields) -> BackgroundImage:
        self._push_history()
        return self.backgrounds.add(src, width, height, **fields)

    def update_background(self, image_id: str, **fields) -> Optional[BackgroundImage]:
        if image_id not in self.backgrounds.images:
            return None
        before = self._history_entry()
        image = self.backgrounds.update(image_id, **fields)
        self._record(before)
        return image

    def remove_background(self, image_id: str) -> bool:
        if image_id not in self.backgrounds.images:
            return False
        self._push_history()
        removed = self.backgrounds.remove(image_id)
        if self.selection.background_id == image_id:
            self.selection = Selection()
        return removed

    # ------------------------------------------------------------------
    # View
    def zoom_in(self) -> None:
        self.view.zoom_in()

    def zoom_out(self) -> None:
        self.view.zoom_out()

    def zoom_reset(self) -> None:
        self.view.reset()

    def pan_by(self, dx: float, dy: float) -> None:
        self.view.pan_by(dx, dy)

    # ------------------------------------------------------------------
    # Persistence
    def canvas_state(self) -> CanvasState:
        return state_from_stores(self.topology, self.polygons, self.backgrounds, self.view)

    def save_state(self) -> str:
        return save_canvas_state(self.canvas_state())

    def _apply_state(self, state: CanvasState) -> None:
        topology, polygons, backgrounds, view = stores_from_state(state)
        self._install(topology, polygons, backgrounds)
        self.view = view
        self.build_session = BuildSession(road_type=self.road_type, road_width=self.settings.default_road_width)
        self.polygon_session = PolygonSession(**self._polygon_style_kwargs())
        self.selection = Selection()
        self.snap_preview = None
        self._undo_stack.clear()
        self._redo_stack.clear()
        logger.info(
            f"Loaded {len(topology.nodes)} nodes, {len(topology.roads)} roads, "
            f"{len(polygons.polygons)} polygons, {len(backgrounds.images)} backgrounds"
        )

    def load_state(self, text: Union[str, bytes]) -> None:
        """Replace everything with the document in ``text``; on ParseError nothing changes."""
        self._apply_state(load_canvas_state(text))

    def save_file(self, path: Union[str, Path]) -> Path:
        return write_canvas_file(path, self.canvas_state())

    def load_file(self, path: Union[str, Path]) -> None:
        self._apply_state(read_canvas_file(path))

    # ------------------------------------------------------------------
    # Tools and event dispatch
    def available_tools(self) -> Tuple[str, ...]:
        return tuple(TOOL_CLASSES)

    @property
    def tool_name(self) -> Optional[str]:
        return self._tool_name

    def set_tool(self, name: str) -> None:
        if name == self._tool_name:
            return
        if name not in TOOL_CLASSES:
            raise ValueError(f"Unknown tool '{name}'")
        if self._tool is not None:
            self._tool.deactivate()
        if name not in self._tool_cache:
            self._tool_cache[name] = TOOL_CLASSES[name](self)
        self._tool = self._tool_cache[name]
        self._tool_name = name
        self.snap_preview = None

    def mouse_press(self, event: PointerEvent) -> None:
        if self._tool is not None:
            self._tool.mouse_press(event)

    def mouse_move(self, event: PointerEvent) -> None:
        self.cursor = self.world_from_event(event)
        if self._tool is not None:
            self._tool.mouse_move(event)

    def mouse_release(self, event: PointerEvent) -> None:
        if self._tool is not None:
            self._tool.mouse_release(event)

    def _handle_shortcut(self, event: KeyEvent) -> bool:
        if MOD_CTRL not in event.modifiers:
            return False
        if event.key in ("+", "="):
            self.zoom_in()
            return True
        if event.key in ("-", "_"):
            self.zoom_out()
            return True
        if event.key == "0":
            self.zoom_reset()
            return True
        if event.key.lower() == "z":
            self.undo()
            return True
        if event.key.lower() == "y":
            self.redo()
            return True
        return False

    def key_press(self, event: KeyEvent) -> None:
        if self._handle_shortcut(event):
            return
        if self._tool is not None:
            self._tool.key_press(event)
