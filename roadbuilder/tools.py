"""Interactive tools for the road editor.

Tools receive screen-space events and drive an ``Editor``; they never touch
stores directly.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Tuple

Point = Tuple[float, float]

BUTTON_LEFT = "left"
BUTTON_MIDDLE = "middle"
BUTTON_RIGHT = "right"

MOD_CTRL = "ctrl"
MOD_SHIFT = "shift"
MOD_ALT = "alt"

KEY_ENTER = "Enter"
KEY_ESCAPE = "Escape"
KEY_BACKSPACE = "Backspace"
KEY_DELETE = "Delete"

DRAG_THRESHOLD_PX = 4.0


@dataclass(frozen=True)
class PointerEvent:
    x: float
    y: float
    button: Optional[str] = BUTTON_LEFT
    modifiers: FrozenSet[str] = field(default_factory=frozenset)
    # Buttons held while moving.
    buttons: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def position(self) -> Point:
        return (self.x, self.y)


@dataclass(frozen=True)
class KeyEvent:
    key: str
    modifiers: FrozenSet[str] = field(default_factory=frozenset)


class ToolBase:
    """Common interface every tool implements."""

    def __init__(self, editor):
        self.editor = editor

    def mouse_press(self, event: PointerEvent):
        pass

    def mouse_move(self, event: PointerEvent):
        pass

    def mouse_release(self, event: PointerEvent):
        pass

    def key_press(self, event: KeyEvent):
        pass

    def deactivate(self):
        pass


class _DragTracker:
    """Left-button press position plus the 4px threshold check."""

    def __init__(self):
        self.press_pos: Optional[Point] = None
        self.dragging = False

    def press(self, event: PointerEvent) -> None:
        self.press_pos = event.position
        self.dragging = False

    def moved(self, event: PointerEvent) -> bool:
        if self.press_pos is None or BUTTON_LEFT not in event.buttons:
            return False
        if not self.dragging:
            dx = event.x - self.press_pos[0]
            dy = event.y - self.press_pos[1]
            if math.hypot(dx, dy) >= DRAG_THRESHOLD_PX:
                self.dragging = True
        return self.dragging

    def reset(self) -> None:
        self.press_pos = None
        self.dragging = False


class SelectTool(ToolBase):
    """Hit-test the scene, select, and drag nodes, vertices, handles and polygons."""

    def __init__(self, editor):
        super().__init__(editor)
        self._tracker = _DragTracker()

    def mouse_press(self, event):
        if event.button != BUTTON_LEFT:
            return
        self._tracker.press(event)
        self.editor.press_select(self.editor.world_from_event(event))

    def mouse_move(self, event):
        if self._tracker.moved(event):
            self.editor.drag_selection(self.editor.world_from_event(event))

    def mouse_release(self, event):
        if event.button != BUTTON_LEFT or self._tracker.press_pos is None:
            return
        self.editor.end_drag()
        self._tracker.reset()

    def key_press(self, event):
        if event.key in (KEY_DELETE, KEY_BACKSPACE):
            self.editor.delete_selection()
        elif event.key == KEY_ESCAPE:
            self.editor.clear_selection()

    def deactivate(self):
        self.editor.end_drag()
        self._tracker.reset()


class RoadTool(ToolBase):
    """Stage a chain of points; Enter commits one road per consecutive pair.

    With curved roads on, dragging after a click pulls that point's handles.
    """

    def __init__(self, editor):
        super().__init__(editor)
        self._tracker = _DragTracker()

    def mouse_press(self, event):
        if event.button == BUTTON_RIGHT:
            self.editor.complete_build()
            return
        if event.button != BUTTON_LEFT:
            return
        self._tracker.press(event)
        self.editor.stage_road_point(self.editor.world_from_event(event))

    def mouse_move(self, event):
        world = self.editor.world_from_event(event)
        if self._tracker.moved(event):
            if self.editor.settings.curved_roads:
                self.editor.pull_build_handle(world)
            return
        self.editor.build_snap(world)

    def mouse_release(self, event):
        self._tracker.reset()

    def key_press(self, event):
        if event.key == KEY_ENTER:
            self.editor.complete_build()
        elif event.key == KEY_ESCAPE:
            self.editor.cancel_build()
        elif event.key == KEY_BACKSPACE:
            self.editor.remove_last_build_point()

    def deactivate(self):
        self.editor.cancel_build()
        self._tracker.reset()


class PolygonTool(ToolBase):
    """Click vertices; clicking the first vertex again (or Enter) closes the region."""

    def __init__(self, editor):
        super().__init__(editor)
        self._tracker = _DragTracker()

    def mouse_press(self, event):
        if event.button != BUTTON_LEFT:
            return
        self._tracker.press(event)
        polygon = self.editor.click_polygon(self.editor.world_from_event(event))
        if polygon is not None:
            # The press closed the shape; a following drag must not bend a new one.
            self._tracker.reset()

    def mouse_move(self, event):
        if self._tracker.moved(event):
            self.editor.pull_polygon_handle(self.editor.world_from_event(event))

    def mouse_release(self, event):
        self._tracker.reset()

    def key_press(self, event):
        if event.key == KEY_ENTER:
            self.editor.complete_polygon()
        elif event.key == KEY_ESCAPE:
            self.editor.cancel_polygon()
        elif event.key == KEY_BACKSPACE:
            self.editor.remove_last_polygon_point()

    def deactivate(self):
        self.editor.cancel_polygon()
        self._tracker.reset()


class ConnectTool(ToolBase):
    """Two node clicks connect them; clicking the same node twice makes a loop."""

    def mouse_press(self, event):
        if event.button != BUTTON_LEFT:
            return
        node = self.editor.node_at(self.editor.world_from_event(event))
        if node is None:
            return
        pending = self.editor.connecting_from_node_id
        if pending is None or pending not in self.editor.topology.nodes:
            self.editor.connecting_from_node_id = node.id
            return
        self.editor.connect_nodes(pending, node.id)
        self.editor.connecting_from_node_id = None

    def key_press(self, event):
        if event.key == KEY_ESCAPE:
            self.editor.connecting_from_node_id = None

    def deactivate(self):
        self.editor.connecting_from_node_id = None


class DisconnectTool(ToolBase):
    """First click marks a road, a second click on the same road deletes it."""

    def mouse_press(self, event):
        if event.button != BUTTON_LEFT:
            return
        road = self.editor.road_at(self.editor.world_from_event(event))
        if road is None:
            self.editor.disconnect_road_id = None
            return
        if self.editor.disconnect_road_id == road.id:
            self.editor.delete_road(road.id)
            self.editor.disconnect_road_id = None
        else:
            self.editor.disconnect_road_id = road.id

    def key_press(self, event):
        if event.key == KEY_ESCAPE:
            self.editor.disconnect_road_id = None

    def deactivate(self):
        self.editor.disconnect_road_id = None


class AddNodeTool(ToolBase):
    def mouse_press(self, event):
        if event.button != BUTTON_LEFT:
            return
        self.editor.add_node(self.editor.world_from_event(event))

    def mouse_move(self, event):
        self.editor.snap(self.editor.world_from_event(event))


class PanTool(ToolBase):
    """Drag to move the view; deltas apply in screen space."""

    def __init__(self, editor):
        super().__init__(editor)
        self._last: Optional[Point] = None

    def mouse_press(self, event):
        if event.button in (BUTTON_LEFT, BUTTON_MIDDLE):
            self._last = event.position

    def mouse_move(self, event):
        if self._last is None or not event.buttons:
            return
        self.editor.pan_by(event.x - self._last[0], event.y - self._last[1])
        self._last = event.position

    def mouse_release(self, event):
        self._last = None

    def deactivate(self):
        self._last = None
