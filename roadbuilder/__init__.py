"""Interactive road network and polygon editing engine."""

from .config import EditorSettings
from .editor import Editor, EditorSnapshot, Totals
from .model import BackgroundImage, Node, Polygon, PolygonVertex, Road, RoadType
from .persistence import ParseError, load_canvas_state, save_canvas_state
from .schemas import CanvasState

__all__ = [
    "BackgroundImage",
    "CanvasState",
    "Editor",
    "EditorSettings",
    "EditorSnapshot",
    "Node",
    "ParseError",
    "Polygon",
    "PolygonVertex",
    "Road",
    "RoadType",
    "Totals",
    "load_canvas_state",
    "save_canvas_state",
]
