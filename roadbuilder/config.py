# roadbuilder/config.py
"""
Editor settings: snapping, road defaults, map scale, polygon style and
display flags. Values are validated on construction and on every
``with_changes`` call, so an ``Editor`` never holds an invalid setting.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Union

from .model import normalize_color

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EditorSettings:
    snap_distance: float = 20.0       # world units
    default_road_width: float = 15.0  # world units
    meters_per_pixel: float = 0.1
    curved_roads: bool = False
    snap_enabled: bool = True
    grid_snap: bool = False
    polygon_fill_color: str = "#3b82f6"
    polygon_stroke_color: str = "#1e40af"
    polygon_opacity: float = 0.3
    show_lengths: bool = True
    show_road_names: bool = True
    show_polygons: bool = True

    def __post_init__(self) -> None:
        if self.snap_distance <= 0:
            raise ValueError(f"snap_distance must be positive, got {self.snap_distance}")
        if self.default_road_width <= 0:
            raise ValueError(f"default_road_width must be positive, got {self.default_road_width}")
        if self.meters_per_pixel <= 0:
            raise ValueError(f"meters_per_pixel must be positive, got {self.meters_per_pixel}")
        if not 0.0 <= self.polygon_opacity <= 1.0:
            raise ValueError(f"polygon_opacity must be in [0.0, 1.0], got {self.polygon_opacity}")
        # frozen: normalized colors go through object.__setattr__
        object.__setattr__(self, "polygon_fill_color", normalize_color(self.polygon_fill_color))
        object.__setattr__(self, "polygon_stroke_color", normalize_color(self.polygon_stroke_color))

    def asdict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_changes(self, **changes: Any) -> "EditorSettings":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EditorSettings":
        known = {f.name: f for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.debug(f"Ignoring unknown setting '{key}'")
                continue
            default = getattr(cls, key)
            if isinstance(default, bool):
                values[key] = bool(value)
            elif isinstance(default, float):
                values[key] = float(value)
            else:
                values[key] = str(value)
        return cls(**values)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "EditorSettings":
        """Load overrides from ``path``; a missing file yields the defaults."""
        config_path = Path(path)
        if not config_path.exists():
            return cls()
        with config_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"{config_path} must contain a JSON object")
        return cls.from_dict(data)
