"""Raster overlay placement.

Only placement state lives here. Pixel data belongs to whatever decodes
``src``; the decoder reports back through :meth:`mark_decoded` and undecoded
images are simply skipped by :meth:`BackgroundLayerManager.render_order`.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set

from .model import BackgroundImage, IdAllocator

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"name", "x", "y", "width", "height", "scale", "rotation", "opacity", "visible", "locked"}
)
LOCKED_FIELDS = frozenset({"x", "y", "width", "height", "scale"})


def _check_value(field_name: str, value) -> None:
    # A zero size means "unknown until decoded".
    if field_name in ("width", "height") and float(value) < 0:
        raise ValueError(f"{field_name} must not be negative, got {value}")
    if field_name == "scale" and float(value) <= 0:
        raise ValueError(f"scale must be positive, got {value}")
    if field_name == "opacity" and not 0.0 <= float(value) <= 1.0:
        raise ValueError(f"opacity must be in [0.0, 1.0], got {value}")


class BackgroundLayerManager:
    """Background images in insertion order; later images draw above earlier ones."""

    def __init__(self, ids: Optional[IdAllocator] = None) -> None:
        self.ids = ids or IdAllocator()
        self.images: Dict[str, BackgroundImage] = {}
        self.layer_visible = True
        self._decoded: Set[str] = set()

    def add(
        self,
        src: str,
        width: float,
        height: float,
        name: str = "",
        x: float = 0.0,
        y: float = 0.0,
        scale: float = 1.0,
        opacity: float = 0.7,
        visible: bool = True,
        locked: bool = False,
        rotation: float = 0.0,
    ) -> BackgroundImage:
        for field_name, value in (("width", width), ("height", height), ("scale", scale), ("opacity", opacity)):
            _check_value(field_name, value)
        image = BackgroundImage(
            id=self.ids.next("bg"),
            src=src,
            width=float(width),
            height=float(height),
            name=name,
            x=float(x),
            y=float(y),
            scale=float(scale),
            opacity=float(opacity),
            visible=bool(visible),
            locked=bool(locked),
            rotation=float(rotation),
        )
        self.images[image.id] = image
        logger.info(f"Added background {image.id} ({image.width:.0f}x{image.height:.0f})")
        return image

    def get(self, image_id: Optional[str]) -> Optional[BackgroundImage]:
        if image_id is None:
            return None
        return self.images.get(image_id)

    def update(self, image_id: str, **fields) -> Optional[BackgroundImage]:
        """Merge ``fields`` into the image.

        Position and size edits on a locked image are dropped; the lock state
        in effect when the call is made decides.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise TypeError(f"Unknown background fields: {', '.join(sorted(unknown))}")
        image = self.images.get(image_id)
        if image is None:
            logger.debug(f"update: unknown background {image_id}")
            return None
        for field_name, value in fields.items():
            _check_value(field_name, value)
        if image.locked:
            blocked = sorted(set(fields) & LOCKED_FIELDS)
            if blocked:
                logger.warning(f"Background {image_id} is locked; ignoring {', '.join(blocked)}")
            fields = {k: v for k, v in fields.items() if k not in LOCKED_FIELDS}
        for field_name, value in fields.items():
            if field_name in ("visible", "locked"):
                value = bool(value)
            elif field_name != "name":
                value = float(value)
            setattr(image, field_name, value)
        return image

    def translate(self, image_id: str, dx: float, dy: float) -> Optional[BackgroundImage]:
        image = self.images.get(image_id)
        if image is None:
            return None
        return self.update(image_id, x=image.x + dx, y=image.y + dy)

    def remove(self, image_id: str) -> bool:
        if self.images.pop(image_id, None) is None:
            logger.debug(f"remove: unknown background {image_id}")
            return False
        self._decoded.discard(image_id)
        return True

    def mark_decoded(
        self,
        image_id: str,
        natural_width: Optional[float] = None,
        natural_height: Optional[float] = None,
    ) -> Optional[BackgroundImage]:
        """Record that the decoder finished; fills in a missing size from the natural one."""
        image = self.images.get(image_id)
        if image is None:
            return None
        if natural_width and image.width <= 0:
            image.width = float(natural_width)
        if natural_height and image.height <= 0:
            image.height = float(natural_height)
        self._decoded.add(image_id)
        return image

    def is_decoded(self, image_id: str) -> bool:
        return image_id in self._decoded

    def show_layer(self, visible: bool) -> None:
        self.layer_visible = bool(visible)

    def render_order(self) -> List[BackgroundImage]:
        if not self.layer_visible:
            return []
        return [
            image for image in self.images.values() if image.visible and image.id in self._decoded
        ]

    def decoded_ids(self) -> Set[str]:
        return set(self._decoded)

    def replace_all(self, images: Iterable[BackgroundImage], decoded_ids: Iterable[str] = ()) -> None:
        self.images = {image.id: image for image in images}
        self._decoded = {image_id for image_id in decoded_ids if image_id in self.images}

    def clear(self) -> None:
        self.images.clear()
        self._decoded.clear()
