"""Drive the live view to a bounding box and read back the realized scale."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from canvasshot.canvas import Canvas
    from canvasshot.geometry import BBox
    from canvasshot.waiting import Sleep

logger = logging.getLogger(__name__)

SETTLE_DELAY = 0.01

_SCALE_RE = re.compile(r"scale\((\d+(?:\.\d+)?)\)")


def parse_transform_scale(transform: str | None) -> float:
    """Extract the ``scale(...)`` factor of a CSS transform string.

    Falls back to 1.0 when there is none. A non-empty transform without
    a parsable scale is logged, since the fallback then yields a wrong
    output size rather than an error.

    Example:
        >>> parse_transform_scale("translate(10px, 20px) scale(0.5)")
        0.5
    """
    if transform:
        match = _SCALE_RE.search(transform)
        if match:
            return float(match.group(1))
        logger.warning("No scale() in canvas transform %r, assuming 1.0", transform)
    return 1.0


class ViewportController:
    """Moves a canvas to exact bounding boxes without animation."""

    def __init__(
        self,
        canvas: Canvas,
        *,
        settle_delay: float = SETTLE_DELAY,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._canvas = canvas
        self._settle_delay = settle_delay
        self._sleep = sleep

    async def apply(self, bbox: BBox) -> float:
        """Frame *bbox* and return the scale the engine actually applied.

        The engine may clamp or round the requested zoom, so pixel math
        downstream must use this value rather than the requested one.
        """
        canvas = self._canvas
        canvas.zoom_to_real_bbox(bbox)
        target = canvas.target_viewport
        # Jump straight to the target instead of waiting for the zoom animation
        canvas.set_viewport(target.x, target.y, target.zoom)
        await self._sleep(self._settle_delay)
        return self.realized_scale()

    async def align_top_left(self, bbox: BBox) -> float:
        """Pan so *bbox*'s top-left corner sits at the view's top-left corner.

        The zoom is left alone. When the engine clamped the zoom in
        ``apply`` it centred the box instead, and the exported region
        would no longer start at the view's origin.
        """
        canvas = self._canvas
        view = canvas.viewport_bbox()
        current = canvas.viewport
        canvas.set_viewport(
            current.x + bbox.min_x - view.min_x,
            current.y + bbox.min_y - view.min_y,
            current.zoom,
        )
        await self._sleep(self._settle_delay)
        return self.realized_scale()

    def realized_scale(self) -> float:
        return parse_transform_scale(self._canvas.transform)
