"""Resolve rasterizer parameters and invoke the external rasterizer.

Scoping a selection export happens here: the live canvas keeps drawing
everything, and ``InclusionFilter`` tells the rasterizer which rendered
elements belong in the image.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from canvasshot.canvas import ElementKind, Overlay, RenderElement
from canvasshot.exceptions import RasterizationError
from canvasshot.geometry import BBox
from canvasshot.request import ImageFormat

if TYPE_CHECKING:
    from canvasshot.canvas import CanvasEdge, CanvasNode

WATERMARK_ID = "watermark-ac"
WATERMARK_SIZE = (215.0, 25.0)
WATERMARK_MIN_WIDTH = 200.0
WATERMARK_MARKUP = (
    '<rect x="0" y="2" width="21" height="21" rx="5" fill="currentColor"/>'
    '<path d="M6 17 L10.5 7 L15 17 Z" fill="#ffffff"/>'
    '<text x="28" y="18.5" font-size="16" font-family="sans-serif" '
    'font-weight="600" fill="currentColor">Exported with canvasshot</text>'
)

ElementFilter = Callable[[RenderElement], bool]


@dataclass(frozen=True)
class RasterizeOptions:
    """Parameters handed to the rasterizer.

    Attributes:
        width: Output width in CSS pixels
        height: Output height in CSS pixels
        pixel_ratio: Device pixels per CSS pixel, None for vector output
        background_color: Fill behind the content, None for transparent
        filter: Predicate choosing which render elements are drawn
        font_embed_css: ``""`` disables font embedding, None lets the
            rasterizer embed fonts itself
    """

    width: float
    height: float
    pixel_ratio: int | None
    background_color: str | None
    filter: ElementFilter
    font_embed_css: str | None = None


class Rasterizer(Protocol):
    """External service turning the rendered canvas into image data URIs."""

    async def to_png(self, root: Any, options: RasterizeOptions) -> str: ...

    async def to_svg(self, root: Any, options: RasterizeOptions) -> str: ...


class InclusionFilter:
    """Render element predicate for a set of exported nodes and edges.

    Node elements, edge paths/arrows and edge labels are kept only when
    they belong to the exported elements; any other element (background,
    overlays) passes through.
    """

    def __init__(self, nodes: Iterable[CanvasNode], edges: Iterable[CanvasEdge]) -> None:
        edges = list(edges)
        self._node_elements = frozenset(node.element for node in nodes)
        self._edge_elements = frozenset(el for edge in edges for el in edge.path_elements)
        self._label_elements = frozenset(
            edge.label_element for edge in edges if edge.label_element is not None
        )

    def __call__(self, element: RenderElement) -> bool:
        if element.kind is ElementKind.NODE:
            return element in self._node_elements
        if element.kind.in_edge_layer:
            return element in self._edge_elements
        if element.kind is ElementKind.EDGE_LABEL:
            return element in self._label_elements
        return True


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def pixel_ratio_for(
    target: BBox,
    viewport_px: tuple[float, float],
    factor: float,
    fmt: ImageFormat,
) -> int | None:
    """Device pixel ratio that renders *target* at about one pixel per unit.

    Rounds half up and never goes below 1, so a tiny target or a small
    factor never yields a zero ratio. Returns None for vector output,
    which has no pixel ratio.
    """
    if fmt.is_vector:
        return None
    view_w, view_h = viewport_px
    required = max(target.width / view_w, target.height / view_h)
    return max(1, round_half_up(required * factor))


def output_size(target: BBox, scale: float) -> tuple[float, float]:
    """CSS-pixel size of *target* drawn at the realized *scale*.

    The view is panned so the target starts at its top-left corner, and
    the rasterizer captures this ``width x height`` region from there.
    """
    return target.width * scale, target.height * scale


def watermark_overlay(bbox: BBox) -> tuple[Overlay, BBox]:
    """Place the logo overlay bottom-left of *bbox*.

    Returns:
        The overlay and *bbox* grown downward to make room for it
    """
    bbox_width = bbox.width
    width = max(WATERMARK_MIN_WIDTH, bbox_width * 0.3)
    height = WATERMARK_SIZE[1] / WATERMARK_SIZE[0] * width
    pad_x = bbox_width * 0.02
    pad_y = bbox_width * 0.014

    grown = BBox(bbox.min_x, bbox.min_y, bbox.max_x, bbox.max_y + height + pad_y)
    overlay = Overlay(
        id=WATERMARK_ID,
        x=grown.min_x + pad_x,
        y=grown.max_y - height - pad_y,
        width=width,
        height=height,
        view_box=(0.0, 0.0, *WATERMARK_SIZE),
        markup=WATERMARK_MARKUP,
    )
    return overlay, grown


def build_options(
    *,
    width: float,
    height: float,
    pixel_ratio: int | None,
    background_color: str | None,
    transparent_background: bool,
    embed_fonts: bool,
    element_filter: ElementFilter,
) -> RasterizeOptions:
    return RasterizeOptions(
        width=width,
        height=height,
        pixel_ratio=pixel_ratio,
        background_color=None if transparent_background else background_color,
        filter=element_filter,
        font_embed_css=None if embed_fonts else "",
    )


async def composite(
    rasterizer: Rasterizer,
    root: Any,
    fmt: ImageFormat,
    options: RasterizeOptions,
) -> str:
    """Run the rasterizer and return the image as a data URI.

    Raises:
        RasterizationError: Wrapping whatever the rasterizer raised
    """
    try:
        if fmt.is_vector:
            return await rasterizer.to_svg(root, options)
        return await rasterizer.to_png(root, options)
    except Exception as exc:
        raise RasterizationError(exc, fmt.value) from exc
