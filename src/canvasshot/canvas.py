"""Canvas engine interface and an in-memory engine.

The export pipeline only talks to the ``Canvas``, ``CanvasNode`` and
``CanvasEdge`` protocols. ``MemoryCanvas`` implements them without a host
application: it keeps nodes and edges in a ``networkx.MultiDiGraph`` and
models the live view's pan/zoom the way a browser-hosted canvas does.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Protocol

import networkx as nx

from canvasshot.geometry import BBox
from canvasshot.request import ViewportState

EXPORTING_CLASS = "is-exporting"
GARBLED_TEXT_CLASS = "is-text-garbled"

Side = Literal["top", "right", "bottom", "left"]


class ElementKind(Enum):
    """Kinds of visual elements on the rendered canvas surface."""

    NODE = "canvas-node"
    EDGE_PATH = "canvas-path"
    EDGE_ARROW = "canvas-path-end"
    EDGE_LABEL = "canvas-path-label-wrapper"
    OVERLAY = "canvas-overlay"

    @property
    def in_edge_layer(self) -> bool:
        """Whether the element sits in the shared edge layer."""
        return self in (ElementKind.EDGE_PATH, ElementKind.EDGE_ARROW)


@dataclass(frozen=True)
class RenderElement:
    """One visual element of the rendered surface, owned by a node, edge or overlay."""

    kind: ElementKind
    owner_id: str


@dataclass(frozen=True)
class Overlay:
    """Temporary decoration drawn on top of the canvas (e.g. the watermark).

    ``markup`` is SVG content laid out in ``view_box`` coordinates and
    scaled into the ``x, y, width, height`` rectangle in graph space.
    """

    id: str
    x: float
    y: float
    width: float
    height: float
    view_box: tuple[float, float, float, float]
    markup: str

    @property
    def element(self) -> RenderElement:
        return RenderElement(ElementKind.OVERLAY, self.id)


# =============================================================================
# Protocols consumed by the pipeline
# =============================================================================


class CanvasNode(Protocol):
    @property
    def id(self) -> str: ...
    @property
    def bbox(self) -> BBox: ...
    @property
    def mounted(self) -> bool: ...
    @property
    def element(self) -> RenderElement: ...


class CanvasEdge(Protocol):
    @property
    def id(self) -> str: ...
    @property
    def from_id(self) -> str: ...
    @property
    def to_id(self) -> str: ...
    @property
    def label(self) -> str | None: ...
    @property
    def bbox(self) -> BBox: ...
    @property
    def path_elements(self) -> tuple[RenderElement, ...]: ...
    @property
    def label_element(self) -> RenderElement | None: ...

    def center(self) -> tuple[float, float]: ...

    def label_screen_width(self) -> float | None:
        """Rendered label width in screen pixels, None without a label."""
        ...


class Canvas(Protocol):
    """The live canvas view the pipeline borrows for the duration of an export."""

    screenshotting: bool

    @property
    def nodes(self) -> Mapping[str, CanvasNode]: ...
    @property
    def edges(self) -> Mapping[str, CanvasEdge]: ...
    @property
    def document_name(self) -> str | None: ...
    @property
    def viewport(self) -> ViewportState: ...
    @property
    def target_viewport(self) -> ViewportState: ...
    @property
    def transform(self) -> str: ...
    @property
    def pixel_size(self) -> tuple[float, float]: ...
    @property
    def selection(self) -> frozenset[str]: ...
    @property
    def background_color(self) -> str | None: ...

    def set_viewport(self, x: float, y: float, zoom: float) -> None: ...
    def zoom_to_real_bbox(self, bbox: BBox) -> None: ...
    def viewport_bbox(self) -> BBox: ...
    def deselect_all(self) -> None: ...
    def set_selection(self, ids: Iterable[str]) -> None: ...
    def add_class(self, name: str) -> None: ...
    def remove_class(self, name: str) -> None: ...
    def add_overlay(self, overlay: Overlay) -> None: ...
    def remove_overlay(self, overlay: Overlay) -> None: ...
    def set_interaction_blocked(self, blocked: bool) -> None: ...


# =============================================================================
# In-memory engine
# =============================================================================

MIN_ZOOM = -4.0
MAX_ZOOM = 1.0
# On-screen node width below which node content is not drawn
DETAIL_BREAKPOINT_PX = 60.0
LABEL_FONT_SIZE = 14.0
LABEL_PADDING = 8.0


def text_width(text: str, font_size: float) -> float:
    """Approximate rendered width of *text* in CSS pixels."""
    width = 0.0
    for ch in text:
        if ch.isspace():
            width += font_size * 0.33
        elif ch in "il":
            width += font_size * 0.3
        elif ch in "mwMW@#":
            width += font_size * 0.9
        else:
            width += font_size * 0.6
    return width


@dataclass(eq=False)
class MemoryNode:
    """A node of a ``MemoryCanvas``.

    ``mounted`` starts True; set it False to simulate content (images,
    embedded files) that is still loading.
    """

    id: str
    x: float
    y: float
    width: float
    height: float
    type: str = "text"
    text: str = ""
    color: str | None = None
    mounted: bool = True

    @property
    def bbox(self) -> BBox:
        return BBox.from_rect(self.x, self.y, self.width, self.height)

    @property
    def element(self) -> RenderElement:
        return RenderElement(ElementKind.NODE, self.id)

    def anchor(self, side: Side) -> tuple[float, float]:
        """Midpoint of one side of the node."""
        b = self.bbox
        cx, cy = b.center
        return {
            "top": (cx, b.min_y),
            "bottom": (cx, b.max_y),
            "left": (b.min_x, cy),
            "right": (b.max_x, cy),
        }[side]

    def facing_side(self, other: MemoryNode) -> Side:
        """Side of this node that faces *other* (used by floating edges)."""
        (ax, ay), (bx, by) = self.bbox.center, other.bbox.center
        dx, dy = bx - ax, by - ay
        if abs(dx) >= abs(dy):
            return "right" if dx >= 0 else "left"
        return "bottom" if dy >= 0 else "top"


@dataclass(eq=False)
class MemoryEdge:
    """An edge of a ``MemoryCanvas``. Sides left as None float."""

    id: str
    from_node: MemoryNode
    to_node: MemoryNode
    from_side: Side | None = None
    to_side: Side | None = None
    label: str | None = None
    color: str | None = None
    from_end: str = "none"
    to_end: str = "arrow"
    canvas: MemoryCanvas | None = field(default=None, repr=False)

    @property
    def from_id(self) -> str:
        return self.from_node.id

    @property
    def to_id(self) -> str:
        return self.to_node.id

    def endpoints(self) -> tuple[tuple[float, float], tuple[float, float]]:
        from_side = self.from_side or self.from_node.facing_side(self.to_node)
        to_side = self.to_side or self.to_node.facing_side(self.from_node)
        return self.from_node.anchor(from_side), self.to_node.anchor(to_side)

    @property
    def bbox(self) -> BBox:
        return BBox.from_points(self.endpoints())

    def center(self) -> tuple[float, float]:
        (x1, y1), (x2, y2) = self.endpoints()
        return ((x1 + x2) / 2, (y1 + y2) / 2)

    @property
    def path_elements(self) -> tuple[RenderElement, ...]:
        return (
            RenderElement(ElementKind.EDGE_PATH, self.id),
            RenderElement(ElementKind.EDGE_ARROW, self.id),
        )

    @property
    def label_element(self) -> RenderElement | None:
        if not self.label:
            return None
        return RenderElement(ElementKind.EDGE_LABEL, self.id)

    def label_css_width(self) -> float:
        if not self.label:
            return 0.0
        return text_width(self.label, LABEL_FONT_SIZE) + 2 * LABEL_PADDING

    def label_screen_width(self) -> float | None:
        if not self.label:
            return None
        scale = self.canvas.scale if self.canvas is not None else 1.0
        return self.label_css_width() * scale


class MemoryCanvas:
    """In-memory ``Canvas`` with a fixed on-screen size.

    Zoom is stored as log2 of the scale and clamped to
    [``MIN_ZOOM``, ``MAX_ZOOM``]. ``zoom_to_real_bbox`` only computes the
    target viewport; ``set_viewport`` applies it and re-renders the
    transform string.

    Example:
        >>> canvas = MemoryCanvas(width=800, height=600)
        >>> a = canvas.add_node(MemoryNode("a", 0, 0, 100, 50))
        >>> canvas.zoom_to_real_bbox(a.bbox)
        >>> target = canvas.target_viewport
        >>> canvas.set_viewport(target.x, target.y, target.zoom)
        >>> canvas.transform
        'translate(300px, 250px) scale(2)'
    """

    def __init__(
        self,
        *,
        width: float = 1200.0,
        height: float = 800.0,
        document_name: str | None = None,
        background_color: str | None = "#ffffff",
    ) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas size must be positive, got {width}x{height}")
        self._graph = nx.MultiDiGraph()
        self._width = float(width)
        self._height = float(height)
        self.document_name = document_name
        self.background_color = background_color

        self._viewport = ViewportState(0.0, 0.0, 0.0)
        self._target = self._viewport
        self._transform = self._render_transform()
        self._selection: set[str] = set()
        self._classes: set[str] = set()
        self._overlays: dict[str, Overlay] = {}

        self.screenshotting = False
        self.interaction_blocked = False

    # --- graph content -------------------------------------------------------

    def add_node(self, node: MemoryNode) -> MemoryNode:
        if node.id in self._graph:
            raise ValueError(f"Duplicate node id '{node.id}'")
        self._graph.add_node(node.id, node=node)
        return node

    def add_edge(self, edge: MemoryEdge) -> MemoryEdge:
        for endpoint in (edge.from_id, edge.to_id):
            if endpoint not in self._graph:
                raise ValueError(f"Edge '{edge.id}' references unknown node '{endpoint}'")
        if edge.id in self.edges:
            raise ValueError(f"Duplicate edge id '{edge.id}'")
        edge.canvas = self
        self._graph.add_edge(edge.from_id, edge.to_id, key=edge.id, edge=edge)
        return edge

    def remove_node(self, node_id: str) -> None:
        """Delete a node and every edge touching it."""
        self._graph.remove_node(node_id)
        self._selection.discard(node_id)

    @property
    def graph(self) -> nx.MultiDiGraph:
        return self._graph

    @property
    def nodes(self) -> dict[str, MemoryNode]:
        return {node_id: data["node"] for node_id, data in self._graph.nodes(data=True)}

    @property
    def edges(self) -> dict[str, MemoryEdge]:
        return {key: data["edge"] for _, _, key, data in self._graph.edges(keys=True, data=True)}

    # --- viewport ------------------------------------------------------------

    @property
    def pixel_size(self) -> tuple[float, float]:
        return (self._width, self._height)

    @property
    def viewport(self) -> ViewportState:
        return self._viewport

    @property
    def target_viewport(self) -> ViewportState:
        return self._target

    @property
    def scale(self) -> float:
        return self._viewport.scale

    @property
    def transform(self) -> str:
        return self._transform

    def zoom_to_real_bbox(self, bbox: BBox) -> None:
        """Compute the viewport that frames *bbox* exactly, without padding."""
        if bbox.width == 0 and bbox.height == 0:
            scale = self.scale
        else:
            scale = min(
                self._width / bbox.width if bbox.width else math.inf,
                self._height / bbox.height if bbox.height else math.inf,
            )
        cx, cy = bbox.center
        self._target = ViewportState(cx, cy, _clamp_zoom(math.log2(scale)))

    def set_viewport(self, x: float, y: float, zoom: float) -> None:
        self._viewport = ViewportState(x, y, _clamp_zoom(zoom))
        self._target = self._viewport
        self._transform = self._render_transform()

    def viewport_bbox(self) -> BBox:
        half_w = self._width / 2 / self.scale
        half_h = self._height / 2 / self.scale
        x, y = self._viewport.x, self._viewport.y
        return BBox(x - half_w, y - half_h, x + half_w, y + half_h)

    def _render_transform(self) -> str:
        scale = self._viewport.scale
        tx = self._width / 2 - self._viewport.x * scale
        ty = self._height / 2 - self._viewport.y * scale
        return f"translate({tx:.6g}px, {ty:.6g}px) scale({scale:.6g})"

    def renders_detail(self, node: MemoryNode) -> bool:
        """Node content breakpoint, forced on while screenshotting."""
        if self.screenshotting:
            return True
        return node.width * self.scale >= DETAIL_BREAKPOINT_PX

    # --- selection -----------------------------------------------------------

    @property
    def selection(self) -> frozenset[str]:
        return frozenset(self._selection)

    def deselect_all(self) -> None:
        self._selection.clear()

    def set_selection(self, ids: Iterable[str]) -> None:
        known = set(self._graph.nodes) | set(self.edges)
        self._selection = {i for i in ids if i in known}

    # --- decoration ----------------------------------------------------------

    @property
    def classes(self) -> frozenset[str]:
        return frozenset(self._classes)

    def add_class(self, name: str) -> None:
        self._classes.add(name)

    def remove_class(self, name: str) -> None:
        self._classes.discard(name)

    @property
    def overlays(self) -> dict[str, Overlay]:
        return dict(self._overlays)

    def add_overlay(self, overlay: Overlay) -> None:
        self._overlays[overlay.id] = overlay

    def remove_overlay(self, overlay: Overlay) -> None:
        self._overlays.pop(overlay.id, None)

    def set_interaction_blocked(self, blocked: bool) -> None:
        self.interaction_blocked = blocked

    # --- rendered surface ----------------------------------------------------

    def elements(self) -> Iterator[RenderElement]:
        """Render elements in paint order: groups, edges, nodes, labels, overlays."""
        nodes = list(self.nodes.values())
        edges = list(self.edges.values())
        for node in nodes:
            if node.type == "group":
                yield node.element
        for edge in edges:
            yield from edge.path_elements
        for node in nodes:
            if node.type != "group":
                yield node.element
        for edge in edges:
            if edge.label_element is not None:
                yield edge.label_element
        for overlay in self._overlays.values():
            yield overlay.element


def _clamp_zoom(zoom: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))
