"""Load JSON Canvas (``.canvas``) files into a ``MemoryCanvas``."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from canvasshot.canvas import MemoryCanvas, MemoryEdge, MemoryNode

SIDES = frozenset({"top", "right", "bottom", "left"})
NODE_TYPES = frozenset({"text", "file", "link", "group"})

# JSON Canvas preset colors "1".."6"
PRESET_COLORS = {
    "1": "#e93147",
    "2": "#ec7500",
    "3": "#e0ac00",
    "4": "#08b94e",
    "5": "#00bfbc",
    "6": "#a882ff",
}


class CanvasFileError(ValueError):
    """A canvas document is malformed."""


def resolve_color(value: str | None) -> str | None:
    if value is None:
        return None
    return PRESET_COLORS.get(value, value)


def _node_text(data: dict[str, Any]) -> str:
    node_type = data.get("type", "text")
    if node_type == "file":
        return data.get("file", "") + (data.get("subpath") or "")
    if node_type == "link":
        return data.get("url", "")
    if node_type == "group":
        return data.get("label", "")
    return data.get("text", "")


def _parse_node(data: dict[str, Any]) -> MemoryNode:
    try:
        node_id = str(data["id"])
        x, y = float(data["x"]), float(data["y"])
        width, height = float(data["width"]), float(data["height"])
    except (KeyError, TypeError, ValueError) as e:
        raise CanvasFileError(f"Invalid node {data.get('id', '?')!r}: {e}") from e

    node_type = data.get("type", "text")
    if node_type not in NODE_TYPES:
        raise CanvasFileError(f"Node '{node_id}' has unknown type '{node_type}'")
    if width < 0 or height < 0:
        raise CanvasFileError(f"Node '{node_id}' has a negative size")

    return MemoryNode(
        id=node_id,
        x=x,
        y=y,
        width=width,
        height=height,
        type=node_type,
        text=_node_text(data),
        color=resolve_color(data.get("color")),
    )


def _parse_side(edge_id: str, value: str | None) -> str | None:
    if value is not None and value not in SIDES:
        raise CanvasFileError(f"Edge '{edge_id}' has unknown side '{value}'")
    return value


def parse_canvas(
    data: dict[str, Any],
    *,
    document_name: str | None = None,
    width: float = 1200.0,
    height: float = 800.0,
    background_color: str | None = "#ffffff",
) -> MemoryCanvas:
    """Build a ``MemoryCanvas`` from a decoded JSON Canvas document.

    Args:
        data: Decoded document with ``nodes`` and ``edges`` lists
        document_name: Name used for exported files
        width: On-screen width of the simulated view
        height: On-screen height of the simulated view
        background_color: Canvas background, None for transparent

    Raises:
        CanvasFileError: On missing fields, unknown types or dangling edges
    """
    canvas = MemoryCanvas(
        width=width,
        height=height,
        document_name=document_name,
        background_color=background_color,
    )
    for raw in data.get("nodes", []):
        node = _parse_node(raw)
        try:
            canvas.add_node(node)
        except ValueError as e:
            raise CanvasFileError(str(e)) from e

    nodes = canvas.nodes
    for raw in data.get("edges", []):
        edge_id = str(raw.get("id", ""))
        from_id, to_id = raw.get("fromNode"), raw.get("toNode")
        if from_id not in nodes or to_id not in nodes:
            raise CanvasFileError(f"Edge '{edge_id}' connects unknown nodes '{from_id}' -> '{to_id}'")
        edge = MemoryEdge(
            id=edge_id,
            from_node=nodes[from_id],
            to_node=nodes[to_id],
            from_side=_parse_side(edge_id, raw.get("fromSide")),
            to_side=_parse_side(edge_id, raw.get("toSide")),
            label=raw.get("label") or None,
            color=resolve_color(raw.get("color")),
            from_end=raw.get("fromEnd", "none"),
            to_end=raw.get("toEnd", "arrow"),
        )
        try:
            canvas.add_edge(edge)
        except ValueError as e:
            raise CanvasFileError(str(e)) from e
    return canvas


def load_canvas(path: str | Path, **kwargs: Any) -> MemoryCanvas:
    """Read a ``.canvas`` file; the document name is the file's stem."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except json.JSONDecodeError as e:
        raise CanvasFileError(f"{path} is not valid JSON: {e}") from e
    kwargs.setdefault("document_name", path.stem)
    return parse_canvas(data, **kwargs)
