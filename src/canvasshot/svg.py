"""Rasterizer for ``MemoryCanvas``: SVG through ``xml.etree``, PNG through resvg."""

from __future__ import annotations

import asyncio
import base64
import math
import subprocess
import tempfile
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from pathlib import Path
from urllib.parse import quote

from canvasshot.canvas import GARBLED_TEXT_CLASS, ElementKind, MemoryCanvas, MemoryEdge, MemoryNode
from canvasshot.compositor import RasterizeOptions

SVG_NS = "http://www.w3.org/2000/svg"
NODE_FONT_SIZE = 16.0
LABEL_FONT_SIZE = 14.0
ARROW_LENGTH = 12.0
ARROW_HALF_WIDTH = 6.0
DEFAULT_STROKE = "#7f7f7f"
DEFAULT_TEXT = "#222222"

_FONT_MIME = {".ttf": "font/ttf", ".otf": "font/otf", ".woff": "font/woff", ".woff2": "font/woff2"}


def _fmt(value: float) -> str:
    if math.isclose(value, round(value)):
        return str(int(round(value)))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def garble(text: str) -> str:
    """Replace every visible character so the text's shape survives but not its content."""
    return "".join(ch if ch.isspace() else "▇" for ch in text)


def font_face_css(font_paths: Sequence[str | Path]) -> str:
    """``@font-face`` rules inlining each font file as a data URI."""
    rules = []
    for font_path in font_paths:
        path = Path(font_path)
        mime = _FONT_MIME.get(path.suffix.lower(), "application/octet-stream")
        payload = base64.b64encode(path.read_bytes()).decode("ascii")
        rules.append(f"@font-face {{ font-family: '{path.stem}'; src: url(data:{mime};base64,{payload}); }}")
    return "\n".join(rules)


class SvgRasterizer:
    """Draws the filtered elements of a ``MemoryCanvas`` as an image.

    The output frames the top-left ``width x height`` CSS pixels of the
    current view, which is where the pipeline places the exported region.

    Args:
        font_paths: Font files inlined unless ``font_embed_css`` is ``""``
        font_family: CSS font family for node and label text
        resvg: resvg executable used for PNG output
    """

    def __init__(
        self,
        *,
        font_paths: Sequence[str | Path] = (),
        font_family: str = "sans-serif",
        resvg: str = "resvg",
    ) -> None:
        self.font_paths = list(font_paths)
        self.font_family = font_family
        self.resvg = resvg

    async def to_svg(self, root: MemoryCanvas, options: RasterizeOptions) -> str:
        svg = self.render_svg(root, options)
        return "data:image/svg+xml;charset=utf-8," + quote(svg)

    async def to_png(self, root: MemoryCanvas, options: RasterizeOptions) -> str:
        svg = self.render_svg(root, options)
        ratio = options.pixel_ratio or 1
        size = (max(1, round(options.width * ratio)), max(1, round(options.height * ratio)))
        png = await asyncio.to_thread(self._run_resvg, svg, size, options.background_color)
        return "data:image/png;base64," + base64.b64encode(png).decode("ascii")

    # --- SVG ------------------------------------------------------------------

    def render_svg(self, canvas: MemoryCanvas, options: RasterizeOptions) -> str:
        scale = canvas.scale
        view = canvas.viewport_bbox()
        view_w, view_h = options.width / scale, options.height / scale

        svg = ET.Element(
            "svg",
            {
                "xmlns": SVG_NS,
                "width": _fmt(options.width),
                "height": _fmt(options.height),
                "viewBox": f"{_fmt(view.min_x)} {_fmt(view.min_y)} {_fmt(view_w)} {_fmt(view_h)}",
            },
        )

        css = options.font_embed_css
        if css is None:
            css = font_face_css(self.font_paths) if self.font_paths else ""
        if css:
            ET.SubElement(svg, "style").text = css

        if options.background_color:
            ET.SubElement(
                svg,
                "rect",
                {
                    "x": _fmt(view.min_x),
                    "y": _fmt(view.min_y),
                    "width": _fmt(view_w),
                    "height": _fmt(view_h),
                    "fill": options.background_color,
                },
            )

        garbled = GARBLED_TEXT_CLASS in canvas.classes
        nodes = canvas.nodes
        edges = canvas.edges
        overlays = canvas.overlays
        for element in canvas.elements():
            if not options.filter(element):
                continue
            kind, owner = element.kind, element.owner_id
            if kind is ElementKind.NODE:
                self._draw_node(svg, canvas, nodes[owner], garbled)
            elif kind is ElementKind.EDGE_PATH:
                self._draw_edge_path(svg, edges[owner])
            elif kind is ElementKind.EDGE_ARROW:
                self._draw_arrows(svg, edges[owner])
            elif kind is ElementKind.EDGE_LABEL:
                self._draw_label(svg, edges[owner], garbled)
            elif kind is ElementKind.OVERLAY:
                overlay = overlays[owner]
                holder = ET.SubElement(
                    svg,
                    "svg",
                    {
                        "x": _fmt(overlay.x),
                        "y": _fmt(overlay.y),
                        "width": _fmt(overlay.width),
                        "height": _fmt(overlay.height),
                        "viewBox": " ".join(_fmt(v) for v in overlay.view_box),
                        "color": DEFAULT_TEXT,
                    },
                )
                holder.extend(ET.fromstring(f"<g>{overlay.markup}</g>"))

        return ET.tostring(svg, encoding="unicode")

    def _text(self, parent: ET.Element, x: float, y: float, text: str, size: float, **attrs: str) -> None:
        el = ET.SubElement(
            parent,
            "text",
            {
                "x": _fmt(x),
                "y": _fmt(y),
                "font-size": _fmt(size),
                "font-family": self.font_family,
                "fill": DEFAULT_TEXT,
                **attrs,
            },
        )
        el.text = text

    def _draw_node(self, svg: ET.Element, canvas: MemoryCanvas, node: MemoryNode, garbled: bool) -> None:
        color = node.color or DEFAULT_STROKE
        group = ET.SubElement(svg, "g", {"id": f"node-{node.id}"})
        rect = {
            "x": _fmt(node.x),
            "y": _fmt(node.y),
            "width": _fmt(node.width),
            "height": _fmt(node.height),
            "rx": "6",
            "stroke": color,
            "stroke-width": "2",
        }
        if node.type == "group":
            ET.SubElement(group, "rect", {**rect, "fill": color, "fill-opacity": "0.05"})
            if node.text:
                text = garble(node.text) if garbled else node.text
                self._text(group, node.x, node.y - 8, text, NODE_FONT_SIZE)
            return

        ET.SubElement(group, "rect", {**rect, "fill": "#ffffff"})
        ET.SubElement(group, "rect", {**rect, "fill": color, "fill-opacity": "0.1" if node.color else "0"})
        if not node.text or not canvas.renders_detail(node):
            return
        line_height = NODE_FONT_SIZE * 1.4
        for i, line in enumerate(node.text.splitlines()):
            y = node.y + 12 + NODE_FONT_SIZE + i * line_height
            if y > node.y + node.height:
                break
            self._text(group, node.x + 12, y, garble(line) if garbled else line, NODE_FONT_SIZE)

    def _draw_edge_path(self, svg: ET.Element, edge: MemoryEdge) -> None:
        (x1, y1), (x2, y2) = edge.endpoints()
        ET.SubElement(
            svg,
            "path",
            {
                "d": f"M {_fmt(x1)} {_fmt(y1)} L {_fmt(x2)} {_fmt(y2)}",
                "stroke": edge.color or DEFAULT_STROKE,
                "stroke-width": "3",
                "fill": "none",
            },
        )

    def _draw_arrows(self, svg: ET.Element, edge: MemoryEdge) -> None:
        start, end = edge.endpoints()
        if edge.to_end == "arrow":
            self._arrow_head(svg, start, end, edge.color)
        if edge.from_end == "arrow":
            self._arrow_head(svg, end, start, edge.color)

    def _arrow_head(
        self,
        svg: ET.Element,
        tail: tuple[float, float],
        tip: tuple[float, float],
        color: str | None,
    ) -> None:
        dx, dy = tip[0] - tail[0], tip[1] - tail[1]
        length = math.hypot(dx, dy)
        if length == 0:
            return
        ux, uy = dx / length, dy / length
        bx, by = tip[0] - ux * ARROW_LENGTH, tip[1] - uy * ARROW_LENGTH
        points = [
            tip,
            (bx - uy * ARROW_HALF_WIDTH, by + ux * ARROW_HALF_WIDTH),
            (bx + uy * ARROW_HALF_WIDTH, by - ux * ARROW_HALF_WIDTH),
        ]
        ET.SubElement(
            svg,
            "polygon",
            {
                "points": " ".join(f"{_fmt(x)},{_fmt(y)}" for x, y in points),
                "fill": color or DEFAULT_STROKE,
            },
        )

    def _draw_label(self, svg: ET.Element, edge: MemoryEdge, garbled: bool) -> None:
        cx, cy = edge.center()
        width = edge.label_css_width()
        height = LABEL_FONT_SIZE * 1.6
        group = ET.SubElement(svg, "g", {"class": ElementKind.EDGE_LABEL.value})
        ET.SubElement(
            group,
            "rect",
            {
                "x": _fmt(cx - width / 2),
                "y": _fmt(cy - height / 2),
                "width": _fmt(width),
                "height": _fmt(height),
                "rx": "4",
                "fill": "#ffffff",
            },
        )
        label = edge.label or ""
        self._text(
            group,
            cx,
            cy + LABEL_FONT_SIZE * 0.35,
            garble(label) if garbled else label,
            LABEL_FONT_SIZE,
            **{"text-anchor": "middle"},
        )

    # --- PNG ------------------------------------------------------------------

    def _resvg_command(
        self,
        input_svg: Path,
        output_png: Path,
        size: tuple[int, int],
        background_color: str | None,
    ) -> list[str]:
        cmd = [self.resvg, "--width", str(size[0]), "--height", str(size[1])]
        if background_color:
            cmd += ["--background", background_color]
        return [*cmd, str(input_svg), str(output_png)]

    def _run_resvg(self, svg: str, size: tuple[int, int], background_color: str | None) -> bytes:
        with tempfile.TemporaryDirectory(prefix="canvasshot-") as tmp:
            input_svg = Path(tmp) / "input.svg"
            output_png = Path(tmp) / "output.png"
            input_svg.write_text(svg, encoding="utf-8")
            cmd = self._resvg_command(input_svg, output_png, size, background_color)
            try:
                proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
            except FileNotFoundError as e:
                raise RuntimeError(f"resvg not found ('{self.resvg}'); install it and put it on PATH") from e
            if proc.returncode != 0:
                details = (proc.stderr or proc.stdout or "").strip()
                raise RuntimeError(f"resvg failed (code={proc.returncode}). {details}".strip())
            return output_png.read_bytes()
