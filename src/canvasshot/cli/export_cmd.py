"""CLI commands: export, inspect.

Provides `canvasshot export` and `canvasshot inspect` as top-level commands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from canvasshot.canvas import MemoryCanvas
from canvasshot.cli._config import load_config
from canvasshot.cli._format import format_bbox, print_json, print_lines, print_table
from canvasshot.commands import EXPORT_ALL, EXPORT_SELECTED, run_command
from canvasshot.delivery import DirectoryDownloader
from canvasshot.events import EventDispatcher
from canvasshot.events.rich_notice import RichNoticeProcessor
from canvasshot.exceptions import CanvasExportError
from canvasshot.jsoncanvas import CanvasFileError, load_canvas
from canvasshot.pipeline import ExportTimings, compute_rough_bbox
from canvasshot.svg import SvgRasterizer


def load_document(path: Path, *, width: float = 1200.0, height: float = 800.0) -> MemoryCanvas:
    """Load a .canvas file or exit with a readable error."""
    if not path.is_file():
        print(f"Error: canvas file not found: {path}")
        raise typer.Exit(1)
    try:
        return load_canvas(path, width=width, height=height)
    except CanvasFileError as e:
        print(f"Error: {e}")
        raise typer.Exit(1) from e


def register_commands(app: typer.Typer) -> None:
    """Register `export` and `inspect` as top-level commands on the app."""

    @app.command("export")
    def export_cmd(
        target: Annotated[Path, typer.Argument(help="JSON Canvas (.canvas) file")],
        select: Annotated[
            list[str] | None,
            typer.Option("--select", "-s", help="Export only this node (repeatable)"),
        ] = None,
        fmt: Annotated[str | None, typer.Option("--format", "-f", help="'png' or 'svg'")] = None,
        pixel_ratio: Annotated[
            float | None, typer.Option("--pixel-ratio", help="Resolution factor, 0.2 to 5 (PNG only)")
        ] = None,
        skip_font_export: Annotated[
            bool | None,
            typer.Option("--skip-font-export/--embed-fonts", help="Leave fonts out of SVG output"),
        ] = None,
        watermark: Annotated[bool | None, typer.Option("--watermark/--no-watermark", help="Add the logo")] = None,
        privacy: Annotated[bool | None, typer.Option("--privacy/--no-privacy", help="Obscure all text")] = None,
        transparent: Annotated[
            bool | None, typer.Option("--transparent/--opaque", help="Transparent background (PNG)")
        ] = None,
        output_dir: Annotated[str | None, typer.Option("--output", "-o", help="Directory to write into")] = None,
        view_width: Annotated[float, typer.Option("--view-width", help="Simulated view width in pixels")] = 1200.0,
        view_height: Annotated[float, typer.Option("--view-height", help="Simulated view height in pixels")] = 800.0,
        as_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
    ):
        """Export a canvas, or the selected nodes of it, as an image."""
        config = load_config()
        canvas = load_document(target, width=view_width, height=view_height)

        try:
            settings = config.settings(
                format=fmt,
                pixel_ratio=pixel_ratio,
                skip_font_export=skip_font_export,
                watermark=watermark,
                privacy=privacy,
                transparent_background=transparent,
            )
        except ValueError as e:
            print(f"Error: {e}")
            raise typer.Exit(1) from e

        command = EXPORT_ALL
        if select:
            canvas.set_selection(select)
            command = EXPORT_SELECTED

        processors = [] if as_json else [RichNoticeProcessor()]
        try:
            result = asyncio.run(
                run_command(
                    command,
                    canvas,
                    settings,
                    rasterizer=SvgRasterizer(font_paths=config.fonts),
                    downloader=DirectoryDownloader(output_dir or config.output_dir),
                    dispatcher=EventDispatcher(processors),
                    timings=ExportTimings(load_timeout=config.load_timeout),
                )
            )
        except CanvasExportError as e:
            if as_json:
                print_json("export", {"status": "failed", "error": str(e)})
            else:
                print(f"Error: {e}")
            raise typer.Exit(1) from e

        if as_json:
            print_json(
                "export",
                {
                    "status": "completed",
                    "path": str(result.delivered),
                    "filename": result.filename,
                    "width": result.width,
                    "height": result.height,
                    "pixel_ratio": result.pixel_ratio,
                    "bbox": list(result.bbox.as_tuple()),
                    "nodes": list(result.node_ids),
                    "edges": list(result.edge_ids),
                },
            )
            return
        print(f"  → {result.delivered}")

    @app.command("inspect")
    def inspect_cmd(
        target: Annotated[Path, typer.Argument(help="JSON Canvas (.canvas) file")],
        as_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
        output: Annotated[str | None, typer.Option("--output", help="Write JSON to file")] = None,
    ):
        """Show canvas contents (nodes, edges, export bounds)."""
        canvas = load_document(target)
        nodes = list(canvas.nodes.values())
        edges = list(canvas.edges.values())
        bbox = compute_rough_bbox(nodes, edges) if nodes else None

        if as_json:
            data = {
                "document": canvas.document_name,
                "nodes": [
                    {"id": n.id, "type": n.type, "bbox": list(n.bbox.as_tuple())} for n in nodes
                ],
                "edges": [
                    {"id": e.id, "from": e.from_id, "to": e.to_id, "label": e.label} for e in edges
                ],
                "export_bbox": list(bbox.as_tuple()) if bbox else None,
            }
            print_json("inspect", data, output)
            return

        print(f"\n  {canvas.document_name}: {len(nodes)} nodes, {len(edges)} edges\n")
        if not nodes:
            print("  Canvas is empty, nothing to export.")
            return

        print_lines(print_table(["Node", "Type", "Bounds"], [[n.id, n.type, format_bbox(n.bbox)] for n in nodes]))
        if edges:
            print()
            rows = [[e.id, f"{e.from_id} → {e.to_id}", e.label or "—"] for e in edges]
            print_lines(print_table(["Edge", "Connects", "Label"], rows))
        print(f"\n  Export bounds: {format_bbox(bbox)}")
