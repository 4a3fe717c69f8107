"""The region-export pipeline.

One call to ``export_image`` resolves the scope, frames the target
region in two viewport passes, waits for node content to mount,
rasterizes, and delivers the file. The live view is borrowed for the
duration and restored on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterator, Sequence
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from canvasshot.canvas import EXPORTING_CLASS, GARBLED_TEXT_CLASS
from canvasshot.compositor import (
    InclusionFilter,
    build_options,
    composite,
    output_size,
    pixel_ratio_for,
    watermark_overlay,
)
from canvasshot.delivery import deliver, export_filename
from canvasshot.events.dispatcher import EventDispatcher
from canvasshot.events.types import (
    ExportEndEvent,
    ExportStartEvent,
    ExportStatus,
    NodesLoadingEvent,
    ViewportAppliedEvent,
    new_export_id,
)
from canvasshot.exceptions import LoadTimeoutError
from canvasshot.geometry import BBox, aspect_fit, bbox_of, combine, enlarge, label_footprint
from canvasshot.request import SelectionSnapshot
from canvasshot.selection import filter_edges, resolve_selection
from canvasshot.viewport import SETTLE_DELAY, ViewportController
from canvasshot.waiting import MAX_LOADING_TIME, POLL_INTERVAL, Clock, Sleep, wait_until_mounted

if TYPE_CHECKING:
    from canvasshot.canvas import Canvas, CanvasEdge, CanvasNode, Overlay
    from canvasshot.compositor import Rasterizer
    from canvasshot.delivery import Downloader
    from canvasshot.request import ExportRequest

logger = logging.getLogger(__name__)

# Safety margin so strokes and arrow heads at the border are not clipped
MARGIN_FACTOR = 1.1


@dataclass(frozen=True)
class ExportTimings:
    """Delays and ceilings of one export, in seconds."""

    load_timeout: float = MAX_LOADING_TIME
    poll_interval: float = POLL_INTERVAL
    settle_delay: float = SETTLE_DELAY


@dataclass(frozen=True)
class ExportResult:
    """What a successful export produced.

    Attributes:
        filename: Name handed to the downloader
        data_uri: The image as a data URI
        width: Image width in CSS pixels
        height: Image height in CSS pixels
        pixel_ratio: Device pixel ratio, None for SVG
        bbox: Exported region in graph space
        node_ids: Ids of the exported nodes
        edge_ids: Ids of the exported edges
        delivered: Whatever the downloader returned (e.g. a file path)
    """

    filename: str
    data_uri: str
    width: float
    height: float
    pixel_ratio: int | None
    bbox: BBox
    node_ids: tuple[str, ...]
    edge_ids: tuple[str, ...]
    delivered: object = None


# =============================================================================
# Two-pass framing
# =============================================================================


def compute_rough_bbox(nodes: Sequence[CanvasNode], edges: Sequence[CanvasEdge]) -> BBox:
    """First pass: node boxes and edge endpoints, plus a 10% margin."""
    return enlarge(bbox_of([*nodes, *edges]), MARGIN_FACTOR)


def refine_bbox_with_labels(rough: BBox, edges: Sequence[CanvasEdge], scale: float) -> BBox:
    """Second pass: grow *rough* to cover edge labels measured at *scale*.

    Labels are only measurable once the view has rendered them, which is
    why this runs after the first viewport move.
    """
    if not edges:
        return rough
    footprints = [
        label_footprint(edge.center(), (edge.label_screen_width() or 0.0) / scale)
        for edge in edges
    ]
    return combine([rough, enlarge(combine(footprints), MARGIN_FACTOR)])


# =============================================================================
# Borrowing the live view
# =============================================================================


class ViewLease:
    """Handle on a borrowed canvas; overlays added through it are removed on release."""

    def __init__(self, canvas: Canvas) -> None:
        self._canvas = canvas
        self._overlays: list[Overlay] = []

    def add_overlay(self, overlay: Overlay) -> None:
        self._canvas.add_overlay(overlay)
        self._overlays.append(overlay)

    def release(self) -> None:
        while self._overlays:
            self._canvas.remove_overlay(self._overlays.pop())


@contextmanager
def borrowed_view(canvas: Canvas, *, obscure_text: bool = False) -> Iterator[ViewLease]:
    """Put *canvas* into export mode and restore it afterwards.

    Snapshots viewport and selection, blocks interaction, forces the node
    detail breakpoint and marks the view as exporting (plus privacy mode
    when asked). Each change registers its own undo step, and every step
    runs however the block exits, even when an earlier one raises.
    """
    cached_selection = SelectionSnapshot.capture(canvas.selection)
    cached_viewport = canvas.viewport
    lease = ViewLease(canvas)
    with ExitStack() as restore:
        canvas.set_interaction_blocked(True)
        restore.callback(canvas.set_interaction_blocked, False)
        restore.callback(canvas.set_viewport, cached_viewport.x, cached_viewport.y, cached_viewport.zoom)
        restore.callback(canvas.set_selection, cached_selection.ids)
        restore.callback(lease.release)

        canvas.screenshotting = True
        restore.callback(setattr, canvas, "screenshotting", False)
        canvas.add_class(EXPORTING_CLASS)
        restore.callback(canvas.remove_class, EXPORTING_CLASS)
        if obscure_text:
            canvas.add_class(GARBLED_TEXT_CLASS)
            restore.callback(canvas.remove_class, GARBLED_TEXT_CLASS)

        canvas.deselect_all()
        yield lease


# =============================================================================
# Pipeline
# =============================================================================


async def export_image(
    canvas: Canvas,
    request: ExportRequest,
    *,
    rasterizer: Rasterizer,
    downloader: Downloader,
    dispatcher: EventDispatcher | None = None,
    timings: ExportTimings | None = None,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
) -> ExportResult:
    """Export the region of *canvas* covered by *request* as an image.

    Args:
        canvas: Live canvas view, borrowed for the duration of the call
        request: What to export and how
        rasterizer: Turns the framed view into image data
        downloader: Receives the finished image
        dispatcher: Receives progress events, optional
        timings: Settle delay, poll interval and load ceiling
        clock: Monotonic time source for the load ceiling
        sleep: Coroutine used at every suspension point

    Returns:
        ExportResult describing the delivered image

    Raises:
        EmptySelectionError: Nothing to export (before the view is touched)
        LoadTimeoutError: Nodes did not mount within the ceiling
        RasterizationError: The rasterizer failed
    """
    timings = timings or ExportTimings()
    dispatcher = dispatcher or EventDispatcher()

    nodes = resolve_selection(canvas, request.scope)
    edges = filter_edges(canvas.edges.values(), nodes)

    export_id = new_export_id()
    started = clock()
    await dispatcher.emit(
        ExportStartEvent(
            export_id=export_id,
            document_name=canvas.document_name or "",
            format=request.format.value,
            node_count=len(nodes),
            edge_count=len(edges),
            whole_canvas=request.scope.is_whole_canvas,
        )
    )
    logger.info(
        "Exporting %d nodes and %d edges of %r as %s",
        len(nodes),
        len(edges),
        canvas.document_name,
        request.format.value,
    )

    def duration_ms() -> float:
        return (clock() - started) * 1000

    try:
        result = await _run(
            canvas,
            request,
            nodes,
            edges,
            rasterizer=rasterizer,
            downloader=downloader,
            dispatcher=dispatcher,
            export_id=export_id,
            started=started,
            timings=timings,
            clock=clock,
            sleep=sleep,
        )
    except LoadTimeoutError as exc:
        logger.error("Export cancelled: Nodes did not finish loading in time (%d pending)", len(exc.pending))
        await dispatcher.emit(
            ExportEndEvent(
                export_id=export_id,
                status=ExportStatus.CANCELLED,
                error=str(exc),
                duration_ms=duration_ms(),
            )
        )
        raise
    except Exception as exc:
        logger.error("Export of %r failed", canvas.document_name, exc_info=True)
        await dispatcher.emit(
            ExportEndEvent(
                export_id=export_id,
                status=ExportStatus.FAILED,
                error=str(exc),
                duration_ms=duration_ms(),
            )
        )
        raise
    finally:
        dispatcher.shutdown()

    logger.info("Exported %s (%.0fx%.0f)", result.filename, result.width, result.height)
    return result


async def _run(
    canvas: Canvas,
    request: ExportRequest,
    nodes: list[CanvasNode],
    edges: list[CanvasEdge],
    *,
    rasterizer: Rasterizer,
    downloader: Downloader,
    dispatcher: EventDispatcher,
    export_id: str,
    started: float,
    timings: ExportTimings,
    clock: Clock,
    sleep: Sleep,
) -> ExportResult:
    fmt = request.format
    # Read before export mode restyles the view
    background_color = canvas.background_color
    controller = ViewportController(canvas, settle_delay=timings.settle_delay, sleep=sleep)

    async def framed(target: BBox, pass_name: str) -> float:
        view_w, view_h = canvas.pixel_size
        box = aspect_fit(target, view_w / view_h)
        scale = await controller.apply(box)
        await dispatcher.emit(
            ViewportAppliedEvent(export_id=export_id, pass_name=pass_name, scale=scale, bbox=box.as_tuple())
        )
        return scale

    async def report_pending(pending: int, elapsed: float) -> None:
        await dispatcher.emit(NodesLoadingEvent(export_id=export_id, pending=pending, elapsed_ms=elapsed * 1000))

    with borrowed_view(canvas, obscure_text=request.obscure_text) as lease:
        target = compute_rough_bbox(nodes, edges)
        if request.watermark:
            overlay, target = watermark_overlay(target)
            lease.add_overlay(overlay)

        scale = await framed(target, "rough")
        target = refine_bbox_with_labels(target, edges, scale)
        await framed(target, "refined")
        scale = await controller.align_top_left(target)

        width, height = output_size(target, scale)
        pixel_ratio = pixel_ratio_for(target, canvas.pixel_size, request.pixel_ratio_factor, fmt)

        await wait_until_mounted(
            nodes,
            timeout=timings.load_timeout,
            interval=timings.poll_interval,
            started_at=started,
            clock=clock,
            sleep=sleep,
            on_pending=report_pending,
        )

        options = build_options(
            width=width,
            height=height,
            pixel_ratio=pixel_ratio,
            background_color=background_color,
            transparent_background=request.transparent_background or fmt.is_vector,
            embed_fonts=request.embed_fonts,
            element_filter=InclusionFilter(nodes, edges),
        )
        data_uri = await composite(rasterizer, canvas, fmt, options)

    selection_size = None if request.scope.is_whole_canvas else len(nodes)
    filename = export_filename(canvas.document_name, fmt, selection_size)
    delivered = deliver(downloader, data_uri, filename)

    await dispatcher.emit(
        ExportEndEvent(
            export_id=export_id,
            status=ExportStatus.COMPLETED,
            filename=filename,
            duration_ms=(clock() - started) * 1000,
        )
    )
    return ExportResult(
        filename=filename,
        data_uri=data_uri,
        width=width,
        height=height,
        pixel_ratio=pixel_ratio,
        bbox=target,
        node_ids=tuple(node.id for node in nodes),
        edge_ids=tuple(edge.id for edge in edges),
        delivered=delivered,
    )
