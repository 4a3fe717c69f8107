"""End-to-end tests for the region-export pipeline."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from urllib.parse import unquote

import pytest

from canvasshot.canvas import EXPORTING_CLASS, GARBLED_TEXT_CLASS, ElementKind, MemoryCanvas, MemoryEdge, MemoryNode
from canvasshot.compositor import WATERMARK_ID, watermark_overlay
from canvasshot.events import EventDispatcher
from canvasshot.events.types import (
    ExportEndEvent,
    ExportStartEvent,
    ExportStatus,
    NodesLoadingEvent,
    ViewportAppliedEvent,
)
from canvasshot.exceptions import EmptySelectionError, LoadTimeoutError, RasterizationError
from canvasshot.geometry import BBox, label_footprint
from canvasshot.pipeline import (
    ExportTimings,
    borrowed_view,
    compute_rough_bbox,
    export_image,
    refine_bbox_with_labels,
)
from canvasshot.request import ExportRequest, ExportScope, ImageFormat, ViewportState
from canvasshot.svg import SvgRasterizer
from tests.conftest import FakeClock, FakeRasterizer, assert_view_restored

ROUGH = (-20, -12.5, 420, 262.5)


async def _export(canvas, request, rasterizer, downloader, clock, events=None, timings=None):
    dispatcher = EventDispatcher([events]) if events is not None else None
    return await export_image(
        canvas,
        request,
        rasterizer=rasterizer,
        downloader=downloader,
        dispatcher=dispatcher,
        timings=timings,
        clock=clock,
        sleep=clock.sleep,
    )


# ---------------------------------------------------------------------------
# Framing helpers
# ---------------------------------------------------------------------------


class TestFraming:
    def test_rough_bbox(self, board):
        nodes = list(board.nodes.values())
        edges = list(board.edges.values())
        assert compute_rough_bbox(nodes, edges).as_tuple() == pytest.approx(ROUGH)

    def test_refine_without_edges_is_identity(self):
        rough = BBox(0, 0, 10, 10)
        assert refine_bbox_with_labels(rough, [], 2.0) is rough

    def test_refine_covers_wide_label(self, board):
        edge = board.edges["e1"]
        edge.label = "a considerably longer label than the edge itself"
        rough = BBox(90, 0, 310, 50)

        refined = refine_bbox_with_labels(rough, [edge], board.scale)

        graph_width = edge.label_screen_width() / board.scale
        assert refined.width >= graph_width * 1.1 - 1e-9
        assert refined.contains(rough)
        assert refined.min_y == rough.min_y and refined.max_y == rough.max_y

    def test_refine_uses_scale(self, board):
        edge = board.edges["e1"]
        edge.label = "w" * 40
        board.set_viewport(0, 0, 1)
        near = refine_bbox_with_labels(BBox(200, 25, 200, 25), [edge], board.scale)
        far = refine_bbox_with_labels(BBox(200, 25, 200, 25), [edge], board.scale * 2)
        assert far.width == pytest.approx(near.width / 2)


class TestBorrowedView:
    def test_export_mode_and_restore(self, board):
        board.set_selection(["A"])
        board.set_viewport(10, 20, -1)
        before = board.viewport

        with borrowed_view(board, obscure_text=True):
            assert board.interaction_blocked
            assert board.screenshotting
            assert {EXPORTING_CLASS, GARBLED_TEXT_CLASS} <= board.classes
            assert board.selection == frozenset()
            board.set_viewport(999, 999, 1)

        assert_view_restored(board, before, {"A"})

    def test_restore_on_error(self, board):
        before = board.viewport
        with pytest.raises(RuntimeError), borrowed_view(board) as lease:
            lease.add_overlay(watermark_overlay(BBox(0, 0, 1, 1))[0])
            raise RuntimeError("boom")
        assert_view_restored(board, before, set())

    def test_failed_restore_step_does_not_skip_the_rest(self, board, monkeypatch):
        def stuck(name):
            raise RuntimeError(f"cannot remove {name}")

        monkeypatch.setattr(board, "remove_class", stuck)
        board.set_selection(["B"])
        board.set_viewport(10, 20, -1)
        before = board.viewport

        with pytest.raises(RuntimeError, match="cannot remove"), borrowed_view(board) as lease:
            lease.add_overlay(watermark_overlay(BBox(0, 0, 1, 1))[0])
            board.set_viewport(999, 999, 1)

        assert board.viewport == before
        assert board.selection == frozenset({"B"})
        assert board.overlays == {}
        assert board.screenshotting is False
        assert board.interaction_blocked is False


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


class TestWholeCanvasExport:
    @pytest.mark.asyncio
    async def test_framing_and_output(self, board, rasterizer, downloader, clock, events):
        result = await _export(board, ExportRequest(ExportScope.all()), rasterizer, downloader, clock, events)

        assert result.bbox.as_tuple() == pytest.approx(ROUGH)
        assert result.width == pytest.approx(800, rel=1e-4)
        assert result.height == pytest.approx(500, rel=1e-4)
        assert result.pixel_ratio == 1
        assert result.filename == "board.png"
        assert downloader.downloads == [(FakeRasterizer.PNG_URI, "board.png")]
        assert result.delivered == "board.png"

        options = rasterizer.options
        assert options.background_color == "#ffffff"
        assert options.font_embed_css is None
        assert options.pixel_ratio == 1

    @pytest.mark.asyncio
    async def test_everything_drawn(self, board, rasterizer, downloader, clock):
        await _export(board, ExportRequest(ExportScope.all()), rasterizer, downloader, clock)
        drawn = {(el.kind, el.owner_id) for el in rasterizer.seen["drawn"]}
        assert (ElementKind.EDGE_LABEL, "e1") in drawn
        assert {(ElementKind.NODE, n) for n in "ABC"} <= drawn

    @pytest.mark.asyncio
    async def test_canvas_state_during_rasterization(self, board, rasterizer, downloader, clock):
        board.set_selection(["A", "C"])
        await _export(board, ExportRequest(ExportScope.all()), rasterizer, downloader, clock)
        seen = rasterizer.seen
        assert EXPORTING_CLASS in seen["classes"]
        assert GARBLED_TEXT_CLASS not in seen["classes"]
        assert seen["selection"] == set()
        assert seen["screenshotting"] is True
        assert seen["interaction_blocked"] is True

    @pytest.mark.asyncio
    async def test_event_sequence(self, board, rasterizer, downloader, clock, events):
        await _export(board, ExportRequest(ExportScope.all()), rasterizer, downloader, clock, events)

        assert events.event_types() == [
            "ExportStartEvent",
            "ViewportAppliedEvent",
            "ViewportAppliedEvent",
            "ExportEndEvent",
        ]
        start = events.of_type(ExportStartEvent)[0]
        assert (start.node_count, start.edge_count, start.whole_canvas) == (3, 1, True)
        assert [e.pass_name for e in events.of_type(ViewportAppliedEvent)] == ["rough", "refined"]
        end = events.of_type(ExportEndEvent)[0]
        assert end.status == ExportStatus.COMPLETED
        assert end.filename == "board.png"
        assert len({e.export_id for e in events.events}) == 1
        assert events.shutdown_called

    @pytest.mark.asyncio
    async def test_pixel_ratio_factor(self, board, rasterizer, downloader, clock):
        request = ExportRequest(ExportScope.all(), pixel_ratio_factor=5.0)
        result = await _export(board, request, rasterizer, downloader, clock)
        assert result.pixel_ratio == 3

    @pytest.mark.asyncio
    async def test_untitled_document(self, board, rasterizer, downloader, clock):
        board.document_name = None
        result = await _export(board, ExportRequest(ExportScope.all()), rasterizer, downloader, clock)
        assert result.filename == "Untitled.png"


class TestSelectionExport:
    @pytest.mark.asyncio
    async def test_pair_with_edge(self, board, rasterizer, downloader, clock):
        result = await _export(board, ExportRequest(ExportScope.of(["A", "B"])), rasterizer, downloader, clock)

        assert result.node_ids == ("A", "B")
        assert result.edge_ids == ("e1",)
        assert result.filename == "board - Selection of 2.png"
        drawn = {(el.kind, el.owner_id) for el in rasterizer.seen["drawn"]}
        assert (ElementKind.NODE, "C") not in drawn
        assert (ElementKind.EDGE_PATH, "e1") in drawn

    @pytest.mark.asyncio
    async def test_single_node_excludes_its_edge(self, board, rasterizer, downloader, clock):
        result = await _export(board, ExportRequest(ExportScope.of(["A"])), rasterizer, downloader, clock)

        assert result.node_ids == ("A",)
        assert result.edge_ids == ()
        assert result.filename == "board - Selection of 1.png"
        assert downloader.downloads[0][1] == "board - Selection of 1.png"

    @pytest.mark.asyncio
    async def test_unconnected_pair_drops_edge(self, board, rasterizer, downloader, clock):
        result = await _export(board, ExportRequest(ExportScope.of(["A", "C"])), rasterizer, downloader, clock)

        assert result.edge_ids == ()
        drawn = rasterizer.seen["drawn"]
        assert not [el for el in drawn if el.owner_id == "e1"]
        assert result.bbox.as_tuple() == pytest.approx(compute_rough_bbox([board.nodes["A"], board.nodes["C"]], []).as_tuple())

    @pytest.mark.asyncio
    async def test_deleted_node_dropped(self, board, rasterizer, downloader, clock):
        scope = ExportScope.of(["A", "B"])
        board.remove_node("B")
        result = await _export(board, ExportRequest(scope), rasterizer, downloader, clock)
        assert result.node_ids == ("A",)
        assert result.filename == "board - Selection of 1.png"

    @pytest.mark.asyncio
    async def test_nothing_left(self, board, rasterizer, downloader, clock, events):
        board.set_viewport(5, 5, 0.5)
        before = board.viewport
        with pytest.raises(EmptySelectionError):
            await _export(board, ExportRequest(ExportScope.of(["ghost"])), rasterizer, downloader, clock, events)

        assert events.events == []
        assert rasterizer.calls == []
        assert board.viewport == before


class TestFormatsAndOptions:
    @pytest.mark.asyncio
    async def test_svg(self, board, rasterizer, downloader, clock):
        request = ExportRequest(ExportScope.all(), format=ImageFormat.SVG, embed_fonts=False)
        result = await _export(board, request, rasterizer, downloader, clock)

        assert result.filename == "board.svg"
        assert result.pixel_ratio is None
        options = rasterizer.options
        assert rasterizer.calls[-1][0] == "svg"
        assert options.pixel_ratio is None
        assert options.background_color is None
        assert options.font_embed_css == ""

    @pytest.mark.asyncio
    async def test_transparent_png(self, board, rasterizer, downloader, clock):
        request = ExportRequest(ExportScope.all(), transparent_background=True)
        await _export(board, request, rasterizer, downloader, clock)
        assert rasterizer.options.background_color is None

    @pytest.mark.asyncio
    async def test_watermark(self, board, rasterizer, downloader, clock):
        request = ExportRequest(ExportScope.all(), watermark=True)
        result = await _export(board, request, rasterizer, downloader, clock)

        height = 200 * 25 / 215
        assert result.bbox.max_y == pytest.approx(262.5 + height + 440 * 0.014)
        assert list(rasterizer.seen["overlays"]) == [WATERMARK_ID]
        assert (ElementKind.OVERLAY, WATERMARK_ID) in {(el.kind, el.owner_id) for el in rasterizer.seen["drawn"]}
        assert board.overlays == {}

    @pytest.mark.asyncio
    async def test_privacy(self, board, rasterizer, downloader, clock):
        request = ExportRequest(ExportScope.all(), obscure_text=True)
        await _export(board, request, rasterizer, downloader, clock)
        assert GARBLED_TEXT_CLASS in rasterizer.seen["classes"]
        assert GARBLED_TEXT_CLASS not in board.classes


class TestSlowNodes:
    @pytest.mark.asyncio
    async def test_waits_for_mount(self, board, rasterizer, downloader, events):
        slow = board.add_node(MemoryNode("img", 500, 0, 100, 100, type="file", mounted=False))

        def mount_after_a_while(now):
            if now >= 103.0:
                slow.mounted = True

        clock = FakeClock(start=100.0, on_sleep=mount_after_a_while)
        timings = ExportTimings(poll_interval=0.5)
        result = await _export(board, ExportRequest(ExportScope.all()), rasterizer, downloader, clock, events, timings)

        assert "img" in result.node_ids
        loading = events.of_type(NodesLoadingEvent)
        assert loading and all(e.pending == 1 for e in loading[:-1])
        assert events.of_type(ExportEndEvent)[0].status == ExportStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_timeout_cancels_and_restores(self, board, rasterizer, downloader, clock, events):
        board.add_node(MemoryNode("img", 500, 0, 100, 100, type="file", mounted=False))
        board.set_selection(["B"])
        board.set_viewport(50, 60, -0.5)
        before = board.viewport
        start = clock.now

        with pytest.raises(LoadTimeoutError) as exc_info:
            await _export(
                board,
                ExportRequest(ExportScope.all()),
                rasterizer,
                downloader,
                clock,
                events,
                ExportTimings(poll_interval=0.25),
            )

        assert exc_info.value.pending == ["img"]
        assert clock.now - start >= 10.0
        assert clock.now - start < 10.0 + 0.25 + 0.02
        assert rasterizer.calls == []
        assert downloader.downloads == []
        end = events.of_type(ExportEndEvent)[0]
        assert end.status == ExportStatus.CANCELLED
        assert events.shutdown_called
        assert_view_restored(board, before, {"B"})

    @pytest.mark.asyncio
    async def test_timeout_logged(self, board, rasterizer, downloader, clock, caplog):
        board.add_node(MemoryNode("img", 500, 0, 100, 100, mounted=False))
        with pytest.raises(LoadTimeoutError):
            await _export(board, ExportRequest(ExportScope.all()), rasterizer, downloader, clock, timings=ExportTimings(poll_interval=1.0))
        assert "Nodes did not finish loading in time" in caplog.text


class TestRasterizationFailure:
    @pytest.mark.asyncio
    async def test_failure_restores_view(self, board, downloader, clock, events):
        rasterizer = FakeRasterizer(error=RuntimeError("out of memory"))
        board.set_selection(["C"])
        board.set_viewport(-5, 7, 0.25)
        before = board.viewport

        with pytest.raises(RasterizationError, match="out of memory"):
            await _export(board, ExportRequest(ExportScope.all(), watermark=True), rasterizer, downloader, clock, events)

        assert downloader.downloads == []
        end = events.of_type(ExportEndEvent)[0]
        assert end.status == ExportStatus.FAILED
        assert "out of memory" in end.error
        assert_view_restored(board, before, {"C"})

    @pytest.mark.asyncio
    async def test_restores_on_success_too(self, board, rasterizer, downloader, clock):
        board.set_selection(["A", "e1"])
        board.set_viewport(12, -3, -2)
        before = board.viewport
        await _export(board, ExportRequest(ExportScope.all(), obscure_text=True), rasterizer, downloader, clock)
        assert_view_restored(board, before, {"A", "e1"})
        assert board.viewport == ViewportState(12, -3, -2)


# ---------------------------------------------------------------------------
# Rendered region
# ---------------------------------------------------------------------------


def _rendered_view_box(result) -> BBox:
    svg = ET.fromstring(unquote(result.data_uri.split(",", 1)[1]))
    x, y, w, h = (float(v) for v in svg.get("viewBox").split())
    return BBox(x, y, x + w, y + h)


class TestRenderedRegion:
    @pytest.mark.asyncio
    async def test_clamped_zoom_keeps_narrow_node(self, downloader, clock):
        canvas = MemoryCanvas(width=800, height=600, document_name="tall")
        node = canvas.add_node(MemoryNode("A", 0, 0, 10, 100))
        request = ExportRequest(ExportScope.of(["A"]), format=ImageFormat.SVG)

        result = await _export(canvas, request, SvgRasterizer(), downloader, clock)

        # 1.1 x (10 x 100) would need 5x zoom; the engine stops at 2x
        assert result.bbox.as_tuple() == pytest.approx((-0.5, -5, 10.5, 105))
        assert (result.width, result.height) == pytest.approx((22, 220), rel=1e-4)
        view_box = _rendered_view_box(result)
        assert view_box.as_tuple() == pytest.approx(result.bbox.as_tuple(), abs=1e-3)
        assert view_box.contains(node.bbox)

    @pytest.mark.asyncio
    async def test_clamped_zoom_square_node(self, downloader, clock):
        canvas = MemoryCanvas(width=800, height=600)
        node = canvas.add_node(MemoryNode("A", 40, 40, 40, 40))

        result = await _export(canvas, ExportRequest(ExportScope.all(), format=ImageFormat.SVG), SvgRasterizer(), downloader, clock)

        assert (result.width, result.height) == pytest.approx((88, 88), rel=1e-4)
        assert _rendered_view_box(result).contains(node.bbox)

    @pytest.mark.asyncio
    async def test_long_label_widens_export(self, downloader, clock):
        canvas = MemoryCanvas(width=800, height=600, document_name="labels")
        top = canvas.add_node(MemoryNode("A", 0, 0, 100, 50))
        bottom = canvas.add_node(MemoryNode("C", 0, 200, 100, 50))
        edge = canvas.add_edge(
            MemoryEdge("e1", top, bottom, from_side="bottom", to_side="top", label="a label much wider than either node")
        )
        rough = compute_rough_bbox([top, bottom], [edge])

        result = await _export(canvas, ExportRequest(ExportScope.all(), format=ImageFormat.SVG), SvgRasterizer(), downloader, clock)

        footprint = label_footprint(edge.center(), edge.label_css_width())
        assert footprint.width > rough.width
        assert result.bbox.contains(footprint)
        assert result.bbox.width > rough.width
        assert _rendered_view_box(result).contains(footprint)
