"""Shared fixtures for export pipeline tests.

This module provides:
1. A fake monotonic clock whose sleep advances time instantly
2. A fake rasterizer that records the canvas state it was called in
3. A recording downloader
4. The three-node board used by the end-to-end scenarios
"""

from __future__ import annotations

import base64

import pytest

from canvasshot.canvas import EXPORTING_CLASS, MemoryCanvas, MemoryEdge, MemoryNode
from canvasshot.events import EventProcessor

# =============================================================================
# Time
# =============================================================================


class FakeClock:
    """Callable clock plus an async ``sleep`` that advances it.

    ``on_sleep`` runs after every sleep with the new time, so tests can
    change canvas state "while" the pipeline waits.
    """

    def __init__(self, start: float = 100.0, on_sleep=None):
        self.now = start
        self.sleeps: list[float] = []
        self.on_sleep = on_sleep

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(self.now)


# =============================================================================
# Rasterizer / downloader doubles
# =============================================================================


class FakeRasterizer:
    """Returns a fixed data URI and snapshots the canvas at call time."""

    PNG_URI = "data:image/png;base64," + base64.b64encode(b"fake-png").decode("ascii")
    SVG_URI = "data:image/svg+xml;charset=utf-8,%3Csvg%2F%3E"

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[tuple[str, object]] = []
        self.seen: dict = {}

    def _record(self, kind, root, options):
        self.calls.append((kind, options))
        self.seen = {
            "classes": set(root.classes),
            "selection": set(root.selection),
            "screenshotting": root.screenshotting,
            "interaction_blocked": root.interaction_blocked,
            "overlays": dict(root.overlays),
            "drawn": [el for el in root.elements() if options.filter(el)],
        }
        if self.error is not None:
            raise self.error

    async def to_png(self, root, options):
        self._record("png", root, options)
        return self.PNG_URI

    async def to_svg(self, root, options):
        self._record("svg", root, options)
        return self.SVG_URI

    @property
    def options(self):
        return self.calls[-1][1]


class RecordingDownloader:
    def __init__(self):
        self.downloads: list[tuple[str, str]] = []

    def download(self, data_uri: str, filename: str) -> str:
        self.downloads.append((data_uri, filename))
        return filename


class ListProcessor(EventProcessor):
    """Collects all events synchronously for assertion."""

    def __init__(self):
        self.events: list = []
        self.shutdown_called = False

    def on_event(self, event):
        self.events.append(event)

    def shutdown(self):
        self.shutdown_called = True

    def of_type(self, cls):
        return [e for e in self.events if isinstance(e, cls)]

    def event_types(self):
        return [type(e).__name__ for e in self.events]


# =============================================================================
# Canvas fixtures
# =============================================================================


def make_board(**kwargs) -> MemoryCanvas:
    """800x600 view; A and B side by side joined by a labeled edge, C below A."""
    canvas = MemoryCanvas(width=800, height=600, document_name=kwargs.pop("document_name", "board"), **kwargs)
    a = canvas.add_node(MemoryNode("A", 0, 0, 100, 50, text="Alpha"))
    b = canvas.add_node(MemoryNode("B", 300, 0, 100, 50, text="Beta"))
    canvas.add_node(MemoryNode("C", 0, 200, 100, 50, text="Gamma"))
    canvas.add_edge(MemoryEdge("e1", a, b, from_side="right", to_side="left", label="x"))
    return canvas


@pytest.fixture
def board() -> MemoryCanvas:
    return make_board()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rasterizer() -> FakeRasterizer:
    return FakeRasterizer()


@pytest.fixture
def downloader() -> RecordingDownloader:
    return RecordingDownloader()


@pytest.fixture
def events() -> ListProcessor:
    return ListProcessor()


def assert_view_restored(canvas: MemoryCanvas, viewport, selection) -> None:
    assert canvas.viewport == viewport
    assert canvas.selection == frozenset(selection)
    assert EXPORTING_CLASS not in canvas.classes
    assert not canvas.classes
    assert not canvas.overlays
    assert canvas.screenshotting is False
    assert canvas.interaction_blocked is False
