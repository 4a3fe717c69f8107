"""canvasshot - Export regions of an infinite canvas as framed images."""

from canvasshot.canvas import (
    Canvas,
    CanvasEdge,
    CanvasNode,
    ElementKind,
    MemoryCanvas,
    MemoryEdge,
    MemoryNode,
    Overlay,
    RenderElement,
)
from canvasshot.commands import (
    COMMANDS,
    EXPORT_ALL,
    EXPORT_SELECTED,
    ExportCommand,
    available_commands,
    run_command,
)
from canvasshot.compositor import InclusionFilter, RasterizeOptions, Rasterizer
from canvasshot.delivery import DirectoryDownloader, Downloader, export_filename
from canvasshot.events import (
    AsyncEventProcessor,
    BaseEvent,
    Event,
    EventDispatcher,
    EventProcessor,
    ExportEndEvent,
    ExportStartEvent,
    ExportStatus,
    NodesLoadingEvent,
    TypedEventProcessor,
    ViewportAppliedEvent,
)
from canvasshot.exceptions import (
    CanvasExportError,
    EmptyElementSetError,
    EmptySelectionError,
    LoadTimeoutError,
    RasterizationError,
)
from canvasshot.geometry import BBox, aspect_fit, bbox_of, combine, enlarge
from canvasshot.jsoncanvas import CanvasFileError, load_canvas, parse_canvas
from canvasshot.pipeline import ExportResult, ExportTimings, export_image
from canvasshot.request import ExportRequest, ExportScope, ExportSettings, ImageFormat
from canvasshot.svg import SvgRasterizer

__all__ = [
    # Pipeline
    "export_image",
    "ExportRequest",
    "ExportScope",
    "ExportSettings",
    "ExportResult",
    "ExportTimings",
    "ImageFormat",
    # Commands
    "ExportCommand",
    "EXPORT_ALL",
    "EXPORT_SELECTED",
    "COMMANDS",
    "available_commands",
    "run_command",
    # Canvas engine
    "Canvas",
    "CanvasNode",
    "CanvasEdge",
    "ElementKind",
    "RenderElement",
    "Overlay",
    "MemoryCanvas",
    "MemoryNode",
    "MemoryEdge",
    "load_canvas",
    "parse_canvas",
    # Geometry
    "BBox",
    "aspect_fit",
    "bbox_of",
    "combine",
    "enlarge",
    # Rasterizing and delivery
    "Rasterizer",
    "RasterizeOptions",
    "InclusionFilter",
    "SvgRasterizer",
    "Downloader",
    "DirectoryDownloader",
    "export_filename",
    # Events
    "BaseEvent",
    "Event",
    "ExportStartEvent",
    "ViewportAppliedEvent",
    "NodesLoadingEvent",
    "ExportEndEvent",
    "ExportStatus",
    "EventProcessor",
    "AsyncEventProcessor",
    "TypedEventProcessor",
    "EventDispatcher",
    # Errors
    "CanvasExportError",
    "EmptySelectionError",
    "EmptyElementSetError",
    "LoadTimeoutError",
    "RasterizationError",
    "CanvasFileError",
]
