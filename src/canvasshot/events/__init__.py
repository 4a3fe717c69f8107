"""Event system for observing export runs."""

from canvasshot.events.dispatcher import EventDispatcher
from canvasshot.events.processor import (
    AsyncEventProcessor,
    EventProcessor,
    TypedEventProcessor,
)
from canvasshot.events.types import (
    BaseEvent,
    Event,
    ExportEndEvent,
    ExportStartEvent,
    ExportStatus,
    NodesLoadingEvent,
    ViewportAppliedEvent,
)

__all__ = [
    # Event types
    "BaseEvent",
    "Event",
    "ExportEndEvent",
    "ExportStartEvent",
    "ExportStatus",
    "NodesLoadingEvent",
    "ViewportAppliedEvent",
    # Processor interfaces
    "AsyncEventProcessor",
    "EventProcessor",
    "TypedEventProcessor",
    # Dispatcher
    "EventDispatcher",
]
