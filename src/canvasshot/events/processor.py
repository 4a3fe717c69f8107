"""Event processor base classes."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from canvasshot.events.types import (
        Event,
        ExportEndEvent,
        ExportStartEvent,
        NodesLoadingEvent,
        ViewportAppliedEvent,
    )


_EVENT_METHOD_MAP: dict[str, str] = {
    "ExportStartEvent": "on_export_start",
    "ViewportAppliedEvent": "on_viewport_applied",
    "NodesLoadingEvent": "on_nodes_loading",
    "ExportEndEvent": "on_export_end",
}


class EventProcessor:
    """Base class for synchronous event consumers."""

    def on_event(self, event: Event) -> None:
        """Called for every event. Override in subclasses."""

    def shutdown(self) -> None:
        """Called once the export is over. Override to flush output."""


class AsyncEventProcessor(EventProcessor):
    """EventProcessor whose async hooks the dispatcher awaits when present."""

    async def on_event_async(self, event: Event) -> None:
        """Async version of on_event. Override in subclasses."""


class TypedEventProcessor(EventProcessor):
    """Routes ``on_event`` to one ``on_*`` method per event type.

    Unhandled event types are ignored.
    """

    def on_event(self, event: Event) -> None:
        method_name = _EVENT_METHOD_MAP.get(type(event).__name__)
        if method_name is not None:
            getattr(self, method_name)(event)

    def on_export_start(self, event: ExportStartEvent) -> None: ...
    def on_viewport_applied(self, event: ViewportAppliedEvent) -> None: ...
    def on_nodes_loading(self, event: NodesLoadingEvent) -> None: ...
    def on_export_end(self, event: ExportEndEvent) -> None: ...
