"""Fan export events out to processors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from canvasshot.events.processor import AsyncEventProcessor, EventProcessor

if TYPE_CHECKING:
    from canvasshot.events.types import Event

logger = logging.getLogger(__name__)


class EventDispatcher:
    """Holds the processors of one export and forwards events to them.

    Dispatch is best-effort by default: a failing processor is logged and
    never aborts the export. With ``strict=True`` its exception propagates.
    """

    def __init__(
        self,
        processors: list[EventProcessor] | None = None,
        *,
        strict: bool = False,
    ) -> None:
        self._processors: list[EventProcessor] = list(processors) if processors else []
        self._strict = strict

    @property
    def active(self) -> bool:
        return bool(self._processors)

    async def emit(self, event: Event) -> None:
        for processor in self._processors:
            try:
                if isinstance(processor, AsyncEventProcessor):
                    await processor.on_event_async(event)
                else:
                    processor.on_event(event)
            except Exception:
                if self._strict:
                    raise
                logger.warning(
                    "EventProcessor %s failed on %s",
                    processor,
                    type(event).__name__,
                    exc_info=True,
                )

    def shutdown(self) -> None:
        for processor in self._processors:
            try:
                processor.shutdown()
            except Exception:
                if self._strict:
                    raise
                logger.warning("EventProcessor %s failed during shutdown", processor, exc_info=True)
