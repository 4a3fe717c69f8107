"""Event types emitted while an export runs."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum


class ExportStatus(Enum):
    """Outcome of an export.

    Values:
        COMPLETED: Image produced and delivered.
        CANCELLED: Nodes did not finish loading in time.
        FAILED: The rasterizer or another step raised.
    """

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


def new_export_id() -> str:
    return f"export-{uuid.uuid4().hex[:12]}"


def _now() -> float:
    return time.time()


@dataclass(frozen=True)
class BaseEvent:
    """Base class for all export events.

    Attributes:
        export_id: Identifier shared by every event of one export run.
        timestamp: Unix timestamp when the event was created.
    """

    export_id: str = field(default_factory=new_export_id)
    timestamp: float = field(default_factory=_now)


@dataclass(frozen=True)
class ExportStartEvent(BaseEvent):
    """Emitted once the scope is resolved, before the view is touched.

    Attributes:
        document_name: Base name of the exported canvas.
        format: "png" or "svg".
        node_count: Number of nodes being exported.
        edge_count: Number of edges being exported.
        whole_canvas: False for a selection export.
    """

    document_name: str = ""
    format: str = "png"
    node_count: int = 0
    edge_count: int = 0
    whole_canvas: bool = True


@dataclass(frozen=True)
class ViewportAppliedEvent(BaseEvent):
    """Emitted after each viewport pass settles.

    Attributes:
        pass_name: "rough" or "refined".
        scale: Realized scale read back from the view.
        bbox: Framed box as (min_x, min_y, max_x, max_y).
    """

    pass_name: str = ""
    scale: float = 1.0
    bbox: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class NodesLoadingEvent(BaseEvent):
    """Emitted on each readiness poll while nodes are still loading."""

    pending: int = 0
    elapsed_ms: float = 0.0


@dataclass(frozen=True)
class ExportEndEvent(BaseEvent):
    """Emitted when an export finishes, whatever the outcome.

    Attributes:
        status: COMPLETED, CANCELLED or FAILED.
        filename: Name of the delivered file, if any.
        error: Error message unless COMPLETED.
        duration_ms: Wall-clock duration in milliseconds.
    """

    status: ExportStatus = ExportStatus.COMPLETED
    filename: str | None = None
    error: str | None = None
    duration_ms: float = 0.0

    def __post_init__(self) -> None:
        if isinstance(self.status, str):
            object.__setattr__(self, "status", ExportStatus(self.status))


Event = ExportStartEvent | ViewportAppliedEvent | NodesLoadingEvent | ExportEndEvent
