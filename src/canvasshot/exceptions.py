"""Exceptions raised by the canvas export pipeline."""

from __future__ import annotations


class CanvasExportError(Exception):
    """Base class for every failure that aborts an export."""


class EmptySelectionError(CanvasExportError):
    """The export scope resolved to no live nodes.

    Raised before the pipeline touches the view, so callers can treat it
    as a blocked command rather than a failed export.

    Attributes:
        requested: Node ids the caller asked for, None for whole-canvas scope
        message: Human-readable error message
    """

    def __init__(
        self,
        requested: list[str] | None = None,
        message: str | None = None,
    ) -> None:
        self.requested = requested
        self.message = message or self._default_message()
        super().__init__(self.message)

    def _default_message(self) -> str:
        if self.requested is None:
            return "Nothing to export: the canvas has no nodes"
        if not self.requested:
            return "Nothing to export: no nodes are selected"
        ids = ", ".join(f"'{i}'" for i in self.requested)
        return f"Nothing to export: none of the selected nodes exist anymore ({ids})"


class EmptyElementSetError(CanvasExportError, ValueError):
    """A bounding box was requested for zero elements."""

    def __init__(self, message: str = "Cannot compute a bounding box of no elements") -> None:
        self.message = message
        super().__init__(message)


class LoadTimeoutError(CanvasExportError):
    """Nodes did not finish mounting before the loading ceiling.

    Attributes:
        pending: Ids of the nodes still unmounted when the ceiling was hit
        timeout: The ceiling in seconds
        message: Human-readable error message
    """

    def __init__(
        self,
        pending: list[str],
        timeout: float,
        message: str | None = None,
    ) -> None:
        self.pending = pending
        self.timeout = timeout
        self.message = message or self._default_message()
        super().__init__(self.message)

    def _default_message(self) -> str:
        return (
            f"Export cancelled: {len(self.pending)} node(s) did not finish loading "
            f"within {self.timeout:g}s"
        )


class RasterizationError(CanvasExportError):
    """The external rasterizer failed to produce an image.

    The rasterizer's own exception is kept as ``__cause__``.

    Attributes:
        format: Requested output format ("png" or "svg")
    """

    def __init__(self, cause: BaseException, format: str) -> None:
        self.format = format
        super().__init__(f"Failed to generate {format.upper()} image: {cause}")
        self.__cause__ = cause
