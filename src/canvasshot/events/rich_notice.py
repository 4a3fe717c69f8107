"""Rich-based user notices for export runs."""

from __future__ import annotations

import sys
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal

from canvasshot.events.processor import TypedEventProcessor
from canvasshot.events.types import ExportStatus

if TYPE_CHECKING:
    from canvasshot.events.types import ExportEndEvent, ExportStartEvent, NodesLoadingEvent

START_NOTICE = "Exporting the canvas. Please wait..."
BLOCKER_MESSAGE = "Generating image..."
TIMEOUT_NOTICE = "Export cancelled: Nodes did not finish loading in time"


def _require_rich() -> None:
    """Raise a clear error if rich is not installed."""
    try:
        import rich  # noqa: F401
    except ImportError:
        raise ImportError(
            "The 'rich' package is required for RichNoticeProcessor. Install it with: pip install 'canvasshot[cli]' or pip install rich"
        ) from None


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _timestamp() -> str:
    """Return current time as [HH:MM:SS]."""
    return datetime.now().strftime("[%H:%M:%S]")


class RichNoticeProcessor(TypedEventProcessor):
    """Shows the notices a user sees while an export runs.

    In a TTY a Rich status spinner stands in for the interaction blocker
    while the image is generated. Elsewhere (CI, piped output) every
    notice is a timestamped plain-text line.
    """

    def __init__(self, *, force_mode: Literal["tty", "non-tty", "auto"] = "auto") -> None:
        """Initialize the notice processor.

        Args:
            force_mode: Force TTY or non-TTY mode. "auto" detects via isatty().
        """
        if force_mode == "auto":
            self._tty_mode = _is_tty()
        else:
            self._tty_mode = force_mode == "tty"

        self._status: Any = None
        self._last_pending: int | None = None

        if self._tty_mode:
            _require_rich()
            from rich.console import Console

            self._console = Console()
        else:
            self._console = None

    def _print(self, msg: str, style: str | None = None) -> None:
        if self._tty_mode:
            self._console.print(f"[{style}]{msg}[/{style}]" if style else msg)
        else:
            print(f"{_timestamp()} {msg}", flush=True)

    def on_export_start(self, event: ExportStartEvent) -> None:
        self._print(START_NOTICE)
        if self._tty_mode and self._status is None:
            self._status = self._console.status(BLOCKER_MESSAGE)
            self._status.start()

    def on_nodes_loading(self, event: NodesLoadingEvent) -> None:
        # Only report changes, the waiter polls every few milliseconds
        if event.pending == self._last_pending:
            return
        self._last_pending = event.pending
        message = f"Waiting for {event.pending} nodes to finish loading..."
        if self._status is not None:
            self._status.update(f"{BLOCKER_MESSAGE} {message}")
        elif not self._tty_mode:
            self._print(message)

    def on_export_end(self, event: ExportEndEvent) -> None:
        self._stop_status()
        if event.status == ExportStatus.COMPLETED:
            self._print(f"✓ Saved {event.filename}", style="bold green")
        elif event.status == ExportStatus.CANCELLED:
            self._print(TIMEOUT_NOTICE, style="bold yellow")
        else:
            error_msg = f": {event.error}" if event.error else ""
            self._print(f"✗ Export failed{error_msg}", style="bold red")

    def _stop_status(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def shutdown(self) -> None:
        self._stop_status()
