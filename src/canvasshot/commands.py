"""The two export commands a canvas view offers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from canvasshot.exceptions import EmptySelectionError
from canvasshot.pipeline import export_image
from canvasshot.request import ExportScope, ExportSettings

if TYPE_CHECKING:
    from canvasshot.canvas import Canvas
    from canvasshot.pipeline import ExportResult


@dataclass(frozen=True)
class ExportCommand:
    """A user-invocable export command.

    Attributes:
        id: Stable command identifier
        name: Label shown in the command palette
        is_available: Whether the command is enabled for a canvas
        scope_for: The export scope the command covers on a canvas
    """

    id: str
    name: str
    is_available: Callable[[Canvas], bool]
    scope_for: Callable[[Canvas], ExportScope]


def _selected_node_ids(canvas: Canvas) -> list[str]:
    nodes = canvas.nodes
    return [item for item in canvas.selection if item in nodes]


EXPORT_ALL = ExportCommand(
    id="export-all-as-image",
    name="Export canvas as image",
    is_available=lambda canvas: len(canvas.nodes) > 0,
    scope_for=lambda canvas: ExportScope.all(),
)

EXPORT_SELECTED = ExportCommand(
    id="export-selected-as-image",
    name="Export selected nodes as image",
    is_available=lambda canvas: len(canvas.selection) > 0,
    scope_for=lambda canvas: ExportScope.of(_selected_node_ids(canvas)),
)

COMMANDS: dict[str, ExportCommand] = {cmd.id: cmd for cmd in (EXPORT_ALL, EXPORT_SELECTED)}


def available_commands(canvas: Canvas) -> list[ExportCommand]:
    return [cmd for cmd in COMMANDS.values() if cmd.is_available(canvas)]


async def run_command(
    command: ExportCommand | str,
    canvas: Canvas,
    settings: ExportSettings,
    **pipeline_kwargs: Any,
) -> ExportResult:
    """Run an export command with the settings the user confirmed.

    The scope is captured when the command runs, so nodes deleted later
    are dropped by the pipeline rather than failing it.

    Raises:
        KeyError: Unknown command id
        EmptySelectionError: The command is disabled for this canvas
    """
    if isinstance(command, str):
        command = COMMANDS[command]
    if not command.is_available(canvas):
        raise EmptySelectionError(message=f"'{command.name}' is not available: nothing to export")

    request = settings.to_request(command.scope_for(canvas))
    return await export_image(canvas, request, **pipeline_kwargs)
