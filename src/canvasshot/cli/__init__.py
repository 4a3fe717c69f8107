"""canvasshot CLI — export JSON Canvas files as images.

Entry point for the `canvasshot` command. Requires ``pip install canvasshot[cli]``.

Commands:
    export     Export a whole canvas or selected nodes as PNG/SVG
    inspect    Show canvas contents (nodes, edges, export bounds)
"""

from __future__ import annotations


def _require_typer():
    """Check that typer is available."""
    try:
        import typer  # noqa: F401
    except ImportError:
        import sys

        print("Error: typer is required for the CLI. Install with: pip install canvasshot[cli]", file=sys.stderr)
        raise SystemExit(1) from None


def create_app():
    """Create the Typer app with all commands."""
    _require_typer()

    import typer

    from canvasshot.cli.export_cmd import register_commands

    app = typer.Typer(
        name="canvasshot",
        help="Export canvas documents as framed images.",
        no_args_is_help=True,
    )
    register_commands(app)

    return app


def main():
    """CLI entry point."""
    app = create_app()
    app()
