"""Project-level configuration from pyproject.toml.

Reads the [tool.canvasshot] section to provide default export settings
for the CLI. Command-line flags override these values.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

from canvasshot.request import ExportSettings, ImageFormat
from canvasshot.waiting import MAX_LOADING_TIME


@dataclass(frozen=True)
class CanvasshotConfig:
    """Configuration from [tool.canvasshot] in pyproject.toml."""

    format: str = "png"
    pixel_ratio: float = 1.0
    skip_font_export: bool = True
    watermark: bool = False
    privacy: bool = False
    transparent_background: bool = False
    output_dir: str = "."
    load_timeout: float = MAX_LOADING_TIME
    fonts: list[str] = field(default_factory=list)

    def settings(self, **overrides: object) -> ExportSettings:
        """Export settings from this config, with non-None *overrides* applied."""
        values = {
            "format": ImageFormat(self.format),
            "pixel_ratio": self.pixel_ratio,
            "skip_font_export": self.skip_font_export,
            "watermark": self.watermark,
            "privacy": self.privacy,
            "transparent_background": self.transparent_background,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ExportSettings(**values)


def find_pyproject(start: Path | None = None) -> Path | None:
    """Walk up from start directory to find pyproject.toml."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


def load_config(start: Path | None = None) -> CanvasshotConfig:
    """Load [tool.canvasshot] from the nearest pyproject.toml.

    Returns default config if no pyproject.toml or no [tool.canvasshot] section.
    """
    path = find_pyproject(start)
    if path is None:
        return CanvasshotConfig()

    if sys.version_info >= (3, 11):
        import tomllib
    else:
        try:
            import tomli as tomllib
        except ImportError:
            return CanvasshotConfig()

    with open(path, "rb") as f:
        data = tomllib.load(f)

    section = data.get("tool", {}).get("canvasshot", {})
    if not section:
        return CanvasshotConfig()

    defaults = CanvasshotConfig()
    return CanvasshotConfig(
        format=section.get("format", defaults.format),
        pixel_ratio=float(section.get("pixel_ratio", defaults.pixel_ratio)),
        skip_font_export=section.get("skip_font_export", defaults.skip_font_export),
        watermark=section.get("watermark", defaults.watermark),
        privacy=section.get("privacy", defaults.privacy),
        transparent_background=section.get("transparent_background", defaults.transparent_background),
        output_dir=section.get("output_dir", defaults.output_dir),
        load_timeout=float(section.get("load_timeout", defaults.load_timeout)),
        fonts=list(section.get("fonts", [])),
    )
