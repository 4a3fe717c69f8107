"""Export request and the snapshots taken around a pipeline run."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

MIN_PIXEL_RATIO = 0.2
MAX_PIXEL_RATIO = 5.0


class ImageFormat(Enum):
    """Output format of an export.

    Values:
        PNG: Raster output, honours the pixel ratio
        SVG: Vector output, always transparent, pixel ratio fixed at 1
    """

    PNG = "png"
    SVG = "svg"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def is_vector(self) -> bool:
        return self is ImageFormat.SVG


@dataclass(frozen=True)
class ExportScope:
    """Which nodes to export.

    ``node_ids`` is None for the whole canvas, otherwise the set of node
    ids chosen by the user.
    """

    node_ids: frozenset[str] | None = None

    @classmethod
    def all(cls) -> ExportScope:
        return cls(None)

    @classmethod
    def of(cls, node_ids: Iterable[str]) -> ExportScope:
        return cls(frozenset(node_ids))

    @property
    def is_whole_canvas(self) -> bool:
        return self.node_ids is None


@dataclass(frozen=True)
class ExportRequest:
    """Everything one export run needs from the user.

    Attributes:
        scope: Whole canvas or a node selection
        format: PNG or SVG
        pixel_ratio_factor: Multiplier on the required pixel ratio (raster only)
        embed_fonts: Inline font data in the output
        watermark: Draw the logo overlay in the bottom-left corner
        obscure_text: Privacy mode, renders all text unreadable
        transparent_background: Leave out the canvas background color
    """

    scope: ExportScope
    format: ImageFormat = ImageFormat.PNG
    pixel_ratio_factor: float = 1.0
    embed_fonts: bool = True
    watermark: bool = False
    obscure_text: bool = False
    transparent_background: bool = False

    def __post_init__(self) -> None:
        if self.pixel_ratio_factor <= 0:
            raise ValueError(f"pixel_ratio_factor must be > 0, got {self.pixel_ratio_factor}")
        if isinstance(self.format, str):
            object.__setattr__(self, "format", ImageFormat(self.format))


@dataclass(frozen=True)
class ExportSettings:
    """Choices collected by the export settings prompt.

    Options that only apply to one format are kept as the user left
    them; ``to_request`` decides which of them take effect.
    """

    format: ImageFormat = ImageFormat.PNG
    pixel_ratio: float = 1.0
    skip_font_export: bool = True
    watermark: bool = False
    privacy: bool = False
    transparent_background: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.format, str):
            object.__setattr__(self, "format", ImageFormat(self.format))
        if not MIN_PIXEL_RATIO <= self.pixel_ratio <= MAX_PIXEL_RATIO:
            raise ValueError(
                f"Pixel ratio must be between {MIN_PIXEL_RATIO} and {MAX_PIXEL_RATIO}, got {self.pixel_ratio}"
            )

    def to_request(self, scope: ExportScope) -> ExportRequest:
        svg = self.format.is_vector
        return ExportRequest(
            scope=scope,
            format=self.format,
            pixel_ratio_factor=1.0 if svg else self.pixel_ratio,
            embed_fonts=not self.skip_font_export if svg else True,
            watermark=self.watermark,
            obscure_text=self.privacy,
            transparent_background=True if svg else self.transparent_background,
        )


@dataclass(frozen=True)
class ViewportState:
    """Pan/zoom of the live view. ``zoom`` is log2 of the scale."""

    x: float
    y: float
    zoom: float

    @property
    def scale(self) -> float:
        return 2.0**self.zoom


@dataclass(frozen=True)
class SelectionSnapshot:
    """Ids of the user's interactive selection before the export."""

    ids: frozenset[str]

    @classmethod
    def capture(cls, selection: Iterable[str]) -> SelectionSnapshot:
        return cls(frozenset(selection))
