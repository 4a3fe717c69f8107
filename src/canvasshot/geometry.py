"""Bounding box math for framing an export region.

Boxes live in graph space (the canvas's own coordinates, y grows
downward). Every helper returns a new box; ``BBox`` is immutable.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from canvasshot.exceptions import EmptyElementSetError


@dataclass(frozen=True)
class BBox:
    """Axis-aligned bounding box.

    Zero-area boxes (a single point or a horizontal segment) are valid.

    Example:
        >>> BBox(0, 0, 10, 5).center
        (5.0, 2.5)
    """

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def __post_init__(self) -> None:
        if self.min_x > self.max_x or self.min_y > self.max_y:
            raise ValueError(
                f"Inverted bounding box: ({self.min_x}, {self.min_y}) > ({self.max_x}, {self.max_y})"
            )

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> tuple[float, float]:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)

    @property
    def aspect_ratio(self) -> float:
        """Width over height; infinite for a zero-height box."""
        if self.height == 0:
            return float("inf")
        return self.width / self.height

    def contains(self, other: BBox) -> bool:
        """Whether *other* lies entirely within this box."""
        return (
            self.min_x <= other.min_x
            and self.min_y <= other.min_y
            and self.max_x >= other.max_x
            and self.max_y >= other.max_y
        )

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    @classmethod
    def from_rect(cls, x: float, y: float, width: float, height: float) -> BBox:
        """Build a box from a top-left corner and a size."""
        return cls(x, y, x + width, y + height)

    @classmethod
    def from_points(cls, points: Iterable[tuple[float, float]]) -> BBox:
        xs, ys = zip(*points)
        return cls(min(xs), min(ys), max(xs), max(ys))


class HasBBox(Protocol):
    @property
    def bbox(self) -> BBox: ...


def combine(bboxes: Iterable[BBox]) -> BBox:
    """Union of one or more boxes."""
    boxes = list(bboxes)
    if not boxes:
        raise EmptyElementSetError("Cannot combine an empty list of bounding boxes")
    return BBox(
        min(b.min_x for b in boxes),
        min(b.min_y for b in boxes),
        max(b.max_x for b in boxes),
        max(b.max_y for b in boxes),
    )


def bbox_of(elements: Iterable[HasBBox]) -> BBox:
    """Union bbox over nodes and/or edges."""
    boxes = [element.bbox for element in elements]
    if not boxes:
        raise EmptyElementSetError()
    return combine(boxes)


def enlarge(bbox: BBox, factor: float) -> BBox:
    """Scale *bbox* about its center (1.1 adds 10% to each dimension)."""
    if factor <= 0:
        raise ValueError(f"Enlarge factor must be positive, got {factor}")
    cx, cy = bbox.center
    half_w = bbox.width * factor / 2
    half_h = bbox.height * factor / 2
    return BBox(cx - half_w, cy - half_h, cx + half_w, cy + half_h)


def aspect_fit(bbox: BBox, ratio: float) -> BBox:
    """Grow *bbox* along one axis until its width/height equals *ratio*.

    The box keeps its top-left corner; only ``max_x`` or ``max_y`` moves,
    so the result always contains the input.

    Args:
        bbox: Box to fit
        ratio: Target width/height, normally the live viewport's

    Returns:
        A box with the requested aspect ratio
    """
    if ratio <= 0:
        raise ValueError(f"Aspect ratio must be positive, got {ratio}")

    if ratio > bbox.aspect_ratio:
        # Viewport is wider than the target
        return BBox(bbox.min_x, bbox.min_y, bbox.min_x + bbox.height * ratio, bbox.max_y)
    return BBox(bbox.min_x, bbox.min_y, bbox.max_x, bbox.min_y + bbox.width / ratio)


def label_footprint(center: tuple[float, float], width: float) -> BBox:
    """Zero-height box for an edge label centered on the edge midpoint."""
    cx, cy = center
    half = max(width, 0.0) / 2
    return BBox(cx - half, cy, cx + half, cy)
