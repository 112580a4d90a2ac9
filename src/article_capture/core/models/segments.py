"""
Module: core.models.segments

Purpose:
    Records produced by the capture loop and consumed by the stitcher,
    plus the backup entries needed to undo noise hiding.

Key Classes:
    - SourceRect: Crop rectangle inside one viewport raster (device px)
    - CaptureSegment: One captured tile with its destination offset
    - NoiseBackupEntry: Original display state of a hidden element

Dependencies:
    - dataclasses (std)

Used By:
    - capture.strategies: Produces CaptureSegments
    - capture.resources: Produces and consumes NoiseBackupEntries
    - stitching.stitcher: Composites CaptureSegments
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class SourceRect:
    """
    Crop rectangle inside a captured raster, in device pixels.

    Attributes:
        sx: Left edge
        sy: Top edge
        sw: Width (> 0)
        sh: Height (> 0)
    """

    sx: int
    sy: int
    sw: int
    sh: int

    def __post_init__(self) -> None:
        if self.sx < 0 or self.sy < 0:
            raise ValueError(f"Source origin must be non-negative: ({self.sx}, {self.sy})")
        if self.sw <= 0 or self.sh <= 0:
            raise ValueError(f"Source size must be positive: {self.sw}x{self.sh}")

    def as_box(self) -> tuple[int, int, int, int]:
        """Return a PIL crop box (left, upper, right, lower)."""
        return (self.sx, self.sy, self.sx + self.sw, self.sy + self.sh)


@dataclass(frozen=True)
class CaptureSegment:
    """
    One tile captured at a single scroll position.

    Destination width and height equal the source width and height before
    any global downscale is applied by the stitcher.

    Attributes:
        order: Zero-based capture order
        raster: Encoded viewport capture (PNG bytes)
        source: Region of the raster that belongs to the article
        dest_y: Offset of the tile in the stitched output (device px)

    Example:
        >>> seg = CaptureSegment(0, png, SourceRect(0, 0, 800, 1000), dest_y=0)
        >>> seg.dest_bottom
        1000
    """

    order: int
    raster: bytes
    source: SourceRect
    dest_y: int

    @property
    def dest_height(self) -> int:
        return self.source.sh

    @property
    def dest_bottom(self) -> int:
        return self.dest_y + self.source.sh

    def __repr__(self) -> str:
        return (
            f"CaptureSegment(order={self.order}, source={self.source}, "
            f"dest_y={self.dest_y}, raster={len(self.raster)} bytes)"
        )


@dataclass(frozen=True, slots=True)
class NoiseBackupEntry:
    """
    Original inline display state of an element hidden during capture.

    The element is identified by a structural locator string rather than
    a live reference, so the entry stays valid after crossing into the
    browser and back.

    Attributes:
        locator: Structural CSS path of the element
        display: Inline display value before hiding ("" if unset)
        priority: Inline display priority before hiding ("" or "important")
    """

    locator: str
    display: str = ""
    priority: Optional[str] = ""
