"""
Module: core.models.geometry

Purpose:
    Geometry models shared by detection and capture. Three coordinate
    spaces meet here: CSS pixels of the page, device pixels of captured
    rasters (CSS px * pixel density), and physical page units used during
    pagination (see pagination.paginator).

Key Classes:
    - Rect: Element bounding box in CSS pixels
    - ViewportInfo: Viewport size, pixel density and scroll offset
    - ContentRegion: Padded article region in page coordinates

Dependencies:
    - dataclasses (std)
    - math (std)

Used By:
    - detection.detector: Measures the detected element
    - capture.strategies: Tiles the region across viewport captures
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Rect:
    """
    Bounding box in CSS pixels.

    Coordinates are relative to the viewport when returned by a
    DocumentAccessor (like getBoundingClientRect) and relative to the
    page origin once converted by ContentRegion.

    Attributes:
        top: Y of the top edge
        left: X of the left edge
        width: Width (>= 0)
        height: Height (>= 0)
    """

    top: float
    left: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Rect size must be non-negative: {self.width}x{self.height}")

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width


@dataclass(frozen=True, slots=True)
class ViewportInfo:
    """
    Viewport state of the target document.

    Attributes:
        width: Viewport width in CSS pixels
        height: Viewport height in CSS pixels
        pixel_density: Device pixels per CSS pixel (devicePixelRatio)
        scroll_y: Current vertical scroll offset in CSS pixels
    """

    width: int
    height: int
    pixel_density: float = 1.0
    scroll_y: float = 0.0

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport must be non-empty: {self.width}x{self.height}")
        if self.pixel_density <= 0:
            raise ValueError(f"pixel_density must be positive: {self.pixel_density}")


@dataclass(frozen=True, slots=True)
class ContentRegion:
    """
    Detected article region (immutable).

    Geometry is in page coordinates (CSS pixels from the document origin)
    at detection time, already padded on every edge.

    Attributes:
        top: Page Y of the padded top edge (>= 0)
        left: Page X of the padded left edge (>= 0)
        width: Padded width, rounded up to whole CSS pixels
        height: Padded height, rounded up to whole CSS pixels
        viewport_width: Viewport width at detection
        viewport_height: Viewport height at detection
        pixel_density: Device pixel ratio at detection
        scroll_y_at_detection: Scroll offset to restore after capture

    Example:
        >>> region = ContentRegion.from_client_rect(
        ...     Rect(top=100, left=50, width=600, height=2000),
        ...     ViewportInfo(width=1280, height=800, pixel_density=2.0),
        ...     padding=8,
        ... )
        >>> region.top, region.height, region.final_height
        (92, 2016, 4032)
    """

    top: float
    left: float
    width: int
    height: int
    viewport_width: int
    viewport_height: int
    pixel_density: float
    scroll_y_at_detection: float

    def __post_init__(self) -> None:
        if self.height <= 0 or self.width <= 0:
            raise ValueError(f"Region must be non-empty: {self.width}x{self.height}")

    @classmethod
    def from_client_rect(
        cls,
        rect: Rect,
        viewport: ViewportInfo,
        *,
        padding: float = 8,
    ) -> "ContentRegion":
        """
        Build a region from a viewport-relative element box.

        Args:
            rect: Element box relative to the viewport
            viewport: Viewport state at measurement time
            padding: CSS pixels added to each edge

        Returns:
            Padded ContentRegion in page coordinates
        """
        return cls(
            top=max(0.0, rect.top + viewport.scroll_y - padding),
            left=max(0.0, rect.left - padding),
            width=math.ceil(rect.width + 2 * padding),
            height=math.ceil(rect.height + 2 * padding),
            viewport_width=viewport.width,
            viewport_height=viewport.height,
            pixel_density=viewport.pixel_density,
            scroll_y_at_detection=viewport.scroll_y,
        )

    @property
    def bottom(self) -> float:
        """Page Y of the padded bottom edge."""
        return self.top + self.height

    @property
    def final_width(self) -> int:
        """Width of the stitched output in device pixels."""
        return math.ceil(self.width * self.pixel_density)

    @property
    def final_height(self) -> int:
        """Height of the stitched output in device pixels."""
        return math.ceil(self.height * self.pixel_density)

    @property
    def step_count(self) -> int:
        """Number of viewport-height steps needed to cover the region."""
        return max(1, math.ceil(self.height / self.viewport_height))

    def to_dict(self) -> dict:
        return {
            "top": self.top,
            "left": self.left,
            "width": self.width,
            "height": self.height,
            "viewportWidth": self.viewport_width,
            "viewportHeight": self.viewport_height,
            "pixelDensity": self.pixel_density,
            "scrollYAtDetection": self.scroll_y_at_detection,
        }
