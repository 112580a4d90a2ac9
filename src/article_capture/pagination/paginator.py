"""
Module: pagination.paginator

Purpose:
    Slice a stitched surface into fixed-size physical pages. The surface
    is scaled to the page content width; each page shows the next
    page_content_height of it.

Key Functions:
    - compute_layout(): Content box, scaled height and page count
    - plan_pages(): Source windows and placements, no pixel work
    - paginate(): Plan, crop and re-encode one strip per page

Key Classes:
    - PageLayout: Geometry shared by all pages
    - PageSlice: Source window of one page and its placement
    - PageImage: Re-encoded strip for one page
    - PaginationError: Degenerate page or surface geometry

Units:
    Page geometry is in millimetres (PageConfig); source windows are
    surface pixels. Placement y is measured from the top of the page.

Dependencies:
    - PIL: Cropping and JPEG encoding
    - config: PageConfig

Used By:
    - capture.orchestrator: Paginating state
    - output.renderer: PDF assembly
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass
from typing import List, Optional

from PIL import Image

from article_capture.config import PageConfig

logger = logging.getLogger(__name__)

# Absorbs float error so an exact fit does not add an empty page
_PAGE_COUNT_EPSILON = 1e-9


class PaginationError(Exception):
    """Page geometry is degenerate (e.g. zero content width)."""
    pass


@dataclass(frozen=True)
class PageLayout:
    """
    Geometry shared by every page.

    Attributes:
        content_width: Page width minus both margins
        page_content_height: Page height minus both margins
        scaled_content_height: Surface height once scaled to content_width
        page_count: ceil(scaled_content_height / page_content_height), >= 1
    """

    content_width: float
    page_content_height: float
    scaled_content_height: float
    page_count: int


@dataclass(frozen=True)
class PageSlice:
    """
    One page's window into the surface.

    Attributes:
        index: Zero-based page index
        source_y_start: First surface row (inclusive)
        source_y_end: Last surface row (exclusive)
        x: Left edge of the strip on the page
        y: Top edge of the strip on the page
        width: Strip width on the page
        height: Strip height on the page
    """

    index: int
    source_y_start: int
    source_y_end: int
    x: float
    y: float
    width: float
    height: float

    @property
    def source_height(self) -> int:
        return self.source_y_end - self.source_y_start


@dataclass(frozen=True)
class PageImage:
    """
    Re-encoded strip for one page.

    Attributes:
        slice: Source window and placement
        data: Encoded strip (JPEG)
        page_width: Page width
        page_height: Page height
    """

    slice: PageSlice
    data: bytes
    page_width: float
    page_height: float

    def __repr__(self) -> str:
        return f"PageImage(slice={self.slice}, data={len(self.data)} bytes)"


def compute_layout(
    surface_width: int,
    surface_height: int,
    config: Optional[PageConfig] = None,
) -> PageLayout:
    """
    Compute page geometry for a surface.

    Args:
        surface_width: Surface width (px)
        surface_height: Surface height (px)
        config: Page geometry

    Returns:
        PageLayout

    Raises:
        PaginationError: Non-positive page, content or surface size

    Example:
        >>> compute_layout(1900, 5540).page_count
        2
    """
    config = config or PageConfig()
    if config.page_width <= 0 or config.page_height <= 0:
        raise PaginationError(
            f"Page size must be positive: {config.page_width}x{config.page_height}"
        )
    if config.margin < 0:
        raise PaginationError(f"Margin must be non-negative: {config.margin}")
    content_width = config.content_width
    page_content_height = config.content_height
    if content_width <= 0 or page_content_height <= 0:
        raise PaginationError(
            f"Margin {config.margin} leaves no content area on a "
            f"{config.page_width}x{config.page_height} page"
        )
    if surface_width <= 0 or surface_height <= 0:
        raise PaginationError(f"Surface must be non-empty: {surface_width}x{surface_height}")

    scaled_content_height = content_width * (surface_height / surface_width)
    page_count = max(
        1, math.ceil(scaled_content_height / page_content_height - _PAGE_COUNT_EPSILON)
    )
    return PageLayout(
        content_width=content_width,
        page_content_height=page_content_height,
        scaled_content_height=scaled_content_height,
        page_count=page_count,
    )


def plan_pages(
    surface_width: int,
    surface_height: int,
    config: Optional[PageConfig] = None,
) -> List[PageSlice]:
    """
    Plan page windows without touching pixels.

    Window p is [floor(p * r), floor((p+1) * r)) with
    r = page_content_height / scaled_content_height * surface_height; the
    last window always ends at surface_height, so the windows tile the
    surface exactly.

    Raises:
        PaginationError: Degenerate geometry, or a page whose window would
            be empty
    """
    config = config or PageConfig()
    layout = compute_layout(surface_width, surface_height, config)
    rows_per_page = layout.page_content_height / layout.scaled_content_height * surface_height

    slices: List[PageSlice] = []
    for p in range(layout.page_count):
        start = math.floor(p * rows_per_page)
        if p == layout.page_count - 1:
            end = surface_height
        else:
            end = min(math.floor((p + 1) * rows_per_page), surface_height)
        if end <= start:
            raise PaginationError(
                f"Page {p + 1}/{layout.page_count} would be empty "
                f"(surface {surface_width}x{surface_height} too small)"
            )
        slices.append(
            PageSlice(
                index=p,
                source_y_start=start,
                source_y_end=end,
                x=config.margin,
                y=config.margin,
                width=layout.content_width,
                height=(end - start) / surface_height * layout.scaled_content_height,
            )
        )
    return slices


def paginate(
    surface: Image.Image,
    config: Optional[PageConfig] = None,
) -> List[PageImage]:
    """
    Slice a surface into page strips.

    Each strip is cropped from the surface and re-encoded as JPEG, ready
    to be drawn at (margin, margin) on its own page.

    Args:
        surface: Stitched RGB surface
        config: Page geometry and JPEG quality

    Returns:
        One PageImage per page, at least one

    Raises:
        PaginationError: Degenerate geometry
    """
    config = config or PageConfig()
    slices = plan_pages(surface.width, surface.height, config)
    rgb = surface if surface.mode == "RGB" else surface.convert("RGB")

    pages: List[PageImage] = []
    for page_slice in slices:
        strip = rgb.crop((0, page_slice.source_y_start, rgb.width, page_slice.source_y_end))
        buffer = io.BytesIO()
        strip.save(buffer, format="JPEG", quality=config.jpeg_quality)
        pages.append(
            PageImage(
                slice=page_slice,
                data=buffer.getvalue(),
                page_width=config.page_width,
                page_height=config.page_height,
            )
        )
        logger.debug(
            f"Page {page_slice.index + 1}: rows [{page_slice.source_y_start}, "
            f"{page_slice.source_y_end}) -> {page_slice.height:.1f}mm"
        )

    logger.info(f"Paginated {surface.width}x{surface.height} surface into {len(pages)} pages")
    return pages
