"""
Module: output.renderer

Purpose:
    Write the final artifact: a PNG of the stitched surface, or a PDF with
    one page per PageSlice using ReportLab.

Key Functions:
    - render_to_pdf(): Dispatch on PageConfig.mode ("crop" or "clip")
    - render_pages_to_pdf(): Crop mode, one re-encoded strip per page
    - render_clipped_to_pdf(): Clip mode, whole surface behind a clip rect
    - save_png(): Write the surface as PNG

Dependencies:
    - reportlab: PDF generation
    - PIL: Image handling
    - pagination.paginator: PageImage, PageSlice, plan_pages

Used By:
    - pipeline: Saving phase
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import List, Optional

from PIL import Image
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from article_capture.config import PageConfig
from article_capture.pagination import PageImage, PageSlice, PaginationError, paginate, plan_pages

logger = logging.getLogger(__name__)

PDF_TITLE = "Article capture"


def render_to_pdf(
    surface: Image.Image,
    output_path: Path,
    config: Optional[PageConfig] = None,
    *,
    pages: Optional[List[PageImage]] = None,
    slices: Optional[List[PageSlice]] = None,
) -> int:
    """
    Render a stitched surface to a multi-page PDF.

    Args:
        surface: Stitched RGB surface
        output_path: Path to write the PDF
        config: Page geometry and render mode
        pages: Precomputed page strips (crop mode)
        slices: Precomputed page windows (clip mode)

    Returns:
        Number of pages written

    Raises:
        PaginationError: Degenerate page geometry
        OSError: If the PDF cannot be written

    Example:
        >>> render_to_pdf(surface, Path("out/article.pdf"), PageConfig(mode="clip"))
        3
    """
    config = config or PageConfig()
    if config.mode == "clip":
        return render_clipped_to_pdf(surface, output_path, config, slices=slices)
    if pages is None:
        pages = paginate(surface, config)
    render_pages_to_pdf(pages, output_path)
    return len(pages)


def render_pages_to_pdf(pages: List[PageImage], output_path: Path) -> None:
    """
    Draw each page strip at its placement on a fresh page.

    Args:
        pages: Page strips from paginate()
        output_path: Path to write the PDF
    """
    if not pages:
        raise PaginationError("No pages to render")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    page_width_pt = pages[0].page_width * mm
    page_height_pt = pages[0].page_height * mm

    c = canvas.Canvas(str(output_path), pagesize=(page_width_pt, page_height_pt))
    c.setTitle(PDF_TITLE)

    for page in pages:
        placement = page.slice
        width_pt = placement.width * mm
        height_pt = placement.height * mm
        c.drawImage(
            ImageReader(io.BytesIO(page.data)),
            placement.x * mm,
            _transform_y(page_height_pt, placement.y * mm, height_pt),
            width=width_pt,
            height=height_pt,
        )
        c.showPage()

    c.save()
    logger.info(f"Rendered {len(pages)} pages to {output_path}")


def render_clipped_to_pdf(
    surface: Image.Image,
    output_path: Path,
    config: Optional[PageConfig] = None,
    *,
    slices: Optional[List[PageSlice]] = None,
) -> int:
    """
    Draw the whole surface once per page behind a clip rectangle.

    The image is shifted up by each page's source offset so the clip
    window shows exactly rows [source_y_start, source_y_end). Page windows
    planned earlier (the Paginating phase) are reused when given.

    Returns:
        Number of pages written
    """
    config = config or PageConfig()
    if slices is None:
        slices = plan_pages(surface.width, surface.height, config)
    if not slices:
        raise PaginationError("No pages to render")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    page_width_pt = config.page_width * mm
    page_height_pt = config.page_height * mm
    reader = _pil_to_reader(surface)

    scaled_height_pt = config.content_width * mm * surface.height / surface.width

    c = canvas.Canvas(str(output_path), pagesize=(page_width_pt, page_height_pt))
    c.setTitle(PDF_TITLE)

    for page_slice in slices:
        _draw_clipped_page(c, reader, page_slice, surface.height, scaled_height_pt, page_height_pt)
        c.showPage()

    c.save()
    logger.info(f"Rendered {len(slices)} clipped pages to {output_path}")
    return len(slices)


def _draw_clipped_page(
    c: canvas.Canvas,
    reader: ImageReader,
    page_slice: PageSlice,
    surface_height: int,
    scaled_height_pt: float,
    page_height_pt: float,
) -> None:
    x_pt = page_slice.x * mm
    top_pt = page_slice.y * mm
    width_pt = page_slice.width * mm
    window_pt = page_slice.height * mm
    offset_pt = page_slice.source_y_start / surface_height * scaled_height_pt

    c.saveState()
    path = c.beginPath()
    path.rect(x_pt, _transform_y(page_height_pt, top_pt, window_pt), width_pt, window_pt)
    c.clipPath(path, stroke=0, fill=0)
    c.drawImage(
        reader,
        x_pt,
        _transform_y(page_height_pt, top_pt - offset_pt, scaled_height_pt),
        width=width_pt,
        height=scaled_height_pt,
    )
    c.restoreState()


def save_png(surface: Image.Image, output_path: Path) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    surface.save(output_path, format="PNG")
    logger.info(f"Saved {surface.width}x{surface.height} PNG to {output_path}")


def _pil_to_reader(img: Image.Image) -> ImageReader:
    """
    Convert PIL image to ReportLab ImageReader.

    Args:
        img: PIL Image object

    Returns:
        ImageReader for use with ReportLab
    """
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return ImageReader(buf)


def _transform_y(page_height_pt: float, y_top_pt: float, height_pt: float) -> float:
    """Convert a top-down Y (points) to ReportLab's bottom-up Y of the box bottom."""
    return page_height_pt - y_top_pt - height_pt
