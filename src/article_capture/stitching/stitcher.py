"""
Module: stitching.stitcher

Purpose:
    Composite ordered capture segments into one raster. The surface is
    pre-filled with opaque white and uniformly downscaled when the full
    size would exceed the surface caps.

Key Functions:
    - compute_downscale_factor(): Uniform factor (<= 1) that respects the caps
    - stitch(): Decode, crop and paste segments onto the surface
    - surface_is_blank(): Single-colour check on the result
    - encode_png(): Serialize the surface

Key Classes:
    - StitchError: A segment raster could not be decoded or placed

Dependencies:
    - PIL: Decoding, cropping, resampling, compositing
    - numpy: Blank surface check

Used By:
    - capture.orchestrator: Stitching state
    - pagination.paginator: Consumes the stitched surface
"""

from __future__ import annotations

import io
import logging
import math
from typing import List, Optional, Sequence

import numpy as np
from PIL import Image

from article_capture.common.thresholds import SURFACE_LIMITS
from article_capture.config import StitchConfig
from article_capture.core.models import CaptureSegment

logger = logging.getLogger(__name__)

# Captured rasters can legitimately be as large as the surface cap
if Image.MAX_IMAGE_PIXELS is not None and Image.MAX_IMAGE_PIXELS < SURFACE_LIMITS.max_pixels:
    Image.MAX_IMAGE_PIXELS = SURFACE_LIMITS.max_pixels

BACKGROUND = (255, 255, 255)


class StitchError(Exception):
    """A segment could not be composited."""
    pass


def compute_downscale_factor(
    width: int,
    height: int,
    max_dimension: int = SURFACE_LIMITS.max_dimension,
    max_pixels: int = SURFACE_LIMITS.max_pixels,
) -> float:
    """
    Uniform downscale factor for a width x height surface.

    factor = min(1, cap/width, cap/height, sqrt(pixel_cap / (width*height)))

    Args:
        width: Full surface width (px)
        height: Full surface height (px)
        max_dimension: Per-side cap
        max_pixels: Area cap

    Returns:
        Factor in (0, 1]

    Raises:
        StitchError: If width or height is not positive

    Example:
        >>> compute_downscale_factor(20000, 1000)
        0.8192
    """
    if width <= 0 or height <= 0:
        raise StitchError(f"Surface size must be positive: {width}x{height}")
    return min(
        1.0,
        max_dimension / width,
        max_dimension / height,
        math.sqrt(max_pixels / (width * height)),
    )


def _decode(segment: CaptureSegment) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(segment.raster))
        image.load()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise StitchError(f"Segment {segment.order}: raster could not be decoded: {e}") from e
    if image.mode != "RGB":
        # Flatten transparency onto white instead of black
        if image.mode in ("RGBA", "LA", "P"):
            rgba = image.convert("RGBA")
            flat = Image.new("RGB", rgba.size, BACKGROUND)
            flat.paste(rgba, mask=rgba.getchannel("A"))
            image = flat
        else:
            image = image.convert("RGB")
    return image


def stitch(
    segments: Sequence[CaptureSegment],
    final_width: int,
    final_height: int,
    config: Optional[StitchConfig] = None,
) -> Image.Image:
    """
    Composite segments onto a white surface.

    Each segment's source rectangle is copied to (0, dest_y * factor) at
    (sw * factor, sh * factor). Placement is always left-aligned because
    the source rectangle already encodes the region's horizontal offset.
    Source rectangles are clamped to the decoded raster.

    Args:
        segments: Segments in capture order
        final_width: Unscaled surface width (device px)
        final_height: Unscaled surface height (device px)
        config: Surface caps

    Returns:
        RGB image of size (floor(final_width*f), floor(final_height*f))

    Raises:
        StitchError: If any segment cannot be decoded or lies entirely
            outside its raster. No partial surface is returned.
    """
    config = config or StitchConfig()
    factor = compute_downscale_factor(
        final_width, final_height, config.max_dimension, config.max_pixels
    )
    width = max(1, math.floor(final_width * factor))
    height = max(1, math.floor(final_height * factor))
    if factor < 1.0:
        logger.warning(
            f"Surface {final_width}x{final_height} exceeds limits, "
            f"downscaling by {factor:.4f} to {width}x{height}"
        )

    surface = Image.new("RGB", (width, height), BACKGROUND)

    for segment in segments:
        image = _decode(segment)
        src = segment.source
        right = min(src.sx + src.sw, image.width)
        bottom = min(src.sy + src.sh, image.height)
        if right <= src.sx or bottom <= src.sy:
            raise StitchError(
                f"Segment {segment.order}: source {src} lies outside the "
                f"{image.width}x{image.height} raster"
            )
        if (right, bottom) != (src.sx + src.sw, src.sy + src.sh):
            logger.debug(f"Segment {segment.order}: source clamped to raster")

        tile = image.crop((src.sx, src.sy, right, bottom))
        if factor < 1.0:
            size = (
                max(1, math.ceil(tile.width * factor)),
                max(1, math.ceil(tile.height * factor)),
            )
            tile = tile.resize(size, Image.Resampling.LANCZOS)
        surface.paste(tile, (0, math.floor(segment.dest_y * factor)))

    logger.info(f"Stitched {len(segments)} segments into {width}x{height}")

    if config.blank_check and surface_is_blank(surface):
        logger.warning("Stitched surface is a single colour; the capture may be blank")

    return surface


def surface_is_blank(image: Image.Image) -> bool:
    """True if every pixel of the image has the same value."""
    arr = np.asarray(image)
    if arr.size == 0:
        return True
    flat = arr.reshape(-1, arr.shape[-1]) if arr.ndim == 3 else arr.reshape(-1)
    return bool((flat == flat[0]).all())


def encode_png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def segment_windows(segments: Sequence[CaptureSegment]) -> List[tuple]:
    """Destination windows [dest_y, dest_bottom) in segment order."""
    return [(s.dest_y, s.dest_bottom) for s in segments]
