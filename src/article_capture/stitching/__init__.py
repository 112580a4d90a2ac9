"""
Stitching package: composites capture segments into one raster.
"""

from .stitcher import (
    StitchError,
    compute_downscale_factor,
    encode_png,
    segment_windows,
    stitch,
    surface_is_blank,
)

__all__ = [
    "StitchError",
    "compute_downscale_factor",
    "encode_png",
    "segment_windows",
    "stitch",
    "surface_is_blank",
]
