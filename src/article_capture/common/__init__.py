"""
Shared constants used across detection, capture and stitching.
"""

from .thresholds import (
    DETECTION_THRESHOLDS,
    SURFACE_LIMITS,
    DetectionThresholds,
    SurfaceLimits,
)

__all__ = [
    "DETECTION_THRESHOLDS",
    "SURFACE_LIMITS",
    "DetectionThresholds",
    "SurfaceLimits",
]
