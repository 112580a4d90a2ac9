"""
Core Models Package

Immutable data models passed between detection, capture, stitching and
pagination. All are frozen dataclasses so that a region or segment cannot
change while the pipeline runs.
"""

from .geometry import ContentRegion, Rect, ViewportInfo
from .segments import CaptureSegment, NoiseBackupEntry, SourceRect

__all__ = [
    "ContentRegion",
    "Rect",
    "ViewportInfo",
    "CaptureSegment",
    "NoiseBackupEntry",
    "SourceRect",
]
