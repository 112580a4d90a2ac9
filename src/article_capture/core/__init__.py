"""
Core package: shared data models.
"""

from .models import (
    CaptureSegment,
    ContentRegion,
    NoiseBackupEntry,
    Rect,
    SourceRect,
    ViewportInfo,
)

__all__ = [
    "CaptureSegment",
    "ContentRegion",
    "NoiseBackupEntry",
    "Rect",
    "SourceRect",
    "ViewportInfo",
]
