"""
Output package: artifact rendering and file naming.
"""

from .naming import artifact_filename, artifact_timestamp, unique_artifact_path
from .renderer import render_clipped_to_pdf, render_pages_to_pdf, render_to_pdf, save_png

__all__ = [
    "artifact_filename",
    "artifact_timestamp",
    "unique_artifact_path",
    "render_clipped_to_pdf",
    "render_pages_to_pdf",
    "render_to_pdf",
    "save_png",
]
