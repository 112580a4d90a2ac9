"""Top-level package for Article Capture.

Detects the main article of a web page, captures it across as many
viewport screenshots as needed, and stitches the result into one PNG or
a paginated PDF.

Provides subpackages:
- article_capture.detection – DOM model and content region heuristics
- article_capture.capture – scroll/capture orchestration and browser adapter
- article_capture.stitching – segment compositing
- article_capture.pagination – page slicing
- article_capture.output – PDF/PNG rendering and file naming
"""


def _get_version() -> str:
    """Get version from pyproject.toml (dev) or importlib.metadata (installed)."""
    from pathlib import Path

    pyproject = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        try:
            content = pyproject.read_text()
        except OSError:
            content = ""
        for line in content.splitlines():
            if line.strip().startswith("version"):
                # Parse: version = "0.3.0"
                return line.split("=")[1].strip().strip('"').strip("'")

    from importlib.metadata import PackageNotFoundError, version as pkg_version
    try:
        return pkg_version("article-capture")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _get_version()

from article_capture.capture.drivers import ElementNotFoundError, TransportError  # noqa: E402
from article_capture.capture.orchestrator import CaptureOrchestrator, CaptureResult  # noqa: E402
from article_capture.capture.retry import (  # noqa: E402
    CaptureError,
    CaptureInProgressError,
    RateLimitedError,
)
from article_capture.config import ArticleCaptureConfig  # noqa: E402
from article_capture.detection import DetectionError, detect_region, find_noise_children  # noqa: E402
from article_capture.pagination import PaginationError, paginate  # noqa: E402
from article_capture.pipeline import capture_article  # noqa: E402
from article_capture.stitching import StitchError, stitch  # noqa: E402

__all__: list[str] = [
    "__version__",
    "ArticleCaptureConfig",
    "CaptureOrchestrator",
    "CaptureResult",
    "capture_article",
    "detect_region",
    "find_noise_children",
    "paginate",
    "stitch",
    "DetectionError",
    "CaptureError",
    "CaptureInProgressError",
    "RateLimitedError",
    "StitchError",
    "PaginationError",
    "TransportError",
    "ElementNotFoundError",
]
