"""
Module: pipeline

Purpose:
    End-to-end capture of a URL: open the page, run the capture state
    machine, and write the artifact (PNG or PDF) to disk.

Key Functions:
    - capture_article(): URL -> CaptureResult with artifact path
    - save_artifact(): Write a CaptureResult in the configured format
    - detect_html(): Offline detection on static HTML

Dependencies:
    - capture.browser: BrowserSession (Playwright)
    - capture.orchestrator: CaptureOrchestrator
    - output: Renderers and naming

Used By:
    - cli: `capture` and `detect` commands
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from article_capture.capture.browser import BrowserSession
from article_capture.capture.orchestrator import CaptureOrchestrator, CaptureResult
from article_capture.capture.progress import ProgressObserver
from article_capture.config import ArticleCaptureConfig, DetectionConfig
from article_capture.detection import (
    DetectionResult,
    detect_region,
    find_noise_children,
    tree_from_html,
)
from article_capture.output import render_to_pdf, save_png, unique_artifact_path
from article_capture.timing import TimingLog, timed_phase

logger = logging.getLogger(__name__)


def save_artifact(
    result: CaptureResult,
    config: ArticleCaptureConfig,
    now: Optional[datetime] = None,
) -> Path:
    """
    Write the stitched surface in the configured format.

    Args:
        result: Result of a capture run
        config: Output format, directory and prefix
        now: Timestamp for the file name (defaults to now)

    Returns:
        Path of the written artifact
    """
    path = unique_artifact_path(config.output_dir, config.output_format, config.prefix, now)
    if config.output_format == "pdf":
        render_to_pdf(
            result.surface, path, config.page, pages=result.pages, slices=result.page_slices
        )
    else:
        save_png(result.surface, path)
    return path


async def capture_article(
    url: str,
    config: Optional[ArticleCaptureConfig] = None,
    *,
    observer: Optional[ProgressObserver] = None,
    session: Optional[BrowserSession] = None,
    now: Optional[datetime] = None,
) -> CaptureResult:
    """
    Capture the main article of a web page to a file.

    Args:
        url: Page to capture
        config: Run configuration
        observer: Receives ProgressEvents
        session: Browser session to reuse (a private one is opened and
            closed otherwise)
        now: Timestamp for the file name

    Returns:
        CaptureResult; result.artifact is the written Path

    Raises:
        TransportError: Page could not be loaded or stopped responding
        DetectionError, CaptureError, StitchError, PaginationError

    Example:
        >>> result = asyncio.run(capture_article("https://example.com/post"))
        >>> result.artifact
        PosixPath('article-2026-10-19T13-55-00.png')
    """
    config = config or ArticleCaptureConfig()
    own_session = session is None
    session = session or BrowserSession(config.browser)
    timing = TimingLog()

    try:
        with timed_phase(timing, "load"):
            tab = await session.open_tab(url)
        try:
            orchestrator = CaptureOrchestrator(tab, config, observer=observer, timing=timing)
            result = await orchestrator.run(
                paginate_pages=config.output_format == "pdf",
                save=lambda r: save_artifact(r, config, now),
            )
        finally:
            await tab.close()
    finally:
        if own_session:
            await session.close()

    logger.info(f"Wrote {result.artifact}")
    logger.debug(timing.summary())
    if config.save_timing and isinstance(result.artifact, Path):
        timing.save(result.artifact.with_suffix(".timing.json"))
    return result


def detect_html(
    html: str,
    config: Optional[DetectionConfig] = None,
) -> Tuple[DetectionResult, List[str]]:
    """
    Run detection on static HTML.

    Returns:
        (detection result, noise locators)

    Raises:
        DetectionError: Empty document
    """
    config = config or DetectionConfig()
    root = tree_from_html(html)
    detection = detect_region(root, config.thresholds)
    noise = find_noise_children(detection.element, config.thresholds) if config.hide_noise else []
    return detection, [node.locator for node in noise]
