"""
Module: capture.strategies

Purpose:
    Ways of turning a detected region into capture segments. Both
    strategies honour the same contract: segments are returned in order
    and their destination windows tile [0, final_height) in device pixels.

Key Classes:
    - CaptureStrategy: Abstract strategy
    - ScrollStitchStrategy: Scroll by viewport height, capture, crop
    - DirectRenderStrategy: Render the whole region in one pass

Key Functions:
    - select_strategy(): Pick a strategy by mode and capability

Coordinate spaces:
    Region geometry and scroll offsets are CSS pixels. Source rectangles
    and destination offsets are device pixels (CSS px * pixel_density).
    Destination edges are floor(css_offset * density) except the last
    edge, which is the region's final_height, so adjacent segments share
    edges exactly.

Dependencies:
    - capture.retry: capture_with_retry, CaptureError
    - capture.drivers: CaptureTarget, ElementRenderer
    - timing: Per-step scroll/capture timings

Used By:
    - capture.orchestrator: CapturingLoop state
"""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import List, Optional

from article_capture.config import CaptureConfig, StitchConfig
from article_capture.core.models import CaptureSegment, ContentRegion, SourceRect
from article_capture.timing import TimingLog, timed_phase

from .drivers import CaptureTarget, supports_element_render
from .progress import ProgressReporter
from .retry import CaptureError, Sleep, capture_with_retry

logger = logging.getLogger(__name__)

# Sub-pixel tolerance when comparing scroll offsets
_EPSILON = 1e-6


class CaptureStrategy(ABC):
    """
    Produces ordered capture segments for a region.

    Attributes:
        name: Short strategy name used in logs
        timing: Optional TimingLog; each step is recorded under "step-<k>"
    """

    name: str = "abstract"

    def __init__(
        self,
        config: Optional[CaptureConfig] = None,
        *,
        sleep: Sleep = asyncio.sleep,
        timing: Optional[TimingLog] = None,
    ) -> None:
        self.config = config or CaptureConfig()
        self._sleep = sleep
        self.timing = timing

    async def _pause(self, seconds: float) -> None:
        if seconds > 0:
            await self._sleep(seconds)

    @abstractmethod
    async def capture(
        self,
        target: CaptureTarget,
        region: ContentRegion,
        progress: ProgressReporter,
    ) -> List[CaptureSegment]:
        """
        Capture the region.

        Args:
            target: Live document
            region: Padded region measured after noise hiding
            progress: Progress reporter for per-step events

        Returns:
            Segments in destination order

        Raises:
            CaptureError: Capture primitive failed or retries exhausted
        """


class ScrollStitchStrategy(CaptureStrategy):
    """
    Scroll-and-capture tiling.

    Steps currentY = top + k * viewport_height for k in
    [0, step_count). Each capture is cropped to the part of the region
    that is visible and not yet covered by an earlier step; this keeps
    destination windows disjoint when the browser clamps the last scroll
    at the end of the document.

    Example:
        >>> strategy = ScrollStitchStrategy(CaptureConfig())
        >>> segments = await strategy.capture(tab, region, ProgressReporter())
    """

    name = "scroll"

    async def capture(
        self,
        target: CaptureTarget,
        region: ContentRegion,
        progress: ProgressReporter,
    ) -> List[CaptureSegment]:
        density = region.pixel_density
        viewport_height = region.viewport_height
        total = region.step_count
        sx = math.floor(region.left * density)
        sw = region.final_width

        segments: List[CaptureSegment] = []
        covered = 0.0  # Region-relative CSS px already captured
        covered_px = 0  # Device rows already assigned to a segment

        for k in range(total):
            step = k + 1
            progress.capture_step(step, total)

            step_id = f"step-{step}"

            requested = region.top + k * viewport_height
            with timed_phase(self.timing, "scroll", step_id=step_id):
                actual = await target.scroll_to(requested)
                await self._pause(self.config.settle_delay)
                if k > 0:
                    await self._pause(self.config.capture_interval)

            with timed_phase(self.timing, "capture", step_id=step_id):
                raster = await capture_with_retry(
                    target.capture_viewport,
                    self.config.retry,
                    sleep=self._sleep,
                    description=f"Viewport capture {step}/{total}",
                )

            crop_top = max(0.0, region.top + covered - actual)
            crop_bottom = min(float(viewport_height), region.bottom - actual)
            if crop_bottom <= crop_top:
                logger.warning(
                    f"Step {step}/{total}: nothing new visible at scrollY={actual}, skipped"
                )
                continue

            rel_top = actual + crop_top - region.top
            rel_bottom = actual + crop_bottom - region.top
            if rel_top > covered + _EPSILON:
                raise CaptureError(
                    f"Scroll to {requested} landed at {actual}, leaving "
                    f"{rel_top - covered:.1f}px of the region uncaptured"
                )

            dest_top = covered_px
            if rel_bottom >= region.height - _EPSILON:
                dest_bottom = region.final_height
            else:
                dest_bottom = math.floor(rel_bottom * density)
            covered = rel_bottom

            if dest_bottom <= dest_top:
                logger.debug(f"Step {step}/{total}: sub-pixel slice, skipped")
                continue
            covered_px = dest_bottom

            source = SourceRect(
                sx=sx,
                sy=math.floor(crop_top * density),
                sw=sw,
                sh=dest_bottom - dest_top,
            )
            segments.append(
                CaptureSegment(order=len(segments), raster=raster, source=source, dest_y=dest_top)
            )
            logger.debug(
                f"Step {step}/{total}: scrollY={actual} crop=[{crop_top:.1f}, {crop_bottom:.1f}) "
                f"dest=[{dest_top}, {dest_bottom})"
            )

        if covered < region.height - _EPSILON:
            logger.warning(
                f"Region extends {region.height - covered:.1f}px past the scrollable "
                f"document; that strip stays blank"
            )

        logger.info(f"Captured {len(segments)} segments in {total} steps")
        return segments


class DirectRenderStrategy(CaptureStrategy):
    """
    Single-pass rendering of the whole region.

    Requires a target implementing ElementRenderer. The result is one
    segment covering [0, final_height).
    """

    name = "direct"

    async def capture(
        self,
        target: CaptureTarget,
        region: ContentRegion,
        progress: ProgressReporter,
    ) -> List[CaptureSegment]:
        if not supports_element_render(target):
            raise CaptureError(f"Target {target.target_id!r} cannot render regions directly")

        progress.capture_step(1, 1)
        with timed_phase(self.timing, "render", step_id="step-1"):
            raster = await capture_with_retry(
                lambda: target.render_region(region),
                self.config.retry,
                sleep=self._sleep,
                description="Region render",
            )
        source = SourceRect(sx=0, sy=0, sw=region.final_width, sh=region.final_height)
        logger.info(f"Rendered region directly ({region.final_width}x{region.final_height})")
        return [CaptureSegment(order=0, raster=raster, source=source, dest_y=0)]


def select_strategy(
    target: CaptureTarget,
    region: ContentRegion,
    config: Optional[CaptureConfig] = None,
    stitch_config: Optional[StitchConfig] = None,
    *,
    sleep: Sleep = asyncio.sleep,
    timing: Optional[TimingLog] = None,
) -> CaptureStrategy:
    """
    Choose a capture strategy.

    "auto" uses direct rendering when the target supports it and the
    region in device pixels fits the surface caps; otherwise the
    scroll-and-stitch loop. "scroll" and "direct" force a strategy.

    Args:
        target: Live document
        region: Detected region
        config: Capture configuration (mode in config.strategy)
        stitch_config: Surface caps
        timing: Receives per-step timings of the chosen strategy

    Returns:
        Strategy instance

    Raises:
        CaptureError: "direct" was forced on a target without support
    """
    config = config or CaptureConfig()
    stitch_config = stitch_config or StitchConfig()
    mode = config.strategy

    if mode == "scroll":
        return ScrollStitchStrategy(config, sleep=sleep, timing=timing)
    if mode == "direct":
        if not supports_element_render(target):
            raise CaptureError("Direct rendering requested but not supported by the target")
        return DirectRenderStrategy(config, sleep=sleep, timing=timing)

    fits = (
        region.final_width <= stitch_config.max_dimension
        and region.final_height <= stitch_config.max_dimension
        and region.final_width * region.final_height <= stitch_config.max_pixels
    )
    if supports_element_render(target) and fits:
        logger.debug("Strategy: direct (target renders regions, size within caps)")
        return DirectRenderStrategy(config, sleep=sleep, timing=timing)
    logger.debug("Strategy: scroll (direct render unavailable or region too large)")
    return ScrollStitchStrategy(config, sleep=sleep, timing=timing)
