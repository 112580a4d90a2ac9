"""
Module: capture.orchestrator

Purpose:
    State machine for one capture request against one target document:
    Idle -> Detecting -> Capturing -> Stitching -> Paginating (optional)
    -> Done, with Error reachable from every non-terminal state.

Key Classes:
    - CaptureState: States of the machine
    - CaptureResult: Everything produced by a run
    - CaptureOrchestrator: Drives detection, capture, stitching, pagination

Guarantees:
    - The target is held exclusively from Detecting until Done/Error.
    - Noise elements hidden before capturing are restored exactly once and
      the scroll offset is restored, on success, failure or cancellation.
    - Progress events are non-decreasing and never affect control flow.

Dependencies:
    - detection: detect_region, find_noise_children, tree_from_snapshot
    - capture.strategies: select_strategy
    - capture.resources: hidden_noise, preserved_scroll, TargetLock
    - stitching: stitch
    - pagination: paginate, plan_pages

Used By:
    - pipeline: capture_article()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from PIL import Image

from article_capture.config import ArticleCaptureConfig
from article_capture.core.models import CaptureSegment, ContentRegion
from article_capture.detection import (
    DetectionResult,
    detect_region,
    find_noise_children,
    tree_from_snapshot,
)
from article_capture.pagination import PageImage, PageSlice, paginate, plan_pages
from article_capture.stitching import stitch
from article_capture.timing import TimingLog, timed_phase

from . import progress as milestones
from .drivers import CaptureTarget
from .progress import ProgressObserver, ProgressReporter
from .resources import DEFAULT_TARGET_LOCK, TargetLock, hidden_noise, preserved_scroll
from .retry import CaptureError, Sleep
from .strategies import select_strategy

logger = logging.getLogger(__name__)


class CaptureState(Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    CAPTURING = "capturing"
    STITCHING = "stitching"
    PAGINATING = "paginating"
    DONE = "done"
    ERROR = "error"


_TRANSITIONS = {
    CaptureState.IDLE: {CaptureState.DETECTING},
    CaptureState.DETECTING: {CaptureState.CAPTURING, CaptureState.ERROR},
    CaptureState.CAPTURING: {CaptureState.STITCHING, CaptureState.ERROR},
    CaptureState.STITCHING: {CaptureState.PAGINATING, CaptureState.DONE, CaptureState.ERROR},
    CaptureState.PAGINATING: {CaptureState.DONE, CaptureState.ERROR},
    CaptureState.DONE: set(),
    CaptureState.ERROR: set(),
}


@dataclass
class CaptureResult:
    """
    Output of a capture run.

    Attributes:
        detection: Chosen element and detection method
        region: Padded region measured after noise hiding
        noise_locators: Locators of the elements hidden while capturing
        strategy: Name of the capture strategy used
        segments: Captured segments in destination order
        surface: Stitched RGB surface
        pages: Page strips when pagination was requested in crop mode
        page_slices: Page windows when pagination was requested (both
            PDF modes; clip mode draws them without re-encoded strips)
        artifact: Whatever the save callback returned (usually a Path)
    """

    detection: DetectionResult
    region: ContentRegion
    noise_locators: List[str]
    strategy: str
    segments: List[CaptureSegment]
    surface: Image.Image
    pages: Optional[List[PageImage]] = None
    page_slices: Optional[List[PageSlice]] = None
    artifact: object = None
    timing: TimingLog = field(default_factory=TimingLog)


SaveCallback = Callable[[CaptureResult], object]


class CaptureOrchestrator:
    """
    Runs one capture request.

    An orchestrator instance handles a single request; create a new one
    for each capture.

    Example:
        >>> orchestrator = CaptureOrchestrator(tab, ArticleCaptureConfig())
        >>> result = await orchestrator.run(paginate_pages=True)
        >>> len(result.pages)
        3
    """

    def __init__(
        self,
        target: CaptureTarget,
        config: Optional[ArticleCaptureConfig] = None,
        *,
        observer: Optional[ProgressObserver] = None,
        lock: Optional[TargetLock] = None,
        sleep: Sleep = asyncio.sleep,
        timing: Optional[TimingLog] = None,
    ) -> None:
        self.target = target
        self.config = config or ArticleCaptureConfig()
        self.progress = ProgressReporter(observer)
        self.timing = timing or TimingLog()
        self._lock = lock or DEFAULT_TARGET_LOCK
        self._sleep = sleep
        self._state = CaptureState.IDLE
        self.error: Optional[BaseException] = None

    @property
    def state(self) -> CaptureState:
        return self._state

    def _enter(self, state: CaptureState) -> None:
        if state not in _TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid transition {self._state.value} -> {state.value}")
        logger.debug(f"State {self._state.value} -> {state.value}")
        self._state = state

    async def run(
        self,
        *,
        paginate_pages: bool = False,
        save: Optional[SaveCallback] = None,
    ) -> CaptureResult:
        """
        Run the full request.

        Args:
            paginate_pages: Slice the surface into pages after stitching
                (page windows only when config.page.mode is "clip")
            save: Called with the result before Done; its return value is
                stored in CaptureResult.artifact

        Returns:
            CaptureResult

        Raises:
            CaptureInProgressError: Target already being captured
            DetectionError: Document has no root element
            CaptureError: Capture primitive failed
            StitchError: A segment could not be decoded
            PaginationError: Degenerate page geometry
            TransportError: The target stopped responding
        """
        if self._state is not CaptureState.IDLE:
            raise RuntimeError("CaptureOrchestrator instances are single-use")

        with self._lock.hold(self.target.target_id):
            self._enter(CaptureState.DETECTING)
            try:
                result = await self._run_locked(paginate_pages, save)
            except BaseException as e:
                self.error = e
                self._enter(CaptureState.ERROR)
                logger.error(f"Capture of {self.target.target_id} failed: {e}")
                raise
            self._enter(CaptureState.DONE)
            self.progress.milestone(milestones.DONE)
            return result

    async def _run_locked(
        self,
        paginate_pages: bool,
        save: Optional[SaveCallback],
    ) -> CaptureResult:
        detection_config = self.config.detection
        self.progress.milestone(milestones.DETECTING)

        with timed_phase(self.timing, "detect"):
            original = await self.target.viewport()
            root = tree_from_snapshot(await self.target.snapshot())
            detection = detect_region(root, detection_config.thresholds)
            noise = (
                find_noise_children(detection.element, detection_config.thresholds)
                if detection_config.hide_noise
                else []
            )
        noise_locators = [node.locator for node in noise]
        logger.info(
            f"Detected {detection.locator} via {detection.method}, "
            f"{len(noise_locators)} noise elements"
        )
        self.progress.milestone(milestones.DETECTED)

        self._enter(CaptureState.CAPTURING)
        with timed_phase(self.timing, "capture"):
            async with preserved_scroll(self.target, original.scroll_y):
                async with hidden_noise(self.target, noise_locators):
                    # Measured after hiding: noise may have shifted the layout
                    rect = await self.target.measure(detection.locator)
                    viewport = await self.target.viewport()
                    region = ContentRegion.from_client_rect(
                        rect, viewport, padding=detection_config.padding
                    )
                    logger.info(
                        f"Region top={region.top} height={region.height} "
                        f"({region.final_width}x{region.final_height} device px)"
                    )
                    strategy = select_strategy(
                        self.target,
                        region,
                        self.config.capture,
                        self.config.stitch,
                        sleep=self._sleep,
                        timing=self.timing,
                    )
                    segments = await strategy.capture(self.target, region, self.progress)

        if not segments:
            raise CaptureError("No segments were captured")

        self._enter(CaptureState.STITCHING)
        self.progress.milestone(milestones.PROCESSING)
        with timed_phase(self.timing, "stitch"):
            surface = stitch(segments, region.final_width, region.final_height, self.config.stitch)

        result = CaptureResult(
            detection=detection,
            region=region,
            noise_locators=noise_locators,
            strategy=strategy.name,
            segments=segments,
            surface=surface,
            timing=self.timing,
        )

        if paginate_pages:
            self._enter(CaptureState.PAGINATING)
            with timed_phase(self.timing, "paginate"):
                if self.config.page.mode == "clip":
                    result.page_slices = plan_pages(surface.width, surface.height, self.config.page)
                else:
                    result.pages = paginate(surface, self.config.page)
                    result.page_slices = [page.slice for page in result.pages]

        if save is not None:
            self.progress.milestone(milestones.SAVING)
            with timed_phase(self.timing, "save"):
                result.artifact = save(result)

        return result
