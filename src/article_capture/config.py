"""
Module: config

Purpose:
    Configuration dataclasses for the capture pipeline. Immutable
    configuration with validation on construction.

Key Classes:
    - DetectionConfig: Region padding and scoring weights
    - RetryPolicy: Rate-limit retry/backoff schedule
    - CaptureConfig: Scroll/capture loop timing and strategy choice
    - StitchConfig: Surface size caps
    - PageConfig: Physical page geometry for PDF export
    - BrowserConfig: Headless browser viewport and limits
    - ArticleCaptureConfig: Aggregate configuration for one run

Dependencies:
    - dataclasses (std)
    - common.thresholds: Default weights and surface limits

Used By:
    - pipeline: capture_article()
    - capture.orchestrator: CaptureOrchestrator
    - cli: Builds configuration from arguments
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from article_capture.common.thresholds import (
    DETECTION_THRESHOLDS,
    SURFACE_LIMITS,
    DetectionThresholds,
)

STRATEGIES = ("auto", "scroll", "direct")
OUTPUT_FORMATS = ("png", "pdf")
RENDER_MODES = ("crop", "clip")


@dataclass(frozen=True)
class DetectionConfig:
    """
    Configuration for content region detection.

    Attributes:
        padding: CSS pixels added to every edge of the detected element
        hide_noise: Hide noise children while capturing
        thresholds: Scoring weights and caps
    """

    padding: float = 8
    hide_noise: bool = True
    thresholds: DetectionThresholds = DETECTION_THRESHOLDS

    def __post_init__(self) -> None:
        if self.padding < 0:
            raise ValueError(f"padding must be non-negative: {self.padding}")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with escalating backoff for rate-limited captures.

    Attributes:
        max_attempts: Total attempts including the first
        initial_delay: Wait (seconds) after the first rate-limit signal
        multiplier: Factor applied to the delay after each retry
        max_delay: Upper bound for a single wait

    Example:
        >>> policy = RetryPolicy()
        >>> [policy.delay_for(n) for n in range(5)]
        [2.0, 4.0, 8.0, 16.0, 16.0]
    """

    max_attempts: int = 5
    initial_delay: float = 2.0
    multiplier: float = 2.0
    max_delay: float = 16.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1: {self.max_attempts}")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")
        if self.multiplier < 1:
            raise ValueError(f"multiplier must be >= 1: {self.multiplier}")

    def delay_for(self, retry_index: int) -> float:
        """Wait before retry number retry_index (0-based)."""
        return min(self.initial_delay * self.multiplier ** retry_index, self.max_delay)


@dataclass(frozen=True)
class CaptureConfig:
    """
    Configuration for the scroll/capture loop.

    Attributes:
        settle_delay: Seconds to wait after each scroll
        capture_interval: Minimum seconds between two viewport captures
        strategy: "auto", "scroll" or "direct"
        retry: Rate-limit retry policy
    """

    settle_delay: float = 0.15
    capture_interval: float = 1.5
    strategy: str = "auto"
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        if self.settle_delay < 0 or self.capture_interval < 0:
            raise ValueError("delays must be non-negative")
        if self.strategy not in STRATEGIES:
            raise ValueError(f"strategy must be one of {STRATEGIES}: {self.strategy!r}")


@dataclass(frozen=True)
class StitchConfig:
    """
    Configuration for compositing segments.

    Attributes:
        max_dimension: Largest allowed surface side (px)
        max_pixels: Largest allowed surface area (px)
        blank_check: Warn when the stitched surface is a single colour
    """

    max_dimension: int = SURFACE_LIMITS.max_dimension
    max_pixels: int = SURFACE_LIMITS.max_pixels
    blank_check: bool = True

    def __post_init__(self) -> None:
        if self.max_dimension <= 0 or self.max_pixels <= 0:
            raise ValueError("surface limits must be positive")


@dataclass(frozen=True)
class PageConfig:
    """
    Physical page geometry for PDF export (millimetres).

    Attributes:
        page_width: Page width (A4 default)
        page_height: Page height (A4 default)
        margin: Margin on every edge
        jpeg_quality: Quality of re-encoded page strips
        mode: "crop" (one strip per page) or "clip" (full image behind a clip)
    """

    page_width: float = 210.0
    page_height: float = 297.0
    margin: float = 10.0
    jpeg_quality: int = 92
    mode: str = "crop"

    def __post_init__(self) -> None:
        if not 1 <= self.jpeg_quality <= 100:
            raise ValueError(f"jpeg_quality must be 1..100: {self.jpeg_quality}")
        if self.mode not in RENDER_MODES:
            raise ValueError(f"mode must be one of {RENDER_MODES}: {self.mode!r}")

    @property
    def content_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def content_height(self) -> float:
        return self.page_height - 2 * self.margin


@dataclass(frozen=True)
class BrowserConfig:
    """
    Headless browser settings.

    Attributes:
        viewport_width: Viewport width (CSS px)
        viewport_height: Viewport height (CSS px)
        device_scale_factor: Device pixel ratio
        headless: Run without a window
        wait_until: Navigation readiness event
        navigation_timeout: Seconds to wait for page load
        request_timeout: Seconds to wait for one channel round trip
        captures_per_second: Viewport capture quota (0 disables the quota)
    """

    viewport_width: int = 1280
    viewport_height: int = 800
    device_scale_factor: float = 1.0
    headless: bool = True
    wait_until: str = "networkidle"
    navigation_timeout: float = 30.0
    request_timeout: float = 30.0
    captures_per_second: float = 2.0

    def __post_init__(self) -> None:
        if self.viewport_width <= 0 or self.viewport_height <= 0:
            raise ValueError(
                f"viewport must be positive: {self.viewport_width}x{self.viewport_height}"
            )
        if self.device_scale_factor <= 0:
            raise ValueError(f"device_scale_factor must be positive: {self.device_scale_factor}")
        if self.captures_per_second < 0:
            raise ValueError(f"captures_per_second must be non-negative: {self.captures_per_second}")


@dataclass(frozen=True)
class ArticleCaptureConfig:
    """
    Configuration for one capture run (immutable).

    Example:
        >>> config = ArticleCaptureConfig(output_format="pdf", output_dir=Path("out"))
    """

    detection: DetectionConfig = field(default_factory=DetectionConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    stitch: StitchConfig = field(default_factory=StitchConfig)
    page: PageConfig = field(default_factory=PageConfig)
    browser: BrowserConfig = field(default_factory=BrowserConfig)

    output_format: str = "png"
    output_dir: Path = Path(".")
    prefix: str = "article"
    save_timing: bool = False

    def __post_init__(self) -> None:
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(f"output_format must be one of {OUTPUT_FORMATS}: {self.output_format!r}")
        if not self.prefix:
            raise ValueError("prefix must not be empty")
