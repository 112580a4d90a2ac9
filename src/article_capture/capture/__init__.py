"""
Capture package: scroll/capture orchestration against a live document.

The Playwright adapter (capture.browser) and the typed channel
(capture.channel) are imported from their modules directly so that the
orchestration core has no hard dependency on a running browser.
"""

from .drivers import (
    CaptureTarget,
    DocumentAccessor,
    ElementNotFoundError,
    ElementRenderer,
    ScrollController,
    TransportError,
    ViewportCamera,
    supports_element_render,
)
from .orchestrator import CaptureOrchestrator, CaptureResult, CaptureState
from .progress import ProgressEvent, ProgressReporter
from .resources import TargetLock, hidden_noise, preserved_scroll
from .retry import CaptureError, CaptureInProgressError, RateLimitedError, capture_with_retry
from .strategies import (
    CaptureStrategy,
    DirectRenderStrategy,
    ScrollStitchStrategy,
    select_strategy,
)

__all__ = [
    "CaptureTarget",
    "DocumentAccessor",
    "ElementNotFoundError",
    "ElementRenderer",
    "ScrollController",
    "TransportError",
    "ViewportCamera",
    "supports_element_render",
    "CaptureOrchestrator",
    "CaptureResult",
    "CaptureState",
    "ProgressEvent",
    "ProgressReporter",
    "TargetLock",
    "hidden_noise",
    "preserved_scroll",
    "CaptureError",
    "CaptureInProgressError",
    "RateLimitedError",
    "capture_with_retry",
    "CaptureStrategy",
    "DirectRenderStrategy",
    "ScrollStitchStrategy",
    "select_strategy",
]
