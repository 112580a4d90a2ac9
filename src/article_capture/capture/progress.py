"""
Module: capture.progress

Purpose:
    Fire-and-forget progress notifications for one capture request.
    Percentages never go backwards and observer failures never reach the
    pipeline.

Key Classes:
    - ProgressEvent: {label, percent}
    - ProgressReporter: Monotonic, failure-isolated notifier

Key Functions:
    - capture_step_percent(): Percentage for capture step k of n

Used By:
    - capture.orchestrator: Milestones of the state machine
    - cli: Prints progress lines
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

# Milestones
DETECTING = ("Detecting article", 10)
DETECTED = ("Article detected", 20)
PROCESSING = ("Processing image", 80)
SAVING = ("Saving", 95)
DONE = ("Done", 100)

CAPTURE_START = 20
CAPTURE_SPAN = 60


@dataclass(frozen=True)
class ProgressEvent:
    label: str
    percent: int


ProgressObserver = Callable[[ProgressEvent], None]


def capture_step_percent(step: int, total: int) -> int:
    """Percentage reported after capture step `step` of `total` (1-based)."""
    if total <= 0:
        return CAPTURE_START + CAPTURE_SPAN
    return CAPTURE_START + math.floor(min(step, total) / total * CAPTURE_SPAN)


class ProgressReporter:
    """
    Reports progress to an optional observer.

    Percent values are clamped to [previous, 100] so the sequence seen by
    the observer is non-decreasing. Exceptions from the observer are
    logged and dropped.

    Example:
        >>> reporter = ProgressReporter(print)
        >>> reporter.report("Detecting article", 10)
    """

    def __init__(self, observer: Optional[ProgressObserver] = None) -> None:
        self._observer = observer
        self._last = 0
        self.history: List[ProgressEvent] = []

    @property
    def last_percent(self) -> int:
        return self._last

    def report(self, label: str, percent: float) -> ProgressEvent:
        value = int(max(self._last, min(100, percent)))
        self._last = value
        event = ProgressEvent(label=label, percent=value)
        self.history.append(event)
        logger.debug(f"Progress {value}%: {label}")

        if self._observer is not None:
            try:
                self._observer(event)
            except Exception as e:
                logger.warning(f"Progress observer failed, event dropped: {e}")
        return event

    def milestone(self, milestone: tuple) -> ProgressEvent:
        label, percent = milestone
        return self.report(label, percent)

    def capture_step(self, step: int, total: int) -> ProgressEvent:
        return self.report(f"Capturing ({step}/{total})", capture_step_percent(step, total))
