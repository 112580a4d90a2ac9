"""
Module: timing

Purpose:
    Timing instrumentation for the capture pipeline to see which phase
    (detection, scrolling, rate-limit waits, stitching, PDF export)
    dominates a run.

Key Classes:
    - TimingLog: Collects timing metrics for pipeline phases and capture steps

Key Functions:
    - timed_phase: Context manager for timing code blocks

Dependencies:
    - time (std)
    - contextlib (std)
    - dataclasses (std)

Used By:
    - pipeline: capture_article()
    - capture.orchestrator: Phase timings of a run
    - capture.strategies: Per-step scroll, capture and render timings
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class TimingLog:
    """
    Timing metrics for one capture run.

    Attributes:
        phase_timings: Dict of phase_name -> duration_seconds
        step_timings: Dict of step_id -> {phase_name -> duration_seconds}

    Example:
        >>> log = TimingLog()
        >>> log.log_phase("detect", 0.234)
        >>> log.log_step("step-1", "capture", 0.012)
        >>> print(log.summary())
    """
    phase_timings: Dict[str, float] = field(default_factory=dict)
    step_timings: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def log_phase(self, phase: str, duration: float) -> None:
        """Log a run-level timing metric."""
        self.phase_timings[phase] = duration

    def log_step(self, step_id: str, phase: str, duration: float) -> None:
        """Log a step-level timing metric."""
        self.step_timings.setdefault(step_id, {})[phase] = duration

    def total(self) -> float:
        return sum(self.phase_timings.values())

    def get_slowest_steps(self, n: int = 3) -> List[tuple]:
        """Get the N slowest capture steps with their total time."""
        results = [(sid, sum(phases.values())) for sid, phases in self.step_timings.items()]
        results.sort(key=lambda x: x[1], reverse=True)
        return results[:n]

    def summary(self) -> str:
        """Generate human-readable timing summary."""
        lines = ["", "=== Capture Timing Summary ==="]

        if self.phase_timings:
            for phase, duration in self.phase_timings.items():
                lines.append(f"  {phase:25s} {duration:.3f}s")
            lines.append(f"  {'total':25s} {self.total():.3f}s")

        slowest = self.get_slowest_steps(3)
        if slowest:
            lines.append("")
            lines.append("Slowest steps:")
            for sid, duration in slowest:
                lines.append(f"  {sid}: {duration:.3f}s")

        lines.append("")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Export timing data as dictionary."""
        return {
            "phase_timings": self.phase_timings,
            "step_timings": self.step_timings,
            "total": self.total(),
        }

    def save(self, path: Path) -> None:
        """Save timing data to a JSON file."""
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.debug(f"Saved timing data to {path}")


@contextmanager
def timed_phase(
    log: Optional[TimingLog],
    phase: str,
    step_id: Optional[str] = None,
) -> Generator[None, None, None]:
    """
    Context manager for timing a code phase.

    Args:
        log: TimingLog instance to record metrics (None disables timing)
        phase: Name of the phase being timed
        step_id: If provided, records as step-level metric;
                 otherwise records as run-level metric

    Example:
        >>> log = TimingLog()
        >>> with timed_phase(log, "stitch"):
        ...     surface = stitch(segments, width, height)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if log is not None:
            if step_id:
                log.log_step(step_id, phase, elapsed)
            else:
                log.log_phase(phase, elapsed)
