"""
Module: capture.retry

Purpose:
    Capture errors and the bounded retry loop around the rate-limited
    capture primitive. Only rate-limit signals are retried; every other
    failure is terminal on the first occurrence.

Key Functions:
    - capture_with_retry(): Call a capture coroutine with backoff

Key Classes:
    - CaptureError: Terminal capture failure
    - RateLimitedError: Rate-limit signal raised by a capture primitive
    - CaptureInProgressError: Target already being captured

Dependencies:
    - asyncio (std)
    - config: RetryPolicy

Used By:
    - capture.strategies: Every viewport capture
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from article_capture.config import RetryPolicy

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class CaptureError(Exception):
    """Capture primitive failed (including exhausted rate-limit retries)."""
    pass


class CaptureInProgressError(CaptureError):
    """Another capture already holds the target."""
    pass


class RateLimitedError(Exception):
    """Capture primitive refused the call because of its rate limit."""
    pass


async def capture_with_retry(
    capture: Callable[[], Awaitable[bytes]],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Sleep = asyncio.sleep,
    description: str = "capture",
) -> bytes:
    """
    Invoke a capture primitive, retrying on rate-limit signals.

    Args:
        capture: Coroutine function returning PNG bytes
        policy: Attempt cap and backoff schedule
        sleep: Awaitable sleep (injected by tests)
        description: Label used in log and error messages

    Returns:
        Captured bytes

    Raises:
        CaptureError: On any non rate-limit failure, or when every attempt
            was rate limited

    Example:
        >>> png = await capture_with_retry(camera.capture_viewport, RetryPolicy())
    """
    policy = policy or RetryPolicy()

    for attempt in range(policy.max_attempts):
        try:
            return await capture()
        except RateLimitedError as e:
            if attempt + 1 >= policy.max_attempts:
                raise CaptureError(
                    f"{description} still rate limited after {policy.max_attempts} attempts"
                ) from e
            delay = policy.delay_for(attempt)
            logger.warning(
                f"{description} rate limited (attempt {attempt + 1}/{policy.max_attempts}), "
                f"retrying in {delay:.1f}s"
            )
            await sleep(delay)
        except CaptureError:
            raise
        except Exception as e:
            raise CaptureError(f"{description} failed: {e}") from e

    # max_attempts >= 1 is validated by RetryPolicy
    raise CaptureError(f"{description} was never attempted")
