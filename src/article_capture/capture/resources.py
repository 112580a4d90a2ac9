"""
Module: capture.resources

Purpose:
    Scoped guards for document state the capture loop mutates. Each guard
    restores its state exactly once when the block exits, whether it
    returns, raises, or is cancelled.

Key Functions:
    - hidden_noise(): Hide noise elements for the duration of a block
    - preserved_scroll(): Restore the scroll offset when a block exits
    - restore_noise(): Undo a list of NoiseBackupEntry

Key Classes:
    - TargetLock: At most one capture in flight per target document

Dependencies:
    - contextlib (std)
    - capture.drivers: DocumentAccessor, ScrollController, ElementNotFoundError

Used By:
    - capture.orchestrator: CaptureOrchestrator.run()
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import AsyncIterator, Iterable, Iterator, List, Set

from article_capture.core.models import NoiseBackupEntry

from .drivers import DocumentAccessor, ElementNotFoundError, ScrollController
from .retry import CaptureInProgressError

logger = logging.getLogger(__name__)

HIDDEN_DISPLAY = "none"
HIDDEN_PRIORITY = "important"


async def restore_noise(
    accessor: DocumentAccessor,
    backups: List[NoiseBackupEntry],
) -> int:
    """
    Restore original inline display of hidden elements.

    Entries are restored in reverse hiding order. A failure on one entry
    is logged and the remaining entries are still restored.

    Args:
        accessor: Live document
        backups: Entries returned when hiding

    Returns:
        Number of entries that could not be restored
    """
    failures = 0
    for entry in reversed(backups):
        try:
            await accessor.set_display(entry.locator, entry.display, entry.priority)
        except Exception as e:
            failures += 1
            logger.error(f"Failed to restore display of {entry.locator}: {e}")
    if backups:
        logger.debug(f"Restored {len(backups) - failures}/{len(backups)} noise elements")
    return failures


@asynccontextmanager
async def hidden_noise(
    accessor: DocumentAccessor,
    locators: Iterable[str],
) -> AsyncIterator[List[NoiseBackupEntry]]:
    """
    Hide elements for the duration of the block.

    A locator that no longer matches an element (removed by page scripts
    since the snapshot) is skipped with a warning and gets no backup
    entry. Elements already hidden when a later hide fails for any other
    reason are restored before the error propagates.

    Args:
        accessor: Live document
        locators: Structural locators of the elements to hide

    Yields:
        Backup entries of the hidden elements

    Example:
        >>> async with hidden_noise(tab, [n.locator for n in noise]):
        ...     segments = await strategy.capture(...)
    """
    backups: List[NoiseBackupEntry] = []
    try:
        skipped = 0
        for locator in locators:
            try:
                backups.append(await accessor.set_display(locator, HIDDEN_DISPLAY, HIDDEN_PRIORITY))
            except ElementNotFoundError:
                skipped += 1
                logger.warning(f"Noise element no longer present, left as is: {locator}")
        logger.debug(f"Hid {len(backups)} noise elements ({skipped} skipped)")
        yield list(backups)
    finally:
        await restore_noise(accessor, backups)


@asynccontextmanager
async def preserved_scroll(
    scroller: ScrollController,
    original_y: float,
) -> AsyncIterator[float]:
    """
    Scroll back to original_y when the block exits.

    Args:
        scroller: Live document scroll control
        original_y: Offset to restore

    Yields:
        original_y
    """
    try:
        yield original_y
    finally:
        try:
            await scroller.scroll_to(original_y)
            logger.debug(f"Scroll restored to {original_y}")
        except Exception as e:
            logger.error(f"Failed to restore scroll position {original_y}: {e}")


class TargetLock:
    """
    Registry of targets with a capture in flight.

    Acquisition is a check-and-insert with no suspension point, so it is
    atomic within one event loop.

    Example:
        >>> lock = TargetLock()
        >>> with lock.hold("tab-1"):
        ...     ...
    """

    def __init__(self) -> None:
        self._active: Set[str] = set()

    def is_held(self, target_id: str) -> bool:
        return target_id in self._active

    @contextmanager
    def hold(self, target_id: str) -> Iterator[str]:
        """
        Hold the target exclusively for the block.

        Raises:
            CaptureInProgressError: If the target is already held
        """
        if target_id in self._active:
            raise CaptureInProgressError(f"A capture is already running for target {target_id!r}")
        self._active.add(target_id)
        try:
            yield target_id
        finally:
            self._active.discard(target_id)


DEFAULT_TARGET_LOCK = TargetLock()
