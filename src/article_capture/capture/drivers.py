"""
Module: capture.drivers

Purpose:
    Abstract interfaces of the collaborators the capture loop drives:
    the live document, its scroll position, the viewport capture
    primitive and (optionally) a single-pass element renderer.

Key Classes:
    - TransportError / ElementNotFoundError: Failures of the live document
    - DocumentAccessor: Snapshot, geometry and inline display of elements
    - ScrollController: Scroll to a page offset
    - ViewportCamera: Capture the visible viewport as PNG bytes
    - ElementRenderer: Render one element in a single pass
    - CaptureTarget: Accessor + scroll + camera bundled for one document

Dependencies:
    - core.models: Rect, ViewportInfo, NoiseBackupEntry

Used By:
    - capture.orchestrator: CaptureOrchestrator
    - capture.strategies: Capture strategies
    - capture.browser: Playwright implementation
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from article_capture.core.models import ContentRegion, NoiseBackupEntry, Rect, ViewportInfo


class TransportError(Exception):
    """A collaborator did not respond, or responded with an error."""
    pass


class ElementNotFoundError(TransportError):
    """A structural locator no longer matches any element."""

    def __init__(self, message: str, locator: str = "") -> None:
        super().__init__(message)
        self.locator = locator


class DocumentAccessor(ABC):
    """Read and mutate the live document through structural locators."""

    @abstractmethod
    async def snapshot(self) -> Optional[Dict[str, Any]]:
        """
        Serialize the document tree.

        Returns:
            Snapshot dict of document.documentElement (see
            detection.dom.tree_from_snapshot), or None if there is no root
        """

    @abstractmethod
    async def measure(self, locator: str) -> Rect:
        """
        Get the viewport-relative bounding box of an element.

        Args:
            locator: Structural CSS path

        Returns:
            Rect in CSS pixels
        """

    @abstractmethod
    async def viewport(self) -> ViewportInfo:
        """Get viewport size, pixel density and scroll offset."""

    @abstractmethod
    async def set_display(
        self,
        locator: str,
        value: str,
        priority: Optional[str] = "",
    ) -> NoiseBackupEntry:
        """
        Set the inline display of an element.

        Args:
            locator: Structural CSS path
            value: New display value ("" removes the inline value)
            priority: "important" or ""

        Returns:
            NoiseBackupEntry holding the value and priority before the change

        Raises:
            ElementNotFoundError: locator matches nothing
            TransportError: Any other failure of the live document
        """


class ScrollController(ABC):
    """Scroll the document vertically."""

    @abstractmethod
    async def scroll_to(self, y: float) -> float:
        """
        Scroll to page offset y.

        Returns:
            Actual scroll offset after clamping by the browser
        """


class ViewportCamera(ABC):
    """Rate-limited capture primitive."""

    @abstractmethod
    async def capture_viewport(self) -> bytes:
        """
        Capture the visible viewport.

        Returns:
            PNG bytes in device pixels

        Raises:
            RateLimitedError: Capture quota exceeded, retry later
            Exception: Any other capture failure
        """


class ElementRenderer(ABC):
    """Renders a page region in one pass, independent of the viewport."""

    @property
    def supports_element_render(self) -> bool:
        return True

    @abstractmethod
    async def render_region(self, region: ContentRegion) -> bytes:
        """
        Render the full region as PNG bytes in device pixels.

        Args:
            region: Padded region in page coordinates
        """


class CaptureTarget(DocumentAccessor, ScrollController, ViewportCamera):
    """
    One document that can be captured.

    Attributes:
        target_id: Identity used by the exclusive capture lock
    """

    @property
    @abstractmethod
    def target_id(self) -> str:
        """Stable identity of the target document."""


def supports_element_render(target: object) -> bool:
    """Capability check for single-pass element rendering."""
    return isinstance(target, ElementRenderer) and target.supports_element_render
