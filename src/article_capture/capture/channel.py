"""
Module: capture.channel

Purpose:
    Typed request/response channel between the capture loop and the live
    page. Every request kind is a dataclass with exactly one matching
    response dataclass; an endpoint answers with that response or an
    ErrorResponse. The channel turns timeouts, endpoint exceptions,
    error responses and mismatched responses into TransportError.

Key Classes:
    - SnapshotRequest / MeasureRequest / ScrollRequest /
      SetDisplayRequest / ViewportRequest: Request variants
    - SnapshotResponse / MeasureResponse / ScrollResponse /
      SetDisplayResponse / ViewportResponse / ErrorResponse: Responses
    - ChannelEndpoint: Answers requests (in-page side)
    - RequestChannel: Sends requests with a timeout
    - PageEndpoint: Playwright page implementation of ChannelEndpoint
    - TransportError / ElementNotFoundError (from capture.drivers): raised
      for failed requests; a locator that matches nothing raises the latter

Dependencies:
    - asyncio (std)
    - playwright: Page.evaluate for the in-page side

Used By:
    - capture.browser: PlaywrightTab
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from playwright.async_api import Page

from article_capture.core.models import NoiseBackupEntry, Rect, ViewportInfo

from .drivers import ElementNotFoundError, TransportError

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Requests
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SnapshotRequest:
    """Serialize the document tree."""


@dataclass(frozen=True)
class MeasureRequest:
    locator: str


@dataclass(frozen=True)
class ScrollRequest:
    y: float


@dataclass(frozen=True)
class SetDisplayRequest:
    locator: str
    value: str
    priority: Optional[str] = ""


@dataclass(frozen=True)
class ViewportRequest:
    """Read viewport size, pixel density and scroll offset."""


# ─────────────────────────────────────────────────────────────────────────────
# Responses
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SnapshotResponse:
    tree: Optional[Dict[str, Any]]


@dataclass(frozen=True)
class MeasureResponse:
    rect: Rect


@dataclass(frozen=True)
class ScrollResponse:
    scroll_y: float


@dataclass(frozen=True)
class SetDisplayResponse:
    previous: NoiseBackupEntry


@dataclass(frozen=True)
class ViewportResponse:
    viewport: ViewportInfo


@dataclass(frozen=True)
class ErrorResponse:
    message: str
    missing_locator: Optional[str] = None


Request = Union[SnapshotRequest, MeasureRequest, ScrollRequest, SetDisplayRequest, ViewportRequest]
Response = Union[
    SnapshotResponse,
    MeasureResponse,
    ScrollResponse,
    SetDisplayResponse,
    ViewportResponse,
    ErrorResponse,
]

RESPONSE_TYPES = {
    SnapshotRequest: SnapshotResponse,
    MeasureRequest: MeasureResponse,
    ScrollRequest: ScrollResponse,
    SetDisplayRequest: SetDisplayResponse,
    ViewportRequest: ViewportResponse,
}


class ChannelEndpoint(ABC):
    """Side of the channel that owns the live document."""

    @abstractmethod
    async def handle(self, request: Request) -> Response:
        """
        Answer one request.

        Returns:
            The response type paired with the request, or ErrorResponse
        """


class RequestChannel:
    """
    Sends typed requests to an endpoint.

    Attributes:
        timeout: Seconds to wait for each response

    Example:
        >>> channel = RequestChannel(PageEndpoint(page), timeout=30)
        >>> (await channel.request(ViewportRequest())).viewport.height
        800
    """

    def __init__(self, endpoint: ChannelEndpoint, timeout: float = 30.0) -> None:
        self.endpoint = endpoint
        self.timeout = timeout

    async def request(self, request: Request) -> Response:
        """
        Send a request and validate the response type.

        Raises:
            ElementNotFoundError: The locator of the request matches nothing
            TransportError: Timeout, endpoint failure, ErrorResponse or a
                response of the wrong type
        """
        kind = type(request).__name__
        expected = RESPONSE_TYPES.get(type(request))
        if expected is None:
            raise TransportError(f"Unknown request kind: {kind}")

        try:
            response = await asyncio.wait_for(self.endpoint.handle(request), self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"{kind} timed out after {self.timeout}s") from e
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"{kind} failed: {e}") from e

        if isinstance(response, ErrorResponse):
            if response.missing_locator is not None:
                raise ElementNotFoundError(
                    f"{kind} rejected: {response.message}", locator=response.missing_locator
                )
            raise TransportError(f"{kind} rejected: {response.message}")
        if not isinstance(response, expected):
            raise TransportError(
                f"{kind} answered with {type(response).__name__}, expected {expected.__name__}"
            )
        return response

    async def snapshot(self) -> Optional[Dict[str, Any]]:
        return (await self.request(SnapshotRequest())).tree

    async def measure(self, locator: str) -> Rect:
        return (await self.request(MeasureRequest(locator))).rect

    async def scroll_to(self, y: float) -> float:
        return (await self.request(ScrollRequest(y))).scroll_y

    async def set_display(
        self, locator: str, value: str, priority: Optional[str] = ""
    ) -> NoiseBackupEntry:
        return (await self.request(SetDisplayRequest(locator, value, priority))).previous

    async def viewport(self) -> ViewportInfo:
        return (await self.request(ViewportRequest())).viewport


# ─────────────────────────────────────────────────────────────────────────────
# In-page scripts
# ─────────────────────────────────────────────────────────────────────────────

SNAPSHOT_SCRIPT = """
() => {
    const walk = (el) => {
        const style = window.getComputedStyle(el);
        const cls = typeof el.className === "string"
            ? el.className
            : (el.getAttribute("class") || "");
        return {
            tag: el.tagName.toLowerCase(),
            name: el.localName,
            id: el.id || "",
            cls: cls,
            role: el.getAttribute("role") || "",
            itemprop: el.getAttribute("itemprop") || "",
            textLength: (el.textContent || "").trim().length,
            visible: !(style.display === "none" || style.visibility === "hidden"),
            children: Array.from(el.children).map(walk),
        };
    };
    return document.documentElement ? walk(document.documentElement) : null;
}
"""

MEASURE_SCRIPT = """
(locator) => {
    const el = document.querySelector(locator);
    if (!el) return null;
    const r = el.getBoundingClientRect();
    return { top: r.top, left: r.left, width: r.width, height: r.height };
}
"""

SCROLL_SCRIPT = """
(y) => new Promise((resolve) => {
    window.scrollTo({ top: y, behavior: "instant" });
    requestAnimationFrame(() => resolve(window.scrollY));
})
"""

SET_DISPLAY_SCRIPT = """
([locator, value, priority]) => {
    const el = document.querySelector(locator);
    if (!el) return null;
    const previous = {
        display: el.style.getPropertyValue("display"),
        priority: el.style.getPropertyPriority("display"),
    };
    if (value) {
        el.style.setProperty("display", value, priority || "");
    } else {
        el.style.removeProperty("display");
    }
    return previous;
}
"""

VIEWPORT_SCRIPT = """
() => ({
    width: window.innerWidth,
    height: window.innerHeight,
    pixelDensity: window.devicePixelRatio,
    scrollY: window.scrollY,
})
"""


class PageEndpoint(ChannelEndpoint):
    """
    Answers channel requests by evaluating scripts in a Playwright page.

    Playwright errors propagate to RequestChannel, which wraps them in
    TransportError.
    """

    def __init__(self, page: Page) -> None:
        self.page = page

    async def handle(self, request: Request) -> Response:
        if isinstance(request, SnapshotRequest):
            return SnapshotResponse(tree=await self.page.evaluate(SNAPSHOT_SCRIPT))

        if isinstance(request, MeasureRequest):
            box = await self.page.evaluate(MEASURE_SCRIPT, request.locator)
            if box is None:
                return ErrorResponse(
                    f"No element matches {request.locator!r}", missing_locator=request.locator
                )
            return MeasureResponse(
                rect=Rect(
                    top=box["top"],
                    left=box["left"],
                    width=max(0.0, box["width"]),
                    height=max(0.0, box["height"]),
                )
            )

        if isinstance(request, ScrollRequest):
            scroll_y = await self.page.evaluate(SCROLL_SCRIPT, request.y)
            return ScrollResponse(scroll_y=float(scroll_y))

        if isinstance(request, SetDisplayRequest):
            previous = await self.page.evaluate(
                SET_DISPLAY_SCRIPT, [request.locator, request.value, request.priority or ""]
            )
            if previous is None:
                return ErrorResponse(
                    f"No element matches {request.locator!r}", missing_locator=request.locator
                )
            return SetDisplayResponse(
                previous=NoiseBackupEntry(
                    locator=request.locator,
                    display=previous.get("display") or "",
                    priority=previous.get("priority") or "",
                )
            )

        if isinstance(request, ViewportRequest):
            info = await self.page.evaluate(VIEWPORT_SCRIPT)
            return ViewportResponse(
                viewport=ViewportInfo(
                    width=int(info["width"]),
                    height=int(info["height"]),
                    pixel_density=float(info["pixelDensity"] or 1.0),
                    scroll_y=float(info["scrollY"]),
                )
            )

        return ErrorResponse(f"Unsupported request: {type(request).__name__}")
