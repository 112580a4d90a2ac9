"""
Module: capture.browser

Purpose:
    Headless Chromium adapter for the capture loop. A shared
    BrowserSession launches the browser once (idempotent ensure()) and
    opens tabs; each PlaywrightTab implements CaptureTarget and
    ElementRenderer on top of the typed request channel.

Key Classes:
    - CaptureQuota: Sliding one-second window limiting viewport captures
    - PlaywrightTab: CaptureTarget backed by a Playwright page
    - BrowserSession: Singleton handle on the Playwright browser

Dependencies:
    - playwright (async API): Browser automation and screenshots
    - capture.channel: RequestChannel, PageEndpoint

Used By:
    - pipeline: capture_article()
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from article_capture.config import BrowserConfig
from article_capture.core.models import ContentRegion, NoiseBackupEntry, Rect, ViewportInfo

from .channel import PageEndpoint, RequestChannel, TransportError
from .drivers import CaptureTarget, ElementRenderer
from .retry import RateLimitedError

logger = logging.getLogger(__name__)

_tab_ids = itertools.count(1)


class CaptureQuota:
    """
    At most `per_second` captures in any one-second window.

    Mirrors the per-second quota browsers put on their visible-tab
    capture API. A call over quota raises RateLimitedError instead of
    waiting; the retry policy decides how long to back off.

    Example:
        >>> quota = CaptureQuota(2)
        >>> quota.acquire(); quota.acquire()
        >>> quota.acquire()
        Traceback (most recent call last):
        RateLimitedError: ...
    """

    WINDOW = 1.0

    def __init__(
        self,
        per_second: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.per_second = per_second
        self._clock = clock
        self._stamps: Deque[float] = deque()

    def acquire(self) -> None:
        if self.per_second <= 0:
            return
        now = self._clock()
        while self._stamps and now - self._stamps[0] >= self.WINDOW:
            self._stamps.popleft()
        if len(self._stamps) >= self.per_second:
            raise RateLimitedError(
                f"More than {self.per_second:g} captures within {self.WINDOW:g}s"
            )
        self._stamps.append(now)


class PlaywrightTab(CaptureTarget, ElementRenderer):
    """
    One open page.

    Document access goes through the typed channel; captures use
    Page.screenshot in device pixels.
    """

    def __init__(
        self,
        page: Page,
        context: Optional[BrowserContext] = None,
        *,
        channel: Optional[RequestChannel] = None,
        quota: Optional[CaptureQuota] = None,
        request_timeout: float = 30.0,
        render_regions: bool = True,
    ) -> None:
        self.page = page
        self.context = context
        self.channel = channel or RequestChannel(PageEndpoint(page), timeout=request_timeout)
        self.quota = quota or CaptureQuota(0)
        self._render_regions = render_regions
        self._target_id = f"tab-{next(_tab_ids)}"

    @property
    def target_id(self) -> str:
        return self._target_id

    @property
    def supports_element_render(self) -> bool:
        return self._render_regions

    async def snapshot(self) -> Optional[Dict[str, Any]]:
        return await self.channel.snapshot()

    async def measure(self, locator: str) -> Rect:
        return await self.channel.measure(locator)

    async def viewport(self) -> ViewportInfo:
        return await self.channel.viewport()

    async def set_display(
        self, locator: str, value: str, priority: Optional[str] = ""
    ) -> NoiseBackupEntry:
        return await self.channel.set_display(locator, value, priority)

    async def scroll_to(self, y: float) -> float:
        return await self.channel.scroll_to(y)

    async def capture_viewport(self) -> bytes:
        self.quota.acquire()
        return await self.page.screenshot(type="png")

    async def render_region(self, region: ContentRegion) -> bytes:
        self.quota.acquire()
        return await self.page.screenshot(
            type="png",
            full_page=True,
            clip={
                "x": region.left,
                "y": region.top,
                "width": region.width,
                "height": region.height,
            },
        )

    async def close(self) -> None:
        if self.context is not None:
            await self.context.close()
        else:
            await self.page.close()


class BrowserSession:
    """
    Shared handle on one Playwright browser.

    ensure() launches the browser on first use and is safe to call
    concurrently and repeatedly; close() shuts it down and may also be
    called repeatedly. After close() the next ensure() launches again.

    Example:
        >>> session = BrowserSession.shared()
        >>> tab = await session.open_tab("https://example.com/post")
        >>> await session.close()
    """

    _shared: Optional["BrowserSession"] = None

    def __init__(self, config: Optional[BrowserConfig] = None) -> None:
        self.config = config or BrowserConfig()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock: Optional[asyncio.Lock] = None

    @classmethod
    def shared(cls, config: Optional[BrowserConfig] = None) -> "BrowserSession":
        """Process-wide session; config only applies when it is first created."""
        if cls._shared is None:
            cls._shared = cls(config)
        return cls._shared

    @property
    def is_ready(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def ensure(self) -> Browser:
        """Launch the browser if it is not running and return it."""
        async with self._get_lock():
            if self.is_ready:
                return self._browser
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            logger.info(f"Launching Chromium (headless={self.config.headless})")
            self._browser = await self._playwright.chromium.launch(headless=self.config.headless)
            return self._browser

    async def open_tab(self, url: str) -> PlaywrightTab:
        """
        Open url in a fresh browser context.

        Raises:
            TransportError: Navigation failed or timed out
        """
        browser = await self.ensure()
        cfg = self.config
        context = await browser.new_context(
            viewport={"width": cfg.viewport_width, "height": cfg.viewport_height},
            device_scale_factor=cfg.device_scale_factor,
        )
        page = await context.new_page()
        try:
            await page.goto(
                url,
                wait_until=cfg.wait_until,
                timeout=cfg.navigation_timeout * 1000,
            )
        except Exception as e:
            await context.close()
            raise TransportError(f"Could not load {url}: {e}") from e

        logger.info(f"Opened {url}")
        return PlaywrightTab(
            page,
            context,
            quota=CaptureQuota(cfg.captures_per_second),
            request_timeout=cfg.request_timeout,
        )

    async def close(self) -> None:
        """Close the browser and stop Playwright (idempotent)."""
        async with self._get_lock():
            if self._browser is not None:
                await self._browser.close()
                self._browser = None
                logger.debug("Browser closed")
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None

    async def __aenter__(self) -> "BrowserSession":
        await self.ensure()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()
