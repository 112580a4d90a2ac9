import io
import math
import sys
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pytest
from PIL import Image

# Add src to sys.path so we can import article_capture
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())

from article_capture.capture.drivers import CaptureTarget, ElementNotFoundError, ElementRenderer  # noqa: E402
from article_capture.capture.retry import RateLimitedError  # noqa: E402
from article_capture.core.models import NoiseBackupEntry, Rect, ViewportInfo  # noqa: E402
from article_capture.detection.dom import DomNode, tree_from_html, tree_from_snapshot  # noqa: E402


ARTICLE_HTML = """
<html>
<head><title>Example post</title></head>
<body>
  <header class="site-header"><nav><a href="/">Home</a> <a href="/blog">Blog</a></nav></header>
  <div id="layout">
    <article class="post">
      <div class="post-content">
        <h1>Long read</h1>
        <p>{p}</p><p>{p}</p><p>{p}</p><p>{p}</p>
        <div class="share-buttons"><a href="#">Tweet</a></div>
        <script>var tracking = 1;</script>
        <p>{p}</p>
      </div>
    </article>
    <aside class="sidebar"><a href="/a">Related one</a><a href="/b">Related two</a></aside>
  </div>
  <footer>Copyright</footer>
</body>
</html>
""".replace("{p}", "Lorem ipsum dolor sit amet, consectetur adipiscing elit. " * 3)


def encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def page_rows_image(width: int, height: int, first_row: int) -> Image.Image:
    """
    RGB image whose row r encodes page row first_row + r.

    R = row % 256, G = row // 256 % 256, B = 0.
    """
    rows = np.arange(first_row, first_row + height, dtype=np.int64)
    arr = np.zeros((height, width, 3), dtype=np.uint8)
    arr[:, :, 0] = (rows % 256)[:, None]
    arr[:, :, 1] = (rows // 256 % 256)[:, None]
    return Image.fromarray(arr, "RGB")


def decode_row(pixel) -> int:
    return int(pixel[0]) + 256 * int(pixel[1])


def node_to_snapshot(node: DomNode) -> Dict:
    return {
        "tag": node.tag,
        "name": node.local_name,
        "id": node.id,
        "cls": node.class_name,
        "role": node.role,
        "itemprop": node.itemprop,
        "textLength": node.text_length,
        "visible": node.visible,
        "children": [node_to_snapshot(c) for c in node.children],
    }


class FakeTab(CaptureTarget):
    """
    In-memory document for driving the capture loop.

    The page is page_height CSS px tall; captures return rasters whose
    rows encode the page row they show (see page_rows_image). Every
    measured locator reports element_rect (page coordinates) shifted by
    the current scroll offset.

    set_display resolves locators like document.querySelector: only the
    structural locators of the snapshot match (case-sensitively), minus
    those listed in removed (elements dropped by page scripts).

    capture_script lists outcomes consumed one per capture call:
    "ok", "rate", or an Exception instance. When exhausted, "ok".
    """

    def __init__(
        self,
        *,
        html: Optional[str] = ARTICLE_HTML,
        snapshot: Optional[Dict] = None,
        page_height: float = 5000,
        viewport_width: int = 800,
        viewport_height: int = 1000,
        pixel_density: float = 1.0,
        scroll_y: float = 0.0,
        element_rect: Optional[Rect] = None,
        capture_script: Optional[List] = None,
        target_id: str = "fake-tab",
        removed: Optional[List[str]] = None,
    ) -> None:
        if snapshot is None and html is not None:
            root = tree_from_html(html)
            snapshot = node_to_snapshot(root) if root is not None else None
        self._snapshot = snapshot
        tree = tree_from_snapshot(snapshot)
        self.element_locators = {n.locator for n in tree.iter_tree()} if tree else set()
        self.removed = set(removed or ())
        self.page_height = page_height
        self.viewport_width = viewport_width
        self.viewport_height = viewport_height
        self.pixel_density = pixel_density
        self.scroll_y = scroll_y
        self.element_rect = element_rect or Rect(top=8, left=0, width=784, height=page_height - 16)
        self.capture_script = list(capture_script or [])
        self._target_id = target_id

        self.display: Dict[str, tuple] = {}
        self.display_calls: List[tuple] = []
        self.scroll_calls: List[float] = []
        self.capture_calls = 0
        self.measured_with_hidden: List[int] = []

    @property
    def target_id(self) -> str:
        return self._target_id

    @property
    def hidden_count(self) -> int:
        return sum(1 for value, _ in self.display.values() if value == "none")

    async def snapshot(self):
        return self._snapshot

    async def measure(self, locator: str) -> Rect:
        self.measured_with_hidden.append(self.hidden_count)
        r = self.element_rect
        return Rect(top=r.top - self.scroll_y, left=r.left, width=r.width, height=r.height)

    async def viewport(self) -> ViewportInfo:
        return ViewportInfo(
            width=self.viewport_width,
            height=self.viewport_height,
            pixel_density=self.pixel_density,
            scroll_y=self.scroll_y,
        )

    async def set_display(self, locator, value, priority=""):
        if locator not in self.element_locators or locator in self.removed:
            raise ElementNotFoundError(f"No element matches {locator!r}", locator=locator)
        previous = self.display.get(locator, ("", ""))
        self.display_calls.append((locator, value, priority))
        self.display[locator] = (value, priority or "")
        return NoiseBackupEntry(locator=locator, display=previous[0], priority=previous[1])

    async def scroll_to(self, y: float) -> float:
        self.scroll_calls.append(y)
        max_scroll = max(0.0, self.page_height - self.viewport_height)
        self.scroll_y = min(max(0.0, y), max_scroll)
        return self.scroll_y

    async def capture_viewport(self) -> bytes:
        self.capture_calls += 1
        outcome = self.capture_script.pop(0) if self.capture_script else "ok"
        if outcome == "rate":
            raise RateLimitedError("MAX_CAPTURE_VISIBLE_TAB_CALLS_PER_SECOND")
        if isinstance(outcome, Exception):
            raise outcome
        d = self.pixel_density
        image = page_rows_image(
            math.ceil(self.viewport_width * d),
            math.ceil(self.viewport_height * d),
            round(self.scroll_y * d),
        )
        return encode_png(image)


class FakeRenderingTab(FakeTab, ElementRenderer):
    """FakeTab that can also render a whole region in one pass."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.render_calls = 0

    async def render_region(self, region) -> bytes:
        self.render_calls += 1
        image = page_rows_image(
            region.final_width,
            region.final_height,
            round(region.top * region.pixel_density),
        )
        return encode_png(image)


class SleepRecorder:
    """Awaitable sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.delays)


# Common test fixtures
@pytest.fixture
def article_html() -> str:
    return ARTICLE_HTML


@pytest.fixture
def fake_tab_factory():
    """Factory for FakeTab / FakeRenderingTab instances."""
    def _create(*, renders: bool = False, **kwargs):
        cls = FakeRenderingTab if renders else FakeTab
        return cls(**kwargs)
    return _create


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def png_factory():
    """Factory for encoded PNG rasters."""
    def _create(width: int = 200, height: int = 100, color="white", first_row: Optional[int] = None):
        if first_row is not None:
            return encode_png(page_rows_image(width, height, first_row))
        return encode_png(Image.new("RGB", (width, height), color=color))
    return _create


@pytest.fixture
def row_decoder():
    return decode_row
