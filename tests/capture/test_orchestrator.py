"""
Tests for the capture state machine.

Runs the orchestrator end to end against an in-memory tab: detection on
the tab's snapshot, noise hiding, scroll capture, stitching and optional
pagination.
"""

import asyncio

import pytest

from article_capture.capture.orchestrator import CaptureOrchestrator, CaptureState
from article_capture.capture.resources import TargetLock
from article_capture.capture.retry import CaptureError, CaptureInProgressError
from article_capture.config import ArticleCaptureConfig, CaptureConfig, DetectionConfig, PageConfig
from article_capture.core.models import Rect
from article_capture.detection import DetectionError, select_first, tree_from_html

SCROLL_CONFIG = ArticleCaptureConfig(
    capture=CaptureConfig(settle_delay=0, capture_interval=0, strategy="scroll"),
)


@pytest.fixture
def orchestrator_factory(sleep_recorder):
    def _create(tab, config=SCROLL_CONFIG, observer=None, lock=None):
        return CaptureOrchestrator(
            tab,
            config,
            observer=observer,
            lock=lock or TargetLock(),
            sleep=sleep_recorder,
        )
    return _create


class TestSuccessfulRun:
    def test_full_run_produces_surface_and_restores_page(self, fake_tab_factory, orchestrator_factory):
        # Arrange
        tab = fake_tab_factory()
        orchestrator = orchestrator_factory(tab)

        # Act
        result = asyncio.run(orchestrator.run())

        # Assert
        assert orchestrator.state is CaptureState.DONE
        assert result.detection.method == "semantic"
        assert result.strategy == "scroll"
        assert result.region.top == 0
        assert result.region.height == 5000
        assert [s.dest_y for s in result.segments] == [0, 1000, 2000, 3000, 4000]
        assert result.surface.size == (800, 5000)
        assert result.pages is None
        assert len(result.noise_locators) == 2
        # Noise restored, scroll restored
        assert tab.hidden_count == 0
        assert tab.scroll_y == 0
        assert tab.scroll_calls[-1] == 0

    def test_each_scroll_step_is_timed(self, fake_tab_factory, orchestrator_factory):
        orchestrator = orchestrator_factory(fake_tab_factory())

        result = asyncio.run(orchestrator.run())

        steps = result.timing.step_timings
        assert list(steps) == [f"step-{k}" for k in range(1, 6)]
        assert all(set(phases) == {"scroll", "capture"} for phases in steps.values())
        assert "Slowest steps:" in result.timing.summary()

    def test_region_is_measured_after_noise_is_hidden(self, fake_tab_factory, orchestrator_factory):
        tab = fake_tab_factory()

        asyncio.run(orchestrator_factory(tab).run())

        assert tab.measured_with_hidden == [2]

    def test_progress_is_monotonic_and_complete(self, fake_tab_factory, orchestrator_factory):
        events = []
        tab = fake_tab_factory()

        asyncio.run(orchestrator_factory(tab, observer=events.append).run())

        assert [(e.label, e.percent) for e in events] == [
            ("Detecting article", 10),
            ("Article detected", 20),
            ("Capturing (1/5)", 32),
            ("Capturing (2/5)", 44),
            ("Capturing (3/5)", 56),
            ("Capturing (4/5)", 68),
            ("Capturing (5/5)", 80),
            ("Processing image", 80),
            ("Done", 100),
        ]

    def test_broken_observer_does_not_fail_the_run(self, fake_tab_factory, orchestrator_factory):
        def broken(event):
            raise RuntimeError("observer down")

        orchestrator = orchestrator_factory(fake_tab_factory(), observer=broken)

        result = asyncio.run(orchestrator.run())

        assert orchestrator.state is CaptureState.DONE
        assert result.surface is not None

    def test_paginate_and_save(self, fake_tab_factory, orchestrator_factory):
        saved = []
        orchestrator = orchestrator_factory(fake_tab_factory())

        def save(result):
            saved.append(result)
            return "artifact.pdf"

        result = asyncio.run(orchestrator.run(paginate_pages=True, save=save))

        assert len(result.pages) == 5
        assert result.page_slices == [page.slice for page in result.pages]
        assert result.artifact == "artifact.pdf"
        assert saved == [result]
        assert ("Saving", 95) in [(e.label, e.percent) for e in orchestrator.progress.history]
        assert set(result.timing.phase_timings) == {"detect", "capture", "stitch", "paginate", "save"}

    def test_clip_mode_paginates_windows_without_strips(
        self, fake_tab_factory, orchestrator_factory
    ):
        config = ArticleCaptureConfig(capture=SCROLL_CONFIG.capture, page=PageConfig(mode="clip"))
        orchestrator = orchestrator_factory(fake_tab_factory(), config=config)
        states = []

        def save(result):
            states.append(orchestrator.state)
            return "artifact.pdf"

        result = asyncio.run(orchestrator.run(paginate_pages=True, save=save))

        assert states == [CaptureState.PAGINATING]
        assert result.pages is None
        assert [s.index for s in result.page_slices] == [0, 1, 2, 3, 4]
        assert result.page_slices[-1].source_y_end == result.surface.height
        assert "paginate" in result.timing.phase_timings

    def test_direct_render_when_supported(self, fake_tab_factory, orchestrator_factory):
        tab = fake_tab_factory(renders=True)
        config = ArticleCaptureConfig(capture=CaptureConfig(settle_delay=0, capture_interval=0))

        result = asyncio.run(orchestrator_factory(tab, config=config).run())

        assert result.strategy == "direct"
        assert len(result.segments) == 1
        assert tab.render_calls == 1
        assert tab.capture_calls == 0

    def test_svg_noise_child_is_hidden_by_exact_locator(
        self, fake_tab_factory, orchestrator_factory, article_html
    ):
        # Arrange: share buttons wrapped in inline SVG foreign content
        html = article_html.replace(
            '<div class="share-buttons"><a href="#">Tweet</a></div>',
            '<svg><foreignObject><div class="share-buttons"><a href="#">Tweet</a></div>'
            "</foreignObject></svg>",
        )
        tab = fake_tab_factory(html=html)
        orchestrator = orchestrator_factory(tab)

        # Act
        result = asyncio.run(orchestrator.run())

        # Assert
        assert orchestrator.state is CaptureState.DONE
        share = [loc for loc in result.noise_locators if "foreignObject" in loc]
        assert len(share) == 1
        assert share[0].endswith("> svg:nth-child(6) > foreignObject:nth-child(1) > div:nth-child(1)")
        assert (share[0], "none", "important") in tab.display_calls
        assert tab.measured_with_hidden == [2]
        assert tab.hidden_count == 0

    def test_noise_removed_by_page_scripts_is_skipped(
        self, fake_tab_factory, orchestrator_factory, article_html, caplog
    ):
        share = select_first(tree_from_html(article_html), ".share-buttons").locator
        tab = fake_tab_factory(removed=[share])
        orchestrator = orchestrator_factory(tab)

        with caplog.at_level("WARNING"):
            result = asyncio.run(orchestrator.run())

        assert orchestrator.state is CaptureState.DONE
        assert share in result.noise_locators
        assert share not in [call[0] for call in tab.display_calls]
        assert tab.measured_with_hidden == [1]
        assert tab.hidden_count == 0
        assert "no longer present" in caplog.text

    def test_noise_hiding_can_be_disabled(self, fake_tab_factory, orchestrator_factory):
        tab = fake_tab_factory()
        config = ArticleCaptureConfig(
            detection=DetectionConfig(hide_noise=False),
            capture=SCROLL_CONFIG.capture,
        )

        result = asyncio.run(orchestrator_factory(tab, config=config).run())

        assert result.noise_locators == []
        assert tab.display_calls == []


class TestFailures:
    def test_permanent_rate_limit_restores_noise_and_scroll(
        self, fake_tab_factory, orchestrator_factory, sleep_recorder
    ):
        # Arrange: second viewport capture is rate limited on every attempt
        tab = fake_tab_factory(scroll_y=123, capture_script=["ok"] + ["rate"] * 5)
        orchestrator = orchestrator_factory(tab)

        # Act
        with pytest.raises(CaptureError):
            asyncio.run(orchestrator.run())

        # Assert
        assert orchestrator.state is CaptureState.ERROR
        assert isinstance(orchestrator.error, CaptureError)
        assert tab.hidden_count == 0
        assert all(state == ("", "") for state in tab.display.values())
        assert tab.scroll_y == 123
        assert sleep_recorder.delays == [2.0, 4.0, 8.0, 16.0]

    def test_busy_target_is_rejected(self, fake_tab_factory, orchestrator_factory):
        lock = TargetLock()
        tab = fake_tab_factory()
        orchestrator = orchestrator_factory(tab, lock=lock)

        with lock.hold(tab.target_id):
            with pytest.raises(CaptureInProgressError):
                asyncio.run(orchestrator.run())

        assert orchestrator.state is CaptureState.IDLE
        assert tab.scroll_calls == []
        assert tab.display_calls == []

    def test_document_without_root_fails_detection(self, fake_tab_factory, orchestrator_factory):
        lock = TargetLock()
        tab = fake_tab_factory(html=None)
        orchestrator = orchestrator_factory(tab, lock=lock)

        with pytest.raises(DetectionError):
            asyncio.run(orchestrator.run())

        assert orchestrator.state is CaptureState.ERROR
        assert not lock.is_held(tab.target_id)

    def test_region_outside_document_captures_nothing(self, fake_tab_factory, orchestrator_factory):
        tab = fake_tab_factory(element_rect=Rect(top=10000, left=0, width=784, height=500))

        with pytest.raises(CaptureError, match="No segments"):
            asyncio.run(orchestrator_factory(tab).run())

        assert tab.hidden_count == 0

    def test_orchestrator_is_single_use(self, fake_tab_factory, orchestrator_factory):
        orchestrator = orchestrator_factory(fake_tab_factory())
        asyncio.run(orchestrator.run())

        with pytest.raises(RuntimeError, match="single-use"):
            asyncio.run(orchestrator.run())
