"""
Tests for the typed request channel and the Playwright page endpoint.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from article_capture.capture.channel import (
    ChannelEndpoint,
    ElementNotFoundError,
    ErrorResponse,
    MeasureRequest,
    MeasureResponse,
    PageEndpoint,
    RequestChannel,
    ScrollResponse,
    SetDisplayRequest,
    SnapshotResponse,
    TransportError,
    ViewportRequest,
)
from article_capture.core.models import Rect


class StubEndpoint(ChannelEndpoint):
    def __init__(self, reply=None, error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.requests = []

    async def handle(self, request):
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class TestRequestChannel:
    def test_matching_response_is_returned(self):
        endpoint = StubEndpoint(reply=ScrollResponse(scroll_y=250.0))
        channel = RequestChannel(endpoint)

        assert asyncio.run(channel.scroll_to(300)) == 250.0
        assert endpoint.requests[0].y == 300

    def test_timeout_raises_transport_error(self):
        channel = RequestChannel(StubEndpoint(reply=SnapshotResponse(tree=None), delay=5), timeout=0.01)

        with pytest.raises(TransportError, match="timed out"):
            asyncio.run(channel.snapshot())

    def test_error_response_raises_transport_error(self):
        channel = RequestChannel(StubEndpoint(reply=ErrorResponse("No element matches 'x'")))

        with pytest.raises(TransportError, match="No element matches") as exc_info:
            asyncio.run(channel.measure("x"))

        assert not isinstance(exc_info.value, ElementNotFoundError)

    def test_missing_element_raises_element_not_found(self):
        reply = ErrorResponse("No element matches 'x'", missing_locator="x")
        channel = RequestChannel(StubEndpoint(reply=reply))

        with pytest.raises(ElementNotFoundError) as exc_info:
            asyncio.run(channel.set_display("x", "none", "important"))

        assert exc_info.value.locator == "x"
        assert isinstance(exc_info.value, TransportError)

    def test_endpoint_exception_is_wrapped(self):
        channel = RequestChannel(StubEndpoint(error=RuntimeError("page crashed")))

        with pytest.raises(TransportError, match="page crashed") as exc_info:
            asyncio.run(channel.viewport())

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_mismatched_response_type_raises(self):
        channel = RequestChannel(StubEndpoint(reply=ScrollResponse(scroll_y=0.0)))

        with pytest.raises(TransportError, match="expected MeasureResponse"):
            asyncio.run(channel.request(MeasureRequest("html")))

    def test_unknown_request_kind_raises(self):
        channel = RequestChannel(StubEndpoint())

        with pytest.raises(TransportError, match="Unknown request kind"):
            asyncio.run(channel.request(object()))


class TestPageEndpoint:
    @pytest.fixture
    def page(self):
        page = MagicMock()
        page.evaluate = AsyncMock()
        return page

    def test_measure_maps_bounding_box(self, page):
        page.evaluate.return_value = {"top": -20.5, "left": 8, "width": 640, "height": 3000}

        response = asyncio.run(PageEndpoint(page).handle(MeasureRequest("html > body:nth-child(2)")))

        assert isinstance(response, MeasureResponse)
        assert response.rect == Rect(top=-20.5, left=8, width=640, height=3000)
        assert page.evaluate.await_args.args[1] == "html > body:nth-child(2)"

    def test_missing_element_is_error_response(self, page):
        page.evaluate.return_value = None

        response = asyncio.run(PageEndpoint(page).handle(MeasureRequest("html > div:nth-child(9)")))

        assert isinstance(response, ErrorResponse)
        assert response.missing_locator == "html > div:nth-child(9)"

    def test_set_display_on_missing_element_names_locator(self, page):
        page.evaluate.return_value = None
        locator = "html > body:nth-child(2) > svg:nth-child(1) > foreignObject:nth-child(1)"

        response = asyncio.run(PageEndpoint(page).handle(SetDisplayRequest(locator, "none")))

        assert response.missing_locator == locator

    def test_viewport_maps_fields(self, page):
        page.evaluate.return_value = {
            "width": 1280,
            "height": 800,
            "pixelDensity": 2,
            "scrollY": 640,
        }
        channel = RequestChannel(PageEndpoint(page))

        viewport = asyncio.run(channel.viewport())

        assert (viewport.width, viewport.height) == (1280, 800)
        assert viewport.pixel_density == 2.0
        assert viewport.scroll_y == 640.0

    def test_set_display_returns_previous_state(self, page):
        page.evaluate.return_value = {"display": "flex", "priority": ""}
        channel = RequestChannel(PageEndpoint(page))

        previous = asyncio.run(channel.set_display("html > aside:nth-child(3)", "none", "important"))

        assert previous.locator == "html > aside:nth-child(3)"
        assert previous.display == "flex"
        assert page.evaluate.await_args.args[1] == ["html > aside:nth-child(3)", "none", "important"]

    def test_playwright_failure_becomes_transport_error(self, page):
        page.evaluate.side_effect = RuntimeError("Execution context was destroyed")
        channel = RequestChannel(PageEndpoint(page))

        with pytest.raises(TransportError, match="context was destroyed"):
            asyncio.run(channel.request(ViewportRequest()))
