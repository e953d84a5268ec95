"""Unit tests for the Playwright engine binding."""

import asyncio
from dataclasses import fields
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

from pagescope.errors import EngineError
from pagescope.harness.engine import LOAD_FAIL, LOAD_SUCCESS, EngineCallbacks, ResponseStage
from pagescope.harness.playwright_engine import PlaywrightEngine
from pagescope.models.run import BrowserSettings


class TestPlaywrightEngine:
    """Tests for PlaywrightEngine class."""

    @pytest.fixture
    def mock_page(self):
        """Mock Playwright page."""
        page = AsyncMock()
        page.on = MagicMock()
        page.main_frame = MagicMock()
        return page

    @pytest.fixture
    def callbacks(self):
        return EngineCallbacks(**{field.name: MagicMock() for field in fields(EngineCallbacks)})

    @pytest.fixture
    def engine(self, mock_page, callbacks):
        engine = PlaywrightEngine(BrowserSettings(user_agent="Test/1.0"), page=mock_page)
        engine.bind(callbacks)
        return engine

    @pytest.fixture
    def mock_request(self, mock_page):
        """Mock Playwright request."""
        request = MagicMock()
        request.url = "https://example.com/"
        request.method = "GET"
        request.resource_type = "document"
        request.headers = {"accept": "text/html"}
        request.all_headers = AsyncMock(return_value={"accept": "text/html", "cookie": "sid=1; lang=en"})
        request.is_navigation_request.return_value = True
        request.frame = mock_page.main_frame
        request.failure = None
        return request

    @pytest.fixture
    def mock_response(self, mock_request):
        """Mock Playwright response."""
        response = MagicMock()
        response.url = "https://example.com/"
        response.status = 200
        response.status_text = "OK"
        response.headers = {"content-type": "text/html", "content-length": "1256"}
        response.all_headers = AsyncMock(return_value={
            "content-type": "text/html",
            "content-length": "1256",
            "set-cookie": "sid=1; Path=/\nlang=en",
        })
        response.request = mock_request
        return response

    def test_bind_registers_page_listeners(self, engine, mock_page):
        expected_events = [
            "framenavigated", "load", "request", "response",
            "requestfinished", "requestfailed", "dialog", "console",
        ]
        actual_events = [call.args[0] for call in mock_page.on.call_args_list]
        assert actual_events == expected_events

    def test_bind_requires_started_engine(self, callbacks):
        with pytest.raises(EngineError):
            PlaywrightEngine().bind(callbacks)

    def test_user_agent_from_settings(self, engine):
        assert engine.user_agent == "Test/1.0"

    @pytest.mark.asyncio
    async def test_request_translation(self, engine, callbacks, mock_request):
        await engine._on_request(mock_request)

        request = callbacks.on_resource_requested.call_args.args[0]
        assert request.id == str(id(mock_request))
        assert request.url == "https://example.com/"
        assert request.resource_type == "document"
        assert request.headers == {"accept": "text/html", "cookie": "sid=1; lang=en"}
        assert request.is_navigation is True
        mock_request.all_headers.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cookie_headers_reach_callbacks(self, engine, callbacks, mock_request, mock_response):
        await engine._on_request(mock_request)
        await engine._on_response(mock_response)

        request = callbacks.on_resource_requested.call_args.args[0]
        response = callbacks.on_resource_received.call_args.args[0]
        assert request.headers["cookie"] == "sid=1; lang=en"
        assert response.headers["set-cookie"] == "sid=1; Path=/\nlang=en"

    @pytest.mark.asyncio
    async def test_headers_fall_back_to_filtered_set(self, engine, callbacks, mock_request):
        mock_request.all_headers.side_effect = PlaywrightError("Target closed")

        await engine._on_request(mock_request)

        assert callbacks.on_resource_requested.call_args.args[0].headers == {"accept": "text/html"}

    @pytest.mark.asyncio
    async def test_network_callbacks_keep_event_order(self, engine, callbacks, mock_request, mock_response):
        order = []
        callbacks.on_resource_requested.side_effect = lambda request: order.append("request")
        callbacks.on_resource_received.side_effect = lambda response: order.append(response.stage)

        await asyncio.gather(
            engine._on_request(mock_request),
            engine._on_response(mock_response),
            engine._on_request_finished(mock_request),
        )

        assert order == ["request", ResponseStage.START, ResponseStage.END]

    @pytest.mark.asyncio
    async def test_subframe_request_is_not_navigation(self, engine, callbacks, mock_request):
        mock_request.frame = MagicMock()

        await engine._on_request(mock_request)

        assert callbacks.on_resource_requested.call_args.args[0].is_navigation is False

    @pytest.mark.asyncio
    async def test_response_then_finished(self, engine, callbacks, mock_request, mock_response):
        await engine._on_response(mock_response)
        await engine._on_request_finished(mock_request)

        started, finished = [call.args[0] for call in callbacks.on_resource_received.call_args_list]
        assert started.stage == ResponseStage.START
        assert started.body_size == 1256
        assert started.content_type == "text/html"
        assert finished.stage == ResponseStage.END
        assert finished.id == started.id
        assert finished.status == 200

    @pytest.mark.asyncio
    async def test_request_failed(self, engine, callbacks, mock_request):
        mock_request.failure = "net::ERR_CONNECTION_REFUSED"

        await engine._on_request_failed(mock_request)

        response = callbacks.on_resource_received.call_args.args[0]
        assert response.failed is True
        assert response.stage == ResponseStage.END
        assert response.error_text == "net::ERR_CONNECTION_REFUSED"

    def test_lifecycle_events(self, engine, callbacks, mock_page):
        engine._on_frame_navigated(MagicMock())
        callbacks.on_initialized.assert_not_called()

        engine._on_frame_navigated(mock_page.main_frame)
        engine._on_load(mock_page)

        callbacks.on_initialized.assert_called_once()
        callbacks.on_load_finished.assert_called_once_with(LOAD_SUCCESS)

    def test_console_message(self, engine, callbacks):
        message = MagicMock()
        message.text = "hello"

        engine._on_console(message)

        callbacks.on_console_message.assert_called_once_with("hello")

    @pytest.mark.asyncio
    async def test_dialog_is_reported_and_dismissed(self, engine, callbacks):
        dialog = MagicMock()
        dialog.message = "Hi!"
        dialog.dismiss = AsyncMock()

        engine._on_dialog(dialog)
        for task in list(engine._tasks):
            await task

        callbacks.on_alert.assert_called_once_with("Hi!")
        dialog.dismiss.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_open(self, engine, callbacks, mock_page):
        await engine.open("https://example.com")

        callbacks.on_load_started.assert_called_once()
        mock_page.goto.assert_awaited_once_with("https://example.com", wait_until="commit")
        callbacks.on_load_finished.assert_not_called()

    @pytest.mark.asyncio
    async def test_open_failure_reports_failed_load(self, engine, callbacks, mock_page):
        mock_page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

        await engine.open("https://nope.invalid")

        callbacks.on_load_finished.assert_called_once_with(LOAD_FAIL)

    @pytest.mark.asyncio
    async def test_page_commands(self, engine, mock_page):
        mock_page.evaluate.return_value = 3
        mock_page.content.return_value = "<html></html>"

        await engine.set_viewport(800, 600)
        assert await engine.evaluate("() => 3") == 3
        assert await engine.content() == "<html></html>"
        assert await engine.inject_script("/tmp/helper.js") is True

        mock_page.set_viewport_size.assert_awaited_once_with({"width": 800, "height": 600})
        mock_page.add_script_tag.assert_awaited_once_with(path="/tmp/helper.js")

    @pytest.mark.asyncio
    async def test_inject_failure(self, engine, mock_page):
        mock_page.add_script_tag.side_effect = PlaywrightError("blocked by CSP")

        assert await engine.inject_script("/tmp/helper.js") is False

    @pytest.mark.asyncio
    async def test_release_only_once(self, engine, mock_page):
        await engine.release()
        await engine.release()

        mock_page.close.assert_awaited_once()
