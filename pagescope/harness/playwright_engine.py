"""Playwright binding of the browser engine boundary.

This module provides the PlaywrightEngine class that launches a browser,
hooks into Playwright page events and translates them 1:1 into the harness
engine callbacks (lifecycle, network, dialogs and console messages).
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Set, Union

from playwright.async_api import (
    Browser,
    BrowserContext,
    ConsoleMessage,
    Dialog,
    Error as PlaywrightError,
    Frame,
    Page,
    Playwright,
    Request,
    Response,
    async_playwright,
)

from ..errors import EngineError
from ..models.run import BrowserEngineType, BrowserSettings
from .engine import (
    LOAD_FAIL,
    LOAD_SUCCESS,
    EngineCallbacks,
    ResourceRequest,
    ResourceResponse,
    ResponseStage,
)

logger = logging.getLogger(__name__)


class PlaywrightEngine:
    """Drives a single Playwright page on behalf of the harness."""

    def __init__(self, settings: Optional[BrowserSettings] = None, page: Optional[Page] = None):
        """Initialize the engine.

        Args:
            settings: Browser launch settings
            page: Already created page to drive (``start`` is then not needed)
        """
        self.settings = settings or BrowserSettings()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = page

        self._callbacks = EngineCallbacks()
        self._responses: Dict[str, ResourceResponse] = {}
        self._user_agent: Optional[str] = self.settings.user_agent
        self._tasks: Set[asyncio.Task] = set()
        self._network_lock: Optional[asyncio.Lock] = None
        self._released = False

    @property
    def user_agent(self) -> Optional[str]:
        return self._user_agent

    async def start(self) -> None:
        """Start Playwright, launch the browser and open a blank page."""
        if self.page is not None:
            logger.warning("Playwright engine already started")
            return

        logger.info(f"Starting browser engine: {self.settings.engine.value}")

        try:
            self.playwright = await async_playwright().start()

            if self.settings.engine == BrowserEngineType.FIREFOX:
                browser_type = self.playwright.firefox
            elif self.settings.engine == BrowserEngineType.WEBKIT:
                browser_type = self.playwright.webkit
            else:
                browser_type = self.playwright.chromium

            self.browser = await browser_type.launch(headless=self.settings.headless)

            context_options: Dict[str, Any] = {}
            if self.settings.user_agent:
                context_options["user_agent"] = self.settings.user_agent
            self.context = await self.browser.new_context(**context_options)
            self.page = await self.context.new_page()

            if self._user_agent is None:
                self._user_agent = await self.page.evaluate("() => navigator.userAgent")

            logger.info(f"Browser launched (headless={self.settings.headless})")

        except PlaywrightError as e:
            logger.error(f"Failed to start browser: {e}")
            await self.release()
            raise EngineError(f"Unable to start {self.settings.engine.value}: {e}") from e

    def bind(self, callbacks: EngineCallbacks) -> None:
        """Bind harness callbacks and hook the page events."""
        if self.page is None:
            raise EngineError("Browser engine not started. Call start() first.")

        self._callbacks = callbacks

        self.page.on("framenavigated", self._on_frame_navigated)
        self.page.on("load", self._on_load)
        self.page.on("request", self._on_request)
        self.page.on("response", self._on_response)
        self.page.on("requestfinished", self._on_request_finished)
        self.page.on("requestfailed", self._on_request_failed)
        self.page.on("dialog", self._on_dialog)
        self.page.on("console", self._on_console)

        logger.debug("Page listeners setup complete")

    async def open(self, url: str) -> None:
        self._callbacks.on_load_started()
        try:
            # only wait for the commit, completion arrives through the "load" event
            await self.page.goto(url, wait_until="commit")
        except PlaywrightError as e:
            logger.warning(f"Navigation to {url} failed: {e}")
            self._callbacks.on_load_finished(LOAD_FAIL)

    async def set_viewport(self, width: int, height: int) -> None:
        await self.page.set_viewport_size({"width": width, "height": height})

    async def evaluate(self, expression: str) -> Any:
        return await self.page.evaluate(expression)

    async def inject_script(self, path: str) -> bool:
        try:
            await self.page.add_script_tag(path=path)
            return True
        except PlaywrightError as e:
            logger.warning(f"Unable to inject {path}: {e}")
            return False

    async def content(self) -> str:
        return await self.page.content()

    async def release(self) -> None:
        """Close page, context, browser and Playwright; only the first call acts."""
        if self._released:
            return
        self._released = True

        for task in list(self._tasks):
            task.cancel()

        try:
            if self.context:
                await self.context.close()
                self.context = None
            elif self.page:
                await self.page.close()

            if self.browser:
                await self.browser.close()
                self.browser = None

            if self.playwright:
                await self.playwright.stop()
                self.playwright = None

            logger.info("Browser engine released")

        except PlaywrightError as e:
            logger.error(f"Error releasing browser engine: {e}")

    # Playwright event handlers

    def _on_frame_navigated(self, frame: Frame) -> None:
        if frame == self.page.main_frame:
            self._callbacks.on_initialized()

    def _on_load(self, _page: Page) -> None:
        self._callbacks.on_load_finished(LOAD_SUCCESS)

    # Network listeners are coroutines because the full header set (cookies
    # included) is only available through all_headers(). The lock keeps the
    # callbacks in the order Playwright emitted the events.

    async def _on_request(self, request: Request) -> None:
        async with self._network():
            resource = await self._create_request(request)
            self._callbacks.on_resource_requested(resource)

    async def _on_response(self, response: Response) -> None:
        async with self._network():
            resource = await self._create_response(response)
            self._responses[resource.id] = resource
            self._callbacks.on_resource_received(resource)

    async def _on_request_finished(self, request: Request) -> None:
        async with self._network():
            request_id = str(id(request))
            started = self._responses.pop(request_id, None)
            if started is not None:
                resource = started.model_copy(update={"stage": ResponseStage.END})
            else:
                resource = ResourceResponse(id=request_id, url=request.url)
            self._callbacks.on_resource_received(resource)

    async def _on_request_failed(self, request: Request) -> None:
        async with self._network():
            request_id = str(id(request))
            started = self._responses.pop(request_id, None)
            self._callbacks.on_resource_received(ResourceResponse(
                id=request_id,
                url=request.url,
                stage=ResponseStage.END,
                status=started.status if started else None,
                headers=started.headers if started else {},
                failed=True,
                error_text=request.failure,
            ))

    def _on_dialog(self, dialog: Dialog) -> None:
        self._callbacks.on_alert(dialog.message)
        # an open dialog blocks the page until it is answered
        self._spawn(dialog.dismiss())

    def _on_console(self, message: ConsoleMessage) -> None:
        self._callbacks.on_console_message(message.text)

    async def _create_request(self, request: Request) -> ResourceRequest:
        headers = await self._all_headers(request)

        is_navigation = False
        try:
            is_navigation = request.is_navigation_request() and request.frame == self.page.main_frame
        except PlaywrightError:
            # service worker requests have no frame
            pass

        return ResourceRequest(
            id=str(id(request)),
            url=request.url,
            method=request.method,
            resource_type=request.resource_type,
            headers=headers,
            is_navigation=is_navigation,
        )

    async def _create_response(self, response: Response) -> ResourceResponse:
        headers = await self._all_headers(response)
        body_size = None
        try:
            body_size = int(headers.get("content-length", ""))
        except ValueError:
            pass

        return ResourceResponse(
            id=str(id(response.request)),
            url=response.url,
            stage=ResponseStage.START,
            status=response.status,
            status_text=response.status_text,
            headers=headers,
            content_type=headers.get("content-type"),
            body_size=body_size,
            redirect_url=headers.get("location"),
        )

    async def _all_headers(self, message: Union[Request, Response]) -> Dict[str, str]:
        """Full header set; the ``headers`` property omits cookie-related ones."""
        try:
            return await message.all_headers()
        except PlaywrightError as e:
            logger.debug(f"Failed to extract all headers, using the filtered set: {e}")
        try:
            return message.headers
        except PlaywrightError as e:
            logger.debug(f"Failed to extract headers: {e}")
            return {}

    def _network(self) -> asyncio.Lock:
        if self._network_lock is None:
            self._network_lock = asyncio.Lock()
        return self._network_lock

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)


async def create_playwright_engine(settings: Optional[BrowserSettings] = None) -> PlaywrightEngine:
    """Create and start a Playwright engine.

    Args:
        settings: Browser launch settings

    Returns:
        Started engine ready to be handed to a Harness
    """
    engine = PlaywrightEngine(settings)
    await engine.start()
    return engine
