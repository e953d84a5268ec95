"""Lifecycle orchestrator driving one instrumented page load.

This module provides the Harness class. It owns the browser engine handle,
the event bus, the metrics store and the request tracker; it translates engine
callbacks into bus events, activates instrumentation modules and guarantees
that exactly one report is produced and the engine is released exactly once.

State machine::

    IDLE -> OPENING -> LOADING -> SETTLING -> REPORTING -> TORN_DOWN

States only move forward and none is entered twice. A timeout may skip
intermediate states (e.g. LOADING -> REPORTING).
"""

import asyncio
import functools
import logging
from enum import IntEnum
from pathlib import Path
from typing import Any, Callable, Optional

import typer

from .. import __version__
from ..errors import ConfigurationError, HarnessError
from ..logging_config import setup_logging, teardown_logging
from ..models.run import Report, RunConfig, SettleReason
from ..report.formatters import render
from .capabilities import Capabilities, PageProxy
from .engine import LOAD_SUCCESS, BrowserEngine, EngineCallbacks, ResourceRequest, ResourceResponse
from .events import Event, EventBus
from .metrics import MetricsStore
from .registry import ModuleRegistry
from .scheduler import AsyncioScheduler, Scheduler
from .tracker import RequestTracker

logger = logging.getLogger(__name__)

HELPER_SCRIPT = Path(__file__).with_name("helper.js")

# upper bound on waiting for page operations started by modules
DRAIN_TIMEOUT_SECONDS = 5.0

Echo = Callable[[str], None]
DoneCallback = Callable[[Report], None]


class HarnessState(IntEnum):
    """Lifecycle states, in the only order they can be entered."""
    IDLE = 0
    OPENING = 1
    LOADING = 2
    SETTLING = 3
    REPORTING = 4
    TORN_DOWN = 5


class Harness:
    """Runs one page through the instrumentation lifecycle."""

    def __init__(
        self,
        config: RunConfig,
        engine: BrowserEngine,
        registry: Optional[ModuleRegistry] = None,
        scheduler: Optional[Scheduler] = None,
        echo: Optional[Echo] = None,
        on_done: Optional[DoneCallback] = None,
    ):
        """Initialize the harness.

        Args:
            config: Run configuration
            engine: Browser engine binding; released by the harness
            registry: Module registry (defaults to the built-in modules)
            scheduler: Timer scheduler (defaults to the running event loop)
            echo: Output sink for the report and the verbose log
            on_done: Called once with the report after a successful teardown
        """
        self.config = config
        self.engine = engine
        self.registry = registry or ModuleRegistry(modules_dir=config.modules_dir)
        self.scheduler = scheduler
        self.on_done = on_done
        self._sink: Echo = echo or typer.echo

        self.state = HarnessState.IDLE
        self.bus = EventBus(strict=config.strict)
        self.metrics = MetricsStore()
        self.page = PageProxy(engine, on_error=self._on_page_error)
        self.tracker: Optional[RequestTracker] = None
        self.report: Optional[Report] = None

        self._done: Optional[asyncio.Future] = None
        self._log_handler = None
        self._load_finished = False
        self._tearing_down = False
        self._start_time = 0.0

    async def run(self) -> Report:
        """Load the page and return the report once it has settled.

        Raises:
            ConfigurationError: No URL configured (nothing is started)
            Exception: Whatever a module handler raised; the run is torn
                down before it propagates
        """
        if self.state != HarnessState.IDLE:
            raise HarnessError("A harness can only run once")
        if not self.config.url:
            raise ConfigurationError("--url argument must be provided!")

        loop = asyncio.get_running_loop()
        self.scheduler = self.scheduler or AsyncioScheduler(loop)
        self._done = loop.create_future()
        self._log_handler = setup_logging(self.config.verbose, self.config.silent, self._sink)
        self._advance(HarnessState.OPENING)

        try:
            await self._open()
        except Exception as e:
            await self._tear_down(error=e)

        return await self._done

    async def _open(self) -> None:
        url = self.config.url
        logger.info(f"pagescope v{__version__}")

        self.tracker = RequestTracker(self.scheduler, self._on_settle)
        self.registry.activate_all(self.config.modules, self._capabilities)
        self.tracker.attach(self.bus)

        self._start_time = self.scheduler.time()
        self.tracker.start(self.config.timeout)

        viewport = self.config.parsed_viewport
        await self.engine.set_viewport(viewport.width, viewport.height)

        logger.info(f"Opening <{url}>...")
        logger.info(f"Using {self.engine.user_agent}")
        logger.info(f"Viewport set to {viewport}")

        self.engine.bind(self._engine_callbacks())

        # last chance for modules to prepare the page
        self.bus.publish(Event.PAGE_BEFORE_OPEN)

        await self.engine.open(url)

        if self._tearing_down or self.state >= HarnessState.REPORTING:
            return
        self._advance(HarnessState.LOADING)
        self.bus.publish(Event.PAGE_OPEN)

    def _capabilities(self, name: str) -> Capabilities:
        return Capabilities(name, self.config, self.bus, self.metrics, self.page, self._sink)

    def _engine_callbacks(self) -> EngineCallbacks:
        return EngineCallbacks(
            on_initialized=self._guarded(self.on_initialized),
            on_load_started=self._guarded(self.on_load_started),
            on_load_finished=self._guarded(self.on_load_finished),
            on_resource_requested=self._guarded(self.on_resource_requested),
            on_resource_received=self._guarded(self.on_resource_received),
            on_alert=self._guarded(self.on_alert),
            on_console_message=self._guarded(self.on_console_message),
        )

    def _guarded(self, callback: Callable[..., None]) -> Callable[..., None]:
        """Drop engine callbacks once reporting has begun; abort the run on errors."""
        @functools.wraps(callback)
        def wrapper(*args: Any) -> None:
            if self._tearing_down or self.state >= HarnessState.REPORTING:
                return
            try:
                callback(*args)
            except Exception as e:
                self._abort(e)
        return wrapper

    # engine callbacks

    def on_initialized(self) -> None:
        self.page.inject_script(str(HELPER_SCRIPT))
        logger.info("Page object initialized")
        self.bus.publish(Event.INIT)

    def on_load_started(self) -> None:
        logger.info("Page loading started")
        self.bus.publish(Event.LOAD_STARTED)

    def on_resource_requested(self, request: ResourceRequest) -> None:
        self.bus.publish(Event.RESOURCE_REQUESTED, request)

    def on_resource_received(self, response: ResourceResponse) -> None:
        self.bus.publish(Event.RESOURCE_RECEIVED, response)

    def on_load_finished(self, status: str) -> None:
        # engines may signal this more than once
        if self._load_finished:
            return
        self._load_finished = True
        self._advance(HarnessState.SETTLING)

        logger.info(f'Page loading finished ("{status}")')

        if status == LOAD_SUCCESS:
            self.bus.publish(Event.LOAD_FINISHED, status)
        else:
            self.metrics.add_notice(f"Page loading failed ({status})")
            self.bus.publish(Event.LOAD_FAILED, status)

        self.tracker.load_finished()

    def on_alert(self, message: str) -> None:
        logger.info(f"Alert: {message}")
        self.bus.publish(Event.ALERT, message)

    def on_console_message(self, message: str) -> None:
        logger.info(f"console.log: {message}")
        self.bus.publish(Event.CONSOLE, message)

    # reporting

    def _on_settle(self, reason: SettleReason) -> None:
        if self._tearing_down or not self._advance(HarnessState.REPORTING):
            return
        asyncio.get_running_loop().create_task(self._report(reason))

    async def _report(self, reason: SettleReason) -> None:
        try:
            if reason == SettleReason.TIMEOUT:
                logger.warning(f"Timeout of {self.config.timeout} s was reached! Reporting partial results")
            else:
                logger.info("No pending requests left, page settled")

            self.bus.publish(Event.REPORT)
            try:
                await asyncio.wait_for(self.page.drain(), timeout=DRAIN_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                logger.warning(f"{self.page.pending} page operation(s) still running, reporting without them")
                self.page.cancel()

            if self._tearing_down:
                return

            metrics, notices = self.metrics.snapshot()
            self.metrics.freeze()

            duration_ms = int((self.scheduler.time() - self._start_time) * 1000)
            logger.info(f"pagescope work done in {duration_ms} ms")

            report = Report(
                url=self.config.url,
                metrics=metrics,
                notices=notices,
                settled_by=reason,
                duration_ms=duration_ms,
            )
            self.bus.publish(Event.RESULTS, report)

            logger.info(f"Formatting results ({self.config.format}) with {len(metrics)} metric(s)...")
            self.echo(render(report, self.config.format))

        except Exception as e:
            await self._tear_down(error=e)
            return

        await self._tear_down(report=report)

    def _on_page_error(self, error: Exception) -> None:
        if self.config.strict:
            self._abort(error)
        else:
            logger.error(f"Page operation callback failed: {error!r}")

    def _abort(self, error: Exception) -> None:
        if self._tearing_down:
            logger.error(f"Error after teardown started: {error}")
            return
        self._tearing_down = True
        logger.error(f"Run aborted: {error}")
        asyncio.get_running_loop().create_task(self._release(error=error))

    async def _tear_down(self, report: Optional[Report] = None, error: Optional[Exception] = None) -> None:
        """Release the engine and complete the run; only the first call acts."""
        if self._tearing_down:
            return
        self._tearing_down = True
        await self._release(report, error)

    async def _release(self, report: Optional[Report] = None, error: Optional[Exception] = None) -> None:
        if self.tracker is not None:
            self.tracker.stop()
        self.page.cancel()

        try:
            await self.engine.release()
        except Exception as e:
            logger.error(f"Error releasing browser engine: {e}")

        self._advance(HarnessState.TORN_DOWN)
        teardown_logging(self._log_handler)
        self._log_handler = None

        if error is not None:
            self._done.set_exception(error)
            return

        self.report = report
        try:
            if self.on_done is not None:
                self.on_done(report)
        except Exception as e:
            self._done.set_exception(e)
            return
        self._done.set_result(report)

    # helpers

    def echo(self, message: str) -> None:
        """Write to the output sink unless silent."""
        if not self.config.silent:
            self._sink(message)

    def _advance(self, state: HarnessState) -> bool:
        if state <= self.state:
            return False
        logger.debug(f"State {self.state.name} -> {state.name}")
        self.state = state
        return True

    def __repr__(self) -> str:
        return f"Harness(url={self.config.url!r}, state={self.state.name})"


async def run_harness(
    config: RunConfig,
    engine: Optional[BrowserEngine] = None,
    **kwargs: Any,
) -> Report:
    """Run the harness, launching a Playwright engine when none is given.

    The URL is checked before any browser is launched.
    """
    if not config.url:
        raise ConfigurationError("--url argument must be provided!")

    if engine is None:
        # Import here so the harness core does not require a browser
        from .playwright_engine import create_playwright_engine
        engine = await create_playwright_engine(config.browser)

    return await Harness(config, engine, **kwargs).run()
