"""Restricted surface handed to instrumentation modules.

A module never sees the orchestrator, the raw browser engine or another
module. It receives a ``Capabilities`` object exposing events, metrics,
diagnostics and a proxied set of page operations, and nothing else.
"""

import asyncio
import importlib
import logging
from types import ModuleType
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from ..logging_config import get_logger
from ..models.run import RunConfig
from .engine import BrowserEngine
from .events import EventBus, EventName, Handler
from .metrics import MetricsStore

logger = logging.getLogger(__name__)

HELPERS_PACKAGE = "pagescope.lib"

Callback = Optional[Callable[[Any], None]]
ErrorHook = Callable[[Exception], None]


class PageProxy:
    """Runs page operations as tasks tracked until the report snapshot.

    A failing page operation only logs a warning and skips its callback. An
    exception raised by the callback itself is handed to ``on_error`` as soon
    as the task finishes, or logged when no hook is set.
    """

    def __init__(self, engine: BrowserEngine, on_error: Optional[ErrorHook] = None):
        self._engine = engine
        self._on_error = on_error
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def evaluate(self, expression: str, callback: Callback = None) -> asyncio.Task:
        return self._track(self._engine.evaluate(expression), callback)

    def inject_script(self, path: str, callback: Callback = None) -> asyncio.Task:
        return self._track(self._engine.inject_script(path), callback)

    def content(self, callback: Callback = None) -> asyncio.Task:
        return self._track(self._engine.content(), callback)

    async def drain(self) -> None:
        """Wait for every tracked operation, including ones started meanwhile."""
        while self._tasks:
            # callback errors were already routed to the error hook
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    def _track(self, operation: Awaitable[Any], callback: Callback) -> asyncio.Task:
        async def run() -> Any:
            try:
                value = await operation
            except Exception as e:
                # a page-side failure yields no value, like a script returning null
                logger.warning(f"Page operation failed: {e}")
                return None
            if callback is not None:
                callback(value)
            return value

        task = asyncio.get_running_loop().create_task(run())
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        if self._on_error is None:
            logger.error(f"Page operation callback failed: {error!r}")
            return
        self._on_error(error)


class Capabilities:
    """Everything an activated module is allowed to use."""

    __slots__ = ("_name", "_config", "_bus", "_metrics", "_page", "_echo", "_logger")

    def __init__(
        self,
        name: str,
        config: RunConfig,
        bus: EventBus,
        metrics: MetricsStore,
        page: PageProxy,
        echo: Callable[[str], None],
    ):
        self._name = name
        self._config = config
        self._bus = bus
        self._metrics = metrics
        self._page = page
        self._echo = echo
        self._logger = get_logger(f"modules.{name}")

    # run configuration (read-only)

    @property
    def url(self) -> Optional[str]:
        return self._config.url

    @property
    def config(self) -> RunConfig:
        return self._config

    @property
    def params(self) -> Dict[str, Any]:
        return self._config.params

    # events

    def on(self, event: EventName, handler: Handler) -> None:
        self._bus.subscribe(event, handler)

    def once(self, event: EventName, handler: Handler) -> None:
        self._bus.subscribe_once(event, handler)

    def emit(self, event: EventName, *args: Any) -> None:
        self._bus.publish(event, *args)

    # metrics

    def set_metric(self, name: str, value: Any = 0) -> None:
        self._metrics.set_metric(name, value)

    def set_metric_evaluate(self, name: str, expression: str) -> asyncio.Task:
        """Set ``name`` to the value of ``expression`` evaluated in the page."""
        return self._page.evaluate(expression, lambda value: self._metrics.set_metric(name, value))

    def incr_metric(self, name: str, delta: float = 1) -> None:
        self._metrics.incr_metric(name, delta)

    # diagnostics

    def add_notice(self, message: str = "") -> None:
        self._metrics.add_notice(message)

    def log(self, message: Any) -> None:
        """Diagnostic message, shown in verbose mode only."""
        self._logger.info(message)

    def echo(self, message: str) -> None:
        """Print to the output sink unless the run is silent."""
        if not self._config.silent:
            self._echo(message)

    # page

    def evaluate(self, expression: str, callback: Callback = None) -> asyncio.Task:
        return self._page.evaluate(expression, callback)

    def inject_js(self, path: str, callback: Callback = None) -> asyncio.Task:
        return self._page.inject_script(path, callback)

    def get_page_content(self, callback: Callback = None) -> asyncio.Task:
        return self._page.content(callback)

    # helpers

    def require(self, name: str) -> ModuleType:
        """Import a shared helper library from ``pagescope.lib``."""
        if not name or name.startswith((".", "_")) or "/" in name:
            raise ImportError(f"Invalid helper name: {name!r}")
        return importlib.import_module(f"{HELPERS_PACKAGE}.{name}")

    def __repr__(self) -> str:
        return f"Capabilities(module={self._name!r}, url={self._config.url!r})"


CapabilitiesFactory = Callable[[str], Capabilities]

