"""Shared test fixtures and configuration for pagescope tests."""

import asyncio
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pagescope.harness.engine import (
    LOAD_SUCCESS,
    EngineCallbacks,
    ResourceRequest,
    ResourceResponse,
    ResponseStage,
)
from pagescope.harness.events import EventBus
from pagescope.harness.metrics import MetricsStore
from pagescope.harness.registry import ModuleRegistry
from pagescope.models.run import RunConfig


class _Timer:
    def __init__(self, when: float, seq: int, callback: Callable[[], Any]):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock: timers only fire when the test advances time."""

    def __init__(self):
        self.now = 0.0
        self._timers: List[_Timer] = []
        self._seq = 0

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], Any]) -> _Timer:
        self._seq += 1
        timer = _Timer(self.now + delay, self._seq, callback)
        self._timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.when, t.seq))
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target

    @property
    def pending(self) -> int:
        return len([t for t in self._timers if not t.cancelled])


class FakeEngine:
    """Scripted browser engine recording the commands it receives."""

    def __init__(self, user_agent: str = "FakeBrowser/1.0", on_open: Optional[Callable[["FakeEngine"], None]] = None):
        self._user_agent = user_agent
        self.on_open = on_open
        self.callbacks = EngineCallbacks()
        self.calls: List[Any] = []
        self.evaluate_results: Dict[str, Any] = {}
        self.html = "<html><head></head><body><p>Hello</p></body></html>"
        self.release_count = 0

    @property
    def user_agent(self) -> str:
        return self._user_agent

    def bind(self, callbacks: EngineCallbacks) -> None:
        self.calls.append("bind")
        self.callbacks = callbacks

    async def open(self, url: str) -> None:
        self.calls.append(("open", url))
        self.callbacks.on_load_started()
        self.callbacks.on_initialized()
        if self.on_open is not None:
            self.on_open(self)

    async def set_viewport(self, width: int, height: int) -> None:
        self.calls.append(("set_viewport", width, height))

    async def evaluate(self, expression: str) -> Any:
        self.calls.append(("evaluate", expression))
        result = self.evaluate_results.get(expression)
        if isinstance(result, Exception):
            raise result
        return result

    async def inject_script(self, path: str) -> bool:
        self.calls.append(("inject_script", path))
        return True

    async def content(self) -> str:
        self.calls.append("content")
        return self.html

    async def release(self) -> None:
        self.calls.append("release")
        self.release_count += 1

    # scripted page activity

    def request(self, request_id: str, url: str, **kwargs: Any) -> None:
        self.callbacks.on_resource_requested(ResourceRequest(id=request_id, url=url, **kwargs))

    def respond(self, request_id: str, url: str, **kwargs: Any) -> None:
        kwargs.setdefault("stage", ResponseStage.END)
        kwargs.setdefault("status", 200)
        self.callbacks.on_resource_received(ResourceResponse(id=request_id, url=url, **kwargs))

    def finish(self, status: str = LOAD_SUCCESS) -> None:
        self.callbacks.on_load_finished(status)

    def alert(self, message: str) -> None:
        self.callbacks.on_alert(message)

    def console(self, message: str) -> None:
        self.callbacks.on_console_message(message)


async def spin(turns: int = 10) -> None:
    """Let pending tasks on the event loop run."""
    for _ in range(turns):
        await asyncio.sleep(0)


@pytest.fixture
def scheduler():
    """Virtual clock scheduler."""
    return ManualScheduler()


@pytest.fixture
def engine():
    """Scripted fake browser engine."""
    return FakeEngine()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def metrics():
    return MetricsStore()


@pytest.fixture
def output():
    """Collects everything the harness echoes."""
    return []


@pytest.fixture
def make_config():
    """Factory for run configurations."""
    def _make(**kwargs: Any) -> RunConfig:
        kwargs.setdefault("url", "https://example.com")
        return RunConfig(**kwargs)
    return _make


@pytest.fixture
def empty_registry(tmp_path):
    """Registry resolving only core modules and explicitly registered ones."""
    return ModuleRegistry(package="pagescope_no_such_package", modules_dir=tmp_path)
