"""Instrumentation harness core.

Main Components:
- Event Bus: synchronous publish/subscribe hub (events.py)
- Metrics Store: metrics and notices of a run (metrics.py)
- Module Registry: instrumentation module loading and activation (registry.py)
- Request Tracker: pending-request counting and settle detection (tracker.py)
- Harness: lifecycle orchestration and report emission (orchestrator.py)
- Playwright Engine: browser engine binding (playwright_engine.py)

Usage:
    from pagescope.harness import run_harness
    from pagescope.models import RunConfig

    report = await run_harness(RunConfig(url="https://example.com"))
"""

from .capabilities import Capabilities, PageProxy
from .engine import (
    LOAD_FAIL,
    LOAD_SUCCESS,
    BrowserEngine,
    EngineCallbacks,
    ResourceRequest,
    ResourceResponse,
    ResponseStage,
)
from .events import Event, EventBus
from .metrics import MetricsStore
from .orchestrator import Harness, HarnessState, run_harness
from .registry import (
    CORE_MODULES,
    ActivationResult,
    ActivationStatus,
    FunctionModule,
    InstrumentationModule,
    ModuleRegistry,
)
from .scheduler import AsyncioScheduler, Scheduler
from .tracker import DEBOUNCE_SECONDS, RequestTracker

__all__ = [
    "ActivationResult",
    "ActivationStatus",
    "AsyncioScheduler",
    "BrowserEngine",
    "Capabilities",
    "CORE_MODULES",
    "DEBOUNCE_SECONDS",
    "EngineCallbacks",
    "Event",
    "EventBus",
    "FunctionModule",
    "Harness",
    "HarnessState",
    "InstrumentationModule",
    "LOAD_FAIL",
    "LOAD_SUCCESS",
    "MetricsStore",
    "ModuleRegistry",
    "PageProxy",
    "RequestTracker",
    "ResourceRequest",
    "ResourceResponse",
    "ResponseStage",
    "Scheduler",
    "run_harness",
]
