"""Unit tests for the capability object handed to modules."""

import asyncio
import logging

import pytest

from pagescope.errors import ConfigurationError
from pagescope.harness.capabilities import Capabilities, PageProxy
from pagescope.harness.events import Event
from pagescope.harness.orchestrator import run_harness
from pagescope.models.run import RunConfig


@pytest.fixture
def page(engine):
    return PageProxy(engine)


@pytest.fixture
def make_scope(bus, metrics, page, output, make_config):
    def _make(name="sampler", **config):
        return Capabilities(name, make_config(**config), bus, metrics, page, output.append)
    return _make


class TestCapabilities:
    """Tests for Capabilities class."""

    def test_exposes_only_the_module_surface(self, make_scope):
        scope = make_scope()

        assert not hasattr(scope, "get_metric")

        assert scope.url == "https://example.com"
        assert scope.params["timeout"] == 15
        assert not hasattr(scope, "__dict__")
        with pytest.raises(AttributeError):
            scope.engine = object()

    def test_events_and_metrics(self, make_scope, bus, metrics):
        scope = make_scope()
        seen = []
        scope.on("custom", seen.append)
        scope.once(Event.REPORT, lambda: scope.incr_metric("reports"))

        scope.emit("custom", 1)
        bus.publish(Event.REPORT)
        bus.publish(Event.REPORT)
        scope.set_metric("x", 5)
        scope.add_notice("hello")

        assert seen == [1]
        assert metrics.get_metric("reports") == 1
        assert metrics.get_metric("x") == 5
        assert metrics.notices == ("hello",)

    def test_log_uses_module_logger(self, make_scope, caplog):
        scope = make_scope("cookies")

        with caplog.at_level(logging.INFO, logger="pagescope.modules.cookies"):
            scope.log("cookie found")

        assert caplog.records[-1].name == "pagescope.modules.cookies"
        assert caplog.records[-1].getMessage() == "cookie found"

    def test_echo_respects_silent(self, make_scope, output):
        make_scope().echo("visible")
        make_scope(silent=True).echo("hidden")

        assert output == ["visible"]

    def test_require_helper_library(self, make_scope):
        content_types = make_scope().require("content_types")
        assert content_types.classify("text/css") == "css"

    @pytest.mark.parametrize("name", ["", "../secrets", "_private", "a/b"])
    def test_require_rejects_invalid_names(self, make_scope, name):
        with pytest.raises(ImportError):
            make_scope().require(name)

    def test_require_unknown_helper(self, make_scope):
        with pytest.raises(ImportError):
            make_scope().require("no_such_helper")

    @pytest.mark.asyncio
    async def test_set_metric_evaluate(self, make_scope, engine, page, metrics):
        engine.evaluate_results["() => document.title"] = "Example Domain"
        scope = make_scope()

        scope.set_metric_evaluate("title", "() => document.title")
        await page.drain()

        assert metrics.get_metric("title") == "Example Domain"
        assert page.pending == 0

    @pytest.mark.asyncio
    async def test_get_page_content(self, make_scope, engine, page):
        contents = []
        make_scope().get_page_content(contents.append)
        await page.drain()

        assert contents == [engine.html]


class TestPageProxy:
    """Tests for PageProxy class."""

    @pytest.mark.asyncio
    async def test_drain_waits_for_operations_started_by_callbacks(self, engine, page):
        results = []

        def chain(value):
            results.append(value)
            page.evaluate("second", results.append)

        engine.evaluate_results.update({"first": 1, "second": 2})
        page.evaluate("first", chain)
        await page.drain()

        assert results == [1, 2]

    @pytest.mark.asyncio
    async def test_engine_failure_skips_callback(self, engine, page, caplog):
        results = []
        engine.evaluate_results["broken"] = RuntimeError("page crashed")

        page.evaluate("broken", results.append)
        with caplog.at_level(logging.WARNING, logger="pagescope"):
            await page.drain()

        assert results == []
        assert "Page operation failed: page crashed" in caplog.text

    @pytest.mark.asyncio
    async def test_callback_failure_reaches_error_hook(self, engine):
        errors = []
        page = PageProxy(engine, on_error=errors.append)

        def failing(value):
            raise KeyError("bad callback")

        page.content(failing)
        await page.drain()

        assert len(errors) == 1
        assert isinstance(errors[0], KeyError)
        assert page.pending == 0

    @pytest.mark.asyncio
    async def test_callback_failure_logged_without_hook(self, engine, page, caplog):
        def failing(value):
            raise KeyError("bad callback")

        page.content(failing)
        with caplog.at_level(logging.ERROR, logger="pagescope"):
            await page.drain()

        assert "Page operation callback failed" in caplog.text

    @pytest.mark.asyncio
    async def test_cancel(self, engine, page):
        started = asyncio.Event()

        async def slow(expression):
            started.set()
            await asyncio.sleep(60)

        engine.evaluate = slow
        task = page.evaluate("slow")
        await started.wait()

        page.cancel()
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert task.cancelled()
        assert page.pending == 0


@pytest.mark.asyncio
async def test_run_harness_requires_url():
    with pytest.raises(ConfigurationError):
        await run_harness(RunConfig())
