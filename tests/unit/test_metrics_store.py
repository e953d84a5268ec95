"""Unit tests for the metrics store."""

import pytest

from pagescope.errors import MetricsFrozenError
from pagescope.harness.metrics import MetricsStore


class TestMetricsStore:
    """Tests for MetricsStore class."""

    def test_set_metric_defaults_to_zero(self, metrics):
        metrics.set_metric("requests")
        assert metrics.get_metric("requests") == 0

    def test_last_write_wins(self, metrics):
        metrics.set_metric("title", "first")
        metrics.set_metric("title", "second")
        assert metrics.get_metric("title") == "second"

    def test_incr_creates_missing_metric(self, metrics):
        metrics.incr_metric("requests")
        metrics.incr_metric("requests")
        metrics.incr_metric("bodySize", 512)

        assert metrics.get_metric("requests") == 2
        assert metrics.get_metric("bodySize") == 512

    def test_incr_after_set(self, metrics):
        metrics.set_metric("x", 1)
        metrics.incr_metric("x", 2)
        assert metrics.get_metric("x") == 3

    def test_get_missing_metric(self, metrics):
        assert metrics.get_metric("missing") is None
        assert metrics.get_metric("missing", 42) == 42

    def test_metrics_keep_insertion_order(self, metrics):
        for name in ("b", "a", "c"):
            metrics.set_metric(name)
        assert list(metrics.metrics) == ["b", "a", "c"]

    def test_metrics_view_is_read_only(self, metrics):
        metrics.set_metric("x", 1)
        with pytest.raises(TypeError):
            metrics.metrics["x"] = 2

    def test_notices_keep_duplicates_and_empty_strings(self, metrics):
        metrics.add_notice("slow page")
        metrics.add_notice("slow page")
        metrics.add_notice()
        metrics.add_notice(None)

        assert metrics.notices == ("slow page", "slow page", "", "")

    def test_snapshot_is_a_copy(self, metrics):
        metrics.set_metric("x", 1)
        metrics.add_notice("n")

        snapshot_metrics, snapshot_notices = metrics.snapshot()
        metrics.set_metric("x", 2)
        metrics.add_notice("m")

        assert snapshot_metrics == {"x": 1}
        assert snapshot_notices == ["n"]

    def test_writes_rejected_after_freeze(self, metrics):
        metrics.set_metric("x", 1)
        metrics.freeze()

        assert metrics.frozen
        with pytest.raises(MetricsFrozenError):
            metrics.set_metric("x", 2)
        with pytest.raises(MetricsFrozenError):
            metrics.incr_metric("x")
        with pytest.raises(MetricsFrozenError):
            metrics.add_notice("late")

        assert metrics.get_metric("x") == 1
        assert len(metrics) == 1

    def test_fresh_store_is_empty(self):
        store = MetricsStore()
        assert dict(store.metrics) == {}
        assert store.notices == ()
        assert not store.frozen
