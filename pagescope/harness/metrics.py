"""Metrics and notices collected during a run.

One ``MetricsStore`` exists per run. It is owned by the orchestrator and
reached by modules only through their capability object.
"""

import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..errors import MetricsFrozenError

logger = logging.getLogger(__name__)


class MetricsStore:
    """Mapping of metric name to value plus an ordered list of notices."""

    def __init__(self):
        self._metrics: Dict[str, Any] = {}
        self._notices: List[str] = []
        self._frozen = False

    @property
    def metrics(self) -> Mapping[str, Any]:
        """Read-only live view of the metrics."""
        return MappingProxyType(self._metrics)

    @property
    def notices(self) -> Sequence[str]:
        return tuple(self._notices)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def set_metric(self, name: str, value: Any = 0) -> None:
        """Set a metric; the last write wins."""
        self._check_writable(name)
        self._metrics[name] = value

    def incr_metric(self, name: str, delta: float = 1) -> None:
        """Increment a numeric metric, creating it at 0 when absent."""
        self._check_writable(name)
        self._metrics[name] = self._metrics.get(name, 0) + delta

    def get_metric(self, name: str, default: Optional[Any] = None) -> Any:
        return self._metrics.get(name, default)

    def add_notice(self, text: Optional[str] = "") -> None:
        """Append a free-text notice; duplicates and empty strings are kept."""
        self._check_writable("notice")
        self._notices.append(text if text is not None else "")

    def snapshot(self) -> Tuple[Dict[str, Any], List[str]]:
        """Copies of the current metrics and notices."""
        return dict(self._metrics), list(self._notices)

    def freeze(self) -> None:
        """Reject any further writes."""
        self._frozen = True

    def _check_writable(self, name: str) -> None:
        if self._frozen:
            raise MetricsFrozenError(f"Cannot record {name!r}: report already taken")

    def __len__(self) -> int:
        return len(self._metrics)

    def __repr__(self) -> str:
        return f"MetricsStore(metrics={len(self._metrics)}, notices={len(self._notices)})"
