"""Navigation timing reported by the page, relative to navigation start."""

from typing import Any, Dict, Optional

from pagescope.harness.capabilities import Capabilities
from pagescope.harness.events import Event
from pagescope.harness.registry import InstrumentationModule

NAVIGATION_TIMING = """() => {
    const timing = window.performance && window.performance.timing;
    if (!timing) {
        return null;
    }
    const since = (value) => value > 0 ? value - timing.navigationStart : null;
    return {
        domInteractive: since(timing.domInteractive),
        domContentLoaded: since(timing.domContentLoadedEventStart),
        domContentLoadedEnd: since(timing.domContentLoadedEventEnd),
        domComplete: since(timing.domComplete),
    };
}"""


class WindowPerformance(InstrumentationModule):
    """Reads ``window.performance.timing`` once the page has loaded."""

    def __init__(self):
        super().__init__("window_performance", version="0.2")

    def activate(self, scope: Capabilities) -> None:
        def store(timing: Optional[Dict[str, Any]]) -> None:
            if not timing:
                scope.log("window.performance is not available")
                return
            for name, value in timing.items():
                if value is not None:
                    scope.set_metric(name, value)

        scope.on(Event.LOAD_FINISHED, lambda status: scope.evaluate(NAVIGATION_TIMING, store))


module = WindowPerformance()
