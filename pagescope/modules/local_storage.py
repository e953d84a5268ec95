"""Number of localStorage entries left by the page."""

from pagescope.harness.capabilities import Capabilities
from pagescope.harness.events import Event
from pagescope.harness.registry import FunctionModule

LOCAL_STORAGE_ENTRIES = """() => {
    try {
        return window.localStorage.length;
    } catch (e) {
        return 0;
    }
}"""


def activate(scope: Capabilities) -> None:
    scope.set_metric("localStorageEntries")
    scope.on(
        Event.REPORT,
        lambda: scope.set_metric_evaluate("localStorageEntries", LOCAL_STORAGE_ENTRIES),
    )


module = FunctionModule("local_storage", activate, version="0.1")
