"""Console and alert() messages emitted by the page."""

from pagescope.harness.capabilities import Capabilities
from pagescope.harness.events import Event
from pagescope.harness.registry import FunctionModule


def activate(scope: Capabilities) -> None:
    scope.set_metric("consoleMessages")
    scope.set_metric("alerts")

    def on_console(message: str) -> None:
        scope.incr_metric("consoleMessages")
        scope.log(f"console: {message}")

    def on_alert(message: str) -> None:
        scope.incr_metric("alerts")
        scope.add_notice(f"alert() called with: {message}")

    scope.on(Event.CONSOLE, on_console)
    scope.on(Event.ALERT, on_alert)


module = FunctionModule("console_messages", activate, version="0.1")
