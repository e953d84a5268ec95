"""Number and size of request and response headers."""

from typing import Dict

from pagescope.harness.capabilities import Capabilities
from pagescope.harness.engine import ResourceRequest, ResourceResponse
from pagescope.harness.events import Event
from pagescope.harness.registry import FunctionModule

METRICS = (
    "headersCount",
    "headersSentCount",
    "headersRecvCount",
    "headersSize",
    "headersSentSize",
    "headersRecvSize",
)


def headers_size(headers: Dict[str, str]) -> int:
    """Serialized size of ``name: value\\r\\n`` lines."""
    return sum(len(name) + len(value) + 4 for name, value in headers.items())


def activate(scope: Capabilities) -> None:
    for name in METRICS:
        scope.set_metric(name)

    def record(direction: str, headers: Dict[str, str]) -> None:
        count = len(headers)
        size = headers_size(headers)

        scope.incr_metric("headersCount", count)
        scope.incr_metric("headersSize", size)
        scope.incr_metric(f"headers{direction}Count", count)
        scope.incr_metric(f"headers{direction}Size", size)

    def on_send(request: ResourceRequest) -> None:
        record("Sent", request.headers)

    def on_recv(response: ResourceResponse, request: ResourceRequest) -> None:
        record("Recv", response.headers)

    scope.on(Event.SEND, on_send)
    scope.on(Event.RECV, on_recv)


module = FunctionModule("headers", activate, version="0.1")
