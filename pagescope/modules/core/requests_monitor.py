"""Turns raw resource callbacks into send/recv events and request metrics.

This is the only core module. The request tracker counts ``send`` and
``recv`` events, so every request reported by the browser must produce one
``send`` and its completion (or failure) one ``recv``.
"""

from typing import Dict

from pagescope.harness.capabilities import Capabilities
from pagescope.harness.engine import ResourceRequest, ResourceResponse, ResponseStage
from pagescope.harness.events import Event
from pagescope.harness.registry import InstrumentationModule

METRICS = (
    "requests",
    "gzipRequests",
    "postRequests",
    "redirects",
    "notFound",
    "bodySize",
    "contentLength",
    "timeToFirstByte",
    "timeToLastByte",
)


class RequestsMonitor(InstrumentationModule):
    """Request bookkeeping shared by every other module."""

    def __init__(self):
        super().__init__("requests_monitor", version="0.3")
        self._requests: Dict[str, ResourceRequest] = {}
        self._first_byte: Dict[str, float] = {}

    def activate(self, scope: Capabilities) -> None:
        self._requests = {}
        self._first_byte = {}

        for name in METRICS:
            scope.set_metric(name)

        scope.on(Event.RESOURCE_REQUESTED, lambda request: self.on_requested(scope, request))
        scope.on(Event.RESOURCE_RECEIVED, lambda response: self.on_received(scope, response))

    def on_requested(self, scope: Capabilities, request: ResourceRequest) -> None:
        self._requests[request.id] = request
        scope.emit(Event.SEND, request)

    def on_received(self, scope: Capabilities, response: ResourceResponse) -> None:
        request = self._requests.get(response.id)

        if response.stage == ResponseStage.START:
            if request is not None:
                self._first_byte[response.id] = _elapsed_ms(request, response)
            return

        if request is None:
            scope.log(f"Response without a matching request: <{response.url}>")
            return
        del self._requests[response.id]

        self._record(scope, request, response)
        scope.emit(Event.RECV, response, request)

    def _record(self, scope: Capabilities, request: ResourceRequest, response: ResourceResponse) -> None:
        scope.incr_metric("requests")

        if request.method.upper() == "POST":
            scope.incr_metric("postRequests")

        if response.failed:
            scope.log(f"Request failed: <{response.url}> ({response.error_text})")
            return

        if response.is_redirect:
            scope.incr_metric("redirects")
            scope.log(f"Redirect: <{response.url}> -> <{response.redirect_url}>")

        if response.status == 404:
            scope.incr_metric("notFound")
            scope.add_notice(f"404: <{response.url}>")

        encoding = _header(response.headers, "content-encoding").lower()
        if "gzip" in encoding:
            scope.incr_metric("gzipRequests")

        if response.body_size:
            scope.incr_metric("bodySize", response.body_size)

        length = _header(response.headers, "content-length")
        if length.isdigit():
            scope.incr_metric("contentLength", int(length))

        if request.is_navigation and not response.is_redirect:
            first_byte = self._first_byte.pop(response.id, None)
            last_byte = _elapsed_ms(request, response)
            scope.set_metric("timeToFirstByte", first_byte if first_byte is not None else last_byte)
            scope.set_metric("timeToLastByte", last_byte)
        else:
            self._first_byte.pop(response.id, None)


def _elapsed_ms(request: ResourceRequest, response: ResourceResponse) -> int:
    return max(0, int((response.time - request.time).total_seconds() * 1000))


def _header(headers: Dict[str, str], name: str) -> str:
    for key, value in headers.items():
        if key.lower() == name:
            return value or ""
    return ""


module = RequestsMonitor()
