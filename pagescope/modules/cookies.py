"""Cookie traffic and document.cookie metrics."""

from pagescope.harness.capabilities import Capabilities
from pagescope.harness.engine import ResourceRequest, ResourceResponse
from pagescope.harness.events import Event
from pagescope.harness.registry import FunctionModule

DOCUMENT_COOKIES_COUNT = """() => {
    const cookies = document.cookie;
    return cookies ? cookies.split(';').length : 0;
}"""


def activate(scope: Capabilities) -> None:
    cookies = scope.require("cookies")

    scope.set_metric("cookiesSentSize")
    scope.set_metric("cookiesRecvSize")
    scope.set_metric("cookiesSentCount")
    scope.set_metric("cookiesRecvCount")

    def on_send(request: ResourceRequest) -> None:
        value = cookies.header_value(request.headers, "cookie")
        if value:
            scope.incr_metric("cookiesSentSize", len(value))
            scope.incr_metric("cookiesSentCount", len(cookies.parse_cookie_header(value)))

    def on_recv(response: ResourceResponse, request: ResourceRequest) -> None:
        value = cookies.header_value(response.headers, "set-cookie")
        if value:
            names = cookies.parse_set_cookie_header(value)
            scope.incr_metric("cookiesRecvSize", len(value))
            scope.incr_metric("cookiesRecvCount", len(names))
            scope.log(f"Cookies set by <{response.url}>: {', '.join(names)}")

    def on_report() -> None:
        scope.set_metric_evaluate("documentCookiesLength", "() => document.cookie.length")
        scope.set_metric_evaluate("documentCookiesCount", DOCUMENT_COOKIES_COUNT)

    scope.on(Event.SEND, on_send)
    scope.on(Event.RECV, on_recv)
    scope.on(Event.REPORT, on_report)


module = FunctionModule("cookies", activate, version="0.2")
