"""DOM size metrics, collected when the report is being built."""

from typing import Any, Dict

from pagescope.harness.capabilities import Capabilities
from pagescope.harness.events import Event
from pagescope.harness.registry import InstrumentationModule

# relies on window.__pagescope injected on page initialization
DOM_STATS = """() => {
    const helpers = window.__pagescope;
    const count = (selector) => helpers
        ? helpers.count(selector)
        : document.querySelectorAll(selector).length;
    return {
        DOMelementsCount: count('*'),
        iframesCount: count('iframe'),
        imagesCount: count('img'),
        scriptsCount: count('script'),
        bodyHTMLSize: helpers ? helpers.bodySize() : (document.body ? document.body.innerHTML.length : 0),
    };
}"""


class DomComplexity(InstrumentationModule):
    """Element counts and markup sizes of the loaded document."""

    def __init__(self):
        super().__init__("dom_complexity", version="0.2")

    def activate(self, scope: Capabilities) -> None:
        def store(stats: Dict[str, Any]) -> None:
            if not stats:
                scope.log("DOM statistics are not available")
                return
            for name, value in stats.items():
                scope.set_metric(name, value)

        def store_document_size(html: str) -> None:
            scope.set_metric("documentHTMLSize", len(html or ""))

        def on_report() -> None:
            scope.evaluate(DOM_STATS, store)
            scope.get_page_content(store_document_size)

        scope.on(Event.REPORT, on_report)


module = DomComplexity()
