"""Counts and sizes of received responses, per asset type."""

from pagescope.harness.capabilities import Capabilities
from pagescope.harness.engine import ResourceRequest, ResourceResponse
from pagescope.harness.events import Event
from pagescope.harness.registry import InstrumentationModule


class AssetTypes(InstrumentationModule):
    """Sets ``<type>Count`` and ``<type>Size`` for every asset type."""

    def __init__(self):
        super().__init__("asset_types", version="0.2")

    def activate(self, scope: Capabilities) -> None:
        content_types = scope.require("content_types")

        for kind in content_types.ASSET_TYPES:
            scope.set_metric(f"{kind}Count")
            scope.set_metric(f"{kind}Size")

        def on_recv(response: ResourceResponse, request: ResourceRequest) -> None:
            if response.failed:
                return

            kind = content_types.classify(response.content_type, response.url)
            scope.incr_metric(f"{kind}Count")
            scope.incr_metric(f"{kind}Size", response.body_size or 0)

            if kind == content_types.OTHER and response.content_type:
                scope.log(f"Unknown content type {response.content_type} for <{response.url}>")

        scope.on(Event.RECV, on_recv)


module = AssetTypes()
