"""Synchronous publish/subscribe event bus.

Handlers run on the publishing turn, in registration order. There is no
queueing: ``publish`` returns only after every handler has returned. In strict
mode (the default) a handler that raises aborts the publish and the exception
reaches the publisher, so a misbehaving module can abort the whole run.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Union

logger = logging.getLogger(__name__)


class Event(str, Enum):
    """Built-in harness events and their payloads."""
    INIT = "init"                                    # ()
    LOAD_STARTED = "loadStarted"                     # ()
    LOAD_FINISHED = "loadFinished"                   # (status)
    LOAD_FAILED = "loadFailed"                       # (status)
    RESOURCE_REQUESTED = "onResourceRequested"       # (ResourceRequest)
    RESOURCE_RECEIVED = "onResourceReceived"         # (ResourceResponse)
    SEND = "send"                                    # (ResourceRequest)
    RECV = "recv"                                    # (ResourceResponse)
    ALERT = "alert"                                  # (message)
    CONSOLE = "consoleLog"                           # (message)
    PAGE_BEFORE_OPEN = "pageBeforeOpen"              # ()
    PAGE_OPEN = "pageOpen"                           # ()
    REPORT = "report"                                # ()
    RESULTS = "results"                              # (Report)


EventName = Union[Event, str]
Handler = Callable[..., Any]


def _key(event: EventName) -> str:
    return event.value if isinstance(event, Event) else str(event)


class _OnceWrapper:
    """Handler wrapper removed from the bus before its first call."""

    def __init__(self, bus: "EventBus", event: str, handler: Handler):
        self.bus = bus
        self.event = event
        self.handler = handler

    def __call__(self, *args: Any) -> Any:
        self.bus._remove(self.event, self)
        return self.handler(*args)


class EventBus:
    """In-process event hub shared by the orchestrator and all modules."""

    def __init__(self, strict: bool = True):
        """Initialize the bus.

        Args:
            strict: When False, handler exceptions are logged and the
                remaining handlers still run.
        """
        self.strict = strict
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, event: EventName, handler: Handler) -> None:
        """Call ``handler(*args)`` on every publish of ``event``."""
        self._subscribers.setdefault(_key(event), []).append(handler)

    def subscribe_once(self, event: EventName, handler: Handler) -> None:
        """Call ``handler`` on the next publish of ``event`` only."""
        key = _key(event)
        self._subscribers.setdefault(key, []).append(_OnceWrapper(self, key, handler))

    def unsubscribe(self, event: EventName, handler: Handler) -> bool:
        """Remove a handler; returns False if it was not subscribed."""
        key = _key(event)
        for registered in self._subscribers.get(key, []):
            if registered is handler or (
                isinstance(registered, _OnceWrapper) and registered.handler is handler
            ):
                self._remove(key, registered)
                return True
        return False

    def publish(self, event: EventName, *args: Any) -> None:
        """Dispatch ``event`` to its handlers synchronously."""
        key = _key(event)
        logger.debug(f"Event {key} emitted")

        # handlers subscribed during this publish wait for the next one
        for handler in list(self._subscribers.get(key, [])):
            if not self.strict:
                try:
                    handler(*args)
                except Exception:
                    logger.exception(f"Handler for event {key} failed")
                continue
            handler(*args)

    def listener_count(self, event: EventName) -> int:
        return len(self._subscribers.get(_key(event), []))

    def _remove(self, key: str, handler: Handler) -> None:
        handlers = self._subscribers.get(key, [])
        if handler in handlers:
            handlers.remove(handler)
