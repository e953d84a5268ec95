"""In-flight request tracking and settle detection.

There is no authoritative "page is done" signal, so the tracker combines three
heuristics:

* a pending-request counter fed by ``send`` / ``recv`` events,
* a debounce timer, cancelled by every send and restarted on every completion
  (and once on load finish), that settles the page after ``DEBOUNCE_SECONDS``
  without pending requests,
* a hard timeout started with the run that settles unconditionally.

Whichever trigger fires first wins; every later trigger is ignored.
"""

import logging
from typing import Any, Callable, Optional

from ..models.run import SettleReason
from .events import Event, EventBus
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 1.0

SettleCallback = Callable[[SettleReason], None]


class RequestTracker:
    """Counts pending requests and decides when the page has settled."""

    def __init__(
        self,
        scheduler: Scheduler,
        on_settle: SettleCallback,
        debounce_seconds: float = DEBOUNCE_SECONDS,
    ):
        self.scheduler = scheduler
        self.on_settle = on_settle
        self.debounce_seconds = debounce_seconds

        self.pending = 0
        self.sent = 0
        self.received = 0
        self.settled_by: Optional[SettleReason] = None

        self._debounce: Optional[TimerHandle] = None
        self._timeout: Optional[TimerHandle] = None
        self._load_finished = False
        self._stopped = False

    def attach(self, bus: EventBus) -> None:
        """Subscribe to the request events published by the core modules."""
        bus.subscribe(Event.SEND, self.on_send)
        bus.subscribe(Event.RECV, self.on_recv)

    def start(self, timeout_seconds: float) -> None:
        """Start the hard timeout. It is never cancelled."""
        logger.info(f"Run timeout set to {timeout_seconds} s")
        self._timeout = self.scheduler.call_later(timeout_seconds, self._on_timeout)

    def on_send(self, *_: Any) -> None:
        self.sent += 1
        self.pending += 1
        # rescheduled once the pending count drops to zero again
        self._cancel_debounce()

    def on_recv(self, *_: Any) -> None:
        self.received += 1
        if self.pending > 0:
            self.pending -= 1
        else:
            logger.warning("Response received with no request pending")

        self.maybe_settle()

    def load_finished(self) -> None:
        """Evaluate settling once for the page load, however often it is signalled."""
        if self._load_finished:
            return
        self._load_finished = True
        self.maybe_settle()

    def maybe_settle(self) -> None:
        """Restart the debounce timer when nothing is pending."""
        if self._stopped:
            return

        self._cancel_debounce()
        if self.pending < 1:
            self._debounce = self.scheduler.call_later(self.debounce_seconds, self._on_debounce)

    def stop(self) -> None:
        """Stop reacting to triggers (the report transition has begun)."""
        self._stopped = True
        self._cancel_debounce()

    @property
    def is_settled(self) -> bool:
        return self.settled_by is not None

    def _cancel_debounce(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None

    def _on_debounce(self) -> None:
        self._debounce = None
        self._fire(SettleReason.REQUESTS)

    def _on_timeout(self) -> None:
        if self.settled_by is None and not self._stopped:
            logger.warning(f"Timeout reached with {self.pending} request(s) pending")
        self._fire(SettleReason.TIMEOUT)

    def _fire(self, reason: SettleReason) -> None:
        if self.settled_by is not None or self._stopped:
            return
        self.settled_by = reason
        self._cancel_debounce()
        self.on_settle(reason)

    def __repr__(self) -> str:
        return (
            f"RequestTracker(pending={self.pending}, sent={self.sent}, "
            f"received={self.received}, settled_by={self.settled_by})"
        )
