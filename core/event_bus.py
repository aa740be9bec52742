"""In-process event bus shared by the mind, the peer service and the shell."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger("mw.events")

EventHandler = Callable[[dict[str, Any]], None]

FRAME_INGESTED = "frame_ingested"
HYPOTHESIS_VIOLATED = "hypothesis_violated"
TRUTH_DERIVED = "truth_derived"
ACTION_DECIDED = "action_decided"
CYCLE_COMPLETED = "cycle_completed"
PEER_CONNECTED = "peer_connected"
PEER_DISCONNECTED = "peer_disconnected"
TRUTHS_MERGED = "truths_merged"


class EventBus:
    """Dispatches events to subscribers by event name.

    Emission can happen from the ingestion worker, the cycle caller and the
    network thread, so the handler table is guarded and handlers run on the
    emitting thread. A failing handler is logged and does not stop the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register a callback for an event."""
        with self._lock:
            self._handlers[event_name].append(handler)

    def unsubscribe(self, event_name: str, handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        """Emit an event to all subscribers."""
        with self._lock:
            handlers = list(self._handlers.get(event_name, []))
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s failed", event_name)
