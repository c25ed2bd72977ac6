"""
In-process Pub/Sub for engine events

Publishers (the engine) don't know who's listening; subscribers
(persistence, notifications, WebSocket fan-out) don't know who published.

Dispatch is fire-and-forget: with an executor the handlers run on worker
threads and ``publish`` returns immediately; without one they run inline,
which keeps tests deterministic. A failing handler is logged and counted,
never propagated to the publisher.
"""
import threading
from concurrent.futures import Executor
from typing import Callable, Dict, Iterable, List, Optional, Set

from auction_engine.core.logger import get_logger
from auction_engine.models import AuctionEvent, EventType

logger = get_logger(__name__)

Handler = Callable[[AuctionEvent], None]


class EventBus:
    def __init__(self, executor: Optional[Executor] = None):
        self.executor = executor
        # handler -> event types it wants (None = everything)
        self._subscribers: Dict[Handler, Optional[Set[EventType]]] = {}
        self._lock = threading.Lock()

        # Statistics
        self.messages_published = 0
        self.handler_errors = 0

    def subscribe(self, handler: Handler, event_types: Optional[Iterable[EventType]] = None) -> None:
        with self._lock:
            self._subscribers[handler] = set(event_types) if event_types else None

    def unsubscribe(self, handler: Handler) -> None:
        with self._lock:
            self._subscribers.pop(handler, None)

    def publish(self, event: AuctionEvent) -> None:
        with self._lock:
            handlers = [
                handler for handler, types in self._subscribers.items()
                if types is None or event.type in types
            ]
            self.messages_published += 1

        for handler in handlers:
            if self.executor is not None:
                self.executor.submit(self._deliver, handler, event)
            else:
                self._deliver(handler, event)

    def publish_all(self, events: List[AuctionEvent]) -> None:
        for event in events:
            self.publish(event)

    def _deliver(self, handler: Handler, event: AuctionEvent) -> None:
        try:
            handler(event)
        except Exception as e:
            with self._lock:
                self.handler_errors += 1
            logger.warning(
                "Event handler failed",
                handler=getattr(handler, "__name__", type(handler).__name__),
                event_type=event.type.value,
                auction_id=event.auction_id,
                error=str(e),
            )

    def get_stats(self) -> dict:
        with self._lock:
            return {
                "subscribers": len(self._subscribers),
                "messages_published": self.messages_published,
                "handler_errors": self.handler_errors,
                "async_dispatch": self.executor is not None,
            }

    def shutdown(self) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=True)
