"""Simple synchronous in-process event bus."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Callable, TypeVar

from eventdesk.logs import get_logger

logger = get_logger(__name__)

E = TypeVar("E")


class EventBus:
    """Publish/subscribe bus for booking outcomes.

    Handlers are called synchronously in registration order. A handler that
    raises stops delivery; the failure is logged with the event type and the
    error reaches the publisher.
    """

    def __init__(self) -> None:
        self._subscribers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        self._subscribers[event_type].append(handler)

    def handlers_for(self, event_type: type) -> list[Callable[[Any], None]]:
        return list(self._subscribers.get(event_type, []))

    def publish(self, event: Any) -> None:
        event_type = type(event).__name__
        handlers = self.handlers_for(type(event))
        logger.debug("bus_publish", event_type=event_type, handlers=len(handlers))
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "bus_handler_failed",
                    event_type=event_type,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                )
                raise
