"""Event bus — internal pub/sub for validation lifecycle events.

Topics are form keys (one per tracked form), run ids for one-off requests,
or batch ids. Embedding applications subscribe to follow progress; a topic
only exists while it has listeners.
"""

from collections import defaultdict
from typing import Awaitable, Callable, Dict, Set

import structlog

logger = structlog.get_logger()

# Type alias for event listeners
EventListener = Callable[[dict], Awaitable[None]]


class EventBus:
    """In-memory pub/sub for validation events.

    Each topic can have multiple listeners. Delivery is fire-and-forget: a
    listener that raises is dropped.
    """

    def __init__(self):
        self._listeners: Dict[str, Set[EventListener]] = defaultdict(set)

    @property
    def topics(self) -> list[str]:
        return list(self._listeners)

    def subscribe(self, topic: str, listener: EventListener) -> None:
        self._listeners[topic].add(listener)
        logger.debug("event_bus_subscribe", topic=topic, total_listeners=len(self._listeners[topic]))

    def unsubscribe(self, topic: str, listener: EventListener) -> None:
        listeners = self._listeners.get(topic)
        if listeners is None:
            return
        listeners.discard(listener)
        if not listeners:
            del self._listeners[topic]

    async def publish(self, topic: str, event: dict) -> None:
        """Publish an event to all listeners of a topic."""
        for listener in list(self._listeners.get(topic, ())):
            try:
                await listener(event)
            except Exception as e:
                logger.warning("event_listener_failed", topic=topic, event_type=event.get("type"), error=str(e))
                self.unsubscribe(topic, listener)

    def cleanup(self, topic: str) -> None:
        """Drop every listener of a finished topic."""
        self._listeners.pop(topic, None)


# Module-level singleton
event_bus = EventBus()
