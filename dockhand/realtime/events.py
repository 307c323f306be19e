"""
In-process event sources for event-driven stream sessions.

``EventHub`` is a small publish/subscribe registry keyed by topic.
Callbacks run synchronously inside ``publish`` and must not block;
stream sessions only enqueue the event and return. A callback that
returns ``False`` declined the event and is not counted as delivered.
"""

import itertools
import logging
from collections import defaultdict
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

EventCallback = Callable[[Any], Optional[bool]]


class Subscription:
    """Handle returned by ``subscribe``. ``unsubscribe`` is idempotent."""

    def __init__(self, hub: "EventHub", topic: str, key: int) -> None:
        self._hub = hub
        self.topic = topic
        self._key = key
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._hub._remove(self.topic, self._key)


class EventSource(Protocol):
    """Anything a stream session can subscribe to."""

    def subscribe(self, topic: str, callback: EventCallback) -> Subscription: ...


class EventHub:
    """Topic-based publish/subscribe hub.

    Usage:
        hub = EventHub()
        subscription = hub.subscribe("deploy", on_event)
        hub.publish("deploy", {"status": "done"})
        subscription.unsubscribe()
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, dict[int, EventCallback]] = defaultdict(dict)
        self._keys = itertools.count(1)
        self._stats = {"total_published": 0, "total_delivered": 0}

    @property
    def stats(self) -> dict:
        return {
            **self._stats,
            "topics": {
                topic: len(callbacks)
                for topic, callbacks in self._subscribers.items()
                if callbacks
            },
        }

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscribers.get(topic, {}))

    def subscribe(self, topic: str, callback: EventCallback) -> Subscription:
        key = next(self._keys)
        self._subscribers[topic][key] = callback
        logger.debug("Subscribed %d to topic %s", key, topic)
        return Subscription(self, topic, key)

    def publish(self, topic: str, event: Any) -> int:
        """Deliver an event to every subscriber of ``topic``.

        A subscriber whose callback raises is logged and removed; the
        remaining subscribers still receive the event.

        Returns:
            The number of subscribers that accepted the event. Callbacks
            returning ``False`` are not counted.
        """
        self._stats["total_published"] += 1
        delivered = 0
        dead: list[int] = []

        for key, callback in list(self._subscribers.get(topic, {}).items()):
            try:
                if callback(event) is not False:
                    delivered += 1
            except Exception:
                logger.exception("Subscriber %d on topic %s failed", key, topic)
                dead.append(key)

        for key in dead:
            self._remove(topic, key)

        self._stats["total_delivered"] += delivered
        return delivered

    def _remove(self, topic: str, key: int) -> None:
        callbacks = self._subscribers.get(topic)
        if callbacks is None:
            return
        callbacks.pop(key, None)
        if not callbacks:
            self._subscribers.pop(topic, None)
