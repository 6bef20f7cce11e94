"""Synchronous dispatcher for navigation events.

Topics are :class:`~core.events.topics.NavigationEvents` members and nothing
else: a plain string is rejected where it is published or subscribed, so a
misspelt topic cannot silently reach nobody.  Subscribers run in subscription
order, inside the ``publish`` call, with the payload as keyword arguments.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from typing import Any, Callable, Dict, List, Mapping, Sequence

from core.events.topics import NavigationEvents

__all__ = ["EventBus", "Subscriber"]

logger = logging.getLogger(__name__)

Subscriber = Callable[..., None]


def _checked(topic: Any) -> NavigationEvents:
    if not isinstance(topic, NavigationEvents):
        raise TypeError(f"event topics must be NavigationEvents members, got {topic!r}")
    return topic


class EventBus:
    """In-memory bus carrying :class:`NavigationEvents` to their subscribers.

    ``publish(topic, payload)`` and ``publish(topic, entity=...)`` may be
    combined; keyword values win over the mapping.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[NavigationEvents, List[Subscriber]] = defaultdict(list)
        self._published: Counter = Counter()

    def subscribe(self, topic: NavigationEvents, callback: Subscriber) -> None:
        """Register ``callback`` for ``topic``; registering twice is a no-op."""

        callbacks = self._subscribers[_checked(topic)]
        if callback not in callbacks:
            callbacks.append(callback)

    def unsubscribe(self, topic: NavigationEvents, callback: Subscriber) -> None:
        callbacks = self._subscribers.get(_checked(topic))
        if not callbacks or callback not in callbacks:
            return
        callbacks.remove(callback)
        if not callbacks:
            del self._subscribers[topic]

    def publish(
        self,
        topic: NavigationEvents,
        payload: Mapping[str, Any] | None = None,
        /,
        **kwargs: Any,
    ) -> None:
        topic = _checked(topic)
        event: Dict[str, Any] = dict(payload or {})
        event.update(kwargs)
        self._published[topic] += 1

        # Copy so a subscriber may unsubscribe itself mid-dispatch.
        callbacks = list(self._subscribers.get(topic, ()))
        logger.debug("Publishing %s to %s subscribers", topic.value, len(callbacks))
        for callback in callbacks:
            callback(**event)

    def clear(self) -> None:
        """Drop every subscription; publication counts are kept."""

        self._subscribers.clear()

    def get_subscribers(self, topic: NavigationEvents) -> Sequence[Subscriber]:
        return tuple(self._subscribers.get(_checked(topic), ()))

    def get_stats(self) -> Dict[str, int]:
        """Number of publications per topic value since the bus was created."""

        return {topic.value: count for topic, count in sorted(self._published.items())}
