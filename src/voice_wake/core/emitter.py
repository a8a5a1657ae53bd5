"""Topic-based event emitter with explicit subscription handles.

Components publish from whatever thread they run on; callbacks run
synchronously on the publishing thread. Every subscription returns a
`Subscription` whose `cancel()` is idempotent, so owners can tear down
listeners deterministically before a component is reused.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

Callback = Callable[..., None]


class Subscription:
    """Handle returned by `EventEmitter.subscribe`."""

    def __init__(self, emitter: "EventEmitter", topic: str, callback: Callback):
        self._emitter: Optional[EventEmitter] = emitter
        self.topic = topic
        self.callback = callback

    @property
    def active(self) -> bool:
        return self._emitter is not None

    def cancel(self) -> None:
        emitter = self._emitter
        if emitter is None:
            return
        self._emitter = None
        emitter._remove(self)


class EventEmitter:
    """Thread-safe registry of topic subscribers."""

    def __init__(self, topics: Optional[Iterable[str]] = None):
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._topics = frozenset(topics) if topics is not None else None

    def subscribe(self, topic: str, callback: Callback) -> Subscription:
        """Register a callback for a topic."""
        if self._topics is not None and topic not in self._topics:
            raise ValueError(f"Unknown topic '{topic}', expected one of {sorted(self._topics)}")
        sub = Subscription(self, topic, callback)
        with self._lock:
            self._subscribers.setdefault(topic, []).append(sub)
        return sub

    def publish(self, topic: str, *args: Any) -> None:
        """Deliver to every current subscriber. Subscriber errors are logged, not raised."""
        with self._lock:
            subs = list(self._subscribers.get(topic, ()))
        for sub in subs:
            if not sub.active:
                continue
            try:
                sub.callback(*args)
            except Exception as exc:
                logger.error("Subscriber error [%s]: %s", topic, exc, exc_info=True)

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        with self._lock:
            if topic is not None:
                return len(self._subscribers.get(topic, ()))
            return sum(len(subs) for subs in self._subscribers.values())

    def clear(self) -> None:
        """Cancel every subscription on every topic."""
        with self._lock:
            subs = [sub for topic_subs in self._subscribers.values() for sub in topic_subs]
        for sub in subs:
            sub.cancel()

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(sub.topic)
            if subs and sub in subs:
                subs.remove(sub)


def cancel_all(subscriptions: List[Subscription]) -> None:
    """Cancel and forget every subscription in the list."""
    while subscriptions:
        subscriptions.pop().cancel()
