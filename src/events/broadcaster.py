"""
In-process fan-out of probe records and anomaly events to subscribers.
"""

import itertools
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class Topic(str, Enum):
    """Event topics"""

    RECORD = "record"
    ANOMALY = "anomaly"


Handler = Callable[[Any], None]


@dataclass(frozen=True)
class Subscription:
    """Handle returned by `subscribe`, used to unsubscribe"""

    topic: Topic
    subscription_id: int


class EventBroadcaster:
    """Delivers each published payload to every current subscriber of its topic

    Delivery is synchronous and in registration order. A subscriber that raises is
    logged and skipped; the remaining subscribers still receive the event. Nothing
    is buffered, so late subscribers never see earlier events.
    """

    def __init__(self, slow_subscriber_seconds: float = 1.0):
        self.slow_subscriber_seconds = slow_subscriber_seconds
        self._subscribers: dict[Topic, dict[int, Handler]] = {topic: {} for topic in Topic}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, topic: Topic | str, handler: Handler) -> Subscription:
        topic = Topic(topic)
        with self._lock:
            subscription_id = next(self._ids)
            self._subscribers[topic][subscription_id] = handler

        logger.debug("Subscriber registered", topic=topic.value, subscription_id=subscription_id)
        return Subscription(topic=topic, subscription_id=subscription_id)

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers[subscription.topic].pop(subscription.subscription_id, None)

    def subscriber_count(self, topic: Topic | str) -> int:
        with self._lock:
            return len(self._subscribers[Topic(topic)])

    def publish(self, topic: Topic | str, payload: Any) -> int:
        """Deliver `payload` to the topic's subscribers

        Returns:
            Number of subscribers that handled the event without raising
        """
        topic = Topic(topic)
        with self._lock:
            # Snapshot so handlers may (un)subscribe during delivery
            handlers = list(self._subscribers[topic].items())

        delivered = 0
        for subscription_id, handler in handlers:
            started = time.monotonic()
            try:
                handler(payload)
                delivered += 1
            except Exception as e:
                logger.error(
                    "Subscriber failed",
                    topic=topic.value,
                    subscription_id=subscription_id,
                    error=str(e),
                    exc_info=True,
                )
            elapsed = time.monotonic() - started
            if elapsed > self.slow_subscriber_seconds:
                logger.warning(
                    "Slow subscriber",
                    topic=topic.value,
                    subscription_id=subscription_id,
                    elapsed_sec=round(elapsed, 3),
                )

        return delivered
