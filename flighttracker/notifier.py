"""
In-process fan-out of live update events.

Each subscriber owns a bounded queue. Publishing never blocks: when a
subscriber's queue is full the message is dropped for that subscriber
only. Delivery problems are logged and never reach the caller.

Topics:
    flight-updates  FLIGHT_UPDATE after a successful ingestion cycle
    statistics      STATISTICS_UPDATE from the statistics cycle
    notifications   NOTIFICATION events (INFO, WARNING, ERROR)
"""

import logging
import queue
import threading
import uuid
from enum import Enum
from typing import Dict, Iterable, List, Optional

from flighttracker.models import utcnow

logger = logging.getLogger(__name__)

TOPIC_FLIGHT_UPDATES = 'flight-updates'
TOPIC_STATISTICS = 'statistics'
TOPIC_NOTIFICATIONS = 'notifications'

TOPICS = (TOPIC_FLIGHT_UPDATES, TOPIC_STATISTICS, TOPIC_NOTIFICATIONS)


class Severity(str, Enum):
    """Notification level."""
    INFO = 'INFO'
    WARNING = 'WARNING'
    ERROR = 'ERROR'


class Subscription:
    """A subscriber's bounded inbox for a set of topics."""

    def __init__(self, topics: Iterable[str], maxsize: int):
        self.id = uuid.uuid4().hex
        self.topics = frozenset(topics)
        self.queue: 'queue.Queue[dict]' = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def get(self, timeout: Optional[float] = None) -> dict:
        """Next message; raises queue.Empty on timeout."""
        return self.queue.get(timeout=timeout)

    def drain(self) -> List[dict]:
        """All currently queued messages, without blocking."""
        messages = []
        while True:
            try:
                messages.append(self.queue.get_nowait())
            except queue.Empty:
                return messages


class Notifier:
    """
    Best-effort publisher for live update events.

    Thread-safe: the scheduler's worker threads publish while HTTP
    request threads subscribe and unsubscribe.
    """

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size

        self._subscriptions: Dict[str, Subscription] = {}
        self._lock = threading.Lock()

        # Statistics
        self.messages_sent = 0
        self.messages_dropped = 0

    def subscribe(self, topics: Optional[Iterable[str]] = None) -> Subscription:
        """Register a subscriber for ``topics`` (all topics when None)."""
        topics = list(topics) if topics is not None else list(TOPICS)
        unknown = [t for t in topics if t not in TOPICS]
        if unknown:
            raise ValueError(f'Unknown topics: {", ".join(unknown)}')

        subscription = Subscription(topics, self.max_queue_size)
        with self._lock:
            self._subscriptions[subscription.id] = subscription

        logger.debug(f'Subscriber {subscription.id[:8]} registered for {sorted(subscription.topics)}')
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscriber. Unknown subscriptions are ignored."""
        with self._lock:
            self._subscriptions.pop(subscription.id, None)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _publish(self, topic: str, message: dict) -> int:
        """Offer ``message`` to every subscriber of ``topic``. Returns deliveries."""
        with self._lock:
            targets = [s for s in self._subscriptions.values() if topic in s.topics]

        delivered = 0
        for subscription in targets:
            try:
                subscription.queue.put_nowait(message)
                delivered += 1
            except queue.Full:
                subscription.dropped += 1
                with self._lock:
                    self.messages_dropped += 1
                logger.warning(
                    f'Subscriber {subscription.id[:8]} is not keeping up, '
                    f'dropped {message.get("type")} message'
                )
            except Exception as e:
                logger.error(f'Failed to deliver {topic} message: {e}')

        with self._lock:
            self.messages_sent += 1
        return delivered

    def notify_update(self, count: int) -> None:
        """Broadcast that ``count`` new flight records were stored."""
        try:
            message = {
                'type': 'FLIGHT_UPDATE',
                'flightCount': count,
                'message': 'New flight data available',
                'timestamp': utcnow().isoformat(),
            }
            delivered = self._publish(TOPIC_FLIGHT_UPDATES, message)
            logger.info(
                f'Flight update broadcast: {count} flights to {delivered} subscribers '
                f'| Total broadcasts: {self.messages_sent}'
            )
        except Exception as e:
            logger.error(f'Failed to broadcast flight update: {e}')

    def notify_stats(self, total: int, active: int) -> None:
        """Broadcast current record totals."""
        try:
            message = {
                'type': 'STATISTICS_UPDATE',
                'totalRecords': total,
                'activeFlights': active,
                'timestamp': utcnow().isoformat(),
            }
            self._publish(TOPIC_STATISTICS, message)
            logger.debug('Statistics broadcast sent')
        except Exception as e:
            logger.error(f'Failed to broadcast statistics: {e}')

    def notify_event(self, message: str, severity: Severity = Severity.INFO) -> None:
        """Broadcast a system notification."""
        try:
            level = Severity(severity).value
            notification = {
                'type': 'NOTIFICATION',
                'level': level,
                'message': message,
                'timestamp': utcnow().isoformat(),
            }
            self._publish(TOPIC_NOTIFICATIONS, notification)
            logger.info(f'Notification broadcast: {level} - {message}')
        except Exception as e:
            logger.error(f'Failed to broadcast notification: {e}')
