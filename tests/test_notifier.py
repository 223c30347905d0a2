import queue

import pytest

from flighttracker.notifier import (
    Notifier,
    Severity,
    TOPIC_FLIGHT_UPDATES,
    TOPIC_NOTIFICATIONS,
    TOPIC_STATISTICS,
)


def test_messages_reach_subscribers_of_their_topic(notifier):
    everything = notifier.subscribe()
    stats_only = notifier.subscribe([TOPIC_STATISTICS])

    notifier.notify_update(12)
    notifier.notify_stats(100, 40)
    notifier.notify_event('Cleanup: Removed 3 old records', Severity.INFO)

    assert [m['type'] for m in everything.drain()] == [
        'FLIGHT_UPDATE', 'STATISTICS_UPDATE', 'NOTIFICATION',
    ]
    assert [m['type'] for m in stats_only.drain()] == ['STATISTICS_UPDATE']
    assert notifier.messages_sent == 3


def test_message_shapes(notifier):
    sub = notifier.subscribe()

    notifier.notify_update(5)
    notifier.notify_stats(10, 4)
    notifier.notify_event('fetch failed', Severity.ERROR)
    update, stats, event = sub.drain()

    assert update['flightCount'] == 5
    assert (stats['totalRecords'], stats['activeFlights']) == (10, 4)
    assert (event['level'], event['message']) == ('ERROR', 'fetch failed')
    for message in (update, stats, event):
        assert 'T' in message['timestamp']


def test_severity_accepts_plain_strings(notifier):
    sub = notifier.subscribe([TOPIC_NOTIFICATIONS])

    notifier.notify_event('heads up', 'WARNING')

    assert sub.get(timeout=1)['level'] == 'WARNING'


def test_full_subscriber_drops_without_blocking():
    notifier = Notifier(max_queue_size=2)
    slow = notifier.subscribe([TOPIC_FLIGHT_UPDATES])
    fast = notifier.subscribe([TOPIC_FLIGHT_UPDATES])

    for count in range(5):
        notifier.notify_update(count)
        fast.drain()

    assert slow.queue.qsize() == 2
    assert slow.dropped == 3
    assert notifier.messages_dropped == 3


def test_publish_without_subscribers_is_fine(notifier):
    notifier.notify_update(1)
    assert notifier.subscriber_count == 0


def test_unsubscribe_stops_delivery(notifier):
    sub = notifier.subscribe()
    notifier.unsubscribe(sub)
    notifier.unsubscribe(sub)

    notifier.notify_update(3)

    with pytest.raises(queue.Empty):
        sub.get(timeout=0.01)
    assert notifier.subscriber_count == 0


def test_unknown_topic_is_rejected(notifier):
    with pytest.raises(ValueError):
        notifier.subscribe(['weather'])


def test_invalid_severity_is_logged_not_raised(notifier):
    sub = notifier.subscribe([TOPIC_NOTIFICATIONS])

    notifier.notify_event('oops', 'CATASTROPHIC')

    assert sub.drain() == []
