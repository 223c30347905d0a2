import time
from datetime import datetime, timedelta, timezone

import requests

from flighttracker.config import (
    AppConfig,
    DatabaseConfig,
    IngestionConfig,
    SchedulerConfig,
    StatisticsConfig,
)
from flighttracker.exceptions import StoreError
from flighttracker.models import FlightRecord, make_engine, make_session_factory, init_db, utcnow
from flighttracker.notifier import TOPIC_NOTIFICATIONS, TOPIC_FLIGHT_UPDATES, TOPIC_STATISTICS
from flighttracker.scheduler import CycleState, FlightScheduler
from flighttracker.store import FlightStore

from tests.conftest import make_state

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_batch_with_missing_position_stores_the_rest(scheduler, store, notifier, fake_session):
    updates = notifier.subscribe([TOPIC_FLIGHT_UPDATES])
    fake_session.items = [{'time': int(time.time()), 'states': [
        make_state(icao24='aaa111'),
        make_state(icao24='bbb222', latitude=None),
        make_state(icao24='ccc333'),
    ]}]

    outcome = scheduler.run_ingestion_cycle()

    assert outcome.state == CycleState.SAVED
    assert (outcome.fetched, outcome.normalized, outcome.inserted) == (3, 2, 2)
    assert store.count_all() == 2
    assert scheduler.success_count == 1
    assert scheduler.failure_count == 0
    assert scheduler.last_success_at is not None
    assert updates.drain()[0]['flightCount'] == 2


def test_reingest_same_aircraft_keeps_only_newest(scheduler, store, fake_session):
    now = int(time.time())
    fake_session.items = [{'time': now, 'states': [make_state(icao24='aaa111', last_contact=now - 60)]}]
    scheduler.run_ingestion_cycle()

    fake_session.items = [{'time': now, 'states': [make_state(icao24='aaa111', last_contact=now)]}]
    outcome = scheduler.run_ingestion_cycle()

    trail = store.trail('aaa111', EPOCH)
    assert outcome.removed == 1
    assert len(trail) == 1
    assert trail[0].observed_at.replace(tzinfo=timezone.utc) == datetime.fromtimestamp(now, tz=timezone.utc)


def test_exhausted_retries_count_as_one_failure(scheduler, notifier, fake_session):
    events = notifier.subscribe([TOPIC_NOTIFICATIONS])
    fake_session.items = [requests.exceptions.ConnectionError('network down')]

    outcome = scheduler.run_ingestion_cycle()

    assert outcome.state == CycleState.FAILED
    assert outcome.inserted == 0
    assert len(fake_session.calls) == 3
    assert scheduler.failure_count == 1
    assert scheduler.success_count == 0

    messages = events.drain()
    assert [m['level'] for m in messages] == ['ERROR']
    assert 'network down' in messages[0]['message']


def test_empty_snapshot_is_a_warning(scheduler, notifier, fake_session):
    events = notifier.subscribe([TOPIC_NOTIFICATIONS])
    fake_session.items = [{'time': 1, 'states': [make_state(latitude=None)]}]

    outcome = scheduler.run_ingestion_cycle()

    assert outcome.state == CycleState.EMPTY
    assert scheduler.failure_count == 1
    assert [m['level'] for m in events.drain()] == ['WARNING']


def test_store_failure_fails_cycle_without_raising(fetcher, notifier, settings, fake_session):
    class FailingStore:
        def reconcile_and_insert(self, records, recency_window=None, now=None):
            raise StoreError('disk full')

    fake_session.items = [{'time': 1, 'states': [make_state()]}]
    scheduler = FlightScheduler(fetcher, FailingStore(), notifier, settings)

    outcome = scheduler.run_ingestion_cycle()

    assert outcome.state == CycleState.FAILED
    assert outcome.error == 'disk full'
    assert scheduler.failure_count == 1


def test_unexpected_error_is_contained(store, notifier, settings):
    class ExplodingFetcher:
        def fetch_snapshot(self):
            raise RuntimeError('unexpected')

    scheduler = FlightScheduler(ExplodingFetcher(), store, notifier, settings)

    outcome = scheduler.run_ingestion_cycle()

    assert outcome.state == CycleState.FAILED
    assert scheduler.failure_count == 1
    assert scheduler.state == CycleState.IDLE


def test_overlapping_cycle_is_refused(scheduler, fake_session):
    scheduler._ingest_lock.acquire()
    try:
        outcome = scheduler.run_ingestion_cycle()
    finally:
        scheduler._ingest_lock.release()

    assert outcome.state == CycleState.FAILED
    assert outcome.error == 'ingestion cycle already running'
    assert fake_session.calls == []
    assert (scheduler.success_count, scheduler.failure_count) == (0, 0)


def test_purge_cycle_deletes_old_records(scheduler, store, notifier):
    events = notifier.subscribe([TOPIC_NOTIFICATIONS])
    now = utcnow()
    store.reconcile_and_insert([
        FlightRecord(aircraft_id='aaa111', latitude=1.0, longitude=1.0,
                     on_ground=False, observed_at=now - timedelta(hours=30)),
        FlightRecord(aircraft_id='bbb222', latitude=1.0, longitude=1.0,
                     on_ground=False, observed_at=now - timedelta(hours=1)),
    ], now=now)

    deleted = scheduler.run_purge_cycle()

    assert deleted == 1
    assert store.count_all() == 1
    assert [m['level'] for m in events.drain()] == ['INFO']


def test_purge_cycle_with_nothing_to_delete_is_silent(scheduler, notifier):
    events = notifier.subscribe([TOPIC_NOTIFICATIONS])

    assert scheduler.run_purge_cycle() == 0
    assert events.drain() == []


def test_purge_cycle_swallows_errors(fetcher, notifier, settings):
    class BrokenStore:
        def purge_older_than(self, cutoff):
            raise StoreError('locked')

    scheduler = FlightScheduler(fetcher, BrokenStore(), notifier, settings)

    assert scheduler.run_purge_cycle() == 0


def test_statistics_cycle_broadcasts_counts(scheduler, notifier, fake_session):
    stats = notifier.subscribe([TOPIC_STATISTICS])
    fake_session.items = [{'time': 1, 'states': [
        make_state(icao24='aaa111'),
        make_state(icao24='bbb222', on_ground=True),
    ]}]
    scheduler.run_ingestion_cycle()

    result = scheduler.run_statistics_cycle()

    assert result == {'total': 2, 'active': 1}
    message = stats.drain()[0]
    assert message['type'] == 'STATISTICS_UPDATE'
    assert (message['totalRecords'], message['activeFlights']) == (2, 1)


def test_reset_counters(scheduler, fake_session):
    fake_session.items = [requests.exceptions.ConnectionError('down')]
    scheduler.run_ingestion_cycle()

    scheduler.reset_counters()

    assert scheduler.counters['failed_fetches'] == 0
    assert scheduler.counters['last_success_at'] is None


def test_start_runs_cycles_until_stopped(tmp_path, fetcher, notifier, fake_session):
    engine = make_engine(DatabaseConfig(url=f'sqlite:///{tmp_path}/flights.db'))
    init_db(engine)
    store = FlightStore(make_session_factory(engine))
    settings = AppConfig(
        ingestion=IngestionConfig(interval_seconds=3600, initial_delay_seconds=0),
        statistics=StatisticsConfig(interval_seconds=3600),
        scheduler=SchedulerConfig(pool_size=3, tick_seconds=0.05),
    )
    fake_session.items = [{'time': 1, 'states': [make_state()]}]
    scheduler = FlightScheduler(fetcher, store, notifier, settings)

    scheduler.start()
    try:
        deadline = time.time() + 5
        while scheduler.success_count == 0 and time.time() < deadline:
            time.sleep(0.05)
        assert scheduler.running
    finally:
        scheduler.stop()
        engine.dispose()

    assert scheduler.success_count == 1
    assert store.count_all() == 1
    assert not scheduler.running


def test_manual_cycle_works_after_stop(scheduler, store, fake_session):
    fake_session.items = [{'time': 1, 'states': [make_state()]}]
    scheduler.stop()

    outcome = scheduler.run_ingestion_cycle()

    assert outcome.state == CycleState.SAVED
    assert len(fake_session.calls) == 1
    assert (scheduler.success_count, scheduler.failure_count) == (1, 0)
    assert store.count_all() == 1


def test_purge_cycle_reports_deletions_when_count_fails(fetcher, notifier, settings):
    class CountlessStore:
        def purge_older_than(self, cutoff):
            return 3

        def count_all(self):
            raise StoreError('locked')

    events = notifier.subscribe([TOPIC_NOTIFICATIONS])
    scheduler = FlightScheduler(fetcher, CountlessStore(), notifier, settings)

    assert scheduler.run_purge_cycle() == 3
    assert [m['level'] for m in events.drain()] == ['INFO']
