"""
Pytest fixtures for the flight tracker.

Everything runs against an in-memory SQLite database and a fake HTTP
session, so no network access is needed.
"""
import time

import pytest
import requests

from flighttracker.config import AppConfig, DatabaseConfig, IngestionConfig
from flighttracker.ingestion import OpenSkyClient
from flighttracker.models import make_engine, make_session_factory, init_db
from flighttracker.notifier import Notifier
from flighttracker.scheduler import FlightScheduler
from flighttracker.store import FlightStore


def make_state(
    icao24='abc123',
    callsign='TEST001 ',
    last_contact=None,
    longitude=8.55,
    latitude=47.45,
    altitude=10000.0,
    on_ground=False,
    velocity=230.0,
    heading=90.0,
    vertical_rate=0.0,
    country='Switzerland',
):
    """Raw OpenSky state vector (17 fields) as returned by /states/all."""
    if last_contact is None:
        last_contact = int(time.time())
    return [
        icao24, callsign, country, last_contact, last_contact,
        longitude, latitude, altitude, on_ground, velocity,
        heading, vertical_rate, None, altitude, '1000', False, 0,
    ]


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f'{self.status_code} error', response=self)

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """
    Stand-in for requests.Session.

    Each queued item is either an exception to raise or a payload to
    return as a 200 response (FakeResponse instances are returned as-is).
    The last item repeats once the queue is exhausted.
    """

    def __init__(self, *items):
        self.items = list(items)
        self.calls = []

    def queue(self, *items):
        self.items.extend(items)

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        item = self.items.pop(0) if len(self.items) > 1 else self.items[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, FakeResponse):
            return item
        return FakeResponse(item)


@pytest.fixture
def session_factory():
    engine = make_engine(DatabaseConfig(url='sqlite://'))
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return FlightStore(session_factory)


@pytest.fixture
def notifier():
    return Notifier(max_queue_size=10)


@pytest.fixture
def fake_session():
    return FakeSession({'time': int(time.time()), 'states': []})


@pytest.fixture
def fetcher(fake_session):
    return OpenSkyClient(
        api_url='http://opensky.test/api/states/all',
        timeout=1,
        max_attempts=3,
        retry_delay=0,
        session=fake_session,
    )


@pytest.fixture
def settings():
    return AppConfig(
        database=DatabaseConfig(url='sqlite://'),
        ingestion=IngestionConfig(
            interval_seconds=180,
            initial_delay_seconds=10,
            recency_window_minutes=5,
            active_window_minutes=5,
            trail_window_hours=2,
        ),
    )


@pytest.fixture
def scheduler(fetcher, store, notifier, settings):
    return FlightScheduler(fetcher, store, notifier, settings)
