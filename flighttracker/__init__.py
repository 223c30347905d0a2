"""
Flight Tracker Package.

Polls the OpenSky Network for flight states, stores deduplicated
snapshots, and serves current positions, trails and live updates.

Modules:
    ingestion/   OpenSky snapshot fetcher and state vector normalizer
    models/      SQLAlchemy schema (FlightRecord) and session helpers
    store.py     Deduplicating repository over the flight_records table
    scheduler.py Ingestion, purge and statistics cycles
    timers.py    Periodic task ticker on a shared worker pool
    notifier.py  In-process fan-out of live update events
    services/    Query and admin facade used by the HTTP layer
    api/         Flask blueprints
    config.py    Centralized configuration from environment variables
"""

__version__ = '1.0.0'
