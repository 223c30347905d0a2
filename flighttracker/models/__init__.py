"""
Database models for the flight tracker.

One flat append-only table of observations, designed for:
1. Atomic delete-then-insert reconciliation per ingestion cycle
2. Efficient time-range queries per aircraft
3. Cheap age-based purge
"""

from flighttracker.models.base import (
    Base,
    make_engine,
    make_session_factory,
    session_scope,
    init_db,
)
from flighttracker.models.flight_record import FlightRecord, utcnow, isoformat

__all__ = [
    'Base',
    'make_engine',
    'make_session_factory',
    'session_scope',
    'init_db',
    'FlightRecord',
    'utcnow',
    'isoformat',
]
