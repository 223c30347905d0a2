"""
Tracker service - the synchronous boundary used by the HTTP layer.

Query and admin operations return plain dicts and lists. Expected
failures (bad parameters, storage errors) come back as
``{'success': False, 'error': ...}`` instead of raising.
"""

import logging
from datetime import timedelta
from typing import List, Optional

from flighttracker.exceptions import FlightTrackerError
from flighttracker.models import utcnow
from flighttracker.scheduler import FlightScheduler, CycleState
from flighttracker.store import FlightStore

logger = logging.getLogger(__name__)

# Rough on-disk footprint of one flight record
BYTES_PER_RECORD = 500

MAX_CLEANUP_HOURS = 24 * 365


def parse_hours(value) -> int:
    """Validate a retention threshold in hours."""
    if isinstance(value, bool):
        raise ValueError('hours must be an integer')
    try:
        hours = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'hours must be an integer, got {value!r}')
    if isinstance(value, float) and value != hours:
        raise ValueError(f'hours must be an integer, got {value!r}')
    if hours <= 0 or hours > MAX_CLEANUP_HOURS:
        raise ValueError(f'hours must be between 1 and {MAX_CLEANUP_HOURS}')
    return hours


class TrackerService:
    """Facade over the store and scheduler for queries and admin actions."""

    def __init__(self, store: FlightStore, scheduler: FlightScheduler):
        self.store = store
        self.scheduler = scheduler

    @property
    def _ingestion(self):
        return self.scheduler.settings.ingestion

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def current_positions(self, minutes: Optional[int] = None) -> List[dict]:
        """Latest airborne position per aircraft seen in the last few minutes."""
        minutes = minutes or self._ingestion.active_window_minutes
        since = utcnow() - timedelta(minutes=minutes)
        return [r.to_dict() for r in self.store.latest_positions(since)]

    def trail(self, aircraft_id: str, hours: Optional[int] = None) -> List[dict]:
        """Recent path of one aircraft, newest first."""
        hours = hours or self._ingestion.trail_window_hours
        since = utcnow() - timedelta(hours=hours)
        return [r.to_dict() for r in self.store.trail(aircraft_id, since)]

    def search_by_callsign(self, text: str, limit: Optional[int] = None) -> List[dict]:
        return [r.to_dict() for r in self.store.search_by_callsign(text, limit=limit)]

    def stats(self) -> dict:
        since = utcnow() - self.scheduler.active_window
        return {
            'totalRecords': self.store.count_all(),
            'currentlyFlying': self.store.count_active_since(since),
        }

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    def fetch_now(self) -> dict:
        """Run one ingestion cycle immediately."""
        outcome = self.scheduler.run_ingestion_cycle()
        if outcome.state == CycleState.FAILED:
            return {
                'success': False,
                'error': outcome.error,
                'state': outcome.state.value,
            }

        try:
            total = self.store.count_all()
        except FlightTrackerError as e:
            # The cycle itself has already committed
            logger.error(f'Fetch saved but record count failed: {e}')
            return {
                'success': False,
                'error': str(e),
                'state': outcome.state.value,
                'flightsFetched': outcome.inserted,
                'recordsRemoved': outcome.removed,
            }

        return {
            'success': True,
            'state': outcome.state.value,
            'flightsFetched': outcome.inserted,
            'recordsRemoved': outcome.removed,
            'totalInDatabase': total,
            'timestamp': utcnow().isoformat(),
        }

    def cleanup(self, hours=24) -> dict:
        """Purge records older than ``hours``."""
        try:
            hours = parse_hours(hours)
        except ValueError as e:
            return {'success': False, 'error': str(e)}

        cutoff = utcnow() - timedelta(hours=hours)
        try:
            deleted = self.store.purge_older_than(cutoff)
        except FlightTrackerError as e:
            logger.error(f'Manual cleanup failed: {e}')
            return {'success': False, 'error': str(e)}

        try:
            remaining = self.store.count_all()
        except FlightTrackerError as e:
            logger.error(f'Cleanup done but record count failed: {e}')
            return {'success': False, 'error': str(e), 'recordsDeleted': deleted}

        return {
            'success': True,
            'recordsDeleted': deleted,
            'recordsRemaining': remaining,
            'cutoffTime': cutoff.isoformat(),
        }

    def health(self) -> dict:
        """
        Record counts and ingestion counters.

        Always returns a payload; storage problems are reported as a
        degraded status with the best-known counters.
        """
        result = {
            'status': 'healthy',
            'ingestion': self.scheduler.counters,
            'subscribers': self.scheduler.notifier.subscriber_count,
            'timestamp': utcnow().isoformat(),
        }

        try:
            total = self.store.count_all()
            active = self.store.count_active_since(utcnow() - self.scheduler.active_window)
        except Exception as e:
            logger.error(f'Health check failed: {e}')
            result['status'] = 'degraded'
            result['error'] = str(e)
            return result

        size_bytes = total * BYTES_PER_RECORD
        result.update({
            'totalRecords': total,
            'activeFlights': active,
            'estimateSizeBytes': size_bytes,
            'estimatedDatabaseSizeMB': f'{size_bytes / 1_000_000:.2f}',
        })
        return result

    def clear_all(self) -> dict:
        """Delete every stored record."""
        try:
            deleted = self.store.clear_all()
        except FlightTrackerError as e:
            return {'success': False, 'error': str(e)}

        return {
            'success': True,
            'recordsDeleted': deleted,
            'message': 'Database cleared completely',
        }
