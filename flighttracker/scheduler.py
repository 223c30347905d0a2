"""
Scheduler - orchestrates the periodic ingestion, purge and statistics cycles.

Cycle state per ingestion run:

    IDLE -> FETCHING -> (SAVED | EMPTY | FAILED) -> IDLE

Every cycle is its own recovery boundary: nothing raised inside a cycle
escapes to the ticker, so one failed cycle never stops future ones.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from flighttracker.config import AppConfig, config as default_config
from flighttracker.exceptions import StoreError
from flighttracker.ingestion.opensky_client import OpenSkyClient
from flighttracker.models import utcnow
from flighttracker.notifier import Notifier, Severity
from flighttracker.store import FlightStore
from flighttracker.timers import PeriodicTask, TaskTicker

logger = logging.getLogger(__name__)


class CycleState(str, Enum):
    """Ingestion cycle state."""
    IDLE = 'idle'
    FETCHING = 'fetching'
    SAVED = 'saved'
    EMPTY = 'empty'
    FAILED = 'failed'


@dataclass
class IngestionOutcome:
    """Summary of one ingestion cycle. Not persisted."""
    state: CycleState
    fetched: int = 0
    normalized: int = 0
    inserted: int = 0
    removed: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == CycleState.SAVED

    def to_dict(self) -> dict:
        return {
            'state': self.state.value,
            'fetched': self.fetched,
            'normalized': self.normalized,
            'inserted': self.inserted,
            'removed': self.removed,
            'error': self.error,
        }


class FlightScheduler:
    """
    Owns one fetcher, one store and one notifier and drives them on timers.

    Counters are written only by the ingestion cycle and read by the
    statistics cycle and health reporting.
    """

    def __init__(
        self,
        fetcher: OpenSkyClient,
        store: FlightStore,
        notifier: Notifier,
        settings: Optional[AppConfig] = None,
    ):
        self.fetcher = fetcher
        self.store = store
        self.notifier = notifier
        self.settings = settings or default_config

        # Counters
        self.success_count = 0
        self.failure_count = 0
        self.last_success_at: Optional[datetime] = None
        self.last_outcome: Optional[IngestionOutcome] = None
        self.state = CycleState.IDLE

        # Single-flight guard for scheduled and manual triggers
        self._ingest_lock = threading.Lock()
        self._ticker: Optional[TaskTicker] = None

    @property
    def recency_window(self) -> timedelta:
        return timedelta(minutes=self.settings.ingestion.recency_window_minutes)

    @property
    def active_window(self) -> timedelta:
        return timedelta(minutes=self.settings.ingestion.active_window_minutes)

    # -------------------------------------------------------------------------
    # Ingestion cycle
    # -------------------------------------------------------------------------

    def run_ingestion_cycle(self) -> IngestionOutcome:
        """
        Execute one fetch -> reconcile -> notify pass.

        Never raises. Exactly one counter is incremented per completed
        cycle, however many fetch attempts it took. A call that overlaps
        a running cycle is refused without touching counters.
        """
        if not self._ingest_lock.acquire(blocking=False):
            logger.warning('Ingestion cycle already running, skipping trigger')
            return IngestionOutcome(
                state=CycleState.FAILED,
                error='ingestion cycle already running',
            )

        try:
            logger.info('=== Flight fetch started ===')
            outcome = self._ingest()
            self._record_outcome(outcome)
            logger.info('=== Flight fetch completed ===')
            return outcome
        finally:
            self.state = CycleState.IDLE
            self._ingest_lock.release()

    def _ingest(self) -> IngestionOutcome:
        self.state = CycleState.FETCHING
        try:
            result = self.fetcher.fetch_snapshot()
            if not result.ok:
                return IngestionOutcome(
                    state=CycleState.FAILED,
                    fetched=result.fetched,
                    error=result.error,
                )

            reconciled = self.store.reconcile_and_insert(
                result.records,
                recency_window=self.recency_window,
            )
        except StoreError as e:
            return IngestionOutcome(
                state=CycleState.FAILED,
                fetched=result.fetched,
                normalized=len(result.records),
                error=str(e),
            )
        except Exception as e:
            logger.exception('Unexpected ingestion error')
            return IngestionOutcome(state=CycleState.FAILED, error=str(e))

        state = CycleState.SAVED if reconciled.inserted > 0 else CycleState.EMPTY
        return IngestionOutcome(
            state=state,
            fetched=result.fetched,
            normalized=len(result.records),
            inserted=reconciled.inserted,
            removed=reconciled.removed,
        )

    def _record_outcome(self, outcome: IngestionOutcome) -> None:
        self.state = outcome.state
        self.last_outcome = outcome

        if outcome.state == CycleState.SAVED:
            self.success_count += 1
            self.last_success_at = utcnow()
            logger.info(
                f'Fetch successful: {outcome.inserted} new records '
                f'({outcome.removed} superseded) | '
                f'Success rate: {self.success_count}/{self.success_count + self.failure_count}'
            )
            self.notifier.notify_update(outcome.inserted)

        elif outcome.state == CycleState.EMPTY:
            self.failure_count += 1
            logger.warning(
                f'Fetch returned 0 flights ({outcome.fetched} raw) | Failures: {self.failure_count}'
            )
            self.notifier.notify_event('Flight data fetch returned no results', Severity.WARNING)

        else:
            self.failure_count += 1
            logger.error(f'Scheduled fetch failed: {outcome.error} | Failures: {self.failure_count}')
            self.notifier.notify_event(f'Flight data fetch failed: {outcome.error}', Severity.ERROR)

    # -------------------------------------------------------------------------
    # Purge cycle
    # -------------------------------------------------------------------------

    def run_purge_cycle(self, hours: Optional[int] = None) -> int:
        """Delete records older than the retention horizon. Never raises."""
        hours = hours if hours is not None else self.settings.retention.hours
        logger.info(f'=== Starting cleanup of data older than {hours}h ===')

        try:
            cutoff = utcnow() - timedelta(hours=hours)
            deleted = self.store.purge_older_than(cutoff)
        except Exception as e:
            logger.error(f'Cleanup failed: {e}')
            return 0

        if deleted > 0:
            self.notifier.notify_event(f'Cleanup: Removed {deleted} old records', Severity.INFO)

        try:
            remaining = self.store.count_all()
        except Exception as e:
            logger.error(f'Cleanup deleted {deleted} records, remaining count unavailable: {e}')
            return deleted

        logger.info(f'Cleanup complete: Deleted {deleted} old records | Remaining: {remaining}')
        return deleted

    # -------------------------------------------------------------------------
    # Statistics cycle
    # -------------------------------------------------------------------------

    def run_statistics_cycle(self) -> Optional[dict]:
        """Log and broadcast record counts. Read-only; never raises."""
        try:
            total = self.store.count_all()
            active = self.store.count_active_since(utcnow() - self.active_window)
        except Exception as e:
            logger.error(f'Statistics collection failed: {e}')
            return None

        last_fetch = self.last_success_at.strftime('%H:%M:%S') if self.last_success_at else 'Never'
        logger.info(
            f'STATS: Total records: {total} | Active flights: {active} | '
            f'Last fetch: {last_fetch} | Success/Fail: {self.success_count}/{self.failure_count}'
        )

        self.notifier.notify_stats(total, active)
        return {'total': total, 'active': active}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def counters(self) -> dict:
        """Ingestion counters for health reporting."""
        return {
            'successful_fetches': self.success_count,
            'failed_fetches': self.failure_count,
            'last_success_at': self.last_success_at.isoformat() if self.last_success_at else None,
            'state': self.state.value,
            'running': self.running,
        }

    def reset_counters(self) -> None:
        """Admin action: zero the success/failure tallies."""
        self.success_count = 0
        self.failure_count = 0
        self.last_success_at = None
        logger.info('Ingestion counters reset')

    @property
    def running(self) -> bool:
        return self._ticker is not None and self._ticker.running

    def start(self) -> None:
        """Register the three periodic cycles and start ticking."""
        if self.running:
            logger.warning('Scheduler already running')
            return

        ingestion = self.settings.ingestion
        ticker = TaskTicker(
            pool_size=self.settings.scheduler.pool_size,
            tick_seconds=self.settings.scheduler.tick_seconds,
        )
        ticker.add(PeriodicTask.fixed_delay(
            'ingestion',
            self.run_ingestion_cycle,
            interval=ingestion.interval_seconds,
            initial_delay=ingestion.initial_delay_seconds,
        ))
        ticker.add(PeriodicTask.hourly('purge', self.run_purge_cycle))
        ticker.add(PeriodicTask.fixed_delay(
            'statistics',
            self.run_statistics_cycle,
            interval=self.settings.statistics.interval_seconds,
        ))

        self.fetcher.reset()
        self._ticker = ticker
        ticker.start()

        logger.info(
            f'Scheduler started: ingestion every {ingestion.interval_seconds}s, '
            f'purge hourly ({self.settings.retention.hours}h retention), '
            f'statistics every {self.settings.statistics.interval_seconds}s'
        )

    def stop(self) -> None:
        """
        Stop all cycles, interrupting any pending fetch retry.

        Manual cycles keep working afterwards.
        """
        self.fetcher.cancel()
        if self._ticker:
            self._ticker.stop()
            self._ticker = None
        self.fetcher.reset()
        logger.info('Scheduler stopped')
