"""
Deduplicating flight record store.

Owns the flight_records table. Every query spells out its predicate
and ordering explicitly. Writers (ingestion, purge, admin reset) each
run inside a single transaction, so concurrent readers never observe a
reconcile cycle half-applied.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from flighttracker.exceptions import StoreError
from flighttracker.models import FlightRecord, session_scope, utcnow

logger = logging.getLogger(__name__)

DEFAULT_RECENCY_WINDOW = timedelta(minutes=5)


@dataclass(frozen=True)
class ReconcileResult:
    """Rows removed as superseded and rows inserted in one reconcile call."""
    removed: int
    inserted: int


class FlightStore:
    """
    Repository over the flat FlightRecord collection.

    Dedup model: the ingestion cadence is shorter than the recency
    window, so any earlier row inside the window for an aircraft in the
    new batch is a stale "current" snapshot and gets replaced. Rows
    older than the window are trail history and are kept.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def reconcile_and_insert(
        self,
        records: Sequence[FlightRecord],
        recency_window: timedelta = DEFAULT_RECENCY_WINDOW,
        now: Optional[datetime] = None,
    ) -> ReconcileResult:
        """
        Replace recent rows for the batch's aircraft with the batch.

        Deletes rows whose aircraft_id appears in ``records`` and whose
        observed_at is later than ``now - recency_window``, then inserts
        every record. Both steps commit together or not at all.

        Raises:
            StoreError if either step fails (nothing is applied)
        """
        if not records:
            return ReconcileResult(removed=0, inserted=0)

        now = now or utcnow()
        since = now - recency_window
        aircraft_ids = sorted({r.aircraft_id for r in records})

        rows = []
        for record in records:
            row = record.to_row()
            row['ingested_at'] = now
            rows.append(row)

        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(
                    delete(FlightRecord).where(
                        FlightRecord.aircraft_id.in_(aircraft_ids),
                        FlightRecord.observed_at > since,
                    )
                )
                removed = result.rowcount or 0

                session.execute(insert(FlightRecord), rows)
        except SQLAlchemyError as e:
            logger.error(f'Reconcile failed, transaction rolled back: {e}')
            raise StoreError(f'Failed to persist {len(rows)} flight records: {e}') from e

        logger.debug(
            f'Reconciled {len(aircraft_ids)} aircraft: '
            f'removed {removed} superseded, inserted {len(rows)}'
        )
        return ReconcileResult(removed=removed, inserted=len(rows))

    def purge_older_than(self, cutoff: datetime) -> int:
        """Delete rows observed strictly before ``cutoff``. Returns count deleted."""
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(
                    delete(FlightRecord).where(FlightRecord.observed_at < cutoff)
                )
                deleted = result.rowcount or 0
        except SQLAlchemyError as e:
            raise StoreError(f'Failed to purge records older than {cutoff}: {e}') from e

        if deleted:
            logger.info(f'Purged {deleted} records observed before {cutoff.isoformat()}')
        return deleted

    def clear_all(self) -> int:
        """Delete every row. Returns count deleted."""
        try:
            with session_scope(self._session_factory) as session:
                result = session.execute(delete(FlightRecord))
                deleted = result.rowcount or 0
        except SQLAlchemyError as e:
            raise StoreError(f'Failed to clear flight records: {e}') from e

        logger.warning(f'Cleared all flight records ({deleted} deleted)')
        return deleted

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @contextmanager
    def _read_session(self, action: str):
        """Read-only session; database errors surface as StoreError."""
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            raise StoreError(f'Failed to {action}: {e}') from e

    def latest_positions(self, since: datetime) -> List[FlightRecord]:
        """
        Most recent airborne observation per aircraft seen after ``since``.

        Ties on observed_at go to the highest id. Ordered newest first.
        """
        ranked = (
            select(
                FlightRecord.id.label('id'),
                func.row_number().over(
                    partition_by=FlightRecord.aircraft_id,
                    order_by=(FlightRecord.observed_at.desc(), FlightRecord.id.desc()),
                ).label('rn'),
            )
            .where(
                FlightRecord.observed_at > since,
                FlightRecord.on_ground.is_(False),
            )
            .subquery()
        )

        stmt = (
            select(FlightRecord)
            .join(ranked, FlightRecord.id == ranked.c.id)
            .where(ranked.c.rn == 1)
            .order_by(FlightRecord.observed_at.desc(), FlightRecord.id.desc())
        )

        with self._read_session('load latest positions') as session:
            return list(session.scalars(stmt).all())

    def trail(self, aircraft_id: str, since: datetime) -> List[FlightRecord]:
        """All observations of one aircraft after ``since``, newest first."""
        aircraft_id = (aircraft_id or '').strip().lower()

        stmt = (
            select(FlightRecord)
            .where(
                FlightRecord.aircraft_id == aircraft_id,
                FlightRecord.observed_at > since,
            )
            .order_by(FlightRecord.observed_at.desc(), FlightRecord.id.desc())
        )

        with self._read_session(f'load trail for {aircraft_id}') as session:
            return list(session.scalars(stmt).all())

    def search_by_callsign(self, text: str, limit: Optional[int] = None) -> List[FlightRecord]:
        """Case-insensitive substring search over callsigns. Blank queries match nothing."""
        text = (text or '').strip()
        if not text:
            return []

        stmt = (
            select(FlightRecord)
            .where(
                FlightRecord.callsign.is_not(None),
                FlightRecord.callsign.icontains(text, autoescape=True),
            )
            .order_by(FlightRecord.observed_at.desc(), FlightRecord.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._read_session(f'search callsigns for {text!r}') as session:
            return list(session.scalars(stmt).all())

    def count_active_since(self, since: datetime) -> int:
        """
        Count airborne rows observed after ``since``.

        This counts records, not distinct aircraft.
        """
        stmt = select(func.count(FlightRecord.id)).where(
            FlightRecord.on_ground.is_(False),
            FlightRecord.observed_at > since,
        )
        with self._read_session('count active flights') as session:
            return session.scalar(stmt) or 0

    def count_all(self) -> int:
        """Total rows stored."""
        with self._read_session('count flight records') as session:
            return session.scalar(select(func.count(FlightRecord.id))) or 0
