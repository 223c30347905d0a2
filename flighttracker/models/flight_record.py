"""
FlightRecord model - one observation of one aircraft at one instant.

Rows are append-only: the "current position" of an aircraft is derived
by querying for its most recent observation, never by overwriting a row.
Rows leave the table only through the age-based purge, the dedup
reconciliation that precedes a fresh insert, or an explicit admin reset.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Float, Integer, DateTime, Boolean, Index
from sqlalchemy.orm import Mapped, mapped_column

from flighttracker.models.base import Base


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string for a stored datetime, assuming UTC when naive."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


class FlightRecord(Base):
    """
    Persisted flight-state observation.

    Telemetry fields mirror the OpenSky state vector; unknown values are
    stored as NULL rather than zero.
    """

    __tablename__ = 'flight_records'

    # Surrogate key, never reused (AUTOINCREMENT on SQLite)
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment='Surrogate key'
    )

    aircraft_id: Mapped[str] = mapped_column(
        String(6),
        nullable=False,
        comment='ICAO24 hex transponder address'
    )

    callsign: Mapped[Optional[str]] = mapped_column(
        String(8),
        nullable=True,
        comment='Flight callsign (e.g., UAL839)'
    )

    origin_country: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        comment='Country of aircraft registration'
    )

    # Position (WGS84)
    latitude: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment='Latitude in decimal degrees'
    )

    longitude: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment='Longitude in decimal degrees'
    )

    altitude: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Barometric altitude in meters'
    )

    velocity: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Ground speed in m/s'
    )

    heading: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='True track in degrees (0=north)'
    )

    vertical_rate: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Vertical rate in m/s'
    )

    on_ground: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment='Aircraft on ground'
    )

    observed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment='Last contact time reported by the source'
    )

    ingested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment='Time the row was persisted'
    )

    __table_args__ = (
        # Trail and dedup queries: one aircraft within a time range
        Index('ix_flight_records_aircraft_time', 'aircraft_id', 'observed_at'),

        # Purge and active-count queries
        Index('ix_flight_records_observed_at', 'observed_at'),

        Index('ix_flight_records_callsign', 'callsign'),

        {'sqlite_autoincrement': True},
    )

    def __repr__(self) -> str:
        return f'<FlightRecord {self.aircraft_id} @ {self.observed_at}>'

    def to_row(self) -> dict:
        """Column values for a bulk insert (surrogate key and ingest time excluded)."""
        return {
            'aircraft_id': self.aircraft_id,
            'callsign': self.callsign,
            'origin_country': self.origin_country,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'altitude': self.altitude,
            'velocity': self.velocity,
            'heading': self.heading,
            'vertical_rate': self.vertical_rate,
            'on_ground': bool(self.on_ground),
            'observed_at': self.observed_at,
        }

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        return {
            'id': self.id,
            'aircraft_id': self.aircraft_id,
            'callsign': self.callsign,
            'origin_country': self.origin_country,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'altitude': self.altitude,
            'velocity': self.velocity,
            'heading': self.heading,
            'vertical_rate': self.vertical_rate,
            'on_ground': self.on_ground,
            'observed_at': isoformat(self.observed_at),
            'ingested_at': isoformat(self.ingested_at),
        }
