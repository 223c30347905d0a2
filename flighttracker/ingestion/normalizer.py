"""
State vector normalization.

Turns one raw OpenSky state vector (a loosely typed array) into a
FlightRecord, or rejects it. Normalization is record-at-a-time: one
malformed element never aborts the rest of the batch.

OpenSky state vector format (array indices used here):
0: icao24          - ICAO24 hex address
1: callsign        - Callsign (8 chars max)
2: origin_country  - Country of registration
3: time_position   - Unix timestamp of last position update
4: last_contact    - Unix timestamp of last message
5: longitude       - WGS84 longitude
6: latitude        - WGS84 latitude
7: baro_altitude   - Barometric altitude (meters)
8: on_ground       - Boolean
9: velocity        - Ground speed (m/s)
10: true_track     - Track angle (degrees, 0=north)
11: vertical_rate  - Vertical rate (m/s)
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from flighttracker.models import FlightRecord, utcnow

logger = logging.getLogger(__name__)

MIN_STATE_FIELDS = 12
MAX_CALLSIGN_LENGTH = 8

_AIRCRAFT_ID_RE = re.compile(r'^[0-9a-f]{6}$')


def to_float(value: Any) -> Optional[float]:
    """Coerce a number or numeric string to float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        result = float(value)
    else:
        try:
            result = float(str(value).strip())
        except ValueError:
            return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def to_bool(value: Any) -> bool:
    """Coerce a boolean-like value; missing means False."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == 'true'
    if isinstance(value, (int, float)):
        return bool(value)
    return False


def to_text(value: Any) -> Optional[str]:
    """Trimmed string, or None when missing or blank."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_instant(value: Any) -> Optional[datetime]:
    """Convert epoch seconds to an aware UTC datetime."""
    seconds = to_float(value)
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def normalize_state(
    raw: Any,
    ingested_at: Optional[datetime] = None,
) -> Optional[FlightRecord]:
    """
    Parse one state vector into a FlightRecord.

    Returns None when the element has fewer than 12 fields, carries no
    usable position, or has no valid aircraft address. Optional fields
    that fail coercion are stored as unknown instead of rejecting the
    record.
    """
    if not isinstance(raw, (list, tuple)) or len(raw) < MIN_STATE_FIELDS:
        return None

    # Aircraft not transmitting position is not trackable
    longitude = to_float(raw[5])
    latitude = to_float(raw[6])
    if latitude is None or longitude is None:
        return None

    aircraft_id = to_text(raw[0])
    if aircraft_id is None:
        return None
    aircraft_id = aircraft_id.lower()
    if not _AIRCRAFT_ID_RE.match(aircraft_id):
        return None

    callsign = to_text(raw[1])
    if callsign:
        callsign = callsign[:MAX_CALLSIGN_LENGTH].rstrip()

    observed_at = to_instant(raw[4]) or ingested_at or utcnow()

    return FlightRecord(
        aircraft_id=aircraft_id,
        callsign=callsign,
        origin_country=to_text(raw[2]),
        latitude=latitude,
        longitude=longitude,
        altitude=to_float(raw[7]),
        on_ground=to_bool(raw[8]),
        velocity=to_float(raw[9]),
        heading=to_float(raw[10]),
        vertical_rate=to_float(raw[11]),
        observed_at=observed_at,
    )


def normalize_states(
    raws: Iterable[Any],
    ingested_at: Optional[datetime] = None,
) -> List[FlightRecord]:
    """Normalize a batch, skipping rejected or malformed elements."""
    ingested_at = ingested_at or utcnow()
    records = []
    rejected = 0

    for raw in raws:
        try:
            record = normalize_state(raw, ingested_at)
        except Exception as e:
            logger.debug(f'Skipping malformed state vector: {e}')
            record = None

        if record is None:
            rejected += 1
            continue
        records.append(record)

    if rejected:
        logger.debug(f'Rejected {rejected} state vectors without usable position or address')

    return records
