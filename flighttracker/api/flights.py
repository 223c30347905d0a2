"""
Flight query API endpoints.

Provides endpoints for:
- GET /api/flights/current - Latest airborne position per aircraft
- GET /api/flights/<aircraft_id>/trail - Recent path of one aircraft
- GET /api/flights/search?callsign= - Callsign substring search
- GET /api/flights/stats - Record totals
"""

import logging
import time
from typing import Optional

from flask import Blueprint, jsonify, request, current_app

logger = logging.getLogger(__name__)

flights_bp = Blueprint('flights', __name__, url_prefix='/api/flights')


def _service():
    return current_app.config['TRACKER_SERVICE']


def _int_arg(name: str, default: Optional[int] = None, maximum: Optional[int] = None) -> Optional[int]:
    """Positive integer query parameter, or None when invalid."""
    value = request.args.get(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return None
    if parsed <= 0:
        return None
    return min(parsed, maximum) if maximum else parsed


@flights_bp.route('/current', methods=['GET'])
def current_flights():
    """
    Current positions of all airborne flights.

    Query parameters:
    - minutes: look-back window (default 5, max 60)
    """
    start_time = time.perf_counter()

    minutes = _int_arg('minutes', maximum=60)
    if minutes is None and 'minutes' in request.args:
        return jsonify({'success': False, 'error': 'minutes must be a positive integer'}), 400

    flights = _service().current_positions(minutes)
    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'flights': flights,
        'count': len(flights),
        'query_time_ms': round(query_time_ms, 2),
    })


@flights_bp.route('/<aircraft_id>/trail', methods=['GET'])
def flight_trail(aircraft_id: str):
    """
    Position trail for one aircraft, newest first.

    Query parameters:
    - hours: look-back window (default 2, max 24)
    """
    hours = _int_arg('hours', maximum=24)
    if hours is None and 'hours' in request.args:
        return jsonify({'success': False, 'error': 'hours must be a positive integer'}), 400

    trail = _service().trail(aircraft_id, hours)
    return jsonify({
        'aircraft_id': aircraft_id.lower(),
        'trail': trail,
        'count': len(trail),
    })


@flights_bp.route('/search', methods=['GET'])
def search_flights():
    """
    Search flights by callsign (case-insensitive substring).

    Query parameters:
    - callsign: text to match (required)
    - limit: optional cap on the number of results (max 5000)
    """
    callsign = request.args.get('callsign', '')
    if not callsign.strip():
        return jsonify({'success': False, 'error': 'callsign parameter required'}), 400

    limit = _int_arg('limit', maximum=5000)
    if limit is None and 'limit' in request.args:
        return jsonify({'success': False, 'error': 'limit must be a positive integer'}), 400

    results = _service().search_by_callsign(callsign, limit=limit)
    return jsonify({
        'query': callsign,
        'flights': results,
        'count': len(results),
    })


@flights_bp.route('/stats', methods=['GET'])
def flight_stats():
    """Total and currently flying record counts."""
    return jsonify(_service().stats())
