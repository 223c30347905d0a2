"""
Admin API endpoints.

Provides endpoints for:
- POST /api/admin/fetch-now - Run one ingestion cycle immediately
- POST /api/admin/cleanup?hours=24 - Purge old records
- GET  /api/admin/health - Record counts and ingestion counters
- POST /api/admin/clear-all - Delete every stored record
- POST /api/admin/reset-counters - Zero the ingestion tallies
"""

import logging

from flask import Blueprint, jsonify, request, current_app

from flighttracker.services.tracker import parse_hours

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')


def _service():
    return current_app.config['TRACKER_SERVICE']


@admin_bp.route('/fetch-now', methods=['POST'])
def fetch_now():
    """
    Manually trigger a flight fetch.

    Failures come back as 200 with success=false so callers can tell a
    failed cycle apart from an unreachable server.
    """
    return jsonify(_service().fetch_now())


@admin_bp.route('/cleanup', methods=['POST'])
def cleanup():
    """Clean up old data manually."""
    try:
        hours = parse_hours(request.args.get('hours', '24'))
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    return jsonify(_service().cleanup(hours))


@admin_bp.route('/health', methods=['GET'])
def health():
    """System health: always 200, status field says healthy or degraded."""
    return jsonify(_service().health())


@admin_bp.route('/clear-all', methods=['POST'])
def clear_all():
    """Clear entire database (use with caution!)."""
    logger.warning(f'clear-all requested from {request.remote_addr}')
    return jsonify(_service().clear_all())


@admin_bp.route('/reset-counters', methods=['POST'])
def reset_counters():
    """Reset the ingestion success/failure counters."""
    scheduler = current_app.config['SCHEDULER']
    scheduler.reset_counters()
    return jsonify({'success': True, 'ingestion': scheduler.counters})
