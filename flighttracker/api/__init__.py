"""
API module for the flight tracker.

Provides REST endpoints for:
- Flight queries (current positions, trails, search, stats)
- Admin actions (manual fetch, cleanup, health, reset)
- Live update streaming (Server-Sent Events)
"""

from flighttracker.api.flights import flights_bp
from flighttracker.api.admin import admin_bp
from flighttracker.api.stream import stream_bp

__all__ = ['flights_bp', 'admin_bp', 'stream_bp']
