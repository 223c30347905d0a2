"""
Service layer.

Exposes the query and admin operations the HTTP layer calls into.
"""

from flighttracker.services.tracker import TrackerService

__all__ = ['TrackerService']
