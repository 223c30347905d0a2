"""
Data ingestion module for the flight tracker.

Handles fetching OpenSky snapshots and normalizing raw state vectors
into FlightRecords.
"""

from flighttracker.ingestion.normalizer import normalize_state, normalize_states
from flighttracker.ingestion.opensky_client import OpenSkyClient, FetchResult

__all__ = ['normalize_state', 'normalize_states', 'OpenSkyClient', 'FetchResult']
