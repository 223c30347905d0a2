"""Exception types raised inside the flight tracker."""


class FlightTrackerError(Exception):
    """Base class for flight tracker errors."""


class FetchError(FlightTrackerError):
    """One attempt to fetch a snapshot from the source failed."""


class StoreError(FlightTrackerError):
    """A persistence operation could not be completed and was rolled back."""
