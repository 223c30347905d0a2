"""
OpenSky Network API client.

Performs one snapshot fetch per ingestion cycle:
- GET against the configured /states/all URL with a per-attempt timeout
- Envelope validation ({"time": ..., "states": [...]})
- Bounded retry with a fixed, interruptible delay between attempts
- Normalization of every state vector into a FlightRecord

fetch_snapshot() never raises; callers inspect FetchResult.ok instead.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import requests

from flighttracker.config import OpenSkyConfig, config
from flighttracker.exceptions import FetchError
from flighttracker.ingestion.normalizer import normalize_states
from flighttracker.models import FlightRecord, utcnow

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Outcome of one snapshot fetch, including all retry attempts."""
    records: List[FlightRecord] = field(default_factory=list)
    fetched: int = 0  # Raw state vectors in the envelope
    api_time: Optional[int] = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class OpenSkyClient:
    """
    Snapshot fetcher for the OpenSky Network API.

    No authentication is used. The retry wait blocks on a threading.Event
    so that a shutting-down scheduler can interrupt it.
    """

    def __init__(
        self,
        api_url: str = 'https://opensky-network.org/api/states/all',
        timeout: float = 30.0,
        max_attempts: int = 3,
        retry_delay: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        if max_attempts < 1:
            raise ValueError('max_attempts must be at least 1')

        self.api_url = api_url
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.session = session or requests.Session()

        self._cancel = threading.Event()

    @classmethod
    def from_config(cls, opensky: Optional[OpenSkyConfig] = None) -> 'OpenSkyClient':
        """Create client from application configuration."""
        opensky = opensky or config.opensky
        return cls(
            api_url=opensky.api_url,
            timeout=opensky.timeout_seconds,
            max_attempts=opensky.max_attempts,
            retry_delay=opensky.retry_delay_seconds,
        )

    def cancel(self) -> None:
        """Interrupt a pending retry wait; further attempts are abandoned."""
        self._cancel.set()

    def reset(self) -> None:
        """Allow fetching again after cancel()."""
        self._cancel.clear()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def _request_envelope(self) -> Tuple[Optional[int], List[Any]]:
        """
        One HTTP round-trip.

        Returns (api_time, raw_states). A null body or null states list
        is a valid empty snapshot.

        Raises:
            FetchError on network, HTTP or envelope errors
        """
        try:
            response = self.session.get(self.api_url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as e:
            raise FetchError(f'OpenSky API timeout: {e}') from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else '?'
            if status == 429:
                logger.warning('OpenSky rate limit exceeded')
            raise FetchError(f'OpenSky API error: {status}') from e
        except requests.exceptions.RequestException as e:
            raise FetchError(f'OpenSky request failed: {e}') from e
        except ValueError as e:
            raise FetchError(f'OpenSky returned invalid JSON: {e}') from e

        if data is None:
            return None, []
        if not isinstance(data, dict):
            raise FetchError(f'Malformed envelope: expected object, got {type(data).__name__}')

        states = data.get('states')
        if states is None:
            states = []
        elif not isinstance(states, list):
            raise FetchError('Malformed envelope: states is not a list')

        api_time = data.get('time')
        if not isinstance(api_time, int) or isinstance(api_time, bool):
            api_time = None

        return api_time, states

    def fetch_snapshot(self) -> FetchResult:
        """
        Fetch and normalize one snapshot, retrying transient failures.

        Up to max_attempts attempts with retry_delay seconds between them.
        Returns a failed FetchResult after the last attempt or when the
        wait is interrupted by cancel().
        """
        result = FetchResult()
        last_error = None

        for attempt in range(1, self.max_attempts + 1):
            if self.cancelled:
                result.error = 'cancelled'
                logger.info('Snapshot fetch cancelled')
                return result

            result.attempts = attempt
            started = time.perf_counter()
            try:
                api_time, states = self._request_envelope()
            except FetchError as e:
                last_error = str(e)
                logger.warning(f'Fetch attempt {attempt}/{self.max_attempts} failed: {e}')
            except Exception as e:
                last_error = f'Unexpected fetch error: {e}'
                logger.warning(f'Fetch attempt {attempt}/{self.max_attempts} failed: {e}')
            else:
                elapsed_ms = (time.perf_counter() - started) * 1000
                result.api_time = api_time
                result.fetched = len(states)
                result.records = normalize_states(states, utcnow())
                logger.info(
                    f'Received {result.fetched} state vectors from OpenSky '
                    f'({len(result.records)} valid, {elapsed_ms:.0f}ms)'
                )
                return result

            if attempt < self.max_attempts:
                # Event.wait returns True when cancel() was called
                if self._cancel.wait(self.retry_delay):
                    result.error = 'cancelled'
                    logger.info('Snapshot fetch cancelled during retry wait')
                    return result

        result.error = last_error or 'fetch failed'
        logger.error(f'Snapshot fetch failed after {result.attempts} attempts: {result.error}')
        return result
