"""
Configuration management for the flight tracker.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class OpenSkyConfig:
    """OpenSky API configuration."""
    api_url: str = os.getenv('OPENSKY_API_URL', 'https://opensky-network.org/api/states/all')
    timeout_seconds: float = float(os.getenv('OPENSKY_TIMEOUT_SECONDS', '30'))

    # Retry policy for one snapshot fetch
    max_attempts: int = int(os.getenv('FETCH_MAX_ATTEMPTS', '3'))
    retry_delay_seconds: float = float(os.getenv('FETCH_RETRY_DELAY_SECONDS', '5'))


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///flighttracker.db')

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith('sqlite')

    @property
    def is_memory(self) -> bool:
        return self.url in ('sqlite://', 'sqlite:///:memory:')


@dataclass(frozen=True)
class IngestionConfig:
    """Data ingestion settings."""
    interval_seconds: int = int(os.getenv('FETCH_INTERVAL_SECONDS', '180'))
    initial_delay_seconds: int = int(os.getenv('FETCH_INITIAL_DELAY_SECONDS', '10'))

    # A fresh record supersedes older ones for the same aircraft inside this window
    recency_window_minutes: int = int(os.getenv('RECENCY_WINDOW_MINUTES', '5'))

    # Query windows
    active_window_minutes: int = int(os.getenv('ACTIVE_WINDOW_MINUTES', '5'))
    trail_window_hours: int = int(os.getenv('TRAIL_WINDOW_HOURS', '2'))


@dataclass(frozen=True)
class RetentionConfig:
    """Data retention policy."""
    hours: int = int(os.getenv('RETENTION_HOURS', '24'))


@dataclass(frozen=True)
class StatisticsConfig:
    """Periodic statistics emission."""
    interval_seconds: int = int(os.getenv('STATS_INTERVAL_SECONDS', '600'))


@dataclass(frozen=True)
class SchedulerConfig:
    """Worker pool shared by the periodic cycles."""
    pool_size: int = int(os.getenv('SCHEDULER_POOL_SIZE', '3'))
    tick_seconds: float = 1.0  # Max ticker sleep between due checks


@dataclass(frozen=True)
class NotifierConfig:
    """Live update fan-out settings."""
    queue_size: int = int(os.getenv('SUBSCRIBER_QUEUE_SIZE', '100'))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    opensky: OpenSkyConfig = field(default_factory=OpenSkyConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    statistics: StatisticsConfig = field(default_factory=StatisticsConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    notifier: NotifierConfig = field(default_factory=NotifierConfig)

    # Flask settings
    secret_key: str = os.getenv('SECRET_KEY', 'dev-key-change-in-prod')
    debug: bool = os.getenv('FLASK_DEBUG', '0') == '1'


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        opensky=OpenSkyConfig(),
        database=DatabaseConfig(),
        ingestion=IngestionConfig(),
        retention=RetentionConfig(),
        statistics=StatisticsConfig(),
        scheduler=SchedulerConfig(),
        notifier=NotifierConfig(),
    )


# Singleton instance
config = load_config()
