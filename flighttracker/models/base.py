"""
SQLAlchemy base configuration and session management.

Uses SQLAlchemy 2.0 style with type hints and declarative base.
Designed to be portable between SQLite (dev) and PostgreSQL (prod).
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from flighttracker.config import DatabaseConfig


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """
    Configure SQLite for concurrent ingestion and queries.

    WAL mode allows readers to proceed while a reconcile transaction
    is writing.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA journal_mode=WAL')
    cursor.execute('PRAGMA synchronous=NORMAL')
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def make_engine(database: DatabaseConfig, echo: bool = False) -> Engine:
    """Create an engine with options appropriate for the database type."""
    engine_kwargs = {
        'echo': echo,  # Log SQL in debug mode
    }

    if database.is_sqlite:
        engine_kwargs['connect_args'] = {'check_same_thread': False}
        if database.is_memory:
            # One shared connection, otherwise every checkout sees an empty database
            engine_kwargs['poolclass'] = StaticPool

    engine = create_engine(database.url, **engine_kwargs)

    if database.is_sqlite:
        event.listen(engine, 'connect', _set_sqlite_pragma)

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,  # Records are handed out after commit
    )


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Transactional scope around a series of operations.

    Usage:
        with session_scope(factory) as session:
            session.execute(...)

    Commits on success, rolls back on any exception and re-raises.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """
    Initialize database schema.

    Creates all tables if they don't exist. For production,
    use Alembic migrations instead.
    """
    Base.metadata.create_all(bind=engine)
