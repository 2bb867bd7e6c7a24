# pyright: reportMissingTypeStubs=false
"""
Database configuration and session management.

This module sets up the SQLAlchemy engine with bounded timeouts, the session
factory and the transactional scope used by the appointment repository.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from core.config import DATABASE_URL, REPOSITORY_TIMEOUT_SECONDS
from core.constants import DB_POOL_RECYCLE_SECONDS

logger = logging.getLogger(__name__)


def engine_options(database_url: str, timeout_seconds: float = REPOSITORY_TIMEOUT_SECONDS) -> Dict[str, Any]:
    """
    Build create_engine() keyword arguments that bound every database call.

    Connection checkout, connect and statement execution are all limited by
    ``timeout_seconds`` so a stalled database surfaces as an error instead of
    blocking a booking request indefinitely.
    """
    options: Dict[str, Any] = {
        "pool_pre_ping": True,  # Verify connections before use
        "echo": False,          # Disable SQL logging
    }
    if database_url.startswith("sqlite"):
        # sqlite3 busy timeout (seconds); connections may cross threads under FastAPI
        options["connect_args"] = {"timeout": timeout_seconds, "check_same_thread": False}
    else:
        timeout_ms = int(timeout_seconds * 1000)
        options["pool_recycle"] = DB_POOL_RECYCLE_SECONDS
        options["pool_timeout"] = timeout_seconds
        options["connect_args"] = {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}",
        }
    return options


def make_session_factory(bind: Engine) -> sessionmaker[Session]:
    """Create a configured session factory for an engine."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=bind,
        expire_on_commit=False,  # Don't expire objects after commit
    )


# Create SQLAlchemy engine with bounded timeouts
engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))

# Create configured SessionLocal class
SessionLocal = make_session_factory(engine)


# Create Base class for declarative models
class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


# SQLAlchemy event listeners to automatically set created_at and updated_at using clinic timezone
@event.listens_for(Base, "before_insert", propagate=True)  # type: ignore
def receive_before_insert(mapper, connection, target):  # type: ignore
    """Set created_at and updated_at on insert using clinic timezone."""
    # Import here to avoid circular import
    from utils.datetime_utils import clinic_now
    now = clinic_now()
    for column_name in ("created_at", "updated_at"):
        # Only set the column if it's mapped; properties won't be in mapper.columns
        if column_name in mapper.columns and getattr(target, column_name, None) is None:  # type: ignore
            setattr(target, column_name, now)


@event.listens_for(Base, "before_update", propagate=True)  # type: ignore
def receive_before_update(mapper, connection, target):  # type: ignore
    """Set updated_at on update using clinic timezone."""
    # Import here to avoid circular import
    from utils.datetime_utils import clinic_now
    if "updated_at" in mapper.columns:  # type: ignore
        setattr(target, "updated_at", clinic_now())


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    Transactional scope around a series of operations.

    Commits on success, rolls back on any exception, always closes.

    Example:
        ```python
        with session_scope(SessionLocal) as db:
            db.add(appointment)
        ```
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_tables(bind: Engine | None = None) -> None:
    """
    Create all database tables defined in SQLAlchemy models.

    Safe to call multiple times - will not recreate existing tables.

    Note:
        In production, prefer using Alembic migrations instead of this function.
        This is primarily useful for testing or initial setup.
    """
    # Import models so they're registered on Base.metadata
    import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=bind or engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.exception(f"Failed to create database tables: {e}")
        raise


def drop_tables(bind: Engine | None = None) -> None:
    """
    Drop all database tables defined in SQLAlchemy models.

    WARNING: This will permanently delete all data in the tables!
    """
    import models  # noqa: F401

    try:
        Base.metadata.drop_all(bind=bind or engine)
        logger.info("Database tables dropped successfully")
    except SQLAlchemyError as e:
        logger.exception(f"Failed to drop database tables: {e}")
        raise
