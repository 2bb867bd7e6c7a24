"""
Test configuration and shared fixtures for the clinic scheduling test suite.

Uses a throwaway SQLite database file per test (the repository opens its own
short sessions, so savepoint-rollback isolation does not apply).
"""

import os

# Must be set before core.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from typing import Generator

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from core.database import create_tables, make_session_factory
from services import (
    AppointmentLifecycle,
    ConflictChecker,
    RecurringSeriesExpander,
    ResourceLedger,
    ResourceLockManager,
    SlotGenerator,
    SqlAlchemyAppointmentRepository,
)
from tests.utils import make_sqlite_engine


@pytest.fixture
def db_engine(tmp_path) -> Generator[Engine, None, None]:
    """Fresh database with all tables for one test."""
    engine = make_sqlite_engine(tmp_path / "scheduling.db")
    create_tables(bind=engine)

    yield engine

    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker[Session]:
    return make_session_factory(db_engine)


@pytest.fixture
def repository(session_factory) -> SqlAlchemyAppointmentRepository:
    return SqlAlchemyAppointmentRepository(session_factory)


@pytest.fixture
def lock_manager() -> ResourceLockManager:
    return ResourceLockManager(timeout_seconds=5)


@pytest.fixture
def checker(repository) -> ConflictChecker:
    return ConflictChecker(ResourceLedger(repository))


@pytest.fixture
def lifecycle(repository, checker, lock_manager) -> AppointmentLifecycle:
    return AppointmentLifecycle(repository, checker, lock_manager)


@pytest.fixture
def slot_generator(checker) -> SlotGenerator:
    return SlotGenerator(checker)


@pytest.fixture
def expander(lifecycle, checker) -> RecurringSeriesExpander:
    return RecurringSeriesExpander(lifecycle, checker)
