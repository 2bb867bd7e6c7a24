# pyright: reportMissingTypeStubs=false
"""
Service dependencies for FastAPI.

Builds the scheduling services per request from the shared session factory
and the application's resource lock manager (created in ``main.lifespan``).
"""

import logging
from datetime import date

from fastapi import Depends, Request
from sqlalchemy.orm import Session, sessionmaker

from core.database import SessionLocal
from core.exceptions import UnavailableError, ValidationError
from services import (
    AppointmentLifecycle,
    AppointmentRepository,
    ConflictChecker,
    RecurringSeriesExpander,
    ResourceLedger,
    ResourceLockManager,
    SlotGenerator,
    SqlAlchemyAppointmentRepository,
)
from utils.datetime_utils import parse_date_string

logger = logging.getLogger(__name__)


def get_session_factory() -> sessionmaker[Session]:
    """Session factory used by the repository (overridden in tests)."""
    return SessionLocal


def get_repository(
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> AppointmentRepository:
    return SqlAlchemyAppointmentRepository(session_factory)


def get_lock_manager(request: Request) -> ResourceLockManager:
    """
    The application-wide resource lock manager.

    Raises:
        UnavailableError: If the application has not finished starting
    """
    lock_manager = getattr(request.app.state, "lock_manager", None)
    if lock_manager is None:
        logger.error("Resource lock manager missing from app state")
        raise UnavailableError("Scheduling service is not ready")
    return lock_manager


def get_conflict_checker(
    repository: AppointmentRepository = Depends(get_repository),
) -> ConflictChecker:
    return ConflictChecker(ResourceLedger(repository))


def get_lifecycle(
    repository: AppointmentRepository = Depends(get_repository),
    checker: ConflictChecker = Depends(get_conflict_checker),
    lock_manager: ResourceLockManager = Depends(get_lock_manager),
) -> AppointmentLifecycle:
    return AppointmentLifecycle(repository, checker, lock_manager)


def get_slot_generator(
    checker: ConflictChecker = Depends(get_conflict_checker),
) -> SlotGenerator:
    return SlotGenerator(checker)


def get_recurring_expander(
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
    checker: ConflictChecker = Depends(get_conflict_checker),
) -> RecurringSeriesExpander:
    return RecurringSeriesExpander(lifecycle, checker)


def parse_date_query(value: str, name: str) -> date:
    """
    Parse a ``YYYY-MM-DD`` query parameter.

    Raises:
        ValidationError: If the value is not a valid date
    """
    try:
        return parse_date_string(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {name}: {value} (expected YYYY-MM-DD)") from e
