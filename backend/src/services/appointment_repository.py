"""
Appointment repository: the storage boundary of the scheduling core.

The scheduling services only talk to ``AppointmentRepository``. The default
implementation stores appointments with SQLAlchemy; every call opens its own
short transaction, and every database failure (including driver/statement
timeouts) is classified as ``UnavailableError`` so a failed read can never be
mistaken for "no conflicts".
"""

import logging
from abc import ABC, abstractmethod
from datetime import date as date_type
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from core.database import session_scope
from core.exceptions import NotFoundError, UnavailableError, ValidationError
from models import Appointment, AppointmentResourceAllocation
from shared_types.scheduling import ResourceSet

logger = logging.getLogger(__name__)


def _replace_allocations(appointment: Appointment, resources: ResourceSet) -> None:
    """
    Make the appointment's allocation rows match ``resources``.

    Unchanged rows are kept in place; the unit of work flushes inserts before
    orphan deletes, so re-adding an identical row would trip the unique constraint.
    """
    wanted = set(resources.allocations())
    kept = [
        allocation for allocation in appointment.resource_allocations
        if (allocation.resource_kind, allocation.resource_id) in wanted
    ]
    present = {(allocation.resource_kind, allocation.resource_id) for allocation in kept}
    added = [
        AppointmentResourceAllocation(resource_kind=kind, resource_id=resource_id)
        for kind, resource_id in resources.allocations()
        if (kind, resource_id) not in present
    ]
    appointment.resource_allocations = kept + added


def _range_filters(
    start_date: date_type,
    end_date: date_type,
    status: Optional[str],
    resource_id: Optional[str],
    patient_ref: Optional[str],
) -> List[Any]:
    """WHERE clauses shared by the range listing and its count."""
    filters: List[Any] = [
        Appointment.date >= start_date,
        Appointment.date <= end_date,
    ]
    if status:
        filters.append(Appointment.status == status)
    if patient_ref:
        filters.append(Appointment.patient_ref == patient_ref)
    if resource_id:
        filters.append(
            Appointment.id.in_(
                select(AppointmentResourceAllocation.appointment_id).where(
                    AppointmentResourceAllocation.resource_id == resource_id
                )
            )
        )
    return filters


class AppointmentRepository(ABC):
    """
    Query/command interface the scheduling core needs from storage.

    Implementations must bound every call in time and raise
    ``UnavailableError`` on expiry or failure.
    """

    @abstractmethod
    def find_by_day_and_resources(self, day: date_type, resource_ids: Iterable[str]) -> List[Appointment]:
        """All appointments on ``day`` holding any of ``resource_ids`` (any status)."""

    @abstractmethod
    def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        """The appointment, or None."""

    @abstractmethod
    def insert(self, appointment: Appointment, resources: ResourceSet) -> Appointment:
        """Persist a new appointment and its allocations; returns it with id and sequence number."""

    @abstractmethod
    def update(
        self,
        appointment_id: str,
        patch: Dict[str, Any],
        resources: Optional[ResourceSet] = None,
        expected_status: Optional[str] = None,
    ) -> Optional[Appointment]:
        """
        Apply column changes (and optionally replace allocations).

        When ``expected_status`` is given the write only happens if the stored
        status still matches; otherwise None is returned and nothing changes.

        Raises:
            NotFoundError: If the appointment does not exist
        """

    @abstractmethod
    def find_in_range(
        self,
        start_date: date_type,
        end_date: date_type,
        status: Optional[str] = None,
        resource_id: Optional[str] = None,
        patient_ref: Optional[str] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Appointment]:
        """Appointments between two dates (inclusive), ordered by date and start time."""

    @abstractmethod
    def count_in_range(
        self,
        start_date: date_type,
        end_date: date_type,
        status: Optional[str] = None,
        resource_id: Optional[str] = None,
        patient_ref: Optional[str] = None,
    ) -> int:
        """Number of appointments ``find_in_range`` would return without offset/limit."""


class SqlAlchemyAppointmentRepository(AppointmentRepository):
    """AppointmentRepository backed by a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def find_by_day_and_resources(self, day: date_type, resource_ids: Iterable[str]) -> List[Appointment]:
        ids = sorted(set(resource_ids))
        if not ids:
            return []
        holding = select(AppointmentResourceAllocation.appointment_id).where(
            AppointmentResourceAllocation.resource_id.in_(ids)
        )
        query = select(Appointment).where(
            Appointment.date == day,
            Appointment.id.in_(holding),
        ).order_by(Appointment.start_time)
        try:
            with session_scope(self._session_factory) as db:
                return list(db.scalars(query).all())
        except SQLAlchemyError as e:
            logger.error(f"Ledger query failed for {day} {ids}: {e}")
            raise UnavailableError("Appointment storage is unavailable") from e

    def find_by_id(self, appointment_id: str) -> Optional[Appointment]:
        try:
            with session_scope(self._session_factory) as db:
                return db.scalars(select(Appointment).where(Appointment.id == appointment_id)).first()
        except SQLAlchemyError as e:
            logger.error(f"Lookup failed for appointment {appointment_id}: {e}")
            raise UnavailableError("Appointment storage is unavailable", [appointment_id]) from e

    def insert(self, appointment: Appointment, resources: ResourceSet) -> Appointment:
        appointment.resource_allocations = [
            AppointmentResourceAllocation(resource_kind=kind, resource_id=resource_id)
            for kind, resource_id in resources.allocations()
        ]
        try:
            with session_scope(self._session_factory) as db:
                db.add(appointment)
                db.flush()  # Assigns sequence_number
            return appointment
        except IntegrityError as e:
            logger.warning(f"Insert rejected by storage constraints: {e}")
            raise ValidationError("Appointment violates storage constraints") from e
        except SQLAlchemyError as e:
            logger.error(f"Insert failed for appointment on {appointment.date}: {e}")
            raise UnavailableError("Appointment storage is unavailable") from e

    def update(
        self,
        appointment_id: str,
        patch: Dict[str, Any],
        resources: Optional[ResourceSet] = None,
        expected_status: Optional[str] = None,
    ) -> Optional[Appointment]:
        try:
            with session_scope(self._session_factory) as db:
                query = select(Appointment).where(Appointment.id == appointment_id)
                if db.get_bind().dialect.name != "sqlite":
                    query = query.with_for_update()
                appointment = db.scalars(query).first()
                if appointment is None:
                    raise NotFoundError(f"Appointment {appointment_id} not found", [appointment_id])
                if expected_status is not None and appointment.status != expected_status:
                    logger.info(
                        f"Stale update on appointment {appointment_id}: expected {expected_status}, found {appointment.status}"
                    )
                    return None

                for column, value in patch.items():
                    setattr(appointment, column, value)

                if resources is not None:
                    _replace_allocations(appointment, resources)
                db.flush()
                db.refresh(appointment)
            return appointment
        except IntegrityError as e:
            logger.warning(f"Update rejected by storage constraints: {e}")
            raise ValidationError("Appointment violates storage constraints", [appointment_id]) from e
        except SQLAlchemyError as e:
            logger.error(f"Update failed for appointment {appointment_id}: {e}")
            raise UnavailableError("Appointment storage is unavailable", [appointment_id]) from e

    def find_in_range(
        self,
        start_date: date_type,
        end_date: date_type,
        status: Optional[str] = None,
        resource_id: Optional[str] = None,
        patient_ref: Optional[str] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Appointment]:
        query = select(Appointment).where(*_range_filters(start_date, end_date, status, resource_id, patient_ref))
        query = query.order_by(Appointment.date, Appointment.start_time, Appointment.sequence_number)
        if offset is not None:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        try:
            with session_scope(self._session_factory) as db:
                return list(db.scalars(query).all())
        except SQLAlchemyError as e:
            logger.error(f"Range query failed for {start_date}..{end_date}: {e}")
            raise UnavailableError("Appointment storage is unavailable") from e

    def count_in_range(
        self,
        start_date: date_type,
        end_date: date_type,
        status: Optional[str] = None,
        resource_id: Optional[str] = None,
        patient_ref: Optional[str] = None,
    ) -> int:
        query = select(func.count(Appointment.id)).where(
            *_range_filters(start_date, end_date, status, resource_id, patient_ref)
        )
        try:
            with session_scope(self._session_factory) as db:
                return db.scalar(query) or 0
        except SQLAlchemyError as e:
            logger.error(f"Range count failed for {start_date}..{end_date}: {e}")
            raise UnavailableError("Appointment storage is unavailable") from e
