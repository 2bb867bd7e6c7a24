"""
Appointment lifecycle service.

Owns the state machine of a single appointment: creation, modification and
status transitions. Creation and modification run the conflict check and the
write under the resource-day lock, and modification also holds the
appointment's own edit lock; status transitions are compare-and-set on the
previous status.
"""

import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from core.constants import (
    APPOINTMENT_STATUSES,
    CHANNEL_ONLINE,
    MAX_CANCELLATION_REASON_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_PAGE_SIZE,
    MODIFIABLE_STATUSES,
    STATUS_CANCELLED,
    STATUS_CHECKED_IN,
    STATUS_COMPLETED,
    STATUS_CONFIRMED,
    STATUS_IN_PROGRESS,
    STATUS_NO_SHOW,
    STATUS_PENDING,
    TERMINAL_STATUSES,
)
from core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from models import Appointment
from services.appointment_repository import AppointmentRepository
from services.conflict_checker import ConflictChecker
from services.resource_lock import ResourceLockManager
from shared_types.scheduling import AppointmentPatch, AppointmentRequest
from utils.datetime_utils import clinic_now, month_bounds

logger = logging.getLogger(__name__)


def initial_status(booking_channel: str) -> str:
    """Online bookings wait for staff confirmation; staff-entered bookings are confirmed at once."""
    return STATUS_PENDING if booking_channel == CHANNEL_ONLINE else STATUS_CONFIRMED


class AppointmentLifecycle:
    """
    State machine for appointments.

    States: pending, confirmed, checked-in, in-progress, completed, cancelled,
    no-show. The last three are terminal.
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        checker: ConflictChecker,
        lock_manager: ResourceLockManager,
    ):
        self.repository = repository
        self.checker = checker
        self.lock_manager = lock_manager

    # ===== Creation and modification =====

    def create(self, request: AppointmentRequest) -> Appointment:
        """
        Book a single appointment.

        The conflict check and the insert run while holding the lock for
        every ``(resource_id, day)`` of the request.

        Args:
            request: Booking request

        Returns:
            The persisted appointment (id and sequence number assigned)

        Raises:
            ValidationError: If the request is malformed
            ConflictError: If a committed appointment holds one of the resources
            UnavailableError: If storage or the lock can't be reached in time
        """
        request.validate()
        interval = request.interval
        resources = request.resources

        with self.lock_manager.hold(interval.day, resources.identifiers):
            result = self.checker.check_conflict(interval, resources)
            if result.has_conflict:
                logger.warning(
                    f"Booking for patient {request.patient_ref} at {interval} rejected: "
                    f"conflicts with {list(result.conflicting_appointment_ids)}"
                )
                raise ConflictError(
                    f"Time slot {interval} is already booked for the requested resources",
                    result.conflicting_appointment_ids,
                )

            status = initial_status(request.booking_channel)
            appointment = Appointment(
                patient_ref=request.patient_ref.strip(),
                date=interval.day,
                start_time=interval.start_time,
                end_time=interval.end_time,
                status=status,
                services=[item.to_dict() for item in request.services],
                booking_channel=request.booking_channel,
                appointment_type=request.appointment_type,
                priority=request.priority,
                notes=request.notes,
                created_by=request.operator_id,
                confirmed_at=clinic_now() if status == STATUS_CONFIRMED else None,
            )
            created = self.repository.insert(appointment, resources)

        logger.info(
            f"Created appointment {created.appointment_number} ({created.id}) for patient "
            f"{created.patient_ref} at {interval}, status {created.status}"
        )
        return created

    def modify(self, appointment_id: str, patch: AppointmentPatch) -> Appointment:
        """
        Change time, resources, services or notes of a pending/confirmed appointment.

        The appointment's edit lock is held while it is read, merged with the
        patch, re-checked (excluding itself) and written, so concurrent edits
        of one appointment each start from the other's result. On conflict
        nothing is written.

        Raises:
            NotFoundError: If the appointment does not exist
            InvalidStateError: If the appointment is not pending or confirmed
            ConflictError: If the change would double-book a resource
            ValidationError: If the patch is malformed
        """
        if patch.notes is not None and len(patch.notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"Notes are too long (max {MAX_NOTES_LENGTH} characters)")

        with self.lock_manager.hold_appointment(appointment_id):
            current = self.get(appointment_id)
            if current.status not in MODIFIABLE_STATUSES:
                raise InvalidStateError(
                    f"Cannot modify appointment {appointment_id} with status '{current.status}'",
                    [appointment_id],
                )
            if patch.is_empty:
                return current

            interval = patch.interval if patch.interval is not None else current.interval
            resources = patch.resources if patch.resources is not None else current.resources

            columns: Dict[str, Any] = {}
            if patch.interval is not None:
                columns.update(date=interval.day, start_time=interval.start_time, end_time=interval.end_time)
            if patch.services is not None:
                columns["services"] = [item.to_dict() for item in patch.services]
            if patch.notes is not None:
                columns["notes"] = patch.notes

            with self.lock_manager.hold(interval.day, resources.identifiers):
                result = self.checker.check_conflict(interval, resources, exclude_id=appointment_id)
                if result.has_conflict:
                    logger.warning(
                        f"Modification of appointment {appointment_id} to {interval} rejected: "
                        f"conflicts with {list(result.conflicting_appointment_ids)}"
                    )
                    raise ConflictError(
                        f"Time slot {interval} is already booked for the requested resources",
                        result.conflicting_appointment_ids,
                    )
                updated = self.repository.update(
                    appointment_id,
                    columns,
                    resources=patch.resources,
                    expected_status=current.status,
                )

        if updated is None:
            raise InvalidStateError(
                f"Appointment {appointment_id} changed status while being modified", [appointment_id]
            )
        logger.info(f"Modified appointment {appointment_id}: now {updated.interval}")
        return updated

    # ===== Status transitions =====

    def confirm(self, appointment_id: str) -> Appointment:
        """pending -> confirmed."""
        return self._transition(
            appointment_id, "confirm", {STATUS_PENDING}, STATUS_CONFIRMED,
            lambda now: {"confirmed_at": now},
        )

    def check_in(self, appointment_id: str, operator_id: Optional[str] = None) -> Appointment:
        """pending/confirmed -> checked-in, recording time and operator."""
        return self._transition(
            appointment_id, "check in", {STATUS_PENDING, STATUS_CONFIRMED}, STATUS_CHECKED_IN,
            lambda now: {"checked_in_at": now, "checked_in_by": operator_id},
        )

    def start(self, appointment_id: str) -> Appointment:
        """checked-in -> in-progress, recording the actual start."""
        return self._transition(
            appointment_id, "start", {STATUS_CHECKED_IN}, STATUS_IN_PROGRESS,
            lambda now: {"started_at": now},
        )

    def complete(self, appointment_id: str) -> Appointment:
        """in-progress -> completed, recording the actual end."""
        return self._transition(
            appointment_id, "complete", {STATUS_IN_PROGRESS}, STATUS_COMPLETED,
            lambda now: {"completed_at": now},
        )

    def cancel(self, appointment_id: str, reason: str, operator_id: Optional[str] = None) -> Appointment:
        """
        Cancel a non-terminal appointment.

        Cancelling an already cancelled appointment returns it unchanged,
        whatever ``reason`` is given.

        Raises:
            NotFoundError: If the appointment does not exist
            ValidationError: If the reason is blank or too long
            InvalidStateError: If the appointment is completed or a no-show
        """
        current = self.get(appointment_id)
        if current.status == STATUS_CANCELLED:
            logger.info(f"Appointment {appointment_id} already cancelled")
            return current

        if not isinstance(reason, str) or not reason.strip():
            raise ValidationError("Cancellation reason is required", [appointment_id])
        reason = reason.strip()
        if len(reason) > MAX_CANCELLATION_REASON_LENGTH:
            raise ValidationError(
                f"Cancellation reason is too long (max {MAX_CANCELLATION_REASON_LENGTH} characters)",
                [appointment_id],
            )
        try:
            return self._transition(
                appointment_id, "cancel", None, STATUS_CANCELLED,
                lambda now: {"cancelled_at": now, "cancelled_by": operator_id, "cancellation_reason": reason},
                current=current,
            )
        except InvalidStateError:
            # Lost a race against another cancel
            latest = self.get(appointment_id)
            if latest.status == STATUS_CANCELLED:
                return latest
            raise

    def mark_no_show(self, appointment_id: str) -> Appointment:
        """Any non-terminal status -> no-show."""
        return self._transition(
            appointment_id, "mark as no-show", None, STATUS_NO_SHOW,
            lambda now: {"no_show_at": now},
        )

    def transition_status(
        self,
        appointment_id: str,
        status: str,
        operator_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Appointment:
        """
        Move an appointment to ``status`` through the matching named transition.

        Raises:
            ValidationError: If ``status`` is unknown (or a cancel lacks a reason)
            InvalidStateError: If the transition is not allowed
        """
        if status not in APPOINTMENT_STATUSES:
            raise ValidationError(f"Unknown appointment status: {status}", [appointment_id])
        if status == STATUS_PENDING:
            raise InvalidStateError("Appointments cannot be moved back to pending", [appointment_id])

        if status == STATUS_CANCELLED:
            return self.cancel(appointment_id, reason or "", operator_id=operator_id)
        if status == STATUS_CHECKED_IN:
            return self.check_in(appointment_id, operator_id=operator_id)

        handlers: Dict[str, Callable[[str], Appointment]] = {
            STATUS_CONFIRMED: self.confirm,
            STATUS_IN_PROGRESS: self.start,
            STATUS_COMPLETED: self.complete,
            STATUS_NO_SHOW: self.mark_no_show,
        }
        return handlers[status](appointment_id)

    def _transition(
        self,
        appointment_id: str,
        action: str,
        allowed_from: Optional[set[str]],
        target: str,
        stamp: Callable[[Any], Dict[str, Any]],
        current: Optional[Appointment] = None,
    ) -> Appointment:
        """
        Apply one status transition with compare-and-set on the current status.

        ``allowed_from`` of None means "any non-terminal status".
        """
        if current is None:
            current = self.get(appointment_id)
        if current.status in TERMINAL_STATUSES:
            raise InvalidStateError(
                f"Cannot {action} appointment {appointment_id}: it is already {current.status}",
                [appointment_id],
            )
        if allowed_from is not None and current.status not in allowed_from:
            raise InvalidStateError(
                f"Cannot {action} appointment {appointment_id} with status '{current.status}'",
                [appointment_id],
            )

        columns = {"status": target}
        columns.update(stamp(clinic_now()))
        updated = self.repository.update(appointment_id, columns, expected_status=current.status)
        if updated is None:
            raise InvalidStateError(
                f"Appointment {appointment_id} changed status concurrently, cannot {action}",
                [appointment_id],
            )

        logger.info(f"Appointment {appointment_id}: {current.status} -> {target}")
        return updated

    # ===== Reads =====

    def get(self, appointment_id: str) -> Appointment:
        """
        Raises:
            NotFoundError: If the appointment does not exist
        """
        appointment = self.repository.find_by_id(appointment_id)
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found", [appointment_id])
        return appointment

    def list_appointments(
        self,
        start_date: date,
        end_date: date,
        status: Optional[str] = None,
        resource_id: Optional[str] = None,
        patient_ref: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> List[Appointment]:
        """
        Appointments between two dates (inclusive), optionally filtered.

        ``page`` (1-indexed) and ``page_size`` must be given together; without
        them every matching appointment is returned.

        Raises:
            ValidationError: On an inverted range, unknown status or bad paging
        """
        self._validate_range(start_date, end_date, status)
        if (page is None) != (page_size is None):
            raise ValidationError("page and page_size must be provided together or both omitted")
        offset = limit = None
        if page is not None and page_size is not None:
            if page < 1:
                raise ValidationError(f"Page must be at least 1, got {page}")
            if not 1 <= page_size <= MAX_PAGE_SIZE:
                raise ValidationError(f"Page size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}")
            offset, limit = (page - 1) * page_size, page_size
        return self.repository.find_in_range(
            start_date, end_date,
            status=status, resource_id=resource_id, patient_ref=patient_ref,
            offset=offset, limit=limit,
        )

    def count_appointments(
        self,
        start_date: date,
        end_date: date,
        status: Optional[str] = None,
        resource_id: Optional[str] = None,
        patient_ref: Optional[str] = None,
    ) -> int:
        """Number of appointments ``list_appointments`` matches, ignoring paging."""
        self._validate_range(start_date, end_date, status)
        return self.repository.count_in_range(
            start_date, end_date, status=status, resource_id=resource_id, patient_ref=patient_ref,
        )

    @staticmethod
    def _validate_range(start_date: date, end_date: date, status: Optional[str]) -> None:
        if end_date < start_date:
            raise ValidationError("End date must not be before start date")
        if status is not None and status not in APPOINTMENT_STATUSES:
            raise ValidationError(f"Unknown appointment status: {status}")

    def calendar_month(self, year: int, month: int, resource_id: Optional[str] = None) -> Dict[str, List[Appointment]]:
        """
        Appointments of one month grouped by ISO date.

        Days without appointments are omitted.
        """
        try:
            first_day, last_day = month_bounds(year, month)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        grouped: Dict[str, List[Appointment]] = {}
        for appointment in self.repository.find_in_range(first_day, last_day, resource_id=resource_id):
            grouped.setdefault(appointment.date.isoformat(), []).append(appointment)
        return grouped
