# pyright: reportMissingTypeStubs=false
"""
Appointment Management API endpoints.

Scheduling errors raised by the services propagate to the application's
``SchedulingError`` handler, which maps them to 400/404/409/503.
"""

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from core.exceptions import SchedulingError, ValidationError
from api.dependencies import get_lifecycle, get_recurring_expander, parse_date_query
from api.responses import (
    AppointmentCreateRequest,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentUpdateRequest,
    CalendarMonthResponse,
    OccurrenceOutcomeResponse,
    OnlineBookingRequest,
    RecurringAppointmentRequest,
    RecurringAppointmentResponse,
    StatusUpdateRequest,
)
from services import AppointmentLifecycle, RecurringSeriesExpander
from shared_types.scheduling import OUTCOME_AVAILABLE, OUTCOME_CREATED, OUTCOME_FAILED, OUTCOME_SKIPPED

logger = logging.getLogger(__name__)

router = APIRouter()


def _series_response(outcomes: list[OccurrenceOutcomeResponse], expected: str) -> RecurringAppointmentResponse:
    ok_count = sum(1 for outcome in outcomes if outcome.outcome == expected)
    return RecurringAppointmentResponse(
        success=ok_count > 0,
        created_count=sum(1 for outcome in outcomes if outcome.outcome == OUTCOME_CREATED),
        skipped_count=sum(1 for outcome in outcomes if outcome.outcome == OUTCOME_SKIPPED),
        failed_count=sum(1 for outcome in outcomes if outcome.outcome == OUTCOME_FAILED),
        outcomes=outcomes,
    )


# ===== Creation =====

@router.post(
    "/appointments",
    summary="Create appointment (walk-in or phone)",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_appointment(
    request: AppointmentCreateRequest,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
) -> AppointmentResponse:
    """
    Create a staff-entered appointment.

    The booking is confirmed immediately. Returns 409 with the conflicting
    appointment ids when a doctor, room or equipment item is already taken.
    """
    try:
        appointment = lifecycle.create(request.to_request())
        return AppointmentResponse.from_appointment(appointment)
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to create appointment: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create appointment",
        )


@router.post(
    "/appointments/online-booking",
    summary="Public online booking",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_online_booking(
    request: OnlineBookingRequest,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
) -> AppointmentResponse:
    """Create a pending appointment from the public booking flow."""
    try:
        appointment = lifecycle.create(request.to_request())
        return AppointmentResponse.from_appointment(appointment)
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to create online booking: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create online booking",
        )


@router.post(
    "/appointments/recurring",
    summary="Create recurring appointments",
    response_model=RecurringAppointmentResponse,
)
def create_recurring_appointments(
    request: RecurringAppointmentRequest,
    expander: RecurringSeriesExpander = Depends(get_recurring_expander),
) -> RecurringAppointmentResponse:
    """
    Create every occurrence of a daily, weekly or monthly series.

    Occurrences that conflict are skipped and reported; the rest are created.
    """
    try:
        outcomes = expander.expand(request.to_rule())
        return _series_response([OccurrenceOutcomeResponse.from_outcome(o) for o in outcomes], OUTCOME_CREATED)
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to create recurring appointments: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create recurring appointments",
        )


@router.post(
    "/appointments/recurring/preview",
    summary="Check conflicts for a recurring series",
    response_model=RecurringAppointmentResponse,
)
def preview_recurring_appointments(
    request: RecurringAppointmentRequest,
    expander: RecurringSeriesExpander = Depends(get_recurring_expander),
) -> RecurringAppointmentResponse:
    """Report which occurrences are free without creating anything."""
    try:
        outcomes = expander.preview(request.to_rule())
        return _series_response([OccurrenceOutcomeResponse.from_outcome(o) for o in outcomes], OUTCOME_AVAILABLE)
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to preview recurring appointments: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check recurring conflicts",
        )


# ===== Reads =====

@router.get("/appointments", summary="List appointments", response_model=AppointmentListResponse)
def list_appointments(
    date: Optional[str] = Query(None, description="Single day (YYYY-MM-DD); overrides start_date/end_date"),
    start_date: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = Query(None, description="End date (YYYY-MM-DD), inclusive"),
    status_filter: Optional[str] = Query(None, alias="status"),
    resource_id: Optional[str] = Query(None, description="Doctor, room or equipment id"),
    patient_ref: Optional[str] = Query(None, description="Patient reference"),
    page: Optional[int] = Query(None, ge=1, description="Page number (1-indexed). Must be provided with page_size."),
    page_size: Optional[int] = Query(
        None, ge=1, le=MAX_PAGE_SIZE, description="Items per page. Must be provided with page."
    ),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
) -> AppointmentListResponse:
    """
    List appointments of one day or a date range, ordered by date and start time.

    Supports pagination via page and page_size; without them every matching
    appointment is returned.
    """
    try:
        if date is not None:
            first_day = last_day = parse_date_query(date, "date")
        elif start_date is not None and end_date is not None:
            first_day = parse_date_query(start_date, "start_date")
            last_day = parse_date_query(end_date, "end_date")
        else:
            raise ValidationError("Either date or both start_date and end_date are required")

        filters = dict(status=status_filter, resource_id=resource_id, patient_ref=patient_ref)
        appointments = lifecycle.list_appointments(first_day, last_day, page=page, page_size=page_size, **filters)
        total = lifecycle.count_appointments(first_day, last_day, **filters)

        if page is not None and page_size is not None:
            total_pages = math.ceil(total / page_size)
            if total > 0 and page > total_pages:
                raise ValidationError(f"Page {page} exceeds maximum page {total_pages}")
        else:
            page, page_size = 1, total if total > 0 else DEFAULT_PAGE_SIZE
            total_pages = 1 if total > 0 else 0

        return AppointmentListResponse(
            appointments=[AppointmentResponse.from_appointment(a) for a in appointments],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
        )
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to list appointments: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list appointments",
        )


@router.get(
    "/appointments/calendar/{year}/{month}",
    summary="Monthly calendar view",
    response_model=CalendarMonthResponse,
)
def get_calendar_month(
    year: int,
    month: int,
    resource_id: Optional[str] = Query(None, description="Doctor, room or equipment id"),
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
) -> CalendarMonthResponse:
    """Appointments of one month grouped by date. Days without appointments are omitted."""
    try:
        grouped = lifecycle.calendar_month(year, month, resource_id=resource_id)
        return CalendarMonthResponse(
            year=year,
            month=month,
            days={
                day: [AppointmentResponse.from_appointment(a) for a in appointments]
                for day, appointments in grouped.items()
            },
        )
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to load calendar {year}-{month}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load calendar",
        )


@router.get("/appointments/{appointment_id}", summary="Get appointment details", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
) -> AppointmentResponse:
    try:
        return AppointmentResponse.from_appointment(lifecycle.get(appointment_id))
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to get appointment {appointment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get appointment",
        )


# ===== Updates =====

@router.put("/appointments/{appointment_id}", summary="Edit appointment", response_model=AppointmentResponse)
def edit_appointment(
    appointment_id: str,
    request: AppointmentUpdateRequest,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
) -> AppointmentResponse:
    """
    Change the time, resources, services or notes of a pending/confirmed appointment.

    The new slot is conflict-checked against everything except the appointment itself.
    """
    try:
        current = lifecycle.get(appointment_id)
        updated = lifecycle.modify(appointment_id, request.to_patch(current.interval))
        return AppointmentResponse.from_appointment(updated)
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to edit appointment {appointment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to edit appointment",
        )


@router.put(
    "/appointments/{appointment_id}/status",
    summary="Change appointment status",
    response_model=AppointmentResponse,
)
def update_appointment_status(
    appointment_id: str,
    request: StatusUpdateRequest,
    lifecycle: AppointmentLifecycle = Depends(get_lifecycle),
) -> AppointmentResponse:
    """
    Move an appointment through its lifecycle.

    Cancellation requires a reason and is idempotent.
    """
    try:
        updated = lifecycle.transition_status(
            appointment_id,
            request.status,
            operator_id=request.operator_id,
            reason=request.reason,
        )
        return AppointmentResponse.from_appointment(updated)
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to update status of appointment {appointment_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update appointment status",
        )
