# pyright: reportMissingTypeStubs=false
"""
Availability API endpoints.

Read-only views: a conflict check for one proposed slot, and a day sliced
into fixed-length slots marked available or taken.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from core.config import CLINIC_CLOSE_HOUR, CLINIC_OPEN_HOUR, DEFAULT_SLOT_DURATION_MINUTES
from core.exceptions import SchedulingError
from api.dependencies import get_conflict_checker, get_slot_generator, parse_date_query
from api.responses import AvailabilitySlotResponse, AvailableSlotsResponse, ConflictCheckResponse
from services import ConflictChecker, SlotGenerator
from shared_types.scheduling import ResourceSet
from shared_types.time_interval import TimeInterval

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/availability/check", summary="Check whether a slot is free", response_model=ConflictCheckResponse)
def check_availability(
    date: str = Query(..., description="Date (YYYY-MM-DD)"),
    start_time: str = Query(..., description="Start time (HH:MM)"),
    end_time: str = Query(..., description="End time (HH:MM)"),
    doctor_id: Optional[str] = Query(None),
    room_id: Optional[str] = Query(None),
    equipment_ids: Optional[List[str]] = Query(None),
    exclude_appointment_id: Optional[str] = Query(None, description="Appointment being rescheduled"),
    checker: ConflictChecker = Depends(get_conflict_checker),
) -> ConflictCheckResponse:
    """
    Check a proposed slot against committed appointments.

    Returns every conflicting appointment id, not just the first.
    """
    try:
        interval = TimeInterval.from_strings(parse_date_query(date, "date"), start_time, end_time)
        resources = ResourceSet(doctor_id=doctor_id, room_id=room_id, equipment_ids=tuple(equipment_ids or ()))
        result = checker.check_conflict(interval, resources, exclude_id=exclude_appointment_id)
        return ConflictCheckResponse(
            available=not result.has_conflict,
            has_conflict=result.has_conflict,
            conflicting_appointment_ids=list(result.conflicting_appointment_ids),
        )
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to check availability: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check availability",
        )


@router.get("/availability/slots", summary="Get available slots for a day", response_model=AvailableSlotsResponse)
def get_available_slots(
    date: str = Query(..., description="Date (YYYY-MM-DD)"),
    slot_duration_minutes: int = Query(DEFAULT_SLOT_DURATION_MINUTES),
    start_hour: int = Query(CLINIC_OPEN_HOUR, description="Opening hour, 0-22"),
    end_hour: int = Query(
        CLINIC_CLOSE_HOUR,
        description="Closing hour, at most 23: appointment times stop at 23:59, so a day cannot run to midnight",
    ),
    doctor_id: Optional[str] = Query(None),
    room_id: Optional[str] = Query(None),
    equipment_ids: Optional[List[str]] = Query(None),
    generator: SlotGenerator = Depends(get_slot_generator),
) -> AvailableSlotsResponse:
    """
    Slice the operating hours into consecutive slots and mark each one.

    Pass at least a doctor or a room: without any resource the result is the
    clinic-wide view, where every slot reports available (``clinic_wide`` is true).
    """
    try:
        day = parse_date_query(date, "date")
        resources = ResourceSet(doctor_id=doctor_id, room_id=room_id, equipment_ids=tuple(equipment_ids or ()))
        resource_ids = sorted(resources.identifiers)
        slots = generator.generate_slots(
            day,
            operating_hours=(start_hour, end_hour),
            slot_duration_minutes=slot_duration_minutes,
            resource_ids=resource_ids,
        )
        return AvailableSlotsResponse(
            date=day,
            slot_duration_minutes=slot_duration_minutes,
            resource_ids=resource_ids,
            clinic_wide=not resource_ids,
            slots=[AvailabilitySlotResponse(**slot.to_dict()) for slot in slots],
        )
    except (HTTPException, SchedulingError):
        raise
    except Exception as e:
        logger.exception(f"Failed to generate slots: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get available slots",
        )
