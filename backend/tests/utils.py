"""
Test utilities for clinic scheduling tests.
"""

from datetime import date, time
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from core.database import engine_options
from models import Appointment, AppointmentResourceAllocation
from shared_types.scheduling import AppointmentRequest, ResourceSet
from shared_types.time_interval import TimeInterval

# A Monday, far enough in the future that nothing depends on "today"
BOOKING_DAY = date(2030, 3, 4)


def make_sqlite_engine(path: Path) -> Engine:
    """File-backed SQLite engine with the same options the app uses."""
    url = f"sqlite:///{path}"
    return create_engine(url, **engine_options(url, timeout_seconds=30))


def make_request(
    start: str,
    end: str,
    day: date = BOOKING_DAY,
    doctor_id: str | None = "dr-lee",
    room_id: str | None = "room-1",
    equipment_ids: tuple[str, ...] = (),
    patient_ref: str = "patient-001",
    booking_channel: str = "walk-in",
    **kwargs,
) -> AppointmentRequest:
    """
    Build a booking request with sensible defaults.

    Args:
        start: "HH:MM" start time
        end: "HH:MM" end time
        day: Appointment date (defaults to BOOKING_DAY)
        doctor_id: Doctor identifier, None for no doctor
        room_id: Room identifier, None for no room

    Returns:
        AppointmentRequest ready for AppointmentLifecycle.create
    """
    return AppointmentRequest(
        patient_ref=patient_ref,
        interval=TimeInterval.from_strings(day, start, end),
        resources=ResourceSet(doctor_id=doctor_id, room_id=room_id, equipment_ids=equipment_ids),
        booking_channel=booking_channel,
        **kwargs,
    )


def make_appointment(
    appointment_id: str,
    start: str,
    end: str,
    status: str = "confirmed",
    doctor_id: str | None = "dr-a",
    room_id: str | None = None,
    day: date = BOOKING_DAY,
) -> Appointment:
    """Transient (never persisted) appointment holding the given resources."""
    allocations = []
    if doctor_id:
        allocations.append(AppointmentResourceAllocation(resource_kind="doctor", resource_id=doctor_id))
    if room_id:
        allocations.append(AppointmentResourceAllocation(resource_kind="room", resource_id=room_id))
    start_h, start_m = map(int, start.split(":"))
    end_h, end_m = map(int, end.split(":"))
    return Appointment(
        id=appointment_id,
        patient_ref="patient-x",
        date=day,
        start_time=time(start_h, start_m),
        end_time=time(end_h, end_m),
        status=status,
        booking_channel="walk-in",
        resource_allocations=allocations,
    )
