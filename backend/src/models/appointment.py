"""
Appointment model representing a patient's booking against clinic resources.

Appointments represent the core scheduling functionality of the clinic system.
Each appointment occupies a time range on one day and zero or more exclusive
resources (doctor, room, equipment), recorded as allocation rows so the
conflict checker can query by resource identifier regardless of kind.
"""

from datetime import date as date_type, datetime, time
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import JSON, String, Date, Time, Index, TIMESTAMP, CheckConstraint, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import APPOINTMENT_NUMBER_PREFIX, TERMINAL_STATUSES
from core.database import Base
from shared_types.scheduling import ResourceSet, ServiceItem
from shared_types.time_interval import TimeInterval


def new_appointment_id() -> str:
    """Opaque unique appointment identifier."""
    return uuid4().hex


class Appointment(Base):
    """
    Appointment entity.

    Appointments are never physically deleted: cancellation and no-show are
    terminal statuses. Status changes go through the named transitions in
    AppointmentLifecycle, which also stamp the per-transition timestamps below.
    """

    __tablename__ = "appointments"

    sequence_number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """
    Monotonic human-readable sequence number, assigned by the database on insert.
    Displayed as ``appointment_number`` (e.g. APT000042).
    """

    id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, default=new_appointment_id)
    """Opaque unique identifier used by API callers."""

    patient_ref: Mapped[str] = mapped_column(String(64), nullable=False)
    """Reference to the external patient record (not owned here)."""

    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    """Day of the appointment."""

    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    """Start of the booked range (inclusive)."""

    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    """End of the booked range (exclusive)."""

    status: Mapped[str] = mapped_column(String(20), nullable=False)
    """
    Lifecycle status. Valid values: 'pending', 'confirmed', 'checked-in',
    'in-progress', 'completed', 'cancelled', 'no-show'.
    """

    services: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    """Requested services (name, optional id/duration/price). Passed through, not interpreted."""

    booking_channel: Mapped[str] = mapped_column(String(20), nullable=False)
    """Origin of the booking: 'walk-in', 'phone' or 'online'. Informational only."""

    appointment_type: Mapped[str] = mapped_column(String(20), nullable=False, default="consultation")
    """Informational classification: consultation, treatment, follow-up, emergency."""

    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="normal")
    """Informational priority: normal, urgent, emergency."""

    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    """Optional free-text notes."""

    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    """Operator who booked the appointment (None for public online bookings)."""

    confirmed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    checked_in_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Actual start of the visit (set on check-in -> in-progress)."""

    completed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Actual end of the visit."""

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    """Present only when status is 'cancelled'."""

    no_show_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the appointment was created."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the appointment was last updated."""

    # Relationships
    resource_allocations = relationship(
        "AppointmentResourceAllocation",
        back_populates="appointment",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    """Doctor/room/equipment held by this appointment."""

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="check_appointment_time_range"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'checked-in', 'in-progress', 'completed', 'cancelled', 'no-show')",
            name="check_appointment_status",
        ),
        CheckConstraint(
            "booking_channel IN ('walk-in', 'phone', 'online')",
            name="check_appointment_booking_channel",
        ),
        # Day view / ledger queries
        Index("idx_appointments_date_status", "date", "status"),
        Index("idx_appointments_patient", "patient_ref"),
    )

    @property
    def appointment_number(self) -> str:
        """Human-readable number derived from the sequence number."""
        return f"{APPOINTMENT_NUMBER_PREFIX}{self.sequence_number:06d}"

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval.from_times(self.date, self.start_time, self.end_time)

    @property
    def resources(self) -> ResourceSet:
        return ResourceSet.from_allocations(
            (allocation.resource_kind, allocation.resource_id) for allocation in self.resource_allocations
        )

    @property
    def service_items(self) -> List[ServiceItem]:
        return [ServiceItem.from_dict(item) for item in self.services or []]

    @property
    def total_duration_minutes(self) -> int:
        """Sum of the requested services' estimated durations."""
        return sum(item.get("estimated_duration_minutes") or 0 for item in self.services or [])

    @property
    def total_price(self) -> float:
        """Sum of the requested services' prices."""
        return sum(item.get("price") or 0 for item in self.services or [])

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, number={self.sequence_number}, date={self.date}, time={self.start_time}-{self.end_time}, status={self.status})>"
