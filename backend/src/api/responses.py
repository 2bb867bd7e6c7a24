"""
Shared request/response models for API endpoints.

This module contains the Pydantic models used by the appointment and
availability routers, plus the conversions between them and the scheduling
types. Domain rules (time format, start < end, allowed transitions) are
enforced by the services, so a malformed time reaches the caller as a
400 ``validation_error`` rather than a schema error.
"""

from datetime import date as date_type, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from core.constants import (
    CHANNEL_ONLINE,
    CHANNEL_PHONE,
    CHANNEL_WALK_IN,
    MAX_CANCELLATION_REASON_LENGTH,
    MAX_NOTES_LENGTH,
)
from models import Appointment
from shared_types.scheduling import (
    AppointmentPatch,
    AppointmentRequest,
    CreationOutcome,
    RecurrenceRule,
    ResourceSet,
    ServiceItem,
)
from shared_types.time_interval import TimeInterval, parse_hhmm
from utils.datetime_utils import ensure_clinic_tz


def _clean_notes(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    if len(v) > MAX_NOTES_LENGTH:
        raise ValueError(f'Notes are too long (max {MAX_NOTES_LENGTH} characters)')
    return v


# ===== Shared payloads =====

class ResourceSetPayload(BaseModel):
    """Doctor, room and equipment an appointment occupies. All optional."""
    doctor_id: Optional[str] = None
    room_id: Optional[str] = None
    equipment_ids: List[str] = Field(default_factory=list)

    def to_resource_set(self) -> ResourceSet:
        return ResourceSet(
            doctor_id=self.doctor_id,
            room_id=self.room_id,
            equipment_ids=tuple(self.equipment_ids),
        )

    @classmethod
    def from_resource_set(cls, resources: ResourceSet) -> "ResourceSetPayload":
        return cls(**resources.to_dict())


class ServiceItemPayload(BaseModel):
    """Requested service, passed through unchanged."""
    service_id: Optional[str] = None
    name: str
    estimated_duration_minutes: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, ge=0)

    def to_service_item(self) -> ServiceItem:
        return ServiceItem(
            name=self.name,
            service_id=self.service_id,
            estimated_duration_minutes=self.estimated_duration_minutes,
            price=self.price,
        )


# ===== Requests =====

class AppointmentCreateRequest(BaseModel):
    """Request model for staff-entered bookings (walk-in or phone)."""
    patient_ref: str
    date: date_type
    start_time: str  # HH:MM
    end_time: str  # HH:MM
    resources: ResourceSetPayload = Field(default_factory=ResourceSetPayload)
    services: List[ServiceItemPayload] = Field(default_factory=list)
    booking_channel: Literal["walk-in", "phone"] = CHANNEL_WALK_IN
    appointment_type: str = "consultation"
    priority: str = "normal"
    notes: Optional[str] = None
    operator_id: Optional[str] = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        return _clean_notes(v)

    def to_request(self) -> AppointmentRequest:
        """Raises ValidationError on a malformed interval."""
        return AppointmentRequest(
            patient_ref=self.patient_ref,
            interval=TimeInterval.from_strings(self.date, self.start_time, self.end_time),
            resources=self.resources.to_resource_set(),
            services=tuple(item.to_service_item() for item in self.services),
            booking_channel=self.booking_channel,
            appointment_type=self.appointment_type,
            priority=self.priority,
            notes=self.notes,
            operator_id=self.operator_id,
        )


class OnlineBookingRequest(BaseModel):
    """Request model for public online bookings. Created as pending."""
    patient_ref: str
    date: date_type
    start_time: str
    end_time: str
    resources: ResourceSetPayload = Field(default_factory=ResourceSetPayload)
    services: List[ServiceItemPayload] = Field(default_factory=list)
    appointment_type: str = "consultation"
    notes: Optional[str] = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        return _clean_notes(v)

    def to_request(self) -> AppointmentRequest:
        return AppointmentRequest(
            patient_ref=self.patient_ref,
            interval=TimeInterval.from_strings(self.date, self.start_time, self.end_time),
            resources=self.resources.to_resource_set(),
            services=tuple(item.to_service_item() for item in self.services),
            booking_channel=CHANNEL_ONLINE,
            appointment_type=self.appointment_type,
            notes=self.notes,
        )


class AppointmentUpdateRequest(BaseModel):
    """
    Request model for modifying an appointment.

    Omitted fields keep their current value. Any of date/start_time/end_time
    may be given on its own; the rest come from the current appointment.
    """
    date: Optional[date_type] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    resources: Optional[ResourceSetPayload] = None
    services: Optional[List[ServiceItemPayload]] = None
    notes: Optional[str] = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        return _clean_notes(v)

    def to_patch(self, current: TimeInterval) -> AppointmentPatch:
        interval = None
        if self.date is not None or self.start_time is not None or self.end_time is not None:
            interval = TimeInterval(
                self.date or current.day,
                parse_hhmm(self.start_time) if self.start_time is not None else current.start_minute,
                parse_hhmm(self.end_time) if self.end_time is not None else current.end_minute,
            )
        return AppointmentPatch(
            interval=interval,
            resources=self.resources.to_resource_set() if self.resources is not None else None,
            services=tuple(item.to_service_item() for item in self.services) if self.services is not None else None,
            notes=self.notes,
        )


class StatusUpdateRequest(BaseModel):
    """Request model for a status transition."""
    status: str
    operator_id: Optional[str] = None
    reason: Optional[str] = Field(default=None, max_length=MAX_CANCELLATION_REASON_LENGTH)  # Required for cancellation


class RecurringAppointmentRequest(BaseModel):
    """Request model for a recurring series."""
    frequency: Literal["daily", "weekly", "monthly"]
    start_date: date_type
    end_date: date_type
    start_time: str
    end_time: str
    patient_ref: str
    resources: ResourceSetPayload = Field(default_factory=ResourceSetPayload)
    services: List[ServiceItemPayload] = Field(default_factory=list)
    booking_channel: Literal["walk-in", "phone", "online"] = CHANNEL_PHONE
    appointment_type: str = "treatment"
    priority: str = "normal"
    notes: Optional[str] = None
    operator_id: Optional[str] = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        return _clean_notes(v)

    def to_rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            frequency=self.frequency,
            start_date=self.start_date,
            end_date=self.end_date,
            start=self.start_time,
            end=self.end_time,
            patient_ref=self.patient_ref,
            resources=self.resources.to_resource_set(),
            services=tuple(item.to_service_item() for item in self.services),
            booking_channel=self.booking_channel,
            appointment_type=self.appointment_type,
            priority=self.priority,
            notes=self.notes,
            operator_id=self.operator_id,
        )


# ===== Responses =====

class AppointmentResponse(BaseModel):
    """Response model for one appointment."""
    id: str
    appointment_number: str
    patient_ref: str
    date: date_type
    start_time: str
    end_time: str
    status: str
    resources: ResourceSetPayload
    services: List[ServiceItemPayload]
    booking_channel: str
    appointment_type: str
    priority: str
    notes: Optional[str] = None
    total_duration_minutes: int
    total_price: float
    created_by: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    no_show_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "AppointmentResponse":
        interval = appointment.interval
        return cls(
            id=appointment.id,
            appointment_number=appointment.appointment_number,
            patient_ref=appointment.patient_ref,
            date=appointment.date,
            start_time=interval.start,
            end_time=interval.end,
            status=appointment.status,
            resources=ResourceSetPayload.from_resource_set(appointment.resources),
            services=[ServiceItemPayload(**item) for item in appointment.services or []],
            booking_channel=appointment.booking_channel,
            appointment_type=appointment.appointment_type,
            priority=appointment.priority,
            notes=appointment.notes,
            total_duration_minutes=appointment.total_duration_minutes,
            total_price=appointment.total_price,
            created_by=appointment.created_by,
            confirmed_at=ensure_clinic_tz(appointment.confirmed_at),
            checked_in_at=ensure_clinic_tz(appointment.checked_in_at),
            checked_in_by=appointment.checked_in_by,
            started_at=ensure_clinic_tz(appointment.started_at),
            completed_at=ensure_clinic_tz(appointment.completed_at),
            cancelled_at=ensure_clinic_tz(appointment.cancelled_at),
            cancelled_by=appointment.cancelled_by,
            cancellation_reason=appointment.cancellation_reason,
            no_show_at=ensure_clinic_tz(appointment.no_show_at),
            created_at=ensure_clinic_tz(appointment.created_at),
            updated_at=ensure_clinic_tz(appointment.updated_at),
        )


class AppointmentListResponse(BaseModel):
    """Response model for listing appointments."""
    appointments: List[AppointmentResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class CalendarMonthResponse(BaseModel):
    """Appointments of one month grouped by ISO date."""
    year: int
    month: int
    days: Dict[str, List[AppointmentResponse]]


class ConflictCheckResponse(BaseModel):
    """Response model for an availability check."""
    available: bool
    has_conflict: bool
    conflicting_appointment_ids: List[str]


class AvailabilitySlotResponse(BaseModel):
    """One generated slot."""
    date: date_type
    start_time: str
    end_time: str
    available: bool


class AvailableSlotsResponse(BaseModel):
    """Response model for slot generation."""
    date: date_type
    slot_duration_minutes: int
    resource_ids: List[str]
    clinic_wide: bool  # True when no resource was given: every slot reports available
    slots: List[AvailabilitySlotResponse]


class OccurrenceOutcomeResponse(BaseModel):
    """Outcome of one occurrence of a recurring series."""
    occurrence_date: date_type
    outcome: str  # "created" | "skipped" | "failed" | "available"
    appointment_id: Optional[str] = None
    appointment_number: Optional[str] = None
    conflicting_appointment_ids: List[str] = Field(default_factory=list)
    message: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: CreationOutcome) -> "OccurrenceOutcomeResponse":
        data: Dict[str, Any] = outcome.to_dict()
        return cls(**data)


class RecurringAppointmentResponse(BaseModel):
    """Response model for recurring creation and preview."""
    success: bool
    created_count: int
    skipped_count: int
    failed_count: int
    outcomes: List[OccurrenceOutcomeResponse]
