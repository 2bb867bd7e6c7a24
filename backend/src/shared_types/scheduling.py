"""
Shared types for scheduling functionality.

This module contains the data classes passed between the resource ledger,
conflict checker, slot generator, appointment lifecycle and recurring series
expander. None of them carry persistence concerns.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from core.constants import (
    APPOINTMENT_PRIORITIES,
    APPOINTMENT_TYPES,
    BOOKING_CHANNELS,
    CHANNEL_PHONE,
    CHANNEL_WALK_IN,
    MAX_NOTES_LENGTH,
    MAX_REFERENCE_LENGTH,
    RECURRENCE_FREQUENCIES,
    RESOURCE_KIND_DOCTOR,
    RESOURCE_KIND_EQUIPMENT,
    RESOURCE_KIND_ROOM,
)
from core.exceptions import ValidationError
from shared_types.time_interval import TimeInterval

OUTCOME_CREATED = "created"
OUTCOME_SKIPPED = "skipped"
OUTCOME_FAILED = "failed"
OUTCOME_AVAILABLE = "available"


def _clean_identifier(value: Optional[str], label: str) -> Optional[str]:
    """Strip an identifier; blank means "not assigned"."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{label} must be a string")
    value = value.strip()
    if not value:
        return None
    if len(value) > MAX_REFERENCE_LENGTH:
        raise ValidationError(f"{label} is too long (max {MAX_REFERENCE_LENGTH} characters)")
    return value


@dataclass(frozen=True)
class ResourceSet:
    """
    Exclusive resources an appointment occupies.

    Zero or one doctor, zero or one room, and any number of equipment items.
    Blank identifiers are normalized to "not assigned" and never conflict.
    """

    doctor_id: Optional[str] = None
    room_id: Optional[str] = None
    equipment_ids: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "doctor_id", _clean_identifier(self.doctor_id, "doctor_id"))
        object.__setattr__(self, "room_id", _clean_identifier(self.room_id, "room_id"))
        cleaned = (_clean_identifier(item, "equipment_id") for item in self.equipment_ids or ())
        object.__setattr__(self, "equipment_ids", tuple(sorted({item for item in cleaned if item})))

    @classmethod
    def from_allocations(cls, allocations: Iterable[Tuple[str, str]]) -> "ResourceSet":
        """Rebuild a resource set from stored ``(kind, resource_id)`` pairs."""
        doctor_id = None
        room_id = None
        equipment: List[str] = []
        for kind, resource_id in allocations:
            if kind == RESOURCE_KIND_DOCTOR:
                doctor_id = resource_id
            elif kind == RESOURCE_KIND_ROOM:
                room_id = resource_id
            elif kind == RESOURCE_KIND_EQUIPMENT:
                equipment.append(resource_id)
        return cls(doctor_id=doctor_id, room_id=room_id, equipment_ids=tuple(equipment))

    def allocations(self) -> List[Tuple[str, str]]:
        """``(kind, resource_id)`` pairs for storage."""
        pairs: List[Tuple[str, str]] = []
        if self.doctor_id:
            pairs.append((RESOURCE_KIND_DOCTOR, self.doctor_id))
        if self.room_id:
            pairs.append((RESOURCE_KIND_ROOM, self.room_id))
        pairs.extend((RESOURCE_KIND_EQUIPMENT, item) for item in self.equipment_ids)
        return pairs

    @property
    def identifiers(self) -> FrozenSet[str]:
        """All non-empty identifiers, regardless of kind."""
        return frozenset(resource_id for _, resource_id in self.allocations())

    @property
    def is_empty(self) -> bool:
        return not self.identifiers

    def intersects(self, resource_ids: Iterable[str]) -> bool:
        return not self.identifiers.isdisjoint(resource_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "doctor_id": self.doctor_id,
            "room_id": self.room_id,
            "equipment_ids": list(self.equipment_ids),
        }


@dataclass(frozen=True)
class ServiceItem:
    """A requested service. Opaque to the conflict logic."""

    name: str
    service_id: Optional[str] = None
    estimated_duration_minutes: Optional[int] = None
    price: Optional[float] = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValidationError("Service name is required")
        if self.estimated_duration_minutes is not None and self.estimated_duration_minutes < 0:
            raise ValidationError("Service duration cannot be negative")
        if self.price is not None and self.price < 0:
            raise ValidationError("Service price cannot be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service_id": self.service_id,
            "name": self.name,
            "estimated_duration_minutes": self.estimated_duration_minutes,
            "price": self.price,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceItem":
        return cls(
            name=data.get("name", ""),
            service_id=data.get("service_id"),
            estimated_duration_minutes=data.get("estimated_duration_minutes"),
            price=data.get("price"),
        )


def _validate_notes(notes: Optional[str]) -> None:
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"Notes are too long (max {MAX_NOTES_LENGTH} characters)")


@dataclass(frozen=True)
class AppointmentRequest:
    """Everything needed to book one appointment."""

    patient_ref: str
    interval: TimeInterval
    resources: ResourceSet = field(default_factory=ResourceSet)
    services: Tuple[ServiceItem, ...] = ()
    booking_channel: str = CHANNEL_WALK_IN
    appointment_type: str = "consultation"
    priority: str = "normal"
    notes: Optional[str] = None
    operator_id: Optional[str] = None

    def validate(self) -> None:
        """
        Validate fields the type system can't.

        Raises:
            ValidationError: On a missing patient reference or unknown enum value
        """
        if not isinstance(self.interval, TimeInterval):
            raise ValidationError("A valid time interval is required")
        if _clean_identifier(self.patient_ref, "patient_ref") is None:
            raise ValidationError("Patient reference is required")
        if self.booking_channel not in BOOKING_CHANNELS:
            raise ValidationError(f"Unknown booking channel: {self.booking_channel}")
        if self.appointment_type not in APPOINTMENT_TYPES:
            raise ValidationError(f"Unknown appointment type: {self.appointment_type}")
        if self.priority not in APPOINTMENT_PRIORITIES:
            raise ValidationError(f"Unknown priority: {self.priority}")
        _validate_notes(self.notes)


@dataclass(frozen=True)
class AppointmentPatch:
    """
    Direct modification of a pending/confirmed appointment.

    ``None`` means "keep current" for every field.
    """

    interval: Optional[TimeInterval] = None
    resources: Optional[ResourceSet] = None
    services: Optional[Tuple[ServiceItem, ...]] = None
    notes: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.interval is None and self.resources is None and self.services is None and self.notes is None


@dataclass(frozen=True)
class RecurrenceRule:
    """
    Template for a recurring series. Only used to generate occurrence dates.
    """

    frequency: str
    start_date: date
    end_date: date
    start: str
    end: str
    patient_ref: str
    resources: ResourceSet = field(default_factory=ResourceSet)
    services: Tuple[ServiceItem, ...] = ()
    booking_channel: str = CHANNEL_PHONE
    appointment_type: str = "treatment"
    priority: str = "normal"
    notes: Optional[str] = None
    operator_id: Optional[str] = None

    def validate(self) -> None:
        if self.frequency not in RECURRENCE_FREQUENCIES:
            raise ValidationError(f"Unknown recurrence frequency: {self.frequency}")
        if self.end_date < self.start_date:
            raise ValidationError("Recurrence end date must not be before start date")
        # Raises on malformed HH:MM or start >= end
        self.interval_on(self.start_date)

    def interval_on(self, day: date) -> TimeInterval:
        return TimeInterval.from_strings(day, self.start, self.end)

    def request_for(self, day: date) -> AppointmentRequest:
        """The booking request for one occurrence."""
        return AppointmentRequest(
            patient_ref=self.patient_ref,
            interval=self.interval_on(day),
            resources=self.resources,
            services=self.services,
            booking_channel=self.booking_channel,
            appointment_type=self.appointment_type,
            priority=self.priority,
            notes=self.notes,
            operator_id=self.operator_id,
        )


@dataclass(frozen=True)
class ConflictResult:
    """Outcome of a conflict check. Lists every clash, not just the first."""

    has_conflict: bool
    conflicting_appointment_ids: Tuple[str, ...] = ()

    @classmethod
    def from_ids(cls, appointment_ids: Iterable[str]) -> "ConflictResult":
        ids = tuple(sorted(set(appointment_ids)))
        return cls(has_conflict=bool(ids), conflicting_appointment_ids=ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_conflict": self.has_conflict,
            "conflicting_appointment_ids": list(self.conflicting_appointment_ids),
        }


@dataclass(frozen=True)
class AvailabilitySlot:
    """Derived availability view of one candidate slot. Never persisted."""

    interval: TimeInterval
    available: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.interval.day.isoformat(),
            "start_time": self.interval.start,
            "end_time": self.interval.end,
            "available": self.available,
        }


@dataclass(frozen=True)
class CreationOutcome:
    """Per-occurrence result of expanding a recurring series."""

    occurrence_date: date
    outcome: str
    appointment_id: Optional[str] = None
    appointment_number: Optional[str] = None
    conflicting_appointment_ids: Tuple[str, ...] = ()
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "occurrence_date": self.occurrence_date.isoformat(),
            "outcome": self.outcome,
            "appointment_id": self.appointment_id,
            "appointment_number": self.appointment_number,
            "conflicting_appointment_ids": list(self.conflicting_appointment_ids),
            "message": self.message,
        }
