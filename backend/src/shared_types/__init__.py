"""
Shared type definitions for the clinic scheduling backend.

This module contains dataclasses and types that are used across multiple services.
"""

from shared_types.time_interval import TimeInterval, overlaps, contains
from shared_types.scheduling import (
    AppointmentPatch,
    AppointmentRequest,
    AvailabilitySlot,
    ConflictResult,
    CreationOutcome,
    RecurrenceRule,
    ResourceSet,
    ServiceItem,
)

__all__ = [
    "TimeInterval",
    "overlaps",
    "contains",
    "AppointmentPatch",
    "AppointmentRequest",
    "AvailabilitySlot",
    "ConflictResult",
    "CreationOutcome",
    "RecurrenceRule",
    "ResourceSet",
    "ServiceItem",
]
