"""
Services package for scheduling business logic.

This package contains the service classes shared by the API endpoints:
storage access, conflict detection, availability and the appointment
lifecycle.
"""

from .appointment_repository import AppointmentRepository, SqlAlchemyAppointmentRepository
from .resource_lock import ResourceLockManager
from .resource_ledger import ResourceLedger
from .conflict_checker import ConflictChecker
from .slot_generator import SlotGenerator
from .appointment_lifecycle import AppointmentLifecycle
from .recurring_series import RecurringSeriesExpander

__all__ = [
    "AppointmentRepository",
    "SqlAlchemyAppointmentRepository",
    "ResourceLockManager",
    "ResourceLedger",
    "ConflictChecker",
    "SlotGenerator",
    "AppointmentLifecycle",
    "RecurringSeriesExpander",
]
