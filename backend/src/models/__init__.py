# Package initialization
# Import all models to ensure relationships are properly established
from .appointment import Appointment
from .appointment_resource_allocation import AppointmentResourceAllocation

__all__ = [
    "Appointment",
    "AppointmentResourceAllocation",
]
