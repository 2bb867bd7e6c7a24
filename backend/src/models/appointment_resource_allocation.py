"""
Appointment resource allocation model representing resources held by appointments.

This model tracks which resources (doctor, room, equipment) are allocated to
which appointments. Each appointment can have multiple resource allocations
(one per resource). Resource identifiers are opaque references into the
external staff directory and room list.
"""

from datetime import datetime
from sqlalchemy import ForeignKey, String, TIMESTAMP, UniqueConstraint, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base


class AppointmentResourceAllocation(Base):
    """
    Appointment resource allocation entity.

    Tracks which resources are allocated to which appointments.
    Each appointment can have multiple resource allocations.
    """

    __tablename__ = "appointment_resource_allocations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the allocation."""

    appointment_id: Mapped[str] = mapped_column(
        ForeignKey("appointments.id", ondelete="CASCADE"),
        index=True
    )
    """Reference to the appointment that uses this resource."""

    resource_kind: Mapped[str] = mapped_column(String(20), nullable=False)
    """Kind of resource: 'doctor', 'room' or 'equipment'."""

    resource_id: Mapped[str] = mapped_column(String(64), nullable=False)
    """Opaque identifier of the allocated resource."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the allocation was created."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the allocation was last updated."""

    # Relationships
    appointment = relationship("Appointment", back_populates="resource_allocations")
    """Relationship to the Appointment entity that uses this resource."""

    __table_args__ = (
        UniqueConstraint('appointment_id', 'resource_kind', 'resource_id', name='uq_appt_resource_alloc'),
        CheckConstraint(
            "resource_kind IN ('doctor', 'room', 'equipment')",
            name='check_valid_resource_kind'
        ),
        # Ledger lookups go by resource identifier
        Index('idx_appt_resource_alloc_resource', 'resource_id'),
    )

    def __repr__(self) -> str:
        return f"<AppointmentResourceAllocation(appointment_id={self.appointment_id}, {self.resource_kind}={self.resource_id})>"
