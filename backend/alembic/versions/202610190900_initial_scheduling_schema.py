"""initial scheduling schema

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates the appointments table and the per-resource allocation rows the
conflict checker queries by resource identifier.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '202610190900'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'appointments',
        sa.Column('sequence_number', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('patient_ref', sa.String(length=64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('services', sa.JSON(), nullable=False),
        sa.Column('booking_channel', sa.String(length=20), nullable=False),
        sa.Column('appointment_type', sa.String(length=20), nullable=False),
        sa.Column('priority', sa.String(length=20), nullable=False),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=True),
        sa.Column('confirmed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('checked_in_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('checked_in_by', sa.String(length=64), nullable=True),
        sa.Column('started_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('cancelled_by', sa.String(length=64), nullable=True),
        sa.Column('cancellation_reason', sa.String(length=500), nullable=True),
        sa.Column('no_show_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.UniqueConstraint('id'),
        sa.CheckConstraint('start_time < end_time', name='check_appointment_time_range'),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'checked-in', 'in-progress', 'completed', 'cancelled', 'no-show')",
            name='check_appointment_status',
        ),
        sa.CheckConstraint(
            "booking_channel IN ('walk-in', 'phone', 'online')",
            name='check_appointment_booking_channel',
        ),
    )
    op.create_index('idx_appointments_date_status', 'appointments', ['date', 'status'])
    op.create_index('idx_appointments_patient', 'appointments', ['patient_ref'])

    op.create_table(
        'appointment_resource_allocations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('appointment_id', sa.String(length=32), nullable=False),
        sa.Column('resource_kind', sa.String(length=20), nullable=False),
        sa.Column('resource_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('appointment_id', 'resource_kind', 'resource_id', name='uq_appt_resource_alloc'),
        sa.CheckConstraint(
            "resource_kind IN ('doctor', 'room', 'equipment')",
            name='check_valid_resource_kind',
        ),
    )
    op.create_index(
        'ix_appointment_resource_allocations_id', 'appointment_resource_allocations', ['id']
    )
    op.create_index(
        'ix_appointment_resource_allocations_appointment_id', 'appointment_resource_allocations', ['appointment_id']
    )
    op.create_index('idx_appt_resource_alloc_resource', 'appointment_resource_allocations', ['resource_id'])


def downgrade() -> None:
    op.drop_index('idx_appt_resource_alloc_resource', table_name='appointment_resource_allocations')
    op.drop_index('ix_appointment_resource_allocations_appointment_id', table_name='appointment_resource_allocations')
    op.drop_index('ix_appointment_resource_allocations_id', table_name='appointment_resource_allocations')
    op.drop_table('appointment_resource_allocations')
    op.drop_index('idx_appointments_patient', table_name='appointments')
    op.drop_index('idx_appointments_date_status', table_name='appointments')
    op.drop_table('appointments')
