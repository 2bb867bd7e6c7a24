"""
Integration tests for the ledger, conflict checker and slot generator on a
real database.
"""

import pytest

from core.database import drop_tables
from core.exceptions import UnavailableError
from shared_types.scheduling import ResourceSet
from shared_types.time_interval import TimeInterval
from tests.utils import BOOKING_DAY, make_request


def interval(start: str, end: str) -> TimeInterval:
    return TimeInterval.from_strings(BOOKING_DAY, start, end)


class TestConflictCheckerWithStorage:
    """Test conflict checks against persisted appointments."""

    def test_free_slot(self, lifecycle, checker):
        lifecycle.create(make_request("09:00", "10:00"))

        result = checker.check_conflict(interval("10:00", "11:00"), ResourceSet(doctor_id="dr-lee"))

        assert result.has_conflict is False

    def test_busy_slot_lists_appointment(self, lifecycle, checker):
        booked = lifecycle.create(make_request("09:00", "10:00"))

        result = checker.check_conflict(interval("09:59", "10:30"), ResourceSet(room_id="room-1"))

        assert result.conflicting_appointment_ids == (booked.id,)

    def test_other_days_ignored(self, lifecycle, checker):
        lifecycle.create(make_request("09:00", "10:00"))
        next_day = TimeInterval.from_strings(BOOKING_DAY.replace(day=5), "09:00", "10:00")

        assert checker.check_conflict(next_day, ResourceSet(doctor_id="dr-lee")).has_conflict is False

    def test_exclude_id(self, lifecycle, checker):
        booked = lifecycle.create(make_request("09:00", "10:00"))

        result = checker.check_conflict(
            interval("09:00", "10:00"), ResourceSet(doctor_id="dr-lee"), exclude_id=booked.id
        )

        assert result.has_conflict is False

    def test_cancelled_ignored(self, lifecycle, checker):
        booked = lifecycle.create(make_request("09:00", "10:00"))
        lifecycle.cancel(booked.id, "patient request")

        assert checker.check_conflict(interval("09:00", "10:00"), ResourceSet(doctor_id="dr-lee")).has_conflict is False

    def test_storage_failure_is_unavailable_not_free(self, lifecycle, checker, db_engine):
        lifecycle.create(make_request("09:00", "10:00"))
        drop_tables(bind=db_engine)

        with pytest.raises(UnavailableError):
            checker.check_conflict(interval("09:00", "10:00"), ResourceSet(doctor_id="dr-lee"))

    def test_storage_failure_blocks_booking(self, lifecycle, db_engine, lock_manager):
        drop_tables(bind=db_engine)

        with pytest.raises(UnavailableError):
            lifecycle.create(make_request("09:00", "10:00"))
        assert lock_manager.active_keys() == []


class TestSlotsWithStorage:
    """Test slot generation against persisted appointments."""

    def test_booked_hour_is_taken(self, lifecycle, slot_generator):
        lifecycle.create(make_request("13:00", "14:00"))

        slots = list(slot_generator.generate_slots(BOOKING_DAY, (9, 20), 60, ["dr-lee"]))

        taken = [slot.interval.start for slot in slots if not slot.available]
        assert len(slots) == 11
        assert taken == ["13:00"]

    def test_slot_available_again_after_cancel(self, lifecycle, slot_generator):
        booked = lifecycle.create(make_request("13:00", "14:00"))
        lifecycle.cancel(booked.id, "patient request")

        slots = list(slot_generator.generate_slots(BOOKING_DAY, (13, 14), 60, ["dr-lee"]))

        assert [slot.available for slot in slots] == [True]

    def test_room_view_ignores_other_rooms(self, lifecycle, slot_generator):
        lifecycle.create(make_request("13:00", "14:00", doctor_id="dr-kim", room_id="room-2"))

        slots = list(slot_generator.generate_slots(BOOKING_DAY, (13, 14), 30, ["room-1"]))

        assert all(slot.available for slot in slots)

    def test_available_slot_can_be_booked(self, lifecycle, slot_generator):
        lifecycle.create(make_request("09:00", "10:00"))
        free = next(
            slot for slot in slot_generator.generate_slots(BOOKING_DAY, (9, 20), 60, ["dr-lee", "room-1"])
            if slot.available
        )

        booked = lifecycle.create(make_request(free.interval.start, free.interval.end, patient_ref="patient-002"))

        assert booked.interval == free.interval
