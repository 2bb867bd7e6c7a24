"""
Unit tests for the slot generator.
"""

import logging
import pytest
from datetime import date
from unittest.mock import Mock

from core.exceptions import ValidationError
from services.appointment_repository import AppointmentRepository
from services.conflict_checker import ConflictChecker
from services.resource_ledger import ResourceLedger
from services.slot_generator import SlotGenerator
from tests.utils import make_appointment

DAY = date(2030, 3, 4)


@pytest.fixture
def repository():
    repo = Mock(spec=AppointmentRepository)
    repo.find_by_day_and_resources.return_value = []
    return repo


@pytest.fixture
def generator(repository):
    return SlotGenerator(ConflictChecker(ResourceLedger(repository)))


class TestSlotEnumeration:
    """Test candidate slot enumeration."""

    def test_clinic_day_has_eleven_hourly_slots(self, generator):
        slots = list(generator.generate_slots(DAY, (9, 20), 60, ["room-1"]))

        assert len(slots) == 11
        assert all(slot.available for slot in slots)
        assert (slots[0].interval.start, slots[0].interval.end) == ("09:00", "10:00")
        assert (slots[-1].interval.start, slots[-1].interval.end) == ("19:00", "20:00")

    def test_defaults_come_from_config(self, generator):
        assert len(list(generator.generate_slots(DAY, resource_ids=["room-1"]))) == 11

    def test_trailing_partial_slot_dropped(self, generator):
        slots = list(generator.generate_slots(DAY, (9, 11), 45, ["room-1"]))

        assert [(s.interval.start, s.interval.end) for s in slots] == [("09:00", "09:45"), ("09:45", "10:30")]

    def test_slots_are_consecutive(self, generator):
        slots = list(generator.generate_slots(DAY, (8, 12), 20, ["dr-a"]))

        for previous, current in zip(slots, slots[1:]):
            assert previous.interval.end_minute == current.interval.start_minute

    def test_slot_serialization(self, generator):
        slot = next(iter(generator.generate_slots(DAY, (9, 10), 30, ["dr-a"])))
        assert slot.to_dict() == {
            "date": "2030-03-04",
            "start_time": "09:00",
            "end_time": "09:30",
            "available": True,
        }


class TestSlotValidation:
    """Test argument validation."""

    @pytest.mark.parametrize("duration", [0, -15])
    def test_non_positive_duration(self, generator, duration):
        with pytest.raises(ValidationError):
            generator.generate_slots(DAY, (9, 20), duration, ["room-1"])

    @pytest.mark.parametrize("hours", [(20, 9), (9, 9), (-1, 5), (9, 24)])
    def test_invalid_operating_hours(self, generator, hours):
        with pytest.raises(ValidationError):
            generator.generate_slots(DAY, hours, 60, ["room-1"])

    def test_latest_closing_hour_ends_at_2300(self, generator):
        slots = list(generator.generate_slots(DAY, (22, 23), 30, ["room-1"]))

        assert [(s.interval.start, s.interval.end) for s in slots] == [("22:00", "22:30"), ("22:30", "23:00")]

    def test_midnight_close_rejected_with_the_limit_named(self, generator):
        with pytest.raises(ValidationError, match="<= 23"):
            generator.generate_slots(DAY, (20, 24), 60, ["room-1"])

    def test_validation_is_eager(self, generator, repository):
        """Bad arguments fail at call time, before any iteration."""
        with pytest.raises(ValidationError):
            generator.generate_slots(DAY, (9, 20), 0)
        repository.find_by_day_and_resources.assert_not_called()


class TestSlotAvailability:
    """Test availability marking against the ledger."""

    def test_booked_slot_unavailable(self, generator, repository):
        repository.find_by_day_and_resources.return_value = [make_appointment("a1", "10:00", "11:00")]

        slots = list(generator.generate_slots(DAY, (9, 12), 60, ["dr-a"]))

        assert [slot.available for slot in slots] == [True, False, True]

    def test_partial_overlap_blocks_both_slots(self, generator, repository):
        repository.find_by_day_and_resources.return_value = [make_appointment("a1", "10:15", "10:45")]

        slots = list(generator.generate_slots(DAY, (10, 11), 30, ["dr-a"]))

        assert [slot.available for slot in slots] == [False, False]

    def test_cancelled_appointment_does_not_block(self, generator, repository):
        repository.find_by_day_and_resources.return_value = [
            make_appointment("a1", "09:00", "10:00", status="cancelled"),
        ]

        slots = list(generator.generate_slots(DAY, (9, 10), 60, ["dr-a"]))

        assert slots[0].available is True

    def test_empty_resources_are_clinic_wide_and_logged(self, generator, repository, caplog):
        with caplog.at_level(logging.WARNING, logger="services.slot_generator"):
            slots = list(generator.generate_slots(DAY, (9, 20), 60, []))

        assert len(slots) == 11
        assert all(slot.available for slot in slots)
        repository.find_by_day_and_resources.assert_not_called()
        assert "clinic-wide" in caplog.text


class TestSlotLaziness:
    """Test that the sequence is lazy and recomputed per call."""

    def test_ledger_read_once_when_iteration_starts(self, generator, repository):
        slots = generator.generate_slots(DAY, (9, 20), 60, ["dr-a"])
        repository.find_by_day_and_resources.assert_not_called()

        list(slots)

        assert repository.find_by_day_and_resources.call_count == 1

    def test_each_call_sees_fresh_data(self, generator, repository):
        assert all(slot.available for slot in generator.generate_slots(DAY, (9, 10), 60, ["dr-a"]))

        repository.find_by_day_and_resources.return_value = [make_appointment("a1", "09:00", "10:00")]

        assert not any(slot.available for slot in generator.generate_slots(DAY, (9, 10), 60, ["dr-a"]))
