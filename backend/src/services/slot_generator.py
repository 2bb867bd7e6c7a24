"""
Slot generator: availability for a day, sliced into fixed-length slots.

Read-only composition of the conflict checker. Nothing is cached; every call
re-reads the ledger.
"""

import logging
from datetime import date
from typing import Iterable, Iterator, Tuple

from core.config import CLINIC_CLOSE_HOUR, CLINIC_OPEN_HOUR, DEFAULT_SLOT_DURATION_MINUTES
from core.exceptions import ValidationError
from services.conflict_checker import ConflictChecker
from shared_types.scheduling import AvailabilitySlot
from shared_types.time_interval import TimeInterval

logger = logging.getLogger(__name__)

DEFAULT_OPERATING_HOURS: Tuple[int, int] = (CLINIC_OPEN_HOUR, CLINIC_CLOSE_HOUR)


class SlotGenerator:
    """Enumerates consecutive candidate slots and marks each available or not."""

    def __init__(self, checker: ConflictChecker):
        self.checker = checker

    def generate_slots(
        self,
        day: date,
        operating_hours: Tuple[int, int] = DEFAULT_OPERATING_HOURS,
        slot_duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES,
        resource_ids: Iterable[str] = (),
    ) -> Iterator[AvailabilitySlot]:
        """
        Generate availability slots for one day.

        Slots start at ``start_hour:00`` and follow each other back to back;
        a trailing slot that would run past ``end_hour:00`` is dropped. A slot
        is available when no committed appointment holding any of
        ``resource_ids`` overlaps it.

        With no ``resource_ids`` this is a clinic-wide view and every slot is
        reported available.

        Arguments are validated immediately; the returned iterator reads the
        ledger once when iteration starts. Call again for fresh data.

        Args:
            day: Calendar day
            operating_hours: ``(start_hour, end_hour)``, 0 <= start < end <= 23.
                Appointment times stop at 23:59, so the last slot ends by 23:00.
            slot_duration_minutes: Length of each slot, must be positive
            resource_ids: Resource identifiers of any kind

        Raises:
            ValidationError: On invalid hours or slot duration
            UnavailableError: (during iteration) if the ledger can't be read
        """
        if not isinstance(day, date):
            raise ValidationError("A valid date is required")
        try:
            start_hour, end_hour = operating_hours
        except (TypeError, ValueError) as e:
            raise ValidationError("Operating hours must be a (start_hour, end_hour) pair") from e
        for hour in (start_hour, end_hour):
            if isinstance(hour, bool) or not isinstance(hour, int):
                raise ValidationError(f"Operating hour must be an integer, got {hour!r}")
        if not 0 <= start_hour < end_hour <= 23:
            raise ValidationError(
                f"Invalid operating hours: {start_hour}-{end_hour} (need 0 <= start < end <= 23)"
            )
        if isinstance(slot_duration_minutes, bool) or not isinstance(slot_duration_minutes, int) \
                or slot_duration_minutes <= 0:
            raise ValidationError(f"Slot duration must be a positive number of minutes, got {slot_duration_minutes!r}")

        wanted = sorted({resource_id for resource_id in resource_ids if resource_id})
        if not wanted:
            logger.warning(
                f"Slots requested for {day} without resources; reporting clinic-wide availability (all free)"
            )
        return self._iter_slots(day, start_hour * 60, end_hour * 60, slot_duration_minutes, wanted)

    def _iter_slots(
        self,
        day: date,
        open_minute: int,
        close_minute: int,
        duration: int,
        resource_ids: list[str],
    ) -> Iterator[AvailabilitySlot]:
        committed = self.checker.ledger.committed_intervals(day, resource_ids) if resource_ids else []

        current = open_minute
        while current + duration <= close_minute:
            interval = TimeInterval(day, current, current + duration)
            result = self.checker.evaluate(interval, committed)
            yield AvailabilitySlot(interval=interval, available=not result.has_conflict)
            current += duration
