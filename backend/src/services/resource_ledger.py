"""
Resource ledger: which intervals are already committed for a set of resources.

The ledger holds no state of its own. It asks the repository for the day's
appointments touching the resources and keeps those whose status still holds
the resource.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import FrozenSet, Iterable, List, Optional

from core.constants import COMMITTED_STATUSES
from services.appointment_repository import AppointmentRepository
from shared_types.time_interval import TimeInterval

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommittedInterval:
    """An interval held by an existing appointment."""

    interval: TimeInterval
    appointment_id: str
    resource_ids: FrozenSet[str]


class ResourceLedger:
    """Lists committed intervals for a day and a set of resource identifiers."""

    def __init__(
        self,
        repository: AppointmentRepository,
        committed_statuses: Iterable[str] = COMMITTED_STATUSES,
    ):
        self.repository = repository
        self.committed_statuses = frozenset(committed_statuses)

    def committed_intervals(
        self,
        day: date,
        resource_ids: Iterable[str],
        exclude_id: Optional[str] = None,
    ) -> List[CommittedInterval]:
        """
        Intervals on ``day`` held by appointments that share any of ``resource_ids``.

        Args:
            day: Calendar day
            resource_ids: Resource identifiers of any kind; blanks are ignored
            exclude_id: Appointment to leave out (the one being modified)

        Returns:
            Committed intervals ordered by start time

        Raises:
            UnavailableError: If the repository can't be read
        """
        wanted = frozenset(resource_id for resource_id in resource_ids if resource_id)
        if not wanted:
            return []

        committed: List[CommittedInterval] = []
        for appointment in self.repository.find_by_day_and_resources(day, wanted):
            if appointment.id == exclude_id:
                continue
            if appointment.status not in self.committed_statuses:
                continue
            held = appointment.resources.identifiers
            if held.isdisjoint(wanted):
                continue
            committed.append(CommittedInterval(appointment.interval, appointment.id, held))

        logger.debug(f"Ledger {day} {sorted(wanted)}: {len(committed)} committed interval(s)")
        return sorted(committed, key=lambda entry: (entry.interval.start_minute, entry.interval.end_minute))
