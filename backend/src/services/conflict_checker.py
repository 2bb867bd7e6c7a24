"""
Conflict checker: may this interval be granted for these resources?

Two appointments conflict when they share at least one non-empty resource
identifier (of any kind) and their half-open intervals overlap.
"""

import logging
from typing import Iterable, Optional

from core.exceptions import ValidationError
from services.resource_ledger import CommittedInterval, ResourceLedger
from shared_types.scheduling import ConflictResult, ResourceSet
from shared_types.time_interval import TimeInterval, overlaps

logger = logging.getLogger(__name__)


class ConflictChecker:
    """Composes the interval model and the resource ledger."""

    def __init__(self, ledger: ResourceLedger):
        self.ledger = ledger

    def check_conflict(
        self,
        interval: TimeInterval,
        resources: ResourceSet,
        exclude_id: Optional[str] = None,
    ) -> ConflictResult:
        """
        Check a proposed booking against the ledger.

        A booking with no doctor, room or equipment can't conflict and never
        touches the repository. Every clashing appointment is reported.

        Raises:
            ValidationError: If ``interval`` is not a TimeInterval
            UnavailableError: If the ledger can't be read (never treated as "no conflict")
        """
        if not isinstance(interval, TimeInterval):
            raise ValidationError("A valid time interval is required")
        if resources.is_empty:
            return ConflictResult(has_conflict=False)

        committed = self.ledger.committed_intervals(interval.day, resources.identifiers, exclude_id=exclude_id)
        result = self.evaluate(interval, committed, exclude_id=exclude_id)
        if result.has_conflict:
            logger.info(
                f"Conflict for {interval} on {sorted(resources.identifiers)}: {list(result.conflicting_appointment_ids)}"
            )
        return result

    @staticmethod
    def evaluate(
        interval: TimeInterval,
        committed: Iterable[CommittedInterval],
        exclude_id: Optional[str] = None,
    ) -> ConflictResult:
        """
        Overlap pass over already-fetched committed intervals.

        Pure function - no repository access. Shared with the slot generator
        so a whole day can be evaluated from one ledger read.
        """
        return ConflictResult.from_ids(
            entry.appointment_id
            for entry in committed
            if entry.appointment_id != exclude_id and overlaps(interval, entry.interval)
        )
