"""
Recurring series expansion.

A recurrence rule is turned into occurrence dates and each occurrence is
booked through ``AppointmentLifecycle.create``. Occurrences that conflict are
skipped and reported; the series as a whole never aborts.
"""

import logging
from datetime import date, timedelta
from typing import List

from core.config import MAX_RECURRING_OCCURRENCES
from core.constants import FREQUENCY_DAILY, FREQUENCY_MONTHLY, FREQUENCY_WEEKLY
from core.exceptions import ConflictError, UnavailableError, ValidationError
from services.appointment_lifecycle import AppointmentLifecycle
from services.conflict_checker import ConflictChecker
from shared_types.scheduling import (
    OUTCOME_AVAILABLE,
    OUTCOME_CREATED,
    OUTCOME_FAILED,
    OUTCOME_SKIPPED,
    CreationOutcome,
    RecurrenceRule,
)
from utils.datetime_utils import add_months

logger = logging.getLogger(__name__)


class RecurringSeriesExpander:
    """Expands recurrence rules into per-occurrence bookings."""

    def __init__(
        self,
        lifecycle: AppointmentLifecycle,
        checker: ConflictChecker,
        max_occurrences: int = MAX_RECURRING_OCCURRENCES,
    ):
        self.lifecycle = lifecycle
        self.checker = checker
        self.max_occurrences = max_occurrences

    def occurrence_dates(self, rule: RecurrenceRule) -> List[date]:
        """
        Dates of every occurrence from ``start_date`` up to ``end_date`` (inclusive).

        Daily and weekly step by 1 and 7 days. Monthly occurrences are
        computed from the start date (n months later), so a series anchored
        on the 31st lands on the last day of shorter months and returns to the
        31st afterwards.

        Raises:
            ValidationError: On an invalid rule or more than ``max_occurrences`` dates
        """
        rule.validate()

        dates: List[date] = []
        step = 0
        while True:
            if rule.frequency == FREQUENCY_DAILY:
                current = rule.start_date + timedelta(days=step)
            elif rule.frequency == FREQUENCY_WEEKLY:
                current = rule.start_date + timedelta(weeks=step)
            elif rule.frequency == FREQUENCY_MONTHLY:
                current = add_months(rule.start_date, step)
            else:
                raise ValidationError(f"Unknown recurrence frequency: {rule.frequency}")

            if current > rule.end_date:
                break
            dates.append(current)
            if len(dates) > self.max_occurrences:
                raise ValidationError(
                    f"Recurring series exceeds the maximum of {self.max_occurrences} occurrences"
                )
            step += 1
        return dates

    def expand(self, rule: RecurrenceRule) -> List[CreationOutcome]:
        """
        Book every occurrence of the series.

        Each occurrence gets an outcome: ``created`` with the new appointment,
        ``skipped`` with the conflicting appointment ids, or ``failed`` when
        storage was unavailable for that occurrence.

        Raises:
            ValidationError: If the rule itself is invalid (nothing is booked)
        """
        dates = self.occurrence_dates(rule)
        # Validates patient/channel/type once before anything is written
        rule.request_for(rule.start_date).validate()

        outcomes: List[CreationOutcome] = []
        for occurrence_date in dates:
            try:
                appointment = self.lifecycle.create(rule.request_for(occurrence_date))
            except ConflictError as e:
                outcomes.append(CreationOutcome(
                    occurrence_date=occurrence_date,
                    outcome=OUTCOME_SKIPPED,
                    conflicting_appointment_ids=tuple(e.conflicting_appointment_ids),
                    message=e.message,
                ))
                continue
            except (UnavailableError, ValidationError) as e:
                logger.error(f"Recurring occurrence on {occurrence_date} failed: {e.message}")
                outcomes.append(CreationOutcome(
                    occurrence_date=occurrence_date,
                    outcome=OUTCOME_FAILED,
                    message=e.message,
                ))
                continue

            outcomes.append(CreationOutcome(
                occurrence_date=occurrence_date,
                outcome=OUTCOME_CREATED,
                appointment_id=appointment.id,
                appointment_number=appointment.appointment_number,
            ))

        created = sum(1 for outcome in outcomes if outcome.outcome == OUTCOME_CREATED)
        logger.info(
            f"Recurring series for patient {rule.patient_ref} ({rule.frequency}): "
            f"{created} of {len(outcomes)} occurrence(s) created"
        )
        return outcomes

    def preview(self, rule: RecurrenceRule) -> List[CreationOutcome]:
        """
        Conflict-check every occurrence without booking anything.

        Outcomes are ``available``, ``skipped`` (would conflict) or ``failed``.
        """
        outcomes: List[CreationOutcome] = []
        for occurrence_date in self.occurrence_dates(rule):
            interval = rule.interval_on(occurrence_date)
            try:
                result = self.checker.check_conflict(interval, rule.resources)
            except UnavailableError as e:
                outcomes.append(CreationOutcome(occurrence_date, OUTCOME_FAILED, message=e.message))
                continue
            if result.has_conflict:
                outcomes.append(CreationOutcome(
                    occurrence_date,
                    OUTCOME_SKIPPED,
                    conflicting_appointment_ids=result.conflicting_appointment_ids,
                ))
            else:
                outcomes.append(CreationOutcome(occurrence_date, OUTCOME_AVAILABLE))
        return outcomes
