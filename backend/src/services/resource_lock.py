"""
Per resource-day mutual exclusion for the booking write path.

Conflict check + insert/update is a check-then-act sequence. Every create or
modify holds the lock for each ``(resource_id, day)`` it touches from before
the conflict check until after the write, so two requests for the same doctor
or room on the same day are serialized while unrelated bookings run in parallel.

A modify first holds the edit lock of the appointment itself, then re-reads
it and takes the resource-day locks of the merged result. Nothing waits for an
edit lock while holding a resource-day lock.

Locks are acquired in sorted key order and each
acquisition is bounded; a timeout surfaces as ``UnavailableError``.

Scope: one process. Deployments running several API workers against one
database need a single scheduling worker or a database-level lock instead.
"""

import logging
import threading
import time
from contextlib import contextmanager
from datetime import date
from typing import Dict, Iterable, Iterator, List, Tuple

from core.config import RESOURCE_LOCK_TIMEOUT_SECONDS
from core.exceptions import UnavailableError

logger = logging.getLogger(__name__)

LockKey = Tuple[str, str]

# Second key component of per-appointment edit locks; resource keys carry an ISO date there
APPOINTMENT_SCOPE = "appointment"


class _KeyedLock:
    """A lock plus the number of holders/waiters, so idle keys can be dropped."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class ResourceLockManager:
    """
    Keyed lock registry for ``(resource_id, day)`` pairs.

    Create one per application (see ``main.lifespan``) and inject it into
    ``AppointmentLifecycle``.
    """

    def __init__(self, timeout_seconds: float = RESOURCE_LOCK_TIMEOUT_SECONDS):
        if timeout_seconds <= 0:
            raise ValueError("Lock timeout must be positive")
        self.timeout_seconds = timeout_seconds
        self._guard = threading.Lock()
        self._locks: Dict[LockKey, _KeyedLock] = {}

    @staticmethod
    def keys_for(day: date, resource_ids: Iterable[str]) -> List[LockKey]:
        """Sorted, de-duplicated lock keys for a day and resource identifiers."""
        return sorted({(resource_id, day.isoformat()) for resource_id in resource_ids if resource_id})

    def _checkout(self, key: LockKey) -> _KeyedLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _KeyedLock()
            entry.users += 1
            return entry

    def _checkin(self, key: LockKey, entry: _KeyedLock) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                self._locks.pop(key, None)

    @contextmanager
    def hold(self, day: date, resource_ids: Iterable[str]) -> Iterator[List[LockKey]]:
        """
        Hold every ``(resource_id, day)`` lock for the duration of the block.

        An empty resource set holds nothing: such bookings cannot conflict.

        Raises:
            UnavailableError: If the locks can't all be taken within the timeout
        """
        with self._hold_keys(self.keys_for(day, resource_ids)) as keys:
            yield keys

    @contextmanager
    def hold_appointment(self, appointment_id: str) -> Iterator[List[LockKey]]:
        """
        Hold the edit lock of one appointment.

        Taken before the appointment is read and before any resource-day lock,
        so concurrent edits of the same appointment run one after the other.

        Raises:
            UnavailableError: If the lock can't be taken within the timeout
        """
        with self._hold_keys([(appointment_id, APPOINTMENT_SCOPE)]) as keys:
            yield keys

    @contextmanager
    def _hold_keys(self, keys: List[LockKey]) -> Iterator[List[LockKey]]:
        deadline = time.monotonic() + self.timeout_seconds
        acquired: List[Tuple[LockKey, _KeyedLock]] = []
        try:
            for key in keys:
                entry = self._checkout(key)
                remaining = max(0.0, deadline - time.monotonic())
                if not entry.lock.acquire(timeout=remaining):
                    self._checkin(key, entry)
                    logger.warning(f"Timed out waiting for scheduling lock {key}")
                    raise UnavailableError(
                        f"{key[0]} ({key[1]}) is busy, please retry"
                    )
                acquired.append((key, entry))
            yield keys
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key, entry)

    def active_keys(self) -> List[LockKey]:
        """Keys currently held or waited on (diagnostics)."""
        with self._guard:
            return sorted(self._locks)
