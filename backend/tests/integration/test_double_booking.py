"""
No-double-booking invariant under sequential and concurrent booking.

Property: for any two committed appointments sharing a resource, their
intervals do not overlap.
"""

import tempfile
import threading
import time
from contextlib import contextmanager
from itertools import combinations
from pathlib import Path
from unittest.mock import patch

from hypothesis import given, settings, strategies as st

from core.constants import COMMITTED_STATUSES
from core.database import create_tables, make_session_factory
from core.exceptions import ConflictError, InvalidStateError
from services import (
    AppointmentLifecycle,
    ConflictChecker,
    ResourceLedger,
    ResourceLockManager,
    SqlAlchemyAppointmentRepository,
)
from shared_types.scheduling import AppointmentPatch, ResourceSet
from shared_types.time_interval import TimeInterval
from tests.utils import BOOKING_DAY, make_request, make_sqlite_engine


def assert_no_double_booking(appointments) -> None:
    committed = [a for a in appointments if a.status in COMMITTED_STATUSES]
    for first, second in combinations(committed, 2):
        if first.resources.identifiers.isdisjoint(second.resources.identifiers):
            continue
        assert not first.interval.overlaps(second.interval), (first, second)


# Half-hour grid between 09:00 and 13:00
booking_strategy = st.tuples(
    st.integers(min_value=18, max_value=25),  # start in half hours
    st.integers(min_value=1, max_value=4),    # length in half hours
    st.sampled_from([None, "dr-a", "dr-b"]),
    st.sampled_from([None, "room-1", "room-2"]),
    st.sampled_from([(), ("ecg-1",)]),
)


def half_hour(value: int) -> str:
    return f"{value // 2:02d}:{(value % 2) * 30:02d}"


def booking_request(booking, patient_ref: str = "patient-001"):
    start, length, doctor_id, room_id, equipment_ids = booking
    return make_request(
        half_hour(start), half_hour(start + length),
        doctor_id=doctor_id, room_id=room_id, equipment_ids=equipment_ids, patient_ref=patient_ref,
    )


def booking_patch(booking) -> AppointmentPatch:
    start, length, doctor_id, room_id, equipment_ids = booking
    return AppointmentPatch(
        interval=TimeInterval.from_strings(BOOKING_DAY, half_hour(start), half_hour(start + length)),
        resources=ResourceSet(doctor_id=doctor_id, room_id=room_id, equipment_ids=equipment_ids),
    )


@contextmanager
def temporary_lifecycle():
    """Lifecycle over a fresh SQLite file, for use inside Hypothesis examples."""
    with tempfile.TemporaryDirectory() as directory:
        engine = make_sqlite_engine(Path(directory) / "property.db")
        try:
            create_tables(bind=engine)
            repository = SqlAlchemyAppointmentRepository(make_session_factory(engine))
            yield AppointmentLifecycle(
                repository, ConflictChecker(ResourceLedger(repository)), ResourceLockManager(timeout_seconds=30)
            )
        finally:
            engine.dispose()


def run_concurrently(action, items, expected_errors=(ConflictError,)):
    """Call ``action(item)`` for every item from its own thread, all released at once."""
    barrier = threading.Barrier(len(items))
    results = []
    errors = []
    guard = threading.Lock()

    def worker(item):
        barrier.wait(10)
        try:
            outcome = action(item)
        except expected_errors as e:
            with guard:
                errors.append(e)
            return
        with guard:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=(item,)) for item in items]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(60)
    return results, errors


class TestNoDoubleBookingProperty:
    """Random booking sets never leave overlapping committed appointments."""

    @settings(max_examples=25, deadline=None)
    @given(bookings=st.lists(booking_strategy, min_size=1, max_size=12))
    def test_random_sequences(self, bookings):
        with temporary_lifecycle() as lifecycle:
            for booking in bookings:
                try:
                    lifecycle.create(booking_request(booking))
                except ConflictError:
                    pass

            assert_no_double_booking(lifecycle.list_appointments(BOOKING_DAY, BOOKING_DAY))

    @settings(max_examples=15, deadline=None)
    @given(bookings=st.lists(booking_strategy, min_size=2, max_size=8))
    def test_random_concurrent_creation(self, bookings):
        with temporary_lifecycle() as lifecycle:
            requests = [booking_request(b, patient_ref=f"patient-{i:03d}") for i, b in enumerate(bookings)]

            results, errors = run_concurrently(lifecycle.create, requests)

            assert len(results) + len(errors) == len(requests)
            assert len(results) >= 1
            assert_no_double_booking(lifecycle.list_appointments(BOOKING_DAY, BOOKING_DAY))

    @settings(max_examples=15, deadline=None)
    @given(
        initial=st.lists(booking_strategy, min_size=1, max_size=4),
        changes=st.lists(st.tuples(st.integers(min_value=0, max_value=3), booking_strategy), min_size=2, max_size=6),
    )
    def test_random_concurrent_modification(self, initial, changes):
        with temporary_lifecycle() as lifecycle:
            booked = []
            for booking in initial:
                try:
                    booked.append(lifecycle.create(booking_request(booking)))
                except ConflictError:
                    pass
            edits = [(booked[index % len(booked)].id, booking_patch(b)) for index, b in changes]

            results, errors = run_concurrently(
                lambda edit: lifecycle.modify(*edit), edits, expected_errors=(ConflictError, InvalidStateError),
            )

            assert len(results) + len(errors) == len(edits)
            assert_no_double_booking(lifecycle.list_appointments(BOOKING_DAY, BOOKING_DAY))


class TestConcurrentBooking:
    """Concurrent requests for the same resources are serialized by the resource-day lock."""

    def test_identical_requests_book_exactly_once(self, lifecycle, lock_manager):
        requests = [make_request("09:00", "10:00", patient_ref=f"patient-{i:03d}") for i in range(8)]

        results, errors = run_concurrently(lifecycle.create, requests)

        assert len(results) == 1
        assert len(errors) == 7
        assert all(e.conflicting_appointment_ids == [results[0].id] for e in errors)
        assert lock_manager.active_keys() == []

    def test_overlapping_requests_sharing_a_room(self, lifecycle):
        requests = [
            make_request(f"{9 + i // 2:02d}:{(i % 2) * 30:02d}", f"{10 + i // 2:02d}:{(i % 2) * 30:02d}",
                         doctor_id=f"dr-{i}", room_id="room-1", patient_ref=f"patient-{i:03d}")
            for i in range(6)
        ]

        results, errors = run_concurrently(lifecycle.create, requests)

        assert len(results) + len(errors) == 6
        assert len(results) >= 1
        assert_no_double_booking(lifecycle.list_appointments(BOOKING_DAY, BOOKING_DAY))

    def test_disjoint_resources_all_succeed(self, lifecycle):
        requests = [
            make_request("09:00", "10:00", doctor_id=f"dr-{i}", room_id=f"room-{i}", patient_ref=f"patient-{i:03d}")
            for i in range(6)
        ]

        results, errors = run_concurrently(lifecycle.create, requests)

        assert len(results) == 6
        assert errors == []


class TestConcurrentModification:
    """Concurrent edits of one appointment are applied one after the other."""

    def test_time_change_and_doctor_change_do_not_combine_into_a_clash(self, lifecycle, repository, lock_manager):
        moving = lifecycle.create(make_request("09:00", "10:00", doctor_id="dr-1", room_id=None))
        other = lifecycle.create(make_request("10:00", "11:00", doctor_id="dr-2", room_id=None))

        read_done = threading.Event()
        resume = threading.Event()
        original_find_by_id = repository.find_by_id

        def find_then_pause(appointment_id):
            found = original_find_by_id(appointment_id)
            if threading.current_thread().name == "doctor-change" and not read_done.is_set():
                read_done.set()
                resume.wait(5)
            return found

        outcomes = {}

        def run(name, appointment_patch):
            try:
                outcomes[name] = lifecycle.modify(moving.id, appointment_patch)
            except ConflictError as e:
                outcomes[name] = e

        doctor_change = threading.Thread(
            target=run, name="doctor-change",
            args=("doctor-change", AppointmentPatch(resources=ResourceSet(doctor_id="dr-2"))),
        )
        time_change = threading.Thread(
            target=run, name="time-change",
            args=("time-change", AppointmentPatch(
                interval=TimeInterval.from_strings(BOOKING_DAY, "10:00", "11:00"))),
        )

        with patch.object(repository, "find_by_id", side_effect=find_then_pause):
            doctor_change.start()
            assert read_done.wait(5)
            # The doctor change has read the appointment and is paused; the time change starts now
            time_change.start()
            time.sleep(0.3)
            resume.set()
            doctor_change.join(10)
            time_change.join(10)

        assert isinstance(outcomes["time-change"], ConflictError)
        assert outcomes["time-change"].conflicting_appointment_ids == [other.id]
        final = lifecycle.get(moving.id)
        assert final.resources == ResourceSet(doctor_id="dr-2")
        assert (final.interval.start, final.interval.end) == ("09:00", "10:00")
        assert_no_double_booking(lifecycle.list_appointments(BOOKING_DAY, BOOKING_DAY))
        assert lock_manager.active_keys() == []

    def test_edits_of_different_appointments_run_independently(self, lifecycle, lock_manager):
        booked = [
            lifecycle.create(make_request("09:00", "10:00", doctor_id=f"dr-{i}", room_id=None,
                                          patient_ref=f"patient-{i:03d}"))
            for i in range(4)
        ]
        new_time = TimeInterval.from_strings(BOOKING_DAY, "14:00", "15:00")

        results, errors = run_concurrently(
            lambda appointment: lifecycle.modify(appointment.id, AppointmentPatch(interval=new_time)), booked,
        )

        assert errors == []
        assert sorted(a.id for a in results) == sorted(a.id for a in booked)
        assert lock_manager.active_keys() == []
