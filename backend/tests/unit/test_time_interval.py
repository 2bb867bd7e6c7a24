"""
Unit tests for the time interval value object.

Tests HH:MM parsing, half-open overlap semantics and containment.
"""

import pytest
from datetime import date, time

from hypothesis import given, strategies as st

from core.exceptions import ValidationError
from shared_types.time_interval import (
    TimeInterval,
    contains,
    format_hhmm,
    overlaps,
    parse_hhmm,
)

DAY = date(2030, 3, 4)


def interval(start: str, end: str, day: date = DAY) -> TimeInterval:
    return TimeInterval.from_strings(day, start, end)


class TestParseHHMM:
    """Test HH:MM parsing and formatting."""

    @pytest.mark.parametrize("value,expected", [
        ("00:00", 0),
        ("09:30", 570),
        ("23:59", 1439),
    ])
    def test_valid_times(self, value, expected):
        assert parse_hhmm(value) == expected

    @pytest.mark.parametrize("value", ["9:00", "24:00", "12:60", "12-30", "", "noon", "12:3"])
    def test_invalid_times_raise_validation_error(self, value):
        with pytest.raises(ValidationError):
            parse_hhmm(value)

    def test_non_string_rejected(self):
        with pytest.raises(ValidationError):
            parse_hhmm(930)  # type: ignore[arg-type]

    def test_validation_error_is_value_error(self):
        """Callers catching ValueError still see malformed input."""
        with pytest.raises(ValueError):
            parse_hhmm("25:00")

    def test_format_round_trips_parse(self):
        assert format_hhmm(parse_hhmm("07:05")) == "07:05"


class TestTimeIntervalConstruction:
    """Test TimeInterval validation."""

    def test_start_must_be_before_end(self):
        with pytest.raises(ValidationError):
            interval("10:00", "10:00")
        with pytest.raises(ValidationError):
            interval("11:00", "10:00")

    def test_day_must_be_a_date(self):
        with pytest.raises(ValidationError):
            TimeInterval("2030-03-04", 540, 600)  # type: ignore[arg-type]

    def test_minutes_out_of_range(self):
        with pytest.raises(ValidationError):
            TimeInterval(DAY, -1, 60)
        with pytest.raises(ValidationError):
            TimeInterval(DAY, 60, 24 * 60)

    def test_properties(self):
        iv = interval("09:15", "10:45")
        assert iv.start == "09:15"
        assert iv.end == "10:45"
        assert iv.start_time == time(9, 15)
        assert iv.end_time == time(10, 45)
        assert iv.duration_minutes == 90
        assert str(iv) == "2030-03-04 09:15-10:45"

    def test_from_times_drops_seconds(self):
        iv = TimeInterval.from_times(DAY, time(9, 0, 30), time(10, 0))
        assert iv.start_minute == 540

    def test_on_day_moves_date_only(self):
        moved = interval("09:00", "10:00").on_day(date(2030, 3, 5))
        assert moved.day == date(2030, 3, 5)
        assert (moved.start, moved.end) == ("09:00", "10:00")

    def test_intervals_are_immutable(self):
        iv = interval("09:00", "10:00")
        with pytest.raises(AttributeError):
            iv.start_minute = 0  # type: ignore[misc]

    def test_ordering_by_day_then_start(self):
        later_day = interval("08:00", "09:00", date(2030, 3, 5))
        early = interval("08:00", "09:00")
        late = interval("09:00", "10:00")
        assert sorted([later_day, late, early]) == [early, late, later_day]


class TestOverlaps:
    """Test half-open overlap semantics."""

    def test_touching_intervals_do_not_overlap(self):
        assert not overlaps(interval("09:00", "10:00"), interval("10:00", "11:00"))
        assert not overlaps(interval("10:00", "11:00"), interval("09:00", "10:00"))

    def test_partial_overlap(self):
        assert overlaps(interval("09:00", "10:00"), interval("09:30", "10:30"))

    def test_containment_overlaps(self):
        assert overlaps(interval("09:00", "12:00"), interval("10:00", "10:15"))

    def test_identical_intervals_overlap(self):
        assert interval("09:00", "10:00").overlaps(interval("09:00", "10:00"))

    def test_different_days_never_overlap(self):
        assert not overlaps(interval("09:00", "10:00"), interval("09:00", "10:00", date(2030, 3, 5)))

    @given(
        st.integers(min_value=0, max_value=1438),
        st.integers(min_value=1, max_value=240),
        st.integers(min_value=0, max_value=1438),
        st.integers(min_value=1, max_value=240),
    )
    def test_overlap_is_symmetric_and_matches_definition(self, a_start, a_len, b_start, b_len):
        a = TimeInterval(DAY, a_start, min(a_start + a_len, 1439))
        b = TimeInterval(DAY, b_start, min(b_start + b_len, 1439))
        expected = a.start_minute < b.end_minute and b.start_minute < a.end_minute
        assert overlaps(a, b) == overlaps(b, a) == expected


class TestContains:
    """Test point containment."""

    def test_start_included_end_excluded(self):
        iv = interval("09:00", "10:00")
        assert contains(iv, "09:00")
        assert contains(iv, "09:59")
        assert not contains(iv, "10:00")
        assert not contains(iv, "08:59")

    def test_accepts_minutes_and_time(self):
        iv = interval("09:00", "10:00")
        assert iv.contains(570)
        assert iv.contains(time(9, 30))
        assert not iv.contains(time(10, 0))

    def test_malformed_point_raises(self):
        with pytest.raises(ValidationError):
            contains(interval("09:00", "10:00"), "9am")
