"""Tests for calendar-date and time-key normalization."""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from consultdesk.utils.time import add_days, normalize_date, normalize_time


class TestNormalizeDate:
    """Every date input reduces to a calendar day."""

    def test_date_passes_through(self) -> None:
        assert normalize_date(date(2024, 1, 10)) == date(2024, 1, 10)

    def test_datetime_keeps_its_own_calendar_day(self) -> None:
        """No timezone shift is applied to aware datetimes."""
        late_evening = datetime(2024, 1, 10, 23, 30, tzinfo=timezone(timedelta(hours=-8)))

        assert normalize_date(late_evening) == date(2024, 1, 10)

    def test_datetime_with_time_component_matches_plain_date(self) -> None:
        assert normalize_date(datetime(2024, 1, 10, 9, 15)) == normalize_date(date(2024, 1, 10))

    @pytest.mark.parametrize(
        "value",
        ["2024-01-10", " 2024-01-10 ", "2024-01-10T09:30:00", "2024-01-10T09:30:00+02:00"],
    )
    def test_iso_strings(self, value: str) -> None:
        assert normalize_date(value) == date(2024, 1, 10)

    @pytest.mark.parametrize("value", ["", "not-a-date", "2024-13-40"])
    def test_invalid_strings_raise(self, value: str) -> None:
        with pytest.raises(ValueError):
            normalize_date(value)

    def test_unsupported_type_raises(self) -> None:
        with pytest.raises(ValueError):
            normalize_date(20240110)  # type: ignore[arg-type]


class TestNormalizeTime:
    """Time-of-day keys are opaque strings."""

    def test_time_object_becomes_hh_mm(self) -> None:
        assert normalize_time(time(10, 0)) == "10:00"

    def test_time_object_with_seconds(self) -> None:
        assert normalize_time(time(10, 0, 30)) == "10:00:30"

    def test_strings_are_only_stripped(self) -> None:
        """Strings are compared verbatim, so 10:00 and 10:00 AM differ."""
        assert normalize_time(" 10:00 ") == "10:00"
        assert normalize_time("10:00 AM") == "10:00 AM"

    def test_empty_string_raises(self) -> None:
        with pytest.raises(ValueError):
            normalize_time("   ")


def test_add_days_crosses_month_boundary() -> None:
    assert add_days(date(2024, 1, 31), 1) == date(2024, 2, 1)
