"""Tests for shared wall-clock and date helpers."""

from datetime import date

import pytest

from lead_booking.utils import (
    format_minutes,
    normalize_wall_clock,
    parse_date,
    range_minutes,
    to_minutes,
)


class TestNormalizeWallClock:
    def test_pads_single_digit_hour(self):
        assert normalize_wall_clock("9:05") == "09:05"

    def test_truncates_seconds(self):
        assert normalize_wall_clock("13:30:45") == "13:30"

    def test_truncates_fractional_seconds(self):
        assert normalize_wall_clock("13:30:45.120") == "13:30"

    def test_strips_whitespace(self):
        assert normalize_wall_clock("  10:00  ") == "10:00"

    def test_rejects_out_of_range_hour(self):
        assert normalize_wall_clock("25:00") is None

    def test_rejects_out_of_range_minute(self):
        assert normalize_wall_clock("10:60") is None

    def test_rejects_iso_timestamp(self):
        assert normalize_wall_clock("2025-03-18T10:00:00Z") is None

    def test_rejects_empty(self):
        assert normalize_wall_clock("") is None


class TestMinutes:
    def test_to_minutes(self):
        assert to_minutes("09:15") == 555

    def test_to_minutes_invalid(self):
        with pytest.raises(ValueError, match="Invalid wall-clock time"):
            to_minutes("noon")

    def test_format_minutes(self):
        assert format_minutes(555) == "09:15"

    def test_format_end_of_day_wraps(self):
        assert format_minutes(1440) == "00:00"


class TestRangeMinutes:
    def test_plain_range(self):
        assert range_minutes("09:00", "10:30") == (540, 630)

    def test_midnight_end_is_end_of_day(self):
        assert range_minutes("23:00", "00:00") == (1380, 1440)

    def test_midnight_to_midnight_stays_empty(self):
        assert range_minutes("00:00", "00:00") == (0, 0)

    def test_midnight_start(self):
        assert range_minutes("00:00", "01:00") == (0, 60)


class TestParseDate:
    def test_valid(self):
        assert parse_date("2025-03-18") == date(2025, 3, 18)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_date("18/03/2025")
