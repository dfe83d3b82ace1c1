from datetime import date, datetime, time

import pytest

from timecard_report.time_parser import (
    DeltaParse,
    cell_to_text,
    format_date,
    format_decimal_hours,
    format_minutes,
    is_adjustment_record,
    parse_clock_time,
    parse_date,
    parse_delta,
)


@pytest.mark.parametrize("raw, expected", [
    ("+2h55min", 175),
    ("-1h", -60),
    ("+30min", 30),
    ("-1h10min", -70),
    ("+2h 55 min", 175),
    ("+1H30MIN", 90),
])
def test_signed_hours_minutes(raw, expected):
    assert parse_delta(raw) == DeltaParse(expected, False, False)


@pytest.mark.parametrize("raw", ["", "-", "–", "—", None, "   "])
def test_missing_values(raw):
    assert parse_delta(raw) == DeltaParse(0, True, False)


@pytest.mark.parametrize("raw", ["abc", "+", "1h", "+h", "2:xx", "+1.5h"])
def test_parse_errors(raw):
    assert parse_delta(raw) == DeltaParse(0, False, True)


def test_fallback_formats():
    assert parse_delta("2:30").delta_minutes == 150
    assert parse_delta("-1:15").delta_minutes == -75
    assert parse_delta("-15").delta_minutes == -15
    assert parse_delta("45").delta_minutes == 45
    assert parse_delta(45).delta_minutes == 45
    assert parse_delta(45.0) == DeltaParse(45, False, False)


def test_parse_date_text():
    assert parse_date("29/02/2024") == date(2024, 2, 29)
    assert parse_date("31/02/2024") is None
    assert parse_date("5/3/2024") == date(2024, 3, 5)
    assert parse_date("2024-03-05") == date(2024, 3, 5)
    assert parse_date("2024-02-30") is None
    assert parse_date("05.03.2024") is None
    assert parse_date("") is None
    assert parse_date("-") is None


def test_parse_date_native_and_serial():
    assert parse_date(datetime(2024, 3, 1, 8, 30)) == date(2024, 3, 1)
    assert parse_date(date(2024, 3, 1)) == date(2024, 3, 1)
    assert parse_date(45292) == date(2024, 1, 1)
    assert parse_date(45292.75) == date(2024, 1, 1)
    assert parse_date(True) is None
    assert parse_date(None) is None


def test_parse_clock_time():
    assert parse_clock_time("08:05") == time(8, 5)
    assert parse_clock_time("8:05:30") == time(8, 5, 30)
    assert parse_clock_time("10h30") == time(10, 30)
    assert parse_clock_time(time(9, 0)) == time(9, 0)
    assert parse_clock_time(datetime(2024, 1, 1, 18, 0)) == time(18, 0)
    assert parse_clock_time("25:00") is None
    assert parse_clock_time("folga") is None


def test_adjustment_thresholds():
    assert is_adjustment_record("10:01", None, None)
    assert not is_adjustment_record("10:00", None, None)
    assert is_adjustment_record(None, "17:30", None)
    assert is_adjustment_record(None, None, "18:00")
    assert not is_adjustment_record("08:00", "12:00", "13:00")
    assert not is_adjustment_record("abc", "", None)
    assert is_adjustment_record(time(11, 0), None, None)


def test_formatting():
    assert format_minutes(175) == "+2h 55min"
    assert format_minutes(-30) == "-30min"
    assert format_minutes(60) == "+1h"
    assert format_minutes(0) == "+0min"
    assert format_decimal_hours(90) == "1.50h"
    assert format_date(date(2024, 1, 2)) == "02/01/2024"
    assert format_date(None) == "-"


def test_cell_to_text():
    assert cell_to_text(None) == ""
    assert cell_to_text(45.0) == "45"
    assert cell_to_text(2.5) == "2.5"
    assert cell_to_text(7) == "7"
    assert cell_to_text("  Ana Costa ") == "Ana Costa"


if __name__ == '__main__':
    raise SystemExit(pytest.main([__file__, '-q']))
