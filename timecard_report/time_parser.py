"""
Tolerant parsers for the hand-entered fields of attendance spreadsheets.

Cell values reach this module as whatever openpyxl decoded (str, int, float,
datetime, time or None). Every function here branches on that runtime type
once and returns plain Python values; nothing downstream sees raw cells.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Optional


MISSING_MARKERS = {"", "-", "–", "—"}

# +2h55min, -1h, +30min (sign mandatory, whitespace already removed)
_DELTA_MAIN = re.compile(r"^([+-])(?:(\d+)h)?(?:(\d+)min)?$")
# 2:30, -1:15
_DELTA_HHMM = re.compile(r"^([+-])?(\d+):(\d+)$")
# 45, -15
_DELTA_MINUTES = re.compile(r"^([+-])?(\d+)$")

_DATE_BR = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DATE_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_CLOCK = re.compile(r"^(\d{1,2})[:hH](\d{2})(?::(\d{2}))?$")

EXCEL_EPOCH = datetime(1899, 12, 30)

ENTRADA_LIMIT = time(10, 0)
INTERVALO_LIMIT = time(17, 0)
RETORNO_LIMIT = time(17, 0)


@dataclass(frozen=True)
class DeltaParse:
    delta_minutes: int
    is_missing: bool
    parse_error: bool


def cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_delta(raw: Any) -> DeltaParse:
    """Parse the "Diferença" field into signed minutes.

    Accepted forms:
      +2h55min, -1h, +30min   sign required, hour and/or minute group
      2:30, -1:15             hours:minutes, sign optional
      45, -15                 bare minutes, sign optional

    Empty cells and dash placeholders are reported as missing. Anything else
    is flagged with parse_error so an operator can review it.
    """
    text = cell_to_text(raw)
    if text in MISSING_MARKERS:
        return DeltaParse(0, True, False)

    clean = re.sub(r"\s+", "", text).lower()

    match = _DELTA_MAIN.match(clean)
    if match:
        sign, hours, minutes = match.groups()
        if hours is None and minutes is None:
            return DeltaParse(0, False, True)
        total = int(hours or 0) * 60 + int(minutes or 0)
        return DeltaParse(-total if sign == "-" else total, False, False)

    match = _DELTA_HHMM.match(clean)
    if match:
        sign, hours, minutes = match.groups()
        total = int(hours) * 60 + int(minutes)
        return DeltaParse(-total if sign == "-" else total, False, False)

    match = _DELTA_MINUTES.match(clean)
    if match:
        sign, minutes = match.groups()
        total = int(minutes)
        return DeltaParse(-total if sign == "-" else total, False, False)

    return DeltaParse(0, False, True)


def _build_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(raw: Any) -> Optional[date]:
    """Return the calendar date held by a cell, or None when there is none.

    Handles native datetime/date values, spreadsheet serial numbers
    (epoch 1899-12-30) and DD/MM/YYYY or YYYY-MM-DD text. Impossible dates
    such as 31/02/2024 yield None.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, (int, float)):
        try:
            return (EXCEL_EPOCH + timedelta(days=raw)).date()
        except (OverflowError, ValueError):
            return None

    text = str(raw).strip()
    if text in MISSING_MARKERS:
        return None

    match = _DATE_BR.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        return _build_date(year, month, day)

    match = _DATE_ISO.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _build_date(year, month, day)

    return None


def parse_clock_time(raw: Any) -> Optional[time]:
    """Read a time-of-day from a time/datetime cell or HH:MM[:SS] text."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.time()
    if isinstance(raw, time):
        return raw
    match = _CLOCK.match(str(raw).strip())
    if not match:
        return None
    hour, minute, second = match.groups()
    try:
        return time(int(hour), int(minute), int(second or 0))
    except ValueError:
        return None


def _later_than(raw: Any, limit: time) -> bool:
    parsed = parse_clock_time(raw)
    if parsed is None:
        return False
    return (parsed.hour, parsed.minute) > (limit.hour, limit.minute)


def is_adjustment_record(entrada: Any, intervalo: Any, retorno: Any) -> bool:
    """True when the punches mark the row as a manual adjustment (Ajuste).

    Rule: entrada after 10:00, or intervalo/retorno after 17:00.
    """
    return (
        _later_than(entrada, ENTRADA_LIMIT)
        or _later_than(intervalo, INTERVALO_LIMIT)
        or _later_than(retorno, RETORNO_LIMIT)
    )


def format_minutes(minutes: float) -> str:
    """+2h 55min / -30min / +1h"""
    minutes = int(round(minutes))
    sign = "-" if minutes < 0 else "+"
    hours, mins = divmod(abs(minutes), 60)
    if hours == 0:
        return f"{sign}{mins}min"
    if mins == 0:
        return f"{sign}{hours}h"
    return f"{sign}{hours}h {mins}min"


def format_decimal_hours(minutes: float) -> str:
    return f"{minutes / 60:.2f}h"


def format_date(value: Optional[date]) -> str:
    if value is None:
        return "-"
    return value.strftime("%d/%m/%Y")
