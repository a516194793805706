"""Calendar-date normalisation for the date shapes found in bookings and timesheets.

Stored dates arrive as ISO strings, day-first strings, timestamp wrappers
with a conversion method, ``{"seconds": ...}`` epoch wrappers, native
datetimes and epoch-millisecond numbers. normalize_date() folds all of them
into a ``datetime.date``; everything downstream compares dates only, never
timestamps.

Timestamps are converted in local time before the time of day is dropped.
Unparseable input yields None, never an exception.
"""

import re
from collections.abc import Iterator, Mapping
from datetime import date, datetime, timedelta
from typing import Any

from dateutil import parser as date_parser

WEEKDAYS: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

# Field-name variants a timesheet may use for its week anchor, in lookup order
WEEK_START_FIELDS: tuple[str, ...] = ("weekStart", "week_start", "startOfWeek")

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_DAY_FIRST_DATE = re.compile(r"^(\d{2})[/-](\d{2})[/-](\d{4})$")

# Conversion methods exposed by timestamp wrapper types (store SDKs, JSON shims)
_CONVERSION_METHODS: tuple[str, ...] = ("to_datetime", "to_date", "toDate")


def normalize_date(value: Any) -> date | None:
    """Parse a date-like value of unknown shape into a calendar date.

    Precedence:
        1. Object with a zero-argument conversion method (to_datetime/to_date/toDate).
        2. Object or mapping with a numeric ``seconds`` field (epoch seconds).
        3. Native datetime/date.
        4. "YYYY-MM-DD" string.
        5. "DD/MM/YYYY" or "DD-MM-YYYY" string.
        6. Any other string, via ISO-8601 then dateutil.
        7. Epoch milliseconds (int/float).

    Returns:
        The calendar date, or None if the value cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None

    for method in _CONVERSION_METHODS:
        convert = getattr(value, method, None)
        if callable(convert):
            try:
                return _from_native(convert())
            except (TypeError, ValueError, OverflowError, OSError):
                return None

    seconds = _epoch_seconds(value)
    if seconds is not None:
        return _from_epoch(seconds)

    if isinstance(value, (datetime, date)):
        return _from_native(value)

    if isinstance(value, str):
        return _from_string(value)

    if isinstance(value, (int, float)):
        return _from_epoch(value / 1000)

    return None


def normalize_first(record: Mapping[str, Any], fields: tuple[str, ...]) -> date | None:
    """Return the first field value in ``fields`` that normalises to a date."""
    for field in fields:
        parsed = normalize_date(record.get(field))
        if parsed is not None:
            return parsed
    return None


def week_anchor(day: date) -> date:
    """Return the Monday of the ISO week containing ``day``."""
    # isoweekday: Monday=1 ... Sunday=7
    return day - timedelta(days=day.isoweekday() - 1)


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        if current == date.max:
            return
        current += timedelta(days=1)


def _epoch_seconds(value: Any) -> float | None:
    if isinstance(value, (str, int, float, date, timedelta)):
        return None
    if isinstance(value, Mapping):
        seconds = value.get("seconds")
    else:
        seconds = getattr(value, "seconds", None)
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        return None
    return seconds


def _from_epoch(seconds: float) -> date | None:
    try:
        return datetime.fromtimestamp(seconds).date()
    except (OverflowError, OSError, ValueError):
        return None


def _from_native(value: Any) -> date | None:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    if isinstance(value, date):
        return value
    return None


def _from_string(raw: str) -> date | None:
    text = raw.strip()
    if not text:
        return None

    match = _ISO_DATE.match(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    match = _DAY_FIRST_DATE.match(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    # Bare words ("Monday", "notes") are never dates
    if not any(ch.isdigit() for ch in text):
        return None

    try:
        return _from_native(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass

    try:
        return _from_native(date_parser.parse(text))
    except (ValueError, OverflowError):
        return None


def _safe_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None
