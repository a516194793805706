"""Booking schedule and identity helpers.

Turns a booking's scheduling fields into a canonical set of calendar days
and ISO-week anchors, and extracts the identity hints (job number, employee
codes, employee name tokens) the retriever and scorer match timesheets on.

Bookings are plain store documents (dicts). Scheduling comes in one of
three shapes, checked in this order:
    bookingDates: ["2025-10-06", {"date": "07/10/2025"}, <timestamp>, ...]
    startDate + endDate (inclusive range; a lone parsable end counts too)
    date (or a lone startDate)
"""

import re
from collections.abc import Mapping
from datetime import date
from typing import Any

from src.reconcile.dates import iter_days, normalize_date, week_anchor

_NUMERIC = re.compile(r"^-?\d+(?:\.\d+)?$")
# Fallback ids must look like codes, not free text
_CODE_LIKE = re.compile(r"^\w{3,}$")


def booking_days(booking: Mapping[str, Any]) -> list[date]:
    """Return the booking's scheduled days, deduplicated and sorted ascending."""
    explicit = booking.get("bookingDates")
    if isinstance(explicit, (list, tuple)) and explicit:
        days: set[date] = set()
        for entry in explicit:
            if isinstance(entry, Mapping) and "date" in entry:
                entry = entry["date"]
            parsed = normalize_date(entry)
            if parsed is not None:
                days.add(parsed)
        return sorted(days)

    start = normalize_date(booking.get("startDate")) or normalize_date(booking.get("date"))
    end = normalize_date(booking.get("endDate")) or normalize_date(booking.get("date"))

    if start is not None and end is not None:
        if end < start:
            start, end = end, start
        return list(iter_days(start, end))
    if start is not None or end is not None:
        return [start or end]
    return []


def day_set(booking: Mapping[str, Any]) -> set[date]:
    return set(booking_days(booking))


def week_anchors(booking: Mapping[str, Any]) -> set[date]:
    """Return the Monday of every ISO week the booking touches."""
    return {week_anchor(day) for day in booking_days(booking)}


def last_day(booking: Mapping[str, Any]) -> date | None:
    days = booking_days(booking)
    return days[-1] if days else None


def job_number_of(booking: Mapping[str, Any]) -> str:
    """Return the booking's job number as a string, falling back to its id."""
    number = booking.get("jobNumber")
    if number is None or number == "":
        number = booking.get("id")
    return "" if number is None else str(number)


def numeric_job_number(job_number: str) -> int | float | None:
    """Return the numeric form of a job number, or None when it isn't one."""
    text = job_number.strip()
    if not _NUMERIC.match(text):
        return None
    return float(text) if "." in text else int(text)


def split_job_number(job_number: Any) -> tuple[str, str]:
    """Split a job number like "2025-014" into ("2025", "014").

    Numbers without a dash return an empty suffix; missing ones return ("—", "").
    """
    if job_number is None or job_number == "":
        return "—", ""
    prefix, _, rest = str(job_number).partition("-")
    suffix = rest.split("-")[0] if rest else ""
    return prefix, suffix


def _employee_list(booking: Mapping[str, Any]) -> list[Any]:
    employees = booking.get("employees")
    if isinstance(employees, (list, tuple)):
        return list(employees)
    if employees:
        return [employees]
    return []


def employee_codes(booking: Mapping[str, Any]) -> list[str]:
    """Return distinct employee codes carried explicitly by the booking.

    Only record entries count: userCode, else code, else a code-like id.
    Plain name strings are skipped.
    """
    codes: list[str] = []
    for employee in _employee_list(booking):
        if not isinstance(employee, Mapping):
            continue
        code = None
        if employee.get("userCode"):
            code = str(employee["userCode"])
        elif employee.get("code"):
            code = str(employee["code"])
        elif employee.get("id") and _CODE_LIKE.match(str(employee["id"])):
            code = str(employee["id"])
        if code and code not in codes:
            codes.append(code)
    return codes


def employee_tokens(booking: Mapping[str, Any]) -> list[str]:
    """Return lower-cased name/email tokens for the booking's employees."""
    tokens: list[str] = []

    def add(value: Any) -> None:
        if value is None:
            return
        token = str(value).strip().lower()
        if token and token not in tokens:
            tokens.append(token)

    for employee in _employee_list(booking):
        if isinstance(employee, str):
            add(employee)
        elif isinstance(employee, Mapping):
            add(employee.get("name"))
            first_last = " ".join(
                str(part) for part in (employee.get("firstName"), employee.get("lastName")) if part
            )
            add(first_last)
            add(employee.get("displayName"))
            add(employee.get("email"))
    return tokens
