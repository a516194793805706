"""Timesheet week grids and day-map normalisation.

A timesheet's ``days`` may be stored as a list of entries carrying their own
day/date/offset hints, or as an object keyed by weekday name, 3-letter
abbreviation or a date string. normalize_day_map() reshapes both into
``{"Monday": entry, ...}`` before anything inspects individual days.
"""

from collections.abc import Mapping
from datetime import date, timedelta
from typing import Any

from src.reconcile.dates import WEEKDAYS, normalize_date, weekday_name
from src.reconcile.models import DayRow

_ABBREVIATIONS: dict[str, str] = {name[:3]: name for name in WEEKDAYS}

# Display labels per day mode; "*" is appended when the day names the booking
_MODE_LABELS: dict[str, str] = {
    "onset": "Set",
    "set": "Set",
    "work": "Set",
    "travel": "Travel",
    "yard": "Yard",
}


def week_grid(week_start: Any) -> dict[str, date] | None:
    """Return Monday..Sunday mapped to seven consecutive dates from ``week_start``.

    The value is not re-anchored; callers pass a Monday. Returns None when the
    start does not parse or the week would run past the last representable date.
    """
    start = normalize_date(week_start)
    if start is None:
        return None
    try:
        return {name: start + timedelta(days=offset) for offset, name in enumerate(WEEKDAYS)}
    except OverflowError:
        return None


def _canonical_weekday(key: Any) -> str | None:
    text = str(key).strip()
    if not text:
        return None
    titled = text[0].upper() + text[1:].lower()
    titled = _ABBREVIATIONS.get(titled, titled)
    return titled if titled in WEEKDAYS else None


def _key_for_entry(entry: Mapping[str, Any], week_start: Any) -> str | None:
    named = entry.get("day") or entry.get("dayName") or entry.get("weekday")
    if named:
        canonical = _canonical_weekday(named)
        if canonical is not None:
            return canonical

    if entry.get("date"):
        parsed = normalize_date(entry["date"])
        if parsed is not None:
            return weekday_name(parsed)

    offset = entry.get("offset")
    if offset is not None and week_start is not None:
        start = normalize_date(week_start)
        if start is None:
            return None
        try:
            return weekday_name(start + timedelta(days=int(offset)))
        except (TypeError, ValueError, OverflowError):
            return None
    return None


def normalize_day_map(raw: Any, week_start: Any = None) -> dict[str, Any]:
    """Reshape a timesheet's ``days`` value into a weekday-keyed map.

    Entries or keys that don't resolve to one of the seven weekdays are
    dropped. Later entries for the same weekday replace earlier ones.
    """
    out: dict[str, Any] = {}

    if isinstance(raw, (list, tuple)):
        for entry in raw:
            if not isinstance(entry, Mapping):
                continue
            key = _key_for_entry(entry, week_start)
            if key is not None:
                out[key] = entry
    elif isinstance(raw, Mapping):
        for raw_key, entry in raw.items():
            parsed = normalize_date(raw_key) if isinstance(raw_key, str) else None
            key = weekday_name(parsed) if parsed is not None else _canonical_weekday(raw_key)
            if key is not None:
                out[key] = entry
    return out


def raw_day_entries(raw: Any) -> list[Any]:
    """Return the stored day entries in storage order, whatever the shape."""
    if isinstance(raw, (list, tuple)):
        return list(raw)
    if isinstance(raw, Mapping):
        return list(raw.values())
    return []


def mode_label(entry: Mapping[str, Any], linked: bool) -> str:
    """Return the display label for a day entry's mode."""
    mode = str(entry.get("mode") or entry.get("type") or "").strip().lower()
    if not mode and linked:
        mode = "onset"
    if mode == "holiday":
        return "HOL"
    if mode in _MODE_LABELS:
        label = _MODE_LABELS[mode]
        return f"{label}*" if linked else label
    if not mode or mode == "off":
        return "OFF"
    return mode


def relevant_days(
    timesheet: Mapping[str, Any],
    booking_id: str,
    booking_day_set: set[date],
) -> list[DayRow]:
    """Return the Monday..Sunday rows of a timesheet that matter to a booking.

    A day is relevant when its entry carries the booking id, the timesheet's
    jobSnapshot.byDay lists the booking for that day, or the day's date is
    one of the booking's scheduled days.
    """
    week_start = timesheet.get("weekStart")
    grid = week_grid(week_start) or {}
    day_map = normalize_day_map(timesheet.get("days"), week_start)

    snapshot = timesheet.get("jobSnapshot")
    by_day = snapshot.get("byDay") if isinstance(snapshot, Mapping) else None
    by_day = normalize_day_map(by_day, week_start) if isinstance(by_day, Mapping) else {}

    rows: list[DayRow] = []
    for name in WEEKDAYS:
        entry = day_map.get(name)
        entry = dict(entry) if isinstance(entry, Mapping) else {}

        explicit = booking_id != "" and str(entry.get("bookingId", "")) == booking_id
        listed = by_day.get(name)
        in_snapshot = (
            booking_id != ""
            and isinstance(listed, (list, tuple))
            and any(
                isinstance(item, Mapping) and str(item.get("bookingId", "")) == booking_id
                for item in listed
            )
        )
        on_date = grid.get(name) in booking_day_set
        if not (explicit or in_snapshot or on_date):
            continue

        linked = explicit or in_snapshot
        rows.append(
            DayRow(
                day=name,
                calendar_date=grid.get(name),
                entry=entry,
                linked=linked,
                mode_label=mode_label(entry, linked),
            )
        )
    return rows
