"""Pydantic models for reconciliation results.

Bookings and timesheets stay plain store documents (dicts); these models
only describe what the engine derives from them.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field


class CandidateLink(BaseModel):
    """A scored association between one timesheet and the booking being reconciled.

    Built fresh for each reconciliation request and never persisted.
    """

    model_config = {"frozen": True}

    timesheet: dict[str, Any]
    booking_id: str
    is_direct_link: bool = False  # explicit reference to the booking (doc or day entry)
    week_anchor: date | None = None  # Monday of the timesheet's week, if resolvable
    is_submitted: bool = False  # finalised rather than draft
    score: int = 0

    @property
    def timesheet_id(self) -> str | None:
        ts_id = self.timesheet.get("id")
        return None if ts_id is None else str(ts_id)


class DayRow(BaseModel):
    """One weekday of a timesheet that is relevant to a booking."""

    day: str  # "Monday".."Sunday"
    calendar_date: date | None = None  # None when the timesheet week can't be resolved
    entry: dict[str, Any] = Field(default_factory=dict)
    linked: bool = False  # entry or jobSnapshot.byDay names the booking
    mode_label: str = "OFF"  # "Set", "Travel*", "HOL", ...


class SweepResult(BaseModel):
    """Outcome of one status sweep run."""

    checked: int = 0  # bookings examined
    completed_ids: list[str] = Field(default_factory=list)
    applied_at: datetime | None = None  # None when nothing was written

    @property
    def count(self) -> int:
        return len(self.completed_ids)
