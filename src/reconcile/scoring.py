"""Relevance filtering and confidence scoring of retrieved timesheets.

Score components (additive, independent of the direct-link flag):

    +100  timesheet jobId equals the booking id
     +90  timesheet jobNumber equals the booking's job number
     +80  timesheet jobs list references the booking (id or job number)
      +8  per day of the timesheet week that is a booking day, capped at +40
     +25  timesheet employee identity contains one of the booking's employee tokens
     +10  timesheet notes mention the job number
      +5  some day entry's dayNotes mention the job number

A timesheet is kept when it is a direct link or its week anchor is one of
the booking's week anchors.
"""

import re
from collections.abc import Mapping
from datetime import date
from typing import Any

from src.reconcile.dates import WEEK_START_FIELDS, normalize_first, week_anchor
from src.reconcile.grid import normalize_day_map, raw_day_entries, week_grid
from src.reconcile.logging import get_logger
from src.reconcile.models import CandidateLink
from src.reconcile.schedule import day_set, employee_tokens, job_number_of, week_anchors

logger = get_logger(__name__)

DIRECT_JOB_ID_POINTS = 100
JOB_NUMBER_POINTS = 90
JOBS_LIST_POINTS = 80
OVERLAP_POINTS_PER_DAY = 8
OVERLAP_POINTS_CAP = 40
EMPLOYEE_POINTS = 25
NOTES_POINTS = 10
DAY_NOTES_POINTS = 5

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def _same(value: Any, expected: str) -> bool:
    return value is not None and expected != "" and str(value) == expected


def mentions_job_number(text: Any, job_number: str) -> bool:
    """Loose match of a job number in free text ("BA-0123" matches "ba0123")."""
    if not text or not job_number:
        return False
    haystack = str(text).lower()
    needle = job_number.lower()
    if needle in haystack:
        return True
    stripped = _NON_ALNUM.sub("", needle)
    return stripped != "" and stripped in _NON_ALNUM.sub("", haystack)


def timesheet_week_anchor(timesheet: Mapping[str, Any]) -> date | None:
    """Return the Monday of the timesheet's week, trying each field-name variant."""
    start = normalize_first(timesheet, WEEK_START_FIELDS)
    return week_anchor(start) if start is not None else None


def is_submitted(timesheet: Mapping[str, Any]) -> bool:
    return (
        timesheet.get("submitted") is True
        or timesheet.get("status") == "Submitted"
        or bool(timesheet.get("submittedAt"))
    )


def _jobs_reference(timesheet: Mapping[str, Any], booking_id: str, job_number: str) -> bool:
    jobs = timesheet.get("jobs")
    if not isinstance(jobs, (list, tuple)):
        return False
    for job in jobs:
        if isinstance(job, Mapping):
            if _same(job.get("jobId"), booking_id) or _same(job.get("jobNumber"), job_number):
                return True
        elif _same(job, booking_id) or _same(job, job_number):
            return True
    return False


def is_direct_link(timesheet: Mapping[str, Any], booking: Mapping[str, Any]) -> bool:
    """True when the timesheet, or one of its days, explicitly names the booking."""
    booking_id = str(booking.get("id") or "")
    job_number = job_number_of(booking)

    if _same(timesheet.get("jobId"), booking_id) or _same(timesheet.get("bookingId"), booking_id):
        return True
    if _same(timesheet.get("jobNumber"), job_number):
        return True
    if _jobs_reference(timesheet, booking_id, job_number):
        return True

    day_map = normalize_day_map(timesheet.get("days"), timesheet.get("weekStart"))
    for entry in day_map.values():
        if not isinstance(entry, Mapping):
            continue
        linked_id = entry.get("bookingId")
        if linked_id is None:
            linked_id = entry.get("jobId")
        linked_number = next(
            (entry[key] for key in ("jobNumber", "jobNo", "job") if entry.get(key) is not None),
            None,
        )
        if _same(linked_id, booking_id) or _same(linked_number, job_number):
            return True
    return False


def score_timesheet(
    timesheet: Mapping[str, Any],
    booking: Mapping[str, Any],
    booking_days: set[date] | None = None,
) -> int:
    """Return the confidence that ``timesheet`` belongs to ``booking``."""
    booking_id = str(booking.get("id") or "")
    job_number = job_number_of(booking)
    if booking_days is None:
        booking_days = day_set(booking)

    score = 0
    if _same(timesheet.get("jobId"), booking_id):
        score += DIRECT_JOB_ID_POINTS
    if _same(timesheet.get("jobNumber"), job_number):
        score += JOB_NUMBER_POINTS
    if _jobs_reference(timesheet, booking_id, job_number):
        score += JOBS_LIST_POINTS

    week_start = next(
        (timesheet[field] for field in WEEK_START_FIELDS if timesheet.get(field) is not None),
        None,
    )
    grid = week_grid(week_start) or {}
    overlap = sum(1 for day in grid.values() if day in booking_days)
    score += min(overlap * OVERLAP_POINTS_PER_DAY, OVERLAP_POINTS_CAP)

    identity = ""
    for field in ("employeeCode", "employeeName", "employeeEmail"):
        if timesheet.get(field):
            identity = str(timesheet[field]).lower()
            break
    if identity and any(token in identity for token in employee_tokens(booking)):
        score += EMPLOYEE_POINTS

    if mentions_job_number(timesheet.get("notes"), job_number):
        score += NOTES_POINTS

    for entry in raw_day_entries(timesheet.get("days")):
        if isinstance(entry, Mapping) and mentions_job_number(entry.get("dayNotes"), job_number):
            score += DAY_NOTES_POINTS
            break

    return score


def filter_and_score(
    candidates: list[Mapping[str, Any]], booking: Mapping[str, Any]
) -> list[CandidateLink]:
    """Score every candidate and keep the ones relevant to the booking.

    Input order is preserved so the ranker's stable sort keeps it for ties.
    """
    booking_id = str(booking.get("id") or "")
    booking_days = day_set(booking)
    anchors = week_anchors(booking)

    links: list[CandidateLink] = []
    for timesheet in candidates:
        anchor = timesheet_week_anchor(timesheet)
        direct = is_direct_link(timesheet, booking)
        if not direct and (anchor is None or anchor not in anchors):
            logger.debug(
                "candidate_dropped",
                timesheet_id=timesheet.get("id"),
                week_anchor=anchor.isoformat() if anchor else None,
            )
            continue
        links.append(
            CandidateLink(
                timesheet=dict(timesheet),
                booking_id=booking_id,
                is_direct_link=direct,
                week_anchor=anchor,
                is_submitted=is_submitted(timesheet),
                score=score_timesheet(timesheet, booking, booking_days),
            )
        )

    logger.debug("candidates_scored", booking_id=booking_id, kept=len(links), seen=len(candidates))
    return links
