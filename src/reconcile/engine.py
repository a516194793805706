"""Booking to timesheet reconciliation.

Pipeline for one booking:
    retrieve (concurrent store reads) -> filter_and_score -> rank

Only retrieval touches the store; scoring and ranking are pure functions of
the fetched documents. Nothing is written back.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

import structlog

from src.reconcile.config import ReconcileConfig, get_config
from src.reconcile.dates import WEEK_START_FIELDS, normalize_first
from src.reconcile.grid import raw_day_entries
from src.reconcile.logging import get_logger
from src.reconcile.models import CandidateLink
from src.reconcile.ranking import rank
from src.reconcile.retrieval import CandidateRetriever
from src.reconcile.schedule import job_number_of, last_day, split_job_number
from src.reconcile.scoring import filter_and_score
from src.reconcile.store import BookingStore, Document, TimesheetStore, resolve_path

logger = get_logger(__name__)


def linked_booking_ids(timesheet: Mapping[str, Any]) -> set[str]:
    """Booking ids a timesheet records explicitly (doc, snapshot or day entries)."""
    linked: set[str] = set()
    if timesheet.get("jobId"):
        linked.add(str(timesheet["jobId"]))
    snapshot_ids = resolve_path(timesheet, "jobSnapshot.bookingIds")
    if isinstance(snapshot_ids, (list, tuple)):
        linked.update(str(b) for b in snapshot_ids if b)
    for entry in raw_day_entries(timesheet.get("days")):
        if isinstance(entry, Mapping) and entry.get("bookingId"):
            linked.add(str(entry["bookingId"]))
    return linked


def _group_order(booking: Mapping[str, Any]) -> tuple[bool, int, int, str]:
    latest = last_day(booking)
    _, suffix = split_job_number(job_number_of(booking))
    return (
        latest is not None,
        latest.toordinal() if latest is not None else 0,
        int(suffix) if suffix.isdecimal() else 0,
        job_number_of(booking),
    )


class ReconciliationEngine:
    """Finds the timesheets that belong to a booking.

    Args:
        timesheets: Timesheet store to read candidates from.
        bookings: Booking store; only needed for the id and job-group entry points.
        config: Defaults to get_config().
    """

    def __init__(
        self,
        timesheets: TimesheetStore,
        bookings: BookingStore | None = None,
        config: ReconcileConfig | None = None,
    ) -> None:
        self.timesheets = timesheets
        self.bookings = bookings
        self.config = config or get_config()
        self.retriever = CandidateRetriever(timesheets, self.config)

    async def reconcile(self, booking: Mapping[str, Any]) -> list[CandidateLink]:
        """Return the booking's best-matching timesheets, best first."""
        with structlog.contextvars.bound_contextvars(booking_id=booking.get("id")):
            candidates = await self.retriever.retrieve(booking)
            ranked = rank(filter_and_score(candidates, booking), limit=self.config.result_limit)
            logger.info(
                "booking_reconciled",
                candidates=len(candidates),
                returned=len(ranked),
                direct=sum(1 for link in ranked if link.is_direct_link),
            )
            return ranked

    async def reconcile_by_id(self, booking_id: str) -> list[CandidateLink]:
        """Look the booking up and reconcile it; unknown ids give an empty result."""
        booking = await self._booking_store().get(booking_id)
        if booking is None:
            logger.warning("booking_not_found", booking_id=booking_id)
            return []
        booking.setdefault("id", booking_id)
        return await self.reconcile(booking)

    async def related_bookings(self, job_number: str) -> list[Document]:
        """Return bookings whose job number has the same prefix as ``job_number``.

        Newest scheduled date first (undated last), then higher suffix, then
        job number descending.
        """
        prefix, _ = split_job_number(job_number)
        if prefix == "—":
            return []
        candidates = await self._booking_store().prefix_range("jobNumber", prefix)
        # The range also matches longer prefixes ("1234" -> "12345-1")
        group = [b for b in candidates if split_job_number(job_number_of(b))[0] == prefix]
        group.sort(key=_group_order, reverse=True)
        return group

    async def reconcile_job_group(self, job_number: str) -> dict[str, list[CandidateLink]]:
        """Reconcile every booking in a job-number group concurrently.

        Returns:
            Mapping of booking id to that booking's ranked timesheets.
        """
        bookings = await self.related_bookings(job_number)
        results = await asyncio.gather(*(self.reconcile(b) for b in bookings))
        logger.info("job_group_reconciled", job_number=job_number, bookings=len(bookings))
        return {str(b["id"]): links for b, links in zip(bookings, results)}

    async def scan_linked_timesheets(self, booking_id: str) -> list[Document]:
        """Full-scan path: timesheets that explicitly name the booking, newest week first."""
        everything = await self.timesheets.scan()
        linked = [ts for ts in everything if str(booking_id) in linked_booking_ids(ts)]

        def newest_first(ts: Document) -> int:
            start = normalize_first(ts, WEEK_START_FIELDS)
            return -start.toordinal() if start is not None else 0

        linked.sort(key=newest_first)
        logger.info("linked_timesheets_scanned", booking_id=booking_id, found=len(linked))
        return linked

    def _booking_store(self) -> BookingStore:
        if self.bookings is None:
            raise RuntimeError("ReconciliationEngine was created without a booking store")
        return self.bookings


async def reconcile(
    booking: Mapping[str, Any],
    store: TimesheetStore,
    config: ReconcileConfig | None = None,
) -> list[CandidateLink]:
    """Reconcile one booking against a timesheet store."""
    return await ReconciliationEngine(store, config=config).reconcile(booking)
