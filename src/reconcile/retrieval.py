"""Candidate retrieval: gather every timesheet that might belong to a booking.

Four independent strategies run concurrently against the timesheet store:

    indexed_containment  jobSnapshot.bookingIds array-contains the booking id
    direct_key_reads     point reads of "<employeeCode>_<weekAnchor>" ids
    booking_id_fields    jobId == id, bookingId == id
    job_number_fields    jobNumber == "<number>" (and the numeric form)

A strategy that fails (missing index, store outage after retries) is logged
and contributes nothing; the others still count. Results are unioned in
strategy order and deduplicated by timesheet id, first record wins.
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.reconcile.config import ReconcileConfig, get_config
from src.reconcile.errors import TransientError
from src.reconcile.logging import get_logger
from src.reconcile.schedule import (
    employee_codes,
    job_number_of,
    numeric_job_number,
    week_anchors,
)
from src.reconcile.store import Document, TimesheetStore

logger = get_logger(__name__)

SNAPSHOT_BOOKING_IDS = "jobSnapshot.bookingIds"


def timesheet_doc_id(employee_code: str, week_start_iso: str) -> str:
    """Build the deterministic timesheet id, e.g. "EMP123_2025-10-06"."""
    return f"{employee_code}_{week_start_iso}"


def dedupe_by_id(documents: list[Document]) -> list[Document]:
    """Keep the first record per timesheet id; records without an id are dropped."""
    seen: dict[str, Document] = {}
    for doc in documents:
        doc_id = doc.get("id")
        if doc_id is None:
            continue
        seen.setdefault(str(doc_id), doc)
    return list(seen.values())


class CandidateRetriever:
    """Runs the retrieval strategies for one booking at a time.

    Stateless between calls; one instance can serve many bookings.
    """

    def __init__(self, store: TimesheetStore, config: ReconcileConfig | None = None) -> None:
        self.store = store
        self.config = config or get_config()

    async def retrieve(self, booking: Mapping[str, Any]) -> list[Document]:
        """Return the deduplicated union of every strategy's results."""
        strategies: dict[str, Callable[[], Awaitable[list[Document]]]] = {
            "indexed_containment": lambda: self._indexed_containment(booking),
            "direct_key_reads": lambda: self._direct_key_reads(booking),
            "booking_id_fields": lambda: self._booking_id_fields(booking),
            "job_number_fields": lambda: self._job_number_fields(booking),
        }

        results = await asyncio.gather(
            *(run() for run in strategies.values()), return_exceptions=True
        )

        found: list[Document] = []
        for name, result in zip(strategies, results):
            if isinstance(result, Exception):
                logger.warning(
                    "retrieval_strategy_failed",
                    strategy=name,
                    error=str(result),
                    type=type(result).__name__,
                )
                continue
            if isinstance(result, BaseException):
                raise result
            logger.debug("retrieval_strategy_done", strategy=name, found=len(result))
            found.extend(result)

        unique = dedupe_by_id(found)
        logger.info(
            "candidates_retrieved",
            booking_id=booking.get("id"),
            raw=len(found),
            unique=len(unique),
        )
        return unique

    async def _call(self, operation: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """Run one store call, retrying transient failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.store_retry_attempts),
            wait=wait_fixed(self.config.store_retry_wait_seconds),
            retry=retry_if_exception_type(TransientError),
            reraise=True,
        ):
            with attempt:
                return await operation(*args)

    async def _gather_queries(
        self, strategy: str, queries: list[tuple[str, Any]]
    ) -> list[Document]:
        """Run equality queries concurrently; a failed query is logged and skipped."""
        results = await asyncio.gather(
            *(self._call(self.store.where_equals, path, value) for path, value in queries),
            return_exceptions=True,
        )
        found: list[Document] = []
        for (path, value), result in zip(queries, results):
            if isinstance(result, Exception):
                logger.warning(
                    "retrieval_query_failed",
                    strategy=strategy,
                    field=path,
                    value=value,
                    error=str(result),
                )
                continue
            if isinstance(result, BaseException):
                raise result
            found.extend(result)
        return found

    async def _indexed_containment(self, booking: Mapping[str, Any]) -> list[Document]:
        booking_id = booking.get("id")
        if booking_id is None:
            return []
        return await self._call(self.store.array_contains, SNAPSHOT_BOOKING_IDS, str(booking_id))

    async def _direct_key_reads(self, booking: Mapping[str, Any]) -> list[Document]:
        codes = employee_codes(booking)
        anchors = sorted(week_anchors(booking))
        doc_ids = [
            timesheet_doc_id(code, anchor.isoformat()) for code in codes for anchor in anchors
        ]
        if not doc_ids:
            return []

        results = await asyncio.gather(
            *(self._call(self.store.get, doc_id) for doc_id in doc_ids),
            return_exceptions=True,
        )
        found: list[Document] = []
        for doc_id, result in zip(doc_ids, results):
            if isinstance(result, Exception):
                logger.warning("direct_read_failed", doc_id=doc_id, error=str(result))
                continue
            if isinstance(result, BaseException):
                raise result
            if result is not None:
                result.setdefault("id", doc_id)
                found.append(result)
        return found

    async def _booking_id_fields(self, booking: Mapping[str, Any]) -> list[Document]:
        booking_id = booking.get("id")
        if booking_id is None:
            return []
        booking_id = str(booking_id)
        return await self._gather_queries(
            "booking_id_fields", [("jobId", booking_id), ("bookingId", booking_id)]
        )

    async def _job_number_fields(self, booking: Mapping[str, Any]) -> list[Document]:
        job_number = job_number_of(booking)
        if not job_number:
            return []
        queries: list[tuple[str, Any]] = [("jobNumber", job_number)]
        numeric = numeric_job_number(job_number)
        if numeric is not None:
            queries.append(("jobNumber", numeric))
        return await self._gather_queries("job_number_fields", queries)
