"""Status reconciliation sweep: Confirmed bookings whose dates have passed become Complete.

The sweep is predicate-driven: a booking qualifies only while it is still
Confirmed and its last scheduled day is before today. Once flipped it no
longer qualifies, so running the sweep again is harmless. All qualifying
bookings are written in one atomic batch.
"""

import asyncio
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from typing import Any

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.reconcile.config import ReconcileConfig, get_config
from src.reconcile.errors import SweepWriteError, TransientError
from src.reconcile.logging import get_logger
from src.reconcile.models import SweepResult
from src.reconcile.schedule import last_day
from src.reconcile.status import COMPLETE, CONFIRMED, canonical_status
from src.reconcile.store import BookingStore

logger = get_logger(__name__)


def is_elapsed(booking: Mapping[str, Any], today: date) -> bool:
    """True when the booking is Confirmed and its last scheduled day is before today."""
    if canonical_status(booking.get("status")) != CONFIRMED:
        return False
    final = last_day(booking)
    return final is not None and final < today


def find_elapsed(bookings: Iterable[Mapping[str, Any]], today: date) -> list[str]:
    """Return the ids of bookings the sweep should complete."""
    return [
        str(booking["id"])
        for booking in bookings
        if booking.get("id") is not None and is_elapsed(booking, today)
    ]


class StatusSweep:
    """Runs the Confirmed -> Complete sweep against a booking store.

    Overlapping run() calls on one instance are serialised.
    """

    def __init__(self, store: BookingStore, config: ReconcileConfig | None = None) -> None:
        self.store = store
        self.config = config or get_config()
        self._lock = asyncio.Lock()

    async def run(self, today: date | None = None) -> SweepResult:
        """Flip every elapsed Confirmed booking to Complete in one batch.

        Args:
            today: Reference date; defaults to the local calendar date.

        Raises:
            SweepWriteError: The batch write failed; no booking was changed.
        """
        async with self._lock:
            today = today or date.today()
            bookings = await self.store.scan()
            ids = find_elapsed(bookings, today)

            if not ids:
                logger.info("status_sweep_idle", checked=len(bookings), today=today.isoformat())
                return SweepResult(checked=len(bookings))

            applied_at = datetime.now(timezone.utc)
            fields = {
                "status": COMPLETE,
                "statusUpdatedAt": applied_at.isoformat(),
                "statusReason": self.config.sweep_reason,
            }
            updates = {booking_id: dict(fields) for booking_id in ids}

            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self.config.store_retry_attempts),
                    wait=wait_fixed(self.config.store_retry_wait_seconds),
                    retry=retry_if_exception_type(TransientError),
                    reraise=True,
                ):
                    with attempt:
                        await self.store.commit_batch(updates)
            except Exception as e:
                logger.error(
                    "status_sweep_write_failed",
                    candidates=len(ids),
                    error=str(e),
                    type=type(e).__name__,
                )
                raise SweepWriteError(f"Status sweep batch failed: {e}") from e

            logger.info("status_sweep_committed", count=len(ids), checked=len(bookings))
            return SweepResult(checked=len(bookings), completed_ids=ids, applied_at=applied_at)
