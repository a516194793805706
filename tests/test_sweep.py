import asyncio
from datetime import date, timedelta

import pytest

from src.reconcile.errors import SweepWriteError
from src.reconcile.store import MemoryStore
from src.reconcile.sweep import StatusSweep, find_elapsed, is_elapsed

TODAY = date(2025, 10, 20)


def _bookings():
    return [
        {"id": "past", "status": "Confirmed", "bookingDates": ["2025-10-18", "2025-10-19"]},
        {"id": "today", "status": "Confirmed", "startDate": "2025-10-15", "endDate": "2025-10-20"},
        {"id": "future", "status": "Confirmed", "date": "2025-11-01"},
        {"id": "pending", "status": "First Pencil", "date": "2025-10-01"},
        {"id": "unscheduled", "status": "Confirmed"},
        {"id": "lowercase", "status": "confirmed", "date": "01/10/2025"},
        {"id": "done", "status": "Complete", "date": "2025-10-01"},
    ]


class TestPredicate:
    def test_is_elapsed(self):
        by_id = {b["id"]: b for b in _bookings()}
        assert is_elapsed(by_id["past"], TODAY)
        assert not is_elapsed(by_id["today"], TODAY)
        assert not is_elapsed(by_id["unscheduled"], TODAY)

    def test_find_elapsed(self):
        assert find_elapsed(_bookings(), TODAY) == ["past", "lowercase"]


class TestStatusSweep:
    def test_flips_elapsed_bookings(self, config):
        store = MemoryStore(bookings=_bookings())
        result = asyncio.run(StatusSweep(store.bookings, config).run(today=TODAY))
        assert result.completed_ids == ["past", "lowercase"]
        assert result.checked == 7
        assert result.applied_at is not None

        past = asyncio.run(store.bookings.get("past"))
        assert past["status"] == "Complete"
        assert past["statusReason"] == config.sweep_reason
        assert past["statusUpdatedAt"]
        untouched = asyncio.run(store.bookings.get("today"))
        assert untouched["status"] == "Confirmed"
        assert "statusReason" not in untouched

    def test_idempotent(self, config):
        store = MemoryStore(bookings=_bookings())
        sweep = StatusSweep(store.bookings, config)
        asyncio.run(sweep.run(today=TODAY))
        after_first = asyncio.run(store.bookings.scan())
        second = asyncio.run(sweep.run(today=TODAY))
        assert second.count == 0
        assert second.applied_at is None
        assert asyncio.run(store.bookings.scan()) == after_first

    def test_yesterday_flips_with_default_today(self, config):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        store = MemoryStore(bookings=[{"id": "b1", "status": "Confirmed", "bookingDates": [yesterday]}])
        sweep = StatusSweep(store.bookings, config)
        assert asyncio.run(sweep.run()).completed_ids == ["b1"]
        assert asyncio.run(store.bookings.get("b1"))["status"] == "Complete"
        assert asyncio.run(sweep.run()).count == 0

    def test_concurrent_runs_apply_once(self, config):
        store = MemoryStore(bookings=_bookings())
        sweep = StatusSweep(store.bookings, config)

        async def both():
            return await asyncio.gather(sweep.run(today=TODAY), sweep.run(today=TODAY))

        first, second = asyncio.run(both())
        assert first.count + second.count == 2

    def test_write_failure_applies_nothing(self, config):
        store = MemoryStore(bookings=_bookings())

        async def broken_commit(updates):
            raise RuntimeError("batch rejected")

        store.bookings.commit_batch = broken_commit
        with pytest.raises(SweepWriteError):
            asyncio.run(StatusSweep(store.bookings, config).run(today=TODAY))
        assert asyncio.run(store.bookings.get("past"))["status"] == "Confirmed"

    def test_transient_write_failure_is_retried(self, config):
        store = MemoryStore(bookings=_bookings())
        store.bookings.fail_transiently("__batch__", times=1)
        result = asyncio.run(StatusSweep(store.bookings, config).run(today=TODAY))
        assert result.count == 2

    def test_persistent_transient_failure_surfaces(self, config):
        store = MemoryStore(bookings=_bookings())
        store.bookings.fail_transiently("__batch__", times=10)
        with pytest.raises(SweepWriteError):
            asyncio.run(StatusSweep(store.bookings, config).run(today=TODAY))
        assert asyncio.run(store.bookings.get("lowercase"))["status"] == "confirmed"
