import asyncio

from src.reconcile.engine import ReconciliationEngine, linked_booking_ids, reconcile
from src.reconcile.store import MemoryStore
from tests.conftest import make_booking


def _scenario_store(**kwargs) -> MemoryStore:
    return MemoryStore(
        bookings=[make_booking()],
        timesheets=[
            {
                "id": "EMP1_2025-10-06",
                "employeeCode": "EMP1",
                "weekStart": "2025-10-06",
                "days": {"Tuesday": {"mode": "onset", "bookingId": "b1"}},
            },
            {
                "id": "EMP2_2025-10-06",
                "employeeCode": "EMP2",
                "weekStart": "2025-10-06",
                "days": {"Monday": {"mode": "yard"}, "Tuesday": {"mode": "yard"}},
            },
            {
                "id": "EMP2_2025-10-13",
                "employeeCode": "EMP2",
                "weekStart": "2025-10-13",
                "jobSnapshot": {"bookingIds": ["b1"]},
            },
        ],
        **kwargs,
    )


class TestReconcileScenarios:
    def test_direct_link_ranks_first(self, config):
        store = _scenario_store()
        links = asyncio.run(reconcile(make_booking(), store.timesheets, config))
        assert links[0].timesheet_id == "EMP1_2025-10-06"
        assert links[0].is_direct_link is True

    def test_same_week_overlap_included_below_direct(self, config):
        store = _scenario_store()
        links = asyncio.run(reconcile(make_booking(), store.timesheets, config))
        ids = [link.timesheet_id for link in links]
        assert ids.index("EMP2_2025-10-06") > ids.index("EMP1_2025-10-06")
        overlap = links[ids.index("EMP2_2025-10-06")]
        assert overlap.is_direct_link is False
        assert overlap.score == 16

    def test_other_week_without_link_excluded(self, config):
        store = _scenario_store()
        links = asyncio.run(reconcile(make_booking(), store.timesheets, config))
        assert "EMP2_2025-10-13" not in {link.timesheet_id for link in links}
        assert len(links) == 2

    def test_result_survives_missing_index(self, config):
        store = _scenario_store(unindexed={"jobSnapshot.bookingIds"})
        links = asyncio.run(reconcile(make_booking(), store.timesheets, config))
        assert [link.timesheet_id for link in links] == ["EMP1_2025-10-06", "EMP2_2025-10-06"]

    def test_result_limit_from_config(self, config):
        config.result_limit = 1
        store = _scenario_store()
        links = asyncio.run(reconcile(make_booking(), store.timesheets, config))
        assert [link.timesheet_id for link in links] == ["EMP1_2025-10-06"]

    def test_reconcile_does_not_write(self, config):
        store = _scenario_store()
        before = asyncio.run(store.timesheets.scan())
        asyncio.run(reconcile(make_booking(), store.timesheets, config))
        assert asyncio.run(store.timesheets.scan()) == before

    def test_far_future_week_does_not_abort(self, config):
        store = _scenario_store()
        store.timesheets.put({"id": "far", "weekStart": "9999-12-31", "jobId": "b1"})
        links = asyncio.run(reconcile(make_booking(), store.timesheets, config))
        by_id = {link.timesheet_id: link for link in links}
        assert {"far", "EMP1_2025-10-06", "EMP2_2025-10-06"} <= set(by_id)
        assert by_id["far"].is_direct_link is True
        assert by_id["far"].score == 100


class TestEngineEntryPoints:
    def test_reconcile_by_id(self, config):
        store = _scenario_store()
        engine = ReconciliationEngine(store.timesheets, store.bookings, config)
        links = asyncio.run(engine.reconcile_by_id("b1"))
        assert links[0].timesheet_id == "EMP1_2025-10-06"
        assert asyncio.run(engine.reconcile_by_id("missing")) == []

    def test_job_group(self, config):
        store = MemoryStore(
            bookings=[
                make_booking(id="b1", jobNumber="1234-1"),
                make_booking(id="b2", jobNumber="1234-2", bookingDates=["2025-10-20"]),
                make_booking(id="b3", jobNumber="9999-1"),
            ],
            timesheets=[
                {"id": "t1", "weekStart": "2025-10-06", "jobId": "b1"},
                {"id": "t2", "weekStart": "2025-10-20", "bookingId": "b2"},
            ],
        )
        engine = ReconciliationEngine(store.timesheets, store.bookings, config)
        groups = asyncio.run(engine.reconcile_job_group("1234-1"))
        assert set(groups) == {"b1", "b2"}
        assert [link.timesheet_id for link in groups["b1"]] == ["t1"]
        assert [link.timesheet_id for link in groups["b2"]] == ["t2"]

    def test_related_bookings_exact_prefix_newest_first(self, config):
        store = MemoryStore(
            bookings=[
                make_booking(id="g1", jobNumber="1234-1"),
                make_booking(id="g2", jobNumber="1234-2", bookingDates=["2025-10-20"]),
                make_booking(id="g3", jobNumber="1234-3", bookingDates=["2025-10-07"]),
                make_booking(id="g4", jobNumber="1234-4", bookingDates=[]),
                make_booking(id="long", jobNumber="12345-1"),
                make_booking(id="other", jobNumber="9999-1"),
            ]
        )
        engine = ReconciliationEngine(store.timesheets, store.bookings, config)
        related = asyncio.run(engine.related_bookings("1234-1"))
        assert [b["id"] for b in related] == ["g2", "g3", "g1", "g4"]

    def test_job_group_excludes_longer_prefix(self, config):
        store = MemoryStore(
            bookings=[
                make_booking(id="b1", jobNumber="1234-1"),
                make_booking(id="b9", jobNumber="12345-1"),
            ]
        )
        engine = ReconciliationEngine(store.timesheets, store.bookings, config)
        groups = asyncio.run(engine.reconcile_job_group("1234-1"))
        assert set(groups) == {"b1"}

    def test_scan_linked_timesheets(self, config):
        store = MemoryStore(
            timesheets=[
                {"id": "old", "weekStart": "2025-09-29", "jobId": "b1"},
                {"id": "new", "weekStart": "2025-10-13", "jobSnapshot": {"bookingIds": ["b1"]}},
                {"id": "day", "weekStart": "2025-10-06", "days": [{"day": "Monday", "bookingId": "b1"}]},
                {"id": "other", "weekStart": "2025-10-06", "jobId": "b2"},
            ]
        )
        engine = ReconciliationEngine(store.timesheets, config=config)
        found = asyncio.run(engine.scan_linked_timesheets("b1"))
        assert [t["id"] for t in found] == ["new", "day", "old"]

    def test_linked_booking_ids(self):
        timesheet = {
            "jobId": "a",
            "jobSnapshot": {"bookingIds": ["b", None]},
            "days": {"Monday": {"bookingId": "c"}, "Tuesday": {}},
        }
        assert linked_booking_ids(timesheet) == {"a", "b", "c"}
