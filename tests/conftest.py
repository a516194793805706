import pytest

from src.reconcile.config import ReconcileConfig


@pytest.fixture
def config() -> ReconcileConfig:
    """Config with instant retries so transient-failure tests don't sleep."""
    return ReconcileConfig(store_retry_attempts=2, store_retry_wait_seconds=0)


def make_booking(**overrides):
    booking = {
        "id": "b1",
        "jobNumber": "2025-014",
        "status": "Confirmed",
        "bookingDates": ["2025-10-06", "2025-10-07"],
        "employees": [
            {"code": "EMP1", "name": "Alice"},
            {"code": "EMP2", "name": "Bob"},
        ],
    }
    booking.update(overrides)
    return booking
