"""Booking-timesheet reconciliation for the scheduling system.

Given a job booking, finds the weekly employee timesheets that belong to it
despite inconsistent identifiers and date encodings, and sweeps Confirmed
bookings whose dates have passed to Complete.
"""

from src.reconcile.engine import ReconciliationEngine, reconcile
from src.reconcile.models import CandidateLink, DayRow, SweepResult
from src.reconcile.store import MemoryStore
from src.reconcile.sweep import StatusSweep

__all__ = [
    "ReconciliationEngine",
    "reconcile",
    "StatusSweep",
    "MemoryStore",
    "CandidateLink",
    "DayRow",
    "SweepResult",
]
