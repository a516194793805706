"""Booking status vocabulary.

Statuses are typed by hand in the booking forms, so stored values vary in
case and spelling ("confirmed", "Completed", "ready-to-invoice").
canonical_status() maps them onto the labels the rest of the system uses.
"""

import re
from typing import Any

CONFIRMED = "Confirmed"
COMPLETE = "Complete"
READY_TO_INVOICE = "Ready to Invoice"
INVOICED = "Invoiced"
PAID = "Paid"
ACTION_REQUIRED = "Action Required"
FIRST_PENCIL = "First Pencil"
SECOND_PENCIL = "Second Pencil"
UNKNOWN = "TBC"

_READY_TO_INVOICE = re.compile(r"ready\s*[-_\s]*to\s*[-_\s]*invoice")
_EXACT: dict[str, str] = {
    "invoiced": INVOICED,
    "paid": PAID,
    "settled": PAID,
    "complete": COMPLETE,
    "completed": COMPLETE,
    "confirmed": CONFIRMED,
    "first pencil": FIRST_PENCIL,
    "second pencil": SECOND_PENCIL,
}


def canonical_status(raw: Any) -> str:
    """Return the canonical label for a stored status value."""
    text = str(raw or "").strip().lower()
    if _READY_TO_INVOICE.search(text):
        return READY_TO_INVOICE
    if text in _EXACT:
        return _EXACT[text]
    if "action" in text:
        return ACTION_REQUIRED

    cleaned = re.sub(r"\s+", " ", re.sub(r"[_-]+", " ", text)).strip()
    if not cleaned:
        return UNKNOWN
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), cleaned)
