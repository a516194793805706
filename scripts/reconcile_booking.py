"""Show which timesheets belong to a booking, from a JSON snapshot of the store.

Reads a snapshot shaped {"bookings": [...], "timesheets": [...]}, reconciles
one booking (or every booking in a job-number group) and prints the ranked
timesheets as JSON or a table.

Run with: python scripts/reconcile_booking.py BOOKING_ID
Table:    python scripts/reconcile_booking.py BOOKING_ID --table
Group:    python scripts/reconcile_booking.py 2025-014 --job-group
Days:     python scripts/reconcile_booking.py BOOKING_ID --days
Snapshot: python scripts/reconcile_booking.py BOOKING_ID --snapshot data/export.json

Exit codes:
  0 = success (JSON or table on stdout)
  1 = error (message on stderr)
"""

import argparse
import asyncio
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.reconcile.config import get_config  # noqa: E402
from src.reconcile.engine import ReconciliationEngine  # noqa: E402
from src.reconcile.grid import relevant_days  # noqa: E402
from src.reconcile.logging import get_logger, setup_logging  # noqa: E402
from src.reconcile.models import CandidateLink  # noqa: E402
from src.reconcile.schedule import day_set  # noqa: E402
from src.reconcile.store import MemoryStore  # noqa: E402

log = get_logger(__name__)


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Rank the timesheets that belong to a booking.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("target", help="Booking id, or a job number with --job-group.")
    parser.add_argument(
        "--snapshot",
        type=str,
        default=None,
        help="Snapshot JSON path (default: RECONCILE_SNAPSHOT_PATH).",
    )
    parser.add_argument(
        "--job-group",
        action="store_true",
        help="Treat target as a job number and reconcile every booking sharing its prefix.",
    )

    output_group = parser.add_mutually_exclusive_group()
    output_group.add_argument(
        "--table",
        action="store_true",
        help="Output a human-readable table instead of JSON.",
    )
    output_group.add_argument(
        "--days",
        action="store_true",
        help="Output the relevant day rows of each ranked timesheet.",
    )
    return parser.parse_args()


def _format_table(links: list[CandidateLink]) -> str:
    """Format ranked links as a table.

    Columns: Timesheet | Week | Direct | Submitted | Score
    """
    if not links:
        return "(no timesheets found)"

    headers = ["Timesheet", "Week", "Direct", "Submitted", "Score"]
    rows = [
        [
            link.timesheet_id or "-",
            link.week_anchor.isoformat() if link.week_anchor else "-",
            "yes" if link.is_direct_link else "no",
            "yes" if link.is_submitted else "no",
            str(link.score),
        ]
        for link in links
    ]

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [" | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in rows]
    return "\n".join([header_line, separator, *row_lines])


def _link_json(link: CandidateLink) -> dict:
    return {
        "timesheetId": link.timesheet_id,
        "weekAnchor": link.week_anchor.isoformat() if link.week_anchor else None,
        "isDirectLink": link.is_direct_link,
        "isSubmitted": link.is_submitted,
        "score": link.score,
    }


async def main(args: argparse.Namespace) -> None:
    config = get_config()
    setup_logging(config=config)

    store = MemoryStore.from_snapshot(args.snapshot or config.snapshot_path)
    engine = ReconciliationEngine(store.timesheets, store.bookings, config)

    if args.job_group:
        groups = await engine.reconcile_job_group(args.target)
        log.info("job_group_report", job_number=args.target, bookings=len(groups))
        if args.table:
            for booking_id, links in groups.items():
                print(f"== {booking_id}")
                print(_format_table(links))
        else:
            output = {booking_id: [_link_json(link) for link in links] for booking_id, links in groups.items()}
            print(json.dumps(output, indent=2))
        return

    links = await engine.reconcile_by_id(args.target)
    log.info("booking_report", booking_id=args.target, timesheets=len(links))
    if args.table:
        print(_format_table(links))
    elif args.days:
        booking = await store.bookings.get(args.target) or {}
        days = day_set(booking)
        output = {
            link.timesheet_id: [
                row.model_dump(mode="json") for row in relevant_days(link.timesheet, args.target, days)
            ]
            for link in links
        }
        print(json.dumps(output, indent=2, default=str))
    else:
        print(json.dumps([_link_json(link) for link in links], indent=2))


if __name__ == "__main__":
    args = _parse_args()
    try:
        asyncio.run(main(args))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
