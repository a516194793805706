"""Complete every Confirmed booking whose scheduled dates have all passed.

Runs the status sweep against a JSON snapshot of the store and writes the
updated snapshot back (or to --output). Safe to run repeatedly: bookings
already flipped no longer qualify.

Run with: python scripts/run_status_sweep.py
Dry run:  python scripts/run_status_sweep.py --dry-run
As of:    python scripts/run_status_sweep.py --today 2025-10-20

Exit codes:
  0 = success (summary JSON on stdout)
  1 = error (message on stderr)
"""

import argparse
import asyncio
import json
import os
import sys
from datetime import date

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.reconcile.config import get_config  # noqa: E402
from src.reconcile.logging import get_logger, setup_logging  # noqa: E402
from src.reconcile.store import MemoryStore  # noqa: E402
from src.reconcile.sweep import StatusSweep, find_elapsed  # noqa: E402

log = get_logger(__name__)


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Flip elapsed Confirmed bookings to Complete.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--snapshot",
        type=str,
        default=None,
        help="Snapshot JSON path (default: RECONCILE_SNAPSHOT_PATH).",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Where to write the updated snapshot (default: overwrite --snapshot).",
    )
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        default=None,
        help="Reference date as YYYY-MM-DD (default: today).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the bookings that would be completed without writing anything.",
    )
    return parser.parse_args()


async def main(args: argparse.Namespace) -> None:
    config = get_config()
    setup_logging(config=config)

    snapshot = args.snapshot or config.snapshot_path
    store = MemoryStore.from_snapshot(snapshot)

    if args.dry_run:
        ids = find_elapsed(await store.bookings.scan(), args.today or date.today())
        log.info("status_sweep_dry_run", candidates=len(ids))
        print(json.dumps({"wouldComplete": ids}, indent=2))
        return

    result = await StatusSweep(store.bookings, config).run(today=args.today)
    if result.count:
        await store.write_snapshot(args.output or snapshot)
    print(json.dumps(result.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    args = _parse_args()
    try:
        asyncio.run(main(args))
    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
