"""
Remove stored images that no food entry or user profile references.

Run periodically (e.g. from cron) against the configured database and buckets.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from food_diary.dependencies import get_db_client, get_food_storage, get_user_storage
from food_diary.sweep import DEFAULT_MIN_AGE_SECONDS, sweep_all

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--min-age-seconds",
        type=float,
        default=DEFAULT_MIN_AGE_SECONDS,
        help="Only remove objects older than this (in-flight uploads are younger).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List orphaned objects without removing them.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    results = sweep_all(
        get_db_client(),
        get_food_storage(),
        get_user_storage(),
        min_age_seconds=args.min_age_seconds,
        dry_run=args.dry_run,
    )
    for bucket, paths in results.items():
        for path in paths:
            logger.info("%s %s/%s", "orphan" if args.dry_run else "removed", bucket, path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
