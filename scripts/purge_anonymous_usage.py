"""Delete per-IP usage rows that can no longer affect any quota.

Usage:
  python scripts/purge_anonymous_usage.py --keep-days 7
"""

from __future__ import annotations

import argparse
import logging
from datetime import timedelta

from adonai.config import Settings
from adonai.db import Database
from adonai.logger import setup_logging
from adonai.services.quota import QuotaPeriod, purge_anonymous_usage

logger = logging.getLogger("purge_anonymous_usage")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--keep-days", type=int, default=7)
    args = parser.parse_args(argv)

    database = Database.from_settings(Settings())
    if database is None:
        raise SystemExit("DATABASE_URL is not set")

    cutoff = QuotaPeriod.today().day - timedelta(days=max(args.keep_days, 1))
    with database.session() as session:
        deleted = purge_anonymous_usage(session, cutoff)
    logger.info("purged %s anonymous_usage rows older than %s", deleted, cutoff)
    return deleted


if __name__ == "__main__":
    setup_logging()
    main()
