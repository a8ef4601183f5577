"""Change the quota tier of an account.

Usage:
  python scripts/set_user_tier.py --user-id <uuid> --tier premium
"""

from __future__ import annotations

import argparse
import logging

from adonai.config import Settings
from adonai.db import Database
from adonai.logger import setup_logging
from adonai.services.profiles import TIERS, set_tier

logger = logging.getLogger("set_user_tier")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--tier", choices=TIERS, required=True)
    args = parser.parse_args(argv)

    database = Database.from_settings(Settings())
    if database is None:
        raise SystemExit("DATABASE_URL is not set")

    with database.session() as session:
        if not set_tier(session, args.user_id, args.tier):
            logger.error("profile %s not found", args.user_id)
            raise SystemExit(1)
    logger.info("tier of %s set to %s", args.user_id, args.tier)


if __name__ == "__main__":
    setup_logging()
    main()
