#!/usr/bin/env python3
"""
Expire unanswered consultation offers.

Calls consultations.expireOffers on a running service. Meant to be run from
cron (or any scheduler); nothing in the service sweeps offers on its own.

Usage:
    python scripts/expire_offers.py --base-url http://localhost:8000 --admin-user-id 1
    python scripts/expire_offers.py --older-than-minutes 60
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add src to path for imports
script_dir = Path(__file__).parent.absolute()
project_root = script_dir.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

from loguru import logger  # noqa: E402

from consult_api.client import ConsultationClient  # noqa: E402
from consult_api.errors import WorkflowError  # noqa: E402


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Expire consultation offers older than a cutoff")
    parser.add_argument("--base-url", default="http://localhost:8000", help="Consultation service root URL")
    parser.add_argument("--admin-user-id", type=int, default=1, help="User id forwarded as an admin identity")
    parser.add_argument(
        "--older-than-minutes",
        type=int,
        default=None,
        help="Offer age cutoff (default: the service's OFFER_TTL_MINUTES)",
    )
    parser.add_argument("--timeout", type=float, default=30.0, help="Request timeout in seconds")
    return parser.parse_args(argv)


async def expire_offers(args: argparse.Namespace) -> int:
    payload = {}
    if args.older_than_minutes is not None:
        payload["olderThanMinutes"] = args.older_than_minutes

    async with ConsultationClient(
        args.base_url, user_id=args.admin_user_id, role="admin", timeout=args.timeout
    ) as client:
        try:
            result = await client.mutation("consultations.expireOffers", payload)
        except WorkflowError as e:
            logger.error(f"Expiring offers failed: {e.message}", error_code=e.code)
            return 1

    logger.info(f"Expired {result['expired']} offer(s)", assignment_ids=result["assignmentIds"])
    return 0


def main(argv=None) -> int:
    return asyncio.run(expire_offers(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
