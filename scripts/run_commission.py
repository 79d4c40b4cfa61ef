#!/usr/bin/env python3
"""
Preview or execute a commission run from the command line.

Usage:
    python scripts/run_commission.py roi 2026-01-01 2026-01-02 --preview
    python scripts/run_commission.py binary 2026-01-01 2026-01-02
    python scripts/run_commission.py --retry 42
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from compensation.api.serializers import dumps
from compensation.config.database import create_engine, create_session_maker
from compensation.config.settings import settings
from compensation.models.enums import CommissionType
from compensation.services.admin_service import CompensationAdminService
from compensation.utils.datetime_utils import ensure_utc
from compensation.utils.exceptions import CompensationError


# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Commission run tool")
    parser.add_argument(
        "commission_type",
        nargs="?",
        choices=[t.value for t in CommissionType],
        help="Commission type",
    )
    parser.add_argument("date_from", nargs="?", help="Period start (ISO 8601, UTC)")
    parser.add_argument("date_to", nargs="?", help="Period end (ISO 8601, UTC)")
    parser.add_argument("--preview", action="store_true", help="Dry run, post nothing")
    parser.add_argument("--retry", type=int, metavar="RUN_ID", help="Retry a failed run")
    args = parser.parse_args()
    if args.retry is None and not (args.commission_type and args.date_from and args.date_to):
        parser.error("commission_type, date_from and date_to are required unless --retry is given")
    return args


async def run(args: argparse.Namespace) -> int:
    engine = create_engine(echo=False)
    service = CompensationAdminService(
        create_session_maker(engine),
        run_timeout=settings.run_timeout_seconds,
        run_concurrency=settings.run_concurrency,
    )

    try:
        if args.retry is not None:
            result = await service.retry_commission_run(args.retry)
        else:
            date_from = ensure_utc(datetime.fromisoformat(args.date_from))
            date_to = ensure_utc(datetime.fromisoformat(args.date_to))
            if args.preview:
                result = (
                    await service.preview_commission_run(args.commission_type, date_from, date_to)
                ).to_dict()
            else:
                result = await service.execute_commission_run(
                    args.commission_type, date_from, date_to, triggered_by="cli"
                )
    except CompensationError as e:
        logger.error(f"{type(e).__name__}: {e.message}")
        return 1
    finally:
        await engine.dispose()

    print(json.dumps(json.loads(dumps(result)), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(run(_parse_args())))
