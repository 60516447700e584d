"""
Run one ETL cycle for all enabled platforms, or one platform/date
"""

import argparse
import asyncio
import sys
import os
import logging
from datetime import date

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import engine
from core.exceptions import PlatformDisabledError, PlatformNotFoundError
from core.logging import setup_logging
from ingestion.scheduler import build_scheduler

setup_logging()
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--platform", help="Run a single platform (SHOPEE, TIKTOK, FACEBOOK)")
    parser.add_argument("--date", type=date.fromisoformat, help="Pull one date (YYYY-MM-DD); requires --platform")
    return parser.parse_args(argv)


async def run_etl(args) -> bool:
    """Run ETL and return True when every run succeeded"""
    scheduler = build_scheduler()

    try:
        if args.platform and args.date:
            results = [await scheduler.process_date(args.platform, args.date)]
        elif args.platform:
            results = [await scheduler.run_platform(args.platform)]
        else:
            logger.info(f"Running ETL for: {settings.enabled_platforms()}")
            cycle = await scheduler.trigger_all_platforms()
            results = list(cycle.results.values()) if cycle else []
    except (PlatformNotFoundError, PlatformDisabledError) as e:
        logger.error(e.message)
        return False
    else:
        for result in results:
            logger.info(result.summary())
        return all(result.success for result in results)
    finally:
        await scheduler.close()
        await engine.dispose()


if __name__ == "__main__":
    arguments = parse_args()
    if arguments.date and not arguments.platform:
        logger.error("--date requires --platform")
        sys.exit(2)
    sys.exit(0 if asyncio.run(run_etl(arguments)) else 1)
