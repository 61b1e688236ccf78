"""Daily grants collection entry point.

Usage:
    grants-collector                   # one collection pass, for cron
    grants-collector --date 20240815   # one pass against a specific extract
    grants-collector --schedule        # run daily in-process (APScheduler)

Exit code is 0 when the pass recorded no errors, 1 otherwise.
"""

import argparse
import asyncio
import logging
import sys
import time
from datetime import date, datetime, timezone
from typing import List, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .adapters import GrantsGovExtractFetcher
from .config import Config, load_config
from .database import SupabaseClient
from .models import CollectionReport
from .pipeline import collect_grants

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger().setLevel(level.upper())


def parse_extract_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    return datetime.strptime(value, "%Y%m%d").date()


async def run_once(config: Config, extract_date: Optional[date] = None) -> CollectionReport:
    """Run one collection pass with a client scoped to this pass."""
    db_client = SupabaseClient(config.supabase_url, config.supabase_key)
    try:
        return await collect_grants(
            db_client,
            fetcher=GrantsGovExtractFetcher.from_config(config),
            batch_size=config.batch_size,
            extract_date=extract_date,
        )
    finally:
        db_client.close()


def run_daily_collection(config: Config, extract_date: Optional[date] = None) -> int:
    """Run a pass and log a human-readable summary.

    Returns:
        Process exit code: 0 on success, 1 on any recorded error.
    """
    logger.info("=" * 60)
    logger.info(f"Starting daily grants collection ({datetime.now(timezone.utc).isoformat()})")
    logger.info("=" * 60)
    start = time.monotonic()

    try:
        report = asyncio.run(run_once(config, extract_date))
    except Exception as e:
        logger.error(f"Daily collection failed: {e}", exc_info=True)
        return 1

    duration = round(time.monotonic() - start)
    if report.success:
        logger.info("Daily collection completed successfully")
    else:
        logger.error("Daily collection completed with errors:")
        for error in report.errors:
            logger.error(f"  - {error}")
    logger.info(f"Processed: {report.processed} opportunities "
                f"({report.created} new, {report.updated} updated)")
    logger.info(f"Duration: {duration}s")
    return 0 if report.success else 1


def start_scheduler(config: Config) -> None:
    """Run the collection daily on the configured cron schedule.

    max_instances=1 keeps this scheduler from overlapping its own runs; runs
    started elsewhere (e.g. the HTTP trigger) are not coordinated with it.
    """
    scheduler = BlockingScheduler()
    scheduler.add_job(
        run_daily_collection,
        trigger=CronTrigger.from_crontab(config.schedule_cron),
        args=[config],
        id="collect_grants",
        name="Collect Grants.gov daily extract",
        replace_existing=True,
        max_instances=1,
    )
    logger.info(f"Scheduler started (cron: {config.schedule_cron})")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down scheduler...")
        scheduler.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="grants-collector", description="Grants.gov extract collector")
    parser.add_argument("--date", help="Extract date to collect (YYYYMMDD)")
    parser.add_argument("--schedule", action="store_true", help="Run daily on the configured cron schedule")
    args = parser.parse_args(argv)

    config = load_config()
    configure_logging(config.log_level)

    try:
        extract_date = parse_extract_date(args.date or config.extract_date)
    except ValueError:
        parser.error(f"invalid extract date {args.date or config.extract_date!r}, expected YYYYMMDD")

    if args.schedule:
        start_scheduler(config)
        return 0
    return run_daily_collection(config, extract_date)


if __name__ == "__main__":
    sys.exit(main())
