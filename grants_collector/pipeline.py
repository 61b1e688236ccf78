"""Extract collection pipeline.

fetch -> decompress -> parse -> (per batch) normalize -> reconcile -> report

Only the fetch, decompress and parse stages can end a run early. After that
every record is reconciled on its own: a failing record or batch is written
to the report's error list and the walk continues with the next one.
"""

import asyncio
import logging
import time
from datetime import date
from typing import Iterator, List, Optional

from .adapters import GrantsGovExtractFetcher, decompress_extract
from .errors import BatchError, RecordReconciliationError
from .models import CollectionReport, RawRecord
from .parser import parse_extract
from .reconciler import CREATED, Reconciler

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


def iter_batches(records: List[RawRecord], batch_size: int) -> Iterator[List[RawRecord]]:
    for start in range(0, len(records), batch_size):
        yield records[start:start + batch_size]


def process_batch(reconciler: Reconciler, batch: List[RawRecord], report: CollectionReport) -> int:
    """Reconcile each record of a batch in order, isolating per-record failures.

    Returns:
        Number of records reconciled successfully.
    """
    processed = 0
    for record in batch:
        try:
            outcome = reconciler.reconcile(record)
        except RecordReconciliationError as e:
            logger.error(str(e))
            report.add_error(str(e))
            report.skipped += 1
            continue
        processed += 1
        report.processed += 1
        if outcome == CREATED:
            report.created += 1
        else:
            report.updated += 1
    return processed


async def collect_grants(
    db,
    fetcher: Optional[GrantsGovExtractFetcher] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    extract_date: Optional[date] = None,
) -> CollectionReport:
    """Run one full collection pass. Never raises; failures land in the report.

    Args:
        db: Storage client, owned by the caller.
        fetcher: Extract fetcher (defaults to the public Grants.gov extract).
        batch_size: Records per batch.
        extract_date: Pin the extract date instead of searching back from today.
    """
    report = CollectionReport()
    start = time.monotonic()
    logger.info("Starting grants data collection")

    try:
        fetcher = fetcher or GrantsGovExtractFetcher()
        extract = await fetcher.fetch_latest(extract_date)
        report.extract_date = extract.extract_date
        xml_text = decompress_extract(extract.content)
        records = parse_extract(xml_text)
    except Exception as e:
        message = f"Collection failed: {type(e).__name__}: {e}"
        logger.error(message)
        report.add_error(message)
        return report

    logger.info(f"Found {len(records)} opportunities in extract {report.extract_date}")

    reconciler = Reconciler(db)
    total_batches = (len(records) + batch_size - 1) // batch_size
    for batch_number, batch in enumerate(iter_batches(records, batch_size), start=1):
        try:
            # Storage calls block; keep them off the event loop
            await asyncio.to_thread(process_batch, reconciler, batch, report)
        except Exception as e:
            error = BatchError(batch_number, e)
            logger.error(str(error), exc_info=True)
            report.add_error(str(error))
            continue
        logger.info(f"Processed batch {batch_number}/{total_batches} ({report.processed} total)")

    duration = time.monotonic() - start
    logger.info(
        f"Collection completed in {duration:.2f}s: processed={report.processed} "
        f"created={report.created} updated={report.updated} errors={len(report.errors)}"
    )
    return report
