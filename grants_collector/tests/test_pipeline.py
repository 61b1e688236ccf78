"""Tests for the batch orchestrator: fatal stages, batching and error isolation."""

import asyncio
import time

import pytest

from grants_collector import pipeline
from grants_collector.errors import NoExtractAvailable
from grants_collector.pipeline import collect_grants, iter_batches
from grants_collector.reconciler import reconcile

from .helpers import StaticFetcher, extract_document, opportunity_xml


def _document(count: int, prefix: str = "OPP") -> str:
    return extract_document(*(opportunity_xml(f"{prefix}-{i:03d}") for i in range(count)))


def test_iter_batches_fixed_size_in_order():
    records = list(range(120))

    batches = list(iter_batches(records, 50))

    assert [len(b) for b in batches] == [50, 50, 20]
    assert batches[1][0] == 50


# ---------------------------------------------------------------------------
# Fatal stages
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_no_extract_available_reports_failure(fake_db):
    fetcher = StaticFetcher(error=NoExtractAvailable("No recent XML extract found in the last 7 day(s)"))

    report = await collect_grants(fake_db, fetcher=fetcher)

    assert report.success is False
    assert report.processed == 0
    assert len(report.errors) == 1
    assert "NoExtractAvailable" in report.errors[0]
    assert fake_db.write_count == 0


@pytest.mark.asyncio
async def test_corrupt_extract_reports_failure(fake_db):
    report = await collect_grants(fake_db, fetcher=StaticFetcher(content=b"definitely not gzip"))

    assert report.success is False
    assert "CorruptExtract" in report.errors[0]
    assert fake_db.write_count == 0


@pytest.mark.asyncio
async def test_unparsable_document_reports_failure(fake_db):
    report = await collect_grants(fake_db, fetcher=StaticFetcher(xml_text="<Opportunities><broken>"))

    assert report.success is False
    assert "ParseFailure" in report.errors[0]
    assert fake_db.write_count == 0


@pytest.mark.asyncio
async def test_unexpected_fetch_error_never_escapes(fake_db):
    report = await collect_grants(fake_db, fetcher=StaticFetcher(error=RuntimeError("DNS exploded")))

    assert report.success is False
    assert "DNS exploded" in report.errors[0]


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_all_records_processed_across_batches(fake_db):
    report = await collect_grants(fake_db, fetcher=StaticFetcher(xml_text=_document(120)))

    assert report.success is True
    assert report.processed == 120
    assert report.created == 120
    assert report.extract_date == "20240815"
    assert len(fake_db.opportunities) == 120


@pytest.mark.asyncio
async def test_failing_record_is_isolated(fake_db):
    fake_db.fail_on.add("OPP-007")

    report = await collect_grants(fake_db, fetcher=StaticFetcher(xml_text=_document(60)), batch_size=50)

    # batch 1: 49 of 50, batch 2: all 10
    assert report.processed == 59
    assert report.skipped == 1
    assert len(report.errors) == 1
    assert "OPP-007" in report.errors[0]
    assert report.success is False
    assert fake_db.find_opportunity("OPP-059") is not None


@pytest.mark.asyncio
async def test_normalization_failure_is_isolated_to_its_record(fake_db, monkeypatch):
    real_normalize = reconcile.normalize_record

    def fragile_normalize(record):
        if record["OpportunityID"] == ["OPP-007"]:
            raise MemoryError("field too large")
        return real_normalize(record)

    monkeypatch.setattr(reconcile, "normalize_record", fragile_normalize)

    report = await collect_grants(fake_db, fetcher=StaticFetcher(xml_text=_document(50)), batch_size=50)

    assert report.processed == 49
    assert report.skipped == 1
    assert report.errors == ["Failed to process opportunity OPP-007: field too large"]
    assert fake_db.find_opportunity("OPP-049") is not None


@pytest.mark.asyncio
async def test_oversized_amount_is_stored_as_null(fake_db):
    xml = extract_document(
        opportunity_xml("OPP-001", AwardCeiling="1e999999999999", AwardFloor="1e400"),
        opportunity_xml("OPP-002", AwardCeiling="250000"),
    )

    report = await collect_grants(fake_db, fetcher=StaticFetcher(xml_text=xml))

    assert report.success is True
    assert report.processed == 2
    row = fake_db.rows_for("OPP-001")[0]
    assert row["award_ceiling"] is None
    assert row["award_floor"] is None
    assert fake_db.rows_for("OPP-002")[0]["award_ceiling"] == 250000


@pytest.mark.asyncio
async def test_batch_level_error_is_recorded_and_next_batch_runs(fake_db, monkeypatch):
    real_process_batch = pipeline.process_batch
    calls = []

    def flaky_process_batch(reconciler, batch, report):
        calls.append(len(batch))
        if len(calls) == 1:
            raise RuntimeError("storage pool exhausted")
        return real_process_batch(reconciler, batch, report)

    monkeypatch.setattr(pipeline, "process_batch", flaky_process_batch)

    report = await collect_grants(fake_db, fetcher=StaticFetcher(xml_text=_document(60)), batch_size=50)

    assert calls == [50, 10]
    assert report.errors == ["Batch processing error: storage pool exhausted"]
    assert report.processed == 10


@pytest.mark.asyncio
async def test_cancelled_run_starts_no_further_batches(fake_db, monkeypatch):
    calls = []

    def slow_process_batch(reconciler, batch, report):
        calls.append(len(batch))
        time.sleep(0.5)
        return len(batch)

    monkeypatch.setattr(pipeline, "process_batch", slow_process_batch)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(
            collect_grants(fake_db, fetcher=StaticFetcher(xml_text=_document(120)), batch_size=50),
            timeout=0.25,
        )
    await asyncio.sleep(0.6)

    assert calls == [50]


@pytest.mark.asyncio
async def test_records_reconciled_in_document_order(fake_db):
    await collect_grants(fake_db, fetcher=StaticFetcher(xml_text=_document(5)), batch_size=2)

    inserted = [row["opportunity_id"] for row in fake_db.opportunities.values()]
    assert inserted == ["OPP-000", "OPP-001", "OPP-002", "OPP-003", "OPP-004"]


@pytest.mark.asyncio
async def test_empty_extract_is_success(fake_db):
    report = await collect_grants(fake_db, fetcher=StaticFetcher(xml_text="<Opportunities/>"))

    assert report.success is True
    assert report.processed == 0
