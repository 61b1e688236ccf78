"""Pytest configuration and fixtures."""

import pytest
from tenacity import wait_none

from grants_collector.adapters import GrantsGovExtractFetcher

from .helpers import EXTRACT_BASE_URL, SAMPLE_EXTRACT, TODAY, FakeDB


@pytest.fixture
def fake_db():
    return FakeDB()


@pytest.fixture
def fetcher():
    """Real fetcher pointed at a test host, with a fixed clock and no retry sleeps."""
    return GrantsGovExtractFetcher(
        base_url=EXTRACT_BASE_URL,
        retry_attempts=2,
        retry_wait=wait_none(),
        today=lambda: TODAY,
    )


@pytest.fixture
def sample_extract_xml():
    return SAMPLE_EXTRACT
