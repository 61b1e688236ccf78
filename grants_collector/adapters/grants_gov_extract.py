"""Grants.gov daily XML extract - download and decompress.

Extracts are published once a day as gzip files named after the date
(``YYYYMMDD``). The current day's file is often not yet available, so the
fetcher walks backward through a bounded window and tries each known file
naming variant before giving up on a day.
"""

import gzip
import logging
import time
import zlib
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, List, Optional

import httpx
from tenacity.wait import wait_base

from ..errors import CorruptExtract, NoExtractAvailable
from .base import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT, build_timeout, transport_retry

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.grants.gov/extract"
DEFAULT_LOOKBACK_DAYS = 7

# Tried in this order for every date
FILENAME_VARIANTS = (
    "{date}-v2.xml.gz",
    "{date}-v1.xml.gz",
    "{date}.xml.gz",
)


def format_extract_date(day: date) -> str:
    return day.strftime("%Y%m%d")


@dataclass
class Extract:
    """Raw compressed extract and where it came from."""

    extract_date: str
    url: str
    content: bytes


class GrantsGovExtractFetcher:
    """Finds and downloads the newest available Grants.gov XML extract."""

    source_name = "grants_gov_extract"

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        retry_attempts: int = 3,
        retry_wait: Optional[wait_base] = None,
        today: Callable[[], date] = date.today,
    ):
        """Initialize fetcher.

        Args:
            base_url: Directory URL the dated extract files live under.
            user_agent: Client label sent with every request.
            timeout_seconds: Read timeout per request.
            lookback_days: Number of days tried, today included.
            retry_attempts: Attempts per URL on transport errors.
            retry_wait: Tenacity wait strategy between attempts.
            today: Clock for the first candidate date.
        """
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = build_timeout(timeout_seconds)
        self.lookback_days = lookback_days
        self.retry_attempts = retry_attempts
        self.retry_wait = retry_wait
        self._today = today

    @classmethod
    def from_config(cls, config) -> "GrantsGovExtractFetcher":
        return cls(
            base_url=config.extract_base_url,
            user_agent=config.user_agent,
            timeout_seconds=config.request_timeout_seconds,
            lookback_days=config.lookback_days,
            retry_attempts=config.fetch_retry_attempts,
        )

    def candidate_dates(self, extract_date: Optional[date] = None) -> List[str]:
        """Dates to try, newest first. A pinned date is the only candidate."""
        if extract_date is not None:
            return [format_extract_date(extract_date)]
        start = self._today()
        return [
            format_extract_date(start - timedelta(days=days_back))
            for days_back in range(self.lookback_days)
        ]

    def candidate_urls(self, date_str: str) -> List[str]:
        return [f"{self.base_url}/{variant.format(date=date_str)}" for variant in FILENAME_VARIANTS]

    async def fetch_latest(self, extract_date: Optional[date] = None) -> Extract:
        """Download the newest extract in the look-back window.

        Raises:
            NoExtractAvailable: no date/variant combination returned data.
        """
        dates = self.candidate_dates(extract_date)
        headers = {"User-Agent": self.user_agent}

        async with httpx.AsyncClient(timeout=self.timeout, headers=headers) as client:
            for date_str in dates:
                logger.info(f"Attempting to download extract for {date_str}")
                extract = await self._download_for_date(client, date_str)
                if extract is not None:
                    logger.info(
                        f"Downloaded extract for {date_str} ({len(extract.content)} bytes) from {extract.url}"
                    )
                    return extract
                logger.info(f"Extract for {date_str} not available")

        raise NoExtractAvailable(
            f"No recent XML extract found in the last {len(dates)} day(s) "
            f"({dates[-1]}..{dates[0]})"
        )

    async def _download_for_date(self, client: httpx.AsyncClient, date_str: str) -> Optional[Extract]:
        for url in self.candidate_urls(date_str):
            content = await self._download(client, url)
            if content:
                return Extract(extract_date=date_str, url=url, content=content)
        return None

    async def _download(self, client: httpx.AsyncClient, url: str) -> Optional[bytes]:
        """GET one variant; None means 'try the next one'."""
        start = time.monotonic()
        try:
            async for attempt in transport_retry(self.retry_attempts, self.retry_wait):
                with attempt:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            duration = time.monotonic() - start
            logger.warning(
                f"[{self.source_name}] url={url} status=error "
                f"duration={duration:.2f}s result=failure error='{e}'"
            )
            return None

        duration = time.monotonic() - start
        if response.status_code != 200 or not response.content:
            logger.debug(
                f"[{self.source_name}] url={url} status={response.status_code} "
                f"bytes={len(response.content)} duration={duration:.2f}s result=failure"
            )
            return None

        logger.info(
            f"[{self.source_name}] url={url} status={response.status_code} "
            f"duration={duration:.2f}s result=success"
        )
        return response.content


def decompress_extract(content: bytes) -> str:
    """Gunzip an extract and decode it as UTF-8 text.

    Raises:
        CorruptExtract: the bytes are not a valid gzip stream.
    """
    try:
        raw = gzip.decompress(content)
    except (OSError, EOFError, zlib.error) as e:
        raise CorruptExtract(f"Failed to decompress extract: {e}") from e
    return raw.decode("utf-8-sig", errors="replace")
