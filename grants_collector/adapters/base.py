"""Shared HTTP settings for extract downloads."""

import logging
from typing import Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

# Extracts run to tens of megabytes, so reads get minutes rather than seconds
DEFAULT_TIMEOUT_SECONDS = 120.0
CONNECT_TIMEOUT_SECONDS = 30.0

DEFAULT_USER_AGENT = "Federal-Grants-Collector/1.0"


def build_timeout(read_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> httpx.Timeout:
    """Per-request timeout: bounded connect, long read."""
    return httpx.Timeout(read_seconds, connect=CONNECT_TIMEOUT_SECONDS)


def transport_retry(attempts: int = 3, wait: Optional[wait_base] = None) -> AsyncRetrying:
    """Retry transport-level failures (timeouts, resets) with exponential backoff.

    HTTP status failures are not retried; a 404 means the extract does not exist.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait if wait is not None else wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
