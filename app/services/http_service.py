"""HTTP helpers with retry/backoff for outbound integrations."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = {429, 500, 502, 503, 504}


def _backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    delay = min(max_delay, base_delay * (2**attempt))
    if delay:
        delay = delay + random.uniform(0, delay / 2)
    return delay


def _retry_after_seconds(response: httpx.Response, max_delay: float) -> float | None:
    """Honor a numeric Retry-After header (Shopify sends one on 429)."""
    raw = response.headers.get("Retry-After")
    if not raw:
        return None
    try:
        return min(max_delay, max(0.0, float(raw)))
    except ValueError:
        return None


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    service: str = "http",
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    retry_statuses: set[int] | None = None,
) -> httpx.Response:
    """Execute an HTTP request with exponential backoff retries.

    Transport errors on the final attempt propagate; a retryable status on
    the final attempt is returned for the caller to handle.
    """
    statuses = retry_statuses or DEFAULT_RETRY_STATUSES

    for attempt in range(max_attempts):
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if attempt >= max_attempts - 1:
                raise
            delay = _backoff_delay(attempt, base_delay, max_delay)
            logger.warning("%s request failed, retrying", service, exc_info=exc)
            if delay:
                await asyncio.sleep(delay)
            continue

        if response.status_code in statuses and attempt < max_attempts - 1:
            delay = _retry_after_seconds(response, max_delay)
            if delay is None:
                delay = _backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "%s request returned %s, retrying", service, response.status_code
            )
            if delay:
                await asyncio.sleep(delay)
            continue

        return response

    return response
