"""Outbound HTTP with retry/backoff for the email and translation providers."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = {429, 500, 502, 503, 504}


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential delay with up to 50% jitter."""
    delay = min(max_delay, base_delay * (2**attempt))
    if delay:
        delay += random.uniform(0, delay / 2)
    return delay


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    retry_statuses: set[int] | None = None,
) -> httpx.Response:
    """
    Run ``request_fn`` until it returns a non-retryable response.

    Network errors are retried and re-raised on the last attempt. A retryable
    status on the last attempt is returned to the caller as-is.
    """
    statuses = retry_statuses or DEFAULT_RETRY_STATUSES
    response: httpx.Response | None = None

    for attempt in range(max_attempts):
        last_attempt = attempt >= max_attempts - 1
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if last_attempt:
                raise
            logger.warning("HTTP request failed (attempt %s), retrying", attempt + 1, exc_info=exc)
        else:
            if response.status_code not in statuses or last_attempt:
                return response
            logger.warning(
                "HTTP request returned %s (attempt %s), retrying",
                response.status_code,
                attempt + 1,
            )

        delay = backoff_delay(attempt, base_delay, max_delay)
        if delay:
            await asyncio.sleep(delay)

    assert response is not None
    return response
