"""Outbound HTTP: per-provider rate limiting, timeouts and bounded retry."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class FetchError(Exception):
    """A provider call failed (network error or unusable response)."""

    retryable = True


class FetchTimeoutError(FetchError):
    """A provider call did not complete before its deadline."""


class FetchStatusError(FetchError):
    """A provider answered with a non-success HTTP status."""

    def __init__(self, status_code: int, url: str = ""):
        super().__init__(f"HTTP {status_code} from {url}" if url else f"HTTP {status_code}")
        self.status_code = status_code
        self.url = url

    @property
    def retryable(self) -> bool:
        return self.status_code >= 500


def min_interval_limiter(min_interval: float) -> AsyncLimiter:
    """One request per ``min_interval`` seconds, no bursts."""
    return AsyncLimiter(max_rate=1, time_period=min_interval)


async def fetch_with_timeout(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout: float,
    **kwargs,
) -> httpx.Response:
    """Issue one request, abandoning it once ``timeout`` seconds have passed."""
    try:
        return await asyncio.wait_for(client.request(method, url, **kwargs), timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        raise FetchTimeoutError(f"Request to {url} timed out after {timeout:.0f}s") from exc
    except httpx.RequestError as exc:
        raise FetchError(f"Request to {url} failed: {exc}") from exc


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.retryable


async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int = 2,
    timeout: float = 15.0,
    backoff_step: float = 1.0,
    rate_limiter: Optional[AsyncLimiter] = None,
    sleep: Sleep = asyncio.sleep,
    **kwargs,
) -> httpx.Response:
    """Issue a request with up to ``max_retries`` retries.

    Timeouts, network errors and 5xx responses are retried after
    ``attempt * backoff_step`` seconds. 4xx responses raise immediately.
    When a rate limiter is given it is acquired before every attempt.
    The last error is raised once retries are exhausted.
    """
    attempts = max_retries + 1

    def log_retry(retry_state: RetryCallState) -> None:
        logger.warning(
            "Attempt %d/%d to %s failed: %s",
            retry_state.attempt_number, attempts, url, retry_state.outcome.exception(),
        )

    async def attempt() -> httpx.Response:
        if rate_limiter is not None:
            await rate_limiter.acquire()
        response = await fetch_with_timeout(client, method, url, timeout=timeout, **kwargs)
        if 200 <= response.status_code < 300:
            return response
        raise FetchStatusError(response.status_code, url)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_incrementing(start=backoff_step, increment=backoff_step),
        retry=retry_if_exception(_is_retryable),
        before_sleep=log_retry,
        sleep=sleep,
        reraise=True,
    )
    return await retrying(attempt)
