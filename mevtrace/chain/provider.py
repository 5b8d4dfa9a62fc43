"""Async EVM JSON-RPC transport using web3.py 7.x with retry, backoff and rate limiting."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, TypeVar

import aiohttp
import httpx
from web3 import AsyncWeb3, AsyncHTTPProvider
from web3.types import RPCEndpoint, RPCResponse

from mevtrace.errors import ConfigurationError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRY = 10
BACKOFF_MS = 1000
MAX_BACKOFF_MS = 30_000
COMPUTE_UNITS_PER_SECOND = 100

RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
# JSON-RPC error codes providers use for "slow down" (Infura, Alchemy, Ankr...)
RATE_LIMIT_RPC_CODES = frozenset({429, -32005, -32016, -32090})


class ProviderRateLimited(Exception):
    """The node answered with a JSON-RPC rate limit error."""


def is_rate_limit_error(error: Any) -> bool:
    if not isinstance(error, dict):
        return False
    if error.get("code") in RATE_LIMIT_RPC_CODES:
        return True
    message = str(error.get("message", "")).lower()
    return "rate limit" in message or "too many requests" in message


def retry_after_seconds(exc: BaseException) -> float | None:
    """The server's Retry-After hint in seconds, if it sent a numeric one."""
    headers = getattr(exc, "headers", None)
    if not headers:
        return None
    try:
        return max(float(headers.get("Retry-After")), 0.0)
    except (TypeError, ValueError):
        return None


def is_transient(exc: BaseException) -> bool:
    """Timeouts, connection drops, 5xx/429 responses and provider throttling."""
    if isinstance(exc, (ProviderRateLimited, asyncio.TimeoutError)):
        return True
    if isinstance(exc, aiohttp.ClientResponseError):
        return exc.status in RETRY_STATUS_CODES
    return isinstance(exc, (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError))


class RetryPolicy:
    """Re-issue transient failures with exponential backoff.

    A call is attempted at most ``max_retry + 1`` times. Non-transient errors
    from the HTTP layer fail after the first attempt. A numeric Retry-After
    header replaces the computed backoff, capped at ``max_backoff_ms``.
    """

    def __init__(
        self,
        max_retry: int = MAX_RETRY,
        backoff_ms: int = BACKOFF_MS,
        max_backoff_ms: int = MAX_BACKOFF_MS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.max_retry = max_retry
        self.backoff_ms = backoff_ms
        self.max_backoff_ms = max_backoff_ms
        self._sleep = sleep

    def backoff_seconds(self, attempt: int) -> float:
        return min(self.backoff_ms * 2 ** (attempt - 1), self.max_backoff_ms) / 1000

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await fn(*args)
            except Exception as e:
                if not is_transient(e):
                    if isinstance(e, aiohttp.ClientResponseError):
                        raise TransportError(f"RPC request rejected: {e}", attempts=attempt) from e
                    raise
                if attempt > self.max_retry:
                    raise TransportError(
                        f"RPC request failed after {attempt} attempts: {e!r}", attempts=attempt
                    ) from e
                delay = self.backoff_seconds(attempt)
                hint = retry_after_seconds(e)
                if hint is not None:
                    delay = min(hint, self.max_backoff_ms / 1000)
                logger.debug(f"Transient RPC failure ({e!r}), retry {attempt}/{self.max_retry} in {delay:.1f}s")
                await self._sleep(delay)


class RateLimiter:
    """Token bucket shared by every request issued through one provider."""

    def __init__(
        self,
        rate: float = COMPUTE_UNITS_PER_SECOND,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.rate = rate
        self.capacity = rate
        self._tokens = rate
        self._clock = clock
        self._sleep = sleep
        self._updated = clock()
        self._lock = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        self._tokens = min(self.capacity, self._tokens + (now - self._updated) * self.rate)
        self._updated = now

    async def acquire(self, units: float = 1.0) -> None:
        async with self._lock:
            self._refill()
            while self._tokens < units:
                await self._sleep((units - self._tokens) / self.rate)
                self._refill()
            self._tokens -= units


class RetryableHTTPProvider(AsyncHTTPProvider):
    """HTTP provider with a bounded retry/backoff policy and a shared rate budget."""

    def __init__(
        self,
        endpoint_uri: str,
        retry_policy: RetryPolicy | None = None,
        rate_limiter: RateLimiter | None = None,
        **kwargs: Any,
    ):
        # web3's own exception retry is replaced by RetryPolicy
        super().__init__(endpoint_uri, exception_retry_configuration=None, **kwargs)
        self.retry_policy = retry_policy or RetryPolicy()
        self.rate_limiter = rate_limiter or RateLimiter()

    async def make_request(self, method: RPCEndpoint, params: Any) -> RPCResponse:
        return await self.retry_policy.call(self._limited_request, method, params)

    async def _limited_request(self, method: RPCEndpoint, params: Any) -> RPCResponse:
        await self.rate_limiter.acquire()
        response = await super().make_request(method, params)
        error = response.get("error")
        if error and is_rate_limit_error(error):
            raise ProviderRateLimited(str(error))
        return response


def validate_rpc_url(rpc_url: str) -> str:
    """Parse an HTTP(S) endpoint URL. Raises ConfigurationError when malformed."""
    try:
        url = httpx.URL(rpc_url)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigurationError(f"Invalid RPC URL {rpc_url!r}: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"Invalid RPC URL {rpc_url!r}: expected an http(s) endpoint")
    return rpc_url


def build_transport(rpc_url: str) -> AsyncWeb3:
    """Build an AsyncWeb3 client for ``rpc_url``. Safe to share across tasks."""
    endpoint = validate_rpc_url(rpc_url)
    logger.debug("Initializing HTTP provider")
    return AsyncWeb3(RetryableHTTPProvider(endpoint))


async def close_transport(w3: AsyncWeb3) -> None:
    """Close the HTTP sessions the client's provider has opened."""
    await w3.provider.disconnect()
