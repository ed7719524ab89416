"""Outbound request governor: cache, concurrency cap, pacing and retry.

All GitHub API calls go through a single :class:`RequestGovernor` owned by
the orchestrator. The governor enforces three constraints at once:

- Freshness: a non-expired cached payload is returned without a network call.
- Concurrency: at most ``max_concurrent`` requests are in flight; further
  callers wait in a FIFO queue and are admitted strictly in arrival order.
- Resilience: transient failures are retried with exponential backoff.

Transport errors are converted to the closed error set in
:mod:`obs_plugin_manager.errors` here and nowhere else.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Deque, Dict, Mapping, Optional

import httpx

from obs_plugin_manager.config import ManagerConfig
from obs_plugin_manager.errors import (
    NetworkError,
    NetworkTransientError,
    NotFoundError,
    RateLimitError,
    UpstreamResponseError,
)
from obs_plugin_manager.network.cache import ResponseCache, make_cache_key

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]
ChunkCallback = Callable[[int, Optional[int]], None]

DEFAULT_USER_AGENT = "LamaWorlds-OBS-AddonManager"


def classify_transport_error(error: httpx.TransportError, url: str) -> NetworkError:
    """Map an httpx transport exception onto the error taxonomy.

    Timeouts, connection failures (reset, refused, DNS) and read/write faults
    are transient. Protocol misuse on our side is not.
    """
    if isinstance(error, (httpx.UnsupportedProtocol, httpx.LocalProtocolError)):
        return UpstreamResponseError(f"Invalid request to {url}: {error}", url=url)
    if isinstance(error, httpx.TimeoutException):
        message = f"Request timed out: {url}"
    else:
        message = (
            "Network error: Unable to connect to GitHub. "
            "Please check your internet connection and try again."
        )
    return NetworkTransientError(message, url=url)


def classify_response(response: httpx.Response, url: str) -> Optional[NetworkError]:
    """Return the error for a non-2xx response, or None on success."""
    status = response.status_code
    if status < 400:
        return None
    if status in (403, 429):
        return RateLimitError(url=url, status_code=status)
    if status == 404:
        return NotFoundError(url=url)
    if status >= 500:
        return NetworkTransientError(
            f"GitHub returned HTTP {status}", url=url, status_code=status
        )
    return UpstreamResponseError(
        f"GitHub returned HTTP {status}", url=url, status_code=status
    )


@dataclass
class QueuedRequest:
    """A request waiting for, or holding, a concurrency slot."""

    id: int
    url: str
    params: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    retry_count: int = 0
    waiter: Optional[asyncio.Future] = None


@dataclass
class GovernorStats:
    """Snapshot of governor state."""

    active: int
    queued: int
    cached: int


class RequestGovernor:
    """Cached, rate-limited, retrying HTTP GET client.

    Example:
        async with RequestGovernor.from_config(config) as governor:
            release = await governor.get(
                "https://api.github.com/repos/obsproject/obs-websocket/releases/latest"
            )
    """

    def __init__(
        self,
        cache: ResponseCache,
        client: Optional[httpx.AsyncClient] = None,
        *,
        max_concurrent: int = 2,
        request_delay: float = 0.5,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the governor.

        Args:
            cache: Response cache (already loaded)
            client: HTTP client; one is created (and owned) when omitted
            max_concurrent: Maximum requests in flight
            request_delay: Pause before dispatch while other requests are active
            max_retries: Retries for transient failures
            retry_delay: Base backoff delay, doubled on each attempt
            timeout: Per-request timeout in seconds
            user_agent: User-Agent sent with every request
            sleep: Awaitable sleep, injectable for tests
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")

        self.cache = cache
        self.max_concurrent = max_concurrent
        self.request_delay = request_delay
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.user_agent = user_agent
        self._sleep = sleep

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
        )

        self._active = 0
        self._queue: Deque[QueuedRequest] = deque()
        self._ids = itertools.count(1)

    @classmethod
    def from_config(
        cls,
        config: ManagerConfig,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        sleep: SleepFunc = asyncio.sleep,
    ) -> "RequestGovernor":
        """Build a governor from configuration, loading the persisted cache."""
        network = config.network
        cache = ResponseCache(config.cache_file, ttl=network.cache_ttl, clock=clock)
        cache.load()
        return cls(
            cache,
            client,
            max_concurrent=network.max_concurrent_requests,
            request_delay=network.request_delay,
            max_retries=network.max_retries,
            retry_delay=network.retry_delay,
            timeout=network.timeout,
            user_agent=network.user_agent,
            sleep=sleep,
        )

    async def __aenter__(self) -> "RequestGovernor":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if the governor created it."""
        if self._owns_client:
            await self._client.aclose()

    @property
    def stats(self) -> GovernorStats:
        return GovernorStats(
            active=self._active,
            queued=len(self._queue),
            cached=len(self.cache),
        )

    async def get(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """Fetch a JSON payload, honouring cache, rate limit and retries.

        Args:
            url: Request URL
            params: Query parameters (part of the cache key)
            headers: Extra request headers (not part of the cache key)

        Returns:
            Decoded JSON payload

        Raises:
            NetworkTransientError: Transient failure after all retries
            RateLimitError: Upstream 403/429
            NotFoundError: Upstream 404
            UpstreamResponseError: Other 4xx or an unparsable body
        """
        key = make_cache_key(url, params)
        entry = self.cache.get(key)
        if entry is not None:
            logger.debug("Cache hit: %s", url)
            return entry.payload

        request = QueuedRequest(
            id=next(self._ids),
            url=url,
            params=dict(params or {}),
            headers=dict(headers or {}),
        )

        await self._acquire(request)
        try:
            if self._active > 1 and self.request_delay > 0:
                await self._sleep(self.request_delay)
            payload = await self._execute_with_retry(request)
            self.cache.set(key, payload)
        finally:
            self._release()

        return payload

    async def stream_download(
        self,
        url: str,
        dest: Path,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> int:
        """Stream a binary asset to ``dest``.

        Downloads bypass the cache and the API concurrency cap but use the
        same client and error classification.

        Args:
            url: Asset download URL
            dest: Destination file path
            on_chunk: Called with (bytes downloaded so far, total or None)

        Returns:
            Number of bytes written
        """
        downloaded = 0
        try:
            async with self._client.stream("GET", url, timeout=self.timeout) as response:
                error = classify_response(response, url)
                if error is not None:
                    raise error

                length = response.headers.get("content-length")
                total = int(length) if length and length.isdigit() else None

                handle = await asyncio.to_thread(open, dest, "wb")
                try:
                    async for chunk in response.aiter_bytes():
                        await asyncio.to_thread(handle.write, chunk)
                        downloaded += len(chunk)
                        if on_chunk is not None:
                            on_chunk(downloaded, total)
                finally:
                    await asyncio.to_thread(handle.close)
        except httpx.TransportError as e:
            raise classify_transport_error(e, url) from e

        logger.debug("Downloaded %d bytes from %s", downloaded, url)
        return downloaded

    def clear_cache(self) -> None:
        """Drop every cached response and delete the cache file."""
        self.cache.clear()
        logger.info("Response cache cleared")

    def clear_expired_cache(self) -> int:
        """Drop expired cache entries. Returns the number removed."""
        return self.cache.clear_expired()

    async def _acquire(self, request: QueuedRequest) -> None:
        """Take a concurrency slot, waiting in FIFO order if none is free."""
        if self._active < self.max_concurrent and not self._queue:
            self._active += 1
            return

        loop = asyncio.get_running_loop()
        request.waiter = loop.create_future()
        self._queue.append(request)
        logger.debug(
            "Request %d queued (%d active, %d waiting)",
            request.id, self._active, len(self._queue),
        )
        try:
            await request.waiter
        except asyncio.CancelledError:
            if request.waiter.done() and not request.waiter.cancelled():
                # The slot was already handed over; give it back
                self._release()
            elif request in self._queue:
                self._queue.remove(request)
            raise

    def _release(self) -> None:
        """Hand the slot to the oldest waiter, or free it."""
        while self._queue:
            waiter = self._queue.popleft().waiter
            if waiter is not None and not waiter.done():
                waiter.set_result(None)
                return
        self._active -= 1

    async def _execute_with_retry(self, request: QueuedRequest) -> Any:
        """Send a request, retrying transient failures with backoff."""
        while True:
            try:
                return await self._send(request)
            except NetworkTransientError as e:
                if request.retry_count >= self.max_retries:
                    logger.warning(
                        "Giving up on %s after %d retries: %s",
                        request.url, request.retry_count, e,
                    )
                    raise
                delay = self.retry_delay * (2 ** request.retry_count)
                request.retry_count += 1
                logger.info(
                    "Retrying request after %.1fs (attempt %d/%d): %s",
                    delay, request.retry_count, self.max_retries, e,
                )
                await self._sleep(delay)

    async def _send(self, request: QueuedRequest) -> Any:
        """Perform one GET and decode the JSON body."""
        try:
            response = await self._client.get(
                request.url,
                params=request.params or None,
                headers=request.headers or None,
                timeout=self.timeout,
            )
        except httpx.TransportError as e:
            raise classify_transport_error(e, request.url) from e

        error = classify_response(response, request.url)
        if error is not None:
            raise error

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamResponseError(
                f"Invalid JSON in response from {request.url}", url=request.url
            ) from e
