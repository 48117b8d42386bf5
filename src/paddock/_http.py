"""Low-level HTTP transport layer wrapping httpx.

One ``RateLimitedTransport`` exists per upstream provider. It spaces requests by
a minimum interval, retries 429/503/504 with exponential backoff (honouring
``Retry-After``), and re-issues a request once through ``curl`` when the
network path itself is unreachable.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from paddock.exceptions import (
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE = 1.0
RETRYABLE_STATUSES = frozenset({429, 503, 504})
USER_AGENT = "paddock/0.1"

_STATUS_MARKER = "\n__paddock_status__:"


def parse_retry_after(value: str | None, now: datetime | None = None) -> float | None:
    """Return the delay in seconds encoded by a ``Retry-After`` header value.

    Accepts both delta-seconds and HTTP-date forms; unparsable values yield None.
    """
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


class CurlFallback:
    """Alternate request path that shells out to the ``curl`` binary.

    Used only when httpx cannot reach the network (DNS, proxy or TLS stack
    problems that an external tool may not share).
    """

    def __init__(self, executable: str = "curl") -> None:
        self.executable = executable

    @classmethod
    def detect(cls) -> CurlFallback | None:
        """Return a fallback if ``curl`` is on PATH, else None."""
        path = shutil.which("curl")
        return cls(path) if path else None

    async def fetch(self, url: str, timeout: float) -> httpx.Response:
        try:
            proc = await asyncio.create_subprocess_exec(
                self.executable,
                "--silent",
                "--show-error",
                "--location",
                "--max-time", f"{timeout:g}",
                "--header", "Accept: application/json",
                "--user-agent", USER_AGENT,
                "--write-out", f"{_STATUS_MARKER}%{{http_code}}",
                url,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except OSError as exc:
            raise NetworkError(f"curl fallback could not start: {exc}") from exc

        if proc.returncode != 0:
            raise NetworkError(
                f"curl fallback failed ({proc.returncode}): {stderr.decode(errors='replace').strip()}"
            )
        body, _, status = stdout.rpartition(_STATUS_MARKER.encode())
        try:
            status_code = int(status.decode().strip())
        except ValueError as exc:
            raise NetworkError(f"curl fallback returned no status for {url}") from exc
        return httpx.Response(
            status_code,
            content=body,
            headers={"Content-Type": "application/json"},
            request=httpx.Request("GET", url),
        )


class RateLimitedTransport:
    """Asynchronous HTTP transport with a global minimum-interval throttle.

    Usage:
        transport = RateLimitedTransport("https://api.jolpi.ca/ergast/f1", min_interval=0.25)
        data = await transport.get("/2024/driverStandings.json")
        await transport.close()
    """

    def __init__(
        self,
        base_url: str,
        *,
        min_interval: float = 0.0,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        fallback: CurlFallback | None = None,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.min_interval = min_interval
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._fallback = fallback
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
        )
        self._clock = clock
        self._sleep = sleep
        self._last_request_time: float | None = None
        self._throttle_lock = asyncio.Lock()

    async def __aenter__(self) -> RateLimitedTransport:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    def url_for(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def _throttle(self) -> None:
        """Suspend until ``min_interval`` has elapsed since the previous request."""
        async with self._throttle_lock:
            if self._last_request_time is not None:
                wait = self.min_interval - (self._clock() - self._last_request_time)
                if wait > 0:
                    logger.debug("Throttling %s for %.3fs", self.base_url, wait)
                    await self._sleep(wait)
            self._last_request_time = self._clock()

    async def _send(self, url: str, params: list[tuple[str, str]]) -> httpx.Response:
        try:
            return await self._client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(f"{url}: {exc}") from exc
        except httpx.TransportError as exc:
            if self._fallback is None:
                raise NetworkError(f"{url}: {exc}") from exc
            full_url = str(httpx.URL(url, params=params))
            logger.warning("Network path failed for %s (%s); retrying via curl", full_url, exc)
            return await self._fallback.fetch(full_url, self.timeout)

    def _backoff_delay(self, response: httpx.Response, attempt: int) -> float:
        retry_after = parse_retry_after(response.headers.get("Retry-After"))
        if retry_after is not None:
            return retry_after
        return self.backoff_base * (2 ** attempt)

    async def request(
        self, endpoint: str, params: list[tuple[str, str]] | None = None,
    ) -> httpx.Response:
        """Issue a throttled GET, retrying rate-limited and unavailable responses.

        Raises:
            NetworkError: the provider could not be reached, even via fallback.
            RateLimitError: 429 persisted through every retry.
            UpstreamError: any other non-success status.
        """
        url = self.url_for(endpoint)
        params = params or []
        attempt = 0
        while True:
            await self._throttle()
            response = await self._send(url, params)
            status = response.status_code
            if 200 <= status < 300:
                return response
            if status in RETRYABLE_STATUSES and attempt < self.max_retries:
                delay = self._backoff_delay(response, attempt)
                logger.warning(
                    "HTTP %d from %s; retry %d/%d in %.2fs",
                    status, url, attempt + 1, self.max_retries, delay,
                )
                await self._sleep(delay)
                attempt += 1
                continue
            if status == 429:
                raise RateLimitError(
                    retry_after=parse_retry_after(response.headers.get("Retry-After")),
                    message=response.text,
                )
            raise UpstreamError(status_code=status, message=response.text)

    async def get(self, endpoint: str, params: list[tuple[str, str]] | None = None) -> Any:
        """Perform a GET request and return parsed JSON."""
        response = await self.request(endpoint, params)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                status_code=response.status_code,
                message=f"invalid JSON body: {exc}",
            ) from exc
