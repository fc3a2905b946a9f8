"""
HTTP collaborator used for every outbound request.

Wraps httpx with the retry rules the rest of the server relies on: rate
limits, timeouts and 5xx responses are retried with exponential backoff, any
other failure surfaces immediately as an ``UpstreamError`` carrying the status
code.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from .errors import UpstreamError

logger = logging.getLogger("osrs-mcp")

DEFAULT_TIMEOUT = 30.0
MAX_RETRIES = 3
RETRY_BACKOFF = 2.0


class OsrsHttpClient:
    """Small async HTTP client returning parsed JSON or raw text.

    A fresh ``httpx.AsyncClient`` is opened per request so the client can be
    shared across event loops (startup refresh and the server loop).

    Args:
        user_agent: User-Agent header sent with every request. The OSRS wiki
            rejects anonymous default agents.
        timeout: Per-request timeout in seconds.
        max_retries: Attempts for retryable failures.
        retry_backoff: Base of the exponential backoff, in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        user_agent: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        retry_backoff: float = RETRY_BACKOFF,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.transport = transport
        self.request_count = 0

    async def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET ``url`` and decode the body as JSON.

        Raises:
            UpstreamError: On network failure, non-success status or bad JSON.
        """
        response = await self._get(url, params, headers)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Invalid JSON from {url}: {e}", url=url) from e

    async def get_text(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        """GET ``url`` and return the body as text."""
        response = await self._get(url, params, headers)
        return response.text

    async def _get(
        self,
        url: str,
        params: dict[str, Any] | None,
        headers: dict[str, str] | None,
    ) -> httpx.Response:
        request_headers = {"User-Agent": self.user_agent}
        if headers:
            request_headers.update(headers)

        last_error: Exception | None = None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(self.max_retries):
                self.request_count += 1
                try:
                    response = await client.get(url, params=params, headers=request_headers)

                    if response.status_code == 429:
                        wait = self.retry_backoff ** attempt if self.retry_backoff else 0
                        logger.warning(f"Rate limited by {url}, waiting {wait}s")
                        last_error = UpstreamError("Rate limited", status_code=429, url=url)
                        await asyncio.sleep(wait)
                        continue

                    response.raise_for_status()
                    return response

                except httpx.TimeoutException as e:
                    logger.warning(f"Timeout fetching {url}, attempt {attempt + 1}/{self.max_retries}")
                    last_error = e
                    await asyncio.sleep(self.retry_backoff ** attempt if self.retry_backoff else 0)

                except httpx.HTTPStatusError as e:
                    status = e.response.status_code
                    if status >= 500:
                        logger.warning(
                            f"Server error {status} from {url}, "
                            f"attempt {attempt + 1}/{self.max_retries}"
                        )
                        last_error = e
                        await asyncio.sleep(self.retry_backoff ** attempt if self.retry_backoff else 0)
                    else:
                        raise UpstreamError(f"HTTP {status} from {url}", status_code=status, url=url) from e

                except httpx.HTTPError as e:
                    raise UpstreamError(f"Request to {url} failed: {e}", url=url) from e

        status_code = None
        if isinstance(last_error, httpx.HTTPStatusError):
            status_code = last_error.response.status_code
        elif isinstance(last_error, UpstreamError):
            status_code = last_error.status_code
        raise UpstreamError(
            f"Failed to fetch {url} after {self.max_retries} retries: {last_error}",
            status_code=status_code,
            url=url,
        )


__all__ = ["OsrsHttpClient", "DEFAULT_TIMEOUT", "MAX_RETRIES", "RETRY_BACKOFF"]
