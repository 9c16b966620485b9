"""
Shared async HTTP client for the metadata and library services.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
from aiohttp import ClientTimeout

from bookmeter.domain.errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30
USER_AGENT = "bookmeter-sync/0.3"


class APIClient:
    """
    Thin aiohttp wrapper with retry on 429/5xx and timeouts.

    404 is reported as ``None`` so callers can treat it as "not found";
    any other non-200 status raises TransportError.
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        headers: Optional[Dict[str, str]] = None,
        max_retries: int = 2,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = ClientTimeout(total=timeout)
        self.headers = dict(headers or {})
        self.max_retries = max_retries
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"User-Agent": USER_AGENT, **self.headers}
            self._session = aiohttp.ClientSession(timeout=self.timeout, headers=headers)
        return self._session

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")) or not self.base_url:
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def _get(
        self,
        endpoint: str,
        read: Callable[[aiohttp.ClientResponse], Awaitable[Any]],
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        allow_redirects: bool = True,
    ) -> Any:
        url = self._url(endpoint)
        last_status: Optional[int] = None
        options: Dict[str, Any] = {"params": params, "headers": headers, "allow_redirects": allow_redirects}
        if timeout:
            options["timeout"] = ClientTimeout(total=timeout)

        for attempt in range(self.max_retries + 1):
            session = await self._get_session()
            try:
                async with session.get(url, **options) as response:
                    last_status = response.status
                    if response.status == 200:
                        return await read(response)
                    if response.status == 404:
                        logger.debug(f"Resource not found: {url}")
                        return None
                    if response.status == 429 or response.status >= 500:
                        retry_after = response.headers.get("Retry-After")
                        await response.read()
                        if attempt >= self.max_retries:
                            break
                        delay = self._backoff(attempt, retry_after)
                        logger.warning(
                            f"HTTP {response.status} for {url}, "
                            f"retry {attempt + 1}/{self.max_retries} in {delay:.1f}s"
                        )
                        await asyncio.sleep(delay)
                        continue
                    text = await response.text()
                    logger.error(f"API error {response.status}: {text[:200]}")
                    raise TransportError(
                        f"HTTP {response.status} from {url}", url=url, status=response.status
                    )
            except asyncio.TimeoutError as e:
                if attempt >= self.max_retries:
                    raise TransportError(f"timeout after {attempt + 1} attempts: {url}", url=url) from e
                delay = self._backoff(attempt, None)
                logger.warning(f"Timeout for {url}, retry {attempt + 1}/{self.max_retries} in {delay:.1f}s")
                await asyncio.sleep(delay)
            except aiohttp.ClientError as e:
                raise TransportError(f"request to {url} failed: {e}", url=url) from e

        raise TransportError(
            f"HTTP {last_status} after {self.max_retries + 1} attempts: {url}",
            url=url,
            status=last_status,
        )

    @staticmethod
    def _backoff(attempt: int, retry_after: Optional[str]) -> float:
        delay = 2.0 * (2**attempt)
        if retry_after:
            try:
                delay = min(float(retry_after), 30.0)
            except (TypeError, ValueError):
                pass
        jitter = delay * 0.25 * (2 * random.random() - 1)
        return max(1.0, delay + jitter)

    async def get_json(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        async def read(response):
            return await response.json(content_type=None)

        return await self._get(endpoint, read, params=params, headers=headers)

    async def get_text(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        headers: Optional[Dict[str, str]] = None,
    ) -> Optional[str]:
        async def read(response):
            return await response.text()

        return await self._get(endpoint, read, params=params, headers=headers)

    async def get_bytes(self, endpoint: str, *, timeout: Optional[float] = None) -> Optional[bytes]:
        async def read(response):
            return await response.read()

        return await self._get(endpoint, read, timeout=timeout)

    async def final_url(self, endpoint: str) -> Optional[str]:
        """URL reached after following redirects, or None on 404."""

        async def read(response):
            return str(response.url)

        return await self._get(endpoint, read)

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
