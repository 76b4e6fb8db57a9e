"""
aiohttp transport for the exchange REST API.

One persistent ClientSession per client. Read-only `/info` calls may be
retried with exponential backoff; `/exchange` calls are sent exactly once,
because a resend would either replay the nonce or need a new signature.

Usage:
    http = HttpClient("https://api.hyperliquid.xyz", settings.http)
    data = await http.post("/info", {"type": "meta"}, retries=2)
"""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp

from hyperliquid_client.config.settings import HttpSettings
from hyperliquid_client.domain.errors import NetworkError, ProtocolError
from hyperliquid_client.observability.logging import get_logger
from hyperliquid_client.ports.transport import TransportPort
from hyperliquid_client.utils import json_dumps, json_loads

logger = get_logger(__name__)


class HttpClient(TransportPort):
    """
    JSON POST transport.

    Error mapping:
    - 4xx: ProtocolError carrying status and the verbatim body
    - 5xx, timeouts, connection errors: NetworkError
    - 2xx with a non-JSON body: ProtocolError
    """

    def __init__(
        self,
        base_url: str,
        settings: HttpSettings | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._settings = settings or HttpSettings()
        self._session = session
        self._owns_session = session is None

        self._stats = {
            "total_requests": 0,
            "failed_requests": 0,
            "retried_requests": 0,
        }

    @property
    def base_url(self) -> str:
        return self._base_url

    async def initialize(self) -> None:
        """Create the HTTP session."""
        if self._session is None:
            timeout = aiohttp.ClientTimeout(
                total=float(self._settings.timeout_seconds),
                connect=float(self._settings.connect_timeout_seconds),
            )
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
            logger.debug(f"HTTP session opened for {self._base_url}")

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session and self._owns_session:
            await self._session.close()
            logger.debug(f"HTTP session closed for {self._base_url}")
        self._session = None

    async def __aenter__(self) -> HttpClient:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def post(self, path: str, payload: dict[str, Any], *, retries: int = 0) -> Any:
        await self.initialize()
        url = f"{self._base_url}{path}"
        body = json_dumps(payload)
        base_delay = float(self._settings.retry_base_delay_seconds)

        for attempt in range(retries + 1):
            try:
                return await self._post_once(url, body)
            except NetworkError as e:
                if attempt >= retries:
                    self._stats["failed_requests"] += 1
                    raise
                delay = base_delay * (2**attempt)
                logger.warning(f"POST {path} failed on attempt {attempt + 1}: {e.message}. Retrying in {delay:.2f}s")
                self._stats["retried_requests"] += 1
                await asyncio.sleep(delay)
            except ProtocolError:
                self._stats["failed_requests"] += 1
                raise

        raise NetworkError(f"POST {path} failed")  # pragma: no cover

    async def _post_once(self, url: str, body: str) -> Any:
        assert self._session is not None
        self._stats["total_requests"] += 1
        try:
            async with self._session.post(
                url,
                data=body,
                headers={"Content-Type": "application/json"},
            ) as response:
                text = await response.text()
                status = response.status
        except (TimeoutError, aiohttp.ClientError) as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

        if 400 <= status < 500:
            raise ProtocolError(f"Client error {status} from {url}: {text}", status_code=status, payload=text)
        if status >= 500:
            raise NetworkError(f"Server error {status} from {url}: {text}", status_code=status)

        try:
            return json_loads(text)
        except ValueError as e:
            raise ProtocolError(f"Non-JSON response from {url}: {text[:200]}", status_code=status, payload=text) from e

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)
