"""
Transport Port: JSON-over-HTTP access to the exchange API.

The dispatcher and the metadata client only need "POST a JSON body to a path
and get decoded JSON back"; tests substitute an in-memory fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class TransportPort(ABC):
    """Abstract HTTP transport."""

    @property
    @abstractmethod
    def base_url(self) -> str:
        """API root, e.g. https://api.hyperliquid.xyz."""
        ...

    @abstractmethod
    async def post(self, path: str, payload: dict[str, Any], *, retries: int = 0) -> Any:
        """
        POST `payload` as JSON and return the decoded response body.

        Raises:
            NetworkError on transport failure or 5xx.
            ProtocolError on 4xx or a body that is not JSON.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        ...
