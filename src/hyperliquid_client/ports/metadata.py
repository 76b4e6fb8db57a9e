"""
Metadata Port: read-only exchange state the dispatcher depends on.

Nothing here is cached by the implementation; callers decide what to keep.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from hyperliquid_client.domain.models import Meta, SpotMeta


class MetadataPort(ABC):
    """Abstract interface for the `/info` service."""

    @abstractmethod
    async def meta(self) -> Meta:
        """Perpetual universe (asset id = position in `universe`)."""
        ...

    @abstractmethod
    async def spot_meta(self) -> SpotMeta:
        """Spot pairs and tokens."""
        ...

    @abstractmethod
    async def all_mids(self) -> dict[str, str]:
        """Mid price per coin name, as the exchange's decimal strings."""
        ...

    @abstractmethod
    async def user_state(self, address: str) -> dict[str, Any]:
        """Clearinghouse state for a user (positions under `assetPositions`)."""
        ...
