"""
Metadata client for the `/info` endpoint.

Only the queries the dispatcher needs: universe metadata for asset ids and
size decimals, mid prices for market orders, and user state for closing
positions. Every call goes to the network; nothing is cached here.
"""

from __future__ import annotations

from typing import Any

from hyperliquid_client.domain.errors import ProtocolError
from hyperliquid_client.domain.models import Meta, SpotMeta
from hyperliquid_client.ports.metadata import MetadataPort
from hyperliquid_client.ports.transport import TransportPort


class InfoClient(MetadataPort):
    def __init__(self, transport: TransportPort, *, retries: int = 2):
        self._transport = transport
        self._retries = retries

    async def _query(self, payload: dict[str, Any]) -> Any:
        return await self._transport.post("/info", payload, retries=self._retries)

    async def meta(self) -> Meta:
        return Meta.from_dict(await self._query({"type": "meta"}))

    async def spot_meta(self) -> SpotMeta:
        return SpotMeta.from_dict(await self._query({"type": "spotMeta"}))

    async def all_mids(self) -> dict[str, str]:
        data = await self._query({"type": "allMids"})
        if not isinstance(data, dict):
            raise ProtocolError(f"Unexpected allMids payload: {data!r}", payload=data)
        return data

    async def user_state(self, address: str) -> dict[str, Any]:
        data = await self._query({"type": "clearinghouseState", "user": address})
        if not isinstance(data, dict):
            raise ProtocolError(f"Unexpected clearinghouseState payload: {data!r}", payload=data)
        return data
