"""
Unit tests for the aiohttp transport and the /info metadata client.

The aiohttp session is replaced by a scripted fake; no sockets are opened.
"""

import json
from decimal import Decimal

import aiohttp
import pytest

from hyperliquid_client.adapters.exchanges.hyperliquid.info import InfoClient
from hyperliquid_client.adapters.http.client import HttpClient
from hyperliquid_client.config.settings import HttpSettings
from hyperliquid_client.domain.errors import NetworkError, ProtocolError
from tests.mocks.fakes import META_PAYLOAD, SPOT_META_PAYLOAD, FakeTransport


class _FakeResponse:
    def __init__(self, status: int, text: str):
        self.status = status
        self._text = text

    async def text(self) -> str:
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class _FakeSession:
    """Replays (status, body) tuples or raises scripted exceptions."""

    def __init__(self, script):
        self.script = list(script)
        self.requests: list[tuple[str, dict]] = []
        self.closed = False

    def post(self, url, data=None, headers=None):
        self.requests.append((url, json.loads(data)))
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return _FakeResponse(*step)

    async def close(self):
        self.closed = True


def _client(script, **settings) -> tuple[HttpClient, _FakeSession]:
    session = _FakeSession(script)
    http_settings = HttpSettings(retry_base_delay_seconds=Decimal("0"), **settings)
    return HttpClient("https://api.example.test/", http_settings, session=session), session


class TestHttpClient:
    @pytest.mark.asyncio
    async def test_posts_json_and_decodes(self):
        client, session = _client([(200, '{"status": "ok"}')])

        result = await client.post("/exchange", {"action": {"type": "cancel"}})

        assert result == {"status": "ok"}
        assert session.requests == [("https://api.example.test/exchange", {"action": {"type": "cancel"}})]

    @pytest.mark.asyncio
    async def test_4xx_is_protocol_error_with_body(self):
        client, _ = _client([(422, "Failed to deserialize the JSON body")])

        with pytest.raises(ProtocolError) as exc_info:
            await client.post("/exchange", {})

        assert exc_info.value.status_code == 422
        assert exc_info.value.payload == "Failed to deserialize the JSON body"

    @pytest.mark.asyncio
    async def test_5xx_is_network_error(self):
        client, _ = _client([(502, "bad gateway")])

        with pytest.raises(NetworkError) as exc_info:
            await client.post("/exchange", {})
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_connection_error_is_network_error(self):
        client, _ = _client([aiohttp.ClientConnectionError("refused")])

        with pytest.raises(NetworkError):
            await client.post("/info", {"type": "meta"})

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client, _ = _client([(200, "<html>")])

        with pytest.raises(ProtocolError):
            await client.post("/info", {"type": "meta"})

    @pytest.mark.asyncio
    async def test_exchange_calls_are_not_retried(self):
        client, session = _client([(503, "down"), (200, "{}")])

        with pytest.raises(NetworkError):
            await client.post("/exchange", {})

        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_retries_network_errors_when_asked(self):
        client, session = _client([TimeoutError(), (500, "oops"), (200, '{"universe": []}')])

        result = await client.post("/info", {"type": "meta"}, retries=2)

        assert result == {"universe": []}
        assert len(session.requests) == 3
        assert client.get_stats()["retried_requests"] == 2

    @pytest.mark.asyncio
    async def test_protocol_errors_are_not_retried(self):
        client, session = _client([(400, "bad"), (200, "{}")])

        with pytest.raises(ProtocolError):
            await client.post("/info", {"type": "meta"}, retries=3)
        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_borrowed_session_not_closed(self):
        client, session = _client([])

        await client.close()

        assert not session.closed


class TestInfoClient:
    @pytest.mark.asyncio
    async def test_queries(self):
        transport = FakeTransport(
            responses=[META_PAYLOAD, SPOT_META_PAYLOAD, {"ETH": "2000"}, {"assetPositions": []}],
        )
        info = InfoClient(transport, retries=2)

        meta = await info.meta()
        spot_meta = await info.spot_meta()
        mids = await info.all_mids()
        state = await info.user_state("0xabc")

        assert [a.name for a in meta.universe] == ["BTC", "ETH", "SOL"]
        assert spot_meta.universe[1].name == "@1"
        assert mids == {"ETH": "2000"}
        assert state == {"assetPositions": []}
        assert [call[1] for call in transport.calls] == [
            {"type": "meta"},
            {"type": "spotMeta"},
            {"type": "allMids"},
            {"type": "clearinghouseState", "user": "0xabc"},
        ]
        assert all(call[0] == "/info" and call[2] == 2 for call in transport.calls)

    @pytest.mark.asyncio
    async def test_malformed_meta(self):
        info = InfoClient(FakeTransport(responses=[{"universe": [{"name": "BTC"}]}]))

        with pytest.raises(ProtocolError):
            await info.meta()

    @pytest.mark.asyncio
    async def test_malformed_mids(self):
        info = InfoClient(FakeTransport(responses=[["not", "a", "dict"]]))

        with pytest.raises(ProtocolError):
            await info.all_mids()
