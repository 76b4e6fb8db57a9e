"""
Unit tests for the WebSocket Subscription Router.

The connection is an in-memory fake: tests push inbound frames and inspect
the control frames the router sent.
"""

import asyncio
from decimal import Decimal

import pytest
import pytest_asyncio

from hyperliquid_client.adapters.exchanges.hyperliquid.ws_client import (
    RouterState,
    SubscriptionRouter,
    _get_ws_reconnect_delay,
    _WebSocketCircuitBreaker,
)
from hyperliquid_client.config.settings import WebSocketSettings
from hyperliquid_client.domain.errors import SubscriptionError, WebSocketError
from hyperliquid_client.domain.subscriptions import L2Book, L2BookMessage, NoData, OrderUpdates, Trades, UserFills
from tests.mocks.fakes import FakeConnector, wait_until

WS_URL = "wss://api.hyperliquid-testnet.xyz/ws"
USER = "0x6fd45ee91654730b67c4e6e67804cdec31ecf38d"


def _settings(**overrides) -> WebSocketSettings:
    values = dict(
        ping_interval=Decimal("60"),
        connect_timeout=Decimal("1"),
        reconnect_enabled=True,
        reconnect_delay_initial=Decimal("0"),
        reconnect_delay_max=Decimal("0"),
        reconnect_jitter_factor=Decimal("0"),
    )
    values.update(overrides)
    return WebSocketSettings(**values)


def _book(coin: str, time: int = 1) -> dict:
    return {"channel": "l2Book", "data": {"coin": coin, "time": time, "levels": [[], []]}}


@pytest_asyncio.fixture
async def router(connector):
    router = SubscriptionRouter(WS_URL, _settings(), connect=connector)
    await router.start()
    yield router
    await router.stop()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_connects(self, router, connector):
        assert router.state is RouterState.CONNECTED
        assert connector.urls == [WS_URL]

    @pytest.mark.asyncio
    async def test_stop_disconnects(self, connector):
        router = SubscriptionRouter(WS_URL, _settings(), connect=connector)
        await router.start()

        await router.stop()

        assert router.state is RouterState.DISCONNECTED
        assert connector.current.closed

    @pytest.mark.asyncio
    async def test_start_failure_raises(self):
        router = SubscriptionRouter(WS_URL, _settings(), connect=FakeConnector(fail_times=1))

        with pytest.raises(WebSocketError):
            await router.start()
        assert router.state is RouterState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_ping_sent_periodically(self, connector):
        router = SubscriptionRouter(WS_URL, _settings(ping_interval=Decimal("0.01")), connect=connector)
        await router.start()
        try:
            await wait_until(lambda: connector.current.methods("ping"))
        finally:
            await router.stop()


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_first_subscriber_sends_subscribe_frame(self, router, connector):
        queue: asyncio.Queue = asyncio.Queue()

        await router.subscribe(L2Book("ETH"), queue)

        assert connector.current.methods("subscribe") == [
            {"method": "subscribe", "subscription": {"type": "l2Book", "coin": "ETH"}}
        ]

    @pytest.mark.asyncio
    async def test_messages_delivered_in_order(self, router, connector):
        queue: asyncio.Queue = asyncio.Queue()
        await router.subscribe(L2Book("ETH"), queue)

        for t in range(3):
            connector.current.push(_book("ETH", time=t))
        await wait_until(lambda: queue.qsize() == 3)

        messages = [queue.get_nowait() for _ in range(3)]
        assert all(isinstance(m, L2BookMessage) for m in messages)
        assert [m.data["time"] for m in messages] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_other_topics_not_delivered(self, router, connector):
        eth: asyncio.Queue = asyncio.Queue()
        btc: asyncio.Queue = asyncio.Queue()
        await router.subscribe(L2Book("ETH"), eth)
        await router.subscribe(L2Book("BTC"), btc)

        connector.current.push(_book("BTC"))
        await wait_until(lambda: btc.qsize() == 1)

        assert eth.empty()

    @pytest.mark.asyncio
    async def test_subscribe_before_start_is_sent_on_connect(self, connector):
        router = SubscriptionRouter(WS_URL, _settings(), connect=connector)
        queue: asyncio.Queue = asyncio.Queue()
        await router.subscribe(Trades("SOL"), queue)

        await router.start()
        try:
            assert connector.current.methods("subscribe") == [
                {"method": "subscribe", "subscription": {"type": "trades", "coin": "SOL"}}
            ]
        finally:
            await router.stop()

    @pytest.mark.asyncio
    async def test_second_user_on_keyless_channel_rejected(self, router):
        await router.subscribe(OrderUpdates(USER), asyncio.Queue())

        with pytest.raises(SubscriptionError):
            await router.subscribe(OrderUpdates("0x" + "11" * 20), asyncio.Queue())

    @pytest.mark.asyncio
    async def test_same_user_any_case_allowed(self, router, connector):
        await router.subscribe(OrderUpdates(USER), asyncio.Queue())
        await router.subscribe(OrderUpdates(USER.upper().replace("0X", "0x")), asyncio.Queue())

        assert router.subscriber_count("orderUpdates") == 2
        assert len(connector.current.methods("subscribe")) == 1

    @pytest.mark.asyncio
    async def test_user_scoped_channels_allow_many_users(self, router):
        await router.subscribe(UserFills(USER), asyncio.Queue())
        await router.subscribe(UserFills("0x" + "11" * 20), asyncio.Queue())

        assert router.subscriber_count() == 2


class TestUnsubscribe:
    @pytest.mark.asyncio
    async def test_subscribe_then_unsubscribe_gets_nothing(self, router, connector):
        queue: asyncio.Queue = asyncio.Queue()
        sub_id = await router.subscribe(L2Book("ETH"), queue)
        assert await router.unsubscribe(sub_id)

        connector.current.push(_book("ETH"))
        await wait_until(lambda: router.get_stats()["messages_received"] == 1)

        assert queue.empty()
        assert connector.current.methods("unsubscribe") == [
            {"method": "unsubscribe", "subscription": {"type": "l2Book", "coin": "ETH"}}
        ]

    @pytest.mark.asyncio
    async def test_remaining_subscriber_keeps_receiving(self, router, connector):
        first: asyncio.Queue = asyncio.Queue()
        second: asyncio.Queue = asyncio.Queue()
        first_id = await router.subscribe(L2Book("ETH"), first)
        await router.subscribe(L2Book("ETH"), second)
        assert len(connector.current.methods("subscribe")) == 1

        connector.current.push(_book("ETH", time=1))
        await wait_until(lambda: first.qsize() == 1 and second.qsize() == 1)

        await router.unsubscribe(first_id)
        connector.current.push(_book("ETH", time=2))
        await wait_until(lambda: second.qsize() == 2)

        assert first.qsize() == 1
        assert connector.current.methods("unsubscribe") == []

    @pytest.mark.asyncio
    async def test_unknown_id(self, router):
        assert await router.unsubscribe(12345) is False

    @pytest.mark.asyncio
    async def test_double_unsubscribe(self, router):
        sub_id = await router.subscribe(L2Book("ETH"), asyncio.Queue())

        assert await router.unsubscribe(sub_id) is True
        assert await router.unsubscribe(sub_id) is False


class TestDispatch:
    @pytest.mark.asyncio
    async def test_full_queue_drops_for_that_subscriber_only(self, router, connector):
        slow: asyncio.Queue = asyncio.Queue(maxsize=1)
        fast: asyncio.Queue = asyncio.Queue()
        await router.subscribe(L2Book("ETH"), slow)
        await router.subscribe(L2Book("ETH"), fast)

        for t in range(3):
            connector.current.push(_book("ETH", time=t))
        await wait_until(lambda: fast.qsize() == 3)

        assert slow.qsize() == 1
        assert slow.get_nowait().data["time"] == 0
        assert router.get_stats()["messages_dropped"] == 2

    @pytest.mark.asyncio
    async def test_bad_frames_do_not_break_the_loop(self, router, connector):
        queue: asyncio.Queue = asyncio.Queue()
        await router.subscribe(L2Book("ETH"), queue)

        connector.current.push("Websocket connection established.")
        connector.current.push("{not json")
        connector.current.push({"channel": "mystery", "data": {}})
        connector.current.push({"channel": "pong"})
        connector.current.push({"channel": "subscriptionResponse", "data": {}})
        connector.current.push({"channel": "error", "data": "Invalid subscription"})
        connector.current.push(_book("ETH"))
        await wait_until(lambda: queue.qsize() == 1)

        assert router.state is RouterState.CONNECTED


class TestConnectionLoss:
    @pytest.mark.asyncio
    async def test_reconnect_replays_table(self, router, connector):
        eth: asyncio.Queue = asyncio.Queue()
        btc: asyncio.Queue = asyncio.Queue()
        await router.subscribe(L2Book("ETH"), eth)
        await router.subscribe(L2Book("BTC"), btc)
        first_socket = connector.current

        first_socket.drop()
        await wait_until(lambda: len(connector.sockets) == 2 and router.is_connected)

        assert isinstance(eth.get_nowait(), NoData)
        assert isinstance(btc.get_nowait(), NoData)
        replayed = [frame["subscription"]["coin"] for frame in connector.current.methods("subscribe")]
        assert sorted(replayed) == ["BTC", "ETH"]
        assert router.get_stats()["reconnects"] == 1

        connector.current.push(_book("ETH"))
        await wait_until(lambda: eth.qsize() == 1)

    @pytest.mark.asyncio
    async def test_reconnect_retries_after_failure(self, router, connector):
        await router.subscribe(L2Book("ETH"), asyncio.Queue())
        connector.fail_times = 2

        connector.current.drop()
        await wait_until(lambda: len(connector.sockets) == 2 and router.is_connected)

        assert len(connector.urls) == 4

    @pytest.mark.asyncio
    async def test_no_reconnect_clears_table(self, connector):
        router = SubscriptionRouter(WS_URL, _settings(reconnect_enabled=False), connect=connector)
        await router.start()
        queue: asyncio.Queue = asyncio.Queue()
        await router.subscribe(L2Book("ETH"), queue)

        connector.current.drop()
        await wait_until(lambda: router.state is RouterState.DISCONNECTED)

        assert isinstance(await asyncio.wait_for(queue.get(), 1), NoData)
        await wait_until(lambda: router.subscriber_count() == 0)
        assert len(connector.sockets) == 1
        await router.stop()


class TestReconnectHelpers:
    def test_backoff_grows_and_caps(self):
        delays = [_get_ws_reconnect_delay(a, base_delay=1.0, max_delay=8.0, jitter_factor=0.0) for a in range(6)]

        assert delays == [1.0, 2.0, 4.0, 8.0, 8.0, 8.0]

    def test_jitter_bounded(self):
        for _ in range(50):
            delay = _get_ws_reconnect_delay(2, base_delay=1.0, max_delay=60.0, jitter_factor=0.15)
            assert 3.4 <= delay <= 4.6

    def test_circuit_breaker_opens_and_resets(self):
        breaker = _WebSocketCircuitBreaker(threshold=2, cooldown_seconds=60.0)

        assert breaker.record_failure() is False
        assert breaker.record_failure() is True
        assert breaker.should_attempt_connection() is False

        breaker.record_success()
        assert breaker.should_attempt_connection() is True

    def test_circuit_breaker_cooldown(self):
        breaker = _WebSocketCircuitBreaker(threshold=1, cooldown_seconds=0.0)

        breaker.record_failure()

        assert breaker.should_attempt_connection() is True
        assert breaker.failure_count == 0
