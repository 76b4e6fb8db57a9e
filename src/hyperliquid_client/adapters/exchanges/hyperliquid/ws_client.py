"""
Subscription Router over the exchange WebSocket.

One persistent connection is shared by every subscriber. The routing table
maps a topic identifier to the subscriber queues registered for it:

    subscribe(L2Book("ETH"), queue)  -> first subscriber sends {"method": "subscribe", ...}
    inbound l2Book frame for ETH     -> put_nowait into every queue for "l2Book:eth"
    unsubscribe(id)                  -> last subscriber sends {"method": "unsubscribe", ...}

The receive loop is the only consumer of the connection and never awaits a
subscriber: delivery is `put_nowait`, and a full bounded queue drops the
message for that subscriber alone. Table lookups and deliveries for one frame
happen without yielding to the event loop, so once `unsubscribe` returns the
queue receives nothing more.

Connection loss sends NoData to every subscriber. Depending on
`websocket.reconnect_enabled` the router then either reconnects (exponential
backoff with jitter, behind a circuit breaker) and replays a subscribe frame
for every registered topic, or clears the table and stays disconnected.
"""

from __future__ import annotations

import asyncio
import contextlib
import random
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from hyperliquid_client.config.settings import WebSocketSettings
from hyperliquid_client.domain.errors import ProtocolError, SubscriptionError, WebSocketError
from hyperliquid_client.domain.subscriptions import (
    ErrorMessage,
    Message,
    NoData,
    Pong,
    Subscription,
    SubscriptionResponse,
    decode_message,
)
from hyperliquid_client.observability.logging import LOG_TAG_WS, get_logger
from hyperliquid_client.utils import json_dumps

logger = get_logger(__name__)


class RouterState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"


class _WebSocketCircuitBreaker:
    """
    Stops reconnection attempts after repeated failures.

    Recovers automatically after the cooldown period.
    """

    def __init__(self, threshold: int = 10, cooldown_seconds: float = 60.0):
        self.failure_count = 0
        self.threshold = threshold
        self.cooldown = cooldown_seconds
        self.last_failure_time = 0.0
        self.circuit_open = False

    def record_failure(self) -> bool:
        """Record a failed attempt; True when the circuit opens."""
        self.failure_count += 1
        self.last_failure_time = time.monotonic()
        if self.failure_count >= self.threshold:
            self.circuit_open = True
            logger.warning(
                f"{LOG_TAG_WS} Circuit breaker OPEN after {self.failure_count} failures. Cooldown: {self.cooldown}s"
            )
            return True
        return False

    def record_success(self) -> None:
        if self.circuit_open:
            logger.info(f"{LOG_TAG_WS} Circuit breaker RESET - connection recovered")
        self.failure_count = 0
        self.circuit_open = False

    def should_attempt_connection(self) -> bool:
        if not self.circuit_open:
            return True
        if time.monotonic() - self.last_failure_time >= self.cooldown:
            logger.info(f"{LOG_TAG_WS} Circuit breaker cooldown elapsed - allowing reconnection")
            self.circuit_open = False
            self.failure_count = 0
            return True
        return False

    def remaining_cooldown(self) -> float:
        return max(0.0, self.cooldown - (time.monotonic() - self.last_failure_time))


def _get_ws_reconnect_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter_factor: float = 0.15,
) -> float:
    """
    Exponential backoff with +/- jitter_factor random jitter.

    Args:
        attempt: Reconnection attempt number (0-indexed)
        base_delay: Base delay in seconds
        max_delay: Maximum delay cap in seconds
        jitter_factor: Random jitter as fraction of delay
    """
    delay = min(max_delay, base_delay * (2**attempt))
    jitter = delay * jitter_factor * (random.random() * 2 - 1)
    return max(0, delay + jitter)


class SubscriptionRouter:
    """
    Multiplexes topic subscriptions over one WebSocket connection.

    Usage:
        router = SubscriptionRouter(settings.ws_url, settings.websocket)
        await router.start()
        queue: asyncio.Queue = asyncio.Queue()
        sub_id = await router.subscribe(L2Book("ETH"), queue)
        message = await queue.get()
        await router.unsubscribe(sub_id)
        await router.stop()
    """

    def __init__(
        self,
        ws_url: str,
        settings: WebSocketSettings | None = None,
        *,
        connect: Callable[..., Any] | None = None,
    ):
        self.ws_url = ws_url
        self._settings = settings or WebSocketSettings()
        self._connect = connect or websockets.connect

        self._state = RouterState.DISCONNECTED
        self._ws: Any = None
        self._stopping = False

        # identifier -> {subscription id -> queue}
        self._routes: dict[str, dict[int, asyncio.Queue]] = {}
        # identifier -> the subscription sent upstream for it
        self._topics: dict[str, Subscription] = {}
        self._subscriber_topic: dict[int, str] = {}
        self._next_id = 0

        self._table_lock = asyncio.Lock()
        self._send_lock = asyncio.Lock()

        self._receive_task: asyncio.Task | None = None
        self._ping_task: asyncio.Task | None = None

        self._circuit_breaker = _WebSocketCircuitBreaker(
            threshold=self._settings.circuit_breaker_threshold,
            cooldown_seconds=float(self._settings.circuit_breaker_cooldown_seconds),
        )

        self._stats = {
            "messages_received": 0,
            "messages_delivered": 0,
            "messages_dropped": 0,
            "reconnects": 0,
        }

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def state(self) -> RouterState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is RouterState.CONNECTED

    async def start(self) -> None:
        """Open the connection and start the receive loop; raises WebSocketError."""
        if self._receive_task and not self._receive_task.done():
            return
        self._stopping = False
        await self._open()
        self._receive_task = asyncio.create_task(self._receive_loop(), name="hl-ws-receive")

    async def stop(self) -> None:
        """Close the connection; the routing table is kept for a later start()."""
        self._stopping = True
        self._state = RouterState.CLOSING

        await self._close_connection()
        if self._receive_task and not self._receive_task.done():
            self._receive_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._receive_task
        self._receive_task = None

        self._state = RouterState.DISCONNECTED
        logger.info(f"{LOG_TAG_WS} Router stopped")

    async def __aenter__(self) -> SubscriptionRouter:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def _open(self) -> None:
        self._state = RouterState.CONNECTING
        logger.info(f"{LOG_TAG_WS} Connecting to {self.ws_url}")
        try:
            self._ws = await asyncio.wait_for(
                self._connect(self.ws_url, ping_interval=None, close_timeout=5),
                timeout=float(self._settings.connect_timeout),
            )
        except (OSError, TimeoutError, WebSocketException) as e:
            self._state = RouterState.DISCONNECTED
            raise WebSocketError(f"Connection to {self.ws_url} failed: {e}") from e

        self._circuit_breaker.record_success()
        logger.info(f"{LOG_TAG_WS} Connected to {self.ws_url}")

        # Holding the table lock keeps a concurrent subscribe from sending twice
        async with self._table_lock:
            self._state = RouterState.CONNECTED
            for subscription in list(self._topics.values()):
                await self._send_control("subscribe", subscription)
        self._ping_task = asyncio.create_task(self._ping_loop(self._ws), name="hl-ws-ping")

    async def _close_connection(self) -> None:
        if self._ping_task and not self._ping_task.done():
            self._ping_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._ping_task
        self._ping_task = None

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                logger.debug(f"{LOG_TAG_WS} Error while closing: {e}")

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def subscribe(self, subscription: Subscription, queue: asyncio.Queue) -> int:
        """
        Register `queue` for the subscription's topic; returns the subscription id.

        Returns without waiting for the server to acknowledge. While not
        connected, the subscribe frame is sent on the next connect.
        """
        identifier = subscription.identifier
        async with self._table_lock:
            existing = self._topics.get(identifier)
            if (
                existing is not None
                and subscription.USER_KEYLESS
                and existing.user.lower() != subscription.user.lower()  # type: ignore[attr-defined]
            ):
                raise SubscriptionError(
                    f"Cannot subscribe to {subscription.subscription_type} for more than one user",
                    details={"existing": existing.to_wire(), "requested": subscription.to_wire()},
                )

            subscription_id = self._next_id
            self._next_id += 1
            self._routes.setdefault(identifier, {})[subscription_id] = queue
            self._subscriber_topic[subscription_id] = identifier

            if existing is None:
                self._topics[identifier] = subscription
                await self._send_control("subscribe", subscription)

        logger.debug(
            f"{LOG_TAG_WS} Subscribed id={subscription_id} topic={identifier}",
            extra={"subscription_id": subscription_id, "topic": identifier},
        )
        return subscription_id

    async def unsubscribe(self, subscription_id: int) -> bool:
        """Remove a subscriber; False when the id is unknown."""
        async with self._table_lock:
            identifier = self._subscriber_topic.pop(subscription_id, None)
            if identifier is None:
                return False

            queues = self._routes.get(identifier, {})
            queues.pop(subscription_id, None)
            if not queues:
                self._routes.pop(identifier, None)
                subscription = self._topics.pop(identifier)
                await self._send_control("unsubscribe", subscription)

        logger.debug(
            f"{LOG_TAG_WS} Unsubscribed id={subscription_id} topic={identifier}",
            extra={"subscription_id": subscription_id, "topic": identifier},
        )
        return True

    def subscriber_count(self, identifier: str | None = None) -> int:
        if identifier is None:
            return len(self._subscriber_topic)
        return len(self._routes.get(identifier, {}))

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)

    # =========================================================================
    # Wire
    # =========================================================================

    async def _send(self, payload: dict[str, Any]) -> bool:
        ws = self._ws
        if ws is None or self._state is not RouterState.CONNECTED:
            return False
        async with self._send_lock:
            try:
                await ws.send(json_dumps(payload))
            except ConnectionClosed as e:
                # The receive loop sees the same closure and handles recovery
                logger.warning(f"{LOG_TAG_WS} Send failed, connection closed: {e}")
                return False
        return True

    async def _send_control(self, method: str, subscription: Subscription) -> None:
        sent = await self._send({"method": method, "subscription": subscription.to_wire()})
        if not sent:
            logger.debug(f"{LOG_TAG_WS} {method} {subscription.identifier} deferred until connected")

    async def _ping_loop(self, ws: Any) -> None:
        interval = float(self._settings.ping_interval)
        while self._ws is ws:
            await asyncio.sleep(interval)
            if not await self._send({"method": "ping"}):
                return

    # =========================================================================
    # Receive / dispatch
    # =========================================================================

    async def _receive_loop(self) -> None:
        attempt = 0
        while not self._stopping:
            ws = self._ws
            try:
                while True:
                    raw = await ws.recv()
                    self._dispatch(raw)
            except ConnectionClosed as e:
                if self._stopping:
                    return
                logger.warning(f"{LOG_TAG_WS} Connection closed: {e}")

            await self._close_connection()
            self._state = RouterState.DISCONNECTED
            self._broadcast(NoData())

            if not self._settings.reconnect_enabled:
                async with self._table_lock:
                    self._routes.clear()
                    self._topics.clear()
                    self._subscriber_topic.clear()
                logger.info(f"{LOG_TAG_WS} Reconnect disabled; all subscriptions ended")
                return

            # Reconnect, then replay the whole table (done in _open)
            while not self._stopping:
                if not self._circuit_breaker.should_attempt_connection():
                    await asyncio.sleep(self._circuit_breaker.remaining_cooldown())
                    continue
                delay = _get_ws_reconnect_delay(
                    attempt,
                    base_delay=float(self._settings.reconnect_delay_initial),
                    max_delay=float(self._settings.reconnect_delay_max),
                    jitter_factor=float(self._settings.reconnect_jitter_factor),
                )
                logger.info(f"{LOG_TAG_WS} Reconnecting in {delay:.1f}s (attempt {attempt + 1})")
                await asyncio.sleep(delay)
                try:
                    await self._open()
                except WebSocketError as e:
                    attempt += 1
                    self._circuit_breaker.record_failure()
                    logger.warning(f"{LOG_TAG_WS} Reconnect failed: {e.message}")
                    continue
                attempt = 0
                self._stats["reconnects"] += 1
                break

    def _dispatch(self, raw: str | bytes) -> None:
        self._stats["messages_received"] += 1
        try:
            message = decode_message(raw)
            identifier = message.identifier() if message is not None else None
        except ProtocolError as e:
            logger.warning(f"{LOG_TAG_WS} Dropping undecodable frame: {e.message}")
            return

        if message is None:
            logger.debug(f"{LOG_TAG_WS} Ignoring frame: {str(raw)[:120]}")
            return
        if isinstance(message, Pong):
            logger.debug(f"{LOG_TAG_WS} pong")
            return
        if isinstance(message, SubscriptionResponse):
            logger.debug(f"{LOG_TAG_WS} Subscription acknowledged: {message.data}")
            return
        if isinstance(message, ErrorMessage):
            logger.warning(f"{LOG_TAG_WS} Server error: {message.data}")
            return
        if identifier is None:
            return

        queues = self._routes.get(identifier)
        if not queues:
            logger.debug(f"{LOG_TAG_WS} No subscriber for {identifier}")
            return
        for subscription_id, queue in list(queues.items()):
            self._deliver(subscription_id, queue, message)

    def _deliver(self, subscription_id: int, queue: asyncio.Queue, message: Message) -> None:
        try:
            queue.put_nowait(message)
            self._stats["messages_delivered"] += 1
        except asyncio.QueueFull:
            self._stats["messages_dropped"] += 1
            logger.warning(
                f"{LOG_TAG_WS} Queue full for subscription {subscription_id}; dropping {message.channel}",
                extra={"subscription_id": subscription_id},
            )

    def _broadcast(self, message: Message) -> None:
        for queues in list(self._routes.values()):
            for subscription_id, queue in list(queues.items()):
                self._deliver(subscription_id, queue, message)
