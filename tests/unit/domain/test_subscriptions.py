"""
Unit tests for subscription topics and pushed-message decoding.

A subscription and the messages it produces must map to the same identifier.
"""

import json

import pytest

from hyperliquid_client.domain.errors import ProtocolError
from hyperliquid_client.domain.subscriptions import (
    ActiveAssetCtx,
    ActiveAssetData,
    AllMids,
    Bbo,
    Candle,
    L2Book,
    Notification,
    OrderUpdates,
    Pong,
    SubscriptionResponse,
    Trades,
    UserEvents,
    UserFills,
    UserFundings,
    UserNonFundingLedgerUpdates,
    WebData2,
    decode_message,
)

USER = "0x6fd45ee91654730b67c4e6e67804cdec31ecf38d"
USER_MIXED = "0x6FD45ee91654730b67c4e6e67804cdec31ecf38D"


def _frame(channel, data):
    return json.dumps({"channel": channel, "data": data})


ROUTES = [
    (AllMids(), _frame("allMids", {"mids": {"ETH": "2000"}})),
    (L2Book("ETH"), _frame("l2Book", {"coin": "ETH", "levels": [[], []], "time": 1})),
    (Trades("BTC"), _frame("trades", [{"coin": "BTC", "px": "1", "sz": "1"}])),
    (Candle("ETH", "1m"), _frame("candle", {"s": "ETH", "i": "1m", "o": "1"})),
    (Bbo("SOL"), _frame("bbo", {"coin": "SOL", "bbo": [None, None]})),
    (ActiveAssetCtx("ETH"), _frame("activeAssetCtx", {"coin": "ETH", "ctx": {}})),
    (ActiveAssetCtx("PURR/USDC"), _frame("activeSpotAssetCtx", {"coin": "PURR/USDC", "ctx": {}})),
    (OrderUpdates(USER), _frame("orderUpdates", [{"order": {}, "status": "open"}])),
    (UserEvents(USER), _frame("user", {"fills": []})),
    (UserFills(USER_MIXED), _frame("userFills", {"user": USER, "fills": []})),
    (UserFundings(USER), _frame("userFundings", {"user": USER_MIXED, "fundings": []})),
    (UserNonFundingLedgerUpdates(USER), _frame("userNonFundingLedgerUpdates", {"user": USER, "updates": []})),
    (Notification(USER), _frame("notification", {"notification": "hi"})),
    (WebData2(USER), _frame("webData2", {"user": USER})),
    (ActiveAssetData(USER, "ETH"), _frame("activeAssetData", {"user": USER, "coin": "ETH", "leverage": {}})),
]


class TestIdentifiers:
    @pytest.mark.parametrize(("subscription", "frame"), ROUTES)
    def test_message_routes_to_its_subscription(self, subscription, frame):
        message = decode_message(frame)

        assert message is not None
        assert message.identifier() == subscription.identifier

    def test_user_keyless_channels(self):
        assert OrderUpdates(USER).identifier == OrderUpdates("0x" + "11" * 20).identifier
        assert OrderUpdates.USER_KEYLESS
        assert not UserFills.USER_KEYLESS

    def test_to_wire(self):
        assert AllMids().to_wire() == {"type": "allMids"}
        assert Candle("ETH", "15m").to_wire() == {"type": "candle", "coin": "ETH", "interval": "15m"}
        assert ActiveAssetData(USER, "ETH").to_wire() == {"type": "activeAssetData", "user": USER, "coin": "ETH"}


class TestDecodeMessage:
    def test_control_frames(self):
        assert isinstance(decode_message('{"channel": "pong"}'), Pong)
        response = decode_message(_frame("subscriptionResponse", {"method": "subscribe"}))
        assert isinstance(response, SubscriptionResponse)
        assert response.identifier() is None

    def test_greeting_and_unknown_channel_ignored(self):
        assert decode_message("Websocket connection established.") is None
        assert decode_message(_frame("somethingNew", {})) is None

    def test_bytes_accepted(self):
        message = decode_message(_frame("allMids", {"mids": {}}).encode())

        assert message.identifier() == "allMids"

    def test_empty_trades_have_no_route(self):
        assert decode_message(_frame("trades", [])).identifier() is None

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"data": {}}'])
    def test_malformed_frames(self, raw):
        with pytest.raises(ProtocolError):
            decode_message(raw)

    def test_missing_scope_field(self):
        message = decode_message(_frame("l2Book", {"levels": []}))

        with pytest.raises(ProtocolError):
            message.identifier()
