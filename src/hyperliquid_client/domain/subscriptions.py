"""
WebSocket subscription topics and pushed messages.

A Subscription names a topic + scope; its `identifier` is the routing key.
Inbound frames are decoded into Message variants whose `identifier()` is
derived from the channel and the data's coin/user, so a pushed message and
the subscription that asked for it land on the same key.

Some channels (`user`, `orderUpdates`, `notification`) do not echo the user
back, so their identifiers carry no user and only one user per connection
can be subscribed to them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar

from hyperliquid_client.domain.errors import ProtocolError
from hyperliquid_client.utils import json_loads

WireTable = tuple[tuple[str, str], ...]

CONNECTION_ESTABLISHED = "Websocket connection established."


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================


class Subscription:
    """Base of the closed subscription union."""

    __slots__ = ()

    subscription_type: ClassVar[str]
    WIRE_FIELDS: ClassVar[WireTable]
    # True when pushed messages carry no user and the identifier omits it
    USER_KEYLESS: ClassVar[bool] = False

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"type": self.subscription_type}
        for wire_name, attr in self.WIRE_FIELDS:
            wire[wire_name] = getattr(self, attr)
        return wire

    @property
    def identifier(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class AllMids(Subscription):
    subscription_type = "allMids"
    WIRE_FIELDS = ()

    @property
    def identifier(self) -> str:
        return "allMids"


@dataclass(frozen=True, slots=True)
class L2Book(Subscription):
    coin: str

    subscription_type = "l2Book"
    WIRE_FIELDS = (("coin", "coin"),)

    @property
    def identifier(self) -> str:
        return f"l2Book:{self.coin.lower()}"


@dataclass(frozen=True, slots=True)
class Trades(Subscription):
    coin: str

    subscription_type = "trades"
    WIRE_FIELDS = (("coin", "coin"),)

    @property
    def identifier(self) -> str:
        return f"trades:{self.coin.lower()}"


@dataclass(frozen=True, slots=True)
class Candle(Subscription):
    coin: str
    interval: str

    subscription_type = "candle"
    WIRE_FIELDS = (("coin", "coin"), ("interval", "interval"))

    @property
    def identifier(self) -> str:
        return f"candle:{self.coin.lower()},{self.interval}"


@dataclass(frozen=True, slots=True)
class Bbo(Subscription):
    coin: str

    subscription_type = "bbo"
    WIRE_FIELDS = (("coin", "coin"),)

    @property
    def identifier(self) -> str:
        return f"bbo:{self.coin.lower()}"


@dataclass(frozen=True, slots=True)
class ActiveAssetCtx(Subscription):
    coin: str

    subscription_type = "activeAssetCtx"
    WIRE_FIELDS = (("coin", "coin"),)

    @property
    def identifier(self) -> str:
        return f"activeAssetCtx:{self.coin.lower()}"


@dataclass(frozen=True, slots=True)
class OrderUpdates(Subscription):
    user: str

    subscription_type = "orderUpdates"
    WIRE_FIELDS = (("user", "user"),)
    USER_KEYLESS = True

    @property
    def identifier(self) -> str:
        return "orderUpdates"


@dataclass(frozen=True, slots=True)
class UserEvents(Subscription):
    user: str

    subscription_type = "userEvents"
    WIRE_FIELDS = (("user", "user"),)
    USER_KEYLESS = True

    @property
    def identifier(self) -> str:
        return "userEvents"


@dataclass(frozen=True, slots=True)
class UserFills(Subscription):
    user: str

    subscription_type = "userFills"
    WIRE_FIELDS = (("user", "user"),)

    @property
    def identifier(self) -> str:
        return f"userFills:{self.user.lower()}"


@dataclass(frozen=True, slots=True)
class UserFundings(Subscription):
    user: str

    subscription_type = "userFundings"
    WIRE_FIELDS = (("user", "user"),)

    @property
    def identifier(self) -> str:
        return f"userFundings:{self.user.lower()}"


@dataclass(frozen=True, slots=True)
class UserNonFundingLedgerUpdates(Subscription):
    user: str

    subscription_type = "userNonFundingLedgerUpdates"
    WIRE_FIELDS = (("user", "user"),)

    @property
    def identifier(self) -> str:
        return f"userNonFundingLedgerUpdates:{self.user.lower()}"


@dataclass(frozen=True, slots=True)
class Notification(Subscription):
    user: str

    subscription_type = "notification"
    WIRE_FIELDS = (("user", "user"),)
    USER_KEYLESS = True

    @property
    def identifier(self) -> str:
        return "notification"


@dataclass(frozen=True, slots=True)
class WebData2(Subscription):
    user: str

    subscription_type = "webData2"
    WIRE_FIELDS = (("user", "user"),)

    @property
    def identifier(self) -> str:
        return f"webData2:{self.user.lower()}"


@dataclass(frozen=True, slots=True)
class ActiveAssetData(Subscription):
    user: str
    coin: str

    subscription_type = "activeAssetData"
    WIRE_FIELDS = (("user", "user"), ("coin", "coin"))

    @property
    def identifier(self) -> str:
        return f"activeAssetData:{self.coin.lower()},{self.user.lower()}"


# =============================================================================
# MESSAGES
# =============================================================================


def _field(data: Any, key: str) -> str:
    if not isinstance(data, dict) or not isinstance(data.get(key), str):
        raise ProtocolError(f"Pushed message is missing {key!r}", payload=data)
    return data[key].lower()


@dataclass(frozen=True, slots=True)
class Message:
    """A decoded pushed frame; `data` is the frame's payload, untouched."""

    data: Any = None

    channel: ClassVar[str] = ""

    def identifier(self) -> str | None:
        """Routing key, or None for frames that are never routed."""
        return None


@dataclass(frozen=True, slots=True)
class NoData(Message):
    """Sent to every subscriber when the connection is lost."""

    channel = "noData"


@dataclass(frozen=True, slots=True)
class Pong(Message):
    channel = "pong"


@dataclass(frozen=True, slots=True)
class SubscriptionResponse(Message):
    channel = "subscriptionResponse"


@dataclass(frozen=True, slots=True)
class ErrorMessage(Message):
    channel = "error"


@dataclass(frozen=True, slots=True)
class AllMidsMessage(Message):
    channel = "allMids"

    def identifier(self) -> str | None:
        return "allMids"


@dataclass(frozen=True, slots=True)
class L2BookMessage(Message):
    channel = "l2Book"

    def identifier(self) -> str | None:
        return f"l2Book:{_field(self.data, 'coin')}"


@dataclass(frozen=True, slots=True)
class TradesMessage(Message):
    channel = "trades"

    def identifier(self) -> str | None:
        if not isinstance(self.data, list):
            raise ProtocolError("trades payload is not a list", payload=self.data)
        if not self.data:
            return None
        return f"trades:{_field(self.data[0], 'coin')}"


@dataclass(frozen=True, slots=True)
class CandleMessage(Message):
    channel = "candle"

    def identifier(self) -> str | None:
        # Candles carry the coin as "s" and the interval as "i"
        interval = self.data.get("i") if isinstance(self.data, dict) else None
        if not isinstance(interval, str):
            raise ProtocolError("candle payload is missing 'i'", payload=self.data)
        return f"candle:{_field(self.data, 's')},{interval}"


@dataclass(frozen=True, slots=True)
class BboMessage(Message):
    channel = "bbo"

    def identifier(self) -> str | None:
        return f"bbo:{_field(self.data, 'coin')}"


@dataclass(frozen=True, slots=True)
class ActiveAssetCtxMessage(Message):
    channel = "activeAssetCtx"

    def identifier(self) -> str | None:
        return f"activeAssetCtx:{_field(self.data, 'coin')}"


@dataclass(frozen=True, slots=True)
class ActiveSpotAssetCtxMessage(ActiveAssetCtxMessage):
    """Spot flavour of activeAssetCtx; routed to the same topic."""

    channel = "activeSpotAssetCtx"


@dataclass(frozen=True, slots=True)
class OrderUpdatesMessage(Message):
    channel = "orderUpdates"

    def identifier(self) -> str | None:
        return "orderUpdates"


@dataclass(frozen=True, slots=True)
class UserMessage(Message):
    channel = "user"

    def identifier(self) -> str | None:
        return "userEvents"


@dataclass(frozen=True, slots=True)
class UserFillsMessage(Message):
    channel = "userFills"

    def identifier(self) -> str | None:
        return f"userFills:{_field(self.data, 'user')}"


@dataclass(frozen=True, slots=True)
class UserFundingsMessage(Message):
    channel = "userFundings"

    def identifier(self) -> str | None:
        return f"userFundings:{_field(self.data, 'user')}"


@dataclass(frozen=True, slots=True)
class UserNonFundingLedgerUpdatesMessage(Message):
    channel = "userNonFundingLedgerUpdates"

    def identifier(self) -> str | None:
        return f"userNonFundingLedgerUpdates:{_field(self.data, 'user')}"


@dataclass(frozen=True, slots=True)
class NotificationMessage(Message):
    channel = "notification"

    def identifier(self) -> str | None:
        return "notification"


@dataclass(frozen=True, slots=True)
class WebData2Message(Message):
    channel = "webData2"

    def identifier(self) -> str | None:
        return f"webData2:{_field(self.data, 'user')}"


@dataclass(frozen=True, slots=True)
class ActiveAssetDataMessage(Message):
    channel = "activeAssetData"

    def identifier(self) -> str | None:
        return f"activeAssetData:{_field(self.data, 'coin')},{_field(self.data, 'user')}"


MESSAGE_TYPES: dict[str, type[Message]] = {
    cls.channel: cls
    for cls in (
        Pong,
        SubscriptionResponse,
        ErrorMessage,
        AllMidsMessage,
        L2BookMessage,
        TradesMessage,
        CandleMessage,
        BboMessage,
        ActiveAssetCtxMessage,
        ActiveSpotAssetCtxMessage,
        OrderUpdatesMessage,
        UserMessage,
        UserFillsMessage,
        UserFundingsMessage,
        UserNonFundingLedgerUpdatesMessage,
        NotificationMessage,
        WebData2Message,
        ActiveAssetDataMessage,
    )
}


def decode_message(raw: str | bytes) -> Message | None:
    """
    Decode one inbound frame.

    Returns None for the server's plain-text greeting and for channels this
    client does not know. Frames that are not JSON objects raise ProtocolError.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if raw == CONNECTION_ESTABLISHED:
        return None
    try:
        frame = json_loads(raw)
    except ValueError as e:
        raise ProtocolError(f"Non-JSON frame: {raw[:200]}", payload=raw) from e
    if not isinstance(frame, dict) or not isinstance(frame.get("channel"), str):
        raise ProtocolError(f"Frame without channel: {raw[:200]}", payload=frame)

    message_type = MESSAGE_TYPES.get(frame["channel"])
    if message_type is None:
        return None
    return message_type(data=frame.get("data"))
