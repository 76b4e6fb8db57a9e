"""
Canonical Domain Models.

All prices and sizes use Decimal. These are the caller-facing request types
(symbolic: coin names, not asset indices) plus the signature, envelope and
response types that cross the wire.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from hyperliquid_client.domain.errors import EncodingError, ProtocolError

_CLOID_RE = re.compile(r"0x[0-9a-fA-F]{32}")

# =============================================================================
# ENUMS
# =============================================================================


class Tif(str, Enum):
    """Time in force for limit orders."""

    ALO = "Alo"  # Add liquidity only (post only)
    IOC = "Ioc"  # Immediate or cancel
    GTC = "Gtc"  # Good till cancelled


class Tpsl(str, Enum):
    """Trigger order kind."""

    TP = "tp"
    SL = "sl"


# =============================================================================
# ORDER REQUESTS
# =============================================================================


@dataclass(frozen=True, slots=True)
class Cloid:
    """128-bit client order id, rendered as 0x + 32 hex chars."""

    raw: str

    def __post_init__(self) -> None:
        value = self.raw
        if not (isinstance(value, str) and _CLOID_RE.fullmatch(value)):
            raise EncodingError(f"cloid must be 0x + 32 hex chars, got {value!r}")
        object.__setattr__(self, "raw", value.lower())

    @classmethod
    def from_int(cls, value: int) -> Cloid:
        if not 0 <= value < 2**128:
            raise EncodingError(f"cloid out of range: {value}")
        return cls(f"0x{value:032x}")

    @classmethod
    def from_uuid(cls, value: uuid.UUID) -> Cloid:
        return cls(f"0x{value.hex}")

    @classmethod
    def random(cls) -> Cloid:
        return cls.from_uuid(uuid.uuid4())

    def to_raw(self) -> str:
        return self.raw

    def __str__(self) -> str:
        return self.raw


@dataclass(frozen=True, slots=True)
class LimitOrderType:
    tif: Tif = Tif.GTC

    WIRE_KEY: ClassVar[str] = "limit"
    WIRE_FIELDS: ClassVar[tuple[tuple[str, str], ...]] = (("tif", "tif"),)


@dataclass(frozen=True, slots=True)
class TriggerOrderType:
    trigger_px: Decimal
    is_market: bool
    tpsl: Tpsl

    WIRE_KEY: ClassVar[str] = "trigger"
    WIRE_FIELDS: ClassVar[tuple[tuple[str, str], ...]] = (
        ("isMarket", "is_market"),
        ("triggerPx", "trigger_px"),
        ("tpsl", "tpsl"),
    )


OrderType = LimitOrderType | TriggerOrderType


@dataclass(frozen=True, slots=True)
class OrderRequest:
    """Order intent addressed by coin name."""

    coin: str
    is_buy: bool
    sz: Decimal
    limit_px: Decimal
    order_type: OrderType = field(default_factory=LimitOrderType)
    reduce_only: bool = False
    cloid: Cloid | None = None


@dataclass(frozen=True, slots=True)
class CancelRequest:
    coin: str
    oid: int


@dataclass(frozen=True, slots=True)
class CancelByCloidRequest:
    coin: str
    cloid: Cloid


@dataclass(frozen=True, slots=True)
class ModifyRequest:
    """Replace order `oid` (exchange id or cloid) with `order`."""

    oid: int | Cloid
    order: OrderRequest


@dataclass(frozen=True, slots=True)
class BuilderInfo:
    """Builder fee attached to orders. `fee` is in tenths of a basis point."""

    builder: str
    fee: int

    WIRE_FIELDS: ClassVar[tuple[tuple[str, str], ...]] = (("b", "builder"), ("f", "fee"))


# =============================================================================
# EXCHANGE METADATA
# =============================================================================


@dataclass(frozen=True, slots=True)
class AssetMeta:
    name: str
    sz_decimals: int
    max_leverage: int | None = None
    only_isolated: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AssetMeta:
        return cls(
            name=data["name"],
            sz_decimals=int(data["szDecimals"]),
            max_leverage=data.get("maxLeverage"),
            only_isolated=bool(data.get("onlyIsolated", False)),
        )


@dataclass(frozen=True, slots=True)
class Meta:
    """Perpetual universe; an asset's index in `universe` is its asset id."""

    universe: tuple[AssetMeta, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Meta:
        try:
            return cls(universe=tuple(AssetMeta.from_dict(a) for a in data["universe"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"Malformed meta payload: {e}", payload=data) from e


@dataclass(frozen=True, slots=True)
class SpotToken:
    name: str
    index: int
    sz_decimals: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SpotToken:
        return cls(name=data["name"], index=int(data["index"]), sz_decimals=int(data["szDecimals"]))


@dataclass(frozen=True, slots=True)
class SpotPair:
    name: str
    tokens: tuple[int, int]
    index: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SpotPair:
        base, quote = data["tokens"]
        return cls(name=data["name"], tokens=(int(base), int(quote)), index=int(data["index"]))


@dataclass(frozen=True, slots=True)
class SpotMeta:
    universe: tuple[SpotPair, ...]
    tokens: tuple[SpotToken, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SpotMeta:
        try:
            return cls(
                universe=tuple(SpotPair.from_dict(p) for p in data["universe"]),
                tokens=tuple(SpotToken.from_dict(t) for t in data["tokens"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"Malformed spotMeta payload: {e}", payload=data) from e


# =============================================================================
# SIGNATURE / ENVELOPE
# =============================================================================


@dataclass(frozen=True, slots=True)
class Signature:
    """Recoverable secp256k1 signature; `v` is recovery id + 27."""

    r: int
    s: int
    v: int

    @property
    def recovery_id(self) -> int:
        return self.v - 27

    def to_wire(self) -> dict[str, Any]:
        return {"r": hex(self.r), "s": hex(self.s), "v": self.v}


@dataclass(frozen=True, slots=True)
class SignedEnvelope:
    """Body of `POST /exchange`."""

    action: dict[str, Any]
    signature: Signature
    nonce: int
    vault_address: str | None = None

    def to_wire(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "action": self.action,
            "nonce": self.nonce,
            "signature": self.signature.to_wire(),
        }
        if self.vault_address is not None:
            payload["vaultAddress"] = self.vault_address
        return payload


# =============================================================================
# RESPONSES
# =============================================================================


class DataStatusKind(str, Enum):
    RESTING = "resting"
    FILLED = "filled"
    ERROR = "error"
    SUCCESS = "success"
    WAITING_FOR_FILL = "waitingForFill"
    WAITING_FOR_TRIGGER = "waitingForTrigger"


@dataclass(frozen=True, slots=True)
class ExchangeDataStatus:
    """One entry of `response.data.statuses`, kept verbatim in `raw`."""

    kind: DataStatusKind
    raw: Any
    oid: int | None = None
    cloid: str | None = None
    total_sz: str | None = None
    avg_px: str | None = None
    error: str | None = None

    @classmethod
    def from_wire(cls, item: Any) -> ExchangeDataStatus:
        if isinstance(item, str):
            try:
                return cls(kind=DataStatusKind(item), raw=item)
            except ValueError as e:
                raise ProtocolError(f"Unknown status: {item!r}", payload=item) from e
        if isinstance(item, dict) and len(item) == 1:
            key, body = next(iter(item.items()))
            if key == "error":
                return cls(kind=DataStatusKind.ERROR, raw=item, error=str(body))
            if key in ("resting", "filled") and isinstance(body, dict):
                return cls(
                    kind=DataStatusKind(key),
                    raw=item,
                    oid=body.get("oid"),
                    cloid=body.get("cloid"),
                    total_sz=body.get("totalSz"),
                    avg_px=body.get("avgPx"),
                )
        raise ProtocolError(f"Unknown status shape: {item!r}", payload=item)

    def to_wire(self) -> Any:
        return self.raw


@dataclass(frozen=True, slots=True)
class ExchangeResponseStatus:
    """
    Decoded `/exchange` response.

    `{"status": "ok", "response": {"type": ..., "data": ...}}` or
    `{"status": "err", "response": "<message>"}`. Rejections are kept verbatim.
    """

    ok: bool
    response_type: str | None = None
    data: Any = None
    statuses: tuple[ExchangeDataStatus, ...] = ()
    error: str | None = None

    @property
    def is_ok(self) -> bool:
        return self.ok

    @classmethod
    def from_dict(cls, payload: Any) -> ExchangeResponseStatus:
        if not isinstance(payload, dict) or "status" not in payload:
            raise ProtocolError(f"Unexpected exchange response: {payload!r}", payload=payload)

        status = payload["status"]
        response = payload.get("response")

        if status == "err":
            return cls(ok=False, error=response if isinstance(response, str) else repr(response))

        if status != "ok":
            raise ProtocolError(f"Unknown response status: {status!r}", payload=payload)

        if response is None:
            return cls(ok=True)
        if not isinstance(response, dict) or "type" not in response:
            raise ProtocolError(f"Unexpected ok response body: {response!r}", payload=payload)

        data = response.get("data")
        statuses: tuple[ExchangeDataStatus, ...] = ()
        if isinstance(data, dict) and isinstance(data.get("statuses"), list):
            statuses = tuple(ExchangeDataStatus.from_wire(s) for s in data["statuses"])

        return cls(ok=True, response_type=response["type"], data=data, statuses=statuses)

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"status": "err", "response": self.error}
        if self.response_type is None:
            return {"status": "ok"}
        response: dict[str, Any] = {"type": self.response_type}
        if self.data is not None:
            response["data"] = self.data
        return {"status": "ok", "response": response}

    def raise_for_status(self) -> ExchangeResponseStatus:
        """Raise ProtocolError for a rejected call, else return self."""
        if not self.ok:
            raise ProtocolError(self.error or "exchange rejected the action", payload=self.to_dict())
        return self
