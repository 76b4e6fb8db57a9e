"""
Signed action variants.

Each action is a frozen dataclass carrying only protocol fields. The wire form
is NOT derived from declaration order: every type lists its fields in
`WIRE_FIELDS` as `(wire_name, attribute)` pairs, in the exact order the
exchange hashes them. The `"type"` tag always comes first. Fields holding
`None` are omitted from the wire form.

Assets here are already resolved to integer asset ids; coin names live in the
request models (`domain.models`).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import ClassVar

from hyperliquid_client.domain.models import BuilderInfo, Cloid, OrderType

WireTable = tuple[tuple[str, str], ...]

# signatureChainId per action family (Arbitrum Sepolia / Arbitrum One)
USER_SIGNED_CHAIN_ID = "0x66eee"
USD_CLASS_TRANSFER_CHAIN_ID = "0xa4b1"


class SigningScheme(str, Enum):
    """How an action is authenticated."""

    L1 = "l1"  # phantom Agent over the action hash
    USER_SIGNED = "user_signed"  # EIP-712 over the action fields


# =============================================================================
# Nested wire types
# =============================================================================


@dataclass(frozen=True, slots=True)
class OrderWire:
    asset: int
    is_buy: bool
    limit_px: Decimal
    sz: Decimal
    reduce_only: bool
    order_type: OrderType
    cloid: Cloid | None = None

    WIRE_FIELDS: ClassVar[WireTable] = (
        ("a", "asset"),
        ("b", "is_buy"),
        ("p", "limit_px"),
        ("s", "sz"),
        ("r", "reduce_only"),
        ("t", "order_type"),
        ("c", "cloid"),
    )


@dataclass(frozen=True, slots=True)
class CancelWire:
    asset: int
    oid: int

    WIRE_FIELDS: ClassVar[WireTable] = (("a", "asset"), ("o", "oid"))


@dataclass(frozen=True, slots=True)
class CancelByCloidWire:
    asset: int
    cloid: Cloid

    WIRE_FIELDS: ClassVar[WireTable] = (("asset", "asset"), ("cloid", "cloid"))


@dataclass(frozen=True, slots=True)
class ModifyWire:
    oid: int | Cloid
    order: OrderWire

    WIRE_FIELDS: ClassVar[WireTable] = (("oid", "oid"), ("order", "order"))


@dataclass(frozen=True, slots=True)
class ClassTransferBody:
    usdc: int  # micro-USDC
    to_perp: bool

    WIRE_FIELDS: ClassVar[WireTable] = (("usdc", "usdc"), ("toPerp", "to_perp"))


# =============================================================================
# Actions
# =============================================================================


class Action:
    """Base of the closed action union."""

    __slots__ = ()

    action_type: ClassVar[str]
    signing: ClassVar[SigningScheme]
    WIRE_FIELDS: ClassVar[WireTable]


class L1Action(Action):
    __slots__ = ()

    signing = SigningScheme.L1


class UserSignedAction(Action):
    """Action signed directly as EIP-712 typed data."""

    __slots__ = ()

    signing = SigningScheme.USER_SIGNED
    PRIMARY_TYPE: ClassVar[str]
    PAYLOAD_TYPES: ClassVar[tuple[tuple[str, str], ...]]


@dataclass(frozen=True, slots=True)
class BulkOrder(L1Action):
    orders: tuple[OrderWire, ...]
    grouping: str = "na"
    builder: BuilderInfo | None = None

    action_type = "order"
    WIRE_FIELDS = (("orders", "orders"), ("grouping", "grouping"), ("builder", "builder"))


@dataclass(frozen=True, slots=True)
class BulkCancel(L1Action):
    cancels: tuple[CancelWire, ...]

    action_type = "cancel"
    WIRE_FIELDS = (("cancels", "cancels"),)


@dataclass(frozen=True, slots=True)
class BulkCancelByCloid(L1Action):
    cancels: tuple[CancelByCloidWire, ...]

    action_type = "cancelByCloid"
    WIRE_FIELDS = (("cancels", "cancels"),)


@dataclass(frozen=True, slots=True)
class BulkModify(L1Action):
    modifies: tuple[ModifyWire, ...]

    action_type = "batchModify"
    WIRE_FIELDS = (("modifies", "modifies"),)


@dataclass(frozen=True, slots=True)
class UpdateLeverage(L1Action):
    asset: int
    is_cross: bool
    leverage: int

    action_type = "updateLeverage"
    WIRE_FIELDS = (("asset", "asset"), ("isCross", "is_cross"), ("leverage", "leverage"))


@dataclass(frozen=True, slots=True)
class UpdateIsolatedMargin(L1Action):
    asset: int
    is_buy: bool
    ntli: int  # signed micro-USD

    action_type = "updateIsolatedMargin"
    WIRE_FIELDS = (("asset", "asset"), ("isBuy", "is_buy"), ("ntli", "ntli"))


@dataclass(frozen=True, slots=True)
class VaultTransfer(L1Action):
    vault_address: str
    is_deposit: bool
    usd: int  # micro-USD

    action_type = "vaultTransfer"
    WIRE_FIELDS = (("vaultAddress", "vault_address"), ("isDeposit", "is_deposit"), ("usd", "usd"))


@dataclass(frozen=True, slots=True)
class ClassTransfer(L1Action):
    class_transfer: ClassTransferBody

    action_type = "spotUser"
    WIRE_FIELDS = (("classTransfer", "class_transfer"),)


@dataclass(frozen=True, slots=True)
class SetReferrer(L1Action):
    code: str

    action_type = "setReferrer"
    WIRE_FIELDS = (("code", "code"),)


@dataclass(frozen=True, slots=True)
class UsdSend(UserSignedAction):
    hyperliquid_chain: str
    destination: str
    amount: str
    time: int
    signature_chain_id: str = USER_SIGNED_CHAIN_ID

    action_type = "usdSend"
    WIRE_FIELDS = (
        ("signatureChainId", "signature_chain_id"),
        ("hyperliquidChain", "hyperliquid_chain"),
        ("destination", "destination"),
        ("amount", "amount"),
        ("time", "time"),
    )
    PRIMARY_TYPE = "HyperliquidTransaction:UsdSend"
    PAYLOAD_TYPES = (
        ("hyperliquidChain", "string"),
        ("destination", "string"),
        ("amount", "string"),
        ("time", "uint64"),
    )


@dataclass(frozen=True, slots=True)
class SpotSend(UserSignedAction):
    hyperliquid_chain: str
    destination: str
    token: str
    amount: str
    time: int
    signature_chain_id: str = USER_SIGNED_CHAIN_ID

    action_type = "spotSend"
    WIRE_FIELDS = (
        ("signatureChainId", "signature_chain_id"),
        ("hyperliquidChain", "hyperliquid_chain"),
        ("destination", "destination"),
        ("token", "token"),
        ("amount", "amount"),
        ("time", "time"),
    )
    PRIMARY_TYPE = "HyperliquidTransaction:SpotSend"
    PAYLOAD_TYPES = (
        ("hyperliquidChain", "string"),
        ("destination", "string"),
        ("token", "string"),
        ("amount", "string"),
        ("time", "uint64"),
    )


@dataclass(frozen=True, slots=True)
class Withdraw(UserSignedAction):
    hyperliquid_chain: str
    destination: str
    amount: str
    time: int
    signature_chain_id: str = USER_SIGNED_CHAIN_ID

    action_type = "withdraw3"
    WIRE_FIELDS = (
        ("signatureChainId", "signature_chain_id"),
        ("hyperliquidChain", "hyperliquid_chain"),
        ("destination", "destination"),
        ("amount", "amount"),
        ("time", "time"),
    )
    PRIMARY_TYPE = "HyperliquidTransaction:Withdraw"
    PAYLOAD_TYPES = (
        ("hyperliquidChain", "string"),
        ("destination", "string"),
        ("amount", "string"),
        ("time", "uint64"),
    )


@dataclass(frozen=True, slots=True)
class UsdClassTransfer(UserSignedAction):
    hyperliquid_chain: str
    amount: str
    to_perp: bool
    nonce: int
    signature_chain_id: str = USD_CLASS_TRANSFER_CHAIN_ID

    action_type = "usdClassTransfer"
    WIRE_FIELDS = (
        ("hyperliquidChain", "hyperliquid_chain"),
        ("signatureChainId", "signature_chain_id"),
        ("amount", "amount"),
        ("toPerp", "to_perp"),
        ("nonce", "nonce"),
    )
    PRIMARY_TYPE = "HyperliquidTransaction:UsdClassTransfer"
    PAYLOAD_TYPES = (
        ("hyperliquidChain", "string"),
        ("amount", "string"),
        ("toPerp", "bool"),
        ("nonce", "uint64"),
    )


@dataclass(frozen=True, slots=True)
class ApproveBuilderFee(UserSignedAction):
    hyperliquid_chain: str
    max_fee_rate: str
    builder: str
    nonce: int
    signature_chain_id: str = USER_SIGNED_CHAIN_ID

    action_type = "approveBuilderFee"
    WIRE_FIELDS = (
        ("signatureChainId", "signature_chain_id"),
        ("hyperliquidChain", "hyperliquid_chain"),
        ("builder", "builder"),
        ("maxFeeRate", "max_fee_rate"),
        ("nonce", "nonce"),
    )
    PRIMARY_TYPE = "HyperliquidTransaction:ApproveBuilderFee"
    PAYLOAD_TYPES = (
        ("hyperliquidChain", "string"),
        ("maxFeeRate", "string"),
        ("builder", "address"),
        ("nonce", "uint64"),
    )


@dataclass(frozen=True, slots=True)
class ApproveAgent(UserSignedAction):
    hyperliquid_chain: str
    agent_address: str
    nonce: int
    # Unnamed agents are signed with "" and sent without the field.
    agent_name: str | None = None
    signature_chain_id: str = USER_SIGNED_CHAIN_ID

    action_type = "approveAgent"
    WIRE_FIELDS = (
        ("signatureChainId", "signature_chain_id"),
        ("hyperliquidChain", "hyperliquid_chain"),
        ("agentAddress", "agent_address"),
        ("agentName", "agent_name"),
        ("nonce", "nonce"),
    )
    PRIMARY_TYPE = "HyperliquidTransaction:ApproveAgent"
    PAYLOAD_TYPES = (
        ("hyperliquidChain", "string"),
        ("agentAddress", "address"),
        ("agentName", "string"),
        ("nonce", "uint64"),
    )


ACTION_TYPES: dict[str, type[Action]] = {
    cls.action_type: cls
    for cls in (
        BulkOrder,
        BulkCancel,
        BulkCancelByCloid,
        BulkModify,
        UpdateLeverage,
        UpdateIsolatedMargin,
        VaultTransfer,
        ClassTransfer,
        SetReferrer,
        UsdSend,
        SpotSend,
        Withdraw,
        UsdClassTransfer,
        ApproveBuilderFee,
        ApproveAgent,
    )
}


def hyperliquid_chain(is_mainnet: bool) -> str:
    return "Mainnet" if is_mainnet else "Testnet"
