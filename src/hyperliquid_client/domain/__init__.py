"""
Domain Layer: Requests, actions, subscriptions, rules and errors.

This layer has NO transport or signing dependencies. All types here are
canonical and used throughout the client.
"""

from hyperliquid_client.domain.errors import (
    AssetNotFoundError,
    ClientError,
    EncodingError,
    NetworkError,
    NumericParseError,
    ProtocolError,
    SigningError,
    SubscriptionError,
    VaultAddressNotFoundError,
    WebSocketError,
)
from hyperliquid_client.domain.models import (
    BuilderInfo,
    CancelByCloidRequest,
    CancelRequest,
    Cloid,
    ExchangeDataStatus,
    ExchangeResponseStatus,
    LimitOrderType,
    ModifyRequest,
    OrderRequest,
    Signature,
    SignedEnvelope,
    Tif,
    Tpsl,
    TriggerOrderType,
)

__all__ = [
    # Errors
    "ClientError",
    "EncodingError",
    "SigningError",
    "AssetNotFoundError",
    "NumericParseError",
    "NetworkError",
    "WebSocketError",
    "ProtocolError",
    "VaultAddressNotFoundError",
    "SubscriptionError",
    # Models
    "Tif",
    "Tpsl",
    "Cloid",
    "LimitOrderType",
    "TriggerOrderType",
    "OrderRequest",
    "CancelRequest",
    "CancelByCloidRequest",
    "ModifyRequest",
    "BuilderInfo",
    "Signature",
    "SignedEnvelope",
    "ExchangeDataStatus",
    "ExchangeResponseStatus",
]
