"""
Client Error Taxonomy.

All client-side exceptions with clear categorization. None of these are
retried automatically: a retry would need a fresh nonce and a fresh signature.
"""

from __future__ import annotations

from typing import Any


class ClientError(Exception):
    """
    Base class for all client errors.

    Includes structured error info for logging and debugging.
    """

    error_code: str = "CLIENT_ERROR"

    def __init__(
        self,
        message: str,
        *,
        symbol: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.symbol = symbol
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for logging."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "symbol": self.symbol,
            "details": self.details,
        }


# =============================================================================
# Local Errors (raised before anything reaches the wire)
# =============================================================================


class EncodingError(ClientError):
    """Action could not be canonicalized (non-representable value)."""

    error_code = "ENCODING_ERROR"


class SigningError(ClientError):
    """Key unavailable or typed-data signing failed."""

    error_code = "SIGNING_ERROR"


class AssetNotFoundError(ClientError):
    """Symbol is not part of the exchange universe."""

    error_code = "ASSET_NOT_FOUND"

    def __init__(self, symbol: str, **kwargs: Any):
        super().__init__(f"Unknown asset: {symbol}", symbol=symbol, **kwargs)


class NumericParseError(ClientError):
    """Malformed numeric string returned by the exchange."""

    error_code = "NUMERIC_PARSE_ERROR"

    def __init__(self, value: Any, **kwargs: Any):
        super().__init__(f"Cannot parse number from {value!r}", **kwargs)
        self.value = value
        self.details["value"] = str(value)


class VaultAddressNotFoundError(ClientError):
    """Vault transfer requested without any vault address."""

    error_code = "VAULT_ADDRESS_NOT_FOUND"


class SubscriptionError(ClientError):
    """Subscription request rejected locally."""

    error_code = "SUBSCRIPTION_ERROR"


# =============================================================================
# Exchange/API Errors
# =============================================================================


class NetworkError(ClientError):
    """HTTP or WebSocket transport failure."""

    error_code = "NETWORK_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        if status_code is not None:
            self.details["status_code"] = status_code


class WebSocketError(NetworkError):
    """WebSocket connection error."""

    error_code = "WEBSOCKET_ERROR"


class ProtocolError(ClientError):
    """Exchange returned a structured rejection or an unexpected payload."""

    error_code = "PROTOCOL_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        payload: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.payload = payload
        if status_code is not None:
            self.details["status_code"] = status_code
        if payload is not None:
            self.details["payload"] = payload
