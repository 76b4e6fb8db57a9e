"""
Hyperliquid exchange client.

Signs and submits trading/transfer actions (`Exchange`) and fans pushed
WebSocket events out to subscriber queues (`SubscriptionRouter`).
"""

from hyperliquid_client.adapters.exchanges.hyperliquid import (
    Exchange,
    InfoClient,
    RouterState,
    SubscriptionRouter,
)
from hyperliquid_client.adapters.http import HttpClient
from hyperliquid_client.config.settings import (
    MAINNET_API_URL,
    TESTNET_API_URL,
    Settings,
    get_settings,
)
from hyperliquid_client.services.nonce import NonceManager

__version__ = "0.1.0"

__all__ = [
    "Exchange",
    "InfoClient",
    "SubscriptionRouter",
    "RouterState",
    "HttpClient",
    "NonceManager",
    "Settings",
    "get_settings",
    "MAINNET_API_URL",
    "TESTNET_API_URL",
]
