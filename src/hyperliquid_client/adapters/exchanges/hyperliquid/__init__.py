"""
Hyperliquid adapter package (facade).
"""

from __future__ import annotations

from hyperliquid_client.adapters.exchanges.hyperliquid.exchange import Exchange
from hyperliquid_client.adapters.exchanges.hyperliquid.info import InfoClient
from hyperliquid_client.adapters.exchanges.hyperliquid.ws_client import RouterState, SubscriptionRouter

__all__ = ["Exchange", "InfoClient", "SubscriptionRouter", "RouterState"]
