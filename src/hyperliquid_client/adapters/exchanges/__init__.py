"""Exchange adapters: Hyperliquid implementation."""

from hyperliquid_client.adapters.exchanges.hyperliquid import Exchange, InfoClient, SubscriptionRouter

__all__ = ["Exchange", "InfoClient", "SubscriptionRouter"]
