"""
Adapters: Concrete implementations of ports.

This layer contains all external integrations:
- HTTP transport (aiohttp)
- Hyperliquid exchange dispatcher, metadata client and WebSocket router
"""
