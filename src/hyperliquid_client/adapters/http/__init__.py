"""HTTP transport."""

from hyperliquid_client.adapters.http.client import HttpClient

__all__ = ["HttpClient"]
