"""Observability: logging."""

from hyperliquid_client.observability.logging import (
    LOG_TAG_ACTION,
    LOG_TAG_WS,
    get_logger,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "LOG_TAG_ACTION",
    "LOG_TAG_WS",
]
