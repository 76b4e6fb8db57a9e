"""
Ports: Abstract interfaces for external dependencies.

This follows the Ports & Adapters (Hexagonal) architecture pattern.
The dispatcher depends only on these interfaces, not on concrete implementations.
"""

from hyperliquid_client.ports.metadata import MetadataPort
from hyperliquid_client.ports.transport import TransportPort

__all__ = ["MetadataPort", "TransportPort"]
