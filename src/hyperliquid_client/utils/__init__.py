"""Shared utility helpers."""

from hyperliquid_client.utils.decimals import parse_decimal
from hyperliquid_client.utils.json_parser import dumps as json_dumps
from hyperliquid_client.utils.json_parser import loads as json_loads

__all__ = ["parse_decimal", "json_loads", "json_dumps"]
