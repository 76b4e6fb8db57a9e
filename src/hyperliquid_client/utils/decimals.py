"""
Decimal helpers.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from hyperliquid_client.domain.errors import NumericParseError


def parse_decimal(value: Any, *, symbol: str | None = None) -> Decimal:
    """Strictly parse an exchange-provided number.

    Exchange payloads carry prices and sizes as strings ("1234.5"). Anything
    that is not a finite number raises NumericParseError.
    """
    if isinstance(value, bool) or value is None:
        raise NumericParseError(value, symbol=symbol)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise NumericParseError(value, symbol=symbol) from e
    if result.is_nan() or result.is_infinite():
        raise NumericParseError(value, symbol=symbol)
    return result
