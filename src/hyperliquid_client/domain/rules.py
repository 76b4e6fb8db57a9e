"""
Price and size rules.

The exchange rejects prices with more than 5 significant figures or more
decimals than `max_decimals - sz_decimals` (6 for perps, 8 for spot), and
sizes with more decimals than the asset's `sz_decimals`. There is no other
local validation, so every helper-generated price goes through these.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

PRICE_SIG_FIGS = 5
PERP_MAX_DECIMALS = 6
SPOT_MAX_DECIMALS = 8
SPOT_ASSET_OFFSET = 10_000


def is_spot_asset(asset: int) -> bool:
    return asset >= SPOT_ASSET_OFFSET


def max_decimals_for_asset(asset: int) -> int:
    return SPOT_MAX_DECIMALS if is_spot_asset(asset) else PERP_MAX_DECIMALS


def price_decimals(asset: int, sz_decimals: int) -> int:
    return max(max_decimals_for_asset(asset) - sz_decimals, 0)


def round_to_decimals(value: Decimal, decimals: int) -> Decimal:
    """Round half away from zero to a fixed number of decimal places."""
    return value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


def round_to_significant_and_decimal(value: Decimal, sig_figs: int, max_decimals: int) -> Decimal:
    """
    Round to `sig_figs` significant figures, then to `max_decimals` places.

    Idempotent: rounding an already-rounded value returns it unchanged.
    """
    if value.is_zero():
        return round_to_decimals(abs(value), max_decimals)

    abs_value = abs(value)
    magnitude = abs_value.adjusted()
    exponent = magnitude - sig_figs + 1
    rounded = abs_value.quantize(Decimal(1).scaleb(exponent), rounding=ROUND_HALF_UP)
    # 99999.5 -> 100000 gains a digit; requantize at the new magnitude
    if rounded.adjusted() != magnitude:
        rounded = rounded.quantize(Decimal(1).scaleb(rounded.adjusted() - sig_figs + 1), rounding=ROUND_HALF_UP)

    return round_to_decimals(rounded, max_decimals).copy_sign(value)


def slippage_price(
    mid: Decimal,
    is_buy: bool,
    slippage: Decimal,
    *,
    asset: int,
    sz_decimals: int,
    sig_figs: int = PRICE_SIG_FIGS,
) -> Decimal:
    """`mid * (1 ± slippage)` rounded to the asset's price constraints."""
    factor = Decimal(1) + slippage if is_buy else Decimal(1) - slippage
    px = mid * factor
    return round_to_significant_and_decimal(px, sig_figs, price_decimals(asset, sz_decimals))
