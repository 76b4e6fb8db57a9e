"""
Canonical action encoding.

The exchange rebuilds the action hash server-side from the JSON it receives,
so the msgpack bytes produced here must match its serialization byte for
byte: key order from each type's WIRE_FIELDS, `"type"` first, absent
optionals omitted, numbers as canonical decimal strings. Any drift shows up
only as a signature the exchange attributes to some other address.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

import msgpack
from eth_utils import keccak

from hyperliquid_client.domain.actions import Action
from hyperliquid_client.domain.errors import EncodingError
from hyperliquid_client.domain.models import Cloid

WIRE_DECIMALS = 8
U64_MAX = 2**64 - 1
I64_MIN = -(2**63)


def decimal_to_wire(value: Decimal | int | float | str) -> str:
    """
    Render a price/size as the exchange's canonical decimal string.

    At most 8 decimals, trailing zeros stripped, `-0` becomes `0`. Values that
    would need rounding raise EncodingError instead of being truncated.
    """
    if isinstance(value, bool):
        raise EncodingError(f"Expected a number, got {value!r}")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise EncodingError(f"Not a number: {value!r}") from e
    if not number.is_finite():
        raise EncodingError(f"Not a finite number: {value!r}")

    quantum = Decimal(1).scaleb(-WIRE_DECIMALS)
    try:
        rounded = number.quantize(quantum)
    except InvalidOperation as e:
        raise EncodingError(f"Number out of range: {value!r}") from e
    if rounded != number:
        raise EncodingError(f"{value!r} has more than {WIRE_DECIMALS} decimals")

    text = f"{rounded.normalize():f}"
    return "0" if text == "-0" else text


def address_to_bytes(address: str) -> bytes:
    raw = address[2:] if address.startswith(("0x", "0X")) else address
    try:
        data = bytes.fromhex(raw)
    except ValueError as e:
        raise EncodingError(f"Invalid address: {address!r}") from e
    if len(data) != 20:
        raise EncodingError(f"Address must be 20 bytes: {address!r}")
    return data


def _wire_value(value: Any, path: str) -> Any:
    # bool is an int subclass, check it first
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if not I64_MIN <= value <= U64_MAX:
            raise EncodingError(f"{path}: integer out of 64-bit range: {value}")
        return value
    if isinstance(value, Decimal):
        try:
            return decimal_to_wire(value)
        except EncodingError as e:
            raise EncodingError(f"{path}: {e.message}") from e
    if isinstance(value, float):
        raise EncodingError(f"{path}: floats are not accepted, use Decimal ({value!r})")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, str):
        return value
    if isinstance(value, Cloid):
        return value.to_raw()
    if isinstance(value, list | tuple):
        return [_wire_value(item, f"{path}[{i}]") for i, item in enumerate(value)]
    if hasattr(type(value), "WIRE_FIELDS"):
        body = _wire_fields(value, path)
        wire_key = getattr(type(value), "WIRE_KEY", None)
        return {wire_key: body} if wire_key else body
    raise EncodingError(f"{path}: cannot encode {type(value).__name__}")


def _wire_fields(obj: Any, path: str) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for wire_name, attr in type(obj).WIRE_FIELDS:
        value = getattr(obj, attr)
        if value is None:
            continue
        result[wire_name] = _wire_value(value, f"{path}.{wire_name}")
    return result


def action_to_wire(action: Action) -> dict[str, Any]:
    """The JSON-ready wire form: `{"type": ..., <fields in table order>}`."""
    wire: dict[str, Any] = {"type": action.action_type}
    wire.update(_wire_fields(action, action.action_type))
    return wire


def encode_canonical(action: Action) -> bytes:
    """Deterministic msgpack encoding of the action's wire form."""
    wire = action_to_wire(action)
    try:
        return msgpack.packb(wire, use_bin_type=True)
    except (TypeError, ValueError, OverflowError) as e:
        raise EncodingError(f"msgpack encoding failed for {action.action_type}: {e}") from e


def action_hash(action: Action, nonce: int, vault_address: str | None) -> bytes:
    """
    ConnectionId: keccak(canonical ‖ nonce as 8 big-endian bytes ‖ vault flag).

    The vault flag is a single 0x00, or 0x01 followed by the 20 address bytes.
    """
    if isinstance(nonce, bool) or not isinstance(nonce, int) or not 0 <= nonce <= U64_MAX:
        raise EncodingError(f"Nonce must be an unsigned 64-bit integer, got {nonce!r}")

    data = encode_canonical(action)
    data += nonce.to_bytes(8, "big")
    if vault_address is None:
        data += b"\x00"
    else:
        data += b"\x01" + address_to_bytes(vault_address)
    return keccak(data)
