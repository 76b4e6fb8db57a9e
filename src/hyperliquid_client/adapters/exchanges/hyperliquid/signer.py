"""
Action signing.

Two paths, chosen by the action's SigningScheme:

- L1 (orders, cancels, leverage, vault/class transfers, referrer): the
  ConnectionId from the codec is wrapped in a phantom `Agent{source,
  connectionId}` with source "a" on mainnet and "b" elsewhere, then signed as
  EIP-712 typed data under the fixed "Exchange" domain (chainId 1337).
- User-signed (usd/spot sends, withdrawals, class transfers, approvals): the
  action fields themselves are the EIP-712 message under the
  "HyperliquidSignTransaction" domain, chainId = the action's
  signatureChainId.

Failures raise SigningError and are never retried: a retry must go through
the dispatcher again with a fresh nonce.
"""

from __future__ import annotations

from typing import Any

from eth_account import Account
from eth_account.messages import encode_typed_data
from eth_account.signers.local import LocalAccount

from hyperliquid_client.adapters.exchanges.hyperliquid.codec import action_hash, action_to_wire
from hyperliquid_client.domain.actions import Action, SigningScheme, UserSignedAction
from hyperliquid_client.domain.errors import EncodingError, SigningError
from hyperliquid_client.domain.models import Signature

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
L1_CHAIN_ID = 1337

EIP712_DOMAIN_TYPES = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

AGENT_TYPES = [
    {"name": "source", "type": "string"},
    {"name": "connectionId", "type": "bytes32"},
]


def construct_phantom_agent(connection_id: bytes, is_mainnet: bool) -> dict[str, Any]:
    return {"source": "a" if is_mainnet else "b", "connectionId": connection_id}


def l1_payload(phantom_agent: dict[str, Any]) -> dict[str, Any]:
    return {
        "domain": {
            "chainId": L1_CHAIN_ID,
            "name": "Exchange",
            "verifyingContract": ZERO_ADDRESS,
            "version": "1",
        },
        "types": {
            "Agent": AGENT_TYPES,
            "EIP712Domain": EIP712_DOMAIN_TYPES,
        },
        "primaryType": "Agent",
        "message": phantom_agent,
    }


def user_signed_payload(action: UserSignedAction) -> dict[str, Any]:
    wire = action_to_wire(action)
    payload_types = [{"name": name, "type": type_} for name, type_ in action.PAYLOAD_TYPES]

    message: dict[str, Any] = {}
    for name, type_ in action.PAYLOAD_TYPES:
        if name in wire:
            message[name] = wire[name]
        elif type_ == "string":
            # Optional string fields are signed as "" and omitted on the wire
            message[name] = ""
        else:
            raise EncodingError(f"{action.action_type}: missing typed field {name}")

    try:
        chain_id = int(action.signature_chain_id, 16)
    except (TypeError, ValueError) as e:
        raise EncodingError(f"Invalid signatureChainId: {action.signature_chain_id!r}") from e

    return {
        "domain": {
            "name": "HyperliquidSignTransaction",
            "version": "1",
            "chainId": chain_id,
            "verifyingContract": ZERO_ADDRESS,
        },
        "types": {
            action.PRIMARY_TYPE: payload_types,
            "EIP712Domain": EIP712_DOMAIN_TYPES,
        },
        "primaryType": action.PRIMARY_TYPE,
        "message": message,
    }


def sign_inner(wallet: LocalAccount, data: dict[str, Any]) -> Signature:
    """Sign an EIP-712 payload; returns r, s and v = recovery id + 27."""
    if wallet is None:
        raise SigningError("No wallet available for signing")
    try:
        structured = encode_typed_data(full_message=data)
        signed = wallet.sign_message(structured)
    except EncodingError:
        raise
    except Exception as e:
        raise SigningError(f"Typed-data signing failed: {e}") from e
    return Signature(r=int(signed.r), s=int(signed.s), v=int(signed.v))


def sign_l1_action(
    wallet: LocalAccount,
    action: Action,
    vault_address: str | None,
    nonce: int,
    is_mainnet: bool,
) -> Signature:
    connection_id = action_hash(action, nonce, vault_address)
    phantom_agent = construct_phantom_agent(connection_id, is_mainnet)
    return sign_inner(wallet, l1_payload(phantom_agent))


def sign_user_signed_action(wallet: LocalAccount, action: UserSignedAction) -> Signature:
    return sign_inner(wallet, user_signed_payload(action))


def sign_action(
    wallet: LocalAccount,
    action: Action,
    *,
    nonce: int,
    vault_address: str | None,
    is_mainnet: bool,
) -> Signature:
    """Dispatch on the action's signing scheme."""
    if action.signing is SigningScheme.L1:
        return sign_l1_action(wallet, action, vault_address, nonce, is_mainnet)
    if action.signing is SigningScheme.USER_SIGNED:
        return sign_user_signed_action(wallet, action)  # type: ignore[arg-type]
    raise SigningError(f"Unknown signing scheme for {action.action_type}")


def recover_signer(data: dict[str, Any], signature: Signature) -> str:
    """Address that produced `signature` over the EIP-712 payload `data`."""
    structured = encode_typed_data(full_message=data)
    return Account.recover_message(structured, vrs=(signature.v, signature.r, signature.s))


def recover_l1_signer(
    action: Action,
    signature: Signature,
    *,
    nonce: int,
    vault_address: str | None,
    is_mainnet: bool,
) -> str:
    phantom_agent = construct_phantom_agent(action_hash(action, nonce, vault_address), is_mainnet)
    return recover_signer(l1_payload(phantom_agent), signature)


def recover_user_signed_signer(action: UserSignedAction, signature: Signature) -> str:
    return recover_signer(user_signed_payload(action), signature)
