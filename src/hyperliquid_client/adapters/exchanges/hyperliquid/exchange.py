"""
Exchange dispatcher.

Every mutating call runs the same strictly ordered pipeline:

    resolve symbols -> next nonce -> build action -> hash/sign -> envelope -> POST /exchange -> decode

Symbol resolution happens first so an unknown coin fails before any nonce,
signing or network work. The nonce is taken exactly once per call and is the
value both signed and sent. Bulk calls produce one action with one nonce and
one signature; the exchange accepts or rejects the batch as a unit.
"""

from __future__ import annotations

import secrets
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount

from hyperliquid_client.adapters.exchanges.hyperliquid.codec import action_to_wire, decimal_to_wire
from hyperliquid_client.adapters.exchanges.hyperliquid.info import InfoClient
from hyperliquid_client.adapters.exchanges.hyperliquid.signer import sign_action
from hyperliquid_client.adapters.http.client import HttpClient
from hyperliquid_client.config.settings import Settings, TradingSettings, is_mainnet
from hyperliquid_client.domain.actions import (
    Action,
    ApproveAgent,
    ApproveBuilderFee,
    BulkCancel,
    BulkCancelByCloid,
    BulkModify,
    BulkOrder,
    CancelByCloidWire,
    CancelWire,
    ClassTransfer,
    ClassTransferBody,
    ModifyWire,
    OrderWire,
    SetReferrer,
    SigningScheme,
    SpotSend,
    UpdateIsolatedMargin,
    UpdateLeverage,
    UsdClassTransfer,
    UsdSend,
    VaultTransfer,
    Withdraw,
    hyperliquid_chain,
)
from hyperliquid_client.domain.errors import (
    AssetNotFoundError,
    SigningError,
    VaultAddressNotFoundError,
)
from hyperliquid_client.domain.models import (
    BuilderInfo,
    CancelByCloidRequest,
    CancelRequest,
    Cloid,
    ExchangeResponseStatus,
    LimitOrderType,
    Meta,
    ModifyRequest,
    OrderRequest,
    SignedEnvelope,
    SpotMeta,
    Tif,
)
from hyperliquid_client.domain.rules import (
    SPOT_ASSET_OFFSET,
    round_to_decimals,
    slippage_price,
)
from hyperliquid_client.observability.logging import LOG_TAG_ACTION, get_logger
from hyperliquid_client.ports.metadata import MetadataPort
from hyperliquid_client.ports.transport import TransportPort
from hyperliquid_client.services.nonce import NonceManager
from hyperliquid_client.utils import parse_decimal

logger = get_logger(__name__)

MICRO = Decimal("1000000")


def build_asset_maps(meta: Meta, spot_meta: SpotMeta | None) -> tuple[dict[str, int], dict[str, int]]:
    """
    Symbol -> asset id and symbol -> size decimals.

    Perps use their universe position. Spot pairs use 10000 + pair index and
    are reachable by the pair name ("@107", "PURR/USDC") and by "BASE/QUOTE".
    """
    coin_to_asset: dict[str, int] = {}
    sz_decimals: dict[str, int] = {}

    for index, asset in enumerate(meta.universe):
        coin_to_asset[asset.name] = index
        sz_decimals[asset.name] = asset.sz_decimals

    if spot_meta is not None:
        tokens = {token.index: token for token in spot_meta.tokens}
        for pair in spot_meta.universe:
            base = tokens.get(pair.tokens[0])
            quote = tokens.get(pair.tokens[1])
            if base is None or quote is None:
                continue
            asset_id = SPOT_ASSET_OFFSET + pair.index
            for name in (pair.name, f"{base.name}/{quote.name}"):
                coin_to_asset[name] = asset_id
                sz_decimals[name] = base.sz_decimals

    return coin_to_asset, sz_decimals


def _to_micro(amount: Decimal) -> int:
    return int((amount * MICRO).to_integral_value(rounding=ROUND_HALF_UP))


def _amount_to_wire(amount: Decimal | str) -> str:
    return amount if isinstance(amount, str) else decimal_to_wire(amount)


class Exchange:
    """
    Signs and submits actions for one account.

    `wallet` signs by default; every mutating method also accepts `wallet=`
    to sign with another key (e.g. an approved agent acting for the account).
    `vault_address` scopes L1 actions to a vault or subaccount.
    """

    def __init__(
        self,
        wallet: LocalAccount,
        transport: TransportPort,
        metadata: MetadataPort,
        meta: Meta,
        spot_meta: SpotMeta | None = None,
        *,
        vault_address: str | None = None,
        account_address: str | None = None,
        nonce_manager: NonceManager | None = None,
        trading: TradingSettings | None = None,
    ):
        self.wallet = wallet
        self.transport = transport
        self.metadata = metadata
        self.vault_address = vault_address or None
        self.account_address = account_address or None
        self.nonce_manager = nonce_manager or NonceManager()
        self.trading = trading or TradingSettings()

        coin_to_asset, sz_decimals = build_asset_maps(meta, spot_meta)
        self.coin_to_asset: Mapping[str, int] = MappingProxyType(coin_to_asset)
        self._sz_decimals: Mapping[str, int] = MappingProxyType(sz_decimals)

    @classmethod
    async def create(
        cls,
        wallet: LocalAccount,
        transport: TransportPort,
        metadata: MetadataPort | None = None,
        **kwargs: Any,
    ) -> Exchange:
        """Build the asset map from live `/info` metadata."""
        metadata = metadata or InfoClient(transport)
        meta = await metadata.meta()
        spot_meta = await metadata.spot_meta()
        return cls(wallet, transport, metadata, meta, spot_meta, **kwargs)

    @classmethod
    async def from_settings(cls, settings: Settings) -> Exchange:
        errors = settings.exchange.validate_for_signing()
        if errors:
            raise SigningError("Invalid exchange settings: " + "; ".join(errors), details={"errors": errors})

        wallet = Account.from_key(settings.exchange.private_key)
        transport = HttpClient(settings.exchange.base_url, settings.http)
        metadata = InfoClient(transport, retries=settings.http.info_max_retries)
        return await cls.create(
            wallet,
            transport,
            metadata,
            vault_address=settings.exchange.vault_address or None,
            account_address=settings.exchange.account_address or None,
            trading=settings.trading,
        )

    async def close(self) -> None:
        await self.transport.close()

    # =========================================================================
    # Symbols
    # =========================================================================

    @property
    def base_url(self) -> str:
        return self.transport.base_url

    @property
    def is_mainnet(self) -> bool:
        return is_mainnet(self.transport.base_url)

    def asset_index(self, coin: str) -> int:
        try:
            return self.coin_to_asset[coin]
        except KeyError:
            raise AssetNotFoundError(coin) from None

    def sz_decimals(self, coin: str) -> int:
        try:
            return self._sz_decimals[coin]
        except KeyError:
            raise AssetNotFoundError(coin) from None

    def _order_wire(self, order: OrderRequest) -> OrderWire:
        return OrderWire(
            asset=self.asset_index(order.coin),
            is_buy=order.is_buy,
            limit_px=order.limit_px,
            sz=order.sz,
            reduce_only=order.reduce_only,
            order_type=order.order_type,
            cloid=order.cloid,
        )

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _submit(
        self,
        action: Action,
        nonce: int,
        wallet: LocalAccount | None,
        *,
        vault_address: str | None = None,
    ) -> ExchangeResponseStatus:
        signer = wallet or self.wallet
        # User-signed actions are never vault-scoped
        if action.signing is SigningScheme.USER_SIGNED:
            vault_address = None

        signature = sign_action(
            signer,
            action,
            nonce=nonce,
            vault_address=vault_address,
            is_mainnet=self.is_mainnet,
        )
        envelope = SignedEnvelope(
            action=action_to_wire(action),
            signature=signature,
            nonce=nonce,
            vault_address=vault_address,
        )

        logger.info(
            f"{LOG_TAG_ACTION} {action.action_type} nonce={nonce} signer={signer.address}"
            + (f" vault={vault_address}" if vault_address else ""),
            extra={"action_type": action.action_type, "nonce": nonce},
        )
        response = await self.transport.post("/exchange", envelope.to_wire())
        status = ExchangeResponseStatus.from_dict(response)
        if not status.is_ok:
            logger.warning(f"{action.action_type} rejected: {status.error}")
        return status

    async def _submit_l1(self, action: Action, nonce: int, wallet: LocalAccount | None) -> ExchangeResponseStatus:
        return await self._submit(action, nonce, wallet, vault_address=self.vault_address)

    # =========================================================================
    # Orders
    # =========================================================================

    async def order(
        self,
        order: OrderRequest,
        *,
        builder: BuilderInfo | None = None,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        return await self.bulk_orders([order], builder=builder, wallet=wallet)

    async def bulk_orders(
        self,
        orders: Iterable[OrderRequest],
        *,
        builder: BuilderInfo | None = None,
        grouping: str = "na",
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        wires = tuple(self._order_wire(o) for o in orders)
        if builder is not None:
            builder = BuilderInfo(builder=builder.builder.lower(), fee=builder.fee)

        nonce = self.nonce_manager.next_nonce()
        action = BulkOrder(orders=wires, grouping=grouping, builder=builder)
        return await self._submit_l1(action, nonce, wallet)

    async def slippage_price(
        self,
        coin: str,
        is_buy: bool,
        slippage: Decimal | None = None,
        px: Decimal | None = None,
    ) -> tuple[Decimal, int]:
        """
        Aggressive limit price for a market-style order, and the size decimals.

        Metadata and mids are fetched for this call only.
        """
        asset = self.asset_index(coin)
        slippage = self.trading.default_slippage if slippage is None else slippage

        if asset >= SPOT_ASSET_OFFSET:
            spot_meta = await self.metadata.spot_meta()
            _, fresh_decimals = build_asset_maps(Meta(universe=()), spot_meta)
        else:
            _, fresh_decimals = build_asset_maps(await self.metadata.meta(), None)
        if coin not in fresh_decimals:
            raise AssetNotFoundError(coin)
        sz_decimals = fresh_decimals[coin]

        if px is None:
            mids = await self.metadata.all_mids()
            raw = mids.get(coin)
            if raw is None and asset >= SPOT_ASSET_OFFSET:
                raw = mids.get(f"@{asset - SPOT_ASSET_OFFSET}")
            if raw is None:
                raise AssetNotFoundError(coin, details={"reason": "no mid price"})
            px = parse_decimal(raw, symbol=coin)

        logger.debug(f"{coin} px before slippage: {px}")
        price = slippage_price(
            px,
            is_buy,
            slippage,
            asset=asset,
            sz_decimals=sz_decimals,
            sig_figs=self.trading.price_significant_figures,
        )
        logger.debug(f"{coin} px after slippage: {price}")
        return price, sz_decimals

    async def market_open(
        self,
        coin: str,
        is_buy: bool,
        sz: Decimal,
        *,
        px: Decimal | None = None,
        slippage: Decimal | None = None,
        cloid: Cloid | None = None,
        builder: BuilderInfo | None = None,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        """Immediate-or-cancel limit order priced `slippage` through the mid."""
        limit_px, sz_decimals = await self.slippage_price(coin, is_buy, slippage, px)
        order = OrderRequest(
            coin=coin,
            is_buy=is_buy,
            sz=round_to_decimals(sz, sz_decimals),
            limit_px=limit_px,
            order_type=LimitOrderType(tif=Tif.IOC),
            reduce_only=False,
            cloid=cloid,
        )
        return await self.order(order, builder=builder, wallet=wallet)

    async def market_close(
        self,
        coin: str,
        *,
        sz: Decimal | None = None,
        px: Decimal | None = None,
        slippage: Decimal | None = None,
        cloid: Cloid | None = None,
        builder: BuilderInfo | None = None,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        """Reduce-only IOC order against the open position (whole position by default)."""
        self.asset_index(coin)
        signer = wallet or self.wallet
        address = self.vault_address or self.account_address or signer.address

        state = await self.metadata.user_state(address)
        position = None
        for entry in state.get("assetPositions", []):
            pos = entry.get("position", {}) if isinstance(entry, dict) else {}
            if pos.get("coin") == coin:
                position = pos
                break
        if position is None:
            raise AssetNotFoundError(coin, details={"reason": "no open position", "user": address})

        szi = parse_decimal(position.get("szi"), symbol=coin)
        is_buy = szi < 0
        limit_px, sz_decimals = await self.slippage_price(coin, is_buy, slippage, px)
        close_sz = round_to_decimals(sz if sz is not None else abs(szi), sz_decimals)

        order = OrderRequest(
            coin=coin,
            is_buy=is_buy,
            sz=close_sz,
            limit_px=limit_px,
            order_type=LimitOrderType(tif=Tif.IOC),
            reduce_only=True,
            cloid=cloid,
        )
        return await self.order(order, builder=builder, wallet=signer)

    # =========================================================================
    # Cancels / Modifies
    # =========================================================================

    async def cancel(self, cancel: CancelRequest, *, wallet: LocalAccount | None = None) -> ExchangeResponseStatus:
        return await self.bulk_cancel([cancel], wallet=wallet)

    async def bulk_cancel(
        self,
        cancels: Iterable[CancelRequest],
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        wires = tuple(CancelWire(asset=self.asset_index(c.coin), oid=c.oid) for c in cancels)
        nonce = self.nonce_manager.next_nonce()
        return await self._submit_l1(BulkCancel(cancels=wires), nonce, wallet)

    async def cancel_by_cloid(
        self,
        cancel: CancelByCloidRequest,
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        return await self.bulk_cancel_by_cloid([cancel], wallet=wallet)

    async def bulk_cancel_by_cloid(
        self,
        cancels: Iterable[CancelByCloidRequest],
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        wires = tuple(CancelByCloidWire(asset=self.asset_index(c.coin), cloid=c.cloid) for c in cancels)
        nonce = self.nonce_manager.next_nonce()
        return await self._submit_l1(BulkCancelByCloid(cancels=wires), nonce, wallet)

    async def modify_order(
        self,
        modify: ModifyRequest,
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        return await self.bulk_modify_orders([modify], wallet=wallet)

    async def bulk_modify_orders(
        self,
        modifies: Iterable[ModifyRequest],
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        wires = tuple(ModifyWire(oid=m.oid, order=self._order_wire(m.order)) for m in modifies)
        nonce = self.nonce_manager.next_nonce()
        return await self._submit_l1(BulkModify(modifies=wires), nonce, wallet)

    # =========================================================================
    # Margin
    # =========================================================================

    async def update_leverage(
        self,
        leverage: int,
        coin: str,
        is_cross: bool = True,
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        asset = self.asset_index(coin)
        nonce = self.nonce_manager.next_nonce()
        action = UpdateLeverage(asset=asset, is_cross=is_cross, leverage=int(leverage))
        return await self._submit_l1(action, nonce, wallet)

    async def update_isolated_margin(
        self,
        amount: Decimal,
        coin: str,
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        """Add (positive) or remove (negative) isolated margin, in USD."""
        asset = self.asset_index(coin)
        nonce = self.nonce_manager.next_nonce()
        action = UpdateIsolatedMargin(asset=asset, is_buy=True, ntli=_to_micro(amount))
        return await self._submit_l1(action, nonce, wallet)

    # =========================================================================
    # Transfers
    # =========================================================================

    async def usd_transfer(
        self,
        amount: Decimal | str,
        destination: str,
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        nonce = self.nonce_manager.next_nonce()
        action = UsdSend(
            hyperliquid_chain=hyperliquid_chain(self.is_mainnet),
            destination=destination,
            amount=_amount_to_wire(amount),
            time=nonce,
        )
        return await self._submit(action, nonce, wallet)

    async def spot_transfer(
        self,
        amount: Decimal | str,
        destination: str,
        token: str,
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        """`token` is "NAME:0x<token id>" as listed in spotMeta."""
        nonce = self.nonce_manager.next_nonce()
        action = SpotSend(
            hyperliquid_chain=hyperliquid_chain(self.is_mainnet),
            destination=destination,
            token=token,
            amount=_amount_to_wire(amount),
            time=nonce,
        )
        return await self._submit(action, nonce, wallet)

    async def withdraw_from_bridge(
        self,
        amount: Decimal | str,
        destination: str,
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        nonce = self.nonce_manager.next_nonce()
        action = Withdraw(
            hyperliquid_chain=hyperliquid_chain(self.is_mainnet),
            destination=destination,
            amount=_amount_to_wire(amount),
            time=nonce,
        )
        return await self._submit(action, nonce, wallet)

    async def usd_class_transfer(
        self,
        amount: Decimal | str,
        to_perp: bool,
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        """Move USDC between the spot and perp balances (user-signed)."""
        wire_amount = _amount_to_wire(amount)
        if self.vault_address:
            wire_amount += f" subaccount:{self.vault_address}"
        nonce = self.nonce_manager.next_nonce()
        action = UsdClassTransfer(
            hyperliquid_chain=hyperliquid_chain(self.is_mainnet),
            amount=wire_amount,
            to_perp=to_perp,
            nonce=nonce,
        )
        return await self._submit(action, nonce, wallet)

    async def class_transfer(
        self,
        usdc: Decimal,
        to_perp: bool,
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        """Move USDC between spot and perp balances (L1, vault-scopable)."""
        nonce = self.nonce_manager.next_nonce()
        action = ClassTransfer(class_transfer=ClassTransferBody(usdc=_to_micro(usdc), to_perp=to_perp))
        return await self._submit_l1(action, nonce, wallet)

    async def vault_transfer(
        self,
        is_deposit: bool,
        usd: Decimal,
        vault_address: str | None = None,
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        """Deposit to or withdraw from a vault; `usd` in USD."""
        target = vault_address or self.vault_address
        if not target:
            raise VaultAddressNotFoundError("vault_transfer needs a vault address")
        nonce = self.nonce_manager.next_nonce()
        action = VaultTransfer(vault_address=target, is_deposit=is_deposit, usd=_to_micro(usd))
        # The vault is named inside the action; the envelope itself is unscoped.
        return await self._submit(action, nonce, wallet, vault_address=None)

    # =========================================================================
    # Approvals / Account
    # =========================================================================

    async def approve_builder_fee(
        self,
        builder: str,
        max_fee_rate: str,
        *,
        wallet: LocalAccount | None = None,
    ) -> ExchangeResponseStatus:
        """`max_fee_rate` is a percentage string such as "0.001%"."""
        nonce = self.nonce_manager.next_nonce()
        action = ApproveBuilderFee(
            hyperliquid_chain=hyperliquid_chain(self.is_mainnet),
            max_fee_rate=max_fee_rate,
            builder=builder.lower(),
            nonce=nonce,
        )
        return await self._submit(action, nonce, wallet)

    async def approve_agent(
        self,
        name: str | None = None,
        *,
        wallet: LocalAccount | None = None,
    ) -> tuple[str, ExchangeResponseStatus]:
        """
        Create a fresh agent key and approve it to trade for this account.

        Returns the agent's private key (hex) and the exchange response. The
        key is not stored anywhere.
        """
        agent_key = "0x" + secrets.token_hex(32)
        agent = Account.from_key(agent_key)
        nonce = self.nonce_manager.next_nonce()
        action = ApproveAgent(
            hyperliquid_chain=hyperliquid_chain(self.is_mainnet),
            agent_address=agent.address,
            agent_name=name,
            nonce=nonce,
        )
        return agent_key, await self._submit(action, nonce, wallet)

    async def set_referrer(self, code: str, *, wallet: LocalAccount | None = None) -> ExchangeResponseStatus:
        nonce = self.nonce_manager.next_nonce()
        return await self._submit_l1(SetReferrer(code=code), nonce, wallet)
