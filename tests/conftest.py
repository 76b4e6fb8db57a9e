from decimal import Decimal

import pytest
from eth_account import Account

from hyperliquid_client.domain.models import Meta, SpotMeta
from hyperliquid_client.services.nonce import NonceManager
from tests.mocks.fakes import (
    FIXED_NOW_MS,
    META_PAYLOAD,
    SPOT_META_PAYLOAD,
    TEST_PRIVATE_KEY,
    FakeConnector,
    FakeMetadata,
    FakeTransport,
)


@pytest.fixture
def wallet():
    return Account.from_key(TEST_PRIVATE_KEY)


@pytest.fixture
def other_wallet():
    return Account.from_key("0x" + "22" * 32)


@pytest.fixture
def nonce_manager():
    return NonceManager(clock=lambda: FIXED_NOW_MS)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def metadata():
    return FakeMetadata(mids={"ETH": "2000", "BTC": "65432.1", "PURR/USDC": "0.123456789"})


@pytest.fixture
def meta():
    return Meta.from_dict(META_PAYLOAD)


@pytest.fixture
def spot_meta():
    return SpotMeta.from_dict(SPOT_META_PAYLOAD)


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def decimal_prices():
    return [Decimal("1050"), Decimal("123.456789"), Decimal("0.000123456"), Decimal("99999.5"), Decimal("-42.42424")]
