"""
Unit tests for log masking and formatting.
"""

import json
import logging
from decimal import Decimal

import pytest

from hyperliquid_client.config.settings import LoggingSettings, Settings
from hyperliquid_client.observability.logging import (
    LOG_TAG_ACTION,
    ClientLogFormatter,
    JSONFormatter,
    SensitiveDataFilter,
    setup_logging,
)


def _record(msg: str, level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord("hyperliquid_client.test", level, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSensitiveDataFilter:
    def test_private_key_masked(self):
        record = _record("loaded private_key=0x" + "ab" * 32)

        assert SensitiveDataFilter().filter(record) is True
        assert "ab" * 32 not in record.getMessage()
        assert "***MASKED***" in record.getMessage()

    def test_plain_message_untouched(self):
        record = _record("order sent for ETH")

        SensitiveDataFilter().filter(record)

        assert record.getMessage() == "order sent for ETH"


class TestFormatters:
    def test_json_formatter_includes_extra_fields(self):
        record = _record(f"{LOG_TAG_ACTION} order", action_type="order", nonce=1_700_000_000_000, coin="ETH")

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == f"{LOG_TAG_ACTION} order"
        assert data["action_type"] == "order"
        assert data["nonce"] == 1_700_000_000_000
        assert data["coin"] == "ETH"
        assert "topic" not in data

    def test_json_formatter_encodes_decimal(self):
        record = _record("px", coin=Decimal("1.5"))

        assert json.loads(JSONFormatter().format(record))["coin"] == "1.5"

    def test_console_strips_action_tag(self):
        output = ClientLogFormatter().format(_record(f"{LOG_TAG_ACTION} order nonce=1"))

        assert "[ACTION]" in output
        assert output.count("[ACTION]") == 1
        assert "order nonce=1" in output


@pytest.fixture
def restore_package_logger():
    logger = logging.getLogger("hyperliquid_client")
    level = logger.level
    yield
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(level)


@pytest.mark.usefixtures("restore_package_logger")
class TestSetupLogging:
    def test_replaces_handlers(self):
        settings = Settings(logging=LoggingSettings(level="DEBUG"))

        setup_logging(settings)
        logger = setup_logging(settings)

        assert logger.name == "hyperliquid_client"
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].filters[0], SensitiveDataFilter)

    def test_json_file_handler(self, tmp_path):
        settings = Settings(logging=LoggingSettings(json_enabled=True, json_file=str(tmp_path / "out.jsonl")))

        logger = setup_logging(settings)

        assert len(logger.handlers) == 2
        assert isinstance(logger.handlers[1].formatter, JSONFormatter)
