"""
Structured logging setup.

Provides both text and JSON logging with sensitive data masking.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from hyperliquid_client.config.settings import Settings

# =============================================================================
# Constants
# =============================================================================

# Log tags for special message handling
LOG_TAG_ACTION = "[ACTION]"
LOG_TAG_WS = "[WS]"

__all__ = [
    "setup_logging",
    "get_logger",
    "SensitiveDataFilter",
    "JSONFormatter",
    "ClientLogFormatter",
    "LOG_TAG_ACTION",
    "LOG_TAG_WS",
]


class SensitiveDataFilter(logging.Filter):
    """Filter that masks private keys and secrets in log messages."""

    SENSITIVE_PATTERNS = [
        (
            re.compile(r"(private[_-]?key['\"]?\s*[:=]\s*['\"]?)(0x)?([a-fA-F0-9]{64})(['\"]?)", re.IGNORECASE),
            r"\1***MASKED***\4",
        ),
        (re.compile(r"(secret['\"]?\s*[:=]\s*['\"]?)([a-zA-Z0-9]{16,})(['\"]?)", re.IGNORECASE), r"\1***MASKED***\3"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        original_msg = str(record.getMessage())
        masked_msg = original_msg

        for pattern, replacement in self.SENSITIVE_PATTERNS:
            masked_msg = pattern.sub(replacement, masked_msg)

        if masked_msg != original_msg:
            record.msg = masked_msg
            record.args = ()

        return True


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder for Decimal and other types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, bytes):
            return "0x" + obj.hex()
        if hasattr(obj, "__dict__"):
            return str(obj)
        return super().default(obj)


class JSONFormatter(logging.Formatter):
    """Format log records as JSON lines."""

    EXTRA_FIELDS = ("action_type", "nonce", "coin", "subscription_id", "topic")

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in self.EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, cls=DecimalEncoder)


def setup_logging(settings: Settings | None = None) -> logging.Logger:
    """
    Set up logging with a console handler and optional file handlers.

    Returns the package logger.
    """
    if settings is None:
        from hyperliquid_client.config.settings import get_settings

        settings = get_settings()

    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    root_logger = logging.getLogger("hyperliquid_client")
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    sensitive_filter = SensitiveDataFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ClientLogFormatter())
    console_handler.addFilter(sensitive_filter)
    root_logger.addHandler(console_handler)

    if settings.logging.file_enabled:
        logs_dir = Path("logs")
        logs_dir.mkdir(exist_ok=True)

        timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
        file_handler = logging.FileHandler(logs_dir / f"hyperliquid_client_{timestamp}.log", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        file_handler.addFilter(sensitive_filter)
        root_logger.addHandler(file_handler)

    if settings.logging.json_enabled:
        json_path = Path(settings.logging.json_file)
        json_path.parent.mkdir(parents=True, exist_ok=True)

        max_bytes = int(settings.logging.json_max_bytes or 0)
        backup_count = int(settings.logging.json_backup_count or 0)
        if max_bytes > 0 and backup_count > 0:
            json_handler: logging.Handler = RotatingFileHandler(
                json_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        else:
            json_handler = logging.FileHandler(json_path, encoding="utf-8")
        json_handler.setLevel(level)
        json_handler.setFormatter(JSONFormatter())
        json_handler.addFilter(sensitive_filter)
        root_logger.addHandler(json_handler)

    # Reduce noise from verbose libraries
    for lib in ["websockets", "asyncio", "aiohttp"]:
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)


class ClientLogFormatter(logging.Formatter):
    """
    Console formatter with colors by level.

    Special tags:
    - [ACTION]: Cyan (signed action submitted)
    - [WS]: Blue (subscription router lifecycle)
    """

    # ANSI Colors
    RESET = "\033[0m"
    GREY = "\033[90m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BOLD_RED = "\033[1;91m"
    CYAN = "\033[96m"
    BLUE = "\033[94m"

    def __init__(self):
        super().__init__(datefmt="%H:%M:%S")
        self._formatters: dict[str, logging.Formatter] = {
            "DEBUG": logging.Formatter(f"{self.GREY}%(asctime)s [DEBUG] %(message)s{self.RESET}", datefmt="%H:%M:%S"),
            "INFO": logging.Formatter(f"{self.GREEN}%(asctime)s [INFO]{self.RESET} %(message)s", datefmt="%H:%M:%S"),
            "WARNING": logging.Formatter(
                f"{self.YELLOW}%(asctime)s [WARN] %(message)s{self.RESET}", datefmt="%H:%M:%S"
            ),
            "ERROR": logging.Formatter(f"{self.RED}%(asctime)s [ERROR] %(message)s{self.RESET}", datefmt="%H:%M:%S"),
            "CRITICAL": logging.Formatter(
                f"{self.BOLD_RED}%(asctime)s [CRITICAL] %(message)s{self.RESET}", datefmt="%H:%M:%S"
            ),
            "ACTION": logging.Formatter(f"{self.CYAN}%(asctime)s [ACTION]{self.RESET} %(message)s", datefmt="%H:%M:%S"),
            "WS": logging.Formatter(f"{self.BLUE}%(asctime)s [WS]{self.RESET} %(message)s", datefmt="%H:%M:%S"),
        }

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()

        if LOG_TAG_ACTION in msg:
            record.msg = msg.replace(LOG_TAG_ACTION, "").strip()
            record.args = ()
            return self._formatters["ACTION"].format(record)
        elif LOG_TAG_WS in msg:
            record.msg = msg.replace(LOG_TAG_WS, "").strip()
            record.args = ()
            return self._formatters["WS"].format(record)
        else:
            formatter_key = record.levelname if record.levelname in self._formatters else "INFO"
            return self._formatters[formatter_key].format(record)
