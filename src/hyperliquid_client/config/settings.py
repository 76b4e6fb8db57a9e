"""
Settings management using Pydantic.

Loads configuration from YAML files and environment variables.
Environment variables override YAML values.
"""

from __future__ import annotations

import logging
import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

logger = logging.getLogger(__name__)

MAINNET_API_URL = "https://api.hyperliquid.xyz"
TESTNET_API_URL = "https://api.hyperliquid-testnet.xyz"


class ExchangeSettings(BaseModel):
    """Settings for the exchange account."""

    base_url: str = MAINNET_API_URL
    private_key: str = Field(default="", min_length=0, description="Private key for signing actions")
    # Master account when signing with an agent wallet; defaults to the signer address.
    account_address: str = ""
    vault_address: str = ""

    def validate_for_signing(self) -> list[str]:
        """
        Validate that the settings can produce signed actions.

        Returns a list of validation errors. Empty list means validation passed.
        """
        errors = []

        if not self.base_url:
            errors.append("exchange.base_url is required")

        if not self.private_key:
            errors.append("exchange.private_key is required for signing")
        elif not _looks_like_hex(self.private_key, 32):
            errors.append("exchange.private_key must be a 32-byte hex string")

        for name in ("account_address", "vault_address"):
            value = getattr(self, name)
            if value and not _looks_like_hex(value, 20):
                errors.append(f"exchange.{name} must be a 20-byte hex address")

        return errors


class HttpSettings(BaseModel):
    """HTTP transport settings."""

    timeout_seconds: Decimal = Decimal("30.0")
    connect_timeout_seconds: Decimal = Decimal("10.0")
    # Only read-only /info requests are retried. /exchange never is.
    info_max_retries: int = 2
    retry_base_delay_seconds: Decimal = Decimal("0.5")


class TradingSettings(BaseModel):
    """Order helpers."""

    default_slippage: Decimal = Decimal("0.05")  # 5% for market_open / market_close
    price_significant_figures: int = 5


class WebSocketSettings(BaseModel):
    """WebSocket connection settings."""

    ping_interval: Decimal = Decimal("50.0")
    connect_timeout: Decimal = Decimal("10.0")

    # Connection-loss policy. False: every subscription ends with the connection.
    reconnect_enabled: bool = True
    reconnect_delay_initial: Decimal = Decimal("1.0")
    reconnect_delay_max: Decimal = Decimal("60.0")
    # Jitter factor for reconnect delays (prevents thundering herd)
    reconnect_jitter_factor: Decimal = Decimal("0.15")
    # Circuit breaker: stop reconnecting after N failures for cooldown period
    circuit_breaker_threshold: int = 10
    circuit_breaker_cooldown_seconds: Decimal = Decimal("60.0")


class LoggingSettings(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    file_enabled: bool = False
    json_enabled: bool = False
    json_file: str = "logs/hyperliquid_client.jsonl"
    # Set to 0 to disable rotation.
    json_max_bytes: int = 50_000_000
    json_backup_count: int = 3


class Settings(BaseSettings):
    """
    Main settings container.

    Loads from YAML file based on environment, then applies env var overrides.
    """

    env: str = Field(default="development", alias="HL_ENV")

    exchange: ExchangeSettings = Field(default_factory=ExchangeSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    trading: TradingSettings = Field(default_factory=TradingSettings)
    websocket: WebSocketSettings = Field(default_factory=WebSocketSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = {
        "env_prefix": "HL_",
        "env_nested_delimiter": "__",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs; HL_ variables (with __ nesting) must win over them.
        return env_settings, dotenv_settings, file_secret_settings, init_settings

    @property
    def is_mainnet(self) -> bool:
        return is_mainnet(self.exchange.base_url)

    @property
    def ws_url(self) -> str:
        return ws_url_from_base(self.exchange.base_url)

    def validate_for_signing(self) -> list[str]:
        """
        Validate that all required settings are present for signed actions.

        Call during startup to fail fast with clear error messages instead of
        cryptic signing errors on the first order.
        """
        errors = []
        errors.extend(self.exchange.validate_for_signing())

        if not (Decimal("0") <= self.trading.default_slippage < Decimal("1")):
            errors.append("trading.default_slippage must be in [0, 1)")

        if self.websocket.ping_interval <= 0:
            errors.append("websocket.ping_interval must be positive")

        return errors

    @classmethod
    def from_yaml(cls, env: str = "development", path: Path | None = None) -> Settings:
        """
        Load settings from config.yaml (or `<env>.yaml` merged over `default.yaml`).

        Environment variables win over file values.
        """
        config_dir = Path(__file__).parent
        yaml_file = path or config_dir / "config.yaml"

        data: dict = {}
        if yaml_file.exists():
            with open(yaml_file, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        else:
            default_file = config_dir / "default.yaml"
            env_file = config_dir / f"{env}.yaml"

            if default_file.exists():
                with open(default_file, encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}

            if env_file.exists():
                with open(env_file, encoding="utf-8") as f:
                    env_data = yaml.safe_load(f) or {}
                data = _deep_merge(data, env_data)

        # Credentials from env
        if "exchange" not in data or data["exchange"] is None:
            data["exchange"] = {}
        for env_name, key in (
            ("HL_PRIVATE_KEY", "private_key"),
            ("HL_ACCOUNT_ADDRESS", "account_address"),
            ("HL_VAULT_ADDRESS", "vault_address"),
            ("HL_BASE_URL", "base_url"),
        ):
            if os.getenv(env_name):
                data["exchange"][key] = os.getenv(env_name)

        data["env"] = env

        # Warn about unknown keys before creating model (helps catch typos in config.yaml)
        _warn_unknown_keys(data, cls)

        return cls(**data)


def is_mainnet(base_url: str) -> bool:
    """Mainnet is derived from the API URL only, so signatures cannot cross networks."""
    return base_url.rstrip("/") == MAINNET_API_URL


def ws_url_from_base(base_url: str) -> str:
    """`https://host` -> `wss://host/ws`."""
    url = base_url.rstrip("/")
    if url.startswith("https://"):
        return "wss://" + url[len("https://"):] + "/ws"
    if url.startswith("http://"):
        return "ws://" + url[len("http://"):] + "/ws"
    return url + "/ws"


def _looks_like_hex(value: str, n_bytes: int) -> bool:
    raw = value[2:] if value.startswith(("0x", "0X")) else value
    if len(raw) != n_bytes * 2:
        return False
    try:
        bytes.fromhex(raw)
    except ValueError:
        return False
    return True


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts, override wins on conflicts."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _collect_all_keys(data: dict, prefix: str = "") -> set[str]:
    """
    Recursively collect all keys from a nested dict.

    Returns keys in dot-notation format (e.g., "websocket.ping_interval").
    """
    keys = set()
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else key
        keys.add(full_key)
        if isinstance(value, dict):
            keys.update(_collect_all_keys(value, full_key))
    return keys


def _collect_model_fields(model_class: type[BaseModel], prefix: str = "") -> set[str]:
    """
    Recursively collect all field names from a Pydantic model.

    Returns field names in dot-notation format.
    """
    fields = set()
    for field_name, field_info in model_class.model_fields.items():
        full_key = f"{prefix}.{field_name}" if prefix else field_name
        fields.add(full_key)

        annotation = field_info.annotation
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            fields.update(_collect_model_fields(annotation, full_key))

    return fields


def _warn_unknown_keys(data: dict, model_class: type[BaseModel]) -> None:
    """
    Warn about unknown keys in YAML config that don't match model fields.

    This prevents silent config bugs where typos in key names are ignored.
    """
    yaml_keys = _collect_all_keys(data)
    model_fields = _collect_model_fields(model_class)

    unknown_keys = yaml_keys - model_fields

    if unknown_keys:
        logger.warning(
            f"Unknown configuration keys found (will be ignored due to extra='ignore'): {sorted(unknown_keys)}. "
            f"This may indicate typos in config.yaml or outdated config keys."
        )


@lru_cache(maxsize=4)
def get_settings(env: str | None = None) -> Settings:
    """Get cached settings instance."""
    resolved_env = env or os.getenv("HL_ENV", "development")
    return Settings.from_yaml(env=resolved_env)
