"""
Runtime settings for StockDash.

Resolution order (later wins):
1. Defaults on Settings
2. YAML file at <home>/config/stockdash.yaml (optional)
3. Environment variables

Example config file:
    secret_key: change-me
    starting_balance: 25000
    storage: sqlite
    max_price_deviation_pct: 5
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import msgspec
import yaml

from stockdash.storage.paths import StockDashPaths


logger = logging.getLogger(__name__)

DEFAULT_SECRET_KEY = "stockdash-dev-secret-change-in-production"

STORAGE_BACKENDS = ("sqlite", "memory")
MARKET_DATA_SOURCES = ("alphavantage", "simulated")

# env var -> Settings field
_ENV_FIELDS: dict[str, str] = {
    "STOCKDASH_SECRET_KEY": "secret_key",
    "STOCKDASH_TOKEN_EXPIRE_MINUTES": "token_expire_minutes",
    "STOCK_API_KEY": "stock_api_key",
    "STOCKDASH_MARKET_DATA": "market_data",
    "ADMIN_EMAIL": "admin_email",
    "ADMIN_PASSWORD": "admin_password",
    "STOCKDASH_STARTING_BALANCE": "starting_balance",
    "STOCKDASH_STORAGE": "storage",
    "STOCKDASH_DB_PATH": "db_path",
    "STOCKDASH_LOCK_TIMEOUT": "lock_timeout",
    "STOCKDASH_MAX_PRICE_DEVIATION": "max_price_deviation_pct",
    "STOCKDASH_RATE_LIMIT": "rate_limit",
    "STOCKDASH_LOG_LEVEL": "log_level",
    "STOCKDASH_HOST": "host",
    "STOCKDASH_PORT": "port",
    "STOCKDASH_TRUSTED_PROXIES": "trusted_proxies",
}


class Settings(msgspec.Struct, frozen=True, kw_only=True):
    """
    StockDash configuration.

    Examples:
        # Defaults + config file + environment
        settings = Settings.load()

        # Environment only
        settings = Settings.from_env()

        # Tests
        settings = Settings(home=tmp_path, storage="memory")
    """

    home: Path = msgspec.field(default_factory=lambda: StockDashPaths.default().root)

    # Auth
    secret_key: str = DEFAULT_SECRET_KEY
    token_expire_minutes: int = 43200  # 30 days
    admin_email: str | None = None
    admin_password: str | None = None

    # Market data
    stock_api_key: str | None = None
    market_data: str | None = None  # None -> alphavantage if key else simulated

    # Ledger
    starting_balance: Decimal = Decimal("10000")
    max_price_deviation_pct: Decimal | None = None

    # Storage
    storage: str = "sqlite"
    db_path: Path | None = None
    lock_timeout: float = 5.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    rate_limit: int = 100  # requests per minute per client
    trusted_proxies: tuple[str, ...] = ()  # peers whose X-Forwarded-For is honoured
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate configuration on creation."""
        if self.storage not in STORAGE_BACKENDS:
            raise ValueError(f"storage must be one of {STORAGE_BACKENDS}, got {self.storage!r}")
        if self.market_data is not None and self.market_data not in MARKET_DATA_SOURCES:
            raise ValueError(
                f"market_data must be one of {MARKET_DATA_SOURCES}, got {self.market_data!r}"
            )
        if self.market_source == "alphavantage" and not self.stock_api_key:
            raise ValueError("market_data 'alphavantage' requires STOCK_API_KEY")
        if self.starting_balance < 0:
            raise ValueError("starting_balance must be non-negative")
        if self.token_expire_minutes <= 0:
            raise ValueError("token_expire_minutes must be positive")
        if self.lock_timeout <= 0:
            raise ValueError("lock_timeout must be positive")
        if self.rate_limit <= 0:
            raise ValueError("rate_limit must be positive")
        if self.max_price_deviation_pct is not None and self.max_price_deviation_pct <= 0:
            raise ValueError("max_price_deviation_pct must be positive")

    @property
    def paths(self) -> StockDashPaths:
        """Directory layout under ``home``."""
        return StockDashPaths.from_root(self.home)

    @property
    def database_path(self) -> Path:
        """SQLite file, defaulting to <home>/data/stockdash.db."""
        return self.db_path or self.paths.database

    @property
    def market_source(self) -> str:
        """Effective market data source."""
        if self.market_data:
            return self.market_data
        return "alphavantage" if self.stock_api_key else "simulated"

    @property
    def admin_configured(self) -> bool:
        """Check if admin signup credentials are set."""
        return bool(self.admin_email and self.admin_password)

    # =========================================================================
    # Loading
    # =========================================================================

    @classmethod
    def load(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """
        Build settings from defaults, the YAML config file and the environment.

        Args:
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Validated Settings

        Raises:
            ValueError: If a value is malformed or out of range
        """
        environ = os.environ if environ is None else environ
        home = _home_from(environ)

        values: dict[str, Any] = {}
        config_file = StockDashPaths.from_root(home).config_file
        if config_file.exists():
            values.update(cls._read_yaml(config_file))
        values.update(_env_values(environ))

        return cls.from_dict(values, home=home)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Create settings from environment variables only."""
        environ = os.environ if environ is None else environ
        return cls.from_dict(_env_values(environ), home=_home_from(environ))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], home: Path | None = None) -> Settings:
        """
        Create Settings from a dictionary.

        Handles type conversion for Decimal, numeric and path values.
        """
        fields = set(cls.__struct_fields__)
        unknown = set(data) - fields
        if unknown:
            logger.warning("Ignoring unknown settings: %s", ", ".join(sorted(unknown)))

        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in fields or value is None or value == "":
                continue
            kwargs[key] = _convert(key, value)

        if home is not None:
            kwargs["home"] = home
        return cls(**kwargs)

    @staticmethod
    def _read_yaml(path: Path) -> dict[str, Any]:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping")
        logger.debug("Loaded settings from %s", path)
        return data


def _home_from(environ: Mapping[str, str]) -> Path:
    if env_home := environ.get("STOCKDASH_HOME"):
        return Path(env_home).expanduser()
    return Path.home() / ".stockdash"


def _env_values(environ: Mapping[str, str]) -> dict[str, str]:
    return {field: environ[var] for var, field in _ENV_FIELDS.items() if var in environ}


def _convert(key: str, value: Any) -> Any:
    try:
        if key in ("starting_balance", "max_price_deviation_pct"):
            return Decimal(str(value))
        if key in ("token_expire_minutes", "rate_limit", "port"):
            return int(value)
        if key == "lock_timeout":
            return float(value)
        if key in ("home", "db_path"):
            return Path(str(value)).expanduser()
        if key in ("storage", "market_data"):
            return str(value).strip().lower()
        if key == "log_level":
            return str(value).strip().upper()
        if key == "trusted_proxies":
            items = value.split(",") if isinstance(value, str) else value
            return tuple(str(item).strip() for item in items if str(item).strip())
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {key}: {value!r}") from e
    return str(value)
