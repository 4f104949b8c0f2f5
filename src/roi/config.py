"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """SQLite ledger store location."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    path: str = "data/ledger.db"


class LedgerSettings(BaseSettings):
    """Wallet bookkeeping parameters.

    Assets listed in ``stable_assets`` are rounded to ``stable_decimals``;
    every other asset is treated as volatile and rounded to
    ``volatile_decimals``.
    """

    model_config = SettingsConfigDict(env_prefix="LEDGER_")

    stable_assets: list[str] = Field(default_factory=lambda: ["USD", "USDT"])
    stable_decimals: int = 2
    volatile_decimals: int = 6
    tracked_assets: list[str] = Field(
        default_factory=lambda: ["USD", "USDT", "TRX", "BTC"]
    )  # always shown in the portfolio, even at zero


class FxSettings(BaseSettings):
    """FX oracle and external price feed configuration."""

    model_config = SettingsConfigDict(env_prefix="FX_")

    source: Literal["coingecko", "ccxt"] = "coingecko"
    refresh_interval: int = 3600  # seconds between market refreshes
    refreshed_assets: list[str] = Field(default_factory=lambda: ["TRX", "BTC"])
    ccxt_exchange: str = "binance"
    coingecko_api_key: SecretStr = SecretStr("")
    request_timeout: float = 10.0
    # Seeded once by the initial migration
    seed_rates: dict[str, Decimal] = Field(
        default_factory=lambda: {
            "TRX-USD": Decimal("0.1"),
            "BTC-USD": Decimal("68000"),
        }
    )


class InvestSettings(BaseSettings):
    """Investment accrual and auto-compound sweep parameters."""

    model_config = SettingsConfigDict(env_prefix="INVEST_")

    daily_rate: Decimal = Decimal("0.015")  # 1.5%/day simple interest
    sweep_interval: int = 60  # seconds between auto-compound sweeps


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    database: DatabaseSettings = DatabaseSettings()
    ledger: LedgerSettings = LedgerSettings()
    fx: FxSettings = FxSettings()
    invest: InvestSettings = InvestSettings()
