"""Runtime settings for the pricing engine, read from ``BOL_`` variables.

Everything the engine leaves open (currency places, discount overflow,
reconciliation tolerance, over-delivery handling) is decided here rather
than at call sites. A ``.env`` file in the working directory is honoured.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DiscountOverflowPolicy(str, Enum):
    """What to do with a fixed discount larger than the gross amount."""

    CLAMP = "clamp"
    RAISE = "raise"


class Settings(BaseSettings):
    """Engine and storage settings.

    Examples:
        BOL_SQLITE_PATH=/var/lib/bol/back_office.db
        BOL_CURRENCY_MINOR_UNITS='{"XAU": 4}'
        BOL_STRICT_RECONCILIATION=true
        BOL_STRICT_OVER_DELIVERY=false
    """

    model_config = SettingsConfigDict(
        env_prefix="BOL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Back Office Ledger"
    app_version: str = "0.1.0"
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=False, description="Enable debug mode")

    # Database
    sqlite_path: Path = Field(
        default=Path("back_office_ledger.db"),
        description="SQLite database file path",
    )

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format: 'json' for production, 'console' for development",
    )
    log_file: Path | None = Field(default=None, description="Optional log file path")

    # Pricing
    default_currency: str = Field(
        default="USD", min_length=3, max_length=3, description="Fallback document currency"
    )
    currency_minor_units: dict[str, int] = Field(
        default_factory=dict,
        description="Overrides for decimal places per currency code, e.g. {'BHD': 3}",
    )
    discount_overflow: DiscountOverflowPolicy = Field(
        default=DiscountOverflowPolicy.CLAMP,
        description="Clamp a fixed discount above gross (legacy) or reject the line",
    )

    # Reconciliation
    reconciliation_tolerance: Decimal | None = Field(
        default=None,
        ge=0,
        description="Allowed drift between stored and recomputed totals. "
        "Defaults to one minor unit of the document currency.",
    )
    strict_reconciliation: bool = Field(
        default=False, description="Raise instead of warn on header total drift"
    )

    # Fulfillment
    strict_over_delivery: bool = Field(
        default=True,
        description="Raise on over-delivery; when False the result is flagged instead",
    )

    @field_validator("debug", mode="before")
    @classmethod
    def set_debug_from_environment(cls, v: bool, info) -> bool:
        """Auto-enable debug in development environment."""
        if info.data.get("environment") == Environment.DEVELOPMENT:
            return True
        return v

    @field_validator("default_currency", mode="after")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.upper()

    @field_validator("currency_minor_units", mode="after")
    @classmethod
    def validate_minor_units(cls, v: dict[str, int]) -> dict[str, int]:
        for code, places in v.items():
            if places < 0 or places > 6:
                raise ValueError(f"Minor units for {code} must be between 0 and 6")
        return {code.upper(): places for code, places in v.items()}

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """Settings loaded once per process; ``get_settings.cache_clear()`` reloads."""
    return Settings()
