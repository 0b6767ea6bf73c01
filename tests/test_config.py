"""Tests for settings loading."""

from decimal import Decimal
from pathlib import Path

import pytest
from pydantic import ValidationError

from back_office_ledger.config import (
    DiscountOverflowPolicy,
    Environment,
    LogLevel,
    Settings,
    get_settings,
)


class TestSettingsDefaults:
    def test_defaults(self):
        settings = Settings(environment=Environment.TESTING)

        assert settings.app_name == "Back Office Ledger"
        assert settings.sqlite_path == Path("back_office_ledger.db")
        assert settings.log_level == LogLevel.INFO
        assert settings.default_currency == "USD"
        assert settings.discount_overflow == DiscountOverflowPolicy.CLAMP
        assert settings.reconciliation_tolerance is None
        assert settings.strict_reconciliation is False
        assert settings.strict_over_delivery is True

    def test_development_enables_debug(self):
        settings = Settings(environment=Environment.DEVELOPMENT, debug=False)

        assert settings.debug is True

    def test_production_flag(self):
        assert Settings(environment=Environment.PRODUCTION).is_production


class TestSettingsFromEnvironment:
    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("BOL_DEFAULT_CURRENCY", "bhd")
        monkeypatch.setenv("BOL_STRICT_RECONCILIATION", "true")
        monkeypatch.setenv("BOL_RECONCILIATION_TOLERANCE", "0.05")
        monkeypatch.setenv("BOL_DISCOUNT_OVERFLOW", "raise")

        settings = Settings()

        assert settings.default_currency == "BHD"
        assert settings.strict_reconciliation is True
        assert settings.reconciliation_tolerance == Decimal("0.05")
        assert settings.discount_overflow == DiscountOverflowPolicy.RAISE

    def test_minor_units_from_json(self, monkeypatch):
        monkeypatch.setenv("BOL_CURRENCY_MINOR_UNITS", '{"xau": 4}')

        assert Settings().currency_minor_units == {"XAU": 4}


class TestSettingsValidation:
    def test_rejects_out_of_range_minor_units(self):
        with pytest.raises(ValidationError):
            Settings(currency_minor_units={"USD": 9})

    def test_rejects_negative_tolerance(self):
        with pytest.raises(ValidationError):
            Settings(reconciliation_tolerance=Decimal("-0.01"))

    def test_rejects_bad_currency_length(self):
        with pytest.raises(ValidationError):
            Settings(default_currency="US")


class TestGetSettings:
    def test_is_cached(self):
        get_settings.cache_clear()

        assert get_settings() is get_settings()

        get_settings.cache_clear()
