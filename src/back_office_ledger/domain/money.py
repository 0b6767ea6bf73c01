"""Numeric helpers shared by pricing and quantity code.

Values arrive from storage as strings, floats, ints or ``None``. Everything
is coerced to ``Decimal`` once, at the edge, and rounded half-up to the
currency's minor unit.
"""

import re
from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from back_office_ledger.exceptions import InvalidCurrencyError

ZERO = Decimal("0")
HUNDRED = Decimal("100")

DEFAULT_MINOR_UNITS = 2

# ISO 4217 exponents that differ from 2
MINOR_UNITS: dict[str, int] = {
    "BHD": 3,
    "IQD": 3,
    "JOD": 3,
    "KWD": 3,
    "LYD": 3,
    "OMR": 3,
    "TND": 3,
    "JPY": 0,
    "KRW": 0,
    "VND": 0,
    "CLP": 0,
    "ISK": 0,
}

_CURRENCY_RE = re.compile(r"^[A-Za-z]{3}$")


def to_decimal(value: Any) -> Decimal:
    """Parse a stored value into a Decimal, treating junk as zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return ZERO
        try:
            result = Decimal(text)
        except InvalidOperation:
            return ZERO
    if not result.is_finite():
        return ZERO
    return result


def optional_decimal(value: Any) -> Decimal | None:
    """Like to_decimal but keeps ``None`` so absent and zero stay distinct."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return to_decimal(value)


def normalize_currency(code: str) -> str:
    if not isinstance(code, str) or not _CURRENCY_RE.match(code.strip()):
        raise InvalidCurrencyError(str(code))
    return code.strip().upper()


def minor_units(currency: str, overrides: Mapping[str, int] | None = None) -> int:
    code = normalize_currency(currency)
    if overrides and code in overrides:
        return overrides[code]
    return MINOR_UNITS.get(code, DEFAULT_MINOR_UNITS)


def quantum(places: int) -> Decimal:
    return Decimal(1).scaleb(-places)


def round_half_up(value: Decimal, places: int) -> Decimal:
    return value.quantize(quantum(places), rounding=ROUND_HALF_UP)


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    if high < low:
        raise ValueError(f"Empty clamp range [{low}, {high}]")
    return max(low, min(value, high))


def percent_of(base: Decimal, percent: Decimal) -> Decimal:
    return base * percent / HUNDRED


def percent_ratio(part: Decimal, whole: Decimal) -> Decimal:
    """``part`` as a percentage of ``whole``; zero when whole is not positive."""
    if whole <= ZERO:
        return ZERO
    return part / whole * HUNDRED


__all__ = [
    "ZERO",
    "HUNDRED",
    "DEFAULT_MINOR_UNITS",
    "MINOR_UNITS",
    "to_decimal",
    "optional_decimal",
    "normalize_currency",
    "minor_units",
    "quantum",
    "round_half_up",
    "clamp",
    "percent_of",
    "percent_ratio",
]
