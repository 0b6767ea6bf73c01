"""Tests for line item resolution."""

from decimal import Decimal
from uuid import uuid4

import pytest

from back_office_ledger.config import DiscountOverflowPolicy, Settings
from back_office_ledger.domain.documents import LineItem, RelatedSource
from back_office_ledger.domain.value_objects import SourceKind
from back_office_ledger.exceptions import InvalidCurrencyError, InvalidLineItemError
from back_office_ledger.services.line_items import LineItemResolver, resolve_line


def _line(**kwargs) -> LineItem:
    values = {"document_id": uuid4(), "quantity": Decimal("10"), "unit_price": Decimal("5.00")}
    values.update(kwargs)
    return LineItem(**values)


@pytest.fixture
def resolver() -> LineItemResolver:
    return LineItemResolver(currency="USD")


class TestBasicBreakdown:
    def test_percent_discount_and_vat(self, resolver, sample_line):
        result = resolver.resolve(sample_line)

        assert result.gross_amount == Decimal("50.00")
        assert result.discount_amount == Decimal("5.00")
        assert result.net_amount == Decimal("45.00")
        assert result.vat_amount == Decimal("2.25")
        assert result.total_amount == Decimal("47.25")
        assert result.discount_percent == Decimal("10")
        assert result.vat_percent == Decimal("5")
        assert result.discount_source == SourceKind.LINE
        assert result.vat_source == SourceKind.LINE
        assert not result.total_is_stored

    def test_line_without_discount_or_vat(self, resolver):
        result = resolver.resolve(_line(quantity=Decimal("2"), unit_price=Decimal("19.99")))

        assert result.gross_amount == Decimal("39.98")
        assert result.discount_amount == Decimal("0")
        assert result.vat_amount == Decimal("0")
        assert result.total_amount == Decimal("39.98")
        assert result.discount_source is None
        assert result.vat_source is None

    def test_total_is_sum_of_rounded_net_and_vat(self, resolver):
        result = resolver.resolve(
            _line(quantity=Decimal("3"), unit_price=Decimal("3.33"), vat_percent=Decimal("7.5"))
        )

        assert result.gross_amount == Decimal("9.99")
        assert result.vat_amount == Decimal("0.75")
        assert result.total_amount == result.net_amount + result.vat_amount

    def test_resolving_twice_gives_identical_output(self, resolver, sample_line):
        header = RelatedSource(SourceKind.HEADER, vat_percent=Decimal("10"))

        first = resolver.resolve(sample_line, [header])
        second = resolver.resolve(sample_line, [header])

        assert first == second


class TestUnitPrice:
    def test_price_derived_from_related_cost_and_markup(self, resolver):
        upstream = RelatedSource(
            SourceKind.QUOTATION_ITEM,
            cost_price=Decimal("20"),
            markup_percent=Decimal("25"),
        )

        result = resolver.resolve(_line(quantity=Decimal("3"), unit_price=Decimal("0")), [upstream])

        assert result.unit_price == Decimal("25.00")
        assert result.gross_amount == Decimal("75.00")

    def test_line_markup_beats_its_own_unit_price(self, resolver):
        line = _line(
            quantity=Decimal("1"),
            unit_price=Decimal("100"),
            cost_price=Decimal("8"),
            markup_percent=Decimal("25"),
        )

        assert resolver.resolve(line).unit_price == Decimal("10.00")

    def test_cost_without_markup_keeps_unit_price(self, resolver):
        line = _line(quantity=Decimal("1"), unit_price=Decimal("12"), cost_price=Decimal("8"))

        assert resolver.resolve(line).unit_price == Decimal("12")

    def test_fallback_markup_applies_to_unpriced_lines(self):
        resolver = LineItemResolver(currency="USD", fallback_markup_percent=Decimal("70"))
        line = _line(quantity=Decimal("2"), unit_price=Decimal("0"), cost_price=Decimal("10"))

        result = resolver.resolve(line)

        assert result.unit_price == Decimal("17.00")
        assert result.gross_amount == Decimal("34.00")

    def test_fallback_markup_ignored_when_line_is_priced(self):
        resolver = LineItemResolver(currency="USD", fallback_markup_percent=Decimal("70"))
        line = _line(quantity=Decimal("1"), unit_price=Decimal("15"), cost_price=Decimal("10"))

        assert resolver.resolve(line).unit_price == Decimal("15")


class TestDiscountPrecedence:
    def test_percent_beats_amount_on_same_source(self, resolver):
        line = _line(discount_percent=Decimal("10"), discount_amount=Decimal("999"))

        result = resolver.resolve(line)

        assert result.discount_amount == Decimal("5.00")
        assert result.net_amount == Decimal("45.00")

    def test_line_amount_beats_header_percent(self, resolver):
        header = RelatedSource(SourceKind.HEADER, discount_percent=Decimal("10"))

        result = resolver.resolve(_line(discount_amount=Decimal("2")), [header])

        assert result.discount_amount == Decimal("2.00")
        assert result.discount_percent == Decimal("4.00")
        assert result.discount_source == SourceKind.LINE

    def test_header_percent_used_when_line_has_none(self, resolver):
        header = RelatedSource(SourceKind.HEADER, discount_percent=Decimal("10"))

        result = resolver.resolve(_line(), [header])

        assert result.discount_amount == Decimal("5.00")
        assert result.discount_source == SourceKind.HEADER

    def test_sources_consulted_in_order(self, resolver):
        header = RelatedSource(SourceKind.HEADER)
        upstream = RelatedSource(SourceKind.SALES_ORDER_ITEM, discount_amount=Decimal("1.50"))

        result = resolver.resolve(_line(), [header, upstream])

        assert result.discount_amount == Decimal("1.50")
        assert result.discount_source == SourceKind.SALES_ORDER_ITEM


class TestDiscountOverflow:
    def test_amount_above_gross_is_clamped(self, resolver):
        result = resolver.resolve(_line(discount_amount=Decimal("80"), vat_percent=Decimal("5")))

        assert result.discount_amount == Decimal("50.00")
        assert result.discount_percent == Decimal("100.00")
        assert result.net_amount == Decimal("0.00")
        assert result.vat_amount == Decimal("0.00")
        assert result.total_amount == Decimal("0.00")

    def test_percent_above_hundred_is_clamped(self, resolver):
        result = resolver.resolve(_line(discount_percent=Decimal("150")))

        assert result.discount_amount == Decimal("50.00")
        assert result.discount_percent == Decimal("100.00")
        assert result.net_amount == Decimal("0.00")

    def test_raise_policy_rejects_overflow(self):
        resolver = LineItemResolver(
            currency="USD", discount_overflow=DiscountOverflowPolicy.RAISE
        )

        with pytest.raises(InvalidLineItemError):
            resolver.resolve(_line(discount_amount=Decimal("80")))


class TestVat:
    def test_vat_applies_after_discount(self, resolver):
        result = resolver.resolve(
            _line(discount_percent=Decimal("20"), vat_percent=Decimal("10"))
        )

        assert result.net_amount == Decimal("40.00")
        assert result.vat_amount == Decimal("4.00")

    def test_vat_amount_reports_display_percent(self, resolver):
        result = resolver.resolve(_line(discount_percent=Decimal("10"), vat_amount=Decimal("3")))

        assert result.vat_amount == Decimal("3.00")
        assert result.vat_percent == Decimal("6.67")

    def test_upstream_vat_used_when_line_and_header_have_none(self, resolver):
        header = RelatedSource(SourceKind.HEADER)
        upstream = RelatedSource(SourceKind.QUOTATION_ITEM, vat_percent=Decimal("5"))

        result = resolver.resolve(_line(), [header, upstream])

        assert result.vat_amount == Decimal("2.50")
        assert result.vat_source == SourceKind.QUOTATION_ITEM


class TestStoredTotal:
    def test_matching_stored_total_changes_nothing(self, resolver):
        line = _line(vat_percent=Decimal("5"), total_price=Decimal("52.50"))

        result = resolver.resolve(line)

        assert result.total_amount == Decimal("52.50")
        assert result.net_amount == Decimal("50.00")
        assert result.total_is_stored

    def test_stored_total_back_fills_discount(self, resolver):
        line = _line(vat_percent=Decimal("5"), total_price=Decimal("42.00"))

        result = resolver.resolve(line)

        assert result.total_amount == Decimal("42.00")
        assert result.net_amount == Decimal("40.00")
        assert result.vat_amount == Decimal("2.00")
        assert result.gross_amount == Decimal("50.00")
        assert result.discount_amount == Decimal("10.00")
        assert result.discount_percent == Decimal("20.00")

    def test_stored_total_without_vat(self, resolver):
        result = resolver.resolve(_line(total_price=Decimal("45.00")))

        assert result.net_amount == Decimal("45.00")
        assert result.vat_amount == Decimal("0")
        assert result.discount_amount == Decimal("5.00")

    def test_fixed_vat_is_clamped_to_stored_total(self, resolver):
        result = resolver.resolve(_line(vat_amount=Decimal("10"), total_price=Decimal("4.00")))

        assert result.vat_amount == Decimal("4.00")
        assert result.net_amount == Decimal("0")
        assert result.discount_amount == Decimal("50.00")
        assert result.total_amount == Decimal("4.00")

    def test_stored_total_above_computed_raises_gross(self, resolver):
        result = resolver.resolve(_line(vat_percent=Decimal("5"), total_price=Decimal("63.00")))

        assert result.net_amount == Decimal("60.00")
        assert result.vat_amount == Decimal("3.00")
        assert result.gross_amount == Decimal("60.00")
        assert result.discount_amount == Decimal("0")

    def test_zero_stored_total_is_ignored(self, resolver, sample_line):
        sample_line.total_price = Decimal("0")

        assert resolver.resolve(sample_line).total_amount == Decimal("47.25")


class TestCurrencies:
    def test_three_decimal_currency(self):
        line = _line(
            quantity=Decimal("3"), unit_price=Decimal("1.2345"), vat_percent=Decimal("10")
        )

        result = resolve_line(line, currency="BHD")

        assert result.currency == "BHD"
        assert result.gross_amount == Decimal("3.704")
        assert result.vat_amount == Decimal("0.370")
        assert result.total_amount == Decimal("4.074")

    def test_zero_decimal_currency(self):
        line = _line(quantity=Decimal("3"), unit_price=Decimal("333.33"))

        assert resolve_line(line, currency="JPY").gross_amount == Decimal("1000")

    def test_minor_unit_override(self):
        resolver = LineItemResolver(currency="USD", minor_unit_overrides={"USD": 3})
        line = _line(quantity=Decimal("1"), unit_price=Decimal("1.0005"))

        assert resolver.resolve(line).gross_amount == Decimal("1.001")

    def test_rejects_malformed_currency(self):
        with pytest.raises(InvalidCurrencyError):
            LineItemResolver(currency="usdollar")

    def test_from_settings(self):
        settings = Settings(
            default_currency="kwd", discount_overflow=DiscountOverflowPolicy.RAISE
        )

        resolver = LineItemResolver.from_settings(settings)

        assert resolver.currency == "KWD"
        assert resolver.places == 3


class TestValidation:
    def test_negative_quantity_rejected(self, resolver):
        with pytest.raises(InvalidLineItemError):
            resolver.resolve(_line(quantity=Decimal("-1")))

    def test_negative_source_value_rejected(self, resolver):
        header = RelatedSource(SourceKind.HEADER, vat_percent=Decimal("-5"))

        with pytest.raises(InvalidLineItemError) as exc_info:
            resolver.resolve(_line(), [header])

        assert exc_info.value.field == "header.vat_percent"
