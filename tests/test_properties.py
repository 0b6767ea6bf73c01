"""Property-based tests for pricing and quantity invariants."""

from decimal import ROUND_HALF_UP, Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from back_office_ledger.domain.documents import FulfillmentRecord, LineItem, RelatedSource
from back_office_ledger.domain.value_objects import (
    DocumentEvent,
    DocumentStatus,
    OrderLineKey,
    OrderLineKind,
    SourceKind,
)
from back_office_ledger.exceptions import IllegalTransitionError
from back_office_ledger.services.line_items import LineItemResolver
from back_office_ledger.services.quantity_ledger import compute_remaining
from back_office_ledger.services.status_machine import STATUS_MODELS, next_status
from back_office_ledger.services.totals import DocumentTotalsAggregator

quantities = st.decimals(min_value=0, max_value=10_000, places=3, allow_nan=False)
prices = st.decimals(min_value=0, max_value=100_000, places=4, allow_nan=False)
percents = st.decimals(min_value=0, max_value=150, places=2, allow_nan=False)
amounts = st.decimals(min_value=0, max_value=50_000, places=2, allow_nan=False)
currencies = st.sampled_from(["USD", "EUR", "BHD", "KWD", "JPY"])


@st.composite
def line_items(draw):
    return LineItem(
        document_id=uuid4(),
        quantity=draw(quantities),
        unit_price=draw(prices),
        discount_percent=draw(st.one_of(st.just(Decimal("0")), percents)),
        discount_amount=draw(st.one_of(st.just(Decimal("0")), amounts)),
        vat_percent=draw(st.one_of(st.just(Decimal("0")), percents)),
        vat_amount=draw(st.one_of(st.just(Decimal("0")), amounts)),
        total_price=draw(st.one_of(st.none(), amounts)),
    )


@st.composite
def related_sources(draw):
    return RelatedSource(
        kind=draw(st.sampled_from([SourceKind.HEADER, SourceKind.QUOTATION_ITEM])),
        discount_percent=draw(st.one_of(st.just(Decimal("0")), percents)),
        vat_percent=draw(st.one_of(st.just(Decimal("0")), percents)),
        cost_price=draw(st.one_of(st.none(), prices)),
        markup_percent=draw(st.one_of(st.none(), percents)),
    )


class TestLineItemProperties:
    @given(line=line_items(), sources=st.lists(related_sources(), max_size=2), currency=currencies)
    @settings(max_examples=200, deadline=None)
    def test_resolution_is_idempotent(self, line, sources, currency):
        resolver = LineItemResolver(currency=currency)

        assert resolver.resolve(line, sources) == resolver.resolve(line, sources)

    @given(line=line_items(), sources=st.lists(related_sources(), max_size=2), currency=currencies)
    @settings(max_examples=200, deadline=None)
    def test_amounts_never_negative(self, line, sources, currency):
        result = LineItemResolver(currency=currency).resolve(line, sources)

        assert result.net_amount >= 0
        assert result.vat_amount >= 0
        assert result.discount_amount >= 0
        assert result.discount_amount <= result.gross_amount
        assert result.total_amount == result.net_amount + result.vat_amount

    @given(quantity=quantities, price=prices, percent=percents.filter(lambda p: 0 < p <= 100))
    @settings(deadline=None)
    def test_discount_percent_beats_amount(self, quantity, price, percent):
        resolver = LineItemResolver(currency="USD")
        line = LineItem(
            document_id=uuid4(),
            quantity=quantity,
            unit_price=price,
            discount_percent=percent,
            discount_amount=Decimal("999"),
        )

        result = resolver.resolve(line)

        expected = (result.gross_amount * percent / 100).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
        assert result.discount_amount == expected


class TestTotalsProperties:
    @given(lines=st.lists(line_items(), max_size=10), currency=currencies)
    @settings(max_examples=100, deadline=None)
    def test_document_total_is_sum_of_line_totals(self, lines, currency):
        resolver = LineItemResolver(currency=currency)
        resolved = [resolver.resolve(line) for line in lines]

        totals = DocumentTotalsAggregator(currency=currency).aggregate(resolved)

        assert totals.total_amount == sum((r.total_amount for r in resolved), Decimal("0"))
        assert totals.total_amount == totals.net_amount + totals.vat_amount


class TestQuantityProperties:
    @given(
        ordered=st.integers(min_value=0, max_value=1_000),
        splits=st.lists(st.integers(min_value=0, max_value=1_000), max_size=8),
    )
    def test_remaining_plus_fulfilled_equals_ordered(self, ordered, splits):
        so_item = uuid4()
        delivered = []
        budget = ordered
        for amount in splits:
            take = min(amount, budget)
            budget -= take
            delivered.append(take)
        records = [
            FulfillmentRecord(
                document_id=uuid4(),
                ordered_quantity=Decimal(ordered),
                fulfilled_quantity=Decimal(take),
                sales_order_item_id=so_item,
            )
            for take in delivered
        ]
        key = OrderLineKey(OrderLineKind.SALES_ORDER_ITEM, so_item)

        result = compute_remaining(key, records)

        assert result.total_remaining + result.total_fulfilled == Decimal(ordered)


class TestStatusProperties:
    @given(
        document_type=st.sampled_from(list(STATUS_MODELS)),
        events=st.lists(st.sampled_from(list(DocumentEvent)), max_size=8),
        fulfilled=st.sampled_from(["0", "5", "10"]),
    )
    def test_completion_always_passes_through_pending(self, document_type, events, fulfilled):
        item_id = uuid4()
        record = FulfillmentRecord(
            document_id=uuid4(),
            ordered_quantity=Decimal("10"),
            fulfilled_quantity=Decimal(fulfilled),
            item_id=item_id,
        )
        ledger = compute_remaining(OrderLineKey(OrderLineKind.ITEM, item_id), [record])
        current = DocumentStatus.DRAFT
        visited = [current]
        for event in events:
            try:
                current = next_status(document_type, current, ledger, event)
            except IllegalTransitionError:
                continue
            visited.append(current)

        completion = STATUS_MODELS[document_type].completion_status
        if completion in visited:
            assert DocumentStatus.PENDING in visited[: visited.index(completion)]
