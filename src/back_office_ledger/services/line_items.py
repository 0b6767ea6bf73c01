"""Line item resolution: one monetary breakdown per line, whatever the document.

Every document type (quotation, sales order, delivery, invoice, supplier
LPO, goods receipt) prices its lines through ``LineItemResolver``. The
resolver picks each figure from the nearest source that provides it:

1. A stored ``total_price`` greater than zero is ground truth; the rest of
   the breakdown is back-filled so that it adds up to that total.
2. Gross is ``quantity * unit_price``. The unit price is derived from
   ``cost_price`` and ``markup_percent`` when the line or a related source
   carries both, otherwise the line's own price is used.
3. Discount: a percentage beats a fixed amount, the line beats its related
   sources, and related sources are consulted in the order given (header
   first, then the upstream line).
4. Net is gross minus discount, never below zero.
5. VAT follows the same precedence as discount but applies to net.
6. Each component is rounded half-up to the currency minor unit and the
   total is the sum of the rounded net and VAT.
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal

from back_office_ledger.config import DiscountOverflowPolicy, Settings
from back_office_ledger.domain.documents import LineItem, RelatedSource
from back_office_ledger.domain.money import (
    HUNDRED,
    ZERO,
    clamp,
    minor_units,
    normalize_currency,
    percent_of,
    percent_ratio,
    round_half_up,
)
from back_office_ledger.domain.value_objects import SourceKind
from back_office_ledger.exceptions import InvalidLineItemError
from back_office_ledger.logging_config import get_logger
from back_office_ledger.services.interfaces import ResolvedBreakdown

logger = get_logger(__name__)

PERCENT_PLACES = 2


class LineItemResolver:
    """Resolve line items priced in one currency."""

    def __init__(
        self,
        currency: str = "USD",
        minor_unit_overrides: dict[str, int] | None = None,
        discount_overflow: DiscountOverflowPolicy = DiscountOverflowPolicy.CLAMP,
        fallback_markup_percent: Decimal | None = None,
    ) -> None:
        self._currency = normalize_currency(currency)
        self._places = minor_units(self._currency, minor_unit_overrides)
        self._discount_overflow = discount_overflow
        self._fallback_markup = fallback_markup_percent

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        currency: str | None = None,
        fallback_markup_percent: Decimal | None = None,
    ) -> "LineItemResolver":
        return cls(
            currency=currency or settings.default_currency,
            minor_unit_overrides=settings.currency_minor_units,
            discount_overflow=settings.discount_overflow,
            fallback_markup_percent=fallback_markup_percent,
        )

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def places(self) -> int:
        return self._places

    def resolve(
        self, line: LineItem, related_sources: Iterable[RelatedSource] = ()
    ) -> ResolvedBreakdown:
        """Resolve the breakdown of ``line``.

        Args:
            line: The line to price.
            related_sources: Header and upstream line pricing, nearest first.

        Raises:
            InvalidLineItemError: On negative inputs, or on a discount above
                gross when the overflow policy is ``raise``.
        """
        line.validate()
        sources = tuple(related_sources)
        for source in sources:
            _validate_source(source)
        candidates = (line.as_source(SourceKind.LINE), *sources)

        unit_price = self._unit_price(line, candidates)
        gross = self._round(line.quantity * unit_price)

        discount, discount_percent, discount_source = self._discount(candidates, gross)
        net = clamp(gross - discount, ZERO, gross)

        vat, vat_percent, vat_source, vat_by_percent = self._vat(candidates, net)
        total = net + vat

        if line.has_stored_total:
            stored_total = self._round(line.total_price)
            if stored_total != total:
                logger.debug(
                    "stored_total_overrides_computed",
                    line_id=str(line.id),
                    stored=str(stored_total),
                    computed=str(total),
                )
                net, vat = self._split_stored_total(
                    stored_total, vat, vat_percent, vat_by_percent
                )
                gross = max(gross, net)
                if gross - net != discount:
                    discount = gross - net
                    discount_percent = self._display_percent(discount, gross)
                if not vat_by_percent:
                    vat_percent = self._display_percent(vat, net)
                total = stored_total

        return ResolvedBreakdown(
            currency=self._currency,
            quantity=line.quantity,
            unit_price=unit_price,
            gross_amount=gross,
            discount_percent=discount_percent,
            discount_amount=discount,
            net_amount=net,
            vat_percent=vat_percent,
            vat_amount=vat,
            total_amount=total,
            line_id=line.id,
            total_is_stored=line.has_stored_total,
            discount_source=discount_source,
            vat_source=vat_source,
        )

    def _round(self, value: Decimal) -> Decimal:
        return round_half_up(value, self._places)

    def _display_percent(self, part: Decimal, whole: Decimal) -> Decimal:
        return round_half_up(percent_ratio(part, whole), PERCENT_PLACES)

    def _unit_price(self, line: LineItem, candidates: Sequence[RelatedSource]) -> Decimal:
        for source in candidates:
            if source.offers_markup:
                return self._round(
                    source.cost_price * (HUNDRED + source.markup_percent) / HUNDRED
                )

        if line.unit_price == ZERO and self._fallback_markup:
            for source in candidates:
                if source.cost_price and source.cost_price > ZERO:
                    return self._round(
                        source.cost_price * (HUNDRED + self._fallback_markup) / HUNDRED
                    )

        return line.unit_price

    def _discount(
        self, candidates: Sequence[RelatedSource], gross: Decimal
    ) -> tuple[Decimal, Decimal, SourceKind | None]:
        for source in candidates:
            if source.discount_percent > ZERO:
                amount = self._round(percent_of(gross, source.discount_percent))
                amount = self._cap_discount(amount, gross, source)
                percent = source.discount_percent
                if amount != self._round(percent_of(gross, percent)):
                    percent = self._display_percent(amount, gross)
                return amount, percent, source.kind
            if source.discount_amount > ZERO:
                amount = self._cap_discount(self._round(source.discount_amount), gross, source)
                return amount, self._display_percent(amount, gross), source.kind
        return ZERO, ZERO, None

    def _cap_discount(
        self, amount: Decimal, gross: Decimal, source: RelatedSource
    ) -> Decimal:
        if amount <= gross:
            return amount
        if self._discount_overflow == DiscountOverflowPolicy.RAISE:
            raise InvalidLineItemError(
                "discount_amount", amount, f"exceeds gross amount {gross}"
            )
        logger.warning(
            "discount_clamped",
            source=source.kind.value,
            reference_id=str(source.reference_id) if source.reference_id else None,
            discount=str(amount),
            gross=str(gross),
        )
        return clamp(amount, ZERO, gross)

    def _vat(
        self, candidates: Sequence[RelatedSource], net: Decimal
    ) -> tuple[Decimal, Decimal, SourceKind | None, bool]:
        for source in candidates:
            if source.vat_percent > ZERO:
                amount = self._round(percent_of(net, source.vat_percent))
                return amount, source.vat_percent, source.kind, True
            if source.vat_amount > ZERO:
                amount = self._round(source.vat_amount)
                return amount, self._display_percent(amount, net), source.kind, False
        return ZERO, ZERO, None, False

    def _split_stored_total(
        self,
        total: Decimal,
        vat: Decimal,
        vat_percent: Decimal,
        vat_by_percent: bool,
    ) -> tuple[Decimal, Decimal]:
        """Split a trusted total into net and VAT."""
        if vat_by_percent:
            net = self._round(total * HUNDRED / (HUNDRED + vat_percent))
            return net, total - net
        vat = clamp(vat, ZERO, total)
        return total - vat, vat


def _validate_source(source: RelatedSource) -> None:
    for name in ("discount_percent", "discount_amount", "vat_percent", "vat_amount"):
        value = getattr(source, name)
        if value < ZERO:
            raise InvalidLineItemError(
                f"{source.kind.value}.{name}", value, "must not be negative"
            )
    for name in ("cost_price", "markup_percent"):
        value = getattr(source, name)
        if value is not None and value < ZERO:
            raise InvalidLineItemError(
                f"{source.kind.value}.{name}", value, "must not be negative"
            )


def resolve_line(
    line: LineItem,
    sources: Iterable[RelatedSource] = (),
    currency: str = "USD",
    **options,
) -> ResolvedBreakdown:
    """Resolve a single line without keeping a resolver around."""
    return LineItemResolver(currency=currency, **options).resolve(line, sources)
