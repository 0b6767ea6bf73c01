"""Document totals: summing resolved lines and checking them against the header."""

from collections.abc import Iterable
from decimal import Decimal

from back_office_ledger.domain.documents import HeaderTotals
from back_office_ledger.domain.money import (
    ZERO,
    minor_units,
    normalize_currency,
    quantum,
)
from back_office_ledger.exceptions import ReconciliationMismatchError
from back_office_ledger.logging_config import get_logger
from back_office_ledger.services.interfaces import (
    DocumentTotals,
    ReconciliationResult,
    ResolvedBreakdown,
)

logger = get_logger(__name__)

# computed field -> stored header field
_RECONCILED_FIELDS = {
    "subtotal": "subtotal",
    "discount_amount": "discount_amount",
    "vat_amount": "tax_amount",
    "total_amount": "total_amount",
}


class DocumentTotalsAggregator:
    """Aggregate resolved lines into document totals.

    Sums are taken over the per-line figures exactly as displayed; nothing
    is re-rounded after summation, so the document total always equals the
    sum of its line totals.
    """

    def __init__(
        self,
        currency: str = "USD",
        minor_unit_overrides: dict[str, int] | None = None,
        tolerance: Decimal | None = None,
    ) -> None:
        self._currency = normalize_currency(currency)
        places = minor_units(self._currency, minor_unit_overrides)
        self._tolerance = quantum(places) if tolerance is None else tolerance

    @property
    def tolerance(self) -> Decimal:
        return self._tolerance

    def aggregate(self, lines: Iterable[ResolvedBreakdown]) -> DocumentTotals:
        subtotal = discount = net = vat = total = ZERO
        count = 0
        for line in lines:
            if line.currency != self._currency:
                raise ValueError(
                    f"Cannot aggregate {line.currency} line into {self._currency} document"
                )
            subtotal += line.gross_amount
            discount += line.discount_amount
            net += line.net_amount
            vat += line.vat_amount
            total += line.total_amount
            count += 1
        return DocumentTotals(
            currency=self._currency,
            line_count=count,
            subtotal=subtotal,
            discount_amount=discount,
            net_amount=net,
            vat_amount=vat,
            total_amount=total,
        )

    def reconcile(
        self,
        totals: DocumentTotals,
        stored: HeaderTotals,
        tolerance: Decimal | None = None,
        strict: bool = False,
    ) -> ReconciliationResult:
        """Compare recomputed totals with the header's cached totals.

        Stored fields that are missing are skipped. The result is reported,
        never corrected; with ``strict`` a mismatch raises instead.

        Raises:
            ReconciliationMismatchError: If ``strict`` and any field drifts
                beyond the tolerance.
        """
        allowed = self._tolerance if tolerance is None else tolerance
        deltas: dict[str, Decimal] = {}
        for computed_name, stored_name in _RECONCILED_FIELDS.items():
            stored_value = getattr(stored, stored_name)
            if stored_value is None:
                continue
            deltas[computed_name] = getattr(totals, computed_name) - stored_value

        result = ReconciliationResult(
            ok=all(abs(delta) <= allowed for delta in deltas.values()),
            tolerance=allowed,
            deltas=deltas,
        )
        if not result.ok:
            mismatches = result.mismatches
            logger.warning(
                "reconciliation_mismatch",
                currency=totals.currency,
                tolerance=str(allowed),
                deltas={name: str(delta) for name, delta in mismatches.items()},
            )
            if strict:
                raise ReconciliationMismatchError(mismatches, allowed)
        return result


def aggregate_document(
    lines: Iterable[ResolvedBreakdown], currency: str | None = None
) -> DocumentTotals:
    """Aggregate lines, taking the currency from the first line when not given."""
    materialized = list(lines)
    if currency is None:
        currency = materialized[0].currency if materialized else "USD"
    return DocumentTotalsAggregator(currency=currency).aggregate(materialized)
