from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from back_office_ledger.domain.documents import FulfillmentRecord, HeaderTotals, LineItem
from back_office_ledger.domain.money import ZERO, percent_ratio, round_half_up
from back_office_ledger.domain.value_objects import (
    DocumentEvent,
    DocumentStatus,
    OrderLineKey,
    SourceKind,
)


@dataclass(frozen=True)
class ResolvedBreakdown:
    """Canonical money figures for one line, already rounded to minor units."""

    currency: str
    quantity: Decimal
    unit_price: Decimal
    gross_amount: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    vat_percent: Decimal
    vat_amount: Decimal
    total_amount: Decimal
    line_id: UUID | None = None
    total_is_stored: bool = False
    discount_source: SourceKind | None = None
    vat_source: SourceKind | None = None


@dataclass(frozen=True)
class DocumentTotals:
    currency: str
    line_count: int
    subtotal: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    vat_amount: Decimal
    total_amount: Decimal

    @property
    def effective_discount_percent(self) -> Decimal:
        """Header discount percent as shown on the document, two places."""
        return round_half_up(percent_ratio(self.discount_amount, self.subtotal), 2)

    @property
    def effective_vat_percent(self) -> Decimal:
        """Header tax rate as shown on the document, two places."""
        return round_half_up(percent_ratio(self.vat_amount, self.net_amount), 2)

    def to_header_totals(self) -> HeaderTotals:
        return HeaderTotals(
            subtotal=self.subtotal,
            tax_amount=self.vat_amount,
            discount_amount=self.discount_amount,
            total_amount=self.total_amount,
        )


@dataclass(frozen=True)
class ReconciliationResult:
    ok: bool
    tolerance: Decimal
    deltas: dict[str, Decimal] = field(default_factory=dict)

    @property
    def mismatches(self) -> dict[str, Decimal]:
        return {
            name: delta for name, delta in self.deltas.items() if abs(delta) > self.tolerance
        }


@dataclass(frozen=True)
class RemainingResult:
    """Quantities for one order line across every fulfillment fragment."""

    key: OrderLineKey
    total_ordered: Decimal
    total_fulfilled: Decimal
    total_remaining: Decimal
    total_picked: Decimal = ZERO
    total_damaged: Decimal = ZERO
    total_short: Decimal = ZERO
    fragment_count: int = 0
    over_delivered: bool = False

    @property
    def has_discrepancy(self) -> bool:
        return self.total_damaged > ZERO or self.total_short > ZERO

    @property
    def all_fulfilled(self) -> bool:
        return self.total_remaining == ZERO

    @property
    def any_fulfilled(self) -> bool:
        return self.total_fulfilled > ZERO


@dataclass(frozen=True)
class LedgerSummary:
    """Per-line quantity results for every order line of a document."""

    lines: tuple[RemainingResult, ...] = ()

    @property
    def total_ordered(self) -> Decimal:
        return sum((line.total_ordered for line in self.lines), ZERO)

    @property
    def total_fulfilled(self) -> Decimal:
        return sum((line.total_fulfilled for line in self.lines), ZERO)

    @property
    def total_remaining(self) -> Decimal:
        return sum((line.total_remaining for line in self.lines), ZERO)

    @property
    def all_fulfilled(self) -> bool:
        return bool(self.lines) and all(line.all_fulfilled for line in self.lines)

    @property
    def any_fulfilled(self) -> bool:
        return any(line.any_fulfilled for line in self.lines)

    @property
    def has_discrepancy(self) -> bool:
        return any(line.has_discrepancy for line in self.lines)

    @property
    def over_delivered(self) -> bool:
        return any(line.over_delivered for line in self.lines)

    def for_key(self, key: OrderLineKey) -> RemainingResult | None:
        for line in self.lines:
            if line.key == key:
                return line
        return None


class DocumentService(ABC):
    @abstractmethod
    def resolve_document(self, document_id: UUID) -> list[ResolvedBreakdown]:
        pass

    @abstractmethod
    def document_totals(self, document_id: UUID) -> DocumentTotals:
        pass

    @abstractmethod
    def reconcile_document(
        self, document_id: UUID, strict: bool | None = None
    ) -> ReconciliationResult:
        pass

    @abstractmethod
    def order_line_remaining(self, key: OrderLineKey) -> RemainingResult:
        pass

    @abstractmethod
    def document_ledger(self, document_id: UUID) -> LedgerSummary:
        pass

    @abstractmethod
    def apply_event(self, document_id: UUID, event: DocumentEvent) -> DocumentStatus:
        pass

    @abstractmethod
    def add_line_item(self, line: LineItem) -> None:
        pass

    @abstractmethod
    def remove_line_item(self, line_id: UUID) -> None:
        pass

    @abstractmethod
    def record_fulfillment(self, record: FulfillmentRecord) -> RemainingResult:
        pass
