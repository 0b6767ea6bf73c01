from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from back_office_ledger.domain.money import (
    ZERO,
    normalize_currency,
    optional_decimal,
    to_decimal,
)
from back_office_ledger.domain.value_objects import (
    CustomerType,
    DocumentStatus,
    DocumentType,
    FulfillmentKind,
    OrderLineKey,
    OrderLineKind,
    SourceKind,
    SourceLink,
)
from back_office_ledger.exceptions import (
    InvalidFulfillmentRecordError,
    InvalidLineItemError,
)

EDITABLE_STATUSES = frozenset({DocumentStatus.DRAFT, DocumentStatus.PENDING})


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class RelatedSource:
    """Pricing fields offered by a header or an upstream line.

    Only the fields a source actually carries are meaningful; zero means
    "not provided" for the percent/amount pairs.
    """

    kind: SourceKind
    discount_percent: Decimal = ZERO
    discount_amount: Decimal = ZERO
    vat_percent: Decimal = ZERO
    vat_amount: Decimal = ZERO
    cost_price: Decimal | None = None
    markup_percent: Decimal | None = None
    reference_id: UUID | None = None

    def __post_init__(self) -> None:
        for name in ("discount_percent", "discount_amount", "vat_percent", "vat_amount"):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))
        for name in ("cost_price", "markup_percent"):
            object.__setattr__(self, name, optional_decimal(getattr(self, name)))

    @property
    def offers_markup(self) -> bool:
        return bool(
            self.cost_price
            and self.cost_price > ZERO
            and self.markup_percent
            and self.markup_percent > ZERO
        )


@dataclass
class LineItem:
    """One priced row of any document: quotation, order, delivery, invoice or LPO."""

    document_id: UUID
    quantity: Decimal
    unit_price: Decimal
    id: UUID = field(default_factory=uuid4)
    line_number: int = 0
    item_id: UUID | None = None
    category_id: UUID | None = None
    description: str = ""
    discount_percent: Decimal = ZERO
    discount_amount: Decimal = ZERO
    vat_percent: Decimal = ZERO
    vat_amount: Decimal = ZERO
    total_price: Decimal | None = None
    cost_price: Decimal | None = None
    markup_percent: Decimal | None = None
    source_link: SourceLink | None = None
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        for name in (
            "quantity",
            "unit_price",
            "discount_percent",
            "discount_amount",
            "vat_percent",
            "vat_amount",
        ):
            setattr(self, name, to_decimal(getattr(self, name)))
        for name in ("total_price", "cost_price", "markup_percent"):
            setattr(self, name, optional_decimal(getattr(self, name)))

    def validate(self) -> None:
        """Reject negative inputs. Oversized discounts are the resolver's call."""
        checks: list[tuple[str, Decimal | None]] = [
            ("quantity", self.quantity),
            ("unit_price", self.unit_price),
            ("discount_percent", self.discount_percent),
            ("discount_amount", self.discount_amount),
            ("vat_percent", self.vat_percent),
            ("vat_amount", self.vat_amount),
            ("total_price", self.total_price),
            ("cost_price", self.cost_price),
            ("markup_percent", self.markup_percent),
        ]
        for name, value in checks:
            if value is not None and value < ZERO:
                raise InvalidLineItemError(name, value, "must not be negative")

    @property
    def has_stored_total(self) -> bool:
        return self.total_price is not None and self.total_price > ZERO

    def as_source(self, kind: SourceKind) -> RelatedSource:
        """Expose this line's pricing to a downstream line that links to it."""
        return RelatedSource(
            kind=kind,
            discount_percent=self.discount_percent,
            discount_amount=self.discount_amount,
            vat_percent=self.vat_percent,
            vat_amount=self.vat_amount,
            cost_price=self.cost_price,
            markup_percent=self.markup_percent,
            reference_id=self.id,
        )


@dataclass(frozen=True, slots=True)
class HeaderTotals:
    """Aggregate caches persisted on a document header."""

    subtotal: Decimal | None = None
    tax_amount: Decimal | None = None
    discount_amount: Decimal | None = None
    total_amount: Decimal | None = None

    def __post_init__(self) -> None:
        for name in ("subtotal", "tax_amount", "discount_amount", "total_amount"):
            object.__setattr__(self, name, optional_decimal(getattr(self, name)))


@dataclass
class DocumentHeader:
    document_type: DocumentType
    number: str
    currency: str = "USD"
    status: DocumentStatus = DocumentStatus.DRAFT
    id: UUID = field(default_factory=uuid4)
    items: list[LineItem] = field(default_factory=list)
    customer_type: CustomerType = CustomerType.RETAIL
    discount_percent: Decimal = ZERO
    vat_percent: Decimal = ZERO
    subtotal: Decimal | None = None
    tax_amount: Decimal | None = None
    discount_amount: Decimal | None = None
    total_amount: Decimal | None = None
    notes: str = ""
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        self.currency = normalize_currency(self.currency)
        self.discount_percent = to_decimal(self.discount_percent)
        self.vat_percent = to_decimal(self.vat_percent)
        for name in ("subtotal", "tax_amount", "discount_amount", "total_amount"):
            setattr(self, name, optional_decimal(getattr(self, name)))

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    @property
    def stored_totals(self) -> HeaderTotals:
        return HeaderTotals(
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            discount_amount=self.discount_amount,
            total_amount=self.total_amount,
        )

    def as_source(self) -> RelatedSource:
        # The header discount_amount is a document total, not a per-line
        # amount, so only the percentages flow down to lines.
        return RelatedSource(
            kind=SourceKind.HEADER,
            discount_percent=self.discount_percent,
            vat_percent=self.vat_percent,
            reference_id=self.id,
        )


@dataclass
class FulfillmentRecord:
    """A delivery item or goods receipt item counted against an order line.

    ``ordered_quantity`` is copied from the order line when the record is
    created and cannot be reassigned afterwards.
    """

    document_id: UUID
    ordered_quantity: Decimal
    fulfilled_quantity: Decimal = ZERO
    id: UUID = field(default_factory=uuid4)
    kind: FulfillmentKind = FulfillmentKind.DELIVERY
    item_id: UUID | None = None
    sales_order_item_id: UUID | None = None
    lpo_item_id: UUID | None = None
    picked_quantity: Decimal = ZERO
    damaged_quantity: Decimal = ZERO
    short_quantity: Decimal = ZERO
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        for name in (
            "fulfilled_quantity",
            "picked_quantity",
            "damaged_quantity",
            "short_quantity",
        ):
            setattr(self, name, to_decimal(getattr(self, name)))

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "ordered_quantity":
            if "ordered_quantity" in self.__dict__:
                raise AttributeError("ordered_quantity is immutable once recorded")
            value = to_decimal(value)
        super().__setattr__(name, value)

    @property
    def order_line_key(self) -> OrderLineKey:
        if self.sales_order_item_id is not None:
            return OrderLineKey(OrderLineKind.SALES_ORDER_ITEM, self.sales_order_item_id)
        if self.lpo_item_id is not None:
            return OrderLineKey(OrderLineKind.LPO_ITEM, self.lpo_item_id)
        if self.item_id is not None:
            return OrderLineKey(OrderLineKind.ITEM, self.item_id)
        return OrderLineKey(OrderLineKind.ITEM, self.id)

    @property
    def has_discrepancy(self) -> bool:
        return self.damaged_quantity > ZERO or self.short_quantity > ZERO

    def validate(self) -> None:
        for name in (
            "ordered_quantity",
            "fulfilled_quantity",
            "picked_quantity",
            "damaged_quantity",
            "short_quantity",
        ):
            value = getattr(self, name)
            if value < ZERO:
                raise InvalidFulfillmentRecordError(self.id, name, value)
