from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class DocumentType(str, Enum):
    QUOTATION = "quotation"
    SALES_ORDER = "sales_order"
    DELIVERY = "delivery"
    INVOICE = "invoice"
    SUPPLIER_QUOTE = "supplier_quote"
    SUPPLIER_LPO = "supplier_lpo"
    GOODS_RECEIPT = "goods_receipt"
    PURCHASE_INVOICE = "purchase_invoice"


class DocumentStatus(str, Enum):
    DRAFT = "Draft"
    PENDING = "Pending"
    SENT = "Sent"
    CONFIRMED = "Confirmed"
    PARTIAL = "Partial"
    COMPLETE = "Complete"
    APPROVED = "Approved"
    RECEIVED = "Received"
    DISCREPANCY = "Discrepancy"
    OVERDUE = "Overdue"
    PAID = "Paid"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"


class DocumentEvent(str, Enum):
    SUBMIT = "submit"
    SEND = "send"
    CONFIRM = "confirm"
    RECORD_FULFILLMENT = "record_fulfillment"
    APPROVE = "approve"
    FLAG_DISCREPANCY = "flag_discrepancy"
    RESOLVE_DISCREPANCY = "resolve_discrepancy"
    MARK_OVERDUE = "mark_overdue"
    MARK_PAID = "mark_paid"
    CANCEL = "cancel"
    REJECT = "reject"


class SourceKind(str, Enum):
    """Where a pricing value came from, nearest first."""

    LINE = "line"
    HEADER = "header"
    QUOTATION_ITEM = "quotation_item"
    SALES_ORDER_ITEM = "sales_order_item"
    DELIVERY_ITEM = "delivery_item"
    INVOICE_ITEM = "invoice_item"
    SUPPLIER_QUOTE_ITEM = "supplier_quote_item"
    LPO_ITEM = "lpo_item"


class OrderLineKind(str, Enum):
    SALES_ORDER_ITEM = "sales_order_item"
    LPO_ITEM = "lpo_item"
    ITEM = "item"


class FulfillmentKind(str, Enum):
    DELIVERY = "delivery"
    GOODS_RECEIPT = "goods_receipt"


class CustomerType(str, Enum):
    RETAIL = "retail"
    WHOLESALE = "wholesale"


class MarkupLevel(str, Enum):
    SYSTEM = "system"
    CATEGORY = "category"
    ITEM = "item"


@dataclass(frozen=True, slots=True)
class SourceLink:
    """Weak reference to the upstream line a line was copied from."""

    kind: SourceKind
    id: UUID

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass(frozen=True, slots=True)
class OrderLineKey:
    """Identity of the order line a fulfillment record counts against."""

    kind: OrderLineKind
    id: UUID

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"

    @classmethod
    def parse(cls, value: str) -> "OrderLineKey":
        kind, _, raw_id = value.partition(":")
        if not raw_id:
            raise ValueError(f"Order line key must look like 'kind:uuid', got {value!r}")
        return cls(OrderLineKind(kind), UUID(raw_id))


__all__ = [
    "DocumentType",
    "DocumentStatus",
    "DocumentEvent",
    "SourceKind",
    "OrderLineKind",
    "FulfillmentKind",
    "CustomerType",
    "MarkupLevel",
    "SourceLink",
    "OrderLineKey",
]
