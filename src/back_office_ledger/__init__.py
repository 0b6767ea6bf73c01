from back_office_ledger.domain.documents import (
    DocumentHeader,
    FulfillmentRecord,
    HeaderTotals,
    LineItem,
    RelatedSource,
)
from back_office_ledger.domain.value_objects import (
    DocumentEvent,
    DocumentStatus,
    DocumentType,
    OrderLineKey,
    SourceLink,
)
from back_office_ledger.services.line_items import resolve_line
from back_office_ledger.services.quantity_ledger import compute_remaining
from back_office_ledger.services.status_machine import next_status
from back_office_ledger.services.totals import aggregate_document

__all__ = [
    "DocumentEvent",
    "DocumentHeader",
    "DocumentStatus",
    "DocumentType",
    "FulfillmentRecord",
    "HeaderTotals",
    "LineItem",
    "OrderLineKey",
    "RelatedSource",
    "SourceLink",
    "aggregate_document",
    "compute_remaining",
    "next_status",
    "resolve_line",
]

__version__ = "0.1.0"
