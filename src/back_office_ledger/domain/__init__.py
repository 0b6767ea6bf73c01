from back_office_ledger.domain.documents import (
    DocumentHeader,
    FulfillmentRecord,
    HeaderTotals,
    LineItem,
    RelatedSource,
)
from back_office_ledger.domain.pricing import MarkupConfiguration, select_markup
from back_office_ledger.domain.value_objects import (
    CustomerType,
    DocumentEvent,
    DocumentStatus,
    DocumentType,
    FulfillmentKind,
    MarkupLevel,
    OrderLineKey,
    OrderLineKind,
    SourceKind,
    SourceLink,
)

__all__ = [
    "CustomerType",
    "DocumentEvent",
    "DocumentHeader",
    "DocumentStatus",
    "DocumentType",
    "FulfillmentKind",
    "FulfillmentRecord",
    "HeaderTotals",
    "LineItem",
    "MarkupConfiguration",
    "MarkupLevel",
    "OrderLineKey",
    "OrderLineKind",
    "RelatedSource",
    "SourceKind",
    "SourceLink",
    "select_markup",
]
