"""Pricing, totals, quantity and status services.

``next_status(document_type, current, ledger_result, event)`` takes the
document type first: each type has its own transition table in
``STATUS_MODELS``.
"""

from back_office_ledger.services.documents import DocumentServiceImpl
from back_office_ledger.services.interfaces import (
    DocumentService,
    DocumentTotals,
    LedgerSummary,
    ReconciliationResult,
    RemainingResult,
    ResolvedBreakdown,
)
from back_office_ledger.services.line_items import LineItemResolver, resolve_line
from back_office_ledger.services.quantity_ledger import QuantityLedger, compute_remaining
from back_office_ledger.services.status_machine import (
    STATUS_MODELS,
    DocumentStatusMachine,
    StatusModel,
    next_status,
)
from back_office_ledger.services.totals import (
    DocumentTotalsAggregator,
    aggregate_document,
)

__all__ = [
    "DocumentService",
    "DocumentServiceImpl",
    "DocumentStatusMachine",
    "DocumentTotals",
    "DocumentTotalsAggregator",
    "LedgerSummary",
    "LineItemResolver",
    "QuantityLedger",
    "ReconciliationResult",
    "RemainingResult",
    "ResolvedBreakdown",
    "STATUS_MODELS",
    "StatusModel",
    "aggregate_document",
    "compute_remaining",
    "next_status",
    "resolve_line",
]
