"""Status transitions for order-like documents.

Every document type shares the same shape: Draft -> Pending -> Partial <->
Complete, with Cancelled and Rejected as terminal side exits and
Discrepancy as a flag state for documents that inspect what arrived.
What differs per type is captured in a ``StatusModel``: which statuses
exist, which status means "done", where fulfillment may be recorded and
any type-specific edges (an LPO is sent and confirmed, an invoice is sent
and paid, a purchase invoice can fall overdue).

``next_status`` is pure. It either returns the new status or raises
``IllegalTransitionError``; persisting the result is the caller's job.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

from back_office_ledger.domain.value_objects import (
    DocumentEvent,
    DocumentStatus,
    DocumentType,
)
from back_office_ledger.exceptions import IllegalTransitionError, UnsupportedDocumentTypeError
from back_office_ledger.logging_config import get_logger
from back_office_ledger.services.interfaces import LedgerSummary, RemainingResult

logger = get_logger(__name__)

S = DocumentStatus
E = DocumentEvent

TERMINAL_STATUSES = frozenset({S.CANCELLED, S.REJECTED})

LedgerResult = LedgerSummary | RemainingResult


@dataclass(frozen=True)
class StatusModel:
    document_type: DocumentType
    statuses: frozenset[DocumentStatus]
    completion_status: DocumentStatus
    # statuses from which a fulfillment update may be recorded
    fulfillable: frozenset[DocumentStatus] = frozenset()
    # statuses with no side exits left (besides terminal ones)
    closed: frozenset[DocumentStatus] = frozenset()
    # where a fulfillment that was undone falls back to
    awaiting_status: DocumentStatus = S.PENDING
    edges: Mapping[tuple[DocumentStatus, DocumentEvent], DocumentStatus] = field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        used = {self.completion_status, self.awaiting_status, *self.fulfillable, *self.closed}
        for (source, _), target in self.edges.items():
            used.update((source, target))
        if self.fulfillable:
            used.add(S.PARTIAL)
        unknown = used - self.statuses
        if unknown:
            names = ", ".join(sorted(status.value for status in unknown))
            raise ValueError(f"{self.document_type.value} model uses undeclared statuses: {names}")

    @property
    def supports_discrepancy(self) -> bool:
        return S.DISCREPANCY in self.statuses

    def is_open(self, status: DocumentStatus) -> bool:
        return status not in TERMINAL_STATUSES and status not in self.closed


def _side_exits(
    statuses: frozenset[DocumentStatus], closed: frozenset[DocumentStatus]
) -> dict[tuple[DocumentStatus, DocumentEvent], DocumentStatus]:
    """Cancel, reject and flag edges from every open status."""
    edges: dict[tuple[DocumentStatus, DocumentEvent], DocumentStatus] = {}
    for status in statuses - TERMINAL_STATUSES - closed:
        if S.CANCELLED in statuses:
            edges[(status, E.CANCEL)] = S.CANCELLED
        if S.REJECTED in statuses and status != S.DRAFT:
            edges[(status, E.REJECT)] = S.REJECTED
        if S.DISCREPANCY in statuses and status not in (S.DRAFT, S.DISCREPANCY):
            edges[(status, E.FLAG_DISCREPANCY)] = S.DISCREPANCY
    return edges


def _model(
    document_type: DocumentType,
    statuses: set[DocumentStatus],
    completion_status: DocumentStatus,
    edges: dict[tuple[DocumentStatus, DocumentEvent], DocumentStatus],
    fulfillable: set[DocumentStatus] | None = None,
    closed: set[DocumentStatus] | None = None,
    awaiting_status: DocumentStatus = S.PENDING,
) -> StatusModel:
    frozen_statuses = frozenset(statuses)
    frozen_closed = frozenset(closed or ())
    all_edges = _side_exits(frozen_statuses, frozen_closed)
    all_edges[(S.DRAFT, E.SUBMIT)] = S.PENDING
    all_edges.update(edges)
    return StatusModel(
        document_type=document_type,
        statuses=frozen_statuses,
        completion_status=completion_status,
        fulfillable=frozenset(fulfillable or ()),
        closed=frozen_closed,
        awaiting_status=awaiting_status,
        edges=all_edges,
    )


STATUS_MODELS: dict[DocumentType, StatusModel] = {
    DocumentType.QUOTATION: _model(
        DocumentType.QUOTATION,
        {S.DRAFT, S.PENDING, S.APPROVED, S.REJECTED, S.CANCELLED},
        completion_status=S.APPROVED,
        edges={(S.PENDING, E.APPROVE): S.APPROVED},
        closed={S.APPROVED},
    ),
    DocumentType.SUPPLIER_QUOTE: _model(
        DocumentType.SUPPLIER_QUOTE,
        {S.DRAFT, S.PENDING, S.APPROVED, S.REJECTED, S.CANCELLED},
        completion_status=S.APPROVED,
        edges={(S.PENDING, E.APPROVE): S.APPROVED},
        closed={S.APPROVED},
    ),
    DocumentType.SALES_ORDER: _model(
        DocumentType.SALES_ORDER,
        {S.DRAFT, S.PENDING, S.CONFIRMED, S.PARTIAL, S.COMPLETE, S.CANCELLED},
        completion_status=S.COMPLETE,
        edges={(S.PENDING, E.CONFIRM): S.CONFIRMED},
        fulfillable={S.PENDING, S.CONFIRMED, S.PARTIAL, S.COMPLETE},
        closed={S.COMPLETE},
    ),
    DocumentType.DELIVERY: _model(
        DocumentType.DELIVERY,
        {S.DRAFT, S.PENDING, S.PARTIAL, S.COMPLETE, S.CANCELLED},
        completion_status=S.COMPLETE,
        edges={},
        fulfillable={S.PENDING, S.PARTIAL, S.COMPLETE},
        closed={S.COMPLETE},
    ),
    DocumentType.INVOICE: _model(
        DocumentType.INVOICE,
        {S.DRAFT, S.PENDING, S.SENT, S.OVERDUE, S.PAID, S.CANCELLED},
        completion_status=S.PAID,
        edges={
            (S.PENDING, E.SEND): S.SENT,
            (S.SENT, E.MARK_OVERDUE): S.OVERDUE,
            (S.SENT, E.MARK_PAID): S.PAID,
            (S.OVERDUE, E.MARK_PAID): S.PAID,
        },
        closed={S.PAID},
    ),
    DocumentType.SUPPLIER_LPO: _model(
        DocumentType.SUPPLIER_LPO,
        {
            S.DRAFT,
            S.PENDING,
            S.SENT,
            S.CONFIRMED,
            S.PARTIAL,
            S.RECEIVED,
            S.CANCELLED,
            S.REJECTED,
        },
        completion_status=S.RECEIVED,
        edges={
            (S.PENDING, E.SEND): S.SENT,
            (S.SENT, E.CONFIRM): S.CONFIRMED,
        },
        fulfillable={S.SENT, S.CONFIRMED, S.PARTIAL, S.RECEIVED},
        closed={S.RECEIVED},
        awaiting_status=S.CONFIRMED,
    ),
    DocumentType.GOODS_RECEIPT: _model(
        DocumentType.GOODS_RECEIPT,
        {
            S.DRAFT,
            S.PENDING,
            S.PARTIAL,
            S.COMPLETE,
            S.DISCREPANCY,
            S.APPROVED,
            S.CANCELLED,
            S.REJECTED,
        },
        completion_status=S.COMPLETE,
        edges={
            (S.PENDING, E.APPROVE): S.APPROVED,
            (S.PARTIAL, E.APPROVE): S.APPROVED,
            (S.COMPLETE, E.APPROVE): S.APPROVED,
            (S.DISCREPANCY, E.APPROVE): S.APPROVED,
        },
        fulfillable={S.PENDING, S.PARTIAL, S.COMPLETE, S.DISCREPANCY},
        closed={S.APPROVED},
    ),
    DocumentType.PURCHASE_INVOICE: _model(
        DocumentType.PURCHASE_INVOICE,
        {
            S.DRAFT,
            S.PENDING,
            S.APPROVED,
            S.OVERDUE,
            S.DISCREPANCY,
            S.CANCELLED,
            S.REJECTED,
        },
        completion_status=S.APPROVED,
        edges={
            (S.PENDING, E.APPROVE): S.APPROVED,
            (S.APPROVED, E.MARK_OVERDUE): S.OVERDUE,
        },
        closed={S.APPROVED, S.OVERDUE},
    ),
}


class DocumentStatusMachine:
    """Decide the next status of a document from an event and its quantities."""

    def __init__(self, models: Mapping[DocumentType, StatusModel] | None = None) -> None:
        self._models = dict(models or STATUS_MODELS)

    def model_for(self, document_type: DocumentType) -> StatusModel:
        try:
            return self._models[document_type]
        except KeyError:
            raise UnsupportedDocumentTypeError(document_type.value) from None

    def next_status(
        self,
        document_type: DocumentType,
        current: DocumentStatus | str,
        ledger_result: LedgerResult | None,
        event: DocumentEvent | str,
    ) -> DocumentStatus:
        """Return the status ``event`` moves the document to.

        Args:
            document_type: Which transition table applies.
            current: The persisted status.
            ledger_result: Quantity aggregation for the document; needed for
                fulfillment and discrepancy resolution events.
            event: What happened.

        Raises:
            IllegalTransitionError: If the event is not allowed from
                ``current`` for this document type.
        """
        model = self.model_for(document_type)
        current = DocumentStatus(current)
        event = DocumentEvent(event)

        if current not in model.statuses or current in TERMINAL_STATUSES:
            raise IllegalTransitionError(document_type.value, current.value, event.value)

        if event == E.RECORD_FULFILLMENT:
            if current not in model.fulfillable:
                raise IllegalTransitionError(document_type.value, current.value, event.value)
            return self._fulfillment_status(model, current, ledger_result)

        if event == E.RESOLVE_DISCREPANCY:
            if current != S.DISCREPANCY:
                raise IllegalTransitionError(document_type.value, current.value, event.value)
            return self._resolved_status(model, ledger_result)

        target = model.edges.get((current, event))
        if target is None:
            raise IllegalTransitionError(document_type.value, current.value, event.value)
        return target

    def allowed_events(
        self, document_type: DocumentType, current: DocumentStatus | str
    ) -> set[DocumentEvent]:
        """Events ``next_status`` accepts from ``current``; empty when unmodelled."""
        model = self._models.get(document_type)
        current = DocumentStatus(current)
        if model is None or current in TERMINAL_STATUSES:
            return set()
        events = {event for (source, event) in model.edges if source == current}
        if current in model.fulfillable:
            events.add(E.RECORD_FULFILLMENT)
        if current == S.DISCREPANCY:
            events.add(E.RESOLVE_DISCREPANCY)
        return events

    def _fulfillment_status(
        self,
        model: StatusModel,
        current: DocumentStatus,
        ledger: LedgerResult | None,
    ) -> DocumentStatus:
        if ledger is None:
            raise ValueError("Recording fulfillment needs the document's ledger result")
        if ledger.over_delivered:
            logger.warning(
                "status_not_advanced_over_delivery",
                document_type=model.document_type.value,
                status=current.value,
            )
            return current
        if model.supports_discrepancy and ledger.has_discrepancy:
            return S.DISCREPANCY
        return self._quantity_status(model, current, ledger)

    def _resolved_status(
        self, model: StatusModel, ledger: LedgerResult | None
    ) -> DocumentStatus:
        if ledger is None or not model.fulfillable:
            return model.awaiting_status
        return self._quantity_status(model, S.DISCREPANCY, ledger)

    @staticmethod
    def _quantity_status(
        model: StatusModel, current: DocumentStatus, ledger: LedgerResult
    ) -> DocumentStatus:
        if ledger.any_fulfilled and ledger.all_fulfilled:
            return model.completion_status
        if ledger.any_fulfilled:
            return S.PARTIAL
        if current in (S.PARTIAL, S.DISCREPANCY, model.completion_status):
            return model.awaiting_status
        return current


_default_machine = DocumentStatusMachine()


def next_status(
    document_type: DocumentType,
    current: DocumentStatus | str,
    ledger_result: LedgerResult | None,
    event: DocumentEvent | str,
) -> DocumentStatus:
    return _default_machine.next_status(document_type, current, ledger_result, event)
