"""DocumentService implementation: the thin caller around the pricing engine.

Pulls rows through the repository interfaces, hands them to the pure
resolver, aggregator, ledger and status machine, and persists whatever
they decide. No arithmetic lives here.
"""

from dataclasses import replace
from decimal import Decimal
from uuid import UUID

from back_office_ledger.config import Settings, get_settings
from back_office_ledger.domain.documents import (
    DocumentHeader,
    FulfillmentRecord,
    LineItem,
    RelatedSource,
)
from back_office_ledger.domain.money import ZERO
from back_office_ledger.domain.pricing import MarkupConfiguration, select_markup
from back_office_ledger.domain.value_objects import (
    DocumentEvent,
    DocumentStatus,
    DocumentType,
    OrderLineKey,
    OrderLineKind,
)
from back_office_ledger.exceptions import (
    DocumentLockedError,
    DocumentNotFoundError,
    FulfillmentDocumentError,
    FulfillmentRecordNotFoundError,
)
from back_office_ledger.logging_config import document_context, get_logger
from back_office_ledger.repositories.interfaces import (
    DocumentRepository,
    FulfillmentRecordRepository,
    LineItemRepository,
    MarkupConfigurationRepository,
)
from back_office_ledger.services.interfaces import (
    DocumentService,
    DocumentTotals,
    LedgerSummary,
    ReconciliationResult,
    RemainingResult,
    ResolvedBreakdown,
)
from back_office_ledger.services.line_items import LineItemResolver
from back_office_ledger.services.quantity_ledger import QuantityLedger
from back_office_ledger.services.status_machine import TERMINAL_STATUSES, DocumentStatusMachine
from back_office_ledger.services.totals import DocumentTotalsAggregator

logger = get_logger(__name__)

# Documents whose own lines are the order lines fulfilled elsewhere
_ORDER_DOCUMENTS = {
    DocumentType.SALES_ORDER: OrderLineKind.SALES_ORDER_ITEM,
    DocumentType.SUPPLIER_LPO: OrderLineKind.LPO_ITEM,
}

# Documents whose fulfillment records live on the document itself
_FULFILLMENT_DOCUMENTS = frozenset({DocumentType.DELIVERY, DocumentType.GOODS_RECEIPT})

_LEDGER_EVENTS = frozenset({DocumentEvent.RECORD_FULFILLMENT, DocumentEvent.RESOLVE_DISCREPANCY})


class DocumentServiceImpl(DocumentService):
    """Resolve, total, reconcile and advance documents held in a repository."""

    def __init__(
        self,
        document_repo: DocumentRepository,
        line_repo: LineItemRepository,
        fulfillment_repo: FulfillmentRecordRepository,
        markup_repo: MarkupConfigurationRepository | None = None,
        settings: Settings | None = None,
        status_machine: DocumentStatusMachine | None = None,
    ) -> None:
        self._document_repo = document_repo
        self._line_repo = line_repo
        self._fulfillment_repo = fulfillment_repo
        self._markup_repo = markup_repo
        self._settings = settings or get_settings()
        self._status_machine = status_machine or DocumentStatusMachine()
        self._ledger = QuantityLedger.from_settings(self._settings)

    def get_document(self, document_id: UUID) -> DocumentHeader:
        """Return the header or raise ``DocumentNotFoundError``."""
        header = self._document_repo.get(document_id)
        if header is None:
            raise DocumentNotFoundError(document_id)
        return header

    def resolve_document(self, document_id: UUID) -> list[ResolvedBreakdown]:
        """Resolve every line of a document in line order.

        Each line is priced against the header percentages first and then
        the upstream line its ``source_link`` points at, if that still exists.
        """
        header = self.get_document(document_id)
        configs = self._markup_configs()
        header_source = header.as_source()
        breakdowns = []
        for line in self._line_repo.list_by_document(document_id):
            sources: list[RelatedSource] = [header_source]
            upstream = self._line_repo.get_related_source(line)
            if upstream is not None:
                sources.append(upstream)
            resolver = self._resolver_for(header, line, configs)
            breakdowns.append(resolver.resolve(line, sources))
        return breakdowns

    def document_totals(self, document_id: UUID) -> DocumentTotals:
        header = self.get_document(document_id)
        return self._aggregator(header.currency).aggregate(self.resolve_document(document_id))

    def reconcile_document(
        self, document_id: UUID, strict: bool | None = None
    ) -> ReconciliationResult:
        """Compare recomputed totals with the header caches.

        Args:
            document_id: Document to check.
            strict: Raise on mismatch. Defaults to ``strict_reconciliation``.

        Raises:
            DocumentNotFoundError: If the document does not exist.
            ReconciliationMismatchError: If strict and totals drifted.
        """
        header = self.get_document(document_id)
        if strict is None:
            strict = self._settings.strict_reconciliation
        aggregator = self._aggregator(header.currency)
        totals = aggregator.aggregate(self.resolve_document(document_id))
        stored = self._document_repo.get_header_totals(document_id) or header.stored_totals
        with document_context(document_id, header.number):
            return aggregator.reconcile(totals, stored, strict=strict)

    def refresh_totals(self, document_id: UUID) -> DocumentTotals:
        """Recompute the header caches and write them back."""
        totals = self.document_totals(document_id)
        self._document_repo.update_totals(document_id, totals.to_header_totals())
        logger.info(
            "document_totals_refreshed",
            document_id=str(document_id),
            total_amount=str(totals.total_amount),
        )
        return totals

    def order_line_remaining(self, key: OrderLineKey) -> RemainingResult:
        records = self._live_records(key)
        return self._ledger.aggregate_across_documents(key, records)

    def document_ledger(self, document_id: UUID) -> LedgerSummary:
        """Quantity results for a document.

        Sales orders and LPOs aggregate every delivery or receipt that points
        back at their lines, skipping fragments on cancelled or rejected
        documents. Deliveries and goods receipts aggregate their own records.
        Other document types carry no quantities.
        """
        header = self.get_document(document_id)
        if header.document_type in _ORDER_DOCUMENTS:
            kind = _ORDER_DOCUMENTS[header.document_type]
            ordered: dict[OrderLineKey, Decimal] = {}
            records: list[FulfillmentRecord] = []
            for line in self._line_repo.list_by_document(document_id):
                key = OrderLineKey(kind, line.id)
                ordered[key] = line.quantity
                records.extend(self._live_records(key))
            return self._ledger.summarize(records, ordered)
        if header.document_type in _FULFILLMENT_DOCUMENTS:
            return self._ledger.summarize(self._fulfillment_repo.list_by_document(document_id))
        return LedgerSummary()

    def apply_event(self, document_id: UUID, event: DocumentEvent) -> DocumentStatus:
        """Move a document to the status ``event`` leads to and persist it.

        Raises:
            DocumentNotFoundError: If the document does not exist.
            IllegalTransitionError: If the event is not allowed from the
                current status.
        """
        header = self.get_document(document_id)
        event = DocumentEvent(event)
        ledger = self.document_ledger(document_id) if event in _LEDGER_EVENTS else None
        new_status = self._status_machine.next_status(
            header.document_type, header.status, ledger, event
        )
        with document_context(document_id, header.number):
            if new_status != header.status:
                self._document_repo.update_status(document_id, new_status)
                logger.info(
                    "status_transition",
                    document_type=header.document_type.value,
                    event=event.value,
                    from_status=header.status.value,
                    to_status=new_status.value,
                )
            else:
                logger.debug("status_unchanged", event=event.value, status=new_status.value)
        return new_status

    def allowed_events(self, document_id: UUID) -> set[DocumentEvent]:
        header = self.get_document(document_id)
        return self._status_machine.allowed_events(header.document_type, header.status)

    def add_line_item(self, line: LineItem) -> None:
        header = self.get_document(line.document_id)
        self._ensure_editable(header)
        line.validate()
        self._line_repo.add(line)

    def remove_line_item(self, line_id: UUID) -> None:
        line = self._line_repo.get(line_id)
        if line is None:
            return
        self._ensure_editable(self.get_document(line.document_id))
        self._line_repo.delete(line_id)

    def record_fulfillment(self, record: FulfillmentRecord) -> RemainingResult:
        """Store a delivery or receipt fragment and return its order line's state.

        The ledger runs over the stored fragments plus the new one before
        anything is written, so a strict over-delivery leaves storage untouched.

        Raises:
            DocumentNotFoundError: If the fulfillment document does not exist.
            FulfillmentDocumentError: If the document is not a delivery or
                goods receipt matching the record's kind, or is cancelled
                or rejected.
            InvalidFulfillmentRecordError: On negative quantities.
            OverDeliveryError: If strict and the line would be over-fulfilled.
        """
        self._ensure_fulfillable(self.get_document(record.document_id), record)
        record.validate()
        key = record.order_line_key
        existing = self._live_records(key)
        result = self._ledger.aggregate_across_documents(key, [*existing, record])
        self._fulfillment_repo.add(record)
        return result

    def update_fulfillment(
        self,
        record_id: UUID,
        fulfilled_quantity: Decimal,
        picked_quantity: Decimal | None = None,
        damaged_quantity: Decimal | None = None,
        short_quantity: Decimal | None = None,
    ) -> RemainingResult:
        """Change the quantities of a stored fragment. ``ordered_quantity`` stays."""
        current = self._fulfillment_repo.get(record_id)
        if current is None:
            raise FulfillmentRecordNotFoundError(record_id)
        self._ensure_fulfillable(self.get_document(current.document_id), current)
        updated = replace(
            current,
            fulfilled_quantity=fulfilled_quantity,
            picked_quantity=current.picked_quantity if picked_quantity is None else picked_quantity,
            damaged_quantity=current.damaged_quantity if damaged_quantity is None else damaged_quantity,
            short_quantity=current.short_quantity if short_quantity is None else short_quantity,
        )
        updated.validate()
        key = current.order_line_key
        others = [
            record
            for record in self._live_records(key)
            if record.id != record_id
        ]
        result = self._ledger.aggregate_across_documents(key, [*others, updated])
        self._fulfillment_repo.update_quantities(
            record_id,
            updated.fulfilled_quantity,
            picked_quantity=updated.picked_quantity,
            damaged_quantity=updated.damaged_quantity,
            short_quantity=updated.short_quantity,
        )
        return result

    def _live_records(self, key: OrderLineKey) -> list[FulfillmentRecord]:
        """Fragments for an order line whose document is still open."""
        records = []
        closed: dict[UUID, bool] = {}
        for record in self._fulfillment_repo.list_by_order_line(key):
            if record.document_id not in closed:
                header = self._document_repo.get(record.document_id)
                closed[record.document_id] = header is None or header.status in TERMINAL_STATUSES
            if not closed[record.document_id]:
                records.append(record)
        return records

    def _ensure_editable(self, header: DocumentHeader) -> None:
        if not header.is_editable:
            raise DocumentLockedError(header.id, header.status.value)

    @staticmethod
    def _ensure_fulfillable(header: DocumentHeader, record: FulfillmentRecord) -> None:
        if header.document_type not in _FULFILLMENT_DOCUMENTS:
            raise FulfillmentDocumentError(
                header.id, f"{header.document_type.value} documents carry no fulfillment"
            )
        if header.document_type.value != record.kind.value:
            raise FulfillmentDocumentError(
                header.id,
                f"{record.kind.value} record on a {header.document_type.value} document",
            )
        if header.status in TERMINAL_STATUSES:
            raise FulfillmentDocumentError(header.id, f"document is {header.status.value}")

    def _markup_configs(self) -> list[MarkupConfiguration]:
        if self._markup_repo is None:
            return []
        return list(self._markup_repo.list_active())

    def _resolver_for(
        self,
        header: DocumentHeader,
        line: LineItem,
        configs: list[MarkupConfiguration],
    ) -> LineItemResolver:
        fallback = None
        if self._markup_repo is not None and line.unit_price == ZERO:
            fallback = select_markup(
                configs,
                customer_type=header.customer_type,
                item_id=line.item_id,
                category_id=line.category_id,
            )
        return LineItemResolver.from_settings(
            self._settings, currency=header.currency, fallback_markup_percent=fallback
        )

    def _aggregator(self, currency: str) -> DocumentTotalsAggregator:
        return DocumentTotalsAggregator(
            currency=currency,
            minor_unit_overrides=self._settings.currency_minor_units,
            tolerance=self._settings.reconciliation_tolerance,
        )
