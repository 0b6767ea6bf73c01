from abc import ABC, abstractmethod
from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from back_office_ledger.domain.documents import (
    DocumentHeader,
    FulfillmentRecord,
    HeaderTotals,
    LineItem,
    RelatedSource,
)
from back_office_ledger.domain.pricing import MarkupConfiguration
from back_office_ledger.domain.value_objects import (
    DocumentStatus,
    DocumentType,
    OrderLineKey,
)


class DocumentRepository(ABC):
    @abstractmethod
    def add(self, header: DocumentHeader) -> None:
        pass

    @abstractmethod
    def get(self, document_id: UUID) -> DocumentHeader | None:
        pass

    @abstractmethod
    def get_by_number(self, number: str) -> DocumentHeader | None:
        pass

    @abstractmethod
    def list_by_type(self, document_type: DocumentType) -> Iterable[DocumentHeader]:
        pass

    @abstractmethod
    def get_header_totals(self, document_id: UUID) -> HeaderTotals | None:
        pass

    @abstractmethod
    def update_status(self, document_id: UUID, status: DocumentStatus) -> None:
        pass

    @abstractmethod
    def update_totals(self, document_id: UUID, totals: HeaderTotals) -> None:
        pass

    @abstractmethod
    def delete(self, document_id: UUID) -> None:
        pass


class LineItemRepository(ABC):
    @abstractmethod
    def add(self, line: LineItem) -> None:
        pass

    @abstractmethod
    def get(self, line_id: UUID) -> LineItem | None:
        pass

    @abstractmethod
    def list_by_document(self, document_id: UUID) -> Iterable[LineItem]:
        pass

    @abstractmethod
    def get_related_source(self, line: LineItem) -> RelatedSource | None:
        """Pricing of the upstream line ``line.source_link`` points at, if it still exists."""
        pass

    @abstractmethod
    def delete(self, line_id: UUID) -> None:
        pass


class FulfillmentRecordRepository(ABC):
    @abstractmethod
    def add(self, record: FulfillmentRecord) -> None:
        pass

    @abstractmethod
    def get(self, record_id: UUID) -> FulfillmentRecord | None:
        pass

    @abstractmethod
    def list_by_order_line(self, key: OrderLineKey) -> Iterable[FulfillmentRecord]:
        pass

    @abstractmethod
    def list_by_document(self, document_id: UUID) -> Iterable[FulfillmentRecord]:
        pass

    @abstractmethod
    def update_quantities(
        self,
        record_id: UUID,
        fulfilled_quantity: Decimal,
        picked_quantity: Decimal | None = None,
        damaged_quantity: Decimal | None = None,
        short_quantity: Decimal | None = None,
    ) -> None:
        pass


class MarkupConfigurationRepository(ABC):
    @abstractmethod
    def add(self, config: MarkupConfiguration) -> None:
        pass

    @abstractmethod
    def list_active(self) -> Iterable[MarkupConfiguration]:
        pass
