from decimal import Decimal
from uuid import uuid4

import pytest

from back_office_ledger.config import Environment, Settings
from back_office_ledger.domain.documents import DocumentHeader, FulfillmentRecord, LineItem
from back_office_ledger.domain.value_objects import (
    DocumentStatus,
    DocumentType,
    FulfillmentKind,
)
from back_office_ledger.repositories.sqlite import (
    SQLiteDatabase,
    SQLiteDocumentRepository,
    SQLiteFulfillmentRecordRepository,
    SQLiteLineItemRepository,
    SQLiteMarkupConfigurationRepository,
)
from back_office_ledger.services.documents import DocumentServiceImpl


@pytest.fixture
def test_settings() -> Settings:
    return Settings(environment=Environment.TESTING, sqlite_path=":memory:")


@pytest.fixture
def db() -> SQLiteDatabase:
    """Create an in-memory SQLite database for testing."""
    database = SQLiteDatabase(":memory:")
    database.initialize()
    return database


@pytest.fixture
def document_repo(db: SQLiteDatabase) -> SQLiteDocumentRepository:
    return SQLiteDocumentRepository(db)


@pytest.fixture
def line_repo(db: SQLiteDatabase) -> SQLiteLineItemRepository:
    return SQLiteLineItemRepository(db)


@pytest.fixture
def fulfillment_repo(db: SQLiteDatabase) -> SQLiteFulfillmentRecordRepository:
    return SQLiteFulfillmentRecordRepository(db)


@pytest.fixture
def markup_repo(db: SQLiteDatabase) -> SQLiteMarkupConfigurationRepository:
    return SQLiteMarkupConfigurationRepository(db)


@pytest.fixture
def document_service(
    document_repo: SQLiteDocumentRepository,
    line_repo: SQLiteLineItemRepository,
    fulfillment_repo: SQLiteFulfillmentRecordRepository,
    markup_repo: SQLiteMarkupConfigurationRepository,
    test_settings: Settings,
) -> DocumentServiceImpl:
    return DocumentServiceImpl(
        document_repo,
        line_repo,
        fulfillment_repo,
        markup_repo=markup_repo,
        settings=test_settings,
    )


@pytest.fixture
def sample_line() -> LineItem:
    return LineItem(
        document_id=uuid4(),
        quantity=Decimal("10"),
        unit_price=Decimal("5.00"),
        discount_percent=Decimal("10"),
        vat_percent=Decimal("5"),
    )


@pytest.fixture
def sales_order() -> DocumentHeader:
    return DocumentHeader(
        document_type=DocumentType.SALES_ORDER,
        number="SO-0001",
        currency="USD",
        status=DocumentStatus.CONFIRMED,
    )


@pytest.fixture
def saved_sales_order(
    document_repo: SQLiteDocumentRepository, sales_order: DocumentHeader
) -> DocumentHeader:
    """A confirmed sales order with one line of 100 units, persisted."""
    sales_order.items.append(
        LineItem(
            document_id=sales_order.id,
            line_number=1,
            description="Widget",
            quantity=Decimal("100"),
            unit_price=Decimal("2.50"),
        )
    )
    document_repo.add(sales_order)
    return sales_order


@pytest.fixture
def delivery(document_repo: SQLiteDocumentRepository) -> DocumentHeader:
    header = DocumentHeader(
        document_type=DocumentType.DELIVERY,
        number="DN-0001",
        status=DocumentStatus.PENDING,
    )
    document_repo.add(header)
    return header


@pytest.fixture
def make_delivery_record():
    """Factory for delivery fragments counted against a sales order line."""

    def _make(document_id, sales_order_item_id, ordered: str, delivered: str) -> FulfillmentRecord:
        return FulfillmentRecord(
            document_id=document_id,
            ordered_quantity=Decimal(ordered),
            fulfilled_quantity=Decimal(delivered),
            kind=FulfillmentKind.DELIVERY,
            sales_order_item_id=sales_order_item_id,
        )

    return _make
