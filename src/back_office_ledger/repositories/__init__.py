from back_office_ledger.repositories.interfaces import (
    DocumentRepository,
    FulfillmentRecordRepository,
    LineItemRepository,
    MarkupConfigurationRepository,
)
from back_office_ledger.repositories.sqlite import (
    SQLiteDatabase,
    SQLiteDocumentRepository,
    SQLiteFulfillmentRecordRepository,
    SQLiteLineItemRepository,
    SQLiteMarkupConfigurationRepository,
)

__all__ = [
    "DocumentRepository",
    "FulfillmentRecordRepository",
    "LineItemRepository",
    "MarkupConfigurationRepository",
    "SQLiteDatabase",
    "SQLiteDocumentRepository",
    "SQLiteFulfillmentRecordRepository",
    "SQLiteLineItemRepository",
    "SQLiteMarkupConfigurationRepository",
]
