"""SQLite implementations of repository interfaces."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
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
    CustomerType,
    DocumentStatus,
    DocumentType,
    FulfillmentKind,
    MarkupLevel,
    OrderLineKey,
    OrderLineKind,
    SourceKind,
    SourceLink,
)
from back_office_ledger.exceptions import IntegrityError
from back_office_ledger.repositories.interfaces import (
    DocumentRepository,
    FulfillmentRecordRepository,
    LineItemRepository,
    MarkupConfigurationRepository,
)

_ORDER_LINE_COLUMNS = {
    OrderLineKind.SALES_ORDER_ITEM: "sales_order_item_id",
    OrderLineKind.LPO_ITEM: "lpo_item_id",
    OrderLineKind.ITEM: "item_id",
}


def _dec(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _str(value: Decimal | UUID | None) -> str | None:
    return str(value) if value is not None else None


def _uuid(value: str | None) -> UUID | None:
    return UUID(value) if value else None


class SQLiteDatabase:
    """SQLite database connection manager."""

    def __init__(
        self, path: str | Path = ":memory:", check_same_thread: bool = True
    ) -> None:
        self._path = str(path)
        self._check_same_thread = check_same_thread
        self._connection: sqlite3.Connection | None = None

    @property
    def path(self) -> str:
        return self._path

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self._path, check_same_thread=self._check_same_thread
            )
            self._connection.row_factory = sqlite3.Row
            # Enable foreign keys
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    def initialize(self) -> None:
        """Create all database tables."""
        conn = self.get_connection()
        conn.executescript(
            """
            -- Document headers (quotations, orders, deliveries, invoices, LPOs, receipts)
            CREATE TABLE IF NOT EXISTS documents (
                id TEXT PRIMARY KEY,
                document_type TEXT NOT NULL,
                number TEXT NOT NULL UNIQUE,
                currency TEXT NOT NULL,
                status TEXT NOT NULL,
                customer_type TEXT NOT NULL DEFAULT 'retail',
                discount_percent TEXT NOT NULL DEFAULT '0',
                vat_percent TEXT NOT NULL DEFAULT '0',
                subtotal TEXT,
                tax_amount TEXT,
                discount_amount TEXT,
                total_amount TEXT,
                notes TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_documents_type ON documents(document_type);

            -- Line items, owned by their document
            CREATE TABLE IF NOT EXISTS line_items (
                id TEXT PRIMARY KEY,
                document_id TEXT NOT NULL,
                line_number INTEGER NOT NULL DEFAULT 0,
                item_id TEXT,
                category_id TEXT,
                description TEXT NOT NULL DEFAULT '',
                quantity TEXT NOT NULL,
                unit_price TEXT NOT NULL,
                discount_percent TEXT NOT NULL DEFAULT '0',
                discount_amount TEXT NOT NULL DEFAULT '0',
                vat_percent TEXT NOT NULL DEFAULT '0',
                vat_amount TEXT NOT NULL DEFAULT '0',
                total_price TEXT,
                cost_price TEXT,
                markup_percent TEXT,
                source_kind TEXT,
                source_id TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (document_id) REFERENCES documents(id) ON DELETE CASCADE
            );
            CREATE INDEX IF NOT EXISTS idx_line_items_document ON line_items(document_id);

            -- Delivery items and goods receipt items
            CREATE TABLE IF NOT EXISTS fulfillment_records (
                id TEXT PRIMARY KEY,
                document_id TEXT NOT NULL,
                kind TEXT NOT NULL,
                item_id TEXT,
                sales_order_item_id TEXT,
                lpo_item_id TEXT,
                ordered_quantity TEXT NOT NULL,
                fulfilled_quantity TEXT NOT NULL DEFAULT '0',
                picked_quantity TEXT NOT NULL DEFAULT '0',
                damaged_quantity TEXT NOT NULL DEFAULT '0',
                short_quantity TEXT NOT NULL DEFAULT '0',
                created_at TEXT NOT NULL,
                FOREIGN KEY (document_id) REFERENCES documents(id) ON DELETE CASCADE
            );
            CREATE INDEX IF NOT EXISTS idx_fulfillment_document ON fulfillment_records(document_id);
            CREATE INDEX IF NOT EXISTS idx_fulfillment_so_item ON fulfillment_records(sales_order_item_id);
            CREATE INDEX IF NOT EXISTS idx_fulfillment_lpo_item ON fulfillment_records(lpo_item_id);

            -- Markup configuration
            CREATE TABLE IF NOT EXISTS markup_configurations (
                id TEXT PRIMARY KEY,
                level TEXT NOT NULL,
                entity_id TEXT,
                retail_markup_percent TEXT NOT NULL,
                wholesale_markup_percent TEXT NOT NULL,
                effective_from TEXT,
                effective_to TEXT,
                is_active INTEGER NOT NULL DEFAULT 1
            );
            """
        )
        conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class SQLiteDocumentRepository(DocumentRepository):
    """SQLite implementation of DocumentRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database
        self._lines = SQLiteLineItemRepository(database)

    def add(self, header: DocumentHeader) -> None:
        conn = self._db.get_connection()
        try:
            conn.execute(
                """
                INSERT INTO documents (id, document_type, number, currency, status,
                                       customer_type, discount_percent, vat_percent,
                                       subtotal, tax_amount, discount_amount, total_amount,
                                       notes, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(header.id),
                    header.document_type.value,
                    header.number,
                    header.currency,
                    header.status.value,
                    header.customer_type.value,
                    str(header.discount_percent),
                    str(header.vat_percent),
                    _str(header.subtotal),
                    _str(header.tax_amount),
                    _str(header.discount_amount),
                    _str(header.total_amount),
                    header.notes,
                    header.created_at.isoformat(),
                    header.updated_at.isoformat(),
                ),
            )
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise IntegrityError(f"Cannot add document {header.number}: {exc}") from exc
        conn.commit()
        # A header and its lines are created together.
        for line in header.items:
            self._lines.add(line)

    def get(self, document_id: UUID) -> DocumentHeader | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM documents WHERE id = ?", (str(document_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_header(row)

    def get_by_number(self, number: str) -> DocumentHeader | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM documents WHERE number = ?", (number,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_header(row)

    def list_by_type(self, document_type: DocumentType) -> Iterable[DocumentHeader]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM documents WHERE document_type = ? ORDER BY created_at",
            (document_type.value,),
        ).fetchall()
        return [self._row_to_header(row) for row in rows]

    def get_header_totals(self, document_id: UUID) -> HeaderTotals | None:
        conn = self._db.get_connection()
        row = conn.execute(
            """
            SELECT subtotal, tax_amount, discount_amount, total_amount
            FROM documents WHERE id = ?
            """,
            (str(document_id),),
        ).fetchone()
        if row is None:
            return None
        return HeaderTotals(
            subtotal=_dec(row["subtotal"]),
            tax_amount=_dec(row["tax_amount"]),
            discount_amount=_dec(row["discount_amount"]),
            total_amount=_dec(row["total_amount"]),
        )

    def update_status(self, document_id: UUID, status: DocumentStatus) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE documents SET status = ?, updated_at = ? WHERE id = ?",
            (status.value, datetime.now(UTC).isoformat(), str(document_id)),
        )
        conn.commit()

    def update_totals(self, document_id: UUID, totals: HeaderTotals) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE documents SET
                subtotal = ?,
                tax_amount = ?,
                discount_amount = ?,
                total_amount = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (
                _str(totals.subtotal),
                _str(totals.tax_amount),
                _str(totals.discount_amount),
                _str(totals.total_amount),
                datetime.now(UTC).isoformat(),
                str(document_id),
            ),
        )
        conn.commit()

    def delete(self, document_id: UUID) -> None:
        conn = self._db.get_connection()
        conn.execute("DELETE FROM documents WHERE id = ?", (str(document_id),))
        conn.commit()

    def _row_to_header(self, row: sqlite3.Row) -> DocumentHeader:
        header = DocumentHeader(
            document_type=DocumentType(row["document_type"]),
            number=row["number"],
            currency=row["currency"],
            status=DocumentStatus(row["status"]),
            id=UUID(row["id"]),
            customer_type=CustomerType(row["customer_type"]),
            discount_percent=Decimal(row["discount_percent"]),
            vat_percent=Decimal(row["vat_percent"]),
            subtotal=_dec(row["subtotal"]),
            tax_amount=_dec(row["tax_amount"]),
            discount_amount=_dec(row["discount_amount"]),
            total_amount=_dec(row["total_amount"]),
            notes=row["notes"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
        header.items = list(self._lines.list_by_document(header.id))
        return header


class SQLiteLineItemRepository(LineItemRepository):
    """SQLite implementation of LineItemRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, line: LineItem) -> None:
        conn = self._db.get_connection()
        try:
            conn.execute(
                """
                INSERT INTO line_items (id, document_id, line_number, item_id, category_id,
                                        description, quantity, unit_price, discount_percent,
                                        discount_amount, vat_percent, vat_amount, total_price,
                                        cost_price, markup_percent, source_kind, source_id,
                                        created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(line.id),
                    str(line.document_id),
                    line.line_number,
                    _str(line.item_id),
                    _str(line.category_id),
                    line.description,
                    str(line.quantity),
                    str(line.unit_price),
                    str(line.discount_percent),
                    str(line.discount_amount),
                    str(line.vat_percent),
                    str(line.vat_amount),
                    _str(line.total_price),
                    _str(line.cost_price),
                    _str(line.markup_percent),
                    line.source_link.kind.value if line.source_link else None,
                    str(line.source_link.id) if line.source_link else None,
                    line.created_at.isoformat(),
                ),
            )
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise IntegrityError(f"Cannot add line item {line.id}: {exc}") from exc
        conn.commit()

    def get(self, line_id: UUID) -> LineItem | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM line_items WHERE id = ?", (str(line_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_line(row)

    def list_by_document(self, document_id: UUID) -> Iterable[LineItem]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM line_items WHERE document_id = ? ORDER BY line_number, created_at",
            (str(document_id),),
        ).fetchall()
        return [self._row_to_line(row) for row in rows]

    def get_related_source(self, line: LineItem) -> RelatedSource | None:
        if line.source_link is None:
            return None
        upstream = self.get(line.source_link.id)
        if upstream is None:
            return None
        return upstream.as_source(line.source_link.kind)

    def delete(self, line_id: UUID) -> None:
        conn = self._db.get_connection()
        conn.execute("DELETE FROM line_items WHERE id = ?", (str(line_id),))
        conn.commit()

    def _row_to_line(self, row: sqlite3.Row) -> LineItem:
        source_link = None
        if row["source_kind"] and row["source_id"]:
            source_link = SourceLink(SourceKind(row["source_kind"]), UUID(row["source_id"]))
        return LineItem(
            document_id=UUID(row["document_id"]),
            quantity=Decimal(row["quantity"]),
            unit_price=Decimal(row["unit_price"]),
            id=UUID(row["id"]),
            line_number=row["line_number"],
            item_id=_uuid(row["item_id"]),
            category_id=_uuid(row["category_id"]),
            description=row["description"],
            discount_percent=Decimal(row["discount_percent"]),
            discount_amount=Decimal(row["discount_amount"]),
            vat_percent=Decimal(row["vat_percent"]),
            vat_amount=Decimal(row["vat_amount"]),
            total_price=_dec(row["total_price"]),
            cost_price=_dec(row["cost_price"]),
            markup_percent=_dec(row["markup_percent"]),
            source_link=source_link,
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteFulfillmentRecordRepository(FulfillmentRecordRepository):
    """SQLite implementation of FulfillmentRecordRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, record: FulfillmentRecord) -> None:
        conn = self._db.get_connection()
        try:
            conn.execute(
                """
                INSERT INTO fulfillment_records (id, document_id, kind, item_id,
                                                 sales_order_item_id, lpo_item_id,
                                                 ordered_quantity, fulfilled_quantity,
                                                 picked_quantity, damaged_quantity,
                                                 short_quantity, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(record.id),
                    str(record.document_id),
                    record.kind.value,
                    _str(record.item_id),
                    _str(record.sales_order_item_id),
                    _str(record.lpo_item_id),
                    str(record.ordered_quantity),
                    str(record.fulfilled_quantity),
                    str(record.picked_quantity),
                    str(record.damaged_quantity),
                    str(record.short_quantity),
                    record.created_at.isoformat(),
                ),
            )
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise IntegrityError(f"Cannot add fulfillment record {record.id}: {exc}") from exc
        conn.commit()

    def get(self, record_id: UUID) -> FulfillmentRecord | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM fulfillment_records WHERE id = ?", (str(record_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    def list_by_order_line(self, key: OrderLineKey) -> Iterable[FulfillmentRecord]:
        column = _ORDER_LINE_COLUMNS[key.kind]
        conn = self._db.get_connection()
        rows = conn.execute(
            f"SELECT * FROM fulfillment_records WHERE {column} = ? ORDER BY created_at",
            (str(key.id),),
        ).fetchall()
        # item_id matches only count when no direct order-line reference exists
        return [
            record
            for record in (self._row_to_record(row) for row in rows)
            if record.order_line_key == key
        ]

    def list_by_document(self, document_id: UUID) -> Iterable[FulfillmentRecord]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM fulfillment_records WHERE document_id = ? ORDER BY created_at",
            (str(document_id),),
        ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def update_quantities(
        self,
        record_id: UUID,
        fulfilled_quantity: Decimal,
        picked_quantity: Decimal | None = None,
        damaged_quantity: Decimal | None = None,
        short_quantity: Decimal | None = None,
    ) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE fulfillment_records SET
                fulfilled_quantity = ?,
                picked_quantity = COALESCE(?, picked_quantity),
                damaged_quantity = COALESCE(?, damaged_quantity),
                short_quantity = COALESCE(?, short_quantity)
            WHERE id = ?
            """,
            (
                str(fulfilled_quantity),
                _str(picked_quantity),
                _str(damaged_quantity),
                _str(short_quantity),
                str(record_id),
            ),
        )
        conn.commit()

    def _row_to_record(self, row: sqlite3.Row) -> FulfillmentRecord:
        return FulfillmentRecord(
            document_id=UUID(row["document_id"]),
            ordered_quantity=Decimal(row["ordered_quantity"]),
            fulfilled_quantity=Decimal(row["fulfilled_quantity"]),
            id=UUID(row["id"]),
            kind=FulfillmentKind(row["kind"]),
            item_id=_uuid(row["item_id"]),
            sales_order_item_id=_uuid(row["sales_order_item_id"]),
            lpo_item_id=_uuid(row["lpo_item_id"]),
            picked_quantity=Decimal(row["picked_quantity"]),
            damaged_quantity=Decimal(row["damaged_quantity"]),
            short_quantity=Decimal(row["short_quantity"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteMarkupConfigurationRepository(MarkupConfigurationRepository):
    """SQLite implementation of MarkupConfigurationRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, config: MarkupConfiguration) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO markup_configurations (id, level, entity_id, retail_markup_percent,
                                               wholesale_markup_percent, effective_from,
                                               effective_to, is_active)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(config.id),
                config.level.value,
                _str(config.entity_id),
                str(config.retail_markup_percent),
                str(config.wholesale_markup_percent),
                config.effective_from.isoformat() if config.effective_from else None,
                config.effective_to.isoformat() if config.effective_to else None,
                1 if config.is_active else 0,
            ),
        )
        conn.commit()

    def list_active(self) -> Iterable[MarkupConfiguration]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM markup_configurations WHERE is_active = 1"
        ).fetchall()
        return [
            MarkupConfiguration(
                level=MarkupLevel(row["level"]),
                retail_markup_percent=Decimal(row["retail_markup_percent"]),
                wholesale_markup_percent=Decimal(row["wholesale_markup_percent"]),
                id=UUID(row["id"]),
                entity_id=_uuid(row["entity_id"]),
                effective_from=datetime.fromisoformat(row["effective_from"])
                if row["effective_from"]
                else None,
                effective_to=datetime.fromisoformat(row["effective_to"])
                if row["effective_to"]
                else None,
                is_active=bool(row["is_active"]),
            )
            for row in rows
        ]
