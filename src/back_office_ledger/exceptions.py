"""Domain exception hierarchy for Back Office Ledger.

All domain-specific exceptions inherit from BackOfficeLedgerError.
This allows catching all application errors with a single base class
while preserving specificity for individual error types.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID


class BackOfficeLedgerError(Exception):
    """Base exception for all Back Office Ledger errors.

    All domain exceptions should inherit from this class.
    Includes optional error_code for API responses and extra context.
    """

    error_code: str = "BOL_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
        }


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(BackOfficeLedgerError):
    """Base exception for validation errors."""

    error_code = "VALIDATION_ERROR"
    status_code = 422


class InvalidLineItemError(ValidationError):
    """Raised when a line item carries a negative or inconsistent value."""

    error_code = "INVALID_LINE_ITEM"

    def __init__(self, field: str, value: Decimal | str, reason: str) -> None:
        super().__init__(
            f"Invalid line item {field} '{value}': {reason}",
            context={"field": field, "value": str(value), "reason": reason},
        )
        self.field = field


class InvalidFulfillmentRecordError(ValidationError):
    """Raised when a fulfillment record carries a negative quantity."""

    error_code = "INVALID_FULFILLMENT_RECORD"

    def __init__(self, record_id: UUID | str, field: str, value: Decimal | str) -> None:
        super().__init__(
            f"Fulfillment record {record_id} has negative {field}: {value}",
            context={"record_id": str(record_id), "field": field, "value": str(value)},
        )


class InvalidCurrencyError(ValidationError):
    """Raised when an invalid currency code is provided."""

    error_code = "INVALID_CURRENCY"

    def __init__(self, currency_code: str) -> None:
        super().__init__(
            f"Invalid currency code: {currency_code}",
            context={"currency_code": currency_code},
        )


# =============================================================================
# Document Errors
# =============================================================================


class DocumentError(BackOfficeLedgerError):
    """Base exception for document-related errors."""

    error_code = "DOCUMENT_ERROR"
    status_code = 400


class DocumentNotFoundError(DocumentError):
    """Raised when a document header cannot be found."""

    error_code = "DOCUMENT_NOT_FOUND"
    status_code = 404

    def __init__(self, document_id: UUID | str) -> None:
        super().__init__(
            f"Document not found: {document_id}",
            context={"document_id": str(document_id)},
        )


class DocumentLockedError(DocumentError):
    """Raised when lines are changed on a document past its editable statuses."""

    error_code = "DOCUMENT_LOCKED"
    status_code = 403

    def __init__(self, document_id: UUID | str, status: str) -> None:
        super().__init__(
            f"Document {document_id} is {status}; lines can no longer be changed",
            context={"document_id": str(document_id), "status": status},
        )


class IllegalTransitionError(DocumentError):
    """Raised when a requested status change violates the transition table."""

    error_code = "ILLEGAL_TRANSITION"
    status_code = 409

    def __init__(self, document_type: str, current: str, event: str) -> None:
        super().__init__(
            f"Illegal transition for {document_type}: cannot {event} from {current}",
            context={
                "document_type": document_type,
                "current_status": current,
                "event": event,
            },
        )
        self.current = current
        self.event = event


class UnsupportedDocumentTypeError(DocumentError):
    """Raised when no status model is registered for a document type."""

    error_code = "UNSUPPORTED_DOCUMENT_TYPE"
    status_code = 422

    def __init__(self, document_type: str) -> None:
        super().__init__(
            f"No status model for document type {document_type}",
            context={"document_type": document_type},
        )
        self.document_type = document_type


# =============================================================================
# Reconciliation Errors
# =============================================================================


class ReconciliationError(BackOfficeLedgerError):
    """Base exception for reconciliation-related errors."""

    error_code = "RECONCILIATION_ERROR"
    status_code = 400


class ReconciliationMismatchError(ReconciliationError):
    """Raised when recomputed totals disagree with the stored header totals."""

    error_code = "RECONCILIATION_MISMATCH"

    def __init__(self, deltas: dict[str, Decimal], tolerance: Decimal) -> None:
        fields = ", ".join(f"{name}={delta}" for name, delta in deltas.items())
        super().__init__(
            f"Header totals drift beyond tolerance {tolerance}: {fields}",
            context={
                "deltas": {name: str(delta) for name, delta in deltas.items()},
                "tolerance": str(tolerance),
            },
        )
        self.deltas = deltas
        self.tolerance = tolerance


# =============================================================================
# Fulfillment Errors
# =============================================================================


class FulfillmentError(BackOfficeLedgerError):
    """Base exception for fulfillment quantity errors."""

    error_code = "FULFILLMENT_ERROR"
    status_code = 409


class FulfillmentRecordNotFoundError(FulfillmentError):
    """Raised when a delivery or receipt item cannot be found."""

    error_code = "FULFILLMENT_RECORD_NOT_FOUND"
    status_code = 404

    def __init__(self, record_id: UUID | str) -> None:
        super().__init__(
            f"Fulfillment record not found: {record_id}",
            context={"record_id": str(record_id)},
        )


class FulfillmentDocumentError(FulfillmentError):
    """Raised when a fragment is recorded on a document that cannot carry it."""

    error_code = "INVALID_FULFILLMENT_DOCUMENT"

    def __init__(self, document_id: UUID | str, reason: str) -> None:
        super().__init__(
            f"Cannot record fulfillment on document {document_id}: {reason}",
            context={"document_id": str(document_id), "reason": reason},
        )
        self.reason = reason


class OverDeliveryError(FulfillmentError):
    """Raised when more has been delivered or received than was ordered."""

    error_code = "OVER_DELIVERY"

    def __init__(self, order_line: str, ordered: Decimal, fulfilled: Decimal) -> None:
        super().__init__(
            f"Over-delivery on {order_line}: fulfilled {fulfilled}, ordered {ordered}",
            context={
                "order_line": order_line,
                "ordered": str(ordered),
                "fulfilled": str(fulfilled),
            },
        )
        self.ordered = ordered
        self.fulfilled = fulfilled


# =============================================================================
# Database Errors
# =============================================================================


class DatabaseError(BackOfficeLedgerError):
    """Base exception for database-related errors."""

    error_code = "DATABASE_ERROR"
    status_code = 500


class IntegrityError(DatabaseError):
    """Raised when a database integrity constraint is violated."""

    error_code = "DATABASE_INTEGRITY_ERROR"
    status_code = 409
