from __future__ import annotations

from enum import Enum


class InvoiceDeskError(Exception):
    pass


class ValidationKind(str, Enum):
    MISSING_CUSTOMER_NAME = "missing_customer_name"
    MISSING_WORK_LOCATION = "missing_work_location"
    NO_ITEMS = "no_items"
    MISSING_NUMBER = "missing_number"
    DUPLICATE_NUMBER = "duplicate_number"
    INVALID_ITEM = "invalid_item"
    MISSING_NAME = "missing_name"


_DEFAULT_MESSAGES = {
    ValidationKind.MISSING_CUSTOMER_NAME: "Please enter customer name",
    ValidationKind.MISSING_WORK_LOCATION: "Please enter work location name",
    ValidationKind.NO_ITEMS: "Please add at least one item",
    ValidationKind.MISSING_NUMBER: "Please enter invoice number",
    ValidationKind.DUPLICATE_NUMBER: "Invoice number is already used by a completed invoice",
    ValidationKind.INVALID_ITEM: "Please fill all item fields",
    ValidationKind.MISSING_NAME: "Name is required",
}


class ValidationError(InvoiceDeskError, ValueError):
    """A required field is missing or malformed; the operation was aborted."""

    def __init__(self, kind: ValidationKind, message: str | None = None) -> None:
        self.kind = kind
        super().__init__(message or _DEFAULT_MESSAGES[kind])


class NotFoundError(InvoiceDeskError, LookupError):
    pass


class InvoiceNotFoundError(NotFoundError):
    def __init__(self, invoice_id: str) -> None:
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class LineItemNotFoundError(NotFoundError):
    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Line item not found: {item_id}")


class RecordNotFoundError(NotFoundError):
    def __init__(self, kind: str, record_id: int) -> None:
        self.record_id = record_id
        super().__init__(f"{kind} not found: {record_id}")


class NotEditingError(InvoiceDeskError):
    pass


class EditInProgressError(InvoiceDeskError):
    """An invoice is open for editing; save or cancel it before creating another."""


class StorageError(InvoiceDeskError):
    """Reading or writing the persistence store failed.

    The in-memory state stays authoritative; it may not survive a restart.
    """


class ImportFormatError(InvoiceDeskError):
    pass
