from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional

from invoicedesk.env import DEFAULT_DATE_FORMAT
from invoicedesk.errors import EditInProgressError, NotEditingError, ValidationError, ValidationKind
from invoicedesk.invoice_items import rekey_items
from invoicedesk.invoice_numbering import (
    build_invoice_filename,
    find_number_conflict,
    next_free_invoice_number,
    next_invoice_number,
)
from invoicedesk.models import DraftInvoice, Invoice, InvoiceContent, InvoiceStatus, new_id, utc_now
from invoicedesk.services.invoice_pdf import render_invoice_to_pdf_bytes
from invoicedesk.services.storage import KeyValueStore
from invoicedesk.state import AppState


logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]
Renderer = Callable[..., bytes]

DELETE_INVOICE_PROMPT = "Are you sure you want to delete this invoice?"
CANCEL_EDIT_PROMPT = "Are you sure you want to cancel editing? All changes will be lost."


@dataclass(frozen=True)
class FinalizedInvoice:
    invoice: Invoice
    pdf_bytes: bytes
    filename: str


def new_draft(state: AppState, today: Optional[dt.date] = None) -> DraftInvoice:
    """Start a blank invoice with the next suggested number and the default tax rate."""
    return DraftInvoice(
        number=next_invoice_number(state.settings.invoice_prefix, state.invoices),
        date=today or dt.date.today(),
        tax_rate=state.settings.default_tax_rate,
    )


def collect_validation_errors(draft: InvoiceContent) -> List[ValidationError]:
    errors: List[ValidationError] = []
    if not draft.customer.name.strip():
        errors.append(ValidationError(ValidationKind.MISSING_CUSTOMER_NAME))
    if not draft.work_location.name.strip():
        errors.append(ValidationError(ValidationKind.MISSING_WORK_LOCATION))
    if not draft.items:
        errors.append(ValidationError(ValidationKind.NO_ITEMS))
    if not draft.number.strip():
        errors.append(ValidationError(ValidationKind.MISSING_NUMBER))
    return errors


def validate_invoice(draft: InvoiceContent) -> None:
    errors = collect_validation_errors(draft)
    if errors:
        raise errors[0]


def _invoice_from_draft(draft: InvoiceContent, **record: Any) -> Invoice:
    # Deep copy so later edits of the draft never reach the stored record.
    content = draft.model_copy(deep=True)
    return Invoice(
        number=content.number.strip(),
        date=content.date,
        customer=content.customer,
        work_location=content.work_location,
        items=content.items,
        tax_rate=content.tax_rate,
        **record,
    )


def _duplicate_number(state: AppState, number: str) -> ValidationError:
    free = next_free_invoice_number(state.settings.invoice_prefix, state.invoices)
    return ValidationError(
        ValidationKind.DUPLICATE_NUMBER,
        f"Invoice number {number.strip()} is already used by a completed invoice; next free number is {free}",
    )


def save_draft(state: AppState, store: KeyValueStore, draft: DraftInvoice) -> Invoice:
    if state.editing_invoice_id is not None:
        raise EditInProgressError(
            f"Invoice {state.editing_invoice_id} is being edited; update or cancel it before saving a new draft"
        )
    validate_invoice(draft)
    invoice = _invoice_from_draft(draft, id=new_id(), status=InvoiceStatus.DRAFT, created_at=utc_now())
    state.invoices.insert(0, invoice)
    logger.info("Saved draft %s (%s)", invoice.number, invoice.id)
    state.save(store)
    return invoice


def finalize_invoice(
    state: AppState,
    store: KeyValueStore,
    draft: DraftInvoice,
    *,
    renderer: Renderer = render_invoice_to_pdf_bytes,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> FinalizedInvoice:
    """Commit ``draft`` as a completed invoice and return its rendered document.

    In edit mode the edited record is overwritten in place: its id and
    ``created_at`` survive, ``updated_at`` is stamped and edit mode ends.
    Otherwise a new record with a fresh id is prepended to the history.

    The document is rendered before anything is committed, so a renderer
    failure leaves the invoice collection untouched.
    """
    validate_invoice(draft)
    editing_id = state.editing_invoice_id
    conflict = find_number_conflict(state.invoices, draft.number, exclude_id=editing_id)
    if conflict is not None:
        raise _duplicate_number(state, draft.number)

    now = utc_now()
    index: Optional[int] = None
    if editing_id is not None:
        index = state.invoice_index(editing_id)
        existing = state.invoices[index]
        invoice = _invoice_from_draft(
            draft,
            id=existing.id,
            status=InvoiceStatus.COMPLETED,
            created_at=existing.created_at,
            updated_at=now,
            pdf_generated=now,
        )
    else:
        invoice = _invoice_from_draft(
            draft,
            id=new_id(),
            status=InvoiceStatus.COMPLETED,
            created_at=now,
            pdf_generated=now,
        )

    pdf_bytes = renderer(invoice, state.settings, date_format=date_format)

    if index is None:
        state.invoices.insert(0, invoice)
        logger.info("Finalized invoice %s (%s)", invoice.number, invoice.id)
    else:
        state.invoices[index] = invoice
        state.editing_invoice_id = None
        logger.info("Finalized edited invoice %s (%s)", invoice.number, invoice.id)
    state.save(store)
    return FinalizedInvoice(invoice=invoice, pdf_bytes=pdf_bytes, filename=build_invoice_filename(invoice.number))


def update_invoice(state: AppState, store: KeyValueStore, draft: DraftInvoice) -> Invoice:
    if state.editing_invoice_id is None:
        raise NotEditingError("No invoice is being edited")
    validate_invoice(draft)
    index = state.invoice_index(state.editing_invoice_id)
    existing = state.invoices[index]
    if existing.status == InvoiceStatus.COMPLETED:
        conflict = find_number_conflict(state.invoices, draft.number, exclude_id=existing.id)
        if conflict is not None:
            raise _duplicate_number(state, draft.number)
    invoice = _invoice_from_draft(
        draft,
        id=existing.id,
        status=existing.status,
        created_at=existing.created_at,
        updated_at=utc_now(),
        pdf_generated=existing.pdf_generated,
    )
    state.invoices[index] = invoice
    state.editing_invoice_id = None
    logger.info("Updated invoice %s (%s)", invoice.number, invoice.id)
    state.save(store)
    return invoice


def begin_edit(state: AppState, invoice_id: str) -> DraftInvoice:
    invoice = state.get_invoice(invoice_id)
    state.editing_invoice_id = invoice.id
    logger.debug("Editing invoice %s", invoice.id)
    content = invoice.model_copy(deep=True)
    return DraftInvoice(
        number=content.number,
        date=content.date,
        customer=content.customer,
        work_location=content.work_location,
        items=rekey_items(content.items),
        tax_rate=content.tax_rate,
    )


def cancel_edit(state: AppState, confirm: Confirm) -> bool:
    if state.editing_invoice_id is None:
        return False
    if not confirm(CANCEL_EDIT_PROMPT):
        return False
    state.editing_invoice_id = None
    return True


def delete_invoice(state: AppState, store: KeyValueStore, invoice_id: str, confirm: Confirm) -> bool:
    index = state.invoice_index(invoice_id)
    if not confirm(DELETE_INVOICE_PROMPT):
        return False
    removed = state.invoices.pop(index)
    if state.editing_invoice_id == removed.id:
        state.editing_invoice_id = None
    logger.info("Deleted invoice %s (%s)", removed.number, removed.id)
    state.save(store)
    return True


def get_invoice(state: AppState, invoice_id: str) -> Invoice:
    return state.get_invoice(invoice_id)


def search_invoices(
    invoices: Iterable[Invoice],
    query: str = "",
    customer_filter: Optional[str] = None,
) -> List[Invoice]:
    needle = (query or "").lower()
    result: List[Invoice] = []
    for invoice in invoices:
        if customer_filter and invoice.customer.name != customer_filter:
            continue
        haystack = (invoice.number, invoice.customer.name, invoice.work_location.name)
        if any(needle in value.lower() for value in haystack):
            result.append(invoice)
    return result


def render_invoice(
    state: AppState,
    invoice_id: str,
    *,
    renderer: Renderer = render_invoice_to_pdf_bytes,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> FinalizedInvoice:
    invoice = state.get_invoice(invoice_id)
    pdf_bytes = renderer(invoice, state.settings, date_format=date_format)
    return FinalizedInvoice(invoice=invoice, pdf_bytes=pdf_bytes, filename=build_invoice_filename(invoice.number))
