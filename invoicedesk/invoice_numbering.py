from __future__ import annotations

import os
import re
from typing import Iterable

from invoicedesk.models import DEFAULT_INVOICE_PREFIX, Invoice, InvoiceStatus


_SEQUENCE_WIDTH = 4


def _sanitize_filename(value: str) -> str:
    cleaned = value.strip().replace(os.sep, "-")
    cleaned = re.sub(r"[^\w.\-]+", "_", cleaned, flags=re.UNICODE)
    return cleaned or "invoice"


def count_completed(invoices: Iterable[Invoice]) -> int:
    return sum(1 for invoice in invoices if invoice.status == InvoiceStatus.COMPLETED)


def format_invoice_number(prefix: str | None, seq: int) -> str:
    return f"{prefix or DEFAULT_INVOICE_PREFIX}{seq:0{_SEQUENCE_WIDTH}d}"


def next_invoice_number(prefix: str | None, invoices: Iterable[Invoice]) -> str:
    """Suggest the number for a brand-new draft.

    The sequence is the count of completed invoices plus one. It is not
    reserved: it is recomputed whenever a new draft is started, so deleting a
    completed invoice lowers the next suggestion.
    """
    return format_invoice_number(prefix, count_completed(invoices) + 1)


def next_free_invoice_number(prefix: str | None, invoices: Iterable[Invoice]) -> str:
    """First number at or after the suggested one that no completed invoice holds."""
    invoices = list(invoices)
    taken = {invoice.number.strip() for invoice in invoices if invoice.status == InvoiceStatus.COMPLETED}
    seq = count_completed(invoices) + 1
    while format_invoice_number(prefix, seq) in taken:
        seq += 1
    return format_invoice_number(prefix, seq)


def find_number_conflict(
    invoices: Iterable[Invoice],
    number: str,
    *,
    exclude_id: str | None = None,
) -> Invoice | None:
    wanted = (number or "").strip()
    for invoice in invoices:
        if invoice.id == exclude_id or invoice.status != InvoiceStatus.COMPLETED:
            continue
        if invoice.number.strip() == wanted:
            return invoice
    return None


def build_invoice_filename(number: str) -> str:
    return f"invoice-{_sanitize_filename(number or '')}.pdf"
