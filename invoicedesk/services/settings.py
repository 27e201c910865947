from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from invoicedesk.invoice_calculations import coerce_tax_rate
from invoicedesk.models import DraftInvoice, Settings
from invoicedesk.services.storage import KeyValueStore, storage_usage_bytes
from invoicedesk.state import AppState


logger = logging.getLogger(__name__)

ALLOWED_BUSINESS_FIELDS = {
    "business_name",
    "business_slogan",
    "business_address",
    "business_phone",
    "business_email",
    "business_tax_id",
}


def save_business_info(state: AppState, store: KeyValueStore, **fields: Any) -> Settings:
    patch = {key: ("" if value is None else str(value)) for key, value in fields.items() if key in ALLOWED_BUSINESS_FIELDS}
    ignored = sorted(set(fields) - ALLOWED_BUSINESS_FIELDS)
    if ignored:
        logger.debug("Ignoring unknown business fields: %s", ", ".join(ignored))
    state.settings = state.settings.model_copy(update=patch)
    logger.info("Business information saved")
    state.save(store)
    return state.settings


def save_invoice_settings(
    state: AppState,
    store: KeyValueStore,
    default_tax_rate: Any,
    invoice_prefix: Optional[str],
    draft: Optional[DraftInvoice] = None,
) -> Settings:
    """Store the invoice defaults.

    A draft still at a 0% tax rate picks up the new default rate; drafts with
    a rate of their own keep it.
    """
    rate = coerce_tax_rate(default_tax_rate)
    state.settings = state.settings.model_copy(
        update={"default_tax_rate": rate, "invoice_prefix": invoice_prefix or ""}
    )
    if draft is not None and draft.tax_rate == 0:
        draft.tax_rate = rate
    logger.info("Invoice settings saved (tax rate %s%%, prefix %r)", rate, state.settings.invoice_prefix)
    state.save(store)
    return state.settings


@dataclass(frozen=True)
class DataStats:
    customers: int
    work_locations: int
    invoices: int
    storage_bytes: int

    @property
    def storage_kb(self) -> int:
        return (self.storage_bytes + 512) // 1024


def data_stats(state: AppState, store: KeyValueStore) -> DataStats:
    return DataStats(
        customers=len(state.customers),
        work_locations=len(state.work_locations),
        invoices=len(state.invoices),
        storage_bytes=storage_usage_bytes(store),
    )
