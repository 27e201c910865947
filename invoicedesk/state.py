from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, TypeVar

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from invoicedesk.errors import InvoiceNotFoundError, StorageError
from invoicedesk.models import Customer, Invoice, Settings, WorkLocation
from invoicedesk.services.storage import (
    CUSTOMERS_KEY,
    INVOICES_KEY,
    LOCATIONS_KEY,
    SETTINGS_KEY,
    KeyValueStore,
)


logger = logging.getLogger(__name__)

CUSTOMER_LIST = TypeAdapter(List[Customer])
WORK_LOCATION_LIST = TypeAdapter(List[WorkLocation])
INVOICE_LIST = TypeAdapter(List[Invoice])

T = TypeVar("T")


def _load_blob(store: KeyValueStore, key: str, adapter: TypeAdapter[T], default: T) -> T:
    text = store.load(key)
    if text is None or not text.strip():
        return default
    try:
        return adapter.validate_json(text)
    except PydanticValidationError as exc:
        raise StorageError(f"Stored data under '{key}' is unreadable: {exc}") from exc


@dataclass
class AppState:
    """The four persisted collections plus the invoice currently being edited.

    Invoices are kept most recent first. ``editing_invoice_id`` is the single
    edit pointer; lifecycle operations clear it on save, cancel and delete.
    """

    customers: List[Customer] = field(default_factory=list)
    work_locations: List[WorkLocation] = field(default_factory=list)
    invoices: List[Invoice] = field(default_factory=list)
    settings: Settings = field(default_factory=Settings)
    editing_invoice_id: Optional[str] = None

    @classmethod
    def load(cls, store: KeyValueStore) -> "AppState":
        state = cls(
            customers=_load_blob(store, CUSTOMERS_KEY, CUSTOMER_LIST, []),
            work_locations=_load_blob(store, LOCATIONS_KEY, WORK_LOCATION_LIST, []),
            invoices=_load_blob(store, INVOICES_KEY, INVOICE_LIST, []),
            settings=_load_blob(store, SETTINGS_KEY, TypeAdapter(Settings), Settings()),
        )
        logger.debug(
            "Loaded %d customers, %d work locations, %d invoices",
            len(state.customers),
            len(state.work_locations),
            len(state.invoices),
        )
        return state

    def save(self, store: KeyValueStore) -> None:
        blobs = {
            CUSTOMERS_KEY: CUSTOMER_LIST.dump_json(self.customers, by_alias=True),
            LOCATIONS_KEY: WORK_LOCATION_LIST.dump_json(self.work_locations, by_alias=True),
            INVOICES_KEY: INVOICE_LIST.dump_json(self.invoices, by_alias=True),
            SETTINGS_KEY: self.settings.model_dump_json(by_alias=True).encode("utf-8"),
        }
        try:
            for key, payload in blobs.items():
                store.save(key, payload.decode("utf-8"))
        except StorageError:
            logger.exception("Saving data failed; changes are kept in memory only")
            raise

    @property
    def is_editing(self) -> bool:
        return self.editing_invoice_id is not None

    def invoice_index(self, invoice_id: str) -> int:
        for index, invoice in enumerate(self.invoices):
            if invoice.id == invoice_id:
                return index
        raise InvoiceNotFoundError(invoice_id)

    def get_invoice(self, invoice_id: str) -> Invoice:
        return self.invoices[self.invoice_index(invoice_id)]

    def replace_from(self, other: "AppState") -> None:
        self.customers = other.customers
        self.work_locations = other.work_locations
        self.invoices = other.invoices
        self.settings = other.settings
        self.editing_invoice_id = other.editing_invoice_id
