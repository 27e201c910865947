from __future__ import annotations

import datetime as dt
import json
import logging
from typing import Any, Callable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from invoicedesk.errors import ImportFormatError, StorageError
from invoicedesk.models import Customer, Invoice, Settings, WorkLocation, utc_now
from invoicedesk.services.storage import KeyValueStore
from invoicedesk.state import CUSTOMER_LIST, INVOICE_LIST, WORK_LOCATION_LIST, AppState


logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]

BACKUP_VERSION = "1.0"
IMPORT_PROMPT = "This will replace all current data. Continue?"
CLEAR_ALL_PROMPT = (
    "This will delete ALL data including customers, work locations and invoices. "
    "This action cannot be undone. Continue?"
)


class BackupPayload(BaseModel):
    """A parsed backup file. Missing sections fall back to empty lists and default settings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    customers: List[Customer] = Field(default_factory=list)
    work_locations: List[WorkLocation] = Field(default_factory=list)
    invoices: List[Invoice] = Field(default_factory=list)
    settings: Settings = Field(default_factory=Settings)
    export_date: Optional[str] = None
    version: Optional[str] = None

    @field_validator("customers", "work_locations", "invoices", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("settings", mode="before")
    @classmethod
    def _null_settings(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("export_date", "version", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Any:
        return None if value is None else str(value)


def export_data(state: AppState, now: Optional[dt.datetime] = None) -> str:
    """Serialize every collection as pretty-printed backup JSON.

    Money and rates are written as decimal strings (``"price": "19.99"``) so
    they survive the round trip exactly, and invoices carry nested
    ``customer`` / ``workLocation`` objects. Both differ from the flat,
    float-valued files of the first app version, which this package still
    imports but which cannot read these files back.
    """
    payload = {
        "customers": CUSTOMER_LIST.dump_python(state.customers, mode="json", by_alias=True),
        "workLocations": WORK_LOCATION_LIST.dump_python(state.work_locations, mode="json", by_alias=True),
        "invoices": INVOICE_LIST.dump_python(state.invoices, mode="json", by_alias=True),
        "settings": state.settings.model_dump(mode="json", by_alias=True),
        "exportDate": (now or utc_now()).isoformat(),
        "version": BACKUP_VERSION,
    }
    return json.dumps(payload, indent=2)


def build_backup_filename(today: Optional[dt.date] = None) -> str:
    today = today or dt.date.today()
    return f"invoice-backup-{today:%m-%d-%Y}.json"


def parse_import(text: Union[str, bytes]) -> BackupPayload:
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ImportFormatError(f"Error importing data: {exc}") from exc
    if not isinstance(raw, dict):
        raise ImportFormatError("Error importing data: backup must be a JSON object")
    try:
        return BackupPayload.model_validate(raw)
    except PydanticValidationError as exc:
        raise ImportFormatError(f"Error importing data: {exc}") from exc


def import_data(state: AppState, store: KeyValueStore, text: Union[str, bytes], confirm: Confirm) -> bool:
    """Replace every collection with the contents of a backup file.

    The file is parsed and validated completely before anything changes, so a
    bad file leaves the state as it was. Edit mode ends on import.
    """
    payload = parse_import(text)
    if not confirm(IMPORT_PROMPT):
        return False
    state.replace_from(
        AppState(
            customers=payload.customers,
            work_locations=payload.work_locations,
            invoices=payload.invoices,
            settings=payload.settings,
        )
    )
    logger.info(
        "Imported %d customers, %d work locations, %d invoices (backup version %s)",
        len(payload.customers),
        len(payload.work_locations),
        len(payload.invoices),
        payload.version or "unknown",
    )
    state.save(store)
    return True


def clear_all_data(state: AppState, store: KeyValueStore, confirm: Confirm) -> bool:
    if not confirm(CLEAR_ALL_PROMPT):
        return False
    state.replace_from(AppState())
    try:
        store.clear()
    except StorageError:
        logger.exception("Clearing storage failed")
        raise
    logger.warning("All data cleared")
    state.save(store)
    return True
