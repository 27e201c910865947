from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from invoicedesk.invoice_calculations import coerce_tax_rate, compute_totals


DEFAULT_BUSINESS_NAME = "HVAC Services Inc."
DEFAULT_BUSINESS_SLOGAN = "Your Comfort is Our Priority"
DEFAULT_BUSINESS_ADDRESS = "123 Main Street, City, State 12345"
DEFAULT_BUSINESS_PHONE = "(555) 123-4567"
DEFAULT_BUSINESS_EMAIL = "info@hvacservices.com"
DEFAULT_BUSINESS_TAX_ID = "TAX-123456789"
DEFAULT_INVOICE_PREFIX = "INV-"

# Flat keys written by the first version of the app, before snapshots were nested.
_LEGACY_CUSTOMER_KEYS = {
    "customerName": "name",
    "customerAddress": "address",
    "customerPhone": "phone",
    "customerEmail": "email",
}
_LEGACY_LOCATION_KEYS = {
    "workLocationName": "name",
    "workLocationAddress": "address",
    "workLocationCity": "city",
    "workLocationState": "state",
    "workLocationZip": "zip",
}


def new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class _Record(BaseModel):
    # Stored blobs and backup files use camelCase keys.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


def _text(value: Any) -> Any:
    return "" if value is None else value


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"


class LineItem(_Record):
    id: str = Field(default_factory=new_id)
    description: str
    quantity: int
    unit_price: Decimal = Field(alias="price")

    @computed_field
    @property
    def amount(self) -> Decimal:
        return self.quantity * self.unit_price


class CustomerSnapshot(_Record):
    name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""

    @field_validator("name", "address", "phone", "email", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return _text(value)


class WorkLocationSnapshot(_Record):
    name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""

    @field_validator("name", "address", "city", "state", "zip", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return _text(value)


class InvoiceContent(_Record):
    """Fields shared by the editable draft and the committed invoice."""

    number: str = ""
    date: dt.date = Field(default_factory=dt.date.today)
    customer: CustomerSnapshot = Field(default_factory=CustomerSnapshot)
    work_location: WorkLocationSnapshot = Field(default_factory=WorkLocationSnapshot)
    items: List[LineItem] = Field(default_factory=list)
    tax_rate: Decimal = Decimal("0")

    @model_validator(mode="before")
    @classmethod
    def _nest_legacy_snapshots(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for alias, name, keys in (
            ("customer", "customer", _LEGACY_CUSTOMER_KEYS),
            ("workLocation", "work_location", _LEGACY_LOCATION_KEYS),
        ):
            flat = {field: data.pop(key) for key, field in keys.items() if key in data}
            if flat and alias not in data and name not in data:
                data[alias] = flat
        return data

    @field_validator("tax_rate", mode="before")
    @classmethod
    def _coerce_tax_rate(cls, value: Any) -> Decimal:
        return coerce_tax_rate(value)

    @field_validator("number", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> Any:
        return _text(value)

    @computed_field
    @property
    def subtotal(self) -> Decimal:
        return compute_totals(self.items, self.tax_rate).subtotal

    @computed_field(alias="taxAmount")
    @property
    def tax_amount(self) -> Decimal:
        return compute_totals(self.items, self.tax_rate).tax_amount

    @computed_field
    @property
    def total(self) -> Decimal:
        return compute_totals(self.items, self.tax_rate).total


class DraftInvoice(InvoiceContent):
    pass


class Invoice(InvoiceContent):
    id: str
    status: InvoiceStatus = InvoiceStatus.COMPLETED
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: Optional[dt.datetime] = None
    pdf_generated: Optional[dt.datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _missing_status_is_completed(cls, value: Any) -> Any:
        return value or InvoiceStatus.COMPLETED


class Customer(_Record):
    id: int
    name: str
    address: str = ""
    phone: str = ""
    email: str = ""
    created: dt.datetime = Field(default_factory=utc_now)

    @field_validator("name", "address", "phone", "email", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return _text(value)


class WorkLocation(_Record):
    id: int
    name: str
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    created: dt.datetime = Field(default_factory=utc_now)

    @field_validator("name", "address", "city", "state", "zip", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return _text(value)


class Settings(_Record):
    """Business profile and invoice defaults; absent keys fall back to defaults."""

    business_name: str = DEFAULT_BUSINESS_NAME
    business_slogan: str = DEFAULT_BUSINESS_SLOGAN
    business_address: str = DEFAULT_BUSINESS_ADDRESS
    business_phone: str = DEFAULT_BUSINESS_PHONE
    business_email: str = DEFAULT_BUSINESS_EMAIL
    business_tax_id: str = DEFAULT_BUSINESS_TAX_ID
    default_tax_rate: Decimal = Decimal("0")
    invoice_prefix: str = DEFAULT_INVOICE_PREFIX

    @field_validator("default_tax_rate", mode="before")
    @classmethod
    def _coerce_tax_rate(cls, value: Any) -> Decimal:
        return coerce_tax_rate(value)

    @field_validator(
        "business_name",
        "business_slogan",
        "business_address",
        "business_phone",
        "business_email",
        "business_tax_id",
        "invoice_prefix",
        mode="before",
    )
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return _text(value)
