from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Callable

import pytest

from invoicedesk.invoice_items import create_line_item
from invoicedesk.models import CustomerSnapshot, DraftInvoice, WorkLocationSnapshot
from invoicedesk.services.storage import MemoryStore
from invoicedesk.state import AppState


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def state() -> AppState:
    return AppState()


@pytest.fixture()
def make_draft() -> Callable[..., DraftInvoice]:
    def _make(
        number: str = "INV-0001",
        customer: str = "Jane Doe",
        location: str = "Main Office",
        items: int = 1,
        tax_rate: str = "8",
    ) -> DraftInvoice:
        return DraftInvoice(
            number=number,
            date=dt.date(2024, 3, 5),
            customer=CustomerSnapshot(name=customer, address="1 Elm St", phone="555-0100"),
            work_location=WorkLocationSnapshot(name=location, city="Springfield", state="IL", zip="62701"),
            items=[create_line_item(f"Service call {n + 1}", 1, "80") for n in range(items)],
            tax_rate=Decimal(tax_rate),
        )

    return _make


@pytest.fixture()
def fake_renderer() -> Callable[..., bytes]:
    def _render(invoice, settings, *, date_format: str = "%m/%d/%Y") -> bytes:
        return f"%PDF {invoice.number}".encode("utf-8")

    return _render


@pytest.fixture()
def yes() -> Callable[[str], bool]:
    return lambda prompt: True


@pytest.fixture()
def no() -> Callable[[str], bool]:
    return lambda prompt: False
