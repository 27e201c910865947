import datetime as dt
import json
from decimal import Decimal

import pytest

from invoicedesk.errors import ImportFormatError
from invoicedesk.models import InvoiceStatus, Settings
from invoicedesk.services.backup import (
    BACKUP_VERSION,
    build_backup_filename,
    clear_all_data,
    export_data,
    import_data,
    parse_import,
)
from invoicedesk.services.customers import save_customer, save_work_location
from invoicedesk.services.invoices import begin_edit, finalize_invoice, save_draft
from invoicedesk.services.settings import save_business_info
from invoicedesk.services.storage import INVOICES_KEY, SETTINGS_KEY, MemoryStore
from invoicedesk.state import AppState


@pytest.fixture()
def seeded(state, store, make_draft, fake_renderer) -> AppState:
    save_customer(state, store, "Jane Doe", phone="555-0100")
    save_work_location(state, store, "Main Office", city="Springfield", state_code="IL")
    save_business_info(state, store, business_name="Cool Air LLC")
    finalize_invoice(state, store, make_draft(number="INV-0001"), renderer=fake_renderer)
    save_draft(state, store, make_draft(number="INV-0002", items=3))
    return state


def test_export_layout(seeded) -> None:
    now = dt.datetime(2024, 3, 5, 12, 0, tzinfo=dt.timezone.utc)
    data = json.loads(export_data(seeded, now=now))
    assert set(data) == {"customers", "workLocations", "invoices", "settings", "exportDate", "version"}
    assert data["version"] == BACKUP_VERSION
    assert data["exportDate"] == now.isoformat()
    assert data["settings"]["businessName"] == "Cool Air LLC"
    first = data["invoices"][1]
    assert first["customer"]["name"] == "Jane Doe"
    assert first["workLocation"]["city"] == "Springfield"
    assert Decimal(first["taxAmount"]) == Decimal("6.40")
    assert "price" in first["items"][0]


def test_export_writes_money_as_exact_decimal_strings(state, store, make_draft, yes) -> None:
    draft = make_draft()
    draft.items[0] = draft.items[0].model_copy(update={"unit_price": Decimal("19.99")})
    save_draft(state, store, draft)

    item = json.loads(export_data(state))["invoices"][0]["items"][0]
    assert item["price"] == "19.99"
    assert isinstance(item["amount"], str)

    restored = AppState()
    import_data(restored, MemoryStore(), export_data(state), yes)
    assert restored.invoices[0].items[0].price == Decimal("19.99")
    assert restored.invoices[0].subtotal == Decimal("19.99")


def test_export_is_pretty_printed(seeded) -> None:
    assert export_data(seeded).startswith('{\n  "customers"')


def test_import_of_export_restores_every_collection(seeded, yes) -> None:
    text = export_data(seeded)
    restored = AppState()
    target = MemoryStore()
    assert import_data(restored, target, text, yes) is True

    assert restored.customers == seeded.customers
    assert restored.work_locations == seeded.work_locations
    assert restored.invoices == seeded.invoices
    assert restored.settings == seeded.settings
    assert AppState.load(target).invoices == seeded.invoices


def test_import_ends_edit_mode(seeded, store, yes) -> None:
    begin_edit(seeded, seeded.invoices[0].id)
    import_data(seeded, store, export_data(seeded), yes)
    assert not seeded.is_editing


def test_declined_import_changes_nothing(seeded, store, no) -> None:
    before = list(seeded.invoices)
    assert import_data(seeded, store, '{"invoices": []}', no) is False
    assert seeded.invoices == before


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[1, 2, 3]",
        '{"invoices": [{"id": "x", "date": "not a date"}]}',
        '{"customers": [{"name": "No id"}]}',
    ],
)
def test_bad_files_are_rejected_before_anything_changes(seeded, store, yes, text) -> None:
    before = (list(seeded.customers), list(seeded.invoices), seeded.settings)
    with pytest.raises(ImportFormatError):
        import_data(seeded, store, text, yes)
    assert (seeded.customers, seeded.invoices, seeded.settings) == before


def test_missing_sections_default() -> None:
    payload = parse_import('{"customers": null}')
    assert payload.customers == []
    assert payload.work_locations == []
    assert payload.invoices == []
    assert payload.settings == Settings()


def test_import_of_flat_legacy_records() -> None:
    legacy = {
        "invoices": [
            {
                "id": 1704450000000,
                "number": "INV-0001",
                "date": "2024-01-05",
                "customerName": "Bob Jones",
                "customerPhone": "555-0199",
                "workLocationName": "Bob's Shop",
                "workLocationCity": "Springfield",
                "items": [{"id": 1704450000000.5, "description": "Labor", "quantity": 1, "price": 80, "amount": 80}],
                "subtotal": 80,
                "taxRate": 8,
                "taxAmount": 6.4,
                "total": 86.4,
                "pdfGenerated": "2024-01-05T10:00:00.000Z",
            }
        ],
        "settings": {"businessName": "HVAC Services Inc.", "defaultTaxRate": 8},
    }
    payload = parse_import(json.dumps(legacy))
    invoice = payload.invoices[0]
    assert invoice.id == "1704450000000"
    assert invoice.status == InvoiceStatus.COMPLETED
    assert invoice.customer.name == "Bob Jones"
    assert invoice.customer.phone == "555-0199"
    assert invoice.work_location.name == "Bob's Shop"
    assert invoice.work_location.city == "Springfield"
    assert invoice.total == Decimal("86.40")
    assert payload.settings.default_tax_rate == Decimal("8")
    assert payload.settings.invoice_prefix == "INV-"


def test_backup_filename() -> None:
    assert build_backup_filename(dt.date(2024, 3, 5)) == "invoice-backup-03-05-2024.json"


def test_clear_all_data(seeded, store, yes, no) -> None:
    assert clear_all_data(seeded, store, no) is False
    assert seeded.invoices

    assert clear_all_data(seeded, store, yes) is True
    assert seeded.customers == []
    assert seeded.invoices == []
    assert seeded.settings == Settings()
    assert store.load(INVOICES_KEY) == "[]"
    assert json.loads(store.load(SETTINGS_KEY))["businessName"] == "HVAC Services Inc."
