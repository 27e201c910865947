import datetime as dt
from decimal import Decimal

import pytest

from invoicedesk.errors import (
    EditInProgressError,
    InvoiceNotFoundError,
    NotEditingError,
    StorageError,
    ValidationError,
    ValidationKind,
)
from invoicedesk.invoice_items import create_line_item
from invoicedesk.models import InvoiceStatus, Settings
from invoicedesk.services.invoices import (
    begin_edit,
    cancel_edit,
    collect_validation_errors,
    delete_invoice,
    finalize_invoice,
    get_invoice,
    new_draft,
    render_invoice,
    save_draft,
    search_invoices,
    update_invoice,
    validate_invoice,
)
from invoicedesk.services.storage import INVOICES_KEY, MemoryStore
from invoicedesk.state import AppState


def test_new_draft_uses_numbering_and_default_tax(state) -> None:
    state.settings = Settings(invoice_prefix="HV-", default_tax_rate="6.5")
    draft = new_draft(state, today=dt.date(2024, 3, 5))
    assert draft.number == "HV-0001"
    assert draft.date == dt.date(2024, 3, 5)
    assert draft.tax_rate == Decimal("6.5")
    assert draft.items == []
    assert not state.is_editing


def test_validation_order_and_kinds(make_draft) -> None:
    draft = make_draft(number="", customer="", location="", items=0)
    kinds = [error.kind for error in collect_validation_errors(draft)]
    assert kinds == [
        ValidationKind.MISSING_CUSTOMER_NAME,
        ValidationKind.MISSING_WORK_LOCATION,
        ValidationKind.NO_ITEMS,
        ValidationKind.MISSING_NUMBER,
    ]
    with pytest.raises(ValidationError) as excinfo:
        validate_invoice(draft)
    assert excinfo.value.kind == ValidationKind.MISSING_CUSTOMER_NAME
    assert str(excinfo.value) == "Please enter customer name"

    draft.customer.name = "Jane"
    with pytest.raises(ValidationError) as excinfo:
        validate_invoice(draft)
    assert excinfo.value.kind == ValidationKind.MISSING_WORK_LOCATION


def test_invalid_draft_commits_nothing(state, store, make_draft, fake_renderer) -> None:
    draft = make_draft(items=0)
    with pytest.raises(ValidationError):
        finalize_invoice(state, store, draft, renderer=fake_renderer)
    with pytest.raises(ValidationError):
        save_draft(state, store, draft)
    assert state.invoices == []
    assert store.load(INVOICES_KEY) is None


def test_save_draft_prepends_and_persists(state, store, make_draft) -> None:
    first = save_draft(state, store, make_draft(number="INV-0001"))
    second = save_draft(state, store, make_draft(number="INV-0002"))
    assert first.status == InvoiceStatus.DRAFT
    assert first.id != second.id
    assert [invoice.id for invoice in state.invoices] == [second.id, first.id]
    assert [invoice.id for invoice in AppState.load(store).invoices] == [second.id, first.id]


def test_finalize_new_invoice(state, store, make_draft, fake_renderer) -> None:
    result = finalize_invoice(state, store, make_draft(), renderer=fake_renderer)
    invoice = result.invoice
    assert invoice.status == InvoiceStatus.COMPLETED
    assert invoice.pdf_generated is not None
    assert invoice.updated_at is None
    assert result.pdf_bytes == b"%PDF INV-0001"
    assert result.filename == "invoice-INV-0001.pdf"
    assert state.invoices[0] is invoice
    assert new_draft(state).number == "INV-0002"


def test_finalize_in_edit_mode_keeps_identity(state, store, make_draft, fake_renderer) -> None:
    original = finalize_invoice(state, store, make_draft(), renderer=fake_renderer).invoice
    other = save_draft(state, store, make_draft(number="INV-0009"))

    draft = begin_edit(state, original.id)
    assert state.editing_invoice_id == original.id
    draft.items.append(create_line_item("Extra part", 1, "20"))

    result = finalize_invoice(state, store, draft, renderer=fake_renderer)
    assert result.invoice.id == original.id
    assert result.invoice.created_at == original.created_at
    assert result.invoice.updated_at is not None
    assert result.invoice.total == Decimal("108.00")
    assert not state.is_editing
    assert [invoice.id for invoice in state.invoices] == [other.id, original.id]


def test_finalize_without_edit_mode_gets_a_new_id(state, store, make_draft, fake_renderer) -> None:
    first = finalize_invoice(state, store, make_draft(number="INV-0001"), renderer=fake_renderer).invoice
    second = finalize_invoice(state, store, make_draft(number="INV-0002"), renderer=fake_renderer).invoice
    assert first.id != second.id
    assert len(state.invoices) == 2


def test_finalize_rejects_a_number_used_by_another_completed_invoice(state, store, make_draft, fake_renderer) -> None:
    finalize_invoice(state, store, make_draft(number="INV-0001"), renderer=fake_renderer)
    with pytest.raises(ValidationError) as excinfo:
        finalize_invoice(state, store, make_draft(number="INV-0001"), renderer=fake_renderer)
    assert excinfo.value.kind == ValidationKind.DUPLICATE_NUMBER
    assert len(state.invoices) == 1


def test_refinalizing_the_edited_invoice_keeps_its_number(state, store, make_draft, fake_renderer) -> None:
    original = finalize_invoice(state, store, make_draft(number="INV-0001"), renderer=fake_renderer).invoice
    draft = begin_edit(state, original.id)
    result = finalize_invoice(state, store, draft, renderer=fake_renderer)
    assert result.invoice.number == "INV-0001"
    assert len(state.invoices) == 1


def test_render_failure_leaves_collection_untouched(state, store, make_draft) -> None:
    def broken_renderer(invoice, settings, **kwargs):
        raise RuntimeError("renderer exploded")

    with pytest.raises(RuntimeError):
        finalize_invoice(state, store, make_draft(), renderer=broken_renderer)
    assert state.invoices == []
    assert store.load(INVOICES_KEY) is None


def test_storage_failure_keeps_memory_authoritative(state, make_draft, fake_renderer) -> None:
    tiny = MemoryStore(quota_bytes=10)
    with pytest.raises(StorageError):
        finalize_invoice(state, tiny, make_draft(), renderer=fake_renderer)
    assert len(state.invoices) == 1


def test_update_invoice_keeps_status_and_requires_edit_mode(state, store, make_draft) -> None:
    with pytest.raises(NotEditingError):
        update_invoice(state, store, make_draft())

    saved = save_draft(state, store, make_draft())
    draft = begin_edit(state, saved.id)
    draft.customer.name = "John Smith"
    updated = update_invoice(state, store, draft)

    assert updated.id == saved.id
    assert updated.status == InvoiceStatus.DRAFT
    assert updated.updated_at is not None
    assert updated.customer.name == "John Smith"
    assert not state.is_editing


def test_begin_edit_rekeys_items_and_isolates_the_draft(state, store, make_draft) -> None:
    saved = save_draft(state, store, make_draft(items=2))
    draft = begin_edit(state, saved.id)
    assert {item.id for item in draft.items}.isdisjoint(item.id for item in saved.items)

    draft.customer.name = "Changed"
    draft.items.pop()
    stored = get_invoice(state, saved.id)
    assert stored.customer.name == "Jane Doe"
    assert len(stored.items) == 2


def test_begin_edit_unknown_id(state) -> None:
    with pytest.raises(InvoiceNotFoundError):
        begin_edit(state, "nope")


def test_cancel_edit_requires_confirmation(state, store, make_draft, yes, no) -> None:
    saved = save_draft(state, store, make_draft())
    begin_edit(state, saved.id)
    assert cancel_edit(state, no) is False
    assert state.editing_invoice_id == saved.id
    assert cancel_edit(state, yes) is True
    assert not state.is_editing
    assert cancel_edit(state, yes) is False


def test_delete_invoice(state, store, make_draft, yes, no) -> None:
    saved = save_draft(state, store, make_draft())
    assert delete_invoice(state, store, saved.id, no) is False
    assert len(state.invoices) == 1

    begin_edit(state, saved.id)
    assert delete_invoice(state, store, saved.id, yes) is True
    assert state.invoices == []
    assert not state.is_editing
    assert AppState.load(store).invoices == []


def test_search_invoices(state, store, make_draft) -> None:
    a = save_draft(state, store, make_draft(number="INV-0001", customer="Jane Doe", location="Main Office"))
    b = save_draft(state, store, make_draft(number="INV-0002", customer="John Smith", location="Warehouse"))

    assert search_invoices(state.invoices) == [b, a]
    assert search_invoices(state.invoices, "jane") == [a]
    assert search_invoices(state.invoices, "WAREHOUSE") == [b]
    assert search_invoices(state.invoices, "0002") == [b]
    assert search_invoices(state.invoices, "inv", customer_filter="Jane Doe") == [a]
    assert search_invoices(state.invoices, customer_filter="Jane") == []


def test_render_invoice_from_history(state, store, make_draft, fake_renderer) -> None:
    saved = save_draft(state, store, make_draft(number="INV-0042"))
    before = list(state.invoices)
    result = render_invoice(state, saved.id, renderer=fake_renderer)
    assert result.pdf_bytes == b"%PDF INV-0042"
    assert result.filename == "invoice-INV-0042.pdf"
    assert state.invoices == before


def test_save_draft_is_refused_while_editing(state, store, make_draft, fake_renderer) -> None:
    original = finalize_invoice(state, store, make_draft(number="INV-0001"), renderer=fake_renderer).invoice
    draft = begin_edit(state, original.id)

    with pytest.raises(EditInProgressError):
        save_draft(state, store, draft)
    assert [invoice.id for invoice in state.invoices] == [original.id]
    assert state.editing_invoice_id == original.id

    updated = update_invoice(state, store, draft)
    assert updated.id == original.id
    assert not state.is_editing
    assert [invoice.number for invoice in state.invoices] == ["INV-0001"]


def test_duplicate_number_error_names_the_next_free_number(state, store, make_draft, fake_renderer, yes) -> None:
    for number in ("INV-0001", "INV-0002", "INV-0003"):
        finalize_invoice(state, store, make_draft(number=number), renderer=fake_renderer)
    second = next(invoice for invoice in state.invoices if invoice.number == "INV-0002")
    delete_invoice(state, store, second.id, yes)

    draft = new_draft(state)
    assert draft.number == "INV-0003"
    draft.customer.name = "Jane Doe"
    draft.work_location.name = "Main Office"
    draft.items.append(create_line_item("Labor", 1, "80"))
    with pytest.raises(ValidationError) as excinfo:
        finalize_invoice(state, store, draft, renderer=fake_renderer)
    assert excinfo.value.kind == ValidationKind.DUPLICATE_NUMBER
    assert "next free number is INV-0004" in str(excinfo.value)

    draft.number = "INV-0004"
    assert finalize_invoice(state, store, draft, renderer=fake_renderer).invoice.number == "INV-0004"
