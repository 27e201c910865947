from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Sequence

from invoicedesk.errors import RecordNotFoundError, ValidationError, ValidationKind
from invoicedesk.models import Customer, CustomerSnapshot, WorkLocation, WorkLocationSnapshot
from invoicedesk.services.storage import KeyValueStore
from invoicedesk.state import AppState


logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]

DELETE_CUSTOMER_PROMPT = "Are you sure you want to delete this customer?"
DELETE_WORK_LOCATION_PROMPT = "Are you sure you want to delete this work location?"


def _next_id(records: Iterable[Customer | WorkLocation]) -> int:
    return max((record.id for record in records), default=0) + 1


def _index_of(records: Sequence[Customer | WorkLocation], record_id: int, kind: str) -> int:
    for index, record in enumerate(records):
        if record.id == record_id:
            return index
    raise RecordNotFoundError(kind, record_id)


def _required_name(name: Optional[str], label: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError(ValidationKind.MISSING_NAME, f"{label} name is required")
    return cleaned


def save_customer(
    state: AppState,
    store: KeyValueStore,
    name: str,
    phone: str = "",
    email: str = "",
    address: str = "",
    customer_id: Optional[int] = None,
) -> Customer:
    """Add a customer, or update ``customer_id`` in place keeping its id and creation time."""
    name = _required_name(name, "Customer")
    fields = {"name": name, "phone": phone or "", "email": email or "", "address": address or ""}
    if customer_id is None:
        customer = Customer(id=_next_id(state.customers), **fields)
        state.customers.append(customer)
        logger.info("Added customer %s (%s)", customer.name, customer.id)
    else:
        index = _index_of(state.customers, customer_id, "Customer")
        customer = state.customers[index].model_copy(update=fields)
        state.customers[index] = customer
        logger.info("Updated customer %s (%s)", customer.name, customer.id)
    state.save(store)
    return customer


def delete_customer(state: AppState, store: KeyValueStore, customer_id: int, confirm: Confirm) -> bool:
    index = _index_of(state.customers, customer_id, "Customer")
    if not confirm(DELETE_CUSTOMER_PROMPT):
        return False
    removed = state.customers.pop(index)
    logger.info("Deleted customer %s (%s)", removed.name, removed.id)
    state.save(store)
    return True


def save_work_location(
    state: AppState,
    store: KeyValueStore,
    name: str,
    address: str = "",
    city: str = "",
    state_code: str = "",
    zip_code: str = "",
    location_id: Optional[int] = None,
) -> WorkLocation:
    name = _required_name(name, "Location")
    fields = {
        "name": name,
        "address": address or "",
        "city": city or "",
        "state": state_code or "",
        "zip": zip_code or "",
    }
    if location_id is None:
        location = WorkLocation(id=_next_id(state.work_locations), **fields)
        state.work_locations.append(location)
        logger.info("Added work location %s (%s)", location.name, location.id)
    else:
        index = _index_of(state.work_locations, location_id, "Work location")
        location = state.work_locations[index].model_copy(update=fields)
        state.work_locations[index] = location
        logger.info("Updated work location %s (%s)", location.name, location.id)
    state.save(store)
    return location


def delete_work_location(state: AppState, store: KeyValueStore, location_id: int, confirm: Confirm) -> bool:
    index = _index_of(state.work_locations, location_id, "Work location")
    if not confirm(DELETE_WORK_LOCATION_PROMPT):
        return False
    removed = state.work_locations.pop(index)
    logger.info("Deleted work location %s (%s)", removed.name, removed.id)
    state.save(store)
    return True


def customer_snapshot(customer: Customer) -> CustomerSnapshot:
    return CustomerSnapshot(
        name=customer.name,
        address=customer.address,
        phone=customer.phone,
        email=customer.email,
    )


def work_location_snapshot(location: WorkLocation) -> WorkLocationSnapshot:
    return WorkLocationSnapshot(
        name=location.name,
        address=location.address,
        city=location.city,
        state=location.state,
        zip=location.zip,
    )


def customer_names(state: AppState) -> List[str]:
    """Distinct customer names for the history filter, in saved order."""
    seen: List[str] = []
    for customer in state.customers:
        if customer.name not in seen:
            seen.append(customer.name)
    return seen
