from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from invoicedesk.env import RuntimeConfig, load_env
from invoicedesk.logging_setup import setup_logging
from invoicedesk.services.storage import KeyValueStore, open_default_store
from invoicedesk.state import AppState


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppContainer:
    config: RuntimeConfig
    store: KeyValueStore
    state: AppState


def create_app_container(
    config: Optional[RuntimeConfig] = None,
    store: Optional[KeyValueStore] = None,
) -> AppContainer:
    """Wire configuration, logging, storage and the loaded state for one session."""
    if config is None:
        load_env()
        config = RuntimeConfig.from_env()
    setup_logging(config)
    store = store if store is not None else open_default_store(config)
    state = AppState.load(store)
    logger.info(
        "invoicedesk ready: %d customers, %d work locations, %d invoices",
        len(state.customers),
        len(state.work_locations),
        len(state.invoices),
    )
    return AppContainer(config=config, store=store, state=state)
