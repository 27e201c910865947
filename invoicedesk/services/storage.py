from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, Iterator, Optional, Protocol

from sqlalchemy import Column, Text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, select

from invoicedesk.errors import StorageError

if TYPE_CHECKING:
    from invoicedesk.env import RuntimeConfig


logger = logging.getLogger(__name__)

CUSTOMERS_KEY = "invoice_customers"
LOCATIONS_KEY = "invoice_locations"
INVOICES_KEY = "invoice_invoices"
SETTINGS_KEY = "invoice_settings"

STORAGE_KEYS = (CUSTOMERS_KEY, LOCATIONS_KEY, INVOICES_KEY, SETTINGS_KEY)


class KeyValueStore(Protocol):
    def load(self, key: str) -> Optional[str]:
        ...

    def save(self, key: str, text: str) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryStore:
    """Dict-backed store. ``quota_bytes`` emulates a browser storage quota."""

    def __init__(self, initial: Optional[Dict[str, str]] = None, *, quota_bytes: Optional[int] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})
        self._quota_bytes = quota_bytes

    def load(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def save(self, key: str, text: str) -> None:
        if self._quota_bytes is not None:
            others = sum(len(v.encode("utf-8")) for k, v in self._items.items() if k != key)
            if others + len(text.encode("utf-8")) > self._quota_bytes:
                raise StorageError(f"Storage quota exceeded while saving '{key}'")
        self._items[key] = text

    def clear(self) -> None:
        self._items.clear()

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileStore:
    """One ``<key>.json`` file per key below ``root``."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _path(self, key: str) -> Path:
        if not key or os.sep in key or key.startswith("."):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._root / f"{key}.json"

    def load(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Could not read '{key}': {exc}") from exc

    def save(self, key: str, text: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(text, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            raise StorageError(f"Could not write '{key}': {exc}") from exc

    def clear(self) -> None:
        if not self._root.exists():
            return
        try:
            for path in self._root.glob("*.json"):
                path.unlink()
        except OSError as exc:
            raise StorageError(f"Could not clear storage: {exc}") from exc


class StorageEntry(SQLModel, table=True):
    __tablename__ = "storage_entry"

    key: str = Field(primary_key=True)
    value: str = Field(default="", sa_column=Column(Text, nullable=False))


class SqlStore:
    """Key-value rows in a SQLModel table; SQLite by default."""

    def __init__(self, url: str) -> None:
        self._engine = create_engine(url)
        try:
            SQLModel.metadata.create_all(self._engine, tables=[StorageEntry.__table__])
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not open storage database: {exc}") from exc

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with Session(self._engine) as session:
                yield session
        except SQLAlchemyError as exc:
            raise StorageError(f"Storage database error: {exc}") from exc

    def load(self, key: str) -> Optional[str]:
        with self._session() as session:
            entry = session.get(StorageEntry, key)
            return entry.value if entry else None

    def save(self, key: str, text: str) -> None:
        with self._session() as session:
            entry = session.get(StorageEntry, key) or StorageEntry(key=key)
            entry.value = text
            session.add(entry)
            session.commit()

    def clear(self) -> None:
        with self._session() as session:
            for entry in session.exec(select(StorageEntry)).all():
                session.delete(entry)
            session.commit()

    def dispose(self) -> None:
        self._engine.dispose()


def storage_usage_bytes(store: KeyValueStore, keys: Iterable[str] = STORAGE_KEYS) -> int:
    total = 0
    for key in keys:
        text = store.load(key)
        if text:
            total += len(text.encode("utf-8"))
    return total


def open_default_store(config: RuntimeConfig) -> KeyValueStore:
    if config.db_url.startswith("sqlite:///"):
        Path(config.db_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    logger.info("Opening storage at %s", config.db_url)
    return SqlStore(config.db_url)
