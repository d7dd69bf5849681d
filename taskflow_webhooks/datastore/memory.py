"""In-process datastore with unique keys and atomic upsert.

Used when no datastore URL is configured, and as the test double.
"""

import asyncio
import copy
import uuid
from datetime import datetime, timezone
from typing import Sequence

from taskflow_webhooks.errors import DatastoreError

from .base import Datastore, Filters, Row

# table -> columns that must be unique when not null
DEFAULT_UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    "tasks": ("external_id",),
    "events": ("external_id",),
}


def _matches(row: Row, filters: Filters | None) -> bool:
    if not filters:
        return True
    return all(row.get(column) == value for column, value in filters.items())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MemoryDatastore(Datastore):
    def __init__(
        self,
        tables: dict[str, list[Row]] | None = None,
        unique_keys: dict[str, tuple[str, ...]] | None = None,
    ):
        self.tables: dict[str, list[Row]] = tables if tables is not None else {}
        self.unique_keys = DEFAULT_UNIQUE_KEYS if unique_keys is None else unique_keys
        self._lock = asyncio.Lock()
        # (method, table) per call, for tests asserting on write volume
        self.calls: list[tuple[str, str]] = []

    def _table(self, table: str) -> list[Row]:
        return self.tables.setdefault(table, [])

    def _check_unique(self, table: str, row: Row, ignore: Row | None = None) -> None:
        for column in self.unique_keys.get(table, ()):
            value = row.get(column)
            if value is None:
                continue
            for existing in self._table(table):
                if existing is not ignore and existing.get(column) == value:
                    raise DatastoreError(f"duplicate key value violates unique constraint on {table}.{column}")

    def _insert_locked(self, table: str, row: Row) -> Row:
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", _now())
        self._check_unique(table, stored)
        self._table(table).append(stored)
        return copy.deepcopy(stored)

    async def select(self, table: str, filters: Filters | None = None) -> list[Row]:
        self.calls.append(("select", table))
        return [copy.deepcopy(r) for r in self._table(table) if _matches(r, filters)]

    async def insert(self, table: str, row: Row) -> Row:
        self.calls.append(("insert", table))
        async with self._lock:
            return self._insert_locked(table, row)

    async def update(self, table: str, filters: Filters, patch: Row) -> list[Row]:
        self.calls.append(("update", table))
        async with self._lock:
            updated = []
            for existing in self._table(table):
                if _matches(existing, filters):
                    candidate = {**existing, **patch}
                    self._check_unique(table, candidate, ignore=existing)
                    existing.update(copy.deepcopy(patch))
                    updated.append(copy.deepcopy(existing))
            return updated

    async def upsert(self, table: str, row: Row, conflict_keys: Sequence[str]) -> Row:
        self.calls.append(("upsert", table))
        if not conflict_keys:
            raise DatastoreError("upsert requires at least one conflict key")
        async with self._lock:
            key = {column: row.get(column) for column in conflict_keys}
            for existing in self._table(table):
                if _matches(existing, key):
                    existing.update(copy.deepcopy(row))
                    return copy.deepcopy(existing)
            return self._insert_locked(table, row)

    async def delete(self, table: str, filters: Filters) -> None:
        self.calls.append(("delete", table))
        async with self._lock:
            self.tables[table] = [r for r in self._table(table) if not _matches(r, filters)]

    def writes(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] != "select"]
