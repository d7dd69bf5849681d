"""Base datastore interface."""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

Row = dict[str, Any]
# Column -> value equality predicates, ANDed together
Filters = Mapping[str, Any]


class Datastore(ABC):
    """Table-oriented CRUD contract.

    Implementations raise `DatastoreError` on any storage failure. `upsert`
    must be atomic with respect to `conflict_keys`: concurrent upserts of the
    same key yield one row.
    """

    @abstractmethod
    async def select(self, table: str, filters: Filters | None = None) -> list[Row]:
        pass

    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        pass

    @abstractmethod
    async def update(self, table: str, filters: Filters, patch: Row) -> list[Row]:
        """Apply `patch` to every matching row; return the rows after the update."""
        pass

    @abstractmethod
    async def upsert(self, table: str, row: Row, conflict_keys: Sequence[str]) -> Row:
        """Insert `row`, or merge its columns into the row sharing `conflict_keys`."""
        pass

    @abstractmethod
    async def delete(self, table: str, filters: Filters) -> None:
        pass

    async def close(self) -> None:
        """Release pooled resources."""
        return None
