"""
Generic record store contract.

The chat core only talks to collections through this interface, so the
physical storage (SQL, in-memory, a remote document service) stays
replaceable.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional

from roomchat.store.query import OrderBy, Record, Where


class RecordStore(ABC):
    """Create/find/update/delete records in named collections."""

    @abstractmethod
    async def create(self, collection: str, record: Mapping[str, Any]) -> Record:
        """Persist `record` and return it with its assigned `id`."""

    @abstractmethod
    async def find(
        self,
        collection: str,
        where: Optional[Where] = None,
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        pass

    async def find_one(self, collection: str, where: Where) -> Optional[Record]:
        results = await self.find(collection, where=where, limit=1)
        return results[0] if results else None

    @abstractmethod
    async def update(
        self,
        collection: str,
        record_id: str,
        partial: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Record:
        """
        Merge `partial` into the record and return the result.

        Raises NotFound for an unknown id and Conflict when a field named in
        `expected` no longer holds the given value.
        """

    @abstractmethod
    async def delete(
        self,
        collection: str,
        record_id: str,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Remove the record. Unknown ids are ignored; `expected` as in update."""
