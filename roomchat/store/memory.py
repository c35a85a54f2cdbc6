import copy
import itertools
import uuid
from typing import Any, Dict, List, Mapping, Optional

from roomchat.core.errors import Conflict, NotFound
from roomchat.core.logger import get_logger
from roomchat.store.base import RecordStore
from roomchat.store.query import OrderBy, Record, Row, Where, apply_query, check_expected

logger = get_logger(__name__)


class InMemoryRecordStore(RecordStore):
    """
    Process-local record store.

    Every method runs without awaiting in between, so each call is atomic
    with respect to other coroutines on the same event loop.
    """

    def __init__(self) -> None:
        self.collections: Dict[str, Dict[str, Row]] = {}
        self._seq = itertools.count(1)

    def _collection(self, name: str) -> Dict[str, Row]:
        return self.collections.setdefault(name, {})

    async def create(self, collection: str, record: Mapping[str, Any]) -> Record:
        record_id = uuid.uuid4().hex
        data = copy.deepcopy(dict(record))
        data["id"] = record_id
        self._collection(collection)[record_id] = (next(self._seq), data)
        logger.debug("Created record %s in %s", record_id, collection)
        return copy.deepcopy(data)

    async def find(
        self,
        collection: str,
        where: Optional[Where] = None,
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        rows = self._collection(collection).values()
        return copy.deepcopy(apply_query(rows, where, order_by, limit))

    async def update(
        self,
        collection: str,
        record_id: str,
        partial: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Record:
        rows = self._collection(collection)
        if record_id not in rows:
            raise NotFound(f"{collection}/{record_id} not found")

        seq, data = rows[record_id]
        if not check_expected(data, expected):
            raise Conflict(f"{collection}/{record_id} changed since it was read")

        updated = {**data, **copy.deepcopy(dict(partial)), "id": record_id}
        rows[record_id] = (seq, updated)
        return copy.deepcopy(updated)

    async def delete(
        self,
        collection: str,
        record_id: str,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> None:
        rows = self._collection(collection)
        if record_id not in rows:
            return
        if not check_expected(rows[record_id][1], expected):
            raise Conflict(f"{collection}/{record_id} changed since it was read")
        del rows[record_id]
