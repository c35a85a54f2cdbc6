import uuid
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from roomchat.core.errors import Conflict, InvalidArgument, NotFound
from roomchat.core.logger import get_logger
from roomchat.models.record import StoredRecord
from roomchat.store.base import RecordStore
from roomchat.store.query import OrderBy, Record, Where, apply_query, check_expected

logger = get_logger(__name__)


def _as_record(row: StoredRecord) -> Record:
    data = dict(row.data or {})
    data["id"] = row.id
    return data


def _split_where(where: Optional[Where]) -> Tuple[Dict[str, str], Dict[str, Any]]:
    """
    Separate plain string equalities, which SQL can evaluate on the JSON
    column, from everything else (lists, operators, non-string values).
    """
    pushed: Dict[str, str] = {}
    remaining: Dict[str, Any] = {}
    for field, condition in (where or {}).items():
        if isinstance(condition, str):
            pushed[field] = condition
        else:
            remaining[field] = condition
    return pushed, remaining


class SqlRecordStore(RecordStore):
    """
    RecordStore over a single `records` table via async SQLAlchemy.

    String equalities are evaluated in SQL. When nothing else is left in the
    where clause, a single-key ordering and the limit run in SQL too, with
    values compared as strings; otherwise the remaining conditions, ordering
    and limit go through the shared query helpers.

    Updates and deletes are conditional on the row's `revision`, so a write
    based on a stale read fails with Conflict instead of overwriting.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _get_row(self, session: AsyncSession, collection: str, record_id: str) -> Optional[StoredRecord]:
        stmt = select(StoredRecord).where(
            StoredRecord.collection == collection,
            StoredRecord.id == record_id,
        )
        res = await session.execute(stmt)
        return res.scalars().first()

    async def create(self, collection: str, record: Mapping[str, Any]) -> Record:
        data = {k: v for k, v in record.items() if k != "id"}
        async with self._session_factory() as session:
            row = StoredRecord(id=uuid.uuid4().hex, collection=collection, data=data, revision=0)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            logger.debug("Created record %s in %s (seq=%s)", row.id, collection, row.seq)
            return _as_record(row)

    async def find(
        self,
        collection: str,
        where: Optional[Where] = None,
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        if limit is not None and limit < 0:
            raise InvalidArgument("limit must not be negative")

        pushed, remaining = _split_where(where)

        stmt = select(StoredRecord).where(StoredRecord.collection == collection)
        for field, value in pushed.items():
            if field == "id":
                stmt = stmt.where(StoredRecord.id == value)
            else:
                stmt = stmt.where(StoredRecord.data[field].as_string() == value)

        if not remaining and (not order_by or len(order_by) == 1):
            if order_by:
                field, direction = next(iter(order_by.items()))
                if direction not in ("asc", "desc"):
                    raise InvalidArgument(f"Invalid sort direction for {field!r}: {direction!r}")
                key = StoredRecord.data[field].as_string()
                if direction == "desc":
                    stmt = stmt.order_by(key.desc(), StoredRecord.seq.desc())
                else:
                    stmt = stmt.order_by(key.asc(), StoredRecord.seq.asc())
            else:
                stmt = stmt.order_by(StoredRecord.seq)
            if limit is not None:
                stmt = stmt.limit(limit)

            async with self._session_factory() as session:
                res = await session.execute(stmt)
                return [_as_record(row) for row in res.scalars()]

        stmt = stmt.order_by(StoredRecord.seq)
        async with self._session_factory() as session:
            res = await session.execute(stmt)
            rows = [(row.seq, _as_record(row)) for row in res.scalars()]

        return apply_query(rows, remaining, order_by, limit)

    async def update(
        self,
        collection: str,
        record_id: str,
        partial: Mapping[str, Any],
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Record:
        async with self._session_factory() as session:
            row = await self._get_row(session, collection, record_id)
            if row is None:
                raise NotFound(f"{collection}/{record_id} not found")
            if not check_expected(_as_record(row), expected):
                raise Conflict(f"{collection}/{record_id} changed since it was read")

            revision = row.revision
            data = {**(row.data or {}), **{k: v for k, v in partial.items() if k != "id"}}
            stmt = (
                update(StoredRecord)
                .where(
                    StoredRecord.collection == collection,
                    StoredRecord.id == record_id,
                    StoredRecord.revision == revision,
                )
                .values(data=data, revision=revision + 1)
                .execution_options(synchronize_session=False)
            )
            res = await session.execute(stmt)
            if res.rowcount != 1:
                await session.rollback()
                raise Conflict(f"{collection}/{record_id} changed since it was read")
            await session.commit()

        data["id"] = record_id
        return data

    async def delete(
        self,
        collection: str,
        record_id: str,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> None:
        async with self._session_factory() as session:
            row = await self._get_row(session, collection, record_id)
            if row is None:
                return
            if not check_expected(_as_record(row), expected):
                raise Conflict(f"{collection}/{record_id} changed since it was read")

            stmt = (
                delete(StoredRecord)
                .where(
                    StoredRecord.collection == collection,
                    StoredRecord.id == record_id,
                    StoredRecord.revision == row.revision,
                )
                .execution_options(synchronize_session=False)
            )
            res = await session.execute(stmt)
            if res.rowcount != 1:
                await session.rollback()
                if expected:
                    raise Conflict(f"{collection}/{record_id} changed since it was read")
                # unconditional delete of a row that changed or vanished meanwhile
                await session.execute(
                    delete(StoredRecord)
                    .where(StoredRecord.collection == collection, StoredRecord.id == record_id)
                    .execution_options(synchronize_session=False)
                )
            await session.commit()
            logger.debug("Deleted record %s from %s", record_id, collection)
