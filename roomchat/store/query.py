"""
Query semantics shared by every RecordStore implementation.

A where clause maps field names to conditions:

    {"kind": "direct"}                          equality
    {"members": {"$contains": "u1"}}            list membership
    {"readBy": {"$not": {"$contains": "u1"}}}   negation of a condition

`order_by` maps field names to "asc" or "desc". Records that tie on every
ordering key keep insertion order, read in the direction of the first key.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from roomchat.core.errors import InvalidArgument

Record = Dict[str, Any]
Where = Mapping[str, Any]
OrderBy = Mapping[str, str]

# (insertion sequence, record)
Row = Tuple[int, Record]

_DIRECTIONS = ("asc", "desc")


def _condition_holds(value: Any, condition: Any) -> bool:
    if isinstance(condition, Mapping):
        if len(condition) != 1:
            raise InvalidArgument(f"Condition must have exactly one operator: {dict(condition)!r}")
        op, operand = next(iter(condition.items()))
        if op == "$contains":
            return isinstance(value, (list, tuple)) and operand in value
        if op == "$not":
            return not _condition_holds(value, operand)
        raise InvalidArgument(f"Unsupported query operator: {op}")

    if isinstance(condition, (list, tuple)):
        return isinstance(value, (list, tuple)) and list(value) == list(condition)
    return value == condition


def matches(record: Record, where: Optional[Where]) -> bool:
    """Return True if `record` satisfies every condition in `where`."""
    if not where:
        return True
    return all(_condition_holds(record.get(field), cond) for field, cond in where.items())


def _sort_key(value: Any) -> Tuple[bool, Any]:
    # missing values sort before present ones
    return (value is not None, value if value is not None else 0)


def sort_rows(rows: Iterable[Row], order_by: Optional[OrderBy]) -> List[Row]:
    rows = list(rows)
    if not order_by:
        return rows

    keys = list(order_by.items())
    for field, direction in keys:
        if direction not in _DIRECTIONS:
            raise InvalidArgument(f"Invalid sort direction for {field!r}: {direction!r}")

    # Python's sort is stable, also with reverse=True, so sorting from the
    # last key to the first leaves earlier keys dominant.
    rows.sort(key=lambda row: row[0], reverse=keys[0][1] == "desc")
    for field, direction in reversed(keys):
        rows.sort(key=lambda row: _sort_key(row[1].get(field)), reverse=direction == "desc")
    return rows


def apply_query(
    rows: Iterable[Row],
    where: Optional[Where] = None,
    order_by: Optional[OrderBy] = None,
    limit: Optional[int] = None,
) -> List[Record]:
    """Filter, order and cut `rows`, returning the bare records."""
    if limit is not None and limit < 0:
        raise InvalidArgument("limit must not be negative")

    selected = [row for row in rows if matches(row[1], where)]
    selected = sort_rows(selected, order_by)
    if limit is not None:
        selected = selected[:limit]
    return [record for _, record in selected]


def check_expected(record: Record, expected: Optional[Mapping[str, Any]]) -> bool:
    """True when every expected field still holds the value the caller read."""
    if not expected:
        return True
    return all(record.get(field) == value for field, value in expected.items())
