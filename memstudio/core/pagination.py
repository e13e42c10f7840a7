"""
Seek-based pagination over ordered memory listings.

A cursor is the base64url encoding of ``{"sortValue": ..., "id": ...}`` taken
from the last row of the previous page. The next page is selected with a
compound predicate on ``(sort column, id)`` so duplicate sort values never
cause skipped or repeated rows.
"""

import base64
import binascii
import json
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

from .schema import MemoryRecord, Page

SortValue = Union[str, int, float]

SORT_COLUMNS = {
    "created": "created_at",
    "accessed": "accessed_at",
    "importance": "importance",
    "title": "title",
}

SORT_ORDERS = ("asc", "desc")

# SQLite integers are signed 64-bit
SQLITE_MIN_INT = -2 ** 63
SQLITE_MAX_INT = 2 ** 63 - 1


@dataclass(frozen=True)
class Cursor:
    sort_value: SortValue
    id: str


def encode_cursor(sort_value: SortValue, record_id: str) -> str:
    """Serialize a (sort value, id) pair into an opaque token."""
    payload = json.dumps({"sortValue": sort_value, "id": record_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(cursor: Optional[str]) -> Optional[Cursor]:
    """Parse a token produced by ``encode_cursor``.

    Anything malformed decodes to ``None`` so a corrupt client cursor simply
    restarts the listing from the first page.
    """
    if not cursor:
        return None
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except (ValueError, UnicodeError, binascii.Error):
        return None

    if not isinstance(data, dict):
        return None
    sort_value = data.get("sortValue")
    record_id = data.get("id")
    # bool is an int subclass and never a valid sort key
    if isinstance(sort_value, bool) or not isinstance(sort_value, (str, int, float)):
        return None
    if isinstance(sort_value, int) and not SQLITE_MIN_INT <= sort_value <= SQLITE_MAX_INT:
        return None
    if isinstance(sort_value, float) and not math.isfinite(sort_value):
        return None
    if not isinstance(record_id, str):
        return None
    return Cursor(sort_value=sort_value, id=record_id)


def sort_column(sort: str) -> str:
    try:
        return SORT_COLUMNS[sort]
    except KeyError:
        raise ValueError(f"sort must be one of: {list(SORT_COLUMNS)}")


def seek_clause(sort: str, order: str, cursor: Cursor) -> Tuple[str, List[Any]]:
    """Range predicate selecting rows strictly after ``cursor`` in listing order."""
    column = sort_column(sort)
    op = "<" if order == "desc" else ">"
    clause = f"({column} {op} ? OR ({column} = ? AND id {op} ?))"
    return clause, [cursor.sort_value, cursor.sort_value, cursor.id]


def order_by_clause(sort: str, order: str) -> str:
    if order not in SORT_ORDERS:
        raise ValueError(f"order must be one of: {list(SORT_ORDERS)}")
    column = sort_column(sort)
    direction = order.upper()
    return f"ORDER BY {column} {direction}, id {direction}"


def build_page(rows: Sequence[MemoryRecord], limit: int, sort: str) -> Page[MemoryRecord]:
    """Turn ``limit + 1`` fetched rows into a page.

    The extra row only signals that more data exists; the next cursor comes
    from the last row actually returned.
    """
    has_more = len(rows) > limit
    data = list(rows[:limit])

    next_cursor = None
    if has_more and data:
        last = data[-1]
        next_cursor = encode_cursor(last.sort_value(sort), last.id)

    return Page(data=data, next_cursor=next_cursor, has_more=has_more)
