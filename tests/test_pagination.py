"""
Cursor encoding and seek pagination over the memories table.
"""

import base64
import json

import pytest

from memstudio.core.pagination import (
    Cursor,
    build_page,
    decode_cursor,
    encode_cursor,
    order_by_clause,
    seek_clause,
)


@pytest.mark.parametrize("sort_value,record_id", [
    (1700000000, "mem-1"),
    (0.75, "a"),
    (0.1 + 0.2, "float-precision"),
    ("Title with ünïcode and \"quotes\"", "id/with/slashes"),
    ("", "empty-sort-value"),
    (-5, "negative"),
])
def test_cursor_round_trip(sort_value, record_id):
    """decode(encode(v, id)) gives back exactly (v, id)."""
    decoded = decode_cursor(encode_cursor(sort_value, record_id))
    assert decoded == Cursor(sort_value=sort_value, id=record_id)


def test_cursor_is_url_safe_without_padding():
    token = encode_cursor("???>>>", "x")
    assert "=" not in token
    assert "+" not in token and "/" not in token


def test_cursor_payload_shape():
    token = encode_cursor(0.5, "abc")
    raw = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4))
    assert json.loads(raw) == {"sortValue": 0.5, "id": "abc"}


@pytest.mark.parametrize("bad", [
    None,
    "",
    "not base64 !!!",
    "%%%%",
    base64.urlsafe_b64encode(b"not json").decode(),
    base64.urlsafe_b64encode(b"[1, 2]").decode(),
    base64.urlsafe_b64encode(b'{"sortValue": 1}').decode(),
    base64.urlsafe_b64encode(b'{"id": "x"}').decode(),
    base64.urlsafe_b64encode(b'{"sortValue": true, "id": "x"}').decode(),
    base64.urlsafe_b64encode(b'{"sortValue": {"a": 1}, "id": "x"}').decode(),
    base64.urlsafe_b64encode(b'{"sortValue": 1, "id": 7}').decode(),
    base64.urlsafe_b64encode(b"\xff\xfe").decode(),
    base64.urlsafe_b64encode(b'{"sortValue": 100000000000000000000, "id": "x"}').decode(),
    base64.urlsafe_b64encode(b'{"sortValue": -100000000000000000000, "id": "x"}').decode(),
    base64.urlsafe_b64encode(b'{"sortValue": NaN, "id": "x"}').decode(),
    base64.urlsafe_b64encode(b'{"sortValue": Infinity, "id": "x"}').decode(),
    "ünïcode",
])
def test_malformed_cursor_decodes_to_none(bad):
    assert decode_cursor(bad) is None


def test_seek_clause_descending_uses_less_than():
    clause, params = seek_clause("importance", "desc", Cursor(sort_value=0.5, id="m"))
    assert clause == "(importance < ? OR (importance = ? AND id < ?))"
    assert params == [0.5, 0.5, "m"]


def test_seek_clause_ascending_uses_greater_than():
    clause, _ = seek_clause("created", "asc", Cursor(sort_value=10, id="m"))
    assert clause == "(created_at > ? OR (created_at = ? AND id > ?))"


def test_order_by_includes_id_tiebreak():
    assert order_by_clause("title", "asc") == "ORDER BY title ASC, id ASC"
    assert order_by_clause("accessed", "desc") == "ORDER BY accessed_at DESC, id DESC"


def test_unknown_sort_or_order_rejected():
    with pytest.raises(ValueError):
        order_by_clause("content", "asc")
    with pytest.raises(ValueError):
        order_by_clause("title", "sideways")


def test_build_page_drops_extra_row_and_cursors_last_returned(make_memory):
    rows = [make_memory(f"m{i}", title=f"t{i}") for i in range(4)]

    page = build_page(rows, limit=3, sort="title")

    assert page.has_more is True
    assert [r.id for r in page.data] == ["m0", "m1", "m2"]
    assert decode_cursor(page.next_cursor) == Cursor(sort_value="t2", id="m2")


def test_build_page_last_page_has_no_cursor(make_memory):
    rows = [make_memory("only")]
    page = build_page(rows, limit=3, sort="created")
    assert page.has_more is False
    assert page.next_cursor is None


def collect_all_pages(repository, **params):
    seen = []
    cursor = None
    pages = 0
    while True:
        page = repository.list(cursor=cursor, **params)
        seen.extend(record.id for record in page.data)
        pages += 1
        if not page.has_more:
            assert page.next_cursor is None
            return seen, pages
        assert page.next_cursor is not None
        cursor = page.next_cursor
        assert pages < 100, "pagination did not terminate"


@pytest.mark.parametrize("sort", ["created", "accessed", "importance", "title"])
@pytest.mark.parametrize("order", ["asc", "desc"])
def test_pagination_complete_and_non_overlapping_with_duplicate_keys(repository, make_memory, clock, sort, order):
    """Walking every page yields each memory exactly once, even with tied sort keys."""
    # Three distinct values per key, repeated, so every page boundary can fall inside a tie
    for i in range(17):
        make_memory(
            f"mem-{i:02d}",
            title=f"title-{i % 3}",
            importance=[0.2, 0.5, 0.9][i % 3],
        )
        if i % 6 == 5:
            clock.advance(1)

    seen, pages = collect_all_pages(repository, sort=sort, order=order, limit=4)

    assert sorted(seen) == sorted(f"mem-{i:02d}" for i in range(17))
    assert len(seen) == len(set(seen))
    assert pages == 5


def test_pagination_order_matches_sort_then_id(repository, make_memory):
    make_memory("b", importance=0.5)
    make_memory("a", importance=0.5)
    make_memory("c", importance=0.9)

    seen, _ = collect_all_pages(repository, sort="importance", order="desc", limit=1)
    assert seen == ["c", "b", "a"]

    seen, _ = collect_all_pages(repository, sort="importance", order="asc", limit=2)
    assert seen == ["a", "b", "c"]


def test_pagination_respects_filters(repository, make_memory):
    make_memory("d1", type="decision", tags=["db", "perf"])
    make_memory("d2", type="decision", tags=["ui"])
    make_memory("n1", type="note", tags=["db"])

    seen, _ = collect_all_pages(repository, type="decision", limit=1)
    assert sorted(seen) == ["d1", "d2"]

    seen, _ = collect_all_pages(repository, tags=["db"], limit=1)
    assert sorted(seen) == ["d1", "n1"]

    seen, _ = collect_all_pages(repository, tags=["perf", "ui"], limit=5)
    assert sorted(seen) == ["d1", "d2"]


def test_tag_filter_matches_whole_tags_only(repository, make_memory):
    make_memory("x", tags=["database"])
    page = repository.list(tags=["data"])
    assert page.data == []


def test_malformed_cursor_starts_from_beginning(repository, make_memory):
    for i in range(3):
        make_memory(f"m{i}")

    first = repository.list(limit=2)
    garbage = repository.list(limit=2, cursor="definitely-not-a-cursor")

    assert [r.id for r in garbage.data] == [r.id for r in first.data]
    assert garbage.has_more is True


@pytest.mark.parametrize("sort_value", [10 ** 20, -10 ** 20])
@pytest.mark.parametrize("sort", ["created", "importance"])
def test_out_of_range_cursor_value_starts_from_beginning(repository, make_memory, sort_value, sort):
    make_memory("a")
    make_memory("b")
    token = base64.urlsafe_b64encode(
        json.dumps({"sortValue": sort_value, "id": "a"}).encode()
    ).decode().rstrip("=")

    page = repository.list(sort=sort, cursor=token, limit=10)

    assert sorted(r.id for r in page.data) == ["a", "b"]
    assert page.has_more is False


def test_exact_limit_has_no_more(repository, make_memory):
    for i in range(3):
        make_memory(f"m{i}")

    page = repository.list(limit=3)
    assert len(page.data) == 3
    assert page.has_more is False
    assert page.next_cursor is None


def test_empty_store_returns_empty_page(repository):
    page = repository.list()
    assert page.data == []
    assert page.has_more is False
    assert page.next_cursor is None
