"""
Memory repository: CRUD, access tracking, keyword query, statistics and retry behaviour.
"""

import sqlite3
from datetime import datetime, timezone

import pytest

from memstudio.core.dao import escape_like
from memstudio.core.db import is_busy_error, with_retry
from memstudio.core.errors import DatabaseError, NotFoundError, ValidationError


def test_database_health(database):
    """Test that database initializes correctly."""
    assert database.health_check() is True


def test_create_and_peek(repository, make_memory, clock):
    created = make_memory(
        "mem-1",
        title="Use WAL mode",
        type="decision",
        content="SQLite runs in WAL mode for concurrent readers",
        summary="WAL for readers",
        importance=0.8,
        tags=["sqlite", "perf"],
        related_files=["server/db.py", "server/config.py"],
    )

    assert created.id == "mem-1"
    assert created.type == "decision"
    assert created.tags == ["sqlite", "perf"]
    assert created.related_files == ["server/db.py", "server/config.py"]
    assert created.access_count == 0
    assert created.needs_review is False
    assert created.created_at == datetime.fromtimestamp(int(clock.now), tz=timezone.utc)
    assert created.created_at == created.accessed_at


def test_create_duplicate_id_is_validation_error(make_memory):
    make_memory("dup")
    with pytest.raises(ValidationError):
        make_memory("dup")


def test_get_by_id_bumps_access_once(repository, make_memory, clock):
    make_memory("m")
    clock.advance(60)

    first = repository.get_by_id("m")
    assert first.access_count == 1
    assert first.accessed_at == datetime.fromtimestamp(int(clock.now), tz=timezone.utc)

    second = repository.get_by_id("m")
    assert second.access_count == 2
    assert second.created_at <= second.accessed_at


def test_accessed_at_never_moves_backwards(repository, make_memory, clock):
    make_memory("m")
    clock.advance(100)
    later = repository.get_by_id("m").accessed_at

    clock.advance(-50)
    again = repository.get_by_id("m")
    assert again.accessed_at == later


def test_peek_does_not_count_access(repository, make_memory):
    make_memory("m")
    repository.peek("m")
    repository.peek("m")
    assert repository.peek("m").access_count == 0


def test_get_missing_raises_not_found(repository):
    with pytest.raises(NotFoundError):
        repository.get_by_id("nope")


def test_partial_update(repository, make_memory):
    make_memory("m", title="Old", tags=["a"], summary="s")

    updated = repository.update("m", {"title": "New", "tags": ["b", "c"], "needs_review": True, "summary": None})

    assert updated.title == "New"
    assert updated.tags == ["b", "c"]
    assert updated.needs_review is True
    assert updated.summary is None
    assert updated.content == "Content of m"


def test_empty_update_returns_record_unchanged(repository, make_memory):
    original = make_memory("m")
    assert repository.update("m", {}) == original
    assert repository.update("m", {"unknown": 1}) == original


def test_update_missing_raises_not_found(repository):
    with pytest.raises(NotFoundError):
        repository.update("ghost", {"title": "x"})


def test_delete_is_hard(repository, make_memory):
    make_memory("m")
    repository.delete("m")
    assert repository.peek("m") is None
    assert repository.count() == 0
    with pytest.raises(NotFoundError):
        repository.delete("m")


def test_importance_out_of_range_rejected_by_store(make_memory):
    with pytest.raises(DatabaseError):
        make_memory("bad", importance=1.5)


def test_query_by_text_weights_title_content_summary(repository, make_memory):
    make_memory("title-only", title="Cache layer", content="nothing here")
    make_memory("all-three", title="Cache keys", content="cache invalidation", summary="cache summary")
    make_memory("content-only", title="Other", content="we cache things")
    make_memory("summary-only", title="Other", content="none", summary="about CACHE")
    make_memory("none", title="Unrelated", content="unrelated")

    candidates = repository.query_by_text("cache")
    scores = {c.id: c.match_score for c in candidates}

    assert scores == {"title-only": 2, "all-three": 4, "content-only": 1, "summary-only": 1}
    assert candidates[0].id == "all-three"
    assert [c.match_score for c in candidates] == sorted(scores.values(), reverse=True)


def test_query_by_text_filters_type_and_importance(repository, make_memory):
    make_memory("low", title="cache", importance=0.1)
    make_memory("high", title="cache", importance=0.9)
    make_memory("high-decision", title="cache", importance=0.9, type="decision")

    assert {c.id for c in repository.query_by_text("cache", min_importance=0.5)} == {"high", "high-decision"}
    assert [c.id for c in repository.query_by_text("cache", type="decision")] == ["high-decision"]


def test_query_by_text_treats_wildcards_literally(repository, make_memory):
    make_memory("pct", title="100% coverage")
    make_memory("plain", title="1000 coverage")
    make_memory("underscore", content="snake_case names")
    make_memory("no-underscore", content="snakeXcase names")

    assert [c.id for c in repository.query_by_text("100%")] == ["pct"]
    assert [c.id for c in repository.query_by_text("e_c")] == ["underscore"]


def test_query_by_text_respects_limit(repository, make_memory):
    for i in range(5):
        make_memory(f"m{i}", title="shared")
    assert len(repository.query_by_text("shared", limit=3)) == 3


def test_escape_like():
    assert escape_like("a%b_c\\d") == "a\\%b\\_c\\\\d"


def test_stats(repository, make_memory, clock):
    make_memory("old", type="note", importance=0.2, tags=["a"])
    clock.advance(40 * 24 * 3600)
    make_memory("new-1", type="decision", importance=0.6, tags=["a", "b"])
    make_memory("new-2", type="decision", importance=1.0, tags=["a"])

    stats = repository.stats()

    assert stats.total == 3
    assert stats.by_type == {"note": 1, "decision": 2}
    assert stats.recent_count == 2
    assert stats.stale_count == 1
    assert stats.avg_importance == pytest.approx(0.6)
    assert stats.top_tags == [{"tag": "a", "count": 3}, {"tag": "b", "count": 1}]


def test_stats_on_empty_store(repository):
    stats = repository.stats()
    assert stats.total == 0
    assert stats.avg_importance == 0.0
    assert stats.top_tags == []


def test_recent_orders_newest_first(repository, make_memory, clock):
    make_memory("first")
    clock.advance(10)
    make_memory("second")
    assert [r.id for r in repository.recent()] == ["second", "first"]


def test_with_retry_recovers_from_busy():
    calls = []
    delays = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise sqlite3.OperationalError("database is locked")
        return "ok"

    assert with_retry(flaky, max_retries=3, base_delay=0.1, sleep=delays.append) == "ok"
    assert len(calls) == 3
    assert delays == [pytest.approx(0.1), pytest.approx(0.2)]


def test_with_retry_gives_up_as_database_error():
    delays = []

    def always_busy():
        raise sqlite3.OperationalError("database is busy")

    with pytest.raises(DatabaseError) as exc_info:
        with_retry(always_busy, max_retries=3, base_delay=0.01, sleep=delays.append)
    assert len(delays) == 2
    assert exc_info.value.message == "A database error occurred"


def test_with_retry_does_not_retry_other_errors():
    delays = []

    def broken():
        raise sqlite3.OperationalError("no such table: memories")

    with pytest.raises(DatabaseError):
        with_retry(broken, max_retries=3, sleep=delays.append)
    assert delays == []


def test_is_busy_error():
    assert is_busy_error(sqlite3.OperationalError("database is locked"))
    assert not is_busy_error(sqlite3.IntegrityError("locked"))
    assert not is_busy_error(ValueError("busy"))


@pytest.mark.parametrize("max_retries", [0, -2])
def test_with_retry_always_attempts_once(max_retries):
    assert with_retry(lambda: "ran", max_retries=max_retries, sleep=lambda _: None) == "ran"


def test_relation_crud(relations, make_memory, clock):
    make_memory("a", type="decision")
    make_memory("b", title="Target")

    relation = relations.create("a", "b", "implements", weight=0.4, metadata={"note": "x"})
    assert relation.source_id == "a"
    assert relation.target_id == "b"
    assert relation.weight == 0.4
    assert relation.metadata == {"note": "x"}
    assert relation.created_at == datetime.fromtimestamp(clock.now, tz=timezone.utc)

    updated = relations.update(relation.id, {"weight": 0.9})
    assert updated.weight == 0.9
    assert updated.metadata == {"note": "x"}

    relations.delete(relation.id)
    with pytest.raises(NotFoundError):
        relations.get(relation.id)
    with pytest.raises(NotFoundError):
        relations.delete(relation.id)


def test_relations_for_memory_split_by_direction(relations, make_memory):
    make_memory("hub", title="Hub", type="architecture")
    make_memory("x", title="X")
    make_memory("y", title="Y", type="decision")
    light = relations.create("hub", "x", "references", weight=0.2)
    heavy = relations.create("hub", "y", "requires", weight=0.9)
    inbound = relations.create("x", "hub", "extends")

    outgoing, incoming = relations.for_memory("hub")

    assert [link.relation.id for link in outgoing] == [heavy.id, light.id]
    assert (outgoing[0].other_id, outgoing[0].other_title, outgoing[0].other_type) == ("y", "Y", "decision")
    assert [link.relation.id for link in incoming] == [inbound.id]
    assert incoming[0].other_title == "X"


def test_relations_for_unknown_memory_is_not_found(relations):
    with pytest.raises(NotFoundError):
        relations.for_memory("ghost")


@pytest.mark.parametrize("kwargs", [
    {"type": "likes"},
    {"type": "references", "weight": 1.5},
    {"type": "references", "weight": -0.1},
])
def test_relation_create_validation(relations, make_memory, kwargs):
    make_memory("a")
    make_memory("b")
    with pytest.raises(ValidationError):
        relations.create("a", "b", **kwargs)


def test_relation_to_missing_memory_is_not_found(relations, make_memory):
    make_memory("a")
    with pytest.raises(NotFoundError):
        relations.create("a", "ghost", "references")


def test_relations_cascade_with_memory_delete(repository, relations, make_memory):
    make_memory("a")
    make_memory("b")
    relation = relations.create("a", "b", "related_to")
    relations.suggest("b", "a", "supersedes", 0.6)

    repository.delete("b")

    with pytest.raises(NotFoundError):
        relations.get(relation.id)
    assert relations.suggestions() == []


def test_suggestion_review(relations, make_memory):
    make_memory("a", title="Source")
    make_memory("b", title="Target")
    low = relations.suggest("a", "b", "references", 0.3, reason="shared tags", detection_method="tags")
    high = relations.suggest("b", "a", "extends", 0.9)

    pending = relations.suggestions()
    assert [s.id for s in pending] == [high, low]
    assert pending[1].source_title == "Source"
    assert pending[1].target_title == "Target"
    assert pending[1].reason == "shared tags"

    relation_id = relations.approve(high)
    relation = relations.get(relation_id)
    assert (relation.source_id, relation.target_id, relation.type) == ("b", "a", "extends")
    assert relation.weight == 0.8

    relations.reject(low)

    assert relations.suggestions() == []
    assert [s.id for s in relations.suggestions(status="approved")] == [high]
    assert [s.id for s in relations.suggestions(status="rejected")] == [low]


def test_suggestion_can_only_be_reviewed_once(relations, make_memory):
    make_memory("a")
    make_memory("b")
    suggestion_id = relations.suggest("a", "b", "references", 0.5)
    relations.reject(suggestion_id)

    with pytest.raises(ValidationError):
        relations.approve(suggestion_id)
    with pytest.raises(ValidationError):
        relations.reject(suggestion_id)
    with pytest.raises(NotFoundError):
        relations.approve("ghost")


def test_suggestions_reject_unknown_status(relations):
    with pytest.raises(ValidationError):
        relations.suggestions(status="maybe")


@pytest.fixture
def populated_code_graph(code_graph):
    code_graph.upsert_node("n-parse", "function", "parse_cursor", "src/pagination.py",
                           start_line=10, end_line=30, signature="parse_cursor(token)", summary="Decode 100% of cursors")
    code_graph.upsert_node("n-repo", "class", "MemoryRepository", "src/dao.py", metadata={"exported": True})
    code_graph.upsert_node("n-app", "function", "create_app", "src/main.py")
    code_graph.add_edge("n-app", "n-repo", "calls")
    code_graph.add_edge("n-repo", "n-parse", "calls")
    code_graph.add_edge("n-app", "n-parse", "imports")
    return code_graph


def test_code_nodes_listed_by_name_with_total(populated_code_graph):
    nodes, total = populated_code_graph.list_nodes(limit=2)
    assert total == 3
    assert [n.name for n in nodes] == ["MemoryRepository", "create_app"]

    nodes, total = populated_code_graph.list_nodes(limit=2, offset=2)
    assert total == 3
    assert [n.name for n in nodes] == ["parse_cursor"]


def test_code_node_filters(populated_code_graph):
    assert [n.id for n in populated_code_graph.list_nodes(type="class")[0]] == ["n-repo"]
    assert [n.id for n in populated_code_graph.list_nodes(file="dao")[0]] == ["n-repo"]
    assert [n.id for n in populated_code_graph.list_nodes(search="cursor(")[0]] == ["n-parse"]
    nodes, total = populated_code_graph.list_nodes(search="100%")
    assert ([n.id for n in nodes], total) == (["n-parse"], 1)
    assert populated_code_graph.list_nodes(search="%") == ([], 0)


def test_code_node_upsert_keeps_created_at(populated_code_graph, clock):
    before = populated_code_graph.get_node("n-repo")
    clock.advance(60)
    after = populated_code_graph.upsert_node("n-repo", "class", "MemoryRepository", "src/core/dao.py")

    assert after.file_path == "src/core/dao.py"
    assert after.created_at == before.created_at
    assert after.updated_at > before.updated_at
    assert before.metadata == {"exported": True}
    assert after.metadata == {}


def test_get_missing_code_node(code_graph):
    with pytest.raises(NotFoundError) as exc_info:
        code_graph.get_node("ghost")
    assert "ghost" in exc_info.value.message


def test_code_graph_stats(populated_code_graph, make_memory):
    make_memory("m")
    populated_code_graph.link_memory("m", "n-repo", "documents")

    stats = populated_code_graph.stats()

    assert stats.total_nodes == 3
    assert stats.total_edges == 3
    assert stats.total_cross_layer_relations == 1
    assert stats.nodes_by_type == {"function": 2, "class": 1}
    assert stats.edges_by_type == {"calls": 2, "imports": 1}


def test_cross_layer_links(populated_code_graph, make_memory, repository):
    make_memory("m", title="Pagination decision", type="decision", summary="Seek pagination")
    weak = populated_code_graph.link_memory("m", "n-app", "mentions", confidence=0.3)
    strong = populated_code_graph.link_memory("m", "n-parse", "documents", confidence=0.9, metadata={"line": 12})

    code_links = populated_code_graph.cross_layer_for_memory("m")
    assert [link.id for link in code_links] == [strong, weak]
    assert code_links[0].code_name == "parse_cursor"
    assert code_links[0].signature == "parse_cursor(token)"
    assert code_links[0].metadata == {"line": 12}
    assert code_links[0].memory_title is None

    memory_links = populated_code_graph.memories_for_node("n-parse")
    assert [link.memory_id for link in memory_links] == ["m"]
    assert memory_links[0].memory_title == "Pagination decision"
    assert memory_links[0].memory_summary == "Seek pagination"

    repository.delete("m")
    assert populated_code_graph.memories_for_node("n-parse") == []
