"""The in-memory backend and the Cursor type."""

import pytest
from bson import ObjectId

from mongoadmin import CommandFailureError, Cursor, DuplicateKeyError, InMemoryConnection, make_namespace
from mongoadmin.connection import default_index_name, match_filter


NS = make_namespace("db", "c")


@pytest.fixture
def conn():
    connection = InMemoryConnection()
    for i, color in enumerate(["red", "green", "blue", None]):
        doc = {"_id": i, "n": i, "tags": ["a", "b"] if i % 2 else ["c"], "meta": {"k": i}}
        if color is not None:
            doc["color"] = color
        connection.insert(NS, doc)
    return connection


def _ids(conn, filter, **kwargs):
    with conn.query(NS, filter, **kwargs) as cursor:
        return [d["_id"] for d in cursor]


# ============================================================================
# Cursor
# ============================================================================

def test_cursor_is_single_pass():
    cursor = Cursor([{"a": 1}, {"a": 2}])
    assert [d["a"] for d in cursor] == [1, 2]
    assert list(cursor) == []
    assert cursor.closed
    assert not cursor.more()


def test_cursor_more_on_empty_cursor():
    cursor = Cursor([])
    assert not cursor.more()
    assert cursor.closed
    assert list(cursor) == []


def test_cursor_more_looks_ahead():
    closed = []
    cursor = Cursor([{"a": 1}], on_close=lambda: closed.append(True))
    assert cursor.more()
    assert cursor.more()
    assert next(cursor) == {"a": 1}
    assert not cursor.more()
    assert closed == [True]


def test_cursor_drained_with_more_and_next():
    cursor = Cursor([{"a": 1}, {"a": 2}, {"a": 3}])
    seen = []
    while cursor.more():
        seen.append(next(cursor)["a"])
    assert seen == [1, 2, 3]


def test_cursor_close_drops_read_ahead_document():
    cursor = Cursor([{"a": 1}])
    assert cursor.more()
    cursor.close()
    assert not cursor.more()
    assert list(cursor) == []


def test_cursor_close_runs_hook_once():
    closed = []
    cursor = Cursor([{"a": 1}], on_close=lambda: closed.append(True))
    with cursor:
        pass
    cursor.close()
    assert closed == [True]
    assert list(cursor) == []


# ============================================================================
# Filters
# ============================================================================

@pytest.mark.parametrize("filter,expected", [
    ({}, [0, 1, 2, 3]),
    ({"n": 2}, [2]),
    ({"n": {"$gt": 1}}, [2, 3]),
    ({"n": {"$gte": 1, "$lt": 3}}, [1, 2]),
    ({"n": {"$ne": 0}}, [1, 2, 3]),
    ({"n": {"$in": [0, 3]}}, [0, 3]),
    ({"n": {"$nin": [0, 3]}}, [1, 2]),
    ({"color": {"$exists": False}}, [3]),
    ({"color": None}, [3]),
    ({"tags": "a"}, [1, 3]),
    ({"meta.k": 2}, [2]),
    ({"$or": [{"n": 0}, {"color": "blue"}]}, [0, 2]),
    ({"$and": [{"n": {"$gt": 0}}, {"tags": "c"}]}, [2]),
])
def test_filters(conn, filter, expected):
    assert _ids(conn, filter) == expected


def test_unknown_operator_rejected():
    with pytest.raises(CommandFailureError):
        match_filter({"a": 1}, {"a": {"$regexx": "x"}})


def test_comparison_across_types_does_not_match():
    assert not match_filter({"a": "text"}, {"a": {"$gt": 1}})


# ============================================================================
# Query shaping
# ============================================================================

def test_sort_limit_skip(conn):
    assert _ids(conn, {}, sort=[("n", -1)], skip=1, limit=2) == [2, 1]


def test_sort_puts_missing_values_first(conn):
    assert _ids(conn, {}, sort=[("color", 1)]) == [3, 2, 1, 0]


def test_exclusion_projection(conn):
    doc = conn.find_one(NS, {"_id": 0})
    assert set(doc) == {"_id", "n", "tags", "meta", "color"}
    with conn.query(NS, {"_id": 0}, projection={"tags": 0, "meta": 0}) as cursor:
        assert list(cursor) == [{"_id": 0, "n": 0, "color": "red"}]


def test_projection_can_hide_id(conn):
    with conn.query(NS, {"_id": 1}, projection={"n": 1, "_id": 0}) as cursor:
        assert list(cursor) == [{"n": 1}]


def test_results_are_copies(conn):
    doc = conn.find_one(NS, {"_id": 0})
    doc["meta"]["k"] = 100
    assert conn.find_one(NS, {"_id": 0})["meta"]["k"] == 0


# ============================================================================
# Writes
# ============================================================================

def test_insert_generates_object_id():
    conn = InMemoryConnection()
    conn.insert(NS, {"a": 1})
    doc = conn.find_one(NS, {"a": 1})
    assert isinstance(doc["_id"], ObjectId)
    assert list(doc) == ["_id", "a"]


def test_insert_duplicate_id(conn):
    with pytest.raises(DuplicateKeyError) as info:
        conn.insert(NS, {"_id": 0})
    assert info.value.code == 11000


def test_update_operators(conn):
    conn.update(NS, {"_id": 0}, {"$set": {"color": "pink"}, "$inc": {"n": 5}, "$unset": {"meta": ""}})
    assert conn.find_one(NS, {"_id": 0}) == {"_id": 0, "n": 5, "tags": ["c"], "color": "pink"}


def test_update_multi(conn):
    conn.update(NS, {"n": {"$gte": 2}}, {"$set": {"late": True}}, multi=True)
    assert _ids(conn, {"late": True}) == [2, 3]


def test_update_multi_requires_operators(conn):
    with pytest.raises(CommandFailureError):
        conn.update(NS, {}, {"plain": 1}, multi=True)


def test_replacement_cannot_change_id(conn):
    with pytest.raises(CommandFailureError):
        conn.update(NS, {"_id": 0}, {"_id": 99})


def test_upsert_with_operators_seeds_from_filter():
    conn = InMemoryConnection()
    conn.update(NS, {"_id": "k"}, {"$inc": {"hits": 1}}, upsert=True)
    assert conn.find_one(NS, {"_id": "k"}) == {"_id": "k", "hits": 1}


def test_unknown_update_operator(conn):
    with pytest.raises(CommandFailureError):
        conn.update(NS, {"_id": 0}, {"$push": {"tags": "x"}})


# ============================================================================
# Catalog and commands
# ============================================================================

def test_default_index_name():
    assert default_index_name({"a": 1, "b": -1}) == "a_1_b_-1"


def test_ensure_index_without_name_uses_default(conn):
    conn.ensure_index(NS, {"n": 1, "color": -1})
    with conn.list_indexes(NS) as cursor:
        assert [d["name"] for d in cursor] == ["_id_", "n_1_color_-1"]


def test_id_index_cannot_be_dropped(conn):
    with pytest.raises(CommandFailureError):
        conn.drop_index(NS, "_id_")


def test_drop_collection_removes_its_indexes(conn):
    conn.ensure_index(NS, {"n": 1})
    conn.drop_collection(NS)
    assert not conn.exists(NS)
    with conn.list_indexes(NS) as cursor:
        assert list(cursor) == []


def test_inserting_catalog_document_builds_index(conn):
    conn.insert(NS.sibling("system.indexes"), {"v": 1, "key": {"n": -1}, "ns": "db.c", "name": "raw"})
    with conn.list_indexes(NS) as cursor:
        assert [d["name"] for d in cursor] == ["_id_", "raw"]


def test_catalog_document_needs_name_key_and_ns(conn):
    with pytest.raises(CommandFailureError):
        conn.insert(NS.sibling("system.indexes"), {"key": {"n": 1}, "ns": "db.c"})


def test_ping_and_unknown_command(conn):
    assert conn.run_command("admin", {"ping": 1}) == {"ok": 1.0}
    with pytest.raises(CommandFailureError) as info:
        conn.run_command("admin", {"frobnicate": 1})
    assert info.value.code == 59


def test_rename_into_existing_collection_fails(conn):
    conn.create_collection(make_namespace("db", "other"))
    with pytest.raises(CommandFailureError):
        conn.run_command("admin", {"renameCollection": "db.c", "to": "db.other"})
