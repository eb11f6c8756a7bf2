"""Namespace resolution: building, parsing and validating db.collection names."""

import dataclasses

import pytest

from mongoadmin import InvalidArgumentError, Namespace, make_namespace, parse_namespace
from mongoadmin.namespace import as_namespace


# ============================================================================
# Round trip
# ============================================================================

@pytest.mark.parametrize("database,collection", [
    ("test", "coll"),
    ("shop", "orders"),
    ("admin", "system.users"),
    ("db", "a.b.c"),
    ("db", ""),
    ("Unicode_ü", "naïve"),
])
def test_make_to_string_parse_round_trip(database, collection):
    ns = make_namespace(database, collection)
    assert parse_namespace(str(ns)) == ns


def test_string_form():
    ns = make_namespace("shop", "orders")
    assert str(ns) == "shop.orders"
    assert ns.database_name == "shop"
    assert ns.collection_name == "orders"


def test_parse_splits_on_first_separator():
    ns = parse_namespace("db.system.indexes")
    assert ns.database == "db"
    assert ns.collection == "system.indexes"


def test_parse_without_separator_fails():
    with pytest.raises(InvalidArgumentError):
        parse_namespace("nodots")


def test_parse_with_empty_database_fails():
    with pytest.raises(InvalidArgumentError):
        parse_namespace(".coll")


# ============================================================================
# Validation
# ============================================================================

def test_empty_database_rejected():
    with pytest.raises(InvalidArgumentError):
        make_namespace("", "coll")


@pytest.mark.parametrize("database", ["a.b", "a b", "a$b", "a/b", "a\\b", 'a"b', "a\x00b"])
def test_invalid_database_characters_rejected(database):
    with pytest.raises(InvalidArgumentError):
        make_namespace(database, "coll")


def test_nul_in_collection_rejected():
    with pytest.raises(InvalidArgumentError):
        make_namespace("db", "co\x00ll")


def test_invalid_argument_is_value_error():
    with pytest.raises(ValueError):
        make_namespace("")


def test_database_only_namespace():
    ns = make_namespace("db")
    assert ns.is_database
    assert str(ns) == "db."
    assert not make_namespace("db", "c").is_database


# ============================================================================
# Value semantics
# ============================================================================

def test_namespace_is_immutable():
    ns = make_namespace("db", "c")
    with pytest.raises(dataclasses.FrozenInstanceError):
        ns.database = "other"


def test_equality_and_hashing():
    a = make_namespace("db", "c")
    b = parse_namespace("db.c")
    assert a == b
    assert hash(a) == hash(b)
    assert len({a, b}) == 1
    assert a != make_namespace("db", "d")


def test_sibling_stays_in_database():
    ns = make_namespace("db", "c").sibling("system.indexes")
    assert ns == Namespace("db", "system.indexes")


def test_as_namespace_accepts_both_forms():
    ns = make_namespace("db", "c")
    assert as_namespace(ns) is ns
    assert as_namespace("db.c") == ns
    with pytest.raises(InvalidArgumentError):
        as_namespace(42)
