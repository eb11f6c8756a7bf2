"""Shared fixtures: an in-memory connection and a client bound to it."""

import pytest

from mongoadmin import ClientConfig, InMemoryConnection, MongoAdminClient, make_namespace


@pytest.fixture
def connection():
    return InMemoryConnection()


@pytest.fixture
def admin(connection):
    return MongoAdminClient(connection, ClientConfig())


@pytest.fixture
def orders(connection):
    """``shop.orders`` holding five documents with _id 1..5."""
    ns = make_namespace("shop", "orders")
    for i in range(1, 6):
        connection.insert(ns, {"_id": i, "item": f"item-{i}", "qty": i * 10})
    return ns
