# Copyright 2025 Sushanth (https://github.com/sushanthpy)
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
MongoAdminClient - administrative operations over one connection.

Callers express intents (list databases, rename a collection, save a
document, rename an index); the client resolves the namespace, builds the
command or query document, issues it, and maps results back to typed
objects. It holds no state besides its connection and config, performs no
retries, and swallows no errors except where documented:

- ``list_functions`` records unparsable stored functions instead of raising
- ``rename_index`` does nothing when the index is absent

Example:
    with create_client("mongodb://localhost:27017/") as admin:
        admin.create_collection("shop", "orders")
        admin.ensure_index(make_namespace("shop", "orders"), "by_day", '{"day": 1}')
        docs = admin.query_documents(QueryRequest("shop", "orders", limit=10))
"""

import logging
import os
from typing import Any, Iterable, List, Mapping, Optional, Union

from .config import ClientConfig
from .connection import Connection
from .document import ID_FIELD, Document, as_document
from .errors import InvalidArgumentError, ParseError
from .models import (
    CollectionInfo,
    Function,
    FunctionListing,
    IndexSpec,
    QueryRequest,
    User,
)
from .namespace import Namespace, as_namespace, make_namespace

logger = logging.getLogger(__name__)


NamespaceLike = Union[Namespace, str]


class MongoAdminClient:
    """
    Administrative façade bound to exactly one ``Connection``.

    Not thread-safe: share a client between threads only if the connection
    supports concurrent use, otherwise give each thread its own.
    """

    def __init__(
        self,
        connection: Connection,
        config: Optional[ClientConfig] = None,
        owns_connection: bool = False,
    ):
        self._connection = connection
        self._config = config or ClientConfig()
        self._owns_connection = owns_connection
        self._config.apply_logging()

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def config(self) -> ClientConfig:
        return self._config

    def close(self) -> None:
        """Close the connection if this client created it."""
        if self._owns_connection:
            self._connection.close()

    def __enter__(self) -> "MongoAdminClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ========================================================================
    # Catalog Operations
    # ========================================================================

    @staticmethod
    def _collection_target(database: str, name: str) -> Namespace:
        ns = make_namespace(database, name)
        if ns.is_database:
            raise InvalidArgumentError(f"A collection name is required, got {ns}")
        return ns

    def list_database_names(self) -> List[str]:
        """Database names, sorted by code point."""
        return sorted(self._connection.list_database_names())

    def list_collection_names(self, database: str) -> List[str]:
        """Collection names of ``database``, sorted by code point."""
        ns = make_namespace(database)
        return sorted(self._connection.list_collection_names(ns.database))

    def create_database(self, database: str) -> None:
        """
        Materialize ``database``.

        The server has no "create database" command, so a sentinel document
        is written to ``<database>.temp`` and the collection dropped again.
        Does nothing if ``<database>.temp`` already exists. Concurrent callers
        can race between the existence check and the drop.
        """
        ns = make_namespace(database, self._config.temp_collection)
        if self._connection.exists(ns):
            logger.debug("create_database: %s exists, leaving it alone", ns)
            return
        logger.info("Creating database %s", database)
        self._connection.insert(ns, {ID_FIELD: self._config.temp_collection})
        self._connection.drop_collection(ns)

    def drop_database(self, database: str) -> None:
        ns = make_namespace(database)
        logger.info("Dropping database %s", ns.database)
        self._connection.drop_database(ns.database)

    def create_collection(self, database: str, name: str) -> None:
        ns = self._collection_target(database, name)
        logger.debug("create_collection %s", ns)
        self._connection.create_collection(ns)

    def rename_collection(self, database: str, name: str, new_name: str) -> None:
        """Rename within one database; the command always runs against the admin database."""
        source = self._collection_target(database, name)
        target = self._collection_target(database, new_name)
        command = {"renameCollection": str(source), "to": str(target)}
        logger.info("Renaming collection %s to %s", source, target)
        self._connection.run_command(self._config.admin_database, command)

    def duplicate_collection(self, database: str, name: str, new_name: str) -> int:
        """
        Copy every document of ``name`` into ``new_name``, in cursor order.

        Documents are inserted one at a time. A failure partway leaves the
        target partially filled; nothing is rolled back.

        Returns:
            Number of documents copied
        """
        source = self._collection_target(database, name)
        target = self._collection_target(database, new_name)
        logger.info("Duplicating collection %s into %s", source, target)
        copied = 0
        with self._connection.query(source, {}) as cursor:
            for raw in cursor:
                self._connection.insert(target, raw)
                copied += 1
        return copied

    def drop_collection(self, database: str, name: str) -> None:
        ns = self._collection_target(database, name)
        logger.info("Dropping collection %s", ns)
        self._connection.drop_collection(ns)

    # ========================================================================
    # Document Operations
    # ========================================================================

    def query_documents(self, request: QueryRequest) -> List[Document]:
        """
        Run a query and return owned copies of the results, in server order.

        A limit of 0 or above ``config.limit_threshold`` becomes
        ``config.default_query_limit``.
        """
        ns = self._collection_target(request.database, request.collection)
        limit = self._config.effective_limit(request.limit)
        projection = request.projection if request.projection else None
        logger.debug("query %s limit=%d skip=%d", ns, limit, request.skip)
        with self._connection.query(
            ns,
            request.filter.to_dict(),
            limit=limit,
            skip=request.skip,
            projection=projection.to_dict() if projection is not None else None,
            sort=request.sort,
            options=request.options,
            batch_size=request.batch_size,
        ) as cursor:
            return [Document(raw) for raw in cursor]

    def insert_document(self, doc: Mapping[str, Any], database: str, collection: str) -> None:
        ns = self._collection_target(database, collection)
        self._connection.insert(ns, as_document(doc).to_dict())

    def save_document(self, doc: Mapping[str, Any], database: str, collection: str) -> None:
        """
        Replace the document with the same ``_id``, inserting it if absent.

        Raises:
            InvalidArgumentError: If ``doc`` has no ``_id`` (nothing is written)
        """
        ns = self._collection_target(database, collection)
        doc = as_document(doc)
        if not doc.has_id:
            raise InvalidArgumentError(f"Cannot save a document without {ID_FIELD} into {ns}")
        self._connection.update(ns, {ID_FIELD: doc.get_id()}, doc.to_dict(), upsert=True, multi=False)

    def remove_documents(
        self,
        database: str,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        just_one: bool = True,
    ) -> None:
        ns = self._collection_target(database, collection)
        logger.debug("remove from %s just_one=%s", ns, just_one)
        self._connection.remove(ns, as_document(filter).to_dict(), just_one=just_one)

    # ========================================================================
    # Index Operations
    # ========================================================================

    @staticmethod
    def _collection_ns(collection: NamespaceLike) -> Namespace:
        ns = as_namespace(collection)
        if ns.is_database:
            raise InvalidArgumentError(f"Index operations need a collection namespace, got {ns}")
        return ns

    def list_index_names(self, collection: NamespaceLike) -> List[str]:
        """Index names in catalog order; catalog entries without a name are skipped."""
        with self._connection.list_indexes(self._collection_ns(collection)) as cursor:
            return [raw["name"] for raw in cursor if "name" in raw]

    def list_index_specs(self, collection: NamespaceLike) -> List[IndexSpec]:
        with self._connection.list_indexes(self._collection_ns(collection)) as cursor:
            return [IndexSpec.from_document(raw) for raw in cursor if "name" in raw]

    def ensure_index(
        self,
        collection: NamespaceLike,
        name: str,
        key_spec: str,
        unique: bool = False,
        background: bool = False,
        drop_dups: bool = False,
    ) -> None:
        """
        Create an index from JSON key-spec text such as ``'{"a": 1, "b": -1}'``.

        Creating an index identical to an existing one is a no-op; this does
        not modify an existing index's keys or options.

        Raises:
            ParseError: If ``key_spec`` is malformed or not a non-empty object
        """
        keys = Document.from_json(key_spec)
        if not keys:
            raise ParseError(key_spec, "index key specification has no fields")
        self.create_index(
            collection,
            IndexSpec(name=name, keys=keys, unique=unique, background=background, drop_dups=drop_dups),
        )

    def create_index(self, collection: NamespaceLike, spec: IndexSpec) -> None:
        ns = self._collection_ns(collection)
        logger.debug("ensure_index %s on %s", spec.name, ns)
        self._connection.ensure_index(
            ns,
            spec.keys.to_dict(),
            unique=spec.unique,
            name=spec.name,
            background=spec.background,
            drop_dups=spec.drop_dups,
        )

    def rename_index(self, collection: NamespaceLike, old_name: str, new_name: str) -> None:
        """
        Rename an index by rewriting its raw catalog document.

        The catalog document is copied with only ``name`` changed, the old
        index is dropped, and the copy is inserted straight into
        ``<db>.system.indexes``. Does nothing when ``old_name`` is absent.
        """
        ns = self._collection_ns(collection)
        if not new_name:
            raise InvalidArgumentError("New index name cannot be empty")
        catalog = ns.sibling(self._config.index_catalog_collection)
        raw = self._connection.find_one(catalog, {"name": old_name, "ns": str(ns)})
        if not raw:
            logger.debug("rename_index: %s not found on %s", old_name, ns)
            return
        renamed = Document(raw).replace("name", new_name)
        logger.info("Renaming index %s to %s on %s", old_name, new_name, ns)
        self._connection.drop_index(ns, old_name)
        self._connection.insert(catalog, renamed.to_dict())

    def drop_index(self, collection: NamespaceLike, name: str) -> None:
        """Drop an index; succeeds whether or not it existed."""
        ns = self._collection_ns(collection)
        logger.info("Dropping index %s on %s", name, ns)
        self._connection.drop_index(ns, name)

    # ========================================================================
    # System-Collection Operations
    # ========================================================================

    def _users_ns(self, database: str) -> Namespace:
        return make_namespace(database, self._config.users_collection)

    def _functions_ns(self, database: str) -> Namespace:
        return make_namespace(database, self._config.functions_collection)

    def list_users(self, database: str) -> List[User]:
        with self._connection.query(self._users_ns(database), {}) as cursor:
            return [User.from_document(raw) for raw in cursor]

    def create_user(self, database: str, user: User, overwrite: bool = False) -> None:
        """Insert ``user``; with ``overwrite`` replace any user with the same ``_id``."""
        ns = self._users_ns(database)
        doc = user.to_document()
        if not overwrite:
            self._connection.insert(ns, doc.to_dict())
            return
        self._connection.update(ns, {ID_FIELD: doc.get_id()}, doc.to_dict(), upsert=True, multi=False)

    def drop_user(self, database: str, user_id: Any) -> None:
        logger.info("Dropping user %s from %s", user_id, database)
        self._connection.remove(self._users_ns(database), {ID_FIELD: user_id}, just_one=True)

    def list_functions(self, database: str) -> FunctionListing:
        """
        Stored functions of ``database``.

        Documents that are not valid functions end up in
        ``FunctionListing.skipped``; the listing itself never fails on them.
        """
        listing = FunctionListing()
        ns = self._functions_ns(database)
        with self._connection.query(ns, {}) as cursor:
            for raw in cursor:
                try:
                    listing.functions.append(Function.from_document(raw))
                except InvalidArgumentError as exc:
                    logger.warning("Skipping malformed stored function in %s: %s", ns, exc)
                    listing.skipped.append(Document(raw))
        return listing

    def create_function(self, database: str, fn: Function, existing_name: Optional[str] = None) -> None:
        """
        Store ``fn``.

        - no ``existing_name``: plain insert
        - ``existing_name == fn.name``: replace in place (upsert)
        - otherwise a rename: insert the new document, then remove the old
          one only if the insert succeeded. Both exist briefly.
        """
        ns = self._functions_ns(database)
        doc = fn.to_document().to_dict()
        if not existing_name:
            self._connection.insert(ns, doc)
            return
        if existing_name == fn.name:
            self._connection.update(ns, {ID_FIELD: fn.name}, doc, upsert=True, multi=False)
            return
        self._connection.insert(ns, doc)
        logger.info("Renamed stored function %s to %s in %s", existing_name, fn.name, database)
        self._connection.remove(ns, {ID_FIELD: existing_name}, just_one=True)

    def drop_function(self, database: str, name: str) -> None:
        logger.info("Dropping stored function %s from %s", name, database)
        self._connection.remove(self._functions_ns(database), {ID_FIELD: name}, just_one=True)

    # ========================================================================
    # Statistics Operations
    # ========================================================================

    def collection_stats(self, namespace: NamespaceLike) -> CollectionInfo:
        """Run ``collStats`` against the owning database and parse the result."""
        ns = as_namespace(namespace)
        command = {"collStats": ns.collection, "scale": self._config.stats_scale}
        result = self._connection.run_command(ns.database, command)
        return CollectionInfo.from_document(result, namespace=ns)

    def collection_stats_batch(self, namespaces: Iterable[NamespaceLike]) -> List[CollectionInfo]:
        """Stats for each namespace in order; the first failure aborts the batch."""
        return [self.collection_stats(ns) for ns in namespaces]


# ============================================================================
# Factory
# ============================================================================

def create_client(
    connection: Union[Connection, str, Any, None] = None,
    config: Optional[ClientConfig] = None,
    **kwargs: Any,
) -> MongoAdminClient:
    """
    Create a client from a Connection, a ``pymongo.MongoClient`` or a URI.

    With no argument the URI is read from ``MONGOADMIN_URI``. Extra keyword
    arguments are passed to ``MongoClient`` when a URI is given.
    """
    from pymongo import MongoClient

    from .pymongo_connection import PyMongoConnection

    if connection is None:
        connection = os.environ.get("MONGOADMIN_URI")
        if not connection:
            raise InvalidArgumentError("No connection given and MONGOADMIN_URI is not set")

    if isinstance(connection, Connection):
        return MongoAdminClient(connection, config)
    elif isinstance(connection, MongoClient):
        return MongoAdminClient(PyMongoConnection(connection), config)
    elif isinstance(connection, str):
        return MongoAdminClient(PyMongoConnection.from_uri(connection, **kwargs), config, owns_connection=True)
    else:
        raise TypeError(f"Unknown connection type: {type(connection)}")
