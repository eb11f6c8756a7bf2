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
Connection backend over a ``pymongo.MongoClient``.

Every driver exception is translated into a ``mongoadmin.errors`` exception
here, with the driver exception chained as ``__cause__``.

Example:
    conn = PyMongoConnection.from_uri("mongodb://localhost:27017/")
    conn.list_database_names()
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from pymongo import CursorType, MongoClient
from pymongo import errors as pymongo_errors

from .connection import NAMESPACE_EXISTS, NAMESPACE_NOT_FOUND, Connection, Cursor, _is_operator_document
from .errors import (
    CommandFailureError,
    ConnectionFailureError,
    DuplicateKeyError,
    InvalidArgumentError,
)
from .models import QueryOption
from .namespace import Namespace

logger = logging.getLogger(__name__)


INDEX_NOT_FOUND = 27


@contextmanager
def translate_errors() -> Iterator[None]:
    """Map driver exceptions onto the mongoadmin hierarchy."""
    try:
        yield
    except pymongo_errors.DuplicateKeyError as exc:
        raise DuplicateKeyError(str(exc), details=exc.details) from exc
    except pymongo_errors.OperationFailure as exc:
        raise CommandFailureError(str(exc), code=exc.code, details=exc.details) from exc
    except pymongo_errors.ConnectionFailure as exc:
        raise ConnectionFailureError(str(exc)) from exc
    except pymongo_errors.CollectionInvalid as exc:
        raise CommandFailureError(str(exc), code=NAMESPACE_EXISTS) from exc
    except pymongo_errors.PyMongoError as exc:
        raise CommandFailureError(str(exc)) from exc


def _is_missing_index(exc: pymongo_errors.OperationFailure) -> bool:
    # dropIndexes on a missing collection answers NamespaceNotFound
    if exc.code in (INDEX_NOT_FOUND, NAMESPACE_NOT_FOUND):
        return True
    message = str(exc)
    return "index not found" in message or "ns not found" in message


def _cursor_kwargs(options: QueryOption) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {}
    if options & QueryOption.TAILABLE:
        kwargs["cursor_type"] = CursorType.TAILABLE
    elif options & QueryOption.EXHAUST:
        kwargs["cursor_type"] = CursorType.EXHAUST
    if options & QueryOption.NO_CURSOR_TIMEOUT:
        kwargs["no_cursor_timeout"] = True
    if options & QueryOption.PARTIAL:
        kwargs["allow_partial_results"] = True
    return kwargs


def _drain(source) -> Iterator[Dict[str, Any]]:
    with translate_errors():
        for raw in source:
            yield raw


class PyMongoConnection(Connection):
    """
    ``Connection`` implemented with pymongo.

    Args:
        client: An already connected (and authenticated) ``MongoClient``
        owns_client: Close ``client`` when this connection is closed
    """

    def __init__(self, client: MongoClient, owns_client: bool = False):
        self._client = client
        self._owns_client = owns_client

    @classmethod
    def from_uri(cls, uri: str, **kwargs: Any) -> "PyMongoConnection":
        """Create a client for ``uri``; extra keyword arguments go to ``MongoClient``."""
        logger.info("Opening MongoDB client")
        with translate_errors():
            client = MongoClient(uri, **kwargs)
        return cls(client, owns_client=True)

    @property
    def client(self) -> MongoClient:
        return self._client

    def _collection(self, ns: Namespace):
        return self._client[ns.database][ns.collection]

    # -- catalog -------------------------------------------------------------

    def list_database_names(self) -> List[str]:
        with translate_errors():
            return list(self._client.list_database_names())

    def list_collection_names(self, database: str) -> List[str]:
        with translate_errors():
            return list(self._client[database].list_collection_names())

    def list_indexes(self, ns: Namespace) -> Cursor:
        with translate_errors():
            source = self._collection(ns).list_indexes()
        return Cursor(_drain(source), on_close=source.close)

    def create_collection(self, ns: Namespace) -> None:
        with translate_errors():
            self._client[ns.database].create_collection(ns.collection)

    def drop_collection(self, ns: Namespace) -> None:
        with translate_errors():
            self._client[ns.database].drop_collection(ns.collection)

    def drop_database(self, database: str) -> None:
        with translate_errors():
            self._client.drop_database(database)

    def exists(self, ns: Namespace) -> bool:
        with translate_errors():
            names = self._client[ns.database].list_collection_names(filter={"name": ns.collection})
        return ns.collection in names

    # -- documents -----------------------------------------------------------

    def query(
        self,
        ns: Namespace,
        filter: Mapping[str, Any],
        limit: int = 0,
        skip: int = 0,
        projection: Optional[Mapping[str, Any]] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        options: QueryOption = QueryOption.NONE,
        batch_size: int = 0,
    ) -> Cursor:
        with translate_errors():
            source = self._collection(ns).find(
                filter=dict(filter),
                projection=dict(projection) if projection else None,
                skip=skip,
                limit=limit,
                sort=list(sort) if sort else None,
                batch_size=batch_size,
                **_cursor_kwargs(options),
            )
        return Cursor(_drain(source), on_close=source.close)

    def find_one(self, ns: Namespace, filter: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        with translate_errors():
            return self._collection(ns).find_one(dict(filter))

    def insert(self, ns: Namespace, doc: Mapping[str, Any]) -> None:
        # insert_one adds _id to the dict it is given
        with translate_errors():
            self._collection(ns).insert_one(dict(doc))

    def update(
        self,
        ns: Namespace,
        filter: Mapping[str, Any],
        doc: Mapping[str, Any],
        upsert: bool = False,
        multi: bool = False,
    ) -> None:
        collection = self._collection(ns)
        if not _is_operator_document(doc):
            if multi:
                raise InvalidArgumentError("multi update requires an operator document")
            with translate_errors():
                collection.replace_one(dict(filter), dict(doc), upsert=upsert)
            return
        with translate_errors():
            if multi:
                collection.update_many(dict(filter), dict(doc), upsert=upsert)
            else:
                collection.update_one(dict(filter), dict(doc), upsert=upsert)

    def remove(self, ns: Namespace, filter: Mapping[str, Any], just_one: bool = False) -> None:
        with translate_errors():
            if just_one:
                self._collection(ns).delete_one(dict(filter))
            else:
                self._collection(ns).delete_many(dict(filter))

    # -- indexes -------------------------------------------------------------

    def ensure_index(
        self,
        ns: Namespace,
        keys: Mapping[str, Any],
        unique: bool = False,
        name: Optional[str] = None,
        background: bool = False,
        drop_dups: bool = False,
    ) -> None:
        kwargs: Dict[str, Any] = {"unique": unique, "background": background}
        if name:
            kwargs["name"] = name
        if drop_dups:
            kwargs["dropDups"] = True
        with translate_errors():
            self._collection(ns).create_index(list(keys.items()), **kwargs)

    def drop_index(self, ns: Namespace, name: str) -> None:
        with translate_errors():
            try:
                self._collection(ns).drop_index(name)
            except pymongo_errors.OperationFailure as exc:
                if not _is_missing_index(exc):
                    raise
                logger.debug("drop_index: %s not found on %s", name, ns)

    # -- commands ------------------------------------------------------------

    def run_command(self, database: str, command: Mapping[str, Any]) -> Dict[str, Any]:
        with translate_errors():
            return dict(self._client[database].command(dict(command)))

    def close(self) -> None:
        if self._owns_client:
            logger.info("Closing MongoDB client")
            self._client.close()
