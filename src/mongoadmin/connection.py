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
The connection boundary.

``MongoAdminClient`` talks to the server exclusively through ``Connection``.
Two backends are provided:

- ``PyMongoConnection`` (in ``pymongo_connection``) for a live server
- ``InMemoryConnection`` for tests and offline use, with legacy catalog
  semantics (index documents live in ``<db>.system.indexes``)

Backends return raw dicts and raise ``mongoadmin.errors`` exceptions only.
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import (
    Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple
)

import bson
from bson import ObjectId

from .errors import CommandFailureError, DuplicateKeyError, InvalidArgumentError
from .models import QueryOption
from .namespace import Namespace, parse_namespace

logger = logging.getLogger(__name__)


INDEX_CATALOG = "system.indexes"
ID_INDEX_NAME = "_id_"

# Server error codes reused by the in-memory backend.
NAMESPACE_NOT_FOUND = 26
NAMESPACE_EXISTS = 48
COMMAND_NOT_FOUND = 59
IMMUTABLE_FIELD = 66
INVALID_OPTIONS = 72
INDEX_KEY_SPECS_CONFLICT = 86
UNAUTHORIZED_DATABASE = 13


# ============================================================================
# Cursor
# ============================================================================

class Cursor:
    """
    Forward-only, single-pass iterator over raw result documents.

    Close it (or use it as a context manager) when abandoning it before it is
    drained; exhausting it closes it as well.

        with connection.query(ns, {}) as cursor:
            for raw in cursor:
                ...
    """

    def __init__(self, source: Iterable[Dict[str, Any]], on_close: Optional[Callable[[], None]] = None):
        self._iter = iter(source)
        self._on_close = on_close
        self._closed = False
        self._pending: List[Dict[str, Any]] = []

    def __iter__(self) -> "Cursor":
        return self

    def __next__(self) -> Dict[str, Any]:
        if self._pending:
            return self._pending.pop()
        if self._closed:
            raise StopIteration
        try:
            return next(self._iter)
        except StopIteration:
            self.close()
            raise

    def more(self) -> bool:
        """True if ``next()`` will return a document; may read one ahead."""
        if self._pending:
            return True
        if self._closed:
            return False
        try:
            self._pending.append(next(self._iter))
        except StopIteration:
            self.close()
            return False
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pending.clear()
        if self._on_close is not None:
            self._on_close()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "Cursor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


# ============================================================================
# Connection Interface
# ============================================================================

class Connection(ABC):
    """
    Abstract interface to a live, authenticated server connection.

    Implementations perform no retries; every failure is raised immediately.
    A connection is not safe for concurrent use unless the implementation
    says so.
    """

    @abstractmethod
    def list_database_names(self) -> List[str]:
        """Names of all databases, in server order."""
        pass

    @abstractmethod
    def list_collection_names(self, database: str) -> List[str]:
        """Names of all collections in ``database``, in server order."""
        pass

    @abstractmethod
    def list_indexes(self, ns: Namespace) -> Cursor:
        """Raw index documents of one collection, in catalog order."""
        pass

    @abstractmethod
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
        """Open a cursor over documents matching ``filter``."""
        pass

    @abstractmethod
    def insert(self, ns: Namespace, doc: Mapping[str, Any]) -> None:
        pass

    @abstractmethod
    def update(
        self,
        ns: Namespace,
        filter: Mapping[str, Any],
        doc: Mapping[str, Any],
        upsert: bool = False,
        multi: bool = False,
    ) -> None:
        """Replace (plain document) or modify (``$`` operators) matching documents."""
        pass

    @abstractmethod
    def remove(self, ns: Namespace, filter: Mapping[str, Any], just_one: bool = False) -> None:
        pass

    @abstractmethod
    def ensure_index(
        self,
        ns: Namespace,
        keys: Mapping[str, Any],
        unique: bool = False,
        name: Optional[str] = None,
        background: bool = False,
        drop_dups: bool = False,
    ) -> None:
        """Create an index; a no-op when an identical one already exists."""
        pass

    @abstractmethod
    def drop_index(self, ns: Namespace, name: str) -> None:
        """Drop an index by name; dropping a missing index is not an error."""
        pass

    @abstractmethod
    def create_collection(self, ns: Namespace) -> None:
        pass

    @abstractmethod
    def drop_collection(self, ns: Namespace) -> None:
        pass

    @abstractmethod
    def drop_database(self, database: str) -> None:
        pass

    @abstractmethod
    def exists(self, ns: Namespace) -> bool:
        """True if the collection exists."""
        pass

    @abstractmethod
    def run_command(self, database: str, command: Mapping[str, Any]) -> Dict[str, Any]:
        """Run a command document (command name first) against ``database``."""
        pass

    @abstractmethod
    def find_one(self, ns: Namespace, filter: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        pass

    def close(self) -> None:
        """Release the underlying client, if this connection owns one."""
        pass


def default_index_name(keys: Mapping[str, Any]) -> str:
    """Server naming convention: ``{a: 1, b: -1}`` -> ``a_1_b_-1``."""
    return "_".join(f"{field}_{direction}" for field, direction in keys.items())


# ============================================================================
# Filter Matching (in-memory backend)
# ============================================================================

_MISSING = object()


def _resolve(doc: Mapping[str, Any], dotted: str) -> Any:
    cur: Any = doc
    for part in dotted.split("."):
        if isinstance(cur, Mapping) and part in cur:
            cur = cur[part]
        else:
            return _MISSING
    return cur


def _equals(value: Any, target: Any) -> bool:
    if value is _MISSING:
        return target is None
    if isinstance(value, list) and not isinstance(target, list):
        return target in value
    return value == target


def _compare(value: Any, target: Any, op: Callable[[Any, Any], bool]) -> bool:
    if value is _MISSING or value is None:
        return False
    candidates = value if isinstance(value, list) else [value]
    for candidate in candidates:
        try:
            if op(candidate, target):
                return True
        except TypeError:
            continue
    return False


_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "$eq": _equals,
    "$ne": lambda v, t: not _equals(v, t),
    "$gt": lambda v, t: _compare(v, t, lambda a, b: a > b),
    "$gte": lambda v, t: _compare(v, t, lambda a, b: a >= b),
    "$lt": lambda v, t: _compare(v, t, lambda a, b: a < b),
    "$lte": lambda v, t: _compare(v, t, lambda a, b: a <= b),
    "$in": lambda v, t: any(_equals(v, item) for item in t),
    "$nin": lambda v, t: not any(_equals(v, item) for item in t),
    "$exists": lambda v, t: (v is not _MISSING) == bool(t),
}


def match_filter(doc: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    """Evaluate a query filter against one document."""
    for key, cond in filter.items():
        if key in ("$and", "$or"):
            if not isinstance(cond, list):
                raise CommandFailureError(f"{key} must be an array", code=2)
            results = (match_filter(doc, clause) for clause in cond)
            if not (all(results) if key == "$and" else any(results)):
                return False
            continue
        if key.startswith("$"):
            raise CommandFailureError(f"unknown top level operator: {key}", code=2)
        value = _resolve(doc, key)
        if isinstance(cond, Mapping) and cond and all(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                test = _COMPARATORS.get(op)
                if test is None:
                    raise CommandFailureError(f"unknown operator: {op}", code=2)
                if not test(value, arg):
                    return False
        elif not _equals(value, cond):
            return False
    return True


def _project(doc: Dict[str, Any], projection: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    if not projection:
        return doc
    flags = {k: bool(v) for k, v in projection.items()}
    include_id = flags.pop("_id", True)
    if any(flags.values()):
        out = {k: v for k, v in doc.items() if flags.get(k) or (k == "_id" and include_id)}
    else:
        out = {k: v for k, v in doc.items() if k not in flags and (k != "_id" or include_id)}
    return out


def _sort_key(field: str) -> Callable[[Mapping[str, Any]], Tuple[int, Any]]:
    def key(doc: Mapping[str, Any]) -> Tuple[int, Any]:
        value = _resolve(doc, field)
        if value is _MISSING or value is None:
            return (0, 0)
        return (1, value)
    return key


def _is_operator_document(doc: Mapping[str, Any]) -> bool:
    return bool(doc) and all(key.startswith("$") for key in doc)


def _apply_operators(doc: Dict[str, Any], update: Mapping[str, Any]) -> Dict[str, Any]:
    new_doc = copy.deepcopy(doc)
    for op, changes in update.items():
        if op == "$set":
            new_doc.update(copy.deepcopy(dict(changes)))
        elif op == "$unset":
            for key in changes:
                new_doc.pop(key, None)
        elif op == "$inc":
            for key, amount in changes.items():
                new_doc[key] = new_doc.get(key, 0) + amount
        else:
            raise CommandFailureError(f"Unknown modifier: {op}", code=9)
    return new_doc


# ============================================================================
# In-Memory Backend
# ============================================================================

class InMemoryConnection(Connection):
    """
    Dictionary-backed connection for tests and offline use.

    Mirrors the server behaviors the client relies on:
    collections are created implicitly with an ``_id_`` index, ``_id`` is
    unique, indexes are catalog documents in ``<db>.system.indexes``, and
    ``renameCollection`` must run against ``admin``.
    """

    def __init__(self, admin_database: str = "admin"):
        self._admin_database = admin_database
        self._databases: Dict[str, Dict[str, List[Dict[str, Any]]]] = {}

    # -- storage helpers -----------------------------------------------------

    def _collection(self, ns: Namespace, create: bool = False) -> Optional[List[Dict[str, Any]]]:
        database = self._databases.get(ns.database)
        if database is None:
            if not create:
                return None
            database = self._databases.setdefault(ns.database, {})
        docs = database.get(ns.collection)
        if docs is None and create:
            docs = database.setdefault(ns.collection, [])
            if not ns.collection.startswith("system."):
                self._catalog(ns, create=True).append(
                    {"v": 1, "key": {"_id": 1}, "name": ID_INDEX_NAME, "ns": str(ns)}
                )
        return docs

    def _catalog(self, ns: Namespace, create: bool = False) -> List[Dict[str, Any]]:
        database = self._databases.setdefault(ns.database, {}) if create else self._databases.get(ns.database, {})
        if create:
            return database.setdefault(INDEX_CATALOG, [])
        return database.get(INDEX_CATALOG, [])

    def _index_docs(self, ns: Namespace) -> List[Dict[str, Any]]:
        return [doc for doc in self._catalog(ns) if doc.get("ns") == str(ns)]

    # -- catalog -------------------------------------------------------------

    def list_database_names(self) -> List[str]:
        return list(self._databases)

    def list_collection_names(self, database: str) -> List[str]:
        return list(self._databases.get(database, {}))

    def list_indexes(self, ns: Namespace) -> Cursor:
        return Cursor(copy.deepcopy(self._index_docs(ns)))

    def create_collection(self, ns: Namespace) -> None:
        if self._collection(ns) is not None:
            raise CommandFailureError(f"collection {ns} already exists", code=NAMESPACE_EXISTS)
        self._collection(ns, create=True)

    def drop_collection(self, ns: Namespace) -> None:
        database = self._databases.get(ns.database)
        if database is None or ns.collection not in database:
            return
        del database[ns.collection]
        if INDEX_CATALOG in database:
            database[INDEX_CATALOG] = [d for d in database[INDEX_CATALOG] if d.get("ns") != str(ns)]

    def drop_database(self, database: str) -> None:
        self._databases.pop(database, None)

    def exists(self, ns: Namespace) -> bool:
        return self._collection(ns) is not None

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
        docs = [d for d in (self._collection(ns) or []) if match_filter(d, filter)]
        for field, direction in reversed(list(sort or [])):
            docs.sort(key=_sort_key(field), reverse=direction < 0)
        if skip:
            docs = docs[skip:]
        if limit:
            docs = docs[:abs(limit)]
        return Cursor(_project(copy.deepcopy(d), projection) for d in docs)

    def find_one(self, ns: Namespace, filter: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        with self.query(ns, filter, limit=1) as cursor:
            return next(cursor, None)

    def insert(self, ns: Namespace, doc: Mapping[str, Any]) -> None:
        stored = copy.deepcopy(dict(doc))
        if ns.collection == INDEX_CATALOG:
            self._insert_index_document(ns, stored)
            return
        if "_id" not in stored:
            stored = {"_id": ObjectId(), **stored}
        docs = self._collection(ns, create=True)
        if any(existing.get("_id") == stored["_id"] for existing in docs):
            raise DuplicateKeyError(
                f"E11000 duplicate key error collection: {ns} index: _id_ dup key: {{ _id: {stored['_id']!r} }}"
            )
        docs.append(stored)

    def _insert_index_document(self, ns: Namespace, index_doc: Dict[str, Any]) -> None:
        if "name" not in index_doc or "key" not in index_doc or "ns" not in index_doc:
            raise CommandFailureError("index document requires name, key and ns", code=INVALID_OPTIONS)
        target = parse_namespace(index_doc["ns"])
        self._collection(target, create=True)
        for existing in self._index_docs(target):
            if existing["name"] == index_doc["name"]:
                if dict(existing["key"]) == dict(index_doc["key"]):
                    return
                raise CommandFailureError(
                    f"Index with name: {index_doc['name']} already exists with different options",
                    code=INDEX_KEY_SPECS_CONFLICT,
                )
        self._catalog(ns, create=True).append(index_doc)

    def update(
        self,
        ns: Namespace,
        filter: Mapping[str, Any],
        doc: Mapping[str, Any],
        upsert: bool = False,
        multi: bool = False,
    ) -> None:
        docs = self._collection(ns) or []
        operators = _is_operator_document(doc)
        if multi and not operators:
            raise CommandFailureError("multi update only works with $ operators", code=9)
        matched = False
        for position, existing in enumerate(docs):
            if not match_filter(existing, filter):
                continue
            matched = True
            if operators:
                replacement = _apply_operators(existing, doc)
            else:
                replacement = copy.deepcopy(dict(doc))
                if "_id" in replacement and replacement["_id"] != existing.get("_id"):
                    raise CommandFailureError(
                        "the (immutable) field '_id' was found to have been altered",
                        code=IMMUTABLE_FIELD,
                    )
                replacement = {"_id": existing.get("_id"), **replacement}
            docs[position] = replacement
            if not multi:
                break
        if matched or not upsert:
            return
        seed = {k: v for k, v in filter.items() if not k.startswith("$") and not isinstance(v, Mapping)}
        if operators:
            self.insert(ns, _apply_operators(seed, doc))
        else:
            new_doc = dict(doc)
            if "_id" not in new_doc and "_id" in seed:
                new_doc = {"_id": seed["_id"], **new_doc}
            self.insert(ns, new_doc)

    def remove(self, ns: Namespace, filter: Mapping[str, Any], just_one: bool = False) -> None:
        docs = self._collection(ns)
        if not docs:
            return
        kept: List[Dict[str, Any]] = []
        removed = 0
        for existing in docs:
            if (not just_one or removed == 0) and match_filter(existing, filter):
                removed += 1
                continue
            kept.append(existing)
        docs[:] = kept

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
        if not keys:
            raise InvalidArgumentError("Index keys cannot be empty")
        index_doc: Dict[str, Any] = {"v": 1, "key": copy.deepcopy(dict(keys))}
        if unique:
            index_doc["unique"] = True
        index_doc["ns"] = str(ns)
        index_doc["name"] = name or default_index_name(keys)
        if background:
            index_doc["background"] = True
        if drop_dups:
            index_doc["dropDups"] = True
        self._insert_index_document(ns.sibling(INDEX_CATALOG), index_doc)

    def drop_index(self, ns: Namespace, name: str) -> None:
        if name == ID_INDEX_NAME:
            raise CommandFailureError("cannot drop _id index", code=INVALID_OPTIONS)
        catalog = self._catalog(ns)
        catalog[:] = [d for d in catalog if not (d.get("ns") == str(ns) and d.get("name") == name)]

    # -- commands ------------------------------------------------------------

    def run_command(self, database: str, command: Mapping[str, Any]) -> Dict[str, Any]:
        if not command:
            raise CommandFailureError("empty command", code=COMMAND_NOT_FOUND)
        name = next(iter(command))
        logger.debug("in-memory command %s on %s", name, database)
        if name == "ping":
            return {"ok": 1.0}
        if name == "renameCollection":
            return self._rename_collection(database, command)
        if name == "collStats":
            return self._coll_stats(Namespace(database, command[name]), command.get("scale", 1))
        raise CommandFailureError(f"no such command: '{name}'", code=COMMAND_NOT_FOUND)

    def _rename_collection(self, database: str, command: Mapping[str, Any]) -> Dict[str, Any]:
        if database != self._admin_database:
            raise CommandFailureError(
                "renameCollection may only be run against the admin database.",
                code=UNAUTHORIZED_DATABASE,
            )
        source = parse_namespace(command["renameCollection"])
        target = parse_namespace(command["to"])
        if self._collection(source) is None:
            raise CommandFailureError("source namespace does not exist", code=NAMESPACE_NOT_FOUND)
        if self._collection(target) is not None:
            raise CommandFailureError("target namespace exists", code=NAMESPACE_EXISTS)
        docs = self._databases[source.database].pop(source.collection)
        self._databases.setdefault(target.database, {})[target.collection] = docs
        moved = [d for d in self._catalog(source) if d.get("ns") == str(source)]
        source_catalog = self._catalog(source)
        source_catalog[:] = [d for d in source_catalog if d.get("ns") != str(source)]
        for index_doc in moved:
            index_doc["ns"] = str(target)
            self._catalog(target, create=True).append(index_doc)
        return {"ok": 1.0}

    def _coll_stats(self, ns: Namespace, scale: int) -> Dict[str, Any]:
        docs = self._collection(ns)
        if docs is None:
            raise CommandFailureError(f"ns not found: {ns}", code=NAMESPACE_NOT_FOUND)
        size = sum(len(bson.encode(d)) for d in docs)
        indexes = self._index_docs(ns)
        return {
            "ns": str(ns),
            "count": len(docs),
            "size": size // scale,
            "avgObjSize": (size / len(docs)) if docs else 0,
            "storageSize": size // scale,
            "nindexes": len(indexes),
            "totalIndexSize": 0,
            "indexSizes": {d["name"]: 0 for d in indexes},
            "ok": 1.0,
        }
