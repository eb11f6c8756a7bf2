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
Domain types built from, and serialized back to, raw server documents.
"""

import hashlib
from dataclasses import dataclass, field
from enum import IntFlag
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from bson import Code, ObjectId

from .document import ID_FIELD, Document, as_document
from .errors import InvalidArgumentError
from .namespace import Namespace, parse_namespace


# ============================================================================
# Query Request
# ============================================================================

class QueryOption(IntFlag):
    """Cursor flags accepted by ``Connection.query``."""
    NONE = 0
    TAILABLE = 1
    NO_CURSOR_TIMEOUT = 2
    PARTIAL = 4
    EXHAUST = 8


SortSpec = Sequence[Tuple[str, int]]


@dataclass
class QueryRequest:
    """
    Parameters of one ``query_documents`` call.

    Attributes:
        database: Database name
        collection: Collection name
        filter: Query filter (empty matches everything)
        projection: Fields to include/exclude; ignored when empty
        sort: Ordered (field, direction) pairs
        limit: Maximum documents to return (0 = client default; negative
            asks the server for a single batch of at most abs(limit))
        skip: Documents to skip
        options: Cursor flags
        batch_size: Server batch size (0 = server default)
    """
    database: str
    collection: str
    filter: Mapping = field(default_factory=dict)
    projection: Optional[Mapping] = None
    sort: Optional[SortSpec] = None
    limit: int = 0
    skip: int = 0
    options: QueryOption = QueryOption.NONE
    batch_size: int = 0

    def __post_init__(self):
        if self.skip < 0:
            raise InvalidArgumentError(f"skip must be non-negative, got {self.skip}")
        if self.batch_size < 0:
            raise InvalidArgumentError(f"batch_size must be non-negative, got {self.batch_size}")
        self.filter = as_document(self.filter)
        if self.projection is not None:
            self.projection = as_document(self.projection)
        if isinstance(self.sort, Mapping):
            self.sort = list(self.sort.items())

    @property
    def namespace(self) -> Namespace:
        return Namespace(self.database, self.collection)


# ============================================================================
# Index Spec
# ============================================================================

@dataclass
class IndexSpec:
    """
    An index definition as stored in the index catalog.

    ``keys`` keeps its field order: ``{a: 1, b: -1}`` and ``{b: -1, a: 1}``
    are different indexes.
    """
    name: str
    keys: Document
    unique: bool = False
    background: bool = False
    drop_dups: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("name", "key", "unique", "background", "dropDups")

    def __post_init__(self):
        if not self.name:
            raise InvalidArgumentError("Index name cannot be empty")
        self.keys = as_document(self.keys)
        if not self.keys:
            raise InvalidArgumentError(f"Index {self.name!r} has no key fields")

    @classmethod
    def from_document(cls, raw: Mapping) -> "IndexSpec":
        if "name" not in raw or "key" not in raw:
            raise InvalidArgumentError(f"Not an index document: {dict(raw)!r}")
        return cls(
            name=raw["name"],
            keys=Document(raw["key"]),
            unique=bool(raw.get("unique", False)),
            background=bool(raw.get("background", False)),
            drop_dups=bool(raw.get("dropDups", False)),
            extra={k: v for k, v in raw.items() if k not in cls._KNOWN},
        )

    def to_document(self) -> Document:
        data: Dict[str, Any] = {"key": self.keys.to_dict(), "name": self.name}
        if self.unique:
            data["unique"] = True
        if self.background:
            data["background"] = True
        if self.drop_dups:
            data["dropDups"] = True
        data.update(self.extra)
        return Document(data)


# ============================================================================
# Users
# ============================================================================

@dataclass
class User:
    """
    A ``system.users`` entry.

    Attributes:
        name: Login name (``user`` field)
        password_hash: Stored credential digest (``pwd`` field)
        read_only: Legacy read-only flag
        roles: Role names or role documents
        user_source: Database holding the credentials, if delegated
        id: Document identifier; generated when not supplied
    """
    name: str
    password_hash: Optional[str] = None
    read_only: bool = False
    roles: List[Any] = field(default_factory=list)
    user_source: Optional[str] = None
    id: Any = field(default_factory=ObjectId)

    @staticmethod
    def hash_password(name: str, password: str) -> str:
        """Legacy MONGODB-CR digest: md5("<user>:mongo:<password>")."""
        return hashlib.md5(f"{name}:mongo:{password}".encode("utf-8")).hexdigest()

    @classmethod
    def with_password(cls, name: str, password: str, **kwargs: Any) -> "User":
        return cls(name=name, password_hash=cls.hash_password(name, password), **kwargs)

    @classmethod
    def from_document(cls, raw: Mapping) -> "User":
        return cls(
            id=raw[ID_FIELD] if raw.get(ID_FIELD) is not None else ObjectId(),
            name=raw.get("user", ""),
            password_hash=raw.get("pwd"),
            read_only=bool(raw.get("readOnly", False)),
            roles=list(raw.get("roles", [])),
            user_source=raw.get("userSource"),
        )

    def to_document(self) -> Document:
        data: Dict[str, Any] = {ID_FIELD: self.id, "user": self.name}
        if self.password_hash is not None:
            data["pwd"] = self.password_hash
        if self.user_source is not None:
            data["userSource"] = self.user_source
        if self.roles:
            data["roles"] = list(self.roles)
        else:
            data["readOnly"] = self.read_only
        return Document(data)


# ============================================================================
# Stored Functions
# ============================================================================

@dataclass
class Function:
    """A ``system.js`` entry: ``{_id: <name>, value: <code>}``."""
    name: str
    code: str

    @classmethod
    def from_document(cls, raw: Mapping) -> "Function":
        """
        Raises:
            InvalidArgumentError: If the document is not a stored function
        """
        name = raw.get(ID_FIELD)
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError(f"Stored function has no string _id: {name!r}")
        if "value" not in raw:
            raise InvalidArgumentError(f"Stored function {name!r} has no value")
        value = raw["value"]
        if not isinstance(value, str):
            raise InvalidArgumentError(
                f"Stored function {name!r} value is {type(value).__name__}, not code"
            )
        return cls(name=name, code=str(value))

    def to_document(self) -> Document:
        return Document({ID_FIELD: self.name, "value": Code(self.code)})


@dataclass
class FunctionListing:
    """
    Result of listing stored functions.

    Iterates over the functions that parsed; ``skipped`` keeps the raw
    documents that did not, so callers can decide whether to warn.
    """
    functions: List[Function] = field(default_factory=list)
    skipped: List[Document] = field(default_factory=list)

    def __iter__(self) -> Iterator[Function]:
        return iter(self.functions)

    def __len__(self) -> int:
        return len(self.functions)

    def __getitem__(self, idx: int) -> Function:
        return self.functions[idx]

    @property
    def is_partial(self) -> bool:
        return bool(self.skipped)

    def names(self) -> List[str]:
        return [fn.name for fn in self.functions]


# ============================================================================
# Collection Statistics
# ============================================================================

@dataclass
class CollectionInfo:
    """Parsed ``collStats`` result."""
    namespace: Namespace
    count: int = 0
    size: int = 0
    storage_size: int = 0
    total_index_size: int = 0
    avg_obj_size: float = 0.0
    index_count: int = 0
    index_sizes: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_document(cls, raw: Mapping, namespace: Union[Namespace, str, None] = None) -> "CollectionInfo":
        ns = namespace if namespace is not None else raw.get("ns")
        if ns is None:
            raise InvalidArgumentError("collStats result has no 'ns' field")
        if isinstance(ns, str):
            ns = parse_namespace(ns)
        return cls(
            namespace=ns,
            count=int(raw.get("count", 0)),
            size=int(raw.get("size", 0)),
            storage_size=int(raw.get("storageSize", 0)),
            total_index_size=int(raw.get("totalIndexSize", 0)),
            avg_obj_size=float(raw.get("avgObjSize", 0.0)),
            index_count=int(raw.get("nindexes", 0)),
            index_sizes={k: int(v) for k, v in raw.get("indexSizes", {}).items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ns": str(self.namespace),
            "count": self.count,
            "size": self.size,
            "storageSize": self.storage_size,
            "totalIndexSize": self.total_index_size,
            "avgObjSize": self.avg_obj_size,
            "nindexes": self.index_count,
            "indexSizes": dict(self.index_sizes),
        }
