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
mongoadmin - Administrative Operations for MongoDB

Typed, intention-revealing operations over one live connection:

1. **Catalog** - list/create/drop databases and collections, rename, duplicate
2. **Documents** - capped queries, insert, save (upsert by _id), remove
3. **Indexes** - list, ensure, rename, drop
4. **System collections** - users (system.users) and stored functions (system.js)
5. **Statistics** - collStats parsed into CollectionInfo

Works against a live server (pymongo) or the in-memory backend.
"""

__version__ = "0.1.0"

from .errors import (
    MongoAdminError,
    InvalidArgumentError,
    ParseError,
    NotFoundError,
    ConnectionFailureError,
    CommandFailureError,
    DuplicateKeyError,
)

from .namespace import (
    Namespace,
    make_namespace,
    parse_namespace,
)

from .document import Document

from .models import (
    QueryOption,
    QueryRequest,
    IndexSpec,
    User,
    Function,
    FunctionListing,
    CollectionInfo,
)

from .config import ClientConfig

from .connection import (
    Connection,
    Cursor,
    InMemoryConnection,
)

from .pymongo_connection import PyMongoConnection

from .client import (
    MongoAdminClient,
    create_client,
)

__all__ = [
    # Errors
    "MongoAdminError",
    "InvalidArgumentError",
    "ParseError",
    "NotFoundError",
    "ConnectionFailureError",
    "CommandFailureError",
    "DuplicateKeyError",
    # Namespaces
    "Namespace",
    "make_namespace",
    "parse_namespace",
    # Domain types
    "Document",
    "QueryOption",
    "QueryRequest",
    "IndexSpec",
    "User",
    "Function",
    "FunctionListing",
    "CollectionInfo",
    "ClientConfig",
    # Connections
    "Connection",
    "Cursor",
    "InMemoryConnection",
    "PyMongoConnection",
    # Client
    "MongoAdminClient",
    "create_client",
]
