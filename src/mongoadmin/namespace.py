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
Namespace resolution.

A namespace is the fully-qualified ``database.collection`` target of every
command and query. All code in this package goes through ``Namespace`` to
build such targets; nothing concatenates names by hand.

Example:
    ns = make_namespace("shop", "orders")
    str(ns)                          # "shop.orders"
    parse_namespace("shop.orders")   # == ns
"""

from dataclasses import dataclass

from .errors import InvalidArgumentError


SEPARATOR = "."

# Characters MongoDB rejects in database names.
_INVALID_DATABASE_CHARS = frozenset('/\\. "$\x00')


@dataclass(frozen=True)
class Namespace:
    """
    Immutable ``database.collection`` pair.

    ``collection`` may be empty when the namespace refers to a whole database.
    """
    database: str
    collection: str = ""

    def __post_init__(self):
        if not self.database:
            raise InvalidArgumentError("Database name cannot be empty")
        bad = sorted(set(self.database) & _INVALID_DATABASE_CHARS)
        if bad:
            raise InvalidArgumentError(
                f"Database name {self.database!r} contains invalid characters: {bad}"
            )
        if "\x00" in self.collection:
            raise InvalidArgumentError("Collection name cannot contain NUL")

    def __str__(self) -> str:
        return f"{self.database}{SEPARATOR}{self.collection}"

    @property
    def database_name(self) -> str:
        return self.database

    @property
    def collection_name(self) -> str:
        return self.collection

    @property
    def is_database(self) -> bool:
        """True when this namespace names a database rather than a collection."""
        return not self.collection

    def sibling(self, collection: str) -> "Namespace":
        """Namespace of another collection in the same database."""
        return Namespace(self.database, collection)


def make_namespace(database: str, collection: str = "") -> Namespace:
    """Build a namespace from separate parts."""
    return Namespace(database, collection)


def parse_namespace(text: str) -> Namespace:
    """
    Parse a fully-qualified namespace string.

    Splits on the first ``.``, so collection names may themselves contain dots
    (``db.system.users`` -> ``("db", "system.users")``).

    Raises:
        InvalidArgumentError: If ``text`` has no separator or an invalid database part
    """
    database, sep, collection = text.partition(SEPARATOR)
    if not sep:
        raise InvalidArgumentError(f"Namespace {text!r} has no '{SEPARATOR}' separator")
    return Namespace(database, collection)


def as_namespace(value) -> Namespace:
    """Accept either a ``Namespace`` or its string form."""
    if isinstance(value, Namespace):
        return value
    if isinstance(value, str):
        return parse_namespace(value)
    raise InvalidArgumentError(f"Expected a namespace, got {type(value).__name__}")
