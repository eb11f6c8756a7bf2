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
Immutable ordered documents.

Field order matters to the server (index key order, command name first), so
a Document keeps insertion order everywhere and never reorders on copy.
"""

import copy
from collections.abc import Mapping
from typing import Any, Dict, Iterator, Optional, Tuple

from bson import json_util
from bson.errors import BSONError

from .errors import ParseError


ID_FIELD = "_id"


class Document(Mapping):
    """
    Read-only, ordered mapping of field name to value.

    Values are deep-copied on construction, so a Document never shares
    state with the buffer or dict it was built from.

    Example:
        doc = Document({"_id": 1, "name": "a"})
        doc["name"]                  # "a"
        doc.replace("name", "b")     # new Document, same field order
        doc.to_dict()                # plain dict, safe to hand to a driver
    """

    __slots__ = ("_fields",)

    def __init__(self, fields: Optional[Mapping] = None, **kwargs: Any):
        data: Dict[str, Any] = {}
        if fields is not None:
            for key, value in _items(fields):
                data[key] = copy.deepcopy(value)
        for key, value in kwargs.items():
            data[key] = copy.deepcopy(value)
        object.__setattr__(self, "_fields", data)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Document is immutable")

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        return f"Document({self._fields!r})"

    @property
    def has_id(self) -> bool:
        return ID_FIELD in self._fields

    def get_id(self, default: Any = None) -> Any:
        return self._fields.get(ID_FIELD, default)

    def replace(self, field: str, value: Any) -> "Document":
        """
        Return a copy with ``field`` set to ``value``.

        An existing field keeps its position; a new field is appended.
        """
        data = dict(self._fields)
        data[field] = value
        return Document(data)

    def without(self, field: str) -> "Document":
        return Document((k, v) for k, v in self._fields.items() if k != field)

    def to_dict(self) -> Dict[str, Any]:
        """Deep, independently owned plain-dict copy."""
        return {key: _plain(value) for key, value in self._fields.items()}

    def __copy__(self) -> "Document":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "Document":
        return Document(self._fields)

    @classmethod
    def from_json(cls, text: str) -> "Document":
        """
        Parse MongoDB extended JSON text (``{"$oid": ...}`` etc.) into a Document.

        Raises:
            ParseError: If the text is not valid JSON or is not a JSON object
        """
        try:
            value = json_util.loads(text)
        except (ValueError, TypeError, BSONError) as exc:
            raise ParseError(text, str(exc)) from exc
        if not isinstance(value, Mapping):
            raise ParseError(text, f"expected a JSON object, got {type(value).__name__}")
        return cls(value)

    def to_json(self) -> str:
        return json_util.dumps(self._fields)


def _items(fields) -> Iterator[Tuple[str, Any]]:
    if isinstance(fields, Mapping):
        return iter(fields.items())
    return iter(fields)


def as_document(value: Optional[Mapping]) -> Document:
    """Coerce ``None``, a mapping or a Document into a Document."""
    if value is None:
        return Document()
    if isinstance(value, Document):
        return value
    return Document(value)


def _plain(value: Any) -> Any:
    if isinstance(value, Document):
        return value.to_dict()
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return copy.deepcopy(value)
