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
mongoadmin error hierarchy.

Argument problems are raised before any I/O happens. Failures coming back
from the server are translated once, inside the connection backend, and then
propagate unchanged through the client.
"""

from typing import Any, Dict, Optional


class MongoAdminError(Exception):
    """Base class for mongoadmin errors."""
    pass


class InvalidArgumentError(MongoAdminError, ValueError):
    """Raised when a caller-supplied value cannot be used (bad namespace, missing _id...)."""
    pass


class ParseError(InvalidArgumentError):
    """Raised when JSON text supplied by the caller is malformed."""

    def __init__(self, text: str, reason: str):
        self.text = text
        self.reason = reason
        super().__init__(f"Cannot parse {text!r}: {reason}")


class NotFoundError(MongoAdminError):
    """Raised only where the server reports a missing object explicitly."""
    pass


class ConnectionFailureError(MongoAdminError):
    """The server could not be reached or the connection was lost."""
    pass


class CommandFailureError(MongoAdminError):
    """The server rejected a command, query or write."""

    def __init__(
        self,
        message: str,
        code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.code is not None:
            return f"{message} (code {self.code})"
        return message


class DuplicateKeyError(CommandFailureError):
    """A write violated a unique index."""

    CODE = 11000

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=self.CODE, details=details)
