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
Client configuration.

Example:
    config = ClientConfig(default_query_limit=20, limit_threshold=21)
    config = ClientConfig.from_env()      # MONGOADMIN_* variables
    config = ClientConfig.from_dict({"admin_database": "admin"})
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidArgumentError


ENV_PREFIX = "MONGOADMIN_"


@dataclass
class ClientConfig:
    """
    Settings for ``MongoAdminClient``.

    Attributes:
        admin_database: Database that administrative commands (renameCollection) run against
        temp_collection: Scratch collection used to materialize a new database
        default_query_limit: Limit applied when a query asks for 0 or more than ``limit_threshold``
        limit_threshold: Largest explicit limit honored as-is
        stats_scale: ``scale`` argument of collStats
        users_collection: Collection holding users
        functions_collection: Collection holding stored functions
        index_catalog_collection: Collection holding raw index documents
        log_level: Level for the ``mongoadmin`` logger, left alone when None
    """
    admin_database: str = "admin"
    temp_collection: str = "temp"
    default_query_limit: int = 50
    limit_threshold: int = 51
    stats_scale: int = 1
    users_collection: str = "system.users"
    functions_collection: str = "system.js"
    index_catalog_collection: str = "system.indexes"
    log_level: Optional[str] = None

    def __post_init__(self):
        if self.default_query_limit <= 0:
            raise InvalidArgumentError(
                f"default_query_limit must be positive, got {self.default_query_limit}"
            )
        if self.limit_threshold < self.default_query_limit:
            raise InvalidArgumentError(
                f"limit_threshold ({self.limit_threshold}) must be >= "
                f"default_query_limit ({self.default_query_limit})"
            )
        if self.stats_scale <= 0:
            raise InvalidArgumentError(f"stats_scale must be positive, got {self.stats_scale}")
        for name in ("admin_database", "temp_collection", "users_collection",
                     "functions_collection", "index_catalog_collection"):
            if not getattr(self, name):
                raise InvalidArgumentError(f"{name} cannot be empty")
        if self.log_level is not None:
            level = logging.getLevelName(self.log_level.upper())
            if not isinstance(level, int):
                raise InvalidArgumentError(f"Unknown log level: {self.log_level}")
            self.log_level = self.log_level.upper()

    def effective_limit(self, requested: int) -> int:
        """Clamp a requested query limit to the client cap."""
        if requested == 0 or requested > self.limit_threshold:
            return self.default_query_limit
        return requested

    def apply_logging(self) -> None:
        if self.log_level is not None:
            logging.getLogger("mongoadmin").setLevel(self.log_level)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClientConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidArgumentError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """Read ``MONGOADMIN_<FIELD>`` variables; unset ones keep their defaults."""
        environ = os.environ if environ is None else environ
        data: Dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.type is int or f.type == "int":
                try:
                    data[f.name] = int(raw)
                except ValueError as exc:
                    raise InvalidArgumentError(
                        f"{ENV_PREFIX}{f.name.upper()} must be an integer, got {raw!r}"
                    ) from exc
            else:
                data[f.name] = raw
        return cls(**data)
