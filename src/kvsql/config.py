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
Executor configuration.

Environment variables (a .env file is read first, real environment wins):

    KVSQL_ROOT_PREFIX   key root for all SQL data (default: _sql/tables/)
    KVSQL_USE_INDEXES   1/0, true/false (default: true)
    KVSQL_ID_STRATEGY   uuid | counter (default: uuid)
    KVSQL_LOG_LEVEL     DEBUG, INFO, ... (default: unset, logging untouched)
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values

from .ids import CounterIdGenerator, IdGenerator, UuidIdGenerator
from .keys import DEFAULT_ROOT

ENV_PREFIX = "KVSQL_"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")
_ID_STRATEGIES = ("uuid", "counter")


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Invalid boolean for {name}: {value!r}")


@dataclass
class SQLConfig:
    """Settings for :class:`kvsql.executor.SQLExecutor`."""
    root_prefix: bytes = DEFAULT_ROOT
    use_indexes: bool = True
    id_strategy: str = "uuid"
    log_level: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.root_prefix, str):
            self.root_prefix = self.root_prefix.encode("utf-8")
        if not self.root_prefix:
            raise ValueError("root_prefix must not be empty")
        self.id_strategy = self.id_strategy.lower()
        if self.id_strategy not in _ID_STRATEGIES:
            raise ValueError(
                f"Unknown id_strategy '{self.id_strategy}'. Valid: {', '.join(_ID_STRATEGIES)}"
            )
        if self.log_level is not None:
            self.log_level = self.log_level.upper()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SQLConfig":
        unknown = set(data) - {"root_prefix", "use_indexes", "id_strategy", "log_level"}
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        kwargs = dict(data)
        if "use_indexes" in kwargs:
            kwargs["use_indexes"] = _parse_bool("use_indexes", kwargs["use_indexes"])
        return cls(**kwargs)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[str] = None,
    ) -> "SQLConfig":
        """
        Build a config from KVSQL_* variables.

        Args:
            environ: Variables to read (default: os.environ).
            dotenv_path: Optional .env file, loaded underneath ``environ``.
        """
        values: Dict[str, Optional[str]] = {}
        if dotenv_path is not None:
            values.update(dotenv_values(dotenv_path))
        values.update(os.environ if environ is None else environ)

        data: Dict[str, Any] = {}
        for field_name in ("root_prefix", "use_indexes", "id_strategy", "log_level"):
            raw = values.get(ENV_PREFIX + field_name.upper())
            if raw is not None and raw != "":
                data[field_name] = raw
        return cls.from_dict(data)

    def make_id_generator(self) -> IdGenerator:
        if self.id_strategy == "counter":
            return CounterIdGenerator()
        return UuidIdGenerator()

    def apply_logging(self) -> None:
        """Set the kvsql logger level if ``log_level`` is configured."""
        if self.log_level is not None:
            logging.getLogger("kvsql").setLevel(self.log_level)


__all__ = ["SQLConfig", "ENV_PREFIX"]
