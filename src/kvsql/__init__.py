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
kvsql

A small relational layer over an ordered key-value store.

- Tables, rows and single-column secondary indexes stored as KV pairs
- CREATE/DROP TABLE, CREATE/DROP INDEX, INSERT, SELECT, UPDATE, DELETE
- Index point lookups for WHERE col = value, full scans otherwise

Example:
    import kvsql

    db = kvsql.connect()
    db.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, age INTEGER)")
    db.execute("INSERT INTO users (id, name, age) VALUES (1, 'Alice', 30)")
    db.execute("SELECT name FROM users WHERE age > 25").rows
    # [{'name': 'Alice'}]
"""

import logging
from typing import Any, Optional

from .catalog import Catalog, Column, IndexMeta, TableSchema
from .config import SQLConfig
from .errors import (
    ArityError,
    ColumnNotFoundError,
    DuplicateKeyError,
    ErrorCode,
    IndexExistsError,
    IndexNotFoundError,
    KVSQLError,
    ParseError,
    SchemaError,
    TableExistsError,
    TableNotFoundError,
    TypeMismatchError,
)
from .executor import PlanKind, ScanPlan, SQLExecutor
from .format import FormatConversionError, WireFormat, format_result
from .ids import CounterIdGenerator, IdGenerator, UuidIdGenerator
from .index import IndexMaintainer
from .keys import KeyLayout
from .parser import SQLParser, StatementKind
from .query import SQLQueryResult
from .storage import DatabaseAdapter, KVStore, MemoryKV
from .values import ColumnType, parse_value

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())


def connect(store: Optional[Any] = None, config: Optional[SQLConfig] = None,
            id_generator: Optional[IdGenerator] = None) -> SQLExecutor:
    """
    Open a SQL executor over ``store`` (a fresh MemoryKV if omitted).

    ``store`` may be a KVStore or any database object with
    get/put/delete and scan_prefix (or scan).
    """
    if store is None:
        store = MemoryKV()
    return SQLExecutor(store, config=config, id_generator=id_generator)


__all__ = [
    # Entry points
    "connect",
    "SQLExecutor",
    "SQLQueryResult",
    "SQLParser",
    "StatementKind",
    "ScanPlan",
    "PlanKind",
    # Storage
    "KVStore",
    "MemoryKV",
    "DatabaseAdapter",
    "KeyLayout",
    # Catalog and indexes
    "Catalog",
    "Column",
    "TableSchema",
    "IndexMeta",
    "IndexMaintainer",
    "ColumnType",
    "parse_value",
    # Config and ids
    "SQLConfig",
    "IdGenerator",
    "UuidIdGenerator",
    "CounterIdGenerator",
    # Output
    "WireFormat",
    "FormatConversionError",
    "format_result",
    # Errors
    "ErrorCode",
    "KVSQLError",
    "ParseError",
    "SchemaError",
    "TableNotFoundError",
    "TableExistsError",
    "ColumnNotFoundError",
    "IndexExistsError",
    "IndexNotFoundError",
    "TypeMismatchError",
    "DuplicateKeyError",
    "ArityError",
    "__version__",
]
