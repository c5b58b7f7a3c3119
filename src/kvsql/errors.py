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
Error taxonomy for kvsql.

Three families propagate out of ``SQLExecutor.execute``:

- ParseError: malformed or unsupported SQL text (raised before any KV access)
- SchemaError: catalog violations (missing/existing tables, columns, indexes)
- ArityError: INSERT column/value count mismatch

Errors raised by the KV store itself are never wrapped.
"""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Stable error codes attached to every kvsql error."""
    PARSE_ERROR = "parse_error"
    TABLE_NOT_FOUND = "table_not_found"
    TABLE_EXISTS = "table_exists"
    COLUMN_NOT_FOUND = "column_not_found"
    INDEX_EXISTS = "index_exists"
    INDEX_NOT_FOUND = "index_not_found"
    TYPE_MISMATCH = "type_mismatch"
    DUPLICATE_KEY = "duplicate_key"
    ARITY_MISMATCH = "arity_mismatch"


class KVSQLError(Exception):
    """Base class for all kvsql errors."""

    code: ErrorCode = ErrorCode.PARSE_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self) -> str:
        return self.message


# ============================================================================
# Parse errors
# ============================================================================

class ParseError(KVSQLError):
    """SQL text could not be parsed. ``sql`` holds the offending text."""

    code = ErrorCode.PARSE_ERROR

    def __init__(self, message: str, sql: Optional[str] = None):
        super().__init__(message)
        self.sql = sql


# ============================================================================
# Schema errors
# ============================================================================

class SchemaError(KVSQLError):
    """Statement conflicts with the catalog."""


class TableNotFoundError(SchemaError):
    code = ErrorCode.TABLE_NOT_FOUND

    def __init__(self, table: str):
        super().__init__(f"Table not found: '{table}'")
        self.table = table


class TableExistsError(SchemaError):
    code = ErrorCode.TABLE_EXISTS

    def __init__(self, table: str):
        super().__init__(f"Table exists: '{table}'")
        self.table = table


class ColumnNotFoundError(SchemaError):
    code = ErrorCode.COLUMN_NOT_FOUND

    def __init__(self, column: str, table: str):
        super().__init__(f"Column '{column}' does not exist in table '{table}'")
        self.column = column
        self.table = table


class IndexExistsError(SchemaError):
    code = ErrorCode.INDEX_EXISTS

    def __init__(self, index_name: str, table: str):
        super().__init__(f"Index '{index_name}' already exists on table '{table}'")
        self.index_name = index_name
        self.table = table


class IndexNotFoundError(SchemaError):
    code = ErrorCode.INDEX_NOT_FOUND

    def __init__(self, index_name: str, table: str):
        super().__init__(f"Index '{index_name}' does not exist on table '{table}'")
        self.index_name = index_name
        self.table = table


class TypeMismatchError(SchemaError):
    """A value does not fit the declared column type."""

    code = ErrorCode.TYPE_MISMATCH

    def __init__(self, column: str, expected: str, value):
        super().__init__(
            f"Column '{column}' expects {expected}, got {type(value).__name__} {value!r}"
        )
        self.column = column
        self.expected = expected
        self.value = value


class DuplicateKeyError(SchemaError):
    code = ErrorCode.DUPLICATE_KEY

    def __init__(self, table: str, row_id: str):
        super().__init__(f"Duplicate primary key '{row_id}' in table '{table}'")
        self.table = table
        self.row_id = row_id


# ============================================================================
# Arity errors
# ============================================================================

class ArityError(KVSQLError):
    code = ErrorCode.ARITY_MISMATCH

    def __init__(self, n_columns: int, n_values: int):
        super().__init__(
            f"Column count ({n_columns}) doesn't match value count ({n_values})"
        )
        self.n_columns = n_columns
        self.n_values = n_values


__all__ = [
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
]
