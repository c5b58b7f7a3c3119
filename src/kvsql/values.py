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
Value codec for kvsql.

Converts SQL literal text into typed Python values, normalizes declared
column types, validates values against column types and serializes rows.

Values are one of: None, int, float, bool, str, bytes.
"""

import base64
import json
import math
import re
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Optional

from .errors import TypeMismatchError


class ColumnType(str, Enum):
    """Canonical column types."""
    INTEGER = "INTEGER"
    TEXT = "TEXT"
    FLOAT = "FLOAT"
    BOOLEAN = "BOOLEAN"
    BLOB = "BLOB"


_TYPE_SYNONYMS = {
    "INTEGER": ColumnType.INTEGER,
    "INT": ColumnType.INTEGER,
    "BIGINT": ColumnType.INTEGER,
    "SMALLINT": ColumnType.INTEGER,
    "VARCHAR": ColumnType.TEXT,
    "CHAR": ColumnType.TEXT,
    "STRING": ColumnType.TEXT,
    "TEXT": ColumnType.TEXT,
    "REAL": ColumnType.FLOAT,
    "DOUBLE": ColumnType.FLOAT,
    "FLOAT": ColumnType.FLOAT,
    "DECIMAL": ColumnType.FLOAT,
    "NUMERIC": ColumnType.FLOAT,
    "BOOLEAN": ColumnType.BOOLEAN,
    "BOOL": ColumnType.BOOLEAN,
    "BLOB": ColumnType.BLOB,
    "BYTES": ColumnType.BLOB,
    "BINARY": ColumnType.BLOB,
}

_QUOTES = ("'", '"')
_INT_RE = re.compile(r"[+-]?\d+")
_BLOB_TAG = "__blob__"


def normalize_type(token: str) -> str:
    """
    Map a declared type token to its canonical name.

    Synonyms are matched case-insensitively (VARCHAR -> TEXT, BIGINT -> INTEGER,
    ...). Unrecognized tokens pass through unchanged.
    """
    canonical = _TYPE_SYNONYMS.get(token.upper())
    if canonical is None:
        return token
    return canonical.value


def _unescape(body: str, quote: str) -> str:
    return body.replace(quote * 2, quote).replace("\\" + quote, quote)


def parse_value(text: str) -> Any:
    """
    Parse a single SQL literal.

    - NULL (any case) or empty text -> None
    - 'text' / "text" -> str, quotes stripped and unescaped
    - TRUE / FALSE (any case) -> bool
    - text containing '.' that is a finite number -> float
    - integer text -> int
    - anything else -> the raw string
    """
    val = text.strip()

    if not val or val.upper() == "NULL":
        return None

    if len(val) >= 2 and val[0] in _QUOTES and val[-1] == val[0]:
        return _unescape(val[1:-1], val[0])

    upper = val.upper()
    if upper == "TRUE":
        return True
    if upper == "FALSE":
        return False

    if "." in val and "_" not in val:
        try:
            number = float(val)
        except ValueError:
            number = None
        if number is not None and math.isfinite(number):
            return number

    if _INT_RE.fullmatch(val):
        return int(val)

    return val


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def coerce_value(value: Any, col_type: str, column: str = "?") -> Any:
    """
    Validate ``value`` against a column type and return the stored form.

    None is always accepted. Unrecognized (pass-through) types accept anything.

    Raises:
        TypeMismatchError: If the value does not fit the column type.
    """
    if value is None:
        return None

    if col_type == ColumnType.INTEGER:
        if _is_number(value):
            if isinstance(value, int):
                return value
            if value.is_integer():
                return int(value)
        raise TypeMismatchError(column, ColumnType.INTEGER.value, value)

    if col_type == ColumnType.FLOAT:
        if _is_number(value):
            return float(value)
        raise TypeMismatchError(column, ColumnType.FLOAT.value, value)

    if col_type == ColumnType.TEXT:
        if isinstance(value, str):
            return value
        raise TypeMismatchError(column, ColumnType.TEXT.value, value)

    if col_type == ColumnType.BOOLEAN:
        if isinstance(value, bool):
            return value
        raise TypeMismatchError(column, ColumnType.BOOLEAN.value, value)

    if col_type == ColumnType.BLOB:
        if isinstance(value, bytes):
            return value
        if isinstance(value, str):
            return value.encode("utf-8")
        raise TypeMismatchError(column, ColumnType.BLOB.value, value)

    return value


def try_coerce(value: Any, col_type: Optional[str]) -> Any:
    """Coerce a WHERE literal to a column type, keeping it as-is on mismatch."""
    if col_type is None:
        return value
    try:
        return coerce_value(value, col_type)
    except TypeMismatchError:
        return value


# ============================================================================
# Comparison
# ============================================================================

def values_equal(a: Any, b: Any) -> bool:
    """SQL-ish equality: bools never equal numbers, ints equal integral floats."""
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if _is_number(a) and _is_number(b):
        return a == b
    if type(a) is not type(b):
        return False
    return a == b


def compare_values(a: Any, b: Any) -> Optional[int]:
    """Three-way compare. Returns None when the values are not comparable."""
    if a is None or b is None:
        return None
    comparable = (
        (_is_number(a) and _is_number(b))
        or (isinstance(a, bool) and isinstance(b, bool))
        or (isinstance(a, str) and isinstance(b, str))
        or (isinstance(a, bytes) and isinstance(b, bytes))
    )
    if not comparable:
        return None
    return (a > b) - (a < b)


@lru_cache(maxsize=256)
def like_to_regex(pattern: str) -> "re.Pattern":
    """Compile a LIKE pattern: % matches any run, _ matches any one character."""
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def like_match(value: Any, pattern: Any) -> bool:
    """Whole-value, case-insensitive LIKE match."""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return like_to_regex(str(pattern)).fullmatch(str(value)) is not None


# ============================================================================
# Row serialization
# ============================================================================

def _to_json(value: Any) -> Any:
    if isinstance(value, bytes):
        return {_BLOB_TAG: base64.b64encode(value).decode("ascii")}
    return value


def _from_json(value: Any) -> Any:
    if isinstance(value, dict) and _BLOB_TAG in value:
        return base64.b64decode(value[_BLOB_TAG])
    return value


def dump_row(row: Dict[str, Any]) -> bytes:
    """Serialize a row (including ``_id``) to JSON bytes."""
    return json.dumps({k: _to_json(v) for k, v in row.items()}).encode()


def load_row(data: bytes) -> Dict[str, Any]:
    """Inverse of :func:`dump_row`."""
    return {k: _from_json(v) for k, v in json.loads(data.decode()).items()}


__all__ = [
    "ColumnType",
    "normalize_type",
    "parse_value",
    "coerce_value",
    "try_coerce",
    "values_equal",
    "compare_values",
    "like_to_regex",
    "like_match",
    "dump_row",
    "load_row",
]
