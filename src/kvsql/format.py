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
Result Output Formats

Renders query results as TOON (compact, columnar text) or JSON.
"""

import base64
import json
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class FormatConversionError(Exception):
    """Error when format conversion fails."""

    def __init__(self, from_format: str, to_format: str, reason: str):
        self.from_format = from_format
        self.to_format = to_format
        self.reason = reason
        super().__init__(f"Cannot convert {from_format} to {to_format}: {reason}")


class WireFormat(Enum):
    """Output format for query results."""

    TOON = "toon"
    """TOON format: table[N]{fields}:v,v;v,v"""

    JSON = "json"
    """Standard JSON for compatibility."""

    @classmethod
    def from_string(cls, s: str) -> "WireFormat":
        """Parse format from string."""
        s_lower = s.lower()
        if s_lower == "toon":
            return cls.TOON
        elif s_lower == "json":
            return cls.JSON
        else:
            raise FormatConversionError(
                s, "WireFormat",
                f"Unknown format '{s}'. Valid: toon, json"
            )

    def __str__(self) -> str:
        return self.value


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return str(value)


def _json_safe(value: Any) -> Any:
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return value


def to_toon(table_name: str, records: List[Dict[str, Any]],
            fields: Optional[List[str]] = None) -> str:
    """
    Convert records to TOON format.

    Example:
        >>> to_toon("users", [{"name": "Alice", "age": 30}, {"name": "Bob", "age": 25}])
        'users[2]{name,age}:Alice,30;Bob,25'

    Values containing ',' ';' or a newline are wrapped in double quotes.
    BLOB values are written as base64.
    """
    if not records:
        return f"{table_name}[0]{{{','.join(fields or [])}}}:"

    if fields is None:
        fields = list(records[0].keys())

    header = f"{table_name}[{len(records)}]{{{','.join(fields)}}}:"

    def escape_value(v):
        s = _text(v)
        if ',' in s or ';' in s or '\n' in s:
            return f'"{s}"'
        return s

    rows = ";".join(
        ",".join(escape_value(r.get(f)) for f in fields)
        for r in records
    )
    return header + rows


def to_json(table_name: str, records: List[Dict[str, Any]],
            fields: Optional[List[str]] = None, compact: bool = True) -> str:
    """
    Convert records to JSON: {"table": ..., "count": N, "records": [...]}.

    BLOB values are written as base64 strings.
    """
    if fields is not None:
        records = [{f: r.get(f) for f in fields} for r in records]

    output = {
        "table": table_name,
        "count": len(records),
        "records": [{k: _json_safe(v) for k, v in r.items()} for r in records],
    }

    if compact:
        return json.dumps(output, separators=(',', ':'))
    return json.dumps(output, indent=2)


def format_result(result: Any, table_name: str,
                  fmt: Union[WireFormat, str] = WireFormat.TOON) -> str:
    """Render a SQLQueryResult in the requested wire format."""
    if isinstance(fmt, str):
        fmt = WireFormat.from_string(fmt)
    fields = list(result.columns) if result.columns else None
    if fmt is WireFormat.JSON:
        return to_json(table_name, result.rows, fields)
    return to_toon(table_name, result.rows, fields)


__all__ = [
    "FormatConversionError",
    "WireFormat",
    "to_toon",
    "to_json",
    "format_result",
]
