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
Catalog store: table schemas and index metadata.

The catalog is never cached; every read goes to the KV store, so it always
reflects the current state written by previous statements.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import TableNotFoundError
from .keys import KeyLayout
from .storage import KVStore


@dataclass
class Column:
    """SQL column definition."""
    name: str
    type: str  # INTEGER, TEXT, FLOAT, BOOLEAN, BLOB (or a pass-through token)
    nullable: bool = True
    primary_key: bool = False
    default: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "nullable": self.nullable,
            "primary_key": self.primary_key,
            "default": self.default,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Column":
        return cls(
            name=data["name"],
            type=data["type"],
            nullable=data.get("nullable", True),
            primary_key=data.get("primary_key", False),
            default=data.get("default"),
        )


@dataclass
class TableSchema:
    """SQL table schema."""
    name: str
    columns: List[Column] = field(default_factory=list)
    primary_key: Optional[str] = None

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Optional[Column]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def has_column(self, name: str) -> bool:
        return self.get_column(name) is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": [c.to_dict() for c in self.columns],
            "primary_key": self.primary_key,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TableSchema":
        return cls(
            name=data["name"],
            columns=[Column.from_dict(c) for c in data.get("columns", [])],
            primary_key=data.get("primary_key"),
        )


@dataclass(frozen=True)
class IndexMeta:
    """Secondary index metadata: one index over one column."""
    name: str
    table: str
    column: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "table": self.table, "column": self.column}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "IndexMeta":
        return cls(name=data["name"], table=data["table"], column=data["column"])


class Catalog:
    """Reads and writes schemas and index metadata under reserved keys."""

    def __init__(self, kv: KVStore, layout: KeyLayout):
        self._kv = kv
        self._layout = layout

    # =========================================================================
    # Tables
    # =========================================================================

    def get_schema(self, table: str) -> Optional[TableSchema]:
        """Get a table schema, or None if the table does not exist."""
        data = self._kv.get(self._layout.schema_key(table))
        if data is None:
            return None
        return TableSchema.from_dict(json.loads(data.decode()))

    def require_schema(self, table: str) -> TableSchema:
        schema = self.get_schema(table)
        if schema is None:
            raise TableNotFoundError(table)
        return schema

    def put_schema(self, schema: TableSchema) -> None:
        self._kv.put(
            self._layout.schema_key(schema.name),
            json.dumps(schema.to_dict()).encode(),
        )

    def delete_schema(self, table: str) -> None:
        self._kv.delete(self._layout.schema_key(table))

    def list_tables(self) -> List[str]:
        """
        List every table with a schema.

        This scans the whole SQL root, rows included; it is meant for
        inspection, not for statement execution.
        """
        tables = []
        for key, _ in self._kv.scan_prefix(self._layout.root):
            name = self._layout.table_from_schema_key(key)
            if name is not None:
                tables.append(name)
        return tables

    # =========================================================================
    # Indexes
    # =========================================================================

    def get_index_metas(self, table: str) -> List[IndexMeta]:
        metas = []
        prefix = self._layout.index_meta_prefix(table)
        for key, value in self._kv.scan_prefix(prefix):
            if self._layout.index_name_from_meta_key(table, key) is None:
                continue
            metas.append(IndexMeta.from_dict(json.loads(value.decode())))
        return sorted(metas, key=lambda m: m.name)

    def get_indexes(self, table: str) -> Dict[str, str]:
        """Get all indexes for a table. Returns {index_name: column_name}."""
        return {meta.name: meta.column for meta in self.get_index_metas(table)}

    def get_index(self, table: str, index_name: str) -> Optional[IndexMeta]:
        data = self._kv.get(self._layout.index_meta_key(table, index_name))
        if data is None:
            return None
        return IndexMeta.from_dict(json.loads(data.decode()))

    def put_index(self, meta: IndexMeta) -> None:
        self._kv.put(
            self._layout.index_meta_key(meta.table, meta.name),
            json.dumps(meta.to_dict()).encode(),
        )

    def delete_index_meta(self, table: str, index_name: str) -> None:
        self._kv.delete(self._layout.index_meta_key(table, index_name))


__all__ = [
    "Column",
    "TableSchema",
    "IndexMeta",
    "Catalog",
]
