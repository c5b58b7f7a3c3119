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

"""SQL query result type."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List

from .format import to_json, to_toon


@dataclass
class SQLQueryResult:
    """Result of a SQL statement."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    rows_affected: int = 0

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.rows)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": self.rows,
            "columns": self.columns,
            "rows_affected": self.rows_affected,
        }

    def to_toon(self, table_name: str) -> str:
        return to_toon(table_name, self.rows, self.columns or None)

    def to_json(self, table_name: str, compact: bool = True) -> str:
        return to_json(table_name, self.rows, self.columns or None, compact=compact)


__all__ = ["SQLQueryResult"]
