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
Secondary index maintenance.

An index maps a non-null column value to the ids of the rows holding it.
Each entry is one KV pair keyed by (table, index, value, row id) whose value
is the row id, so a value lookup is a single prefix scan. NULL values are
never indexed.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .keys import KeyLayout
from .storage import KVStore
from .values import values_equal

logger = logging.getLogger(__name__)


class IndexMaintainer:
    """Writes and reads index entries for single-column indexes."""

    def __init__(self, kv: KVStore, layout: KeyLayout):
        self._kv = kv
        self._layout = layout

    def update(
        self,
        table: str,
        index_name: str,
        column: str,
        old_row: Optional[Dict[str, Any]],
        new_row: Optional[Dict[str, Any]],
        row_id: str,
    ) -> None:
        """
        Move a row's entry when its indexed value changes.

        An empty or None ``new_row`` means the row is being deleted.
        Nothing is written when the old and new values are equal.
        """
        old_value = old_row.get(column) if old_row else None
        new_value = new_row.get(column) if new_row else None

        if values_equal(old_value, new_value):
            return

        if old_value is not None:
            self._kv.delete(self._layout.index_key(table, index_name, old_value, row_id))
        if new_value is not None:
            self._kv.put(
                self._layout.index_key(table, index_name, new_value, row_id),
                row_id.encode(),
            )

    def add(self, table: str, index_name: str, column: str,
            row: Dict[str, Any], row_id: str) -> None:
        """Index a freshly inserted row."""
        self.update(table, index_name, column, None, row, row_id)

    def backfill(self, table: str, index_name: str, column: str,
                 rows: Iterable[Tuple[str, Dict[str, Any]]]) -> int:
        """Index existing (row_id, row) pairs. Returns the number of entries written."""
        count = 0
        for row_id, row in rows:
            value = row.get(column)
            if value is None:
                continue
            self._kv.put(
                self._layout.index_key(table, index_name, value, row_id),
                row_id.encode(),
            )
            count += 1
        logger.debug("Backfilled %d entries into %s.%s", count, table, index_name)
        return count

    def drop_entries(self, table: str, index_name: str) -> int:
        """Delete every entry of one index. Returns the number removed."""
        count = 0
        for key, _ in self._kv.scan_prefix(self._layout.index_prefix(table, index_name)):
            self._kv.delete(key)
            count += 1
        return count

    def lookup(self, table: str, index_name: str, value: Any) -> List[str]:
        """Row ids whose indexed value equals ``value`` (empty for NULL)."""
        if value is None:
            return []
        prefix = self._layout.index_value_prefix(table, index_name, value)
        return [row_id.decode() for _, row_id in self._kv.scan_prefix(prefix)]


__all__ = ["IndexMaintainer"]
