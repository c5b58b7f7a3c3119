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
Key layout for SQL data in the KV store.

Storage Model:
--------------
Schema:     {root}{table}/schema                    -> JSON TableSchema
Rows:       {root}{table}/rows/{row_id}             -> JSON row
Index meta: {root}{table}/indexes/{index}/meta      -> JSON IndexMeta
Entries:    {root}{table}/entries/{index}{value}{row_id} -> row_id

Every variable component ({table}, {index}, {value}, {row_id}) is
length-prefixed (4-byte big-endian length + bytes), so a component may
contain any byte, '/' included, without colliding with its neighbours.
"""

import struct
from typing import Any, Optional, Tuple, Union

DEFAULT_ROOT = b"_sql/tables/"

_LEN = struct.Struct(">I")


def encode_component(value: Union[str, bytes]) -> bytes:
    """Length-prefix a key component."""
    data = value.encode("utf-8") if isinstance(value, str) else value
    return _LEN.pack(len(data)) + data


def decode_component(data: bytes, pos: int = 0) -> Tuple[bytes, int]:
    """
    Read one length-prefixed component starting at ``pos``.

    Returns:
        (component bytes, position just past the component)
    """
    if pos + _LEN.size > len(data):
        raise ValueError(f"Truncated key component at offset {pos}")
    (length,) = _LEN.unpack_from(data, pos)
    start = pos + _LEN.size
    end = start + length
    if end > len(data):
        raise ValueError(f"Truncated key component at offset {pos}")
    return data[start:end], end


def encode_index_value(value: Any) -> bytes:
    """
    Encode a non-null column value for an index key.

    Values that compare equal under ``values_equal`` encode identically:
    1 and 1.0 share the numeric tag, while True stays distinct from 1.
    """
    if value is None:
        raise ValueError("NULL values are not indexed")
    if isinstance(value, bool):
        return b"b:1" if value else b"b:0"
    if isinstance(value, int):
        return b"n:" + str(value).encode()
    if isinstance(value, float):
        if value.is_integer():
            return b"n:" + str(int(value)).encode()
        return b"n:" + repr(value).encode()
    if isinstance(value, bytes):
        return b"x:" + value
    return b"s:" + str(value).encode("utf-8")


class KeyLayout:
    """Builds and parses every key kvsql writes."""

    SCHEMA_SUFFIX = b"/schema"
    ROWS_PREFIX = b"/rows/"
    INDEXES_PREFIX = b"/indexes/"
    INDEX_META_SUFFIX = b"/meta"
    ENTRIES_PREFIX = b"/entries/"

    def __init__(self, root: bytes = DEFAULT_ROOT):
        if not root:
            raise ValueError("Key root must not be empty")
        self.root = root

    def __repr__(self) -> str:
        return f"KeyLayout(root={self.root!r})"

    # =========================================================================
    # Tables and rows
    # =========================================================================

    def table_prefix(self, table: str) -> bytes:
        """Prefix covering everything stored for one table."""
        return self.root + encode_component(table)

    def schema_key(self, table: str) -> bytes:
        return self.table_prefix(table) + self.SCHEMA_SUFFIX

    def row_prefix(self, table: str) -> bytes:
        return self.table_prefix(table) + self.ROWS_PREFIX

    def row_key(self, table: str, row_id: str) -> bytes:
        return self.row_prefix(table) + encode_component(row_id)

    # =========================================================================
    # Indexes
    # =========================================================================

    def index_meta_prefix(self, table: str) -> bytes:
        """Prefix covering the metadata of every index on a table."""
        return self.table_prefix(table) + self.INDEXES_PREFIX

    def index_meta_key(self, table: str, index_name: str) -> bytes:
        return (
            self.index_meta_prefix(table)
            + encode_component(index_name)
            + self.INDEX_META_SUFFIX
        )

    def index_prefix(self, table: str, index_name: str) -> bytes:
        """Prefix covering every entry of one index."""
        return (
            self.table_prefix(table)
            + self.ENTRIES_PREFIX
            + encode_component(index_name)
        )

    def index_value_prefix(self, table: str, index_name: str, value: Any) -> bytes:
        """Prefix covering the entries of one index for one value."""
        return self.index_prefix(table, index_name) + encode_component(
            encode_index_value(value)
        )

    def index_key(self, table: str, index_name: str, value: Any, row_id: str) -> bytes:
        return self.index_value_prefix(table, index_name, value) + encode_component(row_id)

    # =========================================================================
    # Parsing
    # =========================================================================

    def index_name_from_meta_key(self, table: str, key: bytes) -> Optional[str]:
        """Extract the index name from an index meta key, None if it is not one."""
        prefix = self.index_meta_prefix(table)
        if not key.startswith(prefix):
            return None
        try:
            name, pos = decode_component(key, len(prefix))
        except ValueError:
            return None
        if key[pos:] != self.INDEX_META_SUFFIX:
            return None
        return name.decode("utf-8")

    def table_from_schema_key(self, key: bytes) -> Optional[str]:
        """Extract the table name from a schema key, None if it is not one."""
        if not key.startswith(self.root):
            return None
        try:
            name, pos = decode_component(key, len(self.root))
        except ValueError:
            return None
        if key[pos:] != self.SCHEMA_SUFFIX:
            return None
        return name.decode("utf-8")


__all__ = [
    "DEFAULT_ROOT",
    "KeyLayout",
    "encode_component",
    "decode_component",
    "encode_index_value",
]
