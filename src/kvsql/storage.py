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
Key-value collaborator interface.

kvsql only needs four operations over byte strings:

- get(key) -> value or None
- put(key, value)
- delete(key)
- scan_prefix(prefix) -> [(key, value), ...] in lexicographic key order

Any SDK-style database exposing get/put/delete and scan_prefix (or a
scan(start, end) range) can be wrapped with :class:`DatabaseAdapter`.

Example:
    from kvsql.storage import MemoryKV

    kv = MemoryKV()
    kv.put(b"users/1", b"alice")
    kv.scan_prefix(b"users/")  # [(b"users/1", b"alice")]
"""

import bisect
from abc import ABC, abstractmethod
from threading import Lock
from typing import Any, Dict, List, Optional, Tuple

KVPair = Tuple[bytes, bytes]


def prefix_upper_bound(prefix: bytes) -> bytes:
    """Smallest key greater than every key starting with ``prefix``."""
    for i in range(len(prefix) - 1, -1, -1):
        if prefix[i] != 0xFF:
            return prefix[:i] + bytes([prefix[i] + 1])
    return b""


class KVStore(ABC):
    """Abstract ordered key-value store."""

    @abstractmethod
    def get(self, key: bytes) -> Optional[bytes]:
        """Get a value by key, or None if absent."""
        pass

    @abstractmethod
    def put(self, key: bytes, value: bytes) -> None:
        """Put a key-value pair."""
        pass

    @abstractmethod
    def delete(self, key: bytes) -> None:
        """Delete a key. Deleting an absent key is not an error."""
        pass

    @abstractmethod
    def scan_prefix(self, prefix: bytes) -> List[KVPair]:
        """
        Scan keys matching a prefix.

        Returns a materialized list ordered by key bytes, so callers may
        mutate the store while walking the result.
        """
        pass


class MemoryKV(KVStore):
    """
    Sorted in-memory KV store.

    Fast but not persistent. Good for testing and development.
    """

    def __init__(self, data: Optional[Dict[bytes, bytes]] = None):
        self._data: Dict[bytes, bytes] = {}
        self._keys: List[bytes] = []
        self._lock = Lock()
        self._stats = {"gets": 0, "puts": 0, "deletes": 0, "scans": 0}
        for key, value in (data or {}).items():
            self.put(key, value)

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            self._stats["gets"] += 1
            return self._data.get(key)

    def put(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._stats["puts"] += 1
            if key not in self._data:
                bisect.insort(self._keys, key)
            self._data[key] = value

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._stats["deletes"] += 1
            if key in self._data:
                del self._data[key]
                self._keys.pop(bisect.bisect_left(self._keys, key))

    def scan_prefix(self, prefix: bytes) -> List[KVPair]:
        with self._lock:
            self._stats["scans"] += 1
            start = bisect.bisect_left(self._keys, prefix)
            result = []
            for key in self._keys[start:]:
                if not key.startswith(prefix):
                    break
                result.append((key, self._data[key]))
            return result

    def keys(self) -> List[bytes]:
        with self._lock:
            return list(self._keys)

    def stats(self) -> Dict[str, int]:
        """Operation counters since creation (or the last reset)."""
        with self._lock:
            return dict(self._stats)

    def reset_stats(self) -> None:
        with self._lock:
            for name in self._stats:
                self._stats[name] = 0

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: bytes) -> bool:
        return key in self._data


class DatabaseAdapter(KVStore):
    """
    Adapt an SDK database object to :class:`KVStore`.

    The wrapped object needs get/put/delete plus either ``scan_prefix(prefix)``
    or a ``scan(start, end)`` range iterator.
    """

    def __init__(self, db: Any):
        for name in ("get", "put", "delete"):
            if not callable(getattr(db, name, None)):
                raise TypeError(f"{type(db).__name__} has no '{name}' method")
        if not (callable(getattr(db, "scan_prefix", None)) or callable(getattr(db, "scan", None))):
            raise TypeError(f"{type(db).__name__} has no 'scan_prefix' or 'scan' method")
        self._db = db

    @property
    def db(self) -> Any:
        return self._db

    def get(self, key: bytes) -> Optional[bytes]:
        value = self._db.get(key)
        if value is None:
            return None
        return bytes(value)

    def put(self, key: bytes, value: bytes) -> None:
        self._db.put(key, value)

    def delete(self, key: bytes) -> None:
        self._db.delete(key)

    def scan_prefix(self, prefix: bytes) -> List[KVPair]:
        if callable(getattr(self._db, "scan_prefix", None)):
            pairs = self._db.scan_prefix(prefix)
        else:
            pairs = self._db.scan(prefix, prefix_upper_bound(prefix))
        result = [(bytes(k), bytes(v)) for k, v in pairs if bytes(k).startswith(prefix)]
        result.sort(key=lambda kv: kv[0])
        return result


def as_kv_store(db: Any) -> KVStore:
    """Return ``db`` if it is already a KVStore, else wrap it."""
    if isinstance(db, KVStore):
        return db
    return DatabaseAdapter(db)


__all__ = [
    "KVPair",
    "KVStore",
    "MemoryKV",
    "DatabaseAdapter",
    "as_kv_store",
    "prefix_upper_bound",
]
