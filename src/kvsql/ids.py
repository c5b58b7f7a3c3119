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
Row id generation.

Rows of tables without a primary key get a generated id. The generator is
injected into the executor so tests can use deterministic ids.
"""

import uuid
from abc import ABC, abstractmethod
from threading import Lock
from typing import Dict


class IdGenerator(ABC):
    """Produces ids for rows inserted without a primary key."""

    @abstractmethod
    def next_id(self, table: str) -> str:
        pass


class UuidIdGenerator(IdGenerator):
    """Random uuid4 ids (hex, no dashes)."""

    def next_id(self, table: str) -> str:
        return uuid.uuid4().hex


class CounterIdGenerator(IdGenerator):
    """
    Deterministic per-table counter.

    With ``width`` > 0 ids are zero-padded, so they sort in insertion order
    as long as the counter stays within the width.
    """

    def __init__(self, start: int = 1, width: int = 0):
        self._start = start
        self._width = width
        self._counters: Dict[str, int] = {}
        self._lock = Lock()

    def next_id(self, table: str) -> str:
        with self._lock:
            value = self._counters.get(table, self._start)
            self._counters[table] = value + 1
        if self._width:
            return str(value).zfill(self._width)
        return str(value)


__all__ = ["IdGenerator", "UuidIdGenerator", "CounterIdGenerator"]
