# -*- coding: utf-8 -*-
"""Pytest configuration for kvsql tests."""

import pytest

from kvsql import CounterIdGenerator, MemoryKV, SQLConfig, SQLExecutor


@pytest.fixture
def kv():
    """Empty in-memory KV store."""
    return MemoryKV()


@pytest.fixture
def executor(kv):
    """Executor with deterministic row ids."""
    return SQLExecutor(kv, id_generator=CounterIdGenerator())


@pytest.fixture
def scan_executor(kv):
    """Executor over the same store that never uses indexes."""
    return SQLExecutor(
        kv,
        config=SQLConfig(use_indexes=False),
        id_generator=CounterIdGenerator(start=1000),
    )


@pytest.fixture
def users(executor):
    """Executor with a seeded users table."""
    executor.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, age INTEGER)")
    for row in [
        (1, "'Alice'", 30),
        (2, "'Bob'", 25),
        (3, "'Carol'", 35),
        (4, "'Dave'", "NULL"),
    ]:
        executor.execute("INSERT INTO users (id, name, age) VALUES (%s, %s, %s)" % row)
    return executor


def index_entries(executor, table, index_name):
    """All (encoded value, row_id) pairs stored for one index."""
    from kvsql.keys import decode_component

    prefix = executor.layout.index_prefix(table, index_name)
    entries = []
    for key, value in executor.kv.scan_prefix(prefix):
        encoded, pos = decode_component(key, len(prefix))
        row_id, _ = decode_component(key, pos)
        assert row_id.decode() == value.decode()
        entries.append((encoded, value.decode()))
    return entries


@pytest.fixture
def entries():
    """Reader for the (encoded value, row_id) pairs of one index."""
    return index_entries
