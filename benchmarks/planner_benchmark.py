#!/usr/bin/env python3
"""
Planner benchmark: index point lookups vs full table scans.
"""

import sys
import time
import numpy as np
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from kvsql import CounterIdGenerator, MemoryKV, SQLConfig, SQLExecutor

# Config
N_ROWS = 5000
N_DISTINCT = 500
N_ITERATIONS = 200

np.random.seed(42)

print("=" * 70)
print("SQL-ON-KV PLANNER BENCHMARK")
print("=" * 70)

kv = MemoryKV()
indexed = SQLExecutor(kv, id_generator=CounterIdGenerator())
scanned = SQLExecutor(kv, config=SQLConfig(use_indexes=False))

indexed.execute("CREATE TABLE events (id INTEGER PRIMARY KEY, user_id INTEGER, kind TEXT, score FLOAT)")

# ============================================================================
# Load
# ============================================================================
print(f"\n1. INSERT {N_ROWS} rows (no index)")
user_ids = np.random.randint(0, N_DISTINCT, size=N_ROWS)
start = time.perf_counter()
for i, user_id in enumerate(user_ids):
    indexed.execute(
        f"INSERT INTO events VALUES ({i}, {int(user_id)}, 'click', {np.random.rand():.4f})"
    )
elapsed = time.perf_counter() - start
print(f"   {N_ROWS / elapsed:,.0f} inserts/s")

start = time.perf_counter()
result = indexed.execute("CREATE INDEX idx_user ON events(user_id)")
elapsed = time.perf_counter() - start
print(f"   backfill: {result.rows_affected} entries in {elapsed * 1000:.1f}ms")


def measure(executor, sql):
    times = []
    for _ in range(N_ITERATIONS):
        start = time.perf_counter_ns()
        executor.execute(sql)
        times.append((time.perf_counter_ns() - start) / 1000)
    return times


# ============================================================================
# Point lookups
# ============================================================================
print("\n2. SELECT ... WHERE user_id = ? (index vs full scan)")
sql = f"SELECT id, score FROM events WHERE user_id = {int(user_ids[0])}"

for label, executor in [("index", indexed), ("scan", scanned)]:
    times = measure(executor, sql)
    p50 = np.percentile(times, 50)
    p99 = np.percentile(times, 99)
    print(f"   {label:5s}: p50={p50:9.1f}µs  p99={p99:9.1f}µs")

assert (
    sorted(r["id"] for r in indexed.execute(sql))
    == sorted(r["id"] for r in scanned.execute(sql))
)

# ============================================================================
# KV traffic per statement
# ============================================================================
print("\n3. KV OPERATIONS PER STATEMENT")
for label, executor in [("index", indexed), ("scan", scanned)]:
    kv.reset_stats()
    executor.execute(sql)
    stats = kv.stats()
    print(f"   {label:5s}: gets={stats['gets']:5d} scans={stats['scans']:3d}")

print("\n" + "=" * 70)
