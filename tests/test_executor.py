"""Tests for the planner/executor."""

import logging

import pytest

from kvsql import (
    ArityError,
    ColumnNotFoundError,
    DuplicateKeyError,
    IndexExistsError,
    IndexNotFoundError,
    ParseError,
    PlanKind,
    SchemaError,
    SQLConfig,
    SQLExecutor,
    TableExistsError,
    TableNotFoundError,
    TypeMismatchError,
    connect,
)
from kvsql.keys import encode_index_value
from kvsql.parser import Condition
from kvsql.values import load_row


def assert_index_consistent(executor, entries, table, index_name, column):
    """Entry for (value, row id) exists iff the row exists with a non-null value."""
    expected = set()
    for _, data in executor.kv.scan_prefix(executor.layout.row_prefix(table)):
        row = load_row(data)
        if row.get(column) is not None:
            expected.add((encode_index_value(row[column]), row["_id"]))
    actual = entries(executor, table, index_name)
    assert len(actual) == len(set(actual))
    assert set(actual) == expected


def as_set(rows):
    return {tuple(sorted(row.items())) for row in rows}


# ============================================================================
# Examples
# ============================================================================

class TestExamples:
    def test_example_1_select_with_range(self, executor):
        executor.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, age INTEGER)")
        executor.execute("INSERT INTO users (id,name,age) VALUES (1,'Alice',30)")
        result = executor.execute("SELECT name, age FROM users WHERE age > 25")
        assert result.rows == [{"name": "Alice", "age": 30}]
        assert result.columns == ["name", "age"]

    def test_example_2_update_moves_index_entry(self, executor, entries):
        executor.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, age INTEGER)")
        executor.execute("INSERT INTO users (id,name,age) VALUES (1,'Alice',30)")
        executor.execute("CREATE INDEX idx_age ON users(age)")
        executor.execute("INSERT INTO users (id,name,age) VALUES (2,'Bob',25)")
        result = executor.execute("UPDATE users SET age = 26 WHERE id = 2")
        assert result.rows_affected == 1

        stored = entries(executor, "users", "idx_age")
        assert stored.count((b"n:26", "2")) == 1
        assert (b"n:25", "2") not in stored
        assert (b"n:30", "1") in stored

    def test_example_3_delete(self, executor):
        executor.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT, age INTEGER)")
        executor.execute("INSERT INTO users (id,name,age) VALUES (1,'Alice',30)")
        executor.execute("INSERT INTO users (id,name,age) VALUES (2,'Bob',25)")
        executor.execute("UPDATE users SET age = 26 WHERE id = 2")
        result = executor.execute("DELETE FROM users WHERE age < 27")
        assert result.rows_affected == 1
        assert executor.execute("SELECT name FROM users").rows == [{"name": "Alice"}]

    def test_example_4_order_limit_offset(self, users):
        result = users.execute("SELECT * FROM users ORDER BY age DESC LIMIT 1 OFFSET 0")
        assert result.rows == [{"id": 3, "name": "Carol", "age": 35}]


# ============================================================================
# DDL
# ============================================================================

class TestCreateTable:
    def test_result_and_schema(self, executor):
        result = executor.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT)")
        assert result.rows_affected == 0
        assert result.columns == ["id", "name"]
        schema = executor.catalog.get_schema("t")
        assert schema.column_names == ["id", "name"]
        assert schema.primary_key == "id"

    def test_schema_is_immutable_under_mutations(self, executor):
        executor.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT)")
        before = executor.catalog.get_schema("t")
        executor.execute("INSERT INTO t VALUES (1, 'a')")
        executor.execute("UPDATE t SET name = 'b'")
        executor.execute("CREATE INDEX idx ON t(name)")
        executor.execute("DELETE FROM t")
        after = executor.catalog.get_schema("t")
        assert after == before
        assert [(c.name, c.type) for c in after.columns] == [("id", "INTEGER"), ("name", "TEXT")]

    def test_exists(self, executor):
        executor.execute("CREATE TABLE t (a TEXT)")
        with pytest.raises(TableExistsError):
            executor.execute("CREATE TABLE t (b TEXT)")
        result = executor.execute("CREATE TABLE IF NOT EXISTS t (b TEXT)")
        assert result.rows_affected == 0
        assert executor.catalog.get_schema("t").column_names == ["a"]

    def test_bad_default(self, executor):
        with pytest.raises(TypeMismatchError):
            executor.execute("CREATE TABLE t (a INTEGER DEFAULT 'x')")
        assert executor.catalog.get_schema("t") is None

    def test_list_tables(self, executor):
        executor.execute("CREATE TABLE a (x TEXT)")
        executor.execute("CREATE TABLE b (x TEXT)")
        assert sorted(executor.list_tables()) == ["a", "b"]


class TestDropTable:
    def test_cascades(self, users, kv):
        users.execute("CREATE INDEX idx_age ON users(age)")
        users.execute("CREATE INDEX idx_name ON users(name)")
        result = users.execute("DROP TABLE users")
        assert result.rows_affected == 4
        assert kv.keys() == []
        assert users.catalog.get_schema("users") is None

    def test_leaves_other_tables(self, users):
        users.execute("CREATE TABLE other (x TEXT)")
        users.execute("INSERT INTO other VALUES ('keep')")
        users.execute("DROP TABLE users")
        assert users.execute("SELECT * FROM other").rows == [{"x": "keep"}]

    def test_missing(self, executor):
        with pytest.raises(TableNotFoundError):
            executor.execute("DROP TABLE nope")

    def test_if_exists_is_idempotent(self, users):
        first = users.execute("DROP TABLE IF EXISTS users")
        second = users.execute("DROP TABLE IF EXISTS users")
        assert first.rows_affected == 4
        assert second.rows_affected == 0

    def test_recreate_after_drop(self, users):
        users.execute("CREATE INDEX idx_age ON users(age)")
        users.execute("DROP TABLE users")
        users.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, nick TEXT)")
        assert users.catalog.get_indexes("users") == {}
        assert users.execute("SELECT * FROM users").rows == []


class TestIndexes:
    def test_create_backfills_non_null(self, users, entries):
        result = users.execute("CREATE INDEX idx_age ON users(age)")
        assert result.rows_affected == 3
        assert result.columns == ["age"]
        assert sorted(entries(users, "users", "idx_age")) == [
            (b"n:25", "2"), (b"n:30", "1"), (b"n:35", "3"),
        ]

    def test_duplicate_name(self, users):
        users.execute("CREATE INDEX idx_age ON users(age)")
        with pytest.raises(IndexExistsError):
            users.execute("CREATE INDEX idx_age ON users(name)")
        result = users.execute("CREATE INDEX IF NOT EXISTS idx_age ON users(age)")
        assert result.rows_affected == 0

    def test_same_name_on_other_table(self, users):
        users.execute("CREATE TABLE other (age INTEGER)")
        users.execute("CREATE INDEX idx_age ON users(age)")
        users.execute("CREATE INDEX idx_age ON other(age)")
        assert users.catalog.get_indexes("other") == {"idx_age": "age"}

    def test_undeclared_column(self, users):
        with pytest.raises(ColumnNotFoundError):
            users.execute("CREATE INDEX idx_x ON users(x)")

    def test_missing_table(self, executor):
        with pytest.raises(TableNotFoundError):
            executor.execute("CREATE INDEX idx ON nope(a)")
        with pytest.raises(TableNotFoundError):
            executor.execute("DROP INDEX idx ON nope")
        assert executor.execute("DROP INDEX IF EXISTS idx ON nope").rows_affected == 0

    def test_drop(self, users, entries):
        users.execute("CREATE INDEX idx_age ON users(age)")
        result = users.execute("DROP INDEX idx_age ON users")
        assert result.rows_affected == 3
        assert entries(users, "users", "idx_age") == []
        assert users.catalog.get_indexes("users") == {}

    def test_drop_missing(self, users):
        with pytest.raises(IndexNotFoundError):
            users.execute("DROP INDEX idx_age ON users")
        assert users.execute("DROP INDEX IF EXISTS idx_age ON users").rows_affected == 0


# ============================================================================
# DML
# ============================================================================

class TestInsert:
    def test_schema_order_when_columns_omitted(self, executor):
        executor.execute("CREATE TABLE t (a INTEGER, b TEXT)")
        executor.execute("INSERT INTO t VALUES (1, 'x')")
        assert executor.execute("SELECT * FROM t").rows == [{"a": 1, "b": "x"}]

    def test_arity(self, executor):
        executor.execute("CREATE TABLE t (a INTEGER, b TEXT)")
        with pytest.raises(ArityError):
            executor.execute("INSERT INTO t VALUES (1)")
        with pytest.raises(ArityError):
            executor.execute("INSERT INTO t (a) VALUES (1, 'x')")

    def test_missing_table(self, executor):
        with pytest.raises(TableNotFoundError):
            executor.execute("INSERT INTO nope VALUES (1)")

    def test_unknown_column(self, executor):
        executor.execute("CREATE TABLE t (a INTEGER)")
        with pytest.raises(ColumnNotFoundError):
            executor.execute("INSERT INTO t (b) VALUES (1)")

    def test_type_mismatch(self, executor):
        executor.execute("CREATE TABLE t (a INTEGER)")
        with pytest.raises(TypeMismatchError):
            executor.execute("INSERT INTO t VALUES ('one')")
        assert executor.execute("SELECT * FROM t").rows == []

    def test_row_id_from_primary_key(self, users):
        key = users.layout.row_key("users", "2")
        assert users.kv.get(key) is not None

    def test_generated_row_ids(self, executor):
        executor.execute("CREATE TABLE log (msg TEXT)")
        executor.execute("INSERT INTO log VALUES ('a')")
        executor.execute("INSERT INTO log VALUES ('b')")
        ids = [k for k, _ in executor.kv.scan_prefix(executor.layout.row_prefix("log"))]
        assert ids == [executor.layout.row_key("log", "1"), executor.layout.row_key("log", "2")]

    def test_generated_id_when_pk_missing(self, executor):
        executor.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
        executor.execute("INSERT INTO t (v) VALUES ('x')")
        assert executor.kv.get(executor.layout.row_key("t", "1")) is not None

    def test_generated_id_skips_primary_key_row(self, executor, entries):
        executor.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
        executor.execute("CREATE INDEX idx_v ON t(v)")
        executor.execute("INSERT INTO t (id, v) VALUES (1, 'a')")
        executor.execute("INSERT INTO t (v) VALUES ('b')")

        rows = executor.execute("SELECT * FROM t").rows
        assert as_set(rows) == as_set([{"id": 1, "v": "a"}, {"id": None, "v": "b"}])
        assert executor.execute("SELECT id FROM t WHERE v = 'a'").rows == [{"id": 1}]
        assert_index_consistent(executor, entries, "t", "idx_v", "v")

    def test_counter_restart_keeps_existing_rows(self, kv, entries):
        first = SQLExecutor(kv, SQLConfig(id_strategy="counter"))
        first.execute("CREATE TABLE log (msg TEXT)")
        first.execute("CREATE INDEX idx_msg ON log(msg)")
        first.execute("INSERT INTO log VALUES ('first')")

        second = SQLExecutor(kv, SQLConfig(id_strategy="counter"))
        second.execute("INSERT INTO log VALUES ('second')")

        assert sorted(r["msg"] for r in second.execute("SELECT msg FROM log")) == ["first", "second"]
        assert second.execute("SELECT msg FROM log WHERE msg = 'first'").rows == [{"msg": "first"}]
        assert_index_consistent(second, entries, "log", "idx_msg", "msg")

    def test_duplicate_primary_key(self, users):
        with pytest.raises(DuplicateKeyError):
            users.execute("INSERT INTO users (id, name, age) VALUES (1, 'Other', 99)")
        assert users.execute("SELECT name FROM users WHERE id = 1").rows == [{"name": "Alice"}]

    def test_defaults_and_missing_columns(self, executor):
        executor.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, status TEXT DEFAULT 'new', note TEXT)")
        executor.execute("INSERT INTO t (id) VALUES (1)")
        assert executor.execute("SELECT * FROM t").rows == [{"id": 1, "status": "new", "note": None}]

    def test_values_are_coerced(self, executor):
        executor.execute("CREATE TABLE t (f FLOAT, i INTEGER, b BLOB)")
        executor.execute("INSERT INTO t VALUES (1, 2.0, 'raw')")
        row = executor.execute("SELECT * FROM t").rows[0]
        assert row == {"f": 1.0, "i": 2, "b": b"raw"}
        assert isinstance(row["f"], float)
        assert isinstance(row["i"], int)

    def test_rows_affected(self, executor):
        executor.execute("CREATE TABLE t (a TEXT)")
        assert executor.execute("INSERT INTO t VALUES ('x')").rows_affected == 1


class TestSelect:
    def test_star_projection_excludes_row_id(self, users):
        result = users.execute("SELECT * FROM users WHERE id = 1")
        assert result.rows == [{"id": 1, "name": "Alice", "age": 30}]
        assert result.columns == ["id", "name", "age"]

    def test_missing_columns_omitted(self, users):
        result = users.execute("SELECT name, nickname FROM users WHERE id = 1")
        assert result.rows == [{"name": "Alice"}]
        assert result.columns == ["name", "nickname"]

    def test_aliases(self, users):
        result = users.execute("SELECT name AS who FROM users WHERE id = 2")
        assert result.rows == [{"who": "Bob"}]
        assert result.columns == ["who"]

    def test_order_by_unprojected_column(self, users):
        result = users.execute("SELECT name FROM users WHERE age > 0 ORDER BY age")
        assert [r["name"] for r in result] == ["Bob", "Alice", "Carol"]

    def test_nulls_sort_last_both_directions(self, users):
        asc = users.execute("SELECT name FROM users ORDER BY age ASC")
        desc = users.execute("SELECT name FROM users ORDER BY age DESC")
        assert [r["name"] for r in asc] == ["Bob", "Alice", "Carol", "Dave"]
        assert [r["name"] for r in desc] == ["Carol", "Alice", "Bob", "Dave"]

    def test_multi_key_sort_is_stable(self, executor):
        executor.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, g TEXT, v INTEGER)")
        for i, g, v in [(1, "b", 1), (2, "a", 2), (3, "b", 2), (4, "a", 1), (5, "a", 2)]:
            executor.execute(f"INSERT INTO t VALUES ({i}, '{g}', {v})")
        result = executor.execute("SELECT id FROM t ORDER BY g, v DESC")
        assert [r["id"] for r in result] == [2, 5, 4, 3, 1]

    def test_offset_then_limit(self, users):
        result = users.execute("SELECT id FROM users ORDER BY id LIMIT 2 OFFSET 1")
        assert [r["id"] for r in result] == [2, 3]
        result = users.execute("SELECT id FROM users ORDER BY id OFFSET 3")
        assert [r["id"] for r in result] == [4]
        assert users.execute("SELECT id FROM users LIMIT 0").rows == []

    def test_missing_table(self, executor):
        with pytest.raises(TableNotFoundError):
            executor.execute("SELECT * FROM nope")

    def test_result_is_iterable(self, users):
        result = users.execute("SELECT id FROM users ORDER BY id")
        assert len(result) == 4
        assert [r["id"] for r in result] == [1, 2, 3, 4]


class TestWhere:
    @pytest.mark.parametrize("where,expected", [
        ("age = 30", {"Alice"}),
        ("age != 30", {"Bob", "Carol", "Dave"}),
        ("age <> 30", {"Bob", "Carol", "Dave"}),
        ("age > 25", {"Alice", "Carol"}),
        ("age >= 30", {"Alice", "Carol"}),
        ("age < 30", {"Bob"}),
        ("age <= 30", {"Alice", "Bob"}),
        ("age = NULL", {"Dave"}),
        ("age != NULL", {"Alice", "Bob", "Carol"}),
        ("name LIKE 'a%'", {"Alice"}),
        ("name LIKE '%o%'", {"Bob", "Carol"}),
        ("name NOT LIKE '%o%'", {"Alice", "Dave"}),
        ("age > 20 AND name LIKE '%a%'", {"Alice", "Carol"}),
        ("age > 'abc'", set()),
        ("name = 30", set()),
    ])
    def test_operators(self, users, where, expected):
        result = users.execute(f"SELECT name FROM users WHERE {where}")
        assert {r["name"] for r in result} == expected

    def test_not_like_on_null_does_not_skip_other_conditions(self, executor):
        executor.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, s TEXT, n INTEGER)")
        executor.execute("INSERT INTO t VALUES (1, NULL, 5)")
        executor.execute("INSERT INTO t VALUES (2, NULL, 50)")
        result = executor.execute("SELECT id FROM t WHERE s NOT LIKE 'x%' AND n > 10")
        assert [r["id"] for r in result] == [2]

    def test_boolean_never_equals_integer(self, executor):
        executor.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, flag BOOLEAN)")
        executor.execute("INSERT INTO t VALUES (1, TRUE)")
        assert executor.execute("SELECT id FROM t WHERE flag = TRUE").rows == [{"id": 1}]
        assert executor.execute("SELECT id FROM t WHERE flag = 1").rows == []

    def test_or_is_rejected_before_storage_access(self, users, kv):
        kv.reset_stats()
        with pytest.raises(ParseError):
            users.execute("SELECT * FROM users WHERE age = 1 OR age = 2")
        assert kv.stats() == {"gets": 0, "puts": 0, "deletes": 0, "scans": 0}


class TestUpdate:
    def test_update_all(self, users):
        result = users.execute("UPDATE users SET name = 'X'")
        assert result.rows_affected == 4
        assert {r["name"] for r in users.execute("SELECT name FROM users")} == {"X"}

    def test_update_keeps_row_id(self, users):
        users.execute("UPDATE users SET name = 'Robert' WHERE id = 2")
        assert users.execute("SELECT * FROM users WHERE id = 2").rows == [
            {"id": 2, "name": "Robert", "age": 25}
        ]
        assert len(users.kv.scan_prefix(users.layout.row_prefix("users"))) == 4

    def test_arithmetic(self, users):
        users.execute("UPDATE users SET age = age + 1 WHERE age >= 30")
        result = users.execute("SELECT age FROM users WHERE age > 0 ORDER BY age")
        assert [r["age"] for r in result] == [25, 31, 36]

    def test_arithmetic_on_null_starts_at_zero(self, users):
        users.execute("UPDATE users SET age = age - 1 WHERE id = 4")
        assert users.execute("SELECT age FROM users WHERE id = 4").rows == [{"age": -1}]

    def test_primary_key_is_immutable(self, users):
        with pytest.raises(SchemaError):
            users.execute("UPDATE users SET id = 9 WHERE id = 1")

    def test_unknown_column(self, users):
        with pytest.raises(ColumnNotFoundError):
            users.execute("UPDATE users SET nickname = 'x'")

    def test_type_mismatch(self, users):
        with pytest.raises(TypeMismatchError):
            users.execute("UPDATE users SET age = 'old' WHERE id = 1")

    def test_no_match(self, users):
        assert users.execute("UPDATE users SET age = 1 WHERE id = 99").rows_affected == 0

    def test_missing_table(self, executor):
        with pytest.raises(TableNotFoundError):
            executor.execute("UPDATE nope SET a = 1")


class TestDelete:
    def test_delete_all(self, users):
        assert users.execute("DELETE FROM users").rows_affected == 4
        assert users.execute("SELECT * FROM users").rows == []

    def test_delete_removes_index_entries(self, users, entries):
        users.execute("CREATE INDEX idx_age ON users(age)")
        users.execute("DELETE FROM users WHERE name = 'Bob'")
        assert (b"n:25", "2") not in entries(users, "users", "idx_age")
        assert_index_consistent(users, entries, "users", "idx_age", "age")

    def test_missing_table(self, executor):
        with pytest.raises(TableNotFoundError):
            executor.execute("DELETE FROM nope")


# ============================================================================
# Planner
# ============================================================================

class TestPlanner:
    def test_plan_choice(self, users):
        users.execute("CREATE INDEX idx_age ON users(age)")
        plan = users.plan("users", [Condition("name", "=", "Bob"), Condition("age", "=", 25)])
        assert plan.kind is PlanKind.INDEX
        assert (plan.index, plan.column, plan.value) == ("idx_age", "age", 25)

    def test_full_scan_cases(self, users):
        users.execute("CREATE INDEX idx_age ON users(age)")
        assert users.plan("users", []).kind is PlanKind.FULL_SCAN
        assert users.plan("users", [Condition("age", ">", 25)]).kind is PlanKind.FULL_SCAN
        assert users.plan("users", [Condition("age", "=", None)]).kind is PlanKind.FULL_SCAN
        assert users.plan("users", [Condition("name", "=", "Bob")]).kind is PlanKind.FULL_SCAN

    def test_indexes_can_be_disabled(self, users, scan_executor):
        users.execute("CREATE INDEX idx_age ON users(age)")
        assert scan_executor.plan("users", [Condition("age", "=", 25)]).kind is PlanKind.FULL_SCAN

    def test_index_path_avoids_full_scan(self, users, kv):
        users.execute("CREATE INDEX idx_age ON users(age)")
        kv.reset_stats()
        result = users.execute("SELECT name FROM users WHERE age = 25")
        assert result.rows == [{"name": "Bob"}]
        # schema get + one row get; scans: index metas + index value
        assert kv.stats()["gets"] == 2
        assert kv.stats()["scans"] == 2

    def test_index_candidates_rechecked(self, users):
        users.execute("CREATE INDEX idx_age ON users(age)")
        users.execute("INSERT INTO users VALUES (5, 'Eve', 25)")
        result = users.execute("SELECT name FROM users WHERE age = 25 AND name LIKE 'E%'")
        assert result.rows == [{"name": "Eve"}]

    def test_literal_coerced_for_index_lookup(self, executor):
        executor.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, score FLOAT)")
        executor.execute("CREATE INDEX idx_score ON t(score)")
        executor.execute("INSERT INTO t VALUES (1, 2)")
        assert executor.execute("SELECT id FROM t WHERE score = 2").rows == [{"id": 1}]
        assert executor.execute("SELECT id FROM t WHERE score = 2.0").rows == [{"id": 1}]

    @pytest.mark.parametrize("where", [
        "age = 25",
        "age = 30 AND name = 'Alice'",
        "age = 30 AND name = 'Bob'",
        "name = 'Carol' AND age = 35",
        "age = 99",
        "age = NULL",
        "age = '25'",
    ])
    def test_index_and_scan_agree(self, users, scan_executor, where):
        users.execute("CREATE INDEX idx_age ON users(age)")
        users.execute("CREATE INDEX idx_name ON users(name)")
        users.execute("INSERT INTO users VALUES (5, 'Eve', 25)")
        indexed = users.execute(f"SELECT * FROM users WHERE {where}")
        scanned = scan_executor.execute(f"SELECT * FROM users WHERE {where}")
        assert as_set(indexed.rows) == as_set(scanned.rows)

    def test_update_and_delete_agree(self):
        statements = [
            "CREATE TABLE t (id INTEGER PRIMARY KEY, k INTEGER, v TEXT)",
            "CREATE INDEX idx_k ON t(k)",
            "INSERT INTO t VALUES (1, 1, 'a')",
            "INSERT INTO t VALUES (2, 1, 'b')",
            "INSERT INTO t VALUES (3, 2, 'c')",
        ]
        indexed = connect()
        scanned = connect(config=SQLConfig(use_indexes=False))
        for db in (indexed, scanned):
            for sql in statements:
                db.execute(sql)

        for sql in ["UPDATE t SET v = 'z' WHERE k = 1 AND v = 'a'", "DELETE FROM t WHERE k = 1"]:
            assert indexed.execute(sql).rows_affected == scanned.execute(sql).rows_affected
            assert as_set(indexed.execute("SELECT * FROM t").rows) == as_set(
                scanned.execute("SELECT * FROM t").rows
            )


# ============================================================================
# Index/row consistency
# ============================================================================

class TestIndexConsistency:
    def test_after_every_mutation(self, executor, entries):
        executor.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, c TEXT, n INTEGER)")
        executor.execute("CREATE INDEX idx_c ON t(c)")
        executor.execute("CREATE INDEX idx_n ON t(n)")

        statements = [
            "INSERT INTO t VALUES (1, 'a', 1)",
            "INSERT INTO t VALUES (2, 'a', NULL)",
            "INSERT INTO t VALUES (3, NULL, 3)",
            "INSERT INTO t (id) VALUES (4)",
            "UPDATE t SET c = 'b' WHERE id = 1",
            "UPDATE t SET c = NULL WHERE c = 'a'",
            "UPDATE t SET n = n + 10",
            "UPDATE t SET c = 'x/y' WHERE n > 10",
            "UPDATE t SET c = 'x/y' WHERE n > 10",
            "DELETE FROM t WHERE c = 'x/y' AND n = 11",
            "INSERT INTO t VALUES (5, 'a', 1)",
            "DELETE FROM t WHERE n = 13",
            "UPDATE t SET n = NULL",
            "DELETE FROM t",
        ]
        for sql in statements:
            executor.execute(sql)
            assert_index_consistent(executor, entries, "t", "idx_c", "c")
            assert_index_consistent(executor, entries, "t", "idx_n", "n")

    def test_unchanged_update_writes_no_entries(self, users, kv):
        users.execute("CREATE INDEX idx_age ON users(age)")
        kv.reset_stats()
        users.execute("UPDATE users SET age = 30 WHERE id = 1")
        # only the row itself is rewritten
        assert kv.stats()["puts"] == 1
        assert kv.stats()["deletes"] == 0


# ============================================================================
# Wiring
# ============================================================================

class TestWiring:
    def test_connect_defaults(self):
        db = connect()
        db.execute("CREATE TABLE t (a TEXT)")
        db.execute("INSERT INTO t VALUES ('x')")
        assert db.execute_sql("SELECT a FROM t").rows == [{"a": "x"}]

    def test_sdk_style_database(self):
        class SDKDatabase:
            def __init__(self):
                self.data = {}

            def get(self, key):
                return self.data.get(key)

            def put(self, key, value):
                self.data[key] = value

            def delete(self, key):
                self.data.pop(key, None)

            def scan_prefix(self, prefix):
                return iter([(k, v) for k, v in self.data.items() if k.startswith(prefix)])

        db = connect(SDKDatabase())
        db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        db.execute("INSERT INTO t VALUES (2)")
        db.execute("INSERT INTO t VALUES (1)")
        assert {r["id"] for r in db.execute("SELECT * FROM t")} == {1, 2}

    def test_custom_root(self, kv):
        db = SQLExecutor(kv, config=SQLConfig(root_prefix=b"app/sql/"))
        db.execute("CREATE TABLE t (a TEXT)")
        assert all(key.startswith(b"app/sql/") for key in kv.keys())

    def test_kv_errors_propagate(self):
        class FailingKV:
            def get(self, key):
                raise IOError("disk gone")

            def put(self, key, value):
                raise IOError("disk gone")

            def delete(self, key):
                raise IOError("disk gone")

            def scan_prefix(self, prefix):
                raise IOError("disk gone")

        db = connect(FailingKV())
        with pytest.raises(IOError):
            db.execute("CREATE TABLE t (a TEXT)")

    def test_ddl_is_logged(self, executor, caplog):
        with caplog.at_level(logging.INFO, logger="kvsql"):
            executor.execute("CREATE TABLE t (a TEXT)")
            executor.execute("CREATE INDEX idx ON t(a)")
        messages = [r.getMessage() for r in caplog.records]
        assert any("Created table t" in m for m in messages)
        assert any("Created index idx" in m for m in messages)
