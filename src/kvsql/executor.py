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
SQL Executor for kvsql.

Runs parsed statements against a KV store. Tables are stored as:
  - Schema:  {root}{table}/schema -> JSON schema definition
  - Rows:    {root}{table}/rows/{row_id} -> JSON row data
  - Indexes: {root}{table}/indexes/{index}/meta -> JSON index metadata
  - Entries: {root}{table}/entries/{index}{value}{row_id} -> row_id

SELECT, UPDATE and DELETE use a secondary index when the WHERE clause has
an equality condition on an indexed column; every candidate row is then
re-checked against the whole WHERE clause.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .catalog import Catalog, IndexMeta, TableSchema
from .config import SQLConfig
from .errors import (
    ArityError,
    ColumnNotFoundError,
    DuplicateKeyError,
    IndexExistsError,
    IndexNotFoundError,
    SchemaError,
    TableExistsError,
    TableNotFoundError,
)
from .ids import IdGenerator
from .index import IndexMaintainer
from .keys import KeyLayout
from .parser import (
    Condition,
    CreateIndex,
    CreateTable,
    Delete,
    DropIndex,
    DropTable,
    Insert,
    OrderItem,
    Select,
    SQLParser,
    Statement,
    StatementKind,
    Update,
)
from .query import SQLQueryResult
from .storage import KVStore, as_kv_store
from .values import (
    coerce_value,
    compare_values,
    dump_row,
    like_match,
    load_row,
    try_coerce,
    values_equal,
)

logger = logging.getLogger(__name__)

ROW_ID = "_id"

Row = Dict[str, Any]


class PlanKind(str, Enum):
    INDEX = "INDEX"
    FULL_SCAN = "FULL_SCAN"


@dataclass(frozen=True)
class ScanPlan:
    """How candidate rows are found for a WHERE clause."""
    kind: PlanKind
    index: Optional[str] = None
    column: Optional[str] = None
    value: Any = None

    @property
    def uses_index(self) -> bool:
        return self.kind is PlanKind.INDEX


FULL_SCAN = ScanPlan(kind=PlanKind.FULL_SCAN)


# ============================================================================
# WHERE evaluation
# ============================================================================

def _condition_holds(row_val: Any, op: str, val: Any) -> bool:
    if op == "=":
        if val is None:
            return row_val is None
        return values_equal(row_val, val)
    if op == "!=":
        if val is None:
            return row_val is not None
        return not values_equal(row_val, val)
    if op == "LIKE":
        if row_val is None or val is None:
            return False
        return like_match(row_val, val)
    if op == "NOT LIKE":
        if row_val is None or val is None:
            return True
        return not like_match(row_val, val)

    cmp = compare_values(row_val, val)
    if cmp is None:
        return False
    if op == ">":
        return cmp > 0
    if op == ">=":
        return cmp >= 0
    if op == "<":
        return cmp < 0
    if op == "<=":
        return cmp <= 0
    raise ValueError(f"Unknown operator: {op}")


def matches_conditions(row: Row, conditions: Sequence[Condition]) -> bool:
    """Check if a row satisfies every condition."""
    matched = True
    for cond in conditions:
        if not _condition_holds(row.get(cond.column), cond.op, cond.value):
            matched = False
    return matched


def _order_key(order_by: Sequence[OrderItem]) -> Callable:
    """Sort key for ORDER BY: per-key direction, nulls last either way."""

    def compare(a: Row, b: Row) -> int:
        for item in order_by:
            x, y = a.get(item.column), b.get(item.column)
            if x is None or y is None:
                if x is None and y is None:
                    continue
                return 1 if x is None else -1
            cmp = compare_values(x, y)
            if cmp is None:
                # Mixed types: group by type name so the order is still total
                tx, ty = type(x).__name__, type(y).__name__
                cmp = (tx > ty) - (tx < ty)
            if cmp:
                return -cmp if item.descending else cmp
        return 0

    return cmp_to_key(compare)


# ============================================================================
# Executor
# ============================================================================

class SQLExecutor:
    """Execute SQL statements against a KV store."""

    def __init__(self, db, config: Optional[SQLConfig] = None,
                 id_generator: Optional[IdGenerator] = None):
        """
        Args:
            db: A KVStore, or any object with get/put/delete/scan_prefix.
            config: Executor settings (default: SQLConfig()).
            id_generator: Row id source for tables without a primary key
                (default: the one named by ``config.id_strategy``).
        """
        self._config = config or SQLConfig()
        self._config.apply_logging()
        self._kv: KVStore = as_kv_store(db)
        self._layout = KeyLayout(self._config.root_prefix)
        self._catalog = Catalog(self._kv, self._layout)
        self._indexes = IndexMaintainer(self._kv, self._layout)
        self._ids = id_generator or self._config.make_id_generator()

        self._handlers: Dict[StatementKind, Callable[[Any], SQLQueryResult]] = {
            StatementKind.CREATE_TABLE: self._create_table,
            StatementKind.DROP_TABLE: self._drop_table,
            StatementKind.CREATE_INDEX: self._create_index,
            StatementKind.DROP_INDEX: self._drop_index,
            StatementKind.INSERT: self._insert,
            StatementKind.SELECT: self._select,
            StatementKind.UPDATE: self._update,
            StatementKind.DELETE: self._delete,
        }

    @property
    def config(self) -> SQLConfig:
        return self._config

    @property
    def kv(self) -> KVStore:
        return self._kv

    @property
    def layout(self) -> KeyLayout:
        return self._layout

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def indexes(self) -> IndexMaintainer:
        return self._indexes

    def execute(self, sql: str) -> SQLQueryResult:
        """
        Execute a SQL statement.

        Raises:
            ParseError: Malformed or unsupported SQL (no KV access happens).
            SchemaError: The statement conflicts with the catalog.
            ArityError: INSERT column/value counts differ.
        """
        stmt = SQLParser.parse(sql)
        return self.execute_statement(stmt)

    # Alias for clarity
    execute_sql = execute

    def execute_statement(self, stmt: Statement) -> SQLQueryResult:
        """Execute an already parsed statement."""
        handler = self._handlers.get(stmt.kind)
        if handler is None:
            raise ValueError(f"Unknown operation: {stmt.kind}")
        result = handler(stmt)
        logger.debug("%s %s: %d rows, %d affected",
                     stmt.kind.value, stmt.table, len(result.rows), result.rows_affected)
        return result

    def list_tables(self) -> List[str]:
        return self._catalog.list_tables()

    # =========================================================================
    # Planning
    # =========================================================================

    def plan(self, table: str, conditions: Sequence[Condition]) -> ScanPlan:
        """
        Choose how to find the rows matching ``conditions``.

        Uses the first ``=`` condition on an indexed column with a non-NULL
        literal; anything else is a full scan.
        """
        if not self._config.use_indexes or not conditions:
            return FULL_SCAN

        by_column: Dict[str, str] = {}
        for meta in self._catalog.get_index_metas(table):
            by_column.setdefault(meta.column, meta.name)

        for cond in conditions:
            if cond.op != "=" or cond.value is None:
                continue
            index_name = by_column.get(cond.column)
            if index_name is not None:
                return ScanPlan(
                    kind=PlanKind.INDEX,
                    index=index_name,
                    column=cond.column,
                    value=cond.value,
                )
        return FULL_SCAN

    @staticmethod
    def _bind_conditions(schema: TableSchema,
                         conditions: Sequence[Condition]) -> Tuple[Condition, ...]:
        """Coerce WHERE literals to their column types where possible."""
        bound = []
        for cond in conditions:
            column = schema.get_column(cond.column)
            if column is None or cond.op in ("LIKE", "NOT LIKE"):
                bound.append(cond)
                continue
            bound.append(Condition(cond.column, cond.op, try_coerce(cond.value, column.type)))
        return tuple(bound)

    def _find_rows(self, schema: TableSchema,
                   conditions: Sequence[Condition]) -> List[Tuple[str, Row]]:
        """Materialize (row_id, row) pairs matching the WHERE clause."""
        table = schema.name
        plan = self.plan(table, conditions)
        logger.debug("Plan for %s: %s", table, plan)

        matched = []
        if plan.uses_index:
            for row_id in self._indexes.lookup(table, plan.index, plan.value):
                data = self._kv.get(self._layout.row_key(table, row_id))
                if data is None:
                    continue
                row = load_row(data)
                if matches_conditions(row, conditions):
                    matched.append((row_id, row))
        else:
            for _, data in self._kv.scan_prefix(self._layout.row_prefix(table)):
                row = load_row(data)
                if matches_conditions(row, conditions):
                    matched.append((row[ROW_ID], row))
        return matched

    def _scan_rows(self, table: str) -> List[Tuple[str, Row]]:
        rows = []
        for _, data in self._kv.scan_prefix(self._layout.row_prefix(table)):
            row = load_row(data)
            rows.append((row[ROW_ID], row))
        return rows

    # =========================================================================
    # DDL
    # =========================================================================

    def _create_table(self, stmt: CreateTable) -> SQLQueryResult:
        """Create a new table."""
        columns = [c.name for c in stmt.columns]

        if self._catalog.get_schema(stmt.table) is not None:
            if stmt.if_not_exists:
                return SQLQueryResult(rows=[], columns=columns, rows_affected=0)
            raise TableExistsError(stmt.table)

        for column in stmt.columns:
            coerce_value(column.default, column.type, column.name)

        schema = TableSchema(
            name=stmt.table,
            columns=list(stmt.columns),
            primary_key=stmt.primary_key,
        )
        self._catalog.put_schema(schema)
        logger.info("Created table %s (%s)", stmt.table, ", ".join(columns))

        return SQLQueryResult(rows=[], columns=columns, rows_affected=0)

    def _drop_table(self, stmt: DropTable) -> SQLQueryResult:
        """Drop a table with its indexes and rows."""
        table = stmt.table

        if self._catalog.get_schema(table) is None:
            if stmt.if_exists:
                return SQLQueryResult(rows=[], columns=[], rows_affected=0)
            raise TableNotFoundError(table)

        # Delete all indexes first
        for meta in self._catalog.get_index_metas(table):
            self._indexes.drop_entries(table, meta.name)
            self._catalog.delete_index_meta(table, meta.name)

        # Delete all rows
        rows_deleted = 0
        for key, _ in self._kv.scan_prefix(self._layout.row_prefix(table)):
            self._kv.delete(key)
            rows_deleted += 1

        self._catalog.delete_schema(table)
        logger.info("Dropped table %s (%d rows)", table, rows_deleted)

        return SQLQueryResult(rows=[], columns=[], rows_affected=rows_deleted)

    def _create_index(self, stmt: CreateIndex) -> SQLQueryResult:
        """
        Create a secondary index on a column.

        Existing rows are backfilled; NULL values are not indexed.
        """
        table = stmt.table
        schema = self._catalog.require_schema(table)

        if not schema.has_column(stmt.column):
            raise ColumnNotFoundError(stmt.column, table)

        if self._catalog.get_index(table, stmt.index_name) is not None:
            if stmt.if_not_exists:
                return SQLQueryResult(rows=[], columns=[stmt.column], rows_affected=0)
            raise IndexExistsError(stmt.index_name, table)

        self._catalog.put_index(IndexMeta(name=stmt.index_name, table=table, column=stmt.column))
        indexed_count = self._indexes.backfill(
            table, stmt.index_name, stmt.column, self._scan_rows(table)
        )
        logger.info("Created index %s on %s(%s), %d entries",
                    stmt.index_name, table, stmt.column, indexed_count)

        return SQLQueryResult(rows=[], columns=[stmt.column], rows_affected=indexed_count)

    def _drop_index(self, stmt: DropIndex) -> SQLQueryResult:
        """Drop a secondary index and all its entries."""
        table = stmt.table

        if self._catalog.get_schema(table) is None:
            if stmt.if_exists:
                return SQLQueryResult(rows=[], columns=[], rows_affected=0)
            raise TableNotFoundError(table)

        if self._catalog.get_index(table, stmt.index_name) is None:
            if stmt.if_exists:
                return SQLQueryResult(rows=[], columns=[], rows_affected=0)
            raise IndexNotFoundError(stmt.index_name, table)

        deleted = self._indexes.drop_entries(table, stmt.index_name)
        self._catalog.delete_index_meta(table, stmt.index_name)
        logger.info("Dropped index %s on %s (%d entries)", stmt.index_name, table, deleted)

        return SQLQueryResult(rows=[], columns=[], rows_affected=deleted)

    # =========================================================================
    # DML
    # =========================================================================

    def _insert(self, stmt: Insert) -> SQLQueryResult:
        """Insert a row and maintain secondary indexes."""
        table = stmt.table
        schema = self._catalog.require_schema(table)

        # If no columns specified, use schema order
        columns = list(stmt.columns) if stmt.columns is not None else schema.column_names

        if len(columns) != len(stmt.values):
            raise ArityError(len(columns), len(stmt.values))

        supplied = dict(zip(columns, stmt.values))
        for name in supplied:
            if not schema.has_column(name):
                raise ColumnNotFoundError(name, table)

        row: Row = {}
        for column in schema.columns:
            value = supplied[column.name] if column.name in supplied else column.default
            row[column.name] = coerce_value(value, column.type, column.name)

        # Row id: primary key value if there is one, else a generated id
        pk = schema.primary_key
        if pk is not None and row.get(pk) is not None:
            row_id = str(row[pk])
            if self._kv.get(self._layout.row_key(table, row_id)) is not None:
                raise DuplicateKeyError(table, row_id)
        else:
            # Generated ids skip keys already taken by PK values or earlier runs
            row_id = self._ids.next_id(table)
            while self._kv.get(self._layout.row_key(table, row_id)) is not None:
                logger.debug("Generated row id %s already used in %s", row_id, table)
                row_id = self._ids.next_id(table)

        row[ROW_ID] = row_id
        self._kv.put(self._layout.row_key(table, row_id), dump_row(row))

        for meta in self._catalog.get_index_metas(table):
            self._indexes.add(table, meta.name, meta.column, row, row_id)

        return SQLQueryResult(rows=[], columns=[], rows_affected=1)

    def _select(self, stmt: Select) -> SQLQueryResult:
        """Select rows: filter, sort, page, then project."""
        schema = self._catalog.require_schema(stmt.table)
        conditions = self._bind_conditions(schema, stmt.where)

        rows = [row for _, row in self._find_rows(schema, conditions)]

        if stmt.order_by:
            rows.sort(key=_order_key(stmt.order_by))

        offset = stmt.offset or 0
        if offset:
            rows = rows[offset:]
        if stmt.limit is not None:
            rows = rows[:stmt.limit]

        if stmt.is_star:
            columns = schema.column_names
            projected = [{col: row[col] for col in columns if col in row} for row in rows]
        else:
            columns = [item.output_name for item in stmt.items]
            projected = [
                {item.output_name: row[item.column] for item in stmt.items if item.column in row}
                for row in rows
            ]

        return SQLQueryResult(rows=projected, columns=columns, rows_affected=0)

    def _update(self, stmt: Update) -> SQLQueryResult:
        """Update rows in place, moving index entries of changed columns."""
        table = stmt.table
        schema = self._catalog.require_schema(table)

        for assignment in stmt.assignments:
            if not schema.has_column(assignment.column):
                raise ColumnNotFoundError(assignment.column, table)
            if assignment.column == schema.primary_key:
                raise SchemaError(
                    f"Cannot update primary key column '{assignment.column}' of table '{table}'"
                )

        conditions = self._bind_conditions(schema, stmt.where)
        changed = {a.column for a in stmt.assignments}
        indexes = [m for m in self._catalog.get_index_metas(table) if m.column in changed]

        rows_affected = 0
        for row_id, old_row in self._find_rows(schema, conditions):
            new_row = dict(old_row)
            for assignment in stmt.assignments:
                column = schema.get_column(assignment.column)
                new_row[column.name] = coerce_value(
                    assignment.apply(old_row.get(column.name)), column.type, column.name
                )

            for meta in indexes:
                self._indexes.update(table, meta.name, meta.column, old_row, new_row, row_id)

            self._kv.put(self._layout.row_key(table, row_id), dump_row(new_row))
            rows_affected += 1

        return SQLQueryResult(rows=[], columns=[], rows_affected=rows_affected)

    def _delete(self, stmt: Delete) -> SQLQueryResult:
        """Delete rows and their index entries."""
        table = stmt.table
        schema = self._catalog.require_schema(table)
        conditions = self._bind_conditions(schema, stmt.where)
        metas = self._catalog.get_index_metas(table)

        rows_affected = 0
        for row_id, row in self._find_rows(schema, conditions):
            for meta in metas:
                self._indexes.update(table, meta.name, meta.column, row, {}, row_id)
            self._kv.delete(self._layout.row_key(table, row_id))
            rows_affected += 1

        return SQLQueryResult(rows=[], columns=[], rows_affected=rows_affected)


__all__ = [
    "SQLExecutor",
    "ScanPlan",
    "PlanKind",
    "matches_conditions",
]
