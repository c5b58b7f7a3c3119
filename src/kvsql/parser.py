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
SQL parser for kvsql.

Turns one SQL statement into a typed statement object. Supported syntax
(keywords are case-insensitive):

    CREATE TABLE [IF NOT EXISTS] t (col TYPE [PRIMARY KEY] [NOT NULL] [DEFAULT v], ...
                                    [, PRIMARY KEY(col)])
    DROP TABLE [IF EXISTS] t
    CREATE INDEX [IF NOT EXISTS] idx ON t(col)
    DROP INDEX [IF EXISTS] idx ON t
    INSERT INTO t [(col, ...)] VALUES (v, ...)
    SELECT col [AS alias], ... | * FROM t [WHERE ...] [ORDER BY col [ASC|DESC], ...]
                                          [LIMIT n] [OFFSET n]
    UPDATE t SET col = v | col = col +/- n, ... [WHERE ...]
    DELETE FROM t [WHERE ...]

WHERE is a conjunction (AND only) of ``column op literal`` with
op in =, !=, <>, >, >=, <, <=, LIKE, NOT LIKE.

Quoted literals are masked before any keyword matching, so keywords, commas
and parentheses inside strings never affect the statement structure.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, List, Optional, Tuple, Union

from .catalog import Column
from .errors import ParseError, TypeMismatchError
from .values import normalize_type, parse_value

_QUOTES = ("'", '"')
_MASK = "#"
_IDENT_RE = re.compile(r"\w+")


class StatementKind(str, Enum):
    """Statement kinds understood by the executor."""
    CREATE_TABLE = "CREATE_TABLE"
    DROP_TABLE = "DROP_TABLE"
    CREATE_INDEX = "CREATE_INDEX"
    DROP_INDEX = "DROP_INDEX"
    INSERT = "INSERT"
    SELECT = "SELECT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


# ============================================================================
# Statement parts
# ============================================================================

@dataclass(frozen=True)
class Condition:
    """One ``column op literal`` term of a WHERE conjunction."""
    column: str
    op: str  # =, !=, >, >=, <, <=, LIKE, NOT LIKE
    value: Any


@dataclass(frozen=True)
class OrderItem:
    column: str
    descending: bool = False


@dataclass(frozen=True)
class SelectItem:
    column: str
    alias: Optional[str] = None

    @property
    def output_name(self) -> str:
        return self.alias or self.column


@dataclass(frozen=True)
class Assignment:
    """
    One SET item.

    Either a literal (``col = value``) or arithmetic on the column itself
    (``col = col + value`` / ``col = col - value``, operator set).
    """
    column: str
    value: Any
    operator: Optional[str] = None

    def apply(self, current: Any) -> Any:
        if self.operator is None:
            return self.value
        base = 0 if current is None else current
        if isinstance(base, bool) or not isinstance(base, (int, float)):
            raise TypeMismatchError(self.column, "a number", base)
        if self.operator == "+":
            return base + self.value
        return base - self.value


# ============================================================================
# Statements
# ============================================================================

@dataclass(frozen=True)
class CreateTable:
    kind: ClassVar[StatementKind] = StatementKind.CREATE_TABLE
    table: str
    columns: Tuple[Column, ...]
    primary_key: Optional[str] = None
    if_not_exists: bool = False


@dataclass(frozen=True)
class DropTable:
    kind: ClassVar[StatementKind] = StatementKind.DROP_TABLE
    table: str
    if_exists: bool = False


@dataclass(frozen=True)
class CreateIndex:
    kind: ClassVar[StatementKind] = StatementKind.CREATE_INDEX
    index_name: str
    table: str
    column: str
    if_not_exists: bool = False


@dataclass(frozen=True)
class DropIndex:
    kind: ClassVar[StatementKind] = StatementKind.DROP_INDEX
    index_name: str
    table: str
    if_exists: bool = False


@dataclass(frozen=True)
class Insert:
    kind: ClassVar[StatementKind] = StatementKind.INSERT
    table: str
    columns: Optional[Tuple[str, ...]]  # None: full schema order
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class Select:
    kind: ClassVar[StatementKind] = StatementKind.SELECT
    table: str
    items: Tuple[SelectItem, ...] = ()  # empty: SELECT *
    where: Tuple[Condition, ...] = ()
    order_by: Tuple[OrderItem, ...] = ()
    limit: Optional[int] = None
    offset: Optional[int] = None

    @property
    def is_star(self) -> bool:
        return not self.items


@dataclass(frozen=True)
class Update:
    kind: ClassVar[StatementKind] = StatementKind.UPDATE
    table: str
    assignments: Tuple[Assignment, ...]
    where: Tuple[Condition, ...] = ()


@dataclass(frozen=True)
class Delete:
    kind: ClassVar[StatementKind] = StatementKind.DELETE
    table: str
    where: Tuple[Condition, ...] = ()


Statement = Union[CreateTable, DropTable, CreateIndex, DropIndex, Insert, Select, Update, Delete]


# ============================================================================
# Patterns (matched against the quote-masked statement)
# ============================================================================

_FLAGS = re.IGNORECASE | re.DOTALL

_CREATE_TABLE_RE = re.compile(
    r"CREATE\s+TABLE\s+(IF\s+NOT\s+EXISTS\s+)?(\w+)\s*\((.*)\)\s*$", _FLAGS
)
_DROP_TABLE_RE = re.compile(r"DROP\s+TABLE\s+(IF\s+EXISTS\s+)?(\w+)\s*$", _FLAGS)
_CREATE_INDEX_RE = re.compile(
    r"CREATE\s+INDEX\s+(IF\s+NOT\s+EXISTS\s+)?(\w+)\s+ON\s+(\w+)\s*\(\s*(\w+)\s*\)\s*$",
    _FLAGS,
)
_DROP_INDEX_RE = re.compile(
    r"DROP\s+INDEX\s+(IF\s+EXISTS\s+)?(\w+)\s+ON\s+(\w+)\s*$", _FLAGS
)
_INSERT_RE = re.compile(
    r"INSERT\s+INTO\s+(\w+)\s*(?:\(([^)]*)\)\s*)?VALUES\s*\((.*)\)\s*$", _FLAGS
)
_SELECT_RE = re.compile(
    r"""
    SELECT\s+(?P<items>.+?)                 # columns
    \s+FROM\s+(?P<table>\w+)                # table
    (?:\s+WHERE\s+(?P<where>.+?))?          # optional WHERE
    (?:\s+ORDER\s+BY\s+(?P<order>.+?))?     # optional ORDER BY
    (?:\s+LIMIT\s+(?P<limit>\d+))?          # optional LIMIT
    (?:\s+OFFSET\s+(?P<offset>\d+))?        # optional OFFSET
    \s*$
    """,
    _FLAGS | re.VERBOSE,
)
_UPDATE_RE = re.compile(
    r"UPDATE\s+(\w+)\s+SET\s+(.+?)(?:\s+WHERE\s+(.+?))?\s*$", _FLAGS
)
_DELETE_RE = re.compile(r"DELETE\s+FROM\s+(\w+)(?:\s+WHERE\s+(.+?))?\s*$", _FLAGS)

_COLUMN_DEF_RE = re.compile(r"(\w+)\s+(\w+)(?:\s*\([^)]*\))?(.*)$", _FLAGS)
_TABLE_PK_RE = re.compile(r"PRIMARY\s+KEY\s*\(\s*(\w+)\s*\)\s*$", _FLAGS)
_CONSTRAINT_RE = re.compile(
    r"\s+(?:(?P<pk>PRIMARY\s+KEY)|(?P<notnull>NOT\s+NULL)|(?P<null>NULL)|DEFAULT\s+(?P<default>\S+))"
    r"(?=\s|$)",
    re.IGNORECASE,
)
_SELECT_ITEM_RE = re.compile(r"(\w+)(?:\s+AS\s+(\w+))?$", re.IGNORECASE)
_ORDER_ITEM_RE = re.compile(r"(\w+)(?:\s+(ASC|DESC))?$", re.IGNORECASE)
_CONDITION_RE = re.compile(
    r"(\w+)\s*(<>|!=|>=|<=|=|>|<|NOT\s+LIKE(?=\s|')|LIKE(?=\s|'))\s*(.+)$", _FLAGS
)
_ASSIGNMENT_RE = re.compile(r"(\w+)\s*=\s*(.+)$", _FLAGS)
_ARITHMETIC_RE = re.compile(r"(\w+)\s*([+-])\s*([+-]?\d+(?:\.\d+)?)$")
_AND_RE = re.compile(r"\s+AND\s+", re.IGNORECASE)
_OR_RE = re.compile(r"\bOR\b", re.IGNORECASE)
_BARE_NOT_RE = re.compile(r"\bNOT\b(?!\s+LIKE\b)", re.IGNORECASE)


class SQLParser:
    """Hand-written parser for the supported DDL and DML subset."""

    @staticmethod
    def parse(sql: str) -> Statement:
        """
        Parse one SQL statement.

        Raises:
            ParseError: If the text is empty, unsupported or malformed.
        """
        if sql is None or not sql.strip():
            raise ParseError("Empty SQL statement", sql=sql)

        sql = sql.strip()
        if sql.endswith(";"):
            sql = sql[:-1].rstrip()
            if not sql:
                raise ParseError("Empty SQL statement", sql=sql)

        masked = SQLParser._mask_quotes(sql)
        head = masked.upper().split(None, 2)
        first = head[0] if head else ""
        second = head[1] if len(head) > 1 else ""

        if first == "CREATE" and second == "TABLE":
            return SQLParser._parse_create_table(sql, masked)
        if first == "CREATE" and second == "INDEX":
            return SQLParser._parse_create_index(sql, masked)
        if first == "DROP" and second == "TABLE":
            return SQLParser._parse_drop_table(sql, masked)
        if first == "DROP" and second == "INDEX":
            return SQLParser._parse_drop_index(sql, masked)
        if first == "INSERT":
            return SQLParser._parse_insert(sql, masked)
        if first == "SELECT":
            return SQLParser._parse_select(sql, masked)
        if first == "UPDATE":
            return SQLParser._parse_update(sql, masked)
        if first == "DELETE":
            return SQLParser._parse_delete(sql, masked)

        raise ParseError(f"Unsupported SQL statement: {sql[:50]}", sql=sql)

    # =========================================================================
    # Lexical helpers
    # =========================================================================

    @staticmethod
    def _mask_quotes(sql: str) -> str:
        """
        Replace the contents of quoted literals with a placeholder.

        The result has the same length as ``sql`` so spans found in it can be
        used to slice the original text. Doubled quotes ('') and backslash
        escaped quotes stay inside the literal.
        """
        out = []
        quote = None
        i = 0
        n = len(sql)
        while i < n:
            char = sql[i]
            if quote is None:
                if char in _QUOTES:
                    quote = char
                out.append(char)
            elif char == "\\" and i + 1 < n and sql[i + 1] == quote:
                out.append(_MASK * 2)
                i += 1
            elif char == quote:
                if i + 1 < n and sql[i + 1] == quote:
                    out.append(_MASK * 2)
                    i += 1
                else:
                    quote = None
                    out.append(char)
            else:
                out.append(_MASK)
            i += 1

        if quote is not None:
            raise ParseError(f"Unterminated string literal: {sql}", sql=sql)
        return "".join(out)

    @staticmethod
    def _split_top_level(text: str, masked: str) -> List[str]:
        """Split on commas outside quotes and parentheses."""
        parts = []
        depth = 0
        start = 0
        for i, char in enumerate(masked):
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
                if depth < 0:
                    raise ParseError(f"Unbalanced parentheses: {text}", sql=text)
            elif char == "," and depth == 0:
                parts.append((start, i))
                start = i + 1
        if depth != 0:
            raise ParseError(f"Unbalanced parentheses: {text}", sql=text)
        parts.append((start, len(masked)))
        return [text[a:b].strip() for a, b in parts]

    @staticmethod
    def _span(sql: str, match: "re.Match", group: Union[int, str]) -> Tuple[str, str]:
        """(original text, masked text) of a group; empty strings if unmatched."""
        start, end = match.span(group)
        if start < 0:
            return "", ""
        return sql[start:end], match.string[start:end]

    @staticmethod
    def _ident_list(text: str, what: str) -> Tuple[str, ...]:
        names = tuple(part.strip() for part in text.split(","))
        for name in names:
            if not _IDENT_RE.fullmatch(name):
                raise ParseError(f"Invalid {what}: '{name}' in '{text}'", sql=text)
        return names

    # =========================================================================
    # DDL
    # =========================================================================

    @staticmethod
    def _parse_create_table(sql: str, masked: str) -> CreateTable:
        match = _CREATE_TABLE_RE.match(masked)
        if not match:
            raise ParseError(f"Invalid CREATE TABLE: {sql}", sql=sql)

        table = match.group(2)
        body, masked_body = SQLParser._span(sql, match, 3)

        columns: List[Column] = []
        primary_key = None
        table_pk = None

        col_defs = SQLParser._split_top_level(body, masked_body)
        masked_defs = SQLParser._split_top_level(masked_body, masked_body)

        for col_def, masked_def in zip(col_defs, masked_defs):
            if not col_def:
                raise ParseError(f"Empty column definition in: {sql}", sql=sql)

            # Table-level PRIMARY KEY(col)
            if re.match(r"PRIMARY\s+KEY\b", masked_def, re.IGNORECASE):
                pk_match = _TABLE_PK_RE.match(masked_def)
                if not pk_match:
                    raise ParseError(f"Invalid PRIMARY KEY clause: {col_def}", sql=sql)
                if table_pk is not None:
                    raise ParseError(f"Multiple PRIMARY KEY clauses: {sql}", sql=sql)
                table_pk = pk_match.group(1)
                continue

            columns.append(SQLParser._parse_column_def(col_def, masked_def, sql))

        if not columns:
            raise ParseError(f"CREATE TABLE needs at least one column: {sql}", sql=sql)

        names = [c.name for c in columns]
        if len(set(names)) != len(names):
            raise ParseError(f"Duplicate column name in: {sql}", sql=sql)

        inline_pks = [c.name for c in columns if c.primary_key]
        if len(inline_pks) > 1:
            raise ParseError(f"Multiple primary keys: {', '.join(inline_pks)}", sql=sql)
        if inline_pks:
            primary_key = inline_pks[0]

        if table_pk is not None:
            if table_pk not in names:
                raise ParseError(f"PRIMARY KEY column '{table_pk}' is not declared", sql=sql)
            if primary_key is not None and primary_key != table_pk:
                raise ParseError(f"Multiple primary keys: {primary_key}, {table_pk}", sql=sql)
            primary_key = table_pk
            for column in columns:
                if column.name == table_pk:
                    column.primary_key = True
                    column.nullable = False

        return CreateTable(
            table=table,
            columns=tuple(columns),
            primary_key=primary_key,
            if_not_exists=bool(match.group(1)),
        )

    @staticmethod
    def _parse_column_def(col_def: str, masked_def: str, sql: str) -> Column:
        """Parse: name TYPE[(n)] [PRIMARY KEY] [NOT NULL | NULL] [DEFAULT literal]"""
        match = _COLUMN_DEF_RE.match(masked_def)
        if not match:
            raise ParseError(f"Invalid column definition: {col_def}", sql=sql)

        is_pk = False
        nullable = True
        default = None

        rest_start = match.start(3)
        rest = match.group(3)
        pos = 0
        while pos < len(rest.rstrip()):
            constraint = _CONSTRAINT_RE.match(rest, pos)
            if not constraint:
                raise ParseError(
                    f"Unsupported column constraint '{col_def[rest_start + pos:].strip()}'"
                    f" in: {col_def}",
                    sql=sql,
                )
            if constraint.group("pk"):
                is_pk = True
            elif constraint.group("notnull"):
                nullable = False
            elif constraint.group("null"):
                nullable = True
            else:
                start, end = constraint.span("default")
                default = parse_value(col_def[rest_start + start:rest_start + end])
            pos = constraint.end()

        return Column(
            name=match.group(1),
            type=normalize_type(match.group(2)),
            nullable=nullable and not is_pk,
            primary_key=is_pk,
            default=default,
        )

    @staticmethod
    def _parse_drop_table(sql: str, masked: str) -> DropTable:
        match = _DROP_TABLE_RE.match(masked)
        if not match:
            raise ParseError(f"Invalid DROP TABLE: {sql}", sql=sql)
        return DropTable(table=match.group(2), if_exists=bool(match.group(1)))

    @staticmethod
    def _parse_create_index(sql: str, masked: str) -> CreateIndex:
        match = _CREATE_INDEX_RE.match(masked)
        if not match:
            raise ParseError(f"Invalid CREATE INDEX syntax: {sql}", sql=sql)
        return CreateIndex(
            index_name=match.group(2),
            table=match.group(3),
            column=match.group(4),
            if_not_exists=bool(match.group(1)),
        )

    @staticmethod
    def _parse_drop_index(sql: str, masked: str) -> DropIndex:
        match = _DROP_INDEX_RE.match(masked)
        if not match:
            raise ParseError(f"Invalid DROP INDEX syntax: {sql}", sql=sql)
        return DropIndex(
            index_name=match.group(2),
            table=match.group(3),
            if_exists=bool(match.group(1)),
        )

    # =========================================================================
    # DML
    # =========================================================================

    @staticmethod
    def _parse_insert(sql: str, masked: str) -> Insert:
        match = _INSERT_RE.match(masked)
        if not match:
            raise ParseError(f"Invalid INSERT: {sql}", sql=sql)

        columns = None
        if match.group(2) is not None:
            columns = SQLParser._ident_list(match.group(2), "column name")
            if len(set(columns)) != len(columns):
                raise ParseError(f"Duplicate column in INSERT: {sql}", sql=sql)

        values_text, masked_values = SQLParser._span(sql, match, 3)
        values = SQLParser._parse_values(values_text, masked_values)
        return Insert(table=match.group(1), columns=columns, values=values)

    @staticmethod
    def _parse_values(values_text: str, masked_values: str) -> Tuple[Any, ...]:
        """Parse the VALUES list. Commas inside quoted literals are not separators."""
        if not values_text.strip():
            raise ParseError("Empty VALUES list", sql=values_text)
        parts = SQLParser._split_top_level(values_text, masked_values)
        for part in parts:
            if not part:
                raise ParseError(f"Empty value in VALUES ({values_text})", sql=values_text)
        return tuple(parse_value(part) for part in parts)

    @staticmethod
    def _parse_select(sql: str, masked: str) -> Select:
        match = _SELECT_RE.match(masked)
        if not match:
            raise ParseError(f"Invalid SELECT: {sql}", sql=sql)

        items_text, masked_items = SQLParser._span(sql, match, "items")
        items: Tuple[SelectItem, ...] = ()
        if items_text.strip() != "*":
            parsed = []
            for item in SQLParser._split_top_level(items_text, masked_items):
                item_match = _SELECT_ITEM_RE.match(item)
                if not item_match:
                    raise ParseError(f"Unsupported select item '{item}' in: {sql}", sql=sql)
                parsed.append(SelectItem(column=item_match.group(1), alias=item_match.group(2)))
            items = tuple(parsed)

        where: Tuple[Condition, ...] = ()
        if match.group("where") is not None:
            where = SQLParser._parse_where(*SQLParser._span(sql, match, "where"))

        order: List[OrderItem] = []
        if match.group("order") is not None:
            order_text, masked_order = SQLParser._span(sql, match, "order")
            for part in SQLParser._split_top_level(order_text, masked_order):
                order_match = _ORDER_ITEM_RE.match(part)
                if not order_match:
                    raise ParseError(f"Invalid ORDER BY item '{part}' in: {sql}", sql=sql)
                direction = (order_match.group(2) or "ASC").upper()
                order.append(OrderItem(column=order_match.group(1), descending=direction == "DESC"))

        limit = int(match.group("limit")) if match.group("limit") else None
        offset = int(match.group("offset")) if match.group("offset") else None

        return Select(
            table=match.group("table"),
            items=items,
            where=where,
            order_by=tuple(order),
            limit=limit,
            offset=offset,
        )

    @staticmethod
    def _parse_where(where_text: str, masked_where: str) -> Tuple[Condition, ...]:
        """Parse an AND-only WHERE clause into conditions."""
        if _OR_RE.search(masked_where):
            raise ParseError(f"OR is not supported in WHERE: {where_text}", sql=where_text)
        if "(" in masked_where or ")" in masked_where:
            raise ParseError(f"Parentheses are not supported in WHERE: {where_text}", sql=where_text)
        if _BARE_NOT_RE.search(masked_where):
            raise ParseError(f"NOT is only supported as NOT LIKE: {where_text}", sql=where_text)

        bounds = []
        start = 0
        for sep in _AND_RE.finditer(masked_where):
            bounds.append((start, sep.start()))
            start = sep.end()
        bounds.append((start, len(masked_where)))

        conditions = []
        for a, b in bounds:
            part = where_text[a:b].strip()
            masked_part = masked_where[a:b].strip()
            match = _CONDITION_RE.match(masked_part)
            if not match:
                raise ParseError(f"Invalid WHERE condition: '{part}'", sql=where_text)

            op = " ".join(match.group(2).upper().split())
            if op == "<>":
                op = "!="
            value_start, value_end = match.span(3)
            masked_value = masked_part[value_start:value_end].strip()
            if masked_value[:1] in _QUOTES:
                close = masked_value.index(masked_value[0], 1)
                trailing = masked_value[close + 1:].strip()
            else:
                trailing = " ".join(masked_value.split()[1:])
            if trailing:
                raise ParseError(f"Unexpected text after literal in: '{part}'", sql=where_text)
            value = parse_value(part[value_start:value_end])
            conditions.append(Condition(column=match.group(1), op=op, value=value))

        return tuple(conditions)

    @staticmethod
    def _parse_update(sql: str, masked: str) -> Update:
        match = _UPDATE_RE.match(masked)
        if not match:
            raise ParseError(f"Invalid UPDATE: {sql}", sql=sql)

        set_text, masked_set = SQLParser._span(sql, match, 2)
        assignments = []
        seen = set()
        for part, masked_part in zip(
            SQLParser._split_top_level(set_text, masked_set),
            SQLParser._split_top_level(masked_set, masked_set),
        ):
            eq_match = _ASSIGNMENT_RE.match(masked_part)
            if not eq_match:
                raise ParseError(f"Invalid SET item '{part}' in: {sql}", sql=sql)
            column = eq_match.group(1)
            if column in seen:
                raise ParseError(f"Column '{column}' assigned twice in: {sql}", sql=sql)
            seen.add(column)

            expr_start, expr_end = eq_match.span(2)
            expr = part[expr_start:expr_end].strip()
            assignments.append(SQLParser._parse_assignment(column, expr, sql))

        where: Tuple[Condition, ...] = ()
        if match.group(3) is not None:
            where = SQLParser._parse_where(*SQLParser._span(sql, match, 3))

        return Update(table=match.group(1), assignments=tuple(assignments), where=where)

    @staticmethod
    def _parse_assignment(column: str, expr: str, sql: str) -> Assignment:
        arith = _ARITHMETIC_RE.match(expr)
        if arith:
            if arith.group(1) != column:
                raise ParseError(
                    f"Arithmetic in SET must reference the assigned column: {column} = {expr}",
                    sql=sql,
                )
            return Assignment(column=column, value=parse_value(arith.group(3)), operator=arith.group(2))
        return Assignment(column=column, value=parse_value(expr))

    @staticmethod
    def _parse_delete(sql: str, masked: str) -> Delete:
        match = _DELETE_RE.match(masked)
        if not match:
            raise ParseError(f"Invalid DELETE: {sql}", sql=sql)

        where: Tuple[Condition, ...] = ()
        if match.group(2) is not None:
            where = SQLParser._parse_where(*SQLParser._span(sql, match, 2))

        return Delete(table=match.group(1), where=where)


__all__ = [
    "SQLParser",
    "StatementKind",
    "Statement",
    "CreateTable",
    "DropTable",
    "CreateIndex",
    "DropIndex",
    "Insert",
    "Select",
    "Update",
    "Delete",
    "Condition",
    "OrderItem",
    "SelectItem",
    "Assignment",
]
