"""
Dynamic Query Builder

Builds parameterized SQL for tables that are only known at runtime.

Two rules hold for every statement produced here:
- Values never appear in SQL text. They are bound as ``:p1, :p2, ...`` in
  the same order as ``BuiltQuery.args``.
- Identifiers only come from a ``ColumnSet``; a name that is not in the
  set raises ``UnknownColumn`` instead of being interpolated.

Values written to typed columns are bound as text and cast in SQL to the
column's catalog type, so PostgreSQL performs the conversion and reports
mismatches itself.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field
from sqlalchemy import TextClause, text

from .columns import ColumnSet, SEARCH_MODE_NAME
from .errors import NoValidFields

SORT_ORDERS = ("ASC", "DESC")
KEY_COLUMN = "id"


@dataclass
class BuiltQuery:
    """SQL text plus positional arguments bound as :p1..:pN."""

    sql: str
    args: List[Any] = field(default_factory=list)

    @property
    def params(self) -> Dict[str, Any]:
        return {f"p{i}": value for i, value in enumerate(self.args, start=1)}

    def statement(self) -> TextClause:
        return text(self.sql)


@dataclass
class UpsertTemplate:
    """One INSERT ... ON CONFLICT statement reused for every row of a batch."""

    sql: str
    columns: Tuple[str, ...]
    key_columns: Tuple[str, ...]

    def bind(self, values: Sequence[Any]) -> BuiltQuery:
        return BuiltQuery(self.sql, [to_sql_text(v) for v in values])


class QuerySpec(BaseModel):
    """Caller-supplied read parameters, validated against a ColumnSet before use."""

    search: str = ""
    sort_by: Optional[str] = None
    sort_order: str = "ASC"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def to_sql_text(value: Any) -> Optional[str]:
    """
    Render a Python value as the text PostgreSQL will cast from.

    None and NaN become NULL; integral floats lose their ``.0`` so they cast
    into integer columns.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class DynamicQueryBuilder:
    """Stateless builder of parameterized statements over a ColumnSet."""

    def _cast(self, columns: ColumnSet, name: str, placeholder: str) -> str:
        column = columns.require(name)
        return f"CAST(CAST({placeholder} AS text) AS {column.cast_type})"

    def _select_list(self, columns: ColumnSet) -> str:
        if not len(columns):
            return "*"
        return ", ".join(columns.quote(name) for name in columns.names)

    def _search_clause(
        self,
        columns: ColumnSet,
        search: str,
        mode: str,
        start: int = 1,
    ) -> Tuple[str, List[Any]]:
        """
        Build ``WHERE c1 ILIKE :p OR c2 ILIKE :p ...`` for the search term.

        Returns an empty clause when the term is blank or no column is
        searchable.
        """
        term = (search or "").strip()
        if not term:
            return "", []
        searchable = columns.searchable(mode)
        if not searchable:
            return "", []

        clauses = [
            f"CAST({columns.quote(name)} AS text) ILIKE :p{start + i}"
            for i, name in enumerate(searchable)
        ]
        return "WHERE " + " OR ".join(clauses), [f"%{term}%"] * len(searchable)

    def resolve_sort(self, columns: ColumnSet, spec: QuerySpec) -> Tuple[Optional[str], str]:
        """
        Validate sort parameters against the column set.

        Unknown columns fall back to the default sort column; anything but
        ASC/DESC (case-insensitive) falls back to ASC.
        """
        sort_by = spec.sort_by if spec.sort_by in columns else columns.default_sort_column()
        order = (spec.sort_order or "").strip().upper()
        if order not in SORT_ORDERS:
            order = "ASC"
        return sort_by, order

    def build_count(
        self,
        columns: ColumnSet,
        search: str = "",
        mode: str = SEARCH_MODE_NAME,
    ) -> BuiltQuery:
        where, args = self._search_clause(columns, search, mode)
        sql = f"SELECT COUNT(*) AS total FROM {columns.quoted_table}"
        if where:
            sql = f"{sql} {where}"
        return BuiltQuery(sql, args)

    def build_select(
        self,
        columns: ColumnSet,
        spec: QuerySpec,
        mode: str = SEARCH_MODE_NAME,
        order_by: Optional[str] = None,
        order: Optional[str] = None,
    ) -> BuiltQuery:
        """
        Build the paged SELECT for a query spec.

        ``order_by``/``order`` override the QuerySpec's (already validated) sort,
        e.g. newest-first listings.
        """
        where, args = self._search_clause(columns, spec.search, mode)
        sort_by, sort_order = self.resolve_sort(columns, spec)
        if order_by is not None:
            sort_by = order_by
            sort_order = order if order in SORT_ORDERS else "ASC"

        parts = [f"SELECT {self._select_list(columns)} FROM {columns.quoted_table}"]
        if where:
            parts.append(where)
        if sort_by is not None:
            parts.append(f"ORDER BY {columns.quote(sort_by)} {sort_order}")

        n = len(args)
        parts.append(f"LIMIT :p{n + 1} OFFSET :p{n + 2}")
        return BuiltQuery(" ".join(parts), args + [spec.limit, spec.offset])

    def build_row_count(self, columns: ColumnSet) -> BuiltQuery:
        return BuiltQuery(f"SELECT COUNT(*) AS total FROM {columns.quoted_table}")

    def _valid_payload(self, columns: ColumnSet, payload: Mapping[str, Any]) -> List[str]:
        keys = columns.pick(payload.keys())
        if not keys:
            raise NoValidFields("No valid data provided", table=columns.table)
        return keys

    def build_insert(self, columns: ColumnSet, payload: Mapping[str, Any]) -> BuiltQuery:
        """INSERT the payload keys that are columns; RETURNING the full row."""
        keys = self._valid_payload(columns, payload)
        names = ", ".join(columns.quote(k) for k in keys)
        values = ", ".join(self._cast(columns, k, f":p{i}") for i, k in enumerate(keys, start=1))
        sql = (
            f"INSERT INTO {columns.quoted_table} ({names}) VALUES ({values}) "
            f"RETURNING {self._select_list(columns)}"
        )
        return BuiltQuery(sql, [to_sql_text(payload[k]) for k in keys])

    def build_update(
        self,
        columns: ColumnSet,
        key_value: Any,
        payload: Mapping[str, Any],
    ) -> BuiltQuery:
        """UPDATE by ``id``; the key is :p1 and the new values follow."""
        key = columns.quote(KEY_COLUMN)
        keys = self._valid_payload(columns, payload)
        assignments = ", ".join(
            f"{columns.quote(k)} = {self._cast(columns, k, f':p{i}')}"
            for i, k in enumerate(keys, start=2)
        )
        sql = (
            f"UPDATE {columns.quoted_table} SET {assignments} "
            f"WHERE {key} = {self._cast(columns, KEY_COLUMN, ':p1')} "
            f"RETURNING {self._select_list(columns)}"
        )
        args = [to_sql_text(key_value)] + [to_sql_text(payload[k]) for k in keys]
        return BuiltQuery(sql, args)

    def build_delete(self, columns: ColumnSet, key_value: Any) -> BuiltQuery:
        key = columns.quote(KEY_COLUMN)
        sql = (
            f"DELETE FROM {columns.quoted_table} "
            f"WHERE {key} = {self._cast(columns, KEY_COLUMN, ':p1')} "
            f"RETURNING {self._select_list(columns)}"
        )
        return BuiltQuery(sql, [to_sql_text(key_value)])

    def build_upsert(
        self,
        columns: ColumnSet,
        target_columns: Sequence[str],
        key_columns: Sequence[str] = (),
    ) -> UpsertTemplate:
        """
        Build the per-row upsert statement.

        With key columns: ``ON CONFLICT (key) DO UPDATE SET`` every other
        target column from EXCLUDED (``DO NOTHING`` if there is none).
        Without key columns: a plain INSERT.
        """
        targets = list(target_columns)
        if not targets:
            raise NoValidFields("No valid data provided", table=columns.table)
        for key in key_columns:
            if key not in targets:
                raise ValueError(f"Key column '{key}' is not among the target columns")

        names = ", ".join(columns.quote(c) for c in targets)
        values = ", ".join(
            self._cast(columns, c, f":p{i}") for i, c in enumerate(targets, start=1)
        )
        sql = f"INSERT INTO {columns.quoted_table} ({names}) VALUES ({values})"

        if key_columns:
            conflict = ", ".join(columns.quote(k) for k in key_columns)
            updates = [c for c in targets if c not in key_columns]
            if updates:
                assignments = ", ".join(
                    f"{columns.quote(c)} = EXCLUDED.{columns.quote(c)}" for c in updates
                )
                sql = f"{sql} ON CONFLICT ({conflict}) DO UPDATE SET {assignments}"
            else:
                sql = f"{sql} ON CONFLICT ({conflict}) DO NOTHING"

        return UpsertTemplate(sql=sql, columns=tuple(targets), key_columns=tuple(key_columns))
