"""
Spreadsheet Upsert Engine

Writes an ``UpsertBatch`` into an existing category table:

1. Reconcile headers against the live column set.
2. Pick the conflict key: primary key, then a unique constraint, then (only
   for tables with no formal key) the id / sap_field_name / db_field_name
   name heuristic. Without a usable key the batch is inserted.
3. Execute one INSERT ... ON CONFLICT per row, in groups, on an
   autocommit session.

The batch is not atomic. Rows executed before a failing row stay
committed; the failing row and everything after it are not applied.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portallib.config import settings

from .columns import ColumnSet
from .errors import DatabaseError
from .introspector import KeyMetadata, SchemaIntrospector
from .query_builder import DynamicQueryBuilder, UpsertTemplate
from .row_engine import RowAccessEngine
from .spreadsheet import HeaderMapping, UpsertBatch, mapped_only, reconcile_headers

logger = logging.getLogger(__name__)

HEURISTIC_KEYS = ("id", "sap_field_name", "db_field_name")

MODE_UPSERT = "upsert"
MODE_INSERT = "insert"


@dataclass
class UpsertPlan:
    """How a batch will be written: mapped headers, conflict key and mode."""

    mappings: List[HeaderMapping]
    key_columns: Tuple[str, ...] = ()
    key_source: Optional[str] = None
    template: Optional[UpsertTemplate] = None
    mapped: List[HeaderMapping] = field(default_factory=list)

    @property
    def mode(self) -> str:
        return MODE_UPSERT if self.key_columns else MODE_INSERT

    @property
    def unmapped_headers(self) -> List[str]:
        return [m.header for m in self.mappings if m.column is None]


def select_key(keys: KeyMetadata, mapped_columns: Sequence[str]) -> Tuple[Tuple[str, ...], Optional[str]]:
    """
    Choose the conflict target among the mapped columns.

    Returns:
        (key columns, source) where source is "primary_key", "unique",
        "heuristic" or None for insert-only
    """
    available = set(mapped_columns)

    if keys.primary_key and available.issuperset(keys.primary_key):
        return tuple(keys.primary_key), "primary_key"

    for unique in keys.unique:
        if available.issuperset(unique):
            return tuple(unique), "unique"

    if not keys.has_formal_key:
        for name in HEURISTIC_KEYS:
            if name in available:
                return (name,), "heuristic"

    return (), None


class SpreadsheetUpsertEngine:
    """
    Bulk insert-or-update of spreadsheet rows into a discovered table.

    Args:
        introspector: Catalog reader for columns and key constraints
        builder: Query builder for the per-row statement
        group_size: Rows per group (defaults to settings.upsert_group_size)
    """

    def __init__(
        self,
        introspector: Optional[SchemaIntrospector] = None,
        builder: Optional[DynamicQueryBuilder] = None,
        group_size: Optional[int] = None,
    ):
        self.introspector = introspector or SchemaIntrospector()
        self.builder = builder or DynamicQueryBuilder()
        self.rows = RowAccessEngine(self.builder)
        self.group_size = group_size or settings.upsert_group_size

    def plan(self, columns: ColumnSet, keys: KeyMetadata, headers: Sequence[str]) -> UpsertPlan:
        mappings = reconcile_headers(headers, columns)
        mapped = mapped_only(mappings, table=columns.table)
        target_columns = [m.column for m in mapped]

        key_columns, source = select_key(keys, target_columns)
        if source == "heuristic":
            logger.warning(
                f"Table {columns.table} has no primary key or unique constraint; "
                f"using '{key_columns[0]}' as conflict key by name"
            )
        elif source is None:
            logger.info(f"No usable key for {columns.table}; rows will be inserted")

        template = self.builder.build_upsert(columns, target_columns, key_columns)
        return UpsertPlan(
            mappings=mappings,
            key_columns=key_columns,
            key_source=source,
            template=template,
            mapped=mapped,
        )

    async def _write_rows(
        self,
        db: AsyncSession,
        table: str,
        plan: UpsertPlan,
        rows: Sequence[Sequence[Any]],
    ) -> int:
        processed = 0
        for start in range(0, len(rows), self.group_size):
            group = rows[start:start + self.group_size]
            for offset, row in enumerate(group):
                row_number = start + offset + 1
                values = [row[m.position] for m in plan.mapped]
                query = plan.template.bind(values)
                try:
                    await db.execute(query.statement(), query.params)
                except SQLAlchemyError as e:
                    logger.error(
                        f"Upsert into {table} failed at row {row_number} "
                        f"after {processed} rows: {e}"
                    )
                    raise DatabaseError(
                        f"Failed to upsert row {row_number}: {e}",
                        table=table,
                        original=e,
                    ) from e
                processed += 1
            logger.debug(f"Upserted rows {start + 1}-{start + len(group)} into {table}")
        return processed

    async def upsert(self, db: AsyncSession, table_name: str, batch: UpsertBatch) -> Dict[str, Any]:
        """
        Write a batch into table_name and report the outcome.

        Args:
            db: Autocommit session (each statement is durable on return)
            table_name: Resolved destination table
            batch: Parsed spreadsheet

        Returns:
            Dict with tableName, rowCount (post-upsert COUNT(*)), headers,
            processedRows, keyColumns, mode and unmappedHeaders
        """
        columns = await self.introspector.columns(db, table_name)
        keys = await self.introspector.key_columns(db, table_name)
        plan = self.plan(columns, keys, batch.headers)

        if plan.unmapped_headers:
            logger.warning(
                f"Skipping {len(plan.unmapped_headers)} unmapped headers for "
                f"{table_name}: {plan.unmapped_headers}"
            )

        processed = await self._write_rows(db, table_name, plan, batch.rows)
        row_count = await self.rows.row_count(db, columns)
        logger.info(
            f"Upsert into {table_name} finished: {processed} rows processed "
            f"({plan.mode}, key={list(plan.key_columns)}), table now has {row_count} rows"
        )

        return {
            "tableName": table_name,
            "rowCount": row_count,
            "headers": batch.headers,
            "processedRows": processed,
            "keyColumns": list(plan.key_columns),
            "mode": plan.mode,
            "unmappedHeaders": plan.unmapped_headers,
        }
