"""
Row Access Engine

Executes statements from the Dynamic Query Builder against one unit of
work and shapes the results. No retries and no caching; driver failures
are wrapped into DatabaseError with the table name attached.
"""

import logging
import math
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .columns import ColumnSet, SEARCH_MODE_NAME
from .errors import DatabaseError, RecordNotFound
from .query_builder import BuiltQuery, DynamicQueryBuilder, QuerySpec

logger = logging.getLogger(__name__)


def paginate(page: int, limit: int, total: int) -> Dict[str, Any]:
    """Pagination block for a page of ``limit`` rows out of ``total``."""
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        "totalRecords": total,
        "limit": limit,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }


class RowAccessEngine:
    """
    Run built statements and return plain dict rows.

    Args:
        builder: Query builder (a default one is created when omitted)
    """

    def __init__(self, builder: Optional[DynamicQueryBuilder] = None):
        self.builder = builder or DynamicQueryBuilder()

    async def _execute(self, db: AsyncSession, query: BuiltQuery, table: str):
        try:
            return await db.execute(query.statement(), query.params)
        except SQLAlchemyError as e:
            logger.error(f"Query failed on table {table}: {e}")
            raise DatabaseError(
                f"Database operation failed: {e}", table=table, original=e
            ) from e

    async def _fetch_all(self, db: AsyncSession, query: BuiltQuery, table: str) -> List[Dict[str, Any]]:
        result = await self._execute(db, query, table)
        return [dict(row) for row in result.mappings().all()]

    async def _fetch_one(self, db: AsyncSession, query: BuiltQuery, table: str) -> Optional[Dict[str, Any]]:
        result = await self._execute(db, query, table)
        row = result.mappings().first()
        return dict(row) if row is not None else None

    async def count(
        self,
        db: AsyncSession,
        columns: ColumnSet,
        search: str = "",
        mode: str = SEARCH_MODE_NAME,
    ) -> int:
        """Rows matching the search predicate."""
        query = self.builder.build_count(columns, search, mode)
        result = await self._execute(db, query, columns.table)
        return int(result.scalar() or 0)

    async def row_count(self, db: AsyncSession, columns: ColumnSet) -> int:
        """Unfiltered COUNT(*) of the table."""
        result = await self._execute(db, self.builder.build_row_count(columns), columns.table)
        return int(result.scalar() or 0)

    async def list_rows(
        self,
        db: AsyncSession,
        columns: ColumnSet,
        spec: QuerySpec,
        mode: str = SEARCH_MODE_NAME,
        order_by: Optional[str] = None,
        order: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Read one page of rows.

        Returns:
            Dict with rows, columns (names), pagination, search and sort
        """
        total = await self.count(db, columns, spec.search, mode)
        query = self.builder.build_select(columns, spec, mode, order_by=order_by, order=order)
        rows = await self._fetch_all(db, query, columns.table)

        sort_by, sort_order = self.builder.resolve_sort(columns, spec)
        if order_by is not None:
            sort_by, sort_order = order_by, order or "ASC"

        return {
            "rows": rows,
            "columns": columns.names,
            "pagination": paginate(spec.page, spec.limit, total),
            "search": spec.search or "",
            "sort": {"by": sort_by, "order": sort_order},
        }

    async def insert(
        self,
        db: AsyncSession,
        columns: ColumnSet,
        payload: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Insert one row and return it as stored."""
        query = self.builder.build_insert(columns, payload)
        row = await self._fetch_one(db, query, columns.table)
        logger.info(f"Inserted row into {columns.table}")
        return row or {}

    async def update_by_id(
        self,
        db: AsyncSession,
        columns: ColumnSet,
        key_value: Any,
        payload: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """
        Update the row whose ``id`` equals key_value.

        Raises:
            RecordNotFound: If no row has that id
        """
        query = self.builder.build_update(columns, key_value, payload)
        row = await self._fetch_one(db, query, columns.table)
        if row is None:
            raise RecordNotFound("Record not found", table=columns.table)
        logger.info(f"Updated row id={key_value} in {columns.table}")
        return row

    async def delete_by_id(
        self,
        db: AsyncSession,
        columns: ColumnSet,
        key_value: Any,
    ) -> Dict[str, Any]:
        """
        Delete the row whose ``id`` equals key_value and return it.

        Raises:
            RecordNotFound: If no row has that id
        """
        query = self.builder.build_delete(columns, key_value)
        row = await self._fetch_one(db, query, columns.table)
        if row is None:
            raise RecordNotFound("Record not found", table=columns.table)
        logger.info(f"Deleted row id={key_value} from {columns.table}")
        return row
