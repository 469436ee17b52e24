"""
Dynamic Data Service

Request-scoped facade used by the HTTP layer. Each public method acquires
exactly one unit of work from the injected ``Database`` handle and chains
Category Resolver -> Schema Introspector -> Query Builder -> Row Engine.

Usage:
    from portallib.database import get_database
    from portallib.dynamic import DynamicDataService, QuerySpec

    service = DynamicDataService(get_database())
    page = await service.list_rows("Groups", QuerySpec(page=2, limit=10))
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Mapping, Optional

from portallib.database import Database

from .columns import SEARCH_MODE_NAME, SEARCH_MODE_TEXT
from .errors import DataAccessError
from .introspector import SchemaIntrospector
from .query_builder import DynamicQueryBuilder, QuerySpec
from .resolver import CategoryResolver
from .row_engine import RowAccessEngine
from .spreadsheet import parse_spreadsheet
from .upsert_engine import SpreadsheetUpsertEngine

logger = logging.getLogger(__name__)

NEWEST_FIRST_COLUMN = "created_at"


@contextmanager
def _category_context(label: str):
    """Attach the category label to any data error raised inside."""
    try:
        yield
    except DataAccessError as e:
        if e.category is None:
            e.category = label
        raise


class DynamicDataService:
    """
    Generic, schema-driven access to category data tables.

    Args:
        database: Pool handle; one session (or autocommit session) per call
        resolver: Category label -> table resolver
        introspector: Live catalog reader
        engine: Row access engine
        upsert_engine: Spreadsheet upsert engine
    """

    def __init__(
        self,
        database: Database,
        resolver: Optional[CategoryResolver] = None,
        introspector: Optional[SchemaIntrospector] = None,
        engine: Optional[RowAccessEngine] = None,
        upsert_engine: Optional[SpreadsheetUpsertEngine] = None,
    ):
        self.database = database
        self.resolver = resolver or CategoryResolver()
        self.introspector = introspector or SchemaIntrospector()
        self.engine = engine or RowAccessEngine(DynamicQueryBuilder())
        self.upsert_engine = upsert_engine or SpreadsheetUpsertEngine(
            introspector=self.introspector, builder=self.engine.builder
        )

    # ------------------------------------------------------------------
    # Category-keyed CRUD
    # ------------------------------------------------------------------

    async def list_rows(self, label: str, spec: QuerySpec) -> Dict[str, Any]:
        with _category_context(label):
            async with self.database.session() as db:
                category = await self.resolver.resolve(db, label)
                columns = await self.introspector.columns(db, category.table_name)
                page = await self.engine.list_rows(db, columns, spec, SEARCH_MODE_NAME)

        return {
            "category": label,
            "tableName": category.table_name,
            "columns": page["columns"],
            "data": page["rows"],
            "pagination": page["pagination"],
            "search": page["search"],
            "sort": page["sort"],
        }

    async def describe_columns(self, label: str) -> Dict[str, Any]:
        with _category_context(label):
            async with self.database.session() as db:
                category = await self.resolver.resolve(db, label)
                columns = await self.introspector.columns(db, category.table_name)

        return {
            "category": label,
            "tableName": category.table_name,
            "columns": [c.to_api() for c in columns],
        }

    async def insert_row(self, label: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        with _category_context(label):
            async with self.database.session() as db:
                category = await self.resolver.resolve(db, label)
                columns = await self.introspector.columns(db, category.table_name)
                row = await self.engine.insert(db, columns, payload)

        return {"category": label, "tableName": category.table_name, "insertedData": row}

    async def update_row(self, label: str, key_value: Any, payload: Mapping[str, Any]) -> Dict[str, Any]:
        with _category_context(label):
            async with self.database.session() as db:
                category = await self.resolver.resolve(db, label)
                columns = await self.introspector.columns(db, category.table_name)
                row = await self.engine.update_by_id(db, columns, key_value, payload)

        return {"category": label, "tableName": category.table_name, "updatedData": row}

    async def delete_row(self, label: str, key_value: Any) -> Dict[str, Any]:
        with _category_context(label):
            async with self.database.session() as db:
                category = await self.resolver.resolve(db, label)
                columns = await self.introspector.columns(db, category.table_name)
                row = await self.engine.delete_by_id(db, columns, key_value)

        return {"category": label, "tableName": category.table_name, "deletedData": row}

    # ------------------------------------------------------------------
    # Table-keyed and upload views
    # ------------------------------------------------------------------

    async def list_table_rows(self, table_name: str, spec: QuerySpec) -> Dict[str, Any]:
        """Read a table addressed by name; search covers text columns only."""
        async with self.database.session() as db:
            columns = await self.introspector.columns(db, table_name)
            page = await self.engine.list_rows(db, columns, spec, SEARCH_MODE_TEXT)

        pagination = page["pagination"]
        return {
            "tableName": table_name,
            "data": page["rows"],
            "columns": [
                {"name": c.name, "type": c.sql_type, "nullable": c.nullable}
                for c in columns
            ],
            "pagination": {
                "page": pagination["currentPage"],
                "limit": pagination["limit"],
                "totalCount": pagination["totalRecords"],
                "totalPages": pagination["totalPages"],
                "hasNext": pagination["hasNext"],
                "hasPrev": pagination["hasPrev"],
            },
        }

    async def table_schema(self, label: str) -> Dict[str, Any]:
        """Column list and row count of a category's table, if it exists."""
        with _category_context(label):
            async with self.database.session() as db:
                category = await self.resolver.resolve(db, label)
                if not await self.introspector.table_exists(db, category.table_name):
                    return {
                        "exists": False,
                        "tableName": category.table_name,
                        "columns": [],
                        "rowCount": 0,
                    }
                columns = await self.introspector.columns(db, category.table_name)
                row_count = await self.engine.row_count(db, columns)

        return {
            "exists": True,
            "tableName": category.table_name,
            "columns": [c.to_api() for c in columns],
            "rowCount": row_count,
        }

    async def table_data(self, label: str, page: int = 1, limit: int = 50) -> Dict[str, Any]:
        """Newest-first page of a category's table, if it exists."""
        spec = QuerySpec(page=page, limit=limit)
        with _category_context(label):
            async with self.database.session() as db:
                category = await self.resolver.resolve(db, label)
                if not await self.introspector.table_exists(db, category.table_name):
                    return {
                        "exists": False,
                        "tableName": category.table_name,
                        "data": [],
                        "totalCount": 0,
                        "page": page,
                        "limit": limit,
                        "totalPages": 0,
                    }
                columns = await self.introspector.columns(db, category.table_name)
                if NEWEST_FIRST_COLUMN in columns:
                    result = await self.engine.list_rows(
                        db, columns, spec, order_by=NEWEST_FIRST_COLUMN, order="DESC"
                    )
                else:
                    result = await self.engine.list_rows(db, columns, spec)

        pagination = result["pagination"]
        return {
            "exists": True,
            "tableName": category.table_name,
            "data": result["rows"],
            "totalCount": pagination["totalRecords"],
            "page": page,
            "limit": limit,
            "totalPages": pagination["totalPages"],
        }

    async def upload_spreadsheet(
        self,
        label: str,
        content: bytes,
        filename: str,
        max_bytes: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Parse an upload and upsert it into the category's table.

        Parsing happens before any connection is acquired; the write runs on
        a single autocommit session.
        """
        with _category_context(label):
            batch = parse_spreadsheet(content, filename, max_bytes=max_bytes)
            logger.info(
                f"Uploading {len(batch.rows)} rows from {filename} for category '{label}'"
            )
            async with self.database.autocommit() as db:
                category = await self.resolver.resolve(db, label)
                return await self.upsert_engine.upsert(db, category.table_name, batch)
