"""
Schema Introspector

Reads a table's live column set and key constraints from PostgreSQL's
information_schema. Nothing is cached: tables are created and altered
out-of-band between requests, so every call reflects the catalog as it is.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portallib.config import settings

from .columns import ColumnDescriptor, ColumnSet
from .errors import DatabaseError, TableNotFound

logger = logging.getLogger(__name__)


TABLE_EXISTS_SQL = text(
    """
    SELECT EXISTS (
        SELECT 1 FROM information_schema.tables
        WHERE table_schema = :schema
        AND table_name = :table
    )
    """
)

COLUMNS_SQL = text(
    """
    SELECT
        column_name,
        data_type,
        is_nullable,
        column_default,
        character_maximum_length,
        numeric_precision,
        numeric_scale,
        udt_name
    FROM information_schema.columns
    WHERE table_schema = :schema
    AND table_name = :table
    ORDER BY ordinal_position
    """
)

KEY_CONSTRAINTS_SQL = text(
    """
    SELECT
        tc.constraint_name,
        tc.constraint_type,
        kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
        AND tc.table_name = kcu.table_name
    WHERE tc.table_schema = :schema
    AND tc.table_name = :table
    AND tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE')
    ORDER BY tc.constraint_type, tc.constraint_name, kcu.ordinal_position
    """
)


@dataclass
class KeyMetadata:
    """Formal key constraints of a table, columns in constraint order."""

    primary_key: Tuple[str, ...] = ()
    unique: List[Tuple[str, ...]] = field(default_factory=list)

    @property
    def has_formal_key(self) -> bool:
        return bool(self.primary_key or self.unique)

    def candidates(self) -> List[Tuple[str, ...]]:
        """Primary key first, then unique constraints."""
        keys = [self.primary_key] if self.primary_key else []
        return keys + list(self.unique)


class SchemaIntrospector:
    """
    Live catalog reader for one schema.

    Args:
        schema: Schema to inspect (defaults to settings.database_schema)
    """

    def __init__(self, schema: Optional[str] = None):
        self.schema = schema or settings.database_schema

    async def table_exists(self, db: AsyncSession, table_name: str) -> bool:
        try:
            result = await db.execute(
                TABLE_EXISTS_SQL, {"schema": self.schema, "table": table_name}
            )
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to check table existence: {e}", table=table_name, original=e
            ) from e
        return bool(result.scalar())

    async def columns(self, db: AsyncSession, table_name: str) -> ColumnSet:
        """
        Discover the ordered column set of a table.

        Raises:
            TableNotFound: If the table is absent from the catalog
            DatabaseError: If the catalog query fails
        """
        if not await self.table_exists(db, table_name):
            raise TableNotFound(
                f"Data table '{table_name}' does not exist", table=table_name
            )

        try:
            result = await db.execute(
                COLUMNS_SQL, {"schema": self.schema, "table": table_name}
            )
            rows = result.mappings().all()
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to read columns: {e}", table=table_name, original=e
            ) from e

        descriptors = [
            ColumnDescriptor(
                name=row["column_name"],
                sql_type=row["data_type"],
                nullable=row["is_nullable"] == "YES",
                max_length=row["character_maximum_length"],
                numeric_precision=row["numeric_precision"],
                numeric_scale=row["numeric_scale"],
                default_value=row["column_default"],
                udt_name=row["udt_name"],
            )
            for row in rows
        ]
        logger.debug(f"Introspected {len(descriptors)} columns for table {table_name}")
        return ColumnSet(table_name, descriptors, schema=self.schema)

    async def key_columns(self, db: AsyncSession, table_name: str) -> KeyMetadata:
        """Read primary key and unique constraints of a table."""
        try:
            result = await db.execute(
                KEY_CONSTRAINTS_SQL, {"schema": self.schema, "table": table_name}
            )
            rows = result.mappings().all()
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to read key constraints: {e}", table=table_name, original=e
            ) from e

        primary: List[str] = []
        unique: dict = {}
        for row in rows:
            if row["constraint_type"] == "PRIMARY KEY":
                primary.append(row["column_name"])
            else:
                unique.setdefault(row["constraint_name"], []).append(row["column_name"])

        return KeyMetadata(
            primary_key=tuple(primary),
            unique=[tuple(cols) for cols in unique.values()],
        )
