"""
Schema-driven data access for category tables.

The table behind a category is only known at runtime, so every statement
is built from a live ``ColumnSet`` and bound parameters.
"""

from .columns import ColumnDescriptor, ColumnSet, SEARCH_MODE_NAME, SEARCH_MODE_TEXT
from .errors import (
    CategoryNotFound,
    CategoryUnconfigured,
    DataAccessError,
    DatabaseError,
    HeaderCollision,
    NoValidFields,
    RecordNotFound,
    SpreadsheetError,
    TableNotFound,
    UnknownColumn,
    UploadTooLarge,
)
from .introspector import KeyMetadata, SchemaIntrospector
from .query_builder import BuiltQuery, DynamicQueryBuilder, QuerySpec, UpsertTemplate
from .resolver import CategoryResolver, ResolvedCategory
from .row_engine import RowAccessEngine
from .service import DynamicDataService
from .spreadsheet import HeaderMapping, UpsertBatch, parse_spreadsheet, sanitize_column_name
from .upsert_engine import SpreadsheetUpsertEngine, UpsertPlan

__all__ = [
    "BuiltQuery",
    "CategoryNotFound",
    "CategoryResolver",
    "CategoryUnconfigured",
    "ColumnDescriptor",
    "ColumnSet",
    "DataAccessError",
    "DatabaseError",
    "DynamicDataService",
    "DynamicQueryBuilder",
    "HeaderCollision",
    "HeaderMapping",
    "KeyMetadata",
    "NoValidFields",
    "QuerySpec",
    "RecordNotFound",
    "ResolvedCategory",
    "RowAccessEngine",
    "SEARCH_MODE_NAME",
    "SEARCH_MODE_TEXT",
    "SchemaIntrospector",
    "SpreadsheetError",
    "SpreadsheetUpsertEngine",
    "TableNotFound",
    "UnknownColumn",
    "UploadTooLarge",
    "UpsertBatch",
    "UpsertPlan",
    "UpsertTemplate",
    "parse_spreadsheet",
    "sanitize_column_name",
]
