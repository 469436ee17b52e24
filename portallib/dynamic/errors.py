"""
Exceptions for the dynamic data layer.

Every error carries the HTTP status it maps to plus optional table and
category context. The gateway renders them into the response envelope.
"""

from typing import Any, Dict, Optional


class DataAccessError(Exception):
    """Base exception for all dynamic data errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        table: Optional[str] = None,
        category: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.table = table
        self.category = category

    def context(self) -> Dict[str, Any]:
        """Diagnostic context for logs and error payloads."""
        ctx: Dict[str, Any] = {}
        if self.category is not None:
            ctx["category"] = self.category
        if self.table is not None:
            ctx["tableName"] = self.table
        return ctx


class CategoryNotFound(DataAccessError):
    """Raised when no registry row matches the category label."""
    status_code = 404


class CategoryUnconfigured(DataAccessError):
    """Raised when the category exists but has no data table assigned."""
    status_code = 400


class TableNotFound(DataAccessError):
    """Raised when the assigned table is absent from the catalog."""
    status_code = 404


class NoValidFields(DataAccessError):
    """Raised when a write payload shares no keys with the table's columns."""
    status_code = 400


class RecordNotFound(DataAccessError):
    """Raised when update/delete targets an id that does not exist."""
    status_code = 404


class UnknownColumn(DataAccessError):
    """Raised when an identifier is not in the table's live column set."""
    status_code = 400


class HeaderCollision(DataAccessError):
    """Raised when two spreadsheet headers resolve to the same column."""
    status_code = 400


class SpreadsheetError(DataAccessError):
    """Raised when an uploaded spreadsheet cannot be turned into a batch."""
    status_code = 400


class DatabaseError(DataAccessError):
    """Raised when the driver reports a failure (constraint, type, connection)."""
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        table: Optional[str] = None,
        category: Optional[str] = None,
        original: Optional[BaseException] = None,
    ):
        super().__init__(message, table=table, category=category)
        self.original = original


class UploadTooLarge(SpreadsheetError):
    """Raised when an upload exceeds the configured size limit."""
    status_code = 413
