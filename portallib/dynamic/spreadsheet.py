"""
Spreadsheet intake for the bulk upsert path.

Turns an uploaded workbook or CSV into an ``UpsertBatch`` (headers plus
rows of cell values aligned with them) and reconciles those headers
against a table's live ``ColumnSet``.
"""

import io
import logging
import os
import re
import zipfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from .columns import ColumnSet
from .errors import HeaderCollision, NoValidFields, SpreadsheetError, UploadTooLarge

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = (".xlsx", ".xlsm")
CSV_EXTENSIONS = (".csv",)
SUPPORTED_EXTENSIONS = EXCEL_EXTENSIONS + CSV_EXTENSIONS

MAX_IDENTIFIER_LENGTH = 63

_INVALID_CHARS_RE = re.compile(r"[^a-z0-9_]")
_RESERVED_NAMES = ("id", "created_at", "updated_at")


@dataclass
class UpsertBatch:
    """
    Headers in sheet order and one value list per data row.

    ``rows[i][j]`` is the cell under ``headers[j]``. Rows are positional so
    that repeated header texts keep their own values.
    """

    headers: List[str]
    rows: List[List[Any]] = field(default_factory=list)


@dataclass(frozen=True)
class HeaderMapping:
    header: str
    sanitized: str
    column: Optional[str] = None
    position: int = 0


def sanitize_column_name(header: Any, position: int = 1) -> str:
    """
    Normalize a spreadsheet header into a PostgreSQL-safe identifier.

    Args:
        header: Raw header cell
        position: 1-based header position, used when nothing survives

    Examples:
        "Group Name" -> "group_name"
        "ID"         -> "excel_id"
        "2024 Sales" -> "col_2024_sales"
    """
    sanitized = _INVALID_CHARS_RE.sub("_", str(header).lower())
    sanitized = sanitized.strip("_")

    if (
        sanitized in _RESERVED_NAMES
        or "_created_at" in sanitized
        or "_updated_at" in sanitized
        or sanitized.startswith("id_")
        or sanitized.endswith("_id")
    ):
        sanitized = f"excel_{sanitized}"

    if not sanitized:
        sanitized = f"field_{position}"

    if sanitized[0].isdigit():
        sanitized = f"col_{sanitized}"

    return sanitized[:MAX_IDENTIFIER_LENGTH]


def _dedupe(names: Sequence[str]) -> List[str]:
    """Suffix repeated names deterministically: name, name_2, name_3..."""
    taken = set()
    result = []
    for name in names:
        candidate = name
        n = 2
        while candidate in taken:
            suffix = f"_{n}"
            candidate = name[:MAX_IDENTIFIER_LENGTH - len(suffix)] + suffix
            n += 1
        taken.add(candidate)
        result.append(candidate)
    return result


def reconcile_headers(headers: Sequence[str], columns: ColumnSet) -> List[HeaderMapping]:
    """
    Map each original header to a destination column.

    A header maps to the column it equals exactly, else to the column its
    sanitized form equals, else to nothing.

    Raises:
        HeaderCollision: If two headers resolve to the same column
    """
    sanitized = _dedupe(
        [sanitize_column_name(h, position) for position, h in enumerate(headers, start=1)]
    )

    mappings = []
    claimed: Dict[str, str] = {}
    for position, (header, safe) in enumerate(zip(headers, sanitized)):
        if header in columns:
            column = header
        elif safe in columns:
            column = safe
        else:
            column = None

        if column is not None:
            if column in claimed:
                raise HeaderCollision(
                    f"Headers '{claimed[column]}' and '{header}' both map to column '{column}'",
                    table=columns.table,
                )
            claimed[column] = header
        mappings.append(
            HeaderMapping(header=header, sanitized=safe, column=column, position=position)
        )
    return mappings


def mapped_only(mappings: Sequence[HeaderMapping], table: Optional[str] = None) -> List[HeaderMapping]:
    """Mapped headers in sheet order; NoValidFields when there are none."""
    mapped = [m for m in mappings if m.column is not None]
    if not mapped:
        raise NoValidFields(
            "None of the spreadsheet headers match a column of the destination table",
            table=table,
        )
    return mapped


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _cell_value(value: Any) -> Any:
    return None if _is_blank(value) else value


def _header_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _read_frame(content: bytes, extension: str) -> pd.DataFrame:
    buffer = io.BytesIO(content)
    try:
        if extension in EXCEL_EXTENSIONS:
            return pd.read_excel(
                buffer, sheet_name=0, header=None, dtype=object, engine="openpyxl"
            )
        return pd.read_csv(buffer, header=None, dtype=object, keep_default_na=False)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except (ValueError, zipfile.BadZipFile, InvalidFileException, pd.errors.ParserError) as e:
        raise SpreadsheetError(f"Failed to parse spreadsheet: {e}") from e


def parse_spreadsheet(
    content: bytes,
    filename: str,
    max_bytes: Optional[int] = None,
) -> UpsertBatch:
    """
    Parse the first sheet of an upload into an UpsertBatch.

    The first row holds the headers. Blank headers are dropped without
    shifting the others; all-blank rows are skipped and empty cells become
    None.

    Raises:
        UploadTooLarge: If content exceeds max_bytes
        SpreadsheetError: Unsupported extension, unreadable, empty, or no data rows
    """
    if max_bytes is not None and len(content) > max_bytes:
        raise UploadTooLarge(
            f"File exceeds the maximum upload size of {max_bytes} bytes"
        )

    extension = os.path.splitext(filename or "")[1].lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise SpreadsheetError(
            f"Unsupported file type '{extension or filename}'. Use XLSX or CSV"
        )

    frame = _read_frame(content, extension)
    if frame.empty:
        raise SpreadsheetError("Excel file is empty")

    records = frame.values.tolist()
    header_row = records[0]
    positions = [
        (index, _header_text(cell))
        for index, cell in enumerate(header_row)
        if not _is_blank(cell)
    ]
    positions = [(index, header) for index, header in positions if header]
    headers = [header for _, header in positions]

    rows = []
    for record in records[1:]:
        if all(_is_blank(cell) for cell in record):
            continue
        rows.append([_cell_value(record[index]) for index, _ in positions])

    logger.info(f"Parsed {filename}: {len(headers)} headers, {len(rows)} data rows")

    if not rows:
        raise SpreadsheetError("No data rows found in Excel file")

    return UpsertBatch(headers=headers, rows=rows)
