"""
Column metadata value types.

``ColumnSet`` is produced once per request by the Schema Introspector and is
the only object allowed to turn a name into a quoted SQL identifier. Every
identifier-forming function in the query builder takes a ColumnSet, so a
name that did not come back from the live catalog for that exact table can
never reach SQL text.
"""

import re
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from .errors import UnknownColumn

# information_schema.columns.data_type values treated as free text
TEXT_TYPES = frozenset({"character varying", "character", "text"})

# Name fragments that exclude a column from the "name" search mode
NON_SEARCHABLE_FRAGMENTS = ("id", "created", "updated")

SEARCH_MODE_NAME = "name"
SEARCH_MODE_TEXT = "text"

# Plain type phrases as reported in information_schema (e.g. "timestamp with time zone")
_TYPE_PHRASE_RE = re.compile(r"^[a-z][a-z0-9 ]*$")

# Fixed-length types whose bare name casts to length 1
_UNBOUNDED_CASTS = {"character": "bpchar", "bit": "varbit"}


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, doubling any embedded quote."""
    return '"' + name.replace('"', '""') + '"'


class ColumnDescriptor(BaseModel):
    """Discovered metadata for one table column."""

    model_config = ConfigDict(frozen=True)

    name: str
    sql_type: str
    nullable: bool = True
    max_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    default_value: Optional[str] = None
    udt_name: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.sql_type in TEXT_TYPES

    @property
    def cast_type(self) -> str:
        """
        Type expression used to cast bound text values into this column.

        Arrays and user-defined types report a generic data_type, so their
        underlying udt_name is used (quoted) instead. Bare ``character`` and
        ``bit`` mean length 1 in a cast, so the unbounded forms are used and
        the column's own length check applies on assignment.
        """
        if self.sql_type in _UNBOUNDED_CASTS:
            return _UNBOUNDED_CASTS[self.sql_type]
        if self.sql_type in ("ARRAY", "USER-DEFINED") or not _TYPE_PHRASE_RE.match(self.sql_type):
            return quote_identifier(self.udt_name or "text")
        return self.sql_type

    def to_api(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.sql_type,
            "nullable": self.nullable,
            "defaultValue": self.default_value,
            "maxLength": self.max_length,
            "precision": self.numeric_precision,
            "scale": self.numeric_scale,
        }


class ColumnSet:
    """
    Ordered, immutable set of columns of one verified table.

    Args:
        table: Table name as confirmed present in the catalog
        columns: Descriptors in physical (ordinal) order
        schema: Schema the table lives in
    """

    def __init__(
        self,
        table: str,
        columns: Sequence[ColumnDescriptor],
        schema: str = "public",
    ):
        self.table = table
        self.schema = schema
        self.columns = tuple(columns)
        self._by_name = {c.name: c for c in self.columns}

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[ColumnDescriptor]:
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)

    def __repr__(self) -> str:
        return f"ColumnSet(table={self.table!r}, {len(self.columns)} columns)"

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def quoted_table(self) -> str:
        return f"{quote_identifier(self.schema)}.{quote_identifier(self.table)}"

    def get(self, name: str) -> Optional[ColumnDescriptor]:
        return self._by_name.get(name)

    def require(self, name: str) -> ColumnDescriptor:
        """Return the descriptor for name or raise UnknownColumn."""
        column = self._by_name.get(name)
        if column is None:
            raise UnknownColumn(
                f"Column '{name}' does not exist in table '{self.table}'",
                table=self.table,
            )
        return column

    def quote(self, name: str) -> str:
        """Quoted identifier for a column that is known to exist."""
        return quote_identifier(self.require(name).name)

    def pick(self, keys: Iterable[str]) -> List[str]:
        """Keep the keys that are columns of this table, in the given order."""
        seen = set()
        picked = []
        for key in keys:
            if key in self._by_name and key not in seen:
                seen.add(key)
                picked.append(key)
        return picked

    def default_sort_column(self) -> Optional[str]:
        """``id`` when present, otherwise the first physical column."""
        if "id" in self._by_name:
            return "id"
        return self.columns[0].name if self.columns else None

    def searchable(self, mode: str = SEARCH_MODE_NAME) -> List[str]:
        """
        Columns eligible for free-text search.

        Modes:
            name: every column whose name does not contain id/created/updated
            text: character-typed columns other than ``id``
        """
        if mode == SEARCH_MODE_TEXT:
            return [c.name for c in self.columns if c.name != "id" and c.is_text]
        if mode == SEARCH_MODE_NAME:
            return [
                c.name for c in self.columns
                if not any(fragment in c.name for fragment in NON_SEARCHABLE_FRAGMENTS)
            ]
        raise ValueError(f"Unknown search mode '{mode}'")
