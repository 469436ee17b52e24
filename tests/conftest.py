"""
Shared fixtures: in-memory stand-ins for the Database handle and its
sessions, plus a column set for the SAP ``Groups`` table.

The fakes record every executed statement as (sql, params) so tests can
assert on the generated SQL without a live PostgreSQL.
"""

from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional

import pytest

from portallib.dynamic.columns import ColumnDescriptor, ColumnSet


class FakeMappings:
    def __init__(self, rows: List[Dict[str, Any]]):
        self._rows = rows

    def all(self) -> List[Dict[str, Any]]:
        return list(self._rows)

    def first(self) -> Optional[Dict[str, Any]]:
        return self._rows[0] if self._rows else None


class FakeScalars:
    def __init__(self, values: List[Any]):
        self._values = values

    def all(self) -> List[Any]:
        return list(self._values)

    def first(self) -> Any:
        return self._values[0] if self._values else None


class FakeResult:
    """Result with rows (dicts) or a single scalar value."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, scalar: Any = None):
        self._rows = [dict(r) for r in rows or []]
        self._scalar = scalar

    def scalar(self) -> Any:
        if self._scalar is not None:
            return self._scalar
        if self._rows:
            return next(iter(self._rows[0].values()))
        return None

    def scalar_one_or_none(self) -> Any:
        return self.scalar()

    def mappings(self) -> FakeMappings:
        return FakeMappings(self._rows)

    def scalars(self) -> FakeScalars:
        if self._scalar is not None:
            return FakeScalars([self._scalar])
        return FakeScalars([next(iter(r.values())) for r in self._rows])


class FakeSession:
    """
    Records statements and answers them from a queue or a handler.

    Args:
        results: Results (or exceptions to raise) returned in order
        handler: Called as handler(sql, params) when the queue is empty
    """

    def __init__(
        self,
        results: Optional[List[Any]] = None,
        handler: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
    ):
        self.results = list(results or [])
        self.handler = handler
        self.executed: List[tuple] = []

    async def execute(self, statement, params=None):
        sql = str(statement)
        params = dict(params or {})
        self.executed.append((sql, params))

        if self.results:
            result = self.results.pop(0)
        elif self.handler is not None:
            result = self.handler(sql, params)
        else:
            result = FakeResult()

        if isinstance(result, Exception):
            raise result
        return result

    @property
    def statements(self) -> List[str]:
        return [sql for sql, _ in self.executed]


class FakeDatabase:
    """Database handle that hands out one FakeSession and counts acquisitions."""

    def __init__(self, session: Optional[FakeSession] = None):
        self.fake_session = session or FakeSession()
        self.sessions_opened = 0
        self.autocommit_opened = 0

    @asynccontextmanager
    async def session(self):
        self.sessions_opened += 1
        yield self.fake_session

    @asynccontextmanager
    async def autocommit(self):
        self.autocommit_opened += 1
        yield self.fake_session


def make_columns(table: str, spec: List[tuple], schema: str = "public") -> ColumnSet:
    """Build a ColumnSet from (name, data_type) or (name, data_type, nullable)."""
    descriptors = []
    for entry in spec:
        name, sql_type = entry[0], entry[1]
        nullable = entry[2] if len(entry) > 2 else True
        descriptors.append(ColumnDescriptor(name=name, sql_type=sql_type, nullable=nullable))
    return ColumnSet(table, descriptors, schema=schema)


@pytest.fixture
def groups_columns() -> ColumnSet:
    return make_columns(
        "Groups",
        [
            ("id", "integer", False),
            ("group_code", "character varying"),
            ("group_name", "character varying"),
            ("created_at", "timestamp without time zone"),
        ],
    )


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def fake_database(fake_session) -> FakeDatabase:
    return FakeDatabase(fake_session)
