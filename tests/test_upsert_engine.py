"""
Tests for SpreadsheetUpsertEngine: key selection, insert-only batches,
idempotent re-runs and mid-batch failures.

The destination table is simulated in memory by a FakeSession handler
keyed on the conflict column.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from conftest import FakeResult, FakeSession
from portallib.dynamic.errors import DatabaseError, HeaderCollision, NoValidFields
from portallib.dynamic.introspector import KeyMetadata
from portallib.dynamic.spreadsheet import UpsertBatch, parse_spreadsheet
from portallib.dynamic.upsert_engine import SpreadsheetUpsertEngine, select_key


class InMemoryTable:
    """Applies INSERT/ON CONFLICT statements to a list of rows."""

    def __init__(self, rows=None, key_param=None, fail_on_value=None):
        self.rows = list(rows or [])
        self.key_param = key_param
        self.fail_on_value = fail_on_value

    def __call__(self, sql, params):
        if sql.startswith("SELECT COUNT(*)"):
            return FakeResult(scalar=len(self.rows))
        if sql.startswith("INSERT"):
            if self.fail_on_value is not None and self.fail_on_value in params.values():
                return IntegrityError(sql, params, Exception("value too long"))
            if self.key_param and "ON CONFLICT" in sql:
                key = params[self.key_param]
                self.rows = [r for r in self.rows if r.get(self.key_param) != key]
            self.rows.append(params)
            return FakeResult()
        raise AssertionError(f"unexpected statement: {sql}")


def _engine(columns, keys, group_size=1000):
    introspector = MagicMock()
    introspector.columns = AsyncMock(return_value=columns)
    introspector.key_columns = AsyncMock(return_value=keys)
    return SpreadsheetUpsertEngine(introspector=introspector, group_size=group_size)


# ============================================================================
# Key selection
# ============================================================================

class TestSelectKey:

    def test_primary_key_when_fully_mapped(self):
        keys = KeyMetadata(primary_key=("id",), unique=[("code",)])
        assert select_key(keys, ["id", "code"]) == (("id",), "primary_key")

    def test_unique_constraint_when_pk_unmapped(self):
        keys = KeyMetadata(primary_key=("id",), unique=[("company", "code"), ("code",)])
        assert select_key(keys, ["code", "name"]) == (("code",), "unique")

    def test_heuristic_only_without_formal_key(self):
        assert select_key(KeyMetadata(), ["name", "sap_field_name"]) == (
            ("sap_field_name",),
            "heuristic",
        )

    def test_heuristic_ignored_when_table_has_constraints(self):
        keys = KeyMetadata(primary_key=("id",))
        assert select_key(keys, ["db_field_name"]) == ((), None)


# ============================================================================
# Upsert
# ============================================================================

class TestUpsert:

    @pytest.mark.asyncio
    async def test_groups_without_id_are_inserted(self, groups_columns):
        table = InMemoryTable(rows=[{"p1": "1"}, {"p1": "2"}])
        session = FakeSession(handler=table)
        engine = _engine(groups_columns, KeyMetadata(primary_key=("id",)))
        batch = UpsertBatch(
            headers=["group_code", "group_name"],
            rows=[["CUST", "Customer Group"]],
        )

        result = await engine.upsert(session, "Groups", batch)

        assert result["rowCount"] == 3
        assert result["mode"] == "insert"
        assert result["keyColumns"] == []
        assert result["processedRows"] == 1
        assert result["tableName"] == "Groups"
        assert "ON CONFLICT" not in session.statements[0]

    @pytest.mark.asyncio
    async def test_rerun_with_key_is_idempotent(self, groups_columns):
        table = InMemoryTable(key_param="p1")
        session = FakeSession(handler=table)
        engine = _engine(groups_columns, KeyMetadata(primary_key=("id",)))
        batch = UpsertBatch(
            headers=["id", "Group Code", "Group Name"],
            rows=[
                [1, "CUST", "Customer Group"],
                [2, "VEND", "Vendor Group"],
            ],
        )

        first = await engine.upsert(session, "Groups", batch)
        second = await engine.upsert(session, "Groups", batch)

        assert first["mode"] == "upsert"
        assert first["keyColumns"] == ["id"]
        assert first["rowCount"] == second["rowCount"] == 2

    @pytest.mark.asyncio
    async def test_unmapped_headers_are_skipped(self, groups_columns):
        session = FakeSession(handler=InMemoryTable())
        engine = _engine(groups_columns, KeyMetadata(primary_key=("id",)))
        batch = UpsertBatch(
            headers=["Group Code", "Remarks"],
            rows=[["CUST", "ignored"]],
        )

        result = await engine.upsert(session, "Groups", batch)

        assert result["unmappedHeaders"] == ["Remarks"]
        _, params = session.executed[0]
        assert params == {"p1": "CUST"}

    @pytest.mark.asyncio
    async def test_repeated_header_text_keeps_each_cell(self):
        from conftest import make_columns

        columns = make_columns("Things", [("name", "text"), ("name_2", "text")])
        session = FakeSession(handler=InMemoryTable())
        engine = _engine(columns, KeyMetadata())
        batch = parse_spreadsheet(b"Name,Name\nfirst,second\n", "dup.csv")

        result = await engine.upsert(session, "Things", batch)

        assert result["headers"] == ["Name", "Name"]
        assert 'INSERT INTO "public"."Things" ("name", "name_2")' in session.statements[0]
        _, params = session.executed[0]
        assert params == {"p1": "first", "p2": "second"}

    @pytest.mark.asyncio
    async def test_failure_names_row_and_keeps_earlier_rows(self, groups_columns):
        table = InMemoryTable(fail_on_value="BAD")
        session = FakeSession(handler=table)
        engine = _engine(groups_columns, KeyMetadata(primary_key=("id",)), group_size=2)
        batch = UpsertBatch(
            headers=["group_code"],
            rows=[["A"], ["B"], ["BAD"], ["C"]],
        )

        with pytest.raises(DatabaseError, match="row 3") as exc:
            await engine.upsert(session, "Groups", batch)

        assert exc.value.table == "Groups"
        assert [r["p1"] for r in table.rows] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_header_collision(self, groups_columns):
        engine = _engine(groups_columns, KeyMetadata())
        batch = UpsertBatch(headers=["Group Code", "group_code"], rows=[["A", "A"]])

        with pytest.raises(HeaderCollision):
            await engine.upsert(FakeSession(), "Groups", batch)

    @pytest.mark.asyncio
    async def test_no_mapped_headers(self, groups_columns):
        engine = _engine(groups_columns, KeyMetadata())
        batch = UpsertBatch(headers=["Foo"], rows=[[1]])
        session = FakeSession()

        with pytest.raises(NoValidFields):
            await engine.upsert(session, "Groups", batch)
        assert session.executed == []

    @pytest.mark.asyncio
    async def test_heuristic_key_is_logged(self, caplog):
        from conftest import make_columns

        columns = make_columns(
            "FieldMap", [("sap_field_name", "text"), ("db_field_name", "text")]
        )
        session = FakeSession(handler=InMemoryTable(key_param="p1"))
        engine = _engine(columns, KeyMetadata())
        batch = UpsertBatch(
            headers=["sap_field_name", "db_field_name"],
            rows=[["CardCode", "card_code"]],
        )

        with caplog.at_level("WARNING"):
            result = await engine.upsert(session, "FieldMap", batch)

        assert result["keyColumns"] == ["sap_field_name"]
        assert 'ON CONFLICT ("sap_field_name") DO UPDATE' in session.statements[0]
        assert "no primary key or unique constraint" in caplog.text
