"""
Tests for DynamicDataService: unit-of-work acquisition, response shapes
and category context on errors.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import FakeDatabase, FakeResult, FakeSession
from portallib.dynamic.errors import RecordNotFound, TableNotFound
from portallib.dynamic.query_builder import QuerySpec
from portallib.dynamic.resolver import ResolvedCategory
from portallib.dynamic.service import DynamicDataService


def _service(session, columns, table_exists=True):
    resolver = MagicMock()
    resolver.resolve = AsyncMock(return_value=ResolvedCategory(name="Groups", table_name="Groups"))
    introspector = MagicMock()
    introspector.columns = AsyncMock(return_value=columns)
    introspector.table_exists = AsyncMock(return_value=table_exists)
    introspector.key_columns = AsyncMock(return_value=SimpleNamespace(
        primary_key=("id",), unique=[], has_formal_key=True,
    ))
    database = FakeDatabase(session)
    return DynamicDataService(database, resolver=resolver, introspector=introspector), database


class TestCategoryReads:

    @pytest.mark.asyncio
    async def test_list_rows_shape(self, groups_columns):
        rows = [{"id": 1, "group_code": "CUST", "group_name": "Customer Group", "created_at": None}]
        session = FakeSession([FakeResult(scalar=1), FakeResult(rows=rows)])
        service, database = _service(session, groups_columns)

        data = await service.list_rows("Groups", QuerySpec(search="cust"))

        assert database.sessions_opened == 1
        assert data["category"] == "Groups"
        assert data["tableName"] == "Groups"
        assert data["data"] == rows
        assert data["pagination"]["totalRecords"] == 1
        assert data["search"] == "cust"
        assert data["sort"] == {"by": "id", "order": "ASC"}

    @pytest.mark.asyncio
    async def test_describe_columns(self, groups_columns):
        service, _ = _service(FakeSession(), groups_columns)

        data = await service.describe_columns("Groups")

        assert [c["name"] for c in data["columns"]] == ["id", "group_code", "group_name", "created_at"]
        assert set(data["columns"][0]) == {
            "name", "type", "nullable", "defaultValue", "maxLength", "precision", "scale",
        }

    @pytest.mark.asyncio
    async def test_errors_carry_category(self, groups_columns):
        service, _ = _service(FakeSession([FakeResult(rows=[])]), groups_columns)

        with pytest.raises(RecordNotFound) as exc:
            await service.delete_row("Groups", "999")

        assert exc.value.category == "Groups"
        assert exc.value.table == "Groups"


class TestTableViews:

    @pytest.mark.asyncio
    async def test_table_rows_use_text_search_and_table_pagination(self, groups_columns):
        session = FakeSession([FakeResult(scalar=15), FakeResult(rows=[])])
        service, _ = _service(session, groups_columns)

        data = await service.list_table_rows("Groups", QuerySpec(page=2, limit=10, search="x"))

        assert data["pagination"] == {
            "page": 2,
            "limit": 10,
            "totalCount": 15,
            "totalPages": 2,
            "hasNext": False,
            "hasPrev": True,
        }
        assert data["columns"][0] == {"name": "id", "type": "integer", "nullable": False}
        count_sql = session.statements[0]
        assert '"group_code" AS text' in count_sql
        assert '"created_at" AS text' not in count_sql

    @pytest.mark.asyncio
    async def test_table_data_newest_first(self, groups_columns):
        session = FakeSession([FakeResult(scalar=3), FakeResult(rows=[])])
        service, _ = _service(session, groups_columns)

        data = await service.table_data("Groups", page=1, limit=50)

        assert 'ORDER BY "created_at" DESC' in session.statements[1]
        assert data == {
            "exists": True,
            "tableName": "Groups",
            "data": [],
            "totalCount": 3,
            "page": 1,
            "limit": 50,
            "totalPages": 1,
        }

    @pytest.mark.asyncio
    async def test_schema_of_missing_table(self, groups_columns):
        service, _ = _service(FakeSession(), groups_columns, table_exists=False)

        data = await service.table_schema("Groups")

        assert data == {"exists": False, "tableName": "Groups", "columns": [], "rowCount": 0}

    @pytest.mark.asyncio
    async def test_table_not_found_for_direct_read(self, groups_columns):
        service, _ = _service(FakeSession(), groups_columns)
        service.introspector.columns = AsyncMock(
            side_effect=TableNotFound("Data table 'Ghost' does not exist", table="Ghost")
        )

        with pytest.raises(TableNotFound):
            await service.list_table_rows("Ghost", QuerySpec())


class TestUpload:

    @pytest.mark.asyncio
    async def test_upload_runs_on_autocommit_session(self, groups_columns):
        session = FakeSession(handler=lambda sql, params: FakeResult(scalar=1))
        service, database = _service(session, groups_columns)
        content = b"group_code,group_name\nCUST,Customer Group\n"

        result = await service.upload_spreadsheet("Groups", content, "groups.csv")

        assert database.autocommit_opened == 1
        assert database.sessions_opened == 0
        assert result["mode"] == "insert"
        assert result["rowCount"] == 1
        assert result["headers"] == ["group_code", "group_name"]
