"""
Dynamic Data API Routes

Generic CRUD over category data tables. The table behind a category is
resolved from the category registry and its columns are read live, so the
same handlers serve every category.

Routes:
    GET    /api/dynamic-data/table/{tableName}  - Page through a table by name
    GET    /api/dynamic-data/{category}         - Page through a category's rows
    GET    /api/dynamic-data/{category}/columns - Column metadata
    POST   /api/dynamic-data/{category}         - Insert one row
    PUT    /api/dynamic-data/{category}/{id}    - Update the row with this id
    DELETE /api/dynamic-data/{category}/{id}    - Delete the row with this id
"""

from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Body, Depends, Query

from portallib.config import settings
from portallib.dependencies import get_dynamic_service
from portallib.dynamic import DynamicDataService, QuerySpec
from portallib.responses import envelope
from portallib.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/dynamic-data",
    tags=["DynamicDataApi"],
    dependencies=[Depends(get_current_user)],
)


def query_spec(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1),
    search: str = Query(default=""),
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    sort_order: str = Query(default="ASC", alias="sortOrder"),
) -> QuerySpec:
    return QuerySpec(
        page=page,
        limit=limit,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/table/{table_name}")
async def get_table_data(
    table_name: str,
    spec: QuerySpec = Depends(query_spec),
    service: DynamicDataService = Depends(get_dynamic_service),
):
    """
    Page through a table addressed directly by name.

    Search covers character-typed columns only.
    """
    data = await service.list_table_rows(table_name, spec)
    return envelope("Data retrieved successfully", data)


@router.get("/{category}")
async def get_category_data(
    category: str,
    spec: QuerySpec = Depends(query_spec),
    service: DynamicDataService = Depends(get_dynamic_service),
):
    """Page through the rows of a category's table with search and sort."""
    data = await service.list_rows(category, spec)
    return envelope("Data retrieved successfully", data)


@router.get("/{category}/columns")
async def get_category_columns(
    category: str,
    service: DynamicDataService = Depends(get_dynamic_service),
):
    data = await service.describe_columns(category)
    return envelope("Column information retrieved successfully", data)


@router.post("/{category}")
async def insert_category_data(
    category: str,
    payload: Dict[str, Any] = Body(...),
    service: DynamicDataService = Depends(get_dynamic_service),
):
    """Insert one row. Keys that are not columns of the table are ignored."""
    data = await service.insert_row(category, payload)
    return envelope("Data inserted successfully", data, status_code=201)


@router.put("/{category}/{record_id}")
async def update_category_data(
    category: str,
    record_id: str,
    payload: Dict[str, Any] = Body(...),
    service: DynamicDataService = Depends(get_dynamic_service),
):
    data = await service.update_row(category, record_id, payload)
    return envelope("Data updated successfully", data)


@router.delete("/{category}/{record_id}")
async def delete_category_data(
    category: str,
    record_id: str,
    service: DynamicDataService = Depends(get_dynamic_service),
):
    data = await service.delete_row(category, record_id)
    return envelope("Data deleted successfully", data)
