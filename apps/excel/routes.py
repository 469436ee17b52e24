"""
Excel Upload API Routes

Routes:
    POST /api/excel/upload-schema                      - Upsert a spreadsheet into a category table
    GET  /api/excel/schema/{category}[/{subcategory}]  - Table columns and row count
    GET  /api/excel/data/{category}[/{subcategory}]    - Newest-first page of table rows

The category table is addressed by the subcategory label when one is
given, otherwise by the category label.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from portallib.config import settings
from portallib.dependencies import get_dynamic_service
from portallib.dynamic import DynamicDataService
from portallib.responses import envelope
from portallib.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/excel",
    tags=["ExcelApi"],
    dependencies=[Depends(get_current_user)],
)


def _label(category: Optional[str], subcategory: Optional[str]) -> str:
    if subcategory and subcategory.strip():
        return subcategory.strip()
    return (category or "").strip()


@router.post("/upload-schema")
async def upload_schema(
    file: Optional[UploadFile] = File(default=None),
    category: Optional[str] = Form(default=None),
    subcategory: Optional[str] = Form(default=None),
    service: DynamicDataService = Depends(get_dynamic_service),
):
    """
    Upsert an uploaded XLSX/CSV into the category's table.

    Rows are written one statement at a time on an autocommit connection;
    if a row fails, the rows before it stay written.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if not category or not category.strip():
        raise HTTPException(status_code=400, detail="Category is required")

    content = await file.read()
    label = _label(category, subcategory)
    logger.info(f"Upload {file.filename} ({len(content)} bytes) for '{label}'")

    result = await service.upload_spreadsheet(
        label, content, file.filename, max_bytes=settings.upload_max_bytes
    )
    return envelope("Excel schema processed successfully", result)


@router.get("/schema/{category}")
@router.get("/schema/{category}/{subcategory}")
async def get_table_schema(
    category: str,
    subcategory: Optional[str] = None,
    service: DynamicDataService = Depends(get_dynamic_service),
):
    data = await service.table_schema(_label(category, subcategory))
    return envelope("Table schema retrieved successfully", data)


@router.get("/data/{category}")
@router.get("/data/{category}/{subcategory}")
async def get_table_data(
    category: str,
    subcategory: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.default_page_size, ge=1),
    service: DynamicDataService = Depends(get_dynamic_service),
):
    data = await service.table_data(_label(category, subcategory), page=page, limit=limit)
    return envelope("Table data retrieved successfully", data)
