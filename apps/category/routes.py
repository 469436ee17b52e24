"""
Category Catalog API Routes

Read-only access to the category registry (main categories and their
subcategories) plus template/sample file downloads.

Routes:
    GET /api/categories                                         - Main categories with subcategories
    GET /api/categories/main                                    - Main categories only
    GET /api/categories/{mainCategoryId}/subcategories          - Subcategories by main id
    GET /api/categories/name/{mainCategoryName}/subcategories   - Subcategories by main name
    GET /api/categories/download/{subCategoryId}/{fileType}     - Template or sample file
"""

import logging
import os

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from portallib.database import Database, get_database
from portallib.dependencies import get_category_repo
from portallib.repositories.category_repo import FILE_TYPES, CategoryRepository
from portallib.responses import envelope
from portallib.security import get_current_user

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

router = APIRouter(
    prefix="/api/categories",
    tags=["CategoryApi"],
    dependencies=[Depends(get_current_user)],
)


@router.get("")
async def get_all_categories(
    database: Database = Depends(get_database),
    repo: CategoryRepository = Depends(get_category_repo),
):
    """Main categories ordered by id, each with its subcategories."""
    async with database.session() as db:
        categories = await repo.list_with_subcategories(db)
    return envelope("Categories retrieved successfully", categories)


@router.get("/main")
async def get_main_categories(
    database: Database = Depends(get_database),
    repo: CategoryRepository = Depends(get_category_repo),
):
    async with database.session() as db:
        categories = await repo.list_main_categories(db)
    return envelope("Main categories retrieved successfully", categories)


@router.get("/{main_category_id}/subcategories")
async def get_subcategories_by_main_id(
    main_category_id: int,
    database: Database = Depends(get_database),
    repo: CategoryRepository = Depends(get_category_repo),
):
    async with database.session() as db:
        subcategories = await repo.list_subcategories_by_main_id(db, main_category_id)
    return envelope("Subcategories retrieved successfully", subcategories)


@router.get("/name/{main_category_name}/subcategories")
async def get_subcategories_by_main_name(
    main_category_name: str,
    database: Database = Depends(get_database),
    repo: CategoryRepository = Depends(get_category_repo),
):
    async with database.session() as db:
        subcategories = await repo.list_subcategories_by_main_name(db, main_category_name)
    return envelope("Subcategories retrieved successfully", subcategories)


@router.get("/download/{sub_category_id}/{file_type}")
async def download_file(
    sub_category_id: int,
    file_type: str,
    database: Database = Depends(get_database),
    repo: CategoryRepository = Depends(get_category_repo),
):
    """
    Stream the stored template or sample workbook of a subcategory.

    Raises:
        HTTPException 400: file_type is not "template" or "sample"
        HTTPException 404: no path stored, or the file is missing on disk
    """
    if file_type not in FILE_TYPES:
        raise HTTPException(
            status_code=400,
            detail='Invalid file type. Must be "template" or "sample"',
        )

    async with database.session() as db:
        file_path = await repo.get_file_path(db, sub_category_id, file_type)

    if not file_path:
        raise HTTPException(
            status_code=404,
            detail="File path not found for the specified subcategory",
        )
    if not os.path.isfile(file_path):
        logger.warning(f"Stored {file_type} file for subcategory {sub_category_id} is missing: {file_path}")
        raise HTTPException(status_code=404, detail="File not found on server")

    return FileResponse(
        file_path,
        media_type=XLSX_MEDIA_TYPE,
        filename=os.path.basename(file_path),
    )
