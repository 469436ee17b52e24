"""
FastAPI dependency providers shared by the feature routers.

Tests replace these through ``app.dependency_overrides``.
"""

from fastapi import Depends

from .database import Database, get_database
from .dynamic.service import DynamicDataService
from .repositories.category_repo import CategoryRepository


def get_dynamic_service(database: Database = Depends(get_database)) -> DynamicDataService:
    return DynamicDataService(database)


def get_category_repo() -> CategoryRepository:
    return CategoryRepository()
