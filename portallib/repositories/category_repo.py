"""
Master-Data Portal Category Repository

Read-only access to the category registry (SAP_MainCategories /
SAP_SubCategories). Writes belong to administrative tooling outside this
service.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portallib.models.category import SAPMainCategory, SAPSubCategory


logger = logging.getLogger(__name__)

FILE_TYPES = ("template", "sample")


class CategoryRepository:
    """
    Repository for the category registry.

    Stateless; every method receives the session of the current unit of
    work.
    """

    async def get_by_name(
        self,
        db: AsyncSession,
        name: str
    ) -> Optional[SAPSubCategory]:
        """
        Find a subcategory by exact name.

        Args:
            db: Async database session
            name: SubCategoryName to match (case-sensitive)

        Returns:
            The lowest-id matching subcategory, or None
        """
        stmt = (
            select(SAPSubCategory)
            .where(SAPSubCategory.sub_category_name == name)
            .order_by(SAPSubCategory.sub_category_id)
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    async def list_with_subcategories(self, db: AsyncSession) -> List[Dict[str, Any]]:
        """
        List every main category with its subcategories nested.

        Main categories without subcategories are included with an empty
        list.
        """
        stmt = (
            select(SAPMainCategory)
            .options(selectinload(SAPMainCategory.sub_categories))
            .order_by(SAPMainCategory.main_category_id)
        )
        result = await db.execute(stmt)
        categories = []
        for main in result.scalars().all():
            entry = main.to_dict()
            entry["SubCategories"] = [sub.to_dict() for sub in main.sub_categories]
            categories.append(entry)
        return categories

    async def list_main_categories(self, db: AsyncSession) -> List[Dict[str, Any]]:
        """List main categories ordered by id."""
        stmt = select(SAPMainCategory).order_by(SAPMainCategory.main_category_id)
        result = await db.execute(stmt)
        return [main.to_dict() for main in result.scalars().all()]

    async def list_subcategories_by_main_id(
        self,
        db: AsyncSession,
        main_category_id: int
    ) -> List[Dict[str, Any]]:
        """List subcategories of one main category, ordered by id."""
        stmt = (
            select(SAPSubCategory)
            .where(SAPSubCategory.main_category_id == main_category_id)
            .order_by(SAPSubCategory.sub_category_id)
        )
        result = await db.execute(stmt)
        return [sub.to_dict() for sub in result.scalars().all()]

    async def list_subcategories_by_main_name(
        self,
        db: AsyncSession,
        main_category_name: str
    ) -> List[Dict[str, Any]]:
        """List subcategories of the main category with the given name."""
        stmt = (
            select(SAPSubCategory)
            .join(SAPMainCategory, SAPSubCategory.main_category_id == SAPMainCategory.main_category_id)
            .where(SAPMainCategory.main_category_name == main_category_name)
            .order_by(SAPSubCategory.sub_category_id)
        )
        result = await db.execute(stmt)
        return [sub.to_dict() for sub in result.scalars().all()]

    async def get_file_path(
        self,
        db: AsyncSession,
        sub_category_id: int,
        file_type: str
    ) -> Optional[str]:
        """
        Get the stored template or sample path of a subcategory.

        Args:
            db: Async database session
            sub_category_id: SubCategoryID
            file_type: "template" or "sample"

        Returns:
            The stored path, or None when the subcategory or the path is missing

        Raises:
            ValueError: If file_type is not one of FILE_TYPES
        """
        if file_type not in FILE_TYPES:
            raise ValueError(f"Invalid file type '{file_type}'")

        column = (
            SAPSubCategory.template_path
            if file_type == "template"
            else SAPSubCategory.sample_path
        )
        stmt = select(column).where(SAPSubCategory.sub_category_id == sub_category_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
