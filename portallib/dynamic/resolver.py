"""
Category Resolver

Maps the category label a user picked to the physical table that holds its
rows. The mapping is registry data, so new categories need no code change.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from portallib.repositories.category_repo import CategoryRepository

from .errors import CategoryNotFound, CategoryUnconfigured, DatabaseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedCategory:
    name: str
    table_name: str


class CategoryResolver:
    """Resolve category labels through the registry repository."""

    def __init__(self, repository: Optional[CategoryRepository] = None):
        self.repository = repository or CategoryRepository()

    async def resolve(self, db: AsyncSession, label: str) -> ResolvedCategory:
        """
        Resolve a category label to its data table.

        Raises:
            CategoryNotFound: No registry row has this exact name
            CategoryUnconfigured: The row exists but Data_Table is empty
        """
        try:
            sub_category = await self.repository.get_by_name(db, label)
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to look up category: {e}", category=label, original=e
            ) from e

        if sub_category is None:
            raise CategoryNotFound("Category not found", category=label)

        table_name = (sub_category.data_table or "").strip()
        if not table_name:
            raise CategoryUnconfigured(
                "No data table configured for this category", category=label
            )

        logger.debug(f"Category '{label}' resolved to table '{table_name}'")
        return ResolvedCategory(name=sub_category.sub_category_name, table_name=table_name)
