"""
Master-Data Portal Repository Layer

Usage:
    from portallib.repositories import CategoryRepository

    repo = CategoryRepository()
    async with database.session() as db:
        sub = await repo.get_by_name(db, "Groups")
"""

from .category_repo import CategoryRepository

__all__ = [
    "CategoryRepository",
]
