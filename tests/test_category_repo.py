"""
Tests for CategoryRepository result shaping.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from portallib.models.category import SAPMainCategory, SAPSubCategory
from portallib.repositories.category_repo import CategoryRepository


def _db_returning(objects=None, scalar=None):
    result = MagicMock()
    result.scalars.return_value.all.return_value = objects or []
    result.scalars.return_value.first.return_value = (objects or [None])[0]
    result.scalar_one_or_none.return_value = scalar
    db = MagicMock()
    db.execute = AsyncMock(return_value=result)
    return db


def _groups():
    return SAPSubCategory(
        sub_category_id=3,
        main_category_id=1,
        sub_category_name="Groups",
        template_path="templates/Groups.xlsx",
        sample_path=None,
        data_table="Groups",
    )


@pytest.mark.asyncio
async def test_list_with_subcategories_nests_children():
    main = SAPMainCategory(main_category_id=1, main_category_name="Business Partners")
    main.sub_categories = [_groups()]

    categories = await CategoryRepository().list_with_subcategories(_db_returning([main]))

    assert categories == [{
        "MainCategoryID": 1,
        "MainCategoryName": "Business Partners",
        "SubCategories": [{
            "SubCategoryID": 3,
            "SubCategoryName": "Groups",
            "TemplatePath": "templates/Groups.xlsx",
            "SamplePath": None,
            "Data_Table": "Groups",
        }],
    }]


@pytest.mark.asyncio
async def test_get_by_name():
    sub = _groups()
    found = await CategoryRepository().get_by_name(_db_returning([sub]), "Groups")
    assert found is sub


@pytest.mark.asyncio
async def test_get_file_path():
    db = _db_returning(scalar="templates/Groups.xlsx")
    assert await CategoryRepository().get_file_path(db, 3, "template") == "templates/Groups.xlsx"


@pytest.mark.asyncio
async def test_get_file_path_rejects_unknown_type():
    db = _db_returning()
    with pytest.raises(ValueError):
        await CategoryRepository().get_file_path(db, 3, "manual")
    db.execute.assert_not_awaited()
