"""
Master-Data Portal Category Registry Models

The registry maps user-facing categories to the physical tables that hold
their master data. Rows are maintained by administrative tooling; this
service only reads them.

Tables:
- SAP_MainCategories: Top-level groups (e.g. "Business Partners", "Items")
- SAP_SubCategories: Selectable categories, each optionally bound to a data
  table through "Data_Table" plus template/sample spreadsheet paths

Design Principles:
- Physical column names keep the registry's quoted CamelCase spelling;
  Python attributes are snake_case
- Data_Table is nullable: a category may exist before its table does
- Inherit from Base directly (no created_at / updated_at on the registry)
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import Base


class SAPMainCategory(Base):
    """
    Top-level category group.

    Attributes:
        main_category_id: Primary key
        main_category_name: Unique display name
        sub_categories: Subcategories in this group, ordered by id
    """
    __tablename__ = "SAP_MainCategories"

    main_category_id: Mapped[int] = mapped_column(
        "MainCategoryID",
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    main_category_name: Mapped[str] = mapped_column(
        "MainCategoryName",
        String(255),
        unique=True,
        nullable=False,
    )

    sub_categories: Mapped[List["SAPSubCategory"]] = relationship(
        back_populates="main_category",
        order_by="SAPSubCategory.sub_category_id",
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "MainCategoryID": self.main_category_id,
            "MainCategoryName": self.main_category_name,
        }

    def __repr__(self) -> str:
        return f"<SAPMainCategory(id={self.main_category_id}, name={self.main_category_name!r})>"


class SAPSubCategory(Base):
    """
    Selectable category bound (optionally) to a physical data table.

    Attributes:
        sub_category_id: Primary key
        main_category_id: FK to SAP_MainCategories
        sub_category_name: Label users pick; resolver lookups match it exactly
        template_path: Server path of the blank upload template
        sample_path: Server path of a filled-in sample
        data_table: Physical table name, NULL until configured
    """
    __tablename__ = "SAP_SubCategories"

    sub_category_id: Mapped[int] = mapped_column(
        "SubCategoryID",
        Integer,
        primary_key=True,
        autoincrement=True,
    )
    main_category_id: Mapped[int] = mapped_column(
        "MainCategoryID",
        Integer,
        ForeignKey("SAP_MainCategories.MainCategoryID"),
        nullable=False,
        index=True,
    )
    sub_category_name: Mapped[str] = mapped_column(
        "SubCategoryName",
        String(255),
        nullable=False,
        index=True,
    )
    template_path: Mapped[Optional[str]] = mapped_column("TemplatePath", Text, nullable=True)
    sample_path: Mapped[Optional[str]] = mapped_column("SamplePath", Text, nullable=True)
    data_table: Mapped[Optional[str]] = mapped_column("Data_Table", String(63), nullable=True)

    main_category: Mapped[SAPMainCategory] = relationship(back_populates="sub_categories")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "SubCategoryID": self.sub_category_id,
            "SubCategoryName": self.sub_category_name,
            "TemplatePath": self.template_path,
            "SamplePath": self.sample_path,
            "Data_Table": self.data_table,
        }

    def __repr__(self) -> str:
        return f"<SAPSubCategory(id={self.sub_category_id}, name={self.sub_category_name!r})>"
