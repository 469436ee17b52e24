"""
Master-Data Portal SQLAlchemy Models

Only the category registry is mapped with the ORM. Category data tables
are discovered at runtime by ``portallib.dynamic.introspector``.

Usage:
    from portallib.models import SAPMainCategory, SAPSubCategory
"""

from .category import SAPMainCategory, SAPSubCategory

__all__ = [
    "SAPMainCategory",
    "SAPSubCategory",
]
