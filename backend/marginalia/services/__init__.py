"""
Services Package

Database services for annotations and categories, plus the anchoring
engine (``services.anchoring``) that builds and resolves selectors.
"""

from .annotations_service import AnnotationsService
from .base_database_service import BaseDatabaseService
from .categories_service import CategoriesService, DuplicateCategoryError
from .database_service import DatabaseService, db_service

__all__ = [
    "AnnotationsService",
    "BaseDatabaseService",
    "CategoriesService",
    "DuplicateCategoryError",
    "DatabaseService",
    "db_service",
]
