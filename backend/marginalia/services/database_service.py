"""
Database Service Module

Facade over the specialized SQLite services. Routers talk to the shared
``db_service`` instance rather than instantiating services themselves.

The database path defaults to "data/marginalia.db" and can be moved with the
MARGINALIA_DB_PATH environment variable.
"""

import logging
import os

from .annotations_service import AnnotationsService
from .base_database_service import DEFAULT_DB_PATH
from .categories_service import CategoriesService

# Configure logger for this module
logger = logging.getLogger(__name__)


class DatabaseService:
    """
    Coordinates the annotation and category services over one database file.

    - CategoriesService: categories and their colors
    - AnnotationsService: annotations and their selectors
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path

        # Categories first: the annotations table references them
        self.categories = CategoriesService(db_path)
        self.annotations = AnnotationsService(db_path)
        logger.info("Database ready at %s", db_path)


db_service = DatabaseService(os.getenv("MARGINALIA_DB_PATH", DEFAULT_DB_PATH))
