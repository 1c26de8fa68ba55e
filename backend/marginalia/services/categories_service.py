"""
Categories Service Module

SQLite storage for annotation categories. A category has a unique name, a
hex color used to tint the highlights tagged with it, and a last-used
timestamp so the reader's category picker can show recent ones first.

Deleting a category leaves its annotations in place as untagged highlights
(the annotations table references categories with ON DELETE SET NULL).
"""

import logging
import sqlite3
from typing import Any

from ..models.category import Category, CategoryInput, CategoryWithUsageCount
from .base_database_service import DEFAULT_DB_PATH, BaseDatabaseService

logger = logging.getLogger(__name__)


class DuplicateCategoryError(Exception):
    """Raised when a category name is already taken."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"A category named '{name}' already exists")


class CategoriesService(BaseDatabaseService):
    """Service class for managing annotation categories using SQLite."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        super().__init__(db_path)
        self._init_table()

    def _init_table(self) -> None:
        """Ensure the categories table exists."""
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,          -- Shown in the category picker
                    notes TEXT,                         -- Free-form description
                    color TEXT NOT NULL,                -- Hex color, e.g. '#e9d5ff'
                    last_used_at TIMESTAMP,             -- Last time a highlight was tagged with it
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

    def _row_to_category(self, row: sqlite3.Row | dict[str, Any]) -> Category:
        return Category(**dict(row))

    def create(self, payload: CategoryInput) -> Category | None:
        """
        Create a category.

        Raises:
            DuplicateCategoryError: the name is already in use
        """
        now = self.get_current_timestamp()
        try:
            with self.get_connection() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO categories (name, notes, color, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (payload.name, payload.notes or None, payload.color, now, now),
                )
                conn.commit()
                category_id = cursor.lastrowid
        except sqlite3.IntegrityError as exc:
            raise DuplicateCategoryError(payload.name) from exc
        except Exception as exc:
            logger.exception("Error creating category: %s", exc)
            return None

        logger.info("Created category %s (%s)", category_id, payload.name)
        return self.get_by_id(category_id)

    def update(self, category_id: int, payload: CategoryInput) -> Category | None:
        """
        Replace a category's name, notes and color.

        Returns None when the category does not exist.

        Raises:
            DuplicateCategoryError: the new name belongs to another category
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.execute(
                    """
                    UPDATE categories
                    SET name = ?, notes = ?, color = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        payload.name,
                        payload.notes or None,
                        payload.color,
                        self.get_current_timestamp(),
                        category_id,
                    ),
                )
                conn.commit()
                updated = cursor.rowcount > 0
        except sqlite3.IntegrityError as exc:
            raise DuplicateCategoryError(payload.name) from exc
        except Exception as exc:
            logger.exception("Error updating category %s: %s", category_id, exc)
            return None

        if not updated:
            return None
        logger.info("Updated category %s", category_id)
        return self.get_by_id(category_id)

    def get_by_id(self, category_id: int) -> Category | None:
        row = self.execute_query(
            "SELECT * FROM categories WHERE id = ?", (category_id,), fetch_one=True
        )
        return self._row_to_category(row) if row else None

    def get_with_usage_count(self, category_id: int) -> CategoryWithUsageCount | None:
        """Return the category and how many annotations are tagged with it."""
        row = self.execute_query(
            """
            SELECT c.*, (
                SELECT COUNT(*) FROM annotations a WHERE a.category_id = c.id
            ) AS highlight_count
            FROM categories c
            WHERE c.id = ?
            """,
            (category_id,),
            fetch_one=True,
        )
        return CategoryWithUsageCount(**dict(row)) if row else None

    def delete(self, category_id: int) -> bool:
        """Delete a category; tagged annotations become untagged."""
        deleted = self.execute_update_delete(
            "DELETE FROM categories WHERE id = ?", (category_id,)
        )
        if deleted:
            logger.info("Deleted category %s", category_id)
        return deleted

    def touch_last_used(self, category_id: int) -> bool:
        return self.execute_update_delete(
            "UPDATE categories SET last_used_at = ? WHERE id = ?",
            (self.get_current_timestamp(), category_id),
        )

    def list_sorted_by_recent(self) -> list[Category]:
        """All categories, most recently used first, never-used ones last."""
        rows = self.execute_query(
            """
            SELECT * FROM categories
            ORDER BY last_used_at IS NULL, last_used_at DESC, created_at DESC, id DESC
            """,
            fetch_all=True,
        )
        return [self._row_to_category(row) for row in rows] if rows else []

    def lookup_table(self) -> dict[int, Category]:
        """Categories keyed by id, for resolving highlight colors."""
        return {category.id: category for category in self.list_sorted_by_recent()}
