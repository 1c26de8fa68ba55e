"""
Annotations Service Module

SQLite storage for paragraph-anchored annotations. This is the persistence
surface the selection lifecycle writes to and the resolver reads from:

    create(annotation)                -> Annotation | None
    update_category(id, category_id)  -> Annotation | None
    delete(id)                        -> bool
    list_by_document(document_id)     -> list[AnnotationWithCategory]
    list_by_category(category_id)     -> list[AnnotationWithCategory]

Schema:
    annotations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        document_id TEXT NOT NULL,
        category_id INTEGER REFERENCES categories(id) ON DELETE SET NULL,
        selector TEXT NOT NULL,          -- RangeSelector JSON
        highlighted_text TEXT NOT NULL,
        start_paragraph_id INTEGER NOT NULL,
        end_paragraph_id INTEGER NOT NULL,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )

The selector and highlighted text are never edited in place; a different
selection is a new annotation. Only the category can change.
"""

import logging
import sqlite3
from typing import Any

from ..models.annotation_types import (
    Annotation,
    AnnotationCreate,
    AnnotationWithCategory,
    CategorySummary,
    RangeSelector,
)
from .base_database_service import DEFAULT_DB_PATH, BaseDatabaseService
from .categories_service import CategoriesService

logger = logging.getLogger(__name__)

_SELECT_WITH_CATEGORY = """
    SELECT a.*, c.name AS category_name, c.color AS category_color
    FROM annotations a
    LEFT JOIN categories c ON c.id = a.category_id
"""


class AnnotationsService(BaseDatabaseService):
    """SQLite helper for annotations."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        super().__init__(db_path)
        # Categories must exist first: annotations reference them
        self._categories = CategoriesService(db_path)
        self._init_table()

    def _init_table(self) -> None:
        """Ensure the annotations table & indexes exist."""
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS annotations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    document_id TEXT NOT NULL,
                    category_id INTEGER REFERENCES categories(id) ON DELETE SET NULL,
                    selector TEXT NOT NULL,
                    highlighted_text TEXT NOT NULL,
                    start_paragraph_id INTEGER NOT NULL,
                    end_paragraph_id INTEGER NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_annotations_document
                ON annotations(document_id, start_paragraph_id)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_annotations_category
                ON annotations(category_id)
            """)
            conn.commit()

    # ---------------------------------------------------------------------
    # Row mapping
    # ---------------------------------------------------------------------

    def _row_to_annotation(self, row: sqlite3.Row) -> AnnotationWithCategory:
        data: dict[str, Any] = dict(row)
        category_name = data.pop("category_name", None)
        category_color = data.pop("category_color", None)
        data["selector"] = RangeSelector.model_validate_json(data["selector"])

        category = None
        if data.get("category_id") is not None and category_name is not None:
            category = CategorySummary(
                id=data["category_id"], name=category_name, color=category_color
            )
        return AnnotationWithCategory(**data, category=category)

    # ---------------------------------------------------------------------
    # CRUD helpers
    # ---------------------------------------------------------------------

    def create(self, annotation: AnnotationCreate) -> Annotation | None:
        """Persist a new annotation and return the stored record."""
        now = self.get_current_timestamp()
        query = """
            INSERT INTO annotations (
                document_id, category_id, selector, highlighted_text,
                start_paragraph_id, end_paragraph_id, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """
        params = (
            annotation.document_id,
            annotation.category_id,
            annotation.selector.model_dump_json(by_alias=True),
            annotation.highlighted_text,
            annotation.start_paragraph_id,
            annotation.end_paragraph_id,
            now,
            now,
        )
        annotation_id = self.execute_insert(query, params)
        if annotation_id is None:
            logger.error(
                "Failed to save annotation for document %s", annotation.document_id
            )
            return None

        logger.info(
            "Saved annotation %s for document %s (paragraphs %s-%s)",
            annotation_id,
            annotation.document_id,
            annotation.start_paragraph_id,
            annotation.end_paragraph_id,
        )
        if annotation.category_id is not None:
            self._categories.touch_last_used(annotation.category_id)
        return self.get_by_id(annotation_id)

    def get_by_id(self, annotation_id: int) -> AnnotationWithCategory | None:
        row = self.execute_query(
            f"{_SELECT_WITH_CATEGORY} WHERE a.id = ?",
            (annotation_id,),
            fetch_one=True,
        )
        return self._row_to_annotation(row) if row else None

    def list_by_document(self, document_id: str) -> list[AnnotationWithCategory]:
        """All annotations of a document, in reading order."""
        rows = self.execute_query(
            f"""
            {_SELECT_WITH_CATEGORY}
            WHERE a.document_id = ?
            ORDER BY a.start_paragraph_id ASC, a.id ASC
            """,
            (document_id,),
            fetch_all=True,
        )
        return [self._row_to_annotation(row) for row in rows] if rows else []

    def list_for_paragraphs(
        self, document_id: str, paragraph_ids: list[int]
    ) -> list[AnnotationWithCategory]:
        """
        Annotations whose paragraph range covers any of ``paragraph_ids``.

        Used to fetch only what the current viewport needs. A paragraph in
        the middle of a multi-paragraph highlight matches too.
        """
        if not paragraph_ids:
            return []
        covers = " OR ".join(
            "? BETWEEN a.start_paragraph_id AND a.end_paragraph_id"
            for _ in paragraph_ids
        )
        rows = self.execute_query(
            f"""
            {_SELECT_WITH_CATEGORY}
            WHERE a.document_id = ?
            AND ({covers})
            ORDER BY a.start_paragraph_id ASC, a.id ASC
            """,
            (document_id, *paragraph_ids),
            fetch_all=True,
        )
        return [self._row_to_annotation(row) for row in rows] if rows else []

    def list_by_category(self, category_id: int) -> list[AnnotationWithCategory]:
        """Every passage tagged with a category, across documents."""
        rows = self.execute_query(
            f"""
            {_SELECT_WITH_CATEGORY}
            WHERE a.category_id = ?
            ORDER BY a.document_id ASC, a.start_paragraph_id ASC, a.id ASC
            """,
            (category_id,),
            fetch_all=True,
        )
        return [self._row_to_annotation(row) for row in rows] if rows else []

    def update_category(
        self, annotation_id: int, category_id: int | None
    ) -> Annotation | None:
        """
        Retag an annotation. ``None`` removes the tag.

        Returns None when the annotation or category does not exist.
        """
        updated = self.execute_update_delete(
            "UPDATE annotations SET category_id = ?, updated_at = ? WHERE id = ?",
            (category_id, self.get_current_timestamp(), annotation_id),
        )
        if not updated:
            logger.warning(
                "Could not set category %s on annotation %s", category_id, annotation_id
            )
            return None

        logger.info("Set category %s on annotation %s", category_id, annotation_id)
        if category_id is not None:
            self._categories.touch_last_used(category_id)
        return self.get_by_id(annotation_id)

    def delete(self, annotation_id: int) -> bool:
        deleted = self.execute_update_delete(
            "DELETE FROM annotations WHERE id = ?", (annotation_id,)
        )
        if deleted:
            logger.info("Deleted annotation %s", annotation_id)
        return deleted

    def count_by_document(self) -> dict[str, int]:
        """Number of annotations per document id."""
        rows = self.execute_query(
            """
            SELECT document_id, COUNT(*) AS annotation_count
            FROM annotations
            GROUP BY document_id
            """,
            fetch_all=True,
        )
        if not rows:
            return {}
        return {row["document_id"]: row["annotation_count"] for row in rows}
