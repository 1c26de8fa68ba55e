"""
Base Database Service Module

Connection handling and query helpers shared by the annotation and category
stores. Both stores live in one SQLite file so annotations can reference
categories with a real foreign key.

Failures are logged here and reported as None/False; callers decide whether
that is a 404, a 500 or a retryable lifecycle error.
"""

import logging
import os
import sqlite3
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "data/marginalia.db"


class BaseDatabaseService:
    """Owns the database path and the small query helpers every store uses."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """
        Args:
            db_path: SQLite file holding annotations and categories. Its
                parent directory is created on first use.
        """
        self.db_path = db_path
        self._ensure_data_dir()

    def _ensure_data_dir(self):
        data_dir = os.path.dirname(self.db_path)
        if data_dir and not os.path.exists(data_dir):
            os.makedirs(data_dir)

    def get_connection(self) -> sqlite3.Connection:
        """
        Open a connection with foreign keys enforced.

        SQLite turns foreign keys off for every new connection; without them
        deleting a category would leave annotations pointing at nothing
        instead of untagging them.
        """
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def execute_query(
        self,
        query: str,
        params: tuple = (),
        fetch_one: bool = False,
        fetch_all: bool = False,
    ) -> Any:
        """
        Run a query with rows returned as ``sqlite3.Row``.

        Returns the fetched row(s), or the last row id for writes, or None
        if the query failed.
        """
        try:
            with self.get_connection() as conn:
                conn.row_factory = sqlite3.Row
                cursor = conn.execute(query, params)

                if fetch_one:
                    return cursor.fetchone()
                if fetch_all:
                    return cursor.fetchall()
                conn.commit()
                return cursor.lastrowid
        except sqlite3.Error as e:
            logger.error(f"Database query error: {e}")
            return None

    def execute_insert(self, query: str, params: tuple) -> int | None:
        """Insert a row and return its id; None on failure (e.g. unknown category)."""
        try:
            with self.get_connection() as conn:
                cursor = conn.execute(query, params)
                conn.commit()
                return cursor.lastrowid
        except sqlite3.Error as e:
            logger.error(f"Database insert error: {e}")
            return None

    def execute_update_delete(self, query: str, params: tuple) -> bool:
        """Run an UPDATE or DELETE; True only when at least one row changed."""
        try:
            with self.get_connection() as conn:
                cursor = conn.execute(query, params)
                conn.commit()
                return cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Database update/delete error: {e}")
            return False

    def get_current_timestamp(self) -> str:
        """Local time in SQLite's ``YYYY-MM-DD HH:MM:SS`` format."""
        return datetime.now().strftime("%Y-%m-%d %H:%M:%S")
