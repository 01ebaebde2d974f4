"""SQLite connection and schema for the book library."""

import logging
import sqlite3
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Owns the SQLite connection and the library schema."""

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.connection = sqlite3.connect(str(self.db_path))
        self.connection.row_factory = sqlite3.Row
        self.connection.execute("PRAGMA foreign_keys = ON;")

    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        cur = self.connection.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL UNIQUE,
                source TEXT,
                current_chapter INTEGER NOT NULL DEFAULT 0,
                date_added INTEGER NOT NULL,
                last_opened INTEGER NOT NULL
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS chapters (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                book_id INTEGER NOT NULL,
                position INTEGER NOT NULL,
                start_id INTEGER NOT NULL,
                span_length INTEGER NOT NULL,
                source TEXT,
                name TEXT,
                fully_loaded INTEGER NOT NULL DEFAULT 0,

                FOREIGN KEY(book_id) REFERENCES books(id) ON DELETE CASCADE,
                UNIQUE(book_id, position)
            );
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS contents (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                book_id INTEGER NOT NULL,
                content_id INTEGER NOT NULL,
                kind TEXT NOT NULL,
                location TEXT,
                source TEXT,
                body TEXT NOT NULL DEFAULT '',

                FOREIGN KEY(book_id) REFERENCES books(id) ON DELETE CASCADE,
                UNIQUE(book_id, content_id)
            );
            """
        )
        cur.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_chapters_book
            ON chapters(book_id);
            """
        )
        cur.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_contents_book
            ON contents(book_id);
            """
        )
        self.connection.commit()
        logger.debug("Schema ready in %s", self.db_path)

    def close(self) -> None:
        self.connection.close()
