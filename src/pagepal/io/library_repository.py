"""Data access layer for book persistence."""

import sqlite3
import time
from pathlib import Path
from typing import List

from pagepal.core import Book, ChapterSpan, ContentKind, ContentUnit, Label


class LibraryRepository:
    """Round-trips books (content store, chapters and bookmark) through SQLite.

    This repository follows the failing-fast philosophy: all operations
    raise exceptions rather than returning None. A loaded Book is always
    complete on success.
    """

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize repository with database connection.

        Args:
            connection: SQLite connection with the library schema created.

        Raises:
            RuntimeError: If connection is None.
        """
        if connection is None:
            raise RuntimeError("Database connection required")
        self.connection = connection
        self.connection.row_factory = sqlite3.Row

    def save_book(self, title: Label, book: Book) -> int:
        """Insert or replace a book and everything it owns.

        Args:
            title: Library title of the book.
            book: The book to persist.

        Returns:
            int: Row id of the stored book.

        Raises:
            RuntimeError: If the title is blank or the write fails.
        """
        if not title:
            raise RuntimeError("Book title cannot be empty")
        now = int(time.time())
        source = book.source.url if book.source is not None else None

        try:
            cur = self.connection.cursor()
            cur.execute(
                """
                INSERT INTO books (title, source, current_chapter, date_added, last_opened)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(title) DO UPDATE SET
                    source = excluded.source,
                    current_chapter = excluded.current_chapter,
                    last_opened = excluded.last_opened
                """,
                (str(title), source, book.current_chapter_index, now, now),
            )
            book_id = self._book_id(title)
            cur.execute("DELETE FROM chapters WHERE book_id = ?", (book_id,))
            cur.execute("DELETE FROM contents WHERE book_id = ?", (book_id,))
            cur.executemany(
                """
                INSERT INTO chapters (
                    book_id, position, start_id, span_length, source, name, fully_loaded
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        book_id,
                        position,
                        chapter.offset,
                        chapter.length,
                        chapter.source,
                        str(chapter.name) if chapter.name is not None else None,
                        int(chapter.fully_loaded),
                    )
                    for position, chapter in enumerate(book.chapters)
                ],
            )
            cur.executemany(
                """
                INSERT INTO contents (book_id, content_id, kind, location, source, body)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        book_id,
                        content_id,
                        unit.kind.value,
                        str(unit.location) if unit.location is not None else None,
                        unit.source,
                        unit.body,
                    )
                    for content_id, unit in book.content.items()
                ],
            )
            self.connection.commit()
        except sqlite3.Error as e:
            self.connection.rollback()
            raise RuntimeError(f"Failed to save book {title}: {e}") from e
        return book_id

    def load_book(self, title: Label) -> Book:
        """Rebuild a book from its rows.

        Raises:
            RuntimeError: If the book is not stored or the query fails.
        """
        # pagepal.services imports this package
        from pagepal.services.retrieval.page import Page

        try:
            cur = self.connection.cursor()
            cur.execute(
                "SELECT id, source, current_chapter FROM books WHERE title = ?",
                (str(title),),
            )
            row = cur.fetchone()
            if row is None:
                raise RuntimeError(f"Book not found in library: {title}")
            book_id = row["id"]

            cur.execute(
                """
                SELECT start_id, span_length, source, name, fully_loaded
                FROM chapters WHERE book_id = ? ORDER BY position ASC
                """,
                (book_id,),
            )
            chapters = [self._row_to_chapter(r) for r in cur.fetchall()]

            cur.execute(
                """
                SELECT content_id, kind, location, source, body
                FROM contents WHERE book_id = ? ORDER BY content_id ASC
                """,
                (book_id,),
            )
            content = {r["content_id"]: self._row_to_unit(r) for r in cur.fetchall()}
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to load book {title}: {e}") from e

        source = Page.try_parse(row["source"]) if row["source"] else None
        book = Book(source=source, content=content, chapters=chapters)
        book.current_chapter_index = min(row["current_chapter"], len(book.chapters) - 1)
        return book

    def list_titles(self) -> List[Label]:
        """All stored titles, most recently opened first.

        Raises:
            RuntimeError: If the query fails.
        """
        try:
            cur = self.connection.cursor()
            cur.execute("SELECT title FROM books ORDER BY last_opened DESC, title ASC")
            return [Label(r["title"]) for r in cur.fetchall()]
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to list books: {e}") from e

    def delete_book(self, title: Label) -> None:
        """Remove a book and its rows (does NOT delete files).

        Raises:
            RuntimeError: If the book is not found or the write fails.
        """
        try:
            cur = self.connection.cursor()
            cur.execute("DELETE FROM books WHERE title = ?", (str(title),))
            if cur.rowcount == 0:
                raise RuntimeError(f"Book not found: {title}")
            self.connection.commit()
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to delete book: {e}") from e

    def rename_book(self, old: Label, new: Label) -> None:
        """Give a stored book a new title.

        Raises:
            RuntimeError: If the new title is empty or taken, the book is
                missing, or the write fails.
        """
        if not new:
            raise RuntimeError("Book title cannot be empty")
        try:
            cur = self.connection.cursor()
            cur.execute("UPDATE books SET title = ? WHERE title = ?", (str(new), str(old)))
            if cur.rowcount == 0:
                raise RuntimeError(f"Book not found: {old}")
            self.connection.commit()
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to rename book: {e}") from e

    def update_bookmark(self, title: Label, book: Book) -> None:
        """Persist only the reading position of ``book``.

        Raises:
            RuntimeError: If the book is not found or the write fails.
        """
        bookmark = book.bookmark()
        now = int(time.time())
        try:
            cur = self.connection.cursor()
            cur.execute(
                "UPDATE books SET current_chapter = ?, last_opened = ? WHERE title = ?",
                (book.current_chapter_index, now, str(title)),
            )
            if cur.rowcount == 0:
                raise RuntimeError(f"Book not found: {title}")
            cur.execute(
                """
                UPDATE chapters SET start_id = ?, span_length = ?
                WHERE position = 0 AND book_id = (SELECT id FROM books WHERE title = ?)
                """,
                (bookmark.offset, bookmark.length, str(title)),
            )
            self.connection.commit()
        except sqlite3.Error as e:
            raise RuntimeError(f"Failed to update bookmark: {e}") from e

    def _book_id(self, title: Label) -> int:
        cur = self.connection.cursor()
        cur.execute("SELECT id FROM books WHERE title = ?", (str(title),))
        row = cur.fetchone()
        if row is None:
            raise RuntimeError(f"Book not found in library: {title}")
        return row["id"]

    @staticmethod
    def _row_to_chapter(row: sqlite3.Row) -> ChapterSpan:
        return ChapterSpan(
            offset=row["start_id"],
            length=row["span_length"],
            source=row["source"],
            name=Label(row["name"]) if row["name"] is not None else None,
            fully_loaded=bool(row["fully_loaded"]),
        )

    @staticmethod
    def _row_to_unit(row: sqlite3.Row) -> ContentUnit:
        """Convert database row to ContentUnit entity."""
        location = Path(row["location"]) if row["location"] is not None else None
        return ContentUnit(
            kind=ContentKind(row["kind"]),
            location=location,
            source=row["source"],
            body=row["body"] or "",
        )
