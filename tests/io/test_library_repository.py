#!/usr/bin/env python3
"""
Tests for LibraryRepository - validates book persistence.
"""

from pathlib import Path

import pytest

from pagepal.core import Book, ContentKind, ContentUnit, Label, Position
from pagepal.io import DatabaseManager, LibraryRepository
from pagepal.services.retrieval import Page


@pytest.fixture
def db_manager():
    """Create an in-memory database for testing."""
    manager = DatabaseManager(":memory:")
    manager.ensure_schema()
    yield manager
    manager.close()


@pytest.fixture
def library_repo(db_manager):
    return LibraryRepository(db_manager.connection)


@pytest.fixture
def book():
    book = Book(source=Page.parse("https://example.com/manga/foo"))
    book.insert([ContentUnit.image(Path("/library/Foo/cover.jpg"))], Position.COVER)
    book.insert_chapter(
        [ContentUnit.image(Path(f"/library/Foo/0001/000{i}.jpg"), source=f"https://img.example.com/{i}.jpg") for i in range(3)],
        Position.LAST,
        name=Label("Foo"),
        source="https://example.com/manga/foo/chapter-1",
    )
    book.insert_chapter(
        [ContentUnit.text(Path("/library/Foo/0002/0000.txt"), "Interlude text")],
        Position.LAST,
        name=Label("Interlude"),
    )
    return book


def test_repository_requires_connection():
    with pytest.raises(RuntimeError, match="Database connection required"):
        LibraryRepository(None)


def test_save_and_load_round_trip(library_repo, book):
    library_repo.save_book(Label("Foo"), book)

    loaded = library_repo.load_book(Label("Foo"))

    assert loaded.source.url == "https://example.com/manga/foo"
    assert loaded.content == book.content
    assert [(c.offset, c.length, c.source, c.name, c.fully_loaded) for c in loaded.chapters] == [
        (c.offset, c.length, c.source, c.name, c.fully_loaded) for c in book.chapters
    ]
    assert loaded.current_chapter_index == book.current_chapter_index
    assert loaded.content_at(4).kind is ContentKind.TEXT
    assert loaded.content_at(4).body == "Interlude text"
    assert loaded.content_at(1).source == "https://img.example.com/0.jpg"


def test_save_twice_replaces_rows(library_repo, book):
    first_id = library_repo.save_book(Label("Foo"), book)
    book.remove_chapter(2)
    second_id = library_repo.save_book(Label("Foo"), book)

    assert first_id == second_id
    assert library_repo.load_book(Label("Foo")).chapter_count() == 2


def test_save_blank_title_raises(library_repo, book):
    with pytest.raises(RuntimeError, match="cannot be empty"):
        library_repo.save_book(Label("  "), book)


def test_load_missing_book_raises(library_repo):
    with pytest.raises(RuntimeError, match="Book not found"):
        library_repo.load_book(Label("Missing"))


def test_list_titles(library_repo, book):
    library_repo.save_book(Label("Foo"), book)
    library_repo.save_book(Label("Bar"), Book())
    assert set(library_repo.list_titles()) == {Label("Foo"), Label("Bar")}


def test_rename_book(library_repo, book):
    library_repo.save_book(Label("Foo"), book)
    library_repo.rename_book(Label("Foo"), Label("Foo Deluxe"))
    assert library_repo.list_titles() == [Label("Foo Deluxe")]
    with pytest.raises(RuntimeError):
        library_repo.rename_book(Label("Foo"), Label("Other"))


def test_rename_to_taken_title_raises(library_repo, book):
    library_repo.save_book(Label("Foo"), book)
    library_repo.save_book(Label("Bar"), Book())
    with pytest.raises(RuntimeError):
        library_repo.rename_book(Label("Bar"), Label("Foo"))


def test_delete_book(library_repo, book):
    library_repo.save_book(Label("Foo"), book)
    library_repo.delete_book(Label("Foo"))
    assert library_repo.list_titles() == []
    with pytest.raises(RuntimeError):
        library_repo.delete_book(Label("Foo"))


def test_update_bookmark(library_repo, book):
    library_repo.save_book(Label("Foo"), book)
    book.advance_by(3)

    library_repo.update_bookmark(Label("Foo"), book)

    loaded = library_repo.load_book(Label("Foo"))
    assert loaded.current_chapter_index == 2
    assert loaded.bookmark().offset == 4
