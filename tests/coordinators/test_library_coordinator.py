#!/usr/bin/env python3
"""
Tests for LibraryCoordinator - validates library management and wiring.
"""

import asyncio
from unittest.mock import MagicMock

import httpx
import pytest
from PySide6.QtCore import QCoreApplication

from pagepal.coordinators import LibraryCoordinator
from pagepal.core import AssemblyErrorKind, BookAssemblyError, Label, Library
from pagepal.io import ContentStorage, DatabaseManager, LibraryRepository
from pagepal.services import RetrieverConfig
from pagepal.services.retrieval import DelayMap, Retriever

CHAPTER_URL = "https://example.com/manga/foo/chapter-1"
SITE = {
    CHAPTER_URL: (
        "<html><head><title>Foo Chapter 1</title></head><body>"
        '<a href="/manga/foo/chapter-2">Next</a>'
        '<div><img src="/img/foo/1/1.jpg"><img src="/img/foo/1/2.jpg"></div>'
        "</body></html>"
    ),
    "https://example.com/manga/foo/chapter-2": (
        "<html><head><title>Foo Chapter 2</title></head><body>"
        '<div><img src="/img/foo/2/1.jpg"></div>'
        "</body></html>"
    ),
}


def ensure_qt_app():
    if QCoreApplication.instance() is None:
        QCoreApplication([])


def serve(request):
    url = str(request.url)
    if url in SITE:
        return httpx.Response(200, text=SITE[url])
    if request.url.path.startswith("/img/"):
        return httpx.Response(200, content=b"jpeg")
    return httpx.Response(404)


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
def retriever_factory(tmp_path):
    def build(**shared):
        return Retriever(
            RetrieverConfig(delay=0, backoff=0),
            ContentStorage(tmp_path / "library"),
            transport=httpx.MockTransport(serve),
            **shared,
        )
    return build


@pytest.fixture
def coordinator(library_repo, retriever_factory):
    ensure_qt_app()
    return LibraryCoordinator(Library(), retriever_factory, library_repository=library_repo, delays=DelayMap(0))


@pytest.fixture
def local_book(tmp_path):
    root = tmp_path / "Local"
    (root / "01").mkdir(parents=True)
    for i in range(5):
        (root / "01" / f"{i:02}.jpg").write_bytes(b"page")
    return root


def test_library_coordinator_fails_fast_on_none_library(retriever_factory):
    """LibraryCoordinator should raise on None library."""
    ensure_qt_app()

    with pytest.raises(ValueError, match="Library must not be None"):
        LibraryCoordinator(None, retriever_factory)


def test_library_coordinator_fails_fast_on_none_factory():
    """LibraryCoordinator should raise on None retriever factory."""
    ensure_qt_app()

    with pytest.raises(ValueError, match="Retriever factory must not be None"):
        LibraryCoordinator(Library(), None)


def test_add_book_from_url_stores_and_persists(coordinator, library_repo):
    added = []
    coordinator.book_added.connect(lambda title: added.append(title))

    title = asyncio.run(coordinator.add_book_from_url(CHAPTER_URL))

    assert title == Label("Foo")
    assert coordinator.library.current_title() == Label("Foo")
    assert library_repo.list_titles() == [Label("Foo")]
    assert added == [Label("Foo")]


def test_add_book_from_url_failure_leaves_library_untouched(coordinator):
    with pytest.raises(BookAssemblyError) as excinfo:
        asyncio.run(coordinator.add_book_from_url("https://example.com/missing"))

    assert excinfo.value.kind is AssemblyErrorKind.NO_BOOK
    assert coordinator.library.size() == 0


def test_request_book_from_url_runs_worker_on_pool(library_repo, retriever_factory):
    ensure_qt_app()
    pool = MagicMock()
    pool.start.side_effect = lambda worker: worker.run()
    coordinator = LibraryCoordinator(Library(), retriever_factory, library_repo, thread_pool=pool, delays=DelayMap(0))

    coordinator.request_book_from_url(CHAPTER_URL)

    pool.start.assert_called_once()
    assert Label("Foo") in coordinator.library
    assert library_repo.list_titles() == [Label("Foo")]


def test_request_book_from_url_reports_errors(library_repo, retriever_factory):
    ensure_qt_app()
    pool = MagicMock()
    pool.start.side_effect = lambda worker: worker.run()
    coordinator = LibraryCoordinator(Library(), retriever_factory, library_repo, thread_pool=pool, delays=DelayMap(0))
    errors = []
    coordinator.error_occurred.connect(lambda message: errors.append(message))

    coordinator.request_book_from_url("https://example.com/missing")

    assert errors == ["No book could be fetched from this address."]
    assert coordinator.library.size() == 0


def test_open_local_book(coordinator, local_book, library_repo):
    title = coordinator.open_local_book(local_book)

    assert title == Label("Local")
    assert coordinator.library.current() is coordinator.library.get(title)
    assert library_repo.load_book(title).content_len() == 6


def test_advance_and_backtrack_persist_bookmark(coordinator, local_book, library_repo):
    coordinator.open_local_book(local_book)
    windows = []
    coordinator.position_changed.connect(lambda window: windows.append(window))

    coordinator.advance(2)
    assert library_repo.load_book(Label("Local")).bookmark().offset == 3

    coordinator.backtrack(1)
    assert library_repo.load_book(Label("Local")).bookmark().offset == 2
    assert len(windows) == 2


def test_moving_without_a_book_does_nothing(coordinator):
    assert coordinator.advance() == []


def test_remove_book(coordinator, local_book, library_repo):
    coordinator.open_local_book(local_book)
    removed = []
    coordinator.book_removed.connect(lambda title: removed.append(title))

    assert coordinator.remove_book(Label("Local")) is not None
    assert removed == [Label("Local")]
    assert library_repo.list_titles() == []
    assert coordinator.remove_book(Label("Local")) is None


def test_rename_book(coordinator, local_book, library_repo):
    coordinator.open_local_book(local_book)

    assert coordinator.rename_book(Label("Local"), Label("Renamed"))
    assert library_repo.list_titles() == [Label("Renamed")]
    assert not coordinator.rename_book(Label("Renamed"), Label("  "))
    assert not coordinator.rename_book(Label("Missing"), Label("Other"))


def test_load_saved_books(library_repo, retriever_factory, coordinator, local_book):
    coordinator.open_local_book(local_book)

    fresh = LibraryCoordinator(Library(), retriever_factory, library_repo)

    assert fresh.load_saved_books() == [Label("Local")]
    assert fresh.library.get(Label("Local")).content_len() == 6


def test_load_next_chapter(coordinator, library_repo):
    async def scenario():
        await coordinator.add_book_from_url(CHAPTER_URL)
        return await coordinator.load_next_chapter()

    assert asyncio.run(scenario()) is True
    assert library_repo.load_book(Label("Foo")).chapter_count() == 3


def test_load_next_chapter_without_book(coordinator):
    assert asyncio.run(coordinator.load_next_chapter()) is False


def test_retrievers_share_finders_delays_and_cookies(library_repo, tmp_path):
    ensure_qt_app()
    cookies_sent = []

    def handler(request):
        cookies_sent.append(request.headers.get("cookie"))
        url = str(request.url)
        if url in SITE:
            return httpx.Response(200, text=SITE[url], headers={"set-cookie": "session=abc; Path=/"})
        return serve(request)

    built = []

    def build(**shared):
        retriever = Retriever(
            RetrieverConfig(delay=0, backoff=0),
            ContentStorage(tmp_path / "library"),
            transport=httpx.MockTransport(handler),
            **shared,
        )
        built.append(retriever)
        return retriever

    coordinator = LibraryCoordinator(Library(), build, library_repo, delays=DelayMap(0))

    asyncio.run(coordinator.add_book_from_url(CHAPTER_URL))
    first_run = len(cookies_sent)
    assert asyncio.run(coordinator.load_next_chapter()) is True

    assert len(built) == 2
    assert built[0].registry is built[1].registry is coordinator.registry
    assert built[0].delays is built[1].delays is coordinator.delays
    assert "example.com" in coordinator.delays
    assert coordinator.cookies["session"] == "abc"
    assert cookies_sent[0] is None
    assert cookies_sent[first_run:] == ["session=abc"] * (len(cookies_sent) - first_run)
