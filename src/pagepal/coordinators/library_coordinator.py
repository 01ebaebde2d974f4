"""Library Coordinator - Orchestrates books, retrieval and persistence."""

import logging
from pathlib import Path
from typing import Callable, List, Optional

import httpx
from PySide6.QtCore import QObject, QThreadPool, Signal, Slot

from pagepal.core import Book, Label, Library
from pagepal.io import LibraryRepository
from pagepal.services.crawl_workers import BookAssemblyWorker
from pagepal.services.retrieval import DelayMap, FinderRegistry, Retriever, builtin_finders

logger = logging.getLogger(__name__)


class LibraryCoordinator(QObject):
    """Library-level API a front end drives.

    Responsibilities:
    - Build books from web addresses (awaitable, or on the Qt thread pool)
    - Open books from local directories
    - Rename and remove books
    - Move the reading position and persist it
    """

    book_added = Signal(object)  # Label
    book_removed = Signal(object)  # Label
    position_changed = Signal(object)  # List[(id, ContentUnit)]
    error_occurred = Signal(str)

    def __init__(
        self,
        library: Library,
        retriever_factory: Callable[..., Retriever],
        library_repository: Optional[LibraryRepository] = None,
        thread_pool: Optional[QThreadPool] = None,
        delays: Optional[DelayMap] = None,
    ):
        """
        Args:
            library: Books in memory.
            retriever_factory: Builds a Retriever from the ``registry``,
                ``delays`` and ``cookies`` keyword arguments it is called with.
            library_repository: Optional persistence for books and bookmarks.
            thread_pool: Pool for background assembly (the global pool by default).
            delays: Per-domain request spacing shared by every retriever.
        """
        super().__init__()

        if library is None:
            raise ValueError("Library must not be None")
        if retriever_factory is None:
            raise ValueError("Retriever factory must not be None")

        self.library = library
        self.retriever_factory = retriever_factory
        self.library_repository = library_repository
        self.thread_pool = thread_pool or QThreadPool.globalInstance()

        # Shared by every retriever this coordinator builds
        self.registry = FinderRegistry(builtin_finders())
        self.delays = delays if delays is not None else DelayMap()
        self.cookies = httpx.Cookies()

    def new_retriever(self) -> Retriever:
        """A Retriever wired to the coordinator's finders, delays and cookies."""
        return self.retriever_factory(registry=self.registry, delays=self.delays, cookies=self.cookies)

    def load_saved_books(self) -> List[Label]:
        """Fill the library from the repository, if there is one."""
        if self.library_repository is None:
            return []
        titles = self.library_repository.list_titles()
        for title in titles:
            self.library.add_book(title, self.library_repository.load_book(title))
        return titles

    async def add_book_from_url(self, address: str) -> Label:
        """Assemble a book from ``address``, store it and make it current.

        Raises:
            BookAssemblyError: If no book could be built from the address.
        """
        retriever = self.new_retriever()
        try:
            title, book = await retriever.assemble_new_book(address)
        finally:
            await retriever.aclose()
        self._store(title, book)
        return title

    def request_book_from_url(self, address: str) -> BookAssemblyWorker:
        """Assemble a book on the thread pool; results arrive through signals."""
        worker = BookAssemblyWorker(address, self.new_retriever)
        worker.signals.book_assembled.connect(self._on_book_assembled)
        worker.signals.error.connect(self.error_occurred.emit)
        self.thread_pool.start(worker)
        return worker

    @Slot(object, object)
    def _on_book_assembled(self, title: Label, book: Book):
        try:
            self._store(title, book)
        except RuntimeError as e:
            self.error_occurred.emit(f"Failed to save book: {e}")

    def open_local_book(self, path: Path) -> Label:
        """Open a book directory and make it current.

        Raises:
            BookStateError: If ``path`` is not a directory.
        """
        title, book = Book.open(Path(path))
        self._store(title, book)
        return title

    def remove_book(self, title: Label) -> Optional[Book]:
        book = self.library.remove(title)
        if book is None:
            return None
        if self.library_repository is not None:
            try:
                self.library_repository.delete_book(title)
            except RuntimeError:
                logger.info("%s was never saved", title)
        self.book_removed.emit(title)
        return book

    def rename_book(self, old: Label, new: Label) -> bool:
        if not new or not self.library.rename(old, new):
            return False
        if self.library_repository is not None:
            self.library_repository.rename_book(old, new)
        return True

    def select_book(self, title: Label) -> Book:
        return self.library.select(title)

    def advance(self, n: int = 1) -> List:
        return self._move(lambda book: book.advance_by(n))

    def backtrack(self, n: int = 1) -> List:
        return self._move(lambda book: book.backtrack_by(n))

    async def load_next_chapter(self) -> bool:
        """Append the next chapter of the current book from its source site."""
        book = self.library.current()
        if book is None:
            return False
        retriever = self.new_retriever()
        try:
            chapter = await retriever.load_next_chapter(book)
        finally:
            await retriever.aclose()
        if chapter is None:
            return False
        self._persist(self.library.current_title(), book)
        return True

    def _move(self, step: Callable[[Book], list]) -> list:
        book = self.library.current()
        if book is None:
            return []
        window = step(book)
        title = self.library.current_title()
        if self.library_repository is not None and title is not None:
            self.library_repository.update_bookmark(title, book)
        self.position_changed.emit(window)
        return window

    def _store(self, title: Label, book: Book) -> None:
        self.library.add_book(title, book)
        self.library.select(title)
        self._persist(title, book)
        logger.info("Added %s to the library", title)
        self.book_added.emit(title)

    def _persist(self, title: Optional[Label], book: Book) -> None:
        if self.library_repository is not None and title is not None:
            self.library_repository.save_book(title, book)
