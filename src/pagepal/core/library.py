"""Library aggregate - books addressed by Label, plus reading groups."""

from typing import Dict, List, Optional, Set

from .book import Book
from .chapter import MAX_ID
from .errors import BookStateError
from .label import Label

DEFAULT_GROUP = "Reading"


class IdAllocator:
    """Hands out 16-bit ids, wrapping around at the top of the id space."""

    def __init__(self, start: int = 0) -> None:
        self._next = start % MAX_ID

    def allocate(self) -> int:
        value = self._next
        self._next = (self._next + 1) % MAX_ID
        return value


class TitleRegistry:
    """Bidirectional map between book titles and internal ids."""

    def __init__(self, allocator: Optional[IdAllocator] = None) -> None:
        self._allocator = allocator or IdAllocator()
        self._by_title: Dict[Label, int] = {}
        self._by_id: Dict[int, Label] = {}

    def __len__(self) -> int:
        return len(self._by_title)

    def __contains__(self, title: Label) -> bool:
        return title in self._by_title

    def add_name(self, title: Label) -> int:
        """Return the id of ``title``, assigning a fresh one on first sight."""
        if title in self._by_title:
            return self._by_title[title]
        new_id = self._allocator.allocate()
        while new_id in self._by_id:
            new_id = self._allocator.allocate()
        self._by_title[title] = new_id
        self._by_id[new_id] = title
        return new_id

    def id_of(self, title: Label) -> Optional[int]:
        return self._by_title.get(title)

    def title_of(self, book_id: int) -> Optional[Label]:
        return self._by_id.get(book_id)

    def rename(self, old: Label, new: Label) -> bool:
        """Move the id of ``old`` to ``new``. Returns False if ``old`` is unknown
        or ``new`` is already taken."""
        if old not in self._by_title or (new in self._by_title and new != old):
            return False
        book_id = self._by_title.pop(old)
        self._by_title[new] = book_id
        self._by_id[book_id] = new
        return True

    def remove(self, title: Label) -> Optional[int]:
        book_id = self._by_title.pop(title, None)
        if book_id is not None:
            self._by_id.pop(book_id, None)
        return book_id

    def titles(self) -> List[Label]:
        return sorted(self._by_title)


class Library:
    """Collection of books the reader knows about.

    Callers address books by Label only; the numeric ids that key ``books``
    and ``groups`` never leave this class.
    """

    def __init__(self, allocator: Optional[IdAllocator] = None) -> None:
        self.titles = TitleRegistry(allocator)
        self.books: Dict[int, Book] = {}
        self.groups: Dict[str, Set[int]] = {DEFAULT_GROUP: set()}
        self._current: Optional[int] = None

    def size(self) -> int:
        return len(self.books)

    def __contains__(self, title: Label) -> bool:
        book_id = self.titles.id_of(title)
        return book_id is not None and book_id in self.books

    def add_book(self, title: Label, book: Book) -> Optional[Book]:
        """Store ``book`` under ``title``, returning the book it replaced."""
        book_id = self.titles.add_name(title)
        previous = self.books.get(book_id)
        self.books[book_id] = book
        if self._current is None:
            self._current = book_id
        return previous

    replace = add_book

    def book(self, title: Label) -> Book:
        """Return the book stored under ``title``, creating an empty one if needed."""
        book_id = self.titles.add_name(title)
        if book_id not in self.books:
            self.books[book_id] = Book()
        return self.books[book_id]

    def get(self, title: Label) -> Optional[Book]:
        book_id = self.titles.id_of(title)
        return self.books.get(book_id) if book_id is not None else None

    def remove(self, title: Label) -> Optional[Book]:
        book_id = self.titles.remove(title)
        if book_id is None:
            return None
        for members in self.groups.values():
            members.discard(book_id)
        if self._current == book_id:
            self._current = None
        return self.books.pop(book_id, None)

    def rename(self, old: Label, new: Label) -> bool:
        return self.titles.rename(old, new)

    def list_titles(self) -> List[Label]:
        return [t for t in self.titles.titles() if self.titles.id_of(t) in self.books]

    # Current book

    def select(self, title: Label) -> Book:
        book_id = self.titles.id_of(title)
        if book_id is None or book_id not in self.books:
            raise BookStateError(f"Book not in library: {title}")
        self._current = book_id
        return self.books[book_id]

    def current(self) -> Optional[Book]:
        return self.books.get(self._current) if self._current is not None else None

    def current_title(self) -> Optional[Label]:
        return self.titles.title_of(self._current) if self._current is not None else None

    # Groups

    def add_group(self, name: str) -> Set[int]:
        return self.groups.setdefault(name, set())

    def remove_group(self, name: str) -> Optional[Set[int]]:
        return self.groups.pop(name, None)

    def add_to_group(self, name: str, title: Label) -> None:
        book_id = self.titles.id_of(title)
        if book_id is None:
            raise BookStateError(f"Book not in library: {title}")
        self._group(name).add(book_id)

    def remove_from_group(self, name: str, title: Label) -> None:
        book_id = self.titles.id_of(title)
        if book_id is not None:
            self._group(name).discard(book_id)

    def group_books(self, name: str) -> List[Book]:
        return [self.books[i] for i in sorted(self._group(name)) if i in self.books]

    def group_names(self, name: str) -> List[Label]:
        return sorted(self.titles.title_of(i) for i in self._group(name) if i in self.books)

    def group_size(self, name: str) -> int:
        return len(self.groups.get(name, ()))

    def list_groups(self) -> List[str]:
        return sorted(self.groups)

    def _group(self, name: str) -> Set[int]:
        if name not in self.groups:
            raise BookStateError(f"Unknown group: {name}")
        return self.groups[name]
