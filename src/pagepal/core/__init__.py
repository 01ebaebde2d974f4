"""Domain layer - books, chapters and the units of content they hold."""

from .book import Book, Position
from .chapter import ChapterSpan
from .content import ContentKind, ContentUnit
from .errors import (
    AssemblyErrorKind,
    BookAssemblyError,
    BookStateError,
    FetchError,
    InvalidAddressError,
    PagePalError,
)
from .label import Label
from .library import IdAllocator, Library, TitleRegistry

__all__ = [
    "AssemblyErrorKind",
    "Book",
    "BookAssemblyError",
    "BookStateError",
    "ChapterSpan",
    "ContentKind",
    "ContentUnit",
    "FetchError",
    "IdAllocator",
    "InvalidAddressError",
    "Label",
    "Library",
    "PagePalError",
    "Position",
    "TitleRegistry",
]
