"""
PagePal - a reader library for manga and web serials.

This package provides:
- Books built from local directories or assembled from chapter pages on the web
- Chapter-aware content stores with a reading bookmark
- Polite, per-domain rate limited retrieval with site-specific finders
- SQLite persistence of the library
"""

__version__ = "0.1.0"

# Make key components available at package level
from pagepal.core import Book, ChapterSpan, ContentUnit, Label, Library, Position

__all__ = [
    "Book",
    "ChapterSpan",
    "ContentUnit",
    "Label",
    "Library",
    "Position",
]
