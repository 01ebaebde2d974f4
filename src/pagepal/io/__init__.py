"""I/O layer - Data access for persistence and file operations."""

from .content_storage import ContentStorage
from .database_manager import DatabaseManager
from .library_repository import LibraryRepository

__all__ = ["ContentStorage", "DatabaseManager", "LibraryRepository"]
