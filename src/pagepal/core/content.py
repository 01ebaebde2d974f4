"""ContentUnit entity - one image, text, unsupported file or placeholder in a book."""

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import List, Optional

UNSORTED_PATH = Path("library") / "unsorted"


class ContentKind(Enum):
    IMAGE = "image"
    TEXT = "text"
    OTHER = "other"
    EMPTY = "empty"


@dataclass(frozen=True, eq=False)
class ContentUnit:
    """A single unit of reading material addressed by an id inside a Book.

    Attributes:
        kind: What the unit holds.
        location: Where the unit lives on disk (None for placeholders).
        source: Network address the unit was retrieved from, if any.
        body: Text body, only meaningful for TEXT units.
    """

    kind: ContentKind = ContentKind.EMPTY
    location: Optional[Path] = None
    source: Optional[str] = None
    body: str = ""

    @classmethod
    def image(cls, location: Path, source: Optional[str] = None) -> "ContentUnit":
        return cls(ContentKind.IMAGE, Path(location), source)

    @classmethod
    def text(cls, location: Path, body: str, source: Optional[str] = None) -> "ContentUnit":
        return cls(ContentKind.TEXT, Path(location), source, body)

    @classmethod
    def other(cls, location: Path, source: Optional[str] = None) -> "ContentUnit":
        return cls(ContentKind.OTHER, Path(location), source)

    @classmethod
    def empty(cls) -> "ContentUnit":
        return cls()

    @classmethod
    def from_text(cls, paragraphs: List[str], source: Optional[str] = None) -> "ContentUnit":
        """Build an unsorted text unit from extracted paragraphs."""
        return cls.text(UNSORTED_PATH, "\n\n".join(paragraphs), source)

    @property
    def is_visual(self) -> bool:
        return self.kind is ContentKind.IMAGE

    @property
    def is_empty(self) -> bool:
        return self.kind is ContentKind.EMPTY

    def with_location(self, location: Path) -> "ContentUnit":
        return replace(self, location=Path(location))

    def describe(self) -> str:
        """Placeholder message for units a front end cannot draw directly."""
        if self.kind is ContentKind.OTHER:
            return "Unable to preview."
        if self.kind is ContentKind.EMPTY:
            return "There's no content here."
        return str(self.location)

    def _key(self):
        body = self.body if self.kind is ContentKind.TEXT else ""
        return (self.kind.value, str(self.location or ""), body)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ContentUnit):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "ContentUnit") -> bool:
        if not isinstance(other, ContentUnit):
            return NotImplemented
        mine, theirs = self._key(), other._key()
        # location first so a sorted directory listing keeps file order
        return (mine[1], mine[0], mine[2]) < (theirs[1], theirs[0], theirs[2])

    def __hash__(self) -> int:
        return hash(self._key())
