"""Book entity - a sparse content store partitioned into chapters."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from .chapter import MAX_ID, ChapterSpan
from .content import ContentUnit
from .errors import BookStateError
from .label import Label

if TYPE_CHECKING:
    from pagepal.services.retrieval.page import Page

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tiff", ".webp"}
TEXT_EXTENSIONS = {".txt"}

Entry = Tuple[int, ContentUnit]


class Position(Enum):
    """Where new content lands relative to the book's existing content."""

    FIRST = "first"
    BEFORE_CURRENT = "before_current"
    AFTER_CURRENT = "after_current"
    LAST = "last"
    COVER = "cover"


@dataclass
class Book:
    """Owns the content store, its chapters and the reading position.

    ``content`` maps 16-bit ids to units; id 0 is always the cover slot.
    ``chapters[0]`` is the bookmark: its range is the window of units
    currently shown to the reader. ``chapters[1:]`` are the real chapters.
    """

    source: Optional["Page"] = None
    content: Dict[int, ContentUnit] = field(default_factory=dict)
    chapters: List[ChapterSpan] = field(default_factory=list)
    current_chapter_index: int = 0

    def __post_init__(self):
        if not self.content:
            self.content[0] = ContentUnit.empty()
        if not self.chapters:
            self.chapters.append(ChapterSpan())

    @classmethod
    def new(cls, source: Optional["Page"] = None) -> "Book":
        return cls(source=source)

    @classmethod
    def open(cls, path: Path) -> Tuple[Label, "Book"]:
        """Build a book from a directory tree.

        ``<dir>/<dir name>.<image ext>`` becomes the cover, loose top-level
        files are stored without a chapter, and each subdirectory becomes one
        chapter in name order.

        Raises:
            BookStateError: If ``path`` is not a directory.
        """
        path = Path(path)
        if not path.is_dir():
            raise BookStateError(f"Not a book directory: {path}")

        title = Label(path.name)
        book = cls()

        cover = next(
            (c for c in sorted(path.glob(f"{path.name}.*")) if c.suffix.lower() in IMAGE_EXTENSIONS),
            None,
        )
        if cover is not None:
            logger.debug("Has cover: %s", cover)
            book.insert([ContentUnit.image(cover)], Position.COVER)

        top_level = []
        subdirs = []
        for entry in sorted(path.iterdir()):
            if entry.is_dir():
                subdirs.append(entry)
            elif entry != cover:
                unit = _unit_from_file(entry)
                if unit is not None:
                    top_level.append(unit)
        book.insert(sorted(top_level), Position.LAST)

        for subdir in subdirs:
            units = sorted(
                unit
                for unit in (_unit_from_file(f) for f in subdir.iterdir() if f.stem != "cover")
                if unit is not None
            )
            if not units:
                continue
            inserted = book.insert(units, Position.LAST)
            chapter = ChapterSpan(offset=inserted.start, length=len(inserted) - 1, name=Label(subdir.name))
            chapter.fully_loaded = True
            book.chapters.append(chapter)

        book.next_chapter()
        if book.current_chapter_index:
            book.bookmark().offset = book.current_chapter().start
        return title, book

    # Content store

    def cover(self) -> ContentUnit:
        return self.content[0]

    def content_at(self, content_id: int) -> Optional[ContentUnit]:
        return self.content.get(content_id)

    def content_len(self) -> int:
        return len(self.content)

    def max_key(self) -> int:
        return max(self.content) if self.content else 0

    def content_range(self, ids: range) -> List[Entry]:
        """Units whose ids fall inside ``ids``, in id order."""
        return [(k, self.content[k]) for k in sorted(self.content) if k in ids]

    def insert(self, units: Iterable[ContentUnit], position: Position = Position.LAST) -> range:
        """Splice ``units`` into the store at ``position``.

        Existing ids at or after the split point move up by the number of new
        units, keeping their order and gaps. Chapter spans are not touched;
        use :meth:`insert_chapter` to splice and realign them in one step.

        Returns:
            The ids assigned to the new units (empty for a no-op).

        Raises:
            BookStateError: If the new ids would not fit in 16 bits.
        """
        return self._splice(units, position)[0]

    def _splice(
        self,
        units: Iterable[ContentUnit],
        position: Position,
        anchor: Optional[ChapterSpan] = None,
    ) -> Tuple[range, Optional[int]]:
        pending = list(units)
        if not pending:
            return range(0), None
        if anchor is None:
            anchor = self.bookmark()

        if position is Position.COVER:
            self.content[0] = pending.pop(0)
            if not pending:
                return range(0, 1), None
            target = 1
        elif position is Position.FIRST:
            target = 1
        elif position is Position.BEFORE_CURRENT:
            target = max(1, anchor.start)
        elif position is Position.AFTER_CURRENT:
            target = anchor.end + 1
        else:
            target = self.max_key() + 1

        count = len(pending)

        if not self.content:
            self.content[0] = pending[0]
            logger.debug("Empty store, cover duplicated from first unit")

        if len(self.content) == 1:
            logger.debug("Only a cover exists.")
            inserted = range(1, 1 + count)
            self._check_fits(inserted.stop - 1)
            for content_id, unit in zip(inserted, pending):
                self.content[content_id] = unit
            return inserted, None

        # No key at or past the target: the largest key is the split point and
        # the units are appended after it, so no existing id moves.
        split = min((k for k in self.content if k >= target), default=None)
        kept = {k: v for k, v in self.content.items() if split is None or k < split}
        leftovers = {k + count: v for k, v in self.content.items() if split is not None and k >= split}

        start = max(kept) + 1
        inserted = range(start, start + count)
        incoming = dict(zip(inserted, pending))
        self._check_fits(max(leftovers, default=inserted.stop - 1))
        collisions = incoming.keys() & leftovers.keys()
        if collisions:
            raise BookStateError(f"Content id collision at {min(collisions)}")

        self.content = dict(sorted({**kept, **incoming, **leftovers}.items()))
        return inserted, split

    def insert_chapter(
        self,
        units: Iterable[ContentUnit],
        position: Position = Position.LAST,
        name: Optional[Label] = None,
        source: Optional[str] = None,
    ) -> Optional[ChapterSpan]:
        """Splice ``units`` in as a new chapter and keep every other span aligned.

        Spans starting at or after the split point move with their content,
        spans straddling it grow to cover the units that landed inside them.
        The new chapter is placed in the chapter list according to ``position``.
        ``BEFORE_CURRENT`` and ``AFTER_CURRENT`` are measured from the current
        chapter's boundaries, so the new chapter never lands inside it.

        Returns:
            The new chapter, or None when ``units`` is empty.
        """
        pending = list(units)
        if not pending:
            return None
        if position is Position.COVER:
            position = Position.FIRST

        inserted, split = self._splice(pending, position, anchor=self.current_chapter())
        count = len(inserted)
        if split is not None:
            for span in self.chapters:
                if span.start >= split:
                    span.offset = span.start + count
                elif span.contains(split):
                    span.length += count

        chapter = ChapterSpan(offset=inserted.start, length=count - 1, source=source, name=name, fully_loaded=True)
        if position is Position.FIRST:
            slot = 1
        elif position is Position.BEFORE_CURRENT:
            slot = max(1, self.current_chapter_index)
        elif position is Position.AFTER_CURRENT:
            slot = self.current_chapter_index + 1
        else:
            slot = len(self.chapters)
        self.chapters.insert(slot, chapter)
        if self.current_chapter_index >= slot:
            self.current_chapter_index += 1
        elif self.current_chapter_index == 0:
            self.current_chapter_index = slot
            self.bookmark().offset = chapter.start
        return chapter

    def cut(self, ids: range) -> List[ContentUnit]:
        """Take ``ids`` out of the book and close the gap.

        Later units move down by ``len(ids)`` and every chapter span, the
        bookmark included, is shrunk to match.
        """
        if len(ids) == 0:
            return []
        if 0 in ids:
            raise BookStateError("The cover slot cannot be cut")
        removed = self.remove_content(ids)
        last = ids[-1]
        count = len(ids)
        self.content = {(k - count if k > last else k): v for k, v in sorted(self.content.items())}
        for span in self.chapters:
            span.shrink(ids)
        return removed

    def remove_content(self, ids: range) -> List[ContentUnit]:
        """Drop the units inside ``ids`` (the cover slot is kept)."""
        removed = []
        for k in sorted(self.content):
            if k in ids and k != 0:
                removed.append(self.content.pop(k))
        return removed

    def swap_content(self, first: int, second: int) -> None:
        if first not in self.content or second not in self.content:
            raise BookStateError(f"Cannot swap missing content {first} <-> {second}")
        if first != second:
            self.content[first], self.content[second] = self.content[second], self.content[first]

    @staticmethod
    def _check_fits(highest: int) -> None:
        if highest > MAX_ID:
            raise BookStateError(f"Content id {highest} exceeds the id space")

    # Chapters

    def bookmark(self) -> ChapterSpan:
        return self.chapters[0]

    def current_chapter(self) -> ChapterSpan:
        return self.chapters[self.current_chapter_index]

    def chapter_count(self) -> int:
        return len(self.chapters)

    def is_valid_chapter(self, index: int) -> bool:
        return 0 < index < len(self.chapters)

    def _require_chapter(self, index: int) -> None:
        if not self.is_valid_chapter(index):
            raise BookStateError(
                f"Chapter index {index} out of bounds for book with {len(self.chapters) - 1} chapters"
            )

    def chapter(self, index: int) -> List[Entry]:
        """Units of chapter ``index`` in id order."""
        self._require_chapter(index)
        return self.content_range(self.chapters[index].id_range())

    def chapter_info(self, index: int) -> ChapterSpan:
        if not 0 <= index < len(self.chapters):
            raise BookStateError(f"Chapter index {index} out of bounds")
        chapter = self.chapters[index]
        return ChapterSpan(chapter.offset, chapter.length, chapter.source, chapter.name, chapter.fully_loaded)

    def add_chapter(self, after: Optional[int], length: int) -> ChapterSpan:
        """Append a chapter of ``length`` starting right after chapter ``after``.

        With ``after`` None the chapter starts after the last chapter end.
        """
        if after is not None:
            self._require_chapter(after)
            offset = self.chapters[after].end + 1
        else:
            offset = max((c.end for c in self.chapters[1:]), default=0) + 1
        self._check_fits(offset + length)
        chapter = ChapterSpan(offset=offset, length=length)
        self.chapters.append(chapter)
        return chapter

    def remove_chapter(self, index: int) -> Tuple[ChapterSpan, List[ContentUnit]]:
        """Remove chapter ``index`` together with its units.

        Removing the current chapter moves the bookmark to the start of the
        chapter that takes its place.
        """
        self._require_chapter(index)
        was_current = index == self.current_chapter_index
        chapter = self.chapters.pop(index)
        units = self.remove_content(chapter.id_range())
        if index < self.current_chapter_index:
            self.current_chapter_index -= 1
        self.current_chapter_index = min(self.current_chapter_index, len(self.chapters) - 1)
        if was_current:
            self.bookmark().offset = self.current_chapter().start if self.current_chapter_index else 0
        return chapter, units

    def swap_chapters(self, first: int, second: int) -> None:
        self._require_chapter(first)
        self._require_chapter(second)
        if first != second:
            self.chapters[first], self.chapters[second] = self.chapters[second], self.chapters[first]

    def sort_chapters_by_source(self) -> None:
        """Order real chapters by source address, keeping the current chapter selected."""
        current = self.current_chapter()
        self.chapters[1:] = sorted(self.chapters[1:], key=lambda c: c.source or "")
        for index, chapter in enumerate(self.chapters):
            if chapter is current:
                self.current_chapter_index = index
                break

    # Navigation

    def current(self) -> List[Entry]:
        """Units inside the bookmark window."""
        return self.content_range(self.bookmark().id_range())

    def next_chapter(self) -> None:
        if self.is_valid_chapter(self.current_chapter_index + 1):
            self.current_chapter_index += 1

    def previous_chapter(self) -> None:
        if self.is_valid_chapter(self.current_chapter_index - 1):
            self.current_chapter_index -= 1

    def chapter_set_length(self, index: int, new_length: Optional[int]) -> "Book":
        """Resize a chapter's window to show ``new_length`` units.

        Invalid indices resize the bookmark window. The length never reaches
        past the end of the current chapter.
        """
        target = self.chapters[index] if self.is_valid_chapter(index) else self.bookmark()
        if new_length is not None:
            available = max(0, self.current_chapter().end - target.offset)
            target.length = min(max(new_length - 1, 0), available)
        return self

    def advance_by(self, n: int) -> List[Entry]:
        """Move the bookmark ``n`` ids forward and return the new window.

        The target is capped at the largest content id rather than the unit
        count, since ids may be sparse and the count can fall short of the
        last unit. Past the current chapter's end the bookmark jumps to the
        start of the next chapter, if there is one.
        """
        bookmark = self.bookmark()
        current = self.current_chapter()
        advanced = min(bookmark.offset + n, self.max_key())
        if current.contains(advanced):
            bookmark.offset = advanced
        elif current.end < advanced and self.is_valid_chapter(self.current_chapter_index + 1):
            self.next_chapter()
            bookmark.offset = self.current_chapter().start
        return self.current()

    def backtrack_by(self, n: int) -> List[Entry]:
        bookmark = self.bookmark()
        current = self.current_chapter()
        back = max(1, bookmark.offset - n)
        if current.contains(back):
            bookmark.offset = back
        elif back < current.start and self.current_chapter_index > 1:
            self.previous_chapter()
            bookmark.offset = self.current_chapter().start
        elif self.current_chapter_index >= 1:
            bookmark.offset = current.start
        return self.current()

    def is_last(self) -> bool:
        """True when nothing is stored after the current chapter."""
        end = self.current_chapter().end
        return all(k <= end for k in self.content)


def _unit_from_file(path: Path) -> Optional[ContentUnit]:
    suffix = path.suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return ContentUnit.image(path)
    if suffix in TEXT_EXTENSIONS:
        return ContentUnit.text(path, path.read_text(encoding="utf-8", errors="replace"))
    return None
