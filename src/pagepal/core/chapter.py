"""ChapterSpan entity - a named range of content ids inside a book."""

from dataclasses import dataclass
from typing import Optional

from .label import Label

MAX_ID = 0xFFFF


def _saturate(value: int) -> int:
    return max(0, min(MAX_ID, value))


@dataclass
class ChapterSpan:
    """Covers the content ids ``offset`` through ``offset + length`` inclusive.

    Offset 0 belongs to the bookmark chapter; real chapters start at 1.

    Attributes:
        offset: First content id of the chapter.
        length: Distance from the first to the last content id.
        source: Address the chapter was retrieved from.
        name: Display name of the chapter.
        fully_loaded: True once every unit of the chapter has been materialized.
    """

    offset: int = 0
    length: int = 0
    source: Optional[str] = None
    name: Optional[Label] = None
    fully_loaded: bool = False

    @property
    def start(self) -> int:
        return self.offset

    @property
    def end(self) -> int:
        return _saturate(self.offset + self.length)

    def id_range(self) -> range:
        return range(self.offset, self.end + 1)

    def contains(self, n: int) -> bool:
        return self.offset <= n <= self.end

    def shrink(self, removed: range) -> int:
        """Adjust this span after the ids in ``removed`` were taken out of the book.

        Returns:
            The new length.
        """
        if len(removed) == 0:
            return self.length
        first, last, count = removed.start, removed[-1], len(removed)
        start, end = self.offset, self.end
        if end < first:
            return self.length
        if last < start:
            self.offset = _saturate(start - count)
            return self.length

        # Four overlaps: span holds both ends of the removed range, only its
        # end, only its start, or the removed range swallows the span.
        has_first, has_last = self.contains(first), self.contains(last)
        if has_first and has_last:
            self.length = _saturate(self.length - count)
        elif has_last:
            self.offset = _saturate(start - (start - first))
            self.length = _saturate(self.length - (last - start + 1))
        elif has_first:
            self.length = _saturate(self.length - (end - first + 1))
        else:
            self.length = 0
        return self.length

    def grow(self, inserted: range) -> int:
        """Mirror of :meth:`shrink` for ids inserted into the book.

        Returns:
            The new length.
        """
        if len(inserted) == 0:
            return self.length
        first, last, count = inserted.start, inserted[-1], len(inserted)
        start, end = self.offset, self.end
        if end < first:
            return self.length
        if last < start:
            self.offset = _saturate(start + count)
            return self.length

        has_first, has_last = self.contains(first), self.contains(last)
        if has_first and has_last:
            self.length = _saturate(self.length + count)
        elif has_last:
            self.offset = _saturate(start + (start - first))
            self.length = _saturate(self.length + (last - start + 1))
        elif has_first:
            self.length = _saturate(self.length + (end - first + 1))
        else:
            self.length = _saturate(self.length + count)
        return self.length

    def with_source(self, source: Optional[str]) -> "ChapterSpan":
        self.source = source
        return self

    def with_name(self, name: Optional[Label]) -> "ChapterSpan":
        self.name = name
        return self
