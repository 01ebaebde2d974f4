"""Page - a lazily fetched, shareable handle to one network resource."""

import re
import threading
from datetime import datetime, timedelta, timezone
from functools import total_ordering
from typing import TYPE_CHECKING, List, NamedTuple, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

import httpx

from pagepal.core import InvalidAddressError, Label

if TYPE_CHECKING:
    from pagepal.services.retrieval.finder import Finder

STALE_AFTER = timedelta(minutes=10)
MAX_SEGMENT_NUMBER = 9000


class Numbering(NamedTuple):
    """Chapter and page numbers guessed from an address."""

    chapter: int
    page: int
    index: str


def _now() -> datetime:
    return datetime.now(timezone.utc)


class PageBody:
    """Lock-protected body and fetch timestamp shared by every clone of a Page."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._text: Optional[str] = None
        self._data: Optional[bytes] = None
        self._last_fetched = _now() - timedelta(days=1)

    @property
    def text(self) -> Optional[str]:
        with self._lock:
            return self._text

    @property
    def data(self) -> Optional[bytes]:
        with self._lock:
            return self._data

    @property
    def last_fetched(self) -> datetime:
        with self._lock:
            return self._last_fetched

    def store(self, text: Optional[str] = None, data: Optional[bytes] = None) -> None:
        with self._lock:
            self._text = text
            self._data = data
            self._last_fetched = _now()

    def clear(self) -> None:
        with self._lock:
            self._text = None
            self._data = None


@total_ordering
class Page:
    """An address plus whatever has been fetched from it.

    Cloning a Page shares the underlying :class:`PageBody`, so every clone
    sees the same body and timestamp and the bytes are never copied.
    """

    def __init__(self, url: str, request: Optional[httpx.Request] = None, body: Optional[PageBody] = None):
        self.url = url
        self.request = request
        self._body = body if body is not None else PageBody()

    @classmethod
    def parse(cls, address: str, base: Optional[str] = None) -> "Page":
        """Build a Page from ``address``, resolved against ``base`` when relative.

        Raises:
            InvalidAddressError: If the result is not an http(s) URL with a host.
        """
        if address is None:
            raise InvalidAddressError("Missing address")
        address = str(address).strip()
        try:
            url = urljoin(base, address) if base else address
            parts = urlsplit(url)
            hostname = parts.hostname
        except ValueError as e:
            raise InvalidAddressError(f"Unparsable address {address!r}: {e}") from e
        if parts.scheme not in ("http", "https") or not hostname:
            raise InvalidAddressError(f"Not a web address: {address!r}")
        return cls(urlunsplit((parts.scheme, parts.netloc, parts.path or "/", parts.query, "")))

    @classmethod
    def try_parse(cls, address: str, base: Optional[str] = None) -> Optional["Page"]:
        try:
            return cls.parse(address, base)
        except InvalidAddressError:
            return None

    def clone(self) -> "Page":
        return Page(self.url, self.request, self._body)

    __copy__ = clone

    # Addressing

    @property
    def host(self) -> str:
        return urlsplit(self.url).hostname or ""

    @property
    def origin(self) -> str:
        parts = urlsplit(self.url)
        return f"{parts.scheme}://{parts.netloc}"

    def domain(self) -> str:
        """``example.com`` for ``http://img.example.com/path``."""
        host = self.host
        if re.fullmatch(r"[\d.]+", host) or "." not in host:
            return host
        return ".".join(host.split(".")[-2:])

    def _segments(self) -> List[str]:
        return [s for s in urlsplit(self.url).path.split("/") if s]

    def index_guess(self) -> Optional["Page"]:
        """Guess the table of contents by dropping chapter segments from the path.

        Walking the path backwards, segments naming a chapter are dropped and
        so are the last two segments when no chapter segment has been seen.
        """
        kept = []
        chapters_seen = 0
        for position, segment in enumerate(reversed(self._segments())):
            if "chapter" in segment.lower():
                chapters_seen += 1
            elif chapters_seen or position > 1:
                kept.append(segment)
        return Page.try_parse("/".join([self.origin] + list(reversed(kept))))

    def numbering(self) -> Numbering:
        segments = list(reversed(self._segments()))
        numbers = []
        for segment in segments:
            digits = "".join(re.findall(r"\d", segment))
            number = int(digits) if digits else 0
            numbers.append(number if number <= 0xFFFF else 0)
        if not segments:
            return Numbering(0, 0, "")
        # TODO: look at sibling links instead of path position to find the index segment
        index = segments[-1] if len(segments) < 3 else list(reversed(segments))[1]
        if len(numbers) >= 2:
            page, chapter = numbers[0], numbers[1]
            if page <= MAX_SEGMENT_NUMBER and chapter <= MAX_SEGMENT_NUMBER:
                return Numbering(chapter, page, index)
            return Numbering(0, 0, "")
        if numbers[0] <= MAX_SEGMENT_NUMBER:
            return Numbering(numbers[0], 0, index)
        return Numbering(0, 0, "")

    # Fetch state

    def prepare(self, request: httpx.Request) -> "Page":
        self.request = request
        return self

    @property
    def is_prepared(self) -> bool:
        return self.request is not None

    @property
    def body(self) -> Optional[str]:
        return self._body.text

    @property
    def data(self) -> Optional[bytes]:
        return self._body.data

    @property
    def last_fetched(self) -> datetime:
        return self._body.last_fetched

    @property
    def is_fetched(self) -> bool:
        return self._body.text is not None or self._body.data is not None

    def store(self, text: Optional[str] = None, data: Optional[bytes] = None) -> "Page":
        self._body.store(text=text, data=data)
        return self

    def empty(self) -> None:
        """Drop the fetched body once nothing more will be extracted from it."""
        self._body.clear()

    def is_stale(self) -> bool:
        return _now() - self.last_fetched > STALE_AFTER

    # Extraction, delegated to a Finder

    def title(self, finder: "Finder") -> Label:
        body = self.body
        return finder.title(body) if body is not None else Label("")

    def next(self, finder: "Finder") -> Optional["Page"]:
        body = self.body
        return finder.next(body, self.url) if body is not None else None

    def index(self, finder: "Finder") -> Optional["Page"]:
        body = self.body
        return finder.index(body, self) if body is not None else None

    def links(self, finder: "Finder") -> List["Page"]:
        body = self.body
        return finder.links(body, self.url) if body is not None else []

    def text(self, finder: "Finder") -> List[str]:
        body = self.body
        return finder.text(body) if body is not None else []

    def images(self, finder: "Finder") -> List["Page"]:
        body = self.body
        return finder.images(body, self.url) if body is not None else []

    # Comparison

    def __eq__(self, other) -> bool:
        if not isinstance(other, Page):
            return NotImplemented
        return (self.url, self.last_fetched) == (other.url, other.last_fetched)

    def __lt__(self, other: "Page") -> bool:
        if not isinstance(other, Page):
            return NotImplemented
        return (self.url, self.last_fetched) < (other.url, other.last_fetched)

    def __hash__(self) -> int:
        return hash(self.url)

    def __repr__(self) -> str:
        return f"Page({self.url!r}, fetched={self.is_fetched})"
