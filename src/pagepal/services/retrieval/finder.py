"""Finder - site-aware extraction of titles, links, text and images."""

import logging
import threading
from typing import Dict, Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup, Comment, Tag

from pagepal.core import Label
from pagepal.services.retrieval.page import Numbering, Page

logger = logging.getLogger(__name__)


def _soup(body: str) -> BeautifulSoup:
    return BeautifulSoup(body, "html.parser")


def _largest(candidates: Iterable[Tag], size) -> Optional[Tag]:
    """Candidate with the highest ``size``; the later one wins a tie."""
    best, best_size = None, -1
    for candidate in candidates:
        current = size(candidate)
        if current >= best_size:
            best, best_size = candidate, current
    return best


def _unique(tags: Iterable[Tag]) -> List[Tag]:
    seen = set()
    result = []
    for tag in tags:
        if id(tag) not in seen:
            seen.add(id(tag))
            result.append(tag)
    return result


class Finder:
    """Default extraction heuristics; site finders override what differs.

    Attributes:
        name: Short identifier used in logs.
        pred: Text that marks the link to the next page.
        split_by: Separator between the book title and the rest of <title>.
        domains: Registrable domains this finder is responsible for.
        referer: Referer header sent with every request, if any.
    """

    name = "default"
    pred = "Next"
    split_by = " Chapter"
    domains: Sequence[str] = ()
    referer: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        return {"Referer": self.referer} if self.referer else {}

    def title(self, body: str) -> Label:
        soup = _soup(body)
        if soup.title is None:
            return Label("")
        text = soup.title.get_text()
        if self.split_by:
            text = next((part for part in text.split(self.split_by) if part.strip()), "")
        return Label(text.strip())

    def next(self, body: str, base: str) -> Optional[Page]:
        """First anchor whose text contains :attr:`pred`, resolved against ``base``."""
        for anchor in _soup(body).find_all("a", href=True):
            if self.pred not in anchor.get_text():
                continue
            page = self._resolve(anchor["href"], base)
            if page is not None:
                return page
        return None

    def index(self, body: str, page: Page) -> Optional[Page]:
        return page.index_guess()

    def links(self, body: str, base: str) -> List[Page]:
        """Anchors of the largest p/table/ul cluster nested in a div."""
        cluster = _largest(_soup(body).select("div p, div table, div ul"), lambda el: len(el.find_all("a")))
        if cluster is None:
            return []
        return self._resolve_all((a.get("href") for a in cluster.find_all("a")), base)

    def text(self, body: str) -> List[str]:
        """Paragraph text of the div holding the most children under its <p> siblings."""
        parents = _unique(p.parent for p in _soup(body).select("div > p"))
        container = _largest(parents, lambda el: len(list(el.children)))
        if container is None:
            return []
        strings = []
        for string in container.find_all(string=True):
            if isinstance(string, Comment):
                continue
            stripped = string.strip()
            if stripped:
                strings.append(stripped)
        return strings

    def images(self, body: str, base: str) -> List[Page]:
        """Images of the div with the most <img> descendants among direct image parents."""
        parents = _unique(img.parent for img in _soup(body).select("div > img"))
        container = _largest(parents, lambda el: len(el.find_all("img")))
        if container is None:
            return []
        sources = []
        for img in container.find_all("img"):
            src = img.get("src") or img.get("data-src")
            if not src:
                logger.debug("Skipping image without a source in %s", base)
                continue
            sources.append(src)
        return self._resolve_all(sources, base)

    def numbering(self, page: Page) -> Numbering:
        return page.numbering()

    def _resolve(self, href: Optional[str], base: str) -> Optional[Page]:
        if not href:
            return None
        page = Page.try_parse(href, base)
        if page is None:
            logger.warning("Dropping malformed link %r on %s", href, base)
        return page

    def _resolve_all(self, hrefs: Iterable[Optional[str]], base: str) -> List[Page]:
        return [page for page in (self._resolve(href, base) for href in hrefs) if page is not None]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class DefaultFinder(Finder):
    """Heuristics for sites nobody has written a finder for."""


class FinderRegistry:
    """Maps domains to finders. Index 0 is always the default finder."""

    def __init__(self, finders: Optional[Iterable[Finder]] = None):
        self._lock = threading.Lock()
        self._finders: List[Finder] = [DefaultFinder()]
        self._hosts: Dict[str, int] = {}
        for finder in finders or ():
            self.register(finder)

    @property
    def finders(self) -> List[Finder]:
        with self._lock:
            return list(self._finders)

    def register(self, finder: Finder) -> int:
        """Add ``finder`` and claim its domains. Returns its index."""
        with self._lock:
            self._finders.append(finder)
            index = len(self._finders) - 1
            for domain in finder.domains:
                self._hosts[domain] = index
        logger.debug("Registered %r for %s", finder, ", ".join(finder.domains) or "no domains")
        return index

    def add_host(self, domain: str, index: int) -> None:
        with self._lock:
            if not 0 <= index < len(self._finders):
                raise IndexError(f"No finder at index {index}")
            self._hosts[domain] = index

    def index_of(self, domain: str) -> int:
        with self._lock:
            return self._hosts.get(domain, 0)

    def resolve(self, page: Page) -> Finder:
        with self._lock:
            return self._finders[self._hosts.get(page.domain(), 0)]

    def add_related(self, origin: Page, related: Page) -> None:
        """Let ``related``'s domain inherit the finder of ``origin``'s domain.

        Domains that already have a finder keep it.
        """
        with self._lock:
            index = self._hosts.get(origin.domain())
            if index is None:
                return
            domain = related.domain()
            if domain not in self._hosts:
                self._hosts[domain] = index
                logger.debug("%s now handled like %s", domain, origin.domain())

    def add_related_batch(self, origin: Page, related: Iterable[Page]) -> None:
        for page in related:
            self.add_related(origin, page)
