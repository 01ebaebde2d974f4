"""Retriever - polite HTTP fetching and book assembly."""

import asyncio
import logging
from collections import deque
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional, Tuple, TypeVar

import httpx

from pagepal.core import (
    AssemblyErrorKind,
    Book,
    BookAssemblyError,
    ChapterSpan,
    ContentUnit,
    FetchError,
    InvalidAddressError,
    Label,
    Position,
)
from pagepal.io.content_storage import ContentStorage
from pagepal.services.retrieval.delay import DelayMap
from pagepal.services.retrieval.finder import Finder, FinderRegistry
from pagepal.services.retrieval.page import Numbering, Page
from pagepal.services.retrieval.sites import builtin_finders
from pagepal.services.settings_manager import RetrieverConfig

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    httpx.HTTPStatusError,
)

T = TypeVar("T")


class Retriever:
    """Fetches pages through one shared client and turns them into books.

    Every request waits on its domain's Delay and is retried with
    exponential backoff on transient failures. Extraction is delegated to
    the Finder the registry resolves for each page.
    """

    def __init__(
        self,
        config: Optional[RetrieverConfig] = None,
        storage: Optional[ContentStorage] = None,
        registry: Optional[FinderRegistry] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        delays: Optional[DelayMap] = None,
        cookies: Optional[httpx.Cookies] = None,
    ):
        self.config = config or RetrieverConfig()
        self.storage = storage or ContentStorage()
        self.registry = registry or FinderRegistry(builtin_finders())
        self.delays = delays or DelayMap(self.config.delay)
        # httpx copies a Cookies instance but keeps a bare jar.
        self.client = httpx.AsyncClient(
            headers={"User-Agent": self.config.user_agent},
            timeout=httpx.Timeout(self.config.timeout),
            follow_redirects=True,
            transport=transport,
            cookies=cookies.jar if cookies is not None else None,
        )

    @property
    def cookies(self) -> httpx.Cookies:
        return self.client.cookies

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "Retriever":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def finder(self, page: Page) -> Finder:
        return self.registry.resolve(page)

    # Fetching

    def prepare(self, page: Page, finder: Optional[Finder] = None) -> Page:
        """Attach a GET request carrying the finder's headers, once."""
        if not page.is_prepared:
            headers = (finder or self.finder(page)).headers()
            page.prepare(self.client.build_request("GET", page.url, headers=headers))
        return page

    async def _send(self, page: Page) -> httpx.Response:
        self.prepare(page)
        attempts = max(1, self.config.max_retries)
        for attempt in range(1, attempts + 1):
            await self.delays.access(page.domain())
            try:
                response = await self.client.send(page.request)
                if response.status_code >= 500:
                    raise httpx.HTTPStatusError(
                        f"Server error {response.status_code}", request=response.request, response=response
                    )
            except TRANSIENT_ERRORS as e:
                if attempt == attempts:
                    logger.error("Exceeded retry limit for %s", page.url)
                    status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
                    raise FetchError(page.url, str(e) or type(e).__name__, status) from e
                wait = self.config.backoff * 2 ** (attempt - 1)
                logger.warning("Attempt %d failed for %s: %s. Retrying in %.1fs", attempt, page.url, e, wait)
                await asyncio.sleep(wait)
                continue
            except httpx.HTTPError as e:
                raise FetchError(page.url, str(e) or type(e).__name__) from e

            if response.status_code >= 400:
                raise FetchError(page.url, f"HTTP {response.status_code}", response.status_code)
            return response
        raise FetchError(page.url, "No attempt made")

    async def get(self, page: Page) -> Page:
        """Fetch ``page`` and store its body on the shared holder.

        Raises:
            FetchError: On a 4xx response or when retries run out.
        """
        response = await self._send(page)
        page.store(text=response.text)
        logger.debug("Fetched %s (%d chars)", page.url, len(response.text))
        return page

    async def download(self, page: Page) -> bytes:
        """Fetch a binary resource such as an image."""
        response = await self._send(page)
        page.store(data=response.content)
        return response.content

    async def _chunked(self, items: List[Page], action: Callable[[Page], Awaitable[T]]) -> List[T]:
        results: List[T] = []
        size = max(1, self.config.concurrency)
        for start in range(0, len(items), size):
            chunk = items[start:start + size]
            results.extend(await asyncio.gather(*(action(item) for item in chunk)))
        return results

    async def fetch_all(self, pages: Iterable[Page]) -> List[Page]:
        """Fetch ``pages`` concurrently, ``config.concurrency`` at a time."""
        return await self._chunked(list(pages), self.get)

    # Extraction

    def title(self, page: Page) -> Label:
        return page.title(self.finder(page))

    def text(self, page: Page) -> List[str]:
        return page.text(self.finder(page))

    def numbering(self, page: Page) -> Numbering:
        return self.finder(page).numbering(page)

    async def next(self, page: Page) -> Optional[Page]:
        candidate = page.next(self.finder(page))
        if candidate is None:
            return None
        self.registry.add_related(page, candidate)
        return await self.get(candidate)

    async def index(self, page: Page) -> Page:
        """The page's table of contents, or ``page`` itself when none can be guessed."""
        candidate = page.index(self.finder(page))
        if candidate is None:
            return page
        self.registry.add_related(page, candidate)
        return await self.get(candidate)

    async def links(self, page: Page) -> List[Page]:
        found = page.links(self.finder(page))
        self.registry.add_related_batch(page, found)
        return await self.fetch_all(found)

    async def images(self, page: Page) -> List[Page]:
        """Image pages of ``page``, downloaded ``config.concurrency`` at a time.

        Each image is requested with its parent page's finder headers.
        """
        finder = self.finder(page)
        found = page.images(finder)
        self.registry.add_related_batch(page, found)
        prepared = [self.prepare(image, finder) for image in found]
        await self._chunked(prepared, self.download)
        return prepared

    async def crawl(self, start: Page, max_pages: Optional[int] = None) -> AsyncIterator[Page]:
        """Follow next links from ``start``, yielding each fetched page.

        Stops at ``max_pages``, at a page with no next link, or when a link
        leads back to a page already visited.
        """
        queue = deque([start])
        visited = set()
        count = 0
        while queue:
            if max_pages is not None and count >= max_pages:
                logger.info("Reached the limit of %d pages", max_pages)
                break
            page = queue.popleft()
            if page.url in visited:
                logger.info("Already visited %s, stopping", page.url)
                continue
            visited.add(page.url)
            if not page.is_fetched:
                await self.get(page)
            count += 1
            candidate = page.next(self.finder(page))
            yield page
            if candidate is not None:
                self.registry.add_related(page, candidate)
                queue.append(candidate)

    # Books

    async def assemble_new_book(self, address: str) -> Tuple[Label, Book]:
        """Build a one-chapter book from the page at ``address``.

        Raises:
            BookAssemblyError: NETWORK when the start page cannot be reached,
                NO_BOOK when nothing readable was fetched and NO_TITLE when
                the page has no usable title.
        """
        try:
            start = Page.parse(address)
        except InvalidAddressError as e:
            raise BookAssemblyError(AssemblyErrorKind.NO_BOOK, str(e)) from e

        try:
            await self.get(start)
            if not (start.body or "").strip():
                raise BookAssemblyError(AssemblyErrorKind.NO_BOOK, f"Empty page at {address}")
            title = self.title(start)
            if not title:
                raise BookAssemblyError(AssemblyErrorKind.NO_TITLE, address)

            book = Book(source=await self._index_for(start))
            units = await self.materialize(start, title)
        except FetchError as e:
            kind = AssemblyErrorKind.NETWORK if e.status is None else AssemblyErrorKind.NO_BOOK
            raise BookAssemblyError(kind, str(e)) from e
        finally:
            start.empty()

        if not units:
            raise BookAssemblyError(AssemblyErrorKind.NO_BOOK, f"Nothing to read at {address}")
        book.insert_chapter(units, Position.LAST, name=title, source=start.url)
        logger.info("Assembled %s with %d units", title, len(units))
        return title, book

    async def _index_for(self, start: Page) -> Page:
        try:
            index = await self.index(start)
        except FetchError as e:
            logger.warning("Index of %s unavailable, keeping the start page: %s", start.url, e)
            return Page(start.url)
        if index is start:
            return Page(start.url)
        index.empty()
        return index

    async def download_chapter(self, chapter: ChapterSpan) -> List[ContentUnit]:
        """Fetch the chapter's source page and write its images or text to storage.

        Raises:
            FetchError: If the source page or one of its images cannot be fetched.
        """
        if not chapter.source:
            return []
        page = await self.get(Page.parse(chapter.source))
        try:
            name = chapter.name or self.title(page)
            units = await self.materialize(page, name)
        finally:
            page.empty()
        chapter.fully_loaded = True
        return units

    def new_chapter(self, page: Page) -> ChapterSpan:
        return ChapterSpan(source=page.url, name=self.title(page))

    async def add_chapter(self, book: Book, address: str, position: Position = Position.LAST) -> Optional[ChapterSpan]:
        """Download the chapter at ``address`` and splice it into ``book``."""
        page = await self.get(Page.parse(address))
        try:
            chapter = self.new_chapter(page)
            units = await self.materialize(page, chapter.name)
        finally:
            page.empty()
        return book.insert_chapter(units, position, name=chapter.name, source=chapter.source)

    async def load_next_chapter(self, book: Book) -> Optional[ChapterSpan]:
        """Append the chapter linked as next from the book's last chapter, if any."""
        sources = [c.source for c in book.chapters[1:] if c.source]
        if not sources:
            return None
        last = await self.get(Page.parse(sources[-1]))
        try:
            following = await self.next(last)
        finally:
            last.empty()
        if following is None:
            return None
        return await self.add_chapter(book, following.url, Position.LAST)

    async def materialize(
        self,
        page: Page,
        title: Optional[Label],
        prefer_text: bool = False,
        chapter: Optional[int] = None,
    ) -> List[ContentUnit]:
        """Write the images of a fetched page to storage, or its text when it has none.

        With ``prefer_text`` the page is treated as a novel chapter and only
        its text is saved. ``chapter`` overrides the chapter number guessed
        from the addresses when choosing the storage directory.
        """
        if not prefer_text:
            images = await self.images(page)
            if images:
                return await self._save_images(images, title, chapter)
        paragraphs = self.text(page)
        if not paragraphs:
            return []
        number = self.numbering(page).chapter if chapter is None else chapter
        location = self.storage.path_for(title or "", number, 0)
        unit = ContentUnit.text(location, "\n\n".join(paragraphs), source=page.url)
        return [await self.storage.save_async(unit)]

    async def _save_images(
        self, images: List[Page], title: Optional[Label], chapter: Optional[int] = None
    ) -> List[ContentUnit]:
        units = []
        for sequence, image in enumerate(images):
            number = self.numbering(image).chapter if chapter is None else chapter
            location = self.storage.path_for(title or "", number, sequence)
            unit = ContentUnit.image(location, source=image.url)
            units.append(await self.storage.save_async(unit, image.data))
            image.empty()
        return units
