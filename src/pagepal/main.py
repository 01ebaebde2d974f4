"""Command line entry point: build books from the web and crawl chapter chains."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pagepal.core import Book, BookAssemblyError, BookStateError, FetchError, InvalidAddressError, Label
from pagepal.io import ContentStorage, DatabaseManager, LibraryRepository
from pagepal.services import Page, Retriever, SettingsManager

logger = logging.getLogger("pagepal")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pagepal", description="Collect books and web serials into a local library.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    parser.add_argument("--root", type=Path, default=None, help="Directory holding the .env file")
    commands = parser.add_subparsers(dest="command", required=True)

    assemble = commands.add_parser("assemble", help="Build a book from a chapter address and save it")
    assemble.add_argument("url")

    crawl = commands.add_parser("crawl", help="Follow next links, saving every page into the library")
    crawl.add_argument("url")
    crawl.add_argument("--max-pages", type=int, default=None, help="Stop after this many pages")
    crawl.add_argument("--novel", action="store_true", help="Save page text instead of images")
    crawl.add_argument("--title", default=None, help="Book title (defaults to the first page title)")

    open_cmd = commands.add_parser("open", help="Add a local book directory to the library")
    open_cmd.add_argument("path", type=Path)

    commands.add_parser("list", help="List saved books")
    return parser


async def assemble(settings: SettingsManager, repository: LibraryRepository, url: str) -> Label:
    storage = ContentStorage(settings.get_library_dir())
    async with Retriever(settings.retriever_config(), storage) as retriever:
        title, book = await retriever.assemble_new_book(url)
    repository.save_book(title, book)
    return title


async def crawl(
    settings: SettingsManager,
    url: str,
    max_pages: Optional[int],
    novel: bool,
    title: Optional[str] = None,
) -> int:
    """Walk the chain of next links from ``url``; returns the number of pages saved."""
    storage = ContentStorage(settings.get_library_dir())
    saved = 0
    book_title = Label(title) if title else None
    async with Retriever(settings.retriever_config(), storage) as retriever:
        async for page in retriever.crawl(Page.parse(url), max_pages):
            if book_title is None:
                book_title = retriever.title(page) or Label(page.host)
            saved += 1
            units = await retriever.materialize(page, book_title, prefer_text=novel, chapter=saved)
            page.empty()
            if not units:
                logger.warning("Nothing to save on %s", page.url)
            else:
                logger.info("Saved %d unit(s) from %s", len(units), page.url)
    return saved


def main(argv: Optional[List[str]] = None) -> int:
    """
    Bootstrap the command line tool following the Composition Root pattern.
    This is the only place that knows how to instantiate and wire all components.
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = SettingsManager(project_root=args.root)

    if args.command == "crawl":
        try:
            count = asyncio.run(crawl(settings, args.url, args.max_pages, args.novel, args.title))
        except (FetchError, InvalidAddressError) as e:
            logger.error("%s", e)
            return 1
        print(f"Saved {count} page(s) to {settings.get_library_dir()}")
        return 0

    database = DatabaseManager(settings.get_db_path())
    database.ensure_schema()
    repository = LibraryRepository(database.connection)
    try:
        if args.command == "assemble":
            try:
                title = asyncio.run(assemble(settings, repository, args.url))
            except BookAssemblyError as e:
                logger.error("%s", e)
                return 1
            print(f"Added {title}")
        elif args.command == "open":
            try:
                title, book = Book.open(args.path)
            except BookStateError as e:
                logger.error("%s", e)
                return 1
            repository.save_book(title, book)
            print(f"Added {title} ({book.chapter_count() - 1} chapters)")
        elif args.command == "list":
            for title in repository.list_titles():
                print(title)
    finally:
        database.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
