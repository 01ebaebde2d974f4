"""Finders for sites whose markup defeats the default heuristics."""

from typing import List

from bs4 import BeautifulSoup, Comment

from pagepal.core import Label
from pagepal.services.retrieval.finder import Finder


class ManganatoFinder(Finder):
    name = "manganato"
    pred = "NEXT"
    domains = ("manganato.com", "chapmanganato.com", "readmanganato.com", "chapmanganato.to")
    referer = "https://manganato.com/"


class RoyalRoadFinder(Finder):
    """Web novels: chapter text lives in ``div.chapter-content``.

    Titles read ``<chapter> - <book> | Royal Road``.
    """

    name = "royalroad"
    pred = "Next Chapter"
    domains = ("royalroad.com",)

    def title(self, body: str) -> Label:
        soup = BeautifulSoup(body, "html.parser")
        if soup.title is None:
            return Label("")
        text = soup.title.get_text().split(" | ")[0]
        return Label(text.rsplit(" - ", 1)[-1].strip())

    def text(self, body: str) -> List[str]:
        content = BeautifulSoup(body, "html.parser").select_one("div.chapter-content")
        if content is None:
            return super().text(body)
        return [
            s.strip()
            for s in content.find_all(string=True)
            if not isinstance(s, Comment) and s.strip()
        ]


def builtin_finders() -> List[Finder]:
    return [ManganatoFinder(), RoyalRoadFinder()]
