"""Retrieval services - pages, site finders, rate limiting and the retriever."""

from pagepal.services.retrieval.delay import Delay, DelayMap
from pagepal.services.retrieval.finder import DefaultFinder, Finder, FinderRegistry
from pagepal.services.retrieval.page import Numbering, Page, PageBody
from pagepal.services.retrieval.retriever import Retriever
from pagepal.services.retrieval.sites import ManganatoFinder, RoyalRoadFinder, builtin_finders

__all__ = [
    "DefaultFinder",
    "Delay",
    "DelayMap",
    "Finder",
    "FinderRegistry",
    "ManganatoFinder",
    "Numbering",
    "Page",
    "PageBody",
    "Retriever",
    "RoyalRoadFinder",
    "builtin_finders",
]
