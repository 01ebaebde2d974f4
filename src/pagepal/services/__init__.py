"""Services layer - configuration, retrieval and background workers."""

from pagepal.services.settings_manager import RetrieverConfig, SettingsManager
from pagepal.services.retrieval import (
    DefaultFinder,
    Delay,
    DelayMap,
    Finder,
    FinderRegistry,
    ManganatoFinder,
    Numbering,
    Page,
    PageBody,
    Retriever,
    RoyalRoadFinder,
    builtin_finders,
)

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
    "RetrieverConfig",
    "RoyalRoadFinder",
    "SettingsManager",
    "builtin_finders",
]
