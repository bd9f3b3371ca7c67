"""
Core модуль - модели, интерфейсы, конфигурация
"""
from .models import (
    ConfiguredSite,
    Site,
    SiteStatus,
    Page,
    Lemma,
    IndexEntry,
    WordForm,
    FetchResult,
    ParsedPage,
    SearchItem,
    SearchResponse,
    Statistics,
    SiteStatistics,
    TotalStatistics,
)

from .interfaces import (
    IMorphology,
    IFetcher,
    IParser,
    ISearchCache,
    IStorage,
)

from .errors import (
    SearchEngineError,
    ValidationError,
    TransportError,
    ConflictError,
    CancellationError,
)

from .config import Config, config

__all__ = [
    # Models
    "ConfiguredSite",
    "Site",
    "SiteStatus",
    "Page",
    "Lemma",
    "IndexEntry",
    "WordForm",
    "FetchResult",
    "ParsedPage",
    "SearchItem",
    "SearchResponse",
    "Statistics",
    "SiteStatistics",
    "TotalStatistics",

    # Interfaces
    "IMorphology",
    "IFetcher",
    "IParser",
    "ISearchCache",
    "IStorage",

    # Errors
    "SearchEngineError",
    "ValidationError",
    "TransportError",
    "ConflictError",
    "CancellationError",

    # Config
    "Config",
    "config",
]
