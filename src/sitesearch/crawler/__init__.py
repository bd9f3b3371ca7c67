"""
Crawler модуль - загрузка, разбор и обход сайтов
"""
from .fetcher import AiohttpFetcher
from .parser import HtmlParser
from .traversal import CrawlRun, CrawlTask, PageCrawler, VisitedSet, normalize_path
from .lifecycle import IndexingService, RunHandle, RunState

__all__ = [
    "AiohttpFetcher",
    "HtmlParser",
    "CrawlRun",
    "CrawlTask",
    "PageCrawler",
    "VisitedSet",
    "normalize_path",
    "IndexingService",
    "RunHandle",
    "RunState",
]
