"""
Search модуль - морфология, индексатор, поисковый движок
"""
from .morphology import MorphologyAnalyzer, PymorphyMorphology
from .indexer import PageIndexer
from .engine import SearchEngine
from .snippet import SnippetBuilder
from .statistics import StatisticsService

__all__ = [
    "MorphologyAnalyzer",
    "PymorphyMorphology",
    "PageIndexer",
    "SearchEngine",
    "SnippetBuilder",
    "StatisticsService",
]
