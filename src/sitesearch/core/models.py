"""
Модели данных поискового движка по сайтам
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List
from enum import Enum


class SiteStatus(Enum):
    INDEXING = "INDEXING"
    INDEXED = "INDEXED"
    FAILED = "FAILED"


@dataclass
class ConfiguredSite:
    """Сайт из конфигурации"""
    url: str
    name: str


@dataclass
class Site:
    """Индексируемый сайт"""
    url: str
    name: str
    status: SiteStatus = SiteStatus.INDEXING
    status_time: datetime = field(default_factory=datetime.now)
    last_error: Optional[str] = None
    id: Optional[int] = None

    def touch(self) -> None:
        self.status_time = datetime.now()


@dataclass
class Page:
    """Страница сайта"""
    site_id: int
    path: str
    code: int = 0
    content: str = ""
    id: Optional[int] = None


@dataclass
class Lemma:
    """
    Лемма сайта

    frequency - количество страниц сайта, на которых лемма встречается
    хотя бы один раз
    """
    site_id: int
    lemma: str
    frequency: int = 0
    id: Optional[int] = None


@dataclass
class IndexEntry:
    """Связь страница-лемма с рангом"""
    page_id: int
    lemma_id: int
    rank: float
    id: Optional[int] = None


@dataclass
class WordForm:
    """Нормальная форма слова и её часть речи"""
    normal_form: str
    pos: Optional[str] = None


@dataclass
class FetchResult:
    """Ответ сервера на запрос страницы"""
    status_code: int
    body: str


@dataclass
class ParsedPage:
    """Результат разбора HTML"""
    text: str
    links: List[str] = field(default_factory=list)
    title: Optional[str] = None


@dataclass
class SearchItem:
    """Одна найденная страница"""
    site: str
    site_name: str
    uri: str
    title: str
    snippet: str
    relevance: float


@dataclass
class SearchResponse:
    """Результат поиска"""
    query: str
    count: int
    data: List[SearchItem] = field(default_factory=list)
    took_ms: int = 0


@dataclass
class SiteStatistics:
    """Статистика по одному сайту"""
    url: str
    name: str
    status: str
    status_time: int
    error: Optional[str]
    pages: int
    lemmas: int


@dataclass
class TotalStatistics:
    """Общая статистика"""
    sites: int
    pages: int
    lemmas: int
    indexing: bool


@dataclass
class Statistics:
    total: TotalStatistics
    detailed: List[SiteStatistics] = field(default_factory=list)
