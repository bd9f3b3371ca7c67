"""
Поисковый движок
"""
import time
import hashlib
import logging
from collections import defaultdict
from typing import Dict, List, Optional

from ..core.config import SearchConfig
from ..core.errors import ValidationError
from ..core.interfaces import IParser, ISearchCache, IStorage
from ..core.models import Lemma, Page, SearchItem, SearchResponse
from .morphology import MorphologyAnalyzer
from .snippet import SnippetBuilder, escape_html

logger = logging.getLogger(__name__)


class SearchEngine:
    """
    Поиск по леммному индексу

    1. Леммы запроса
    2. Отсев слишком частых лемм (>= max_frequency_percent страниц)
    3. Страницы, содержащие все оставшиеся леммы
    4. Абсолютная релевантность - сумма рангов, относительная - деление
       на максимум
    5. Сортировка, пагинация, заголовки и сниппеты
    """

    def __init__(
        self,
        storage: IStorage,
        analyzer: MorphologyAnalyzer,
        parser: IParser,
        cache: Optional[ISearchCache] = None,
        config: Optional[SearchConfig] = None,
    ):
        self.storage = storage
        self.analyzer = analyzer
        self.parser = parser
        self.cache = cache
        self.config = config or SearchConfig()
        self.snippets = SnippetBuilder(analyzer, self.config)

    async def search(
        self,
        query: str,
        site_url: Optional[str] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> SearchResponse:
        """
        Выполнить поиск

        Args:
            query: Поисковый запрос
            site_url: Искать только по этому сайту
            offset: Смещение для пагинации
            limit: Количество результатов

        Raises:
            ValidationError: пустой запрос
        """
        start_time = time.time()

        if not query or not query.strip():
            raise ValidationError("Задан пустой поисковый запрос")

        offset = max(0, offset or 0)
        limit = self._limit(limit)

        cache_key = self._make_cache_key(query, site_url, offset, limit)
        if self.cache is not None:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                return cached

        ranked = await self._rank(query, site_url)

        items = []
        for page, relevance in ranked[offset:offset + limit]:
            items.append(await self._make_item(page, query, relevance))

        response = SearchResponse(
            query=query,
            count=len(ranked),
            data=items,
            took_ms=int((time.time() - start_time) * 1000),
        )

        logger.info(f"[Search] '{query}' site={site_url or '*'} -> {response.count} pages")

        if self.cache is not None:
            await self.cache.set(cache_key, response)

        return response

    # ==================== Приватные методы ====================

    async def _rank(self, query: str, site_url: Optional[str]) -> List[tuple]:
        """Страницы с относительной релевантностью, по убыванию"""
        query_lemmas = self.analyzer.lemmas(query)
        if not query_lemmas:
            return []

        site = None
        if site_url:
            site = await self.storage.find_site_by_url(site_url.rstrip("/"))
            if site is None:
                return []

        site_id = site.id if site else None
        lemmas = await self.storage.find_lemmas(list(query_lemmas), site_id)
        if not lemmas:
            return []

        total_pages = await self.storage.count_pages(site_id)
        lemmas = self.prune_frequent(lemmas, total_pages)
        if not lemmas:
            return []

        page_lemmas = await self._find_pages(lemmas)
        if not page_lemmas:
            return []

        relevance = await self._relevance(page_lemmas)

        pages = await self.storage.get_pages(list(relevance))
        ranked = [(page, relevance[page.id]) for page in pages]
        ranked.sort(key=lambda x: x[1], reverse=True)
        return ranked

    def prune_frequent(self, lemmas: List[Lemma], total_pages: int) -> List[Lemma]:
        """Отбросить леммы, встречающиеся на слишком большой доле страниц"""
        if total_pages == 0:
            return lemmas

        threshold = total_pages * self.config.max_frequency_percent / 100.0
        return [lemma for lemma in lemmas if lemma.frequency < threshold]

    async def _find_pages(self, lemmas: List[Lemma]) -> Dict[int, List[int]]:
        """
        Пересечение: страницы, содержащие все леммы

        Леммы хранятся по сайтам, поэтому пересечение строится отдельно
        для каждого сайта. Сайт участвует, только если у него есть все
        оставшиеся леммы запроса.

        Returns:
            {page_id: [lemma_id, ...]}
        """
        required = {lemma.lemma for lemma in lemmas}

        by_site = defaultdict(list)
        for lemma in lemmas:
            by_site[lemma.site_id].append(lemma)

        result = {}
        for site_lemmas in by_site.values():
            if {lemma.lemma for lemma in site_lemmas} != required:
                continue
            lemma_ids = [lemma.id for lemma in site_lemmas]
            for page_id in await self.storage.find_pages_with_all_lemmas(lemma_ids):
                result[page_id] = lemma_ids

        return result

    async def _relevance(self, page_lemmas: Dict[int, List[int]]) -> Dict[int, float]:
        """Относительная релевантность страниц"""
        absolute = {}
        for page_id, lemma_ids in page_lemmas.items():
            absolute[page_id] = await self.storage.sum_ranks(page_id, lemma_ids) or 0.0

        max_relevance = max(absolute.values(), default=0.0)
        if max_relevance == 0:
            return absolute

        return {page_id: value / max_relevance for page_id, value in absolute.items()}

    async def _make_item(self, page: Page, query: str, relevance: float) -> SearchItem:
        site = await self.storage.get_site(page.site_id)
        parsed = self.parser.parse(page.content, site.url + page.path)

        return SearchItem(
            site=site.url,
            site_name=site.name,
            uri=page.path,
            title=escape_html(parsed.title),
            snippet=self.snippets.build(parsed.text, query),
            relevance=relevance,
        )

    def _limit(self, limit: Optional[int]) -> int:
        if not limit or limit <= 0:
            return self.config.default_limit
        return min(limit, self.config.max_limit)

    def _make_cache_key(
        self,
        query: str,
        site_url: Optional[str],
        offset: int,
        limit: int
    ) -> str:
        """Создание ключа кэша"""
        parts = [query.strip().lower(), site_url or "", str(offset), str(limit)]
        key_str = "|".join(parts)
        return hashlib.md5(key_str.encode()).hexdigest()
