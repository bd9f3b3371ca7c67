"""
Управление индексацией сайтов

Полный запуск по всем сайтам из конфигурации, остановка,
переиндексация отдельной страницы.
"""
import re
import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

from ..core.config import CrawlerConfig
from ..core.errors import CancellationError, ConflictError, ValidationError
from ..core.interfaces import IFetcher, IParser, ISearchCache, IStorage
from ..core.models import ConfiguredSite, Site, SiteStatus, Page
from ..search.indexer import PageIndexer
from ..search.morphology import MorphologyAnalyzer
from .traversal import (
    CANCELLED_MESSAGE,
    CrawlRun,
    PageCrawler,
    belongs_to_site,
    canonical_url,
    is_binary_path,
    normalize_path,
)

logger = logging.getLogger(__name__)


HTTP_SCHEME = re.compile(r"^https?://.+", re.IGNORECASE)


@dataclass
class RunHandle:
    """Запущенная индексация"""
    run: CrawlRun
    task: Optional[asyncio.Task] = None

    def cancel(self) -> None:
        self.run.cancel()


@dataclass
class RunState:
    """Состояние индексации: inactive (handle is None) или running(handle)"""
    handle: Optional[RunHandle] = None

    @property
    def running(self) -> bool:
        return self.handle is not None


@dataclass
class PageTarget:
    """Проверенный адрес страницы для индексации"""
    site: ConfiguredSite
    path: str
    url: str


class IndexingService:
    """
    Жизненный цикл индексации

    Статусы сайта: INDEXING -> INDEXED (успех)
                   INDEXING -> FAILED  (ошибка главной страницы или остановка)
    Одновременно может идти только один запуск.
    """

    def __init__(
        self,
        storage: IStorage,
        sites: List[ConfiguredSite],
        fetcher: IFetcher,
        parser: IParser,
        analyzer: MorphologyAnalyzer,
        indexer: Optional[PageIndexer] = None,
        cache: Optional[ISearchCache] = None,
        config: Optional[CrawlerConfig] = None,
    ):
        self.storage = storage
        self.sites = sites
        self.indexer = indexer or PageIndexer(storage)
        self.cache = cache
        self.config = config or CrawlerConfig()
        self.page_crawler = PageCrawler(storage, fetcher, parser, analyzer, self.indexer)

        self._state = RunState()
        self._state_lock = asyncio.Lock()

    def is_indexing(self) -> bool:
        return self._state.running

    async def start_indexing(self) -> RunHandle:
        """
        Запустить полную индексацию в фоне

        Raises:
            ConflictError: индексация уже идёт
        """
        async with self._state_lock:
            if self._state.running:
                raise ConflictError("Индексация уже запущена")

            handle = RunHandle(run=CrawlRun(self.page_crawler, self.config))
            self._state = RunState(handle)
            handle.task = asyncio.create_task(self._run(handle))

        logger.info(f"[Indexing] Started for {len(self.sites)} sites")
        return handle

    async def stop_indexing(self) -> None:
        """
        Остановить индексацию

        Все сайты в статусе INDEXING переводятся в FAILED. Если запуска нет,
        но в базе остались сайты в INDEXING (после сбоя), они тоже
        переводятся в FAILED.

        Raises:
            ConflictError: индексация не запущена
        """
        async with self._state_lock:
            handle = self._state.handle

            if handle is None:
                stale = await self._indexing_sites()
                if not stale:
                    raise ConflictError("Индексация не запущена")
            else:
                handle.cancel()
                if handle.task is not None:
                    await asyncio.wait({handle.task})
                self._state = RunState()

            await self._fail_indexing_sites(CANCELLED_MESSAGE)

        logger.info("[Indexing] Stopped by user")

    async def index_page(self, url: str) -> Optional[Page]:
        """
        Добавить или обновить одну страницу без обхода ссылок

        Raises:
            ValidationError: адрес пустой, некорректный или вне сайтов конфигурации
            TransportError: страница не загрузилась
        """
        target = self.resolve_page(url)
        if is_binary_path(target.path):
            return None

        site = await self._get_or_create_site(target.site)
        page, _ = await self.page_crawler.crawl(site, target.path, target.url)

        await self._invalidate_cache()
        logger.info(f"[Indexing] Page {target.url} indexed (HTTP {page.code})")
        return page

    def resolve_page(self, url: str) -> PageTarget:
        """Проверка адреса страницы и поиск её сайта (самый длинный префикс)"""
        raw = (url or "").strip()
        if not raw:
            raise ValidationError("Задан пустой адрес страницы")

        if not HTTP_SCHEME.match(raw):
            raw = "https://" + raw

        try:
            parts = urlparse(raw)
        except ValueError:
            raise ValidationError("Некорректный URL")

        if not parts.scheme or not parts.hostname:
            raise ValidationError("Некорректный URL")

        canonical = canonical_url(raw)
        matches = [
            s for s in self.sites
            if belongs_to_site(canonical, canonical_url(s.url))
        ]
        if not matches:
            raise ValidationError(
                "Данная страница находится за пределами сайтов, "
                "указанных в конфигурационном файле"
            )

        site = max(matches, key=lambda s: len(s.url))
        return PageTarget(site=site, path=normalize_path(parts.path), url=raw)

    # ==================== Приватные методы ====================

    async def _run(self, handle: RunHandle) -> None:
        """Фоновый обход всех сайтов"""
        run = handle.run
        await self._invalidate_cache()
        try:
            for configured in self.sites:
                if run.is_cancelled:
                    break
                await self._index_site(run, configured)
        except Exception as e:
            logger.exception(f"[Indexing] Run aborted: {e}")
        finally:
            await run.close()
            if self._state.handle is handle:
                self._state = RunState()
            logger.info(
                f"[Indexing] Finished, {run.pages_crawled} pages crawled, "
                f"{len(run.visited)} urls visited"
            )

    async def _index_site(self, run: CrawlRun, configured: ConfiguredSite) -> None:
        site = await self._recreate_site(configured)
        logger.info(f"[Indexing] Crawling {site.url}")

        try:
            await run.crawl_site(site)
        except CancellationError as e:
            await self._mark_failed(site, str(e))
            return
        except Exception as e:
            logger.error(f"[Indexing] Site {site.url} failed: {e}")
            await self._mark_failed(site, f"Ошибка индексации: {e}")
            return
        finally:
            await self._invalidate_cache()

        site.status = SiteStatus.INDEXED
        site.last_error = None
        site.touch()
        await self.storage.save_site(site)
        logger.info(f"[Indexing] Site {site.url} indexed")

    async def _recreate_site(self, configured: ConfiguredSite) -> Site:
        """Удалить старые данные сайта и создать запись в статусе INDEXING"""
        existing = await self.storage.find_site_by_url(configured.url)
        if existing is not None:
            await self.indexer.wipe_site(existing)

        site = Site(url=configured.url, name=configured.name, status=SiteStatus.INDEXING)
        return await self.storage.save_site(site)

    async def _get_or_create_site(self, configured: ConfiguredSite) -> Site:
        site = await self.storage.find_site_by_url(configured.url)
        if site is None:
            site = await self.storage.save_site(Site(
                url=configured.url,
                name=configured.name,
                status=SiteStatus.INDEXED,
            ))
        return site

    async def _mark_failed(self, site: Site, message: str) -> None:
        site.status = SiteStatus.FAILED
        site.last_error = message
        site.touch()
        await self.storage.save_site(site)

    async def _indexing_sites(self) -> List[Site]:
        return [s for s in await self.storage.get_sites() if s.status == SiteStatus.INDEXING]

    async def _fail_indexing_sites(self, message: str) -> None:
        for site in await self._indexing_sites():
            await self._mark_failed(site, message)

    async def _invalidate_cache(self) -> None:
        if self.cache is not None:
            await self.cache.invalidate()
