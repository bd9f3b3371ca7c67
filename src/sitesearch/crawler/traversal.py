"""
Обход сайта

Обход ведётся пулом воркеров над очередью задач (сайт, путь, url, глубина).
От повторов и циклов защищает множество посещённых адресов, общее для
всего запуска; ограничение глубины - независимый предохранитель.
"""
import re
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set
from urllib.parse import urlparse

from ..core.config import CrawlerConfig
from ..core.errors import CancellationError, TransportError
from ..core.interfaces import IFetcher, IParser, IStorage
from ..core.models import Site, Page
from ..search.indexer import PageIndexer
from ..search.morphology import MorphologyAnalyzer

logger = logging.getLogger(__name__)


MAX_DEPTH = 10

BINARY_EXTENSIONS = re.compile(
    r".*\.(pdf|zip|jpg|jpeg|png|gif|doc|docx|xls|xlsx|ppt|pptx)$",
    re.IGNORECASE,
)

CANCELLED_MESSAGE = "Индексация остановлена пользователем"


def normalize_path(path: str) -> str:
    """
    Канонический путь страницы

    "a/b/" -> "/a/b", "" -> "/"
    """
    if not path or path == "/":
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/") or "/"
    return path


def is_binary_path(path: str) -> bool:
    return BINARY_EXTENSIONS.match(path) is not None


def belongs_to_site(url: str, root: str) -> bool:
    """Адрес лежит внутри корня сайта"""
    root = root.rstrip("/")
    return url == root or url.startswith(root + "/")


def canonical_url(url: str) -> str:
    """Схема и хост в нижнем регистре плюс путь, без запроса и фрагмента"""
    parts = urlparse(url)
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}{parts.path}"


class VisitedSet:
    """
    Посещённые адреса одного запуска

    claim() проверяет и добавляет ключ без переключения контекста,
    поэтому для корутин одного цикла событий это атомарная операция.
    """

    def __init__(self):
        self._keys: Set[str] = set()

    def claim(self, key: str) -> bool:
        """True, если ключ добавлен впервые"""
        if key in self._keys:
            return False
        self._keys.add(key)
        return True

    def __contains__(self, key: str) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)


@dataclass
class CrawlTask:
    """Задача обхода одной страницы"""
    site: Site
    path: str
    url: str
    depth: int


class PageCrawler:
    """
    Обработка одной страницы: загрузка, разбор, лемматизация, индексация
    """

    def __init__(
        self,
        storage: IStorage,
        fetcher: IFetcher,
        parser: IParser,
        analyzer: MorphologyAnalyzer,
        indexer: PageIndexer,
    ):
        self.storage = storage
        self.fetcher = fetcher
        self.parser = parser
        self.analyzer = analyzer
        self.indexer = indexer

        # Начатые записи в индекс, отмена обхода их не прерывает
        self._writes: Set[asyncio.Task] = set()

    async def crawl(self, site: Site, path: str, url: str):
        """
        Проиндексировать страницу

        Returns:
            (страница, результат разбора)

        Raises:
            TransportError: страница не загрузилась
        """
        result = await self.fetcher.fetch(url)
        parsed = self.parser.parse(result.body, url)
        lemma_counts = self.analyzer.lemmas(parsed.text)

        write = asyncio.ensure_future(self.indexer.index_page(
            site, path, result.status_code, result.body, lemma_counts
        ))
        self._writes.add(write)
        write.add_done_callback(self._writes.discard)
        page = await asyncio.shield(write)

        site.touch()
        await self.storage.save_site(site)

        return page, parsed

    async def drain(self) -> None:
        """Дождаться записей, начатых до отмены"""
        if self._writes:
            await asyncio.gather(*list(self._writes), return_exceptions=True)

    async def record_error(self, site: Site, message: str) -> None:
        site.last_error = message
        site.touch()
        await self.storage.save_site(site)


class CrawlRun:
    """
    Один запуск индексации

    Владеет очередью задач, пулом воркеров, множеством посещённых адресов
    и признаком отмены. Сайты обходятся по очереди через crawl_site(),
    страницы сайта - параллельно воркерами.
    """

    def __init__(
        self,
        page_crawler: PageCrawler,
        config: Optional[CrawlerConfig] = None,
    ):
        self.page_crawler = page_crawler
        self.config = config or CrawlerConfig()
        self.max_depth = self.config.max_depth

        self.visited = VisitedSet()
        self.queue: asyncio.Queue = asyncio.Queue()
        self.cancelled = asyncio.Event()

        self._workers: List[asyncio.Task] = []
        self._root_task: Optional[asyncio.Task] = None

        # Первая фатальная ошибка по сайту (например, отказ хранилища)
        self._failures: Dict[int, Exception] = {}

        self.pages_crawled = 0

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled.is_set()

    def start(self) -> None:
        """Запуск воркеров"""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i))
            for i in range(max(1, self.config.workers))
        ]

    def cancel(self) -> None:
        """Остановка: новые страницы не берутся, текущие загрузки прерываются"""
        self.cancelled.set()
        for task in self._workers:
            task.cancel()
        if self._root_task is not None:
            self._root_task.cancel()

    async def close(self) -> None:
        """Дождаться завершения воркеров"""
        for task in self._workers:
            task.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        await self.page_crawler.drain()

    async def crawl_site(self, site: Site) -> None:
        """
        Обойти сайт начиная с корня

        Raises:
            TransportError: не загрузилась главная страница
            CancellationError: запуск остановлен
            Exception: фатальная ошибка на одной из страниц
        """
        if self.is_cancelled:
            raise CancellationError(CANCELLED_MESSAGE)

        self.start()

        root = CrawlTask(site=site, path="/", url=site.url, depth=0)
        self._root_task = asyncio.create_task(self.visit(root, root_page=True))
        try:
            await self._root_task
        except asyncio.CancelledError:
            if self.is_cancelled:
                raise CancellationError(CANCELLED_MESSAGE)
            raise
        finally:
            self._root_task = None

        await self._wait_for_queue()

        if self.is_cancelled:
            raise CancellationError(CANCELLED_MESSAGE)

        failure = self._failures.pop(site.id, None)
        if failure is not None:
            raise failure

    async def visit(self, task: CrawlTask, root_page: bool = False) -> Optional[Page]:
        """Обработка одной страницы и постановка дочерних ссылок в очередь"""
        if self.is_cancelled or task.depth > self.max_depth:
            return None

        site = task.site
        path = normalize_path(task.path)
        if is_binary_path(path):
            return None

        # Ключ занимается до загрузки: одну страницу не индексируют
        # два воркера одновременно
        if not self.visited.claim(site.url + path):
            return None

        try:
            page, parsed = await self.page_crawler.crawl(site, path, task.url)
        except TransportError as e:
            logger.warning(f"[Crawler] {task.url}: {e}")
            await self.page_crawler.record_error(site, f"Ошибка загрузки страницы: {e}")
            if root_page:
                raise
            return None

        self.pages_crawled += 1

        if 200 <= page.code < 400:
            for link in parsed.links:
                child_path = self._child_path(site, link)
                if child_path is None:
                    continue
                if site.url + child_path in self.visited:
                    continue
                self.queue.put_nowait(CrawlTask(
                    site=site,
                    path=child_path,
                    url=link,
                    depth=task.depth + 1,
                ))

        return page

    # ==================== Приватные методы ====================

    def _child_path(self, site: Site, link: str) -> Optional[str]:
        """Путь ссылки внутри сайта или None"""
        if not belongs_to_site(link, site.url):
            return None
        if "#" in link or "?" in link:
            return None
        try:
            path = urlparse(link).path
        except ValueError:
            return None
        return normalize_path(path)

    async def _wait_for_queue(self) -> None:
        """Ждём опустошения очереди или отмены"""
        join = asyncio.ensure_future(self.queue.join())
        stop = asyncio.ensure_future(self.cancelled.wait())
        try:
            await asyncio.wait({join, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            join.cancel()
            stop.cancel()

    async def _worker(self, worker_id: int) -> None:
        while True:
            task = await self.queue.get()
            try:
                if not self.is_cancelled:
                    await self.visit(task)
            except Exception as e:
                logger.error(f"[Crawler] Worker {worker_id}: {task.url} failed: {e}")
                self._failures.setdefault(task.site.id, e)
            finally:
                self.queue.task_done()
