"""
Индексатор страниц

Поддерживает инвариант: frequency леммы равна количеству страниц сайта,
связанных с ней через индекс. Хранилище атомарно только в пределах одной
строки, поэтому корректность держится на порядке операций:
сначала снимаем вклад старой версии страницы, затем строим новый.
Сбой посреди последовательности оставляет индекс несогласованным до
следующей полной переиндексации.
"""
import asyncio
import logging
from typing import Dict

from ..core.models import Site, Page, Lemma, IndexEntry
from ..core.interfaces import IStorage

logger = logging.getLogger(__name__)


class PageIndexer:
    """
    Индексатор страниц

    Изменения индекса одного сайта выполняются под общей блокировкой,
    чтобы параллельные воркеры не теряли инкременты frequency.
    """

    def __init__(self, storage: IStorage):
        self.storage = storage
        self._site_locks: Dict[int, asyncio.Lock] = {}

    def site_lock(self, site: Site) -> asyncio.Lock:
        lock = self._site_locks.get(site.id)
        if lock is None:
            lock = self._site_locks[site.id] = asyncio.Lock()
        return lock

    async def index_page(
        self,
        site: Site,
        path: str,
        status_code: int,
        content: str,
        lemma_counts: Dict[str, int]
    ) -> Page:
        """Полная замена вклада страницы в индекс"""
        async with self.site_lock(site):
            page = await self.upsert_page(site, path, status_code, content)
            await self.rebuild_index(site, page, lemma_counts)
        return page

    async def upsert_page(
        self,
        site: Site,
        path: str,
        status_code: int,
        content: str
    ) -> Page:
        """
        Создать или перезаписать страницу

        Для существующей страницы сначала снимается её вклад в индекс.
        """
        page = await self.storage.find_page(site.id, path)
        if page is not None:
            await self.retract_page(page)
        else:
            page = Page(site_id=site.id, path=path)

        page.code = status_code
        page.content = content
        return await self.storage.save_page(page)

    async def retract_page(self, page: Page) -> None:
        """Снять вклад страницы: уменьшить frequency лемм и удалить индекс"""
        entries = await self.storage.find_index(page.id)

        for entry in entries:
            lemma = await self.storage.get_lemma(entry.lemma_id)
            if lemma is None:
                continue
            lemma.frequency -= 1
            if lemma.frequency <= 0:
                await self.storage.delete_lemma(lemma)
            else:
                await self.storage.save_lemma(lemma)

        await self.storage.delete_index(page.id)

    async def rebuild_index(self, site: Site, page: Page, lemma_counts: Dict[str, int]) -> None:
        """
        Построить индекс страницы

        Страница не должна иметь записей индекса (новая или после
        retract_page). frequency каждой леммы растёт ровно на 1,
        независимо от числа вхождений.
        """
        total = sum(lemma_counts.values())
        if total == 0:
            return

        for text, count in lemma_counts.items():
            lemma = await self.storage.find_lemma(site.id, text)
            if lemma is None:
                lemma = Lemma(site_id=site.id, lemma=text, frequency=0)

            lemma.frequency += 1
            lemma = await self.storage.save_lemma(lemma)

            await self.storage.save_index(IndexEntry(
                page_id=page.id,
                lemma_id=lemma.id,
                rank=count / total,
            ))

    async def wipe_site(self, site: Site) -> None:
        """Удалить сайт вместе со страницами, леммами и индексом"""
        async with self.site_lock(site):
            await self.storage.delete_site_index(site.id)
            await self.storage.delete_pages(site.id)
            await self.storage.delete_lemmas(site.id)
            await self.storage.delete_site(site)
        self._site_locks.pop(site.id, None)
        logger.info(f"[Indexer] Wiped site {site.url}")
