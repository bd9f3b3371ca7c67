"""
Статистика индекса
"""
from typing import Callable

from ..core.interfaces import IStorage
from ..core.models import Statistics, SiteStatistics, TotalStatistics


class StatisticsService:
    """Сводка по сайтам, страницам и леммам"""

    def __init__(self, storage: IStorage, is_indexing: Callable[[], bool]):
        self.storage = storage
        self.is_indexing = is_indexing

    async def get_statistics(self) -> Statistics:
        sites = await self.storage.get_sites()

        detailed = []
        total_pages = 0
        total_lemmas = 0

        for site in sites:
            pages = await self.storage.count_pages(site.id)
            lemmas = await self.storage.count_lemmas(site.id)
            total_pages += pages
            total_lemmas += lemmas

            detailed.append(SiteStatistics(
                url=site.url,
                name=site.name,
                status=site.status.value,
                status_time=int(site.status_time.timestamp() * 1000),
                error=site.last_error,
                pages=pages,
                lemmas=lemmas,
            ))

        total = TotalStatistics(
            sites=len(sites),
            pages=total_pages,
            lemmas=total_lemmas,
            indexing=self.is_indexing(),
        )
        return Statistics(total=total, detailed=detailed)
