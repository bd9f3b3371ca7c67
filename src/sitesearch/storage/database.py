"""
PostgreSQL хранилище - сайты, страницы, леммы, индекс
"""
import asyncpg
import logging
from typing import Optional, List, Sequence

from ..core.config import DatabaseConfig
from ..core.interfaces import IStorage
from ..core.models import Site, SiteStatus, Page, Lemma, IndexEntry

logger = logging.getLogger(__name__)


class Database(IStorage):
    """PostgreSQL подключение и операции"""

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DatabaseConfig()
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Создание пула подключений"""
        self.pool = await asyncpg.create_pool(
            host=self.config.host,
            port=self.config.port,
            user=self.config.user,
            password=self.config.password,
            database=self.config.database,
            min_size=self.config.min_pool_size,
            max_size=self.config.pool_size
        )
        # Создаем таблицы если не существуют
        await self._init_tables()
        logger.info(f"[Database] Connected to {self.config.host}:{self.config.port}/{self.config.database}")

    async def disconnect(self):
        """Закрытие пула подключений"""
        if self.pool:
            await self.pool.close()

    async def _init_tables(self):
        """Создание таблиц при первом запуске"""
        async with self.pool.acquire() as conn:
            await conn.execute('''
                CREATE TABLE IF NOT EXISTS site (
                    id SERIAL PRIMARY KEY,
                    url VARCHAR(255) UNIQUE NOT NULL,
                    name VARCHAR(255) NOT NULL,
                    status VARCHAR(16) NOT NULL,
                    status_time TIMESTAMP NOT NULL,
                    last_error TEXT
                );

                CREATE TABLE IF NOT EXISTS page (
                    id SERIAL PRIMARY KEY,
                    site_id INTEGER NOT NULL REFERENCES site(id) ON DELETE CASCADE,
                    path VARCHAR(500) NOT NULL,
                    code INTEGER NOT NULL,
                    content TEXT NOT NULL,
                    UNIQUE(site_id, path)
                );

                CREATE TABLE IF NOT EXISTS lemma (
                    id SERIAL PRIMARY KEY,
                    site_id INTEGER NOT NULL REFERENCES site(id) ON DELETE CASCADE,
                    lemma VARCHAR(255) NOT NULL,
                    frequency INTEGER NOT NULL,
                    UNIQUE(site_id, lemma)
                );

                CREATE TABLE IF NOT EXISTS search_index (
                    id SERIAL PRIMARY KEY,
                    page_id INTEGER NOT NULL REFERENCES page(id) ON DELETE CASCADE,
                    lemma_id INTEGER NOT NULL REFERENCES lemma(id) ON DELETE CASCADE,
                    rank_value REAL NOT NULL,
                    UNIQUE(page_id, lemma_id)
                );

                CREATE INDEX IF NOT EXISTS idx_lemma_lemma ON lemma(lemma);
                CREATE INDEX IF NOT EXISTS idx_search_index_lemma ON search_index(lemma_id);
            ''')

    # ========== SITES ==========

    async def get_sites(self) -> List[Site]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch('''
                SELECT id, url, name, status, status_time, last_error
                FROM site ORDER BY id
            ''')
            return [self._site(row) for row in rows]

    async def get_site(self, site_id: int) -> Optional[Site]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow('''
                SELECT id, url, name, status, status_time, last_error
                FROM site WHERE id = $1
            ''', site_id)
            return self._site(row) if row else None

    async def find_site_by_url(self, url: str) -> Optional[Site]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow('''
                SELECT id, url, name, status, status_time, last_error
                FROM site WHERE url = $1
            ''', url)
            return self._site(row) if row else None

    async def save_site(self, site: Site) -> Site:
        async with self.pool.acquire() as conn:
            if site.id is None:
                site.id = await conn.fetchval('''
                    INSERT INTO site (url, name, status, status_time, last_error)
                    VALUES ($1, $2, $3, $4, $5)
                    RETURNING id
                ''', site.url, site.name, site.status.value, site.status_time, site.last_error)
            else:
                await conn.execute('''
                    UPDATE site SET name = $2, status = $3, status_time = $4, last_error = $5
                    WHERE id = $1
                ''', site.id, site.name, site.status.value, site.status_time, site.last_error)
        return site

    async def delete_site(self, site: Site) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute('DELETE FROM site WHERE id = $1', site.id)

    # ========== PAGES ==========

    async def find_page(self, site_id: int, path: str) -> Optional[Page]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow('''
                SELECT id, site_id, path, code, content
                FROM page WHERE site_id = $1 AND path = $2
            ''', site_id, path)
            return self._page(row) if row else None

    async def get_pages(self, page_ids: Sequence[int]) -> List[Page]:
        if not page_ids:
            return []
        async with self.pool.acquire() as conn:
            rows = await conn.fetch('''
                SELECT id, site_id, path, code, content
                FROM page WHERE id = ANY($1::int[])
            ''', list(page_ids))
            return [self._page(row) for row in rows]

    async def save_page(self, page: Page) -> Page:
        async with self.pool.acquire() as conn:
            page.id = await conn.fetchval('''
                INSERT INTO page (site_id, path, code, content)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (site_id, path)
                DO UPDATE SET code = EXCLUDED.code, content = EXCLUDED.content
                RETURNING id
            ''', page.site_id, page.path, page.code, page.content)
        return page

    async def delete_pages(self, site_id: int) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute('DELETE FROM page WHERE site_id = $1', site_id)

    async def count_pages(self, site_id: Optional[int] = None) -> int:
        async with self.pool.acquire() as conn:
            if site_id is None:
                result = await conn.fetchval('SELECT COUNT(*) FROM page')
            else:
                result = await conn.fetchval('SELECT COUNT(*) FROM page WHERE site_id = $1', site_id)
            return result or 0

    # ========== LEMMAS ==========

    async def find_lemma(self, site_id: int, lemma: str) -> Optional[Lemma]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow('''
                SELECT id, site_id, lemma, frequency
                FROM lemma WHERE site_id = $1 AND lemma = $2
            ''', site_id, lemma)
            return self._lemma(row) if row else None

    async def find_lemmas(
        self,
        lemmas: Sequence[str],
        site_id: Optional[int] = None
    ) -> List[Lemma]:
        if not lemmas:
            return []
        async with self.pool.acquire() as conn:
            if site_id is None:
                rows = await conn.fetch('''
                    SELECT id, site_id, lemma, frequency
                    FROM lemma WHERE lemma = ANY($1::text[])
                    ORDER BY frequency ASC
                ''', list(lemmas))
            else:
                rows = await conn.fetch('''
                    SELECT id, site_id, lemma, frequency
                    FROM lemma WHERE lemma = ANY($1::text[]) AND site_id = $2
                    ORDER BY frequency ASC
                ''', list(lemmas), site_id)
            return [self._lemma(row) for row in rows]

    async def get_lemma(self, lemma_id: int) -> Optional[Lemma]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow('''
                SELECT id, site_id, lemma, frequency FROM lemma WHERE id = $1
            ''', lemma_id)
            return self._lemma(row) if row else None

    async def save_lemma(self, lemma: Lemma) -> Lemma:
        async with self.pool.acquire() as conn:
            if lemma.id is None:
                lemma.id = await conn.fetchval('''
                    INSERT INTO lemma (site_id, lemma, frequency)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (site_id, lemma)
                    DO UPDATE SET frequency = EXCLUDED.frequency
                    RETURNING id
                ''', lemma.site_id, lemma.lemma, lemma.frequency)
            else:
                await conn.execute('''
                    UPDATE lemma SET frequency = $2 WHERE id = $1
                ''', lemma.id, lemma.frequency)
        return lemma

    async def delete_lemma(self, lemma: Lemma) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute('DELETE FROM lemma WHERE id = $1', lemma.id)

    async def delete_lemmas(self, site_id: int) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute('DELETE FROM lemma WHERE site_id = $1', site_id)

    async def count_lemmas(self, site_id: Optional[int] = None) -> int:
        async with self.pool.acquire() as conn:
            if site_id is None:
                result = await conn.fetchval('SELECT COUNT(*) FROM lemma')
            else:
                result = await conn.fetchval('SELECT COUNT(*) FROM lemma WHERE site_id = $1', site_id)
            return result or 0

    # ========== INDEX ==========

    async def find_index(self, page_id: int) -> List[IndexEntry]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch('''
                SELECT id, page_id, lemma_id, rank_value
                FROM search_index WHERE page_id = $1
            ''', page_id)
            return [
                IndexEntry(
                    id=row['id'],
                    page_id=row['page_id'],
                    lemma_id=row['lemma_id'],
                    rank=row['rank_value'],
                )
                for row in rows
            ]

    async def save_index(self, entry: IndexEntry) -> IndexEntry:
        async with self.pool.acquire() as conn:
            entry.id = await conn.fetchval('''
                INSERT INTO search_index (page_id, lemma_id, rank_value)
                VALUES ($1, $2, $3)
                ON CONFLICT (page_id, lemma_id) DO UPDATE SET rank_value = EXCLUDED.rank_value
                RETURNING id
            ''', entry.page_id, entry.lemma_id, entry.rank)
        return entry

    async def delete_index(self, page_id: int) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute('DELETE FROM search_index WHERE page_id = $1', page_id)

    async def delete_site_index(self, site_id: int) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute('''
                DELETE FROM search_index
                WHERE page_id IN (SELECT id FROM page WHERE site_id = $1)
            ''', site_id)

    async def find_pages_with_all_lemmas(self, lemma_ids: Sequence[int]) -> List[int]:
        if not lemma_ids:
            return []
        async with self.pool.acquire() as conn:
            rows = await conn.fetch('''
                SELECT page_id FROM search_index
                WHERE lemma_id = ANY($1::int[])
                GROUP BY page_id
                HAVING COUNT(DISTINCT lemma_id) = $2
            ''', list(lemma_ids), len(set(lemma_ids)))
            return [row['page_id'] for row in rows]

    async def sum_ranks(self, page_id: int, lemma_ids: Sequence[int]) -> float:
        async with self.pool.acquire() as conn:
            result = await conn.fetchval('''
                SELECT COALESCE(SUM(rank_value), 0) FROM search_index
                WHERE page_id = $1 AND lemma_id = ANY($2::int[])
            ''', page_id, list(lemma_ids))
            return float(result or 0)

    # ==================== Приватные методы ====================

    def _site(self, row) -> Site:
        return Site(
            id=row['id'],
            url=row['url'],
            name=row['name'],
            status=SiteStatus(row['status']),
            status_time=row['status_time'],
            last_error=row['last_error'],
        )

    def _page(self, row) -> Page:
        return Page(
            id=row['id'],
            site_id=row['site_id'],
            path=row['path'],
            code=row['code'],
            content=row['content'],
        )

    def _lemma(self, row) -> Lemma:
        return Lemma(
            id=row['id'],
            site_id=row['site_id'],
            lemma=row['lemma'],
            frequency=row['frequency'],
        )
