"""
Общие фикстуры и тестовые реализации интерфейсов
"""
import asyncio
import fnmatch
from dataclasses import replace
from typing import Dict, List, Optional

import pytest
from redis.exceptions import RedisError

from sitesearch.core.errors import TransportError
from sitesearch.core.interfaces import IFetcher, IMorphology, IStorage
from sitesearch.core.models import FetchResult, IndexEntry, Lemma, Page, Site, WordForm
from sitesearch.crawler.parser import HtmlParser
from sitesearch.search.indexer import PageIndexer
from sitesearch.search.morphology import MorphologyAnalyzer


# ============ STORAGE ============

class InMemoryStorage(IStorage):
    """Хранилище на словарях, строки хранятся копиями как в БД"""

    def __init__(self):
        self.sites: Dict[int, Site] = {}
        self.pages: Dict[int, Page] = {}
        self.lemmas: Dict[int, Lemma] = {}
        self.index: Dict[int, IndexEntry] = {}
        self._next_id = 0

    def _id(self) -> int:
        self._next_id += 1
        return self._next_id

    # Sites

    async def get_sites(self) -> List[Site]:
        return [replace(s) for s in self.sites.values()]

    async def get_site(self, site_id: int) -> Optional[Site]:
        site = self.sites.get(site_id)
        return replace(site) if site else None

    async def find_site_by_url(self, url: str) -> Optional[Site]:
        for site in self.sites.values():
            if site.url == url:
                return replace(site)
        return None

    async def save_site(self, site: Site) -> Site:
        if site.id is None:
            site.id = self._id()
        self.sites[site.id] = replace(site)
        return site

    async def delete_site(self, site: Site) -> None:
        self.sites.pop(site.id, None)

    # Pages

    async def find_page(self, site_id: int, path: str) -> Optional[Page]:
        for page in self.pages.values():
            if page.site_id == site_id and page.path == path:
                return replace(page)
        return None

    async def get_pages(self, page_ids) -> List[Page]:
        return [replace(self.pages[i]) for i in page_ids if i in self.pages]

    async def save_page(self, page: Page) -> Page:
        if page.id is None:
            existing = await self.find_page(page.site_id, page.path)
            page.id = existing.id if existing else self._id()
        self.pages[page.id] = replace(page)
        return page

    async def delete_pages(self, site_id: int) -> None:
        for page_id in [p.id for p in self.pages.values() if p.site_id == site_id]:
            del self.pages[page_id]

    async def count_pages(self, site_id: Optional[int] = None) -> int:
        return sum(1 for p in self.pages.values() if site_id is None or p.site_id == site_id)

    # Lemmas

    async def find_lemma(self, site_id: int, lemma: str) -> Optional[Lemma]:
        for row in self.lemmas.values():
            if row.site_id == site_id and row.lemma == lemma:
                return replace(row)
        return None

    async def find_lemmas(self, lemmas, site_id: Optional[int] = None) -> List[Lemma]:
        rows = [
            replace(row) for row in self.lemmas.values()
            if row.lemma in lemmas and (site_id is None or row.site_id == site_id)
        ]
        return sorted(rows, key=lambda row: row.frequency)

    async def get_lemma(self, lemma_id: int) -> Optional[Lemma]:
        row = self.lemmas.get(lemma_id)
        return replace(row) if row else None

    async def save_lemma(self, lemma: Lemma) -> Lemma:
        if lemma.id is None:
            lemma.id = self._id()
        self.lemmas[lemma.id] = replace(lemma)
        return lemma

    async def delete_lemma(self, lemma: Lemma) -> None:
        self.lemmas.pop(lemma.id, None)

    async def delete_lemmas(self, site_id: int) -> None:
        for lemma_id in [l.id for l in self.lemmas.values() if l.site_id == site_id]:
            del self.lemmas[lemma_id]

    async def count_lemmas(self, site_id: Optional[int] = None) -> int:
        return sum(1 for l in self.lemmas.values() if site_id is None or l.site_id == site_id)

    # Index

    async def find_index(self, page_id: int) -> List[IndexEntry]:
        return [replace(e) for e in self.index.values() if e.page_id == page_id]

    async def save_index(self, entry: IndexEntry) -> IndexEntry:
        if entry.id is None:
            entry.id = self._id()
        self.index[entry.id] = replace(entry)
        return entry

    async def delete_index(self, page_id: int) -> None:
        for entry_id in [e.id for e in self.index.values() if e.page_id == page_id]:
            del self.index[entry_id]

    async def delete_site_index(self, site_id: int) -> None:
        page_ids = {p.id for p in self.pages.values() if p.site_id == site_id}
        for entry_id in [e.id for e in self.index.values() if e.page_id in page_ids]:
            del self.index[entry_id]

    async def find_pages_with_all_lemmas(self, lemma_ids) -> List[int]:
        required = set(lemma_ids)
        if not required:
            return []
        found: Dict[int, set] = {}
        for entry in self.index.values():
            if entry.lemma_id in required:
                found.setdefault(entry.page_id, set()).add(entry.lemma_id)
        return [page_id for page_id, ids in found.items() if ids == required]

    async def sum_ranks(self, page_id: int, lemma_ids) -> float:
        ids = set(lemma_ids)
        return sum(e.rank for e in self.index.values() if e.page_id == page_id and e.lemma_id in ids)


# ============ MORPHOLOGY ============

class FakeMorphology(IMorphology):
    """Маленький словарь вместо pymorphy3"""

    DICTIONARY = {
        "кот": [WordForm("кот", "NOUN")],
        "кота": [WordForm("кот", "NOUN")],
        "коты": [WordForm("кот", "NOUN")],
        "котов": [WordForm("кот", "NOUN")],
        "собака": [WordForm("собака", "NOUN")],
        "собаки": [WordForm("собака", "NOUN")],
        "собак": [WordForm("собака", "NOUN")],
        "бегают": [WordForm("бегать", "VERB")],
        "бегает": [WordForm("бегать", "VERB")],
        "стали": [WordForm("стать", "VERB"), WordForm("сталь", "NOUN")],
        "ковре": [WordForm("ковёр", "NOUN")],
        "на": [WordForm("на", "PREP")],
        "или": [WordForm("или", "CONJ")],
        "не": [WordForm("не", "PRCL")],
        "ой": [WordForm("ой", "INTJ")],
    }

    def parse(self, word: str) -> List[WordForm]:
        return self.DICTIONARY.get(word, [WordForm(word, "NOUN")])


# ============ FETCHER ============

def html_page(title: str = "", text: str = "", links=()) -> str:
    anchors = "".join(f'<a href="{href}">ссылка</a>' for href in links)
    return (
        f"<html><head><title>{title}</title></head>"
        f"<body><p>{text}</p>{anchors}</body></html>"
    )


class FakeFetcher(IFetcher):
    """
    Страницы по адресам

    Значение - (код, тело) или исключение. Для адресов из gates загрузка
    ждёт события, started выставляется в момент ожидания.
    """

    def __init__(self, pages: Optional[Dict[str, object]] = None):
        self.pages = dict(pages or {})
        self.calls: List[str] = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.started = asyncio.Event()

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)

        gate = self.gates.get(url)
        if gate is not None:
            self.started.set()
            await gate.wait()

        page = self.pages.get(url)
        if page is None:
            return FetchResult(status_code=404, body="")
        if isinstance(page, Exception):
            raise page
        status_code, body = page
        return FetchResult(status_code=status_code, body=body)


def transport_error(url: str) -> TransportError:
    return TransportError(url, f"ClientConnectorError: cannot connect to {url}")


# ============ REDIS ============

class FakeRedis:
    """Минимальный асинхронный клиент Redis"""

    def __init__(self, fail: bool = False):
        self.data: Dict[str, str] = {}
        self.expires: Dict[str, int] = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise RedisError("connection refused")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.data[key] = value
        if ex is not None:
            self.expires[key] = ex
        return True

    async def scan(self, cursor=0, match=None, count=None):
        self._check()
        keys = [k for k in self.data if match is None or fnmatch.fnmatch(k, match)]
        return 0, keys

    async def delete(self, *keys):
        self._check()
        deleted = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                deleted += 1
        return deleted

    async def ping(self):
        self._check()
        return True


# ============ HELPERS ============

async def assert_frequencies_match_index(storage: InMemoryStorage, site_id: int):
    """frequency каждой леммы равна числу страниц, ссылающихся на неё"""
    for lemma in storage.lemmas.values():
        if lemma.site_id != site_id:
            continue
        pages = {e.page_id for e in storage.index.values() if e.lemma_id == lemma.id}
        assert lemma.frequency == len(pages), lemma
        assert lemma.frequency > 0


# ============ FIXTURES ============

@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def analyzer():
    return MorphologyAnalyzer(FakeMorphology())


@pytest.fixture
def parser():
    return HtmlParser()


@pytest.fixture
def indexer(storage):
    return PageIndexer(storage)


@pytest.fixture
async def site(storage):
    return await storage.save_site(Site(url="https://site.ru", name="Сайт"))
