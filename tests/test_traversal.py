"""
Тесты обхода сайта
"""
import pytest

from sitesearch.core.config import CrawlerConfig
from sitesearch.core.errors import CancellationError, TransportError
from sitesearch.crawler.traversal import (
    CrawlRun,
    PageCrawler,
    VisitedSet,
    belongs_to_site,
    is_binary_path,
    normalize_path,
)

from conftest import FakeFetcher, assert_frequencies_match_index, html_page, transport_error

ROOT = "https://site.ru"


@pytest.mark.parametrize("path, expected", [
    ("", "/"),
    ("/", "/"),
    ("a/b/", "/a/b"),
    ("/a/b", "/a/b"),
    ("/a/b///", "/a/b"),
])
def test_normalize_path(path, expected):
    assert normalize_path(path) == expected
    assert normalize_path(normalize_path(path)) == expected


def test_binary_paths():
    assert is_binary_path("/docs/report.PDF")
    assert is_binary_path("/img/photo.jpeg")
    assert not is_binary_path("/docs/report")
    assert not is_binary_path("/pdf")


def test_belongs_to_site():
    assert belongs_to_site("https://site.ru", ROOT)
    assert belongs_to_site("https://site.ru/a/b", ROOT + "/")
    assert not belongs_to_site("https://site.ruby.com/a", ROOT)
    assert not belongs_to_site("https://other.ru/a", ROOT)


def test_visited_set_claims_once():
    visited = VisitedSet()

    assert visited.claim("https://site.ru/")
    assert not visited.claim("https://site.ru/")
    assert "https://site.ru/" in visited
    assert len(visited) == 1


def make_run(storage, analyzer, parser, indexer, fetcher, **config):
    config.setdefault("workers", 2)
    crawler = PageCrawler(storage, fetcher, parser, analyzer, indexer)
    return CrawlRun(crawler, CrawlerConfig(**config))


async def crawl(run, site):
    try:
        await run.crawl_site(site)
    finally:
        await run.close()


async def test_cycle_visits_each_page_once(storage, analyzer, parser, indexer, site):
    fetcher = FakeFetcher({
        ROOT: (200, html_page("Главная", "кот", ["/a"])),
        ROOT + "/a": (200, html_page("A", "собака", ["/", "/b", "/a/"])),
        ROOT + "/b": (200, html_page("B", "кота", ["/a"])),
    })
    run = make_run(storage, analyzer, parser, indexer, fetcher)

    await crawl(run, site)

    assert sorted(p.path for p in storage.pages.values()) == ["/", "/a", "/b"]
    assert sorted(fetcher.calls) == [ROOT, ROOT + "/a", ROOT + "/b"]
    assert run.pages_crawled == 3
    await assert_frequencies_match_index(storage, site.id)


async def test_depth_limit(storage, analyzer, parser, indexer, site):
    fetcher = FakeFetcher({
        ROOT: (200, html_page("0", "кот", ["/1"])),
        ROOT + "/1": (200, html_page("1", "кот", ["/2"])),
        ROOT + "/2": (200, html_page("2", "кот", ["/3"])),
        ROOT + "/3": (200, html_page("3", "кот")),
    })
    run = make_run(storage, analyzer, parser, indexer, fetcher, max_depth=2)

    await crawl(run, site)

    assert sorted(p.path for p in storage.pages.values()) == ["/", "/1", "/2"]


async def test_skips_binary_external_and_query_links(storage, analyzer, parser, indexer, site):
    fetcher = FakeFetcher({
        ROOT: (200, html_page("Главная", "кот", [
            "/report.pdf",
            "/page?id=1",
            "/page#top",
            "https://other.ru/x",
            "mailto:info@site.ru",
            "/page",
        ])),
        ROOT + "/page": (200, html_page("Page", "собака")),
    })
    run = make_run(storage, analyzer, parser, indexer, fetcher)

    await crawl(run, site)

    assert sorted(fetcher.calls) == [ROOT, ROOT + "/page"]


async def test_error_pages_are_stored_but_not_followed(storage, analyzer, parser, indexer, site):
    fetcher = FakeFetcher({
        ROOT: (200, html_page("Главная", "кот", ["/missing"])),
        ROOT + "/missing": (404, html_page("Not found", "ошибка", ["/hidden"])),
        ROOT + "/hidden": (200, html_page("Hidden", "секрет")),
    })
    run = make_run(storage, analyzer, parser, indexer, fetcher)

    await crawl(run, site)

    missing = await storage.find_page(site.id, "/missing")
    assert missing.code == 404
    assert ROOT + "/hidden" not in fetcher.calls


async def test_root_transport_error_fails_crawl(storage, analyzer, parser, indexer, site):
    fetcher = FakeFetcher({ROOT: transport_error(ROOT)})
    run = make_run(storage, analyzer, parser, indexer, fetcher)

    with pytest.raises(TransportError):
        await crawl(run, site)

    stored = await storage.get_site(site.id)
    assert stored.last_error.startswith("Ошибка загрузки страницы")
    assert await storage.count_pages(site.id) == 0


async def test_child_transport_error_is_recorded(storage, analyzer, parser, indexer, site):
    fetcher = FakeFetcher({
        ROOT: (200, html_page("Главная", "кот", ["/broken", "/ok"])),
        ROOT + "/broken": transport_error(ROOT + "/broken"),
        ROOT + "/ok": (200, html_page("OK", "собака")),
    })
    run = make_run(storage, analyzer, parser, indexer, fetcher)

    await crawl(run, site)

    stored = await storage.get_site(site.id)
    assert "/broken" in stored.last_error
    assert await storage.find_page(site.id, "/ok") is not None
    assert await storage.find_page(site.id, "/broken") is None


async def test_cancelled_run_rejects_sites(storage, analyzer, parser, indexer, site):
    fetcher = FakeFetcher({ROOT: (200, html_page("Главная", "кот"))})
    run = make_run(storage, analyzer, parser, indexer, fetcher)

    run.cancel()

    with pytest.raises(CancellationError):
        await crawl(run, site)
    assert fetcher.calls == []


async def test_site_visited_once_per_run(storage, analyzer, parser, indexer, site):
    fetcher = FakeFetcher({ROOT: (200, html_page("Главная", "кот"))})
    run = make_run(storage, analyzer, parser, indexer, fetcher)

    await run.crawl_site(site)
    await run.crawl_site(site)
    await run.close()

    assert fetcher.calls == [ROOT]
