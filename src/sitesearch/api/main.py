"""
FastAPI приложение - индексация сайтов, поиск, статистика
"""
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional, List
from dataclasses import asdict
import redis.asyncio as redis
from redis.exceptions import RedisError
from contextlib import asynccontextmanager
from pydantic import BaseModel
import logging

from ..core.config import Config, config as default_config
from ..core.errors import SearchEngineError
from ..crawler.fetcher import AiohttpFetcher
from ..crawler.lifecycle import IndexingService
from ..crawler.parser import HtmlParser
from ..search.engine import SearchEngine
from ..search.indexer import PageIndexer
from ..search.morphology import MorphologyAnalyzer
from ..search.statistics import StatisticsService
from ..storage.cache import RedisSearchCache
from ..storage.database import Database

logger = logging.getLogger(__name__)


# ============ MODELS ============

class ResultResponse(BaseModel):
    result: bool
    error: Optional[str] = None


class SearchResultItem(BaseModel):
    site: str
    site_name: str
    uri: str
    title: str
    snippet: str
    relevance: float


class SearchResultResponse(BaseModel):
    result: bool
    count: int
    data: List[SearchResultItem]


class TotalStatisticsModel(BaseModel):
    sites: int
    pages: int
    lemmas: int
    indexing: bool


class SiteStatisticsModel(BaseModel):
    url: str
    name: str
    status: str
    status_time: int
    error: Optional[str] = None
    pages: int
    lemmas: int


class StatisticsModel(BaseModel):
    total: TotalStatisticsModel
    detailed: List[SiteStatisticsModel]


class StatisticsResponse(BaseModel):
    result: bool
    statistics: StatisticsModel


# ============ SERVICES ============

async def init_services(app: FastAPI, cfg: Config):
    """Подключение к хранилищам и сборка сервисов"""
    database = Database(cfg.database)
    await database.connect()
    app.state.database = database

    cache = None
    if cfg.redis.enabled:
        app.state.redis = redis.from_url(cfg.redis.url, encoding="utf-8", decode_responses=True)
        cache = RedisSearchCache(app.state.redis, ttl=cfg.redis.search_cache_ttl)

    fetcher = AiohttpFetcher(cfg.crawler)
    app.state.fetcher = fetcher

    parser = HtmlParser()
    analyzer = MorphologyAnalyzer()
    indexer = PageIndexer(database)

    app.state.indexing = IndexingService(
        database,
        cfg.sites,
        fetcher,
        parser,
        analyzer,
        indexer=indexer,
        cache=cache,
        config=cfg.crawler,
    )
    app.state.search = SearchEngine(database, analyzer, parser, cache=cache, config=cfg.search)
    app.state.statistics = StatisticsService(database, app.state.indexing.is_indexing)

    logger.info(f"[API] Services initialized, {len(cfg.sites)} sites configured")


async def close_services(app: FastAPI):
    """Остановка индексации и закрытие соединений"""
    indexing = getattr(app.state, "indexing", None)
    if indexing is not None and indexing.is_indexing():
        await indexing.stop_indexing()

    fetcher = getattr(app.state, "fetcher", None)
    if fetcher is not None:
        await fetcher.close()

    redis_client = getattr(app.state, "redis", None)
    if redis_client is not None:
        await redis_client.close()

    database = getattr(app.state, "database", None)
    if database is not None:
        await database.disconnect()

    logger.info("[API] Connections closed")


def create_app(cfg: Optional[Config] = None) -> FastAPI:
    """
    Создание приложения

    Сервисы (indexing, search, statistics) собираются при старте, если
    они не заданы заранее в app.state.
    """
    cfg = cfg or default_config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=logging.DEBUG if cfg.debug else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        if getattr(app.state, "indexing", None) is None:
            await init_services(app, cfg)
        yield
        await close_services(app)

    app = FastAPI(
        title="Site Search API",
        description="API для индексации сайтов и поиска по ним",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SearchEngineError)
    async def search_engine_error_handler(request: Request, exc: SearchEngineError):
        return JSONResponse(
            status_code=400,
            content={"result": False, "error": str(exc)}
        )

    # ============ INDEXING ENDPOINTS ============

    @app.get("/api/startIndexing", response_model=ResultResponse, response_model_exclude_none=True)
    async def start_indexing(request: Request):
        """Запуск полной индексации"""
        await request.app.state.indexing.start_indexing()
        return {"result": True}

    @app.get("/api/stopIndexing", response_model=ResultResponse, response_model_exclude_none=True)
    async def stop_indexing(request: Request):
        """Остановка текущей индексации"""
        await request.app.state.indexing.stop_indexing()
        return {"result": True}

    @app.post("/api/indexPage", response_model=ResultResponse, response_model_exclude_none=True)
    async def index_page(request: Request, url: str = Query("")):
        """Добавление или обновление отдельной страницы"""
        await request.app.state.indexing.index_page(url)
        return {"result": True}

    # ============ SEARCH ENDPOINTS ============

    @app.get("/api/search", response_model=SearchResultResponse)
    async def search(
        request: Request,
        query: str = Query(""),
        site: Optional[str] = None,
        offset: int = Query(0, ge=0),
        limit: int = Query(20, ge=1, le=100)
    ):
        """Поиск по проиндексированным страницам"""
        response = await request.app.state.search.search(
            query,
            site_url=site,
            offset=offset,
            limit=limit,
        )
        return {
            "result": True,
            "count": response.count,
            "data": [asdict(item) for item in response.data],
        }

    @app.get("/api/statistics", response_model=StatisticsResponse)
    async def statistics(request: Request):
        """Статистика по сайтам"""
        stats = await request.app.state.statistics.get_statistics()
        return {"result": True, "statistics": asdict(stats)}

    # ============ HEALTH CHECK ============

    @app.get("/health")
    async def health(request: Request):
        """Health check"""
        redis_client = getattr(request.app.state, "redis", None)
        indexing = request.app.state.indexing.is_indexing()
        if redis_client is None:
            return {"status": "healthy", "indexing": indexing}
        try:
            await redis_client.ping()
            return {"status": "healthy", "redis": "connected", "indexing": indexing}
        except RedisError:
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "redis": "disconnected"}
            )

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": "Site Search API",
            "version": "1.0.0",
            "docs": "/docs"
        }

    return app


app = create_app()


def main():
    """Запуск сервера"""
    import uvicorn
    uvicorn.run(app, host=default_config.api.host, port=default_config.api.port)
