"""
Конфигурация сервиса
"""
from dataclasses import dataclass, field
from typing import List, Optional
import json
import os

from .models import ConfiguredSite


@dataclass
class DatabaseConfig:
    """Настройки PostgreSQL"""
    host: str = "localhost"
    port: int = 5432
    database: str = "search_engine"
    user: str = "postgres"
    password: str = ""
    min_pool_size: int = 2
    pool_size: int = 10

    @property
    def url(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class RedisConfig:
    """Настройки Redis (кэш результатов поиска)"""
    enabled: bool = False
    host: str = "localhost"
    port: int = 6379
    password: Optional[str] = None
    db: int = 0

    # TTL для кэша (секунды)
    search_cache_ttl: int = 60

    @property
    def url(self) -> str:
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


@dataclass
class CrawlerConfig:
    """Настройки обхода сайтов"""
    user_agent: str = "HeliontSearchBot/1.0 (+http://www.google.com/bot.html)"
    referrer: str = "http://www.google.com"
    timeout: float = 10.0  # секунды
    max_depth: int = 10

    # Количество одновременно обрабатываемых страниц
    workers: int = 8


@dataclass
class SearchConfig:
    """Настройки поиска"""
    default_limit: int = 20
    max_limit: int = 100

    # Леммы, встречающиеся на большей доле страниц, отбрасываются
    max_frequency_percent: int = 80

    # Сниппет
    snippet_length: int = 200
    snippet_step: int = 10
    snippet_context: int = 50


@dataclass
class ApiConfig:
    """Настройки API"""
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list = field(default_factory=lambda: ["*"])


@dataclass
class Config:
    """Главная конфигурация"""
    env: str = "development"
    debug: bool = True

    sites: List[ConfiguredSite] = field(default_factory=list)

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    api: ApiConfig = field(default_factory=ApiConfig)

    @classmethod
    def from_env(cls) -> "Config":
        """Загрузить конфигурацию из переменных окружения"""
        return cls(
            env=os.getenv("ENV", "development"),
            debug=os.getenv("DEBUG", "true").lower() == "true",

            sites=load_sites(
                os.getenv("SITES_FILE"),
                os.getenv("SITES"),
            ),

            database=DatabaseConfig(
                host=os.getenv("DB_HOST", "localhost"),
                port=int(os.getenv("DB_PORT", "5432")),
                database=os.getenv("DB_NAME", "search_engine"),
                user=os.getenv("DB_USER", "postgres"),
                password=os.getenv("DB_PASSWORD", ""),
            ),

            redis=RedisConfig(
                enabled=os.getenv("REDIS_ENABLED", "false").lower() == "true",
                host=os.getenv("REDIS_HOST", "localhost"),
                port=int(os.getenv("REDIS_PORT", "6379")),
                password=os.getenv("REDIS_PASSWORD"),
                search_cache_ttl=int(os.getenv("SEARCH_CACHE_TTL", "60")),
            ),

            crawler=CrawlerConfig(
                user_agent=os.getenv("CRAWLER_USER_AGENT", CrawlerConfig.user_agent),
                referrer=os.getenv("CRAWLER_REFERRER", CrawlerConfig.referrer),
                timeout=float(os.getenv("CRAWLER_TIMEOUT", "10")),
                workers=int(os.getenv("CRAWLER_WORKERS", "8")),
            ),

            api=ApiConfig(
                host=os.getenv("API_HOST", "0.0.0.0"),
                port=int(os.getenv("API_PORT", "8080")),
            ),
        )


def load_sites(path: Optional[str] = None, raw: Optional[str] = None) -> List[ConfiguredSite]:
    """
    Список сайтов для индексации

    Источник - JSON-файл (SITES_FILE) или строка JSON (SITES):
    [{"url": "https://example.com", "name": "Example"}, ...]
    """
    if path:
        with open(path, encoding="utf-8") as f:
            items = json.load(f)
    elif raw:
        items = json.loads(raw)
    else:
        return []

    sites = []
    for item in items:
        # Корень сайта храним без завершающего слэша
        url = item["url"].strip().rstrip("/")
        sites.append(ConfiguredSite(url=url, name=item.get("name") or url))
    return sites


# Глобальный экземпляр конфигурации
config = Config.from_env()
