"""
Redis кэш поисковой выдачи
"""
import json
import logging
from dataclasses import asdict
from typing import Optional

from redis.exceptions import RedisError

from ..core.interfaces import ISearchCache
from ..core.models import SearchItem, SearchResponse

logger = logging.getLogger(__name__)

KEY_PREFIX = "search:"


class RedisSearchCache(ISearchCache):
    """
    Кэш ответов поиска с TTL

    Ошибки Redis не прерывают поиск: они логируются, а запрос
    выполняется по индексу.
    """

    def __init__(self, redis_client, ttl: int = 60):
        self.redis = redis_client
        self.ttl = ttl

    async def get(self, key: str) -> Optional[SearchResponse]:
        try:
            data = await self.redis.get(KEY_PREFIX + key)
        except RedisError as e:
            logger.warning(f"[Cache] get failed: {e}")
            return None

        if not data:
            return None

        d = json.loads(data if isinstance(data, str) else data.decode())
        return SearchResponse(
            query=d["query"],
            count=d["count"],
            data=[SearchItem(**item) for item in d["data"]],
            took_ms=d.get("took_ms", 0),
        )

    async def set(self, key: str, response: SearchResponse) -> None:
        try:
            await self.redis.set(
                KEY_PREFIX + key,
                json.dumps(asdict(response), ensure_ascii=False),
                ex=self.ttl,
            )
        except RedisError as e:
            logger.warning(f"[Cache] set failed: {e}")

    async def invalidate(self) -> None:
        """Удалить все закэшированные ответы"""
        try:
            cursor = 0
            deleted = 0
            while True:
                cursor, keys = await self.redis.scan(cursor, match=f"{KEY_PREFIX}*", count=100)
                if keys:
                    deleted += await self.redis.delete(*keys)
                if cursor == 0:
                    break
            if deleted:
                logger.info(f"[Cache] Invalidated {deleted} search results")
        except RedisError as e:
            logger.warning(f"[Cache] invalidate failed: {e}")
