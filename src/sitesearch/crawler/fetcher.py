"""
Загрузка страниц по HTTP
"""
import asyncio
import logging
from typing import Optional

import aiohttp

from ..core.config import CrawlerConfig
from ..core.errors import TransportError
from ..core.interfaces import IFetcher
from ..core.models import FetchResult

logger = logging.getLogger(__name__)


class AiohttpFetcher(IFetcher):
    """
    Загрузчик страниц на aiohttp

    HTTP-ошибки (404, 500 ...) возвращаются как обычный ответ,
    TransportError - только при ошибке соединения или таймауте.
    """

    def __init__(self, config: Optional[CrawlerConfig] = None):
        self.config = config or CrawlerConfig()
        self._session: Optional[aiohttp.ClientSession] = None

    async def fetch(self, url: str) -> FetchResult:
        session = self._get_session()
        try:
            async with session.get(url, allow_redirects=True) as response:
                body = await response.text(errors="replace")
                return FetchResult(status_code=response.status, body=body)
        except asyncio.TimeoutError:
            raise TransportError(url, f"Таймаут загрузки {url}")
        except aiohttp.ClientError as e:
            raise TransportError(url, f"{type(e).__name__}: {e}")

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                headers={
                    "User-Agent": self.config.user_agent,
                    "Referer": self.config.referrer,
                },
            )
        return self._session
