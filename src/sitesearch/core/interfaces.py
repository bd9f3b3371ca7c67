"""
Интерфейсы (абстрактные классы) поискового движка
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence
from .models import (
    Site, Page, Lemma, IndexEntry, WordForm,
    FetchResult, ParsedPage, SearchResponse
)


class IMorphology(ABC):
    """Морфологический словарь (подключаемая реализация)"""

    @abstractmethod
    def parse(self, word: str) -> List[WordForm]:
        """
        Разбор слова

        Returns:
            Варианты нормальной формы, наиболее вероятный - первым.
            Пустой список, если слово не распознано.
        """
        pass


class IFetcher(ABC):
    """Загрузчик страниц"""

    @abstractmethod
    async def fetch(self, url: str) -> FetchResult:
        """
        Загрузить страницу

        Ответ с любым HTTP-кодом считается успешным.

        Raises:
            TransportError: ошибка соединения или таймаут
        """
        pass


class IParser(ABC):
    """Разбор HTML"""

    @abstractmethod
    def parse(self, body: str, base_url: str) -> ParsedPage:
        """Извлечь текст, абсолютные ссылки и заголовок страницы"""
        pass


class ISearchCache(ABC):
    """Интерфейс кэша результатов поиска"""

    @abstractmethod
    async def get(self, key: str) -> Optional[SearchResponse]:
        pass

    @abstractmethod
    async def set(self, key: str, response: SearchResponse) -> None:
        pass

    @abstractmethod
    async def invalidate(self) -> None:
        """Очистить кэш после изменения индекса"""
        pass


class IStorage(ABC):
    """
    Хранилище сайтов, страниц, лемм и индекса

    Гарантирует атомарность только для операций над одной строкой.
    """

    # ========== SITES ==========

    @abstractmethod
    async def get_sites(self) -> List[Site]:
        pass

    @abstractmethod
    async def get_site(self, site_id: int) -> Optional[Site]:
        pass

    @abstractmethod
    async def find_site_by_url(self, url: str) -> Optional[Site]:
        pass

    @abstractmethod
    async def save_site(self, site: Site) -> Site:
        """Создать или обновить сайт (проставляет id)"""
        pass

    @abstractmethod
    async def delete_site(self, site: Site) -> None:
        pass

    # ========== PAGES ==========

    @abstractmethod
    async def find_page(self, site_id: int, path: str) -> Optional[Page]:
        pass

    @abstractmethod
    async def get_pages(self, page_ids: Sequence[int]) -> List[Page]:
        pass

    @abstractmethod
    async def save_page(self, page: Page) -> Page:
        pass

    @abstractmethod
    async def delete_pages(self, site_id: int) -> None:
        """Удалить все страницы сайта"""
        pass

    @abstractmethod
    async def count_pages(self, site_id: Optional[int] = None) -> int:
        """Количество страниц сайта или всех сайтов"""
        pass

    # ========== LEMMAS ==========

    @abstractmethod
    async def find_lemma(self, site_id: int, lemma: str) -> Optional[Lemma]:
        pass

    @abstractmethod
    async def find_lemmas(
        self,
        lemmas: Sequence[str],
        site_id: Optional[int] = None
    ) -> List[Lemma]:
        """Леммы по тексту, по возрастанию frequency"""
        pass

    @abstractmethod
    async def get_lemma(self, lemma_id: int) -> Optional[Lemma]:
        pass

    @abstractmethod
    async def save_lemma(self, lemma: Lemma) -> Lemma:
        pass

    @abstractmethod
    async def delete_lemma(self, lemma: Lemma) -> None:
        pass

    @abstractmethod
    async def delete_lemmas(self, site_id: int) -> None:
        """Удалить все леммы сайта"""
        pass

    @abstractmethod
    async def count_lemmas(self, site_id: Optional[int] = None) -> int:
        pass

    # ========== INDEX ==========

    @abstractmethod
    async def find_index(self, page_id: int) -> List[IndexEntry]:
        pass

    @abstractmethod
    async def save_index(self, entry: IndexEntry) -> IndexEntry:
        pass

    @abstractmethod
    async def delete_index(self, page_id: int) -> None:
        """Удалить все записи индекса страницы"""
        pass

    @abstractmethod
    async def delete_site_index(self, site_id: int) -> None:
        """Удалить все записи индекса страниц сайта"""
        pass

    @abstractmethod
    async def find_pages_with_all_lemmas(self, lemma_ids: Sequence[int]) -> List[int]:
        """ID страниц, содержащих все переданные леммы"""
        pass

    @abstractmethod
    async def sum_ranks(self, page_id: int, lemma_ids: Sequence[int]) -> float:
        """Сумма рангов страницы по набору лемм"""
        pass
