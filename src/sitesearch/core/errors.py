"""
Исключения поискового движка
"""


class SearchEngineError(Exception):
    """Базовая ошибка сервиса"""
    pass


class ValidationError(SearchEngineError):
    """Некорректный запрос (пустой поиск, адрес вне сайтов)"""
    pass


class TransportError(SearchEngineError):
    """Ошибка соединения или таймаут при загрузке страницы"""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url


class ConflictError(SearchEngineError):
    """Индексация уже запущена или не запущена"""
    pass


class CancellationError(SearchEngineError):
    """Индексация остановлена пользователем"""
    pass
