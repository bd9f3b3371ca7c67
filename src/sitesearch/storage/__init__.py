"""
Storage модуль - PostgreSQL и Redis
"""
from .database import Database
from .cache import RedisSearchCache

__all__ = ["Database", "RedisSearchCache"]
