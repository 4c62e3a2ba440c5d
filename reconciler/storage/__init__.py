"""
Catalog Storage Module
"""
from .store import (
    CatalogCache,
    CatalogStore,
    FileBackend,
    MemoryBackend,
    RedisBackend,
    create_store,
)

__all__ = [
    "CatalogCache",
    "CatalogStore",
    "FileBackend",
    "MemoryBackend",
    "RedisBackend",
    "create_store",
]
