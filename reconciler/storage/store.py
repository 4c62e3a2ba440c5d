"""
Catalog Store

Persistence of the unified catalog document with:
- Pluggable backends (memory, JSON file, Redis)
- An explicit session cache owned by the store
- Optimistic saves guarded by the composition fingerprint
- Staleness checks against fresh composition inputs
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import structlog
from redis.asyncio import Redis

from reconciler.config import get_settings
from reconciler.config.settings import Settings
from reconciler.exceptions import CatalogNotFoundError, StaleCatalogError
from reconciler.models import UnifiedCatalog
from reconciler.transformation.compositions import composition_fingerprint

logger = structlog.get_logger(__name__)


class CatalogCache:
    """Last catalog loaded or saved during a session"""

    def __init__(self):
        self._catalog: Optional[UnifiedCatalog] = None

    def get(self) -> Optional[UnifiedCatalog]:
        return self._catalog

    def put(self, catalog: UnifiedCatalog) -> None:
        self._catalog = catalog

    def clear(self) -> None:
        self._catalog = None


class MemoryBackend:
    """Keeps the document in process memory"""

    name = "memory"

    def __init__(self):
        self._document: Optional[Dict[str, Any]] = None

    async def read(self) -> Optional[Dict[str, Any]]:
        return json.loads(json.dumps(self._document)) if self._document is not None else None

    async def write(self, document: Dict[str, Any]) -> None:
        self._document = json.loads(json.dumps(document))

    async def delete(self) -> None:
        self._document = None

    async def close(self) -> None:
        pass


class FileBackend:
    """JSON document on disk, replaced atomically on write"""

    name = "file"

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read_sync(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write_sync(self, document: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    async def read(self) -> Optional[Dict[str, Any]]:
        return await asyncio.to_thread(self._read_sync)

    async def write(self, document: Dict[str, Any]) -> None:
        await asyncio.to_thread(self._write_sync, document)

    async def delete(self) -> None:
        await asyncio.to_thread(self.path.unlink, missing_ok=True)

    async def close(self) -> None:
        pass


class RedisBackend:
    """JSON document stored under a single Redis key"""

    name = "redis"

    def __init__(self, key: str, url: Optional[str] = None, client: Optional[Redis] = None, socket_timeout: int = 5):
        self.key = key
        self._url = url
        self._client = client
        self._socket_timeout = socket_timeout

    def _get_client(self) -> Redis:
        if self._client is None:
            self._client = Redis.from_url(
                self._url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
            )
            logger.info("Redis client created", key=self.key)
        return self._client

    async def read(self) -> Optional[Dict[str, Any]]:
        value = await self._get_client().get(self.key)
        if value is None:
            return None
        return json.loads(value)

    async def write(self, document: Dict[str, Any]) -> None:
        await self._get_client().set(self.key, json.dumps(document, ensure_ascii=False))

    async def delete(self) -> None:
        await self._get_client().delete(self.key)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")


class CatalogStore:
    """
    Load, save and compare the unified catalog.

    Example:
        store = create_store()
        catalog = await store.load()
        if not await store.is_current(compositions):
            ...
    """

    def __init__(self, backend: Any, cache: Optional[CatalogCache] = None):
        self.backend = backend
        self.cache = cache if cache is not None else CatalogCache()

    async def _read(self) -> Optional[UnifiedCatalog]:
        document = await self.backend.read()
        if document is None:
            return None
        return UnifiedCatalog.from_document(document)

    async def load(self, refresh: bool = False) -> Optional[UnifiedCatalog]:
        """
        Stored catalog, from the session cache when possible.

        Args:
            refresh: Read the backend even when a catalog is cached, and
                replace the cached one with what is stored
        """
        if not refresh:
            cached = self.cache.get()
            if cached is not None:
                return cached

        catalog = await self._read()
        self._remember(catalog)
        if catalog is not None:
            logger.debug("Catalog loaded from backend", backend=self.backend.name, products=catalog.stats.total)
        return catalog

    def _remember(self, catalog: Optional[UnifiedCatalog]) -> None:
        if catalog is None:
            self.cache.clear()
        else:
            self.cache.put(catalog)

    async def require(self, refresh: bool = False) -> UnifiedCatalog:
        """Stored catalog, or CatalogNotFoundError"""
        catalog = await self.load(refresh=refresh)
        if catalog is None:
            raise CatalogNotFoundError()
        return catalog

    async def fingerprint(self, refresh: bool = False) -> Optional[str]:
        """Composition fingerprint of the stored catalog, None when nothing is stored"""
        catalog = await self.load(refresh=refresh)
        return catalog.composition_fingerprint if catalog is not None else None

    async def save(self, catalog: UnifiedCatalog, expected_fingerprint: Optional[str] = None) -> None:
        """
        Persist a catalog and make it the cached one.

        Args:
            catalog: Catalog to store
            expected_fingerprint: Fingerprint the caller last saw; when given,
                the save is refused if the backend holds something else

        Raises:
            StaleCatalogError: if the stored fingerprint is not the expected
                one. The cache then holds the stored catalog, so a retry
                based on ``fingerprint()`` compares against the current state.
        """
        if expected_fingerprint is not None:
            stored = await self._read()
            actual = stored.composition_fingerprint if stored is not None else None
            if actual != expected_fingerprint:
                self._remember(stored)
                logger.warning("Refusing stale catalog save", expected=expected_fingerprint, actual=actual)
                raise StaleCatalogError(expected_fingerprint, actual)

        await self.backend.write(catalog.to_document())
        self.cache.put(catalog)
        logger.info(
            "Catalog saved",
            backend=self.backend.name,
            products=catalog.stats.total,
            fingerprint=catalog.composition_fingerprint[:12],
        )

    async def is_current(self, compositions: Iterable[Any], refresh: bool = False) -> bool:
        """True when the stored catalog was built from these compositions"""
        stored = await self.fingerprint(refresh=refresh)
        return stored is not None and stored == composition_fingerprint(compositions)

    async def delete(self) -> None:
        await self.backend.delete()
        self.cache.clear()

    def clear_cache(self) -> None:
        self.cache.clear()

    async def close(self) -> None:
        await self.backend.close()


def create_store(settings: Optional[Settings] = None, cache: Optional[CatalogCache] = None) -> CatalogStore:
    """Build the store configured by StoreSettings"""
    settings = settings or get_settings()
    store_settings = settings.store

    if store_settings.backend == "memory":
        backend: Any = MemoryBackend()
    elif store_settings.backend == "redis":
        backend = RedisBackend(
            store_settings.key,
            url=settings.redis.get_url(),
            socket_timeout=settings.redis.socket_timeout,
        )
    else:
        backend = FileBackend(store_settings.path)

    logger.info("Catalog store configured", backend=backend.name)
    return CatalogStore(backend, cache)
