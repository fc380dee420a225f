"""
Key-value cache backends and the result cache gateway.

Backends implement get/set/delete (+ prefix delete for sweeps) and raise
CacheUnavailable when the store can't be reached. ResultCache wraps a backend
and turns every such failure into a soft miss: reads return None, writes and
deletes report False. A search must complete correctly with no cache at all.

Key layout (under the configured namespace):
    search:{scope}:{language}:{query}    search results
    places:{country}:{language}          full place listings
    translation:{source}:{target}:{text} single translations
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Callable, Optional, Protocol

import asyncpg

from placefinder import db
from placefinder.config import CacheConfig
from placefinder.errors import CacheUnavailable

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    name: str

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl_seconds: int = 0) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def delete_prefix(self, prefix: str) -> int: ...


# ── Backends ──────────────────────────────────────────────────────────

class MemoryCache:
    """Process-local cache. Values are stored JSON-encoded, like a remote store would."""

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    async def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            payload, expires = entry
            if expires is not None and self._clock() >= expires:
                del self._entries[key]
                return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl_seconds: int = 0) -> None:
        expires = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        payload = json.dumps(value, ensure_ascii=False)
        with self._lock:
            self._entries[key] = (payload, expires)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
        return len(doomed)

    def __len__(self) -> int:
        return len(self._entries)


class PostgresCache:
    """Cache rows in the search_cache table (see migrations/)."""

    name = "postgres"
    _errors = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, ValueError)

    async def get(self, key: str) -> Optional[Any]:
        try:
            return await db.cache_fetch(key)
        except self._errors as e:
            raise CacheUnavailable(f"GET {key}: {e}") from e

    async def set(self, key: str, value: Any, ttl_seconds: int = 0) -> None:
        try:
            await db.cache_store(key, value, ttl_seconds)
        except self._errors as e:
            raise CacheUnavailable(f"SET {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await db.cache_remove(key)
        except self._errors as e:
            raise CacheUnavailable(f"DELETE {key}: {e}") from e

    async def delete_prefix(self, prefix: str) -> int:
        try:
            return await db.cache_remove_prefix(prefix)
        except self._errors as e:
            raise CacheUnavailable(f"DELETE {prefix}*: {e}") from e


class NullCache:
    """Caching disabled: every read misses."""

    name = "none"

    async def get(self, key: str) -> Optional[Any]:
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 0) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None

    async def delete_prefix(self, prefix: str) -> int:
        return 0


def build_cache_backend(config: CacheConfig) -> CacheBackend:
    """Factory: return the configured cache backend."""
    if config.backend == "postgres":
        return PostgresCache()
    if config.backend == "none":
        return NullCache()
    if config.backend != "memory":
        logger.warning("Unknown CACHE_BACKEND '%s', using in-memory cache", config.backend)
    return MemoryCache()


# ── Gateway ───────────────────────────────────────────────────────────

class ResultCache:
    """Namespaced, failure-tolerant front for a CacheBackend."""

    def __init__(self, backend: CacheBackend, namespace: str = "placefinder:", ttl_seconds: int = 0):
        self.backend = backend
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds

    # ── Keys ──────────────────────────────────────────────────────────

    def search_key(self, scope: str, language: str, query: str) -> str:
        return f"{self.namespace}search:{scope}:{language}:{query}"

    def search_prefix(self, scope: str, language: str) -> str:
        return f"{self.namespace}search:{scope}:{language}:"

    def listing_key(self, country: str, language: str) -> str:
        return f"{self.namespace}places:{country}:{language}"

    def translation_key(self, source: str, target: str, text: str) -> str:
        return f"{self.namespace}translation:{source}:{target}:{text}"

    # ── Operations ────────────────────────────────────────────────────

    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self.backend.get(key)
        except CacheUnavailable as e:
            logger.warning("Cache read failed, treating as miss: %s", e)
            return None
        logger.debug("Cache %s: '%s'", "HIT" if value is not None else "MISS", key)
        return value

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            await self.backend.set(key, value, ttl)
        except CacheUnavailable as e:
            logger.warning("Cache write dropped: %s", e)
            return False
        return True

    async def delete(self, key: str) -> bool:
        try:
            await self.backend.delete(key)
        except CacheUnavailable as e:
            logger.warning("Cache delete failed: %s", e)
            return False
        return True

    async def delete_prefix(self, prefix: str) -> Optional[int]:
        """Number of entries removed, or None if the backend failed."""
        try:
            return await self.backend.delete_prefix(prefix)
        except CacheUnavailable as e:
            logger.warning("Cache sweep failed: %s", e)
            return None

    async def clear(self) -> int:
        """Remove everything under this namespace."""
        return await self.delete_prefix(self.namespace) or 0
