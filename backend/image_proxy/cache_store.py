"""
Image Cache Store

Flat, file-based store for transformed images:
- One file per cache key, named exactly as the key
- Atomic writes (temp file + rename), so readers never see partial files
- Metadata (modification time) comes straight from the filesystem
- No index, no eviction: the directory only grows

Cache structure:
cache_dir/
├── fit_300x200_aHR0cHM6Ly9leGFtcGxlLmNvbS9hLmpwZw.webp
├── resize_640_aHR0cHM6Ly9leGFtcGxlLmNvbS9hLmpwZw.webp
└── ...
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol
from uuid import uuid4

from .config import OUTPUT_FORMAT, ImageProxySettings
from .errors import EntryNotFound, StorageError

logger = logging.getLogger(__name__)


def cache_key(operation: str, geometry: str, encoded_url: str, extension: str = OUTPUT_FORMAT) -> str:
    """
    Build the cache key for one (operation, geometry, source url) tuple.

    Example:
        cache_key("fit", "300x200", "aHR0cHM6Ly9leGFtcGxlLmNvbS9hLmpwZw")
        -> "fit_300x200_aHR0cHM6Ly9leGFtcGxlLmNvbS9hLmpwZw.webp"
    """
    return f"{operation}_{geometry}_{encoded_url}.{extension}"


@dataclass(frozen=True)
class CachedEntry:
    """A stored artifact: transformed bytes plus filesystem mtime."""
    key: str
    data: bytes
    modified_at: float


class CacheStore(Protocol):
    """Capability the request handlers use to reach the cache."""

    enabled: bool

    async def exists(self, key: str) -> bool: ...

    async def read(self, key: str) -> bytes: ...

    async def write_atomic(self, key: str, data: bytes) -> None: ...

    async def stat_mod_time(self, key: str) -> float: ...

    async def load(self, key: str) -> Optional[CachedEntry]: ...

    async def commit(self, key: str, data: bytes) -> Optional[CachedEntry]: ...


class DiskCacheStore:
    """Cache store backed by a flat directory on local disk."""

    enabled = True

    def __init__(self, cache_dir: str):
        self.cache_dir = Path(cache_dir)
        self._init_cache_dir()

    def _init_cache_dir(self) -> None:
        """Create cache directory if it doesn't exist."""
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create cache directory {self.cache_dir}: {e}")
        logger.info(f"[CacheStore] Cache directory: {self.cache_dir}")

    def _path(self, key: str) -> Path:
        # Keys are flat file names; anything that could escape the directory is refused
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StorageError(f"Invalid cache key: {key!r}")
        return self.cache_dir / key

    def _exists_sync(self, key: str) -> bool:
        path = self._path(key)
        try:
            return path.is_file()
        except OSError as e:
            raise StorageError(f"Cannot check {path.name}: {e}")

    def _read_sync(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise EntryNotFound(key)
        except OSError as e:
            raise StorageError(f"Failed to read {path.name}: {e}")

    def _stat_sync(self, key: str) -> float:
        path = self._path(key)
        try:
            return path.stat().st_mtime
        except FileNotFoundError:
            raise EntryNotFound(key)
        except OSError as e:
            raise StorageError(f"Failed to stat {path.name}: {e}")

    def _write_sync(self, key: str, data: bytes) -> None:
        path = self._path(key)
        tmp_path = path.with_name(f".{key}.tmp.{uuid4().hex}")
        try:
            with open(tmp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            try:
                tmp_path.unlink()
            except OSError:
                pass
            raise StorageError(f"Failed to write {path.name}: {e}")

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._exists_sync, key)

    async def read(self, key: str) -> bytes:
        return await asyncio.to_thread(self._read_sync, key)

    async def write_atomic(self, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._write_sync, key, data)
        logger.debug(f"[CacheStore] Stored: {key[:60]} ({len(data)} bytes)")

    async def stat_mod_time(self, key: str) -> float:
        return await asyncio.to_thread(self._stat_sync, key)

    async def load(self, key: str) -> Optional[CachedEntry]:
        """
        Return the stored entry for ``key``, or None on a miss.

        A file that disappears between the existence check and the read is a
        StorageError, not a miss.
        """
        if not await self.exists(key):
            return None

        try:
            modified_at = await self.stat_mod_time(key)
            data = await self.read(key)
        except EntryNotFound as e:
            raise StorageError(f"Cache entry vanished after existence check: {e.key}")

        logger.debug(f"[CacheStore] Cache hit: {key[:60]}")
        return CachedEntry(key=key, data=data, modified_at=modified_at)

    async def commit(self, key: str, data: bytes) -> Optional[CachedEntry]:
        """Write ``data`` under ``key`` and return the entry as stored."""
        await self.write_atomic(key, data)
        modified_at = await self.stat_mod_time(key)
        return CachedEntry(key=key, data=data, modified_at=modified_at)


class NullCacheStore:
    """Cache store used when caching is disabled: never hits, never writes."""

    enabled = False

    async def exists(self, key: str) -> bool:
        return False

    async def read(self, key: str) -> bytes:
        raise EntryNotFound(key)

    async def write_atomic(self, key: str, data: bytes) -> None:
        return None

    async def stat_mod_time(self, key: str) -> float:
        raise EntryNotFound(key)

    async def load(self, key: str) -> Optional[CachedEntry]:
        return None

    async def commit(self, key: str, data: bytes) -> Optional[CachedEntry]:
        return None


def build_cache_store(settings: ImageProxySettings) -> CacheStore:
    """Pick the store variant for the configured cache mode."""
    if settings.use_cache:
        return DiskCacheStore(settings.cache_dir)
    logger.info("[CacheStore] Caching disabled")
    return NullCacheStore()
