"""
Package fetching with a transparent local cache.

The PackageCache maps a package (repository URI, architecture, file name)
to a readable byte stream. With a cache configured, every archive served
is first persisted under

    <cache root>/<quote_plus(repository URI)>/<arch>/<name>-<version>.apk

together with an optional "<same path>.etag" sidecar holding the ETag the
server sent for exactly those bytes.

Fetch algorithm (cache enabled):
    1. No cached file            -> GET, store, serve the stored file
    2. Cached file, no sidecar   -> GET, store, serve the stored file
                                    (a network failure is fatal)
    3. Cached file + sidecar     -> GET with If-None-Match
         304 or same ETag        -> serve the cached file untouched
         anything else 2xx       -> store, serve the stored file

Invariants:
    - The returned stream holds exactly the bytes resident in the cache
      (cache enabled) or exactly the bytes received (cache disabled)
    - A sidecar only exists next to the primary file it was written with
    - Writes are atomic (temp file + rename); archives are streamed to the
      temp file, never held in memory whole
    - Fetches of the same cache key are serialized
    - Cancellation leaves the previous cache entry untouched

How to change safely:
    - Never serve a cached file whose freshness could not be revalidated
      by ETag; there is deliberately no stale fallback
    - Keep the cache path format: existing caches are shared with apk-tools
      style layouts
"""

from __future__ import annotations

import asyncio
import contextlib
import io
import logging
import os
import posixpath
import uuid
import weakref
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, Optional
from urllib.parse import quote_plus, unquote, urlsplit

import httpx

from .errors import StorageError
from .fs import DirFS, FullFS
from .net import http_get, http_stream, is_remote

logger = logging.getLogger(__name__)

ETAG_SUFFIX = ".etag"
CACHE_DIR_PERMS = 0o755
CACHE_FILE_PERMS = 0o644


def _tmp_path(path: str) -> str:
    return f"{path}.tmp-{uuid.uuid4().hex}"


@dataclass(frozen=True)
class RepositoryPackage:
    """A package resolved to the repository that serves it.

    Attributes:
        name: Package name
        version: Package version (e.g. "3.2.0-r23")
        arch: Package architecture
        repository: Repository URI without the architecture component
            (e.g. "https://dl-cdn.alpinelinux.org/alpine/v3.16/main")
    """

    name: str
    version: str
    arch: str
    repository: str

    @property
    def filename(self) -> str:
        return f"{self.name}-{self.version}.apk"

    @property
    def url(self) -> str:
        """Download location of the archive."""
        return f"{self.repository.rstrip('/')}/{self.arch}/{self.filename}"

    def __str__(self) -> str:
        return f"{self.name}-{self.version} ({self.arch})"


class PackageCache:
    """Fetches package archives, caching them when a cache FS is set.

    Attributes:
        client: HTTP capability
        fs: Filesystem capability rooted at the cache directory, or None
            for pass-through mode
        host_fs: Filesystem capability for local repositories

    Thread safety:
        Uses one asyncio lock per cache key, dropped once no fetch of
        that key holds or awaits it. Safe to call from multiple
        coroutines of the same event loop.

    Example:
        >>> cache = PackageCache(client, DirFS("/var/cache/apk"))
        >>> with await cache.fetch_package(pkg) as f:
        ...     data = f.read()
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        fs: Optional[FullFS] = None,
        host_fs: Optional[FullFS] = None,
    ) -> None:
        self.client = client
        self.fs = fs
        self.host_fs = host_fs if host_fs is not None else DirFS("/")
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._network_fetches = 0
        self._cache_hits = 0
        self._cache_writes = 0

    @property
    def enabled(self) -> bool:
        return self.fs is not None

    @staticmethod
    def cache_path(pkg: RepositoryPackage) -> str:
        """Cache-relative path of a package archive."""
        repo = quote_plus(pkg.repository.rstrip("/"), safe="")
        return posixpath.join(repo, pkg.arch, pkg.filename)

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def fetch_package(self, pkg: RepositoryPackage) -> BinaryIO:
        """Return a readable stream over the package archive.

        Args:
            pkg: Package to fetch

        Returns:
            Binary file object; the caller must close it

        Raises:
            TransportError: On network failure or non-success status
            StorageError: If the cache or a local repository cannot be read
                or written
            asyncio.CancelledError: If the calling task is cancelled
        """
        if not is_remote(pkg.repository):
            return self._open_local(pkg)

        if self.fs is None:
            response = await http_get(self.client, pkg.url)
            self._network_fetches += 1
            return io.BytesIO(response.content)

        path = self.cache_path(pkg)
        async with self._lock_for(path):
            return await self._fetch_cached(pkg.url, path)

    async def _fetch_cached(self, url: str, path: str) -> BinaryIO:
        etag_path = path + ETAG_SUFFIX
        cached = self._exists(path)
        etag = self._read_etag(etag_path) if cached else None
        headers = {"If-None-Match": etag} if etag is not None else None

        async with http_stream(
            self.client, url, headers=headers, allow_not_modified=etag is not None
        ) as response:
            self._network_fetches += 1
            if etag is not None:
                unchanged = response.status_code == httpx.codes.NOT_MODIFIED
                if unchanged or response.headers.get("ETag") == etag:
                    self._cache_hits += 1
                    logger.debug("Package cache revalidated", extra={"url": url, "etag": etag})
                    return self._open(path)

            size = await self._store(path, response)

        logger.info(
            "Cached package",
            extra={"url": url, "cache_path": path, "bytes": size, "replaced": cached},
        )
        return self._open(path)

    def _exists(self, path: str) -> bool:
        try:
            return self.fs.stat(path).is_regular
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to stat cache entry {path}: {e}", path=path) from e

    def _read_etag(self, etag_path: str) -> Optional[str]:
        try:
            etag = self.fs.read_file(etag_path).decode("utf-8").strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read {etag_path}: {e}", path=etag_path) from e
        return etag or None

    async def _store(self, path: str, response: httpx.Response) -> int:
        """Stream the response body into the cache entry.

        The body goes to a temporary file that replaces the primary file
        only once complete; the old sidecar is removed just before that.

        Returns:
            Number of bytes stored
        """
        etag = response.headers.get("ETag")
        etag_path = path + ETAG_SUFFIX
        tmp = _tmp_path(path)
        size = 0
        try:
            self.fs.mkdir_all(posixpath.dirname(path), CACHE_DIR_PERMS)
            try:
                with self.fs.create(tmp, CACHE_FILE_PERMS) as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
                        size += len(chunk)
                if self.fs.exists(etag_path):
                    self.fs.remove(etag_path)
                self.fs.rename(tmp, path)
            except BaseException:
                with contextlib.suppress(OSError):
                    self.fs.remove(tmp)
                raise
            if etag:
                self._write_atomic(etag_path, etag.encode("utf-8"))
        except OSError as e:
            raise StorageError(f"Failed to write cache entry {path}: {e}", path=path) from e
        self._cache_writes += 1
        return size

    def _write_atomic(self, path: str, data: bytes) -> None:
        tmp = _tmp_path(path)
        try:
            self.fs.write_file(tmp, data, CACHE_FILE_PERMS)
            self.fs.rename(tmp, path)
        except OSError:
            with contextlib.suppress(OSError):
                self.fs.remove(tmp)
            raise

    def _open(self, path: str) -> BinaryIO:
        try:
            return self.fs.open(path)
        except OSError as e:
            raise StorageError(f"Failed to open cache entry {path}: {e}", path=path) from e

    def _open_local(self, pkg: RepositoryPackage) -> BinaryIO:
        """Open a package from a repository on the local filesystem."""
        parts = urlsplit(pkg.repository)
        base = unquote(parts.path) if parts.scheme.lower() == "file" else pkg.repository
        path = os.path.join(os.path.abspath(base), pkg.arch, pkg.filename)
        try:
            return self.host_fs.open(path)
        except OSError as e:
            raise StorageError(f"Failed to open local package {path}: {e}", path=path) from e

    @property
    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "enabled": self.enabled,
            "network_fetches": self._network_fetches,
            "cache_hits": self._cache_hits,
            "cache_writes": self._cache_writes,
        }
