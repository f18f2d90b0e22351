"""
APK facade.

Wires the filesystem and HTTP capabilities, the settings and the
database layout into the database, keyring and cache components, and
exposes their operations as one object.

Invariants:
    - Capabilities are fixed at construction (set_client excepted)
    - A client created here is closed by close(); an injected one is not
    - The cache is enabled exactly when a cache FS or cache_dir is given

How to change safely:
    - Keep operations thin; behavior belongs in the components
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Iterable, List, Optional

import httpx

from .cache import PackageCache, RepositoryPackage
from .config import Settings
from .db import DatabaseInitializer, DatabaseLayout, DatabaseState
from .fs import DirFS, FullFS
from .keyring import Keyring
from .net import create_client

logger = logging.getLogger(__name__)


class APK:
    """An apk database under a managed root.

    Attributes:
        settings: Client settings
        fs: Filesystem capability for the managed root
        host_fs: Filesystem capability for local key files and repositories
        layout: Paths and init tables
        arch: Target architecture
        keyring: Keyring manager
        cache: Package cache

    Example:
        >>> async with APK(Settings(cache_dir="/var/cache/apk"), fs=MemFS()) as apk:
        ...     apk.init_db()
        ...     await apk.init_keyring(["https://alpinelinux.org/keys/..."])
        ...     apk.set_repositories(["https://dl-cdn.alpinelinux.org/alpine/v3.20/main"])
        ...     apk.set_world(["busybox"])
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        fs: Optional[FullFS] = None,
        client: Optional[httpx.AsyncClient] = None,
        host_fs: Optional[FullFS] = None,
        cache_fs: Optional[FullFS] = None,
        layout: Optional[DatabaseLayout] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.fs = fs if fs is not None else DirFS(self.settings.root)
        self.host_fs = host_fs if host_fs is not None else DirFS("/")
        self.layout = layout or DatabaseLayout(
            system_keyring_path=self.settings.system_keyring_path
        )
        self.arch = self.settings.arch

        self._owns_client = client is None
        self._client = client if client is not None else create_client(self.settings)

        if cache_fs is None and self.settings.cache_enabled:
            cache_fs = DirFS(self.settings.cache_dir)

        self._initializer = DatabaseInitializer(
            self.fs, self.layout, ignore_mknod_errors=self.settings.ignore_mknod_errors
        )
        self._state = DatabaseState(self.fs, self.layout)
        self.keyring = Keyring(
            self.fs,
            self._client,
            host_fs=self.host_fs,
            layout=self.layout,
            arch=self.arch,
            use_system_keyring=self.settings.use_system_keyring,
        )
        self.cache = PackageCache(self._client, cache_fs, host_fs=self.host_fs)

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    def set_client(self, client: httpx.AsyncClient) -> None:
        """Replace the HTTP capability (the previous one is not closed)."""
        self._client = client
        self._owns_client = False
        self.keyring.client = client
        self.cache.client = client

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> APK:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # =========================================================================
    # Database
    # =========================================================================

    def init_db(self) -> None:
        """Create the database skeleton and record the target architecture."""
        self._initializer.init_db()
        self._state.set_arch(self.arch)

    def set_world(self, packages: Iterable[str]) -> None:
        self._state.set_world(packages)

    def get_world(self) -> List[str]:
        return self._state.get_world()

    def set_repositories(self, repositories: Iterable[str]) -> None:
        self._state.set_repositories(repositories)

    def get_repositories(self) -> List[str]:
        return self._state.get_repositories()

    def set_arch(self, arch: str) -> None:
        self._state.set_arch(arch)

    def get_arch(self) -> str:
        return self._state.get_arch()

    # =========================================================================
    # Keyring
    # =========================================================================

    async def init_keyring(
        self,
        key_files: Iterable[str],
        extra_key_files: Iterable[str] = (),
        arch: Optional[str] = None,
    ) -> List[str]:
        return await self.keyring.init_keyring(key_files, extra_key_files, arch=arch)

    def load_system_keyring(self, *paths: str, arch: Optional[str] = None) -> List[str]:
        return self.keyring.load_system_keyring(*paths, arch=arch)

    # =========================================================================
    # Packages
    # =========================================================================

    async def fetch_package(self, pkg: RepositoryPackage) -> BinaryIO:
        return await self.cache.fetch_package(pkg)
