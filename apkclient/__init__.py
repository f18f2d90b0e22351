"""
apkclient - acquisition and trust core of an apk-compatible package client.

This package implements the parts of an Alpine apk client that sit below
the dependency resolver:
- Database initialization (directory/file/device skeleton under a root)
- World and repositories configuration files
- Keyring acquisition (local paths, remote URLs, system keyrings)
- Package fetching with a transparent, ETag-revalidated local cache

Architecture:
    ┌──────────────┐     ┌───────────────────────────────────────────┐
    │ prepare_root │────▶│                   APK                     │
    └──────────────┘     └──────┬──────────────┬──────────────┬──────┘
                                │              │              │
                                ▼              ▼              ▼
                         ┌────────────┐  ┌──────────┐  ┌──────────────┐
                         │  Database  │  │ Keyring  │  │ PackageCache │
                         │ init/state │  │          │  │              │
                         └─────┬──────┘  └────┬─────┘  └──────┬───────┘
                               │              │               │
                               ▼              ▼               ▼
                        ┌─────────────────────────┐   ┌──────────────┐
                        │  FullFS (MemFS / DirFS) │   │ httpx client │
                        └─────────────────────────┘   └──────────────┘

Invariants:
    - Filesystem and HTTP access only go through injected capabilities
    - No state is held across calls beyond configuration
    - Cached package bytes and returned bytes are identical by construction

How to change safely:
    - New filesystem backends must implement the FullFS protocol
    - Keep the on-disk layout compatible with apk-tools
"""

from ._version import __version__
from .apk import APK
from .bootstrap import prepare_root, setup_logging
from .cache import PackageCache, RepositoryPackage
from .config import Settings
from .errors import (
    ApkError,
    ConfigurationError,
    KeyringError,
    StorageError,
    TransportError,
    ValidationError,
)

__all__ = [
    "__version__",
    "APK",
    "prepare_root",
    "setup_logging",
    "PackageCache",
    "RepositoryPackage",
    "Settings",
    "ApkError",
    "ConfigurationError",
    "KeyringError",
    "StorageError",
    "TransportError",
    "ValidationError",
]
