"""
Filesystem capability for apkclient.

This module provides a pluggable filesystem interface supporting:
- DirFS: a host directory (production)
- MemFS: in-memory storage (testing)

The core never touches the host filesystem directly; the managed root,
the package cache and local key sources are all reached through a FullFS.

Invariants:
    - Paths are root-relative and normalized
    - Errors are the standard OSError subclasses

How to change safely:
    - New backends must implement FullFS protocol
    - Run the shared backend tests against every implementation
"""

from .base import DirEntry, FileInfo, FullFS, clean_path
from .dirfs import DirFS
from .memory import MemFS

__all__ = [
    # Protocol and types
    "FullFS",
    "FileInfo",
    "DirEntry",
    "clean_path",
    # Implementations
    "DirFS",
    "MemFS",
]
