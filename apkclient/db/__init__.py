"""
Database module for apkclient.

This module owns the persisted state of an apk root:
- Layout tables (directories, files, device nodes)
- The initializer that materializes them
- The world, repositories and arch files

Invariants:
    - All state lives behind the FullFS capability
    - Formatting of world/repositories is relied on by the resolver
"""

from .initializer import DatabaseInitializer
from .layout import (
    DEFAULT_LAYOUT,
    DatabaseLayout,
    InitDevice,
    InitDirectory,
    InitFile,
)
from .state import DatabaseState

__all__ = [
    "DatabaseInitializer",
    "DatabaseState",
    "DatabaseLayout",
    "DEFAULT_LAYOUT",
    "InitDirectory",
    "InitFile",
    "InitDevice",
]
