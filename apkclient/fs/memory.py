"""
In-memory filesystem implementation for testing.

This module provides a simple in-memory FullFS backend for:
- Unit tests
- Integration tests
- Dry runs that must not touch the host

Invariants:
    - All data is lost on process exit
    - Raises the same OSError subclasses as the os module
    - Thread-safe for concurrent access

How to change safely:
    - Keep interface compatible with FullFS protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import errno
import io
import os
import posixpath
import stat
import threading
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List

from .base import DirEntry, FileInfo, clean_path


@dataclass
class MemEntry:
    """A stored file, directory or device node."""

    mode: int
    data: bytes = b""
    rdev: int = 0
    children: Dict[str, "MemEntry"] = field(default_factory=dict)


def _error(cls: type, code: int, path: str) -> OSError:
    return cls(code, os.strerror(code), path)


class _MemWriter(io.BytesIO):
    """Write handle that stores its buffer into a MemEntry on close."""

    def __init__(self, entry: MemEntry, lock: threading.RLock) -> None:
        super().__init__()
        self._entry = entry
        self._lock = lock

    def close(self) -> None:
        if not self.closed:
            with self._lock:
                self._entry.data = self.getvalue()
        super().close()


class MemFS:
    """In-memory implementation of FullFS.

    Entries are kept in a tree of MemEntry nodes rooted at an empty
    directory. Device nodes are recorded with their mode and device number
    but have no behavior.

    Thread safety:
        All operations hold a single re-entrant lock.

    Example:
        >>> fs = MemFS()
        >>> fs.mkdir_all("var/cache/apk", 0o755)
        >>> fs.stat("var/cache").is_dir
        True
    """

    def __init__(self) -> None:
        self._root = MemEntry(mode=stat.S_IFDIR | 0o755)
        self._lock = threading.RLock()

    def _lookup(self, path: str) -> MemEntry:
        entry = self._root
        cleaned = clean_path(path)
        if not cleaned:
            return entry
        for part in cleaned.split("/"):
            if not stat.S_ISDIR(entry.mode):
                raise _error(NotADirectoryError, errno.ENOTDIR, path)
            if part not in entry.children:
                raise _error(FileNotFoundError, errno.ENOENT, path)
            entry = entry.children[part]
        return entry

    def _parent(self, path: str) -> tuple[MemEntry, str]:
        cleaned = clean_path(path)
        if not cleaned:
            raise _error(FileExistsError, errno.EEXIST, path)
        parent_path, name = posixpath.split(cleaned)
        parent = self._lookup(parent_path)
        if not stat.S_ISDIR(parent.mode):
            raise _error(NotADirectoryError, errno.ENOTDIR, path)
        return parent, name

    def stat(self, path: str) -> FileInfo:
        with self._lock:
            entry = self._lookup(path)
            return FileInfo(
                name=posixpath.basename(clean_path(path)),
                mode=entry.mode,
                size=len(entry.data),
                rdev=entry.rdev,
            )

    def exists(self, path: str) -> bool:
        with self._lock:
            try:
                self._lookup(path)
            except OSError:
                return False
            return True

    def mkdir(self, path: str, perms: int) -> None:
        with self._lock:
            parent, name = self._parent(path)
            if name in parent.children:
                raise _error(FileExistsError, errno.EEXIST, path)
            parent.children[name] = MemEntry(mode=stat.S_IFDIR | stat.S_IMODE(perms))

    def mkdir_all(self, path: str, perms: int) -> None:
        with self._lock:
            current = ""
            for part in clean_path(path).split("/"):
                if not part:
                    continue
                current = posixpath.join(current, part)
                try:
                    entry = self._lookup(current)
                except FileNotFoundError:
                    self.mkdir(current, perms)
                    continue
                if not stat.S_ISDIR(entry.mode):
                    raise _error(NotADirectoryError, errno.ENOTDIR, current)

    def chmod(self, path: str, perms: int) -> None:
        with self._lock:
            entry = self._lookup(path)
            entry.mode = stat.S_IFMT(entry.mode) | stat.S_IMODE(perms)

    def read_file(self, path: str) -> bytes:
        with self._lock:
            entry = self._lookup(path)
            if stat.S_ISDIR(entry.mode):
                raise _error(IsADirectoryError, errno.EISDIR, path)
            return entry.data

    def open(self, path: str) -> BinaryIO:
        return io.BytesIO(self.read_file(path))

    def write_file(self, path: str, data: bytes, perms: int) -> None:
        with self._lock:
            parent, name = self._parent(path)
            existing = parent.children.get(name)
            if existing is None:
                parent.children[name] = MemEntry(
                    mode=stat.S_IFREG | stat.S_IMODE(perms), data=bytes(data)
                )
                return
            if stat.S_ISDIR(existing.mode):
                raise _error(IsADirectoryError, errno.EISDIR, path)
            existing.data = bytes(data)

    def create(self, path: str, perms: int) -> BinaryIO:
        with self._lock:
            self.write_file(path, b"", perms)
            return _MemWriter(self._lookup(path), self._lock)

    def read_dir(self, path: str) -> List[DirEntry]:
        with self._lock:
            entry = self._lookup(path)
            if not stat.S_ISDIR(entry.mode):
                raise _error(NotADirectoryError, errno.ENOTDIR, path)
            return [
                DirEntry(name=name, is_dir=stat.S_ISDIR(child.mode))
                for name, child in sorted(entry.children.items())
            ]

    def mknod(self, path: str, perms: int, major: int, minor: int) -> None:
        with self._lock:
            parent, name = self._parent(path)
            if name in parent.children:
                raise _error(FileExistsError, errno.EEXIST, path)
            parent.children[name] = MemEntry(
                mode=stat.S_IFCHR | stat.S_IMODE(perms),
                rdev=os.makedev(major, minor),
            )

    def rename(self, src: str, dst: str) -> None:
        with self._lock:
            src_parent, src_name = self._parent(src)
            if src_name not in src_parent.children:
                raise _error(FileNotFoundError, errno.ENOENT, src)
            dst_parent, dst_name = self._parent(dst)
            target = dst_parent.children.get(dst_name)
            if target is not None and stat.S_ISDIR(target.mode):
                raise _error(IsADirectoryError, errno.EISDIR, dst)
            dst_parent.children[dst_name] = src_parent.children.pop(src_name)

    def remove(self, path: str) -> None:
        with self._lock:
            parent, name = self._parent(path)
            entry = parent.children.get(name)
            if entry is None:
                raise _error(FileNotFoundError, errno.ENOENT, path)
            if stat.S_ISDIR(entry.mode) and entry.children:
                raise _error(OSError, errno.ENOTEMPTY, path)
            del parent.children[name]

    # =========================================================================
    # Testing helpers
    # =========================================================================

    def walk_paths(self) -> List[str]:
        """Return every stored path, depth first (for testing)."""
        paths: List[str] = []

        def visit(prefix: str, entry: MemEntry) -> None:
            for name, child in sorted(entry.children.items()):
                child_path = posixpath.join(prefix, name) if prefix else name
                paths.append(child_path)
                visit(child_path, child)

        with self._lock:
            visit("", self._root)
        return paths
