"""
Base protocol and types for the filesystem capability.

This module defines the FullFS protocol that all filesystem backends must
implement, along with the stat and directory-listing types they return.

Backends raise the standard OSError subclasses (FileNotFoundError,
FileExistsError, NotADirectoryError, IsADirectoryError, PermissionError)
exactly like the os module does, so callers handle one error vocabulary
regardless of the backing store.

Invariants:
    - Paths are relative to the backend root; a leading "/" is ignored
    - "." and ".." components are normalized before lookup
    - Permission bits passed to mkdir/write_file/mknod are applied exactly,
      without umask

How to change safely:
    - Protocol changes require updating MemFS and DirFS
    - Keep error types aligned with the os module
"""

from __future__ import annotations

import posixpath
import stat
from abc import abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, List, Protocol, runtime_checkable


def clean_path(path: str) -> str:
    """Normalize a path to its root-relative form.

    >>> clean_path("/etc/apk/../apk/world")
    'etc/apk/world'
    >>> clean_path("/")
    ''
    """
    cleaned = posixpath.normpath("/" + str(path)).lstrip("/")
    return "" if cleaned == "." else cleaned


@dataclass(frozen=True)
class FileInfo:
    """Result of a stat call.

    Attributes:
        name: Base name of the entry
        mode: Full st_mode value (type bits + permission bits)
        size: Size in bytes (0 for directories and devices)
        rdev: Device number for device nodes, 0 otherwise
    """

    name: str
    mode: int
    size: int = 0
    rdev: int = 0

    @property
    def perms(self) -> int:
        """Permission bits including setuid/setgid/sticky."""
        return stat.S_IMODE(self.mode)

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_regular(self) -> bool:
        return stat.S_ISREG(self.mode)

    @property
    def is_char_device(self) -> bool:
        return stat.S_ISCHR(self.mode)


@dataclass(frozen=True)
class DirEntry:
    """A single entry in a directory listing."""

    name: str
    is_dir: bool


@runtime_checkable
class FullFS(Protocol):
    """Protocol for hierarchical storage backends.

    Production deployments use DirFS rooted at the target directory;
    tests use MemFS.

    Example:
        >>> fs = MemFS()
        >>> fs.mkdir_all("etc/apk", 0o755)
        >>> fs.write_file("etc/apk/world", b"busybox\\n", 0o644)
        >>> fs.read_file("etc/apk/world")
        b'busybox\\n'
    """

    @abstractmethod
    def stat(self, path: str) -> FileInfo:
        """Return information about path.

        Raises:
            FileNotFoundError: If path does not exist
        """
        ...

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Whether path exists."""
        ...

    @abstractmethod
    def mkdir(self, path: str, perms: int) -> None:
        """Create a single directory.

        Raises:
            FileExistsError: If path already exists
            FileNotFoundError: If the parent does not exist
        """
        ...

    @abstractmethod
    def mkdir_all(self, path: str, perms: int) -> None:
        """Create a directory and any missing parents.

        Existing directories are left as they are.
        """
        ...

    @abstractmethod
    def chmod(self, path: str, perms: int) -> None:
        """Set the permission bits of path."""
        ...

    @abstractmethod
    def read_file(self, path: str) -> bytes:
        """Read the full contents of a regular file."""
        ...

    @abstractmethod
    def open(self, path: str) -> BinaryIO:
        """Open a regular file for binary reading.

        The caller owns the returned file object and must close it.
        """
        ...

    @abstractmethod
    def write_file(self, path: str, data: bytes, perms: int) -> None:
        """Write data to path, truncating any previous content.

        perms applies when the file is created; an existing file keeps
        its mode.
        """
        ...

    @abstractmethod
    def create(self, path: str, perms: int) -> BinaryIO:
        """Open path for binary writing, truncating any previous content.

        perms applies when the file is created. The caller owns the
        returned file object; the content is complete once it is closed.
        """
        ...

    @abstractmethod
    def read_dir(self, path: str) -> List[DirEntry]:
        """List the immediate entries of a directory, sorted by name."""
        ...

    @abstractmethod
    def mknod(self, path: str, perms: int, major: int, minor: int) -> None:
        """Create a character device node."""
        ...

    @abstractmethod
    def rename(self, src: str, dst: str) -> None:
        """Atomically move src to dst, replacing dst if it exists."""
        ...

    @abstractmethod
    def remove(self, path: str) -> None:
        """Remove a file or an empty directory."""
        ...
