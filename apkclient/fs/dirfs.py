"""
Host filesystem implementation of FullFS.

DirFS maps every root-relative path onto a directory of the host
filesystem. It is the production backend for both the managed root and
the package cache.

Symbolic links found inside the root are resolved the way they would be
after a chroot into it: an absolute target starts again at the root, and
".." never climbs above it. A root can therefore hold an unpacked system
(with links such as /etc/mtab -> /proc/mounts) without any operation
reaching host files outside the root.

Invariants:
    - Paths and symlink targets never escape the root directory
    - Operations that act on a link itself (stat, exists, rename, remove,
      mkdir, mknod) do not follow a link in the final component
    - Permission bits are applied with chmod after creation, so the
      process umask does not leak into the result
    - rename() is atomic (os.replace) within one filesystem

How to change safely:
    - Keep behavior identical to MemFS for every operation the tests cover
    - Every host path must come from _full(); never join onto root directly
    - mknod requires CAP_MKNOD; callers decide whether failures are fatal
"""

from __future__ import annotations

import errno
import os
import stat
from pathlib import Path
from typing import BinaryIO, List

from .base import DirEntry, FileInfo, clean_path

# Same limit as Linux (MAXSYMLINKS)
MAX_SYMLINKS = 40


class DirFS:
    """FullFS backed by a host directory.

    Attributes:
        root: Absolute host directory all paths are relative to

    Example:
        >>> fs = DirFS("/tmp/rootfs")
        >>> fs.mkdir_all("etc/apk", 0o755)
    """

    def __init__(self, root: str | os.PathLike[str] = "/") -> None:
        self.root = Path(root).resolve()

    def __repr__(self) -> str:
        return f"DirFS({str(self.root)!r})"

    def _full(self, path: str, follow: bool = True) -> str:
        """Host path of path, with symlinks resolved relative to the root.

        Args:
            path: Root-relative path
            follow: Also resolve a symlink in the final component

        Raises:
            OSError: ELOOP if resolution follows too many links
        """
        pending = [p for p in clean_path(path).split("/") if p]
        resolved: List[str] = []
        links = 0
        while pending:
            part = pending.pop(0)
            if part == ".":
                continue
            if part == "..":
                if resolved:
                    resolved.pop()
                continue

            candidate = os.path.join(self.root, *resolved, part)
            if (pending or follow) and os.path.islink(candidate):
                links += 1
                if links > MAX_SYMLINKS:
                    raise OSError(errno.ELOOP, os.strerror(errno.ELOOP), path)
                target = os.readlink(candidate)
                if target.startswith("/"):
                    resolved = []
                pending = [p for p in target.split("/") if p] + pending
                continue
            resolved.append(part)
        return os.path.join(self.root, *resolved)

    def stat(self, path: str) -> FileInfo:
        full = self._full(path, follow=False)
        st = os.lstat(full)
        size = st.st_size if stat.S_ISREG(st.st_mode) else 0
        return FileInfo(
            name=os.path.basename(full),
            mode=st.st_mode,
            size=size,
            rdev=st.st_rdev,
        )

    def exists(self, path: str) -> bool:
        return os.path.lexists(self._full(path, follow=False))

    def mkdir(self, path: str, perms: int) -> None:
        full = self._full(path, follow=False)
        os.mkdir(full, perms)
        os.chmod(full, perms)

    def mkdir_all(self, path: str, perms: int) -> None:
        os.makedirs(self.root, exist_ok=True)
        current = ""
        for part in clean_path(path).split("/"):
            if not part:
                continue
            current = f"{current}/{part}"
            full = self._full(current)
            if os.path.isdir(full):
                continue
            os.mkdir(full, perms)
            os.chmod(full, perms)

    def chmod(self, path: str, perms: int) -> None:
        os.chmod(self._full(path), perms)

    def read_file(self, path: str) -> bytes:
        with open(self._full(path), "rb") as f:
            return f.read()

    def open(self, path: str) -> BinaryIO:
        return open(self._full(path), "rb")

    def create(self, path: str, perms: int) -> BinaryIO:
        full = self._full(path)
        created = not os.path.lexists(full)
        f = open(full, "wb")
        if created:
            os.chmod(full, perms)
        return f

    def write_file(self, path: str, data: bytes, perms: int) -> None:
        with self.create(path, perms) as f:
            f.write(data)

    def read_dir(self, path: str) -> List[DirEntry]:
        with os.scandir(self._full(path)) as it:
            entries = [DirEntry(name=e.name, is_dir=e.is_dir(follow_symlinks=False)) for e in it]
        return sorted(entries, key=lambda e: e.name)

    def mknod(self, path: str, perms: int, major: int, minor: int) -> None:
        full = self._full(path, follow=False)
        os.mknod(full, stat.S_IFCHR | perms, os.makedev(major, minor))
        os.chmod(full, perms)

    def rename(self, src: str, dst: str) -> None:
        os.replace(self._full(src, follow=False), self._full(dst, follow=False))

    def remove(self, path: str) -> None:
        full = self._full(path, follow=False)
        if os.path.isdir(full) and not os.path.islink(full):
            os.rmdir(full)
        else:
            os.remove(full)
