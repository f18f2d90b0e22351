"""
World, repositories and arch files.

These are line-oriented text files under etc/apk that the resolver reads
back on every run, so their formatting is part of the contract:

    world:         sorted package names, one per line, trailing newline
    repositories:  repository URIs in caller order, trailing newline
    arch:          target architecture, trailing newline

Invariants:
    - Every write replaces the whole file
    - The world writer sorts but does not de-duplicate
    - An empty repository list is rejected before anything is written
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from ..errors import StorageError, ValidationError
from ..fs import FullFS
from .layout import DEFAULT_LAYOUT, DatabaseLayout

logger = logging.getLogger(__name__)

FILE_PERMS = 0o644


def _join_lines(lines: Iterable[str]) -> bytes:
    return ("\n".join(lines) + "\n").encode("utf-8")


def _split_lines(data: bytes) -> List[str]:
    return [line.strip() for line in data.decode("utf-8").splitlines() if line.strip()]


class DatabaseState:
    """Reads and writes the etc/apk configuration files.

    Attributes:
        fs: Filesystem capability for the managed root
        layout: Paths of the files
    """

    def __init__(self, fs: FullFS, layout: DatabaseLayout = DEFAULT_LAYOUT) -> None:
        self.fs = fs
        self.layout = layout

    def _write(self, path: str, data: bytes) -> None:
        try:
            self.fs.write_file(path, data, FILE_PERMS)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}", path=path) from e

    def _read(self, path: str) -> bytes:
        try:
            return self.fs.read_file(path)
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", path=path) from e

    def set_world(self, packages: Iterable[str]) -> None:
        """Replace the world file with the given package names, sorted.

        Args:
            packages: Explicitly requested package names
        """
        names = sorted(packages)
        self._write(self.layout.world_path, _join_lines(names))
        logger.debug("Wrote world", extra={"packages": len(names)})

    def get_world(self) -> List[str]:
        return _split_lines(self._read(self.layout.world_path))

    def set_repositories(self, repositories: Iterable[str]) -> None:
        """Replace the repositories file, preserving order.

        Args:
            repositories: Repository URIs

        Raises:
            ValidationError: If repositories is empty
        """
        repos = list(repositories)
        if not repos:
            raise ValidationError("must provide at least one repository", field_name="repositories")
        self._write(self.layout.repositories_path, _join_lines(repos))
        logger.debug("Wrote repositories", extra={"repositories": repos})

    def get_repositories(self) -> List[str]:
        return _split_lines(self._read(self.layout.repositories_path))

    def set_arch(self, arch: str) -> None:
        self._write(self.layout.arch_path, _join_lines([arch]))

    def get_arch(self) -> str:
        lines = _split_lines(self._read(self.layout.arch_path))
        if not lines:
            raise ValidationError(f"{self.layout.arch_path} is empty", field_name="arch")
        return lines[0]
