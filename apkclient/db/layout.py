"""
On-disk layout of an apk database.

The tables below describe the skeleton that apk-tools expects under a
root before anything is installed: the directories, the bookkeeping
files under lib/apk/db and etc/apk, and the handful of character devices
package scripts rely on.

Invariants:
    - Every path is relative to the managed root
    - Modes are applied exactly; /tmp carries the sticky bit
    - Device entries are always character devices

How to change safely:
    - apk-tools reads these paths directly; renaming one breaks
      compatibility with existing roots
    - Tests override paths by building a DatabaseLayout, never by
      patching module globals
"""

from __future__ import annotations

import io
import tarfile
from dataclasses import dataclass
from typing import Tuple

from ..config import DEFAULT_SYSTEM_KEYRING_PATH


@dataclass(frozen=True)
class InitDirectory:
    path: str
    perms: int


@dataclass(frozen=True)
class InitFile:
    path: str
    perms: int
    contents: bytes = b""


@dataclass(frozen=True)
class InitDevice:
    """A character device node (major:minor) to create."""

    path: str
    major: int
    minor: int
    perms: int


def _empty_tar() -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=tarfile.USTAR_FORMAT):
        pass
    return buf.getvalue()


INIT_DIRECTORIES: Tuple[InitDirectory, ...] = (
    InitDirectory("tmp", 0o1777),
    InitDirectory("dev", 0o755),
    InitDirectory("etc", 0o755),
    InitDirectory("lib", 0o755),
    InitDirectory("proc", 0o555),
    InitDirectory("var", 0o755),
    InitDirectory("etc/apk", 0o755),
    InitDirectory("etc/apk/keys", 0o755),
    InitDirectory("lib/apk", 0o755),
    InitDirectory("lib/apk/db", 0o755),
    InitDirectory("var/cache", 0o755),
    InitDirectory("var/cache/apk", 0o755),
    InitDirectory("var/cache/misc", 0o755),
)

INIT_FILES: Tuple[InitFile, ...] = (
    InitFile("etc/apk/world", 0o644, b"\n"),
    InitFile("etc/apk/repositories", 0o644, b"\n"),
    InitFile("lib/apk/db/lock", 0o600),
    InitFile("lib/apk/db/triggers", 0o644),
    InitFile("lib/apk/db/installed", 0o644),
    # scripts.tar must be a valid (empty) archive, not an empty file
    InitFile("lib/apk/db/scripts.tar", 0o644, _empty_tar()),
)

INIT_DEVICES: Tuple[InitDevice, ...] = (
    InitDevice("dev/zero", 1, 5, 0o666),
    InitDevice("dev/urandom", 1, 9, 0o666),
    InitDevice("dev/null", 1, 3, 0o666),
    InitDevice("dev/random", 1, 8, 0o666),
    InitDevice("dev/console", 5, 1, 0o620),
)


@dataclass(frozen=True)
class DatabaseLayout:
    """Paths and init tables of one apk database.

    Attributes:
        directories: Directories created by init_db, parents first
        files: Files created by init_db with their initial contents
        devices: Character devices created by init_db
        world_path: Explicitly requested packages
        repositories_path: Configured repository URIs
        arch_path: Target architecture
        keyring_path: Trusted keys directory
        system_keyring_path: Keys shipped by the host distribution
    """

    directories: Tuple[InitDirectory, ...] = INIT_DIRECTORIES
    files: Tuple[InitFile, ...] = INIT_FILES
    devices: Tuple[InitDevice, ...] = INIT_DEVICES
    world_path: str = "etc/apk/world"
    repositories_path: str = "etc/apk/repositories"
    arch_path: str = "etc/apk/arch"
    keyring_path: str = "etc/apk/keys"
    system_keyring_path: str = DEFAULT_SYSTEM_KEYRING_PATH


DEFAULT_LAYOUT = DatabaseLayout()
