"""
Keyring manager for apkclient.

The keyring is the trusted-keys directory (etc/apk/keys) that signature
verification reads. Keys come from three kinds of source:

    local path     /home/me/alpine-devel@lists.alpinelinux.org-5e69ca50.rsa.pub
    file URL       file:///etc/apk/keys/wolfi-signing.rsa.pub
    remote URL     https://alpinelinux.org/keys/alpine-devel%40lists...rsa.pub

plus, optionally, the system keyring shipped by the host distribution
(/usr/share/apk/keys and its per-architecture subdirectory).

Invariants:
    - A key is stored under the (percent-decoded) basename of its source,
      always directly inside the keyring directory
    - Every source is resolved before any key is written; one bad source
      fails the whole call and no key from that call is trusted
    - Discovery only reports files named like "<identity>.rsa.pub"
    - An empty keyring is an error, never a valid state

How to change safely:
    - Never fall back to a partial keyring on error
    - Local paths are read from the host filesystem, not the managed root
"""

from __future__ import annotations

import fnmatch
import logging
import os
import posixpath
from typing import Iterable, List, Optional, Tuple
from urllib.parse import unquote, urlsplit

import httpx

from .arch import arch_to_apk, host_arch
from .db.layout import DEFAULT_LAYOUT, DatabaseLayout
from .errors import KeyringError, StorageError, ValidationError
from .fs import DirFS, FullFS
from .net import http_get

logger = logging.getLogger(__name__)

KEY_FILE_PATTERN = "*.rsa.pub"
KEY_PERMS = 0o644
KEYRING_DIR_PERMS = 0o755


def is_key_file(name: str) -> bool:
    """Whether name follows the key-file naming convention."""
    return fnmatch.fnmatchcase(name, KEY_FILE_PATTERN)


def _key_name(name: str, source: str) -> str:
    """Validate the file name a key from source is stored under."""
    if name in ("", ".", "..") or "/" in name or "\0" in name:
        raise KeyringError(f"cannot derive a key name from {source}", source=source)
    return name


class Keyring:
    """Populates and discovers trusted keys.

    Attributes:
        fs: Filesystem capability for the managed root
        client: HTTP capability for remote keys
        host_fs: Filesystem capability for local key paths
        layout: Keyring and system keyring paths
        arch: Architecture used for the system keyring subdirectory
        use_system_keyring: Also copy system keyring keys on init

    Example:
        >>> keyring = Keyring(fs, client)
        >>> await keyring.init_keyring(["/tmp/alpine-devel.rsa.pub"])
    """

    def __init__(
        self,
        fs: FullFS,
        client: httpx.AsyncClient,
        host_fs: Optional[FullFS] = None,
        layout: DatabaseLayout = DEFAULT_LAYOUT,
        arch: Optional[str] = None,
        use_system_keyring: bool = False,
    ) -> None:
        self.fs = fs
        self.client = client
        self.host_fs = host_fs if host_fs is not None else DirFS("/")
        self.layout = layout
        self.arch = arch_to_apk(arch) if arch else host_arch()
        self.use_system_keyring = use_system_keyring

    async def init_keyring(
        self,
        key_files: Iterable[str],
        extra_key_files: Iterable[str] = (),
        arch: Optional[str] = None,
    ) -> List[str]:
        """Copy keys from every source into the trusted-keys directory.

        Args:
            key_files: Key sources (local paths, file:// or http(s):// URLs)
            extra_key_files: Additional key sources
            arch: Override the architecture used for the system keyring

        Returns:
            Paths of the written keys, relative to the managed root

        Raises:
            KeyringError: If a source is unreadable or unsupported
            TransportError: If a remote key cannot be downloaded
            ValidationError: If the system keyring is requested but empty
            StorageError: If the keyring directory cannot be written
        """
        resolved: List[Tuple[str, bytes]] = []
        for source in [*key_files, *extra_key_files]:
            resolved.append(await self._resolve(source))

        if self.use_system_keyring:
            for path in self.load_system_keyring(arch=arch):
                try:
                    resolved.append((posixpath.basename(path), self.fs.read_file(path)))
                except OSError as e:
                    raise KeyringError(f"failed to read system key {path}: {e}", source=path) from e

        keyring_path = self.layout.keyring_path
        written: List[str] = []
        try:
            self.fs.mkdir_all(keyring_path, KEYRING_DIR_PERMS)
            for name, data in resolved:
                dest = posixpath.join(keyring_path, name)
                self.fs.write_file(dest, data, KEY_PERMS)
                written.append(dest)
        except OSError as e:
            raise StorageError(f"failed to write keyring: {e}", path=keyring_path) from e

        logger.info("Installed keyring", extra={"keys": len(written), "path": keyring_path})
        return written

    async def _resolve(self, source: str) -> Tuple[str, bytes]:
        """Return (key file name, key bytes) for a single source."""
        parts = urlsplit(source)
        scheme = parts.scheme.lower()

        if scheme in ("http", "https"):
            name = _key_name(posixpath.basename(unquote(parts.path)), source)
            response = await http_get(self.client, source)
            logger.debug("Fetched remote key", extra={"source": source, "key": name})
            return name, response.content

        if scheme == "file":
            path = unquote(parts.path)
        elif scheme == "":
            path = source
        else:
            raise KeyringError(f"unsupported key source scheme {scheme!r}: {source}", source=source)

        path = os.path.abspath(path)
        try:
            data = self.host_fs.read_file(path)
        except OSError as e:
            raise KeyringError(f"failed to read key file {path}: {e}", source=source) from e
        return _key_name(os.path.basename(path), source), data

    def load_system_keyring(self, *paths: str, arch: Optional[str] = None) -> List[str]:
        """List key files already present in system keyring directories.

        Each directory contributes its own key files plus those of its
        architecture-named subdirectory, when that exists.

        Args:
            paths: Candidate directories (default: the layout's system
                keyring path)
            arch: Override the architecture subdirectory

        Returns:
            Paths of the discovered key files

        Raises:
            KeyringError: If a candidate directory does not exist
            ValidationError: If no key file was found at all
        """
        locations = list(paths) or [self.layout.system_keyring_path]
        arch = arch_to_apk(arch) if arch else self.arch

        ring: List[str] = []
        for location in locations:
            if not self._is_dir(location):
                raise KeyringError(f"keyring directory {location} does not exist", source=location)
            ring.extend(self._key_files_in(location))

            arch_dir = posixpath.join(location, arch)
            if self._is_dir(arch_dir):
                ring.extend(self._key_files_in(arch_dir))

        if not ring:
            raise ValidationError(
                f"no usable keys found in {', '.join(locations)}", field_name="keyring"
            )
        logger.debug("Loaded system keyring", extra={"locations": locations, "keys": len(ring)})
        return ring

    def _is_dir(self, path: str) -> bool:
        try:
            return self.fs.stat(path).is_dir
        except OSError:
            return False

    def _key_files_in(self, directory: str) -> List[str]:
        try:
            entries = self.fs.read_dir(directory)
        except OSError as e:
            raise KeyringError(f"failed to list {directory}: {e}", source=directory) from e
        return [
            posixpath.join(directory, e.name)
            for e in entries
            if not e.is_dir and is_key_file(e.name)
        ]
