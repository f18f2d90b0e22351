"""
Database initializer for apkclient.

Creates the canonical apk directory/file/device skeleton under the
managed root, as described by a DatabaseLayout.

Invariants:
    - Directories and files end up with exactly their table mode
    - Existing files keep their content; only their mode is re-asserted
    - Device nodes are character devices with their table major:minor
    - The first failure aborts; partial state may remain

How to change safely:
    - Only device creation may be downgraded to a warning
      (ignore_mknod_errors); every other error must propagate
    - Test against MemFS and, where privileges allow, DirFS
"""

from __future__ import annotations

import logging

from ..errors import StorageError
from ..fs import FullFS
from .layout import DEFAULT_LAYOUT, DatabaseLayout

logger = logging.getLogger(__name__)


class DatabaseInitializer:
    """Builds the apk database skeleton.

    Attributes:
        fs: Filesystem capability for the managed root
        layout: Paths and init tables
        ignore_mknod_errors: Skip device nodes that cannot be created

    Example:
        >>> init = DatabaseInitializer(MemFS())
        >>> init.init_db()
    """

    def __init__(
        self,
        fs: FullFS,
        layout: DatabaseLayout = DEFAULT_LAYOUT,
        ignore_mknod_errors: bool = False,
    ) -> None:
        self.fs = fs
        self.layout = layout
        self.ignore_mknod_errors = ignore_mknod_errors

    def init_db(self) -> None:
        """Create every directory, file and device of the layout.

        Raises:
            StorageError: If any entry cannot be created (device errors
                excepted when ignore_mknod_errors is set)
        """
        self._create_directories()
        self._create_files()
        self._create_devices()
        logger.info(
            "Initialized apk database",
            extra={
                "directories": len(self.layout.directories),
                "files": len(self.layout.files),
                "devices": len(self.layout.devices),
            },
        )

    def _create_directories(self) -> None:
        for d in self.layout.directories:
            try:
                self.fs.mkdir_all(d.path, d.perms)
                self.fs.chmod(d.path, d.perms)
            except OSError as e:
                raise StorageError(f"Failed to create directory {d.path}: {e}", path=d.path) from e

    def _create_files(self) -> None:
        for f in self.layout.files:
            try:
                if not self.fs.exists(f.path):
                    self.fs.write_file(f.path, f.contents, f.perms)
                self.fs.chmod(f.path, f.perms)
            except OSError as e:
                raise StorageError(f"Failed to create file {f.path}: {e}", path=f.path) from e

    def _create_devices(self) -> None:
        for dev in self.layout.devices:
            try:
                if self.fs.exists(dev.path) and self.fs.stat(dev.path).is_char_device:
                    self.fs.chmod(dev.path, dev.perms)
                else:
                    self.fs.mknod(dev.path, dev.perms, dev.major, dev.minor)
            except OSError as e:
                if self.ignore_mknod_errors:
                    logger.warning(
                        f"Skipping device node {dev.path}: {e}",
                        extra={"path": dev.path, "major": dev.major, "minor": dev.minor},
                    )
                    continue
                raise StorageError(
                    f"Failed to create device {dev.path}: {e}", path=dev.path
                ) from e
