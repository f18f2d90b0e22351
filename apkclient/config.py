"""
Configuration for apkclient.

All configuration is done via environment variables (prefix APK_) or
explicit keyword arguments; there is no configuration file. Uses
pydantic-settings for environment variable loading and validation.

Invariants:
    - All settings have sensible defaults for local development
    - An unset cache_dir means pass-through mode: nothing is cached
    - arch is always stored in its apk spelling

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Paths that tests need to override belong here, not in module globals
"""

from __future__ import annotations

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .arch import arch_to_apk, host_arch

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_KEYRING_PATH = "/usr/share/apk/keys"

_LOG_FORMATS = ("json", "text")


class Settings(BaseSettings):
    """Client configuration loaded from environment."""

    # Managed root
    root: str = Field(default="/", description="Host directory the apk database lives under")
    arch: str = Field(default_factory=host_arch, description="Target architecture")
    ignore_mknod_errors: bool = Field(
        default=False,
        description="Skip device nodes that cannot be created (containers, rootless builds)",
    )

    # Package cache
    cache_dir: str | None = Field(
        default=None, description="Package cache directory; unset disables caching"
    )

    # Keyring
    system_keyring_path: str = Field(
        default=DEFAULT_SYSTEM_KEYRING_PATH,
        description="Directory of keys shipped by the host distribution",
    )
    use_system_keyring: bool = Field(
        default=False, description="Also trust the keys found in the system keyring"
    )

    # Network
    http_timeout: float = Field(default=30.0, gt=0, description="HTTP timeout seconds")
    max_concurrent_fetches: int = Field(default=4, ge=1, description="Parallel package fetches")

    # Logging
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")
    log_format: str = Field(default="json", description="json or text")

    model_config = {"env_prefix": "APK_"}

    @field_validator("arch")
    @classmethod
    def _normalize_arch(cls, value: str) -> str:
        return arch_to_apk(value)

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in _LOG_FORMATS:
            raise ValueError(f"log_format must be one of: {', '.join(_LOG_FORMATS)}")
        return value

    @property
    def cache_enabled(self) -> bool:
        """Whether fetched packages are persisted."""
        return bool(self.cache_dir)

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Client configuration loaded",
            extra={
                "root": self.root,
                "arch": self.arch,
                "cache_dir": self.cache_dir,
                "ignore_mknod_errors": self.ignore_mknod_errors,
                "system_keyring_path": self.system_keyring_path,
                "use_system_keyring": self.use_system_keyring,
                "max_concurrent_fetches": self.max_concurrent_fetches,
            },
        )
