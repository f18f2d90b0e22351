"""
Error types for apkclient.

This module defines all exception types raised by the core:
- ApkError: Base exception
- ConfigurationError: Invalid or unusable configuration
- KeyringError: A key source could not be read or is not supported
- ValidationError: Input or discovered state fails validation
- TransportError: Network failure or non-success HTTP status
- StorageError: Filesystem failure

Invariants:
    - All errors inherit from ApkError
    - Errors carry the path or URL involved
    - "Nothing configured" (ValidationError) is distinct from
      "could not reach the network" (TransportError)
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ApkError(Exception):
    """Base exception for all apkclient errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "APK_ERROR"
        self.details = details or {}


class ConfigurationError(ApkError):
    """Configuration is invalid or unusable.

    Raised when:
    - A required directory is missing
    - An option has an unsupported value
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code or "CONFIG_ERROR", details=details)


class KeyringError(ConfigurationError):
    """A key source or keyring directory is unusable.

    Raised when:
    - A local key file cannot be read
    - A remote key cannot be downloaded
    - A key source uses an unsupported scheme
    - A system keyring directory does not exist
    """

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message, code="KEYRING_ERROR", details={"source": source})
        self.source = source


class ValidationError(ApkError):
    """Validation failed.

    Raised when:
    - An empty repository list is written
    - No usable key files were discovered
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name},
        )
        self.field_name = field_name


class TransportError(ApkError):
    """A network request failed.

    Raised when:
    - The server is unreachable
    - The response status is not a success
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(
            message,
            code="TRANSPORT_ERROR",
            details={"url": url, "status_code": status_code},
        )
        self.url = url
        self.status_code = status_code


class StorageError(ApkError):
    """A filesystem operation failed."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, code="STORAGE_ERROR", details={"path": path})
        self.path = path
