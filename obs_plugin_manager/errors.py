"""Error taxonomy for the plugin manager.

Every failure raised by the core derives from :class:`PluginManagerError`.
Errors are created once, at the point where the underlying fault is first
observed (for example the HTTP transport), so callers only ever match on the
exception class and never re-inspect raw status codes or errno values.
"""

from __future__ import annotations

import copy
from typing import Any


class PluginManagerError(Exception):
    """Base exception for the plugin manager.

    Attributes:
        message: Human-readable error message
        details: Additional context (paths, status codes, backup location)
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def with_operation(self, label: str, **details: Any) -> "PluginManagerError":
        """Return a copy of this error prefixed with an operation label.

        The copy keeps the exception class, so the kind of failure is
        preserved while the message names the operation that failed.

        Args:
            label: Operation label, e.g. "Installation"
            **details: Extra details merged into the copy

        Returns:
            A new error of the same class
        """
        wrapped = copy.copy(self)
        wrapped.message = f"{label} failed: {self.message}"
        wrapped.args = (wrapped.message,)
        wrapped.details = {**self.details, **details}
        return wrapped


class ConfigurationError(PluginManagerError):
    """Raised when the configuration file or values are invalid."""
    pass


# Preconditions (checked before any mutation, no backup is created)


class PreconditionError(PluginManagerError):
    """Base class for failed safety checks."""
    pass


class HostRunningError(PreconditionError):
    """Raised when OBS Studio is running during a mutating operation."""

    def __init__(self, action: str = "modifying") -> None:
        super().__init__(
            f"OBS Studio is currently running. Please close it before {action} plugins."
        )


class InvalidHostPathError(PreconditionError):
    """Raised when a path is not a valid OBS Studio installation."""

    def __init__(self, path: str) -> None:
        super().__init__("Invalid OBS path", details={"path": path})
        self.path = path


class UnknownPluginError(PreconditionError):
    """Raised when a plugin id is not in the catalog."""

    def __init__(self, plugin_id: str) -> None:
        super().__init__(f"Plugin {plugin_id} not found in catalog")
        self.plugin_id = plugin_id


class OperationInProgressError(PreconditionError):
    """Raised when a mutating operation is already running."""

    def __init__(self, plugin_id: str) -> None:
        super().__init__(
            f"Another operation is in progress for plugin {plugin_id}",
            details={"plugin_id": plugin_id},
        )


# Upstream / network


class NetworkError(PluginManagerError):
    """Base class for upstream request failures."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if url:
            details["url"] = url
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details=details)
        self.url = url
        self.status_code = status_code


class NetworkTransientError(NetworkError):
    """Connection reset, timeout, DNS failure or upstream 5xx."""

    retryable = True


class RateLimitError(NetworkError):
    """Upstream API rate limit exhausted (HTTP 403/429). Never retried."""

    def __init__(self, url: str | None = None, status_code: int | None = 403) -> None:
        super().__init__(
            "GitHub API rate limit exceeded. Please wait a few minutes and try again.",
            url=url,
            status_code=status_code,
        )


class NotFoundError(NetworkError):
    """Upstream 404: no such release or repository."""

    def __init__(self, url: str | None = None) -> None:
        super().__init__(
            "Plugin repository not found or has no releases.",
            url=url,
            status_code=404,
        )


class UpstreamResponseError(NetworkError):
    """Non-transient upstream failure (other 4xx, unparsable body)."""
    pass


# Installation


class AssetResolutionError(PluginManagerError):
    """Release exists but has no installable archive asset."""

    def __init__(self, tag: str) -> None:
        super().__init__(
            f"No Windows ZIP asset found in release {tag}",
            details={"tag": tag},
        )
        self.tag = tag


class ArchiveError(PluginManagerError):
    """Downloaded archive is corrupt or unreadable."""
    pass


class FilesystemError(PluginManagerError):
    """Permission or I/O failure while staging, extracting or merging."""

    @classmethod
    def from_os_error(cls, error: OSError, action: str) -> "FilesystemError":
        """Build a FilesystemError from an OSError.

        Args:
            error: The original OS error
            action: What was being done, e.g. "merge plugin files"
        """
        path = error.filename if error.filename else None
        details = {"path": str(path)} if path else {}
        reason = error.strerror or str(error)
        return cls(f"Failed to {action}: {reason}", details=details)
