"""Exception hierarchy for the plugin scanner.

Every exception carries a machine-readable ``error_code``, a ``severity``
indicator, and an arbitrary ``context`` dict for structured logging.  The
CLI layer maps them to warnings, per-item failures, or exit codes.
"""
from __future__ import annotations

from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Severity levels
# ---------------------------------------------------------------------------

class Severity(str, Enum):
    """Severity levels for scanner exceptions."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class PluginScanError(Exception):
    """Root exception for every scanner failure.

    Attributes:
        message:    Human-readable description.
        error_code: Machine-readable code (e.g. ``"SCAN_FETCH_ERROR"``).
        severity:   Impact severity.
        context:    Arbitrary key-value context for structured logging.
    """

    def __init__(
        self,
        message: str = "Plugin scanner error",
        error_code: str = "SCAN_ERROR",
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.context: dict[str, Any] = context or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}("
            f"error_code={self.error_code!r}, "
            f"severity={self.severity.value!r}, "
            f"message={self.message!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialise the exception for machine-readable output."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
        }


# ---------------------------------------------------------------------------
# Remote fetch exceptions
# ---------------------------------------------------------------------------

class FetchError(PluginScanError):
    """Raised when a remote document cannot be retrieved or parsed.

    Covers network errors, timeouts, non-200 responses, empty bodies and
    malformed JSON.
    """

    def __init__(
        self,
        message: str = "Fetch failed",
        url: str = "",
        status_code: int | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.pop("context", None) or {}
        context.setdefault("url", url)
        if status_code is not None:
            context.setdefault("status_code", status_code)
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "SCAN_FETCH_ERROR"),
            context=context,
            **kwargs,
        )
        self.url = url
        self.status_code = status_code


class ManifestFormatError(FetchError):
    """Raised when a fetched JSON document does not have the expected shape."""

    def __init__(self, message: str = "Unexpected document format", **kwargs: Any) -> None:
        super().__init__(message, error_code=kwargs.pop("error_code", "SCAN_MANIFEST_FORMAT"), **kwargs)


# ---------------------------------------------------------------------------
# Publishing exceptions
# ---------------------------------------------------------------------------

class PublishError(PluginScanError):
    """Raised when the updated allowlist cannot be written to the remote store."""

    def __init__(self, message: str = "Publish failed", status_code: int | None = None, **kwargs: Any) -> None:
        super().__init__(
            message,
            error_code=kwargs.pop("error_code", "SCAN_PUBLISH_ERROR"),
            severity=kwargs.pop("severity", Severity.HIGH),
            **kwargs,
        )
        self.status_code = status_code


class PublishConflictError(PublishError):
    """Raised when the remote revision changed between read and write."""

    def __init__(self, message: str = "Remote file was modified concurrently", **kwargs: Any) -> None:
        super().__init__(message, error_code=kwargs.pop("error_code", "SCAN_PUBLISH_CONFLICT"), **kwargs)


# ---------------------------------------------------------------------------
# Registry / configuration exceptions
# ---------------------------------------------------------------------------

class ComponentNotFoundError(PluginScanError):
    """Raised when a named plugin is not installed."""

    def __init__(self, identifier: str, **kwargs: Any) -> None:
        super().__init__(
            f"Plugin '{identifier}' is not installed",
            error_code=kwargs.pop("error_code", "SCAN_COMPONENT_NOT_FOUND"),
            severity=kwargs.pop("severity", Severity.LOW),
            **kwargs,
        )
        self.identifier = identifier


class ConfigurationError(PluginScanError):
    """Raised when the scanner encounters an invalid or missing configuration."""

    def __init__(self, message: str = "Configuration error", **kwargs: Any) -> None:
        super().__init__(message, error_code=kwargs.pop("error_code", "SCAN_CONFIG_ERROR"), **kwargs)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "Severity",
    "PluginScanError",
    "FetchError",
    "ManifestFormatError",
    "PublishError",
    "PublishConflictError",
    "ComponentNotFoundError",
    "ConfigurationError",
]
