"""Scanner configuration, read from the environment and overridden by CLI flags.

A single :class:`ScannerConfig` is built once per invocation (from the
environment, then overridden by CLI flags) and handed to every component
at construction time.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel, Field, ValidationError, field_validator

from pluginscan.shared.exceptions import ConfigurationError


DEFAULT_ALLOWLIST_URL = (
    "https://raw.githubusercontent.com/eugenewoz/pluginscan/main/allowed-plugins.json"
)
DEFAULT_CHECKSUM_BASE_URL = (
    "https://raw.githubusercontent.com/eugenewoz/pluginscan/main/plugin-checksums"
)
DEFAULT_REGISTRY_API_URL = "https://api.wordpress.org/plugins/info/1.0"
DEFAULT_GITHUB_API_URL = "https://api.github.com"

_ENV_PREFIX = "PLUGINSCAN_"


class ScannerConfig(BaseModel):
    """Configuration shared by the scan, whitelist and checksum commands.

    Attributes:
        plugins_dir: Plugin storage root (``WP_PLUGIN_DIR``).
        allowlist_url: URL of the custom JSON allowlist.
        checksum_base_url: Base URL of the ``<slug>-<version>.json`` manifests.
        registry_api_url: WordPress.org plugin info endpoint.
        github_*: Coordinates of the hosted allowlist file.
        timeout: Per-request timeout for the scan command, in seconds.
        checksum_timeout: Timeout for checksum manifest downloads.
        allowlist_timeout: Timeout for reading the allowlist before a write.
        max_concurrency: Upper bound on parallel registry lookups.
        active_plugins: Plugin identifiers reported as ``active``.
    """

    plugins_dir: Path = Path("wp-content/plugins")
    allowlist_url: str = DEFAULT_ALLOWLIST_URL
    checksum_base_url: str = DEFAULT_CHECKSUM_BASE_URL
    registry_api_url: str = DEFAULT_REGISTRY_API_URL

    github_api_url: str = DEFAULT_GITHUB_API_URL
    github_owner: str = "eugenewoz"
    github_repo: str = "pluginscan"
    github_branch: str = "main"
    github_file: str = "allowed-plugins.json"

    timeout: int = Field(default=5, gt=0)
    checksum_timeout: int = Field(default=10, gt=0)
    allowlist_timeout: int = Field(default=10, gt=0)
    max_concurrency: int = Field(default=8, ge=1, le=64)

    active_plugins: list[str] = Field(default_factory=list)

    log_level: str = "info"
    json_logs: bool = False

    model_config = {"frozen": True}

    @field_validator("checksum_base_url", "registry_api_url", "github_api_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        level = v.lower()
        if level not in {"debug", "info", "warning", "error", "critical"}:
            raise ValueError(f"Unknown log level '{v}'")
        return level

    # -- constructors -------------------------------------------------------

    @classmethod
    def build(cls, **values: Any) -> "ScannerConfig":
        """Validate *values* and wrap pydantic errors in :class:`ConfigurationError`."""
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid configuration: {exc.errors()[0].get('msg', exc)}",
                context={"fields": [".".join(str(p) for p in e["loc"]) for e in exc.errors()]},
            ) from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> "ScannerConfig":
        """Read ``PLUGINSCAN_*`` variables; keyword *overrides* win over the environment.

        ``None`` overrides are ignored so that unset CLI flags fall through.
        """
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.getenv(_ENV_PREFIX + name.upper())
            if raw is None:
                continue
            if name == "active_plugins":
                values[name] = [item.strip() for item in raw.split(",") if item.strip()]
            elif name == "json_logs":
                values[name] = raw.strip().lower() in {"1", "true", "yes", "on"}
            else:
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.build(**values)

    # -- derived values -----------------------------------------------------

    def raw_allowlist_url(self) -> str:
        """Raw-content URL of the hosted allowlist file."""
        return (
            f"https://raw.githubusercontent.com/{self.github_owner}/"
            f"{self.github_repo}/{self.github_branch}/{self.github_file}"
        )

    def checksum_url(self, slug: str, version: str) -> str:
        """Manifest URL for one plugin release; slug and version are percent-encoded."""
        return f"{self.checksum_base_url}/{quote(slug, safe='')}-{quote(version, safe='')}.json"


__all__ = ["ScannerConfig"]
