"""Plugin entities shared by the classifier, discovery and checksum engines.

The host registry owns :class:`InstalledComponent`; nothing in the engines
mutates it.  Everything else here is transient and rebuilt on every
invocation.
"""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict


def derive_slug(identifier: str) -> str:
    """Canonical slug for a plugin identifier.

    ``hello.php`` -> ``hello``; ``akismet/akismet.php`` -> ``akismet``.
    Pure function of the identifier, used everywhere a slug is needed.
    """
    path = PurePosixPath(identifier.replace("\\", "/"))
    if len(path.parts) <= 1:
        return path.stem
    return path.parts[0]


@dataclass(frozen=True, slots=True)
class InstalledComponent:
    """A plugin registered with the host application.

    Attributes:
        identifier: Registry key, ``dir/main-file.php`` or ``file.php``.
        name: Display name from the plugin header.
        version: Version string from the plugin header.
        author: Author string (may contain markup).
        active: Whether the host reports the plugin as active.
        location: Absolute path of the main plugin file.
    """

    identifier: str
    name: str
    version: str = ""
    author: str = ""
    active: bool = False
    location: Path | None = None

    @property
    def slug(self) -> str:
        return derive_slug(self.identifier)

    @property
    def root_dir(self) -> Path | None:
        """Directory holding the plugin's files.

        Single-file plugins live directly in the plugin storage root.
        """
        if self.location is None:
            return None
        return self.location.parent


class AllowEntry(BaseModel):
    """One allowlist record; at least one of the fields should be set."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    slug: str | None = None
    name: str | None = None
    file: str | None = None

    def matches(self, component: InstalledComponent) -> bool:
        """Slug, display name, or raw identifier equality."""
        return (
            (self.slug is not None and self.slug == component.slug)
            or (self.name is not None and self.name == component.name)
            or (self.file is not None and self.file == component.identifier)
        )

    def matches_slug_or_name(self, slug: str, name: str) -> bool:
        return (self.slug is not None and self.slug == slug) or (
            self.name is not None and self.name == name
        )

    def to_document(self) -> dict[str, str]:
        """Serialised form with a fixed key order: slug, name, file."""
        doc: dict[str, str] = {}
        for key in ("slug", "name", "file"):
            value = getattr(self, key)
            if value is not None:
                doc[key] = value
        return doc


def allowed_slugs(entries: Iterable[AllowEntry]) -> set[str]:
    return {e.slug for e in entries if e.slug}


@dataclass(frozen=True, slots=True)
class HiddenComponent:
    """A plugin-like directory on disk that the host registry does not know."""

    slug: str
    name: str
    path: Path


class DiscrepancyReason(str, enum.Enum):
    """Why a manifest entry failed verification."""

    MISSING = "Missing"
    MISMATCH = "Mismatch"


@dataclass(frozen=True, slots=True)
class ChecksumDiscrepancy:
    """A single file that did not match the checksum manifest."""

    file: str
    reason: DiscrepancyReason

    def to_dict(self) -> dict[str, Any]:
        return {"file": self.file, "reason": self.reason.value}


class ComponentStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    HIDDEN = "hidden"


class ComponentType(str, enum.Enum):
    REGISTERED = "registered"
    HIDDEN = "hidden"


REPORT_FIELDS = ("name", "slug", "version", "author", "status", "path", "type")


@dataclass(frozen=True, slots=True)
class ReportRecord:
    """One row of the scan report."""

    name: str
    slug: str
    version: str
    author: str
    status: ComponentStatus
    path: str
    type: ComponentType

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["type"] = self.type.value
        return data


__all__ = [
    "derive_slug",
    "InstalledComponent",
    "AllowEntry",
    "allowed_slugs",
    "HiddenComponent",
    "DiscrepancyReason",
    "ChecksumDiscrepancy",
    "ComponentStatus",
    "ComponentType",
    "REPORT_FIELDS",
    "ReportRecord",
]
