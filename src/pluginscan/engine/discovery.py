"""
Filesystem Discovery -- find plugin-like directories in the plugin storage
root that the host registry does not list and the allowlist does not name.
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable

import structlog

from pluginscan.domain.entities import (
    AllowEntry,
    HiddenComponent,
    InstalledComponent,
    allowed_slugs,
)
from pluginscan.infrastructure.registry import read_plugin_headers


# ---------------------------------------------------------------------------
# Plugin-likelihood heuristics
# ---------------------------------------------------------------------------

PLUGIN_SOURCE_EXTENSIONS = frozenset({".php"})

PLUGIN_SUBDIRECTORIES = frozenset({
    "includes", "admin", "assets", "templates", "vendor", "src", "inc",
})

PLUGIN_MARKER_FILES = frozenset({
    "index.php", "readme.txt", "README.md", "plugin.php", "uninstall.php",
})

# Tried in order when inferring a display name; "{slug}" is the directory name
ENTRY_FILE_CANDIDATES = ("{slug}.php", "plugin.php", "index.php")

_SKIPPED_ENTRIES = {".", ".."}


def humanize_slug(slug: str) -> str:
    """``my-cool_plugin`` -> ``My Cool Plugin``."""
    spaced = slug.replace("-", " ").replace("_", " ")
    return " ".join(word[:1].upper() + word[1:] for word in spaced.split(" "))


class FilesystemDiscovery:
    """Scans the immediate subdirectories of *plugins_dir*."""

    def __init__(
        self,
        plugins_dir: Path,
        source_extensions: Iterable[str] = PLUGIN_SOURCE_EXTENSIONS,
        subdirectories: Iterable[str] = PLUGIN_SUBDIRECTORIES,
        marker_files: Iterable[str] = PLUGIN_MARKER_FILES,
    ) -> None:
        self._plugins_dir = Path(plugins_dir)
        self._source_extensions = frozenset(source_extensions)
        self._subdirectories = frozenset(subdirectories)
        self._marker_files = frozenset(marker_files)
        self.log = structlog.get_logger(self.__class__.__name__)

    # -- public API ---------------------------------------------------------

    def discover_hidden(
        self,
        installed: Iterable[InstalledComponent],
        allow_entries: Iterable[AllowEntry] | None = None,
    ) -> list[HiddenComponent]:
        """Return plugin-like directories unknown to the registry and allowlist.

        Results follow directory-listing order.
        """
        known = {c.slug for c in installed} | allowed_slugs(allow_entries or ())

        if not self._plugins_dir.is_dir():
            self.log.warning("discovery.plugins_dir_missing", plugins_dir=str(self._plugins_dir))
            return []

        self.log.info("discovery.start", plugins_dir=str(self._plugins_dir), known=len(known))
        hidden: list[HiddenComponent] = []
        for entry in self._plugins_dir.iterdir():
            if entry.name in _SKIPPED_ENTRIES or entry.name in known:
                continue
            if not entry.is_dir():
                continue
            if not self.is_likely_plugin_dir(entry):
                continue
            hidden.append(HiddenComponent(
                slug=entry.name,
                name=self.infer_name(entry),
                path=entry,
            ))

        self.log.info("discovery.complete", hidden=len(hidden))
        return hidden

    def is_likely_plugin_dir(self, directory: Path) -> bool:
        """True if *directory* holds source files, a typical plugin
        subdirectory, or one of the usual plugin marker files."""
        try:
            children = list(directory.iterdir())
        except OSError as exc:
            self.log.warning("discovery.dir_unreadable", path=str(directory), error=str(exc))
            return False

        for child in children:
            if child.name in _SKIPPED_ENTRIES:
                continue
            if child.is_dir():
                if child.name in self._subdirectories:
                    return True
            elif child.suffix in self._source_extensions or child.name in self._marker_files:
                return True
        return False

    def infer_name(self, directory: Path) -> str:
        """Plugin header name from a likely entry file, else a humanized slug."""
        for pattern in ENTRY_FILE_CANDIDATES:
            candidate = directory / pattern.format(slug=directory.name)
            if candidate.is_file():
                name = read_plugin_headers(candidate)["Name"]
                if name:
                    return name
        return humanize_slug(directory.name)


__all__ = [
    "FilesystemDiscovery",
    "humanize_slug",
    "PLUGIN_SOURCE_EXTENSIONS",
    "PLUGIN_SUBDIRECTORIES",
    "PLUGIN_MARKER_FILES",
    "ENTRY_FILE_CANDIDATES",
]
