"""Host plugin registry -- reads WordPress plugin headers from disk.

Mirrors what the host does when it builds its plugin list: every ``*.php``
file at the top of the plugin storage root, or one level below it, whose
leading comment block carries a ``Plugin Name:`` header is a registered
plugin.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

import structlog

from pluginscan.domain.entities import InstalledComponent
from pluginscan.shared.exceptions import ComponentNotFoundError

logger = structlog.get_logger(__name__)

# Only the head of the file is searched for headers
HEADER_READ_BYTES = 8192

PLUGIN_HEADERS: dict[str, str] = {
    "Name": "Plugin Name",
    "PluginURI": "Plugin URI",
    "Version": "Version",
    "Description": "Description",
    "Author": "Author",
    "AuthorURI": "Author URI",
    "TextDomain": "Text Domain",
    "RequiresWP": "Requires at least",
    "RequiresPHP": "Requires PHP",
}

_COMMENT_TAIL_RE = re.compile(r"\s*(?:\*/|\?>).*")


def _header_pattern(label: str) -> re.Pattern[str]:
    return re.compile(
        r"^(?:[ \t]*<\?php)?[ \t/*#@]*" + re.escape(label) + r":(.*)$",
        re.IGNORECASE | re.MULTILINE,
    )


_HEADER_PATTERNS = {key: _header_pattern(label) for key, label in PLUGIN_HEADERS.items()}


def read_plugin_headers(path: Path) -> dict[str, str]:
    """Return the plugin header fields found in *path*.

    Missing headers map to ``""``.  Unreadable files yield all-empty headers.
    """
    try:
        with path.open("rb") as fh:
            head = fh.read(HEADER_READ_BYTES)
    except OSError as exc:
        logger.debug("registry.header_read_failed", path=str(path), error=str(exc))
        return {key: "" for key in PLUGIN_HEADERS}

    text = head.decode("utf-8", errors="replace").replace("\r", "\n")
    headers: dict[str, str] = {}
    for key, pattern in _HEADER_PATTERNS.items():
        match = pattern.search(text)
        headers[key] = _COMMENT_TAIL_RE.sub("", match.group(1)).strip() if match else ""
    return headers


class FilesystemHostRegistry:
    """Read-only snapshot of the plugins installed under *plugins_dir*."""

    def __init__(self, plugins_dir: Path, active_plugins: Iterable[str] = ()) -> None:
        self._plugins_dir = Path(plugins_dir)
        self._active = frozenset(active_plugins)
        self.log = structlog.get_logger(self.__class__.__name__)

    @property
    def plugins_dir(self) -> Path:
        return self._plugins_dir

    # -- public API ---------------------------------------------------------

    def list_installed(self) -> list[InstalledComponent]:
        """Return every registered plugin, sorted by display name."""
        if not self._plugins_dir.is_dir():
            self.log.warning("registry.plugins_dir_missing", plugins_dir=str(self._plugins_dir))
            return []

        components: list[InstalledComponent] = []
        for candidate in self._candidate_files():
            headers = read_plugin_headers(candidate)
            if not headers["Name"]:
                continue
            identifier = candidate.relative_to(self._plugins_dir).as_posix()
            components.append(InstalledComponent(
                identifier=identifier,
                name=headers["Name"],
                version=headers["Version"],
                author=headers["Author"],
                active=self.is_active(identifier),
                location=candidate,
            ))

        components.sort(key=lambda c: (c.name.lower(), c.identifier))
        self.log.debug("registry.listed", count=len(components))
        return components

    def is_active(self, identifier: str) -> bool:
        return identifier in self._active

    def find_by_slug(self, slug: str) -> InstalledComponent:
        """Return the installed plugin whose slug is *slug*.

        Raises:
            ComponentNotFoundError: No installed plugin has that slug.
        """
        for component in self.list_installed():
            if component.slug == slug:
                return component
        raise ComponentNotFoundError(slug)

    def find_by_identifier(self, identifier: str) -> InstalledComponent:
        """Resolve a user-supplied slug or name.

        Exact slug wins, then exact display name, then the first
        case-insensitive substring match on either.
        """
        if not identifier.strip():
            raise ComponentNotFoundError(identifier)
        installed = self.list_installed()
        for component in installed:
            if component.slug == identifier:
                return component
        for component in installed:
            if component.name == identifier:
                return component
        needle = identifier.lower()
        for component in installed:
            if needle in component.slug.lower() or needle in component.name.lower():
                return component
        raise ComponentNotFoundError(identifier)

    # -- private helpers ----------------------------------------------------

    def _candidate_files(self) -> list[Path]:
        files: list[Path] = []
        for entry in sorted(self._plugins_dir.iterdir()):
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                try:
                    files.extend(
                        sorted(p for p in entry.iterdir() if p.is_file() and p.suffix == ".php")
                    )
                except OSError as exc:
                    self.log.warning("registry.dir_unreadable", path=str(entry), error=str(exc))
            elif entry.is_file() and entry.suffix == ".php":
                files.append(entry)
        return files


__all__ = ["FilesystemHostRegistry", "read_plugin_headers", "PLUGIN_HEADERS"]
