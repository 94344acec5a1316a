"""
Manifest Fetcher -- retrieve and decode the JSON documents the audit relies
on: the custom allowlist and per-release checksum manifests.
"""
from __future__ import annotations

import json
from typing import Any, Protocol

import structlog
from pydantic import ValidationError

from pluginscan.domain.entities import AllowEntry
from pluginscan.shared.exceptions import FetchError, ManifestFormatError

logger = structlog.get_logger(__name__)


class ManifestSource(Protocol):
    async def get(self, url: str, timeout: float) -> bytes: ...


class ManifestFetcher:
    """Single-attempt JSON fetch on top of a :class:`ManifestSource`."""

    def __init__(self, source: ManifestSource) -> None:
        self._source = source
        self.log = structlog.get_logger(self.__class__.__name__)

    async def fetch(self, url: str, timeout: int) -> Any:
        """Return the decoded JSON document at *url*.

        Raises:
            ValueError: *timeout* is not a positive integer.
            FetchError: Transport failure, non-200 status, empty body or
                malformed JSON.
        """
        if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
            raise ValueError(f"timeout must be a positive integer, got {timeout!r}")

        body = await self._source.get(url, timeout)
        if not body or not body.strip():
            raise FetchError("Empty response body", url=url)
        try:
            return json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise FetchError(f"Malformed JSON: {exc}", url=url) from exc

    async def fetch_allowlist(self, url: str, timeout: int) -> list[AllowEntry]:
        """Fetch the custom allowlist, a JSON array of ``{slug, name, file}`` objects."""
        data = await self.fetch(url, timeout)
        entries = parse_allowlist(data, url=url)
        self.log.info("fetcher.allowlist_loaded", url=url, entries=len(entries))
        return entries

    async def fetch_checksum_manifest(self, url: str, timeout: int) -> dict[str, str]:
        """Fetch a checksum manifest and return ``{relative_path: md5}``."""
        data = await self.fetch(url, timeout)
        return parse_checksum_manifest(data, url=url)


def parse_allowlist(data: Any, url: str = "") -> list[AllowEntry]:
    """Validate a decoded allowlist document.

    Entries that are not objects are skipped with a warning.
    """
    if not isinstance(data, list):
        raise ManifestFormatError(
            f"Allowlist must be a JSON array, got {type(data).__name__}", url=url,
        )
    entries: list[AllowEntry] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            logger.warning("fetcher.allowlist_entry_skipped", url=url, index=index)
            continue
        try:
            entry = AllowEntry.model_validate(item)
        except ValidationError as exc:
            logger.warning("fetcher.allowlist_entry_invalid", url=url, index=index, error=str(exc))
            continue
        if entry.slug is None and entry.name is None and entry.file is None:
            logger.warning("fetcher.allowlist_entry_empty", url=url, index=index)
        entries.append(entry)
    return entries


def parse_checksum_manifest(data: Any, url: str = "") -> dict[str, str]:
    """Validate ``{"files": {"<path>": {"md5": "<hex>"}}}`` and flatten it."""
    files = data.get("files") if isinstance(data, dict) else None
    if not isinstance(files, dict):
        raise ManifestFormatError("Checksum manifest has no 'files' object", url=url)

    manifest: dict[str, str] = {}
    for rel_path, hashes in files.items():
        md5 = hashes.get("md5") if isinstance(hashes, dict) else None
        if not isinstance(md5, str) or not md5:
            raise ManifestFormatError(
                f"Checksum entry for '{rel_path}' has no md5 digest", url=url,
            )
        manifest[rel_path] = md5.lower()
    return manifest


__all__ = ["ManifestFetcher", "ManifestSource", "parse_allowlist", "parse_checksum_manifest"]
