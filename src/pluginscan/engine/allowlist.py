"""
Allowlist Mutator -- idempotent insertion into the custom allowlist and the
exact bytes to publish afterwards.
"""
from __future__ import annotations

import json
from typing import Sequence

import structlog

from pluginscan.domain.entities import AllowEntry

logger = structlog.get_logger(__name__)


def add_entry(
    current: Sequence[AllowEntry], slug: str, name: str,
) -> tuple[list[AllowEntry], bool]:
    """Insert ``{slug, name}`` unless an entry already matches either.

    Returns ``(updated, already_present)``.  When already present the input
    comes back unchanged; otherwise the new list is sorted by slug
    (ordinal comparison, entries without a slug first).
    """
    entries = list(current)
    if any(entry.matches_slug_or_name(slug, name) for entry in entries):
        logger.info("allowlist.already_present", slug=slug, name=name)
        return entries, True

    entries.append(AllowEntry(slug=slug, name=name))
    entries.sort(key=lambda e: e.slug or "")
    logger.info("allowlist.entry_added", slug=slug, name=name, entries=len(entries))
    return entries, False


def render_allowlist(entries: Sequence[AllowEntry]) -> bytes:
    """Pretty-printed JSON array; each object lists slug before name."""
    text = json.dumps([e.to_document() for e in entries], indent=4, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


def change_description(name: str) -> str:
    return f"Add {name} to allowlist"


__all__ = ["add_entry", "render_allowlist", "change_description"]
