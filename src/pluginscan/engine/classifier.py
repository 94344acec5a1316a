"""
Registry Classifier -- decide which installed plugins are verified by
neither the official WordPress.org registry nor the custom allowlist.

Registry lookups run concurrently, bounded by an ``asyncio.Semaphore``.
Each lookup only decides its own component; a failed lookup marks that
one component suspicious and never touches the others.
"""
from __future__ import annotations

import asyncio
from typing import Iterable, Mapping, Protocol

import structlog

from pluginscan.domain.entities import AllowEntry, InstalledComponent
from pluginscan.shared.exceptions import FetchError

# identifier -> component, in registry order
SuspicionSet = dict[str, InstalledComponent]


class RemoteRegistryClient(Protocol):
    async def lookup(self, slug: str, timeout: float) -> bool: ...


class RegistryClassifier:
    """Builds the suspicion set additively, then prunes it with the allowlist.

    Usage::

        classifier = RegistryClassifier(WordPressOrgClient(api_url), max_concurrency=8)
        suspicious = await classifier.classify_against_registry(installed, timeout=5)
        suspicious = classifier.filter_by_allowlist(suspicious, allow_entries)
    """

    def __init__(self, client: RemoteRegistryClient, max_concurrency: int = 8) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._client = client
        self._max_concurrency = max_concurrency
        self.log = structlog.get_logger(self.__class__.__name__)

    # -- public API ---------------------------------------------------------

    async def classify_against_registry(
        self, installed: Iterable[InstalledComponent], timeout: int,
    ) -> SuspicionSet:
        """Return the plugins the official registry does not vouch for."""
        components = list(installed)
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _check(component: InstalledComponent) -> bool:
            async with semaphore:
                return await self._is_unverified(component, timeout)

        self.log.info("classifier.registry_check.start", components=len(components))
        verdicts = await asyncio.gather(*(_check(c) for c in components))
        suspicious: SuspicionSet = {
            c.identifier: c for c, flagged in zip(components, verdicts) if flagged
        }
        self.log.info(
            "classifier.registry_check.complete",
            components=len(components),
            suspicious=len(suspicious),
        )
        return suspicious

    @staticmethod
    def seed_all(installed: Iterable[InstalledComponent]) -> SuspicionSet:
        """Suspicion set used when the registry check is skipped."""
        return {c.identifier: c for c in installed}

    def filter_by_allowlist(
        self,
        suspicious: Mapping[str, InstalledComponent],
        allow_entries: list[AllowEntry] | None,
    ) -> SuspicionSet:
        """Drop every component matched by an allowlist entry.

        ``None`` means the allowlist could not be loaded: the set passes
        through unchanged and a warning is logged.
        """
        if allow_entries is None:
            self.log.warning("classifier.allowlist_unavailable", suspicious=len(suspicious))
            return dict(suspicious)

        kept: SuspicionSet = {}
        for identifier, component in suspicious.items():
            if any(entry.matches(component) for entry in allow_entries):
                self.log.debug("classifier.allowlisted", identifier=identifier)
                continue
            kept[identifier] = component
        return kept

    async def classify(
        self,
        installed: Iterable[InstalledComponent],
        allow_entries: list[AllowEntry] | None,
        timeout: int,
        skip_registry: bool = False,
    ) -> SuspicionSet:
        """Registry check (or seed-all when skipped) followed by the allowlist filter."""
        components = list(installed)
        if skip_registry:
            suspicious = self.seed_all(components)
        else:
            suspicious = await self.classify_against_registry(components, timeout)
        return self.filter_by_allowlist(suspicious, allow_entries)

    # -- private helpers ----------------------------------------------------

    async def _is_unverified(self, component: InstalledComponent, timeout: int) -> bool:
        slug = component.slug
        try:
            found = await self._client.lookup(slug, timeout)
        except FetchError as exc:
            # Transport failures are indistinguishable from "unknown plugin" here
            self.log.warning("classifier.lookup_failed", slug=slug, error=exc.message)
            return True
        if not found:
            self.log.debug("classifier.not_in_registry", slug=slug)
        return not found


__all__ = ["RegistryClassifier", "RemoteRegistryClient", "SuspicionSet"]
