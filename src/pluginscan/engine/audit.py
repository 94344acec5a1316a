"""
Plugin audit orchestrator -- runs the scan, checksum and whitelist flows
over the engines and collaborators built from one :class:`ScannerConfig`.

Per-item failures (one plugin's checksum manifest, one registry lookup)
are recorded on that item; they never abort the rest of the invocation.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Sequence

import structlog

from pluginscan.config import ScannerConfig
from pluginscan.domain.entities import (
    AllowEntry,
    ChecksumDiscrepancy,
    ComponentStatus,
    ComponentType,
    HiddenComponent,
    InstalledComponent,
    ReportRecord,
)
from pluginscan.engine.allowlist import add_entry, change_description, render_allowlist
from pluginscan.engine.checksum import ChecksumVerifier
from pluginscan.engine.classifier import RegistryClassifier
from pluginscan.engine.discovery import FilesystemDiscovery
from pluginscan.engine.fetcher import ManifestFetcher
from pluginscan.infrastructure.external import (
    GitHubPublisher,
    HttpManifestSource,
    WordPressOrgClient,
)
from pluginscan.infrastructure.registry import FilesystemHostRegistry
from pluginscan.shared.exceptions import ComponentNotFoundError, FetchError, PublishError

UNKNOWN = "Unknown"

_TAG_RE = re.compile(r"<[^>]*>")


def strip_tags(value: str) -> str:
    return _TAG_RE.sub("", value).strip()


# ---------------------------------------------------------------------------
# Report rows
# ---------------------------------------------------------------------------

def registered_record(component: InstalledComponent, plugins_dir: Path) -> ReportRecord:
    return ReportRecord(
        name=component.name,
        slug=component.slug,
        version=component.version,
        author=strip_tags(component.author),
        status=ComponentStatus.ACTIVE if component.active else ComponentStatus.INACTIVE,
        path=str(Path(plugins_dir) / component.identifier),
        type=ComponentType.REGISTERED,
    )


def hidden_record(hidden: HiddenComponent) -> ReportRecord:
    return ReportRecord(
        name=hidden.name,
        slug=hidden.slug,
        version=UNKNOWN,
        author=UNKNOWN,
        status=ComponentStatus.HIDDEN,
        path=str(hidden.path),
        type=ComponentType.HIDDEN,
    )


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

@dataclass
class ScanResult:
    """Everything the scan command reports."""

    installed_count: int = 0
    allowlist_loaded: bool = False
    allowlist_size: int = 0
    records: list[ReportRecord] = field(default_factory=list)

    @property
    def suspicious_count(self) -> int:
        return len(self.records)


@dataclass
class ChecksumOutcome:
    """Result of verifying one named plugin."""

    slug: str
    version: str = ""
    manifest_url: str = ""
    discrepancies: list[ChecksumDiscrepancy] = field(default_factory=list)
    error: str | None = None
    skipped: bool = False

    @property
    def passed(self) -> bool:
        return not self.skipped and self.error is None and not self.discrepancies

    @property
    def failed(self) -> bool:
        return not self.skipped and not self.passed


@dataclass
class WhitelistOutcome:
    """Result of adding a plugin to the allowlist."""

    slug: str
    name: str
    already_present: bool
    entries: list[AllowEntry] = field(default_factory=list)
    content: bytes = b""
    published: bool = False
    allowlist_loaded: bool = True


# ---------------------------------------------------------------------------
# PluginAudit
# ---------------------------------------------------------------------------

class PluginAudit:
    """Wires configuration and collaborators into the three commands."""

    def __init__(
        self,
        config: ScannerConfig,
        registry: FilesystemHostRegistry,
        fetcher: ManifestFetcher,
        classifier: RegistryClassifier,
        discovery: FilesystemDiscovery,
        verifier: ChecksumVerifier,
        publisher: GitHubPublisher,
    ) -> None:
        self.config = config
        self.registry = registry
        self.fetcher = fetcher
        self.classifier = classifier
        self.discovery = discovery
        self.verifier = verifier
        self.publisher = publisher
        self.log = structlog.get_logger(self.__class__.__name__)

    @classmethod
    def from_config(cls, config: ScannerConfig) -> "PluginAudit":
        return cls(
            config=config,
            registry=FilesystemHostRegistry(config.plugins_dir, config.active_plugins),
            fetcher=ManifestFetcher(HttpManifestSource()),
            classifier=RegistryClassifier(
                WordPressOrgClient(config.registry_api_url),
                max_concurrency=config.max_concurrency,
            ),
            discovery=FilesystemDiscovery(config.plugins_dir),
            verifier=ChecksumVerifier(),
            publisher=GitHubPublisher(config.github_api_url, timeout=config.allowlist_timeout),
        )

    # -- scan ---------------------------------------------------------------

    async def run_scan(
        self,
        skip_registry: bool = False,
        skip_filesystem: bool = False,
        allowlist_url: str | None = None,
    ) -> ScanResult:
        installed = self.registry.list_installed()
        result = ScanResult(installed_count=len(installed))
        self.log.info("scan.start", installed=len(installed), skip_registry=skip_registry)

        allow_entries = await self.load_allowlist(
            allowlist_url or self.config.allowlist_url, self.config.timeout,
        )
        result.allowlist_loaded = allow_entries is not None
        result.allowlist_size = len(allow_entries or [])

        suspicious = await self.classifier.classify(
            installed, allow_entries, self.config.timeout, skip_registry=skip_registry,
        )
        result.records.extend(
            registered_record(c, self.registry.plugins_dir) for c in suspicious.values()
        )

        if not skip_filesystem:
            hidden = self.discovery.discover_hidden(installed, allow_entries or [])
            result.records.extend(hidden_record(h) for h in hidden)

        self.log.info("scan.complete", suspicious=result.suspicious_count)
        return result

    async def load_allowlist(self, url: str, timeout: int) -> list[AllowEntry] | None:
        """Fetch the optional allowlist; ``None`` (with a warning) on failure."""
        try:
            return await self.fetcher.fetch_allowlist(url, timeout)
        except FetchError as exc:
            self.log.warning("allowlist.fetch_failed", url=url, error=exc.message)
            return None

    # -- checksum -----------------------------------------------------------

    async def run_checksum(self, slugs: Sequence[str]) -> list[ChecksumOutcome]:
        outcomes: list[ChecksumOutcome] = []
        for slug in slugs:
            outcomes.append(await self.verify_component(slug))
        return outcomes

    async def verify_component(self, slug: str) -> ChecksumOutcome:
        outcome = ChecksumOutcome(slug=slug)
        try:
            component = self.registry.find_by_slug(slug)
        except ComponentNotFoundError as exc:
            self.log.warning("checksum.not_installed", slug=slug, error=exc.message)
            outcome.skipped = True
            outcome.error = exc.message
            return outcome

        outcome.version = component.version
        outcome.manifest_url = self.config.checksum_url(slug, component.version)
        self.log.info("checksum.fetch", slug=slug, version=component.version, url=outcome.manifest_url)
        try:
            manifest = await self.fetcher.fetch_checksum_manifest(
                outcome.manifest_url, self.config.checksum_timeout,
            )
        except FetchError as exc:
            self.log.error("checksum.manifest_unavailable", slug=slug, url=outcome.manifest_url, error=exc.message)
            outcome.error = f"No usable checksum manifest at {outcome.manifest_url}: {exc.message}"
            return outcome

        root_dir = component.root_dir or self.registry.plugins_dir
        outcome.discrepancies = self.verifier.verify(slug, root_dir, manifest)
        return outcome

    # -- whitelist ----------------------------------------------------------

    async def run_whitelist(
        self,
        identifier: str,
        token: str | None = None,
        allowlist_url: str | None = None,
    ) -> WhitelistOutcome:
        """Add the installed plugin named by *identifier* to the allowlist.

        Raises:
            ComponentNotFoundError: *identifier* matches no installed plugin.
            PublishError: The write to the hosted file failed, or a token was
                given but the current allowlist could not be read.
        """
        component = self.registry.find_by_identifier(identifier)
        url = allowlist_url or self.config.raw_allowlist_url()

        try:
            current = await self.fetcher.fetch_allowlist(url, self.config.allowlist_timeout)
            loaded = True
        except FetchError as exc:
            self.log.warning(
                "allowlist.fetch_failed", url=url, error=exc.message, status=exc.status_code,
            )
            # Only a file that does not exist yet may be replaced wholesale
            if token and exc.status_code != 404:
                raise PublishError(
                    f"Refusing to publish: the current allowlist at {url} could not be read "
                    f"({exc.message})",
                    status_code=exc.status_code,
                    context={"url": url},
                ) from exc
            self.log.warning("whitelist.starting_empty", url=url)
            current, loaded = [], False

        entries, already_present = add_entry(current, component.slug, component.name)
        outcome = WhitelistOutcome(
            slug=component.slug,
            name=component.name,
            already_present=already_present,
            entries=entries,
            allowlist_loaded=loaded,
        )
        if already_present:
            return outcome

        outcome.content = render_allowlist(entries)
        if token:
            await self.publisher.put_file(
                self.config.github_owner,
                self.config.github_repo,
                self.config.github_file,
                self.config.github_branch,
                token,
                outcome.content,
                change_description(component.name),
            )
            outcome.published = True
        return outcome


def summarize(outcomes: Iterable[ChecksumOutcome]) -> dict[str, Any]:
    items = list(outcomes)
    return {
        "checked": sum(1 for o in items if not o.skipped),
        "skipped": sum(1 for o in items if o.skipped),
        "failed": sum(1 for o in items if o.failed),
    }


__all__ = [
    "PluginAudit",
    "ScanResult",
    "ChecksumOutcome",
    "WhitelistOutcome",
    "registered_record",
    "hidden_record",
    "strip_tags",
    "summarize",
]
