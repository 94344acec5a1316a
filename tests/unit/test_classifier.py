"""Tests for the registry classifier and allowlist filter."""
from __future__ import annotations

import asyncio

import pytest

from pluginscan.domain.entities import AllowEntry, InstalledComponent
from pluginscan.engine.classifier import RegistryClassifier
from pluginscan.shared.exceptions import FetchError



class FakeRegistry:
    """Answers lookups from a dict; slugs in *failing* raise FetchError."""

    def __init__(self, found: set[str] | None = None, failing: set[str] | None = None, delay: float = 0.0) -> None:
        self.found = found or set()
        self.failing = failing or set()
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def lookup(self, slug: str, timeout: float) -> bool:
        self.calls.append(slug)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if slug in self.failing:
                raise FetchError("connection refused", url=f"https://registry/{slug}.json")
            return slug in self.found
        finally:
            self.in_flight -= 1


def _component(identifier: str, name: str) -> InstalledComponent:
    return InstalledComponent(identifier=identifier, name=name, version="1.0")


@pytest.fixture
def installed() -> list[InstalledComponent]:
    return [
        _component("akismet/akismet.php", "Akismet"),
        _component("hello.php", "Hello Dolly"),
        _component("custom-crm/crm.php", "Custom CRM"),
    ]


@pytest.mark.asyncio
async def test_failed_lookup_marks_component_suspicious(elementor_pro: InstalledComponent) -> None:
    classifier = RegistryClassifier(FakeRegistry(failing={"elementor-pro"}))
    suspicious = await classifier.classify_against_registry([elementor_pro], timeout=5)
    suspicious = classifier.filter_by_allowlist(suspicious, [])
    assert suspicious == {"elementor-pro/elementor-pro.php": elementor_pro}


@pytest.mark.asyncio
async def test_not_found_is_suspicious_found_is_not(installed: list[InstalledComponent]) -> None:
    registry = FakeRegistry(found={"akismet", "hello"})
    suspicious = await RegistryClassifier(registry).classify_against_registry(installed, timeout=5)
    assert list(suspicious) == ["custom-crm/crm.php"]
    assert sorted(registry.calls) == ["akismet", "custom-crm", "hello"]


@pytest.mark.asyncio
async def test_one_failure_does_not_affect_others(installed: list[InstalledComponent]) -> None:
    registry = FakeRegistry(found={"akismet", "hello", "custom-crm"}, failing={"hello"})
    suspicious = await RegistryClassifier(registry).classify_against_registry(installed, timeout=5)
    assert list(suspicious) == ["hello.php"]


@pytest.mark.asyncio
async def test_suspicion_set_is_subset_of_installed(installed: list[InstalledComponent]) -> None:
    registry = FakeRegistry(failing={"akismet"})
    suspicious = await RegistryClassifier(registry).classify_against_registry(installed, timeout=5)
    assert set(suspicious.values()) <= set(installed)


@pytest.mark.asyncio
async def test_result_keeps_registry_order_despite_timing(installed: list[InstalledComponent]) -> None:
    registry = FakeRegistry(delay=0.01)
    suspicious = await RegistryClassifier(registry, max_concurrency=3).classify_against_registry(
        installed, timeout=5,
    )
    assert list(suspicious) == [c.identifier for c in installed]


@pytest.mark.asyncio
async def test_concurrency_is_bounded() -> None:
    components = [_component(f"p{i}/p{i}.php", f"P{i}") for i in range(10)]
    registry = FakeRegistry(delay=0.01)
    await RegistryClassifier(registry, max_concurrency=2).classify_against_registry(components, timeout=5)
    assert len(registry.calls) == 10
    assert registry.max_in_flight <= 2


@pytest.mark.asyncio
async def test_skip_registry_seeds_all_then_filters(installed: list[InstalledComponent]) -> None:
    registry = FakeRegistry()
    classifier = RegistryClassifier(registry)
    suspicious = await classifier.classify(
        installed, [AllowEntry(name="Akismet")], timeout=5, skip_registry=True,
    )
    assert registry.calls == []
    assert list(suspicious) == ["hello.php", "custom-crm/crm.php"]


@pytest.mark.asyncio
async def test_classify_with_unavailable_allowlist_passes_through(installed: list[InstalledComponent]) -> None:
    classifier = RegistryClassifier(FakeRegistry(found={"akismet"}))
    suspicious = await classifier.classify(installed, None, timeout=5)
    assert list(suspicious) == ["hello.php", "custom-crm/crm.php"]


def test_invalid_concurrency_rejected() -> None:
    with pytest.raises(ValueError):
        RegistryClassifier(FakeRegistry(), max_concurrency=0)


class TestFilterByAllowlist:
    @pytest.fixture
    def suspicious(self, installed: list[InstalledComponent]) -> dict[str, InstalledComponent]:
        return RegistryClassifier.seed_all(installed)

    def test_filters_by_slug_name_and_file(self, suspicious: dict[str, InstalledComponent]) -> None:
        classifier = RegistryClassifier(FakeRegistry())
        allow = [AllowEntry(slug="akismet"), AllowEntry(name="Hello Dolly"), AllowEntry(file="custom-crm/crm.php")]
        assert classifier.filter_by_allowlist(suspicious, allow) == {}

    def test_none_means_unavailable_and_passes_through(self, suspicious: dict[str, InstalledComponent]) -> None:
        classifier = RegistryClassifier(FakeRegistry())
        assert classifier.filter_by_allowlist(suspicious, None) == suspicious

    def test_empty_allowlist_keeps_everything(self, suspicious: dict[str, InstalledComponent]) -> None:
        classifier = RegistryClassifier(FakeRegistry())
        assert classifier.filter_by_allowlist(suspicious, []) == suspicious

    def test_filter_is_idempotent(self, suspicious: dict[str, InstalledComponent]) -> None:
        classifier = RegistryClassifier(FakeRegistry())
        allow = [AllowEntry(slug="hello")]
        once = classifier.filter_by_allowlist(suspicious, allow)
        twice = classifier.filter_by_allowlist(once, allow)
        assert once == twice
        assert list(once) == ["akismet/akismet.php", "custom-crm/crm.php"]

    def test_input_not_mutated(self, suspicious: dict[str, InstalledComponent]) -> None:
        before = dict(suspicious)
        RegistryClassifier(FakeRegistry()).filter_by_allowlist(suspicious, [AllowEntry(slug="akismet")])
        assert suspicious == before
