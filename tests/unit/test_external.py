"""Tests for the httpx-backed collaborators using respx to mock httpx."""
from __future__ import annotations

import base64
import json

import httpx
import pytest
import respx

from pluginscan.domain.entities import InstalledComponent
from pluginscan.engine.classifier import RegistryClassifier
from pluginscan.infrastructure.external import (
    GitHubPublisher,
    HttpManifestSource,
    WordPressOrgClient,
)
from pluginscan.shared.exceptions import FetchError, PublishConflictError, PublishError

pytestmark = pytest.mark.asyncio

API = "https://api.wordpress.org/plugins/info/1.0"
CONTENTS = "https://api.github.com/repos/owner/repo/contents/allowed-plugins.json"


class TestHttpManifestSource:

    async def test_get_success(self) -> None:
        with respx.mock:
            respx.get("https://example.test/a.json").mock(return_value=httpx.Response(200, content=b"[]"))
            assert await HttpManifestSource().get("https://example.test/a.json", 5) == b"[]"

    async def test_non_200_raises_with_status(self) -> None:
        with respx.mock:
            respx.get("https://example.test/a.json").mock(return_value=httpx.Response(404, text="Not Found"))
            with pytest.raises(FetchError) as exc_info:
                await HttpManifestSource().get("https://example.test/a.json", 5)
        assert exc_info.value.status_code == 404
        assert "HTTP 404" in exc_info.value.message

    async def test_connection_error_raises_fetch_error(self) -> None:
        with respx.mock:
            respx.get("https://example.test/a.json").mock(side_effect=httpx.ConnectError("refused"))
            with pytest.raises(FetchError, match="Request failed"):
                await HttpManifestSource().get("https://example.test/a.json", 5)

    async def test_timeout_raises_fetch_error(self) -> None:
        with respx.mock:
            respx.get("https://example.test/a.json").mock(side_effect=httpx.ReadTimeout("slow"))
            with pytest.raises(FetchError, match="timed out"):
                await HttpManifestSource().get("https://example.test/a.json", 5)

    async def test_single_attempt_only(self) -> None:
        with respx.mock:
            route = respx.get("https://example.test/a.json").mock(return_value=httpx.Response(503))
            with pytest.raises(FetchError):
                await HttpManifestSource().get("https://example.test/a.json", 5)
        assert route.call_count == 1


class TestWordPressOrgClient:

    async def test_found(self) -> None:
        with respx.mock:
            respx.get(f"{API}/akismet.json").mock(
                return_value=httpx.Response(200, json={"name": "Akismet", "slug": "akismet"})
            )
            assert await WordPressOrgClient(API).lookup("akismet", 5) is True

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, content=b"null"),
            httpx.Response(200, content=b""),
            httpx.Response(404, json={"error": "Plugin not found."}),
        ],
    )
    async def test_not_found_variants(self, response: httpx.Response) -> None:
        with respx.mock:
            respx.get(f"{API}/elementor-pro.json").mock(return_value=response)
            assert await WordPressOrgClient(API).lookup("elementor-pro", 5) is False

    async def test_transport_error_raises(self) -> None:
        with respx.mock:
            respx.get(f"{API}/x.json").mock(side_effect=httpx.ConnectError("dns"))
            with pytest.raises(FetchError):
                await WordPressOrgClient(API).lookup("x", 5)

    async def test_lookup_url_escapes_reserved_characters(self) -> None:
        client = WordPressOrgClient(API)
        assert client.lookup_url("akismet.json?x=") == f"{API}/akismet.json%3Fx%3D.json"
        assert client.lookup_url("a#b/c") == f"{API}/a%23b%2Fc.json"

    @pytest.mark.parametrize("slug", ["akismet.json?x=", "akismet.json#"])
    async def test_crafted_slug_is_not_resolved_as_another_plugin(self, slug: str) -> None:
        with respx.mock(assert_all_called=False) as router:
            real = router.get(f"{API}/akismet.json").mock(return_value=httpx.Response(200, json={"slug": "akismet"}))
            router.route().mock(return_value=httpx.Response(200, content=b"null"))
            assert await WordPressOrgClient(API).lookup(slug, 5) is False
        assert not real.called

    async def test_crafted_directory_name_is_flagged(self) -> None:
        component = InstalledComponent(
            identifier="akismet.json?x=/evil.php", name="Evil", version="1", author="", active=False,
        )
        with respx.mock(assert_all_called=False) as router:
            router.get(f"{API}/akismet.json").mock(return_value=httpx.Response(200, json={"slug": "akismet"}))
            router.route().mock(return_value=httpx.Response(200, content=b"null"))
            suspicious = await RegistryClassifier(WordPressOrgClient(API)).classify_against_registry(
                [component], timeout=5,
            )
        assert "akismet.json?x=/evil.php" in suspicious


class TestGitHubPublisher:

    async def test_update_existing_file_sends_sha(self) -> None:
        with respx.mock:
            respx.get(CONTENTS, params={"ref": "main"}).mock(
                return_value=httpx.Response(200, json={"sha": "abc123"})
            )
            put = respx.put(CONTENTS).mock(
                return_value=httpx.Response(200, json={"content": {"sha": "def456"}})
            )
            sha = await GitHubPublisher().put_file(
                "owner", "repo", "allowed-plugins.json", "main", "tok", b"[]\n", "Add X to allowlist",
            )

        assert sha == "def456"
        request = put.calls.last.request
        assert request.headers["Authorization"] == "token tok"
        assert request.headers["Accept"] == "application/vnd.github.v3+json"
        payload = json.loads(request.content)
        assert payload["sha"] == "abc123"
        assert payload["branch"] == "main"
        assert payload["message"] == "Add X to allowlist"
        assert base64.b64decode(payload["content"]) == b"[]\n"

    async def test_missing_file_is_created_without_sha(self) -> None:
        with respx.mock:
            respx.get(CONTENTS, params={"ref": "main"}).mock(return_value=httpx.Response(404, json={"message": "Not Found"}))
            put = respx.put(CONTENTS).mock(return_value=httpx.Response(201, json={"content": {"sha": "new"}}))
            await GitHubPublisher().put_file(
                "owner", "repo", "allowed-plugins.json", "main", "tok", b"[]", "msg",
            )
        assert "sha" not in json.loads(put.calls.last.request.content)

    async def test_read_failure_raises_publish_error(self) -> None:
        with respx.mock:
            respx.get(CONTENTS, params={"ref": "main"}).mock(return_value=httpx.Response(401, json={"message": "Bad credentials"}))
            with pytest.raises(PublishError, match="Bad credentials") as exc_info:
                await GitHubPublisher().put_file(
                    "owner", "repo", "allowed-plugins.json", "main", "bad", b"[]", "msg",
                )
        assert exc_info.value.status_code == 401

    async def test_conflict_raises_conflict_error(self) -> None:
        with respx.mock:
            respx.get(CONTENTS, params={"ref": "main"}).mock(return_value=httpx.Response(200, json={"sha": "stale"}))
            respx.put(CONTENTS).mock(
                return_value=httpx.Response(409, json={"message": "is at abc but expected stale"})
            )
            with pytest.raises(PublishConflictError):
                await GitHubPublisher().put_file(
                    "owner", "repo", "allowed-plugins.json", "main", "tok", b"[]", "msg",
                )

    async def test_write_server_error_raises_publish_error(self) -> None:
        with respx.mock:
            respx.get(CONTENTS, params={"ref": "main"}).mock(return_value=httpx.Response(404))
            respx.put(CONTENTS).mock(return_value=httpx.Response(500, text="oops"))
            with pytest.raises(PublishError) as exc_info:
                await GitHubPublisher().put_file(
                    "owner", "repo", "allowed-plugins.json", "main", "tok", b"[]", "msg",
                )
        assert not isinstance(exc_info.value, PublishConflictError)
        assert exc_info.value.status_code == 500

    async def test_transport_error_raises_publish_error(self) -> None:
        with respx.mock:
            respx.get(CONTENTS, params={"ref": "main"}).mock(side_effect=httpx.ConnectError("down"))
            with pytest.raises(PublishError):
                await GitHubPublisher().put_file(
                    "owner", "repo", "allowed-plugins.json", "main", "tok", b"[]", "msg",
                )
