"""External service clients -- HTTP client base and the three remote collaborators.

* :class:`HttpManifestSource` -- raw GET of allowlist / checksum documents
* :class:`WordPressOrgClient` -- official plugin registry lookups
* :class:`GitHubPublisher` -- create-or-update of the hosted allowlist file

Every call is a single attempt: a timeout or transport error is terminal
for that call and surfaces as a typed exception.
"""
from __future__ import annotations

import base64
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from pluginscan.shared.exceptions import FetchError, PublishConflictError, PublishError

logger = structlog.get_logger(__name__)

USER_AGENT = "pluginscan/1.0 (+https://github.com/eugenewoz/pluginscan)"


class HTTPClientBase:
    """Async HTTP client with per-call timeout and typed transport failures."""

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        self._headers = {"User-Agent": USER_AGENT, **(headers or {})}

    async def _send(
        self,
        method: str,
        url: str,
        timeout: float,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        merged = {**self._headers, **(headers or {})}
        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                return await client.request(method, url, headers=merged, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("http_timeout", url=url, timeout=timeout)
            raise FetchError(f"Request timed out after {timeout}s", url=url) from e
        except httpx.RequestError as e:
            logger.warning("http_request_error", url=url, error=str(e))
            raise FetchError(f"Request failed: {e}", url=url) from e


class HttpManifestSource(HTTPClientBase):
    """Fetches raw document bytes; anything but HTTP 200 is a failure."""

    async def get(self, url: str, timeout: float) -> bytes:
        response = await self._send("GET", url, timeout)
        if response.status_code != 200:
            logger.warning("http_error", url=url, status=response.status_code)
            raise FetchError(f"HTTP {response.status_code}", url=url, status_code=response.status_code)
        return response.content


class WordPressOrgClient(HTTPClientBase):
    """Plugin info lookups against the official WordPress.org registry."""

    NOT_FOUND_SENTINEL = b"null"

    def __init__(self, api_url: str, headers: dict[str, str] | None = None) -> None:
        super().__init__(headers)
        self._api_url = api_url.rstrip("/")

    def lookup_url(self, slug: str) -> str:
        return f"{self._api_url}/{quote(slug, safe='')}.json"

    async def lookup(self, slug: str, timeout: float) -> bool:
        """Return whether *slug* is published in the official registry.

        Non-200 responses, empty bodies and the literal ``null`` body all
        mean "not found".

        Raises:
            FetchError: The request itself failed (network error, timeout).
        """
        response = await self._send("GET", self.lookup_url(slug), timeout)
        if response.status_code != 200:
            return False
        body = response.content.strip()
        return bool(body) and body != self.NOT_FOUND_SENTINEL


class GitHubPublisher(HTTPClientBase):
    """Create-or-update a single file through the GitHub contents API.

    The write is read-then-write keyed on the blob ``sha``: a concurrent
    writer between the two calls makes the PUT fail with a conflict.
    """

    def __init__(self, api_url: str = "https://api.github.com", timeout: float = 10) -> None:
        super().__init__({"Accept": "application/vnd.github.v3+json"})
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout

    def contents_url(self, owner: str, repo: str, path: str) -> str:
        return f"{self._api_url}/repos/{owner}/{repo}/contents/{path.lstrip('/')}"

    async def put_file(
        self,
        owner: str,
        repo: str,
        path: str,
        branch: str,
        token: str,
        content: bytes,
        message: str,
    ) -> str | None:
        """Write *content* to ``owner/repo:path`` on *branch*.

        Returns the new blob sha when GitHub reports one.

        Raises:
            PublishConflictError: The file changed since its revision was read.
            PublishError: Any other read or write failure.
        """
        url = self.contents_url(owner, repo, path)
        auth = {"Authorization": f"token {token}"}

        sha = await self._current_sha(url, branch, auth)
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": branch,
        }
        if sha:
            payload["sha"] = sha

        logger.info("publish.put", url=url, branch=branch, update=bool(sha))
        try:
            response = await self._send("PUT", url, self._timeout, headers=auth, json=payload)
        except FetchError as e:
            raise PublishError(f"Error updating file on GitHub: {e.message}") from e

        if response.status_code in (200, 201):
            data = _json_or_empty(response)
            return (data.get("content") or {}).get("sha")

        remote_message = _json_or_empty(response).get("message", "")
        if response.status_code in (409, 422):
            raise PublishConflictError(
                f"GitHub rejected the update: HTTP {response.status_code} {remote_message}".strip(),
                status_code=response.status_code,
                context={"url": url},
            )
        raise PublishError(
            f"Error updating file on GitHub: HTTP {response.status_code} {remote_message}".strip(),
            status_code=response.status_code,
            context={"url": url},
        )

    async def _current_sha(self, url: str, branch: str, auth: dict[str, str]) -> str | None:
        try:
            response = await self._send("GET", url, self._timeout, headers=auth, params={"ref": branch})
        except FetchError as e:
            raise PublishError(f"Error fetching file from GitHub: {e.message}") from e

        if response.status_code == 404:
            logger.info("publish.file_missing", url=url)
            return None
        if response.status_code != 200:
            remote_message = _json_or_empty(response).get("message", "")
            raise PublishError(
                f"Error fetching file from GitHub: HTTP {response.status_code} {remote_message}".strip(),
                status_code=response.status_code,
                context={"url": url},
            )
        sha = _json_or_empty(response).get("sha")
        if not sha:
            raise PublishError("GitHub response did not include a file sha", context={"url": url})
        return sha


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


__all__ = ["HTTPClientBase", "HttpManifestSource", "WordPressOrgClient", "GitHubPublisher"]
