"""GitHub API client for installation-scoped operations.

Uses httpx for async HTTP calls. App-level calls authenticate with the
GitHub App JWT; everything repository-scoped uses an installation access
token obtained from the JWT exchange.

``GitHubRepoFetcher`` is the production ``RepoFetcher`` used by the
analysis engine. HTTP failures surface as ``httpx.HTTPStatusError``.
"""

import base64
import logging
from typing import Optional
from urllib.parse import quote

import httpx

from repolens.analysis.types import TreeEntry
from repolens.core.errors import RemoteTreeError
from repolens.github.auth import create_app_jwt

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
DEFAULT_TIMEOUT = 30.0


async def get_installation_token(installation_id: int) -> str:
    """Exchange a GitHub App JWT for an installation access token.

    Installation tokens are scoped to the repos the user granted
    access to and expire after 1 hour.
    """
    app_jwt = create_app_jwt()

    async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
        response = await client.post(
            f"{GITHUB_API_BASE}/app/installations/{installation_id}/access_tokens",
            headers=_auth_headers(app_jwt),
        )
        response.raise_for_status()
        return response.json()["token"]


async def list_installations() -> list[dict]:
    """List every installation of the GitHub App."""
    app_jwt = create_app_jwt()

    async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
        response = await client.get(
            f"{GITHUB_API_BASE}/app/installations",
            headers=_auth_headers(app_jwt),
        )
        response.raise_for_status()
        return response.json()


async def list_installation_repos(token: str) -> dict:
    """List the repos accessible to an installation token.

    Returns GitHub's envelope (``total_count`` plus ``repositories``).
    """
    async with httpx.AsyncClient(timeout=DEFAULT_TIMEOUT) as client:
        response = await client.get(
            f"{GITHUB_API_BASE}/installation/repositories",
            headers=_auth_headers(token),
        )
        response.raise_for_status()
        return response.json()


class PathIsDirectoryError(ValueError):
    """A contents request resolved to a directory listing."""


class GitHubRepoFetcher:
    """RepoFetcher backed by the GitHub REST API.

    Use as an async context manager so all requests of one analysis share a
    connection pool:

        async with GitHubRepoFetcher(token) as fetcher:
            result = await RepoAnalysisEngine(fetcher).analyze(owner, repo, ref)
    """

    def __init__(self, token: str, client: Optional[httpx.AsyncClient] = None) -> None:
        self._headers = _auth_headers(token)
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "GitHubRepoFetcher":
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, path: str, params: Optional[dict] = None) -> httpx.Response:
        assert self._client is not None, "GitHubRepoFetcher used outside 'async with'"
        return await self._client.get(
            f"{GITHUB_API_BASE}{path}",
            headers=self._headers,
            params=params,
        )

    async def fetch_branch_head(self, owner: str, repo: str, ref: str) -> str:
        """GET /repos/{owner}/{repo}/branches/{ref} -> head commit SHA."""
        response = await self._get(f"/repos/{owner}/{repo}/branches/{quote(ref, safe='')}")
        response.raise_for_status()
        return response.json()["commit"]["sha"]

    async def fetch_commit_tree(self, owner: str, repo: str, commit_sha: str) -> str:
        """GET /repos/{owner}/{repo}/git/commits/{sha} -> root tree SHA."""
        response = await self._get(f"/repos/{owner}/{repo}/git/commits/{commit_sha}")
        response.raise_for_status()
        return response.json()["tree"]["sha"]

    async def fetch_tree_recursive(self, owner: str, repo: str, tree_sha: str) -> list[TreeEntry]:
        """GET /repos/{owner}/{repo}/git/trees/{sha}?recursive=1

        GitHub returns the whole tree in one response but sets ``truncated``
        when it exceeds the API's size limit. A partial tree would give a
        wrong analysis, so that case is an error.
        """
        response = await self._get(
            f"/repos/{owner}/{repo}/git/trees/{tree_sha}",
            params={"recursive": "1"},
        )
        response.raise_for_status()
        data = response.json()
        if data.get("truncated"):
            raise RemoteTreeError(
                f"Tree for {owner}/{repo} is too large: GitHub returned a truncated listing"
            )
        return [TreeEntry.from_api(item) for item in data.get("tree", [])]

    async def fetch_file(self, owner: str, repo: str, path: str, ref: str) -> str:
        """GET /repos/{owner}/{repo}/contents/{path}?ref={ref}

        Raises PathIsDirectoryError for directories and
        ``httpx.HTTPStatusError`` for HTTP failures (including 404).
        """
        response = await self._get(
            f"/repos/{owner}/{repo}/contents/{quote(path)}",
            params={"ref": ref},
        )
        response.raise_for_status()
        data = response.json()
        if isinstance(data, list):
            raise PathIsDirectoryError(f"Path is a directory: {path}")
        if data.get("encoding") != "base64":
            # Files above 1 MB come back without inline content.
            raise ValueError(f"Content of {path} is not available inline")
        raw = base64.b64decode(data["content"].replace("\n", ""))
        return raw.decode("utf-8", errors="replace")

    async def fetch_file_content(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str,
    ) -> Optional[str]:
        """Like ``fetch_file`` but returns None when the file is unavailable."""
        try:
            return await self.fetch_file(owner, repo, path, ref)
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("File %s unavailable in %s/%s@%s: %s", path, owner, repo, ref, exc)
            return None


def _auth_headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }
