"""Shared test fixtures for the RepoLens test suite.

The app is built with ``get_settings`` overridden so no environment or
``.env`` file leaks into tests. GitHub is never contacted: the analysis
route gets an in-memory ``FakeFetcher`` through the fetcher-factory
dependency, and the proxy routes are tested with the client patched.
"""

import hashlib
import hmac
from collections.abc import AsyncGenerator
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient

from repolens.analysis.router import get_fetcher_factory
from repolens.analysis.types import TreeEntry
from repolens.core.config import Settings, get_settings
from repolens.main import create_app

TEST_WEBHOOK_SECRET = "test-webhook-secret-123"


def sign(body: bytes, secret: str = TEST_WEBHOOK_SECRET, algorithm: str = "sha256") -> str:
    """Independently compute a GitHub signature header value."""
    digestmod = hashlib.sha256 if algorithm == "sha256" else hashlib.sha1
    return f"{algorithm}=" + hmac.new(secret.encode("utf-8"), body, digestmod).hexdigest()


def blob(path: str) -> TreeEntry:
    return TreeEntry(path=path, type="blob", sha=f"sha-{path}")


def tree(path: str) -> TreeEntry:
    return TreeEntry(path=path, type="tree", sha=f"sha-{path}")


class FakeFetcher:
    """In-memory RepoFetcher that records every call."""

    def __init__(
        self,
        entries: list[TreeEntry],
        files: Optional[dict[str, str]] = None,
        failing: tuple[str, ...] = (),
        tree_error: Optional[Exception] = None,
    ) -> None:
        self.entries = entries
        self.files = files or {}
        self.failing = set(failing)
        self.tree_error = tree_error
        self.calls: list[tuple] = []
        self.file_requests: list[str] = []
        self.entered = False
        self.exited = False

    async def __aenter__(self) -> "FakeFetcher":
        self.entered = True
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.exited = True

    async def fetch_branch_head(self, owner: str, repo: str, ref: str) -> str:
        self.calls.append(("branch", owner, repo, ref))
        return "commit-sha"

    async def fetch_commit_tree(self, owner: str, repo: str, commit_sha: str) -> str:
        self.calls.append(("commit", owner, repo, commit_sha))
        return "tree-sha"

    async def fetch_tree_recursive(self, owner: str, repo: str, tree_sha: str) -> list[TreeEntry]:
        self.calls.append(("tree", owner, repo, tree_sha))
        if self.tree_error is not None:
            raise self.tree_error
        return list(self.entries)

    async def fetch_file_content(self, owner: str, repo: str, path: str, ref: str) -> Optional[str]:
        self.file_requests.append(path)
        if path in self.failing:
            raise RuntimeError(f"boom: {path}")
        return self.files.get(path)


def _override_settings() -> Settings:
    return Settings(
        github_webhook_secret=TEST_WEBHOOK_SECRET,
        webhook_skip_verification=False,
        sentry_dsn="",
        debug=False,
    )


@pytest.fixture
def settings() -> Settings:
    return _override_settings()


@pytest.fixture
def fetcher() -> FakeFetcher:
    """A small Node + Docker repository."""
    return FakeFetcher(
        entries=[
            blob("package.json"),
            blob("Dockerfile"),
            blob("README.md"),
            blob("src/index.js"),
            tree("src"),
        ],
        files={
            "package.json": '{"name": "demo", "scripts": {"start": "node src/index.js"}}',
            "Dockerfile": "FROM node:20\nEXPOSE 3000\nCMD [\"npm\", \"start\"]\n",
            "README.md": "# demo\nUses process.env.PORT\n",
        },
    )


@pytest.fixture
def app(fetcher):
    """FastAPI app with settings and the GitHub fetcher overridden.

    The SlowAPI limiter keeps in-memory counters across app instances, so
    they are reset before each test.
    """
    from repolens.core.limiter import limiter

    limiter.reset()

    test_app = create_app()

    async def fake_factory(installation_id: int) -> FakeFetcher:
        return fetcher

    test_app.dependency_overrides[get_settings] = _override_settings
    test_app.dependency_overrides[get_fetcher_factory] = lambda: fake_factory
    return test_app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
