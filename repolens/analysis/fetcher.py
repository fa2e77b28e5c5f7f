"""RepoFetcher protocol.

The analysis engine talks to the source-hosting platform only through this
interface. ``repolens.github.client.GitHubRepoFetcher`` is the production
implementation; tests pass in-memory fakes.
"""

from typing import Optional, Protocol, runtime_checkable

from repolens.analysis.types import TreeEntry


@runtime_checkable
class RepoFetcher(Protocol):
    """Read-only access to one repository's objects."""

    async def fetch_branch_head(self, owner: str, repo: str, ref: str) -> str:
        """Return the commit SHA the branch *ref* points at."""
        ...

    async def fetch_commit_tree(self, owner: str, repo: str, commit_sha: str) -> str:
        """Return the root tree SHA of a commit."""
        ...

    async def fetch_tree_recursive(self, owner: str, repo: str, tree_sha: str) -> list[TreeEntry]:
        """Return every entry of the tree, all pages aggregated."""
        ...

    async def fetch_file_content(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str,
    ) -> Optional[str]:
        """Return the decoded file text, or None for directories and missing paths."""
        ...
