"""Repository analysis pipeline.

Stages, in order:
  A. Resolve ``ref`` -> commit -> tree and list the tree recursively.
     Strictly sequential; any failure aborts the analysis.
  B. Count extensions over blobs and rank primary languages.
  C. Collect files of interest (manifests, container/CI files, READMEs).
  D. Fetch at most ``max_files`` of them, priority files first. Per-file
     failures are dropped.
  E. Run the classification rules over the fetched text.

Nothing is cached between calls: the same tree and file contents always
produce the same ``AnalysisResult``.
"""

import logging

from repolens.analysis.fetcher import RepoFetcher
from repolens.analysis.heuristics import classify
from repolens.analysis.languages import detect_primary_languages, ext_counts_from_tree
from repolens.analysis.selection import (
    MAX_FETCHED_FILES,
    fetch_snippets,
    find_files_of_interest,
    order_for_fetch,
)
from repolens.analysis.types import AnalysisResult, TreeEntry
from repolens.core.errors import RemoteTreeError

logger = logging.getLogger(__name__)

DEFAULT_REF = "main"


class RepoAnalysisEngine:
    """Heuristic static analysis of a remote repository."""

    def __init__(self, fetcher: RepoFetcher, max_files: int = MAX_FETCHED_FILES) -> None:
        self.fetcher = fetcher
        self.max_files = max_files

    async def fetch_tree(self, owner: str, repo: str, ref: str) -> list[TreeEntry]:
        """Stage A. Raises RemoteTreeError if any step fails."""
        try:
            commit_sha = await self.fetcher.fetch_branch_head(owner, repo, ref)
            tree_sha = await self.fetcher.fetch_commit_tree(owner, repo, commit_sha)
            entries = await self.fetcher.fetch_tree_recursive(owner, repo, tree_sha)
        except RemoteTreeError:
            raise
        except Exception as exc:
            logger.error("Tree fetch failed for %s/%s@%s: %s", owner, repo, ref, exc)
            raise RemoteTreeError(f"Could not fetch tree for {owner}/{repo}@{ref}: {exc}") from exc
        logger.debug("Fetched %d tree entries for %s/%s@%s", len(entries), owner, repo, ref)
        return entries

    async def analyze(self, owner: str, repo: str, ref: str = DEFAULT_REF) -> AnalysisResult:
        entries = await self.fetch_tree(owner, repo, ref)

        ext_counts = ext_counts_from_tree(entries)
        primary_languages = detect_primary_languages(ext_counts)

        files_found = find_files_of_interest(entries)
        to_fetch = order_for_fetch(files_found, limit=self.max_files)
        snippets = await fetch_snippets(self.fetcher, owner, repo, to_fetch, ref)

        detected = classify(snippets, files_found, entries)

        logger.info(
            "Analysed %s/%s@%s: %d entries, %d files of interest, %d fetched",
            owner, repo, ref, len(entries), len(files_found), len(snippets),
        )
        return AnalysisResult(
            repo=f"{owner}/{repo}",
            ref=ref,
            primary_languages=primary_languages,
            ext_counts=ext_counts,
            files_found=files_found,
            detected=detected,
            snippets=snippets,
        )
