"""Files-of-interest selection and bounded content fetching.

Only a handful of well-known manifest, container and CI files are read.
The number of content requests per analysis is capped at
``MAX_FETCHED_FILES`` so very large repositories cannot fan out into
hundreds of API calls.
"""

import asyncio
import logging
from typing import Iterable, Optional

from repolens.analysis.fetcher import RepoFetcher
from repolens.analysis.types import FileSnippet, TreeEntry

logger = logging.getLogger(__name__)

# Root-level files worth reading. Matched against the full tree path.
PATHS_OF_INTEREST: list[str] = [
    "package.json",
    "requirements.txt",
    "Pipfile",
    "pyproject.toml",
    "setup.py",
    "go.mod",
    "Cargo.toml",
    "Gemfile",
    "composer.json",
    "Dockerfile",
    "docker-compose.yml",
    ".env.example",
    ".env.sample",
    "Makefile",
    "Procfile",
]

CI_PATH_PREFIX = ".github/workflows/"

# Manifests and container files are fetched before anything else.
FETCH_PRIORITY: list[str] = [
    "package.json",
    "pyproject.toml",
    "setup.py",
    "requirements.txt",
    "Pipfile",
    "Dockerfile",
    "docker-compose.yml",
    ".env.example",
    ".env.sample",
    "Makefile",
]

MAX_FETCHED_FILES = 40

TRUNCATION_MARKER = "\n...[truncated]"
DEFAULT_SNIPPET_CHARS = 800
ANALYSIS_SNIPPET_CHARS = 2000
README_SNIPPET_CHARS = 1500


def short_snippet(text: Optional[str], max_chars: int = DEFAULT_SNIPPET_CHARS) -> str:
    if not text:
        return ""
    if len(text) > max_chars:
        return text[:max_chars] + TRUNCATION_MARKER
    return text


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def is_path_of_interest(path: str) -> bool:
    return (
        path in PATHS_OF_INTEREST
        or path.startswith(CI_PATH_PREFIX)
        or "readme" in _basename(path).lower()
    )


def find_files_of_interest(entries: Iterable[TreeEntry]) -> list[str]:
    """Blob paths worth fetching, de-duplicated in first-seen order."""
    found: dict[str, None] = {}
    for entry in entries:
        if entry.is_blob and is_path_of_interest(entry.path):
            found.setdefault(entry.path, None)
    return list(found)


def order_for_fetch(files: list[str], limit: int = MAX_FETCHED_FILES) -> list[str]:
    """Priority files first (in priority order), then the rest as discovered."""
    present = set(files)
    ordered = [path for path in FETCH_PRIORITY if path in present]
    ordered.extend(path for path in files if path not in FETCH_PRIORITY)
    return ordered[:limit]


async def _fetch_one(
    fetcher: RepoFetcher,
    owner: str,
    repo: str,
    path: str,
    ref: str,
    max_chars: int,
) -> Optional[FileSnippet]:
    try:
        text = await fetcher.fetch_file_content(owner, repo, path, ref)
    except Exception as exc:
        # One unreadable file must not sink the analysis.
        logger.info("Skipping %s in %s/%s@%s: %s", path, owner, repo, ref, exc)
        return None
    if not text:
        return None
    return FileSnippet(path=path, text=short_snippet(text, max_chars))


async def fetch_snippets(
    fetcher: RepoFetcher,
    owner: str,
    repo: str,
    paths: list[str],
    ref: str,
    max_chars: int = ANALYSIS_SNIPPET_CHARS,
) -> dict[str, str]:
    """Fetch *paths* concurrently and return truncated texts keyed by path.

    The result follows the order of *paths*, whatever order the requests
    complete in. Missing, empty or failing files are left out.
    """
    results = await asyncio.gather(
        *(_fetch_one(fetcher, owner, repo, path, ref, max_chars) for path in paths)
    )
    return {snippet.path: snippet.text for snippet in results if snippet is not None}
