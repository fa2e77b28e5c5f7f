"""Repository analysis endpoint."""

import logging
from typing import Awaitable, Callable

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from repolens.analysis.engine import RepoAnalysisEngine
from repolens.analysis.schemas import AnalyzeRequest, AnalyzeResponse, ErrorResponse
from repolens.core.config import get_settings
from repolens.core.errors import RemoteTreeError
from repolens.core.limiter import limiter
from repolens.github import client as github_client
from repolens.github.client import GitHubRepoFetcher

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(tags=["analysis"])

FetcherFactory = Callable[[int], Awaitable[GitHubRepoFetcher]]


async def github_fetcher_factory(installation_id: int) -> GitHubRepoFetcher:
    """Mint an installation token and wrap it in a fetcher."""
    token = await github_client.get_installation_token(installation_id)
    return GitHubRepoFetcher(token)


def get_fetcher_factory() -> FetcherFactory:
    return github_fetcher_factory


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing installation_id, owner or repo"},
        500: {"model": ErrorResponse, "description": "Tree could not be fetched"},
    },
)
@limiter.limit(settings.analyze_rate_limit)
async def analyze(
    request: Request,
    body: AnalyzeRequest,
    fetcher_factory: FetcherFactory = Depends(get_fetcher_factory),
):
    """Run the heuristic analysis for ``owner/repo`` at ``ref``."""
    missing = body.missing_fields()
    if missing:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            "installation_id, owner and repo are required (missing: " + ", ".join(missing) + ")",
        )

    coords = f"{body.owner}/{body.repo}@{body.ref}"
    try:
        fetcher = await fetcher_factory(body.installation_id)
        async with fetcher:
            result = await RepoAnalysisEngine(fetcher).analyze(body.owner, body.repo, body.ref)
    except RemoteTreeError as exc:
        logger.warning("Analysis of %s failed: %s", coords, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))
    except Exception as exc:
        logger.exception("Analysis of %s (installation %s) failed", coords, body.installation_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc) or type(exc).__name__)

    return AnalyzeResponse(ok=True, analysis=result.to_dict())
