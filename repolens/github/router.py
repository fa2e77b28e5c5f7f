"""GitHub webhook and installation proxy endpoints.

The webhook endpoint is public but verifies the X-Hub-Signature-256
(or legacy X-Hub-Signature) header against the raw request body before
anything else reads it.

The proxy endpoints pass installation, repository, tree and file listings
straight through from the GitHub API using an installation token.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse

from repolens.core.config import Settings, get_settings
from repolens.core.errors import WebhookConfigurationError, WebhookError
from repolens.github import client as github_client
from repolens.github.client import GitHubRepoFetcher
from repolens.github.webhooks import WebhookConfig, parse_event, summarize_event, verify

logger = logging.getLogger(__name__)

router = APIRouter(tags=["github"])

JSON_MEDIA_TYPE = "application/json"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _media_type(request: Request) -> str:
    return request.headers.get("content-type", "").split(";", 1)[0].strip().lower()


# ---------------------------------------------------------------------------
# Webhooks (public, signature-verified)
# ---------------------------------------------------------------------------


@router.post("/webhook", response_class=PlainTextResponse)
async def handle_webhook(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(default=None),
    x_hub_signature: Optional[str] = Header(default=None),
    x_github_event: str = Header(default=""),
    x_github_delivery: str = Header(default=""),
    settings: Settings = Depends(get_settings),
) -> PlainTextResponse:
    """Authenticate a GitHub App webhook delivery and acknowledge it.

    Responses: 200 ``ok``; 401 on a missing or wrong signature; 415 for
    non-JSON bodies; 500 when no secret is configured.
    """
    if _media_type(request) != JSON_MEDIA_TYPE:
        return PlainTextResponse(
            "Unsupported media type", status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
        )

    body = await request.body()

    try:
        verify(body, x_hub_signature_256, x_hub_signature, WebhookConfig.from_settings(settings))
    except WebhookConfigurationError as exc:
        logger.error(
            "Cannot verify %s delivery %s: %s", x_github_event, x_github_delivery, exc
        )
        return PlainTextResponse(str(exc), status_code=exc.status_code)
    except WebhookError as exc:
        logger.warning(
            "Rejected %s delivery %s: %s", x_github_event, x_github_delivery, exc
        )
        return PlainTextResponse(str(exc), status_code=exc.status_code)

    try:
        event = parse_event(body, x_github_event, x_github_delivery)
        context = summarize_event(event)
    except Exception:
        logger.exception("Failed to handle %s delivery %s", x_github_event, x_github_delivery)
        return PlainTextResponse(
            "Internal error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    logger.info(
        "Accepted %s delivery %s (action=%s installation=%s repository=%s sender=%s)",
        context["event"],
        context["delivery_id"],
        context["action"],
        context["installation_id"],
        context["repository"],
        context["sender"],
    )
    return PlainTextResponse("ok")


# ---------------------------------------------------------------------------
# Installation / repository proxies
# ---------------------------------------------------------------------------


@router.get("/installations")
async def list_installations():
    """List installations of the GitHub App."""
    try:
        return await github_client.list_installations()
    except Exception as exc:
        logger.exception("Listing installations failed")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


@router.get("/installations/{installation_id}/repos")
async def list_installation_repos(installation_id: int):
    """List repos available via a GitHub App installation."""
    try:
        token = await github_client.get_installation_token(installation_id)
        return await github_client.list_installation_repos(token)
    except Exception as exc:
        logger.exception("Listing repos for installation %d failed", installation_id)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))


@router.get("/repos/{owner}/{repo}/tree")
async def get_repo_tree(
    owner: str,
    repo: str,
    installation_id: Optional[int] = Query(default=None),
    ref: str = Query(default="main"),
):
    """Recursive tree listing of ``owner/repo`` at ``ref``."""
    if installation_id is None:
        return _error(status.HTTP_400_BAD_REQUEST, "installation_id query param required")

    try:
        token = await github_client.get_installation_token(installation_id)
        async with GitHubRepoFetcher(token) as fetcher:
            commit_sha = await fetcher.fetch_branch_head(owner, repo, ref)
            tree_sha = await fetcher.fetch_commit_tree(owner, repo, commit_sha)
            entries = await fetcher.fetch_tree_recursive(owner, repo, tree_sha)
    except Exception as exc:
        logger.exception("Tree fetch for %s/%s@%s failed", owner, repo, ref)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    return [entry.to_dict() for entry in entries]


@router.get("/repos/{owner}/{repo}/file")
async def get_repo_file(
    owner: str,
    repo: str,
    installation_id: Optional[int] = Query(default=None),
    path: Optional[str] = Query(default=None),
    ref: str = Query(default="main"),
):
    """Decoded content of one file."""
    if installation_id is None:
        return _error(status.HTTP_400_BAD_REQUEST, "installation_id query param required")
    if not path:
        return _error(status.HTTP_400_BAD_REQUEST, "path query param required")

    try:
        token = await github_client.get_installation_token(installation_id)
        async with GitHubRepoFetcher(token) as fetcher:
            content = await fetcher.fetch_file(owner, repo, path, ref)
    except Exception as exc:
        logger.exception("File fetch for %s in %s/%s@%s failed", path, owner, repo, ref)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc))

    return {"path": path, "content": content}
