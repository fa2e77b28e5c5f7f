from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from repolens.analysis.router import router as analysis_router
from repolens.core.config import get_settings
from repolens.core.limiter import limiter
from repolens.core.middleware import RequestIdMiddleware, SecurityHeadersMiddleware
from repolens.github.router import router as github_router


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body/query validation failures as ``{"error": ...}`` with 400."""
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", []))
        messages.append(f"{loc}: {err.get('msg', 'validation error')}")
    return JSONResponse(status_code=400, content={"error": "; ".join(messages)})


def create_app() -> FastAPI:
    settings = get_settings()

    # ---------------------------------------------------------------------------
    # Logging and Sentry first so startup problems are captured
    # ---------------------------------------------------------------------------
    from repolens.core.logging import configure_structlog
    from repolens.core.sentry import init_sentry

    configure_structlog(debug=settings.debug)
    init_sentry(
        dsn=settings.sentry_dsn,
        environment="development" if settings.debug else "production",
    )

    _app = FastAPI(
        title="RepoLens API",
        description="GitHub App webhook receiver and heuristic repository analysis",
        version="0.1.0",
    )

    _app.state.limiter = limiter
    _app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    _app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # ---------------------------------------------------------------------------
    # Middleware (registered outermost → innermost; executed innermost → outermost)
    # None of these read the request body; /webhook needs the raw bytes.
    # ---------------------------------------------------------------------------
    _app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _app.add_middleware(SlowAPIMiddleware)
    _app.add_middleware(SecurityHeadersMiddleware)
    _app.add_middleware(RequestIdMiddleware)

    # ---------------------------------------------------------------------------
    # Routes
    # ---------------------------------------------------------------------------

    @_app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "ok"}

    _app.include_router(github_router)
    _app.include_router(analysis_router)

    return _app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import os

    import uvicorn

    uvicorn.run(
        "repolens.main:create_app",
        factory=True,
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 3000)),
    )
