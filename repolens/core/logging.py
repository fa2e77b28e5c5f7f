"""Structured logging via structlog.

Configured once from ``create_app()``. Application modules keep using
``logging.getLogger(__name__)``; stdlib records are routed through a
``structlog.stdlib.ProcessorFormatter`` so they get the same timestamp,
level and request ID fields as native structlog loggers.

Renderer selection:
  debug=True  ``ConsoleRenderer`` with colours for local development.
  debug=False ``JSONRenderer`` for machine-parseable logs in production.

Secrets (webhook secret, private key, tokens) are never passed to a
logger; event kind, delivery ID and repository coordinates are.
"""

from __future__ import annotations

import logging
import sys

import structlog

from repolens.core.middleware import get_request_id


def _inject_request_id(
    logger: logging.Logger,
    method: str,
    event_dict: dict,
) -> dict:
    """Structlog processor: add request_id from the middleware ContextVar."""
    request_id = get_request_id()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _inject_request_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_structlog(debug: bool = False) -> None:
    """Configure structlog and the stdlib root logger.

    Safe to call more than once; the root handler is replaced each time.
    """
    renderer = (
        structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    )
    level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    # httpx logs every request at INFO, including token exchange URLs.
    logging.getLogger("httpx").setLevel(logging.WARNING)
