"""Sentry SDK integration.

Captures unhandled exceptions from the analysis and proxy routes without
leaking secrets:
  - ``send_default_pii=False``: no client IPs or headers by default.
  - ``before_send`` redacts any ``extra`` / request field whose key looks
    like a secret (webhook secret, private key, tokens, DSN).
  - Request bodies are dropped entirely: webhook payloads are signed
    customer data and have no diagnostic value here.
  - No-op when SENTRY_DSN is empty.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

_SENSITIVE_KEYS = frozenset({"secret", "private_key", "password", "token", "dsn", "signature"})


def _scrub_dict(d: dict[str, Any]) -> None:
    """Recursively redact sensitive values in-place."""
    for key in list(d.keys()):
        if any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS):
            d[key] = "[REDACTED]"
        elif isinstance(d[key], dict):
            _scrub_dict(d[key])


def _scrub_secrets(event: dict[str, Any], hint: Any) -> dict[str, Any]:
    """Sentry before_send hook."""
    _scrub_dict(event.get("extra", {}))
    request = event.get("request", {})
    if isinstance(request, dict):
        request.pop("data", None)
        headers = request.get("headers")
        if isinstance(headers, dict):
            _scrub_dict(headers)
    return event


def init_sentry(dsn: str, environment: str = "development") -> None:
    """Initialise the Sentry SDK, or do nothing when *dsn* is blank."""
    if not dsn or not dsn.strip():
        logger.debug("Sentry DSN not configured; skipping initialisation")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[FastApiIntegration()],
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=_scrub_secrets,
    )
    logger.info("Sentry initialised (environment=%s)", environment)
