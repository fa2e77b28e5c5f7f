"""GitHub webhook handling.

Verifies webhook signatures and turns accepted deliveries into typed
events. The webhook secret is shared between GitHub and this service; it
must never be logged or exposed.

Signature verification follows GitHub's scheme:
https://docs.github.com/en/webhooks/using-webhooks/validating-webhook-deliveries

The digest is always computed over the raw request bytes exactly as they
arrived, before any JSON parsing. ``X-Hub-Signature-256`` (HMAC-SHA256) is
checked first; the legacy ``X-Hub-Signature`` (HMAC-SHA1) header is only
consulted when the SHA256 header is absent.
"""

import enum
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from repolens.core.config import Settings
from repolens.core.errors import (
    InvalidSignatureError,
    MissingSignatureError,
    WebhookConfigurationError,
)

logger = logging.getLogger(__name__)


class SignatureAlgorithm(enum.Enum):
    SHA256 = "sha256"
    SHA1 = "sha1"

    @property
    def prefix(self) -> str:
        return f"{self.value}="

    @property
    def digestmod(self):
        return hashlib.sha256 if self is SignatureAlgorithm.SHA256 else hashlib.sha1


@dataclass(frozen=True)
class SignatureHeader:
    """The one signature header inspected for a delivery."""

    algorithm: SignatureAlgorithm
    value: str


@dataclass(frozen=True)
class WebhookConfig:
    """Immutable verification settings, built once from ``Settings``."""

    secret: str
    skip_verification: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebhookConfig":
        return cls(
            secret=settings.github_webhook_secret,
            skip_verification=settings.webhook_skip_verification,
        )


@dataclass(frozen=True)
class WebhookEvent:
    """An authenticated delivery.

    ``payload`` is None when the body was not valid JSON; that is logged
    but does not fail the delivery.
    """

    kind: str
    delivery_id: str
    payload: Optional[Any]


def compute_signature(secret: str, body: bytes, algorithm: SignatureAlgorithm) -> str:
    """Return the header value GitHub would send for *body*, e.g. ``sha256=<hex>``."""
    digest = hmac.new(secret.encode("utf-8"), body, algorithm.digestmod).hexdigest()
    return algorithm.prefix + digest


def select_signature_header(
    sig256: Optional[str],
    sig1: Optional[str],
) -> Optional[SignatureHeader]:
    """Pick the header to verify. SHA256 wins whenever it is present."""
    if sig256:
        return SignatureHeader(SignatureAlgorithm.SHA256, sig256)
    if sig1:
        return SignatureHeader(SignatureAlgorithm.SHA1, sig1)
    return None


def signatures_match(expected: str, received: str) -> bool:
    """Constant-time comparison of two header values.

    Unequal lengths are a mismatch and skip the content comparison; the
    length of the expected digest is fixed per algorithm so this reveals
    nothing about the secret.
    """
    expected_bytes = expected.encode("utf-8")
    received_bytes = received.encode("utf-8")
    if len(expected_bytes) != len(received_bytes):
        return False
    return hmac.compare_digest(expected_bytes, received_bytes)


def verify(
    raw_body: bytes,
    sig256: Optional[str],
    sig1: Optional[str],
    config: WebhookConfig,
) -> Optional[SignatureHeader]:
    """Authenticate a webhook delivery.

    Args:
        raw_body: Request body bytes exactly as received.
        sig256: Value of the X-Hub-Signature-256 header, if any.
        sig1: Value of the X-Hub-Signature header, if any.
        config: Secret and debug bypass flag.

    Returns:
        The header that was verified, or None when verification was skipped.

    Raises:
        WebhookConfigurationError: no secret is configured.
        MissingSignatureError: neither signature header was sent.
        InvalidSignatureError: the signature does not match the body.
    """
    if config.skip_verification:
        logger.warning(
            "WEBHOOK SIGNATURE VERIFICATION IS DISABLED: accepting unsigned "
            "delivery. Unset WEBHOOK_SKIP_VERIFICATION outside local development."
        )
        return None

    if not config.secret:
        raise WebhookConfigurationError("Webhook secret not configured")

    header = select_signature_header(sig256, sig1)
    if header is None:
        raise MissingSignatureError("Missing signature")

    expected = compute_signature(config.secret, raw_body, header.algorithm)
    if not signatures_match(expected, header.value):
        raise InvalidSignatureError("Invalid signature")

    return header


def parse_event(raw_body: bytes, kind: str, delivery_id: str) -> WebhookEvent:
    """Best-effort JSON parse of an already verified body."""
    try:
        payload = json.loads(raw_body)
    except (ValueError, RecursionError) as exc:
        logger.warning(
            "Malformed payload for %s delivery %s: %s", kind or "unknown", delivery_id, exc
        )
        payload = None
    return WebhookEvent(kind=kind, delivery_id=delivery_id, payload=payload)


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def summarize_event(event: WebhookEvent) -> dict:
    """Extract the loggable context of an event.

    Returns action, installation id, repository full name and sender login.
    Missing fields come back as None; the body itself is never included.
    """
    payload = _as_dict(event.payload)
    return {
        "event": event.kind,
        "delivery_id": event.delivery_id,
        "action": payload.get("action"),
        "installation_id": _as_dict(payload.get("installation")).get("id"),
        "repository": _as_dict(payload.get("repository")).get("full_name"),
        "sender": _as_dict(payload.get("sender")).get("login"),
    }
