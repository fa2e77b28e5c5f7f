from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _unescape_pem(value: str) -> str:
    """Turn a single-line PEM (``\\n`` escapes) back into a multi-line key.

    Hosting dashboards usually only accept single-line env values, so the
    private key is often pasted with literal ``\\n`` sequences.
    """
    return value.replace("\\n", "\n")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The webhook secret and the skip flag are read once per process and
    handed to the webhook verifier as an immutable ``WebhookConfig``.
    An empty secret is never treated as "accept everything": the verifier
    rejects the request with a configuration error instead.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
    )

    # GitHub App: required for the analysis and proxy endpoints.
    # Private key is either the PEM contents or a path to a PEM file.
    github_app_id: str = ""
    github_private_key: str = ""
    github_private_key_path: str = ""
    github_webhook_secret: str = ""

    @field_validator("github_private_key", mode="before")
    @classmethod
    def unescape_private_key(cls, v: str) -> str:
        return _unescape_pem(v) if isinstance(v, str) else v

    # Debug-only bypass of webhook signature verification. Never enable
    # outside local development.
    webhook_skip_verification: bool = False

    # CORS: comma-separated list of allowed origins.
    cors_origins: list[str] = ["*"]

    # Rate limiting: SlowAPI format, e.g. "10/minute", "100/hour".
    analyze_rate_limit: str = "30/minute"

    # Sentry: leave blank to disable error capture.
    sentry_dsn: str = ""

    # App
    debug: bool = False

    def load_private_key(self) -> str:
        """Return the GitHub App private key, preferring the inline value."""
        if self.github_private_key:
            return self.github_private_key
        if self.github_private_key_path:
            return Path(self.github_private_key_path).expanduser().read_text(encoding="utf-8")
        raise ValueError(
            "GitHub App private key not configured. "
            "Set GITHUB_PRIVATE_KEY or GITHUB_PRIVATE_KEY_PATH."
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, read once on first use."""
    return Settings()
