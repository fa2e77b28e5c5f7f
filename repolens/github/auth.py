"""GitHub App authentication.

Handles JWT generation for GitHub App auth. The private key is provided as
an env var or a file path and is never logged.

GitHub App auth flow:
1. Generate a JWT signed with the App's private key
2. Exchange the JWT for a short-lived installation access token
   (``repolens.github.client.get_installation_token``)
3. Use the installation token for API calls scoped to that installation
"""

import time
from typing import Optional

import jwt

from repolens.core.config import Settings, get_settings


def create_app_jwt(settings: Optional[Settings] = None) -> str:
    """Create a JWT for authenticating as the GitHub App.

    JWTs are valid for up to 10 minutes. We use 9 minutes
    to avoid clock-skew rejections.
    """
    settings = settings or get_settings()

    if not settings.github_app_id:
        raise ValueError("GitHub App credentials not configured. Set GITHUB_APP_ID.")
    private_key = settings.load_private_key()

    now = int(time.time())
    payload = {
        "iat": now - 60,  # Backdate 60s to handle clock skew
        "exp": now + (9 * 60),  # 9 minutes
        "iss": settings.github_app_id,
    }

    return jwt.encode(payload, private_key, algorithm="RS256")
