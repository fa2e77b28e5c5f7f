"""SlowAPI rate limiter singleton.

The service has no user accounts, so limits are keyed on the client IP.
Only ``POST /analyze`` is limited: it fans out into dozens of GitHub API
calls per request.

Usage in route handlers:
    from repolens.core.limiter import limiter

    @router.post("/some-endpoint")
    @limiter.limit(settings.analyze_rate_limit)
    async def handler(request: Request, ...):
        ...

The `Request` parameter is required by SlowAPI even if the handler doesn't
use it directly; it uses it to extract the key.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, default_limits=[])
