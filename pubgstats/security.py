"""Security: rate limiting and API key authentication for admin endpoints."""

import logging
from typing import Optional

from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.util import get_remote_address

from pubgstats.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

IS_PRODUCTION = settings.ENVIRONMENT.lower() == "production"


def get_rate_limit_key(request: Request) -> str:
    """
    Rate limit bucket: admin callers share one bucket, everyone else is keyed by IP.
    """
    api_key = request.headers.get(settings.API_KEY_HEADER)
    if settings.API_KEY and api_key == settings.API_KEY:
        return f"authenticated:{api_key[:8]}"
    return get_remote_address(request)


limiter = Limiter(key_func=get_rate_limit_key)

# API Key header for admin endpoints
api_key_header = APIKeyHeader(name=settings.API_KEY_HEADER, auto_error=False)


async def verify_api_key(
    api_key: Optional[str] = Security(api_key_header),
) -> bool:
    """
    Verify API key for admin endpoints.

    Empty API_KEY blocks all admin requests in production and allows all of
    them in development.
    """
    if not settings.API_KEY:
        if IS_PRODUCTION:
            logger.error("API_KEY not configured in production - blocking admin access")
            raise HTTPException(
                status_code=503,
                detail="Service misconfigured. Admin access disabled.",
            )
        return True

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail=f"Missing API key. Provide it via {settings.API_KEY_HEADER} header.",
        )

    if api_key != settings.API_KEY:
        logger.warning("Invalid API key attempt")
        raise HTTPException(status_code=403, detail="Invalid API key")

    return True
