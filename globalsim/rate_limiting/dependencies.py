from typing import Optional
from fastapi import Request
from globalsim.cache.utils import build_key
from globalsim.common.custom_exceptions import RateLimitExceededError
from globalsim.rate_limiting.constants import logger
from globalsim.rate_limiting.rate_limit_fixed_window import RateLimitResult
from globalsim.rate_limiting.utils import client_ip_from_request


async def enforce_rate_limit(request: Request, action: str, limit: int, window_seconds: int,
                             subject: Optional[str] = None,
                             message: Optional[str] = None) -> RateLimitResult:
    """
    Counts this request against the (action, client ip[, subject]) window and
    raises RateLimitExceededError once the window is spent.
    """
    key = build_key(action, client_ip_from_request(request), subject)
    limiter = request.app.state.rate_limiter
    result = await limiter.check(key, limit, window_seconds * 1000)

    request.state.rate_limit = {"limit": limit, "remaining": result.remaining, "reset": result.reset_at}
    if not result.allowed:
        logger.warning("rate_limit.exceeded", extra={"action": action, "reset_at": result.reset_at})
        raise RateLimitExceededError(message, reset_at=result.reset_at,
                                     retry_after=limiter.retry_after_seconds(result))
    return result


def rate_limit_dependency(action: str, limit_setting: str, window_setting: str,
                          message: Optional[str] = None):
    """
    Route dependency for per-ip limits; limit and window are read from app settings
    so tests and deployments can tune them.
    """
    async def _dep(request: Request) -> RateLimitResult:
        settings = request.app.state.settings
        return await enforce_rate_limit(
            request, action,
            limit=getattr(settings, limit_setting),
            window_seconds=getattr(settings, window_setting),
            message=message,
        )
    return _dep
