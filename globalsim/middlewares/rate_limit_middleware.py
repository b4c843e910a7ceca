from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


class RateLimitHeadersMiddleware(BaseHTTPMiddleware):
    """
    Limits are enforced per route (see rate_limiting.dependencies); this only
    publishes the outcome the route recorded on request.state.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        rl = getattr(request.state, "rate_limit", None)
        if rl:
            response.headers["X-RateLimit-Limit"] = str(rl["limit"])
            response.headers["X-RateLimit-Remaining"] = str(rl["remaining"])
            response.headers["X-RateLimit-Reset"] = str(rl["reset"])
        return response
