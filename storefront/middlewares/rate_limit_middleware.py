import time
from typing import Sequence
from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from storefront.common.utils import build_error, json_error
from storefront.rate_limiting.constants import DEFAULT_LIMIT, DEFAULT_WINDOW, RATE_LIMIT_PREFIX
from storefront.rate_limiting.rate_limit_fixed_window import redis_allow
from storefront.rate_limiting.utils import _identifier_from_request
from storefront.middlewares.constants import logger


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, paths: Sequence[str], limit: int = DEFAULT_LIMIT, window: int = DEFAULT_WINDOW):
        super().__init__(app)
        self.paths = tuple(paths)
        self.limit = limit
        self.window = window

    async def dispatch(self, request: Request, call_next):

        if not any(request.url.path.startswith(p) for p in self.paths):
            return await call_next(request)

        identifier, scope = _identifier_from_request(request)
        key = f"{RATE_LIMIT_PREFIX}:{scope}:{identifier}:{request.url.path}"

        allowed, remaining, reset = await redis_allow(key, self.limit, self.window)

        if not allowed:
            retry_after = max(0, reset - int(time.time()))
            logger.warning("rate_limit.exceeded", extra={"scope": scope, "path": request.url.path})
            payload = build_error(code="RATE_LIMITED", details={"message": "Too many requests"})
            return json_error(payload, status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                              headers={"Retry-After": str(retry_after)})

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(reset)
        return response
