import time
import uuid

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = structlog.get_logger("marketplace.http")

UNLIMITED_PATHS = ("/docs", "/openapi.json", "/health")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
        except Exception:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "request",
                method=request.method,
                path=request.url.path,
                status=500,
                duration_ms=round(duration_ms, 2),
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Id"] = request_id

        logger.info(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(duration_ms, 2),
            user_sub=getattr(request.state, "user_sub", None),
            user_roles=getattr(request.state, "user_roles", None),
        )
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed one-minute window per caller, counted in redis.

    Without a redis client every request passes through.
    """

    def __init__(self, app, redis=None, max_per_minute: int = 120):
        super().__init__(app)
        self.redis = redis
        self.max_per_minute = max_per_minute

    def _identity(self, request: Request) -> str:
        auth = request.headers.get("Authorization") or ""
        if auth.lower().startswith("bearer "):
            # tokens are per user, so the token tail is a stable enough bucket
            return f"token:{auth[-24:]}"
        ip = request.client.host if request.client else "unknown"
        return f"ip:{ip}"

    async def dispatch(self, request: Request, call_next):
        if self.redis is None:
            return await call_next(request)
        if request.url.path in UNLIMITED_PATHS or request.url.path.startswith("/docs/"):
            return await call_next(request)

        epoch_minute = int(time.time() // 60)
        key = f"rl:{self._identity(request)}:{epoch_minute}"

        count = await self.redis.incr(key)
        if count == 1:
            await self.redis.expire(key, 70)

        if count > self.max_per_minute:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests", "code": "rate_limited"},
            )

        return await call_next(request)
