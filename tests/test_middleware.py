import fakeredis.aioredis
import httpx
from fastapi import FastAPI

from marketplace.middleware import RateLimitMiddleware, RequestLoggingMiddleware


def _app(redis, limit):
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, redis=redis, max_per_minute=limit)
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/ping")
    async def ping():
        return {"pong": True}

    @app.get("/health")
    async def health():
        return {"status": "OK"}

    return app


async def test_rate_limit_blocks_after_quota():
    redis = fakeredis.aioredis.FakeRedis(decode_responses=True)
    transport = httpx.ASGITransport(app=_app(redis, limit=2))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        assert (await c.get("/ping")).status_code == 200
        assert (await c.get("/ping")).status_code == 200
        resp = await c.get("/ping")
        assert resp.status_code == 429
        assert resp.json()["code"] == "rate_limited"

        # health checks are never limited
        assert (await c.get("/health")).status_code == 200

        # a different bearer token has its own bucket
        resp = await c.get("/ping", headers={"Authorization": "Bearer another-user-token"})
        assert resp.status_code == 200


async def test_without_redis_everything_passes():
    transport = httpx.ASGITransport(app=_app(None, limit=1))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        for _ in range(3):
            assert (await c.get("/ping")).status_code == 200


async def test_request_id_is_echoed_or_generated():
    transport = httpx.ASGITransport(app=_app(None, limit=10))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        resp = await c.get("/ping", headers={"X-Request-Id": "abc-123"})
        assert resp.headers["X-Request-Id"] == "abc-123"

        resp = await c.get("/ping")
        assert resp.headers["X-Request-Id"]
