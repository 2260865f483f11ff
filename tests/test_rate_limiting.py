import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError
from storefront.middlewares.rate_limit_middleware import RateLimitMiddleware
from storefront.rate_limiting import constants
from storefront.rate_limiting import redis_client as redis_module
from storefront.rate_limiting.utils import _in_memory_allow

LIMIT = 3


class CountingRedis:
    """Enough of the redis client for the fixed window script."""

    def __init__(self):
        self.counters = {}

    async def script_load(self, script):
        return "sha-fixed-window"

    async def evalsha(self, sha, numkeys, key, pexpire_ms):
        self.counters[key] = self.counters.get(key, 0) + 1
        return [self.counters[key], pexpire_ms]


class DownRedis:
    async def script_load(self, script):
        raise RedisConnectionError("redis is down")


@pytest.fixture(autouse=True)
def fresh_limiter_state(monkeypatch):
    monkeypatch.setattr(constants, "_script_sha", None)
    monkeypatch.setattr(constants, "_in_memory_counters", {})


@pytest.fixture
async def limited_client():
    app = FastAPI()

    @app.get("/limited/ping")
    async def ping():
        return {"pong": True}

    @app.get("/open")
    async def open_route():
        return {"ok": True}

    app.add_middleware(RateLimitMiddleware, paths=["/limited"], limit=LIMIT, window=60)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_fixed_window_blocks_after_limit(limited_client, monkeypatch):
    fake = CountingRedis()
    monkeypatch.setattr(redis_module, "redis_client", fake)

    remaining = []
    for _ in range(LIMIT):
        res = await limited_client.get("/limited/ping")
        assert res.status_code == 200
        remaining.append(int(res.headers["X-RateLimit-Remaining"]))
    assert remaining == [2, 1, 0]

    res = await limited_client.get("/limited/ping")
    assert res.status_code == 429
    assert res.json()["error"]["code"] == "RATE_LIMITED"
    assert int(res.headers["Retry-After"]) <= 60

    # keys are per client and path
    assert list(fake.counters) == ["rl:ip:127.0.0.1:/limited/ping"]


@pytest.mark.asyncio
async def test_unlisted_paths_are_not_limited(limited_client, monkeypatch):
    fake = CountingRedis()
    monkeypatch.setattr(redis_module, "redis_client", fake)

    for _ in range(LIMIT + 2):
        res = await limited_client.get("/open")
        assert res.status_code == 200
        assert "X-RateLimit-Limit" not in res.headers
    assert fake.counters == {}


@pytest.mark.asyncio
async def test_forwarded_for_identifies_client(limited_client, monkeypatch):
    monkeypatch.setattr(redis_module, "redis_client", CountingRedis())

    for _ in range(LIMIT):
        await limited_client.get("/limited/ping", headers={"X-Forwarded-For": "10.0.0.1"})
    res = await limited_client.get("/limited/ping", headers={"X-Forwarded-For": "10.0.0.1"})
    assert res.status_code == 429

    res = await limited_client.get("/limited/ping", headers={"X-Forwarded-For": "10.0.0.2, 10.0.0.1"})
    assert res.status_code == 200


@pytest.mark.asyncio
async def test_falls_back_to_memory_when_redis_is_down(limited_client, monkeypatch):
    monkeypatch.setattr(redis_module, "redis_client", DownRedis())

    statuses = [(await limited_client.get("/limited/ping")).status_code for _ in range(LIMIT + 1)]
    assert statuses == [200] * LIMIT + [429]


@pytest.mark.asyncio
async def test_in_memory_window_expires(monkeypatch):
    clock = [1_000]
    monkeypatch.setattr("storefront.rate_limiting.utils.time.time", lambda: clock[0])

    assert (await _in_memory_allow("k", 1, 10))[0] is True
    assert (await _in_memory_allow("k", 1, 10))[0] is False
    clock[0] += 10
    allowed, remaining, reset = await _in_memory_allow("k", 1, 10)
    assert allowed is True
    assert remaining == 0
    assert reset == 1_010 + 10
