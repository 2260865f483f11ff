import time
from typing import Sequence, Tuple
from redis.exceptions import NoScriptError, RedisError
from storefront.rate_limiting.constants import FAIL_OPEN, USE_IN_MEMORY_FALLBACK, logger
from storefront.rate_limiting.lua_scripts import LUA_FIXED_WINDOW_INCR_AND_PEXPIRE
from storefront.rate_limiting import redis_client as redis_module
from storefront.rate_limiting.utils import _ensure_lua_loaded, _in_memory_allow

Decision = Tuple[bool, int, int]


def _decide(result: Sequence, limit: int, window: int) -> Decision:
    now = int(time.time())
    if not result or len(result) < 2:
        return True, max(0, limit - 1), now + window

    count, ttl_ms = int(result[0]), int(result[1])
    reset_ts = now + ttl_ms // 1000 if ttl_ms > 0 else now + window
    if count > limit:
        return False, 0, reset_ts
    return True, limit - count, reset_ts


async def redis_allow(key: str, limit: int, window: int) -> Decision:
    """(allowed, remaining, reset_ts) for one hit on ``key``."""
    rc = redis_module.redis_client
    window_ms = window * 1000

    try:
        try:
            sha = await _ensure_lua_loaded(rc)
            result = await rc.evalsha(sha, 1, key, window_ms)
        except NoScriptError:
            result = await rc.eval(LUA_FIXED_WINDOW_INCR_AND_PEXPIRE, 1, key, window_ms)
    except (RedisError, OSError) as e:
        logger.warning("rate_limit.redis_unavailable", extra={"key": key, "error": str(e)})
        if USE_IN_MEMORY_FALLBACK:
            return await _in_memory_allow(key, limit, window)
        return FAIL_OPEN, max(0, limit - 1) if FAIL_OPEN else 0, int(time.time()) + window

    return _decide(result, limit, window)
