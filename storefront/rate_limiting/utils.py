import time
from fastapi import Request
from storefront.rate_limiting import constants
from storefront.rate_limiting.lua_scripts import LUA_FIXED_WINDOW_INCR_AND_PEXPIRE


async def _ensure_lua_loaded(rc):
    """Load the script into the redis script cache once and remember its sha."""
    if constants._script_sha is None:
        async with constants._script_lock:
            if constants._script_sha is None:
                constants._script_sha = await rc.script_load(LUA_FIXED_WINDOW_INCR_AND_PEXPIRE)
    return constants._script_sha


def _client_ip(request: Request) -> str:
    # first X-Forwarded-For hop, only meaningful behind a proxy that sets it
    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.client.host if request.client and request.client.host else "unknown"


def _identifier_from_request(request: Request):
    """(identifier, kind): the authenticated user id, else the client ip."""
    user_identifier = getattr(request.state, "user_identifier", None)
    if user_identifier:
        return str(user_identifier), "user"
    return _client_ip(request), "ip"


async def _in_memory_allow(key: str, limit: int, window: int):
    """Per-process fixed window, used only while redis is unreachable."""
    async with constants._in_memory_lock:
        now = int(time.time())
        slot = constants._in_memory_counters.get(key)
        if slot is None or slot["expires_at"] <= now:
            slot = constants._in_memory_counters[key] = {"count": 0, "expires_at": now + window}
        if slot["count"] >= limit:
            return False, 0, slot["expires_at"]
        slot["count"] += 1
        return True, limit - slot["count"], slot["expires_at"]
