# Fixed window counter. The first hit in a window (or a key that lost its
# expiry) arms the window with ARGV[1] milliseconds.
# Returns {count, ttl_ms}
LUA_FIXED_WINDOW_INCR_AND_PEXPIRE = """
local count = redis.call("INCR", KEYS[1])
local ttl = redis.call("PTTL", KEYS[1])
if count == 1 or ttl < 0 then
  redis.call("PEXPIRE", KEYS[1], ARGV[1])
  ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""
