

# Atomic compare-and-swap on a single key.
# ARGV[1] "1" when the key is expected to be absent, ARGV[2] expected value,
# ARGV[3] "1" to delete instead of write, ARGV[4] new value, ARGV[5] ttl in ms (0 = no expiry).
# Returns 1 when the swap happened, 0 otherwise.
LUA_COMPARE_AND_SWAP = """
local current = redis.call("GET", KEYS[1])
if ARGV[1] == "1" then
  if current then
    return 0
  end
else
  if (not current) or current ~= ARGV[2] then
    return 0
  end
end

if ARGV[3] == "1" then
  redis.call("DEL", KEYS[1])
else
  local ttl = tonumber(ARGV[5])
  if ttl > 0 then
    redis.call("SET", KEYS[1], ARGV[4], "PX", ttl)
  else
    redis.call("SET", KEYS[1], ARGV[4])
  end
end
return 1
"""


# Fixed-window check-and-increment on a JSON record {key, count, window_reset_at}.
# ARGV[1] limit, ARGV[2] window ms, ARGV[3] now ms, ARGV[4] grace ms added to the key ttl.
# Returns {allowed (0/1), count, window_reset_at}.
LUA_FIXED_WINDOW_HIT = """
local limit = tonumber(ARGV[1])
local window_ms = tonumber(ARGV[2])
local now_ms = tonumber(ARGV[3])
local grace_ms = tonumber(ARGV[4])

local count = 0
local reset_at = 0
local raw = redis.call("GET", KEYS[1])
if raw then
  local record = cjson.decode(raw)
  count = tonumber(record["count"])
  reset_at = tonumber(record["window_reset_at"])
end

if (not raw) or now_ms > reset_at then
  count = 1
  reset_at = now_ms + window_ms
elseif count >= limit then
  return {0, count, reset_at}
else
  count = count + 1
end

local ttl = reset_at - now_ms
if ttl < 1 then
  ttl = 1
end
local record = cjson.encode({key = KEYS[1], count = count, window_reset_at = reset_at})
redis.call("SET", KEYS[1], record, "PX", ttl + grace_ms)
return {1, count, reset_at}
"""
