import asyncio
from typing import Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import NoScriptError, RedisError

from globalsim.common import logger
from globalsim.store.base import Record, StoreUnavailableError, deserialize, serialize
from globalsim.store.lua_scripts import LUA_COMPARE_AND_SWAP, LUA_FIXED_WINDOW_HIT

_SCRIPTS = {
    "compare_and_swap": LUA_COMPARE_AND_SWAP,
    "fixed_window": LUA_FIXED_WINDOW_HIT,
}


class RedisStore:
    """
    Redis backed store. TTLs are enforced by redis itself, and compare_and_swap
    and hit_fixed_window each run as a single Lua script, so they are atomic
    across processes.
    """

    def __init__(self, client: redis.Redis):
        self._client = client
        self._shas: Dict[str, Optional[str]] = {}
        self._script_lock = asyncio.Lock()

    async def _ensure_lua_loaded(self, name: str) -> Optional[str]:
        """
        Load a script into the redis script cache once and keep its SHA.
        """
        if self._shas.get(name):
            return self._shas[name]
        async with self._script_lock:
            if self._shas.get(name):
                return self._shas[name]
            try:
                self._shas[name] = await self._client.script_load(_SCRIPTS[name])
            except RedisError:
                # fall back to EVAL (slower) in calls
                self._shas[name] = None
            return self._shas[name]

    async def _run_script(self, name: str, key: str, *args):
        sha = await self._ensure_lua_loaded(name)
        try:
            if sha:
                try:
                    return await self._client.evalsha(sha, 1, key, *args)
                except NoScriptError:
                    # script cache was flushed on the server
                    self._shas[name] = None
            return await self._client.eval(_SCRIPTS[name], 1, key, *args)
        except (RedisError, asyncio.TimeoutError) as e:
            raise StoreUnavailableError(str(e)) from e

    async def get(self, key: str) -> Optional[Record]:
        try:
            raw = await self._client.get(key)
        except (RedisError, asyncio.TimeoutError) as e:
            raise StoreUnavailableError(str(e)) from e
        return deserialize(raw) if raw is not None else None

    async def set(self, key: str, value: Record, ttl_ms: Optional[int] = None) -> None:
        try:
            await self._client.set(key, serialize(value), px=ttl_ms or None)
        except (RedisError, asyncio.TimeoutError) as e:
            raise StoreUnavailableError(str(e)) from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._client.delete(key))
        except (RedisError, asyncio.TimeoutError) as e:
            raise StoreUnavailableError(str(e)) from e

    async def compare_and_swap(self, key: str, expected: Optional[Record], new: Optional[Record],
                               ttl_ms: Optional[int] = None) -> bool:
        res = await self._run_script(
            "compare_and_swap", key,
            "1" if expected is None else "0",
            serialize(expected) if expected is not None else b"",
            "1" if new is None else "0",
            serialize(new) if new is not None else b"",
            int(ttl_ms or 0),
        )
        return int(res) == 1

    async def hit_fixed_window(self, key: str, limit: int, window_ms: int, now_ms: int,
                               grace_ms: int = 0) -> Tuple[bool, int, int]:
        res = await self._run_script("fixed_window", key, int(limit), int(window_ms), int(now_ms), int(grace_ms))
        allowed, count, reset_at = (int(v) for v in res)
        return allowed == 1, count, reset_at

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except RedisError as e:
            logger.warning("store.redis.close_failed", extra={"error": str(e)})
