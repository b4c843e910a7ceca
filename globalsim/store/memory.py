import asyncio
import time
from typing import Callable, Dict, Optional, Tuple

from globalsim.store.base import Record, deserialize, serialize


class InMemoryStore:
    """
    Per-process store. Values are kept serialized so callers never share
    mutable dicts with the store. Not distributed; lost on restart.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: Dict[str, Tuple[bytes, Optional[float]]] = {}
        self._lock = asyncio.Lock()

    def _read(self, key: str) -> Optional[bytes]:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return raw

    def _write(self, key: str, value: Record, ttl_ms: Optional[int]):
        expires_at = self._clock() + ttl_ms / 1000 if ttl_ms else None
        self._data[key] = (serialize(value), expires_at)

    async def get(self, key: str) -> Optional[Record]:
        async with self._lock:
            raw = self._read(key)
        return deserialize(raw) if raw is not None else None

    async def set(self, key: str, value: Record, ttl_ms: Optional[int] = None) -> None:
        async with self._lock:
            self._write(key, value, ttl_ms)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            present = self._read(key) is not None
            self._data.pop(key, None)
            return present

    async def compare_and_swap(self, key: str, expected: Optional[Record], new: Optional[Record],
                               ttl_ms: Optional[int] = None) -> bool:
        async with self._lock:
            current = self._read(key)
            if expected is None:
                if current is not None:
                    return False
            elif current is None or current != serialize(expected):
                return False

            if new is None:
                self._data.pop(key, None)
            else:
                self._write(key, new, ttl_ms)
            return True

    async def hit_fixed_window(self, key: str, limit: int, window_ms: int, now_ms: int,
                               grace_ms: int = 0) -> Tuple[bool, int, int]:
        async with self._lock:
            raw = self._read(key)
            record = deserialize(raw) if raw is not None else None

            if record is None or now_ms > record["window_reset_at"]:
                count, reset_at = 1, now_ms + window_ms
            elif record["count"] >= limit:
                return False, record["count"], record["window_reset_at"]
            else:
                count, reset_at = record["count"] + 1, record["window_reset_at"]

            self._write(key, {"key": key, "count": count, "window_reset_at": reset_at},
                        max(1, reset_at - now_ms) + grace_ms)
            return True, count, reset_at

    async def close(self) -> None:
        return None
