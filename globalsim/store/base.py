from typing import Any, Dict, Optional, Protocol, Tuple

import orjson

Record = Dict[str, Any]


class StoreUnavailableError(RuntimeError):
    """The backing store could not be reached (timeout, network, auth)."""


class KeyValueStore(Protocol):
    """
    Async key-value store holding JSON-serializable dicts.

    compare_and_swap replaces the value at `key` only when the current value
    equals `expected`. expected=None means the key must be absent and
    new=None deletes the key. Returns True when the swap happened.

    hit_fixed_window counts one request against a fixed window in a single
    atomic step and returns (allowed, count, window_reset_at ms).
    """

    async def get(self, key: str) -> Optional[Record]: ...

    async def set(self, key: str, value: Record, ttl_ms: Optional[int] = None) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def compare_and_swap(self, key: str, expected: Optional[Record], new: Optional[Record],
                               ttl_ms: Optional[int] = None) -> bool: ...

    async def hit_fixed_window(self, key: str, limit: int, window_ms: int, now_ms: int,
                               grace_ms: int = 0) -> Tuple[bool, int, int]: ...

    async def close(self) -> None: ...


def serialize(value: Record) -> bytes:
    # sorted keys so equal dicts always encode to equal bytes (redis CAS compares bytes)
    return orjson.dumps(value, option=orjson.OPT_SORT_KEYS)


def deserialize(raw: bytes) -> Record:
    return orjson.loads(raw)
