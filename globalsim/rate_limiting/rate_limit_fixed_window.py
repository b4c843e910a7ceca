import time
from dataclasses import dataclass
from typing import Callable

from globalsim.cache.utils import build_key
from globalsim.rate_limiting.constants import EXPIRY_GRACE_MS, RATE_LIMIT_PREFIX, logger
from globalsim.store.base import KeyValueStore, StoreUnavailableError


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int  # unix epoch, milliseconds


class FixedWindowRateLimiter:
    """
    Fixed-window counter per key, stored as {key, count, window_reset_at}.

    The store applies check-and-increment as one atomic operation, so
    concurrent checks on one key can never hand out more than `limit` slots.
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time,
                 fail_open: bool = True):
        self._store = store
        self._clock = clock
        self.fail_open = fail_open

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    def retry_after_seconds(self, result: RateLimitResult) -> int:
        return max(0, -(-(result.reset_at - self.now_ms()) // 1000))

    async def check(self, key: str, limit: int, window_ms: int) -> RateLimitResult:
        """
        Returns RateLimitResult(allowed, remaining, reset_at).
        """
        now = self.now_ms()
        try:
            allowed, count, reset_at = await self._store.hit_fixed_window(
                build_key(RATE_LIMIT_PREFIX, key), limit, window_ms, now, grace_ms=EXPIRY_GRACE_MS)
        except StoreUnavailableError as e:
            logger.warning("rate_limit.store_unavailable", extra={"key": key, "error": str(e),
                                                                   "fail_open": self.fail_open})
            if self.fail_open:
                return RateLimitResult(True, max(0, limit - 1), now + window_ms)
            return RateLimitResult(False, 0, now + window_ms)

        if not allowed:
            return RateLimitResult(False, 0, reset_at)
        return RateLimitResult(True, max(0, limit - count), reset_at)
