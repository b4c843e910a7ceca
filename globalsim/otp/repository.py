import time
from dataclasses import asdict, dataclass, replace
from typing import Callable, Optional

from globalsim.cache.utils import build_key
from globalsim.otp.constants import OTP_KEY_PREFIX, RECORD_TTL_GRACE_SECONDS
from globalsim.store.base import KeyValueStore


@dataclass(frozen=True)
class OTPRecord:
    phone_number: str
    code_hash: str
    expires_at: float
    attempts: int = 0

    def with_attempt(self) -> "OTPRecord":
        return replace(self, attempts=self.attempts + 1)


def _key(phone_number: str) -> str:
    return build_key(OTP_KEY_PREFIX, phone_number)


class OTPRepository:
    """Pending OTP records keyed by normalized phone number, one per number."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        self._store = store
        self._clock = clock

    def _ttl_ms(self, record: OTPRecord) -> int:
        return int(max(0.0, record.expires_at - self._clock()) * 1000) + RECORD_TTL_GRACE_SECONDS * 1000

    async def get(self, phone_number: str) -> Optional[OTPRecord]:
        raw = await self._store.get(_key(phone_number))
        return OTPRecord(**raw) if raw is not None else None

    async def save(self, record: OTPRecord) -> None:
        """Create or overwrite the pending record for the number."""
        await self._store.set(_key(record.phone_number), asdict(record), ttl_ms=self._ttl_ms(record))

    async def replace(self, current: OTPRecord, updated: OTPRecord) -> bool:
        return await self._store.compare_and_swap(
            _key(current.phone_number), asdict(current), asdict(updated), ttl_ms=self._ttl_ms(updated))

    async def consume(self, current: OTPRecord) -> bool:
        """Delete the record only if it is still the one that was read."""
        return await self._store.compare_and_swap(_key(current.phone_number), asdict(current), None)
