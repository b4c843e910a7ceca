import time
from dataclasses import asdict
from typing import Callable, Optional

from globalsim.cache.utils import build_key
from globalsim.esim.constants import ESIM_KEY_PREFIX
from globalsim.esim.models import ESIMProfile
from globalsim.store.base import KeyValueStore


def _key(iccid: str) -> str:
    return build_key(ESIM_KEY_PREFIX, iccid)


class ESIMRepository:
    """Provisioned profiles keyed by ICCID; entries expire with the profile."""

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time):
        self._store = store
        self._clock = clock

    def _ttl_ms(self, profile: ESIMProfile) -> Optional[int]:
        return max(1, int((profile.expires_at - self._clock()) * 1000))

    async def get(self, iccid: str) -> Optional[ESIMProfile]:
        raw = await self._store.get(_key(iccid))
        return ESIMProfile(**raw) if raw is not None else None

    async def add(self, profile: ESIMProfile) -> bool:
        """Insert a new profile; False when the ICCID is already taken."""
        return await self._store.compare_and_swap(_key(profile.iccid), None, asdict(profile),
                                                  ttl_ms=self._ttl_ms(profile))

    async def replace(self, current: ESIMProfile, updated: ESIMProfile) -> bool:
        return await self._store.compare_and_swap(_key(current.iccid), asdict(current), asdict(updated),
                                                  ttl_ms=self._ttl_ms(updated))
