import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from globalsim.common.ai_routing import ProviderSelection
from globalsim.common.custom_exceptions import ConcurrentUpdateError, ProfileNotFoundError, UpstreamFailureError
from globalsim.common.resilience import CallStatus, call_with_timeout
from globalsim.esim.constants import FALLBACK_ESIM_PROVIDER, MAX_CAS_RETRIES, logger
from globalsim.esim.models import ESIMProfile
from globalsim.esim.providers import ESIMProvider, EnterpriseESIMProvider, select_esim_provider
from globalsim.esim.repository import ESIMRepository

ACTIVATION_FAILED = "Activation failed - please try again"


class ESIMManager:
    """
    Provisions profiles through the provider registry and tracks their
    status. Provider errors reach callers as a fixed message, never raw detail.
    """

    def __init__(self, providers: Dict[str, ESIMProvider], repository: ESIMRepository,
                 call_timeout: float = 10.0, fallback_id: str = FALLBACK_ESIM_PROVIDER,
                 clock: Callable[[], float] = time.time):
        if fallback_id not in providers:
            raise ValueError(f"fallback provider {fallback_id!r} is not registered")
        self.providers = providers
        self.repository = repository
        self.call_timeout = call_timeout
        self.fallback_id = fallback_id
        self._clock = clock

    def available_providers(self) -> List[dict]:
        return [{"id": pid, "name": p.name} for pid, p in self.providers.items()]

    def select(self, country: str, preferred: Optional[str] = None) -> ProviderSelection:
        if preferred and preferred in self.providers:
            return ProviderSelection(preferred, f"Using user-specified provider: {preferred}", self.fallback_id)
        enterprise = self.providers.get("enterprise")
        configured = isinstance(enterprise, EnterpriseESIMProvider) and enterprise.configured
        return select_esim_provider(country, configured, self.fallback_id)

    async def create_profile(self, country: str, plan: str, preferred: Optional[str] = None,
                             user_id: str = "demo-user") -> Tuple[ESIMProfile, ProviderSelection]:
        selection = self.select(country, preferred)
        provider = self.providers[selection.provider_id]

        result = await call_with_timeout(provider.create_profile(country, plan), self.call_timeout,
                                         name=f"esim.{provider.id}.create")
        if not result.ok:
            logger.error("esim.create.provider_failed", extra={"provider_id": provider.id,
                                                              "status": result.status.value, "error": result.error})
            raise UpstreamFailureError("Failed to create eSIM profile")

        profile = replace(result.value, user_id=user_id)
        if not await self.repository.add(profile):
            logger.error("esim.create.iccid_collision", extra={"iccid": profile.iccid})
            raise ConcurrentUpdateError()

        logger.info("esim.create.success", extra={"iccid": profile.iccid, "provider_id": provider.id})
        return profile, selection

    async def _get(self, iccid: str) -> Tuple[ESIMProfile, ESIMProvider]:
        profile = await self.repository.get(iccid)
        if profile is None:
            raise ProfileNotFoundError()
        provider = self.providers.get(profile.provider_id)
        if provider is None:
            logger.error("esim.provider_missing", extra={"iccid": iccid, "provider_id": profile.provider_id})
            raise UpstreamFailureError("eSIM provider unavailable")
        return profile, provider

    async def activate(self, iccid: str) -> ESIMProfile:
        # a lost swap means a concurrent call already settled the status, which the next read returns
        for _ in range(MAX_CAS_RETRIES):
            profile, provider = await self._get(iccid)
            if profile.status == "active":
                return profile

            result = await call_with_timeout(provider.activate_profile(profile), self.call_timeout,
                                             name=f"esim.{provider.id}.activate")
            if not result.ok or not result.value:
                logger.warning("esim.activate.failed", extra={"iccid": iccid, "status": result.status.value,
                                                              "error": result.error})
                message = "eSIM activation timed out" if result.status is CallStatus.TIMEOUT else ACTIVATION_FAILED
                raise UpstreamFailureError(message, status_code=400)

            updated = replace(profile, status="active", activated_at=self._clock())
            if await self.repository.replace(profile, updated):
                logger.info("esim.activate.success", extra={"iccid": iccid})
                return updated

        raise ConcurrentUpdateError()

    async def deactivate(self, iccid: str) -> ESIMProfile:
        for _ in range(MAX_CAS_RETRIES):
            profile, provider = await self._get(iccid)
            if profile.status == "inactive":
                return profile

            result = await call_with_timeout(provider.deactivate_profile(profile), self.call_timeout,
                                             name=f"esim.{provider.id}.deactivate")
            if not result.ok or not result.value:
                raise UpstreamFailureError("Deactivation failed - please try again", status_code=400)

            updated = replace(profile, status="inactive")
            if await self.repository.replace(profile, updated):
                logger.info("esim.deactivate.success", extra={"iccid": iccid})
                return updated

        raise ConcurrentUpdateError()

    async def usage(self, iccid: str) -> Tuple[int, int]:
        profile, provider = await self._get(iccid)
        result = await call_with_timeout(provider.get_usage(profile), self.call_timeout,
                                         name=f"esim.{provider.id}.usage")
        if not result.ok:
            raise UpstreamFailureError("Usage data unavailable")
        return result.value
