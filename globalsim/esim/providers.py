import asyncio
import random
import time
from typing import Dict, List, Optional, Protocol, Tuple

from uuid6 import uuid7

from globalsim.common.ai_routing import ProviderSelection
from globalsim.config.settings import Settings
from globalsim.esim.constants import (
    DEFAULT_DATA_LIMIT, ENTERPRISE_COUNTRIES, FALLBACK_ESIM_PROVIDER, PLAN_DATA_LIMITS, logger,
)
from globalsim.esim.models import ESIMProfile
from globalsim.esim.utils import (
    generate_activation_code, generate_iccid, generate_msisdn, lpa_activation_string, qr_data_url,
)

DAY_SECONDS = 24 * 60 * 60


class ESIMProviderError(RuntimeError):
    pass


class ESIMProvider(Protocol):
    id: str
    name: str

    async def create_profile(self, country: str, plan: str) -> ESIMProfile: ...

    async def activate_profile(self, profile: ESIMProfile) -> bool: ...

    async def deactivate_profile(self, profile: ESIMProfile) -> bool: ...

    async def get_usage(self, profile: ESIMProfile) -> Tuple[int, int]: ...


def plan_data_limit(plan: str) -> int:
    return PLAN_DATA_LIMITS.get(plan, DEFAULT_DATA_LIMIT)


class DemoESIMProvider:
    """Simulated provisioning with a configurable activation delay and failure share."""
    id = "demo"
    name = "Demo eSIM Provider"
    smdp_host = "activation.provider.com"

    def __init__(self, activation_delay: float = 1.0, failure_rate: float = 0.1,
                 profile_ttl_days: int = 30, rng: Optional[random.Random] = None):
        self.activation_delay = activation_delay
        self.failure_rate = failure_rate
        self.profile_ttl_days = profile_ttl_days
        self._rng = rng or random.Random()

    async def create_profile(self, country: str, plan: str) -> ESIMProfile:
        activation_code = generate_activation_code()
        now = time.time()
        profile = ESIMProfile(
            id=f"esim_{uuid7().hex}",
            iccid=generate_iccid(),
            msisdn=generate_msisdn(country),
            country=country,
            provider=self.name,
            provider_id=self.id,
            dataplan=plan,
            activation_code=activation_code,
            qr_code=qr_data_url(lpa_activation_string(self.smdp_host, activation_code)),
            created_at=now,
            expires_at=now + self.profile_ttl_days * DAY_SECONDS,
            data_limit=plan_data_limit(plan),
        )
        logger.info("esim.demo.created", extra={"country": country, "plan": plan})
        return profile

    async def activate_profile(self, profile: ESIMProfile) -> bool:
        if self.activation_delay:
            await asyncio.sleep(self.activation_delay)
        if self._rng.random() < self.failure_rate:
            raise ESIMProviderError("Activation failed - please try again")
        logger.info("esim.demo.activated", extra={"iccid": profile.iccid})
        return True

    async def deactivate_profile(self, profile: ESIMProfile) -> bool:
        logger.info("esim.demo.deactivated", extra={"iccid": profile.iccid})
        return True

    async def get_usage(self, profile: ESIMProfile) -> Tuple[int, int]:
        used = int(self._rng.random() * profile.data_limit * 0.8)
        return used, profile.data_limit - used


class EnterpriseESIMProvider:
    id = "enterprise"
    name = "Enterprise eSIM Provider"
    smdp_host = "enterprise.esim.com"

    def __init__(self, api_key: str, base_url: str, profile_ttl_days: int = 30):
        self._api_key = api_key
        self.base_url = base_url
        self.profile_ttl_days = profile_ttl_days

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def create_profile(self, country: str, plan: str) -> ESIMProfile:
        if not self.configured:
            raise ESIMProviderError("eSIM provider credentials not configured")

        activation_code = f"ENT_{uuid7().hex}"
        now = time.time()
        profile = ESIMProfile(
            id=f"ent_esim_{uuid7().hex}",
            iccid=generate_iccid(),
            msisdn=generate_msisdn(country, local_prefix="555"),
            country=country,
            provider=self.name,
            provider_id=self.id,
            dataplan=plan,
            activation_code=activation_code,
            qr_code=qr_data_url(lpa_activation_string(self.smdp_host, activation_code)),
            created_at=now,
            expires_at=now + self.profile_ttl_days * DAY_SECONDS,
            data_limit=plan_data_limit(plan),
        )
        logger.info("esim.enterprise.created", extra={"country": country, "plan": plan})
        return profile

    async def activate_profile(self, profile: ESIMProfile) -> bool:
        logger.info("esim.enterprise.activated", extra={"iccid": profile.iccid})
        return True

    async def deactivate_profile(self, profile: ESIMProfile) -> bool:
        logger.info("esim.enterprise.deactivated", extra={"iccid": profile.iccid})
        return True

    async def get_usage(self, profile: ESIMProfile) -> Tuple[int, int]:
        return profile.data_used, max(0, profile.data_limit - profile.data_used)


def build_esim_registry(settings: Settings) -> Dict[str, ESIMProvider]:
    providers: List[ESIMProvider] = [
        DemoESIMProvider(activation_delay=settings.ESIM_ACTIVATION_DELAY_SECONDS,
                         failure_rate=settings.ESIM_ACTIVATION_FAILURE_RATE,
                         profile_ttl_days=settings.ESIM_PROFILE_TTL_DAYS),
        EnterpriseESIMProvider(settings.ESIM_PROVIDER_API_KEY, settings.ESIM_PROVIDER_URL,
                               profile_ttl_days=settings.ESIM_PROFILE_TTL_DAYS),
    ]
    return {p.id: p for p in providers}


def select_esim_provider(country: str, enterprise_configured: bool,
                         fallback_id: str = FALLBACK_ESIM_PROVIDER) -> ProviderSelection:
    if enterprise_configured and country in ENTERPRISE_COUNTRIES:
        return ProviderSelection("enterprise",
                                 f"Enterprise provider selected for {country} - premium coverage available",
                                 fallback_id)
    return ProviderSelection(fallback_id, f"Demo provider selected for {country} - testing environment", fallback_id)
