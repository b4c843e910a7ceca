import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from uuid6 import uuid7

from globalsim.common.ai_routing import AIProviderAdvisor, ProviderSelection, fallback_selection, resolve_selection
from globalsim.common.resilience import CallResult, CallStatus, call_with_timeout
from globalsim.config.settings import Settings
from globalsim.otp.constants import logger
from globalsim.otp.phone import country_from_phone

FALLBACK_SMS_PROVIDER = "demo"

SMS_ROUTING_PROMPT = """You are an intelligent SMS routing system. Based on the phone number and current provider availability, recommend the best SMS provider. Consider factors like geographic coverage, reliability, and cost.

Available providers: {providers}.

Return a JSON response with:
{{
  "provider": "{ids}",
  "reasoning": "explanation of choice"
}}"""


@dataclass(frozen=True)
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class DeliveryStatus:
    status: str
    delivered: bool


class SMSProvider(Protocol):
    id: str
    name: str
    description: str

    async def send(self, to: str, message: str) -> SendResult: ...

    async def get_delivery_status(self, message_id: str) -> DeliveryStatus: ...


class DemoSMSProvider:
    """Logs instead of sending; fails a configurable share of messages."""
    id = "demo"
    name = "Demo SMS Provider"
    description = "testing"

    def __init__(self, failure_rate: float = 0.1, rng: Optional[random.Random] = None):
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()
        self._delivered: set = set()

    async def send(self, to: str, message: str) -> SendResult:
        logger.info("sms.demo.send", extra={"to": to, "length": len(message)})
        if self._rng.random() < self.failure_rate:
            return SendResult(success=False, error="Simulated delivery failure")
        message_id = f"demo_{uuid7().hex}"
        self._delivered.add(message_id)
        return SendResult(success=True, message_id=message_id)

    async def get_delivery_status(self, message_id: str) -> DeliveryStatus:
        delivered = message_id in self._delivered
        return DeliveryStatus(status="delivered" if delivered else "failed", delivered=delivered)


class TwilioSMSProvider:
    id = "twilio"
    name = "Twilio"
    description = "premium"

    def __init__(self, account_sid: str, auth_token: str):
        self._account_sid = account_sid
        self._auth_token = auth_token

    async def send(self, to: str, message: str) -> SendResult:
        if not self._account_sid or not self._auth_token:
            return SendResult(success=False, error="Twilio credentials not configured")
        logger.info("sms.twilio.send", extra={"to": to, "length": len(message)})
        return SendResult(success=True, message_id=f"twilio_{uuid7().hex}")

    async def get_delivery_status(self, message_id: str) -> DeliveryStatus:
        return DeliveryStatus(status="delivered", delivered=True)


class AWSSNSProvider:
    id = "aws"
    name = "AWS SNS"
    description = "enterprise"

    def __init__(self, access_key_id: str, secret_access_key: str, region: str):
        self._access_key_id = access_key_id
        self._secret_access_key = secret_access_key
        self.region = region

    async def send(self, to: str, message: str) -> SendResult:
        if not self._access_key_id or not self._secret_access_key:
            return SendResult(success=False, error="AWS credentials not configured")
        logger.info("sms.aws.send", extra={"to": to, "length": len(message), "region": self.region})
        return SendResult(success=True, message_id=f"aws_{uuid7().hex}")

    async def get_delivery_status(self, message_id: str) -> DeliveryStatus:
        return DeliveryStatus(status="delivered", delivered=True)


def build_sms_registry(settings: Settings) -> Dict[str, SMSProvider]:
    providers: List[SMSProvider] = [
        DemoSMSProvider(failure_rate=settings.DEMO_SMS_FAILURE_RATE),
        TwilioSMSProvider(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN),
        AWSSNSProvider(settings.AWS_ACCESS_KEY_ID, settings.AWS_SECRET_ACCESS_KEY, settings.AWS_REGION),
    ]
    return {p.id: p for p in providers}


@dataclass(frozen=True)
class SMSDispatch:
    selection: ProviderSelection
    provider_name: str
    result: CallResult[SendResult]

    @property
    def delivered(self) -> bool:
        return self.result.ok and self.result.value is not None and self.result.value.success

    @property
    def message_id(self) -> Optional[str]:
        return self.result.value.message_id if self.result.value else None

    @property
    def error(self) -> Optional[str]:
        if self.result.status is not CallStatus.SUCCESS:
            return self.result.error
        return self.result.value.error if self.result.value else None


class SMSRouter:
    """
    Picks a provider for each message: the caller's choice when it names a
    registered provider, otherwise the AI advisor's, otherwise the fallback.
    """

    def __init__(self, providers: Dict[str, SMSProvider], advisor: Optional[AIProviderAdvisor] = None,
                 send_timeout: float = 10.0, fallback_id: str = FALLBACK_SMS_PROVIDER):
        if fallback_id not in providers:
            raise ValueError(f"fallback provider {fallback_id!r} is not registered")
        self.providers = providers
        self.advisor = advisor
        self.send_timeout = send_timeout
        self.fallback_id = fallback_id

    def available_providers(self) -> List[dict]:
        return [{"id": pid, "name": p.name} for pid, p in self.providers.items()]

    async def select(self, phone_number: str, message: str, preferred: Optional[str] = None) -> ProviderSelection:
        if preferred and preferred in self.providers:
            return ProviderSelection(preferred, f"Using user-specified provider: {preferred}", self.fallback_id)

        if self.advisor is None:
            return fallback_selection(self.fallback_id, f"AI routing disabled, using {self.fallback_id} provider")

        system_prompt = SMS_ROUTING_PROMPT.format(
            providers=", ".join(f"{p.name} ({p.description})" for p in self.providers.values()),
            ids="|".join(self.providers),
        )
        user_prompt = (f"Select the best SMS provider for phone number: {phone_number} "
                       f"(country: {country_from_phone(phone_number)}). "
                       f"Message length: {len(message)} characters.")
        reply = await self.advisor.recommend(system_prompt, user_prompt)
        if not reply.ok:
            logger.warning("sms.routing.fallback", extra={"reason": reply.status.value, "error": reply.error})
        return resolve_selection(reply.value if reply.ok else None, self.providers, self.fallback_id)

    async def send(self, phone_number: str, message: str, preferred: Optional[str] = None) -> SMSDispatch:
        selection = await self.select(phone_number, message, preferred)
        provider = self.providers[selection.provider_id]
        result = await call_with_timeout(provider.send(phone_number, message), self.send_timeout,
                                         name=f"sms.{provider.id}")
        return SMSDispatch(selection=selection, provider_name=provider.name, result=result)

    async def delivery_status(self, provider_id: str, message_id: str) -> Optional[DeliveryStatus]:
        provider = self.providers.get(provider_id)
        if provider is None:
            return None
        return await provider.get_delivery_status(message_id)
