import json
import re
from dataclasses import dataclass
from typing import Iterable, Optional

import httpx

from globalsim.common import logger
from globalsim.common.circuit_breaker import CircuitBreaker, CircuitOpenError
from globalsim.common.resilience import CallResult, CallStatus, call_with_timeout
from globalsim.config.settings import Settings

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(frozen=True)
class ProviderSelection:
    provider_id: str
    reasoning: str
    fallback_id: str

    @property
    def is_fallback(self) -> bool:
        return self.provider_id == self.fallback_id


def fallback_selection(fallback_id: str, reason: str) -> ProviderSelection:
    return ProviderSelection(provider_id=fallback_id, reasoning=reason, fallback_id=fallback_id)


def resolve_selection(reply: Optional[str], available: Iterable[str], fallback_id: str) -> ProviderSelection:
    """
    Turn a model reply of the form {"provider": "...", "reasoning": "..."} into a
    selection. Anything unusable (no reply, bad json, unknown id) yields the fallback.
    """
    if not reply:
        return fallback_selection(fallback_id, f"AI routing unavailable, using {fallback_id} provider as fallback")

    match = _JSON_OBJECT_RE.search(reply)
    try:
        payload = json.loads(match.group(0) if match else reply)
    except (TypeError, ValueError):
        return fallback_selection(fallback_id, f"AI routing returned malformed output, using {fallback_id} provider as fallback")

    provider_id = payload.get("provider") if isinstance(payload, dict) else None
    if not isinstance(provider_id, str) or provider_id not in set(available):
        return fallback_selection(fallback_id, f"AI routing chose unknown provider {provider_id!r}, using {fallback_id} provider as fallback")

    reasoning = payload.get("reasoning") or f"AI routing selected {provider_id}"
    return ProviderSelection(provider_id=provider_id, reasoning=str(reasoning), fallback_id=fallback_id)


class AIProviderAdvisor:
    """
    Single chat-completion call asking which provider to use. One attempt,
    bounded by a timeout, skipped entirely while the circuit is open.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None,
                 circuit: Optional[CircuitBreaker] = None):
        self.url = settings.AI_ROUTING_URL
        self.model = settings.AI_ROUTING_MODEL
        self.timeout = settings.AI_ROUTING_TIMEOUT_SECONDS
        self._customer_id = settings.AI_ROUTING_CUSTOMER_ID
        self._auth_token = settings.AI_ROUTING_AUTH_TOKEN
        self._transport = transport
        self.circuit = circuit or CircuitBreaker(
            "ai_routing",
            failure_threshold=settings.AI_ROUTING_FAILURE_THRESHOLD,
            recovery_timeout=settings.AI_ROUTING_RECOVERY_SECONDS,
        )

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._customer_id:
            headers["customerId"] = self._customer_id
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0.3,
            "max_tokens": 200,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(self.url, json=body, headers=self._headers())
            resp.raise_for_status()
            data = resp.json()
        return data["choices"][0]["message"]["content"]

    async def recommend(self, system_prompt: str, user_prompt: str) -> CallResult[str]:
        try:
            await self.circuit.before_call()
        except CircuitOpenError as e:
            logger.info("ai_routing.circuit_open", extra={"circuit": self.circuit.name})
            return CallResult(CallStatus.FAILURE, error=str(e))

        result = await call_with_timeout(self._complete(system_prompt, user_prompt), self.timeout, name="ai_routing")
        await self.circuit.after_call(result.ok)
        return result
