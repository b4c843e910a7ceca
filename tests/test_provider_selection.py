import asyncio
import json

import httpx
import pytest

from globalsim.common.ai_routing import AIProviderAdvisor, resolve_selection
from globalsim.common.circuit_breaker import CircuitBreaker, CircuitOpenError
from globalsim.common.resilience import CallStatus, call_with_timeout
from globalsim.config.settings import Settings
from globalsim.esim.providers import select_esim_provider
from globalsim.otp.providers import AWSSNSProvider, SMSRouter, TwilioSMSProvider
from tests.helpers import FakeClock, OutboxSMSProvider

AVAILABLE = ("demo", "twilio", "aws")


def completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def advisor_for(handler, **overrides) -> AIProviderAdvisor:
    settings = Settings(AI_ROUTING_TIMEOUT_SECONDS=1.0, **overrides)
    return AIProviderAdvisor(settings, transport=httpx.MockTransport(handler))


def sms_providers():
    return {
        "demo": OutboxSMSProvider(),
        "twilio": TwilioSMSProvider("sid", "token"),
        "aws": AWSSNSProvider("", "", "us-east-1"),
    }


def test_resolve_selection_accepts_known_provider():
    selection = resolve_selection('{"provider": "twilio", "reasoning": "best US coverage"}', AVAILABLE, "demo")
    assert selection.provider_id == "twilio"
    assert selection.reasoning == "best US coverage"
    assert not selection.is_fallback


def test_resolve_selection_finds_json_inside_prose():
    reply = 'Sure! Here you go:\n```json\n{"provider": "aws", "reasoning": "enterprise"}\n```'
    assert resolve_selection(reply, AVAILABLE, "demo").provider_id == "aws"


@pytest.mark.parametrize("reply", [
    None,
    "",
    "no json here",
    '{"provider": "azure", "reasoning": "not registered"}',
    '{"reasoning": "forgot the provider"}',
    '["twilio"]',
    '{"provider": 3}',
])
def test_resolve_selection_falls_back(reply):
    selection = resolve_selection(reply, AVAILABLE, "demo")
    assert selection.provider_id == "demo"
    assert selection.is_fallback
    assert selection.reasoning


async def test_router_prefers_caller_choice():
    router = SMSRouter(sms_providers())
    selection = await router.select("+15551234567", "hi", preferred="twilio")
    assert selection.provider_id == "twilio"
    assert "user-specified" in selection.reasoning


async def test_router_without_advisor_uses_fallback():
    router = SMSRouter(sms_providers())
    selection = await router.select("+15551234567", "hi")
    assert selection.provider_id == "demo"


async def test_router_follows_advisor():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=completion('{"provider": "twilio", "reasoning": "premium route"}'))

    router = SMSRouter(sms_providers(), advisor=advisor_for(handler, AI_ROUTING_AUTH_TOKEN="tok"))
    selection = await router.select("+15551234567", "hello")

    assert selection.provider_id == "twilio"
    assert selection.reasoning == "premium route"
    assert seen["auth"] == "Bearer tok"
    assert "+15551234567" in seen["body"]["messages"][1]["content"]


async def test_router_falls_back_on_advisor_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"error": "bad gateway"})

    router = SMSRouter(sms_providers(), advisor=advisor_for(handler))
    selection = await router.select("+15551234567", "hello")
    assert selection.provider_id == "demo"
    assert selection.is_fallback


async def test_router_falls_back_on_advisor_timeout():
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, json=completion('{"provider": "twilio"}'))

    settings = Settings(AI_ROUTING_TIMEOUT_SECONDS=0.05)
    advisor = AIProviderAdvisor(settings, transport=httpx.MockTransport(slow))
    selection = await SMSRouter(sms_providers(), advisor=advisor).select("+15551234567", "hello")
    assert selection.provider_id == "demo"


async def test_send_reports_unconfigured_provider():
    router = SMSRouter(sms_providers())
    dispatch = await router.send("+15551234567", "hello", preferred="aws")
    assert not dispatch.delivered
    assert dispatch.error == "AWS credentials not configured"


async def test_advisor_circuit_opens_after_failures():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(500)

    advisor = advisor_for(handler, AI_ROUTING_FAILURE_THRESHOLD=2, AI_ROUTING_RECOVERY_SECONDS=60)
    for _ in range(2):
        assert (await advisor.recommend("sys", "user")).status is CallStatus.FAILURE
    assert advisor.circuit.state == "OPEN"

    result = await advisor.recommend("sys", "user")
    assert result.status is CallStatus.FAILURE
    assert calls["n"] == 2


async def test_circuit_breaker_half_open_trial_call():
    clock = FakeClock()
    breaker = CircuitBreaker("trial", failure_threshold=1, recovery_timeout=10, clock=clock)

    await breaker.before_call()
    await breaker.after_call(False)
    with pytest.raises(CircuitOpenError):
        await breaker.before_call()

    clock.advance(10)
    await breaker.before_call()
    assert breaker.state == "HALF_OPEN"
    await breaker.after_call(True)
    assert breaker.state == "CLOSED"


async def test_call_with_timeout_outcomes():
    async def ok():
        return 7

    async def boom():
        raise RuntimeError("provider exploded")

    assert (await call_with_timeout(ok(), 1)).value == 7

    failed = await call_with_timeout(boom(), 1)
    assert failed.status is CallStatus.FAILURE
    assert failed.error == "provider exploded"

    timed_out = await call_with_timeout(asyncio.sleep(1), 0.01, name="slow")
    assert timed_out.status is CallStatus.TIMEOUT


def test_esim_selection():
    assert select_esim_provider("US", enterprise_configured=True).provider_id == "enterprise"
    assert select_esim_provider("JP", enterprise_configured=True).provider_id == "demo"
    assert select_esim_provider("US", enterprise_configured=False).provider_id == "demo"
