import asyncio
import re
from typing import List, Optional, Tuple

from globalsim.otp.providers import DeliveryStatus, SendResult
from globalsim.store import InMemoryStore

url_prefix = "/api/v1"

_CODE_RE = re.compile(r"\b(\d{4,10})\b")


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class OutboxSMSProvider:
    """Registers as the demo provider and keeps every message instead of sending it."""
    id = "demo"
    name = "Outbox SMS Provider"
    description = "testing"

    def __init__(self, fail_with: Optional[str] = None):
        self.fail_with = fail_with
        self.sent: List[Tuple[str, str]] = []

    async def send(self, to: str, message: str) -> SendResult:
        if self.fail_with:
            return SendResult(success=False, error=self.fail_with)
        self.sent.append((to, message))
        return SendResult(success=True, message_id=f"outbox_{len(self.sent)}")

    async def get_delivery_status(self, message_id: str) -> DeliveryStatus:
        return DeliveryStatus(status="delivered", delivered=True)

    def last_message(self, to: str) -> str:
        for phone, message in reversed(self.sent):
            if phone == to:
                return message
        raise AssertionError(f"no message sent to {to}")

    def last_code(self, to: str) -> str:
        return _CODE_RE.search(self.last_message(to)).group(1)


def wrong_code(code: str) -> str:
    return "0" * len(code) if code != "0" * len(code) else "1" * len(code)


class YieldingStore(InMemoryStore):
    """Hands control back to the event loop before every store call so gathered tasks interleave."""

    async def get(self, key):
        await asyncio.sleep(0)
        return await super().get(key)

    async def compare_and_swap(self, key, expected, new, ttl_ms=None):
        await asyncio.sleep(0)
        return await super().compare_and_swap(key, expected, new, ttl_ms)

    async def hit_fixed_window(self, key, limit, window_ms, now_ms, grace_ms=0):
        await asyncio.sleep(0)
        return await super().hit_fixed_window(key, limit, window_ms, now_ms, grace_ms)
