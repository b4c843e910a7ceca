import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Generic, Optional, TypeVar

from globalsim.common import logger

T = TypeVar("T")


class CallStatus(str, Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    FAILURE = "failure"


@dataclass
class CallResult(Generic[T]):
    status: CallStatus
    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is CallStatus.SUCCESS


async def call_with_timeout(awaitable: Awaitable[T], timeout: float, name: str = "downstream") -> CallResult[T]:
    """
    Await a downstream call bounded by `timeout` seconds.
    Timeouts and exceptions become CallResult values; cancellation propagates.
    """
    try:
        value = await asyncio.wait_for(awaitable, timeout=timeout)
        return CallResult(CallStatus.SUCCESS, value=value)
    except asyncio.TimeoutError:
        logger.warning("downstream.timeout", extra={"call": name, "timeout": timeout})
        return CallResult(CallStatus.TIMEOUT, error=f"{name} timed out after {timeout}s")
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("downstream.failure", extra={"call": name, "error": str(exc)})
        return CallResult(CallStatus.FAILURE, error=str(exc))
