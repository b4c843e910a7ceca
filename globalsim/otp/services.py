import time
from dataclasses import dataclass
from typing import Callable, Optional

from globalsim.common.custom_exceptions import (
    AttemptsExhaustedError, ConcurrentUpdateError, InvalidCodeError, OTPExpiredError,
    OTPNotFoundError, UpstreamFailureError, ValidationError,
)
from globalsim.otp.codec import OTPCodec, new_tracking_id
from globalsim.otp.constants import logger
from globalsim.otp.phone import format_phone_number, is_valid_phone_number
from globalsim.otp.providers import SMSRouter
from globalsim.otp.repository import OTPRecord, OTPRepository

CODE_PLACEHOLDER = "{code}"


@dataclass(frozen=True)
class SentOTP:
    phone_number: str
    tracking_id: str
    message_id: Optional[str]
    provider: str
    provider_id: str
    reasoning: str
    expires_at: float


class OTPService:
    """
    OTP lifecycle per phone number:

        Absent -> Pending (send) -> Verified | Expired | Exhausted

    Every terminal state deletes the record. send always overwrites whatever
    is pending. verify mutates the record it read through compare-and-swap, so
    concurrent verifications cannot spend the same attempt twice.
    """

    def __init__(self, repository: OTPRepository, codec: OTPCodec, sms_router: SMSRouter,
                 max_attempts: int = 3, default_country_code: Optional[str] = None,
                 app_name: str = "GlobalSIM Pro", clock: Callable[[], float] = time.time):
        self.repository = repository
        self.codec = codec
        self.sms_router = sms_router
        self.max_attempts = max_attempts
        self.default_country_code = default_country_code
        self.app_name = app_name
        self._clock = clock

    def normalize_phone(self, raw: str) -> str:
        phone = format_phone_number(raw, self.default_country_code)
        if not is_valid_phone_number(phone):
            raise ValidationError("Invalid phone number format")
        return phone

    def _render(self, code: str, template: Optional[str]) -> str:
        if not template:
            return self.codec.render_message(code, self.app_name)
        if CODE_PLACEHOLDER not in template:
            raise ValidationError(f"Template must contain the {CODE_PLACEHOLDER} placeholder")
        return template.replace(CODE_PLACEHOLDER, code)

    async def send(self, phone_number: str, template: Optional[str] = None,
                   provider: Optional[str] = None) -> SentOTP:
        """
        Generate a code, hand it to an SMS provider and, once the provider
        accepted it, store its digest as the single pending record for the number.
        """
        otp = self.codec.generate()
        tracking_id = new_tracking_id()
        message = self._render(otp.code, template)

        dispatch = await self.sms_router.send(phone_number, message, provider)
        if not dispatch.delivered:
            logger.warning("otp.send.provider_failed", extra={
                "phone": phone_number, "provider_id": dispatch.selection.provider_id,
                "status": dispatch.result.status.value, "error": dispatch.error})
            raise UpstreamFailureError("Failed to send SMS")

        await self.repository.save(OTPRecord(phone_number=phone_number, code_hash=otp.hash,
                                             expires_at=otp.expires_at, attempts=0))

        logger.info("otp.send.success", extra={"phone": phone_number, "tracking_id": tracking_id,
                                               "provider_id": dispatch.selection.provider_id})
        return SentOTP(
            phone_number=phone_number,
            tracking_id=tracking_id,
            message_id=dispatch.message_id,
            provider=dispatch.provider_name,
            provider_id=dispatch.selection.provider_id,
            reasoning=dispatch.selection.reasoning,
            expires_at=otp.expires_at,
        )

    async def verify(self, phone_number: str, code: str) -> float:
        """
        Returns the verification timestamp; raises the matching error otherwise.
        """
        if len(code) != self.codec.length or not code.isdigit():
            raise ValidationError(f"OTP must be {self.codec.length} digits")

        # a lost swap means another request committed one of the record's at most
        # max_attempts + 1 mutations, so this many reads always reach a decision
        for _ in range(self.max_attempts + 2):
            record = await self.repository.get(phone_number)
            if record is None:
                raise OTPNotFoundError()

            if self.codec.is_expired(record.expires_at):
                if await self.repository.consume(record):
                    logger.info("otp.verify.expired", extra={"phone": phone_number})
                    raise OTPExpiredError()
                continue

            attempted = record.with_attempt()
            if attempted.attempts > self.max_attempts:
                if await self.repository.consume(record):
                    logger.warning("otp.verify.exhausted", extra={"phone": phone_number})
                    raise AttemptsExhaustedError()
                continue

            if not self.codec.verify(code, record.code_hash):
                if await self.repository.replace(record, attempted):
                    remaining = self.max_attempts - attempted.attempts
                    logger.info("otp.verify.invalid_code", extra={"phone": phone_number,
                                                                  "attempts_remaining": remaining})
                    raise InvalidCodeError(attempts_remaining=remaining)
                continue

            if await self.repository.consume(record):
                logger.info("otp.verify.success", extra={"phone": phone_number})
                return self._clock()

        logger.warning("otp.verify.cas_retries_exhausted", extra={"phone": phone_number})
        raise ConcurrentUpdateError()
