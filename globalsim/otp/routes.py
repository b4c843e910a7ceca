from fastapi import APIRouter, Depends, Request

from globalsim.common.custom_exceptions import ValidationError
from globalsim.common.utils import iso_from_epoch, success_response
from globalsim.otp.constants import logger
from globalsim.otp.dependencies import get_otp_service
from globalsim.otp.models import DeliveryStatusIn, SendOTPIn, VerifyOTPIn
from globalsim.otp.services import OTPService
from globalsim.rate_limiting.constants import OTP_SEND_ACTION, OTP_VERIFY_ACTION
from globalsim.rate_limiting.dependencies import enforce_rate_limit

otp_router = APIRouter()


@otp_router.post("/send")
async def send_otp(request: Request, payload: SendOTPIn, otp_service: OTPService = Depends(get_otp_service)):

    phone_number = otp_service.normalize_phone(payload.phone_number)
    settings = request.app.state.settings

    rate = await enforce_rate_limit(
        request, OTP_SEND_ACTION, settings.OTP_SEND_LIMIT, settings.OTP_SEND_WINDOW,
        subject=phone_number, message="Rate limit exceeded. Please try again later.")

    logger.info("otp.send.attempt", extra={"phone": phone_number, "preferred_provider": payload.provider})
    sent = await otp_service.send(phone_number, template=payload.template, provider=payload.provider)

    return success_response({
        "phoneNumber": sent.phone_number,
        "trackingId": sent.tracking_id,
        "messageId": sent.message_id,
        "provider": sent.provider,
        "providerId": sent.provider_id,
        "reasoning": sent.reasoning,
        "expiresAt": iso_from_epoch(sent.expires_at),
        "remaining": rate.remaining,
    }, 200, message="OTP sent successfully")


@otp_router.post("/verify")
async def verify_otp(request: Request, payload: VerifyOTPIn, otp_service: OTPService = Depends(get_otp_service)):

    phone_number = otp_service.normalize_phone(payload.phone_number)
    settings = request.app.state.settings

    rate = await enforce_rate_limit(
        request, OTP_VERIFY_ACTION, settings.OTP_VERIFY_LIMIT, settings.OTP_VERIFY_WINDOW,
        subject=phone_number, message="Too many verification attempts. Please try again later.")

    verified_at = await otp_service.verify(phone_number, payload.code)

    return success_response({
        "phoneNumber": phone_number,
        "verifiedAt": iso_from_epoch(verified_at),
        "remaining": rate.remaining,
    }, 200, message="OTP verified successfully")


@otp_router.post("/status")
async def delivery_status(payload: DeliveryStatusIn, otp_service: OTPService = Depends(get_otp_service)):
    status = await otp_service.sms_router.delivery_status(payload.provider, payload.message_id)
    if status is None:
        raise ValidationError("Unknown provider")
    return success_response({"messageId": payload.message_id, "status": status.status,
                             "delivered": status.delivered})


@otp_router.get("/providers")
async def list_sms_providers(otp_service: OTPService = Depends(get_otp_service)):
    return success_response({"providers": otp_service.sms_router.available_providers()})
