from fastapi import Request
from globalsim.otp.services import OTPService


def get_otp_service(request: Request) -> OTPService:
    return request.app.state.otp_service
