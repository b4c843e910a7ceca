from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from globalsim.common import logger
from globalsim.common.constants import INTERNAL_ERROR_MESSAGE, request_id_ctx
from globalsim.common.utils import build_error, json_error


class GlobalSimError(Exception):
    """
    Base error for everything the API reports to callers.
    `extra` is merged into the top level of the error envelope.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"
    default_message = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: Optional[str] = None, details: Optional[Any] = None,
                 extra: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None,
                 status_code: Optional[int] = None):
        self.message = message or self.default_message
        self.details = details
        self.extra = extra or {}
        self.headers = headers
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(GlobalSimError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    default_message = "Invalid request data"


class RateLimitExceededError(GlobalSimError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMIT_EXCEEDED"
    default_message = "Rate limit exceeded. Please try again later."

    def __init__(self, message: Optional[str] = None, reset_at: Optional[int] = None,
                 retry_after: Optional[int] = None):
        headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
        super().__init__(message, extra={"resetAt": reset_at}, headers=headers)


class OTPNotFoundError(GlobalSimError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "OTP_NOT_FOUND"
    default_message = "No OTP found for this phone number"


class OTPExpiredError(GlobalSimError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "OTP_EXPIRED"
    default_message = "OTP has expired. Please request a new one."


class AttemptsExhaustedError(GlobalSimError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "OTP_ATTEMPTS_EXHAUSTED"
    default_message = "Maximum verification attempts exceeded"


class InvalidCodeError(GlobalSimError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "OTP_INVALID_CODE"
    default_message = "Invalid OTP code"

    def __init__(self, attempts_remaining: int, message: Optional[str] = None):
        self.attempts_remaining = attempts_remaining
        super().__init__(message, extra={"attemptsRemaining": attempts_remaining})


class UpstreamFailureError(GlobalSimError):
    """Provider failure; only the message ever reaches the caller."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "UPSTREAM_FAILURE"
    default_message = "Upstream provider failure"


class ProfileNotFoundError(GlobalSimError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "PROFILE_NOT_FOUND"
    default_message = "Profile not found"


class ConcurrentUpdateError(GlobalSimError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONCURRENT_UPDATE"
    default_message = "Request conflicted with a concurrent update. Please retry."


def _sanitize_validation_errors(errors) -> list:
    # pydantic ctx may hold exception objects which are not json serializable
    return [
        {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")}
        for err in errors
    ]


async def globalsim_error_handler(request: Request, exc: GlobalSimError):
    rid = request_id_ctx.get(None)
    logger.info(
        "request.rejected",
        extra={"path": request.url.path, "error_code": exc.code, "status_code": exc.status_code},
    )
    payload = build_error(exc.message, code=exc.code, details=exc.details, request_id=rid, extra=exc.extra)
    return json_error(payload, status_code=exc.status_code, headers=exc.headers)


async def fallback_handler(request: Request, exc: Exception):
    rid = request_id_ctx.get(None)

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc,
    )

    payload = build_error(INTERNAL_ERROR_MESSAGE, code="SERVER_ERROR", request_id=rid)
    return json_error(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request_id_ctx.get(None)
    details = _sanitize_validation_errors(exc.errors())
    logger.warning(
        "request.validation_failed",
        extra={"errors": details, "path": request.url.path},
    )

    payload = build_error("Invalid request data", code="VALIDATION_ERROR", details=details, request_id=rid)
    return json_error(payload, status_code=status.HTTP_400_BAD_REQUEST)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    rid = request_id_ctx.get(None)

    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        message = f"Method not allowed. Use {exc.headers.get('Allow', 'POST') if exc.headers else 'POST'}."
    else:
        message = str(exc.detail)

    payload = build_error(message, code=f"HTTP_{exc.status_code}", request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception,  # catch all unidentified/unhandled exceptions
        fallback_handler
    )

    app.add_exception_handler(
        GlobalSimError,
        globalsim_error_handler
    )

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        StarletteHTTPException,
        http_exception_handler
    )
