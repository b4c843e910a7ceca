from globalsim.common.logging_setup import get_logger

logger = get_logger("globalsim.otp")

OTP_KEY_PREFIX = "otp:record"
# records stay readable past expiry so verify can report "expired" rather than "not found"
RECORD_TTL_GRACE_SECONDS = 5 * 60

DIGITS = "0123456789"
DEFAULT_COUNTRY = "US"
