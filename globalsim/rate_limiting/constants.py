from globalsim.common.logging_setup import get_logger

logger = get_logger("globalsim.rate_limiting")

RATE_LIMIT_PREFIX = "rl"    # store key prefix
EXPIRY_GRACE_MS = 1000      # records outlive their window so expiry can be observed

# action prefixes for composite keys
OTP_SEND_ACTION = "otp"
OTP_VERIFY_ACTION = "verify"
ESIM_CREATE_ACTION = "esim:create"
ESIM_ACTIVATE_ACTION = "esim:activate"
