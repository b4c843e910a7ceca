import hashlib
import hmac
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

from globalsim.otp.constants import DIGITS


@dataclass(frozen=True)
class GeneratedOTP:
    code: str
    hash: str
    expires_at: float  # unix epoch seconds


class OTPCodec:
    """
    Generates numeric one-time codes and the salted digest that is stored in
    their place. The plaintext code only ever leaves through the SMS body.
    """

    def __init__(self, secret: str, length: int = 6, expiry_minutes: int = 5,
                 clock: Callable[[], float] = time.time):
        self._secret = secret
        self.length = length
        self.expiry_seconds = expiry_minutes * 60
        self._clock = clock

    def generate(self, length: Optional[int] = None) -> GeneratedOTP:
        length = length or self.length
        code = "".join(secrets.choice(DIGITS) for _ in range(length))
        return GeneratedOTP(code=code, hash=self.hash_code(code),
                            expires_at=self._clock() + self.expiry_seconds)

    def hash_code(self, code: str) -> str:
        return hashlib.sha256((code + self._secret).encode("utf-8")).hexdigest()

    def verify(self, code: str, code_hash: str) -> bool:
        # constant-time compare
        return hmac.compare_digest(self.hash_code(code), code_hash)

    def is_expired(self, expires_at: float) -> bool:
        return self._clock() > expires_at

    def render_message(self, code: str, app_name: str = "GlobalSIM Pro") -> str:
        minutes = self.expiry_seconds // 60
        return (f"Your {app_name} verification code is: {code}. "
                f"This code expires in {minutes} minutes. Do not share this code with anyone.")


def new_tracking_id() -> str:
    return secrets.token_hex(16)
